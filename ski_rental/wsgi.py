"""WSGI config for ski_rental project."""

import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ski_rental.settings")

application = get_wsgi_application()
