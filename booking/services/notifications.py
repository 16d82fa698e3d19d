"""Customer e-mail notifications rendered from Django templates."""

from __future__ import annotations

import logging
from typing import Iterable

from django.apps import apps
from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)

TEMPLATE_DIR = "booking/emails"


class Notifier:
    """
    Fire-and-forget mail delivery keyed by template name and recipient.

    One instance is built at startup by ``BookingConfig.ready()`` and handed
    to request code through ``get_notifier()``. The mail connection is opened
    on first use so the configured backend is the one active at send time.
    """

    def __init__(self, from_email: str | None = None, base_url: str = "", connection=None):
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self.base_url = base_url.rstrip("/")
        self._connection = connection

    @classmethod
    def from_settings(cls) -> "Notifier":
        return cls(
            from_email=settings.DEFAULT_FROM_EMAIL,
            base_url=getattr(settings, "BOOKING_PUBLIC_BASE_URL", ""),
        )

    @property
    def connection(self):
        if self._connection is None:
            self._connection = get_connection(fail_silently=False)
        return self._connection

    def render(self, template_name: str, context: dict) -> tuple[str, str, str]:
        base = f"{TEMPLATE_DIR}/{template_name}"
        subject = render_to_string(f"{base}_subject.txt", context).strip()
        text_body = render_to_string(f"{base}.txt", context)
        html_body = render_to_string(f"{base}.html", context)
        return subject, text_body, html_body

    def send(
        self,
        template_name: str,
        recipient: str | None,
        context: dict,
        bcc: Iterable[str] | None = None,
    ) -> bool:
        """Render and deliver one message. Failures are logged, never raised."""
        context = {"base_url": self.base_url, **context}
        try:
            subject, text_body, html_body = self.render(template_name, context)
            message = EmailMultiAlternatives(
                subject=subject,
                body=text_body,
                from_email=self.from_email,
                to=[recipient] if recipient else [],
                bcc=list(bcc or []),
                connection=self.connection,
            )
            message.attach_alternative(html_body, "text/html")
            message.send()
        except Exception:
            logger.exception("Failed to send %s e-mail", template_name, extra={"recipient": recipient})
            return False
        logger.info("Sent %s e-mail", template_name, extra={"recipient": recipient})
        return True

    def reservation_confirmation(self, reservation) -> bool:
        return self.send(
            "reservation_confirmation",
            reservation.email,
            {
                "reservation": reservation,
                "items": list(reservation.items.all()),
                "tracking_url": self.tracking_url(reservation),
            },
        )

    def status_update(self, reservation, cancellation_reason: str | None = None) -> bool:
        return self.send(
            "status_update",
            reservation.email,
            {
                "reservation": reservation,
                "items": list(reservation.items.all()),
                "cancellation_reason": cancellation_reason,
                "tracking_url": self.tracking_url(reservation),
            },
        )

    def broadcast(self, recipients: Iterable[str], subject: str, message: str) -> int:
        """Send one message with every recipient in BCC; return the recipient count."""
        unique = sorted({email.strip() for email in recipients if email and email.strip()})
        if not unique:
            return 0
        sent = self.send("broadcast", None, {"subject": subject, "message": message}, bcc=unique)
        return len(unique) if sent else 0

    def tracking_url(self, reservation) -> str:
        return f"{self.base_url}/reservation/{reservation.pk}"


def get_notifier() -> Notifier:
    return apps.get_app_config("booking").notifier
