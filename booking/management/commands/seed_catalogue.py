from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from booking.models import Product
from booking.services.pricing import generate_default_overrides, serialize_overrides

DEMO_PRODUCTS = [
    {
        "name": "Découverte",
        "description": "Je skie avec du matériel sécurisant et maniable pour découvrir les plaisirs de la glisse facile.",
        "category": "ADULT_SKI",
        "equipment_type": "SKI",
        "price": Decimal("121.60"),
        "original_price": Decimal("152.00"),
        "level": "BEGINNER",
        "image": "/images/ski-decouverte.png",
    },
    {
        "name": "Sensation",
        "description": (
            "Je skie avec du matériel polyvalent, pour des sensations décuplées, "
            "toutes pistes et dans toutes les conditions de neige."
        ),
        "category": "ADULT_SKI",
        "equipment_type": "SKI",
        "price": Decimal("112.00"),
        "original_price": Decimal("140.00"),
        "level": "INTERMEDIATE",
        "image": "/images/ski-sensation.png",
    },
    {
        "name": "Excellence",
        "description": (
            "Je skie avec le top de la sélection SKISET, pour plus de performances et un plaisir "
            "intense, aussi bien sur piste qu'en hors piste."
        ),
        "category": "ADULT_SKI",
        "equipment_type": "SKI",
        "price": Decimal("194.65"),
        "original_price": Decimal("229.00"),
        "level": "ADVANCED",
        "image": "/images/ski-excellence.png",
    },
]


class Command(BaseCommand):
    help = "Create the demo product catalogue and, optionally, a staff account for the back office."

    def add_arguments(self, parser):
        parser.add_argument("--admin-username", type=str, default=None, help="Create this staff user if missing.")
        parser.add_argument("--admin-email", type=str, default="", help="E-mail for the staff user.")
        parser.add_argument("--admin-password", type=str, default=None, help="Password for the staff user.")
        parser.add_argument(
            "--with-day-prices",
            action="store_true",
            help="Pre-fill each product with its linear 1-14 day price table.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        username = options.get("admin_username")
        if username:
            password = options.get("admin_password")
            if not password:
                raise CommandError("--admin-password is required with --admin-username.")
            User = get_user_model()
            user, created = User.objects.get_or_create(
                username=username,
                defaults={"email": options.get("admin_email") or "", "is_staff": True},
            )
            if created:
                user.set_password(password)
                user.save()
                self.stdout.write(self.style.SUCCESS(f"Staff user {username} created."))
            else:
                self.stdout.write(self.style.WARNING(f"Staff user {username} already exists, left unchanged."))

        created_count = 0
        for data in DEMO_PRODUCTS:
            defaults = {key: value for key, value in data.items() if key != "name"}
            if options.get("with_day_prices"):
                defaults["day_prices"] = serialize_overrides(generate_default_overrides(data["price"]))
            _, created = Product.objects.get_or_create(name=data["name"], defaults=defaults)
            created_count += int(created)

        self.stdout.write(
            self.style.SUCCESS(
                f"Catalogue seeded. Created: {created_count}, already present: {len(DEMO_PRODUCTS) - created_count}"
            )
        )
