from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120)),
                ("description", models.TextField()),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("ADULT_SKI", "Adult ski"),
                            ("KIDS_SKI", "Kids ski"),
                            ("SNOWBOARD", "Snowboard"),
                            ("ACCESSORY", "Accessory"),
                        ],
                        max_length=30,
                    ),
                ),
                (
                    "price",
                    models.DecimalField(decimal_places=2, help_text="Base price for one rental day.", max_digits=8),
                ),
                (
                    "original_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Crossed-out reference price shown next to the offer.",
                        max_digits=8,
                        null=True,
                    ),
                ),
                (
                    "level",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("BEGINNER", "Beginner"),
                            ("INTERMEDIATE", "Intermediate"),
                            ("ADVANCED", "Advanced"),
                        ],
                        default="",
                        max_length=20,
                    ),
                ),
                ("image", models.CharField(blank=True, max_length=255, null=True)),
                ("boots_image", models.CharField(blank=True, max_length=255, null=True)),
                ("helmet_image", models.CharField(blank=True, max_length=255, null=True)),
                ("title_color", models.CharField(blank=True, max_length=30, null=True)),
                (
                    "equipment_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("SKI", "Ski"),
                            ("SNOWBOARD", "Snowboard"),
                            ("MINISKI", "Miniski"),
                            ("TOURING", "Touring"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                ("target_group", models.CharField(blank=True, max_length=50, null=True)),
                ("features", models.TextField(blank=True, default="")),
                ("active", models.BooleanField(default=True)),
                (
                    "day_prices",
                    models.TextField(
                        blank=True,
                        help_text='JSON map of rental length to total price, e.g. {"1": 50, "2": 90}.',
                        null=True,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["price", "name"],
            },
        ),
        migrations.CreateModel(
            name="PromoCode",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(help_text="Case-sensitive voucher code.", max_length=50, unique=True)),
                (
                    "discount_type",
                    models.CharField(
                        choices=[("PERCENTAGE", "Percentage"), ("FIXED_AMOUNT", "Fixed amount")],
                        default="PERCENTAGE",
                        max_length=20,
                    ),
                ),
                ("discount_value", models.DecimalField(decimal_places=2, max_digits=10)),
                (
                    "max_uses",
                    models.PositiveIntegerField(blank=True, help_text="Empty means unlimited.", null=True),
                ),
                ("current_uses", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("max_uses__isnull", True), ("current_uses__lte", models.F("max_uses")), _connector="OR"),
                        name="promocode_uses_within_limit",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Reservation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=100)),
                ("last_name", models.CharField(max_length=100)),
                ("email", models.EmailField(max_length=254)),
                ("phone", models.CharField(max_length=30)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("notes", models.TextField(blank=True, default="")),
                ("admin_notes", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("CONFIRMED", "Confirmed"),
                            ("COMPLETED", "Completed"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                (
                    "total_price",
                    models.DecimalField(decimal_places=2, help_text="Subtotal before discount.", max_digits=10),
                ),
                ("discount_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("final_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "promo_code",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reservations",
                        to="booking.promocode",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ReservationItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("product_name", models.CharField(blank=True, default="", max_length=120)),
                ("category", models.CharField(max_length=30)),
                (
                    "price",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Unit price for the whole rental window.",
                        max_digits=10,
                    ),
                ),
                ("quantity", models.PositiveIntegerField(default=1)),
                (
                    "options",
                    models.CharField(blank=True, default="", help_text="Comma separated extras.", max_length=255),
                ),
                ("size", models.CharField(blank=True, default="", max_length=30)),
                ("level", models.CharField(blank=True, default="", max_length=20)),
                ("image", models.CharField(blank=True, max_length=255, null=True)),
                ("surname", models.CharField(blank=True, default="", max_length=100)),
                ("sex", models.CharField(blank=True, default="", max_length=10)),
                ("age", models.PositiveIntegerField(blank=True, null=True)),
                ("height", models.CharField(blank=True, default="", max_length=20)),
                ("weight", models.CharField(blank=True, default="", max_length=20)),
                ("shoe_size", models.CharField(blank=True, default="", max_length=20)),
                (
                    "product",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="booking.product",
                    ),
                ),
                (
                    "reservation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="booking.reservation",
                    ),
                ),
            ],
        ),
    ]
