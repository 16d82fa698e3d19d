from decimal import Decimal

from django.db import models
from django.db.models import F, Q

from .services.pricing import compute_days, resolve_price


class Product(models.Model):
    CATEGORY_CHOICES = [
        ("ADULT_SKI", "Adult ski"),
        ("KIDS_SKI", "Kids ski"),
        ("SNOWBOARD", "Snowboard"),
        ("ACCESSORY", "Accessory"),
    ]
    LEVEL_CHOICES = [
        ("BEGINNER", "Beginner"),
        ("INTERMEDIATE", "Intermediate"),
        ("ADVANCED", "Advanced"),
    ]
    EQUIPMENT_TYPE_CHOICES = [
        ("SKI", "Ski"),
        ("SNOWBOARD", "Snowboard"),
        ("MINISKI", "Miniski"),
        ("TOURING", "Touring"),
    ]

    name = models.CharField(max_length=120)
    description = models.TextField()
    category = models.CharField(max_length=30, choices=CATEGORY_CHOICES)
    price = models.DecimalField(max_digits=8, decimal_places=2, help_text="Base price for one rental day.")
    original_price = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        blank=True,
        null=True,
        help_text="Crossed-out reference price shown next to the offer.",
    )
    level = models.CharField(max_length=20, choices=LEVEL_CHOICES, blank=True, default="")
    image = models.CharField(max_length=255, blank=True, null=True)
    boots_image = models.CharField(max_length=255, blank=True, null=True)
    helmet_image = models.CharField(max_length=255, blank=True, null=True)
    title_color = models.CharField(max_length=30, blank=True, null=True)
    equipment_type = models.CharField(max_length=20, choices=EQUIPMENT_TYPE_CHOICES, blank=True, null=True)
    target_group = models.CharField(max_length=50, blank=True, null=True)
    features = models.TextField(blank=True, default="")
    active = models.BooleanField(default=True)
    day_prices = models.TextField(
        blank=True,
        null=True,
        help_text='JSON map of rental length to total price, e.g. {"1": 50, "2": 90}.',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["price", "name"]

    def __str__(self):
        return f"{self.name} ({self.get_category_display()})"

    def price_for_days(self, days: int) -> Decimal:
        """Unit price for the whole rental, honouring the day-price table."""
        return resolve_price(self.price, days, self.day_prices)


class PromoCode(models.Model):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    DISCOUNT_TYPE_CHOICES = [
        (PERCENTAGE, "Percentage"),
        (FIXED_AMOUNT, "Fixed amount"),
    ]

    code = models.CharField(max_length=50, unique=True, help_text="Case-sensitive voucher code.")
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPE_CHOICES, default=PERCENTAGE)
    discount_value = models.DecimalField(max_digits=10, decimal_places=2)
    max_uses = models.PositiveIntegerField(blank=True, null=True, help_text="Empty means unlimited.")
    current_uses = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(max_uses__isnull=True) | Q(current_uses__lte=F("max_uses")),
                name="promocode_uses_within_limit",
            ),
        ]

    def __str__(self):
        return self.code


class Reservation(models.Model):
    STATUS_PENDING = "PENDING"
    STATUS_CONFIRMED = "CONFIRMED"
    STATUS_COMPLETED = "COMPLETED"
    STATUS_CANCELLED = "CANCELLED"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField()
    phone = models.CharField(max_length=30)
    start_date = models.DateField()
    end_date = models.DateField()
    notes = models.TextField(blank=True, default="")
    admin_notes = models.TextField(blank=True, default="")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    total_price = models.DecimalField(max_digits=10, decimal_places=2, help_text="Subtotal before discount.")
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    final_price = models.DecimalField(max_digits=10, decimal_places=2)
    promo_code = models.ForeignKey(
        PromoCode,
        blank=True,
        null=True,
        on_delete=models.SET_NULL,
        related_name="reservations",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.last_name} {self.first_name} / {self.start_date:%Y-%m-%d}"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def rental_days(self) -> int:
        return compute_days(self.start_date, self.end_date)


class ReservationItem(models.Model):
    reservation = models.ForeignKey(Reservation, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, blank=True, null=True, on_delete=models.SET_NULL, related_name="+")
    product_name = models.CharField(max_length=120, blank=True, default="")
    category = models.CharField(max_length=30)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Unit price for the whole rental window.",
    )
    quantity = models.PositiveIntegerField(default=1)
    options = models.CharField(max_length=255, blank=True, default="", help_text="Comma separated extras.")
    size = models.CharField(max_length=30, blank=True, default="")
    level = models.CharField(max_length=20, blank=True, default="")
    image = models.CharField(max_length=255, blank=True, null=True)
    surname = models.CharField(max_length=100, blank=True, default="")
    sex = models.CharField(max_length=10, blank=True, default="")
    age = models.PositiveIntegerField(blank=True, null=True)
    height = models.CharField(max_length=20, blank=True, default="")
    weight = models.CharField(max_length=20, blank=True, default="")
    shoe_size = models.CharField(max_length=20, blank=True, default="")

    def __str__(self):
        return f"{self.product_name or self.category} x{self.quantity}"

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @property
    def option_list(self) -> list[str]:
        return [piece.strip() for piece in (self.options or "").split(",") if piece.strip()]
