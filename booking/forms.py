import json
from decimal import Decimal

from django import forms
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.utils.dateparse import parse_date, parse_datetime

from .models import Product, PromoCode, Reservation
from .services.pricing import is_valid_overrides, parse_overrides, serialize_overrides


class IsoDateField(forms.DateField):
    """Accept plain dates as well as full ISO-8601 timestamps (time is dropped)."""

    def to_python(self, value):
        if isinstance(value, str):
            text = value.strip()
            if "T" in text or " " in text:
                parsed = parse_datetime(text.replace("Z", "+00:00"))
                if parsed is not None:
                    return parsed.date()
            elif text:
                try:
                    parsed_date = parse_date(text)
                except ValueError:
                    parsed_date = None
                if parsed_date is not None:
                    return parsed_date
        return super().to_python(value)


class EmailListField(forms.Field):
    """A list of e-mail addresses, given as a JSON list or a comma separated string."""

    def to_python(self, value):
        if value in self.empty_values:
            return []
        if isinstance(value, str):
            value = value.replace(";", ",").split(",")
        return [str(item).strip() for item in value if str(item).strip()]

    def validate(self, value):
        super().validate(value)
        for email in value:
            validate_email(email)


class ProductForm(forms.ModelForm):
    class Meta:
        model = Product
        fields = [
            "name",
            "description",
            "category",
            "price",
            "original_price",
            "level",
            "image",
            "boots_image",
            "helmet_image",
            "title_color",
            "equipment_type",
            "target_group",
            "features",
            "active",
            "day_prices",
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.is_bound and isinstance(self.data.get("day_prices"), dict):
            data = self.data.copy()
            data["day_prices"] = json.dumps(data["day_prices"])
            self.data = data

    def clean_price(self):
        price = self.cleaned_data["price"]
        if price is not None and price < 0:
            raise ValidationError("Price cannot be negative.")
        return price

    def clean_day_prices(self):
        raw = self.cleaned_data.get("day_prices")
        if not raw:
            return None
        if not is_valid_overrides(raw):
            raise ValidationError(
                "Day prices must map rental lengths 1-14 to non-negative numbers, e.g. {\"1\": 50, \"2\": 90}."
            )
        return serialize_overrides(parse_overrides(raw))


class PromoCodeForm(forms.ModelForm):
    class Meta:
        model = PromoCode
        fields = ["code", "discount_type", "discount_value", "max_uses", "expires_at", "is_active"]

    def clean_code(self):
        code = (self.cleaned_data.get("code") or "").strip()
        if not code:
            raise ValidationError("Code is required.")
        return code

    def clean_discount_value(self):
        value = self.cleaned_data["discount_value"]
        if value is None or value <= 0:
            raise ValidationError("Discount value must be greater than zero.")
        return value

    def clean(self):
        cleaned_data = super().clean()
        value = cleaned_data.get("discount_value")
        if cleaned_data.get("discount_type") == PromoCode.PERCENTAGE and value and value > Decimal("100"):
            self.add_error("discount_value", "A percentage discount cannot exceed 100.")
        max_uses = cleaned_data.get("max_uses")
        if max_uses is not None and self.instance.pk and max_uses < self.instance.current_uses:
            self.add_error("max_uses", "The limit cannot be lower than the uses already counted.")
        return cleaned_data


class PromoCodeUpdateForm(PromoCodeForm):
    class Meta(PromoCodeForm.Meta):
        fields = ["discount_type", "discount_value", "max_uses", "expires_at", "is_active"]


class PromoCodeCheckForm(forms.Form):
    code = forms.CharField(max_length=50)


class RentalWindowForm(forms.Form):
    start_date = IsoDateField()
    end_date = IsoDateField()


class ReservationForm(RentalWindowForm):
    first_name = forms.CharField(max_length=100)
    last_name = forms.CharField(max_length=100)
    email = forms.EmailField()
    phone = forms.CharField(min_length=5, max_length=30)
    notes = forms.CharField(required=False)
    promo_code = forms.CharField(required=False, max_length=50)

    def clean_promo_code(self):
        return (self.cleaned_data.get("promo_code") or "").strip() or None


class ReservationItemForm(forms.Form):
    product = forms.ModelChoiceField(queryset=Product.objects.filter(active=True))
    quantity = forms.IntegerField(min_value=1, max_value=50)
    options = forms.CharField(required=False, max_length=255)
    size = forms.CharField(required=False, max_length=30)
    level = forms.CharField(required=False, max_length=20)
    image = forms.CharField(required=False, max_length=255)
    surname = forms.CharField(required=False, max_length=100)
    sex = forms.CharField(required=False, max_length=10)
    age = forms.IntegerField(required=False, min_value=0, max_value=120)
    height = forms.CharField(required=False, max_length=20)
    weight = forms.CharField(required=False, max_length=20)
    shoe_size = forms.CharField(required=False, max_length=20)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        options = self.data.get("options") if self.is_bound else None
        if isinstance(options, (list, tuple)):
            data = dict(self.data)
            data["options"] = ",".join(str(option).strip() for option in options if str(option).strip())
            self.data = data


class ReservationUpdateForm(forms.Form):
    status = forms.ChoiceField(choices=Reservation.STATUS_CHOICES, required=False)
    admin_notes = forms.CharField(required=False, strip=False)
    cancellation_reason = forms.CharField(required=False)


class BroadcastForm(forms.Form):
    recipients = EmailListField()
    subject = forms.CharField(max_length=200)
    message = forms.CharField()
