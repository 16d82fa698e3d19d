import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from ..models import PromoCode

logger = logging.getLogger(__name__)


class PromoCodeError(Exception):
    """Base class for promo code rejections shown to the customer."""

    code = "promo_code_error"
    message = "Promo code cannot be applied."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class InvalidCode(PromoCodeError):
    code = "invalid_code"
    message = "Invalid promo code"


class Expired(PromoCodeError):
    code = "expired"
    message = "Promo code has expired"


class UsageLimitReached(PromoCodeError):
    code = "usage_limit_reached"
    message = "Promo code usage limit reached"


@dataclass(frozen=True)
class OrderPricing:
    subtotal: Decimal
    discount_amount: Decimal
    final_price: Decimal


@dataclass(frozen=True)
class DiscountResult:
    discount_amount: Decimal
    final_price: Decimal
    promo_code_id: int | None


def check_promo_code(promo: PromoCode | None, now: datetime | None = None) -> PromoCode:
    """
    Run the eligibility checks in order and return the promo on success.

    Unknown or inactive codes are reported before expiry, and expiry before
    the usage cap, so the customer always sees the same message for the
    same code.
    """
    if promo is None or not promo.is_active:
        raise InvalidCode()
    now = now or timezone.now()
    if promo.expires_at and now > promo.expires_at:
        raise Expired()
    if promo.max_uses is not None and promo.current_uses >= promo.max_uses:
        raise UsageLimitReached()
    return promo


def compute_discount(subtotal, discount_type: str, discount_value) -> tuple[Decimal, Decimal]:
    """Return ``(discount_amount, final_price)``; the discount never exceeds the subtotal."""
    subtotal = Decimal(str(subtotal))
    value = Decimal(str(discount_value))
    if discount_type == PromoCode.PERCENTAGE:
        discount = subtotal * (value / Decimal("100"))
    else:
        discount = value
    discount = min(discount, subtotal)
    return discount, subtotal - discount


def no_discount(subtotal) -> DiscountResult:
    subtotal = Decimal(str(subtotal))
    return DiscountResult(discount_amount=Decimal("0"), final_price=subtotal, promo_code_id=None)


def lookup_promo_code(code: str, for_update: bool = False) -> PromoCode | None:
    queryset = PromoCode.objects.all()
    if for_update:
        queryset = queryset.select_for_update()
    return queryset.filter(code=code).first()


def claim_usage(promo: PromoCode) -> None:
    """
    Count one redemption of ``promo``.

    The increment is guarded in SQL so that two transactions that both read
    the code below its cap cannot push ``current_uses`` past ``max_uses``.
    """
    updated = (
        PromoCode.objects.filter(pk=promo.pk)
        .filter(Q(max_uses__isnull=True) | Q(current_uses__lt=F("max_uses")))
        .update(current_uses=F("current_uses") + 1)
    )
    if not updated:
        logger.info("Promo code %s reached its usage limit during checkout", promo.code)
        raise UsageLimitReached()


def apply_promo_code(code: str | None, subtotal, now: datetime | None = None) -> DiscountResult:
    """
    Validate ``code`` against ``subtotal`` and record one use.

    Must be called inside the ``transaction.atomic()`` block that creates the
    order, so the usage increment and the order row commit or roll back
    together. Raises a ``PromoCodeError`` subclass when the code is rejected.
    """
    if not code:
        return no_discount(subtotal)

    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("apply_promo_code() must run inside transaction.atomic().")

    promo = check_promo_code(lookup_promo_code(code, for_update=True), now=now)
    discount_amount, final_price = compute_discount(subtotal, promo.discount_type, promo.discount_value)
    claim_usage(promo)

    logger.info(
        "Applied promo code %s: subtotal=%s discount=%s final=%s",
        promo.code,
        subtotal,
        discount_amount,
        final_price,
    )
    return DiscountResult(discount_amount=discount_amount, final_price=final_price, promo_code_id=promo.pk)
