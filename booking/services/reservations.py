import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction

from ..models import Product, Reservation, ReservationItem
from .notifications import Notifier, get_notifier
from .pricing import clamp_rental_window
from .promo import OrderPricing, apply_promo_code

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

ITEM_DETAIL_FIELDS = (
    "options",
    "size",
    "level",
    "image",
    "surname",
    "sex",
    "age",
    "height",
    "weight",
    "shoe_size",
)


class ReservationError(Exception):
    """Order data that cannot be turned into a reservation."""


def money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def price_lines(items: list[dict], days: int) -> tuple[list[dict], Decimal]:
    """
    Price every requested line for ``days`` rental days.

    Returns the lines with their unit ``price`` filled in and the subtotal
    (sum of unit price times quantity).
    """
    priced = []
    subtotal = Decimal("0")
    for item in items:
        product: Product | None = item.get("product")
        if product is None or not product.active:
            raise ReservationError("Selected equipment is no longer available.")
        quantity = int(item.get("quantity") or 1)
        unit_price = product.price_for_days(days)
        subtotal += unit_price * quantity
        priced.append({**item, "quantity": quantity, "price": unit_price})
    return priced, subtotal


def create_reservation(
    contact: dict,
    items: list[dict],
    start_date,
    end_date,
    promo_code: str | None = None,
    notifier: Notifier | None = None,
) -> Reservation:
    """
    Create a reservation with its items and pricing snapshot in one transaction.

    The rental window is clamped before billing. A rejected promo code raises
    ``PromoCodeError`` and nothing is written. The confirmation e-mail goes
    out only after the transaction commits.
    """
    if not items:
        raise ReservationError("At least one item is required.")

    window = clamp_rental_window(start_date, end_date)
    days = window.days
    lines, subtotal = price_lines(items, days)

    subtotal = money(subtotal)

    with transaction.atomic():
        discount = apply_promo_code(promo_code, subtotal)
        discount_amount = min(money(discount.discount_amount), subtotal)
        # Stored amounts must add up once rounded to cents.
        pricing = OrderPricing(
            subtotal=subtotal,
            discount_amount=discount_amount,
            final_price=subtotal - discount_amount,
        )
        reservation = Reservation.objects.create(
            first_name=contact["first_name"],
            last_name=contact["last_name"],
            email=contact["email"],
            phone=contact["phone"],
            notes=contact.get("notes") or "",
            start_date=window.start_date,
            end_date=window.end_date,
            total_price=pricing.subtotal,
            discount_amount=pricing.discount_amount,
            final_price=pricing.final_price,
            promo_code_id=discount.promo_code_id,
        )
        ReservationItem.objects.bulk_create(
            [
                ReservationItem(
                    reservation=reservation,
                    product=line["product"],
                    product_name=line["product"].name,
                    category=line["product"].category,
                    price=money(line["price"]),
                    quantity=line["quantity"],
                    **{field: line[field] for field in ITEM_DETAIL_FIELDS if line.get(field) is not None},
                )
                for line in lines
            ]
        )

        notifier = notifier or get_notifier()
        transaction.on_commit(lambda: notifier.reservation_confirmation(reservation))

    logger.info(
        "Reservation %s created: %s day(s), %s item(s), total=%s discount=%s final=%s",
        reservation.pk,
        days,
        len(lines),
        pricing.subtotal,
        pricing.discount_amount,
        pricing.final_price,
    )
    return reservation


def update_reservation_status(
    reservation: Reservation,
    status: str | None = None,
    admin_notes: str | None = None,
    cancellation_reason: str | None = None,
    notifier: Notifier | None = None,
) -> Reservation:
    """Apply an admin status/notes change and notify the customer on status changes."""
    valid_statuses = {code for code, _ in Reservation.STATUS_CHOICES}
    update_fields = []

    if status:
        if status not in valid_statuses:
            raise ReservationError("Invalid status")
        reservation.status = status
        update_fields.append("status")

    if admin_notes is not None:
        reservation.admin_notes = admin_notes
        update_fields.append("admin_notes")

    if not update_fields:
        raise ReservationError("No valid fields to update")

    reservation.save(update_fields=update_fields + ["updated_at"])

    if status and reservation.email:
        reason = cancellation_reason if status == Reservation.STATUS_CANCELLED else None
        (notifier or get_notifier()).status_update(reservation, cancellation_reason=reason)
    return reservation
