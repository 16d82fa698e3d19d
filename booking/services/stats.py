from datetime import timedelta
from decimal import Decimal

from django.db.models import Count, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from ..models import Product, Reservation, ReservationItem

EQUIPMENT_BUCKETS = ["SKI", "SNOWBOARD", "MINISKI", "TOURING", "OTHER"]

CATEGORY_BUCKETS = {
    "ADULT_SKI": "SKI",
    "KIDS_SKI": "SKI",
    "SNOWBOARD": "SNOWBOARD",
}


def _billable():
    return Reservation.objects.exclude(status=Reservation.STATUS_CANCELLED)


def reservation_summary():
    """Counts and revenue for the analytics header. Cancelled bookings earn nothing."""
    total_reservations = Reservation.objects.count()
    total_revenue = _billable().aggregate(total=Sum("final_price")).get("total") or Decimal("0")
    average_order_value = total_revenue / total_reservations if total_reservations else Decimal("0")

    return {
        "total_reservations": total_reservations,
        "total_revenue": total_revenue,
        "average_order_value": average_order_value,
    }


def revenue_over_time(days=30):
    """
    Daily revenue by booking date for the last ``days`` days, today included.

    Days without bookings are filled with zeros so the chart keeps its width.
    """
    days = max(1, days)
    today = timezone.localdate()
    window_start = today - timedelta(days=days - 1)

    aggregates = (
        _billable()
        .annotate(day=TruncDate("created_at"))
        .filter(day__gte=window_start)
        .values("day")
        .annotate(amount=Sum("final_price"))
        .order_by("day")
    )
    by_day = {row["day"]: row["amount"] or Decimal("0") for row in aggregates}

    timeline = []
    for idx in range(days):
        point = window_start + timedelta(days=idx)
        timeline.append({"date": point.isoformat(), "amount": by_day.get(point, Decimal("0"))})
    return timeline


def equipment_bucket(item: ReservationItem, types_by_name: dict[str, str]) -> str:
    """
    Map a reservation line to a coarse equipment bucket.

    The product's own equipment type wins. Otherwise only the category can
    be used, and it cannot tell miniski or touring apart from regular skis.
    """
    equipment_type = None
    if item.product_id and item.product is not None:
        equipment_type = item.product.equipment_type
    if not equipment_type:
        equipment_type = types_by_name.get(item.product_name)
    if not equipment_type:
        equipment_type = CATEGORY_BUCKETS.get(item.category)
    return equipment_type if equipment_type in EQUIPMENT_BUCKETS else "OTHER"


def equipment_distribution():
    types_by_name = dict(
        Product.objects.exclude(equipment_type__isnull=True)
        .exclude(equipment_type="")
        .values_list("name", "equipment_type")
    )
    counts = {bucket: 0 for bucket in EQUIPMENT_BUCKETS}
    items = ReservationItem.objects.exclude(reservation__status=Reservation.STATUS_CANCELLED).select_related(
        "product"
    )
    for item in items:
        counts[equipment_bucket(item, types_by_name)] += item.quantity

    return [{"name": bucket, "value": counts[bucket]} for bucket in EQUIPMENT_BUCKETS if counts[bucket] > 0]


def reservation_status_breakdown():
    """Return counts per reservation status keyed by the status code."""
    status_totals = {code: 0 for code, _ in Reservation.STATUS_CHOICES}
    aggregated = Reservation.objects.values("status").annotate(count=Count("id"))
    for row in aggregated:
        status_totals[row["status"]] = row["count"]
    return status_totals


def customer_directory():
    """
    One row per customer e-mail (case-insensitive) with booking totals.

    Name and phone come from the most recent reservation.
    """
    customers = {}
    reservations = Reservation.objects.order_by("-created_at").prefetch_related("items")
    for reservation in reservations:
        key = reservation.email.lower()
        categories = [item.category for item in reservation.items.all()]
        customer = customers.get(key)
        if customer is None:
            customers[key] = {
                "email": reservation.email,
                "first_name": reservation.first_name,
                "last_name": reservation.last_name,
                "phone": reservation.phone,
                "total_reservations": 1,
                "last_booking_date": reservation.created_at,
                "categories": list(dict.fromkeys(categories)),
            }
            continue
        customer["total_reservations"] += 1
        for category in categories:
            if category not in customer["categories"]:
                customer["categories"].append(category)
        if reservation.created_at > customer["last_booking_date"]:
            customer["last_booking_date"] = reservation.created_at
    return list(customers.values())
