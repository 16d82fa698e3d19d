import csv
import json
import logging
from decimal import Decimal, InvalidOperation
from functools import wraps

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count, Q
from django.forms.models import model_to_dict
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.encoding import smart_str
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .forms import (
    BroadcastForm,
    ProductForm,
    PromoCodeCheckForm,
    PromoCodeForm,
    PromoCodeUpdateForm,
    RentalWindowForm,
    ReservationForm,
    ReservationItemForm,
    ReservationUpdateForm,
)
from .models import Product, PromoCode, Reservation
from .services.notifications import get_notifier
from .services.pricing import clamp_rental_window, generate_default_overrides, parse_overrides
from .services.promo import PromoCodeError, check_promo_code, compute_discount, lookup_promo_code
from .services.reservations import ReservationError, create_reservation, update_reservation_status
from .services.stats import (
    customer_directory,
    equipment_distribution,
    reservation_status_breakdown,
    reservation_summary,
    revenue_over_time,
)

logger = logging.getLogger(__name__)


class BadRequestBody(ValueError):
    pass


def _json_body(request) -> dict:
    try:
        payload = json.loads(request.body or b"{}")
    except ValueError as exc:
        raise BadRequestBody("Request body must be valid JSON.") from exc
    if not isinstance(payload, dict):
        raise BadRequestBody("Request body must be a JSON object.")
    return payload


def _error(message, status=400, **extra):
    return JsonResponse({"error": message, **extra}, status=status)


def _num(value):
    return float(value) if value is not None else 0


def staff_required(view):
    """Session-authenticated staff only; API callers get a 401 instead of a login redirect."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        user = request.user
        if not (user.is_authenticated and user.is_staff):
            return _error("Unauthorized", status=401)
        return view(request, *args, **kwargs)

    return wrapper


def json_view(view):
    """Turn malformed request bodies into a 400 JSON error."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except BadRequestBody as exc:
            return _error(str(exc))

    return wrapper


def _serialize_product(product: Product):
    try:
        day_prices = parse_overrides(product.day_prices) if product.day_prices else None
    except ValueError:
        day_prices = None
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "category": product.category,
        "price": _num(product.price),
        "original_price": _num(product.original_price) if product.original_price is not None else None,
        "level": product.level,
        "image": product.image,
        "boots_image": product.boots_image,
        "helmet_image": product.helmet_image,
        "title_color": product.title_color,
        "equipment_type": product.equipment_type,
        "target_group": product.target_group,
        "features": product.features,
        "active": product.active,
        "day_prices": day_prices,
    }


def _serialize_promo_code(promo: PromoCode):
    payload = {
        "id": promo.id,
        "code": promo.code,
        "discount_type": promo.discount_type,
        "discount_value": _num(promo.discount_value),
        "max_uses": promo.max_uses,
        "current_uses": promo.current_uses,
        "is_active": promo.is_active,
        "expires_at": promo.expires_at.isoformat() if promo.expires_at else None,
        "created_at": promo.created_at.isoformat() if promo.created_at else None,
    }
    if hasattr(promo, "reservation_count"):
        payload["reservation_count"] = promo.reservation_count
    return payload


def _serialize_item(item):
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": item.product_name,
        "category": item.category,
        "price": _num(item.price),
        "quantity": item.quantity,
        "line_total": _num(item.line_total),
        "options": item.option_list,
        "size": item.size,
        "level": item.level,
        "image": item.image,
        "surname": item.surname,
        "sex": item.sex,
        "age": item.age,
        "height": item.height,
        "weight": item.weight,
        "shoe_size": item.shoe_size,
    }


def _serialize_reservation(reservation: Reservation, include_admin_notes=True):
    payload = {
        "id": reservation.id,
        "first_name": reservation.first_name,
        "last_name": reservation.last_name,
        "email": reservation.email,
        "phone": reservation.phone,
        "start_date": reservation.start_date.isoformat(),
        "end_date": reservation.end_date.isoformat(),
        "rental_days": reservation.rental_days,
        "notes": reservation.notes,
        "status": reservation.status,
        "total_price": _num(reservation.total_price),
        "discount_amount": _num(reservation.discount_amount),
        "final_price": _num(reservation.final_price),
        "promo_code": _serialize_promo_code(reservation.promo_code) if reservation.promo_code_id else None,
        "created_at": reservation.created_at.isoformat() if reservation.created_at else None,
        "items": [_serialize_item(item) for item in reservation.items.all()],
    }
    if include_admin_notes:
        payload["admin_notes"] = reservation.admin_notes
    return payload


def _form_errors(form):
    return form.errors.get_json_data()


# Public booking API


@require_GET
def product_list(request):
    products = Product.objects.filter(active=True).order_by("price", "name")
    return JsonResponse({"results": [_serialize_product(product) for product in products]})


@require_GET
def product_quote(request, pk: int):
    """Price one unit of a product for the requested (clamped) rental window."""
    product = get_object_or_404(Product, pk=pk, active=True)
    form = RentalWindowForm(request.GET)
    if not form.is_valid():
        return _error("Invalid data", details=_form_errors(form))

    window = clamp_rental_window(form.cleaned_data["start_date"], form.cleaned_data["end_date"])
    days = window.days
    return JsonResponse(
        {
            "product_id": product.id,
            "start_date": window.start_date.isoformat(),
            "end_date": window.end_date.isoformat(),
            "days": days,
            "price": _num(product.price_for_days(days)),
            "linear_price": _num(product.price * days),
        }
    )


@csrf_exempt
@require_POST
@json_view
def promo_code_validate(request):
    """Check a code for the cart page without consuming a use."""
    payload = _json_body(request)
    form = PromoCodeCheckForm(payload)
    if not form.is_valid():
        return _error("Code is required")

    try:
        promo = check_promo_code(lookup_promo_code(form.cleaned_data["code"]))
    except PromoCodeError as exc:
        return _error(str(exc), code=exc.code)

    response = {
        "valid": True,
        "code": promo.code,
        "discount_type": promo.discount_type,
        "discount_value": _num(promo.discount_value),
    }
    subtotal = payload.get("subtotal")
    if subtotal not in (None, ""):
        try:
            discount_amount, final_price = compute_discount(subtotal, promo.discount_type, promo.discount_value)
        except (InvalidOperation, TypeError, ValueError):
            return _error("Invalid subtotal")
        response["discount_amount"] = _num(discount_amount)
        response["final_price"] = _num(final_price)
    return JsonResponse(response)


@csrf_exempt
@require_POST
@json_view
def reservation_create(request):
    payload = _json_body(request)
    form = ReservationForm(payload)
    raw_items = payload.get("items")

    details = {}
    if not form.is_valid():
        details.update(_form_errors(form))
    if not isinstance(raw_items, list) or not raw_items:
        details["items"] = [{"message": "At least one item is required.", "code": "required"}]
        raw_items = []

    item_forms = [ReservationItemForm(item if isinstance(item, dict) else {}) for item in raw_items]
    item_errors = {str(idx): _form_errors(item_form) for idx, item_form in enumerate(item_forms) if not item_form.is_valid()}
    if item_errors:
        details["items"] = item_errors
    if details:
        return _error("Invalid data", details=details)

    data = form.cleaned_data
    contact = {key: data[key] for key in ("first_name", "last_name", "email", "phone", "notes")}
    try:
        reservation = create_reservation(
            contact=contact,
            items=[item_form.cleaned_data for item_form in item_forms],
            start_date=data["start_date"],
            end_date=data["end_date"],
            promo_code=data["promo_code"],
            notifier=get_notifier(),
        )
    except PromoCodeError as exc:
        logger.info("Reservation rejected: %s", exc)
        return _error(str(exc), code=exc.code)
    except ReservationError as exc:
        return _error(str(exc))

    reservation = Reservation.objects.select_related("promo_code").prefetch_related("items").get(pk=reservation.pk)
    return JsonResponse(_serialize_reservation(reservation, include_admin_notes=False), status=201)


@csrf_exempt
@require_POST
@json_view
def reservation_lookup(request, pk: int):
    """
    Customer self-service view of a reservation.

    The customer's last name acts as the password. Attempts are throttled per
    reservation and admin notes are never included.
    """
    payload = _json_body(request)
    password = str(payload.get("password") or "").strip()
    if not password:
        return _error("Password is required")

    rate_key = f"reservation-lookup:{pk}"
    window = settings.BOOKING_LOOKUP_WINDOW_SECONDS
    attempts = cache.get_or_set(rate_key, 0, timeout=window)
    if attempts >= settings.BOOKING_LOOKUP_MAX_ATTEMPTS:
        logger.warning("Reservation lookup throttled", extra={"reservation_id": pk})
        return _error("Too many attempts. Please try again later.", status=429)
    try:
        cache.incr(rate_key)
    except ValueError:
        cache.set(rate_key, 1, timeout=window)

    reservation = get_object_or_404(
        Reservation.objects.select_related("promo_code").prefetch_related("items"), pk=pk
    )
    if password.lower() != reservation.last_name.strip().lower():
        return _error("Invalid password. Please use your last name.", status=401)
    return JsonResponse(_serialize_reservation(reservation, include_admin_notes=False))


# Admin API


@staff_required
@require_GET
def admin_reservation_list(request):
    reservations = Reservation.objects.select_related("promo_code").prefetch_related("items")

    date_filter = request.GET.get("date")
    if date_filter:
        form = RentalWindowForm({"start_date": date_filter, "end_date": date_filter})
        if not form.is_valid():
            return _error("Invalid date filter")
        reservations = reservations.filter(start_date=form.cleaned_data["start_date"])

    status = request.GET.get("status")
    if status and status != "ALL":
        reservations = reservations.filter(status=status)

    customer = (request.GET.get("customer") or "").strip()
    if customer:
        reservations = reservations.filter(
            Q(first_name__icontains=customer) | Q(last_name__icontains=customer) | Q(email__icontains=customer)
        )

    promo_code = request.GET.get("promoCode") or request.GET.get("promo_code")
    if promo_code:
        reservations = reservations.filter(promo_code__code=promo_code)

    return JsonResponse({"results": [_serialize_reservation(r) for r in reservations.order_by("-created_at")]})


@staff_required
@require_http_methods(["GET", "PATCH", "DELETE"])
@json_view
def admin_reservation_detail(request, pk: int):
    reservation = get_object_or_404(
        Reservation.objects.select_related("promo_code").prefetch_related("items"), pk=pk
    )

    if request.method == "DELETE":
        reservation.delete()
        logger.info("Reservation %s deleted by %s", pk, request.user.get_username())
        return JsonResponse({"success": True, "message": "Reservation deleted"})

    if request.method == "PATCH":
        payload = _json_body(request)
        form = ReservationUpdateForm(payload)
        if not form.is_valid():
            return _error("Invalid status", details=_form_errors(form))
        admin_notes = payload.get("admin_notes")
        try:
            update_reservation_status(
                reservation,
                status=form.cleaned_data["status"] or None,
                admin_notes=admin_notes if isinstance(admin_notes, str) else None,
                cancellation_reason=form.cleaned_data["cancellation_reason"] or None,
                notifier=get_notifier(),
            )
        except ReservationError as exc:
            return _error(str(exc))

    return JsonResponse(_serialize_reservation(reservation))


@staff_required
@require_GET
def admin_reservation_export(request):
    response = HttpResponse(content_type="text/csv")
    response["Content-Disposition"] = 'attachment; filename="reservations.csv"'

    writer = csv.writer(response)
    writer.writerow(
        [
            "id",
            "created_at",
            "first_name",
            "last_name",
            "email",
            "phone",
            "start_date",
            "end_date",
            "status",
            "total_price",
            "discount_amount",
            "final_price",
            "promo_code",
            "items",
        ]
    )

    for reservation in Reservation.objects.select_related("promo_code").prefetch_related("items"):
        items = "; ".join(str(item) for item in reservation.items.all())
        writer.writerow(
            [
                reservation.id,
                reservation.created_at.isoformat(),
                smart_str(reservation.first_name),
                smart_str(reservation.last_name),
                smart_str(reservation.email),
                smart_str(reservation.phone),
                reservation.start_date.isoformat(),
                reservation.end_date.isoformat(),
                reservation.status,
                reservation.total_price,
                reservation.discount_amount,
                reservation.final_price,
                smart_str(reservation.promo_code.code if reservation.promo_code_id else ""),
                smart_str(items),
            ]
        )

    return response


@staff_required
@require_http_methods(["GET", "POST"])
@json_view
def admin_product_list(request):
    if request.method == "GET":
        products = Product.objects.order_by("price", "name")
        return JsonResponse({"results": [_serialize_product(product) for product in products]})

    payload = _json_body(request)
    payload.setdefault("active", True)
    form = ProductForm(payload)
    if not form.is_valid():
        return _error("Invalid data", details=_form_errors(form))
    product = form.save()
    logger.info("Product %s created", product.pk)
    return JsonResponse(_serialize_product(product), status=201)


@staff_required
@require_http_methods(["GET", "PUT", "DELETE"])
@json_view
def admin_product_detail(request, pk: int):
    product = get_object_or_404(Product, pk=pk)

    if request.method == "DELETE":
        product.delete()
        return JsonResponse({"success": True})

    if request.method == "PUT":
        payload = _json_body(request)
        form = ProductForm({**model_to_dict(product, fields=ProductForm.Meta.fields), **payload}, instance=product)
        if not form.is_valid():
            return _error("Invalid data", details=_form_errors(form))
        product = form.save()

    return JsonResponse(_serialize_product(product))


@staff_required
@require_GET
def admin_product_default_prices(request, pk: int):
    """Linear day-price table the back office pre-fills before manual edits."""
    product = get_object_or_404(Product, pk=pk)
    base = product.price
    if request.GET.get("price"):
        try:
            base = Decimal(request.GET["price"])
        except InvalidOperation:
            return _error("Invalid price")
        if not base.is_finite() or base < 0:
            return _error("Invalid price")
    table = generate_default_overrides(base)
    return JsonResponse({"day_prices": {day: _num(price) for day, price in table.items()}})


@staff_required
@require_http_methods(["GET", "POST"])
@json_view
def admin_promo_code_list(request):
    if request.method == "GET":
        codes = PromoCode.objects.annotate(reservation_count=Count("reservations")).order_by("-created_at")
        return JsonResponse({"results": [_serialize_promo_code(promo) for promo in codes]})

    payload = _json_body(request)
    payload.setdefault("is_active", True)
    form = PromoCodeForm(payload)
    if not form.is_valid():
        errors = _form_errors(form)
        if any(error.get("code") == "unique" for error in errors.get("code", [])):
            return _error("Code already exists", details=errors)
        return _error("Missing required fields", details=errors)
    promo = form.save()
    logger.info("Promo code %s created", promo.code)
    return JsonResponse(_serialize_promo_code(promo), status=201)


@staff_required
@require_http_methods(["GET", "PUT", "DELETE"])
@json_view
def admin_promo_code_detail(request, pk: int):
    promo = get_object_or_404(PromoCode, pk=pk)

    if request.method == "DELETE":
        promo.delete()
        return JsonResponse({"success": True})

    if request.method == "PUT":
        payload = _json_body(request)
        form = PromoCodeUpdateForm(
            {**model_to_dict(promo, fields=PromoCodeUpdateForm.Meta.fields), **payload}, instance=promo
        )
        if not form.is_valid():
            return _error("Invalid data", details=_form_errors(form))
        promo = form.save()
        return JsonResponse(_serialize_promo_code(promo))

    reservations = promo.reservations.select_related("promo_code").prefetch_related("items").order_by("-created_at")
    payload = _serialize_promo_code(promo)
    payload["reservations"] = [_serialize_reservation(reservation) for reservation in reservations]
    return JsonResponse(payload)


@staff_required
@require_GET
def admin_customer_list(request):
    customers = customer_directory()
    for customer in customers:
        customer["last_booking_date"] = customer["last_booking_date"].isoformat()
    return JsonResponse({"results": customers})


@staff_required
@require_GET
def admin_analytics(request):
    summary = reservation_summary()
    return JsonResponse(
        {
            "stats": {
                "total_reservations": summary["total_reservations"],
                "total_revenue": _num(summary["total_revenue"]),
                "average_order_value": _num(summary["average_order_value"]),
                "by_status": reservation_status_breakdown(),
            },
            "charts": {
                "revenue_over_time": [
                    {"date": point["date"], "amount": _num(point["amount"])} for point in revenue_over_time()
                ],
                "equipment_distribution": equipment_distribution(),
            },
        }
    )


@staff_required
@require_POST
@json_view
def admin_email_broadcast(request):
    form = BroadcastForm(_json_body(request))
    if not form.is_valid():
        if "recipients" in form.errors:
            return _error("No recipients provided", details=_form_errors(form))
        return _error("Subject and message are required", details=_form_errors(form))

    count = get_notifier().broadcast(
        form.cleaned_data["recipients"], form.cleaned_data["subject"], form.cleaned_data["message"]
    )
    if not count:
        return _error("Broadcast could not be sent", status=502)
    return JsonResponse({"success": True, "count": count})
