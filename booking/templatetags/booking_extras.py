from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django import template

register = template.Library()


@register.filter
def euro(value):
    """Format an amount the French way: 1 234,50 €."""
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        return value
    whole, _, cents = f"{amount:,.2f}".partition(".")
    return f"{whole.replace(',', ' ')},{cents} €"


STATUS_LABELS = {
    "PENDING": "En attente",
    "CONFIRMED": "Confirmée",
    "COMPLETED": "Terminée",
    "CANCELLED": "Annulée",
}


@register.filter
def status_label(status):
    return STATUS_LABELS.get(status, status)
