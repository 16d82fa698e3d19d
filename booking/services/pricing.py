import json
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation

logger = logging.getLogger(__name__)

MAX_RENTAL_DAYS = 14


class OverridesParseError(ValueError):
    """Raised when a stored day-price table cannot be decoded."""


@dataclass(frozen=True)
class RentalWindow:
    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return compute_days(self.start_date, self.end_date)


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def compute_days(start: date | datetime, end: date | datetime) -> int:
    """
    Return the inclusive number of rental days between two calendar dates.

    Time of day is ignored, so a same-day rental is 1 day. Ordering is not
    checked: callers clamp the window first.
    """
    delta = _as_date(end) - _as_date(start)
    return math.ceil(delta.total_seconds() / 86400) + 1


def clamp_rental_window(
    start: date | datetime, end: date | datetime, max_days: int = MAX_RENTAL_DAYS
) -> RentalWindow:
    """
    Normalize a proposed rental window.

    An end before the start collapses to a single day; anything longer than
    ``max_days`` inclusive days is cut back to ``start + (max_days - 1)``.
    """
    start_date = _as_date(start)
    end_date = _as_date(end)
    if end_date < start_date:
        end_date = start_date
    elif compute_days(start_date, end_date) > max_days:
        end_date = start_date + timedelta(days=max_days - 1)
    return RentalWindow(start_date=start_date, end_date=end_date)


def _to_decimal(value) -> Decimal | None:
    """Convert a JSON scalar to Decimal; None for anything that is not a finite number."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def parse_overrides(raw) -> dict:
    """Decode a day-price table from its text form (or pass a mapping through)."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise OverridesParseError(str(exc)) from exc
    if not isinstance(raw, str):
        raise OverridesParseError(f"Unsupported day price payload: {type(raw).__name__}")
    try:
        parsed = json.loads(raw)
    except ValueError as exc:
        raise OverridesParseError(str(exc)) from exc
    if not isinstance(parsed, dict):
        raise OverridesParseError("Day prices must be a JSON object.")
    return parsed


def _is_finite_days(days) -> bool:
    if isinstance(days, bool):
        return False
    if isinstance(days, int):
        return True
    if isinstance(days, float):
        return math.isfinite(days)
    if isinstance(days, Decimal):
        return days.is_finite()
    return False


def _base_price(value) -> Decimal:
    if not value:
        return Decimal("0")
    price = _to_decimal(value)
    if price is None:
        logger.warning("Ignoring non-numeric base price %r, pricing at zero", value)
        return Decimal("0")
    return price


def _day_key(key) -> int | None:
    """Day count for a canonical key such as "3"; None for " 3", "03" or "3.0"."""
    text = str(key)
    if not (text.isascii() and text.isdigit()) or str(int(text)) != text:
        return None
    return int(text)


def resolve_price(base_daily_price, days, overrides_raw=None) -> Decimal:
    """
    Price one unit for ``days`` rental days.

    A day-count override replaces the linear ``base * days`` price outright.
    Broken override data never fails a sale: it is logged and the linear
    price is used instead.
    """
    if not _is_finite_days(days) or days < 1:
        return Decimal("0")

    base = _base_price(base_daily_price)
    linear = base * Decimal(str(days))

    if not overrides_raw:
        return linear

    try:
        table = parse_overrides(overrides_raw)
    except OverridesParseError as exc:
        logger.warning("Ignoring malformed day prices, using linear pricing: %s", exc)
        return linear

    key = str(int(days)) if float(days).is_integer() else str(days)
    if key not in table:
        return linear

    override = _to_decimal(table[key])
    if override is None:
        logger.warning("Ignoring non-numeric day price for %s days: %r", key, table[key])
        return linear
    return override


def generate_default_overrides(base_daily_price, max_days: int = MAX_RENTAL_DAYS) -> dict[str, Decimal]:
    """Pre-seed a day-price table with the linear price for 1..max_days days."""
    base = _base_price(base_daily_price)
    return {str(day): base * day for day in range(1, max_days + 1)}


def is_valid_overrides(raw) -> bool:
    """Strict check used when an admin saves a day-price table."""
    try:
        table = parse_overrides(raw)
    except OverridesParseError:
        return False

    for key, value in table.items():
        day = _day_key(key)
        if day is None:
            return False
        if day < 1 or day > MAX_RENTAL_DAYS:
            return False
        number = _to_decimal(value)
        if number is None or number < 0:
            return False
    return True


def serialize_overrides(table: dict) -> str:
    """Text form stored on the product, keys ordered by day count."""
    ordered = sorted((int(str(day).strip()), price) for day, price in table.items())
    return json.dumps({str(day): float(price) for day, price in ordered})
