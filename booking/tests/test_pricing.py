from datetime import date, datetime
from decimal import Decimal

from django.test import SimpleTestCase

from booking.models import Product
from booking.services.pricing import (
    clamp_rental_window,
    compute_days,
    generate_default_overrides,
    is_valid_overrides,
    parse_overrides,
    resolve_price,
    serialize_overrides,
)


class RentalDaysTests(SimpleTestCase):
    def test_same_day_rental_is_one_day(self):
        self.assertEqual(compute_days(date(2024, 1, 1), date(2024, 1, 1)), 1)

    def test_span_is_inclusive(self):
        self.assertEqual(compute_days(date(2024, 1, 1), date(2024, 1, 7)), 7)

    def test_time_of_day_is_ignored(self):
        start = datetime(2024, 1, 1, 23, 30)
        end = datetime(2024, 1, 2, 0, 15)
        self.assertEqual(compute_days(start, end), 2)

    def test_long_window_is_clamped_to_fourteen_days(self):
        window = clamp_rental_window(date(2024, 1, 1), date(2024, 1, 20))
        self.assertEqual(window.end_date, date(2024, 1, 14))
        self.assertEqual(window.days, 14)

    def test_reversed_window_collapses_to_start(self):
        window = clamp_rental_window(date(2024, 1, 10), date(2024, 1, 5))
        self.assertEqual(window.start_date, date(2024, 1, 10))
        self.assertEqual(window.end_date, date(2024, 1, 10))
        self.assertEqual(window.days, 1)

    def test_window_within_limit_is_untouched(self):
        window = clamp_rental_window(date(2024, 2, 1), date(2024, 2, 14))
        self.assertEqual(window.end_date, date(2024, 2, 14))
        self.assertEqual(window.days, 14)


class ResolvePriceTests(SimpleTestCase):
    def test_linear_price_without_overrides(self):
        for days in (1, 3, 14):
            self.assertEqual(resolve_price(Decimal("50"), days, None), Decimal("50") * days)
        self.assertEqual(resolve_price(Decimal("50"), 3, ""), Decimal("150"))

    def test_override_replaces_linear_price(self):
        overrides = '{"3": 120, "7": 250.5}'
        self.assertEqual(resolve_price(Decimal("50"), 3, overrides), Decimal("120"))
        self.assertEqual(resolve_price(Decimal("999"), 7, overrides), Decimal("250.5"))

    def test_missing_day_falls_back_to_linear(self):
        self.assertEqual(resolve_price(Decimal("40"), 2, '{"3": 100}'), Decimal("80"))

    def test_malformed_overrides_fall_back_and_log(self):
        with self.assertLogs("booking.services.pricing", level="WARNING") as logs:
            price = resolve_price(Decimal("50"), 3, "{not json")
        self.assertEqual(price, Decimal("150"))
        self.assertIn("malformed day prices", logs.output[0])

    def test_non_object_and_non_numeric_overrides_fall_back(self):
        with self.assertLogs("booking.services.pricing", level="WARNING"):
            self.assertEqual(resolve_price(Decimal("10"), 2, "[1, 2, 3]"), Decimal("20"))
            self.assertEqual(resolve_price(Decimal("10"), 2, '{"2": "cheap"}'), Decimal("20"))
            self.assertEqual(resolve_price(Decimal("10"), 2, '{"2": true}'), Decimal("20"))

    def test_invalid_day_counts_price_at_zero(self):
        self.assertEqual(resolve_price(Decimal("50"), 0, None), Decimal("0"))
        self.assertEqual(resolve_price(Decimal("50"), -2, '{"1": 10}'), Decimal("0"))
        self.assertEqual(resolve_price(Decimal("50"), float("inf"), None), Decimal("0"))
        self.assertEqual(resolve_price(Decimal("50"), float("nan"), None), Decimal("0"))

    def test_decoded_mapping_is_accepted(self):
        self.assertEqual(resolve_price(Decimal("50"), 2, {"2": 75}), Decimal("75"))

    def test_product_uses_its_day_price_table(self):
        product = Product(name="Sensation", price=Decimal("30.00"), day_prices='{"5": 120}')
        self.assertEqual(product.price_for_days(5), Decimal("120"))
        self.assertEqual(product.price_for_days(4), Decimal("120.00"))


class DayPriceTableTests(SimpleTestCase):
    def test_generate_default_overrides(self):
        self.assertEqual(generate_default_overrides(50, 3), {"1": 50, "2": 100, "3": 150})
        self.assertEqual(len(generate_default_overrides(Decimal("12.50"))), 14)

    def test_valid_tables(self):
        self.assertTrue(is_valid_overrides('{"1": 50, "2": 90.5, "14": 0}'))
        self.assertTrue(is_valid_overrides("{}"))

    def test_invalid_tables(self):
        invalid = [
            "not json",
            "[]",
            '{"0": 10}',
            '{"15": 10}',
            '{"a": 10}',
            '{"1": -5}',
            '{"1": "50"}',
            '{"1": true}',
            '{"1": null}',
        ]
        for raw in invalid:
            with self.subTest(raw=raw):
                self.assertFalse(is_valid_overrides(raw))

    def test_serialize_orders_by_day(self):
        self.assertEqual(serialize_overrides({"10": 100, "2": Decimal("35.5")}), '{"2": 35.5, "10": 100.0}')

    def test_non_canonical_day_keys_are_rejected(self):
        for raw in ('{" 3": 100}', '{"03": 100}', '{"3.0": 100}', '{"+3": 100}'):
            with self.subTest(raw=raw):
                self.assertFalse(is_valid_overrides(raw))

    def test_stored_table_is_found_by_day_count(self):
        stored = serialize_overrides(parse_overrides('{"3": 100, "1": 40}'))
        self.assertEqual(stored, '{"1": 40.0, "3": 100.0}')
        self.assertEqual(resolve_price(Decimal("50"), 3, stored), Decimal("100.0"))


class BrokenInputTests(SimpleTestCase):
    def test_undecodable_bytes_fall_back_to_linear(self):
        with self.assertLogs("booking.services.pricing", level="WARNING"):
            self.assertEqual(resolve_price(Decimal("10"), 2, b"\xff\xfe"), Decimal("20"))
        self.assertFalse(is_valid_overrides(b"\xff\xfe"))

    def test_non_finite_base_price_is_priced_at_zero(self):
        with self.assertLogs("booking.services.pricing", level="WARNING"):
            self.assertEqual(resolve_price(float("nan"), 2, None), Decimal("0"))
            self.assertEqual(resolve_price(Decimal("Infinity"), 2, '{"3": 90}'), Decimal("0"))
            self.assertEqual(resolve_price(float("nan"), 3, '{"3": 90}'), Decimal("90"))
