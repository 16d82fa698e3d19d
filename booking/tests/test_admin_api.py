import json
from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase
from django.urls import reverse

from booking.models import Product, PromoCode, Reservation, ReservationItem


def make_reservation(**kwargs):
    defaults = {
        "first_name": "Jean",
        "last_name": "Dupont",
        "email": "jean@example.com",
        "phone": "0612345678",
        "start_date": date(2024, 1, 10),
        "end_date": date(2024, 1, 12),
        "total_price": Decimal("100.00"),
        "final_price": Decimal("100.00"),
    }
    defaults.update(kwargs)
    return Reservation.objects.create(**defaults)


class AdminApiTestCase(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="staff", password="pass", is_staff=True)
        self.client.force_login(self.user)

    def send(self, method, url, payload=None):
        return getattr(self.client, method)(url, data=json.dumps(payload or {}), content_type="application/json")


class AdminAccessTests(TestCase):
    def test_anonymous_and_non_staff_users_are_rejected(self):
        url = reverse("booking:admin_reservation_list")
        self.assertEqual(self.client.get(url).status_code, 401)

        customer = get_user_model().objects.create_user(username="customer", password="pass")
        self.client.force_login(customer)
        response = self.client.get(url)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Unauthorized"})


class AdminReservationTests(AdminApiTestCase):
    def test_filters(self):
        promo = PromoCode.objects.create(code="SKI10", discount_type=PromoCode.PERCENTAGE, discount_value=10)
        first = make_reservation(promo_code=promo)
        make_reservation(first_name="Marie", last_name="Martin", email="marie@example.com",
                         start_date=date(2024, 1, 11), status=Reservation.STATUS_CONFIRMED)
        url = reverse("booking:admin_reservation_list")

        def ids(params):
            return [row["id"] for row in self.client.get(url, params).json()["results"]]

        self.assertEqual(len(ids({})), 2)
        self.assertEqual(ids({"date": "2024-01-10"}), [first.pk])
        self.assertEqual(len(ids({"status": "ALL"})), 2)
        self.assertEqual(len(ids({"status": "CONFIRMED"})), 1)
        self.assertEqual(ids({"customer": "dupont"}), [first.pk])
        self.assertEqual(ids({"promoCode": "SKI10"}), [first.pk])

    def test_detail_includes_admin_notes(self):
        reservation = make_reservation(admin_notes="Skis waxed")
        response = self.client.get(reverse("booking:admin_reservation_detail", args=[reservation.pk]))
        self.assertEqual(response.json()["admin_notes"], "Skis waxed")

    def test_status_change_notifies_customer(self):
        reservation = make_reservation()
        url = reverse("booking:admin_reservation_detail", args=[reservation.pk])
        response = self.send(
            "patch", url, {"status": "CANCELLED", "cancellation_reason": "Station fermée", "admin_notes": "Refund"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "CANCELLED")
        reservation.refresh_from_db()
        self.assertEqual(reservation.admin_notes, "Refund")
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("Annulée", mail.outbox[0].subject)
        self.assertIn("Station fermée", mail.outbox[0].body)

    def test_notes_only_update_sends_nothing(self):
        reservation = make_reservation()
        url = reverse("booking:admin_reservation_detail", args=[reservation.pk])
        self.assertEqual(self.send("patch", url, {"admin_notes": "Called"}).status_code, 200)
        self.assertEqual(len(mail.outbox), 0)

    def test_invalid_updates(self):
        reservation = make_reservation()
        url = reverse("booking:admin_reservation_detail", args=[reservation.pk])
        self.assertEqual(self.send("patch", url, {"status": "LOST"}).status_code, 400)
        response = self.send("patch", url, {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "No valid fields to update")

    def test_delete(self):
        reservation = make_reservation()
        url = reverse("booking:admin_reservation_detail", args=[reservation.pk])
        self.assertEqual(self.client.delete(url).status_code, 200)
        self.assertFalse(Reservation.objects.exists())
        self.assertEqual(self.client.get(url).status_code, 404)

    def test_csv_export(self):
        make_reservation()
        response = self.client.get(reverse("booking:admin_reservation_export"))
        self.assertEqual(response["Content-Type"], "text/csv")
        lines = response.content.decode().splitlines()
        self.assertTrue(lines[0].startswith("id,created_at,first_name"))
        self.assertEqual(len(lines), 2)


class AdminProductTests(AdminApiTestCase):
    def product_payload(self, **overrides):
        data = {
            "name": "Freeride",
            "description": "Snowboard freeride",
            "category": "SNOWBOARD",
            "equipment_type": "SNOWBOARD",
            "price": "40.00",
        }
        data.update(overrides)
        return data

    def test_create_normalizes_day_prices(self):
        response = self.send(
            "post", reverse("booking:admin_product_list"), self.product_payload(day_prices={"2": 70, "1": 40})
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["active"])
        self.assertEqual(body["day_prices"], {"1": 40.0, "2": 70.0})
        self.assertEqual(Product.objects.get().day_prices, '{"1": 40.0, "2": 70.0}')

    def test_create_rejects_bad_day_prices(self):
        for day_prices in ({"15": 10}, {"1": -1}, "not json"):
            with self.subTest(day_prices=day_prices):
                response = self.send(
                    "post", reverse("booking:admin_product_list"), self.product_payload(day_prices=day_prices)
                )
                self.assertEqual(response.status_code, 400)
                self.assertIn("day_prices", response.json()["details"])
        self.assertFalse(Product.objects.exists())

    def test_partial_update_keeps_other_fields(self):
        product = Product.objects.create(
            name="Freeride", description="Board", category="SNOWBOARD", price=Decimal("40.00"), day_prices='{"3": 100}'
        )
        url = reverse("booking:admin_product_detail", args=[product.pk])
        response = self.send("put", url, {"price": "45.00"})
        self.assertEqual(response.status_code, 200)
        product.refresh_from_db()
        self.assertEqual(product.price, Decimal("45.00"))
        self.assertEqual(product.name, "Freeride")
        self.assertEqual(product.price_for_days(3), Decimal("100"))

    def test_default_prices(self):
        product = Product.objects.create(name="Kid", description="-", category="KIDS_SKI", price=Decimal("12.50"))
        url = reverse("booking:admin_product_default_prices", args=[product.pk])
        table = self.client.get(url).json()["day_prices"]
        self.assertEqual(len(table), 14)
        self.assertEqual(table["1"], 12.5)
        self.assertEqual(table["14"], 175.0)
        self.assertEqual(self.client.get(url, {"price": "10"}).json()["day_prices"]["3"], 30.0)
        for price in ("NaN", "Infinity", "-5", "abc"):
            with self.subTest(price=price):
                self.assertEqual(self.client.get(url, {"price": price}).status_code, 400)

    def test_delete(self):
        product = Product.objects.create(name="Old", description="-", category="ACCESSORY", price=1)
        response = self.client.delete(reverse("booking:admin_product_detail", args=[product.pk]))
        self.assertEqual(response.json(), {"success": True})
        self.assertFalse(Product.objects.exists())


class AdminPromoCodeTests(AdminApiTestCase):
    def test_create_and_reject_duplicates(self):
        url = reverse("booking:admin_promo_code_list")
        payload = {"code": "WELCOME", "discount_type": "FIXED_AMOUNT", "discount_value": "15", "max_uses": "3"}
        response = self.send("post", url, payload)
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["is_active"])
        self.assertEqual(body["max_uses"], 3)
        self.assertEqual(body["current_uses"], 0)

        duplicate = self.send("post", url, payload)
        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(duplicate.json()["error"], "Code already exists")

    def test_missing_fields(self):
        response = self.send("post", reverse("booking:admin_promo_code_list"), {"code": "EMPTY"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Missing required fields")

    def test_percentage_above_hundred_is_refused(self):
        response = self.send(
            "post",
            reverse("booking:admin_promo_code_list"),
            {"code": "HUGE", "discount_type": "PERCENTAGE", "discount_value": "150"},
        )
        self.assertEqual(response.status_code, 400)

    def test_update_and_detail(self):
        promo = PromoCode.objects.create(
            code="SPRING", discount_type=PromoCode.PERCENTAGE, discount_value=Decimal("5"), current_uses=2
        )
        make_reservation(promo_code=promo)
        url = reverse("booking:admin_promo_code_detail", args=[promo.pk])

        response = self.send("put", url, {"is_active": False})
        self.assertEqual(response.status_code, 200)
        promo.refresh_from_db()
        self.assertFalse(promo.is_active)
        self.assertEqual(promo.code, "SPRING")
        self.assertEqual(promo.discount_value, Decimal("5.00"))

        self.assertEqual(self.send("put", url, {"max_uses": 1}).status_code, 400)

        detail = self.client.get(url).json()
        self.assertEqual(len(detail["reservations"]), 1)

        listing = self.client.get(reverse("booking:admin_promo_code_list")).json()["results"]
        self.assertEqual(listing[0]["reservation_count"], 1)

    def test_delete_keeps_reservations(self):
        promo = PromoCode.objects.create(code="GONE", discount_type=PromoCode.FIXED_AMOUNT, discount_value=5)
        reservation = make_reservation(promo_code=promo)
        self.client.delete(reverse("booking:admin_promo_code_detail", args=[promo.pk]))
        reservation.refresh_from_db()
        self.assertIsNone(reservation.promo_code_id)
        self.assertEqual(reservation.final_price, Decimal("100.00"))


class AdminInsightTests(AdminApiTestCase):
    def test_analytics(self):
        touring = Product.objects.create(
            name="Rando", description="-", category="ADULT_SKI", equipment_type="TOURING", price=30
        )
        kept = make_reservation(final_price=Decimal("80.00"))
        ReservationItem.objects.create(reservation=kept, product=touring, product_name="Rando",
                                       category="ADULT_SKI", quantity=2)
        ReservationItem.objects.create(reservation=kept, product_name="Board", category="SNOWBOARD", quantity=1)
        ReservationItem.objects.create(reservation=kept, product_name="Gants", category="ACCESSORY", quantity=1)
        cancelled = make_reservation(final_price=Decimal("500.00"), status=Reservation.STATUS_CANCELLED)
        ReservationItem.objects.create(reservation=cancelled, product_name="Board", category="SNOWBOARD", quantity=4)

        body = self.client.get(reverse("booking:admin_analytics")).json()
        self.assertEqual(body["stats"]["total_reservations"], 2)
        self.assertEqual(body["stats"]["total_revenue"], 80.0)
        self.assertEqual(body["stats"]["average_order_value"], 40.0)
        self.assertEqual(body["stats"]["by_status"]["CANCELLED"], 1)

        series = body["charts"]["revenue_over_time"]
        self.assertEqual(len(series), 30)
        self.assertEqual(series[-1]["amount"], 80.0)

        distribution = {row["name"]: row["value"] for row in body["charts"]["equipment_distribution"]}
        self.assertEqual(distribution, {"SNOWBOARD": 1, "TOURING": 2, "OTHER": 1})

    def test_customers_are_grouped_by_email(self):
        first = make_reservation(email="Jean@Example.com")
        ReservationItem.objects.create(reservation=first, category="ADULT_SKI", quantity=1)
        second = make_reservation(email="jean@example.com")
        ReservationItem.objects.create(reservation=second, category="SNOWBOARD", quantity=1)
        make_reservation(email="other@example.com")

        rows = self.client.get(reverse("booking:admin_customer_list")).json()["results"]
        self.assertEqual(len(rows), 2)
        jean = next(row for row in rows if row["email"].lower() == "jean@example.com")
        self.assertEqual(jean["total_reservations"], 2)
        self.assertEqual(sorted(jean["categories"]), ["ADULT_SKI", "SNOWBOARD"])

    def test_broadcast_uses_bcc(self):
        url = reverse("booking:admin_email_broadcast")
        response = self.send(
            "post",
            url,
            {"recipients": ["b@example.com", "a@example.com", "a@example.com"], "subject": "Neige fraîche",
             "message": "Bonjour,\nla saison commence."},
        )
        self.assertEqual(response.json(), {"success": True, "count": 2})
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, [])
        self.assertEqual(message.bcc, ["a@example.com", "b@example.com"])
        self.assertEqual(message.subject, "Neige fraîche")

        missing = self.send("post", url, {"recipients": [], "subject": "x", "message": "y"})
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json()["error"], "No recipients provided")
