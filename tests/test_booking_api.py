"""
End-to-end booking flows through the HTTP API.
"""
from datetime import date

import pytest

API = "/api/v1"


def _public_booking(client, room, check_in="2025-06-01", check_out="2025-06-03", email="guest@example.com", **extra):
    body = {
        "roomId": room.id,
        "customerEmail": email,
        "customerFirstName": "Grace",
        "customerLastName": "Hopper",
        "customerPhone": "+2348011111111",
        "checkInDate": check_in,
        "checkOutDate": check_out,
        "numberOfGuests": 1,
        "totalAmount": 200,
        **extra,
    }
    return client.post(f"{API}/public/bookings", json=body)


def _charge(client, signed, event, reference, amount=20000):
    body, headers = signed({"event": event, "data": {"reference": reference, "status": event.split(".")[1],
                                                     "amount": amount, "gateway_response": "Approved"}})
    return client.post(f"{API}/webhooks/paystack", content=body, headers=headers)


class TestPublicBooking:
    def test_full_stay(self, client, clock, paystack, signed, room_101, receptionist_headers):
        resp = _public_booking(client, room_101)
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["success"] is True
        assert data["booking"]["bookingNumber"].startswith("BK20250530")
        assert data["booking"]["totalAmount"] == "200.00"
        assert paystack.initialized[0]["amount"] == 20000
        reference = data["payment"]["reference"]
        assert data["payment"]["authorizationUrl"].endswith(reference)
        booking_id = data["booking"]["id"]

        assert _charge(client, signed, "charge.success", reference).json() == {"received": True}
        b = client.get(f"{API}/admin/bookings/{booking_id}", headers=receptionist_headers).json()["booking"]
        assert b["paymentStatus"] == "PAID"
        assert b["bookingStatus"] == "CONFIRMED"
        assert b["payments"][0]["status"] == "SUCCESS"

        clock.today = date(2025, 6, 1)
        r = client.post(f"{API}/admin/bookings/{booking_id}/check-in", headers=receptionist_headers)
        assert r.status_code == 200, r.text
        assert r.json()["booking"]["bookingStatus"] == "CHECKED_IN"

        r = client.post(f"{API}/admin/bookings/{booking_id}/check-out", headers=receptionist_headers)
        assert r.json()["booking"]["bookingStatus"] == "CHECKED_OUT"

    def test_server_prices_the_stay(self, client, paystack, room_101):
        resp = _public_booking(client, room_101, totalAmount=1)
        assert resp.status_code == 201
        assert resp.json()["booking"]["totalAmount"] == "200.00"
        assert paystack.initialized[0]["amount"] == 20000

    def test_datetime_strings_are_accepted(self, client, room_101):
        resp = _public_booking(client, room_101, check_in="2025-06-01T15:00:00.000Z",
                               check_out="2025-06-03T11:00:00.000Z")
        assert resp.status_code == 201, resp.text

    def test_overlap_is_rejected(self, client, room_101):
        assert _public_booking(client, room_101).status_code == 201
        resp = _public_booking(client, room_101, check_in="2025-06-02", check_out="2025-06-04",
                               email="other@example.com")
        assert resp.status_code == 409
        assert resp.json() == {"success": False, "error": "Room is not available for the selected dates"}

    def test_invalid_dates(self, client, room_101):
        resp = _public_booking(client, room_101, check_in="2025-06-03", check_out="2025-06-01")
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_past_check_in(self, client, room_101):
        resp = _public_booking(client, room_101, check_in="2025-05-01", check_out="2025-05-03")
        assert resp.status_code == 400

    def test_missing_field_is_400(self, client, room_101):
        resp = client.post(f"{API}/public/bookings", json={"roomId": room_101.id})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_payment_failure_cancels_booking(self, client, paystack, room_101):
        paystack.fail_initialize = True
        resp = _public_booking(client, room_101)
        assert resp.status_code == 502
        assert resp.json()["success"] is False
        # the dates were released
        paystack.fail_initialize = False
        assert _public_booking(client, room_101).status_code == 201

    def test_lookup_and_cancel(self, client, room_101):
        number = _public_booking(client, room_101).json()["booking"]["bookingNumber"]

        found = client.post(f"{API}/public/bookings/lookup", json={"bookingNumber": number, "email": "GUEST@example.com"})
        assert found.status_code == 200
        assert found.json()["booking"]["room"]["roomNumber"] == "101"

        wrong = client.post(f"{API}/public/bookings/lookup", json={"bookingNumber": number, "email": "x@example.com"})
        assert wrong.status_code == 404

        cancelled = client.post(f"{API}/public/bookings/cancel", json={"bookingNumber": number, "email": "guest@example.com"})
        assert cancelled.json()["booking"]["bookingStatus"] == "CANCELLED"

    def test_lookup_by_reference(self, client, room_101):
        reference = _public_booking(client, room_101).json()["payment"]["reference"]
        assert client.get(f"{API}/public/bookings/reference/{reference}").status_code == 200
        assert client.get(f"{API}/public/bookings/reference/HMS-unknown").status_code == 404


class TestLifecycle:
    @pytest.fixture
    def booking_id(self, client, room_101):
        return _public_booking(client, room_101).json()["booking"]["id"]

    def test_cancelled_booking_refuses_every_event(self, client, clock, booking_id, manager_headers):
        assert client.post(f"{API}/admin/bookings/{booking_id}/cancel", headers=manager_headers).status_code == 200
        clock.today = date(2025, 6, 1)
        for action in ("check-in", "check-out", "cancel"):
            r = client.post(f"{API}/admin/bookings/{booking_id}/{action}", headers=manager_headers)
            assert r.status_code == 409, action
            assert "CANCELLED" in r.json()["error"]

    def test_check_in_outside_window(self, client, booking_id, receptionist_headers):
        r = client.post(f"{API}/admin/bookings/{booking_id}/check-in", headers=receptionist_headers)
        assert r.status_code == 409
        assert "outside the stay" in r.json()["error"]

    def test_checked_in_cancel_needs_manager_override(self, client, clock, booking_id,
                                                      receptionist_headers, manager_headers):
        clock.today = date(2025, 6, 1)
        client.post(f"{API}/admin/bookings/{booking_id}/check-in", headers=receptionist_headers)

        assert client.post(f"{API}/admin/bookings/{booking_id}/cancel", headers=manager_headers).status_code == 409
        r = client.post(f"{API}/admin/bookings/{booking_id}/cancel", json={"override": True},
                        headers=receptionist_headers)
        assert r.status_code == 403
        r = client.post(f"{API}/admin/bookings/{booking_id}/cancel", json={"override": True},
                        headers=manager_headers)
        assert r.json()["booking"]["bookingStatus"] == "CANCELLED"

    def test_range_is_bookable_after_check_out(self, client, clock, room_101, booking_id, receptionist_headers):
        clock.today = date(2025, 6, 1)
        client.post(f"{API}/admin/bookings/{booking_id}/check-in", headers=receptionist_headers)
        client.post(f"{API}/admin/bookings/{booking_id}/check-out", headers=receptionist_headers)
        resp = _public_booking(client, room_101, check_in="2025-06-01", check_out="2025-06-03",
                               email="late@example.com")
        assert resp.status_code == 201, resp.text

    def test_refund(self, client, booking_id, paystack, signed, manager_headers):
        reference = paystack.initialized[0]["reference"]
        _charge(client, signed, "charge.success", reference)
        r = client.post(f"{API}/admin/bookings/{booking_id}/refund", headers=manager_headers)
        assert r.status_code == 200, r.text
        assert r.json()["booking"]["paymentStatus"] == "REFUNDED"
        assert paystack.refunds == [{"reference": reference, "amount": 20000}]
        assert client.post(f"{API}/admin/bookings/{booking_id}/refund", headers=manager_headers).status_code == 409

    def test_refund_unpaid(self, client, booking_id, manager_headers):
        assert client.post(f"{API}/admin/bookings/{booking_id}/refund", headers=manager_headers).status_code == 409


class TestWebhook:
    @pytest.fixture
    def reference(self, client, room_101):
        return _public_booking(client, room_101).json()["payment"]["reference"]

    def test_bad_signature(self, client, signed, reference):
        body, headers = signed({"event": "charge.success", "data": {"reference": reference}})
        headers["x-paystack-signature"] = "0" * 128
        r = client.post(f"{API}/webhooks/paystack", content=body, headers=headers)
        assert r.status_code == 401
        lookup = client.get(f"{API}/public/bookings/reference/{reference}").json()
        assert lookup["booking"]["paymentStatus"] == "PENDING"

    def test_missing_signature(self, client, reference):
        r = client.post(f"{API}/webhooks/paystack", json={"event": "charge.success", "data": {"reference": reference}})
        assert r.status_code == 401

    def test_duplicate_and_contradicting_events_acknowledged(self, client, signed, reference):
        assert _charge(client, signed, "charge.success", reference).status_code == 200
        assert _charge(client, signed, "charge.success", reference).status_code == 200
        assert _charge(client, signed, "charge.failed", reference).status_code == 200
        booking = client.get(f"{API}/public/bookings/reference/{reference}").json()["booking"]
        assert booking["paymentStatus"] == "PAID"

    def test_failed_charge(self, client, signed, reference):
        _charge(client, signed, "charge.failed", reference)
        booking = client.get(f"{API}/public/bookings/reference/{reference}").json()["booking"]
        assert booking["paymentStatus"] == "FAILED"
        assert booking["bookingStatus"] == "CONFIRMED"

    def test_unknown_reference_and_other_events_acknowledged(self, client, signed):
        assert _charge(client, signed, "charge.success", "HMS-unknown").json() == {"received": True}
        body, headers = signed({"event": "transfer.success", "data": {"reference": "x"}})
        assert client.post(f"{API}/webhooks/paystack", content=body, headers=headers).status_code == 200

    def test_liveness(self, client):
        assert client.get(f"{API}/webhooks/paystack").status_code == 200


class TestVerifyEndpoint:
    def test_sync_verification(self, client, room_101, paystack, signed):
        reference = _public_booking(client, room_101).json()["payment"]["reference"]
        r = client.get(f"{API}/public/payments/verify", params={"reference": reference})
        assert r.status_code == 200, r.text
        assert r.json()["booking"]["paymentStatus"] == "PAID"
        assert r.json()["payment"]["applied"] is True

        # the webhook arriving afterwards changes nothing
        _charge(client, signed, "charge.success", reference)
        r = client.get(f"{API}/public/payments/verify", params={"reference": reference})
        assert r.json()["payment"]["applied"] is False

    def test_unknown_reference(self, client):
        assert client.get(f"{API}/public/payments/verify", params={"reference": "HMS-x"}).status_code == 404
