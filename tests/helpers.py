"""Shared fakes and utilities for the test suite."""

import itertools
import json
from typing import Optional

import httpx

from booking_api.domain.sheets.writeback import WritebackResult
from booking_api.webhook_security import compute_hmac_sha256

KEY_ID = "rzp_test_key"
KEY_SECRET = "rzp_test_secret"
WEBHOOK_SECRET = "whsec_test"
API_KEY = "admin-test-key"


def checkout_signature(order_id: str, payment_id: str, secret: str = KEY_SECRET) -> str:
    return compute_hmac_sha256(secret, f"{order_id}|{payment_id}".encode())


def webhook_body(event: str, order_id: str, payment_id: str) -> bytes:
    return json.dumps(
        {
            "event": event,
            "payload": {"payment": {"entity": {"id": payment_id, "order_id": order_id}}},
        }
    ).encode()


class FakeRazorpay:
    """In-memory Razorpay REST API served through httpx.MockTransport"""

    def __init__(self):
        self.orders: dict[str, dict] = {}
        self.payments: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_orders = False
        self._ids = itertools.count(1)

    def add_payment(self, payment_id: str, order_id: str, amount: int, status: str = "captured"):
        self.payments[payment_id] = {
            "id": payment_id,
            "order_id": order_id,
            "amount": amount,
            "currency": "INR",
            "status": status,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/orders"):
            if self.fail_orders:
                return httpx.Response(500, json={"error": {"description": "Gateway down"}})
            body = json.loads(request.content)
            order = {
                "id": f"order_test{next(self._ids)}",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "notes": body.get("notes", {}),
                "status": "created",
            }
            self.orders[order["id"]] = order
            return httpx.Response(200, json=order)

        if request.method == "GET" and "/payments/" in path:
            payment_id = path.rsplit("/", 1)[-1]
            if payment_id in self.payments:
                return httpx.Response(200, json=self.payments[payment_id])
            return httpx.Response(400, json={"error": {"description": "The id provided does not exist"}})

        return httpx.Response(404, json={"error": {"description": "not found"}})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def payment_fetches(self) -> int:
        return sum(1 for r in self.requests if "/payments/" in r.url.path)


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def __call__(self, booking):
        if self.fail:
            raise RuntimeError("SMTP down")
        self.sent.append(booking)


class FakeWriteback:
    def __init__(self, result: Optional[WritebackResult] = None):
        self.calls = []
        self.result = result or WritebackResult(True, "Row deleted from Google Sheet")

    async def remove_slot(self, professional, date_label, time_label):
        self.calls.append((professional, date_label, time_label))
        return self.result
