import asyncio
import gc
import logging

import pytest
from helpers import WEBHOOK_SECRET, checkout_signature, webhook_body

from booking_api.domain.bookings.ledger import (
    BOOKING_CONFIRMED,
    BOOKING_PENDING,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_SUCCESS,
)
from booking_api.domain.bookings.schemas import CreateBookingRequest
from booking_api.domain.sheets.writeback import WritebackResult
from booking_api.exceptions import (
    ConfigurationError,
    NotFoundError,
    PaymentNotSuccessfulError,
    SecurityError,
    SlotUnavailableError,
    UpstreamError,
)
from booking_api.webhook_security import compute_hmac_sha256

NORMAL_TOTAL = 61300


def booking_request(professional="Dr. Priya", time="10:00 AM", session_type="normal", **overrides):
    data = {
        "sessionType": session_type,
        "name": "Asha Rao",
        "email": "asha@example.com",
        "phone": "9876543210",
        "selectedSlot": {"date": "Monday, Mar 3", "time": time, "professional": professional},
        "paymentMethod": "upi",
    }
    data.update(overrides)
    return CreateBookingRequest(**data)


async def create_order(container, **kwargs):
    result = await container.bookings.create_payment_order(booking_request(**kwargs))
    return result["booking"]["id"], result["order"]["id"]


def slot_for(container, professional="Dr. Priya", time="10:00 AM"):
    return container.store.find_by_key(professional, "Monday, Mar 3", time)


@pytest.mark.asyncio
async def test_create_order_snapshots_pricing_and_links_order(container, razorpay):
    result = await container.bookings.create_payment_order(booking_request(session_type="priority"))

    booking = result["booking"]
    assert booking["id"] == "TYS-000001"
    assert booking["pricing"]["totalAmount"] == 102000
    assert booking["phone"] == "+919876543210"
    assert booking["paymentStatus"] == PAYMENT_PENDING
    assert result["order"] == {"id": "order_test1", "amount": 102000, "currency": "INR", "key": "rzp_test_key"}

    order = razorpay.orders["order_test1"]
    assert order["receipt"] == "TYS-000001"
    assert order["notes"]["bookingId"] == "TYS-000001"
    assert order["notes"]["prefix"] == "TYS"
    assert container.ledger.get("TYS-000001").razorpay_order_id == "order_test1"
    # no hold until payment
    assert slot_for(container).available is True


@pytest.mark.asyncio
async def test_create_order_rejects_unavailable_slot(container, razorpay):
    container.store.reserve(slot_for(container).id, "TYS-999999")

    with pytest.raises(SlotUnavailableError, match="no longer available"):
        await container.bookings.create_payment_order(booking_request())

    assert container.ledger.all() == []
    assert razorpay.requests == []


@pytest.mark.asyncio
async def test_create_order_gateway_failure_raises_upstream(container, razorpay):
    razorpay.fail_orders = True

    with pytest.raises(UpstreamError, match="Gateway down"):
        await container.bookings.create_payment_order(booking_request())

    assert container.ledger.get("TYS-000001").razorpay_order_id is None


@pytest.mark.asyncio
async def test_verify_confirms_and_reserves_slot(container, razorpay, notifier, writeback):
    booking_id, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)

    booking = await container.bookings.verify_payment(
        order_id, "pay_1", checkout_signature(order_id, "pay_1")
    )
    await container.runner.drain()

    assert booking.payment_status == PAYMENT_SUCCESS
    assert booking.booking_status == BOOKING_CONFIRMED
    assert booking.razorpay_payment_id == "pay_1"
    slot = slot_for(container)
    assert slot.available is False
    assert slot.booked_by == booking_id
    assert writeback.calls == [("Dr. Priya", "Monday, Mar 3", "10:00 AM")]
    assert [b.id for b in notifier.sent] == [booking_id]


@pytest.mark.asyncio
async def test_second_verify_is_idempotent(container, razorpay, notifier):
    booking_id, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)
    signature = checkout_signature(order_id, "pay_1")

    first = await container.bookings.verify_payment(order_id, "pay_1", signature)
    second = await container.bookings.verify_payment(order_id, "pay_1", signature)
    await container.runner.drain()

    assert second == first
    assert razorpay.payment_fetches() == 1
    assert len(notifier.sent) == 1
    assert slot_for(container).booked_by == booking_id


@pytest.mark.asyncio
async def test_concurrent_verify_reserves_once(container, razorpay, notifier):
    _, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)
    signature = checkout_signature(order_id, "pay_1")

    results = await asyncio.gather(
        container.bookings.verify_payment(order_id, "pay_1", signature),
        container.bookings.verify_payment(order_id, "pay_1", signature),
    )
    await container.runner.drain()

    assert all(b.is_confirmed for b in results)
    assert razorpay.payment_fetches() == 1
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_verify_unknown_order(container):
    with pytest.raises(NotFoundError, match="Booking not found"):
        await container.bookings.verify_payment("order_missing", "pay_1", "sig")


@pytest.mark.asyncio
async def test_verify_rejects_bad_signature_without_fetching(container, razorpay):
    booking_id, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)

    with pytest.raises(SecurityError, match="Invalid payment signature"):
        await container.bookings.verify_payment(order_id, "pay_1", "deadbeef")

    assert razorpay.payment_fetches() == 0
    assert container.ledger.get(booking_id).payment_status == PAYMENT_PENDING


@pytest.mark.asyncio
async def test_verify_amount_mismatch_leaves_booking_pending(container, razorpay, notifier):
    booking_id, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, 100)

    with pytest.raises(SecurityError, match="amount verification failed"):
        await container.bookings.verify_payment(order_id, "pay_1", checkout_signature(order_id, "pay_1"))

    booking = container.ledger.get(booking_id)
    assert booking.payment_status == PAYMENT_PENDING
    assert booking.booking_status == BOOKING_PENDING
    assert slot_for(container).available is True
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_verify_rejects_payment_for_another_order(container, razorpay):
    _, order_id = await create_order(container)
    razorpay.add_payment("pay_1", "order_other", NORMAL_TOTAL)

    with pytest.raises(SecurityError, match="does not belong"):
        await container.bookings.verify_payment(order_id, "pay_1", checkout_signature(order_id, "pay_1"))


@pytest.mark.asyncio
async def test_verify_rejects_uncaptured_payment(container, razorpay):
    _, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL, status="failed")

    with pytest.raises(PaymentNotSuccessfulError):
        await container.bookings.verify_payment(order_id, "pay_1", checkout_signature(order_id, "pay_1"))


@pytest.mark.asyncio
async def test_verify_accepts_authorized_payment(container, razorpay):
    _, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL, status="authorized")

    booking = await container.bookings.verify_payment(
        order_id, "pay_1", checkout_signature(order_id, "pay_1")
    )
    assert booking.is_confirmed


@pytest.mark.asyncio
async def test_slot_taken_after_payment_still_confirms(container, razorpay, writeback, caplog):
    booking_id, order_id = await create_order(container)
    container.store.reserve(slot_for(container).id, "TYS-999999")
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)

    with caplog.at_level(logging.WARNING):
        booking = await container.bookings.verify_payment(
            order_id, "pay_1", checkout_signature(order_id, "pay_1")
        )
    await container.runner.drain()

    assert booking.is_confirmed
    assert slot_for(container).booked_by == "TYS-999999"
    assert writeback.calls == []
    assert any("Slot unavailable for confirmed booking" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_notifier_failure_is_logged_not_raised(container, razorpay, notifier, caplog):
    notifier.fail = True
    _, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)

    with caplog.at_level(logging.ERROR, logger="booking_api.background"):
        booking = await container.bookings.verify_payment(
            order_id, "pay_1", checkout_signature(order_id, "pay_1")
        )
        await container.runner.drain()

    assert booking.is_confirmed
    assert any("SMTP down" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_writeback_miss_does_not_affect_booking(container, razorpay, writeback):
    writeback.result = WritebackResult(False, "Row not found in sheet")
    booking_id, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)

    booking = await container.bookings.verify_payment(
        order_id, "pay_1", checkout_signature(order_id, "pay_1")
    )
    await container.runner.drain()

    assert booking.is_confirmed
    assert slot_for(container).booked_by == booking_id


@pytest.mark.asyncio
async def test_payment_failure_marks_booking_failed(container):
    booking_id, order_id = await create_order(container)

    updated = await container.bookings.handle_payment_failure(order_id)

    assert updated.payment_status == PAYMENT_FAILED
    assert updated.booking_status == BOOKING_PENDING
    with pytest.raises(NotFoundError):
        await container.bookings.handle_payment_failure("order_missing")


@pytest.mark.asyncio
async def test_failure_report_after_confirmation_keeps_booking_paid(container, razorpay, caplog):
    booking_id, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)
    await container.bookings.verify_payment(order_id, "pay_1", checkout_signature(order_id, "pay_1"))

    with caplog.at_level(logging.WARNING):
        booking = await container.bookings.handle_payment_failure(order_id)

    assert booking.payment_status == PAYMENT_SUCCESS
    assert booking.booking_status == BOOKING_CONFIRMED
    stored = container.ledger.get(booking_id)
    assert (stored.payment_status, stored.booking_status) == (PAYMENT_SUCCESS, BOOKING_CONFIRMED)
    assert any("Ignoring payment failure report" in r.getMessage() for r in caplog.records)


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


def signed(body: bytes) -> str:
    return compute_hmac_sha256(WEBHOOK_SECRET, body)


@pytest.mark.asyncio
async def test_webhook_confirms_booking_without_checkout_signature(container, razorpay, notifier):
    booking_id, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)
    body = webhook_body("payment.captured", order_id, "pay_1")

    assert await container.bookings.handle_webhook(body, signed(body)) == {"success": True}
    await container.runner.drain()

    assert container.ledger.get(booking_id).is_confirmed
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_webhook_after_checkout_callback_is_a_no_op(container, razorpay, notifier):
    _, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)
    await container.bookings.verify_payment(order_id, "pay_1", checkout_signature(order_id, "pay_1"))

    body = webhook_body("payment.captured", order_id, "pay_1")
    await container.bookings.handle_webhook(body, signed(body))
    await container.runner.drain()

    assert razorpay.payment_fetches() == 1
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(container, razorpay):
    _, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)
    body = webhook_body("payment.captured", order_id, "pay_1")

    with pytest.raises(SecurityError, match="Invalid webhook signature"):
        await container.bookings.handle_webhook(body, "0" * 64)
    with pytest.raises(SecurityError):
        await container.bookings.handle_webhook(body, None)

    assert not container.ledger.find_by_order_id(order_id).is_confirmed


@pytest.mark.asyncio
async def test_webhook_acknowledges_unknown_order_and_other_events(container):
    body = webhook_body("payment.captured", "order_missing", "pay_1")
    assert await container.bookings.handle_webhook(body, signed(body)) == {"success": True}

    body = webhook_body("refund.processed", "order_missing", "pay_1")
    assert await container.bookings.handle_webhook(body, signed(body)) == {"success": True}

    body = b"not json"
    assert await container.bookings.handle_webhook(body, signed(body)) == {"success": True}


@pytest.mark.asyncio
async def test_webhook_requires_secret(container):
    container.bookings.webhook_secret = None
    body = webhook_body("payment.captured", "order_1", "pay_1")

    with pytest.raises(ConfigurationError, match="Webhook not configured"):
        await container.bookings.handle_webhook(body, signed(body))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        b"[]",
        b'"payment.captured"',
        b'{"event": "payment.captured", "payload": "x"}',
        b'{"event": "payment.captured", "payload": {"payment": null}}',
        b'{"event": "payment.captured", "payload": {"payment": {"entity": []}}}',
    ],
)
async def test_webhook_acknowledges_malformed_signed_body(container, body):
    assert await container.bookings.handle_webhook(body, signed(body)) == {"success": True}


# ---------------------------------------------------------------------------
# Order locks
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_order_locks_are_released_when_unused(container):
    ledger = container.ledger
    lock = ledger.order_lock("order_1")

    assert ledger.order_lock("order_1") is lock
    async with lock:
        pass

    del lock
    gc.collect()
    assert len(ledger._order_locks) == 0


@pytest.mark.asyncio
async def test_verify_leaves_no_order_locks_behind(container, razorpay):
    _, order_id = await create_order(container)
    razorpay.add_payment("pay_1", order_id, NORMAL_TOTAL)
    await container.bookings.verify_payment(order_id, "pay_1", checkout_signature(order_id, "pay_1"))
    await container.bookings.handle_payment_failure(order_id)
    await container.runner.drain()

    gc.collect()
    assert order_id not in container.ledger._order_locks
