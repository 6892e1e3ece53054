"""
Booking service - order creation, payment verification and webhooks

Verification is idempotent: a booking that is already confirmed is returned
unchanged, and concurrent attempts for one order (client callback racing the
gateway webhook) are serialised by a per-order lock.
"""

import json
import logging
from typing import Awaitable, Callable, Optional

from ...background import BackgroundTaskRunner
from ...exceptions import (
    BookingAPIError,
    ConfigurationError,
    NotFoundError,
    PaymentNotSuccessfulError,
    SecurityError,
    SlotUnavailableError,
)
from ...services.razorpay_service import RazorpayClient
from ...webhook_security import verify_razorpay_webhook
from ..sheets.writeback import SheetWritebackService
from ..slots.availability import AvailabilityService
from ..slots.store import Slot
from .ledger import (
    BOOKING_CONFIRMED,
    PAYMENT_FAILED,
    PAYMENT_SUCCESS,
    Booking,
    BookingLedger,
    SelectedSlot,
)
from .pricing import get_pricing
from .schemas import CreateBookingRequest

logger = logging.getLogger(__name__)

SUCCESSFUL_PAYMENT_STATES = ("captured", "authorized")
WEBHOOK_PAYMENT_EVENTS = ("payment.captured", "payment.authorized")

Notifier = Callable[[Booking], Awaitable[object]]


class BookingService:
    def __init__(
        self,
        ledger: BookingLedger,
        availability: AvailabilityService,
        gateway: RazorpayClient,
        runner: BackgroundTaskRunner,
        writeback: Optional[SheetWritebackService] = None,
        notifier: Optional[Notifier] = None,
        webhook_secret: Optional[str] = None,
        notes_prefix: str = "TYS",
    ):
        self.ledger = ledger
        self.availability = availability
        self.gateway = gateway
        self.runner = runner
        self.writeback = writeback
        self.notifier = notifier
        self.webhook_secret = webhook_secret
        self.notes_prefix = notes_prefix

    # ------------------------------------------------------------------
    # Order creation
    # ------------------------------------------------------------------

    async def create_payment_order(self, request: CreateBookingRequest) -> dict:
        slot = request.selectedSlot
        professional = request.slot_professional
        logger.info(f"🧾 Creating order for {request.sessionType} session, user: {request.email}")

        # no hold is placed here: the slot is reserved only after payment
        if not self.availability.is_slot_available(slot.date, slot.time, professional):
            logger.error(f"❌ Slot unavailable: {professional or 'any'} {slot.date} {slot.time}")
            raise SlotUnavailableError("Selected slot is no longer available")

        pricing = get_pricing(request.sessionType)
        booking = self.ledger.create(
            session_type=request.sessionType,
            name=request.name,
            email=str(request.email),
            phone=request.phone,
            selected_slot=SelectedSlot(date=slot.date, time=slot.time, professional=professional),
            pricing=pricing,
            payment_method=request.paymentMethod,
        )
        logger.info(
            f"📝 Booking {booking.id} created - total ₹{pricing.total_amount / 100:.2f} "
            f"(base ₹{pricing.base_amount / 100:.2f} + fee ₹{pricing.platform_fee / 100:.2f})"
        )

        order = await self.gateway.create_order(
            amount=pricing.total_amount,
            currency=pricing.currency,
            receipt=booking.id,
            notes={
                "prefix": self.notes_prefix,
                "bookingId": booking.id,
                "sessionType": request.sessionType,
                "name": request.name,
                "email": str(request.email),
            },
        )
        booking = self.ledger.update(booking.id, razorpay_order_id=order["id"])
        logger.info(f"💳 Order {order['id']} linked to booking {booking.id}")

        return {
            "booking": booking.to_dict(),
            "order": {
                "id": order["id"],
                "amount": order.get("amount", pricing.total_amount),
                "currency": order.get("currency", pricing.currency),
                "key": self.gateway.key_id,
            },
        }

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def verify_payment(
        self,
        order_id: str,
        payment_id: str,
        signature: Optional[str],
        *,
        signature_trusted: bool = False,
    ) -> Booking:
        """
        Confirm a booking after checking the payment with the gateway.

        signature_trusted is only for the webhook path, where the request was
        already authenticated by the webhook HMAC and there is no checkout
        signature to check.
        """
        logger.info(f"🔍 Verifying payment {payment_id} for order {order_id}")

        booking = self.ledger.find_by_order_id(order_id)
        if booking is None:
            logger.error(f"❌ Booking not found for order: {order_id}")
            raise NotFoundError("Booking not found")

        async with self.ledger.order_lock(order_id):
            booking = self.ledger.get(booking.id)
            if booking.is_confirmed:
                logger.info(f"ℹ️ Payment already processed for booking {booking.id}")
                return booking

            if not signature_trusted and not self.gateway.verify_signature(
                order_id, payment_id, signature
            ):
                logger.error(f"🚨 Invalid payment signature for booking {booking.id}")
                raise SecurityError("Invalid payment signature")

            payment = await self.gateway.fetch_payment(payment_id)

            status = payment.get("status")
            if status not in SUCCESSFUL_PAYMENT_STATES:
                logger.error(f"❌ Payment not successful. Status: {status}, booking: {booking.id}")
                raise PaymentNotSuccessfulError("Payment not successful")

            if payment.get("order_id") != order_id:
                logger.error(
                    f"🚨 Payment {payment_id} belongs to order {payment.get('order_id')}, "
                    f"not {order_id} (booking {booking.id})"
                )
                raise SecurityError("Payment does not belong to this order")

            expected = booking.pricing.total_amount
            if payment.get("amount") != expected:
                logger.error(
                    f"🚨 Payment amount mismatch for booking {booking.id}! "
                    f"Expected: {expected}, got: {payment.get('amount')}"
                )
                raise SecurityError("Payment amount verification failed")

            booking = self.ledger.update(
                booking.id,
                razorpay_payment_id=payment_id,
                payment_status=PAYMENT_SUCCESS,
                booking_status=BOOKING_CONFIRMED,
            )

            selected = booking.selected_slot
            slot = self.availability.book_slot(
                selected.date, selected.time, booking.id, selected.professional
            )

        if slot is None:
            # paid but the slot went elsewhere in the meantime; needs manual follow-up
            logger.warning(
                f"⚠️ Slot unavailable for confirmed booking {booking.id}: "
                f"{selected.professional or 'any'} {selected.date} {selected.time}"
            )
        else:
            logger.info(f"📅 Slot {slot.id} booked for {booking.id}")
            if self.writeback is not None:
                self.runner.spawn(self._write_back(slot), name=f"writeback-{booking.id}")

        if self.notifier is not None:
            self.runner.spawn(self.notifier(booking), name=f"email-{booking.id}")

        logger.info(f"✅ Booking {booking.id} confirmed")
        return booking

    async def _write_back(self, slot: Slot) -> None:
        result = await self.writeback.remove_slot(slot.professional, slot.date, slot.time)
        if result.removed:
            logger.info(f"🗑️ Sheet write-back for {slot.key}: {result.reason}")
        else:
            logger.warning(f"⚠️ Sheet write-back skipped for {slot.key}: {result.reason}")

    async def handle_payment_failure(self, order_id: str) -> Booking:
        """Mark a pending booking failed. A confirmed booking is returned unchanged."""
        booking = self.ledger.find_by_order_id(order_id)
        if booking is None:
            raise NotFoundError("Booking not found")

        async with self.ledger.order_lock(order_id):
            booking = self.ledger.get(booking.id)
            if booking.is_confirmed:
                logger.warning(
                    f"⚠️ Ignoring payment failure report for confirmed booking {booking.id} (order {order_id})"
                )
                return booking

            logger.info(f"💔 Payment failed for booking {booking.id} (order {order_id})")
            return self.ledger.update(booking.id, payment_status=PAYMENT_FAILED)

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> dict:
        """
        Authenticate and process a gateway webhook.

        Only configuration and signature problems are raised. Once the call is
        authenticated it is always acknowledged, so the gateway does not retry
        events that the checkout callback already handled.
        """
        if not self.webhook_secret:
            logger.error("❌ RAZORPAY_WEBHOOK_SECRET not configured")
            raise ConfigurationError("Webhook not configured")

        if not verify_razorpay_webhook(raw_body, signature, self.webhook_secret):
            raise SecurityError("Invalid webhook signature")

        try:
            event = json.loads(raw_body)
        except ValueError:
            logger.error("❌ Webhook body is not valid JSON - acknowledged without processing")
            return {"success": True}

        if not isinstance(event, dict):
            logger.error("❌ Webhook body is not a JSON object - acknowledged without processing")
            return {"success": True}

        event_type = event.get("event")
        logger.info(f"📥 Razorpay webhook event: {event_type}")

        if event_type in WEBHOOK_PAYMENT_EVENTS:
            entity = _payment_entity(event)
            if entity is None:
                logger.error(f"❌ Webhook {event_type} has no payment entity - acknowledged without processing")
                return {"success": True}
            order_id = entity.get("order_id")
            payment_id = entity.get("id")
            try:
                await self.verify_payment(order_id, payment_id, None, signature_trusted=True)
                logger.info(f"✅ Webhook processed payment for order {order_id}")
            except BookingAPIError as e:
                logger.info(f"ℹ️ Webhook payment note for order {order_id}: {e.message}")
            except Exception as e:
                logger.error(f"❌ Webhook processing failed for order {order_id}: {str(e)}", exc_info=True)

        return {"success": True}


def _payment_entity(event: dict) -> Optional[dict]:
    """payload.payment.entity, or None when any level is missing or not an object"""
    node = event
    for key in ("payload", "payment", "entity"):
        node = node.get(key) if isinstance(node, dict) else None
    return node if isinstance(node, dict) else None
