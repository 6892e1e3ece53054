"""Booking, payment, priority and export routers"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ...auth import require_api_key
from ...dependencies import get_booking_service, get_container
from ...exceptions import BookingAPIError
from ...rate_limiter import booking_limiter, export_limiter, payment_limiter, slot_limiter
from .export import build_bookings_csv
from .pricing import get_pricing, get_priority_pricing
from .schemas import CreateBookingRequest, PaymentFailureRequest, VerifyPaymentRequest
from .service import BookingService

logger = logging.getLogger(__name__)

booking_router = APIRouter(prefix="/api/booking", tags=["Booking"])
payment_router = APIRouter(prefix="/api/payment", tags=["Payment"])
priority_router = APIRouter(prefix="/api/priority", tags=["Priority"])
export_router = APIRouter(prefix="/api/export", tags=["Export"])


# ============================================================================
# BOOKING
# ============================================================================


@booking_router.get("/slots", dependencies=[Depends(slot_limiter)])
def get_slots(request: Request):
    """Available slots, flat and grouped by professional"""
    store = get_container(request).store
    flat = [
        {"id": s.id, "professional": s.professional, "date": s.date, "time": s.time}
        for s in store.list_available()
    ]
    grouped: dict[str, list] = {}
    for slot in flat:
        grouped.setdefault(slot["professional"], []).append(slot)
    return {"success": True, "slots": flat, "grouped": grouped}


@booking_router.get("/pricing")
def get_session_pricing(session_type: Optional[str] = Query(default=None, alias="sessionType")):
    pricing = get_pricing(session_type)
    return {
        "success": True,
        "pricing": {
            "displayAmount": pricing.display_amount,
            "totalAmount": pricing.total_amount,
            "currency": pricing.currency,
        },
    }


@booking_router.post("/create", dependencies=[Depends(booking_limiter)])
async def create_booking(
    body: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Create a pending booking and its Razorpay order"""
    result = await service.create_payment_order(body)
    return {"success": True, **result}


# ============================================================================
# PAYMENT
# ============================================================================


def _payment_error(e: BookingAPIError) -> JSONResponse:
    # the checkout client treats every verification failure as a 400
    return JSONResponse(status_code=400, content={"success": False, "error": e.message})


@payment_router.post("/verify", dependencies=[Depends(payment_limiter)])
async def verify_payment(
    body: VerifyPaymentRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = await service.verify_payment(body.orderId, body.paymentId, body.signature)
    except BookingAPIError as e:
        logger.error(f"❌ Payment verification error for order {body.orderId}: {e.message}")
        return _payment_error(e)
    return {"success": True, "booking": booking.to_dict()}


@payment_router.post("/failure", dependencies=[Depends(payment_limiter)])
async def record_payment_failure(
    body: PaymentFailureRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = await service.handle_payment_failure(body.orderId)
    except BookingAPIError as e:
        return _payment_error(e)
    return {"success": True, "booking": booking.to_dict(), "message": "Payment failure recorded"}


@payment_router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    service: BookingService = Depends(get_booking_service),
):
    """Razorpay webhook. The signature covers the raw body, so it is read unparsed."""
    raw_body = await request.body()
    return await service.handle_webhook(raw_body, x_razorpay_signature)


# ============================================================================
# PRIORITY
# ============================================================================


@priority_router.get("/pricing")
def priority_pricing():
    """Priority session pricing in rupees"""
    pricing = get_priority_pricing()
    return {
        "success": True,
        "pricing": {
            "baseAmount": pricing.base_amount / 100,
            "platformFee": pricing.platform_fee / 100,
            "totalAmount": pricing.total_amount / 100,
            "currency": pricing.currency,
        },
    }


# ============================================================================
# EXPORT
# ============================================================================


@export_router.get("/bookings", dependencies=[Depends(export_limiter), Depends(require_api_key)])
def export_bookings(request: Request):
    bookings = get_container(request).ledger.all()
    content = build_bookings_csv(bookings)
    filename = f"bookings_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    logger.info(f"✅ CSV export successful - {len(bookings)} bookings exported")
    return StreamingResponse(
        iter([content.encode("utf-8")]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
