"""
Booking ledger - append-only in-memory booking records

Bookings are keyed by id and looked up by gateway order id. Nothing is ever
deleted; a failed payment leaves the booking pending so the customer can retry.
"""

import asyncio
import itertools
import logging
import weakref
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from threading import Lock
from typing import Optional

from .pricing import PricingSnapshot

logger = logging.getLogger(__name__)

PAYMENT_PENDING = "pending"
PAYMENT_SUCCESS = "success"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"

BOOKING_PENDING = "pending"
BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class SelectedSlot:
    date: str
    time: str
    professional: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"date": self.date, "time": self.time}
        if self.professional:
            data["professional"] = self.professional
        return data


@dataclass
class Booking:
    id: str
    session_type: str
    name: str
    email: str
    selected_slot: SelectedSlot
    pricing: PricingSnapshot
    payment_method: str
    phone: Optional[str] = None
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    payment_status: str = PAYMENT_PENDING
    booking_status: str = BOOKING_PENDING
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    @property
    def is_confirmed(self) -> bool:
        return self.payment_status == PAYMENT_SUCCESS or self.booking_status == BOOKING_CONFIRMED

    def to_dict(self) -> dict:
        """Public view. Gateway ids are not part of the client response."""
        return {
            "id": self.id,
            "sessionType": self.session_type,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "selectedSlot": self.selected_slot.to_dict(),
            "pricing": self.pricing.to_dict(),
            "paymentMethod": self.payment_method,
            "paymentStatus": self.payment_status,
            "bookingStatus": self.booking_status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class BookingLedger:
    def __init__(self, id_prefix: str = "TYS"):
        self.id_prefix = id_prefix
        self._bookings: list[Booking] = []
        self._lock = Lock()
        self._sequence = itertools.count(1)
        # entries vanish once no verification holds or awaits the lock
        self._order_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def create(
        self,
        *,
        session_type: str,
        name: str,
        email: str,
        selected_slot: SelectedSlot,
        pricing: PricingSnapshot,
        payment_method: str,
        phone: Optional[str] = None,
    ) -> Booking:
        with self._lock:
            booking = Booking(
                id=f"{self.id_prefix}-{next(self._sequence):06d}",
                session_type=session_type,
                name=name,
                email=email,
                phone=phone,
                selected_slot=selected_slot,
                pricing=pricing,
                payment_method=payment_method,
            )
            self._bookings.append(booking)
        return booking

    def get(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            return next((b for b in self._bookings if b.id == booking_id), None)

    def find_by_order_id(self, order_id: str) -> Optional[Booking]:
        if not order_id:
            return None
        with self._lock:
            return next((b for b in self._bookings if b.razorpay_order_id == order_id), None)

    def find_by_email(self, email: str) -> list[Booking]:
        with self._lock:
            return [b for b in self._bookings if b.email == email]

    def update(self, booking_id: str, **changes) -> Optional[Booking]:
        """Swap in a copy with the changes applied and updated_at stamped"""
        with self._lock:
            for index, booking in enumerate(self._bookings):
                if booking.id == booking_id:
                    updated = replace(booking, **changes, updated_at=_now_iso())
                    self._bookings[index] = updated
                    return updated
        return None

    def all(self) -> list[Booking]:
        with self._lock:
            return list(self._bookings)

    def order_lock(self, order_id: str) -> asyncio.Lock:
        """Per-order lock that serialises verification attempts"""
        with self._lock:
            lock = self._order_locks.get(order_id)
            if lock is None:
                lock = asyncio.Lock()
                self._order_locks[order_id] = lock
            return lock
