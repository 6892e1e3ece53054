"""Availability service - date/time level helpers used by the booking flow"""

import logging
from datetime import date, timedelta
from typing import Optional

from .store import Slot, SlotInput, SlotStore

logger = logging.getLogger(__name__)

DEV_PROFESSIONALS = ["Dr. Priya", "Dr. Arjun", "Dr. Meera", "Dr. Rohan"]
DEV_TIMES = ["10:00 AM", "12:00 PM", "2:00 PM", "4:00 PM", "6:00 PM"]


class AvailabilityService:
    """Wraps the SlotStore with lookups by displayed date/time"""

    def __init__(self, store: SlotStore):
        self.store = store

    def get_available_slots(self) -> list[Slot]:
        return self.store.list_available()

    def is_slot_available(
        self, date_label: str, time_label: str, professional: Optional[str] = None
    ) -> bool:
        slot = self.store.find_by_key(professional, date_label, time_label)
        return bool(slot and slot.available)

    def book_slot(
        self,
        date_label: str,
        time_label: str,
        booking_id: str,
        professional: Optional[str] = None,
    ) -> Optional[Slot]:
        """Reserve the slot for a booking. Returns the slot, or None on conflict."""
        slot = self.store.find_by_key(professional, date_label, time_label)
        if slot is None:
            return None
        if not self.store.reserve(slot.id, booking_id):
            return None
        return self.store.get(slot.id)

    def release_slot(
        self, date_label: str, time_label: str, professional: Optional[str] = None
    ) -> bool:
        slot = self.store.find_by_key(professional, date_label, time_label)
        if slot is None:
            return False
        return self.store.release(slot.id)


def format_slot_date(day: date) -> str:
    """Display format used for slots, e.g. 'Monday, Mar 3'"""
    return f"{day:%A}, {day:%b} {day.day}"


def build_dev_slots(today: Optional[date] = None) -> list[SlotInput]:
    """Sample availability for local development, skipping Sundays"""
    today = today or date.today()
    slots = []
    for p_idx, professional in enumerate(DEV_PROFESSIONALS):
        # each professional gets 3 staggered times per day
        my_times = DEV_TIMES[p_idx % 2 : (p_idx % 2) + 3]
        for offset in range(1, 6):
            day = today + timedelta(days=offset)
            if day.weekday() == 6:
                continue
            for time_label in my_times:
                slots.append(
                    SlotInput(professional=professional, date=format_slot_date(day), time=time_label)
                )
    return slots


def seed_dev_slots(store: SlotStore, today: Optional[date] = None) -> int:
    """Load dev slots, but only into an empty store"""
    if store.status_summary().has_data:
        return 0
    count = store.reconcile(build_dev_slots(today), "dev-seed")
    logger.info(
        f"🌱 Seeded {count} dev slots across {len(DEV_PROFESSIONALS)} professionals (no Sheet configured)"
    )
    return count
