"""
Slot Store - in-memory availability slots

Single source of truth for "what times are bookable right now". State is
volatile: the sheet sync is the recovery mechanism after a restart.

Each individual mutation is atomic (guarded by one lock). Checking availability
and reserving later are NOT atomic as a pair: two customers can both pass an
availability check for the same slot, and only one reserve() call will win.
Callers must treat a failed reserve() as the authoritative outcome.

Reads hand out copies; the stored slots only change through the mutations below.
"""

import itertools
import logging
import time
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from threading import Lock
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_PROFESSIONAL = "General"
PRESERVED_BOOKING_REF = "preserved"


@dataclass
class Slot:
    id: str
    professional: str
    date: str
    time: str
    available: bool = True
    booked_by: Optional[str] = None
    booked_at: Optional[str] = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.professional, self.date, self.time)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "professional": self.professional,
            "date": self.date,
            "time": self.time,
            "available": self.available,
            "bookedBy": self.booked_by,
            "bookedAt": self.booked_at,
        }


@dataclass(frozen=True)
class SlotInput:
    """Reconciliation input record"""

    date: str
    time: str
    professional: Optional[str] = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.professional or DEFAULT_PROFESSIONAL, self.date, self.time)


@dataclass
class StatusSummary:
    total_slots: int
    available_slots: int
    booked_slots: int
    professionals: list[str]
    last_uploaded_by: Optional[str]
    last_uploaded_at: Optional[str]
    has_data: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        return {
            "totalSlots": data["total_slots"],
            "availableSlots": data["available_slots"],
            "bookedSlots": data["booked_slots"],
            "professionals": data["professionals"],
            "lastUploadedBy": data["last_uploaded_by"],
            "lastUploadedAt": data["last_uploaded_at"],
            "hasData": data["has_data"],
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SlotStore:
    """Process-wide slot collection, constructed once and injected"""

    def __init__(self):
        self._slots: list[Slot] = []
        self._lock = Lock()
        self._generation = itertools.count(1)
        self.last_source: Optional[str] = None
        self.last_reconciled_at: Optional[str] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_available(self) -> list[Slot]:
        with self._lock:
            return [replace(s) for s in self._slots if s.available]

    def list_all(self) -> list[Slot]:
        with self._lock:
            return [replace(s) for s in self._slots]

    def get(self, slot_id: str) -> Optional[Slot]:
        with self._lock:
            slot = self._get_unlocked(slot_id)
            return replace(slot) if slot else None

    def find_by_key(
        self, professional: Optional[str], date: str, time: str
    ) -> Optional[Slot]:
        """
        Find one slot by (professional, date, time).

        Without a professional the match is on date/time alone and the first
        slot wins, which is ambiguous when several professionals share a time.
        """
        with self._lock:
            for slot in self._slots:
                if slot.date != date or slot.time != time:
                    continue
                if professional is None or slot.professional == professional:
                    return replace(slot)
            return None

    def group_by_professional(self) -> dict[str, list[Slot]]:
        grouped: dict[str, list[Slot]] = {}
        for slot in self.list_available():
            grouped.setdefault(slot.professional or DEFAULT_PROFESSIONAL, []).append(slot)
        return grouped

    def status_summary(self) -> StatusSummary:
        with self._lock:
            professionals = list(dict.fromkeys(s.professional for s in self._slots))
            available = sum(1 for s in self._slots if s.available)
            return StatusSummary(
                total_slots=len(self._slots),
                available_slots=available,
                booked_slots=len(self._slots) - available,
                professionals=professionals,
                last_uploaded_by=self.last_source,
                last_uploaded_at=self.last_reconciled_at,
                has_data=bool(self._slots),
            )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def reserve(self, slot_id: str, booking_ref: str) -> bool:
        """Mark an available slot as booked. Returns False instead of raising."""
        with self._lock:
            slot = self._get_unlocked(slot_id)
            if slot is None or not slot.available:
                return False
            slot.available = False
            slot.booked_by = booking_ref
            slot.booked_at = _now_iso()
            return True

    def release(self, slot_id: str) -> bool:
        """Revert a booked slot to available. No-op on unknown or unbooked slots."""
        with self._lock:
            slot = self._get_unlocked(slot_id)
            if slot is None or slot.available:
                return False
            slot.available = True
            slot.booked_by = None
            slot.booked_at = None
            return True

    def reconcile(self, new_slots: Iterable[SlotInput], source_label: str) -> int:
        """
        Replace the whole collection, preserving booked status by key.

        This is the only bulk-load path: dev seed, upload, sheet sync and admin
        clear (with an empty list) all go through here.
        """
        new_slots = list(new_slots)
        generation = next(self._generation)
        stamp = int(time.time() * 1000)

        with self._lock:
            booked = {s.key: s for s in self._slots if not s.available}
            replacement = []
            for index, item in enumerate(new_slots):
                previous = booked.get(item.key)
                professional, date, slot_time = item.key
                replacement.append(
                    Slot(
                        id=f"slot-{stamp}-{generation}-{index}",
                        professional=professional,
                        date=date,
                        time=slot_time,
                        available=previous is None,
                        booked_by=PRESERVED_BOOKING_REF if previous else None,
                        booked_at=previous.booked_at if previous else None,
                    )
                )

            self._slots = replacement
            self.last_source = source_label
            self.last_reconciled_at = _now_iso()
            count = len(replacement)

        logger.info(f"📦 Loaded {count} slots from {source_label}")
        return count

    def _get_unlocked(self, slot_id: str) -> Optional[Slot]:
        for slot in self._slots:
            if slot.id == slot_id:
                return slot
        return None
