"""Admin slot upload - CSV file or JSON list loaded into the slot store"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from ...exceptions import SheetParseError, ValidationError
from ..sheets.parser import normalize_time, parse_slot_csv
from .store import SlotInput, SlotStore, StatusSummary

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_CONTENT_TYPES = {"text/csv", "application/csv", "text/plain", "application/vnd.ms-excel"}
CSV_FILENAME = re.compile(r"\.csv$", re.IGNORECASE)


@dataclass
class UploadResult:
    count: int
    errors: list[str]
    warnings: list[str]
    status: StatusSummary

    def to_dict(self) -> dict:
        return {
            "message": f"Loaded {self.count} slots successfully",
            "count": self.count,
            "warnings": self.warnings,
            "parseErrors": self.errors,
            "status": self.status.to_dict(),
        }


def check_upload_file(filename: str, content_type: Optional[str], size: int) -> None:
    if size > MAX_UPLOAD_BYTES:
        raise ValidationError("File too large. Maximum size is 5MB")
    if (content_type or "").split(";")[0].strip() not in ALLOWED_CONTENT_TYPES and not CSV_FILENAME.search(
        filename or ""
    ):
        raise ValidationError(f"Unsupported file type: {content_type}. Use .csv")


def process_slot_upload(store: SlotStore, content: bytes, filename: str) -> UploadResult:
    """Parse an uploaded CSV and replace the slot set with it"""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError("File is not valid UTF-8 text") from e

    try:
        parsed = parse_slot_csv(text, normalise_times=True)
    except SheetParseError as e:
        raise ValidationError(e.message) from e

    if not parsed.slots:
        raise ValidationError(f'No valid slots found in "{filename}". {". ".join(parsed.errors)}')

    count = store.reconcile(parsed.slots, f"upload:{filename}")
    logger.info(f"📤 Slot upload {filename}: {count} loaded, {len(parsed.warnings)} warning(s)")
    return UploadResult(count, parsed.errors, parsed.warnings, store.status_summary())


def process_json_upload(store: SlotStore, items: Iterable) -> UploadResult:
    """Items carry professional (optional), date and time"""
    slots: list[SlotInput] = []
    seen = set()
    errors: list[str] = []
    warnings: list[str] = []

    for position, item in enumerate(items, start=1):
        date_label = (item.date or "").strip()
        time_label = normalize_time(item.time) or ""
        professional = (item.professional or "").strip() or None

        if not date_label and not time_label:
            continue
        if not date_label:
            errors.append(f"Item {position}: missing date")
            continue
        if not time_label:
            errors.append(f'Item {position}: missing time for "{date_label}"')
            continue

        slot = SlotInput(date=date_label, time=time_label, professional=professional)
        if slot.key in seen:
            warnings.append(f'Item {position}: duplicate "{slot.key[0]} - {date_label} {time_label}" - skipped')
            continue
        seen.add(slot.key)
        slots.append(slot)

    if not slots:
        raise ValidationError(f"No valid slots found. {'. '.join(errors)}".strip())

    count = store.reconcile(slots, "upload:json")
    return UploadResult(count, errors, warnings, store.status_summary())
