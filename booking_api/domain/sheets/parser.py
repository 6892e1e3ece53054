"""
Sheet parsing - turns CSV text into slot records

Sheet format (header row required, any column order, case-insensitive):

    | Professional | Date           | Time     | Title | Bio | Specializations | Areas |
    |--------------|----------------|----------|-------|-----|-----------------|-------|
    | Dr. Priya    | Monday, Mar 3  | 10:00 AM | ...   | ... | CBT, DBT        | ...   |

Date and Time are required. Without a Professional column every slot falls into
the "General" group. Bio columns are optional and feed the professional directory.
"""

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ...exceptions import MissingColumnError, SheetParseError
from ..slots.store import DEFAULT_PROFESSIONAL, SlotInput

logger = logging.getLogger(__name__)

SHEET_ID_PATTERN = re.compile(r"spreadsheets/d/([^/?#]+)")


def normalise_sheets_url(raw: Optional[str]) -> Optional[str]:
    """
    Accept any Google Sheets link variant and return the CSV export URL.

    .../edit, .../edit#gid=0, .../edit?format=csv -> .../export?format=csv
    Non-Sheets URLs are returned unchanged.
    """
    if not raw:
        return None
    match = SHEET_ID_PATTERN.search(raw)
    if not match:
        return raw
    return f"https://docs.google.com/spreadsheets/d/{match.group(1)}/export?format=csv"


# ---------------------------------------------------------------------------
# Column resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnMap:
    date: int
    time: int
    professional: Optional[int] = None
    title: Optional[int] = None
    bio: Optional[int] = None
    specializations: Optional[int] = None
    areas: Optional[int] = None

    @property
    def has_professional(self) -> bool:
        return self.professional is not None

    @property
    def has_bio_columns(self) -> bool:
        return any(
            idx is not None for idx in (self.title, self.bio, self.specializations, self.areas)
        )


def _find(headers: list[str], predicate) -> Optional[int]:
    for idx, header in enumerate(headers):
        if predicate(header):
            return idx
    return None


def resolve_columns(header_cols: list[str]) -> ColumnMap:
    """Detect column roles from the header row. Raises MissingColumnError."""
    lower = [(c or "").strip().lower() for c in header_cols]

    date_idx = _find(lower, lambda h: "date" in h)
    if date_idx is None:
        raise MissingColumnError("Date", header_cols)
    time_idx = _find(lower, lambda h: "time" in h)
    if time_idx is None:
        raise MissingColumnError("Time", header_cols)

    return ColumnMap(
        date=date_idx,
        time=time_idx,
        professional=_find(
            lower,
            lambda h: any(k in h for k in ("professional", "counsellor", "counselor", "name")),
        ),
        title=_find(lower, lambda h: h in ("title", "designation")),
        bio=_find(lower, lambda h: h in ("bio", "about", "description")),
        specializations=_find(lower, lambda h: "specializ" in h or "approach" in h),
        areas=_find(lower, lambda h: h == "areas" or "focus" in h),
    )


# ---------------------------------------------------------------------------
# Row parsing
# ---------------------------------------------------------------------------


@dataclass
class ProfessionalEntry:
    name: str
    title: str = ""
    bio: str = ""
    specializations: list[str] = field(default_factory=list)
    areas: list[str] = field(default_factory=list)


@dataclass
class SheetParseResult:
    slots: list[SlotInput]
    errors: list[str]
    warnings: list[str]
    professionals: list[ProfessionalEntry]
    has_bio_columns: bool = False


def split_list(cell: str) -> list[str]:
    return [part.strip() for part in (cell or "").split(",") if part.strip()]


def _cell(values: list[str], idx: Optional[int]) -> str:
    if idx is None or idx >= len(values):
        return ""
    return (values[idx] or "").strip()


def normalize_time(raw: Optional[str]) -> Optional[str]:
    """Normalise '2:00 pm' / '14:00' to '2:00 PM'. Unknown formats pass through."""
    if raw is None:
        return None
    value = str(raw).strip()
    if not value:
        return None

    twelve = re.fullmatch(r"(\d{1,2}):(\d{2})\s*([AaPp][Mm])", value)
    if twelve:
        return f"{int(twelve.group(1))}:{twelve.group(2)} {twelve.group(3).upper()}"

    twenty_four = re.fullmatch(r"(\d{1,2}):(\d{2})", value)
    if twenty_four:
        hour = int(twenty_four.group(1))
        period = "PM" if hour >= 12 else "AM"
        display_hour = hour - 12 if hour > 12 else (12 if hour == 0 else hour)
        return f"{display_hour}:{twenty_four.group(2)} {period}"

    return value


def parse_rows(
    rows: list[list[str]], normalise_times: bool = False
) -> SheetParseResult:
    """Validate header + data rows (row 1 is the header)"""
    if len(rows) < 2:
        raise SheetParseError("Sheet is empty or has only a header row")

    header = rows[0]
    cols = resolve_columns(header)

    if not cols.has_professional:
        logger.warning('⚠️ No "Professional" column found - slots will show without a professional name')
    if cols.has_bio_columns:
        logger.info("ℹ️ Bio columns detected - professional directory will be rebuilt from sheet")

    slots: list[SlotInput] = []
    seen: set[tuple[str, str, str]] = set()
    errors: list[str] = []
    warnings: list[str] = []
    directory: dict[str, ProfessionalEntry] = {}

    for row_num, values in enumerate(rows[1:], start=2):
        if not any((v or "").strip() for v in values):
            continue

        date_label = _cell(values, cols.date)
        time_label = _cell(values, cols.time)
        if normalise_times:
            time_label = normalize_time(time_label) or ""
        name = _cell(values, cols.professional)
        professional = name or DEFAULT_PROFESSIONAL

        if name and cols.has_bio_columns:
            # last row seen for a name wins
            directory[name.lower()] = ProfessionalEntry(
                name=name,
                title=_cell(values, cols.title),
                bio=_cell(values, cols.bio),
                specializations=split_list(_cell(values, cols.specializations)),
                areas=split_list(_cell(values, cols.areas)),
            )

        if not date_label and not time_label:
            continue
        if not date_label:
            errors.append(f"Row {row_num}: missing date")
            continue
        if not time_label:
            errors.append(f'Row {row_num}: missing time for "{date_label}"')
            continue

        key = (professional, date_label, time_label)
        if key in seen:
            warnings.append(
                f'Row {row_num}: duplicate "{professional} - {date_label} {time_label}" - skipped'
            )
            continue
        seen.add(key)
        slots.append(
            SlotInput(
                professional=name or None,
                date=date_label,
                time=time_label,
            )
        )

    return SheetParseResult(
        slots=slots,
        errors=errors,
        warnings=warnings,
        professionals=list(directory.values()),
        has_bio_columns=cols.has_bio_columns,
    )


def parse_slot_csv(csv_text: str, normalise_times: bool = False) -> SheetParseResult:
    """Parse raw CSV text (quoted fields may contain commas)"""
    text = (csv_text or "").lstrip("\ufeff").strip()
    rows = list(csv.reader(io.StringIO(text)))
    return parse_rows(rows, normalise_times=normalise_times)
