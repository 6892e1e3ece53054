"""
Sheet write-back - removes a booked row from the Google Sheet

Keeps the sheet the persistent source of truth: once a slot is paid for, its
row is deleted so the next sync (or a restart) cannot bring it back.

Strictly best-effort. Every failure comes back as WritebackResult(removed=False)
with a reason; nothing here raises into the booking flow.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx

from ...exceptions import MissingColumnError
from ..slots.store import DEFAULT_PROFESSIONAL
from .google_auth import ServiceAccountTokenProvider
from .parser import resolve_columns

logger = logging.getLogger(__name__)

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"


@dataclass
class WritebackResult:
    removed: bool
    reason: str


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def find_target_row(
    rows: list[list[str]], professional: Optional[str], date_label: str, time_label: str
) -> Optional[int]:
    """
    1-based sheet row number of the unique matching data row, or None.

    More than one match is treated as not found: deleting the wrong row would
    drop a slot nobody booked.
    """
    cols = resolve_columns(rows[0])
    matches = []
    for index, row in enumerate(rows[1:], start=2):

        def cell(idx):
            return row[idx] if idx is not None and idx < len(row) else ""

        if cols.has_professional:
            row_pro = _norm(cell(cols.professional)) or _norm(DEFAULT_PROFESSIONAL)
            if row_pro != _norm(professional or DEFAULT_PROFESSIONAL):
                continue
        if _norm(cell(cols.date)) == _norm(date_label) and _norm(cell(cols.time)) == _norm(time_label):
            matches.append(index)

    if len(matches) != 1:
        return None
    return matches[0]


class SheetWritebackService:
    def __init__(
        self,
        sheet_id: Optional[str],
        token_provider: ServiceAccountTokenProvider,
        tab: str = "Sheet1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sheet_id = sheet_id
        self.token_provider = token_provider
        self.tab = tab
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.sheet_id) and self.token_provider.configured

    async def remove_slot(
        self, professional: Optional[str], date_label: str, time_label: str
    ) -> WritebackResult:
        label = f"{professional or DEFAULT_PROFESSIONAL} | {date_label} | {time_label}"

        if not self.sheet_id:
            return WritebackResult(False, "GOOGLE_SHEET_ID not set - skipping write-back")
        if not self.token_provider.configured:
            return WritebackResult(False, "Service account not configured - skipping write-back")

        try:
            token = await self.token_provider.get_access_token()
        except Exception as e:
            return WritebackResult(False, f"Auth failed: {e}")

        headers = {"Authorization": f"Bearer {token}"}
        base = f"{SHEETS_API}/{self.sheet_id}"

        async with httpx.AsyncClient(timeout=15.0, transport=self._transport) as client:
            try:
                response = await client.get(
                    f"{base}/values/{quote(self.tab, safe='')}", headers=headers
                )
                response.raise_for_status()
                rows = response.json().get("values", [])
            except (httpx.HTTPError, ValueError) as e:
                return WritebackResult(False, f"Failed to read sheet: {e}")

            if len(rows) < 2:
                return WritebackResult(False, "Sheet has no data rows")

            try:
                target_row = find_target_row(rows, professional, date_label, time_label)
            except MissingColumnError:
                return WritebackResult(False, "Could not detect Date/Time columns in sheet header")

            if target_row is None:
                return WritebackResult(False, f"Row not found in sheet for {label}")

            grid_id = await self._lookup_grid_id(client, base, headers)

            payload = {
                "requests": [
                    {
                        "deleteDimension": {
                            "range": {
                                "sheetId": grid_id,
                                "dimension": "ROWS",
                                "startIndex": target_row - 1,
                                "endIndex": target_row,
                            }
                        }
                    }
                ]
            }
            try:
                response = await client.post(f"{base}:batchUpdate", headers=headers, json=payload)
            except httpx.HTTPError as e:
                return WritebackResult(False, f"Delete request failed: {e}")

            if response.status_code >= 400:
                try:
                    message = response.json().get("error", {}).get("message", response.text)
                except ValueError:
                    message = response.text
                return WritebackResult(False, f"Sheets API error: {message}")

        logger.info(f"✅ Removed row {target_row} from sheet: {label}")
        return WritebackResult(True, "Row deleted from Google Sheet")

    async def _lookup_grid_id(self, client: httpx.AsyncClient, base: str, headers: dict) -> int:
        """Numeric sheetId of the configured tab; 0 when it cannot be resolved"""
        try:
            response = await client.get(
                base, headers=headers, params={"fields": "sheets.properties"}
            )
            response.raise_for_status()
            sheets = response.json().get("sheets", [])
        except (httpx.HTTPError, ValueError):
            return 0

        for sheet in sheets:
            props = sheet.get("properties", {})
            if props.get("title") == self.tab:
                return props.get("sheetId", 0)
        if sheets:
            return sheets[0].get("properties", {}).get("sheetId", 0)
        return 0
