"""
Google Sheet sync - pulls the published CSV and reconciles the slot store

A failed attempt never touches the store: fetch and parse errors abort before
reconcile() is called, so the previous availability keeps serving.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx

from ...exceptions import SheetFetchError, SheetSyncError
from ..professionals.directory import ProfessionalDirectory
from ..slots.store import SlotStore
from .parser import normalise_sheets_url, parse_slot_csv

logger = logging.getLogger(__name__)

SYNC_SOURCE_LABEL = "google-sheet-sync"


@dataclass
class SyncResult:
    count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    professionals: list[str] = field(default_factory=list)
    skipped: bool = False
    message: str = ""

    def to_dict(self) -> dict:
        data = {
            "count": self.count,
            "errors": self.errors,
            "warnings": self.warnings,
            "professionals": self.professionals,
        }
        if self.skipped:
            data["skipped"] = True
        if self.message:
            data["message"] = self.message
        return data


class SheetSyncService:
    def __init__(
        self,
        store: SlotStore,
        directory: ProfessionalDirectory,
        sheet_url: Optional[str],
        timeout_seconds: float = 15.0,
        max_redirects: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.directory = directory
        self.sheet_url = normalise_sheets_url(sheet_url)
        self.timeout_seconds = timeout_seconds
        self.max_redirects = max_redirects
        self._transport = transport

        self.last_attempt_at: Optional[str] = None
        self.last_success_at: Optional[str] = None
        self.last_error: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.sheet_url)

    async def fetch_csv(self, url: str) -> str:
        """GET the CSV export, following Google's redirect chain"""
        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                max_redirects=self.max_redirects,
                timeout=self.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.TooManyRedirects as e:
            raise SheetFetchError("Too many redirects while fetching sheet") from e
        except httpx.TimeoutException as e:
            raise SheetFetchError(f"Sheet fetch timed out after {self.timeout_seconds}s") from e
        except httpx.RequestError as e:
            raise SheetFetchError(f"Sheet fetch failed: {e}") from e

        if not response.is_success:
            raise SheetFetchError(f"HTTP {response.status_code} fetching sheet")
        return response.text

    async def sync(self) -> SyncResult:
        """
        One sync attempt. Returns a skipped result when no sheet is configured;
        raises SheetSyncError (or a subclass) on failure.
        """
        if not self.configured:
            logger.info("ℹ️ GOOGLE_SHEET_URL not set - skipping sheet sync")
            return SyncResult(skipped=True, message="GOOGLE_SHEET_URL not configured")

        self.last_attempt_at = datetime.now(timezone.utc).isoformat()
        logger.info("🔄 Syncing slots from Google Sheet...")

        try:
            text = await self.fetch_csv(self.sheet_url)
            parsed = parse_slot_csv(text)

            for warning in parsed.warnings:
                logger.warning(f"⚠️ Sheet: {warning}")
            if parsed.errors:
                logger.warning(f"⚠️ Sheet has {len(parsed.errors)} row error(s): {parsed.errors}")

            if not parsed.slots:
                raise SheetSyncError(
                    "No valid slots found in sheet. Check Professional/Date/Time columns."
                )

            count = self.store.reconcile(parsed.slots, SYNC_SOURCE_LABEL)
        except SheetSyncError as e:
            self.last_error = e.message
            raise

        if parsed.has_bio_columns:
            try:
                self.directory.set_professionals(parsed.professionals)
            except Exception as e:
                # directory is a side channel; the slot load already succeeded
                logger.error(f"❌ Professional directory rebuild failed: {str(e)}")

        self.last_error = None
        self.last_success_at = datetime.now(timezone.utc).isoformat()

        professionals = list(dict.fromkeys(s.key[0] for s in parsed.slots))
        logger.info(
            f"✅ Sheet sync complete - {count} slots loaded for: {', '.join(professionals)}"
        )
        return SyncResult(
            count=count,
            errors=parsed.errors,
            warnings=parsed.warnings,
            professionals=professionals,
        )

    async def safe_sync(self) -> Optional[SyncResult]:
        """sync() for background callers: failures are logged, never raised"""
        try:
            return await self.sync()
        except SheetSyncError as e:
            logger.error(f"❌ Sheet sync failed: {e.message}")
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"❌ Sheet sync failed unexpectedly: {str(e)}", exc_info=True)
        return None

    async def run_auto_sync(self, interval_minutes: int) -> None:
        """Sync now, then every interval_minutes until cancelled"""
        if not self.configured:
            logger.info("ℹ️ GOOGLE_SHEET_URL not set - auto-sync disabled")
            return

        logger.info(f"⏱️ Auto-sync enabled - every {interval_minutes} min")
        while True:
            await self.safe_sync()
            await asyncio.sleep(interval_minutes * 60)

    def status(self) -> dict:
        return {
            "configured": self.configured,
            "lastAttemptAt": self.last_attempt_at,
            "lastSuccessAt": self.last_success_at,
            "lastError": self.last_error,
        }
