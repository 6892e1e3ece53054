"""
Process-wide service container

Everything stateful (slot store, ledger, directory) is built once at startup
and hung on app.state. Routers reach it through the get_* dependencies, which
tests override with their own container.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from . import config
from .background import BackgroundTaskRunner
from .domain.bookings.ledger import BookingLedger
from .domain.bookings.service import BookingService, Notifier
from .domain.professionals.directory import ProfessionalDirectory
from .domain.sheets.google_auth import ServiceAccountTokenProvider
from .domain.sheets.sync import SheetSyncService
from .domain.sheets.writeback import SheetWritebackService
from .domain.slots.availability import AvailabilityService
from .domain.slots.store import SlotStore
from .services.razorpay_service import RazorpayClient


@dataclass
class Container:
    store: SlotStore
    availability: AvailabilityService
    ledger: BookingLedger
    directory: ProfessionalDirectory
    sync: SheetSyncService
    writeback: SheetWritebackService
    gateway: RazorpayClient
    runner: BackgroundTaskRunner
    bookings: BookingService


def build_container(
    *,
    sheet_url: Optional[str] = None,
    gateway: Optional[RazorpayClient] = None,
    writeback: Optional[SheetWritebackService] = None,
    notifier: Optional[Notifier] = None,
    webhook_secret: Optional[str] = None,
) -> Container:
    """Wire the services together. Unset arguments fall back to config."""
    store = SlotStore()
    availability = AvailabilityService(store)
    ledger = BookingLedger(id_prefix=config.BOOKING_ID_PREFIX)
    directory = ProfessionalDirectory()
    runner = BackgroundTaskRunner()

    sync = SheetSyncService(
        store,
        directory,
        sheet_url if sheet_url is not None else config.GOOGLE_SHEET_URL,
        timeout_seconds=config.SHEET_FETCH_TIMEOUT_SECONDS,
        max_redirects=config.SHEET_FETCH_MAX_REDIRECTS,
    )
    if writeback is None:
        writeback = SheetWritebackService(
            config.GOOGLE_SHEET_ID,
            ServiceAccountTokenProvider(
                config.GOOGLE_SERVICE_ACCOUNT_EMAIL, config.GOOGLE_SERVICE_ACCOUNT_KEY
            ),
            tab=config.GOOGLE_SHEET_TAB,
        )
    if gateway is None:
        gateway = RazorpayClient(
            config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET, api_url=config.RAZORPAY_API_URL
        )
    if notifier is None:
        from .email_service import send_booking_confirmation

        notifier = send_booking_confirmation

    bookings = BookingService(
        ledger,
        availability,
        gateway,
        runner,
        writeback=writeback,
        notifier=notifier,
        webhook_secret=webhook_secret if webhook_secret is not None else config.RAZORPAY_WEBHOOK_SECRET,
        notes_prefix=config.BOOKING_ID_PREFIX,
    )

    return Container(
        store=store,
        availability=availability,
        ledger=ledger,
        directory=directory,
        sync=sync,
        writeback=writeback,
        gateway=gateway,
        runner=runner,
        bookings=bookings,
    )


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_booking_service(request: Request) -> BookingService:
    """Dependency injection for BookingService"""
    return get_container(request).bookings
