"""Booking CSV export"""

import csv
from io import StringIO
from typing import Iterable

from .ledger import Booking

EXPORT_HEADERS = [
    "Booking ID",
    "Session Type",
    "Name",
    "Email",
    "Phone",
    "Date",
    "Time",
    "Base Amount (₹)",
    "Platform Fee (₹)",
    "Total Amount (₹)",
    "Payment Method",
    "Payment Status",
    "Booking Status",
    "Razorpay Order ID",
    "Razorpay Payment ID",
    "Created At",
    "Updated At",
]

# Excel only detects UTF-8 (and the ₹ headers) with a BOM
UTF8_BOM = "\ufeff"


def format_amount(minor_units: int) -> str:
    return f"{minor_units / 100:.2f}"


def booking_row(booking: Booking) -> list[str]:
    return [
        booking.id,
        booking.session_type,
        booking.name,
        booking.email,
        booking.phone or "",
        booking.selected_slot.date,
        booking.selected_slot.time,
        format_amount(booking.pricing.base_amount),
        format_amount(booking.pricing.platform_fee),
        format_amount(booking.pricing.total_amount),
        booking.payment_method,
        booking.payment_status,
        booking.booking_status,
        booking.razorpay_order_id or "",
        booking.razorpay_payment_id or "",
        booking.created_at,
        booking.updated_at,
    ]


def build_bookings_csv(bookings: Iterable[Booking]) -> str:
    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for booking in bookings:
        writer.writerow(booking_row(booking))
    return UTF8_BOM + output.getvalue()
