"""
Error taxonomy for the booking API.

Business-rule errors propagate to the caller and are rendered by the handler
registered in main.py as {"success": false, "error": message}.
"""


class BookingAPIError(Exception):
    """Base class for errors that map to an HTTP response"""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(BookingAPIError):
    """Malformed request or upload - no state was mutated"""

    status_code = 400


class NotFoundError(BookingAPIError):
    """Booking or slot lookup miss"""

    status_code = 404


class SecurityError(BookingAPIError):
    """Signature or amount mismatch - booking left in its prior state"""

    status_code = 400


class SlotUnavailableError(BookingAPIError):
    """Selected slot is no longer available"""

    status_code = 409


class UpstreamError(BookingAPIError):
    """Payment gateway or other remote service failed"""

    status_code = 502


class ConfigurationError(BookingAPIError):
    """A required secret or credential is not configured"""

    status_code = 500


class PaymentNotSuccessfulError(BookingAPIError):
    """Gateway reports the payment in a non-captured state"""

    status_code = 400


# ---------------------------------------------------------------------------
# Sheet sync errors - fatal for one sync attempt only
# ---------------------------------------------------------------------------


class SheetSyncError(BookingAPIError):
    """Raised when a sync attempt must not touch the slot store"""

    status_code = 500


class SheetFetchError(SheetSyncError):
    """Remote sheet could not be fetched (non-2xx, redirects, timeout, network)"""


class SheetParseError(SheetSyncError):
    """Sheet text could not be turned into slot rows"""

    status_code = 400


class MissingColumnError(SheetParseError):
    """A required column (Date or Time) is missing from the header row"""

    def __init__(self, column: str, headers: list[str]):
        super().__init__(f'No "{column}" column found. Headers: {", ".join(headers)}')
        self.column = column
        self.headers = headers


class UnauthorizedError(BookingAPIError):
    """Admin API key missing or wrong"""

    status_code = 401
