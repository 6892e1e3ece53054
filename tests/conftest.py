import os

# must be set before booking_api.config is imported
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["EXPORT_API_KEY"] = "admin-test-key"
os.environ["GOOGLE_SHEET_URL"] = ""
os.environ["GOOGLE_SHEET_ID"] = ""
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec_test"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from booking_api.dependencies import build_container  # noqa: E402
from booking_api.domain.slots.store import SlotInput  # noqa: E402
from booking_api.services.razorpay_service import RazorpayClient  # noqa: E402
from helpers import (  # noqa: E402
    KEY_ID,
    KEY_SECRET,
    WEBHOOK_SECRET,
    FakeRazorpay,
    FakeWriteback,
    RecordingNotifier,
)

TEST_SLOTS = [
    SlotInput(professional="Dr. Priya", date="Monday, Mar 3", time="10:00 AM"),
    SlotInput(professional="Dr. Priya", date="Monday, Mar 3", time="2:00 PM"),
    SlotInput(professional="Dr. Arjun", date="Monday, Mar 3", time="10:00 AM"),
]


@pytest.fixture
def razorpay():
    return FakeRazorpay()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def writeback():
    return FakeWriteback()


@pytest.fixture
def container(razorpay, notifier, writeback):
    c = build_container(
        sheet_url="",
        gateway=RazorpayClient(KEY_ID, KEY_SECRET, transport=razorpay.transport()),
        writeback=writeback,
        notifier=notifier,
        webhook_secret=WEBHOOK_SECRET,
    )
    c.store.reconcile(TEST_SLOTS, "test")
    return c


@pytest.fixture
def client(container):
    from booking_api.main import create_app

    with TestClient(create_app(container)) as test_client:
        yield test_client
