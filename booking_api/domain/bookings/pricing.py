"""Session pricing. Amounts are in paise (1 INR = 100 paise), GST inclusive."""

from dataclasses import dataclass

from ...exceptions import ValidationError

CURRENCY = "INR"

SESSION_NORMAL = "normal"
SESSION_PRIORITY = "priority"
SESSION_TYPES = (SESSION_NORMAL, SESSION_PRIORITY)

# (base amount, platform fee) in paise
PRICE_TABLE = {
    SESSION_NORMAL: (60000, 1300),  # ₹613 total
    SESSION_PRIORITY: (100000, 2000),  # ₹1020 total
}


@dataclass(frozen=True)
class PricingSnapshot:
    """Captured on the booking at order creation and never recomputed"""

    base_amount: int
    platform_fee: int
    total_amount: int
    currency: str = CURRENCY

    @property
    def display_amount(self) -> int:
        return self.total_amount // 100

    def to_dict(self) -> dict:
        return {
            "baseAmount": self.base_amount,
            "platformFee": self.platform_fee,
            "totalAmount": self.total_amount,
            "displayAmount": self.display_amount,
            "currency": self.currency,
        }


def get_pricing(session_type: str) -> PricingSnapshot:
    if session_type not in PRICE_TABLE:
        raise ValidationError('Invalid session type. Must be "normal" or "priority"')
    base, fee = PRICE_TABLE[session_type]
    return PricingSnapshot(base_amount=base, platform_fee=fee, total_amount=base + fee)


def get_priority_pricing() -> PricingSnapshot:
    return get_pricing(SESSION_PRIORITY)
