"""Booking domain schemas - Pydantic models for validation"""

from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, field_validator

from ...shared.validators import require_text, validate_phone


class SelectedSlotIn(BaseModel):
    date: str
    time: str
    professional: Optional[str] = None

    @field_validator("date", "time")
    @classmethod
    def validate_required(cls, v: str, info) -> str:
        return require_text(v, f"{info.field_name.capitalize()} is required")

    @field_validator("professional")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() or None if v else None


class CreateBookingRequest(BaseModel):
    """Schema for creating a booking + payment order"""

    sessionType: Literal["normal", "priority"]
    name: str
    email: EmailStr
    phone: Optional[str] = None
    selectedSlot: SelectedSlotIn
    paymentMethod: Literal["card", "upi"]
    # older clients send the professional at the top level
    professional: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return require_text(v, "Name is required")

    @field_validator("phone")
    @classmethod
    def validate_phone_number(cls, v: Optional[str]) -> Optional[str]:
        return validate_phone(v)

    @property
    def slot_professional(self) -> Optional[str]:
        return self.selectedSlot.professional or (self.professional or "").strip() or None


class VerifyPaymentRequest(BaseModel):
    orderId: str
    paymentId: str
    signature: str

    @field_validator("orderId", "paymentId", "signature")
    @classmethod
    def validate_required(cls, v: str, info) -> str:
        labels = {"orderId": "Order ID", "paymentId": "Payment ID", "signature": "Signature"}
        return require_text(v, f"{labels[info.field_name]} is required")


class PaymentFailureRequest(BaseModel):
    orderId: str

    @field_validator("orderId")
    @classmethod
    def validate_order_id(cls, v: str) -> str:
        return require_text(v, "Order ID is required")
