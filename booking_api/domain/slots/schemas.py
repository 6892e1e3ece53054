"""Slot admin schemas"""

from typing import Optional

from pydantic import BaseModel, field_validator


class SlotUploadItem(BaseModel):
    date: str = ""
    time: str = ""
    professional: Optional[str] = None


class SlotUploadJsonRequest(BaseModel):
    slots: list[SlotUploadItem]

    @field_validator("slots")
    @classmethod
    def validate_slots(cls, v: list[SlotUploadItem]) -> list[SlotUploadItem]:
        if not v:
            raise ValueError("slots must contain at least one entry")
        return v
