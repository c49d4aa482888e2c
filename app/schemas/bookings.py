"""Booking (lease request) schemas."""
from datetime import date
from decimal import Decimal

from pydantic import Field, model_validator

from app.schemas.agreements import LeaseSummary
from app.schemas.common import APIModel


class BookingCreate(APIModel):
    property_id: str
    start_date: date
    end_date: date
    rent_amount: Decimal = Field(..., gt=0)
    currency_code: str = Field("MYR", min_length=3, max_length=3)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class BookingConfirmResponse(APIModel):
    lease: LeaseSummary
    agreement_id: str
