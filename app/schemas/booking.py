from datetime import date
from decimal import Decimal
from pydantic import BaseModel, Field, model_validator
from typing import Optional


class BookingCreate(BaseModel):
    tourId: str
    startDate: date
    endDate: date
    adults: int = Field(ge=1)
    children: int = Field(default=0, ge=0)
    specialRequests: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.endDate < self.startDate:
            raise ValueError("endDate must not be before startDate")
        return self


class AdminBookingUpdate(BaseModel):
    # Status fields: always editable. Detail fields: only while fully pending.
    bookingStatus: Optional[str] = None
    paymentStatus: Optional[str] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    adults: Optional[int] = Field(default=None, ge=1)
    children: Optional[int] = Field(default=None, ge=0)
    totalAmount: Optional[Decimal] = Field(default=None, ge=0)

    def detail_changes(self) -> dict:
        fields = ("startDate", "endDate", "adults", "children", "totalAmount")
        return {f: getattr(self, f) for f in fields if getattr(self, f) is not None}
