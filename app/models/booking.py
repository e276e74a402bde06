from datetime import date, datetime, timezone
from decimal import Decimal
from sqlalchemy import String, Integer, Date, DateTime, Numeric, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base

BOOKING_STATUSES = ("PENDING", "CONFIRMED", "CANCELLED")
PAYMENT_STATUSES = ("PENDING", "PAID", "FAILED", "REFUNDED")

class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    reference: Mapped[str] = mapped_column(String(32), unique=True, index=True)

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    tour_id: Mapped[str] = mapped_column(String(36), ForeignKey("tours.id"), index=True)

    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    adults: Mapped[int] = mapped_column(Integer, default=1)
    children: Mapped[int] = mapped_column(Integer, default=0)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    booking_status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)  # PENDING|CONFIRMED|CANCELLED
    payment_status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)  # PENDING|PAID|FAILED|REFUNDED

    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    gateway_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                                                 onupdate=lambda: datetime.now(timezone.utc))

    @property
    def is_fully_pending(self) -> bool:
        return self.booking_status == "PENDING" and self.payment_status == "PENDING"
