from decimal import Decimal
from sqlalchemy import String, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # 1:1 with a booking; the unique index rejects a second row from a racing confirm
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, index=True)
    provider: Mapped[str] = mapped_column(String(40), default="RAZORPAY")
    provider_payment_id: Mapped[str] = mapped_column(String(120), index=True, default="")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    status: Mapped[str] = mapped_column(String(20), default="succeeded")  # succeeded, failed, refunded
    refund_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bookingId": self.booking_id,
            "provider": self.provider,
            "providerPaymentId": self.provider_payment_id,
            "amount": float(self.amount),
            "currency": self.currency,
            "status": self.status,
            "refundId": self.refund_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
