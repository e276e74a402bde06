import json
from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Boolean, Text, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

CATEGORIES = ("ADVENTURE", "FAMILY", "HONEYMOON", "WEEKEND", "CULTURAL", "OTHER")

class Tour(Base):
    __tablename__ = "tours"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(220), unique=True, index=True)
    location_country: Mapped[str] = mapped_column(String(120), index=True)
    location_city: Mapped[str] = mapped_column(String(120), index=True)
    category: Mapped[str] = mapped_column(String(20), index=True, default="OTHER")
    duration_days: Mapped[int] = mapped_column(Integer)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    discount_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    max_group_size: Mapped[int] = mapped_column(Integer, default=20)
    description: Mapped[str] = mapped_column(Text, default="")
    highlights_json: Mapped[str] = mapped_column(Text, default="[]")  # list[str]
    itinerary_json: Mapped[str] = mapped_column(Text, default="[]")   # list[{day, title, description}]
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    seo_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    seo_description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                                                 onupdate=lambda: datetime.now(timezone.utc))

    @property
    def highlights(self) -> list:
        return json.loads(self.highlights_json or "[]")

    @highlights.setter
    def highlights(self, value: list) -> None:
        self.highlights_json = json.dumps(list(value or []), ensure_ascii=False)

    @property
    def itinerary(self) -> list:
        return json.loads(self.itinerary_json or "[]")

    @itinerary.setter
    def itinerary(self, value: list) -> None:
        self.itinerary_json = json.dumps(list(value or []), ensure_ascii=False)

    @property
    def price_per_person(self) -> Decimal:
        return self.discount_price if self.discount_price is not None else self.base_price
