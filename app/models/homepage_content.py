import json
from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

class HomepageContent(Base):
    __tablename__ = "homepage_content"

    key: Mapped[str] = mapped_column(String(80), primary_key=True)  # HERO_SECTION, TESTIMONIALS, FAQ, ...
    content_json: Mapped[str] = mapped_column(Text, default="null")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                                                 onupdate=lambda: datetime.now(timezone.utc))

    @property
    def content(self):
        return json.loads(self.content_json or "null")

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "content": self.content,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
