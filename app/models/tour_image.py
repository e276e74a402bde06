from sqlalchemy import String, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base

class TourImage(Base):
    __tablename__ = "tour_images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tour_id: Mapped[str] = mapped_column(String(36), ForeignKey("tours.id", ondelete="CASCADE"), index=True)
    public_id: Mapped[str] = mapped_column(String(255), default="")  # image host id, used for deletion
    secure_url: Mapped[str] = mapped_column(String(1024))
    alt_text: Mapped[str] = mapped_column(String(255), default="")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "publicId": self.public_id,
            "secureUrl": self.secure_url,
            "altText": self.alt_text,
            "sortOrder": self.sort_order,
        }
