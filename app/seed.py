import uuid
import json
from decimal import Decimal
import logging

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from app.db.session import SessionLocal
from app.core.config import settings
from app.core.security import hash_password
from app.models.user import User
from app.models.tour import Tour
from app.models.tour_image import TourImage
from app.models.homepage_content import HomepageContent
from app.models.setting import Setting

logger = logging.getLogger(__name__)

SAMPLE_TOURS = [
    {
        "title": "Paris Weekend Getaway",
        "slug": "paris-weekend-getaway",
        "country": "France", "city": "Paris", "category": "WEEKEND",
        "days": 3, "base": "899.99", "discount": "799.99", "group": 20,
        "description": "Experience the romance and charm of Paris in this weekend getaway. "
                       "Visit iconic landmarks, enjoy world-class cuisine and immerse yourself in French culture.",
        "highlights": ["Eiffel Tower visit", "Seine River cruise", "Louvre Museum guided tour",
                       "Traditional French dinner"],
        "itinerary": [
            {"day": 1, "title": "Arrival & City Tour", "description": "Check in and take a guided city tour."},
            {"day": 2, "title": "Museums & Culture", "description": "The Louvre, then a Seine cruise."},
            {"day": 3, "title": "Departure", "description": "Free morning, then departure."},
        ],
        "images": [("sample/paris1", "https://images.unsplash.com/photo-1502602898657-3e91760cbb34?w=800",
                    "Eiffel Tower at sunset")],
    },
    {
        "title": "Safari Adventure in Kenya",
        "slug": "safari-adventure-kenya",
        "country": "Kenya", "city": "Nairobi", "category": "ADVENTURE",
        "days": 7, "base": "2499.99", "discount": None, "group": 12,
        "description": "A wildlife safari through Kenya's most famous national parks. "
                       "Witness the Big Five and experience Maasai culture.",
        "highlights": ["Game drives in Maasai Mara", "Big Five wildlife spotting", "Hot air balloon safari"],
        "itinerary": [
            {"day": 1, "title": "Arrival in Nairobi", "description": "Transfer to hotel and briefing."},
            {"day": 2, "title": "Maasai Mara", "description": "Drive to the Mara, afternoon game drive."},
        ],
        "images": [("sample/kenya1", "https://images.unsplash.com/photo-1516426122078-c23e76319801?w=800",
                    "Lion in Maasai Mara")],
    },
    {
        "title": "Tropical Honeymoon in Maldives",
        "slug": "tropical-honeymoon-maldives",
        "country": "Maldives", "city": "Malé", "category": "HONEYMOON",
        "days": 5, "base": "3499.99", "discount": "2999.99", "group": 2,
        "description": "Celebrate in paradise with overwater villas, pristine beaches and spa treatments.",
        "highlights": ["Overwater villa", "Private beach dinners", "Couples spa treatments"],
        "itinerary": [
            {"day": 1, "title": "Arrival", "description": "Seaplane transfer to the resort."},
        ],
        "images": [],
    },
]


def ensure_user(db: Session, email: str, password: str, role: str, name: str, phone: str | None = None):
    u = db.query(User).filter(User.email == email).first()
    if u:
        return
    db.add(
        User(
            id=str(uuid.uuid4()),
            email=email,
            name=name,
            phone=phone,
            role=role,
            password_hash=hash_password(password),
            is_active=True,
        )
    )
    db.commit()


def ensure_tour(db: Session, data: dict):
    if db.query(Tour).filter(Tour.slug == data["slug"]).first():
        return
    t = Tour(
        id=str(uuid.uuid4()),
        title=data["title"],
        slug=data["slug"],
        location_country=data["country"],
        location_city=data["city"],
        category=data["category"],
        duration_days=data["days"],
        base_price=Decimal(data["base"]),
        discount_price=Decimal(data["discount"]) if data["discount"] else None,
        max_group_size=data["group"],
        description=data["description"],
        is_published=True,
    )
    t.highlights = data["highlights"]
    t.itinerary = data["itinerary"]
    db.add(t)
    db.flush()
    for i, (public_id, url, alt) in enumerate(data["images"]):
        db.add(TourImage(id=str(uuid.uuid4()), tour_id=t.id, public_id=public_id,
                         secure_url=url, alt_text=alt, sort_order=i))
    db.commit()


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, "admin@travel.com", "admin123", "ADMIN", "Admin User", "+1234567890")
        ensure_user(db, "john@example.com", "password123", "CUSTOMER", "John Doe", "+1234567891")
        ensure_user(db, "jane@example.com", "password123", "CUSTOMER", "Jane Smith", "+1234567892")

        for data in SAMPLE_TOURS:
            ensure_tour(db, data)

        if not db.get(HomepageContent, "HERO_SECTION"):
            db.add(HomepageContent(key="HERO_SECTION", content_json=json.dumps({
                "title": "Discover Your Next Adventure",
                "subtitle": "Handpicked tours to the world's most beautiful destinations",
            })))
        if not db.get(Setting, "supportEmail"):
            db.add(Setting(key="supportEmail", value_json=json.dumps(settings.SUPPORT_EMAIL)))
        db.commit()
        logger.info("Seed complete")
    finally:
        db.close()


if __name__ == "__main__":
    from app.core.logging import setup_logging
    setup_logging()
    run()
