import math
import re
import uuid
from dataclasses import dataclass

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.errors import Conflict, NotFound, ValidationFailed
from app.models.booking import Booking
from app.models.review import Review
from app.models.tour import Tour, CATEGORIES
from app.models.tour_image import TourImage
from app.models.user import User
from app.schemas.tour import TourCreate, TourUpdate, TourImageIn
from app.services.audit_service import log_audit
from app.services.cloudinary_client import delete_images_best_effort


def slugify(text: str) -> str:
    s = (text or "").lower().strip()
    s = re.sub(r"[^\w\s-]", "", s)
    s = re.sub(r"[\s_-]+", "-", s)
    return s.strip("-")


def _money(v):
    return float(v) if v is not None else None


@dataclass
class TourFilters:
    country: str | None = None
    city: str | None = None
    category: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    min_duration: int | None = None
    max_duration: int | None = None
    search: str | None = None


def rating_stats(db: Session, tour_ids: list[str]) -> dict[str, tuple[float, int]]:
    """Average and count of approved ratings, recomputed on every read."""
    if not tour_ids:
        return {}
    rows = (
        db.query(Review.tour_id, func.avg(Review.rating), func.count(Review.id))
        .filter(Review.tour_id.in_(tour_ids), Review.is_approved == True)  # noqa: E712
        .group_by(Review.tour_id)
        .all()
    )
    return {tid: (round(float(avg or 0), 2), int(cnt)) for tid, avg, cnt in rows}


def average_rating(db: Session, tour_id: str) -> float:
    return rating_stats(db, [tour_id]).get(tour_id, (0.0, 0))[0]


def images_for(db: Session, tour_ids: list[str]) -> dict[str, list[TourImage]]:
    out: dict[str, list[TourImage]] = {tid: [] for tid in tour_ids}
    if not tour_ids:
        return out
    for img in (
        db.query(TourImage)
        .filter(TourImage.tour_id.in_(tour_ids))
        .order_by(TourImage.tour_id, TourImage.sort_order.asc())
        .all()
    ):
        out[img.tour_id].append(img)
    return out


def _counts(db: Session, model, tour_ids: list[str]) -> dict[str, int]:
    if not tour_ids:
        return {}
    rows = db.query(model.tour_id, func.count(model.id)).filter(model.tour_id.in_(tour_ids)).group_by(model.tour_id).all()
    return {tid: int(n) for tid, n in rows}


def tour_to_dict(t: Tour, images: list[TourImage] | None = None, **extra) -> dict:
    out = {
        "id": t.id,
        "title": t.title,
        "slug": t.slug,
        "locationCountry": t.location_country,
        "locationCity": t.location_city,
        "category": t.category,
        "durationDays": t.duration_days,
        "basePrice": _money(t.base_price),
        "discountPrice": _money(t.discount_price),
        "maxGroupSize": t.max_group_size,
        "description": t.description,
        "highlights": t.highlights,
        "itinerary": t.itinerary,
        "isPublished": t.is_published,
        "seoTitle": t.seo_title,
        "seoDescription": t.seo_description,
        "createdAt": t.created_at.isoformat() if t.created_at else None,
        "updatedAt": t.updated_at.isoformat() if t.updated_at else None,
    }
    if images is not None:
        out["images"] = [i.to_dict() for i in images]
    out.update(extra)
    return out


def _paginate(total: int, page: int, limit: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "totalPages": math.ceil(total / limit) if limit else 0}


def _listing(db: Session, query, page: int, limit: int) -> tuple[list[dict], dict]:
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    total = query.count()
    tours = query.order_by(Tour.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    ids = [t.id for t in tours]
    imgs = images_for(db, ids)
    stats = rating_stats(db, ids)
    review_counts = _counts(db, Review, ids)
    booking_counts = _counts(db, Booking, ids)
    items = [
        tour_to_dict(
            t,
            images=imgs[t.id][:1],
            averageRating=stats.get(t.id, (0.0, 0))[0],
            _count={"reviews": review_counts.get(t.id, 0), "bookings": booking_counts.get(t.id, 0)},
        )
        for t in tours
    ]
    return items, _paginate(total, page, limit)


def list_published(db: Session, filters: TourFilters, page: int = 1, limit: int = 12) -> tuple[list[dict], dict]:
    q = db.query(Tour).filter(Tour.is_published == True)  # noqa: E712
    if filters.country:
        q = q.filter(Tour.location_country == filters.country)
    if filters.city:
        q = q.filter(Tour.location_city == filters.city)
    if filters.category:
        q = q.filter(Tour.category == filters.category.upper())
    if filters.min_price is not None:
        q = q.filter(Tour.base_price >= filters.min_price)
    if filters.max_price is not None:
        q = q.filter(Tour.base_price <= filters.max_price)
    if filters.min_duration is not None:
        q = q.filter(Tour.duration_days >= filters.min_duration)
    if filters.max_duration is not None:
        q = q.filter(Tour.duration_days <= filters.max_duration)
    if filters.search:
        like = f"%{filters.search.lower()}%"
        q = q.filter(or_(
            func.lower(Tour.title).like(like),
            func.lower(Tour.description).like(like),
            func.lower(Tour.location_city).like(like),
            func.lower(Tour.location_country).like(like),
        ))
    return _listing(db, q, page, limit)


def list_admin(db: Session, search: str | None = None, is_published: bool | None = None,
               page: int = 1, limit: int = 20) -> tuple[list[dict], dict]:
    q = db.query(Tour)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(
            func.lower(Tour.title).like(like),
            func.lower(Tour.location_city).like(like),
            func.lower(Tour.location_country).like(like),
        ))
    if is_published is not None:
        q = q.filter(Tour.is_published == is_published)
    return _listing(db, q, page, limit)


def approved_reviews(db: Session, tour_id: str) -> list[dict]:
    rows = (
        db.query(Review, User)
        .join(User, User.id == Review.user_id)
        .filter(Review.tour_id == tour_id, Review.is_approved == True)  # noqa: E712
        .order_by(Review.created_at.desc())
        .all()
    )
    return [
        {
            "id": r.id,
            "rating": r.rating,
            "comment": r.comment,
            "createdAt": r.created_at.isoformat() if r.created_at else None,
            "user": {"id": u.id, "name": u.name},
        }
        for r, u in rows
    ]


def get_published_by_slug(db: Session, slug: str) -> dict:
    t = db.query(Tour).filter(Tour.slug == slug, Tour.is_published == True).first()  # noqa: E712
    if not t:
        raise NotFound("Tour not found")
    reviews = approved_reviews(db, t.id)
    avg = round(sum(r["rating"] for r in reviews) / len(reviews), 2) if reviews else 0
    return tour_to_dict(t, images=images_for(db, [t.id])[t.id], reviews=reviews, averageRating=avg)


def get_tour(db: Session, tour_id: str) -> Tour:
    t = db.get(Tour, tour_id)
    if not t:
        raise NotFound("Tour not found")
    return t


def destinations(db: Session) -> list[dict]:
    rows = (
        db.query(Tour.location_country, func.count(Tour.id))
        .filter(Tour.is_published == True)  # noqa: E712
        .group_by(Tour.location_country)
        .order_by(func.count(Tour.id).desc(), Tour.location_country.asc())
        .all()
    )
    return [{"country": c, "tourCount": int(n)} for c, n in rows]


def _check_category(category: str) -> str:
    c = (category or "").upper()
    if c not in CATEGORIES:
        raise ValidationFailed(f"category must be one of {', '.join(CATEGORIES)}")
    return c


def _ensure_slug_free(db: Session, slug: str, exclude_id: str | None = None) -> None:
    if not slug:
        raise ValidationFailed("slug cannot be empty")
    q = db.query(Tour).filter(Tour.slug == slug)
    if exclude_id:
        q = q.filter(Tour.id != exclude_id)
    if q.first():
        raise Conflict("A tour with this slug already exists")


def _replace_images(db: Session, tour: Tour, images: list[TourImageIn]) -> list[str]:
    """Swap the image set in order; return host ids no longer referenced."""
    old = db.query(TourImage).filter(TourImage.tour_id == tour.id).all()
    keep = {i.public_id for i in images if i.public_id}
    dropped = [o.public_id for o in old if o.public_id and o.public_id not in keep]
    for o in old:
        db.delete(o)
    db.flush()
    for idx, img in enumerate(images):
        db.add(TourImage(
            id=str(uuid.uuid4()),
            tour_id=tour.id,
            public_id=img.public_id or "",
            secure_url=img.secure_url,
            alt_text=img.alt_text or tour.title,
            sort_order=idx,
        ))
    return dropped


def create_tour(db: Session, body: TourCreate, actor: User) -> dict:
    slug = slugify(body.slug) if body.slug else slugify(body.title)
    _ensure_slug_free(db, slug)
    t = Tour(
        id=str(uuid.uuid4()),
        title=body.title.strip(),
        slug=slug,
        location_country=body.locationCountry.strip(),
        location_city=body.locationCity.strip(),
        category=_check_category(body.category),
        duration_days=body.durationDays,
        base_price=body.basePrice,
        discount_price=body.discountPrice or None,
        max_group_size=body.maxGroupSize,
        description=body.description,
        is_published=body.isPublished,
        seo_title=body.seoTitle,
        seo_description=body.seoDescription,
    )
    t.highlights = body.highlights
    t.itinerary = [d.model_dump() for d in body.itinerary]
    db.add(t)
    db.flush()
    _replace_images(db, t, body.images)
    log_audit(db, actor.id, "tour.create", "tour", t.id, {"slug": slug})
    db.commit()
    return tour_to_dict(t, images=images_for(db, [t.id])[t.id])


def update_tour(db: Session, tour_id: str, body: TourUpdate, actor: User) -> dict:
    t = get_tour(db, tour_id)
    sent = body.model_fields_set

    if body.slug or body.title:
        slug = slugify(body.slug or body.title)
        if slug != t.slug:
            _ensure_slug_free(db, slug, exclude_id=t.id)
            t.slug = slug
    if body.title:
        t.title = body.title.strip()
    if body.locationCountry:
        t.location_country = body.locationCountry.strip()
    if body.locationCity:
        t.location_city = body.locationCity.strip()
    if body.category:
        t.category = _check_category(body.category)
    if body.durationDays:
        t.duration_days = body.durationDays
    if body.basePrice:
        t.base_price = body.basePrice
    if "discountPrice" in sent:
        t.discount_price = body.discountPrice or None
    if body.maxGroupSize:
        t.max_group_size = body.maxGroupSize
    if body.description:
        t.description = body.description
    if body.highlights is not None:
        t.highlights = body.highlights
    if body.itinerary is not None:
        t.itinerary = [d.model_dump() for d in body.itinerary]
    if body.isPublished is not None:
        t.is_published = body.isPublished
    if "seoTitle" in sent:
        t.seo_title = body.seoTitle
    if "seoDescription" in sent:
        t.seo_description = body.seoDescription

    dropped: list[str] = []
    if body.images is not None:
        dropped = _replace_images(db, t, body.images)

    log_audit(db, actor.id, "tour.update", "tour", t.id, {"fields": sorted(sent)})
    db.commit()
    delete_images_best_effort(db, dropped)
    return tour_to_dict(t, images=images_for(db, [t.id])[t.id])


def delete_tour(db: Session, tour_id: str, actor: User) -> None:
    t = get_tour(db, tour_id)
    if db.query(Booking.id).filter(Booking.tour_id == t.id).first():
        raise Conflict("Tour has bookings; unpublish it instead of deleting")
    images = db.query(TourImage).filter(TourImage.tour_id == t.id).all()
    public_ids = [i.public_id for i in images]
    for i in images:
        db.delete(i)
    db.query(Review).filter(Review.tour_id == t.id).delete(synchronize_session=False)
    log_audit(db, actor.id, "tour.delete", "tour", t.id, {"slug": t.slug})
    db.delete(t)
    db.commit()
    delete_images_best_effort(db, public_ids)
