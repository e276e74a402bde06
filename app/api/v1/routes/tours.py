from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.errors import NotFound, ok
from app.models.tour import Tour
from app.services import tour_service

router = APIRouter(tags=["tours"])


@router.get("/tours")
def list_tours(country: Optional[str] = None, city: Optional[str] = None, category: Optional[str] = None,
               minPrice: Optional[float] = None, maxPrice: Optional[float] = None,
               minDuration: Optional[int] = None, maxDuration: Optional[int] = None,
               search: Optional[str] = None, page: int = 1, limit: int = 12,
               db: Session = Depends(get_db)):
    """Published tours with filters; each item carries its cover image and average rating."""
    filters = tour_service.TourFilters(
        country=country, city=city, category=category,
        min_price=minPrice, max_price=maxPrice,
        min_duration=minDuration, max_duration=maxDuration,
        search=search,
    )
    items, pagination = tour_service.list_published(db, filters, page=page, limit=limit)
    return ok(items, pagination=pagination)


@router.get("/tours/destinations")
def list_destinations(db: Session = Depends(get_db)):
    return ok(tour_service.destinations(db))


@router.get("/tours/{slug}")
def get_tour(slug: str, db: Session = Depends(get_db)):
    return ok(tour_service.get_published_by_slug(db, slug))


@router.get("/tours/{slug}/reviews")
def get_tour_reviews(slug: str, db: Session = Depends(get_db)):
    t = db.query(Tour).filter(Tour.slug == slug).first()
    if not t:
        raise NotFound("Tour not found")
    return ok(tour_service.approved_reviews(db, t.id))
