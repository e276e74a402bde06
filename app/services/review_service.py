import uuid
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, NotFound
from app.models.booking import Booking
from app.models.review import Review
from app.models.tour import Tour
from app.models.user import User
from app.schemas.review import ReviewCreate
from app.services.audit_service import log_audit

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "You have already reviewed this tour"


def review_to_dict(r: Review, user: User | None = None, tour: Tour | None = None) -> dict:
    out = {
        "id": r.id,
        "tourId": r.tour_id,
        "userId": r.user_id,
        "rating": r.rating,
        "comment": r.comment,
        "isApproved": r.is_approved,
        "createdAt": r.created_at.isoformat() if r.created_at else None,
    }
    if user is not None:
        out["user"] = user.public_dict()
    if tour is not None:
        out["tour"] = {"id": tour.id, "title": tour.title, "slug": tour.slug}
    return out


def has_paid_booking(db: Session, user_id: str, tour_id: str) -> bool:
    return db.query(Booking.id).filter(
        Booking.user_id == user_id,
        Booking.tour_id == tour_id,
        Booking.payment_status == "PAID",
    ).first() is not None


def create_review(db: Session, body: ReviewCreate, user: User) -> Review:
    if not db.get(Tour, body.tourId):
        raise NotFound("Tour not found")
    if not has_paid_booking(db, user.id, body.tourId):
        raise Forbidden("You must have a confirmed booking to review this tour")
    if db.query(Review.id).filter(Review.tour_id == body.tourId, Review.user_id == user.id).first():
        raise Conflict(DUPLICATE_MESSAGE)

    review = Review(
        id=str(uuid.uuid4()),
        tour_id=body.tourId,
        user_id=user.id,
        rating=body.rating,
        comment=body.comment.strip(),
        is_approved=False,
    )
    db.add(review)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict(DUPLICATE_MESSAGE) from e
    db.refresh(review)
    return review


def list_admin(db: Session, is_approved: bool | None = None) -> list[dict]:
    q = (
        db.query(Review, User, Tour)
        .join(User, User.id == Review.user_id)
        .join(Tour, Tour.id == Review.tour_id)
    )
    if is_approved is not None:
        q = q.filter(Review.is_approved == is_approved)
    return [review_to_dict(r, u, t) for r, u, t in q.order_by(Review.created_at.desc()).all()]


def get_review(db: Session, review_id: str) -> Review:
    r = db.get(Review, review_id)
    if not r:
        raise NotFound("Review not found")
    return r


def set_approval(db: Session, review_id: str, is_approved: bool, actor: User) -> Review:
    r = get_review(db, review_id)
    r.is_approved = is_approved
    log_audit(db, actor.id, "review.approve" if is_approved else "review.unapprove", "review", r.id, {})
    db.commit()
    db.refresh(r)
    return r


def delete_review(db: Session, review_id: str, actor: User) -> None:
    r = get_review(db, review_id)
    log_audit(db, actor.id, "review.delete", "review", r.id, {"tourId": r.tour_id, "userId": r.user_id})
    db.delete(r)
    db.commit()
