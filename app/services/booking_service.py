import math
import random
import string
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
import logging

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.models.booking import Booking, BOOKING_STATUSES, PAYMENT_STATUSES
from app.models.payment import Payment
from app.models.tour import Tour
from app.models.tour_image import TourImage
from app.models.user import User
from app.schemas.booking import BookingCreate, AdminBookingUpdate
from app.services import email_templates
from app.services.audit_service import log_audit
from app.services.email_service import notify_best_effort
from app.services.razorpay_client import RazorpayError, get_client

logger = logging.getLogger(__name__)

CHILD_RATE = Decimal("0.5")
CENT = Decimal("0.01")


def calculate_total_price(price_per_person: Decimal, adults: int, children: int = 0) -> Decimal:
    price = Decimal(str(price_per_person))
    total = price * adults + price * CHILD_RATE * children
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


def make_booking_ref() -> str:
    stamp = datetime.now(timezone.utc).strftime("%y%m%d%H%M%S")
    return "BK" + stamp + "".join(random.choices(string.ascii_uppercase + string.digits, k=4))


def format_money(amount, currency: str = "INR") -> str:
    return f"{currency} {Decimal(str(amount)).quantize(CENT):,}"


def booking_email_data(db: Session, b: Booking) -> tuple[email_templates.BookingEmailData, User]:
    tour = db.get(Tour, b.tour_id)
    user = db.get(User, b.user_id)
    data = email_templates.BookingEmailData(
        booking_id=b.id,
        reference=b.reference,
        tour_title=tour.title if tour else "",
        user_name=user.name if user else "",
        start_date=b.start_date.isoformat(),
        end_date=b.end_date.isoformat(),
        adults=b.adults,
        children=b.children,
        total_amount=format_money(b.total_amount, b.currency),
        location=f"{tour.location_city}, {tour.location_country}" if tour else "",
        user_email=user.email if user else "",
        user_phone=(user.phone or "") if user else "",
    )
    return data, user


def cover_images(db: Session, tour_ids: list[str]) -> dict[str, dict]:
    out: dict[str, dict] = {}
    if not tour_ids:
        return out
    rows = (
        db.query(TourImage)
        .filter(TourImage.tour_id.in_(tour_ids))
        .order_by(TourImage.tour_id, TourImage.sort_order.asc())
        .all()
    )
    for img in rows:
        out.setdefault(img.tour_id, img.to_dict())
    return out


def booking_to_dict(b: Booking, tour: Tour | None = None, cover: dict | None = None,
                    payment: Payment | None = None, user: User | None = None) -> dict:
    out = {
        "id": b.id,
        "reference": b.reference,
        "userId": b.user_id,
        "tourId": b.tour_id,
        "startDate": b.start_date.isoformat() if b.start_date else None,
        "endDate": b.end_date.isoformat() if b.end_date else None,
        "adults": b.adults,
        "children": b.children,
        "totalAmount": float(b.total_amount),
        "currency": b.currency,
        "bookingStatus": b.booking_status,
        "paymentStatus": b.payment_status,
        "specialRequests": b.special_requests,
        "createdAt": b.created_at.isoformat() if b.created_at else None,
        "updatedAt": b.updated_at.isoformat() if b.updated_at else None,
    }
    if tour is not None:
        out["tour"] = {
            "id": tour.id,
            "title": tour.title,
            "slug": tour.slug,
            "locationCity": tour.location_city,
            "locationCountry": tour.location_country,
            "durationDays": tour.duration_days,
            "image": cover,
        }
    if payment is not None:
        out["payment"] = payment.to_dict()
    if user is not None:
        out["user"] = {"id": user.id, "name": user.name, "email": user.email, "phone": user.phone}
    return out


def _expand(db: Session, bookings: list[Booking], with_user: bool = False) -> list[dict]:
    tour_ids = list({b.tour_id for b in bookings})
    tours = {t.id: t for t in db.query(Tour).filter(Tour.id.in_(tour_ids)).all()} if tour_ids else {}
    covers = cover_images(db, tour_ids)
    users = {}
    if with_user:
        user_ids = list({b.user_id for b in bookings})
        users = {u.id: u for u in db.query(User).filter(User.id.in_(user_ids)).all()} if user_ids else {}
    return [
        booking_to_dict(b, tours.get(b.tour_id), covers.get(b.tour_id), user=users.get(b.user_id))
        for b in bookings
    ]


def create_booking(db: Session, body: BookingCreate, user: User) -> Booking:
    tour = db.get(Tour, body.tourId)
    if not tour or not tour.is_published:
        raise NotFound("Tour not found")

    # reference must be unique
    for _ in range(10):
        ref = make_booking_ref()
        if not db.query(Booking.id).filter(Booking.reference == ref).first():
            break
    else:
        raise Conflict("could not allocate booking reference")

    booking = Booking(
        id=str(uuid.uuid4()),
        reference=ref,
        user_id=user.id,
        tour_id=tour.id,
        start_date=body.startDate,
        end_date=body.endDate,
        adults=body.adults,
        children=body.children,
        total_amount=calculate_total_price(tour.price_per_person, body.adults, body.children),
        booking_status="PENDING",
        payment_status="PENDING",
        special_requests=body.specialRequests,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s created for tour %s", booking.reference, tour.slug)
    return booking


def list_user_bookings(db: Session, user: User) -> list[dict]:
    bookings = (
        db.query(Booking)
        .filter(Booking.user_id == user.id)
        .order_by(Booking.created_at.desc())
        .all()
    )
    return _expand(db, bookings)


def get_booking(db: Session, booking_id: str) -> Booking:
    b = db.get(Booking, booking_id)
    if not b:
        raise NotFound("Booking not found")
    return b


def get_owned_booking(db: Session, booking_id: str, user: User, allow_admin: bool = True) -> Booking:
    b = get_booking(db, booking_id)
    if b.user_id != user.id and not (allow_admin and user.role == "ADMIN"):
        raise Forbidden("Not authorized to access this booking")
    return b


def booking_detail(db: Session, b: Booking, with_user: bool = False) -> dict:
    tour = db.get(Tour, b.tour_id)
    payment = db.query(Payment).filter(Payment.booking_id == b.id).first()
    user = db.get(User, b.user_id) if with_user else None
    return booking_to_dict(b, tour, cover_images(db, [b.tour_id]).get(b.tour_id), payment=payment, user=user)


def cancel_booking(db: Session, booking_id: str, user: User) -> tuple[Booking, str | None]:
    """Cancel and, for a paid booking, try a full refund.

    A refund failure is logged and leaves payment_status at PAID so the
    payment can be reconciled by hand; the booking is cancelled either way.
    """
    b = get_owned_booking(db, booking_id, user, allow_admin=False)
    if b.booking_status == "CANCELLED":
        raise ValidationFailed("Booking is already cancelled")

    refund_id = None
    payment = db.query(Payment).filter(Payment.booking_id == b.id).first()
    if b.payment_status == "PAID" and payment is not None:
        try:
            refund = get_client(db).refund_payment(payment.provider_payment_id)
            refund_id = refund.get("id")
        except RazorpayError:
            logger.exception("Refund failed for booking %s (payment %s)", b.reference, payment.provider_payment_id)
        if refund_id:
            b.payment_status = "REFUNDED"
            payment.status = "refunded"
            payment.refund_id = refund_id

    b.booking_status = "CANCELLED"
    log_audit(db, user.id, "booking.cancel", "booking", b.id,
              {"reference": b.reference, "refundId": refund_id, "paymentStatus": b.payment_status})
    db.commit()
    db.refresh(b)

    data, owner = booking_email_data(db, b)
    if owner:
        notify_best_effort(db, owner.email, email_templates.booking_cancellation(data, refund_id),
                           kind="booking_cancellation", related_booking_id=b.id)
    return b, refund_id


def admin_list_bookings(db: Session, booking_status: str | None = None, payment_status: str | None = None,
                        tour_id: str | None = None, user_id: str | None = None, q: str | None = None,
                        page: int = 1, limit: int = 20) -> tuple[list[dict], dict]:
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    query = db.query(Booking)
    if booking_status:
        query = query.filter(Booking.booking_status == booking_status.upper())
    if payment_status:
        query = query.filter(Booking.payment_status == payment_status.upper())
    if tour_id:
        query = query.filter(Booking.tour_id == tour_id)
    if user_id:
        query = query.filter(Booking.user_id == user_id)
    if q:
        like = f"%{q.lower()}%"
        query = query.join(User, User.id == Booking.user_id).filter(
            or_(func.lower(Booking.reference).like(like), func.lower(User.email).like(like))
        )
    total = query.count()
    rows = query.order_by(Booking.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    pagination = {"page": page, "limit": limit, "total": total, "totalPages": math.ceil(total / limit)}
    return _expand(db, rows, with_user=True), pagination


def admin_update_booking(db: Session, booking_id: str, body: AdminBookingUpdate, actor: User) -> Booking:
    b = get_booking(db, booking_id)

    if body.bookingStatus is not None and body.bookingStatus.upper() not in BOOKING_STATUSES:
        raise ValidationFailed(f"bookingStatus must be one of {', '.join(BOOKING_STATUSES)}")
    if body.paymentStatus is not None and body.paymentStatus.upper() not in PAYMENT_STATUSES:
        raise ValidationFailed(f"paymentStatus must be one of {', '.join(PAYMENT_STATUSES)}")

    details = body.detail_changes()
    if details and not b.is_fully_pending:
        raise Conflict("Booking details can only be edited while booking and payment are both PENDING")

    if details:
        start = details.get("startDate", b.start_date)
        end = details.get("endDate", b.end_date)
        if end < start:
            raise ValidationFailed("endDate must not be before startDate")
        b.start_date, b.end_date = start, end
        if "adults" in details:
            b.adults = details["adults"]
        if "children" in details:
            b.children = details["children"]
        if "totalAmount" in details:
            b.total_amount = Decimal(str(details["totalAmount"])).quantize(CENT)
        elif "adults" in details or "children" in details:
            tour = db.get(Tour, b.tour_id)
            b.total_amount = calculate_total_price(tour.price_per_person, b.adults, b.children)

    if body.bookingStatus is not None:
        b.booking_status = body.bookingStatus.upper()
    if body.paymentStatus is not None:
        b.payment_status = body.paymentStatus.upper()

    log_audit(db, actor.id, "booking.update", "booking", b.id,
              {"fields": sorted(body.model_fields_set), "bookingStatus": b.booking_status,
               "paymentStatus": b.payment_status})
    db.commit()
    db.refresh(b)
    return b


def admin_delete_booking(db: Session, booking_id: str, actor: User) -> None:
    b = get_booking(db, booking_id)
    if not b.is_fully_pending:
        raise ValidationFailed("Only bookings with PENDING booking and payment status can be deleted")
    log_audit(db, actor.id, "booking.delete", "booking", b.id, {"reference": b.reference})
    db.delete(b)
    db.commit()


def dashboard(db: Session, today: date | None = None) -> dict:
    today = today or datetime.now(timezone.utc).date()
    total_bookings = db.query(func.count(Booking.id)).scalar() or 0
    upcoming = (
        db.query(func.count(Booking.id))
        .filter(Booking.booking_status == "CONFIRMED", Booking.start_date >= today)
        .scalar() or 0
    )
    revenue = db.query(func.coalesce(func.sum(Booking.total_amount), 0)).filter(Booking.payment_status == "PAID").scalar()
    published = db.query(func.count(Tour.id)).filter(Tour.is_published == True).scalar() or 0  # noqa: E712
    recent = db.query(Booking).order_by(Booking.created_at.desc()).limit(5).all()
    return {
        "totalBookings": int(total_bookings),
        "upcomingTrips": int(upcoming),
        "totalRevenue": float(revenue or 0),
        "publishedTours": int(published),
        "recentBookings": _expand(db, recent, with_user=True),
    }
