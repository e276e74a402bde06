import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import require_admin
from app.core.errors import IntegrationFailure, ServiceError, ValidationFailed, ok
from app.models.user import User
from app.schemas.booking import AdminBookingUpdate
from app.schemas.review import ReviewModeration
from app.schemas.site import ContactStatusUpdate, ContentUpsert, SettingsUpdate, UserAdminUpdate
from app.schemas.tour import TourCreate, TourUpdate
from app.services import account_service, audit_service, booking_service, review_service, settings_service, site_service, tour_service
from app.services.cloudinary_client import MAX_UPLOAD_BYTES, CloudinaryError, get_client as cloudinary_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])

# --- bookings ---

@router.get("/admin/bookings")
def list_bookings(bookingStatus: Optional[str] = None, paymentStatus: Optional[str] = None,
                  tourId: Optional[str] = None, userId: Optional[str] = None, q: Optional[str] = None,
                  page: int = 1, limit: int = 20,
                  db: Session = Depends(get_db), me: User = Depends(require_admin)):
    items, pagination = booking_service.admin_list_bookings(
        db, booking_status=bookingStatus, payment_status=paymentStatus,
        tour_id=tourId, user_id=userId, q=q, page=page, limit=limit,
    )
    return ok(items, pagination=pagination)


@router.get("/admin/bookings/{booking_id}")
def get_booking(booking_id: str, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    b = booking_service.get_booking(db, booking_id)
    return ok(booking_service.booking_detail(db, b, with_user=True))


@router.patch("/admin/bookings/{booking_id}")
def update_booking(booking_id: str, body: AdminBookingUpdate,
                   db: Session = Depends(get_db), me: User = Depends(require_admin)):
    b = booking_service.admin_update_booking(db, booking_id, body, me)
    return ok(booking_service.booking_detail(db, b, with_user=True), message="Booking updated")


@router.delete("/admin/bookings/{booking_id}")
def delete_booking(booking_id: str, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    booking_service.admin_delete_booking(db, booking_id, me)
    return ok(message="Booking deleted")


# --- users ---

@router.get("/admin/users")
def list_users(search: Optional[str] = None, role: Optional[str] = None,
               db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(account_service.list_users(db, search=search, role=role))


@router.patch("/admin/users/{user_id}")
def update_user(user_id: str, body: UserAdminUpdate,
                db: Session = Depends(get_db), me: User = Depends(require_admin)):
    u = account_service.admin_update_user(db, user_id, me, role=body.role, is_active=body.isActive)
    return ok(account_service.user_to_dict(u))


@router.get("/admin/dashboard")
def dashboard(db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(booking_service.dashboard(db))


@router.get("/admin/audit")
def audit_trail(entityType: Optional[str] = None, entityId: Optional[str] = None, action: Optional[str] = None,
                limit: int = 50, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(audit_service.list_audit(db, entity_type=entityType, entity_id=entityId, action=action, limit=limit))


# --- tours ---

@router.get("/admin/tours")
def list_tours(search: Optional[str] = None, isPublished: Optional[bool] = None, page: int = 1, limit: int = 20,
               db: Session = Depends(get_db), me: User = Depends(require_admin)):
    items, pagination = tour_service.list_admin(db, search=search, is_published=isPublished, page=page, limit=limit)
    return ok(items, pagination=pagination)


@router.post("/admin/tours", status_code=201)
def create_tour(body: TourCreate, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(tour_service.create_tour(db, body, me), message="Tour created")


@router.get("/admin/tours/{tour_id}")
def get_tour(tour_id: str, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    t = tour_service.get_tour(db, tour_id)
    return ok(tour_service.tour_to_dict(t, images=tour_service.images_for(db, [t.id])[t.id],
                                        averageRating=tour_service.average_rating(db, t.id)))


@router.put("/admin/tours/{tour_id}")
def update_tour(tour_id: str, body: TourUpdate, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(tour_service.update_tour(db, tour_id, body, me), message="Tour updated")


@router.delete("/admin/tours/{tour_id}")
def delete_tour(tour_id: str, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    tour_service.delete_tour(db, tour_id, me)
    return ok(message="Tour deleted")


@router.post("/admin/upload-image")
async def upload_image(file: UploadFile = File(...), folder: str = Form("travel-agency"),
                       db: Session = Depends(get_db), me: User = Depends(require_admin)):
    if not (file.content_type or "").startswith("image/"):
        raise ValidationFailed("File must be an image")
    content = await file.read()
    if not content:
        raise ValidationFailed("No file provided")
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationFailed("File size must be less than 5MB")
    try:
        client = cloudinary_client(db)
    except CloudinaryError as e:
        raise ServiceError(str(e), status_code=500) from e
    try:
        uploaded = client.upload(content, file.filename or "upload", file.content_type, folder=folder or "travel-agency")
    except CloudinaryError as e:
        logger.exception("Image upload failed")
        raise IntegrationFailure(str(e)) from e
    return ok(uploaded)


# --- reviews ---

@router.get("/admin/reviews")
def list_reviews(isApproved: Optional[bool] = None, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(review_service.list_admin(db, is_approved=isApproved))


@router.patch("/admin/reviews/{review_id}")
def moderate_review(review_id: str, body: ReviewModeration,
                    db: Session = Depends(get_db), me: User = Depends(require_admin)):
    r = review_service.set_approval(db, review_id, body.isApproved, me)
    return ok(review_service.review_to_dict(r))


@router.delete("/admin/reviews/{review_id}")
def delete_review(review_id: str, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    review_service.delete_review(db, review_id, me)
    return ok(message="Review deleted")


# --- contact inbox ---

@router.get("/admin/contact")
def list_contact(status: Optional[str] = None, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(site_service.list_contact(db, status=status))


@router.patch("/admin/contact/{message_id}")
def update_contact(message_id: str, body: ContactStatusUpdate,
                   db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(site_service.set_contact_status(db, message_id, body.status, me).to_dict())


# --- homepage content ---

@router.get("/admin/content")
def list_content(db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(site_service.list_content(db))


@router.post("/admin/content")
def upsert_content(body: ContentUpsert, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(site_service.upsert_content(db, body.key, body.content, me).to_dict())


# --- settings ---

@router.get("/admin/settings")
def get_settings(db: Session = Depends(get_db), me: User = Depends(require_admin)):
    return ok(settings_service.all_settings(db))


@router.post("/admin/settings")
def save_settings(body: SettingsUpdate, db: Session = Depends(get_db), me: User = Depends(require_admin)):
    saved = settings_service.save_settings(db, body.settings)
    logger.info("Settings updated by %s: %s", me.email, ", ".join(sorted(saved)))
    return ok(saved, message="Settings saved")
