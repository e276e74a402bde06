from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user
from app.core.errors import Conflict, ok
from app.models.user import User
from app.models.payment import Payment
from app.schemas.booking import BookingCreate
from app.services import booking_service
from app.services.voucher_service import render_voucher_pdf_bytes

router = APIRouter(tags=["bookings"])


@router.post("/bookings", status_code=201)
def create_booking(body: BookingCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    booking = booking_service.create_booking(db, body, me)
    return ok(booking_service.booking_detail(db, booking))


@router.get("/bookings")
def list_my_bookings(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return ok(booking_service.list_user_bookings(db, me))


@router.get("/bookings/{booking_id}")
def get_booking(booking_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    b = booking_service.get_owned_booking(db, booking_id, me)
    return ok(booking_service.booking_detail(db, b))


@router.get("/bookings/{booking_id}/voucher")
def download_voucher(booking_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    b = booking_service.get_owned_booking(db, booking_id, me)
    if b.payment_status != "PAID":
        raise Conflict("Voucher is only available after payment")
    data, owner = booking_service.booking_email_data(db, b)
    payment = db.query(Payment).filter(Payment.booking_id == b.id).first()
    pdf = render_voucher_pdf_bytes(
        reference=b.reference,
        customer_name=data.user_name,
        customer_email=data.user_email,
        tour_title=data.tour_title,
        location=data.location,
        start_date=data.start_date,
        end_date=data.end_date,
        adults=b.adults,
        children=b.children,
        total_amount=data.total_amount,
        payment_id=payment.provider_payment_id if payment else "",
        special_requests=b.special_requests or "",
    )
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{b.reference}.pdf"'},
    )


@router.post("/bookings/{booking_id}/cancel")
def cancel_booking(booking_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    b, refund_id = booking_service.cancel_booking(db, booking_id, me)
    out = booking_service.booking_to_dict(b)
    if refund_id:
        out["refundId"] = refund_id
    message = "Booking cancelled and refund initiated" if refund_id else "Booking cancelled"
    return ok(out, message=message, refundId=refund_id)
