from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_user
from app.core.errors import ok
from app.models.user import User
from app.schemas.payments import CreateIntentRequest, ConfirmPaymentRequest
from app.services import payment_service

router = APIRouter(tags=["payments"])


@router.post("/payments/create-intent")
def create_intent(body: CreateIntentRequest, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    """Open a gateway order for a pending booking and hand the checkout widget its key."""
    return ok(payment_service.create_intent(db, body.bookingId, me))


@router.post("/payments/confirm")
def confirm(body: ConfirmPaymentRequest, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return ok(payment_service.confirm_payment(db, body, me))


@router.post("/payments/webhook")
async def webhook(request: Request, db: Session = Depends(get_db)):
    # signature covers the raw bytes, so read the body before any JSON parsing
    raw = await request.body()
    signature = request.headers.get("x-razorpay-signature", "")
    event = payment_service.handle_webhook(db, raw, signature)
    return ok(event=event)
