"""Gateway order creation, checkout confirmation and webhook handling.

The confirm step commits the booking update and the Payment row together;
emails go out only after that commit and can never undo it.
"""
import json
import uuid
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import IntegrationFailure, NotFound, ServiceError, ValidationFailed
from app.models.booking import Booking
from app.models.payment import Payment
from app.models.user import User
from app.schemas.payments import ConfirmPaymentRequest
from app.services import email_templates, settings_service
from app.services.audit_service import SYSTEM_ACTOR, log_audit
from app.services.booking_service import booking_email_data, booking_to_dict, format_money
from app.services.email_service import notify_best_effort
from app.services.razorpay_client import (
    RazorpayError,
    RazorpayNotConfigured,
    get_client,
    load_config,
    to_minor_units,
    verify_payment_signature,
    verify_webhook_signature,
)

logger = logging.getLogger(__name__)


def _client(db: Session):
    try:
        return get_client(db)
    except RazorpayNotConfigured as e:
        raise ServiceError(str(e), status_code=500) from e


def _owned(db: Session, booking_id: str, user: User) -> Booking:
    b = db.get(Booking, booking_id)
    if not b or b.user_id != user.id:
        raise NotFound("Booking not found")
    return b


def create_intent(db: Session, booking_id: str, user: User) -> dict:
    b = _owned(db, booking_id, user)
    if not b.is_fully_pending:
        raise ValidationFailed("Booking is not awaiting payment")

    client = _client(db)
    try:
        order = client.create_order(amount=b.total_amount, currency=b.currency, receipt=b.reference)
    except RazorpayError as e:
        logger.exception("Order creation failed for booking %s", b.reference)
        raise IntegrationFailure(f"Failed to create payment order: {e}") from e

    b.gateway_order_id = order.get("id")
    db.commit()
    logger.info("Order %s created for booking %s", b.gateway_order_id, b.reference)
    return {
        "id": order.get("id"),
        "clientSecret": order.get("id"),
        "amount": order.get("amount", to_minor_units(b.total_amount)),
        "currency": order.get("currency", b.currency),
        "status": "requires_confirmation",
        "key": client.cfg.key_id,
    }


def _existing_payment(db: Session, booking_id: str) -> Payment | None:
    return db.query(Payment).filter(Payment.booking_id == booking_id).first()


def confirm_payment(db: Session, body: ConfirmPaymentRequest, user: User) -> dict:
    b = _owned(db, body.bookingId, user)
    pd = body.paymentData

    client = _client(db)
    if not verify_payment_signature(client.cfg.key_secret, body.orderId, pd.razorpay_payment_id, pd.razorpay_signature):
        logger.warning("Signature mismatch on booking %s", b.reference)
        raise ValidationFailed("Invalid payment signature")

    if b.payment_status == "PAID":
        existing = _existing_payment(db, b.id)
        if existing is not None:
            return {"booking": booking_to_dict(b), "payment": existing.to_dict()}
    if b.booking_status == "CANCELLED":
        raise ValidationFailed("Booking has been cancelled")
    if b.gateway_order_id and body.orderId != b.gateway_order_id:
        raise ValidationFailed("Order does not belong to this booking")

    try:
        gateway_payment = client.fetch_payment(pd.razorpay_payment_id)
    except RazorpayError as e:
        logger.exception("Could not fetch payment %s", pd.razorpay_payment_id)
        raise IntegrationFailure(f"Payment verification failed: {e}") from e

    payment = Payment(
        id=str(uuid.uuid4()),
        booking_id=b.id,
        provider="RAZORPAY",
        provider_payment_id=gateway_payment.get("id") or pd.razorpay_payment_id,
        amount=b.total_amount,
        currency=b.currency,
        status="succeeded",
    )
    b.payment_status = "PAID"
    b.booking_status = "CONFIRMED"
    db.add(payment)
    log_audit(db, user.id, "payment.confirm", "booking", b.id,
              {"reference": b.reference, "paymentId": payment.provider_payment_id})
    try:
        db.commit()
    except IntegrityError:
        # a concurrent confirm already stored the payment for this booking
        db.rollback()
        existing = _existing_payment(db, b.id)
        if existing is None:
            raise
        db.refresh(b)
        return {"booking": booking_to_dict(b), "payment": existing.to_dict()}

    db.refresh(b)
    logger.info("Booking %s paid (%s)", b.reference, payment.provider_payment_id)
    send_payment_notifications(db, b, payment)
    return {"booking": booking_to_dict(b), "payment": payment.to_dict()}


def send_payment_notifications(db: Session, b: Booking, payment: Payment) -> dict:
    """Receipt and confirmation to the customer, notice to support. Each is independent."""
    data, owner = booking_email_data(db, b)
    results = {}
    if owner:
        results["receipt"] = notify_best_effort(
            db, owner.email,
            email_templates.payment_receipt(
                reference=b.reference,
                payment_id=payment.provider_payment_id,
                amount=format_money(payment.amount, payment.currency),
                currency=payment.currency,
                method="Razorpay",
            ),
            kind="payment_receipt", related_booking_id=b.id,
        )
        results["confirmation"] = notify_best_effort(
            db, owner.email, email_templates.booking_confirmation(data),
            kind="booking_confirmation", related_booking_id=b.id,
        )
    support = settings_service.get_str(db, "supportEmail")
    if support:
        results["admin"] = notify_best_effort(
            db, support, email_templates.admin_booking_notice(data),
            kind="admin_booking_notice", related_booking_id=b.id,
        )
    failed = [k for k, sent in results.items() if not sent]
    if failed:
        logger.warning("Booking %s: emails not delivered: %s", b.reference, ", ".join(failed))
    return results


def _webhook_secret(db: Session) -> str:
    try:
        return load_config(db).webhook_secret
    except RazorpayNotConfigured:
        return settings_service.get_str(db, "RAZORPAY_WEBHOOK_SECRET")


def _locate(db: Session, entity: dict) -> tuple[Booking | None, Payment | None]:
    payment_id = entity.get("id") or ""
    p = db.query(Payment).filter(Payment.provider_payment_id == payment_id).first() if payment_id else None
    if p is not None:
        return db.get(Booking, p.booking_id), p
    order_id = entity.get("order_id")
    if order_id:
        b = db.query(Booking).filter(Booking.gateway_order_id == order_id).first()
        if b is not None:
            return b, _existing_payment(db, b.id)
    return None, None


def _refund_late_capture(db: Session, b: Booking, p: Payment) -> None:
    """Money captured after the customer cancelled: keep the booking cancelled and give it back.

    If the refund fails the booking stays CANCELLED with payment_status PAID,
    the same state a failed cancel-time refund leaves for manual reconciliation.
    """
    logger.warning("Capture %s arrived for cancelled booking %s; refunding", p.provider_payment_id, b.reference)
    b.payment_status = "PAID"
    try:
        refund = get_client(db).refund_payment(p.provider_payment_id)
    except RazorpayError:
        logger.exception("Refund of late capture %s failed for booking %s", p.provider_payment_id, b.reference)
        return
    if refund.get("id"):
        b.payment_status = "REFUNDED"
        p.status = "refunded"
        p.refund_id = refund["id"]


def handle_webhook(db: Session, raw_body: bytes, signature: str) -> str:
    """Apply a verified gateway event. Returns the event name."""
    if not verify_webhook_signature(_webhook_secret(db), raw_body, signature):
        raise ValidationFailed("Invalid signature")
    try:
        event = json.loads(raw_body or b"{}")
    except ValueError as e:
        raise ValidationFailed("Invalid webhook payload") from e
    if not isinstance(event, dict):
        raise ValidationFailed("Invalid webhook payload")

    name = event.get("event") or ""
    entity = ((event.get("payload") or {}).get("payment") or {}).get("entity") or {}
    if name not in ("payment.captured", "payment.failed"):
        logger.info("Ignoring webhook event %r", name)
        return name

    b, p = _locate(db, entity)
    if b is None:
        logger.warning("Webhook %s for unknown payment %s / order %s", name, entity.get("id"), entity.get("order_id"))
        return name

    if name == "payment.captured":
        if b.payment_status in ("PAID", "REFUNDED"):
            return name
        if p is None:
            p = Payment(
                id=str(uuid.uuid4()),
                booking_id=b.id,
                provider="RAZORPAY",
                provider_payment_id=entity.get("id") or "",
                amount=b.total_amount,
                currency=b.currency,
                status="succeeded",
            )
            db.add(p)
        elif p.status == "failed":
            p.provider_payment_id = entity.get("id") or p.provider_payment_id
            p.status = "succeeded"
        if b.booking_status == "CANCELLED":
            _refund_late_capture(db, b, p)
        else:
            b.payment_status = "PAID"
            b.booking_status = "CONFIRMED"
    else:
        if b.payment_status in ("PAID", "REFUNDED"):
            logger.warning("payment.failed for already settled booking %s; ignored", b.reference)
            return name
        b.payment_status = "FAILED"
        if p is not None:
            p.status = "failed"

    log_audit(db, SYSTEM_ACTOR, f"webhook.{name}", "booking", b.id,
              {"paymentId": entity.get("id"), "orderId": entity.get("order_id")})
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Webhook %s raced a confirm for booking %s", name, b.reference)
    return name
