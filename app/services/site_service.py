"""Contact inbox and homepage content blocks."""
import json
import uuid
import logging

from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationFailed
from app.models.contact_message import ContactMessage, MESSAGE_STATUSES
from app.models.homepage_content import HomepageContent
from app.models.user import User
from app.schemas.site import ContactCreate
from app.services import email_templates, settings_service
from app.services.audit_service import log_audit
from app.services.email_service import notify_best_effort
from app.services.recaptcha_service import check_submission

logger = logging.getLogger(__name__)

MIN_MESSAGE_LENGTH = 10


def submit_contact(db: Session, body: ContactCreate) -> ContactMessage:
    if len(body.message.strip()) < MIN_MESSAGE_LENGTH:
        raise ValidationFailed("Message is too short")
    check_submission(db, body.recaptchaToken)

    msg = ContactMessage(
        id=str(uuid.uuid4()),
        name=body.name.strip(),
        email=body.email.strip(),
        message=body.message.strip(),
        status="NEW",
    )
    db.add(msg)
    db.commit()
    db.refresh(msg)

    support = settings_service.get_str(db, "supportEmail")
    if support:
        notify_best_effort(db, support, email_templates.contact_notification(msg.name, msg.email, msg.message),
                           kind="contact_notification")
    return msg


def list_contact(db: Session, status: str | None = None) -> list[dict]:
    q = db.query(ContactMessage)
    if status:
        q = q.filter(ContactMessage.status == status.upper())
    return [m.to_dict() for m in q.order_by(ContactMessage.created_at.desc()).all()]


def set_contact_status(db: Session, message_id: str, status: str, actor: User) -> ContactMessage:
    status = (status or "").upper()
    if status not in MESSAGE_STATUSES:
        raise ValidationFailed(f"status must be one of {', '.join(MESSAGE_STATUSES)}")
    msg = db.get(ContactMessage, message_id)
    if not msg:
        raise NotFound("Message not found")
    msg.status = status
    log_audit(db, actor.id, "contact.status", "contact_message", msg.id, {"status": status})
    db.commit()
    db.refresh(msg)
    return msg


def get_content(db: Session, key: str) -> HomepageContent:
    row = db.get(HomepageContent, key)
    if not row:
        raise NotFound("Content not found")
    return row


def list_content(db: Session) -> list[dict]:
    return [c.to_dict() for c in db.query(HomepageContent).order_by(HomepageContent.key.asc()).all()]


def upsert_content(db: Session, key: str, content, actor: User) -> HomepageContent:
    key = key.strip()
    if not key or content is None:
        raise ValidationFailed("Missing required fields")
    row = db.get(HomepageContent, key)
    if not row:
        row = HomepageContent(key=key)
        db.add(row)
    row.content_json = json.dumps(content, ensure_ascii=False)
    log_audit(db, actor.id, "content.upsert", "homepage_content", key, {})
    db.commit()
    db.refresh(row)
    return row
