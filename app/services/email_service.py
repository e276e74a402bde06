"""Outbound email through an outbox table.

Every message is written to ``email_logs`` first, then sent immediately. A
failed or deferred send stays in the table and the Celery beat job
``process_email_queue`` replays it. Callers never see delivery errors:
notifications are best-effort and must not undo the state change they
announce.
"""
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
import uuid

from sqlalchemy.orm import Session

from app.models.email_log import EmailLog
from app.services import settings_service

logger = logging.getLogger(__name__)


class EmailNotConfigured(RuntimeError):
    pass


@dataclass
class SmtpConfig:
    host: str
    port: int
    username: str
    password: str
    from_email: str
    from_name: str
    timeout: int = 15


def get_smtp_config(db: Session) -> SmtpConfig:
    if not settings_service.get_bool(db, "SMTP_ENABLED", True):
        raise EmailNotConfigured("Email service is disabled")
    username = settings_service.get_str(db, "SMTP_EMAIL")
    password = settings_service.get_str(db, "SMTP_PASSWORD")
    if not username or not password:
        raise EmailNotConfigured("SMTP credentials not configured")
    return SmtpConfig(
        host=settings_service.get_str(db, "SMTP_HOST", "smtp.gmail.com"),
        port=settings_service.get_int(db, "SMTP_PORT", 587),
        username=username,
        password=password,
        from_email=username,
        from_name=settings_service.get_str(db, "SMTP_FROM_NAME", "GoFly Travel Agency"),
    )


def send_email(cfg: SmtpConfig, to_email: str, subject: str, body: str, html: str | None = None):
    msg = EmailMessage()
    msg["From"] = formataddr((cfg.from_name, cfg.from_email))
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)
    if html:
        msg.add_alternative(html, subtype="html")

    if cfg.port == 465:
        with smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=cfg.timeout) as smtp:
            smtp.login(cfg.username, cfg.password)
            smtp.send_message(msg)
        return

    with smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout) as smtp:
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls()
            smtp.ehlo()
        smtp.login(cfg.username, cfg.password)
        smtp.send_message(msg)


def _deliver(db: Session, log: EmailLog) -> None:
    try:
        cfg = get_smtp_config(db)
        send_email(cfg, log.to_email, log.subject, log.body or "", log.html)
    except EmailNotConfigured as e:
        log.status = "skipped"
        log.error = str(e)
        logger.warning("Email %r to %s not sent: %s", log.subject, log.to_email, e)
    except (smtplib.SMTPException, OSError) as e:
        log.status = "failed"
        log.error = str(e)[:500]
        logger.error("Email %r to %s failed: %s", log.subject, log.to_email, e)
    else:
        log.status = "sent"
        log.error = None
        log.sent_at = datetime.now(timezone.utc)
        logger.info("Email %r sent to %s", log.subject, log.to_email)


def queue_email(db: Session, to_email: str, subject: str, body: str, html: str | None = None,
                kind: str = "generic", related_booking_id: str = "") -> EmailLog:
    """Record the message in the outbox and attempt an immediate send."""
    log = EmailLog(
        id=str(uuid.uuid4()),
        to_email=to_email,
        subject=subject[:200],
        kind=kind,
        body=body,
        html=html,
        status="queued",
        related_booking_id=related_booking_id,
    )
    db.add(log)
    db.commit()

    _deliver(db, log)
    db.commit()
    return log


def notify_best_effort(db: Session, to_email: str, message: tuple[str, str, str],
                       kind: str, related_booking_id: str = "") -> bool:
    """Send a templated (subject, html, text) message; log and swallow any error."""
    subject, html, text = message
    try:
        log = queue_email(db, to_email, subject, text, html=html, kind=kind, related_booking_id=related_booking_id)
        return log.status == "sent"
    except Exception:
        db.rollback()
        logger.exception("Could not queue %s email to %s", kind, to_email)
        return False


def process_pending_emails(db: Session, limit: int = 50, max_age_days: int = 3) -> dict:
    """Retry queued or failed emails younger than max_age_days. Returns counts."""
    cutoff = datetime.now(timezone.utc) - timedelta(days=max_age_days)
    pending = (
        db.query(EmailLog)
        .filter(EmailLog.status.in_(["queued", "failed"]), EmailLog.body.isnot(None), EmailLog.created_at >= cutoff)
        .order_by(EmailLog.created_at.asc())
        .limit(limit)
        .all()
    )
    counts = {"processed": len(pending), "sent": 0, "failed": 0, "skipped": 0}
    for log in pending:
        _deliver(db, log)
        counts[log.status] = counts.get(log.status, 0) + 1
    if pending:
        db.commit()
    return counts
