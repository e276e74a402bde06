import uuid
from datetime import datetime, timedelta, timezone
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, NotFound, Unauthorized, ValidationFailed
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    make_reset_token,
    verify_password,
)
from app.models.password_reset_token import PasswordResetToken
from app.models.user import User, ROLES
from app.schemas.auth import RegisterRequest, TokenPair
from app.services import email_templates
from app.services.audit_service import log_audit
from app.services.email_service import notify_best_effort

logger = logging.getLogger(__name__)

MIN_PASSWORD = 6
FORGOT_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def user_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "phone": u.phone,
        "role": u.role,
        "isActive": u.is_active,
        "createdAt": u.created_at.isoformat() if u.created_at else None,
    }


def issue_tokens(user: User) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(user.id, user.role),
        refresh_token=create_refresh_token(user.id),
        role=user.role,
    )


def register(db: Session, body: RegisterRequest) -> User:
    email = body.email.lower().strip()
    if db.query(User.id).filter(User.email == email).first():
        raise Conflict("An account with this email already exists")
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        name=body.name.strip(),
        role="CUSTOMER",
        password_hash=hash_password(body.password),
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    notify_best_effort(db, user.email, email_templates.welcome(user.name), kind="welcome")
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.lower().strip()).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        raise Unauthorized("Invalid credentials")
    return user


def refresh(db: Session, refresh_token: str) -> User:
    try:
        payload = decode_token(refresh_token)
    except Exception as e:
        raise Unauthorized("Invalid refresh token") from e
    if payload.get("type") != "refresh":
        raise Unauthorized("Invalid refresh token")
    user = db.get(User, payload.get("sub"))
    if not user or not user.is_active:
        raise Unauthorized("User not found or inactive")
    return user


def update_profile(db: Session, user: User, name: str | None = None, phone: str | None = None) -> User:
    if name is not None:
        if not name.strip():
            raise ValidationFailed("Name cannot be empty")
        user.name = name.strip()
    if phone is not None:
        user.phone = phone.strip() or None
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: User, old_password: str, new_password: str) -> None:
    if not verify_password(old_password, user.password_hash):
        raise ValidationFailed("Old password incorrect")
    if len(new_password) < MIN_PASSWORD:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD} characters")
    user.password_hash = hash_password(new_password)
    db.commit()


def request_password_reset(db: Session, email: str) -> str | None:
    """Create a reset token and email it. Returns the token, or None for an unknown email."""
    email = (email or "").lower().strip()
    if not email:
        raise ValidationFailed("Email is required")
    user = db.query(User).filter(User.email == email).first()
    if not user:
        return None

    db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).delete(synchronize_session=False)
    token = make_reset_token()
    db.add(PasswordResetToken(
        token=token,
        user_id=user.id,
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    ))
    db.commit()

    link = f"{settings.SITE_URL.rstrip('/')}/reset-password/{token}"
    notify_best_effort(db, user.email, email_templates.password_reset(link, user.name), kind="password_reset")
    return token


def reset_password(db: Session, token: str, password: str) -> None:
    token = (token or "").strip()
    if not token or not password:
        raise ValidationFailed("Token and password are required")
    if len(password) < MIN_PASSWORD:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD} characters")

    row = db.get(PasswordResetToken, token)
    if not row:
        raise ValidationFailed("Invalid or expired reset token. Please request a new password reset link.")
    if _aware(row.expires_at) < datetime.now(timezone.utc):
        db.delete(row)
        db.commit()
        raise ValidationFailed("Reset token has expired. Please request a new one.")

    user = db.get(User, row.user_id)
    if not user:
        raise NotFound("User not found")
    user.password_hash = hash_password(password)
    db.delete(row)
    db.commit()
    logger.info("Password reset for user %s", user.id)


def purge_expired_reset_tokens(db: Session) -> int:
    n = (
        db.query(PasswordResetToken)
        .filter(PasswordResetToken.expires_at < datetime.now(timezone.utc))
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(n or 0)


def list_users(db: Session, search: str | None = None, role: str | None = None) -> list[dict]:
    q = db.query(User)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter((User.email.ilike(like)) | (User.name.ilike(like)))
    if role:
        q = q.filter(User.role == role.upper())
    return [user_to_dict(u) for u in q.order_by(User.created_at.desc()).all()]


def admin_update_user(db: Session, user_id: str, actor: User, role: str | None = None,
                      is_active: bool | None = None) -> User:
    u = db.get(User, user_id)
    if not u:
        raise NotFound("User not found")
    if role is not None:
        role = role.upper()
        if role not in ROLES:
            raise ValidationFailed(f"role must be one of {', '.join(ROLES)}")
        if u.id == actor.id and role != "ADMIN":
            raise ValidationFailed("You cannot remove your own admin role")
        u.role = role
    if is_active is not None:
        if u.id == actor.id and not is_active:
            raise ValidationFailed("You cannot deactivate your own account")
        u.is_active = is_active
    log_audit(db, actor.id, "user.update", "user", u.id, {"role": u.role, "isActive": u.is_active})
    db.commit()
    db.refresh(u)
    return u
