from dataclasses import dataclass, field
import logging

import requests
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import IntegrationFailure, ServiceError, ValidationFailed
from app.services import settings_service

logger = logging.getLogger(__name__)

VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


@dataclass
class RecaptchaResult:
    success: bool
    score: float = 0.0
    action: str | None = None
    error_codes: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.success and self.score >= settings.RECAPTCHA_MIN_SCORE


def site_key(db: Session) -> str:
    return settings_service.get_str(db, "recaptchaSiteKey")


def secret_key(db: Session) -> str:
    return settings_service.get_str(db, "recaptchaSecretKey")


def verify_token(secret: str, token: str) -> RecaptchaResult:
    try:
        r = requests.post(VERIFY_URL, data={"secret": secret, "response": token}, timeout=settings.HTTP_TIMEOUT)
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        raise IntegrationFailure(f"reCAPTCHA verification request failed: {e}") from e
    return RecaptchaResult(
        success=bool(data.get("success")),
        score=float(data.get("score") or 0.0),
        action=data.get("action"),
        error_codes=list(data.get("error-codes") or []),
    )


def verify(db: Session, token: str) -> RecaptchaResult:
    """Strict check used by the verify endpoint."""
    if not token:
        raise ValidationFailed("Missing reCAPTCHA token")
    secret = secret_key(db)
    if not secret:
        raise ServiceError("reCAPTCHA not configured", status_code=500)
    result = verify_token(secret, token)
    if not result.success:
        raise ValidationFailed("reCAPTCHA verification failed")
    if not result.passed:
        raise ValidationFailed("reCAPTCHA score too low")
    return result


def check_submission(db: Session, token: str | None) -> None:
    """Spam check for public forms.

    No token or no configured secret: allowed. A transport error is logged and
    allowed so a misconfigured key does not take the form down. A failed check
    or a score below the threshold rejects the submission.
    """
    if not token:
        return
    secret = secret_key(db)
    if not secret:
        return
    try:
        result = verify_token(secret, token)
    except IntegrationFailure:
        logger.exception("reCAPTCHA verification error; accepting submission")
        return
    if not result.passed:
        logger.info("reCAPTCHA rejected submission (success=%s score=%.2f)", result.success, result.score)
        raise ValidationFailed("reCAPTCHA verification failed. Please try again.")
