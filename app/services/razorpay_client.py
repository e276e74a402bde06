import hashlib
import hmac
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
import logging

import requests
from sqlalchemy.orm import Session

from app.core.config import settings
from app.services import settings_service

logger = logging.getLogger(__name__)


@dataclass
class RazorpayConfig:
    key_id: str             # public key, also handed to the checkout widget
    key_secret: str         # used for basic auth and payment signatures
    webhook_secret: str     # dashboard webhook secret; falls back to key_secret
    api_base: str = "https://api.razorpay.com/v1"
    timeout: int = 20


class RazorpayError(RuntimeError):
    pass


class RazorpayNotConfigured(RazorpayError):
    pass


def to_minor_units(amount: Decimal | float | int) -> int:
    """Rupees -> paise, rounded half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _hmac_sha256_hex(secret: str, msg: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()


def verify_payment_signature(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    """Checkout callback check: HMAC-SHA256(secret, "order_id|payment_id") as hex."""
    if not (secret and order_id and payment_id and signature):
        return False
    expected = _hmac_sha256_hex(secret, f"{order_id}|{payment_id}".encode("utf-8"))
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(secret: str, body: bytes, signature: str) -> bool:
    """Webhook check: HMAC-SHA256(secret, raw request body) as hex."""
    if not (secret and signature):
        return False
    return hmac.compare_digest(_hmac_sha256_hex(secret, body), signature)


def load_config(db: Session) -> RazorpayConfig:
    key_id = settings_service.get_str(db, "RAZORPAY_KEY_ID")
    key_secret = settings_service.get_str(db, "RAZORPAY_SECRET_KEY")
    if not key_id or not key_secret:
        raise RazorpayNotConfigured("Razorpay credentials not configured. Please configure in admin settings.")
    return RazorpayConfig(
        key_id=key_id,
        key_secret=key_secret,
        webhook_secret=settings_service.get_str(db, "RAZORPAY_WEBHOOK_SECRET") or key_secret,
        api_base=settings.RAZORPAY_API_BASE.rstrip("/"),
        timeout=settings.HTTP_TIMEOUT,
    )


class RazorpayClient:
    def __init__(self, cfg: RazorpayConfig):
        self.cfg = cfg

    def request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.cfg.api_base}{path}"
        try:
            r = requests.request(
                method=method.upper(),
                url=url,
                json=payload if payload is not None else None,
                auth=(self.cfg.key_id, self.cfg.key_secret),
                timeout=self.cfg.timeout,
            )
        except requests.RequestException as e:
            raise RazorpayError(f"Razorpay request failed: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 400:
            err = data.get("error") if isinstance(data, dict) else None
            desc = (err or {}).get("description") if isinstance(err, dict) else None
            raise RazorpayError(f"Razorpay {r.status_code}: {desc or data}")
        return data

    def create_order(self, *, amount: Decimal, currency: str, receipt: str) -> dict:
        payload = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": receipt[:40],
            "payment_capture": 1,
        }
        return self.request("POST", "/orders", payload)

    def fetch_payment(self, payment_id: str) -> dict:
        return self.request("GET", f"/payments/{payment_id}")

    def refund_payment(self, payment_id: str, amount: Decimal | None = None) -> dict:
        """Full refund unless amount is given."""
        payload = {}
        if amount is not None:
            payload["amount"] = to_minor_units(amount)
        return self.request("POST", f"/payments/{payment_id}/refund", payload)


def get_client(db: Session) -> RazorpayClient:
    return RazorpayClient(load_config(db))
