import logging

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import IntegrationFailure, ServiceError
from app.models.tour import Tour
from app.services import settings_service

logger = logging.getLogger(__name__)

MAX_TOURS = 50
MAX_HISTORY = 10

SYSTEM_PROMPT = """You are a helpful travel assistant for GoFly Travel Agency. Your role is to assist customers with:
- Information about tours and travel packages (you have access to current tour data)
- Booking inquiries and procedures
- Travel recommendations based on available tours
- General travel-related questions

IMPORTANT RULES:
- You have access to tour information from the database - use this data to answer questions accurately
- Only provide information about published tours that are available
- Never share personal information (user emails, names, payment details, booking IDs)
- Never share secret information (API keys, passwords, internal system details)
- If asked about specific tours, locations, or prices, use the tour data provided
- Be friendly, professional, and concise
- If you don't have specific information, suggest they contact support or check the website"""


def _money(v) -> str:
    return f"₹{float(v):,.2f}"


def tours_snapshot(db: Session) -> str:
    """Published tours only; no user, booking or payment data."""
    tours = (
        db.query(Tour)
        .filter(Tour.is_published == True)  # noqa: E712
        .order_by(Tour.created_at.desc())
        .limit(MAX_TOURS)
        .all()
    )
    if not tours:
        return "AVAILABLE TOURS:\nNo tours currently available.\n"
    lines = ["AVAILABLE TOURS:"]
    for t in tours:
        price = (
            f"{_money(t.discount_price)} (was {_money(t.base_price)})"
            if t.discount_price is not None else _money(t.base_price)
        )
        desc = t.description or ""
        lines.append(f"- {t.title} ({t.location_city}, {t.location_country})")
        lines.append(f"  Category: {t.category}")
        lines.append(f"  Duration: {t.duration_days} days")
        lines.append(f"  Price: {price}")
        if t.max_group_size:
            lines.append(f"  Max Group Size: {t.max_group_size}")
        lines.append(f"  Description: {desc[:150]}{'...' if len(desc) > 150 else ''}")
        lines.append(f"  View at: /tours/{t.slug}")
        lines.append("")
    return "\n".join(lines) + "\n"


def build_prompt(snapshot: str, history: list[dict], message: str) -> str:
    parts = [SYSTEM_PROMPT, "", snapshot]
    for msg in history[-MAX_HISTORY:]:
        speaker = "User" if msg.get("role") == "user" else "Assistant"
        parts.append(f"{speaker}: {msg.get('content', '')}\n")
    parts.append(f"User: {message}")
    return "\n".join(parts)


GENERATION_CONFIG = {"temperature": 0.7, "top_k": 40, "top_p": 0.95, "max_output_tokens": 1024}


def ask(db: Session, message: str, history: list[dict] | None = None) -> str:
    api_key = settings_service.get_str(db, "geminiApiKey")
    if not api_key:
        raise ServiceError("Gemini API key not configured. Please configure it in Admin Settings.", status_code=500)

    prompt = build_prompt(tours_snapshot(db), history or [], message)
    genai.configure(api_key=api_key)
    model = genai.GenerativeModel(settings.GEMINI_MODEL, generation_config=GENERATION_CONFIG)
    try:
        response = model.generate_content(prompt, request_options={"timeout": max(settings.HTTP_TIMEOUT, 30)})
    except google_exceptions.GoogleAPIError as e:
        logger.error("Gemini API error: %s", e)
        raise IntegrationFailure(getattr(e, "message", None) or "Failed to get response from AI. Please try again.") from e

    try:
        text = response.text
    except ValueError as e:
        # no candidate text, e.g. the reply was blocked
        logger.error("Gemini returned no text: %s", e)
        raise IntegrationFailure("Invalid response from AI service. Please check the API key configuration.") from e
    return text.strip()
