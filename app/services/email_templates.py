"""Transactional email bodies. Each builder returns (subject, html, text)."""
from dataclasses import dataclass
from html import escape

BRAND = "GoFly"
PRIMARY = "#2563eb"


@dataclass
class BookingEmailData:
    booking_id: str
    reference: str
    tour_title: str
    user_name: str
    start_date: str
    end_date: str
    adults: int
    children: int
    total_amount: str
    location: str
    user_email: str = ""
    user_phone: str = ""


def _layout(heading: str, inner_html: str, color: str = PRIMARY) -> str:
    return (
        '<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;">'
        f'<div style="background:{color};color:#fff;padding:20px;text-align:center;">'
        f"<h1 style=\"margin:0;\">{escape(heading)}</h1></div>"
        f'<div style="padding:20px;background:#f9fafb;">{inner_html}</div>'
        f'<p style="color:#6b7280;font-size:12px;text-align:center;">{BRAND} Travel Agency</p>'
        "</div>"
    )


def _rows(pairs: list[tuple[str, object]]) -> str:
    cells = "".join(
        f"<tr><td style=\"padding:4px 8px;color:#6b7280;\">{escape(k)}</td>"
        f"<td style=\"padding:4px 8px;\"><strong>{escape(str(v))}</strong></td></tr>"
        for k, v in pairs
    )
    return f"<table>{cells}</table>"


def _text(pairs: list[tuple[str, object]]) -> str:
    return "\n".join(f"{k}: {v}" for k, v in pairs)


def _booking_pairs(d: BookingEmailData) -> list[tuple[str, object]]:
    travelers = f"{d.adults} adult(s)" + (f", {d.children} child(ren)" if d.children else "")
    return [
        ("Booking reference", d.reference),
        ("Tour", d.tour_title),
        ("Location", d.location),
        ("Dates", f"{d.start_date} - {d.end_date}"),
        ("Travelers", travelers),
        ("Total", d.total_amount),
    ]


def booking_confirmation(d: BookingEmailData) -> tuple[str, str, str]:
    subject = f"Booking Confirmed - {d.tour_title}"
    pairs = _booking_pairs(d)
    html = _layout(
        "Booking Confirmed",
        f"<p>Dear {escape(d.user_name)},</p>"
        "<p>Your booking is confirmed. Here are your trip details:</p>"
        f"{_rows(pairs)}<p>We look forward to travelling with you!</p>",
    )
    text = f"Dear {d.user_name},\n\nYour booking is confirmed.\n\n{_text(pairs)}\n"
    return subject, html, text


def payment_receipt(*, reference: str, payment_id: str, amount: str, currency: str, method: str) -> tuple[str, str, str]:
    subject = f"Payment Receipt - Booking {reference}"
    pairs = [
        ("Booking reference", reference),
        ("Payment ID", payment_id),
        ("Amount", amount),
        ("Currency", currency),
        ("Method", method),
    ]
    html = _layout("Payment Receipt", "<p>Thank you for your payment.</p>" + _rows(pairs), color="#16a34a")
    text = "Thank you for your payment.\n\n" + _text(pairs) + "\n"
    return subject, html, text


def booking_cancellation(d: BookingEmailData, refund_id: str | None = None) -> tuple[str, str, str]:
    subject = f"Booking Cancelled - {d.tour_title}"
    pairs = _booking_pairs(d)
    refund_line = (
        f"A refund has been issued (reference {refund_id})."
        if refund_id else
        "If a payment was made, our team will process your refund."
    )
    html = _layout(
        "Booking Cancelled",
        f"<p>Dear {escape(d.user_name)},</p><p>Your booking has been cancelled.</p>"
        f"{_rows(pairs)}<p>{escape(refund_line)}</p>",
        color="#dc2626",
    )
    text = f"Dear {d.user_name},\n\nYour booking has been cancelled.\n\n{_text(pairs)}\n\n{refund_line}\n"
    return subject, html, text


def admin_booking_notice(d: BookingEmailData) -> tuple[str, str, str]:
    subject = f"Booking Confirmed - {d.tour_title}"
    pairs = _booking_pairs(d) + [("Customer", d.user_name), ("Email", d.user_email)]
    if d.user_phone:
        pairs.append(("Phone", d.user_phone))
    html = _layout("Booking Confirmed", "<p>Payment received for a booking.</p>" + _rows(pairs))
    text = "Payment received for a booking.\n\n" + _text(pairs) + "\n"
    return subject, html, text


def contact_notification(name: str, email: str, message: str) -> tuple[str, str, str]:
    subject = f"New Contact Form Submission from {name}"
    html = _layout(
        "New Contact Message",
        _rows([("Name", name), ("Email", email)])
        + f"<p style=\"white-space:pre-wrap;\">{escape(message)}</p>",
    )
    text = f"Name: {name}\nEmail: {email}\n\n{message}\n"
    return subject, html, text


def password_reset(reset_link: str, user_name: str) -> tuple[str, str, str]:
    subject = f"Reset Your Password - {BRAND}"
    html = _layout(
        "Password Reset",
        f"<p>Hello {escape(user_name)},</p>"
        "<p>We received a request to reset your password. The link expires in 1 hour.</p>"
        f"<p><a href=\"{escape(reset_link)}\" style=\"background:{PRIMARY};color:#fff;padding:10px 20px;"
        "text-decoration:none;border-radius:4px;\">Reset Password</a></p>"
        "<p>If you did not request this, you can ignore this email.</p>",
    )
    text = (
        f"Hello {user_name},\n\nReset your password (link expires in 1 hour):\n{reset_link}\n\n"
        "If you did not request this, you can ignore this email.\n"
    )
    return subject, html, text


def welcome(user_name: str) -> tuple[str, str, str]:
    subject = f"Welcome to {BRAND}!"
    html = _layout(f"Welcome to {BRAND}", f"<p>Hi {escape(user_name)},</p><p>Your account is ready. Start exploring our tours!</p>")
    text = f"Hi {user_name},\n\nYour account is ready. Start exploring our tours!\n"
    return subject, html, text
