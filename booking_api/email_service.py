"""
Email Service using SMTP (primary) or Resend (fallback)
Templates are MJML, compiled to HTML before sending
"""

import asyncio
import logging
import smtplib
import ssl
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import RESEND_API_KEY, SMTP_FROM, SMTP_HOST, SMTP_PASS, SMTP_PORT, SMTP_USER
from .domain.bookings.ledger import Booking
from .domain.bookings.pricing import SESSION_NORMAL
from .email_templates import BRAND_NAME, booking_confirmation_template

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(Exception):
    """Neither SMTP credentials nor a Resend key are set"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    errors = getattr(result, "errors", None) or (
        result.get("errors") if isinstance(result, dict) else None
    )
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    if isinstance(result, dict):
        return result.get("html", "")
    return getattr(result, "html", str(result))


def send_via_smtp(recipients: list[str], subject: str, html_content: str, from_address: str) -> dict:
    """Blocking SMTP send (STARTTLS on 587, implicit TLS on 465)"""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = from_address
    msg["To"] = ", ".join(recipients)
    msg.attach(MIMEText(html_content, "html", "utf-8"))

    context = ssl.create_default_context()
    if SMTP_PORT == 465:
        server = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, context=context, timeout=30)
    else:
        server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30)
        server.starttls(context=context)

    try:
        server.login(SMTP_USER, SMTP_PASS)
        server.sendmail(from_address.split("<")[-1].rstrip(">"), recipients, msg.as_string())
    finally:
        server.quit()

    logger.info(f"✅ SMTP email sent successfully via {SMTP_HOST}")
    return {"id": f"smtp-{datetime.now(timezone.utc).timestamp()}", "success": True}


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email using SMTP (if configured) or Resend (fallback)

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to
    sender = from_address or SMTP_FROM

    if SMTP_USER and SMTP_PASS:
        try:
            logger.info(f"📧 Sending email via SMTP: {SMTP_HOST}")
            return await asyncio.to_thread(send_via_smtp, recipients, subject, html_content, sender)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"⚠️ SMTP failed, falling back to Resend: {e}")

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - SMTP credentials and RESEND_API_KEY missing")
        raise EmailNotConfiguredError("Email service not configured")

    logger.info(f"📧 Sending email via Resend to: {recipients}")
    response = await asyncio.to_thread(
        resend.Emails.send,
        {"from": sender, "to": recipients, "subject": subject, "html": html_content},
    )
    logger.info(f"✅ Email sent successfully via Resend: {response}")
    return response


# ============================================
# Booking emails
# ============================================


async def send_booking_confirmation(booking: Booking) -> Optional[dict]:
    """Confirmation email after payment is verified"""
    if not booking.email:
        logger.error(f"❌ No email address on booking {booking.id} - skipping confirmation")
        return None

    session_label = "Regular Session" if booking.session_type == SESSION_NORMAL else "Priority Session"
    mjml_content = booking_confirmation_template(
        booking_id=booking.id,
        name=booking.name,
        session_label=session_label,
        date_label=booking.selected_slot.date,
        time_label=booking.selected_slot.time,
        professional=booking.selected_slot.professional,
        amount_paid=booking.pricing.display_amount,
        contact_email=SMTP_USER,
    )
    response = await send_email(
        to=booking.email,
        subject=f"Your session is confirmed - {BRAND_NAME}",
        mjml_content=mjml_content,
    )
    logger.info(f"✅ Confirmation sent to {booking.email} for booking {booking.id}")
    return response
