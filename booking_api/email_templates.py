"""
MJML Email Templates
Responsive templates compiled to HTML by email_service
"""

from html import escape
from typing import Optional

# Warm neutral palette used across the booking site
THEME = {
    "background": "#FDFBF7",
    "card_bg": "#FFFFFF",
    "text_primary": "#2A2520",
    "text_secondary": "#5A5248",
    "text_muted": "#8a7d70",
    "border": "#E8E0D6",
    "accent": "#7a6e6b",
}

BRAND_NAME = "Thee You Space"
BRAND_TAGLINE = "where You Open Up"


def get_base_template(title: str, preview_text: str, content_sections: str) -> str:
    """Base MJML template wrapper for all emails"""
    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="Georgia, serif" />
          <mj-text font-size="16px" line-height="1.75" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section padding="32px 20px 0 20px">
          <mj-column>
            <mj-text font-size="28px" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 8px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        <mj-section padding="24px 20px 32px 20px">
          <mj-column>
            <mj-text font-size="15px">
              Take care,<br/>
              <strong>{BRAND_NAME}</strong><br/>
              <em style="font-size: 13px; color: {THEME['text_muted']};">{BRAND_TAGLINE}</em>
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _detail_row(label: str, value: str) -> str:
    return f"""
              <tr>
                <td style="padding: 7px 0; font-size: 15px; color: {THEME['text_muted']}; width: 140px;">{label}</td>
                <td style="padding: 7px 0; font-size: 15px; color: {THEME['text_primary']}; font-weight: 500;">{escape(value)}</td>
              </tr>"""


def booking_confirmation_template(
    booking_id: str,
    name: str,
    session_label: str,
    date_label: str,
    time_label: str,
    professional: Optional[str] = None,
    amount_paid: Optional[int] = None,
    contact_email: Optional[str] = None,
) -> str:
    """Sent to the client once payment is verified"""
    rows = [_detail_row("Session type", session_label)]
    if professional:
        rows.append(_detail_row("Professional", professional))
    rows.append(_detail_row("Date", date_label or "-"))
    rows.append(_detail_row("Time", time_label or "-"))
    if amount_paid is not None:
        rows.append(_detail_row("Amount paid", f"₹{amount_paid}"))

    contact_line = ""
    if contact_email:
        contact_line = f"""
    <mj-text font-size="15px">
      If you need to reschedule or have any questions, reply to this email or reach us at
      <a href="mailto:{contact_email}" style="color: {THEME['accent']};">{contact_email}</a>.
    </mj-text>
    """

    content = f"""
    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="0 0 24px 0">
      Booking ID: {booking_id}
    </mj-text>

    <mj-text>
      Hi {escape(name)},<br/><br/>
      We're looking forward to meeting you. Here are your session details:
    </mj-text>

    <mj-table container-background-color="{THEME['card_bg']}" border="1px solid {THEME['border']}" padding="16px 24px">
      {''.join(rows)}
    </mj-table>
    {contact_line}
    """

    return get_base_template(
        title="Your session is confirmed ✓",
        preview_text=f"{session_label} on {date_label} at {time_label}",
        content_sections=content,
    )
