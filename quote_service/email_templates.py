"""HTML bodies for outgoing client and staff emails."""

from __future__ import annotations

from html import escape

from quote_service.config import Branding


def _branded(branding: Branding, body: str) -> str:
    return f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <div style="background-color: {branding.email_accent}; padding: 20px; border-radius: 8px 8px 0 0;">
          <h1 style="color: white; margin: 0; font-size: 22px;">{escape(branding.company_name)}</h1>
          <p style="color: rgba(255,255,255,0.85); margin: 4px 0 0; font-size: 13px;">{escape(branding.tagline)}</p>
        </div>
        <div style="padding: 24px; border: 1px solid #e5e5e5; border-top: none; border-radius: 0 0 8px 8px;">
          {body}
          <hr style="border: none; border-top: 1px solid #e5e5e5; margin: 24px 0;" />
          <p style="font-size: 12px; color: #888;">
            {escape(branding.company_name)}<br/>
            {escape(branding.contact_line)}
          </p>
        </div>
      </div>
    """


def _para(text: str) -> str:
    return f'<p style="font-size: 15px; color: #333; line-height: 1.6;">{text}</p>'


def report_email(client_name: str, site_name: str, branding: Branding | None = None) -> tuple[str, str]:
    """(subject, html) for a service report."""
    branding = branding or Branding()
    site = escape(site_name or "your site")
    body = "\n".join(
        [
            _para(f"Hi {escape(client_name or 'there')},"),
            _para(f"Please find attached the service report for <strong>{site}</strong>."),
            _para(
                "This report includes the full inspection results, any defects found, recommendations, "
                "and your next scheduled service date."
            ),
            _para(
                "If you have any questions about this report or would like to discuss any items further, "
                "please don't hesitate to contact us."
            ),
        ]
    )
    return f"Service Report - {site_name or 'Crane Inspection'}", _branded(branding, body)


def quote_email(
    contact_name: str,
    client_name: str,
    quote_name: str,
    validity_days: int,
    branding: Branding | None = None,
) -> tuple[str, str]:
    branding = branding or Branding()
    body = "\n".join(
        [
            _para(f"Hi {escape(contact_name or 'there')},"),
            _para(
                f"Please find attached our quote <strong>{escape(quote_name)}</strong> "
                f"for {escape(client_name or 'your site')}."
            ),
            _para(f"This quote is valid for {validity_days} days from the date of issue."),
            _para("To accept the quote or discuss any of the items, simply reply to this email."),
        ]
    )
    return f"Quote: {quote_name}", _branded(branding, body)


def reminder_email(technician_name: str, quote_lines: list[str]) -> tuple[str, str]:
    """(subject, html) for a digest of one technician's unsent quotes."""
    count = len(quote_lines)
    plural = count > 1
    first_name = (technician_name.split(" ")[0] if technician_name else "") or "there"
    listing = escape("\n".join(quote_lines))
    html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <div style="background: #1a1a1a; padding: 20px; border-radius: 12px 12px 0 0;">
            <h2 style="color: #ffffff; margin: 0;">Quote Reminder</h2>
          </div>
          <div style="padding: 24px; background: #ffffff; border: 1px solid #e5e5e5;">
            <p>Hi {escape(first_name)},</p>
            <p>You have <strong>{count} unsent quote{"s" if plural else ""}</strong> that {"are" if plural else "is"} older than 24 hours:</p>
            <div style="background: #fff7ed; border: 1px solid #fed7aa; border-radius: 8px; padding: 16px; margin: 16px 0;">
              <pre style="margin: 0; white-space: pre-wrap; font-size: 14px;">{listing}</pre>
            </div>
            <p>Please send these quotes to the client as soon as possible.</p>
          </div>
        </div>
    """
    subject = f"{count} Unsent Quote{'s' if plural else ''} - {technician_name}"
    return subject, html
