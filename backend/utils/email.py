"""
utils/email.py — SendGrid email helpers.

All outbound email goes through `send_email()`. It is a no-op if
SENDGRID_API_KEY is not configured, so the portal invitation flow still
works in development (the link is returned in the API response instead).
"""

import logging
import re

from markupsafe import escape

log = logging.getLogger(__name__)


def send_email(
    to_email: str,
    subject: str,
    html_body: str,
    text_body: str = "",
    from_email: str = "",
    from_name: str = "",
) -> bool:
    """
    Send a transactional email via SendGrid.

    Returns True on success, False on failure. Delivery problems are logged
    and reported through the return value; callers decide whether email is
    essential to their operation.
    """
    from flask import current_app

    api_key      = current_app.config.get("SENDGRID_API_KEY", "")
    default_from = current_app.config.get("SENDGRID_FROM_EMAIL", "")
    firm_name    = current_app.config.get("FIRM_NAME", "LegalCRM Pro")

    if not api_key:
        log.warning(f"SendGrid not configured — email to {to_email} suppressed.")
        return False

    plain = text_body or _html_to_plain(html_body)

    from sendgrid import SendGridAPIClient
    from sendgrid.helpers.mail import Mail, Email, To, Content

    message = Mail(
        from_email=Email(from_email or default_from, from_name or firm_name),
        to_emails=To(to_email),
        subject=subject,
    )
    message.add_content(Content("text/plain", plain))
    message.add_content(Content("text/html", html_body))

    try:
        response = SendGridAPIClient(api_key).send(message)
    except Exception as exc:
        log.error(f"SendGrid error sending to {to_email}: {exc}")
        return False

    if response.status_code in (200, 202):
        log.info(f"Email sent to {to_email}: {subject!r} (status {response.status_code})")
        return True
    log.error(f"SendGrid returned {response.status_code} sending to {to_email}")
    return False


def _html_to_plain(html: str) -> str:
    """Naïve HTML → plain text fallback (strips tags)."""
    text = re.sub(r"<br\s*/?>", "\n", html, flags=re.IGNORECASE)
    text = re.sub(r"</(p|li|h\d)>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


# ── Email templates ───────────────────────────────────────────────────────────

def portal_invitation_email(
    first_name: str, attorney_name: str, invitation_link: str, firm_name: str, expiry_days: int = 7
) -> tuple[str, str]:
    """Returns (subject, html_body) for a client portal invitation."""
    subject = f"You're invited to the {firm_name} client portal"
    html = f"""
<!DOCTYPE html>
<html>
<body style="font-family:Arial,sans-serif;color:#1e293b;max-width:560px;margin:0 auto;padding:24px;">
  <h2 style="color:#0f1a2e;margin-bottom:4px;">{escape(firm_name)}</h2>
  <hr style="border:none;border-top:2px solid #2563eb;margin-bottom:24px;">
  <p>Dear <strong>{escape(first_name)}</strong>,</p>
  <p>{escape(attorney_name)} has invited you to your secure client portal, where you can
     follow your case, view invoices, see upcoming appointments and court dates,
     and message your legal team.</p>
  <p style="text-align:center;margin:32px 0;">
    <a href="{invitation_link}" style="background:#2563eb;color:#fff;text-decoration:none;
       padding:12px 28px;border-radius:4px;font-weight:600;display:inline-block;">
      Set Up Your Account
    </a>
  </p>
  <p style="font-size:0.85em;color:#64748b;">
    If the button does not work, copy this link into your browser:<br>
    <a href="{invitation_link}" style="color:#2563eb;word-break:break-all;">{invitation_link}</a>
  </p>
  <p style="font-size:0.8em;color:#94a3b8;margin-top:32px;">
    This invitation expires in {expiry_days} days.
  </p>
</body>
</html>
"""
    return subject, html


def invoice_notice_email(
    client_name: str, invoice_number: str, total: str, due_date: str, portal_url: str, firm_name: str
) -> tuple[str, str]:
    """Returns (subject, html_body) for a new-invoice notice."""
    subject = f"Invoice {invoice_number} from {firm_name}"
    html = f"""
<!DOCTYPE html>
<html>
<body style="font-family:Arial,sans-serif;color:#1e293b;max-width:560px;margin:0 auto;padding:24px;">
  <h2 style="color:#0f1a2e;margin-bottom:4px;">{escape(firm_name)}</h2>
  <hr style="border:none;border-top:2px solid #2563eb;margin-bottom:24px;">
  <p>Dear <strong>{escape(client_name)}</strong>,</p>
  <p>Invoice <strong>{escape(invoice_number)}</strong> for <strong>${escape(total)}</strong>
     has been issued and is due on <strong>{escape(due_date)}</strong>.</p>
  <p>You can view the invoice and its line items in your client portal:</p>
  <p style="text-align:center;margin:32px 0;">
    <a href="{portal_url}" style="background:#2563eb;color:#fff;text-decoration:none;
       padding:12px 28px;border-radius:4px;font-weight:600;display:inline-block;">
      View Invoice
    </a>
  </p>
</body>
</html>
"""
    return subject, html
