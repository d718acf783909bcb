import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from eventdesk.config import Settings
from eventdesk.errors import Result

logger = logging.getLogger(__name__)


def _format_when(start: datetime, end: datetime) -> str:
    """'Sunday, 19 April 2026 10:00 – 12:00' or the full range across days."""
    if start.date() == end.date():
        return f"{start:%A, %d %B %Y %H:%M} – {end:%H:%M}"
    return f"{start:%A, %d %B %Y %H:%M} – {end:%A, %d %B %Y %H:%M}"


def _build_text(name: str, event) -> str:
    lines = [
        f"Hello {name},",
        "",
        f"You are registered for {event.name}.",
        "",
        f"Event: {event.name}",
        f"Type: {event.type.value}",
        f"Location: {event.location}",
        f"Date: {_format_when(event.start_time, event.end_time)}",
    ]
    if event.description:
        lines.append(f"Description: {event.description}")
    lines += ["", "This is an automated confirmation — please do not reply to this email."]
    return "\n".join(lines)


def _build_html(name: str, event) -> str:
    rows = [
        ("Event",    event.name),
        ("Type",     event.type.value),
        ("Location", event.location),
        ("Date",     _format_when(event.start_time, event.end_time)),
    ]
    if event.description:
        rows.append(("Description", event.description))
    detail_rows = "\n".join(
        f'<tr><td style="color:#6b5b9e;font-size:11px;text-transform:uppercase;'
        f'letter-spacing:1px;width:30%;vertical-align:top;">{escape(label)}</td>'
        f'<td style="color:#1a1035;font-size:14px;font-weight:700;">{escape(value)}</td></tr>'
        for label, value in rows
    )
    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Registration Confirmed — {escape(event.name)}</title></head>
<body style="margin:0;padding:24px;background:#f0eef8;font-family:'Segoe UI',Helvetica,Arial,sans-serif;">
  <table width="560" cellpadding="0" cellspacing="0"
         style="margin:0 auto;background:#ffffff;border-radius:14px;border:1px solid #ddd8f0;">
    <tr><td style="padding:28px 32px;">
      <p style="color:#1a1035;font-size:16px;margin:0 0 8px;">Hello, <strong>{escape(name)}</strong></p>
      <p style="color:#444466;font-size:14px;margin:0 0 16px;">Your registration is confirmed.</p>
      <table width="100%" cellpadding="7" cellspacing="0"
             style="background:#f7f4ff;border-radius:10px;border:1px solid #d4c8f5;">
        {detail_rows}
      </table>
      <p style="color:#6b5b9e;font-size:12px;margin:20px 0 0;">
        This is an automated confirmation — please do not reply to this email.
      </p>
    </td></tr>
  </table>
</body>
</html>"""


class Mailer:
    """Sends registration confirmations over SMTP. Never raises."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def send_registration_confirmation(self, to_email: str, name: str, event) -> Result:
        s = self.settings
        if not s.email_enabled:
            return Result.success(
                "email not configured (SMTP_USER/SMTP_PASS not set), skipped"
            )

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = f"Registration Confirmed — {event.name}"
            msg["From"]    = s.smtp_from or s.smtp_user
            msg["To"]      = to_email
            msg.attach(MIMEText(_build_text(name, event), "plain", "utf-8"))
            msg.attach(MIMEText(_build_html(name, event), "html", "utf-8"))

            with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=10) as server:
                server.ehlo()
                server.starttls()
                server.login(s.smtp_user, s.smtp_pass)
                server.sendmail(msg["From"], [to_email], msg.as_string())
        except Exception as exc:
            return Result.failure(exc, f"could not send confirmation to {to_email}: {exc}")

        logger.info("Confirmation email sent → %s (%s)", to_email, event.name)
        return Result.success(f"sent to {to_email}")
