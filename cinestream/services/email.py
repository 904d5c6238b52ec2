import logging
import smtplib
from email.message import EmailMessage

import requests

logger = logging.getLogger(__name__)

RESET_EMAIL_HTML = """\
<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <h2>Reset your password</h2>
    <p>Hi {name},</p>
    <p>We received a request to reset the password of your account.
       The link below is valid for one hour.</p>
    <p><a href="{link}">Reset password</a></p>
    <p>If you did not ask for this, you can ignore this email.</p>
  </body>
</html>
"""


class EmailService:
    """Delivers mail through the HTTP API, then SMTP, then a logged simulation."""

    def __init__(self, settings, session=None):
        self.settings = settings
        self.session = session or requests.Session()

    def send(self, to, subject, html, text=None):
        """Returns True when the message was handed off (or simulated)."""
        if self.settings.email_api_key:
            try:
                self._send_api(to, subject, html, text)
                logger.info("Email sent to %s via API", to)
                return True
            except requests.RequestException as exc:
                logger.warning("Email API failed for %s: %s", to, exc)

        if self.settings.smtp_host:
            try:
                self._send_smtp(to, subject, html, text)
                logger.info("Email sent to %s via SMTP", to)
                return True
            except (smtplib.SMTPException, OSError) as exc:
                logger.error("SMTP delivery failed for %s: %s", to, exc)
                return False

        if self.settings.email_api_key:
            return False

        logger.info("[EMAIL SIMULATION] to=%s subject=%s\n%s", to, subject, text or html)
        return True

    def send_password_reset(self, user, link):
        html = RESET_EMAIL_HTML.format(name=user.full_name, link=link)
        text = f"Reset your password: {link}"
        return self.send(user.email, "Reset your password", html, text)

    def _send_api(self, to, subject, html, text):
        payload = {
            "sender": {"email": self.settings.email_from, "name": "CineStream"},
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": html,
        }
        if text:
            payload["textContent"] = text
        resp = self.session.post(
            self.settings.email_api_url,
            json=payload,
            headers={"api-key": self.settings.email_api_key, "accept": "application/json"},
            timeout=10,
        )
        resp.raise_for_status()

    def _send_smtp(self, to, subject, html, text):
        msg = EmailMessage()
        msg["From"] = self.settings.email_from
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text or "")
        msg.add_alternative(html, subtype="html")

        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as smtp:
            smtp.starttls()
            if self.settings.smtp_user:
                smtp.login(self.settings.smtp_user, self.settings.smtp_password)
            smtp.send_message(msg)
