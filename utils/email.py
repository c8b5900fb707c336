import logging, smtplib
from email.message import EmailMessage

import requests
from dateutil import parser as dtparse

from utils.errors import NotificationError

log = logging.getLogger(__name__)

RELAY_URL = "https://api.emailjs.com/api/v1.0/email/send"

def send_email_smtp(
    host, port, use_tls, username, password, sender, to_list, subject, html,
    *, text_body: str | None = None, reply_to: str | None = None, timeout: int = 30
):
    """
    Send an HTML email via SMTP with a plain-text alternative.
    `sender` may be a bare address or '"Name" <address>'.
    """
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = ", ".join(to_list)
    msg["Subject"] = subject
    if reply_to:
        msg["Reply-To"] = reply_to

    msg.set_content(text_body or "This email requires an HTML-capable client.", subtype="plain")
    msg.add_alternative(html or "", subtype="html")

    with smtplib.SMTP(host, port, timeout=timeout) as s:
        if use_tls:
            s.starttls()
        if username:
            s.login(username, password)
        s.send_message(msg)

def long_date(value: str | None) -> str:
    """'2026-10-19T05:30:00.000Z' -> 'October 19, 2026'"""
    try:
        d = dtparse.parse(value) if value else None
    except (ValueError, OverflowError):
        d = None
    if d is None:
        return value or ""
    return f"{d.strftime('%B')} {d.day}, {d.year}"


class EmailDispatcher:
    """
    Templated transactional mail through the hosted relay. Two sends:
    contact-form forwarding and the welcome note with the certificate link.
    """

    def __init__(self, settings, timeout: int = 15):
        self.settings = settings
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return self.settings.relay_configured

    def _send(self, template_id: str, params: dict) -> None:
        s = self.settings
        payload = {
            "service_id": s.emailjs_service_id,
            "template_id": template_id,
            "user_id": s.emailjs_public_key,
            "template_params": params,
        }
        if s.emailjs_private_key:
            payload["accessToken"] = s.emailjs_private_key
        try:
            r = requests.post(RELAY_URL, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationError(f"relay unreachable: {e}") from e
        if r.status_code != 200:
            raise NotificationError(f"relay rejected send ({r.status_code}): {r.text[:200]}")

    def send_contact_message(self, name: str, email: str, subject: str, message: str) -> None:
        if not self.configured:
            log.warning("Email relay not configured; contact message from %s not forwarded", email)
            return

        s = self.settings
        params = {
            "to_email": s.foundation_email,
            "to_name": s.foundation_name,
            "from_name": name,
            "from_email": email,
            "sender_name": name,
            "sender_email": email,
            "reply_to": email,
            "subject": f"Contact Form: {subject}",
            "user_subject": subject,
            "user_message": message,
            "message": (
                "New contact form submission from your website:\n\n"
                f"From: {name}\nEmail: {email}\nSubject: {subject}\n\n"
                f"Message:\n{message}\n\n---\n"
                f"You can reply directly to this email to respond to {name}."
            ),
        }
        template_id = s.emailjs_contact_template_id or s.emailjs_template_id
        try:
            self._send(template_id, params)
        except NotificationError:
            log.exception("Error sending contact email from %s", email)
            raise
        log.info("Contact form email sent (template %s)", template_id)

    def send_welcome_email(self, member_name: str, member_email: str, certificate_url: str,
                           joined_date: str | None = None) -> bool:
        """Returns True when the relay accepted the mail. Never raises."""
        if not self.configured:
            log.debug("Email relay not configured; skipping welcome email to %s", member_email)
            return False

        s = self.settings
        params = {
            "to_email": member_email,
            "to_name": member_name,
            "from_name": s.foundation_name,
            "member_name": member_name,
            "certificate_link": certificate_url,
            "joined_date": long_date(joined_date),
            "message": (
                f"Dear {member_name},\n\nWelcome to the {s.foundation_name} family! "
                f"Your membership certificate is available here: {certificate_url}"
            ),
            "reply_to": s.foundation_email,
        }
        try:
            self._send(s.emailjs_template_id, params)
        except Exception:
            log.exception("Error sending welcome email to %s; registration unaffected", member_email)
            return False
        log.info("Welcome email with certificate link sent to %s", member_email)
        return True
