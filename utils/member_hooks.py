# utils/member_hooks.py
import logging
from datetime import date

from flask import current_app
from markupsafe import escape

from utils.documents import now_iso
from utils.email import send_email_smtp
from utils.errors import CallableError

log = logging.getLogger(__name__)

_STYLE = """
  body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
  .container { max-width: 600px; margin: 0 auto; padding: 20px; }
  .header { background-color: #D97706; color: white; padding: 20px; text-align: center; }
  .content { padding: 20px; background-color: #f9f9f9; }
  .footer { text-align: center; padding: 20px; color: #666; font-size: 12px; }
  .button { display: inline-block; padding: 10px 20px; background-color: #D97706;
            color: white; text-decoration: none; border-radius: 5px; margin-top: 10px; }
"""

def _page(header, body, footer):
    return f"""<!DOCTYPE html>
<html><head><style>{_STYLE}</style></head>
<body><div class="container">
  <div class="header"><h1>{header}</h1></div>
  <div class="content">{body}</div>
  <div class="footer">{footer}</div>
</div></body></html>"""

def welcome_html(foundation, member_id, member, year):
    f = escape(foundation)
    name, email, contact = (escape(member.get(k, "")) for k in ("name", "email", "contact"))
    body = f"""
    <h2>Dear {name},</h2>
    <p>Thank you for joining {f}! We are delighted to have you as a member of our community.</p>
    <p><strong>Your Membership Details:</strong></p>
    <ul>
      <li><strong>Name:</strong> {name}</li>
      <li><strong>Email:</strong> {email}</li>
      <li><strong>Contact:</strong> {contact}</li>
      <li><strong>Member ID:</strong> {escape(member_id)}</li>
    </ul>
    <p>Your membership certificate has been generated. You can download it from the link we send you separately.</p>
    <p>We look forward to working with you in our mission to create positive change in our community.</p>
    <p>Best regards,<br><strong>{f}</strong></p>"""
    footer = (f"<p>&copy; {year} {f}. All rights reserved.</p>"
              "<p>Inspired by the ideals of Shaheed Bhagat Singh, we work towards creating a society "
              "based on equality, justice, and human welfare.</p>")
    return _page(f"Welcome to {f}!", body, footer)

def certificate_html(foundation, member_name, certificate_url, year):
    f = escape(foundation)
    body = f"""
    <h2>Dear {escape(member_name)},</h2>
    <p>Your membership certificate is ready!</p>
    <p>Click the button below to download your certificate:</p>
    <a href="{escape(certificate_url)}" class="button">Download Certificate</a>
    <p>Thank you for being a valued member of our foundation.</p>
    <p>Best regards,<br><strong>{f}</strong></p>"""
    return _page(f, body, f"<p>&copy; {year} {f}. All rights reserved.</p>")


class MemberMailer:
    """
    SMTP notifications around member records: the welcome mail sent when a
    member document is created, and the on-demand certificate mail.

    With an executor the welcome mail runs off the request thread, inside a
    fresh app context, so a slow SMTP server does not hold up sign-up.
    """

    def __init__(self, settings, send=send_email_smtp, executor=None):
        self.settings = settings
        self.send = send
        self.executor = executor

    @property
    def sender(self) -> str:
        s = self.settings
        return f'"{s.foundation_name}" <{s.mail_from}>'

    def _deliver(self, to, subject, html):
        s = self.settings
        self.send(s.mail_server, s.mail_port, s.mail_use_tls, s.mail_username, s.mail_password,
                  self.sender, [to], subject, html)

    def on_member_created(self, members, member_id: str, member: dict):
        """create hook for the members collection; returns the Future when queued"""
        if self.executor is None:
            return self.welcome(members, member_id, member)

        app = current_app._get_current_object()

        def job():
            with app.app_context():
                self.welcome(members, member_id, member)

        return self.executor.submit(job)

    def welcome(self, members, member_id: str, member: dict) -> None:
        """send the welcome mail and record the outcome on the member document"""
        try:
            self._deliver(
                member["email"],
                f"Welcome to {self.settings.foundation_name}!",
                welcome_html(self.settings.foundation_name, member_id, member, date.today().year),
            )
        except Exception as e:
            log.exception("Error sending welcome email for member %s", member_id)
            patch = {"emailSent": False, "emailError": str(e) or e.__class__.__name__}
        else:
            log.info("Welcome email sent to %s", member.get("email"))
            patch = {"emailSent": True, "emailSentAt": now_iso()}

        try:
            members.update(member_id, patch)
        except Exception:
            log.exception("Could not record email status on member %s", member_id)

    def send_certificate_email(self, payload: dict | None, authenticated: bool) -> dict:
        if not authenticated:
            raise CallableError("unauthenticated", "User must be authenticated")

        payload = payload or {}
        email, name, url = (payload.get(k) for k in ("memberEmail", "memberName", "certificateUrl"))
        if not (email and name and url):
            raise CallableError("invalid-argument", "Missing required fields")

        try:
            self._deliver(
                email,
                f"Your Membership Certificate - {self.settings.foundation_name}",
                certificate_html(self.settings.foundation_name, name, url, date.today().year),
            )
        except Exception as e:
            log.exception("Error sending certificate email to %s", email)
            raise CallableError("internal", "Failed to send email") from e

        return {"success": True, "message": "Certificate email sent successfully"}
