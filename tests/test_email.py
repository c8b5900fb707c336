import pytest
import requests

from config import ProviderSettings
from utils import email as email_mod
from utils.email import EmailDispatcher, long_date
from utils.errors import NotificationError

SETTINGS = ProviderSettings(
    emailjs_service_id="service_x",
    emailjs_template_id="template_welcome",
    emailjs_contact_template_id="template_contact",
    emailjs_public_key="pk_123",
    foundation_name="Veer Bhagat Singh Foundation",
    foundation_email="office@example.org",
)


class FakeResponse:
    def __init__(self, status=200, text="OK"):
        self.status_code = status
        self.text = text


@pytest.fixture
def relay(monkeypatch):
    calls = []
    responses = []

    def fake_post(url, **kwargs):
        calls.append({"url": url, **kwargs})
        r = responses.pop(0) if responses else FakeResponse()
        if isinstance(r, Exception):
            raise r
        return r

    monkeypatch.setattr(email_mod.requests, "post", fake_post)
    return calls, responses


def test_unconfigured_relay_is_a_quiet_noop(relay):
    calls, _ = relay
    mailer = EmailDispatcher(ProviderSettings())

    mailer.send_contact_message("Vikram", "v@example.org", "Volunteering", "I would like to help out.")
    assert mailer.send_welcome_email("Asha Rao", "asha@example.org", "https://x/cert.pdf") is False
    assert calls == []


def test_contact_message_parameters(relay):
    calls, _ = relay
    EmailDispatcher(SETTINGS).send_contact_message("Vikram", "v@example.org", "Volunteering", "I would like to help out.")

    payload = calls[0]["json"]
    assert calls[0]["url"] == "https://api.emailjs.com/api/v1.0/email/send"
    assert payload["service_id"] == "service_x"
    assert payload["template_id"] == "template_contact"
    assert payload["user_id"] == "pk_123"
    assert "accessToken" not in payload

    params = payload["template_params"]
    assert params["to_email"] == "office@example.org"
    assert params["from_email"] == params["reply_to"] == "v@example.org"
    assert params["subject"] == "Contact Form: Volunteering"
    assert params["user_message"] == "I would like to help out."
    assert "You can reply directly to this email to respond to Vikram." in params["message"]


def test_contact_falls_back_to_generic_template(relay):
    calls, _ = relay
    settings = ProviderSettings(emailjs_service_id="s", emailjs_template_id="generic", emailjs_public_key="k",
                                emailjs_private_key="secret")
    EmailDispatcher(settings).send_contact_message("A", "a@example.org", "Hello", "Message body here.")
    assert calls[0]["json"]["template_id"] == "generic"
    assert calls[0]["json"]["accessToken"] == "secret"


def test_contact_failure_is_raised(relay):
    _, responses = relay
    responses.append(FakeResponse(status=400, text="The template ID is invalid"))
    with pytest.raises(NotificationError):
        EmailDispatcher(SETTINGS).send_contact_message("A", "a@example.org", "Hello", "Message body here.")


def test_contact_network_error_is_raised(relay):
    _, responses = relay
    responses.append(requests.Timeout("slow"))
    with pytest.raises(NotificationError):
        EmailDispatcher(SETTINGS).send_contact_message("A", "a@example.org", "Hello", "Message body here.")


def test_welcome_email_parameters(relay):
    calls, _ = relay
    ok = EmailDispatcher(SETTINGS).send_welcome_email(
        "Asha Rao", "asha@example.org", "https://x/cert.pdf", "2026-10-19T05:30:00.000Z")

    assert ok is True
    payload = calls[0]["json"]
    assert payload["template_id"] == "template_welcome"
    params = payload["template_params"]
    assert params["to_email"] == "asha@example.org"
    assert params["member_name"] == "Asha Rao"
    assert params["certificate_link"] == "https://x/cert.pdf"
    assert params["joined_date"] == "October 19, 2026"
    assert params["reply_to"] == "office@example.org"


def test_welcome_email_failure_is_swallowed(relay):
    _, responses = relay
    responses.append(requests.ConnectionError("offline"))
    assert EmailDispatcher(SETTINGS).send_welcome_email("Asha Rao", "asha@example.org", "https://x/c.pdf") is False


def test_long_date():
    assert long_date("2026-03-05T00:00:00.000Z") == "March 5, 2026"
    assert long_date(None) == ""
    assert long_date("soon") == "soon"
