import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from config import ProviderSettings
from utils.errors import CallableError
from utils.member_hooks import MemberMailer, welcome_html

SETTINGS = ProviderSettings(mail_server="smtp.example.org", mail_from="office@example.org",
                            foundation_name="Veer Bhagat Singh Foundation")


class Outbox:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def __call__(self, host, port, use_tls, username, password, sender, to_list, subject, html, **kw):
        if self.fail:
            raise ConnectionRefusedError("smtp down")
        self.sent.append({"host": host, "sender": sender, "to": to_list, "subject": subject, "html": html})


def _member(store):
    data = {"name": "Asha Rao", "email": "asha@example.org", "contact": "9812345678", "age": 24,
            "address": "12 MG Road, Pune", "photoURL": ""}
    return store.members.add(data), data


def test_created_member_gets_welcome_mail_and_flag(store):
    outbox = Outbox()
    mailer = MemberMailer(SETTINGS, send=outbox)
    member_id, data = _member(store)

    mailer.on_member_created(store.members, member_id, data)

    assert outbox.sent[0]["to"] == ["asha@example.org"]
    assert outbox.sent[0]["subject"] == "Welcome to Veer Bhagat Singh Foundation!"
    assert outbox.sent[0]["sender"] == '"Veer Bhagat Singh Foundation" <office@example.org>'
    rec = store.members.get(member_id)
    assert rec["emailSent"] is True and rec["emailSentAt"]


def test_failed_welcome_mail_is_recorded_on_member(store):
    mailer = MemberMailer(SETTINGS, send=Outbox(fail=True))
    member_id, data = _member(store)

    mailer.on_member_created(store.members, member_id, data)

    rec = store.members.get(member_id)
    assert rec["emailSent"] is False
    assert "smtp down" in rec["emailError"]


def test_hook_runs_on_add(store):
    outbox = Outbox()
    store.members.on_create(MemberMailer(SETTINGS, send=outbox).on_member_created)

    member_id, _ = _member(store)

    assert len(outbox.sent) == 1
    assert store.members.get(member_id)["emailSent"] is True


def test_welcome_html_escapes_member_fields():
    html = welcome_html("Foundation", "id1", {"name": "<b>Asha</b>", "email": "a@example.org"}, 2026)
    assert "&lt;b&gt;Asha&lt;/b&gt;" in html
    assert "<b>Asha</b>" not in html


def test_certificate_email_requires_admin():
    with pytest.raises(CallableError) as e:
        MemberMailer(SETTINGS, send=Outbox()).send_certificate_email({}, authenticated=False)
    assert e.value.code == "unauthenticated"
    assert e.value.http_status == 401


def test_certificate_email_requires_all_fields():
    payload = {"memberEmail": "asha@example.org", "memberName": "Asha Rao"}
    with pytest.raises(CallableError) as e:
        MemberMailer(SETTINGS, send=Outbox()).send_certificate_email(payload, authenticated=True)
    assert e.value.code == "invalid-argument"
    assert e.value.to_dict() == {"error": {"status": "invalid-argument", "message": "Missing required fields"}}


def test_certificate_email_delivery_failure_is_internal():
    payload = {"memberEmail": "asha@example.org", "memberName": "Asha Rao", "certificateUrl": "https://x/c.pdf"}
    with pytest.raises(CallableError) as e:
        MemberMailer(SETTINGS, send=Outbox(fail=True)).send_certificate_email(payload, authenticated=True)
    assert e.value.code == "internal"
    assert e.value.message == "Failed to send email"


def test_certificate_email_success():
    outbox = Outbox()
    payload = {"memberEmail": "asha@example.org", "memberName": "Asha Rao", "certificateUrl": "https://x/c.pdf"}

    out = MemberMailer(SETTINGS, send=outbox).send_certificate_email(payload, authenticated=True)

    assert out == {"success": True, "message": "Certificate email sent successfully"}
    assert outbox.sent[0]["subject"] == "Your Membership Certificate - Veer Bhagat Singh Foundation"
    assert 'href="https://x/c.pdf"' in outbox.sent[0]["html"]


def test_queued_welcome_mail_does_not_block_add(store):
    gate = threading.Event()
    outbox = Outbox()

    def slow_send(*args, **kw):
        assert gate.wait(5)
        outbox(*args, **kw)

    executor = ThreadPoolExecutor(max_workers=1)
    store.members.on_create(MemberMailer(SETTINGS, send=slow_send, executor=executor).on_member_created)

    member_id, _ = _member(store)
    # add() has returned while the SMTP send is still waiting
    assert outbox.sent == []

    gate.set()
    executor.shutdown(wait=True)

    assert len(outbox.sent) == 1
    assert store.members.get(member_id)["emailSent"] is True
