"""
Test configuration and fixtures for the foundation site.
"""
import io
import pytest
from PIL import Image

from app import create_app
from models import db
from utils.certificate import CertificateGenerator
from utils.errors import NotificationError, UploadError


TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test-secret",
    # in-memory SQLite; Flask-SQLAlchemy shares one connection across threads
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "WTF_CSRF_ENABLED": False,
    "ADMIN_EMAIL": "admin@example.org",
    "ADMIN_PASSWORD": "s3cret",
    "MAIL_SERVER": "",
    "CLOUDINARY_CLOUD_NAME": "",
    "CLOUDINARY_UPLOAD_PRESET": "",
    "EMAILJS_SERVICE_ID": "",
    "EMAILJS_TEMPLATE_ID": "",
    "EMAILJS_PUBLIC_KEY": "",
    "LOGO_PATH": "",
    "FOUNDER_NAME": "Pranay Rode",
}


class FakeMedia:
    """Stands in for the media host; records uploads and deletions."""
    configured = True

    def __init__(self):
        self.uploads = []
        self.deleted = []
        self.fail_folders = set()
        self.fail_when = None

    def upload(self, data, folder, *, filename=None, public_id=None):
        if folder in self.fail_folders or (self.fail_when and self.fail_when(data)):
            raise UploadError(f"upload to foundation/{folder} failed")
        self.uploads.append({"folder": folder, "filename": filename, "public_id": public_id, "size": len(data)})
        name = public_id or f"file{len(self.uploads)}"
        return f"https://res.cloudinary.com/demo/image/upload/v1700000000/foundation/{folder}/{name}.webp"

    def delete(self, url):
        self.deleted.append(url)


class FakeRelay:
    """Stands in for the email relay."""

    def __init__(self):
        self.welcome = []
        self.contact = []
        self.fail = False

    def send_welcome_email(self, member_name, member_email, certificate_url, joined_date=None):
        self.welcome.append({"name": member_name, "email": member_email,
                             "url": certificate_url, "joined": joined_date})
        return not self.fail

    def send_contact_message(self, name, email, subject, message):
        if self.fail:
            raise NotificationError("relay rejected send (400)")
        self.contact.append({"name": name, "email": email, "subject": subject, "message": message})


def png_bytes(size=(64, 48), color=(200, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def app():
    app = create_app(TEST_CONFIG)
    svc = app.extensions["foundation"]
    svc.media = FakeMedia()
    svc.mailer = FakeRelay()
    svc.certificates = CertificateGenerator(svc.settings, fetch_logo=lambda source: None)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def svc(app):
    return app.extensions["foundation"]


@pytest.fixture
def store(svc):
    return svc.store


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(app):
    c = app.test_client()
    with c.session_transaction() as s:
        s["is_admin"] = True
    return c


@pytest.fixture
def applicant():
    return {
        "name": "Asha Rao",
        "email": "asha@example.org",
        "age": "24",
        "address": "12 MG Road, Pune, Maharashtra 411001",
        "contact": "+919812345678",
    }


@pytest.fixture
def make_png():
    return png_bytes
