import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env")

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-prod")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///foundation.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    MAIL_SERVER = os.getenv("MAIL_SERVER", "")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = os.getenv("MAIL_USE_TLS", "true").lower() == "true"
    MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
    # app passwords are often pasted with spaces
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "").replace(" ", "")
    MAIL_FROM = os.getenv("MAIL_FROM", "")

    CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
    CLOUDINARY_UPLOAD_PRESET = os.getenv("CLOUDINARY_UPLOAD_PRESET", "")

    EMAILJS_SERVICE_ID = os.getenv("EMAILJS_SERVICE_ID", "")
    EMAILJS_TEMPLATE_ID = os.getenv("EMAILJS_TEMPLATE_ID", "")
    EMAILJS_CONTACT_TEMPLATE_ID = os.getenv("EMAILJS_CONTACT_TEMPLATE_ID", "")
    EMAILJS_PUBLIC_KEY = os.getenv("EMAILJS_PUBLIC_KEY", "")
    EMAILJS_PRIVATE_KEY = os.getenv("EMAILJS_PRIVATE_KEY", "")

    FOUNDATION_NAME = os.getenv("FOUNDATION_NAME", "Veer Bhagat Singh Foundation")
    FOUNDATION_EMAIL = os.getenv("FOUNDATION_EMAIL", "vabdarwekar00@gmail.com")
    FOUNDER_NAME = os.getenv("FOUNDER_NAME", "Pranay Rode")
    LOGO_PATH = os.getenv("LOGO_PATH", str(Path(__file__).resolve().parent / "static" / "logo.jpg"))

    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")


@dataclass(frozen=True)
class ProviderSettings:
    """
    Credentials and identity for every outside service, read once from the
    Flask config when the app is built and handed to each client.
    """
    cloudinary_cloud_name: str = ""
    cloudinary_upload_preset: str = ""

    emailjs_service_id: str = ""
    emailjs_template_id: str = ""
    emailjs_contact_template_id: str = ""
    emailjs_public_key: str = ""
    emailjs_private_key: str = ""

    mail_server: str = ""
    mail_port: int = 587
    mail_use_tls: bool = True
    mail_username: str = ""
    mail_password: str = ""
    mail_from: str = ""

    foundation_name: str = "Veer Bhagat Singh Foundation"
    foundation_email: str = ""
    founder_name: str = ""
    logo_path: str = ""

    admin_email: str = ""
    admin_password: str = ""

    @classmethod
    def from_mapping(cls, cfg) -> "ProviderSettings":
        return cls(
            cloudinary_cloud_name=cfg.get("CLOUDINARY_CLOUD_NAME", ""),
            cloudinary_upload_preset=cfg.get("CLOUDINARY_UPLOAD_PRESET", ""),
            emailjs_service_id=cfg.get("EMAILJS_SERVICE_ID", ""),
            emailjs_template_id=cfg.get("EMAILJS_TEMPLATE_ID", ""),
            emailjs_contact_template_id=cfg.get("EMAILJS_CONTACT_TEMPLATE_ID", ""),
            emailjs_public_key=cfg.get("EMAILJS_PUBLIC_KEY", ""),
            emailjs_private_key=cfg.get("EMAILJS_PRIVATE_KEY", ""),
            mail_server=cfg.get("MAIL_SERVER", ""),
            mail_port=int(cfg.get("MAIL_PORT", 587)),
            mail_use_tls=bool(cfg.get("MAIL_USE_TLS", True)),
            mail_username=cfg.get("MAIL_USERNAME", ""),
            mail_password=cfg.get("MAIL_PASSWORD", ""),
            mail_from=cfg.get("MAIL_FROM", "") or cfg.get("FOUNDATION_EMAIL", ""),
            foundation_name=cfg.get("FOUNDATION_NAME", ""),
            foundation_email=cfg.get("FOUNDATION_EMAIL", ""),
            founder_name=cfg.get("FOUNDER_NAME", ""),
            logo_path=cfg.get("LOGO_PATH", ""),
            admin_email=cfg.get("ADMIN_EMAIL", ""),
            admin_password=cfg.get("ADMIN_PASSWORD", ""),
        )

    @property
    def media_configured(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_upload_preset)

    @property
    def relay_configured(self) -> bool:
        return bool(self.emailjs_service_id and self.emailjs_template_id and self.emailjs_public_key)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.mail_server and self.mail_from)
