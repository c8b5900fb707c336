from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable

from flask import current_app

from config import ProviderSettings
from onboarding import MemberOnboarding
from utils.certificate import CertificateGenerator
from utils.documents import DocumentStore
from utils.email import EmailDispatcher
from utils.images import compress_image
from utils.media import MediaStore
from utils.member_hooks import MemberMailer

@dataclass
class Services:
    settings: ProviderSettings
    store: DocumentStore
    media: MediaStore
    mailer: EmailDispatcher
    certificates: CertificateGenerator
    member_mailer: MemberMailer
    compress: Callable = field(default=compress_image)

    @property
    def onboarding(self) -> MemberOnboarding:
        return MemberOnboarding(self.store, self.media, self.certificates, self.mailer,
                                self.settings.founder_name, compress=self.compress)

def build_services(settings: ProviderSettings) -> Services:
    store = DocumentStore()
    member_mailer = MemberMailer(settings, executor=ThreadPoolExecutor(max_workers=2, thread_name_prefix="member-mail"))
    if settings.smtp_configured:
        store.members.on_create(member_mailer.on_member_created)
    return Services(
        settings=settings,
        store=store,
        media=MediaStore(settings),
        mailer=EmailDispatcher(settings),
        certificates=CertificateGenerator(settings),
        member_mailer=member_mailer,
    )

def services() -> Services:
    return current_app.extensions["foundation"]
