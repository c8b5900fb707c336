"""
Join-application flow: validate, deduplicate, persist, upload the photo,
produce the certificate, store it and mail the link.

Steps up to and including the photo upload are fail-fast. Once the member
exists, certificate storage and the welcome mail are best-effort: problems
there are logged and the applicant still gets the same success message.
"""
import logging, re
from dataclasses import dataclass, field
from enum import Enum

from forms import MemberForm, parse_form
from utils.certificate import certificate_filename
from utils.documents import now_iso
from utils.errors import DuplicateError, StoreError, UploadError, ValidationError
from utils.images import compress_image, extension_for

log = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Welcome to Our Foundation! Your certificate has been downloaded and a welcome email will be sent shortly."
FAILURE_MESSAGE = "Failed to submit application. Please try again."
PHOTO_FAILURE_MESSAGE = "Your application was saved but the photo could not be uploaded. Please contact us to add it."


class Step(str, Enum):
    VALIDATING = "validating"
    CHECKING_DUPLICATE = "checking-duplicate"
    PERSISTING = "persisting"
    UPLOADING_PHOTO = "uploading-photo"
    GENERATING_CERTIFICATE = "generating-certificate"
    UPLOADING_CERTIFICATE = "uploading-certificate"
    NOTIFYING = "notifying"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class OnboardingResult:
    state: Step = Step.VALIDATING
    member_id: str | None = None
    member: dict | None = None
    certificate: bytes | None = None
    certificate_name: str | None = None
    certificate_url: str | None = None
    email_sent: bool = False
    errors: dict = field(default_factory=dict)
    message: str = ""
    failed_step: Step | None = None
    error: Exception | None = None
    degraded: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is Step.COMPLETE


def certificate_public_id(member_name: str, member_id: str) -> str:
    stem = re.sub(r"\s+", "_", member_name.strip())
    return f"{stem}_{member_id}_certificate"


class MemberOnboarding:
    def __init__(self, store, media, certificates, mailer, founder_name: str, compress=compress_image):
        self.store = store
        self.media = media
        self.certificates = certificates
        self.mailer = mailer
        self.founder_name = founder_name
        self.compress = compress

    def certificate_for(self, member: dict) -> tuple[bytes, str]:
        """PDF bytes and download name for a member record; same bytes as at sign-up."""
        pdf = self.certificates.generate(member["name"], member["joinedDate"], self.founder_name)
        return pdf, certificate_filename(member["name"])

    def _enter(self, result, step):
        result.state = step
        log.debug("onboarding %s -> %s", result.member_id or "new", step.value)

    def _fail(self, result, step, exc, message):
        result.state = Step.ERROR
        result.failed_step = step
        result.error = exc
        result.message = message
        return result

    def run(self, formdata, photo: bytes | None = None, photo_name: str | None = None) -> OnboardingResult:
        result = OnboardingResult()

        # 1. validate; errors stay on the form, no state advance
        try:
            data = parse_form(MemberForm, formdata)
        except ValidationError as e:
            result.errors = e.errors
            result.error = e
            result.message = "Please correct the highlighted fields."
            return result

        # 2. duplicate check
        self._enter(result, Step.CHECKING_DUPLICATE)
        try:
            check = self.store.members.check_duplicate(data["email"], data["name"])
        except StoreError as e:
            return self._fail(result, Step.CHECKING_DUPLICATE, e, FAILURE_MESSAGE)
        if check.is_duplicate:
            dup = DuplicateError(check.field)
            log.info("Join rejected: duplicate %s", check.field)
            return self._fail(result, Step.CHECKING_DUPLICATE, dup, dup.message)

        # 3. persist
        self._enter(result, Step.PERSISTING)
        member = {**data, "photoURL": "", "joinedDate": now_iso()}
        try:
            result.member_id = self.store.members.add(member)
        except StoreError as e:
            return self._fail(result, Step.PERSISTING, e, FAILURE_MESSAGE)
        result.member = {"id": result.member_id, **member}

        # 4. photo
        if photo:
            self._enter(result, Step.UPLOADING_PHOTO)
            try:
                compressed = self.compress(photo)
                name = photo_name or "photo"
                if compressed is not photo:
                    name = name.rsplit(".", 1)[0] + extension_for()
                url = self.media.upload(compressed, "members", filename=name)
                self.store.members.update(result.member_id, {"photoURL": url})
                result.member["photoURL"] = url
            except (UploadError, StoreError) as e:
                # member stays without a photo; needs manual follow-up
                log.warning("Member %s saved without photo after upload failure", result.member_id)
                return self._fail(result, Step.UPLOADING_PHOTO, e, PHOTO_FAILURE_MESSAGE)

        # 5. certificate, always handed back for download
        self._enter(result, Step.GENERATING_CERTIFICATE)
        result.certificate, result.certificate_name = self.certificate_for(member)

        # 6. store certificate (best-effort)
        self._enter(result, Step.UPLOADING_CERTIFICATE)
        try:
            result.certificate_url = self.media.upload(
                result.certificate, "certificates",
                filename=result.certificate_name,
                public_id=certificate_public_id(member["name"], result.member_id),
            )
        except UploadError:
            log.exception("Certificate upload failed for member %s; continuing", result.member_id)
            result.degraded.append(Step.UPLOADING_CERTIFICATE)

        # 7. welcome mail (best-effort)
        self._enter(result, Step.NOTIFYING)
        if result.certificate_url:
            try:
                result.email_sent = bool(self.mailer.send_welcome_email(
                    member["name"], member["email"], result.certificate_url, member["joinedDate"]))
            except Exception:
                log.exception("Welcome email failed for member %s; continuing", result.member_id)
            if not result.email_sent:
                result.degraded.append(Step.NOTIFYING)
        else:
            log.info("No certificate link for member %s; welcome email skipped", result.member_id)
            result.degraded.append(Step.NOTIFYING)

        self._enter(result, Step.COMPLETE)
        result.message = SUCCESS_MESSAGE
        log.info("Member %s onboarded (degraded: %s)", result.member_id, [s.value for s in result.degraded] or "none")
        return result
