# utils/media.py
import logging
import requests

from utils.errors import UploadError

log = logging.getLogger(__name__)

UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud}/image/upload"
ROOT_FOLDER = "foundation"

def extract_public_id(url: str) -> str | None:
    """
    https://res.cloudinary.com/<cloud>/image/upload/<transforms>/v123/foundation/members/abc.webp
    -> foundation/members/abc
    """
    parts = (url or "").split("/")
    if "upload" not in parts:
        return None
    rest = [p for p in parts[parts.index("upload") + 1:] if p]
    versions = [i for i, p in enumerate(rest) if p[:1] == "v" and p[1:].isdigit()]
    if versions:
        rest = rest[versions[0] + 1:]
    elif ROOT_FOLDER in rest:
        rest = rest[rest.index(ROOT_FOLDER):]
    else:
        rest = rest[-1:]
    if not rest:
        return None
    rest[-1] = rest[-1].rsplit(".", 1)[0]
    return "/".join(rest) or None


class MediaStore:
    """Unsigned uploads to the media host; deletion is log-only."""

    def __init__(self, settings, timeout: int = 30):
        self.cloud_name = settings.cloudinary_cloud_name
        self.upload_preset = settings.cloudinary_upload_preset
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.upload_preset)

    def upload(self, data: bytes, folder: str, *, filename: str | None = None, public_id: str | None = None) -> str:
        if not self.configured:
            raise UploadError("media store is not configured")

        form = {"upload_preset": self.upload_preset, "folder": f"{ROOT_FOLDER}/{folder}"}
        if public_id:
            form["public_id"] = public_id
        files = {"file": (filename or "upload", data)}

        try:
            r = requests.post(UPLOAD_URL.format(cloud=self.cloud_name), data=form, files=files, timeout=self.timeout)
            r.raise_for_status()
            url = r.json().get("secure_url")
        except (requests.RequestException, ValueError) as e:
            log.exception("Upload to %s failed", form["folder"])
            raise UploadError(f"upload to {form['folder']} failed") from e

        if not url:
            raise UploadError(f"upload to {form['folder']} returned no secure_url")
        log.info("Uploaded %s (%d bytes) -> %s", form["folder"], len(data), url)
        return url

    def delete(self, url: str) -> None:
        # Deleting needs signed admin credentials we do not hold here;
        # record the intent so orphans can be cleaned up by hand.
        try:
            public_id = extract_public_id(url)
            if public_id is None:
                log.warning("Not a media-store URL, nothing to delete: %r", url)
                return
            log.info("Media deletion requested for %s (not performed; needs signed API)", public_id)
        except Exception:
            log.exception("Media deletion bookkeeping failed for %r", url)
