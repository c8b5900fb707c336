# utils/documents.py
import itertools, json, logging, queue, re, secrets, string, threading
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from models import db, Document
from utils.errors import StoreError, UploadError
from utils.images import compress_image, compress_many

log = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_letters + string.digits

STREAM_HEARTBEAT = 15  # seconds

DuplicateCheck = namedtuple("DuplicateCheck", ["is_duplicate", "field"])

def new_id(size: int = 20) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(size))

def now_iso() -> str:
    # same shape as a browser's Date.toISOString(), so string order == time order
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")

def _json_eq(field, value):
    col = Document.data[field]
    if isinstance(value, bool):
        return col.as_boolean() == value
    if isinstance(value, int):
        return col.as_integer() == value
    return col.as_string() == value


class Subscription:
    """
    Disposer returned by subscribe(). Call it (or .close()) when the owner
    goes away; closing twice is harmless. Also works as a context manager.
    """
    def __init__(self, release):
        self._release = release
        self.closed = False

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._release()

    def __call__(self):
        self.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def event_stream(subscribe, heartbeat: float = STREAM_HEARTBEAT):
    """
    Server-sent-event frames for subscribe(callback): one "data:" frame per
    snapshot, a comment line every `heartbeat` seconds while idle. The
    subscription is taken now and released when the consumer closes the
    generator.
    """
    updates = queue.Queue()
    sub = subscribe(updates.put)

    def frames():
        try:
            while True:
                try:
                    snapshot = updates.get(timeout=heartbeat)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                yield f"data: {json.dumps(snapshot, default=str)}\n\n"
        finally:
            sub.close()

    return frames()


class _Observable:
    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._listeners = {}
        self._seq = itertools.count(1)

    @contextmanager
    def _reading(self, op: str):
        try:
            yield
        except SQLAlchemyError as e:
            db.session.rollback()
            log.exception("Store read failed: %s on %s", op, self.name)
            raise StoreError(f"{op} on {self.name} failed") from e

    @contextmanager
    def _writing(self, op: str):
        try:
            yield
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.exception("Store write failed: %s on %s", op, self.name)
            raise StoreError(f"{op} on {self.name} failed") from e

    def _snapshot(self, where: dict):
        raise NotImplementedError

    def _subscribe(self, callback, where: dict) -> Subscription:
        key = next(self._seq)
        with self._lock:
            self._listeners[key] = (callback, where)

        def release():
            with self._lock:
                self._listeners.pop(key, None)
            log.debug("Listener %s on %s released", key, self.name)

        sub = Subscription(release)
        try:
            callback(self._snapshot(where))
        except Exception:
            sub.close()
            raise
        return sub

    def _publish(self):
        with self._lock:
            listeners = list(self._listeners.values())
        for callback, where in listeners:
            try:
                callback(self._snapshot(where))
            except Exception:
                log.exception("Listener on %s crashed", self.name)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)


class Collection(_Observable):
    """
    A named set of documents. Records come back as plain dicts with the
    generated id under "id".
    """
    def __init__(self, name: str, order_by: str | None = None, timestamp_field: str | None = None):
        super().__init__(name)
        self.order_by = order_by
        self.timestamp_field = timestamp_field
        self._create_hooks = []

    def _query(self, where: dict):
        q = Document.query.filter_by(collection=self.name)
        for field, value in where.items():
            q = q.filter(_json_eq(field, value))
        if self.order_by:
            return q.order_by(Document.data[self.order_by].as_string().desc(), Document.created_at.desc())
        return q.order_by(Document.created_at.asc())

    def _snapshot(self, where: dict) -> list[dict]:
        with self._reading("query"):
            return [d.as_record() for d in self._query(where).all()]

    def get_all(self) -> list[dict]:
        return self._snapshot({})

    def find(self, **where) -> list[dict]:
        return self._snapshot(where)

    def get(self, doc_id: str) -> dict | None:
        with self._reading("get"):
            doc = db.session.get(Document, (self.name, doc_id))
            return doc.as_record() if doc else None

    def count(self) -> int:
        with self._reading("count"):
            return Document.query.filter_by(collection=self.name).count()

    def subscribe(self, callback, **where) -> Subscription:
        return self._subscribe(callback, where)

    def on_create(self, hook):
        """hook(collection, doc_id, data) runs after each successful add."""
        self._create_hooks.append(hook)
        return hook

    def _prepare(self, data: dict) -> dict:
        if self.timestamp_field and not data.get(self.timestamp_field):
            data[self.timestamp_field] = now_iso()
        return data

    def add(self, record: dict) -> str:
        data = self._prepare({k: v for k, v in record.items() if k != "id"})
        doc_id = new_id()
        with self._writing("add"):
            db.session.add(Document(collection=self.name, id=doc_id, data=data))
        log.info("Added %s/%s", self.name, doc_id)
        self._publish()
        for hook in self._create_hooks:
            try:
                hook(self, doc_id, dict(data))
            except Exception:
                log.exception("on_create hook failed for %s/%s", self.name, doc_id)
        return doc_id

    def update(self, doc_id: str, partial: dict) -> None:
        changes = {k: v for k, v in partial.items() if k != "id"}
        with self._writing("update"):
            doc = db.session.get(Document, (self.name, doc_id))
            if doc is None:
                raise StoreError(f"{self.name}/{doc_id} not found")
            doc.data = {**(doc.data or {}), **changes}
        self._publish()

    def delete(self, doc_id: str) -> None:
        with self._writing("delete"):
            doc = db.session.get(Document, (self.name, doc_id))
            if doc is not None:
                db.session.delete(doc)
        log.info("Deleted %s/%s", self.name, doc_id)
        self._publish()


class Members(Collection):
    def check_duplicate(self, email: str, name: str) -> DuplicateCheck:
        # exact match on both; name is case-sensitive like the stored value
        if self.find(email=email):
            return DuplicateCheck(True, "email")
        if self.find(name=name):
            return DuplicateCheck(True, "name")
        return DuplicateCheck(False, None)


class News(Collection):
    def _prepare(self, data: dict) -> dict:
        data = super()._prepare(data)
        data["slug"] = self._unique_slug(data.get("slug") or slugify(data.get("title", "")))
        data.setdefault("views", 0)
        return data

    def _unique_slug(self, base: str, exclude: str | None = None) -> str:
        base = base or new_id(8).lower()
        slug, n = base, 1
        while any(r["id"] != exclude for r in self.find(slug=slug)):
            n += 1
            slug = f"{base}-{n}"
        return slug

    def update(self, doc_id: str, partial: dict) -> None:
        if partial.get("slug"):
            partial = {**partial, "slug": self._unique_slug(slugify(partial["slug"]), exclude=doc_id)}
        super().update(doc_id, partial)

    def get_published(self) -> list[dict]:
        return self.find(status="published")

    def subscribe_published(self, callback) -> Subscription:
        return self.subscribe(callback, status="published")

    def get_by_slug(self, slug: str) -> dict | None:
        found = self.find(slug=slug)
        return found[0] if found else None

    def increment_views(self, doc_id: str) -> None:
        with self._writing("increment_views"):
            doc = db.session.get(Document, (self.name, doc_id))
            if doc is None:
                return
            data = dict(doc.data or {})
            data["views"] = int(data.get("views") or 0) + 1
            doc.data = data
        self._publish()


class ContactMessages(Collection):
    def _prepare(self, data: dict) -> dict:
        data = super()._prepare(data)
        data.setdefault("read", False)
        return data

    def mark_as_read(self, doc_id: str) -> None:
        self.update(doc_id, {"read": True})


class Singleton(_Observable):
    """A collection holding exactly one document, id "main"."""
    DOC_ID = "main"

    def _snapshot(self, where: dict) -> dict | None:
        with self._reading("get"):
            doc = db.session.get(Document, (self.name, self.DOC_ID))
            return dict(doc.data or {}) if doc else None

    def get(self) -> dict | None:
        return self._snapshot({})

    def subscribe(self, callback) -> Subscription:
        return self._subscribe(callback, {})

    def update(self, partial: dict) -> None:
        with self._writing("update"):
            doc = db.session.get(Document, (self.name, self.DOC_ID))
            if doc is None:
                db.session.add(Document(collection=self.name, id=self.DOC_ID, data=dict(partial)))
            else:
                doc.data = {**(doc.data or {}), **partial}
        self._publish()


class SiteSettings(Singleton):
    FOLDER = "site-settings"

    def banner_images(self) -> list[str]:
        return list((self.get() or {}).get("bannerImages") or [])

    def add_banner_images(self, blobs, media, compress=compress_many) -> list[str]:
        """
        Compress the batch, upload every blob, then append all URLs in one
        write. If any upload fails nothing is written; finished uploads are
        logged as orphans.
        """
        blobs = list(blobs)
        if not blobs:
            return []
        if compress:
            blobs = compress(blobs)

        with ThreadPoolExecutor(max_workers=min(4, len(blobs))) as pool:
            futures = [pool.submit(media.upload, b, self.FOLDER) for b in blobs]

        urls, failures = [], []
        for f in futures:
            try:
                urls.append(f.result())
            except UploadError as e:
                failures.append(e)

        if failures:
            if urls:
                log.warning("Orphaned banner uploads after failed batch: %s", urls)
            raise UploadError(f"{len(failures)} of {len(blobs)} banner uploads failed") from failures[0]

        self.update({"bannerImages": self.banner_images() + urls})
        return urls

    def remove_banner_image(self, url: str, media) -> None:
        media.delete(url)
        self.update({"bannerImages": [u for u in self.banner_images() if u != url]})

    def hero_images(self) -> list[str]:
        """Banner list, or the older single bannerImageURL when the list is empty."""
        data = self.get() or {}
        if data.get("bannerImages"):
            return list(data["bannerImages"])
        return [data["bannerImageURL"]] if data.get("bannerImageURL") else []

    def update_banner_image(self, blob: bytes, media, compress=compress_image) -> str:
        url = media.upload(compress(blob) if compress else blob, self.FOLDER)
        old = (self.get() or {}).get("bannerImageURL")
        if old:
            media.delete(old)
        self.update({"bannerImageURL": url})
        return url


class DocumentStore:
    def __init__(self):
        self.members = Members("members", order_by="joinedDate", timestamp_field="joinedDate")
        self.founders = Collection("founders")
        self.events = Collection("events", order_by="date")
        self.social_work = Collection("socialWork", order_by="date", timestamp_field="date")
        self.news = News("news", order_by="publishedDate", timestamp_field="publishedDate")
        self.testimonials = Collection("testimonials", order_by="date", timestamp_field="date")
        self.contact_messages = ContactMessages("contactMessages", order_by="createdAt", timestamp_field="createdAt")
        self.contact_info = Singleton("contactInfo")
        self.site_settings = SiteSettings("siteSettings")

    def collection(self, name: str):
        for c in vars(self).values():
            if isinstance(c, _Observable) and c.name == name:
                return c
        raise KeyError(name)
