# admin/views.py
import logging
from collections import namedtuple
from flask import Blueprint, Response, abort, current_app, flash, redirect, render_template, request, session, stream_with_context, url_for

from forms import (AdminLoginForm, ContactInfoForm, EventForm, FounderForm, MemberForm, NewsForm,
                   SocialWorkForm, TestimonialForm, parse_form)
from services import services
from utils.documents import event_stream
from utils.errors import StoreError, UploadError, ValidationError
from utils.images import is_image_file

admin_bp = Blueprint("admin", __name__)
log = logging.getLogger(__name__)

Managed = namedtuple("Managed", ["collection", "form", "folder", "image_field", "title"])

MANAGED = {
    "members": Managed("members", MemberForm, "members", "photoURL", "Members"),
    "founders": Managed("founders", FounderForm, "founders", "photoURL", "Founders"),
    "events": Managed("events", EventForm, "events", "imageURL", "Events"),
    "social-work": Managed("socialWork", SocialWorkForm, "socialWork", "imageURL", "Social Work"),
    "news": Managed("news", NewsForm, "news", "imageURL", "News"),
    "testimonials": Managed("testimonials", TestimonialForm, "testimonials", "photoURL", "Testimonials"),
}

def is_admin() -> bool:
    return session.get("is_admin") is True

# Gate every /admin/* route except the login/logout endpoints
@admin_bp.before_app_request
def _admin_gate():
    p = request.path or "/"
    if p.startswith("/admin"):
        if p in ("/admin/login", "/admin/login/", "/admin/logout", "/admin/logout/"):
            return
        if is_admin():
            return
        return redirect(url_for("admin.admin_login", next=request.full_path or "/admin/"))

@admin_bp.route("/login/", methods=["GET", "POST"])
def admin_login():
    if request.method == "POST":
        settings = services().settings
        try:
            creds = parse_form(AdminLoginForm, request.form)
        except ValidationError:
            creds = {}
        if (settings.admin_email and settings.admin_password
                and creds.get("email") == settings.admin_email
                and creds.get("password") == settings.admin_password):
            session["is_admin"] = True
            nxt = request.args.get("next") or "/admin/"
            # prevent open redirects
            if not nxt.startswith("/admin"):
                nxt = "/admin/"
            return redirect(nxt)
        flash("Invalid email or password.", "danger")
    return render_template("admin/login.html")

@admin_bp.route("/logout/", methods=["POST", "GET"])
def admin_logout():
    session.pop("is_admin", None)
    flash("Logged out.", "success")
    return redirect(url_for("admin.admin_login"))

@admin_bp.route("/")
def admin_dashboard():
    store = services().store
    stats = {m.title: store.collection(m.collection).count() for m in MANAGED.values()}
    unread = len(store.contact_messages.find(read=False))
    return render_template("admin/dashboard.html", stats=stats, unread=unread, managed=MANAGED)

def _managed(slug):
    m = MANAGED.get(slug)
    if m is None:
        abort(404)
    return m, services().store.collection(m.collection)

def _read_image(field="image"):
    f = request.files.get(field)
    if not f or not f.filename:
        return None, None
    if not is_image_file(f.mimetype, f.filename):
        raise ValidationError({field: ["Please upload an image file (JPG, PNG, etc.)"]})
    return f.read(), f.filename

def _upload_image(m: Managed):
    data, filename = _read_image()
    if data is None:
        return None
    svc = services()
    return svc.media.upload(svc.compress(data), m.folder, filename=filename)

def _errors_text(errors):
    return "; ".join(f"{k}: {', '.join(v)}" for k, v in errors.items())

@admin_bp.route("/c/<slug>/", methods=["GET", "POST"])
def admin_collection(slug):
    m, coll = _managed(slug)
    if request.method == "POST":
        try:
            record = parse_form(m.form, request.form)
            url = _upload_image(m)
            if url:
                record[m.image_field] = url
            else:
                record.setdefault(m.image_field, "")
            coll.add(record)
        except ValidationError as e:
            flash(f"Please fix: {_errors_text(e.errors)}", "danger")
        except (UploadError, StoreError):
            current_app.logger.exception("Admin add to %s failed", m.collection)
            flash("Could not save. Please try again.", "danger")
        else:
            flash(f"{m.title}: item added.", "success")
        return redirect(url_for("admin.admin_collection", slug=slug))

    return render_template("admin/collection.html", slug=slug, managed=m, records=coll.get_all(), form=m.form())

@admin_bp.route("/c/<slug>/<doc_id>/edit/", methods=["GET", "POST"])
def admin_edit(slug, doc_id):
    m, coll = _managed(slug)
    record = coll.get(doc_id)
    if record is None:
        abort(404)

    if request.method == "POST":
        try:
            changes = parse_form(m.form, {k: v for k, v in request.form.items() if v != "" and k != "csrf_token"}, partial=True)
            url = _upload_image(m)
            if url:
                changes[m.image_field] = url
            coll.update(doc_id, changes)
        except ValidationError as e:
            flash(f"Please fix: {_errors_text(e.errors)}", "danger")
            return redirect(url_for("admin.admin_edit", slug=slug, doc_id=doc_id))
        except (UploadError, StoreError):
            current_app.logger.exception("Admin update of %s/%s failed", m.collection, doc_id)
            flash("Could not save. Please try again.", "danger")
            return redirect(url_for("admin.admin_edit", slug=slug, doc_id=doc_id))

        old = record.get(m.image_field)
        if url and old and old != url:
            # replaced image stays in the media store until cleaned up by hand
            log.warning("Replaced %s on %s/%s; orphan media: %s", m.image_field, m.collection, doc_id, old)
            services().media.delete(old)
        flash(f"{m.title}: item updated.", "success")
        return redirect(url_for("admin.admin_collection", slug=slug))

    return render_template("admin/edit.html", slug=slug, managed=m, record=record, form=m.form(data=record))

@admin_bp.route("/c/<slug>/<doc_id>/delete/", methods=["POST"])
def admin_delete(slug, doc_id):
    m, coll = _managed(slug)
    record = coll.get(doc_id)
    if record is None:
        abort(404)
    if record.get(m.image_field):
        services().media.delete(record[m.image_field])
    coll.delete(doc_id)
    flash(f"{m.title}: item deleted.", "success")
    return redirect(url_for("admin.admin_collection", slug=slug))

@admin_bp.route("/contact-info/", methods=["GET", "POST"])
def admin_contact_info():
    info = services().store.contact_info
    if request.method == "POST":
        try:
            info.update(parse_form(ContactInfoForm, request.form))
        except ValidationError as e:
            flash(f"Please fix: {_errors_text(e.errors)}", "danger")
        else:
            flash("Contact information updated.", "success")
        return redirect(url_for("admin.admin_contact_info"))
    return render_template("admin/contact_info.html", form=ContactInfoForm(data=info.get() or {}))

@admin_bp.route("/messages/")
def admin_messages():
    rows = services().store.contact_messages.get_all()
    return render_template("admin/messages.html", rows=rows)

@admin_bp.route("/messages/<doc_id>/read/", methods=["POST"])
def admin_message_read(doc_id):
    services().store.contact_messages.mark_as_read(doc_id)
    return redirect(url_for("admin.admin_messages"))

@admin_bp.route("/messages/<doc_id>/delete/", methods=["POST"])
def admin_message_delete(doc_id):
    services().store.contact_messages.delete(doc_id)
    flash("Message deleted.", "success")
    return redirect(url_for("admin.admin_messages"))

@admin_bp.route("/banners/", methods=["GET", "POST"])
def admin_banners():
    svc = services()
    settings = svc.store.site_settings
    if request.method == "POST":
        files = [f for f in request.files.getlist("images") if f and f.filename]
        bad = [f.filename for f in files if not is_image_file(f.mimetype, f.filename)]
        if not files or bad:
            flash("Please choose one or more image files.", "danger")
            return redirect(url_for("admin.admin_banners"))
        try:
            urls = settings.add_banner_images([f.read() for f in files], svc.media)
        except (UploadError, StoreError):
            current_app.logger.exception("Banner batch upload failed")
            flash("Failed to upload banner images. Nothing was changed.", "danger")
        else:
            flash(f"Banners Added: {len(urls)} image(s) uploaded.", "success")
        return redirect(url_for("admin.admin_banners"))
    return render_template("admin/banners.html", banners=settings.banner_images(),
                           legacy=(settings.get() or {}).get("bannerImageURL"))

@admin_bp.route("/banners/primary/", methods=["POST"])
def admin_banner_primary():
    """Replace the single fallback banner shown when the banner list is empty."""
    svc = services()
    try:
        data, _ = _read_image()
        if data is None:
            raise ValidationError({"image": ["Please choose an image file."]})
        svc.store.site_settings.update_banner_image(data, svc.media, compress=svc.compress)
    except ValidationError as e:
        flash(f"Please fix: {_errors_text(e.errors)}", "danger")
    except (UploadError, StoreError):
        current_app.logger.exception("Fallback banner upload failed")
        flash("Failed to upload banner image.", "danger")
    else:
        flash("Banner Updated: fallback banner image replaced.", "success")
    return redirect(url_for("admin.admin_banners"))

@admin_bp.route("/banners/remove/", methods=["POST"])
def admin_banner_remove():
    svc = services()
    url = (request.form.get("url") or "").strip()
    if url:
        svc.store.site_settings.remove_banner_image(url, svc.media)
        flash("Banner Removed: banner image has been removed successfully.", "success")
    return redirect(url_for("admin.admin_banners"))

@admin_bp.route("/stream/<name>")
def admin_stream(name):
    """Server-sent events: the collection's records now and after every change."""
    try:
        coll = services().store.collection(name)
    except KeyError:
        abort(404)

    return Response(stream_with_context(event_stream(coll.subscribe)), mimetype="text/event-stream",
                    headers={"Cache-Control": "no-cache"})
