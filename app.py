import io, logging, sys
from flask import Blueprint, Flask, Response, render_template, request, redirect, url_for, flash, abort, jsonify, session, send_file, current_app, stream_with_context
from flask_wtf.csrf import CSRFProtect

from admin.views import admin_bp, is_admin
from config import Config, ProviderSettings
from forms import ContactForm, parse_form
from models import db
from onboarding import Step
from services import build_services, services
from utils.documents import event_stream
from utils.errors import CallableError, DuplicateError, NotificationError, StoreError, ValidationError
from utils.images import is_image_file

logging.basicConfig(
    level=logging.INFO,
    stream=sys.stdout,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

MAX_PHOTO_BYTES = 5 * 1024 * 1024

csrf = CSRFProtect()
site = Blueprint("site", __name__)

@site.route("/")
def index():
    store = services().store
    return render_template(
        "index.html",
        banners=store.site_settings.hero_images(),
        events=store.events.find(status="upcoming"),
        testimonials=store.testimonials.get_all(),
        news=store.news.get_published()[:3],
    )

@site.route("/members/")
def members():
    return render_template("members.html", members=services().store.members.get_all())

@site.route("/founders/")
def founders():
    return render_template("founders.html", founders=services().store.founders.get_all())

@site.route("/events/")
def events():
    status = request.args.get("status", "")
    store = services().store
    items = store.events.find(status=status) if status else store.events.get_all()
    return render_template("events.html", events=items, status=status)

@site.route("/social-work/")
def social_work():
    return render_template("social_work.html", works=services().store.social_work.get_all())

@site.route("/news/")
def news():
    return render_template("news.html", articles=services().store.news.get_published())

@site.route("/news/stream")
def news_stream():
    """Published articles as server-sent events, refreshed on every change."""
    return Response(stream_with_context(event_stream(services().store.news.subscribe_published)),
                    mimetype="text/event-stream", headers={"Cache-Control": "no-cache"})

@site.route("/news/<slug>/")
def article_detail(slug):
    store = services().store
    article = store.news.get_by_slug(slug)
    if not article or (article.get("status") != "published" and not is_admin()):
        abort(404)
    store.news.increment_views(article["id"])
    return render_template("article_detail.html", article=article)

def _read_photo():
    photo = request.files.get("photo")
    if not photo or not photo.filename:
        return None, None
    if not is_image_file(photo.mimetype, photo.filename):
        raise ValidationError({"photo": ["Please upload an image file (JPG, PNG, etc.)"]})
    data = photo.read()
    if len(data) > MAX_PHOTO_BYTES:
        raise ValidationError({"photo": ["Please upload an image smaller than 5MB"]})
    return data, photo.filename

@site.route("/join/", methods=["GET","POST"])
def join():
    if request.method == "GET":
        return render_template("join.html", errors={}, values={})

    try:
        photo, photo_name = _read_photo()
    except ValidationError as e:
        return render_template("join.html", errors=e.errors, values=request.form), 400

    result = services().onboarding.run(request.form, photo=photo, photo_name=photo_name)

    if result.ok:
        # the success page starts the download; only this browser may fetch it
        session["certificate_member"] = result.member_id
        return render_template("join_success.html", result=result,
                               download_url=url_for("site.join_certificate", member_id=result.member_id))

    if result.state is Step.VALIDATING:
        return render_template("join.html", errors=result.errors, values=request.form), 400

    current_app.logger.error("Join failed at %s: %r", result.failed_step, result.error)
    flash(result.message, "danger")
    if isinstance(result.error, DuplicateError):
        status = 409
    elif result.failed_step is Step.UPLOADING_PHOTO:
        status = 502
    else:
        status = 503
    return render_template("join.html", errors={}, values=request.form), status

@site.route("/join/certificate/<member_id>/")
def join_certificate(member_id):
    if session.get("certificate_member") != member_id and not is_admin():
        abort(404)
    svc = services()
    member = svc.store.members.get(member_id)
    if member is None:
        abort(404)
    pdf, filename = svc.onboarding.certificate_for(member)
    return send_file(io.BytesIO(pdf), mimetype="application/pdf", as_attachment=True, download_name=filename)

@site.route("/contact/", methods=["GET","POST"])
def contact():
    svc = services()
    if request.method == "POST":
        try:
            data = parse_form(ContactForm, request.form)
        except ValidationError as e:
            return render_template("contact.html", errors=e.errors, values=request.form, info=svc.store.contact_info.get()), 400

        try:
            svc.store.contact_messages.add(data)
        except StoreError:
            flash("Failed to send message. Please try again.", "danger")
            return render_template("contact.html", errors={}, values=request.form, info=None), 503

        try:
            svc.mailer.send_contact_message(data["name"], data["email"], data["subject"], data["message"])
        except NotificationError:
            current_app.logger.exception("Contact email failed, but message was saved")

        flash("Message Sent! Thank you for reaching out. We will get back to you soon.", "success")
        return redirect(url_for("site.contact"))

    return render_template("contact.html", errors={}, values={}, info=svc.store.contact_info.get())

@site.route("/api/send-certificate-email", methods=["POST"])
@csrf.exempt
def send_certificate_email():
    try:
        out = services().member_mailer.send_certificate_email(request.get_json(silent=True), authenticated=is_admin())
    except CallableError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify(out)


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    db.init_app(app)
    csrf.init_app(app)
    app.extensions["foundation"] = build_services(ProviderSettings.from_mapping(app.config))

    app.register_blueprint(site)
    app.register_blueprint(admin_bp, url_prefix="/admin")

    @app.context_processor
    def inject_cfg():
        return {"FOUNDATION_NAME": app.config.get("FOUNDATION_NAME", ""), "IS_ADMIN": is_admin()}

    @app.errorhandler(StoreError)
    def store_unavailable(e):
        app.logger.error("Store error while rendering %s: %s", request.path, e)
        return render_template("error.html", message="We could not load this page right now. Please try again."), 503

    @app.errorhandler(404)
    def not_found(e):
        return render_template("error.html", message="Page not found."), 404

    with app.app_context():
        db.create_all()

    return app

if __name__ == "__main__":
    create_app().run(debug=True)
