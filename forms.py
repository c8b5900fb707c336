import bleach
from werkzeug.datastructures import MultiDict
from wtforms import Form, StringField, TextAreaField, IntegerField, SelectField, PasswordField
from wtforms.validators import DataRequired, InputRequired, Email, Length, NumberRange, Optional, Regexp, URL

from utils.errors import ValidationError

ALLOWED_TAGS = list(bleach.sanitizer.ALLOWED_TAGS) + ["p","img","figure","figcaption","h1","h2","h3","h4","h5","h6","blockquote","pre","code","hr","br","strong","em","ul","ol","li","a","table","thead","tbody","tr","th","td","span"]
ALLOWED_ATTRS = {**bleach.sanitizer.ALLOWED_ATTRIBUTES, "img":["src","alt","title","loading"], "a":["href","title","target","rel"], "span":["class"]}
ALLOWED_PROTOCOLS = ["http","https","mailto","tel"]

# +91 9812345678, +91-9812345678, 09812345678, 9812345678 (no spaces inside the number)
INDIAN_MOBILE = r"^(\+91[\-\s]?)?[0]?(91)?[6789]\d{9}$"

def sanitize_html(html): return bleach.clean(html or "", tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRS, protocols=ALLOWED_PROTOCOLS, strip=False)
def _strip(v): return v.strip() if isinstance(v, str) else v

class MemberForm(Form):
    name = StringField("Full name", filters=[_strip], validators=[DataRequired(), Length(min=2, message="Name must be at least 2 characters"), Length(max=100, message="Name is too long")])
    email = StringField("Email", filters=[_strip], validators=[DataRequired(), Email(message="Please enter a valid email address")])
    age = IntegerField("Age", validators=[InputRequired(), NumberRange(min=16, message="You must be at least 16 years old"), NumberRange(max=100, message="Please enter a valid age")])
    address = TextAreaField("Address", filters=[_strip], validators=[DataRequired(), Length(min=10, message="Please enter a complete address"), Length(max=300, message="Address is too long")])
    contact = StringField("Phone", filters=[_strip], validators=[DataRequired(), Regexp(INDIAN_MOBILE, message="Please enter a valid Indian phone number")])

class ContactForm(Form):
    name = StringField("Name", filters=[_strip], validators=[Length(min=2, max=100, message="Name is required")])
    email = StringField("Email", filters=[_strip], validators=[DataRequired(), Email(message="Please enter a valid email")])
    subject = StringField("Subject", filters=[_strip], validators=[Length(min=5, max=200, message="Subject must be at least 5 characters")])
    message = TextAreaField("Message", filters=[_strip], validators=[Length(min=20, max=1000, message="Message must be at least 20 characters")])

class FounderForm(Form):
    name = StringField("Name", filters=[_strip], validators=[DataRequired()])
    role = StringField("Role", filters=[_strip], validators=[DataRequired()])
    description = TextAreaField("Description", filters=[_strip], validators=[Optional()])
    contact = StringField("Contact", filters=[_strip], validators=[Optional()])
    photoURL = StringField("Photo URL", filters=[_strip], validators=[Optional(), URL()])

class EventForm(Form):
    title = StringField("Title", filters=[_strip], validators=[DataRequired()])
    description = TextAreaField("Description", filters=[_strip], validators=[Optional()])
    date = StringField("Date", filters=[_strip], validators=[DataRequired()])
    time = StringField("Time", filters=[_strip], validators=[Optional()])
    status = SelectField("Status", choices=[("upcoming","Upcoming"),("ongoing","Ongoing"),("completed","Completed")])
    location = StringField("Location", filters=[_strip], validators=[Optional()])
    imageURL = StringField("Image URL", filters=[_strip], validators=[Optional(), URL()])

class SocialWorkForm(Form):
    title = StringField("Title", filters=[_strip], validators=[DataRequired()])
    description = TextAreaField("Description", filters=[_strip], validators=[Optional()])
    date = StringField("Date", filters=[_strip], validators=[Optional()])
    status = SelectField("Status", choices=[("ongoing","Ongoing"),("completed","Completed")])
    imageURL = StringField("Image URL", filters=[_strip], validators=[Optional(), URL()])

class NewsForm(Form):
    title = StringField("Title", filters=[_strip], validators=[DataRequired()])
    slug = StringField("Slug", filters=[_strip], validators=[Optional()])
    excerpt = TextAreaField("Excerpt", filters=[_strip], validators=[Optional()])
    content = TextAreaField("Content (HTML)", filters=[sanitize_html], validators=[DataRequired()])
    author = StringField("Author", filters=[_strip], validators=[Optional()])
    category = StringField("Category", filters=[_strip], validators=[Optional()])
    publishedDate = StringField("Published", filters=[_strip], validators=[Optional()])
    status = SelectField("Status", choices=[("draft","Draft"),("published","Published")])
    imageURL = StringField("Image URL", filters=[_strip], validators=[Optional(), URL()])

class TestimonialForm(Form):
    name = StringField("Name", filters=[_strip], validators=[DataRequired()])
    role = StringField("Role", filters=[_strip], validators=[Optional()])
    message = TextAreaField("Message", filters=[_strip], validators=[DataRequired()])
    rating = IntegerField("Rating", validators=[InputRequired(), NumberRange(min=1, max=5)])
    date = StringField("Date", filters=[_strip], validators=[Optional()])
    photoURL = StringField("Photo URL", filters=[_strip], validators=[Optional(), URL()])

class ContactInfoForm(Form):
    address = TextAreaField("Address", filters=[_strip], validators=[Optional()])
    phone = StringField("Phone", filters=[_strip], validators=[Optional()])
    email = StringField("Email", filters=[_strip], validators=[Optional(), Email()])
    facebook = StringField("Facebook", filters=[_strip], validators=[Optional(), URL()])
    instagram = StringField("Instagram", filters=[_strip], validators=[Optional(), URL()])
    twitter = StringField("Twitter", filters=[_strip], validators=[Optional(), URL()])

class AdminLoginForm(Form):
    email = StringField("Email", filters=[_strip], validators=[DataRequired()])
    password = PasswordField("Password", validators=[DataRequired()])


def _as_formdata(data):
    if hasattr(data, "getlist"):
        return data
    return MultiDict({k: str(v) for k, v in (data or {}).items() if v is not None})

def parse_form(form_cls, data, partial: bool = False) -> dict:
    """
    Typed parse-or-reject for a submitted form. Returns the cleaned values
    or raises ValidationError({field: [messages]}). With partial=True only the
    submitted fields are checked and returned (edit flow).
    """
    formdata = _as_formdata(data)
    form = form_cls(formdata)

    if not partial:
        if not form.validate():
            raise ValidationError({k: list(v) for k, v in form.errors.items()})
        return dict(form.data)

    names = [n for n in form._fields if n in formdata]
    errors = {}
    for n in names:
        if not form[n].validate(form):
            errors[n] = list(form[n].errors)
    if errors:
        raise ValidationError(errors)
    return {n: form[n].data for n in names}
