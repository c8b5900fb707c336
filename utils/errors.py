# utils/errors.py

class FoundationError(Exception):
    """Base for everything the site raises on purpose."""


class ValidationError(FoundationError):
    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        fields = ", ".join(sorted(errors)) or "form"
        super().__init__(f"invalid input: {fields}")


class DuplicateError(FoundationError):
    LABELS = {"email": "email address", "name": "name"}

    def __init__(self, field: str):
        self.field = field
        label = self.LABELS.get(field, field)
        self.message = f"A member with this {label} already exists. Please use a different {label}."
        super().__init__(self.message)


class StoreError(FoundationError):
    pass


class UploadError(FoundationError):
    pass


class NotificationError(FoundationError):
    pass


class CallableError(FoundationError):
    """Structured failure for the certificate-email endpoint."""
    STATUS = {"invalid-argument": 400, "unauthenticated": 401, "internal": 500}

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")

    @property
    def http_status(self) -> int:
        return self.STATUS.get(self.code, 500)

    def to_dict(self) -> dict:
        return {"error": {"status": self.code, "message": self.message}}
