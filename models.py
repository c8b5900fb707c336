from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

class Document(db.Model):
    """One schema-less record; `collection` + `id` is the address."""
    __tablename__ = "documents"

    collection = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(40), primary_key=True)
    data = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def as_record(self) -> dict:
        return {"id": self.id, **(self.data or {})}
