import uuid
from datetime import datetime

from flask_login import UserMixin
from sqlalchemy.orm import relationship

from invoicedesk import db

INVOICE_STATUSES = ("pending", "paid")


def _new_uuid() -> str:
    return str(uuid.uuid4())


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    # Salted hash produced by werkzeug.security, never the plaintext.
    password = db.Column(db.String(255), nullable=False)


class Customer(db.Model):
    __tablename__ = "customers"

    id = db.Column(db.String(36), primary_key=True, default=_new_uuid)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    image_url = db.Column(db.String(255), nullable=True)

    invoices = db.relationship("Invoice", backref="customer", lazy=True)

    __table_args__ = (db.Index("ix_customers_name", "name"),)


class Invoice(db.Model):
    __tablename__ = "invoices"

    id = db.Column(db.String(36), primary_key=True, default=_new_uuid)
    customer_id = db.Column(
        db.String(36), db.ForeignKey("customers.id"), nullable=False, index=True
    )
    # Stored in minor currency units (cents).
    amount = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(10), nullable=False)
    # ISO calendar date, e.g. "2024-05-01".
    date = db.Column(db.String(10), nullable=False, index=True)


class ActivityLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    activity = db.Column(db.String(255), nullable=False)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", backref="activity_logs")


class PageVersion(db.Model):
    """Per-path counter bumped whenever a page's data changes.

    Every worker process reads it before serving cached page data, so a write
    handled by one process invalidates the cache in all of them.
    """

    __tablename__ = "page_versions"

    path = db.Column(db.String(255), primary_key=True)
    version = db.Column(db.Integer, nullable=False, default=0)
