"""Customer queries used by the invoice form and the customers page."""

from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import case, func, or_, select

from invoicedesk import db
from invoicedesk.models import Customer, Invoice


def fetch_customers() -> List[Dict[str, str]]:
    """Return ``id``/``name`` pairs for the customer select, sorted by name."""
    rows = db.session.execute(
        select(Customer.id, Customer.name).order_by(Customer.name)
    )
    return [{"id": row.id, "name": row.name} for row in rows]


def fetch_filtered_customers(query: str = "") -> List[Dict[str, Any]]:
    """Return customers matching ``query`` with their invoice totals."""

    total_pending = func.coalesce(
        func.sum(case((Invoice.status == "pending", Invoice.amount), else_=0)), 0
    )
    total_paid = func.coalesce(
        func.sum(case((Invoice.status == "paid", Invoice.amount), else_=0)), 0
    )
    stmt = (
        select(
            Customer.id,
            Customer.name,
            Customer.email,
            Customer.image_url,
            func.count(Invoice.id).label("total_invoices"),
            total_pending.label("total_pending"),
            total_paid.label("total_paid"),
        )
        .outerjoin(Invoice, Invoice.customer_id == Customer.id)
        .group_by(Customer.id, Customer.name, Customer.email, Customer.image_url)
        .order_by(Customer.name)
    )
    if query:
        pattern = f"%{query}%"
        stmt = stmt.where(
            or_(Customer.name.ilike(pattern), Customer.email.ilike(pattern))
        )

    return [
        {
            "id": row.id,
            "name": row.name,
            "email": row.email,
            "image_url": row.image_url,
            "total_invoices": int(row.total_invoices or 0),
            "total_pending": int(row.total_pending or 0),
            "total_paid": int(row.total_paid or 0),
        }
        for row in db.session.execute(stmt)
    ]
