"""Invoice form handlers and the queries behind the invoice pages."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from flask import current_app
from sqlalchemy import String, cast, func, or_, select, text
from sqlalchemy.exc import SQLAlchemyError

from invoicedesk import db
from invoicedesk.auth import as_multidict
from invoicedesk.forms import InvoiceForm
from invoicedesk.models import Customer, Invoice
from invoicedesk.utils.activity import log_activity
from invoicedesk.utils.money import from_minor_units, to_minor_units
from invoicedesk.utils.page_cache import cached_page_data, revalidate_path

INVOICES_PATH = "/dashboard/invoices"
ITEMS_PER_PAGE = 6


@dataclass
class InvoiceState:
    """Outcome of an invoice form submission shown back to the user."""

    errors: Dict[str, List[str]] = field(default_factory=dict)
    message: Optional[str] = None


def today_iso() -> str:
    """Return the current UTC calendar date as ``YYYY-MM-DD``."""
    return datetime.now(timezone.utc).date().isoformat()


def _validate(formdata: Mapping, action: str):
    form = InvoiceForm(formdata=as_multidict(formdata))
    if form.validate():
        return form, None
    errors = {name: list(messages) for name, messages in form.errors.items()}
    return None, InvoiceState(
        errors=errors, message=f"Missing Fields. Failed to {action} Invoice."
    )


def _execute(statement: str, params: Dict[str, Any]) -> None:
    db.session.execute(text(statement), params)
    revalidate_path(INVOICES_PATH)
    db.session.commit()


def _audit(activity: str) -> None:
    # The invoice write is already committed; a failed audit row must not undo it.
    try:
        log_activity(activity)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to record activity: %s", activity)


def create_invoice(formdata: Mapping) -> Optional[InvoiceState]:
    """Insert an invoice from submitted form data.

    Returns ``None`` once the row is stored and the listing is stale; the
    caller then redirects to the invoice listing.
    """
    form, state = _validate(formdata, "Create")
    if state is not None:
        return state

    invoice_id = str(uuid.uuid4())
    params = {
        "id": invoice_id,
        "customer_id": form.customer_id.data,
        "amount": to_minor_units(form.amount.data),
        "status": form.status.data,
        "date": today_iso(),
    }
    try:
        _execute(
            "INSERT INTO invoices (id, customer_id, amount, status, date) "
            "VALUES (:id, :customer_id, :amount, :status, :date)",
            params,
        )
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error while creating an invoice")
        return InvoiceState(message="Database Error: Failed to Create Invoice.")

    _audit(f"Created invoice {invoice_id}")
    return None


def update_invoice(invoice_id: str, formdata: Mapping) -> Optional[InvoiceState]:
    """Update an invoice by id; unknown ids update nothing and still succeed."""
    form, state = _validate(formdata, "Update")
    if state is not None:
        return state

    params = {
        "id": invoice_id,
        "customer_id": form.customer_id.data,
        "amount": to_minor_units(form.amount.data),
        "status": form.status.data,
    }
    try:
        _execute(
            "UPDATE invoices "
            "SET customer_id = :customer_id, amount = :amount, status = :status "
            "WHERE id = :id",
            params,
        )
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Database error while updating invoice %s", invoice_id
        )
        return InvoiceState(message="Database Error: Failed to Update Invoice.")

    _audit(f"Updated invoice {invoice_id}")
    return None


def delete_invoice(invoice_id: str) -> InvoiceState:
    """Delete an invoice by id without checking that it exists."""
    try:
        _execute("DELETE FROM invoices WHERE id = :id", {"id": invoice_id})
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Database error while deleting invoice %s", invoice_id
        )
        return InvoiceState(message="Database Error: Failed to Delete Invoice.")

    _audit(f"Deleted invoice {invoice_id}")
    return InvoiceState(message="Deleted Invoice.")


# ----------------------------------------------------------------------
# Read side


def _invoice_row(invoice: Invoice, customer: Customer) -> Dict[str, Any]:
    return {
        "id": invoice.id,
        "customer_id": customer.id,
        "name": customer.name,
        "email": customer.email,
        "image_url": customer.image_url,
        "amount": invoice.amount,
        "status": invoice.status,
        "date": invoice.date,
    }


def _search_filter(query: str):
    pattern = f"%{query}%"
    return or_(
        Customer.name.ilike(pattern),
        Customer.email.ilike(pattern),
        cast(Invoice.amount, String).ilike(pattern),
        Invoice.date.ilike(pattern),
        Invoice.status.ilike(pattern),
    )


def fetch_filtered_invoices(query: str = "", page: int = 1) -> List[Dict[str, Any]]:
    """Return one page of invoices matching ``query``, newest first."""
    page = max(page, 1)
    stmt = (
        select(Invoice, Customer)
        .join(Customer, Invoice.customer_id == Customer.id)
        .order_by(Invoice.date.desc(), Invoice.id)
        .limit(ITEMS_PER_PAGE)
        .offset((page - 1) * ITEMS_PER_PAGE)
    )
    if query:
        stmt = stmt.where(_search_filter(query))
    return [_invoice_row(inv, cust) for inv, cust in db.session.execute(stmt)]


def fetch_invoice_pages(query: str = "") -> int:
    """Return how many listing pages the ``query`` results span."""
    stmt = (
        select(func.count(Invoice.id))
        .select_from(Invoice)
        .join(Customer, Invoice.customer_id == Customer.id)
    )
    if query:
        stmt = stmt.where(_search_filter(query))
    total = db.session.execute(stmt).scalar() or 0
    return math.ceil(total / ITEMS_PER_PAGE)


def fetch_invoice_listing(query: str = "", page: int = 1) -> Dict[str, Any]:
    """Return the invoice listing page data, served from the page cache."""

    def _load():
        return {
            "invoices": fetch_filtered_invoices(query, page),
            "total_pages": fetch_invoice_pages(query),
        }

    return cached_page_data(INVOICES_PATH, (query, page), _load)


def fetch_invoice_by_id(invoice_id: str) -> Optional[Dict[str, Any]]:
    """Return invoice fields for the edit form, amount in major units."""
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        return None
    return {
        "id": invoice.id,
        "customer_id": invoice.customer_id,
        "amount": from_minor_units(invoice.amount),
        "status": invoice.status,
        "date": invoice.date,
    }


def fetch_latest_invoices(limit: int = 5) -> List[Dict[str, Any]]:
    stmt = (
        select(Invoice, Customer)
        .join(Customer, Invoice.customer_id == Customer.id)
        .order_by(Invoice.date.desc(), Invoice.id)
        .limit(limit)
    )
    return [_invoice_row(inv, cust) for inv, cust in db.session.execute(stmt)]
