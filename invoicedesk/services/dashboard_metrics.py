"""Helper functions for collecting dashboard metrics."""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import func

from invoicedesk import db
from invoicedesk.models import Customer, Invoice
from invoicedesk.services.invoices import fetch_latest_invoices


def _coalesce_scalar(query) -> int:
    """Return an integer scalar result or ``0`` when ``None``."""

    result = query.scalar()
    return int(result or 0)


def fetch_card_data() -> Dict[str, int]:
    """Return the totals shown in the dashboard summary cards.

    Amounts are in minor units.
    """

    return {
        "total_paid": _coalesce_scalar(
            db.session.query(func.sum(Invoice.amount)).filter(
                Invoice.status == "paid"
            )
        ),
        "total_pending": _coalesce_scalar(
            db.session.query(func.sum(Invoice.amount)).filter(
                Invoice.status == "pending"
            )
        ),
        "invoice_count": _coalesce_scalar(
            db.session.query(func.count(Invoice.id))
        ),
        "customer_count": _coalesce_scalar(
            db.session.query(func.count(Customer.id))
        ),
    }


def dashboard_context() -> Dict[str, Any]:
    """Aggregate metrics for the dashboard view."""

    return {
        "cards": fetch_card_data(),
        "latest_invoices": fetch_latest_invoices(),
    }
