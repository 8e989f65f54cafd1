import logging
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from invoicedesk import db
from invoicedesk.models import ActivityLog, Invoice
from invoicedesk.services import invoices as invoice_service
from invoicedesk.services.invoices import (
    INVOICES_PATH,
    create_invoice,
    delete_invoice,
    fetch_invoice_by_id,
    fetch_invoice_listing,
    today_iso,
    update_invoice,
)
from invoicedesk.utils.page_cache import cached_page_data, is_cached
from tests.utils import invoice_form


def _add_invoice(invoice_id="inv-1", amount=5000, status="pending", date="2024-01-15"):
    invoice = Invoice(
        id=invoice_id, customer_id="c1", amount=amount, status=status, date=date
    )
    db.session.add(invoice)
    db.session.commit()
    return invoice_id


def _break_database(monkeypatch):
    def failing_execute(statement, params):
        raise OperationalError(statement, params, Exception("connection lost"))

    monkeypatch.setattr(invoice_service, "_execute", failing_execute)


def test_create_scenario_stores_minor_units_and_today(app, customer):
    with app.test_request_context():
        state = create_invoice(invoice_form(customer_id="c1", amount="10"))

    assert state is None
    stored = Invoice.query.one()
    assert stored.customer_id == "c1"
    assert stored.amount == 1000
    assert stored.status == "pending"
    assert stored.date == datetime.now(timezone.utc).date().isoformat()
    assert ActivityLog.query.filter_by(
        activity=f"Created invoice {stored.id}"
    ).count() == 1


def test_create_converts_dollars_to_cents(app, customer):
    with app.test_request_context():
        assert create_invoice(invoice_form(amount="25.50", status="paid")) is None
    assert Invoice.query.one().amount == 2550


def test_today_iso_is_a_calendar_date():
    value = today_iso()
    assert len(value) == 10
    assert datetime.strptime(value, "%Y-%m-%d")


@pytest.mark.parametrize(
    "fields, bad_field",
    [
        (invoice_form(amount="0"), "amount"),
        (invoice_form(amount="-12"), "amount"),
        (invoice_form(amount=""), "amount"),
        (invoice_form(amount="ten dollars"), "amount"),
        (invoice_form(customer_id=None), "customer_id"),
        (invoice_form(customer_id=""), "customer_id"),
        (invoice_form(status=None), "status"),
        (invoice_form(status="overdue"), "status"),
    ],
)
def test_invalid_create_returns_field_errors_without_write(
    app, customer, fields, bad_field
):
    with app.test_request_context():
        state = create_invoice(fields)

    assert state is not None
    assert state.message == "Missing Fields. Failed to Create Invoice."
    assert state.errors[bad_field]
    assert Invoice.query.count() == 0


def test_error_messages_match_each_field(app):
    with app.test_request_context():
        state = create_invoice({})

    assert state.errors == {
        "customer_id": ["Please select a customer."],
        "amount": ["Please select a number greater than $0."],
        "status": ["Please select an invoice status."],
    }


def test_unparseable_amount_message(app):
    with app.test_request_context():
        state = create_invoice(invoice_form(amount="abc"))
    assert state.errors["amount"] == ["Please enter a valid amount."]


def test_update_changes_row_and_keeps_date(app, customer):
    invoice_id = _add_invoice()
    with app.test_request_context():
        state = update_invoice(
            invoice_id, invoice_form(amount="99.99", status="paid")
        )

    assert state is None
    db.session.expire_all()
    stored = db.session.get(Invoice, invoice_id)
    assert stored.amount == 9999
    assert stored.status == "paid"
    assert stored.date == "2024-01-15"


def test_invalid_update_leaves_row_untouched(app, customer):
    invoice_id = _add_invoice()
    with app.test_request_context():
        state = update_invoice(invoice_id, invoice_form(amount="-1"))

    assert state.message == "Missing Fields. Failed to Update Invoice."
    assert state.errors["amount"] == ["Please select a number greater than $0."]
    db.session.expire_all()
    assert db.session.get(Invoice, invoice_id).amount == 5000


def test_update_unknown_invoice_still_succeeds(app, customer):
    with app.test_request_context():
        assert update_invoice("missing", invoice_form()) is None
    assert Invoice.query.count() == 0


def test_delete_removes_row(app, customer):
    invoice_id = _add_invoice()
    with app.test_request_context():
        state = delete_invoice(invoice_id)

    assert state.message == "Deleted Invoice."
    assert state.errors == {}
    assert db.session.get(Invoice, invoice_id) is None


def test_delete_unknown_invoice_reports_deleted(app):
    # No existence check is made before deleting.
    with app.test_request_context():
        state = delete_invoice("does-not-exist")
    assert state.message == "Deleted Invoice."


@pytest.mark.parametrize(
    "action, expected",
    [
        (lambda: create_invoice(invoice_form()), "Database Error: Failed to Create Invoice."),
        (
            lambda: update_invoice("inv-1", invoice_form()),
            "Database Error: Failed to Update Invoice.",
        ),
        (lambda: delete_invoice("inv-1"), "Database Error: Failed to Delete Invoice."),
    ],
)
def test_database_errors_become_messages(app, customer, monkeypatch, caplog, action, expected):
    _break_database(monkeypatch)
    with caplog.at_level(logging.ERROR):
        with app.test_request_context():
            state = action()

    assert state.message == expected
    assert state.errors == {}
    assert "Database error" in caplog.text


def test_successful_writes_revalidate_listing(app, customer):
    invoice_id = _add_invoice()
    key = ("", 1)

    with app.test_request_context():
        cached_page_data(INVOICES_PATH, key, lambda: "stale")
        create_invoice(invoice_form())
        assert not is_cached(INVOICES_PATH, key)

        cached_page_data(INVOICES_PATH, key, lambda: "stale")
        update_invoice(invoice_id, invoice_form(status="paid"))
        assert not is_cached(INVOICES_PATH, key)

        cached_page_data(INVOICES_PATH, key, lambda: "stale")
        delete_invoice(invoice_id)
        assert not is_cached(INVOICES_PATH, key)


def test_failed_writes_keep_cache(app, customer, monkeypatch):
    key = ("", 1)
    with app.test_request_context():
        cached_page_data(INVOICES_PATH, key, lambda: "cached")
        create_invoice(invoice_form(amount="0"))
        assert is_cached(INVOICES_PATH, key)

        _break_database(monkeypatch)
        delete_invoice("inv-1")
        assert is_cached(INVOICES_PATH, key)


def test_fetch_invoice_by_id_returns_major_units(app, customer):
    invoice_id = _add_invoice(amount=2550)
    found = fetch_invoice_by_id(invoice_id)
    assert str(found["amount"]) == "25.50"
    assert found["customer_id"] == "c1"
    assert fetch_invoice_by_id("nope") is None


@pytest.mark.parametrize("amount", ["0.004", "0.0049", "-0.004"])
def test_sub_cent_amounts_are_rejected(app, customer, amount):
    with app.test_request_context():
        state = create_invoice(invoice_form(amount=amount))

    assert state.errors["amount"] == ["Please select a number greater than $0."]
    assert Invoice.query.count() == 0


def test_half_cent_rounds_up_to_one_cent(app, customer):
    with app.test_request_context():
        assert create_invoice(invoice_form(amount="0.005")) is None
    assert Invoice.query.one().amount == 1


@pytest.mark.parametrize("amount", ["1e30", "1e20", "92233720368547758.08"])
def test_amounts_too_large_for_storage_are_rejected(app, customer, amount):
    with app.test_request_context():
        state = create_invoice(invoice_form(amount=amount))

    assert state.message == "Missing Fields. Failed to Create Invoice."
    assert state.errors["amount"] == [
        "Please enter an amount up to $92,233,720,368,547,758.07."
    ]
    assert Invoice.query.count() == 0


def test_large_negative_amount_reports_lower_bound(app, customer):
    invoice_id = _add_invoice()
    with app.test_request_context():
        state = update_invoice(invoice_id, invoice_form(amount="-1e30"))
    assert state.errors["amount"] == ["Please select a number greater than $0."]


def test_largest_storable_amount_is_accepted(app, customer):
    with app.test_request_context():
        assert create_invoice(invoice_form(amount="92233720368547758.07")) is None
    assert Invoice.query.one().amount == 2**63 - 1


def test_write_invalidates_listing_cached_by_another_worker(
    app, customer, second_app
):
    with second_app.test_request_context():
        assert fetch_invoice_listing()["invoices"] == []

    with app.test_request_context():
        assert create_invoice(invoice_form(amount="7")) is None

    with second_app.test_request_context():
        rows = fetch_invoice_listing()["invoices"]
    assert [row["amount"] for row in rows] == [700]


def test_failed_audit_does_not_fail_the_write(app, customer, monkeypatch, caplog):
    def failing_log(activity, user_id=None):
        raise OperationalError("INSERT", {}, Exception("activity log is locked"))

    monkeypatch.setattr(invoice_service, "log_activity", failing_log)
    with caplog.at_level(logging.ERROR):
        with app.test_request_context():
            state = create_invoice(invoice_form(amount="12"))

    assert state is None
    assert Invoice.query.one().amount == 1200
    assert "Failed to record activity" in caplog.text
