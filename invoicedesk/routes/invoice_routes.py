from flask import (
    Blueprint,
    abort,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import login_required

from invoicedesk.forms import DeleteForm, InvoiceForm, SearchForm
from invoicedesk.services.customers import fetch_customers
from invoicedesk.services.invoices import (
    InvoiceState,
    create_invoice as create_invoice_record,
    delete_invoice as delete_invoice_record,
    fetch_invoice_by_id,
    fetch_invoice_listing,
    update_invoice as update_invoice_record,
)

invoice = Blueprint("invoice", __name__)


@invoice.route("/dashboard/invoices")
@login_required
def view_invoices():
    """List invoices with search and pagination."""
    search_form = SearchForm(request.args)
    query = (search_form.query.data or "").strip()
    page = max(request.args.get("page", 1, type=int), 1)

    listing = fetch_invoice_listing(query, page)
    return render_template(
        "invoices/view_invoices.html",
        invoices=listing["invoices"],
        total_pages=listing["total_pages"],
        page=page,
        query=query,
        search_form=search_form,
        delete_form=DeleteForm(),
    )


@invoice.route("/dashboard/invoices/create", methods=["GET", "POST"])
@login_required
def create_invoice():
    """Create an invoice and return to the listing."""
    form = InvoiceForm()
    state = InvoiceState()
    if request.method == "POST":
        state = create_invoice_record(request.form)
        if state is None:
            return redirect(url_for("invoice.view_invoices"))

    return render_template(
        "invoices/invoice_form.html",
        form=form,
        state=state,
        customers=fetch_customers(),
        title="Create Invoice",
        action=url_for("invoice.create_invoice"),
    )


@invoice.route("/dashboard/invoices/<invoice_id>/edit", methods=["GET", "POST"])
@login_required
def edit_invoice(invoice_id):
    """Edit an invoice and return to the listing."""
    current = fetch_invoice_by_id(invoice_id)
    if current is None:
        abort(404)

    form = InvoiceForm()
    state = InvoiceState()
    if request.method == "POST":
        state = update_invoice_record(invoice_id, request.form)
        if state is None:
            return redirect(url_for("invoice.view_invoices"))
    else:
        form.customer_id.data = current["customer_id"]
        form.amount.data = current["amount"]
        form.status.data = current["status"]

    return render_template(
        "invoices/invoice_form.html",
        form=form,
        state=state,
        customers=fetch_customers(),
        title="Edit Invoice",
        action=url_for("invoice.edit_invoice", invoice_id=invoice_id),
    )


@invoice.route("/dashboard/invoices/<invoice_id>/delete", methods=["POST"])
@login_required
def delete_invoice(invoice_id):
    """Delete an invoice."""
    form = DeleteForm()
    if not form.validate_on_submit():
        abort(400)
    state = delete_invoice_record(invoice_id)
    category = "danger" if state.message.startswith("Database Error") else "success"
    flash(state.message, category)
    return redirect(url_for("invoice.view_invoices"))
