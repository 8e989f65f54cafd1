from flask import Blueprint, render_template, request
from flask_login import login_required

from invoicedesk.forms import SearchForm
from invoicedesk.services.customers import fetch_filtered_customers

customer = Blueprint("customer", __name__)


@customer.route("/dashboard/customers")
@login_required
def view_customers():
    """Display customers with their invoice totals."""
    search_form = SearchForm(request.args)
    query = (search_form.query.data or "").strip()
    return render_template(
        "customers/view_customers.html",
        customers=fetch_filtered_customers(query),
        search_form=search_form,
        query=query,
    )
