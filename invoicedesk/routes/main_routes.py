from flask import Blueprint, render_template
from flask_login import current_user, login_required

from invoicedesk.services.dashboard_metrics import dashboard_context

main = Blueprint("main", __name__)


@main.route("/dashboard")
@login_required
def dashboard():
    """Render the dashboard with aggregated context."""

    return render_template(
        "dashboard.html",
        user=current_user,
        context=dashboard_context(),
    )
