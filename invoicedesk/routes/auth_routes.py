from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_required, logout_user

from invoicedesk import limiter
from invoicedesk.forms import LoginForm, SignupForm
from invoicedesk.services.accounts import authenticate, register as register_user
from invoicedesk.utils.activity import log_activity

auth = Blueprint("auth", __name__)


@auth.route("/login", methods=["GET", "POST"])
@limiter.limit("5 per minute", methods=["POST"])
def login():
    """Authenticate a user and start their session."""
    if current_user.is_authenticated:
        return redirect(url_for("main.dashboard"))

    form = LoginForm()
    error_message = None
    if request.method == "POST":
        error_message = authenticate(request.form)
        if error_message is None:
            return redirect(url_for("main.dashboard"))

    return render_template(
        "auth/login.html",
        form=form,
        error_message=error_message,
        demo=current_app.config["DEMO"],
    )


@auth.route("/register", methods=["GET", "POST"])
@limiter.limit("10 per hour", methods=["POST"])
def register():
    """Create an account and sign the new user in."""
    if current_user.is_authenticated:
        return redirect(url_for("main.dashboard"))

    form = SignupForm()
    error_message = None
    if request.method == "POST":
        error_message = register_user(request.form)
        if error_message is None:
            flash("Welcome aboard! Your account is ready.", "success")
            return redirect(url_for("main.dashboard"))

    return render_template(
        "auth/register.html", form=form, error_message=error_message
    )


@auth.route("/logout")
@login_required
def logout():
    """Log the current user out."""
    user_id = current_user.id
    logout_user()
    log_activity("Logged out", user_id)
    return redirect(url_for("auth.login"))
