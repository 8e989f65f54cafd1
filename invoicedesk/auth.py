"""Session establishment for the credentials provider.

``sign_in`` checks an email/password pair and starts a Flask-Login session.
Failures are raised as :class:`AuthError` subclasses whose ``type`` names
the failure category, so callers can map them to user-facing messages.
"""

from __future__ import annotations

from typing import Mapping

from flask import current_app
from flask_login import login_user
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.datastructures import MultiDict
from werkzeug.security import check_password_hash

from invoicedesk.forms import LoginForm
from invoicedesk.models import User


class AuthError(Exception):
    """Base class for categorised sign-in failures."""

    type = "AuthError"


class CredentialsSignin(AuthError):
    type = "CredentialsSignin"


class MissingCSRF(AuthError):
    type = "MissingCSRF"


class CallbackRouteError(AuthError):
    type = "CallbackRouteError"


def as_multidict(formdata: Mapping | None) -> MultiDict:
    """Wrap plain mappings so WTForms can read them."""
    if formdata is None:
        return MultiDict()
    if hasattr(formdata, "getlist"):
        return formdata
    return MultiDict(formdata)


def authorize(email: str, password: str) -> User | None:
    """Return the user for valid credentials, otherwise ``None``."""
    from invoicedesk.services.accounts import get_user

    try:
        user = get_user(email)
    except SQLAlchemyError as exc:
        current_app.logger.exception("User lookup failed during sign in")
        raise CallbackRouteError("Failed to fetch user.") from exc
    if user is None:
        return None
    if not check_password_hash(user.password, password):
        return None
    return user


def sign_in(formdata: Mapping, remember: bool = False) -> User:
    """Validate credentials from ``formdata`` and log the user in."""
    form = LoginForm(formdata=as_multidict(formdata))
    if not form.validate():
        if "csrf_token" in form.errors:
            raise MissingCSRF("The CSRF token is missing or invalid.")
        raise CredentialsSignin("Invalid credentials.")

    user = authorize(form.email.data, form.password.data)
    if user is None:
        current_app.logger.info("Rejected sign in for %s", form.email.data)
        raise CredentialsSignin("Invalid credentials.")

    login_user(user, remember=remember)
    return user
