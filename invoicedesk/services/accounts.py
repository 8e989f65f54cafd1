"""Registration and login handlers for the credentials provider."""

from __future__ import annotations

from typing import Mapping, Optional

from flask import current_app
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import generate_password_hash

from invoicedesk import db
from invoicedesk.auth import AuthError, CredentialsSignin, as_multidict, sign_in
from invoicedesk.forms import SignupForm
from invoicedesk.models import User
from invoicedesk.utils.activity import log_activity

DUPLICATE_USER_MESSAGE = "User with this email is already registered"
GENERIC_FAILURE_MESSAGE = "Something went wrong"
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
AUTH_FAILURE_MESSAGE = "Something went wrong."

PASSWORD_HASH_METHOD = "pbkdf2:sha256"
PASSWORD_SALT_LENGTH = 16


class RegistrationError(Exception):
    """Base class for failures that registration reports to the user."""


class ValidationError(RegistrationError):
    pass


class DuplicateUserError(RegistrationError):
    def __init__(self, message: str = DUPLICATE_USER_MESSAGE):
        super().__init__(message)


class DatabaseError(RegistrationError):
    def __init__(self, message: str = GENERIC_FAILURE_MESSAGE):
        super().__init__(message)


def get_user(email: str) -> Optional[User]:
    """Return the user registered with ``email`` or ``None``."""
    return db.session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()


def _first_error(form: SignupForm) -> str:
    for messages in form.errors.values():
        if messages:
            return messages[0]
    return GENERIC_FAILURE_MESSAGE


def sign_up(formdata: Mapping) -> None:
    """Validate the signup fields and insert a new user row.

    Raises :class:`ValidationError`, :class:`DuplicateUserError` or
    :class:`DatabaseError`.
    """
    form = SignupForm(formdata=as_multidict(formdata))
    if not form.validate():
        raise ValidationError(_first_error(form))

    email = form.email.data
    if get_user(email) is not None:
        raise DuplicateUserError()

    hashed_password = generate_password_hash(
        form.password.data,
        method=PASSWORD_HASH_METHOD,
        salt_length=PASSWORD_SALT_LENGTH,
    )
    try:
        db.session.execute(
            text(
                "INSERT INTO users (name, email, password) "
                "VALUES (:name, :email, :password)"
            ),
            {"name": form.user_name.data, "email": email, "password": hashed_password},
        )
        db.session.commit()
    except IntegrityError as exc:
        # Another registration won the race between the lookup and the insert.
        db.session.rollback()
        raise DuplicateUserError() from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Database error while registering a user")
        raise DatabaseError() from exc


def register(formdata: Mapping) -> Optional[str]:
    """Create an account and start a session for it.

    Returns a message for the user when registration fails. Errors raised
    while starting the session are not handled here.
    """
    formdata = as_multidict(formdata)
    try:
        sign_up(formdata)
    except RegistrationError as exc:
        return str(exc)

    user = sign_in(formdata)
    log_activity("Registered", user.id)
    return None


def authenticate(formdata: Mapping) -> Optional[str]:
    """Sign a user in, returning a message for expected failures."""
    try:
        user = sign_in(as_multidict(formdata))
    except CredentialsSignin:
        return INVALID_CREDENTIALS_MESSAGE
    except AuthError:
        return AUTH_FAILURE_MESSAGE
    log_activity("Logged in", user.id)
    return None
