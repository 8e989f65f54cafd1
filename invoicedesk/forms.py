from decimal import Decimal

from flask_wtf import FlaskForm
from wtforms import (
    HiddenField,
    PasswordField,
    RadioField,
    StringField,
    SubmitField,
)
from wtforms.validators import (
    AnyOf,
    DataRequired,
    Email,
    EqualTo,
    Length,
    ValidationError,
)

from invoicedesk.models import INVOICE_STATUSES
from invoicedesk.utils.money import (
    MAX_MINOR_UNITS,
    MINOR_UNITS_PER_MAJOR,
    format_currency,
    parse_amount,
    to_minor_units,
)


class AmountField(StringField):
    """Text field that coerces browser input to a Decimal amount.

    Blank input becomes zero so that the ``greater than`` check reports the
    familiar message rather than a parse error.
    """

    invalid_message = "Please enter a valid amount."

    def __init__(self, *args, render_kw=None, **kwargs):
        render_kw = dict(render_kw or {})
        render_kw.setdefault("inputmode", "decimal")
        render_kw.setdefault("step", "0.01")
        render_kw.setdefault("placeholder", "Enter USD amount")
        super().__init__(*args, render_kw=render_kw, **kwargs)

    def process_formdata(self, valuelist):
        raw_value = valuelist[0] if valuelist else None
        self.data = parse_amount(raw_value)
        if self.data is None:
            raise ValueError(self.invalid_message)

    def _value(self):
        if getattr(self, "raw_data", None):
            return self.raw_data[0]
        if self.data is None:
            return ""
        return f"{self.data:.2f}"


class MinorUnitRange:
    """Validate an amount by the whole number of minor units it stores as.

    The check runs on the converted value, so ``0.004`` (which rounds to zero
    cents) fails the lower bound. Anything that would not fit the ``amount``
    column fails the upper bound before conversion is attempted.
    """

    def __init__(
        self,
        minimum=1,
        maximum=MAX_MINOR_UNITS,
        message=None,
        too_large_message=None,
    ):
        self.minimum = minimum
        self.maximum = maximum
        self.message = message
        self.too_large_message = too_large_message

    def __call__(self, form, field):
        if field.data is None:
            # Parsing already failed and reported its own error.
            return
        largest = Decimal(self.maximum) / MINOR_UNITS_PER_MAJOR
        if field.data > largest:
            raise ValidationError(
                self.too_large_message
                or f"Please enter an amount up to {format_currency(self.maximum)}."
            )
        if field.data <= 0 or to_minor_units(field.data) < self.minimum:
            raise ValidationError(
                self.message
                or f"Must be at least {format_currency(self.minimum)}."
            )


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField(
        "Password", validators=[DataRequired(), Length(min=6)]
    )


class SignupForm(FlaskForm):
    user_name = StringField(
        "Name",
        validators=[Length(min=3, message="Name must be at least 3 characters.")],
    )
    email = StringField("Email", validators=[Email(message="Invalid email")])
    password = PasswordField(
        "Password",
        validators=[
            Length(min=6, message="Password must be at least 6 characters.")
        ],
    )
    confirm_password = PasswordField(
        "Confirm Password",
        validators=[
            Length(min=6, message="Password must be at least 6 characters."),
            EqualTo("password", message="Passwords don't match"),
        ],
    )
    submit = SubmitField("Create account")


class InvoiceForm(FlaskForm):
    """Shared schema for creating and editing invoices."""

    customer_id = StringField(
        "Customer",
        validators=[DataRequired(message="Please select a customer.")],
    )
    amount = AmountField(
        "Amount",
        validators=[
            MinorUnitRange(message="Please select a number greater than $0.")
        ],
    )
    status = RadioField(
        "Status",
        choices=[(status, status.title()) for status in INVOICE_STATUSES],
        validate_choice=False,
        validators=[
            AnyOf(INVOICE_STATUSES, message="Please select an invoice status.")
        ],
    )
    submit = SubmitField("Save Invoice")


class SearchForm(FlaskForm):
    class Meta:
        csrf = False

    query = StringField("Search")


class DeleteForm(FlaskForm):
    """Simple form used for CSRF protection on delete actions."""

    submit = SubmitField("Delete")
