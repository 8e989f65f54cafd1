import os
import secrets
from datetime import date, datetime, timedelta

from dotenv import load_dotenv
from flask import Flask, Response, g, redirect, render_template, request, url_for
from flask_bootstrap import Bootstrap5
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect
from flask_wtf.csrf import CSRFError

load_dotenv()
db = SQLAlchemy()
login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message = "Please log in to access the dashboard."
storage_uri = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
limiter = Limiter(key_func=get_remote_address, storage_uri=storage_uri)
csrf = CSRFProtect()


def _get_bool_env(var_name: str, default: bool = False) -> bool:
    """Return a boolean environment variable value."""

    value = os.getenv(var_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


DEFAULT_CSP_TEMPLATE = (
    "default-src 'self'; "
    "img-src 'self' data:; "
    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "script-src 'self' https://cdn.jsdelivr.net 'nonce-{nonce}'; "
    "font-src 'self' data:; "
    "frame-ancestors 'self'; "
    "form-action 'self'; "
    "object-src 'none'; "
    "base-uri 'self'"
)
NAV_LINKS = {
    "main.dashboard": "Home",
    "invoice.view_invoices": "Invoices",
    "customer.view_customers": "Customers",
}


@login_manager.user_loader
def load_user(user_id):
    """Retrieve a user by ID for Flask-Login."""
    from invoicedesk.models import User

    return db.session.get(User, int(user_id))


def create_admin_user():
    """Ensure the seed user from the environment exists."""
    from werkzeug.security import generate_password_hash

    from invoicedesk.models import User

    db.create_all()

    admin_email = os.getenv("ADMIN_EMAIL")
    raw_password = os.getenv("ADMIN_PASS")
    if not admin_email:
        raise RuntimeError("ADMIN_EMAIL environment variable not set")
    if raw_password is None:
        raise RuntimeError("ADMIN_PASS environment variable not set")

    if User.query.filter_by(email=admin_email).first() is None:
        admin_user = User(
            name=os.getenv("ADMIN_NAME", "Administrator"),
            email=admin_email,
            password=generate_password_hash(raw_password),
        )
        db.session.add(admin_user)
        db.session.commit()
        print("Admin user created.")


def _database_uri(base_dir: str) -> str:
    # DATABASE_URL wins so deployments can point at Postgres; otherwise fall
    # back to a SQLite file, optionally placed inside DATABASE_PATH.
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url
    default_db_path = os.path.join(base_dir, "invoices.db")
    db_path = os.getenv("DATABASE_PATH", default_db_path)
    if os.path.isdir(db_path):
        db_path = os.path.join(db_path, "invoices.db")
    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    return f"sqlite:///{os.path.abspath(db_path)}"


def create_app(args: list, config: dict | None = None):
    """Application factory used by Flask.

    ``config`` overrides are applied before any extension is initialised so
    that tests can swap the database and disable CSRF or rate limiting.
    """
    app = Flask(__name__)
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY")
    default_secure_cookies = "--demo" not in args
    session_cookie_secure = _get_bool_env(
        "SESSION_COOKIE_SECURE", default=default_secure_cookies
    )
    app.config["ENFORCE_HTTPS"] = _get_bool_env("ENFORCE_HTTPS", default=False)
    app.config.update(
        SESSION_COOKIE_SECURE=session_cookie_secure,
        REMEMBER_COOKIE_SECURE=session_cookie_secure,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        PERMANENT_SESSION_LIFETIME=timedelta(minutes=30),
    )
    app.config["START_TIME"] = datetime.utcnow()
    app.config["DEMO"] = "--demo" in args
    app.config["SQLALCHEMY_DATABASE_URI"] = _database_uri(os.getcwd())
    app.config["PAGE_CACHE_MAX_ENTRIES"] = int(
        os.getenv("PAGE_CACHE_MAX_ENTRIES", "256")
    )
    if config:
        app.config.update(config)

    app.logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    if app.config.get("TESTING"):
        app.config.setdefault("RATELIMIT_ENABLED", False)

    db.init_app(app)
    from flask_migrate import Migrate

    Migrate(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)
    Bootstrap5(app)
    csrf.init_app(app)

    from invoicedesk.utils.money import format_currency

    def format_date(value, fmt="%b %d, %Y"):
        if not value:
            return ""
        if isinstance(value, str):
            try:
                value = date.fromisoformat(value)
            except ValueError:
                return value
        return value.strftime(fmt)

    app.jinja_env.filters["format_currency"] = format_currency
    app.jinja_env.filters["format_date"] = format_date

    @app.context_processor
    def inject_nav_links():
        """Provide navigation labels to templates."""
        return dict(NAV_LINKS=NAV_LINKS)

    @app.before_request
    def set_csp_nonce():
        """Generate a nonce for inline scripts allowed by the CSP."""

        g.csp_nonce = secrets.token_urlsafe(16)

    @app.after_request
    def apply_security_headers(response):
        """Attach standard security headers to every response."""
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if request.is_secure or app.config.get("ENFORCE_HTTPS", False):
            response.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains",
            )
        nonce = getattr(g, "csp_nonce", "") or secrets.token_urlsafe(16)
        csp_template = app.config.get(
            "CONTENT_SECURITY_POLICY", DEFAULT_CSP_TEMPLATE
        )
        response.headers.setdefault(
            "Content-Security-Policy", csp_template.format(nonce=nonce)
        )
        return response

    @app.context_processor
    def inject_csp_nonce():
        """Expose the CSP nonce to templates for inline scripts."""

        return {"csp_nonce": getattr(g, "csp_nonce", "")}

    @app.before_request
    def block_http_options():
        """Return a 405 for HTTP OPTIONS requests to reduce information leakage."""
        if request.method == "OPTIONS":
            return Response(status=405)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        """Render a helpful page when CSRF validation fails."""
        app.logger.warning("CSRF validation failed: %s", error.description)
        return (
            render_template("errors/csrf_error.html", reason=error.description),
            400,
        )

    @app.route("/")
    def index():
        return redirect(url_for("main.dashboard"))

    with app.app_context():
        # Ensure the schema exists even when migrations have not been run.
        from . import models  # noqa: F401

        db.create_all()

        from invoicedesk.routes.auth_routes import auth
        from invoicedesk.routes.customer_routes import customer
        from invoicedesk.routes.invoice_routes import invoice
        from invoicedesk.routes.main_routes import main

        app.register_blueprint(auth, url_prefix="/auth")
        app.register_blueprint(main)
        app.register_blueprint(invoice)
        app.register_blueprint(customer)

    app.logger.debug(
        "Application created with database %s",
        app.config["SQLALCHEMY_DATABASE_URI"],
    )
    return app
