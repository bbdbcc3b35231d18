import os
import logging

import click
from flask import Flask, jsonify, redirect, render_template, url_for
from flask_login import current_user
from werkzeug.security import generate_password_hash

from storefront.config import FulfillmentSettings, config_by_name
from storefront.extensions import db, migrate, login_manager, csrf, limiter
from storefront.services.upsert import insert_for


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from storefront import models  # noqa: F401

        # upserts need PostgreSQL or SQLite
        insert_for(db.engine.dialect.name)

    # --- Register blueprints ---
    from storefront.blueprints.auth import auth_bp
    from storefront.blueprints.members import members_bp
    from storefront.blueprints.admin import admin_bp
    from storefront.blueprints.webhooks import webhooks_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(members_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(webhooks_bp)

    # Cakto posts JSON authenticated by a shared secret, not a CSRF token
    csrf.exempt(webhooks_bp)

    # --- Root route ---
    @app.route("/")
    def index():
        if current_user.is_authenticated:
            return redirect(url_for("members.home"))
        return redirect(url_for("auth.login"))

    # --- Error handlers ---
    @app.errorhandler(403)
    def forbidden(e):
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found(e):
        return render_template("errors/404.html"), 404

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"ok": False, "error": "Too many requests"}), 429

    @app.errorhandler(500)
    def server_error(e):
        return render_template("errors/500.html"), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"  # member PDF reader embeds same-origin
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=()"
        )
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "base-uri 'self'; "
            "form-action 'self'; "
            "frame-ancestors 'self';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-admin")
    @click.option("--email", default="admin@storefront.local", help="Admin email")
    @click.option("--password", default="admin123", help="Admin password")
    def seed_admin(email, password):
        """Create (or promote) an admin user.

        Usage:
            flask seed-admin
            flask seed-admin --email admin@example.com --password s3cret
        """
        from storefront.models.user import User

        email = User.normalize_email(email)
        user = User.query.filter_by(email=email).first()
        if user:
            user.is_admin = True
            user.password_hash = generate_password_hash(password)
            click.echo(f"Promoted existing user to admin: {email}")
        else:
            user = User(
                email=email,
                name="Admin",
                password_hash=generate_password_hash(password),
                is_admin=True,
            )
            db.session.add(user)
            click.echo(f"Created admin user: {email}")
        db.session.commit()

    @app.cli.command("simulate-purchase")
    @click.option("--email", default="teste+cakto@exemplo.com", help="Buyer email")
    @click.option("--name", default="Cliente Teste", help="Buyer name")
    @click.option("--order-id", default=None, help="Cakto order id (default: generated)")
    @click.option("--product-id", default="ansiedade-prod-1", help="Cakto product id")
    @click.option("--offer-id", default="ansiedade-offer-1", help="Cakto offer id")
    @click.option(
        "--event",
        type=click.Choice(["purchase_approved", "refund", "chargeback"]),
        default="purchase_approved",
    )
    def simulate_purchase(email, name, order_id, product_id, offer_id, event):
        """Run a synthetic Cakto event through the real webhook pipeline.

        Disabled unless ALLOW_SIMULATED_PURCHASES is on (never in production).

        Usage:
            flask simulate-purchase --email ana@example.com
            flask simulate-purchase --event refund --order-id ORDER-1
        """
        import time

        from storefront.services.cakto_payload import parse_webhook_payload
        from storefront.services.fulfillment_service import handle_webhook_event

        if not app.config.get("ALLOW_SIMULATED_PURCHASES"):
            click.echo("ERROR: simulated purchases are disabled in this environment.")
            return

        stamp = int(time.time() * 1000)
        settings = FulfillmentSettings.from_config(app.config)
        cakto_event = parse_webhook_payload({
            "id": f"evt-dev-{stamp}",
            "event": event,
            "secret": settings.secret,
            "data": {
                "id": order_id or f"ORDER-{stamp}",
                "status": "paid" if event == "purchase_approved" else event,
                "customer": {"email": email, "name": name},
                "product": {"id": product_id},
                "offer": {"id": offer_id},
            },
        })
        result = handle_webhook_event(cakto_event, settings)

        click.echo(f"Event:     {cakto_event.idempotency_key} ({event})")
        click.echo(f"Order:     {cakto_event.order_id}")
        click.echo(f"Duplicate: {result.duplicate}")
        if result.setup_url:
            click.echo(f"Setup URL: {result.setup_url}")

    @app.cli.command("issue-setup-link")
    @click.option("--email", required=True, help="Member email")
    def issue_setup_link(email):
        """Print a fresh password setup link for a member (support use).

        Usage:
            flask issue-setup-link --email ana@example.com
        """
        from storefront.models.user import User
        from storefront.services.token_service import build_setup_url, issue_setup_token

        user = User.query.filter_by(email=User.normalize_email(email)).first()
        if user is None:
            click.echo(f"No user with email {email}")
            return

        raw_token = issue_setup_token(
            user.id, ttl_minutes=app.config["PASSWORD_SETUP_TTL_MINUTES"]
        )
        db.session.commit()
        click.echo(build_setup_url(app.config["APP_BASE_URL"], raw_token))
