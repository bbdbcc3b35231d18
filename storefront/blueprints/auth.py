"""Auth blueprint: login, logout, password setup and recovery.

Members never register: the purchase webhook creates their account and
emails a one-time /definir-senha link. The same link type is used for
password recovery (/esqueci-senha) and admin-initiated resets.
"""

import logging

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from storefront.errors import TokenInvalid
from storefront.extensions import db, limiter
from storefront.models.user import User
from storefront.services import token_service
from storefront.services.email_service import send_password_recovery_email

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

MIN_PASSWORD_LENGTH = 8
LINK_EXPIRED_MESSAGE = "Este link expirou ou já foi utilizado. Solicite um novo."


# ──────────────────────────────────────────────
# GET/POST /login
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["GET", "POST"])
@limiter.limit("15 per minute", methods=["POST"])
def login():
    """Email + password login.

    Members who have not used their setup link yet have no password and
    cannot log in; the form shows the same error as a wrong password.
    """
    if current_user.is_authenticated:
        return redirect(url_for("members.home"))

    if request.method == "POST":
        email = User.normalize_email(request.form.get("email"))
        password = request.form.get("password", "")

        user = User.query.filter_by(email=email).first()
        if (
            user is None
            or user.password_hash is None
            or not check_password_hash(user.password_hash, password)
        ):
            flash("E-mail ou senha inválidos.", "error")
            return render_template("auth/login.html", email=email), 401

        if not user.is_active:
            flash("Sua conta está desativada.", "error")
            return render_template("auth/login.html", email=email), 403

        login_user(user)

        next_url = request.args.get("next", "")
        # Safety: only allow relative redirects (prevent open redirect)
        if not next_url.startswith("/") or next_url.startswith("//"):
            next_url = url_for("members.home")
        return redirect(next_url)

    return render_template("auth/login.html")


# ──────────────────────────────────────────────
# POST /logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout", methods=["POST"])
def logout():
    logout_user()
    return redirect(url_for("auth.login"))


# ──────────────────────────────────────────────
# GET/POST /definir-senha?token=<raw token>
# ──────────────────────────────────────────────

@auth_bp.route("/definir-senha", methods=["GET", "POST"])
@limiter.limit("10 per minute", methods=["POST"])
def set_password():
    """Set a password from a setup/recovery link.

    GET: show the form if the token is still usable
    POST: consume the token, store the password, log the member in

    Unknown, expired and used tokens all get the same message.
    """
    token = (request.args.get("token") or request.form.get("token") or "").strip()

    if request.method == "POST":
        password = request.form.get("password", "")
        if len(password) < MIN_PASSWORD_LENGTH:
            flash(f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres.", "error")
            return render_template("auth/set_password.html", token=token), 400

        try:
            user = token_service.consume_setup_token(
                token, generate_password_hash(password)
            )
        except TokenInvalid:
            flash(LINK_EXPIRED_MESSAGE, "error")
            return render_template(
                "auth/set_password.html", token=token, link_expired=True
            ), 400

        login_user(user)
        return redirect(url_for("members.home"))

    if token_service.find_valid_token(token) is None:
        flash(LINK_EXPIRED_MESSAGE, "error")
        return render_template("auth/set_password.html", token=token, link_expired=True)

    return render_template("auth/set_password.html", token=token)


# ──────────────────────────────────────────────
# GET/POST /esqueci-senha
# ──────────────────────────────────────────────

@auth_bp.route("/esqueci-senha", methods=["GET", "POST"])
@limiter.limit("5 per minute", methods=["POST"])
def forgot_password():
    """Email a recovery link if the account exists and is active.

    The response is identical either way so the form cannot be used to
    probe which emails have accounts.
    """
    if request.method == "POST":
        email = User.normalize_email(request.form.get("email"))
        user = User.query.filter_by(email=email).first() if email else None

        if user and user.is_active:
            send_recovery_link(user)

        return render_template("auth/forgot_password.html", sent=True)

    return render_template("auth/forgot_password.html")


def send_recovery_link(user):
    """Issue a setup token for ``user`` and email the link."""
    raw_token = token_service.issue_setup_token(
        user.id, ttl_minutes=current_app.config["PASSWORD_SETUP_TTL_MINUTES"]
    )
    db.session.commit()
    setup_url = token_service.build_setup_url(current_app.config["APP_BASE_URL"], raw_token)
    send_password_recovery_email(user.email, user.name, setup_url)
    logger.info(f"Recovery link issued for user {user.id}")
