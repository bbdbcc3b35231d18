import os
from dataclasses import dataclass


def _env_flag(name, default=""):
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    """Base configuration. Shared across all environments."""

    # --- Required ---
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:5000")

    # --- Cakto webhook ---
    CAKTO_WEBHOOK_SECRET = os.environ.get("CAKTO_WEBHOOK_SECRET")

    # --- Primary product ---
    # Events whose product id equals PRIMARY_PRODUCT_ID are routed to the
    # primary product. When it is unset, product ids containing
    # PRIMARY_PRODUCT_MATCH (case-insensitive) are routed there instead.
    PRIMARY_PRODUCT_ID = os.environ.get("PRIMARY_PRODUCT_ID", "").strip()
    PRIMARY_PRODUCT_MATCH = os.environ.get("PRIMARY_PRODUCT_MATCH", "ansiedade").strip()
    PRIMARY_PRODUCT_SLUG = os.environ.get("PRIMARY_PRODUCT_SLUG", "ansiedade")
    PRIMARY_PRODUCT_TITLE = os.environ.get(
        "PRIMARY_PRODUCT_TITLE", "Como Derrotar a Ansiedade"
    )
    OFFER_CHECKOUT_URL = os.environ.get(
        "OFFER_CHECKOUT_URL", "https://pay.cakto.com.br/SEU_CODIGO"
    )

    # --- Ebook files ---
    # All ebook paths are resolved relative to EBOOK_STORAGE_ROOT.
    EBOOK_STORAGE_ROOT = os.environ.get("EBOOK_STORAGE_ROOT", os.getcwd())
    EBOOK_UPLOAD_DIR = os.environ.get("EBOOK_UPLOAD_DIR", "uploads/ebooks")
    PRIMARY_EBOOK_PATH = os.environ.get("PRIMARY_EBOOK_PATH", "assets/ansiedade.pdf")

    # --- Password setup links ---
    PASSWORD_SETUP_TTL_MINUTES = int(os.environ.get("PASSWORD_SETUP_TTL_MINUTES", 30))

    # --- Email (SMTP) ---
    MAIL_SMTP_HOST = os.environ.get("MAIL_SMTP_HOST", "smtp.gmail.com")
    MAIL_SMTP_PORT = int(os.environ.get("MAIL_SMTP_PORT", 587))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")          # app password
    MAIL_FROM_NAME = os.environ.get("MAIL_FROM_NAME", "Marketing Digital Top")
    MAIL_FROM_ADDRESS = os.environ.get("MAIL_FROM_ADDRESS")  # defaults to MAIL_USERNAME

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # --- Session / cookies ---
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = "Lax"

    # --- WTF / CSRF ---
    WTF_CSRF_ENABLED = True

    # --- Dev tooling ---
    ALLOW_SIMULATED_PURCHASES = _env_flag("ALLOW_SIMULATED_PURCHASES")

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "CAKTO_WEBHOOK_SECRET",
            "APP_BASE_URL",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    ALLOW_SIMULATED_PURCHASES = True


class TestConfig(Config):
    """Testing: in-memory SQLite, CSRF disabled."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CAKTO_WEBHOOK_SECRET = "cakto_test_secret"
    APP_BASE_URL = "http://localhost:5000"
    PRIMARY_PRODUCT_ID = ""
    PRIMARY_PRODUCT_MATCH = "ansiedade"
    PRIMARY_PRODUCT_SLUG = "ansiedade"
    PRIMARY_PRODUCT_TITLE = "Como Derrotar a Ansiedade"
    MAIL_USERNAME = None
    MAIL_PASSWORD = None
    WTF_CSRF_ENABLED = False  # disable CSRF for test forms
    RATELIMIT_ENABLED = False  # disable rate limiting in tests
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    SERVER_NAME = "localhost"
    ALLOW_SIMULATED_PURCHASES = True

    @staticmethod
    def validate():
        """Everything is hardcoded in test mode."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    ALLOW_SIMULATED_PURCHASES = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}


@dataclass(frozen=True)
class FulfillmentSettings:
    """Settings the webhook pipeline needs, passed in explicitly.

    ``primary_product_id`` may be empty, in which case the keyword in
    ``primary_product_match`` decides which events map to the primary
    product.
    """

    secret: str
    primary_product_id: str
    base_url: str
    primary_product_match: str = "ansiedade"
    primary_product_slug: str = "ansiedade"
    primary_product_title: str = "Como Derrotar a Ansiedade"
    offer_checkout_url: str = ""
    token_ttl_minutes: int = 30

    @classmethod
    def from_config(cls, config):
        """Build settings from a Flask config mapping."""
        return cls(
            secret=(config.get("CAKTO_WEBHOOK_SECRET") or "").strip(),
            primary_product_id=(config.get("PRIMARY_PRODUCT_ID") or "").strip(),
            base_url=(config.get("APP_BASE_URL") or "").rstrip("/"),
            primary_product_match=(config.get("PRIMARY_PRODUCT_MATCH") or "").strip(),
            primary_product_slug=(config.get("PRIMARY_PRODUCT_SLUG") or "").strip(),
            primary_product_title=config.get("PRIMARY_PRODUCT_TITLE") or "",
            offer_checkout_url=config.get("OFFER_CHECKOUT_URL") or "",
            token_ttl_minutes=int(config.get("PASSWORD_SETUP_TTL_MINUTES") or 30),
        )
