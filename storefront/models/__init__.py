# Models package: import all models here so Alembic can discover them.

from storefront.models.user import User  # noqa: F401
from storefront.models.product import Offer, Product, ProductEbook  # noqa: F401
from storefront.models.purchase import Purchase  # noqa: F401
from storefront.models.webhook_event import WebhookEvent  # noqa: F401
from storefront.models.password_setup_token import PasswordSetupToken  # noqa: F401
from storefront.models.audit import AuditEvent  # noqa: F401
from storefront.models.reader_state import EbookHighlight, EbookReaderState  # noqa: F401
