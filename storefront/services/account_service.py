"""Member account changes."""

import logging

from werkzeug.security import check_password_hash, generate_password_hash

from storefront.errors import PasswordChangeRejected
from storefront.extensions import db
from storefront.services.purchase_service import log_audit

logger = logging.getLogger(__name__)

MIN_CURRENT_PASSWORD_LENGTH = 6
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 120


def change_password(user, current_password, new_password, confirm_password):
    """Replace ``user``'s password after checking the current one.

    Raises PasswordChangeRejected with a message for the member.
    """
    if (
        not isinstance(current_password, str)
        or not isinstance(new_password, str)
        or not isinstance(confirm_password, str)
        or len(current_password) < MIN_CURRENT_PASSWORD_LENGTH
        or not MIN_PASSWORD_LENGTH <= len(new_password) <= MAX_PASSWORD_LENGTH
    ):
        raise PasswordChangeRejected("Dados inválidos")
    if new_password != confirm_password:
        raise PasswordChangeRejected("Confirmação diferente da nova senha")

    if user.password_hash is None:
        raise PasswordChangeRejected("Usuário sem senha definida")
    if not check_password_hash(user.password_hash, current_password):
        raise PasswordChangeRejected("Senha atual inválida")

    user.password_hash = generate_password_hash(new_password)
    log_audit("user.password_changed", {"user_id": user.id}, actor_user_id=user.id)
    db.session.commit()
    logger.info(f"Password changed by user {user.id}")
