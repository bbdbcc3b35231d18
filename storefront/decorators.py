"""
Custom route decorators for access control.

- product_access_required: ensures the user holds an ACTIVE purchase for
  the product in the URL's `slug` (re-checked on every request).
- admin_required: ensures user is logged in AND has is_admin=True.
"""

import re
from functools import wraps

from flask import abort, g
from flask_login import current_user, login_required

from storefront.services.access_service import check_access

SLUG_RE = re.compile(r"^[a-z0-9-]+$")


def product_access_required(f):
    """Require an access grant for the product slug in the URL.

    Malformed slugs are 404; anything else that fails is 403, with no
    hint as to why. The grant is exposed as g.access.
    """

    @wraps(f)
    def decorated(*args, slug, **kwargs):
        if not SLUG_RE.match(slug):
            abort(404)

        access = check_access(current_user, slug)
        if access is None:
            abort(403)

        g.access = access
        return f(*args, slug=slug, **kwargs)

    return decorated


def admin_required(f):
    """Require login + is_admin flag."""

    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not current_user.is_admin:
            abort(403)
        return f(*args, **kwargs)

    return decorated
