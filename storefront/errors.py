"""Domain exceptions raised by the service layer.

Blueprints translate these into HTTP responses; anything not listed here
(database errors in particular) propagates to the 500 handler.
"""


class WebhookPayloadError(ValueError):
    """The webhook body does not have the expected shape."""


class CatalogError(ValueError):
    """A payment event references a product we cannot resolve."""


class TokenInvalid(Exception):
    """A password setup token is unknown, expired, or already used.

    The three cases are deliberately indistinguishable to callers.
    """


class EbookNotFound(Exception):
    """No readable PDF exists for the requested product."""


class PersonalizationError(Exception):
    """The source PDF could not be watermarked (corrupt or unreadable)."""


class UploadRejected(ValueError):
    """An uploaded ebook failed validation."""


class ReaderStateInvalid(ValueError):
    """A saved reader state payload has the wrong shape."""


class PasswordChangeRejected(ValueError):
    """A member's password change was refused; the message is user-facing."""
