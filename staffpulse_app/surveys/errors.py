"""
Error taxonomy for the engagement core.

Validation failures use django.core.exceptions.ValidationError directly.
"""

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError

__all__ = [
    "AccessDenied",
    "EncryptionUnavailable",
    "IdentityIntegrityError",
    "NotFound",
    "ValidationError",
]


class NotFound(ObjectDoesNotExist):
    """Raised when an admin, response or location does not exist."""

    pass


class AccessDenied(PermissionDenied):
    """Raised when the caller may not see a location or reveal an identity."""

    pass


class EncryptionUnavailable(Exception):
    """Raised when identity key material is missing or malformed."""

    pass


class IdentityIntegrityError(Exception):
    """
    Raised when an identity blob fails authentication on decrypt.

    Covers tampered bytes, truncated blobs and the wrong key alike. No
    plaintext, partial or otherwise, is ever returned alongside it.
    """

    pass
