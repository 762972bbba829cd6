"""
Identity escrow for consenting respondents.

Identities are sealed with AES-256-GCM under the key in
IDENTITY_ENCRYPTION_KEY (base64, 32 bytes). Stored format:

    base64( nonce[12] || ciphertext || tag[16] )

Only platform administrators (superusers) can reveal an identity, at a rate
capped by RATE_LIMITS["identity_reveal"]. Every reveal writes an
IdentityAccessLog row in the same transaction as the decrypt. A failed
decrypt or log write aborts the reveal with no row left behind; a successful
reveal always leaves exactly one row.

Plaintext identities are never logged.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from django.conf import settings
from django.db import transaction

from staffpulse_app.core.rate_limit import enforce_rate_limit, get_rate_limit_config

from ..errors import EncryptionUnavailable, IdentityIntegrityError, NotFound, ValidationError
from ..models import IdentityAccessLog, SurveyResponse
from ..permissions import require_can_reveal_identity

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
NONCE_LENGTH = 12
TAG_LENGTH = 16

REASON_MAX_LENGTH = 1000
REQUESTED_BY_MAX_LENGTH = 200


def generate_identity_key() -> str:
    """Return a fresh base64 key suitable for IDENTITY_ENCRYPTION_KEY."""
    return base64.b64encode(os.urandom(KEY_LENGTH)).decode("ascii")


def get_identity_key() -> bytes:
    """
    Load the escrow key from settings.

    Raises:
        EncryptionUnavailable: If the key is unset, not base64 or not 32 bytes
    """
    raw = getattr(settings, "IDENTITY_ENCRYPTION_KEY", "") or ""
    if not raw:
        raise EncryptionUnavailable("IDENTITY_ENCRYPTION_KEY is not set")
    try:
        key = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        raise EncryptionUnavailable("IDENTITY_ENCRYPTION_KEY is not valid base64")
    if len(key) != KEY_LENGTH:
        raise EncryptionUnavailable(
            f"IDENTITY_ENCRYPTION_KEY must decode to {KEY_LENGTH} bytes, got {len(key)}"
        )
    return key


def encrypt_identity(plaintext: str | None, key: bytes | None = None) -> str | None:
    """Seal an identity; empty input yields None."""
    if not plaintext:
        return None
    key = key or get_identity_key()
    nonce = os.urandom(NONCE_LENGTH)
    # AESGCM appends the tag to the ciphertext
    sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + sealed).decode("ascii")


def decrypt_identity(blob: str | None, key: bytes | None = None) -> str | None:
    """
    Open a sealed identity.

    Raises:
        IdentityIntegrityError: If the blob was altered, truncated or sealed
            under another key
        EncryptionUnavailable: If no usable key is configured
    """
    if not blob:
        return None
    key = key or get_identity_key()
    try:
        data = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError):
        raise IdentityIntegrityError("Identity blob is not valid base64")
    # b64decode ignores trailing pad bits; only the canonical encoding is accepted
    if base64.b64encode(data).decode("ascii") != blob:
        raise IdentityIntegrityError("Identity blob is not canonical base64")

    if len(data) < NONCE_LENGTH + TAG_LENGTH:
        raise IdentityIntegrityError("Identity blob is truncated")

    nonce, sealed = data[:NONCE_LENGTH], data[NONCE_LENGTH:]
    try:
        plaintext = AESGCM(key).decrypt(nonce, sealed, None)
    except InvalidTag:
        raise IdentityIntegrityError("Identity blob failed authentication")

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise IdentityIntegrityError("Identity blob is not valid UTF-8")


def _clean_text(value, field_name: str, max_length: int) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError({field_name: f"{field_name} is required."})
    if len(value) > max_length:
        raise ValidationError(
            {field_name: f"{field_name} must be at most {max_length} characters."}
        )
    return value


def reveal_identity(response_id, reason: str, requested_by: str, caller) -> str:
    """
    Decrypt the identity attached to a response and record who asked.

    Args:
        response_id: SurveyResponse primary key
        reason: Why the identity is needed (1-1000 chars)
        requested_by: Who requested the reveal (1-200 chars)
        caller: The user performing the reveal; must be a superuser

    Raises:
        AccessDenied: If caller is not a platform administrator
        RateLimitExceeded: If caller has revealed too many identities recently
        ValidationError: If reason/requested_by are invalid or the response
            carries no identity
        NotFound: If the response does not exist
        EncryptionUnavailable: If no key is configured
        IdentityIntegrityError: If the stored blob fails authentication
    """
    require_can_reveal_identity(caller)
    enforce_rate_limit(f"user:{caller.pk}", get_rate_limit_config("identity_reveal"))
    reason = _clean_text(reason, "reason", REASON_MAX_LENGTH)
    requested_by = _clean_text(requested_by, "requested_by", REQUESTED_BY_MAX_LENGTH)

    with transaction.atomic():
        try:
            response = SurveyResponse.objects.select_for_update().get(pk=response_id)
        except SurveyResponse.DoesNotExist:
            raise NotFound(f"Response {response_id} not found")

        if not response.encrypted_identity:
            raise ValidationError("No identity stored for this response.")

        key = get_identity_key()

        IdentityAccessLog.objects.create(
            response=response,
            revealer=caller,
            reason=reason,
            requested_by=requested_by,
        )

        try:
            identity = decrypt_identity(response.encrypted_identity, key=key)
        except IdentityIntegrityError:
            logger.error(
                f"Identity blob failed verification for response_id={response.pk}"
            )
            raise

    logger.warning(
        f"Identity revealed for response_id={response.pk} by user_id={caller.pk}"
    )
    return identity
