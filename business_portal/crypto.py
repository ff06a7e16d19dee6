"""
Field-level encryption for personal data stored in the database.

Values are encrypted with AES-256-GCM. The stored token is the base64 of
``iv (16) + auth tag (16) + ciphertext``. The key is the SHA-256 digest of
the ``AUTH_KEY`` setting.
"""
import base64
import binascii
import hashlib
import hmac
import logging
import os
from datetime import datetime

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from flask import current_app, has_app_context

from business_portal.errors import EncryptionError

logger = logging.getLogger(__name__)

IV_LENGTH = 16
AUTH_TAG_LENGTH = 16
MIN_ENCRYPTED_LENGTH = IV_LENGTH + AUTH_TAG_LENGTH + 1


def _get_encryption_key():
    key = None
    if has_app_context():
        key = current_app.config.get('AUTH_KEY')
    key = key or os.environ.get('AUTH_KEY')
    if not key:
        raise EncryptionError('AUTH_KEY is not set')
    return hashlib.sha256(key.encode('utf-8')).digest()


def encrypt(value):
    """Encrypt a string. Empty values are stored as NULL."""
    if value is None or value == '':
        return None

    key = _get_encryption_key()
    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(key).encrypt(iv, str(value).encode('utf-8'), None)
    # AESGCM appends the tag; the stored layout keeps it in front of the data
    ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
    return base64.b64encode(iv + tag + ciphertext).decode('ascii')


def decrypt(token):
    """Decrypt a token produced by :func:`encrypt`.

    Returns None for empty input and for anything that does not decrypt
    with the current key (plain text, corrupted data, key mismatch).
    """
    if token is None or token == '':
        return None

    key = _get_encryption_key()
    try:
        combined = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError):
        logger.error('Decryption failed: value is not base64')
        return None

    if len(combined) < MIN_ENCRYPTED_LENGTH:
        logger.warning('Encrypted data too short, returning None. Data may be unencrypted or corrupted.')
        return None

    iv = combined[:IV_LENGTH]
    tag = combined[IV_LENGTH:IV_LENGTH + AUTH_TAG_LENGTH]
    ciphertext = combined[IV_LENGTH + AUTH_TAG_LENGTH:]
    try:
        plain = AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag:
        logger.error('Decryption failed: authentication tag mismatch')
        return None
    return plain.decode('utf-8')


def encrypt_date(value):
    if not value:
        return None
    return encrypt(value.isoformat())


def decrypt_date(token):
    plain = decrypt(token)
    if not plain:
        return None
    try:
        return datetime.fromisoformat(plain)
    except ValueError:
        logger.error('Decrypted value is not an ISO date: %r', plain)
        return None


def encrypt_number(value):
    return encrypt(repr(float(value)) if value is not None else None)


def decrypt_number(token):
    plain = decrypt(token)
    if not plain:
        return 0.0
    try:
        return float(plain)
    except ValueError:
        return 0.0


def blind_hash(value):
    """Keyed digest used to look up encrypted columns by equality."""
    if value is None:
        return None
    normalized = str(value).strip().lower()
    if not normalized:
        return None
    return hmac.new(_get_encryption_key(), normalized.encode('utf-8'), hashlib.sha256).hexdigest()
