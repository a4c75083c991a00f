"""
Symmetric encryption for third-party credentials stored in the database

WooCommerce consumer keys/secrets are stored encrypted with Fernet
(AES-128-CBC + HMAC). CREDENTIALS_ENCRYPTION_KEY must be a urlsafe base64
32-byte key, e.g. the output of Fernet.generate_key().
"""
import logging

from cryptography.fernet import Fernet, InvalidToken

from .config import settings
from .exceptions import AppError

logger = logging.getLogger(__name__)


def _get_fernet(key: str = None) -> Fernet:
    key = key or settings.CREDENTIALS_ENCRYPTION_KEY
    if not key:
        raise AppError(
            "CREDENTIALS_ENCRYPTION_KEY not configured",
            "ENCRYPTION_KEY_MISSING",
            500
        )
    return Fernet(key.encode() if isinstance(key, str) else key)


def encrypt_value(value: str, key: str = None) -> str:
    """Encrypt a plaintext string, returning a token safe to store as text"""
    return _get_fernet(key).encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_value(token: str, key: str = None) -> str:
    """Decrypt a token produced by encrypt_value"""
    try:
        return _get_fernet(key).decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        logger.error("Failed to decrypt stored credential (wrong key or corrupted value)")
        raise AppError(
            "Stored credentials could not be decrypted",
            "CREDENTIALS_DECRYPTION_FAILED",
            500
        )
