import base64
import hashlib
from cryptography.fernet import Fernet, InvalidToken
from litreview.core.config import get_settings

settings = get_settings()


def _get_fernet() -> Fernet:
    """Derive a Fernet key from ENCRYPTION_KEY, or JWT_SECRET_KEY when unset."""
    secret = settings.encryption_key or settings.jwt_secret_key
    derived = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(derived))


def encrypt_value(plaintext: str | None) -> str | None:
    """Encrypt a credential for storage. Empty values are stored as NULL."""
    if not plaintext:
        return None
    return _get_fernet().encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt_value(ciphertext: str | None) -> str | None:
    if not ciphertext:
        return None
    try:
        return _get_fernet().decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        # Key rotated since the value was written
        return None


def mask_secret(value: str | None, visible_chars: int = 4) -> str | None:
    """Mask a secret, showing only the last N characters."""
    if not value:
        return None
    if len(value) <= visible_chars:
        return "*" * 8
    return "*" * 8 + value[-visible_chars:]
