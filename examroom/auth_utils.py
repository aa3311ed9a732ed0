"""Authentication utilities: administrator password hashing and checking."""

from functools import lru_cache

from passlib.context import CryptContext

from examroom.config import settings

# Configure bcrypt to avoid compatibility issues with bcrypt 4.0+
PWD_CONTEXT = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b",
    bcrypt__rounds=12,
)


def hash_password(plain_password: str) -> str:
    """Hash a plaintext password for storage."""
    return PWD_CONTEXT.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plaintext password against its hash."""
    return PWD_CONTEXT.verify(plain_password, password_hash)


@lru_cache(maxsize=1)
def admin_password_hash() -> str:
    """Hash of the configured administrator password, computed once per process."""
    return hash_password(settings.ADMIN_PASSWORD)


def check_admin_credentials(username: str, password: str) -> bool:
    if username != settings.ADMIN_USERNAME:
        return False
    return verify_password(password, admin_password_hash())
