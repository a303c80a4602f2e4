"""Password hashing utilities.

bcrypt handles salting and compares in constant time. The work factor comes
from settings (12 in production, lowered in tests). Passwords are truncated
to 72 bytes, bcrypt's limit.
"""

import bcrypt

from notebox.config import settings

# Compared against when there is no real hash to check, so that a failed
# lookup costs the same as a failed password.
_DUMMY_HASH = bcrypt.hashpw(
    b"notebox-timing-equalizer", bcrypt.gensalt(rounds=settings.bcrypt_rounds)
)


def hash_password(password: str) -> str:
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a bcrypt hash. Malformed hashes never match."""
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def burn_password_check(password: str) -> None:
    """Spend one hash comparison without a stored hash."""
    bcrypt.checkpw(password.encode("utf-8")[:72], _DUMMY_HASH)
