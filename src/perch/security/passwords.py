"""Password hashing utilities: argon2id via ``argon2-cffi``.

Produces PHC-format strings safe for database storage.

Usage::

    from perch.security.passwords import hash_password, verify_password

    hashed = hash_password("my-password")
    ok = verify_password("my-password", hashed)
"""

import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

logger = logging.getLogger("perch.security")

_ARGON2_PREFIX = "$argon2"

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a password with argon2id.

    Args:
        password: The plaintext password to hash.

    Returns:
        A PHC-format hash string (``$argon2id$...``).
    """
    if not password:
        msg = "Password must not be empty."
        raise ValueError(msg)
    return _hasher.hash(password)


def verify_password(password: str, phc_hash: str) -> bool:
    """Verify a password against a hash from ``hash_password``.

    Returns ``False`` for a wrong password or an empty input. Raises
    ``ValueError`` for a hash that is not in argon2 PHC format.
    """
    if not password or not phc_hash:
        return False

    if not phc_hash.startswith(_ARGON2_PREFIX):
        msg = f"Unknown hash format: {phc_hash[:20]}..."
        raise ValueError(msg)

    try:
        return _hasher.verify(phc_hash, password)
    except VerificationError:
        return False
    except InvalidHashError as exc:
        logger.warning("Malformed argon2 hash rejected")
        msg = "Malformed argon2 hash."
        raise ValueError(msg) from exc


def needs_rehash(phc_hash: str) -> bool:
    """True if *phc_hash* was made with weaker parameters than the current ones."""
    return _hasher.check_needs_rehash(phc_hash)
