"""Security utilities: password hashing.

CSRF protection lives in ``perch.middleware.csrf``.

Password hashing::

    from perch.security import hash_password, verify_password

    hashed = hash_password("my-password")
    ok = verify_password("my-password", hashed)
"""

from perch.security.passwords import hash_password, needs_rehash, verify_password

__all__ = [
    "hash_password",
    "needs_rehash",
    "verify_password",
]
