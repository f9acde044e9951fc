"""
Salted one-way password hashing.

Hashes are stored as ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>`` so the
iteration count can be raised later without invalidating existing accounts.
"""

import hashlib
import hmac
import secrets

ALGORITHM = "pbkdf2_sha256"


def hash_password(password: str, iterations: int, salt: str = None) -> str:
    """
    Derive a salted hash for a password.

    Args:
        password: Plain text password
        iterations: PBKDF2 iteration count
        salt: Optional salt (a random one is generated when omitted)

    Returns:
        Encoded hash string
    """
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations
    )
    return f"{ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """
    Check a candidate password against an encoded hash.

    Malformed hashes never verify.
    """
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
        iterations = int(iterations)
    except (AttributeError, ValueError):
        return False

    if algorithm != ALGORITHM:
        return False

    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations
    )
    return hmac.compare_digest(digest.hex(), expected)


def dummy_hash(iterations: int) -> str:
    """Hash used to spend the same work on unknown identifiers during login."""
    return hash_password(secrets.token_urlsafe(16), iterations)
