"""
GDSC API - Password Hasher

bcrypt hashes for credential accounts. The stored string carries its own
salt and cost, so checking a password needs nothing but the hash.

Callers cannot tell a wrong password from a missing or corrupt hash; both
simply fail verification. Plaintext passwords are never logged.
"""

from typing import Optional

import bcrypt


# bcrypt cost (log2 rounds); tests lower it
BCRYPT_WORK_FACTOR = 12

# bcrypt only reads this many bytes of input
MAX_PASSWORD_BYTES = 72

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
BCRYPT_HASH_LENGTH = 60


def hash_password(password: str) -> str:
    """
    Hash a plaintext password with the configured cost.

    >>> hash_password("Secret123!").startswith("$2b$")
    True
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_WORK_FACTOR)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def is_valid_bcrypt_hash(hash_string: Optional[str]) -> bool:
    """True if hash_string looks like something hash_password produced."""
    if not hash_string:
        return False
    return hash_string.startswith(BCRYPT_PREFIXES) and len(hash_string) == BCRYPT_HASH_LENGTH


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Check a plaintext password against a stored hash.

    bcrypt compares in constant time. Anything that is not a bcrypt hash
    (None for OAuth-only accounts, truncated or foreign strings) is a
    mismatch rather than an error.
    """
    if not is_valid_bcrypt_hash(hashed_password):
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def needs_rehash(hashed_password: str, target_work_factor: Optional[int] = None) -> bool:
    """
    Whether a stored hash was made with a lower cost than we use now.

    Login calls this after a successful check and re-hashes when it
    returns True. Unparseable hashes always need a rehash.
    """
    if not is_valid_bcrypt_hash(hashed_password):
        return True

    target = target_work_factor if target_work_factor is not None else BCRYPT_WORK_FACTOR
    # $2b$<cost>$<salt+digest>
    cost = hashed_password.split("$")[2]
    try:
        return int(cost) < target
    except ValueError:
        return True
