"""
core/credentials.py -- Secret generation and comparison (CredentialPolicy).

Security design decisions:
  Randomness: every secret comes from the `secrets` module (OS CSPRNG).
       `random` is never used for anything a client can present back to us.

  Comparison: hmac.compare_digest so the time taken does not reveal how many
       leading characters of a guess were right.

  Shapes: passwords, keys and migration passwords are 10 characters of
       [a-z0-9] because the game client only accepts that shape. Player ids
       are 10-digit decimal strings; the leading digit is never 0 so an id
       can round-trip through the client's integer parsing.

Layer rule: stdlib only.
"""

from __future__ import annotations

import hmac
import secrets
import string

LOWER_ALNUM = string.ascii_lowercase + string.digits
DIGITS = string.digits

SECRET_LENGTH = 10
PLAYER_ID_LENGTH = 10


def generate_secret(alphabet: str, length: int) -> str:
    """Return `length` characters drawn uniformly from `alphabet`."""
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def new_player_id() -> str:
    return secrets.choice(DIGITS[1:]) + generate_secret(DIGITS, PLAYER_ID_LENGTH - 1)


def new_password() -> str:
    """Primary credential: issued at registration, rotated on migration."""
    return generate_secret(LOWER_ALNUM, SECRET_LENGTH)


def new_key() -> str:
    return generate_secret(LOWER_ALNUM, SECRET_LENGTH)


def new_migration_password() -> str:
    return generate_secret(LOWER_ALNUM, SECRET_LENGTH)


def new_session_token(nbytes: int) -> str:
    """URL-safe session token carrying `nbytes` bytes of entropy."""
    return secrets.token_urlsafe(nbytes)


def secrets_match(supplied: str, stored: str) -> bool:
    """Constant-time equality. An empty stored secret never matches."""
    if not stored:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), stored.encode("utf-8"))
