"""Session token helpers."""

import hashlib
from dataclasses import dataclass
from secrets import token_urlsafe

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

password_hasher = PasswordHasher()

SESSION_TOKEN_PREFIX = "ses"


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """A freshly generated session token.

    Attributes
    ----------
    plaintext : str
        Raw token, returned to the client once.
    token_hash : str
        Argon2 hash for storage.
    token_lookup : str
        SHA-256 hex digest used to find the row.
    """

    plaintext: str
    token_hash: str
    token_lookup: str


def issue_session_token() -> IssuedToken:
    """Generate a session token with its stored forms.

    Returns
    -------
    IssuedToken
        Raw token and its hashes.
    """
    plaintext = f"{SESSION_TOKEN_PREFIX}_{token_urlsafe(32)}"
    return IssuedToken(
        plaintext=plaintext,
        token_hash=password_hasher.hash(plaintext),
        token_lookup=lookup_hash(plaintext),
    )


def lookup_hash(token: str) -> str:
    """Compute a fast, non-secret hash for DB lookup.

    Parameters
    ----------
    token : str
        Raw token.

    Returns
    -------
    str
        Hex-encoded SHA-256 digest.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def verify_session_token(token: str, token_hash: str) -> bool:
    """Verify a raw session token against its stored hash.

    Parameters
    ----------
    token : str
        Raw token.
    token_hash : str
        Stored Argon2 hash.

    Returns
    -------
    bool
        Whether the token matches.
    """
    try:
        return password_hasher.verify(token_hash, token)
    except (VerificationError, InvalidHashError):
        return False
