"""AES-256-GCM encryption for OAuth tokens at rest."""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from app.crypto.errors import (
    AuthenticationError,
    ConfigurationError,
    FormatError,
    ValidationError,
)

KEY_LENGTH = 32
IV_LENGTH = 16
MIN_IV_LENGTH = 8
MAX_IV_LENGTH = 128
TAG_LENGTH = 16
# Fixed salt: one encryption secret per deployment. Rotating the secret
# invalidates every stored ciphertext.
KDF_SALT = b"salt"
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1


class CredentialCipher:
    """Encrypt and decrypt credential strings.

    Output format is ``<iv>:<tag>:<ciphertext>``, each field standard base64.

    Parameters
    ----------
    encryption_secret : str | None
        Process-wide encryption secret.
    """

    def __init__(self, encryption_secret: str | None) -> None:
        self._secret = encryption_secret
        self._aead: AESGCM | None = None

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a credential.

        Parameters
        ----------
        plaintext : str
            Non-empty value to protect.

        Returns
        -------
        str
            Colon-delimited IV, tag and ciphertext.
        """
        aead = self._cipher()
        if not isinstance(plaintext, str) or not plaintext:
            raise ValidationError("plaintext must be a non-empty string")
        iv = os.urandom(IV_LENGTH)
        sealed = aead.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return ":".join(_b64(part) for part in (iv, tag, ciphertext))

    def decrypt(self, encoded: str) -> str:
        """Decrypt a credential.

        Parameters
        ----------
        encoded : str
            Value produced by :meth:`encrypt`.

        Returns
        -------
        str
            Original plaintext.

        Raises
        ------
        FormatError
            Value is not three base64 fields.
        AuthenticationError
            Tag verification failed; the value was altered or the key differs.
        """
        aead = self._cipher()
        if not isinstance(encoded, str) or not encoded:
            raise FormatError("encrypted value must be a non-empty string")
        parts = encoded.split(":")
        if len(parts) != 3:
            raise FormatError("encrypted value must have three fields")
        try:
            iv, tag, ciphertext = (
                base64.b64decode(part, validate=True) for part in parts
            )
        except (binascii.Error, ValueError) as exc:
            raise FormatError("encrypted value is not valid base64") from exc
        if not MIN_IV_LENGTH <= len(iv) <= MAX_IV_LENGTH:
            raise FormatError("initialization vector has the wrong length")
        if len(tag) != TAG_LENGTH:
            raise FormatError("authentication tag has the wrong length")

        try:
            plaintext = aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise AuthenticationError("credential authentication failed") from exc
        return plaintext.decode("utf-8")

    def _cipher(self) -> AESGCM:
        if self._aead is None:
            self._aead = AESGCM(derive_key(self._secret))
        return self._aead


def derive_key(secret: str | None) -> bytes:
    """Derive the 256-bit AES key from the encryption secret.

    Parameters
    ----------
    secret : str | None
        Encryption secret.

    Returns
    -------
    bytes
        Derived key.
    """
    if not secret:
        raise ConfigurationError("encryption secret is not configured")
    kdf = Scrypt(salt=KDF_SALT, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret.encode("utf-8"))


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
