"""Perimeter exception types."""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Failure tags shared by exceptions and boundary results."""

    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    INVALID_STATE = "invalid_state"
    SIGNATURE_MISMATCH = "signature_mismatch"
    EXPIRED = "expired"
    FORMAT = "format"
    AUTHENTICATION = "authentication"


class PerimeterError(Exception):
    """Base error for state tokens and credential encryption.

    Parameters
    ----------
    detail : str
        Server-side description. Never shown to clients.
    """

    kind: FailureKind = FailureKind.VALIDATION

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class ConfigurationError(PerimeterError):
    """Secret material is missing or malformed."""

    kind = FailureKind.CONFIGURATION


class ValidationError(PerimeterError):
    """Caller input was rejected."""

    kind = FailureKind.VALIDATION


class StateTokenError(PerimeterError):
    """Base class for state token rejections."""


class InvalidState(StateTokenError):
    """State token could not be decoded or parsed."""

    kind = FailureKind.INVALID_STATE


class SignatureMismatch(StateTokenError):
    """State token signature did not verify."""

    kind = FailureKind.SIGNATURE_MISMATCH


class Expired(StateTokenError):
    """State token is older than the validity window."""

    kind = FailureKind.EXPIRED


class CipherError(PerimeterError):
    """Base class for credential decryption failures."""


class FormatError(CipherError):
    """Encrypted payload is not ``iv:tag:ciphertext``."""

    kind = FailureKind.FORMAT


class AuthenticationError(CipherError):
    """GCM tag verification failed."""

    kind = FailureKind.AUTHENTICATION
