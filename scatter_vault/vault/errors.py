"""
Vault Errors — Exception hierarchy and result values.

Failures that cross an operation boundary as *values* (wrong password on
unlock, signing failures) are modelled as ``Err`` / ``SignatureError``;
everything else is an exception derived from ``VaultError``.
"""
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Closed set of failure categories surfaced by the vault."""

    WRONG_PASSWORD = "wrong_password"
    NO_KEYPAIR = "no_keypair"
    SIGN_ERROR = "sign_err"
    HARDWARE_UNSUPPORTED = "hardware_unsupported"
    DECRYPTION_ERROR = "decryption_error"
    STORAGE_ERROR = "storage_error"
    UNSUPPORTED_CHAIN = "unsupported_chain"
    VAULT_LOCKED = "vault_locked"


class VaultError(Exception):
    """Base class for every vault exception."""

    kind: ErrorKind | None = None


class DecryptionError(VaultError):
    """Ciphertext is malformed, tampered with, or the seed is wrong."""

    kind = ErrorKind.DECRYPTION_ERROR


class VaultLockedError(VaultError):
    """Operation requires an unlocked vault."""

    kind = ErrorKind.VAULT_LOCKED


class StorageError(VaultError):
    """Raised by StorageGateway implementations; never interpreted by the vault."""

    kind = ErrorKind.STORAGE_ERROR


class UnsupportedChainError(VaultError):
    kind = ErrorKind.UNSUPPORTED_CHAIN


class HardwareUnsupportedError(VaultError):
    kind = ErrorKind.HARDWARE_UNSUPPORTED


# ---------------------------------------------------------------------------
# Result values
# ---------------------------------------------------------------------------

class Ok(BaseModel, Generic[T]):
    """Successful outcome carrying a value."""

    value: T
    ok: Literal[True] = True

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    def __bool__(self) -> bool:
        return True


class Err(BaseModel):
    """Failed outcome carrying an ``ErrorKind``."""

    kind: ErrorKind
    message: str = ""
    ok: Literal[False] = False

    model_config = {"frozen": True}

    def __bool__(self) -> bool:
        return False


class SignatureError(BaseModel):
    """Structured failure returned (never raised) by the signing dispatcher."""

    kind: ErrorKind
    message: str
    is_error: bool = True

    model_config = {"frozen": True}

    @classmethod
    def no_keypair(cls) -> "SignatureError":
        return cls(
            kind=ErrorKind.NO_KEYPAIR,
            message="This keypair could not be found",
        )

    @classmethod
    def sign_error(cls, message: str = "") -> "SignatureError":
        return cls(
            kind=ErrorKind.SIGN_ERROR,
            message=message or "There was an error signing this transaction.",
        )

    @classmethod
    def hardware_unsupported(cls) -> "SignatureError":
        return cls(
            kind=ErrorKind.HARDWARE_UNSUPPORTED,
            message="Hardware signing is not supported by this vault",
        )

    @classmethod
    def unsupported_chain(cls, blockchain: Any) -> "SignatureError":
        return cls(
            kind=ErrorKind.UNSUPPORTED_CHAIN,
            message=f"Unsupported blockchain: {blockchain}",
        )
