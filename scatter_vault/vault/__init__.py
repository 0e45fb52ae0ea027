"""Scatter Vault — Password-derived encryption of wallet secrets.

Security Note (Threat Model):
    While the vault is unlocked, the seed and the decrypted keychain live
    in process memory. A memory dump of the application process exposes
    them. This is an accepted limitation; mitigation requires hardware
    signers or a secure enclave, which are out of scope.
"""

from .wallet_vault import Vault, VaultState
from .signing import (
    Blockchain,
    PluginRegistry,
    SigningDispatcher,
    available_blockchains,
)
from .config import VaultConfig, generate_salt
from .errors import (
    DecryptionError,
    Err,
    ErrorKind,
    HardwareUnsupportedError,
    Ok,
    SignatureError,
    StorageError,
    UnsupportedChainError,
    VaultError,
    VaultLockedError,
)

__all__ = [
    "Vault",
    "VaultState",
    "Blockchain",
    "PluginRegistry",
    "SigningDispatcher",
    "available_blockchains",
    "VaultConfig",
    "generate_salt",
    "DecryptionError",
    "Err",
    "ErrorKind",
    "HardwareUnsupportedError",
    "Ok",
    "SignatureError",
    "StorageError",
    "UnsupportedChainError",
    "VaultError",
    "VaultLockedError",
]
