"""
Vault Configuration — KDF work factors, cipher backend and salt generation.

Optional environment overrides:
    VAULT_CIPHER_BACKEND = aesgcm | chacha20
    VAULT_MNEMONIC_LANGUAGE = <BIP-39 wordlist name, e.g. english>

Security Note:
    Never log seed material. Only log parameter values and backend names.
"""
import os
import secrets
import logging

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("scatter.vault")

# BIP-39 accepts 128..256 bits of entropy in 32-bit steps.
_ENTROPY_LENGTHS = (16, 20, 24, 28, 32)


def generate_salt(nbytes: int = 32) -> str:
    """Generate a random, non-secret vault salt.

    Args:
        nbytes: Amount of randomness in bytes.

    Returns:
        Hex-encoded salt string.
    """
    return secrets.token_hex(nbytes)


class VaultConfig(BaseModel):
    """Validated vault configuration.

    The scrypt parameters are the ones every existing vault was created
    with; changing them makes previously persisted vaults unreadable.
    """

    scrypt_n: int = Field(default=16384)
    scrypt_r: int = Field(default=8, ge=1)
    scrypt_p: int = Field(default=1, ge=1)
    scrypt_dklen: int = Field(default=16)
    mnemonic_language: str = Field(default="english")
    cipher_backend: str = Field(default="aesgcm")
    salt_bytes: int = Field(default=32, ge=16, le=128)

    model_config = {"frozen": True}

    @field_validator("scrypt_n")
    @classmethod
    def validate_work_cost(cls, v: int) -> int:
        """scrypt requires N to be a power of two greater than one."""
        if v < 2 or v & (v - 1):
            raise ValueError(f"scrypt_n must be a power of two > 1, got {v}")
        return v

    @field_validator("scrypt_dklen")
    @classmethod
    def validate_dklen(cls, v: int) -> int:
        """The derived key is used as BIP-39 entropy."""
        if v not in _ENTROPY_LENGTHS:
            raise ValueError(
                f"scrypt_dklen must be one of {_ENTROPY_LENGTHS}, got {v}"
            )
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in ("aesgcm", "chacha20"):
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig from environment overrides.

        Returns:
            Populated VaultConfig instance.
        """
        config = cls(
            cipher_backend=os.environ.get("VAULT_CIPHER_BACKEND", "aesgcm"),
            mnemonic_language=os.environ.get(
                "VAULT_MNEMONIC_LANGUAGE", "english"
            ),
        )
        logger.debug(
            "Vault config loaded: cipher=%s language=%s",
            config.cipher_backend, config.mnemonic_language,
        )
        return config


DEFAULT_CONFIG = VaultConfig()
