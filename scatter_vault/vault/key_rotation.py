"""
Vault Key Rotation — Field-level encryption transforms over a Scatter.

Each transform returns a new Scatter and never mutates its input. The
encrypt transform is idempotent: fields already in encrypted form are
kept as they are, so re-applying it is a fixed point.

Security Note:
    Plaintext exists in memory only while a field is being transformed.
    Never log plaintext or ciphertext values.
"""
import logging
from typing import Any

from ..data import Encrypted, Plaintext, Scatter
from .crypto import decrypt, encrypt

logger = logging.getLogger("scatter.vault")


def _with_keychain(scatter: Scatter, keychain) -> Scatter:
    return Scatter(
        keychain=keychain,
        settings=scatter.model_copy(deep=True).settings,
    )


def encrypt_keychain(
    scatter: Scatter,
    seed: bytes,
    backend: str = "aesgcm",
) -> Scatter:
    """Encrypt every plaintext secret field under ``seed``."""
    def _encrypt(field: Any) -> Encrypted:
        if isinstance(field, Encrypted):
            return field
        return encrypt(field.value, seed, backend)

    return _with_keychain(scatter, scatter.keychain.map_secrets(_encrypt))


def decrypt_keychain(scatter: Scatter, seed: bytes) -> Scatter:
    """Decrypt every encrypted secret field with ``seed``.

    Raises:
        DecryptionError: If any field does not authenticate under ``seed``.
    """
    def _decrypt(field: Any) -> Plaintext:
        if isinstance(field, Plaintext):
            return field
        return Plaintext(value=decrypt(field, seed))

    return _with_keychain(scatter, scatter.keychain.map_secrets(_decrypt))


def rekey_keychain(
    scatter: Scatter,
    old_seed: bytes,
    new_seed: bytes,
    backend: str = "aesgcm",
) -> Scatter:
    """Move every secret field from ``old_seed`` to ``new_seed``.

    Plaintext values are unchanged; only the encryption key moves. The
    result is fully encrypted under ``new_seed``.

    Raises:
        DecryptionError: If an encrypted field does not belong to ``old_seed``.
    """
    def _rekey(field: Any) -> Encrypted:
        if isinstance(field, Encrypted):
            field = Plaintext(value=decrypt(field, old_seed))
        return encrypt(field.value, new_seed, backend)

    rekeyed = _with_keychain(scatter, scatter.keychain.map_secrets(_rekey))
    logger.debug(
        "Re-keyed %d secret field(s)",
        sum(1 for _ in rekeyed.keychain.secret_fields()),
    )
    return rekeyed
