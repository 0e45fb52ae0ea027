"""
Vault Crypto Core — Password-to-seed derivation, SecretBox, serialization.

- KeyDerivation: scrypt(password, salt) → BIP-39 entropy → mnemonic →
  64-byte seed (PBKDF2 mnemonic-to-seed).
- SecretBox: HKDF(seed, "scatter-vault") → AEAD (AES-GCM / ChaCha20-Poly1305)
  with a fresh random 96-bit nonce per call.

Security Note:
    Never log plaintext, ciphertext or seed values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import base64
import asyncio
import binascii
import logging
import os
from typing import Any, Optional

import orjson
from mnemonic import Mnemonic
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305
from pydantic import ValidationError

from ..data import Encrypted, is_encrypted
from .config import DEFAULT_CONFIG, VaultConfig
from .errors import DecryptionError

logger = logging.getLogger("scatter.vault")

NONCE_SIZE = 12  # 96-bit nonce
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16
FORMAT_VERSION = 1
SECRETBOX_CONTEXT = "scatter-vault"

_CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}

_BYTES_WRAPPER_KEY = "__vault_bytes_b64__"

__all__ = (
    "derive_seed",
    "derive_seed_async",
    "encrypt",
    "decrypt",
    "is_encrypted",
    "serialize_value",
    "deserialize_value",
)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_seed(
    password: str,
    salt: str,
    config: Optional[VaultConfig] = None,
) -> bytes:
    """Derive the vault seed from a password and the persisted salt.

    Args:
        password: User password.
        salt: Persisted, non-secret vault salt.
        config: KDF parameters (defaults to the fixed vault parameters).

    Returns:
        64-byte seed.

    Raises:
        ValueError: If salt is empty or not a string.
    """
    if not isinstance(salt, str) or not salt:
        raise ValueError("Vault salt must be a non-empty string")
    config = config or DEFAULT_CONFIG
    kdf = Scrypt(
        salt=salt.encode("utf-8"),
        length=config.scrypt_dklen,
        n=config.scrypt_n,
        r=config.scrypt_r,
        p=config.scrypt_p,
    )
    entropy = kdf.derive(password.encode("utf-8"))
    mnemo = Mnemonic(config.mnemonic_language)
    words = mnemo.to_mnemonic(entropy)
    return Mnemonic.to_seed(words, passphrase="")


async def derive_seed_async(
    password: str,
    salt: str,
    config: Optional[VaultConfig] = None,
) -> bytes:
    """Run ``derive_seed`` in a worker thread so the loop keeps serving."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, derive_seed, password, salt, config)


def _secretbox_key(seed: bytes) -> bytes:
    """Derive the 32-byte AEAD key from the seed using HKDF-SHA256."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=SECRETBOX_CONTEXT.encode("utf-8"),
    )
    return hkdf.derive(seed)


# ---------------------------------------------------------------------------
# SecretBox
# ---------------------------------------------------------------------------

def encrypt(value: Any, seed: bytes, backend: str = "aesgcm") -> Encrypted:
    """Encrypt an arbitrary serializable value under the seed.

    Args:
        value: str, int, float, dict, list, bytes, bool or None.
        seed: Vault seed.
        backend: AEAD cipher name (``aesgcm`` or ``chacha20``).

    Returns:
        Encrypted value carrying its own nonce.
    """
    if not seed:
        raise ValueError("Cannot encrypt without a seed")
    cipher = _CIPHERS[backend](_secretbox_key(seed))
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, serialize_value(value), None)
    return Encrypted(
        iv=base64.b64encode(nonce).decode("ascii"),
        ct=base64.b64encode(ct).decode("ascii"),
        alg=backend,
        v=FORMAT_VERSION,
    )


def decrypt(encrypted: Any, seed: bytes) -> Any:
    """Authenticate and decrypt a value produced by ``encrypt``.

    Args:
        encrypted: ``Encrypted`` instance or its mapping form.
        seed: Vault seed.

    Returns:
        The original Python value.

    Raises:
        DecryptionError: Wrong seed, tampered or malformed ciphertext.
    """
    if not is_encrypted(encrypted):
        raise DecryptionError("Value is not in encrypted form")
    try:
        if not isinstance(encrypted, Encrypted):
            encrypted = Encrypted.model_validate(dict(encrypted))
        nonce = base64.b64decode(encrypted.iv, validate=True)
        ct = base64.b64decode(encrypted.ct, validate=True)
    except (ValidationError, binascii.Error, ValueError) as err:
        raise DecryptionError("Malformed encrypted value") from err
    if encrypted.v != FORMAT_VERSION:
        raise DecryptionError(f"Unsupported format version: {encrypted.v}")
    cipher_cls = _CIPHERS.get(encrypted.alg)
    if cipher_cls is None:
        raise DecryptionError(f"Unsupported cipher: {encrypted.alg}")
    if len(nonce) != NONCE_SIZE or len(ct) < TAG_SIZE:
        raise DecryptionError("Malformed encrypted value")
    if not seed:
        raise DecryptionError("Cannot decrypt without a seed")
    cipher = cipher_cls(_secretbox_key(seed))
    try:
        plaintext = cipher.decrypt(nonce, ct, None)
    except InvalidTag as err:
        raise DecryptionError("Authentication failed") from err
    try:
        return deserialize_value(plaintext)
    except orjson.JSONDecodeError as err:
        raise DecryptionError("Decrypted payload is not valid") from err


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def _wrap_bytes(obj: Any) -> dict:
    """orjson ``default`` hook; called for every value orjson cannot encode."""
    if isinstance(obj, (bytes, bytearray)):
        return {_BYTES_WRAPPER_KEY: base64.b64encode(obj).decode("ascii")}
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def _unwrap_bytes(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and _BYTES_WRAPPER_KEY in value:
            return base64.b64decode(value[_BYTES_WRAPPER_KEY])
        return {k: _unwrap_bytes(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_unwrap_bytes(v) for v in value]
    return value


def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to bytes for encryption.

    bytes values, at any nesting depth, are wrapped as
    {"__vault_bytes_b64__": "<base64>"} for a safe JSON round-trip.
    """
    return orjson.dumps(value, default=_wrap_bytes)


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes produced by ``serialize_value``."""
    return _unwrap_bytes(orjson.loads(data))
