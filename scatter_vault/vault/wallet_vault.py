"""
Vault — Lock state machine owning the seed and the keychain snapshot.

Provides the public API of the credential vault:
- ``unlock(password, is_new, salt)`` — derive the seed and open the vault
- ``lock()`` — drop the seed and fall back to the persisted encrypted form
- ``verify_password(password)`` — compare a candidate against the live seed
- ``change_password(new_password)`` — re-key every secret under a new salt
- ``update_scatter(scatter)`` — encrypt and persist a new vault document

States::

    UNINITIALIZED --unlock(is_new)--> UNLOCKED <--unlock/lock--> LOCKED

Security Note:
    The seed is only reachable through ``_require_seed``, which checks the
    state tag first. Never log seed, plaintext or ciphertext values.
"""
import hmac
import asyncio
import logging
from enum import Enum
from typing import Any, Optional, Union
from collections.abc import Mapping

from pydantic import ValidationError

from ..data import Encrypted, Keypair, Scatter, is_encrypted
from .config import VaultConfig, generate_salt
from .crypto import decrypt, derive_seed_async, encrypt
from .errors import (
    DecryptionError,
    Err,
    ErrorKind,
    Ok,
    VaultError,
    VaultLockedError,
)
from .gateways import StorageGateway
from .key_rotation import decrypt_keychain, encrypt_keychain, rekey_keychain

logger = logging.getLogger("scatter.vault")


class VaultState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


def _as_blob(value: Any) -> Any:
    """Normalize a persisted blob coming back from storage."""
    if isinstance(value, Mapping) and is_encrypted(value):
        return Encrypted.model_validate(dict(value))
    return value


def _as_buffer(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    raise TypeError(f"Unsupported private key type: {type(value).__name__}")


class Vault:
    """Credential vault bound to a StorageGateway.

    Mutating operations (unlock, lock, change_password, update_scatter)
    are serialized by a single ``asyncio.Lock``; read accessors never
    suspend, so they always observe a consistent state.
    """

    def __init__(
        self,
        storage: StorageGateway,
        config: Optional[VaultConfig] = None,
    ):
        self._storage = storage
        self._config = config or VaultConfig()
        self._state = VaultState.UNINITIALIZED
        self._seed: Optional[bytes] = None
        self._salt: Optional[str] = None
        self._blob: Optional[Encrypted] = None  # last persisted form
        self._scatter: Union[Scatter, Encrypted, None] = None
        self._mutex = asyncio.Lock()

    async def init(self) -> None:
        """Load the persisted vault and salt; register the seed getter."""
        self._seed = None
        self._blob = _as_blob(await self._storage.get_scatter())
        self._scatter = self._blob
        self._salt = await self._storage.get_salt()
        self._storage.get_seed_setter(self._live_seed)
        self._state = (
            VaultState.LOCKED if self._blob is not None
            else VaultState.UNINITIALIZED
        )
        logger.debug("Vault initialized: state=%s", self._state.value)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> VaultState:
        return self._state

    def exists(self) -> bool:
        """True if a vault document is held, encrypted or not."""
        return self._scatter is not None

    def is_unlocked(self) -> bool:
        return (
            self._state is VaultState.UNLOCKED
            and self._seed is not None
            and isinstance(self._scatter, Scatter)
        )

    def get_scatter(self) -> Union[Scatter, Encrypted, None]:
        """Return a value copy of the held snapshot."""
        if isinstance(self._scatter, Scatter):
            return self._scatter.model_copy(deep=True)
        return self._scatter

    def _require_seed(self) -> bytes:
        if not self.is_unlocked():
            raise VaultLockedError("Vault is locked")
        return self._seed

    def _live_seed(self) -> Optional[bytes]:
        return self._seed if self.is_unlocked() else None

    def _drop_secrets(self) -> None:
        self._seed = None
        self._scatter = self._blob
        self._state = (
            VaultState.LOCKED if self._blob is not None
            else VaultState.UNINITIALIZED
        )

    async def _reload(self) -> None:
        self._blob = _as_blob(await self._storage.get_scatter())
        self._drop_secrets()

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _seal(self, encrypted: Scatter, seed: bytes) -> Encrypted:
        """Wrap a fully field-encrypted document into one blob."""
        return encrypt(
            encrypted.model_dump(mode="json"), seed, self._config.cipher_backend
        )

    def _open(self, blob: Any, seed: bytes) -> Scatter:
        """Decrypt a persisted blob into a plaintext document.

        Raises:
            DecryptionError: Wrong seed, tampering, or not a vault document.
            ValidationError: The document does not match the Keychain shape.
        """
        document = decrypt(blob, seed)
        if not isinstance(document, dict) or "keychain" not in document:
            raise DecryptionError("Decrypted value is not a vault document")
        return decrypt_keychain(Scatter.model_validate(document), seed)

    async def _store(self, scatter: Scatter, seed: bytes) -> Scatter:
        """Encrypt and persist ``scatter``; returns its plaintext form."""
        encrypted = encrypt_keychain(scatter, seed, self._config.cipher_backend)
        plain = decrypt_keychain(encrypted, seed)
        blob = self._seal(encrypted, seed)
        await self._storage.set_scatter(blob)
        self._blob = blob
        return plain

    async def _force_salt(self, salt: str) -> None:
        await self._storage.set_salt(salt)
        self._salt = salt

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def unlock(
        self,
        password: str,
        is_new: bool = False,
        salt: Optional[str] = None,
    ) -> Union[Ok, Err]:
        """Derive the seed from ``password`` and open the vault.

        Args:
            password: User password.
            is_new: Create a fresh, empty vault instead of opening one.
            salt: Explicit salt to use (vault import); persisted only
                once the vault opens with it.

        Returns:
            ``Ok(scatter)`` with a copy of the plaintext document, or
            ``Err(WRONG_PASSWORD)``; the vault is left locked on failure.

        Raises:
            VaultError: If ``is_new`` is given for an existing vault.
        """
        # runs to completion even if the caller is cancelled
        return await asyncio.shield(self._unlock(password, is_new, salt))

    async def _unlock(
        self,
        password: str,
        is_new: bool,
        salt: Optional[str],
    ) -> Union[Ok, Err]:
        async with self._mutex:
            if self.is_unlocked():
                return Ok(value=self.get_scatter())
            if is_new and self.exists():
                raise VaultError("Vault already exists; refusing to overwrite it")

            salt = salt or self._salt
            if not salt:
                if not is_new:
                    logger.warning("Unlock rejected: no vault salt persisted")
                    return Err(kind=ErrorKind.WRONG_PASSWORD, message="No vault salt")
                salt = generate_salt(self._config.salt_bytes)

            seed = await derive_seed_async(password, salt, self._config)

            if is_new:
                if salt != self._salt:
                    await self._force_salt(salt)
                scatter = await self._store(Scatter(), seed)
            else:
                try:
                    scatter = self._open(self._blob, seed)
                except (DecryptionError, ValidationError) as err:
                    seed = None
                    logger.warning("Unlock failed: %s", type(err).__name__)
                    await self._reload()
                    return Err(kind=ErrorKind.WRONG_PASSWORD, message="Wrong password")
                # an imported salt is only kept once it opened the vault
                if salt != self._salt:
                    await self._force_salt(salt)

            self._seed = seed
            self._scatter = scatter
            self._state = VaultState.UNLOCKED
            logger.info("Vault unlocked (new=%s)", is_new)
            return Ok(value=self.get_scatter())

    async def lock(self) -> bool:
        """Discard the seed and reload the persisted encrypted document."""
        async with self._mutex:
            self._drop_secrets()
            await self._reload()
        logger.info("Vault locked")
        return True

    async def reload(self) -> None:
        """Drop the seed, re-reading the persisted document if one is held."""
        async with self._mutex:
            self._drop_secrets()
            if self.exists():
                await self._reload()

    async def verify_password(self, password: str) -> bool:
        """Check ``password`` against the live seed without changing state."""
        if not self.is_unlocked():
            return False
        salt = await self._storage.get_salt()
        if not salt:
            return False
        candidate = await derive_seed_async(password, salt, self._config)
        seed = self._live_seed()
        return seed is not None and hmac.compare_digest(candidate, seed)

    async def change_password(self, new_password: str) -> bool:
        """Re-key every secret under a new salt and password.

        The new blob is written first and the new salt second; if either
        write fails the previous blob is restored and the error re-raised,
        so the vault stays readable under the old password.

        Raises:
            VaultLockedError: If the vault is locked.
        """
        return await asyncio.shield(self._change_password(new_password))

    async def _change_password(self, new_password: str) -> bool:
        async with self._mutex:
            old_seed = self._require_seed()
            backend = self._config.cipher_backend
            new_salt = generate_salt(self._config.salt_bytes)
            new_seed = await derive_seed_async(
                new_password, new_salt, self._config
            )
            rekeyed = rekey_keychain(self._scatter, old_seed, new_seed, backend)
            blob = self._seal(rekeyed, new_seed)

            previous = await self._storage.get_scatter()
            try:
                await self._storage.set_scatter(blob)
                await self._storage.set_salt(new_salt)
            except Exception:
                logger.error("Password change failed; restoring previous vault")
                if previous is not None:
                    await self._storage.set_scatter(previous)
                raise

            self._blob = blob
            self._salt = new_salt
            self._seed = new_seed
            self._scatter = decrypt_keychain(rekeyed, new_seed)

            await self._storage.reencrypt_optionals(old_seed, new_seed)
            logger.info("Vault password changed")
            return True

    async def update_scatter(self, scatter: Any) -> Optional[Scatter]:
        """Encrypt and persist a new vault document.

        Plaintext fields are encrypted with the live seed; fields already
        encrypted are kept untouched. Rejected (returns None) while locked.

        Returns:
            A copy of the new plaintext document.
        """
        async with self._mutex:
            if not self.is_unlocked():
                logger.warning("update_scatter rejected: vault is locked")
                return None
            seed = self._require_seed()
            if isinstance(scatter, Scatter):
                # revalidate fields that were mutated in place
                scatter = scatter.model_copy(deep=True).model_dump()
            scatter = Scatter.model_validate(scatter)
            self._scatter = await self._store(scatter, seed)
            logger.debug(
                "Vault document updated: %d keypair(s)",
                len(self._scatter.keychain.keypairs),
            )
            return self.get_scatter()

    # ------------------------------------------------------------------
    # Gated accessors
    # ------------------------------------------------------------------

    def encrypt(self, value: Any) -> Encrypted:
        """Encrypt an auxiliary value under the live seed."""
        return encrypt(value, self._require_seed(), self._config.cipher_backend)

    def decrypt(self, value: Any) -> Any:
        """Decrypt an auxiliary value with the live seed."""
        return decrypt(value, self._require_seed())

    def find_keypair(self, public_key: str) -> Optional[Keypair]:
        """Locate the keypair owning ``public_key``, stripped of its secret."""
        self._require_seed()
        keypair = self._scatter.keychain.find_keypair(public_key)
        if keypair is None:
            return None
        return keypair.model_copy(update={"private_key": None}, deep=True)

    def private_key_for_signing(self, keypair_id: str) -> Optional[bytes]:
        """Return the decrypted private key bytes of a keypair.

        The result is not cached anywhere; callers must not retain it.
        """
        seed = self._require_seed()
        keypair = self._scatter.keychain.get_keypair(keypair_id)
        if keypair is None or keypair.private_key is None:
            return None
        field = keypair.private_key
        if isinstance(field, Encrypted):
            return _as_buffer(decrypt(field, seed))
        return _as_buffer(field.value)
