"""
Vault Gateways — Interfaces of the collaborators the vault depends on.

None of these are implemented here: persistence, user consent prompts,
per-chain signing and hardware transports all live outside the vault.
"""
from typing import Any, Optional, Protocol, runtime_checkable
from collections.abc import Callable

from ..data import Encrypted, Keypair, Network


@runtime_checkable
class StorageGateway(Protocol):
    """Sole owner of persisted bytes.

    Writes must be complete when the awaited call returns. Failures are
    raised (ideally as ``StorageError``) and are not retried by the vault.
    """

    async def get_scatter(self) -> Optional[Encrypted]:
        ...

    async def set_scatter(self, blob: Encrypted) -> None:
        ...

    async def get_salt(self) -> Optional[str]:
        ...

    async def set_salt(self, salt: str) -> None:
        ...

    async def reencrypt_optionals(self, old_seed: bytes, new_seed: bytes) -> None:
        ...

    def get_seed_setter(self, getter: Callable[[], Optional[bytes]]) -> None:
        ...


@runtime_checkable
class PromptGateway(Protocol):
    async def accepted(self, title: str, message: str) -> bool:
        ...


@runtime_checkable
class BlockchainPlugin(Protocol):
    """Per-chain key formatting and signing.

    ``signer`` may be a plain function or a coroutine function.
    """

    def signer(
        self,
        payload: Any,
        public_key: str,
        arbitrary: bool,
        is_hash: bool,
        private_key: str,
    ) -> Any:
        ...

    def buffer_to_hex_private(self, buffer: bytes) -> str:
        ...


@runtime_checkable
class HardwareSigner(Protocol):
    async def sign(
        self,
        keypair: Keypair,
        network: Network,
        public_key: str,
        payload: Any,
        arbitrary: bool,
        is_hash: bool,
    ) -> Any:
        ...

    async def get_key(self, blockchain: str, index: int) -> Any:
        ...
