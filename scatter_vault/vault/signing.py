"""
Signing Dispatcher — Routes signing requests to blockchain plugins.

Decrypted key material handed to a plugin lives only for the duration of
the call that produced it. Every failure inside ``sign`` comes back as a
``SignatureError`` value; nothing is raised past the dispatch boundary.
"""
import inspect
import logging
from enum import Enum
from typing import Any, Optional, Union
from collections.abc import Mapping

from ..data import Network
from .errors import (
    HardwareUnsupportedError,
    SignatureError,
    UnsupportedChainError,
    VaultLockedError,
)
from .gateways import BlockchainPlugin, HardwareSigner, PromptGateway
from .wallet_vault import Vault

logger = logging.getLogger("scatter.vault")

EXPORT_TITLE = "Exporting a private key."
EXPORT_MESSAGE = (
    "Something has requested a private key. "
    "Are you currently exporting the private key from Scatter?"
)


class Blockchain(str, Enum):
    """Chain identifiers with a plugin shipped by the wallet."""

    EOSIO = "eos"
    ETH = "eth"
    TRX = "trx"
    BTC = "btc"


def available_blockchains() -> dict[str, str]:
    return {chain.name: chain.value for chain in Blockchain}


def _chain_id(blockchain: Union[str, Blockchain]) -> str:
    if isinstance(blockchain, Blockchain):
        return blockchain.value
    return str(blockchain)


class PluginRegistry:
    """Explicit mapping of chain identifier to BlockchainPlugin.

    Populated once at startup; other chains may be registered with
    their plain string identifier.
    """

    def __init__(self, plugins: Optional[Mapping[Any, BlockchainPlugin]] = None):
        self._plugins: dict[str, BlockchainPlugin] = {}
        for chain, plugin in (plugins or {}).items():
            self.register(chain, plugin)

    def register(
        self,
        blockchain: Union[str, Blockchain],
        plugin: BlockchainPlugin,
    ) -> None:
        self._plugins[_chain_id(blockchain)] = plugin
        logger.debug("Registered plugin for chain=%s", _chain_id(blockchain))

    def get(self, blockchain: Union[str, Blockchain]) -> Optional[BlockchainPlugin]:
        return self._plugins.get(_chain_id(blockchain))

    def resolve(self, blockchain: Union[str, Blockchain]) -> BlockchainPlugin:
        """Return the plugin for ``blockchain``.

        Raises:
            UnsupportedChainError: If no plugin is registered for it.
        """
        plugin = self.get(blockchain)
        if plugin is None:
            raise UnsupportedChainError(f"Unsupported blockchain: {blockchain}")
        return plugin

    def chains(self) -> list[str]:
        return sorted(self._plugins)

    def __contains__(self, blockchain: object) -> bool:
        return _chain_id(blockchain) in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)


class SigningDispatcher:
    """Hands ephemeral key material from the Vault to chain signers."""

    def __init__(
        self,
        vault: Vault,
        plugins: PluginRegistry,
        prompt: PromptGateway,
        hardware: Optional[HardwareSigner] = None,
    ):
        self._vault = vault
        self._plugins = plugins
        self._prompt = prompt
        self._hardware = hardware
        self.hardware_types: list[str] = []

    async def sign(
        self,
        network: Union[Network, Mapping[str, Any]],
        public_key: str,
        payload: Any,
        arbitrary: bool = False,
        is_hash: bool = False,
    ) -> Any:
        """Sign ``payload`` with the keypair owning ``public_key``.

        Returns:
            The plugin's signature, or a ``SignatureError`` value.
        """
        try:
            if not isinstance(network, Network):
                network = Network.model_validate(network)

            plugin = self._plugins.get(network.blockchain)
            if plugin is None:
                logger.warning(
                    "Sign rejected: unsupported chain=%s", network.blockchain
                )
                return SignatureError.unsupported_chain(network.blockchain)

            keypair = self._vault.find_keypair(public_key)
            if keypair is None:
                return SignatureError.no_keypair()

            if keypair.external:
                return await self._sign_with_hardware(
                    keypair, network, public_key, payload, arbitrary, is_hash
                )

            private_key = self._private_key(plugin, keypair.id)
            if private_key is None:
                return SignatureError.no_keypair()
            signature = plugin.signer(
                payload, public_key, arbitrary, is_hash, private_key
            )
            del private_key
            if inspect.isawaitable(signature):
                signature = await signature

            if not self._vault.is_unlocked():
                # locked while the signer was suspended
                raise VaultLockedError("Vault locked during signing")
            return signature
        except Exception as err:
            logger.error(
                "Signing error on key=%s: %s", public_key, type(err).__name__
            )
            return SignatureError.sign_error()

    def _private_key(self, plugin: BlockchainPlugin, keypair_id: str) -> Optional[str]:
        buffer = self._vault.private_key_for_signing(keypair_id)
        if buffer is None:
            return None
        return plugin.buffer_to_hex_private(buffer)

    async def get_private_key(
        self,
        keypair_id: str,
        blockchain: Union[str, Blockchain],
    ) -> Optional[str]:
        """Export a private key in the chain's hex format after user consent.

        Returns:
            Hex private key, or None if the user refused or the keypair
            does not exist.

        Raises:
            UnsupportedChainError: No plugin for ``blockchain``; raised
                before the user is asked.
            VaultLockedError: The vault is locked once consent is given.
        """
        plugin = self._plugins.resolve(blockchain)
        if not await self._prompt.accepted(EXPORT_TITLE, EXPORT_MESSAGE):
            logger.info("Private key export refused for keypair=%s", keypair_id)
            return None
        return self._private_key(plugin, keypair_id)

    async def _sign_with_hardware(
        self,
        keypair,
        network: Network,
        public_key: str,
        payload: Any,
        arbitrary: bool,
        is_hash: bool,
    ) -> Any:
        if self._hardware is None:
            logger.warning(
                "Hardware signing unsupported for keypair=%s", keypair.id
            )
            return SignatureError.hardware_unsupported()
        return await self._hardware.sign(
            keypair, network, public_key, payload, arbitrary, is_hash
        )

    async def get_hardware_key(self, blockchain: Union[str, Blockchain], index: int) -> Any:
        """Fetch a public key from the hardware signer.

        Raises:
            HardwareUnsupportedError: No hardware signer is configured.
        """
        if self._hardware is None:
            raise HardwareUnsupportedError("Hardware keys are not supported")
        return await self._hardware.get_key(_chain_id(blockchain), index)
