"""
Tests for the SigningDispatcher and the plugin registry.
"""
import asyncio

import pytest

from scatter_vault.data import Network
from scatter_vault.vault import (
    Blockchain,
    ErrorKind,
    HardwareUnsupportedError,
    PluginRegistry,
    SignatureError,
    SigningDispatcher,
    UnsupportedChainError,
    VaultLockedError,
    available_blockchains,
)

from .conftest import (
    PRIVATE_KEY,
    PUBLIC_KEY,
    BrokenPlugin,
    FakePlugin,
    SlowPlugin,
    make_scatter,
)

EOS = {"blockchain": "eos"}
HEX_KEY = PRIVATE_KEY.encode("utf-8").hex()


async def open_vault(vault):
    await vault.init()
    await vault.unlock("abc123", is_new=True)
    await vault.update_scatter(make_scatter())


class FakeHardware:
    def __init__(self):
        self.calls = []

    async def sign(self, keypair, network, public_key, payload, arbitrary, is_hash):
        self.calls.append((keypair.id, network.blockchain, public_key, payload))
        return "SIG_hardware"

    async def get_key(self, blockchain, index):
        return f"{blockchain}:{index}"


class TestPluginRegistry:

    def test_register_and_resolve(self):
        plugin = FakePlugin()
        registry = PluginRegistry({Blockchain.EOSIO: plugin})
        assert registry.get("eos") is plugin
        assert registry.resolve(Blockchain.EOSIO) is plugin
        assert "eos" in registry
        assert registry.chains() == ["eos"]

    def test_unknown_chain(self):
        registry = PluginRegistry()
        assert registry.get("dogecoin") is None
        assert "dogecoin" not in registry
        with pytest.raises(UnsupportedChainError):
            registry.resolve("dogecoin")

    def test_available_blockchains(self):
        assert available_blockchains() == {
            "EOSIO": "eos", "ETH": "eth", "TRX": "trx", "BTC": "btc",
        }


class TestSign:

    @pytest.mark.asyncio
    async def test_sign(self, vault, dispatcher, plugin):
        await open_vault(vault)
        signature = await dispatcher.sign(EOS, PUBLIC_KEY, "payload")
        assert isinstance(signature, str)
        assert signature.startswith("SIG_")
        assert plugin.converted == [PRIVATE_KEY.encode("utf-8")]
        assert plugin.signed == [HEX_KEY]

    @pytest.mark.asyncio
    async def test_sign_with_network_model(self, vault, dispatcher):
        await open_vault(vault)
        network = Network(blockchain="eos", chain_id="aca376f2", host="nodes.get-scatter.com")
        assert (await dispatcher.sign(network, PUBLIC_KEY, "payload")).startswith("SIG_")

    @pytest.mark.asyncio
    async def test_unknown_chain(self, vault, dispatcher, plugin):
        await open_vault(vault)
        result = await dispatcher.sign({"blockchain": "dogecoin"}, PUBLIC_KEY, "payload")
        assert isinstance(result, SignatureError)
        assert result.kind is ErrorKind.UNSUPPORTED_CHAIN
        assert plugin.converted == []

    @pytest.mark.asyncio
    async def test_no_keypair(self, vault, dispatcher):
        await open_vault(vault)
        result = await dispatcher.sign(EOS, "EOS_UNKNOWN", "payload")
        assert result == SignatureError.no_keypair()
        assert result.kind is ErrorKind.NO_KEYPAIR

    @pytest.mark.asyncio
    async def test_external_without_hardware(self, vault, dispatcher, plugin):
        await open_vault(vault)
        result = await dispatcher.sign(EOS, "EOS_HW_KEY", "payload")
        assert result.kind is ErrorKind.HARDWARE_UNSUPPORTED
        assert plugin.converted == []

    @pytest.mark.asyncio
    async def test_external_with_hardware(self, vault, plugin, prompt):
        hardware = FakeHardware()
        dispatcher = SigningDispatcher(
            vault, PluginRegistry({"eos": plugin}), prompt, hardware=hardware
        )
        await open_vault(vault)
        assert await dispatcher.sign(EOS, "EOS_HW_KEY", "payload") == "SIG_hardware"
        assert hardware.calls == [("ledger", "eos", "EOS_HW_KEY", "payload")]
        assert await dispatcher.get_hardware_key("eos", 0) == "eos:0"

    @pytest.mark.asyncio
    async def test_hardware_key_unsupported(self, dispatcher):
        with pytest.raises(HardwareUnsupportedError):
            await dispatcher.get_hardware_key(Blockchain.ETH, 0)

    @pytest.mark.asyncio
    async def test_plugin_fault_is_converted(self, vault, prompt):
        dispatcher = SigningDispatcher(
            vault, PluginRegistry({"eos": BrokenPlugin()}), prompt
        )
        await open_vault(vault)
        result = await dispatcher.sign(EOS, PUBLIC_KEY, "payload")
        assert result.kind is ErrorKind.SIGN_ERROR

    @pytest.mark.asyncio
    async def test_malformed_network(self, vault, dispatcher):
        await open_vault(vault)
        result = await dispatcher.sign({"chain_id": "x"}, PUBLIC_KEY, "payload")
        assert result.kind is ErrorKind.SIGN_ERROR

    @pytest.mark.asyncio
    async def test_sign_after_lock(self, vault, dispatcher, plugin):
        await open_vault(vault)
        await vault.lock()
        result = await dispatcher.sign(EOS, PUBLIC_KEY, "payload")
        assert isinstance(result, SignatureError)
        assert result.kind is ErrorKind.SIGN_ERROR
        assert plugin.converted == []

    @pytest.mark.asyncio
    async def test_lock_during_inflight_sign(self, vault, prompt):
        plugin = SlowPlugin()
        dispatcher = SigningDispatcher(vault, PluginRegistry({"eos": plugin}), prompt)
        await open_vault(vault)
        pending = asyncio.ensure_future(dispatcher.sign(EOS, PUBLIC_KEY, "payload"))
        await plugin.started.wait()
        await vault.lock()
        plugin.release.set()
        result = await pending
        assert isinstance(result, SignatureError)
        assert result.kind is ErrorKind.SIGN_ERROR

    @pytest.mark.asyncio
    async def test_async_signer(self, vault, prompt):
        plugin = SlowPlugin()
        plugin.release.set()
        dispatcher = SigningDispatcher(vault, PluginRegistry({"eos": plugin}), prompt)
        await open_vault(vault)
        assert await dispatcher.sign(EOS, PUBLIC_KEY, "payload") == "SIG_slow"


class TestGetPrivateKey:

    @pytest.mark.asyncio
    async def test_refused(self, vault, dispatcher, plugin, prompt):
        await open_vault(vault)
        prompt.answer = False
        assert await dispatcher.get_private_key("kp1", "eos") is None
        assert len(prompt.asked) == 1
        assert plugin.converted == []

    @pytest.mark.asyncio
    async def test_accepted(self, vault, dispatcher, prompt):
        await open_vault(vault)
        assert await dispatcher.get_private_key("kp1", Blockchain.EOSIO) == HEX_KEY
        title, message = prompt.asked[0]
        assert title == "Exporting a private key."

    @pytest.mark.asyncio
    async def test_missing_keypair(self, vault, dispatcher):
        await open_vault(vault)
        assert await dispatcher.get_private_key("nope", "eos") is None

    @pytest.mark.asyncio
    async def test_unknown_chain(self, vault, dispatcher, prompt):
        await open_vault(vault)
        with pytest.raises(UnsupportedChainError):
            await dispatcher.get_private_key("kp1", "dogecoin")
        # the user is never asked to export a key no plugin can format
        assert prompt.asked == []

    @pytest.mark.asyncio
    async def test_locked(self, vault, dispatcher):
        await open_vault(vault)
        await vault.lock()
        with pytest.raises(VaultLockedError):
            await dispatcher.get_private_key("kp1", "eos")
