"""Shared fixtures: in-memory gateways and fake chain plugins."""
import asyncio
import hashlib
from typing import Any, Optional

import pytest

from scatter_vault.data import Encrypted, Keychain, Keypair, PublicKey, Scatter
from scatter_vault.vault import PluginRegistry, SigningDispatcher, StorageError, Vault


class MemoryStorage:
    """StorageGateway keeping the persisted blob in its serialized form."""

    def __init__(self):
        self.scatter: Optional[dict] = None
        self.salt: Optional[str] = None
        self.seed_getter = None
        self.reencrypted: list[tuple[bytes, bytes]] = []
        self.fail_set_salt = False
        self.fail_reencrypt = False
        self.writes = 0

    async def get_scatter(self) -> Optional[dict]:
        await asyncio.sleep(0)
        return dict(self.scatter) if self.scatter is not None else None

    async def set_scatter(self, blob: Any) -> None:
        await asyncio.sleep(0)
        if isinstance(blob, Encrypted):
            blob = blob.model_dump()
        self.scatter = dict(blob)
        self.writes += 1

    async def get_salt(self) -> Optional[str]:
        return self.salt

    async def set_salt(self, salt: str) -> None:
        if self.fail_set_salt:
            raise StorageError("disk full")
        self.salt = salt

    async def reencrypt_optionals(self, old_seed: bytes, new_seed: bytes) -> None:
        if self.fail_reencrypt:
            raise StorageError("optionals unavailable")
        self.reencrypted.append((old_seed, new_seed))

    def get_seed_setter(self, getter) -> None:
        self.seed_getter = getter


class ScriptedPrompt:
    def __init__(self, answer: bool = True):
        self.answer = answer
        self.asked: list[tuple[str, str]] = []

    async def accepted(self, title: str, message: str) -> bool:
        self.asked.append((title, message))
        return self.answer


class FakePlugin:
    """Deterministic signer recording the key material it was handed."""

    def __init__(self):
        self.converted: list[bytes] = []
        self.signed: list[str] = []

    def buffer_to_hex_private(self, buffer: bytes) -> str:
        self.converted.append(buffer)
        return buffer.hex()

    def signer(self, payload, public_key, arbitrary, is_hash, private_key):
        self.signed.append(private_key)
        digest = hashlib.sha256(f"{payload}:{private_key}".encode()).hexdigest()
        return f"SIG_{digest}"


class SlowPlugin(FakePlugin):
    """Async signer that waits until released by the test."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def signer(self, payload, public_key, arbitrary, is_hash, private_key):
        self.signed.append(private_key)
        self.started.set()
        await self.release.wait()
        return "SIG_slow"


class BrokenPlugin(FakePlugin):
    def signer(self, payload, public_key, arbitrary, is_hash, private_key):
        raise RuntimeError("curve exploded")


PRIVATE_KEY = "0xdeadbeefdeadbeefdeadbeefdeadbeefdeadbeefdeadbeefdeadbeefdeadbeef"
PUBLIC_KEY = "EOS6MRyAjQq8ud7hVNYcfnVPJqcVpscN5So8BhtHuGYqET5GDW5CV"


def make_scatter(private_key: Any = PRIVATE_KEY) -> Scatter:
    return Scatter(
        keychain=Keychain(
            keypairs=[
                Keypair(
                    id="kp1",
                    name="main",
                    public_keys=[PublicKey(key=PUBLIC_KEY, blockchain="eos")],
                    private_key=private_key,
                    blockchains=["eos"],
                ),
                Keypair(
                    id="ledger",
                    public_keys=[PublicKey(key="EOS_HW_KEY", blockchain="eos")],
                    external=True,
                ),
            ],
            identities=[{"id": "id1", "name": "RandomRobot", "private_key": "identity-secret"}],
            cards=[{"id": "c1", "name": "visa", "secure": {"number": "4111111111111111"}}],
        ),
        settings={"language": "ENGLISH"},
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def prompt():
    return ScriptedPrompt()


@pytest.fixture
def plugin():
    return FakePlugin()


@pytest.fixture
def vault(storage):
    return Vault(storage)


@pytest.fixture
def dispatcher(vault, plugin, prompt):
    return SigningDispatcher(vault, PluginRegistry({"eos": plugin}), prompt)
