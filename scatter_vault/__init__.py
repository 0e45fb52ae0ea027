"""Scatter Vault.

Local credential vault for a multi-chain wallet.
"""
from .version import __version__
from .data import (
    Card,
    Encrypted,
    Identity,
    Keychain,
    Keypair,
    Network,
    Plaintext,
    PublicKey,
    Scatter,
)
from .vault import Vault, SigningDispatcher, PluginRegistry
