"""Keychain data model.

The vault document (``Scatter``) wraps a ``Keychain`` of keypairs,
identities and cards. Every secret field is a tagged value: either
``Plaintext`` or ``Encrypted``. A raw mapping only counts as encrypted
when it has exactly the ``Encrypted`` shape, so plaintext payloads that
happen to carry an ``iv`` or ``ct`` key stay plaintext.
"""
import uuid
from typing import Annotated, Any, Optional, Union
from collections.abc import Callable, Iterator, Mapping
from pydantic import (
    BaseModel,
    BeforeValidator,
    Field,
    model_serializer,
    model_validator,
)

ENCRYPTED_FIELDS = frozenset(("iv", "ct", "alg", "v"))


def _new_id() -> str:
    return uuid.uuid4().hex


class Encrypted(BaseModel):
    """Authenticated ciphertext produced by the SecretBox.

    Format (all base64): ``{"iv": nonce, "ct": ciphertext+tag, "alg", "v"}``
    """
    iv: str
    ct: str
    alg: str = "aesgcm"
    v: int = 1

    model_config = {"frozen": True}


class Plaintext(BaseModel):
    """A decrypted secret; its value never shows up in ``repr``.

    Dumps as the bare value, so a dumped document validates back unchanged.
    """
    value: Any = Field(repr=False)

    model_config = {"frozen": True}

    @model_serializer(mode="plain")
    def _dump_value(self) -> Any:
        return self.value


def is_encrypted(value: Any) -> bool:
    """Tell whether a value is in encrypted form, without any key.

    Works on ``Encrypted`` instances and on their serialized mapping form,
    which must carry exactly ``iv``, ``ct``, ``alg`` and ``v``.
    """
    if isinstance(value, Encrypted):
        return True
    if not isinstance(value, Mapping) or set(value) != ENCRYPTED_FIELDS:
        return False
    return (
        isinstance(value["iv"], str)
        and isinstance(value["ct"], str)
        and isinstance(value["alg"], str)
        and isinstance(value["v"], int)
        and not isinstance(value["v"], bool)
    )


def _coerce_secret(value: Any) -> Any:
    if value is None or isinstance(value, (Encrypted, Plaintext)):
        return value
    if is_encrypted(value):
        return Encrypted.model_validate(dict(value))
    return Plaintext(value=value)


SecretField = Annotated[
    Union[Encrypted, Plaintext],
    BeforeValidator(_coerce_secret)
]


class PublicKey(BaseModel):
    key: str
    blockchain: str


class Keypair(BaseModel):
    """A chain account's signing key.

    External keypairs live on hardware; they never store a private key.
    """
    id: str = Field(default_factory=_new_id)
    name: str = ""
    public_keys: list[PublicKey] = Field(default_factory=list)
    private_key: Optional[SecretField] = None
    external: bool = False
    blockchains: list[str] = Field(default_factory=list)

    model_config = {"validate_assignment": True}

    @model_validator(mode="after")
    def external_has_no_private_key(self) -> "Keypair":
        if self.external and self.private_key is not None:
            raise ValueError(
                f"External keypair {self.id} cannot hold a private key"
            )
        return self

    def has_public_key(self, public_key: str) -> bool:
        return any(k.key == public_key for k in self.public_keys)


class Identity(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = ""
    private_key: Optional[SecretField] = None

    model_config = {"validate_assignment": True}


class Card(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = ""
    secure: Optional[SecretField] = None

    model_config = {"validate_assignment": True}


class Keychain(BaseModel):
    """Aggregate of keypairs, identities and cards."""
    keypairs: list[Keypair] = Field(default_factory=list)
    identities: list[Identity] = Field(default_factory=list)
    cards: list[Card] = Field(default_factory=list)

    @model_validator(mode="after")
    def unique_ids(self) -> "Keychain":
        for label, items in (
            ("keypair", self.keypairs),
            ("identity", self.identities),
        ):
            seen = set()
            for item in items:
                if item.id in seen:
                    raise ValueError(f"Duplicate {label} id: {item.id}")
                seen.add(item.id)
        return self

    def get_keypair(self, keypair_id: str) -> Optional[Keypair]:
        return next((k for k in self.keypairs if k.id == keypair_id), None)

    def find_keypair(self, public_key: str) -> Optional[Keypair]:
        return next(
            (k for k in self.keypairs if k.has_public_key(public_key)), None
        )

    def secret_fields(self) -> Iterator[Any]:
        """Iterate every secret field value that is set."""
        for keypair in self.keypairs:
            if keypair.private_key is not None:
                yield keypair.private_key
        for identity in self.identities:
            if identity.private_key is not None:
                yield identity.private_key
        for card in self.cards:
            if card.secure is not None:
                yield card.secure

    def map_secrets(self, fn: Callable[[Any], Any]) -> "Keychain":
        """Return a new Keychain with ``fn`` applied to every secret field.

        The result shares no mutable state with this instance.
        """
        def _apply(value):
            return None if value is None else fn(value)

        return Keychain(
            keypairs=[
                k.model_copy(
                    update={"private_key": _apply(k.private_key)}, deep=True
                ) for k in self.keypairs
            ],
            identities=[
                i.model_copy(
                    update={"private_key": _apply(i.private_key)}, deep=True
                ) for i in self.identities
            ],
            cards=[
                c.model_copy(update={"secure": _apply(c.secure)}, deep=True)
                for c in self.cards
            ],
        )


class Scatter(BaseModel):
    """The vault document: a keychain plus opaque non-secret settings."""
    keychain: Keychain = Field(default_factory=Keychain)
    settings: dict[str, Any] = Field(default_factory=dict)

    def is_fully_encrypted(self) -> bool:
        return all(is_encrypted(v) for v in self.keychain.secret_fields())

    def is_fully_decrypted(self) -> bool:
        return not any(is_encrypted(v) for v in self.keychain.secret_fields())


class Network(BaseModel):
    """Target network of a signing request; only ``blockchain`` is required."""
    blockchain: str
    chain_id: str = ""
    name: str = ""
    protocol: str = "https"
    host: str = ""
    port: int = 0
