"""
Tests for result values and the exception hierarchy.
"""
import pytest
from pydantic import BaseModel, ValidationError

from scatter_vault.vault import (
    DecryptionError,
    Err,
    ErrorKind,
    Ok,
    SignatureError,
    StorageError,
    VaultError,
    VaultLockedError,
)


class TestResults:

    def test_ok(self):
        result = Ok(value={"a": 1})
        assert isinstance(result, BaseModel)
        assert result.ok is True
        assert bool(result)
        assert result.value == {"a": 1}

    def test_err(self):
        result = Err(kind=ErrorKind.WRONG_PASSWORD, message="Wrong password")
        assert result.ok is False
        assert not result
        assert result.kind is ErrorKind.WRONG_PASSWORD

    def test_err_coerces_kind(self):
        assert Err(kind="wrong_password").kind is ErrorKind.WRONG_PASSWORD
        with pytest.raises(ValidationError):
            Err(kind="no_such_kind")

    def test_results_are_frozen(self):
        with pytest.raises(ValidationError):
            Ok(value=1).value = 2
        with pytest.raises(ValidationError):
            Err(kind=ErrorKind.WRONG_PASSWORD).kind = ErrorKind.SIGN_ERROR

    def test_ok_flag_is_fixed(self):
        with pytest.raises(ValidationError):
            Ok(value=1, ok=False)

    def test_signature_error_factories(self):
        assert SignatureError.sign_error().kind is ErrorKind.SIGN_ERROR
        assert SignatureError.unsupported_chain("doge").message.endswith("doge")


class TestExceptions:

    @pytest.mark.parametrize("exc, kind", [
        (DecryptionError, ErrorKind.DECRYPTION_ERROR),
        (VaultLockedError, ErrorKind.VAULT_LOCKED),
        (StorageError, ErrorKind.STORAGE_ERROR),
    ])
    def test_every_exception_has_a_kind(self, exc, kind):
        assert issubclass(exc, VaultError)
        assert exc("boom").kind is kind
