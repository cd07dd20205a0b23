"""Unit tests for loginrelay.identity.registry."""

from __future__ import annotations

from dataclasses import replace

import pytest

from loginrelay.identity.base import IdentityError
from loginrelay.identity.local import Ed25519IdentityAdapter
from loginrelay.identity.registry import load_identity_adapter


class TestLoadIdentityAdapter:
    def test_builtin_local(self, settings):
        adapter = load_identity_adapter(settings.identity)
        assert isinstance(adapter, Ed25519IdentityAdapter)

    def test_external_adapter(self, settings):
        identity = replace(
            settings.identity,
            backend="ext:loginrelay.identity.local.Ed25519IdentityAdapter",
        )
        assert isinstance(load_identity_adapter(identity), Ed25519IdentityAdapter)

    def test_unknown_backend(self, settings):
        with pytest.raises(IdentityError, match="Unknown identity backend"):
            load_identity_adapter(replace(settings.identity, backend="hsm"))

    def test_unqualified_external(self, settings):
        with pytest.raises(IdentityError, match="fully qualified"):
            load_identity_adapter(replace(settings.identity, backend="ext:Adapter"))

    def test_missing_module(self, settings):
        with pytest.raises(IdentityError, match="Failed to load"):
            load_identity_adapter(
                replace(settings.identity, backend="ext:no_such_module.Adapter"),
            )

    def test_not_an_adapter(self, settings):
        with pytest.raises(IdentityError, match="not a subclass"):
            load_identity_adapter(
                replace(settings.identity, backend="ext:collections.OrderedDict"),
            )
