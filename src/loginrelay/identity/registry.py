"""Identity adapter registry.

Loads the configured identity adapter by name.  Supports the built-in
``local`` adapter and custom adapters via the ``ext:`` prefix, e.g. a
wrapper around a chain-specific client library.

Usage::

    from loginrelay.identity.registry import load_identity_adapter

    adapter = load_identity_adapter(settings.identity)
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from loginrelay.identity.base import IdentityAdapter, IdentityError

if TYPE_CHECKING:
    from loginrelay.config.settings import IdentitySettings

log = logging.getLogger(__name__)

# Maps config string → (module_path, class_name)
_BUILTIN_ADAPTERS: dict[str, tuple[str, str]] = {
    "local": ("loginrelay.identity.local", "Ed25519IdentityAdapter"),
}

_REQUIRED_METHODS = (
    "create_login_request",
    "verify_login_request",
    "verify_login_response",
)


def load_identity_adapter(settings: IdentitySettings) -> IdentityAdapter:
    """Load and return the configured identity adapter.

    Raises
    ------
    IdentityError
        If the adapter cannot be loaded.

    """
    name = settings.backend

    if name in _BUILTIN_ADAPTERS:
        mod_path, cls_name = _BUILTIN_ADAPTERS[name]
        cls = _import_class(mod_path, cls_name, name)
    elif name.startswith("ext:"):
        mod_path, _, cls_name = name[4:].rpartition(".")
        if not mod_path:
            msg = (
                f"Invalid external identity adapter '{name[4:]}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise IdentityError(msg)
        cls = _import_class(mod_path, cls_name, name)
    else:
        msg = (
            f"Unknown identity backend '{name}'; "
            f"built-in options: {sorted(_BUILTIN_ADAPTERS)}. "
            f"Use 'ext:mypackage.module.ClassName' for custom adapters."
        )
        raise IdentityError(msg)

    _validate_class(cls, name)
    adapter = cls(settings)
    log.info("Loaded identity adapter: %s", name)
    return adapter


def _import_class(mod_path: str, cls_name: str, label: str) -> type:
    try:
        module = importlib.import_module(mod_path)
        return getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load identity adapter '{label}': {exc}"
        raise IdentityError(msg) from exc


def _validate_class(cls: type, label: str) -> None:
    """Verify that an adapter class has the required methods."""
    if not (isinstance(cls, type) and issubclass(cls, IdentityAdapter)):
        msg = f"Identity adapter '{label}' is not a subclass of IdentityAdapter"
        raise IdentityError(msg)

    for method_name in _REQUIRED_METHODS:
        method = getattr(cls, method_name, None)
        if method is None or getattr(method, "__isabstractmethod__", False):
            msg = f"Identity adapter '{label}' does not implement '{method_name}()'"
            raise IdentityError(msg)
