"""Built-in Ed25519 identity adapter.

Self-certifying identities: an identity address is the base58check
encoding (version 102) of the BLAKE2b-160 digest of an Ed25519 public
key.  Every signature carries its public key, so verification needs no
chain lookup: the key must hash to the claimed identity, the signature
must cover the message's canonical JSON and the message must be bound
to the configured chain.

The module also exposes the wallet side of the exchange
(:func:`sign_login_response`) for the ``selftest`` command and tests.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import secrets
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from loginrelay.core.ids import I_ADDRESS_VERSION, to_base58check
from loginrelay.identity.base import IdentityAdapter, IdentityError
from loginrelay.identity.models import (
    LoginConsentDecision,
    LoginConsentRequest,
    LoginConsentResponse,
    SignatureData,
    canonical_json,
)

if TYPE_CHECKING:
    from loginrelay.config.settings import IdentitySettings
    from loginrelay.identity.models import LoginConsentChallenge

log = logging.getLogger(__name__)

_SEED_LENGTH = 32
_PUBLIC_KEY_LENGTH = 32
_ADDRESS_DIGEST_SIZE = 20


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


def generate_private_key() -> str:
    """Return a fresh private key as a 64-character hex seed."""
    return secrets.token_bytes(_SEED_LENGTH).hex()


def _load_private_key(private_key_hex: str) -> Ed25519PrivateKey:
    try:
        seed = bytes.fromhex(private_key_hex.strip())
    except ValueError as exc:
        msg = "Private key is not valid hex"
        raise IdentityError(msg) from exc
    if len(seed) != _SEED_LENGTH:
        msg = f"Private key must be {_SEED_LENGTH} bytes (got {len(seed)})"
        raise IdentityError(msg)
    return Ed25519PrivateKey.from_private_bytes(seed)


def _raw_public_bytes(key: Ed25519PrivateKey) -> bytes:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def address_from_public_key(public_key: bytes) -> str:
    """Derive the identity address for a raw Ed25519 public key."""
    digest = hashlib.blake2b(public_key, digest_size=_ADDRESS_DIGEST_SIZE).digest()
    return to_base58check(digest, I_ADDRESS_VERSION)


def identity_from_private_key(private_key_hex: str) -> str:
    """Return the identity address controlled by *private_key_hex*."""
    return address_from_public_key(_raw_public_bytes(_load_private_key(private_key_hex)))


def sign_document(
    private_key_hex: str,
    payload: dict[str, Any],
    *,
    system_id: str,
) -> SignatureData:
    """Sign the canonical JSON form of *payload*."""
    key = _load_private_key(private_key_hex)
    public = _raw_public_bytes(key)
    signature = key.sign(canonical_json(payload))
    return SignatureData(
        system_id=system_id,
        identity_id=address_from_public_key(public),
        signature=base64.b64encode(signature).decode("ascii"),
        public_key=base64.b64encode(public).decode("ascii"),
    )


def verify_document(
    payload: dict[str, Any],
    signature: SignatureData | None,
    *,
    identity_id: str,
    system_id: str,
) -> bool:
    """Return whether *signature* is *identity_id*'s signature over *payload*."""
    if signature is None or signature.public_key is None:
        return False
    if signature.identity_id != identity_id or signature.system_id != system_id:
        return False
    try:
        public = base64.b64decode(signature.public_key, validate=True)
        raw_sig = base64.b64decode(signature.signature, validate=True)
    except (binascii.Error, ValueError):
        return False
    if len(public) != _PUBLIC_KEY_LENGTH:
        return False
    if address_from_public_key(public) != identity_id:
        return False
    try:
        Ed25519PublicKey.from_public_bytes(public).verify(raw_sig, canonical_json(payload))
    except InvalidSignature:
        return False
    return True


def sign_login_response(
    request: LoginConsentRequest,
    private_key_hex: str,
    *,
    system_id: str,
    decision_id: str | None = None,
    created_at: int | None = None,
) -> LoginConsentResponse:
    """Answer *request* as a wallet holding *private_key_hex* would."""
    signing_id = identity_from_private_key(private_key_hex)
    decision = LoginConsentDecision(
        decision_id=decision_id or secrets.token_hex(20),
        request=request,
        created_at=created_at if created_at is not None else int(time.time()),
    )
    unsigned = LoginConsentResponse(
        system_id=system_id,
        signing_id=signing_id,
        decision=decision,
    )
    signature = sign_document(private_key_hex, unsigned.signable_dict(), system_id=system_id)
    return replace(unsigned, signature=signature)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class Ed25519IdentityAdapter(IdentityAdapter):
    """Sign and verify with self-certifying Ed25519 identities."""

    def __init__(self, settings: IdentitySettings) -> None:
        super().__init__(settings)
        self._private_key_hex = settings.private_key or ""
        self._address: str | None = None
        if self._private_key_hex:
            self._address = identity_from_private_key(self._private_key_hex)

    def create_login_request(self, challenge: LoginConsentChallenge) -> LoginConsentRequest:
        if not self._private_key_hex:
            msg = "No private key configured"
            raise IdentityError(msg)
        unsigned = LoginConsentRequest(
            system_id=self.system_id,
            signing_id=self.signing_id,
            challenge=challenge,
        )
        signature = sign_document(
            self._private_key_hex,
            unsigned.signable_dict(),
            system_id=self.system_id,
        )
        return replace(unsigned, signature=signature)

    def verify_login_request(self, request: LoginConsentRequest) -> bool:
        if request.system_id != self.system_id:
            log.debug("Request bound to foreign system %s", request.system_id)
            return False
        return verify_document(
            request.signable_dict(),
            request.signature,
            identity_id=request.signing_id,
            system_id=self.system_id,
        )

    def verify_login_response(self, response: LoginConsentResponse) -> bool:
        if response.system_id != self.system_id:
            log.debug("Response bound to foreign system %s", response.system_id)
            return False
        return verify_document(
            response.signable_dict(),
            response.signature,
            identity_id=response.signing_id,
            system_id=self.system_id,
        )

    def startup_check(self) -> None:
        if not self._private_key_hex:
            msg = "identity.private_key is not configured"
            raise IdentityError(msg)
        if self._address != self.signing_id:
            msg = (
                f"identity.signing_id {self.signing_id!r} does not match the "
                f"configured private key (derived {self._address!r})"
            )
            raise IdentityError(msg)
