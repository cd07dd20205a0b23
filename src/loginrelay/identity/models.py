"""Login-consent protocol messages.

Frozen dataclasses mirroring the wallet's JSON wire format (snake_case
field names).  ``from_dict`` is strict: a missing or mistyped field
raises :class:`ValueError`, which the adapter surfaces as a malformed
payload.

A request travels to the wallet as a deeplink::

    <scheme>://1/login-consent-request/<base64url(JSON)>
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any

DEEPLINK_PATH = "login-consent-request"
DEEPLINK_VERSION = "1"

# Well-known permission and redirect-type keys
IDENTITY_VIEW = "identity.view"
LOGIN_CONSENT_WEBHOOK = "login.consent.webhook"
LOGIN_CONSENT_REDIRECT = "login.consent.redirect"


def canonical_json(obj: Any) -> bytes:  # noqa: ANN401
    """Serialise *obj* with sorted keys and no whitespace, as UTF-8."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def _require(data: Any, key: str, kind: type | tuple[type, ...]) -> Any:  # noqa: ANN401
    if not isinstance(data, dict):
        msg = f"Expected an object while reading '{key}'"
        raise ValueError(msg)
    if key not in data:
        msg = f"Missing field '{key}'"
        raise ValueError(msg)
    value = data[key]
    if not isinstance(value, kind) or (isinstance(value, bool) and kind is int):
        msg = f"Field '{key}' has unexpected type {type(value).__name__}"
        raise ValueError(msg)
    return value


def _optional(data: Any, key: str, kind: type | tuple[type, ...]) -> Any:  # noqa: ANN401
    if isinstance(data, dict) and data.get(key) is None:
        return None
    return _require(data, key, kind)


# ---------------------------------------------------------------------------
# Challenge building blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RequestedPermission:
    vdxfkey: str

    def to_dict(self) -> dict[str, Any]:
        return {"vdxfkey": self.vdxfkey}

    @classmethod
    def from_dict(cls, data: Any) -> RequestedPermission:  # noqa: ANN401
        return cls(vdxfkey=_require(data, "vdxfkey", str))


@dataclass(frozen=True)
class RedirectUri:
    uri: str
    vdxfkey: str

    def to_dict(self) -> dict[str, Any]:
        return {"uri": self.uri, "vdxfkey": self.vdxfkey}

    @classmethod
    def from_dict(cls, data: Any) -> RedirectUri:  # noqa: ANN401
        return cls(
            uri=_require(data, "uri", str),
            vdxfkey=_require(data, "vdxfkey", str),
        )


@dataclass(frozen=True)
class LoginConsentChallenge:
    """What the relay asks the identity to prove."""

    challenge_id: str
    created_at: int
    requested_access: tuple[RequestedPermission, ...] = ()
    redirect_uris: tuple[RedirectUri, ...] = ()
    subject: tuple[dict, ...] = ()
    provisioning_info: tuple[dict, ...] = ()
    salt: str | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "challenge_id": self.challenge_id,
            "created_at": self.created_at,
            "requested_access": [p.to_dict() for p in self.requested_access],
            "redirect_uris": [r.to_dict() for r in self.redirect_uris],
            "subject": list(self.subject),
            "provisioning_info": list(self.provisioning_info),
        }
        if self.salt is not None:
            body["salt"] = self.salt
        return body

    @classmethod
    def from_dict(cls, data: Any) -> LoginConsentChallenge:  # noqa: ANN401
        return cls(
            challenge_id=_require(data, "challenge_id", str),
            created_at=_require(data, "created_at", int),
            requested_access=tuple(
                RequestedPermission.from_dict(p) for p in data.get("requested_access") or []
            ),
            redirect_uris=tuple(RedirectUri.from_dict(r) for r in data.get("redirect_uris") or []),
            subject=tuple(data.get("subject") or []),
            provisioning_info=tuple(data.get("provisioning_info") or []),
            salt=_optional(data, "salt", str),
        )


@dataclass(frozen=True)
class SignatureData:
    """Detached signature over a message's canonical JSON form.

    ``signature`` and ``public_key`` are standard base64.
    """

    system_id: str
    identity_id: str
    signature: str
    public_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "system_id": self.system_id,
            "identity_id": self.identity_id,
            "signature": self.signature,
        }
        if self.public_key is not None:
            body["public_key"] = self.public_key
        return body

    @classmethod
    def from_dict(cls, data: Any) -> SignatureData:  # noqa: ANN401
        return cls(
            system_id=_require(data, "system_id", str),
            identity_id=_require(data, "identity_id", str),
            signature=_require(data, "signature", str),
            public_key=_optional(data, "public_key", str),
        )


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoginConsentRequest:
    system_id: str
    signing_id: str
    challenge: LoginConsentChallenge
    signature: SignatureData | None = None

    def signable_dict(self) -> dict[str, Any]:
        """The fields covered by the request signature."""
        return {
            "system_id": self.system_id,
            "signing_id": self.signing_id,
            "challenge": self.challenge.to_dict(),
        }

    def to_dict(self) -> dict[str, Any]:
        body = self.signable_dict()
        if self.signature is not None:
            body["signature"] = self.signature.to_dict()
        return body

    @classmethod
    def from_dict(cls, data: Any) -> LoginConsentRequest:  # noqa: ANN401
        sig = _optional(data, "signature", dict)
        return cls(
            system_id=_require(data, "system_id", str),
            signing_id=_require(data, "signing_id", str),
            challenge=LoginConsentChallenge.from_dict(_require(data, "challenge", dict)),
            signature=SignatureData.from_dict(sig) if sig is not None else None,
        )

    def to_deeplink(self, scheme: str) -> str:
        encoded = base64.urlsafe_b64encode(canonical_json(self.to_dict())).rstrip(b"=")
        return f"{scheme}://{DEEPLINK_VERSION}/{DEEPLINK_PATH}/{encoded.decode('ascii')}"

    @classmethod
    def from_deeplink(cls, uri: str) -> LoginConsentRequest:
        """Parse a deeplink produced by :meth:`to_deeplink`.

        The scheme is not checked; wallets may register several.
        """
        _, sep, rest = uri.partition("://")
        parts = rest.split("/")
        if not sep or len(parts) != 3 or parts[0] != DEEPLINK_VERSION or parts[1] != DEEPLINK_PATH:  # noqa: PLR2004
            msg = f"Not a login-consent deeplink: {uri[:64]!r}"
            raise ValueError(msg)
        token = parts[2]
        try:
            raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
            data = json.loads(raw)
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
            msg = f"Undecodable login-consent deeplink: {exc}"
            raise ValueError(msg) from exc
        return cls.from_dict(data)


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoginConsentDecision:
    """The wallet's decision, echoing the original request."""

    decision_id: str
    request: LoginConsentRequest
    created_at: int
    salt: str | None = None
    attestations: tuple[dict, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "decision_id": self.decision_id,
            "request": self.request.to_dict(),
            "created_at": self.created_at,
            "attestations": list(self.attestations),
        }
        if self.salt is not None:
            body["salt"] = self.salt
        return body

    @classmethod
    def from_dict(cls, data: Any) -> LoginConsentDecision:  # noqa: ANN401
        return cls(
            decision_id=_require(data, "decision_id", str),
            request=LoginConsentRequest.from_dict(_require(data, "request", dict)),
            created_at=_require(data, "created_at", int),
            salt=_optional(data, "salt", str),
            attestations=tuple(data.get("attestations") or []),
        )


@dataclass(frozen=True)
class LoginConsentResponse:
    system_id: str
    signing_id: str
    decision: LoginConsentDecision
    signature: SignatureData | None = None

    @property
    def challenge_id(self) -> str:
        return self.decision.request.challenge.challenge_id

    def signable_dict(self) -> dict[str, Any]:
        return {
            "system_id": self.system_id,
            "signing_id": self.signing_id,
            "decision": self.decision.to_dict(),
        }

    def to_dict(self) -> dict[str, Any]:
        body = self.signable_dict()
        if self.signature is not None:
            body["signature"] = self.signature.to_dict()
        return body

    @classmethod
    def from_dict(cls, data: Any) -> LoginConsentResponse:  # noqa: ANN401
        sig = _optional(data, "signature", dict)
        return cls(
            system_id=_require(data, "system_id", str),
            signing_id=_require(data, "signing_id", str),
            decision=LoginConsentDecision.from_dict(_require(data, "decision", dict)),
            signature=SignatureData.from_dict(sig) if sig is not None else None,
        )
