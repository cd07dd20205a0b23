"""Challenge and identity address encoding.

Identifiers use base58check: a one-byte version prefix, the payload,
and the first four bytes of a double SHA-256 over both.  With version
``102`` and a 20-byte payload every encoding starts with ``i``, the
same shape the wallet uses for identity addresses.
"""

from __future__ import annotations

import hashlib
import secrets

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_INDEX = {char: idx for idx, char in enumerate(BASE58_ALPHABET)}

I_ADDRESS_VERSION = 102
DEFAULT_ID_LENGTH = 20
_CHECKSUM_LENGTH = 4


def base58_encode(data: bytes) -> str:
    """Encode bytes to a base58 string."""
    num = int.from_bytes(data, "big")
    result = ""
    while num > 0:
        num, remainder = divmod(num, 58)
        result = BASE58_ALPHABET[remainder] + result

    # Leading zero bytes map to leading '1' characters
    for byte in data:
        if byte == 0:
            result = BASE58_ALPHABET[0] + result
        else:
            break

    return result


def base58_decode(string: str) -> bytes:
    """Decode a base58 string to bytes.

    Raises :class:`ValueError` on characters outside the alphabet.
    """
    num = 0
    for char in string:
        idx = _BASE58_INDEX.get(char)
        if idx is None:
            msg = f"Invalid base58 character {char!r}"
            raise ValueError(msg)
        num = num * 58 + idx

    body = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""

    leading = len(string) - len(string.lstrip(BASE58_ALPHABET[0]))
    return b"\x00" * leading + body


def _checksum(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()[:_CHECKSUM_LENGTH]


def to_base58check(payload: bytes, version: int) -> str:
    """Encode *payload* with a one-byte *version* prefix and checksum."""
    if not 0 <= version <= 255:  # noqa: PLR2004
        msg = f"Version byte out of range: {version}"
        raise ValueError(msg)
    versioned = bytes([version]) + payload
    return base58_encode(versioned + _checksum(versioned))


def from_base58check(encoded: str) -> tuple[int, bytes]:
    """Decode a base58check string into ``(version, payload)``.

    Raises :class:`ValueError` if the string is malformed or the
    checksum does not match.
    """
    raw = base58_decode(encoded)
    if len(raw) < 1 + _CHECKSUM_LENGTH:
        msg = "base58check string too short"
        raise ValueError(msg)
    versioned, checksum = raw[:-_CHECKSUM_LENGTH], raw[-_CHECKSUM_LENGTH:]
    if _checksum(versioned) != checksum:
        msg = "base58check checksum mismatch"
        raise ValueError(msg)
    return versioned[0], versioned[1:]


def is_valid_address(encoded: str, version: int = I_ADDRESS_VERSION) -> bool:
    """Return whether *encoded* is a well-formed base58check of *version*."""
    try:
        decoded_version, _ = from_base58check(encoded)
    except ValueError:
        return False
    return decoded_version == version


def generate_challenge_id(
    length: int = DEFAULT_ID_LENGTH,
    version: int = I_ADDRESS_VERSION,
) -> str:
    """Return a fresh challenge identifier from *length* random bytes."""
    return to_base58check(secrets.token_bytes(length), version)
