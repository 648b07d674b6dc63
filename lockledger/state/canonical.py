"""
Deterministic canonical encoding primitives.

Used for audit-critical hashing (pool identities) and for normalizing the
address-like caller identities every ledger entry point receives.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any


CANONICAL_ENCODING_VERSION = 1

ADDRESS_NBYTES = 20
ZERO_ADDRESS = "0x" + "00" * ADDRESS_NBYTES

_HEX_CHARS_RE = re.compile(r"^[0-9a-fA-F]+$")


def _reject_floats(value: Any) -> None:
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical encoding")
    if isinstance(value, dict):
        for k in value.keys():
            if not isinstance(k, str):
                raise TypeError("dict keys must be str for canonical encoding")
        for v in value.values():
            _reject_floats(v)
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _reject_floats(item)


def canonical_json_bytes(value: Any) -> bytes:
    """
    Canonical JSON encoding for hashing.

    Rules:
    - UTF-8
    - sort_keys=True
    - separators=(',', ':') (no whitespace)
    - allow_nan=False
    - floats rejected (token amounts are integers in the smallest denomination)
    """
    _reject_floats(value)
    text = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def domain_sep_bytes(label: str, version: int = 1) -> bytes:
    """
    Create a domain separation prefix.

    The output is ASCII-only and NUL-terminated to make concatenation unambiguous.
    """
    if not isinstance(label, str) or not label:
        raise TypeError("label must be a non-empty str")
    if "\x00" in label:
        raise ValueError("label must not contain NUL")
    try:
        label_bytes = label.encode("ascii")
    except UnicodeEncodeError as exc:
        raise ValueError("label must be ASCII") from exc
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("version must be a positive int")
    return b"lockledger:" + label_bytes + b":v" + str(version).encode("ascii") + b"\x00"


def canonical_address(address: str, *, name: str = "address") -> str:
    """
    Canonicalize an address-like identity (lowercase, 0x-prefixed, 20 bytes).

    Accepts either 0x-prefixed or raw hex input. The zero address is returned
    as-is; callers decide whether it is acceptable.
    """
    if not isinstance(address, str):
        raise TypeError(f"{name} must be a str")
    s = address.strip()
    if s.lower().startswith("0x"):
        s = s[2:]
    expected_len = 2 * ADDRESS_NBYTES
    if len(s) != expected_len:
        raise ValueError(f"{name} must be {ADDRESS_NBYTES} bytes (hex length {expected_len})")
    if not _HEX_CHARS_RE.fullmatch(s):
        raise ValueError(f"{name} must be valid hex")
    return "0x" + s.lower()


def is_zero_address(address: str) -> bool:
    return canonical_address(address) == ZERO_ADDRESS


def derive_address(label: str) -> str:
    """Deterministic address for a named component (ledgers, tokens, demo accounts)."""
    digest = hashlib.sha256(domain_sep_bytes("address") + label.encode("utf-8")).digest()
    return "0x" + digest[-ADDRESS_NBYTES:].hex()
