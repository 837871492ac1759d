"""Hashing and user serialisation helpers used during flag evaluation."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


class _User(Protocol):
    key: str
    anonymous: bool
    custom: Mapping[str, Any]


def hash32(s: str) -> int:
    """Return the 32-bit FNV-1a hash of the UTF-8 encoding of ``s``."""
    value = _FNV32_OFFSET
    for byte in s.encode("utf-8"):
        value = ((value ^ byte) * _FNV32_PRIME) & 0xFFFFFFFF
    return value


def user_to_map(user: _User) -> dict[str, Any]:
    """Return a fresh dict of the user's custom fields plus ``anonymous`` and ``key``."""
    result = dict(user.custom or {})
    result["anonymous"] = user.anonymous
    result["key"] = user.key
    return result