"""Deterministic hashing used for every bucketing decision.

The algorithm is the compatibility anchor shared with the other SDKs:
FNV-1a (32-bit) over the UTF-8 bytes of the seed, reduced to four decimal
places. Each byte is xor-ed into the state before the multiply by the
FNV prime (FNV-1a order, not FNV-1 multiply-then-xor), as the published
FNV-1a test vectors require::

    hash(seed) = (fnv1a32(seed) % 10000) / 10000

Any change here reassigns users between variations.
"""

from __future__ import annotations

_FNV_OFFSET_BASIS = 0x811C9DC5
_FNV_PRIME = 0x01000193
_UINT32_MASK = 0xFFFFFFFF
_BUCKETS = 10000


def fnv1a32(text: str) -> int:
    """Return the 32-bit FNV-1a hash of *text* encoded as UTF-8."""
    hval = _FNV_OFFSET_BASIS
    for byte in text.encode("utf-8"):
        hval ^= byte
        hval = (hval * _FNV_PRIME) & _UINT32_MASK
    return hval


def hash(seed: str) -> float:  # noqa: A001
    """Map *seed* to a float in ``[0, 1)`` with four decimal places of resolution."""
    return (fnv1a32(seed) % _BUCKETS) / _BUCKETS


def in_range(n: float, start: float, end: float) -> bool:
    """``start <= n < end``"""
    return start <= n < end
