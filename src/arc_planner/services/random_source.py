"""Deterministic pseudo-random source and stable hashing shared by every stage."""

from __future__ import annotations

_MASK_64 = (1 << 64) - 1
_GOLDEN_GAMMA = 0x9E3779B97F4A7C15
_DOUBLE_SCALE = 1.0 / float(1 << 53)


class SeededRandomSource:
    """SplitMix64 generator.

    Negative seeds are folded into the unsigned 64-bit range, so ``seed ^ (i * 397)``
    style derivations stay valid for any Python int.
    """

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK_64

    def next_u64(self) -> int:
        self._state = (self._state + _GOLDEN_GAMMA) & _MASK_64
        z = self._state
        z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & _MASK_64
        z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & _MASK_64
        return z ^ (z >> 31)

    def next_double(self) -> float:
        """Uniform float in [0, 1)."""
        return (self.next_u64() >> 11) * _DOUBLE_SCALE

    def next_int(self, low: int, high: int) -> int:
        """Uniform int in [low, high)."""
        if high <= low:
            raise ValueError(f"empty range [{low}, {high})")
        return low + self.next_u64() % (high - low)


def stable_hash(*parts: object) -> int:
    """FNV-1a over the ``|``-joined string form of ``parts`` (unsigned 32-bit)."""
    token = "|".join(str(part) for part in parts).encode("utf-8")
    hash_value = 0x811C9DC5
    for byte in token:
        hash_value ^= byte
        hash_value = (hash_value * 0x01000193) % (1 << 32)
    return hash_value


def derive_section_seed(seed: int, section_index: int) -> int:
    return seed ^ (section_index * 397)
