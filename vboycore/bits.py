"""Helpers for 32-bit word bit sets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import MutableSequence, Sequence

_MASK32 = 0xFFFFFFFF


def bits_or_bits(a: MutableSequence[int], b: Sequence[int]) -> None:
    """Set in each word of ``a`` the bits set in the matching word of ``b``."""
    for i, word in enumerate(b[:len(a)]):
        a[i] = (a[i] | word) & _MASK32


def bits_clear_bits(a: MutableSequence[int], b: Sequence[int]) -> None:
    """Clear in each word of ``a`` the bits set in the matching word of ``b``."""
    for i, word in enumerate(b[:len(a)]):
        a[i] = a[i] & ~word & _MASK32


def bits_any_set(words: Sequence[int]) -> bool:
    """True if any word has a bit set."""
    return any(word != 0 for word in words)


@dataclass
class Bits256:
    """A set of 256 flags held in eight 32-bit words."""

    data: list[int] = field(default_factory=lambda: [0] * 8)

    def __post_init__(self) -> None:
        if len(self.data) != 8:
            raise ValueError("Bits256 needs exactly eight words")

    @staticmethod
    def _locate(bit: int) -> tuple[int, int]:
        if not 0 <= bit < 256:
            raise IndexError(f"bit {bit} out of range")
        return bit >> 5, 1 << (bit & 31)

    def set(self, bit: int) -> None:
        word, mask = self._locate(bit)
        self.data[word] |= mask

    def clear(self, bit: int) -> None:
        word, mask = self._locate(bit)
        self.data[word] &= ~mask & _MASK32

    def get(self, bit: int) -> bool:
        word, mask = self._locate(bit)
        return bool(self.data[word] & mask)

    def clear_all(self) -> None:
        self.data[:] = [0] * 8