"""
eqforge/seeds.py
Deterministic seeded randomness

A string seed is mixed with xmur3 into four 32-bit words that initialise an
sfc32 generator. Every operation is masked to 32 bits, so a seed yields the
same stream on every platform and in every process.

CRITICAL: Do NOT use Python's built-in hash() - it's salted per-process.
"""

import hashlib
import math
import time
from typing import Callable, Optional, Sequence, TypeVar

import numpy as np

T = TypeVar("T")

MASK32 = 0xFFFFFFFF
TWO_32 = 4294967296.0


def stable_u32(*parts) -> int:
    """
    Generate a stable 32-bit unsigned integer from arbitrary parts.

    Uses SHA-256 truncated to 4 bytes for cross-platform determinism.

    Example:
        stable_u32("class", "t1") -> consistent value across runs
    """
    s = "|".join(str(p) for p in parts).encode("utf-8")
    return int.from_bytes(hashlib.sha256(s).digest()[:4], "big")


def _imul(a: int, b: int) -> int:
    return (a * b) & MASK32


def xmur3(seed: str) -> Callable[[], int]:
    """String hash that yields a sequence of well-mixed 32-bit words."""
    h = (1779033703 ^ len(seed)) & MASK32
    for ch in seed:
        h = _imul(h ^ ord(ch), 3432918353)
        h = ((h << 13) | (h >> 19)) & MASK32

    def next_word() -> int:
        nonlocal h
        h = _imul(h ^ (h >> 16), 2246822507)
        h = _imul(h ^ (h >> 13), 3266489909)
        h ^= h >> 16
        return h

    return next_word


class SeededRng:
    """
    sfc32 generator: 128 bits of state, one float in [0, 1) per call.

    Usage:
        rng = make_rng("t1")
        r = rng()                 # float in [0, 1)
        k = rng.uniform(0.4, 2.1)
    """

    def __init__(self, a: int, b: int, c: int, d: int, seed: Optional[str] = None):
        self._a = a & MASK32
        self._b = b & MASK32
        self._c = c & MASK32
        self._d = d & MASK32
        self.seed = seed

    @classmethod
    def from_string(cls, seed: str) -> "SeededRng":
        word = xmur3(seed)
        return cls(word(), word(), word(), word(), seed=seed)

    @classmethod
    def from_entropy(cls) -> "SeededRng":
        """Non-reproducible generator seeded from OS entropy."""
        words = np.random.default_rng().integers(0, 2**32, size=4, dtype=np.uint64)
        return cls(*(int(w) for w in words))

    def next_u32(self) -> int:
        a, b, c, d = self._a, self._b, self._c, self._d
        t = (a + b) & MASK32
        a = b ^ (b >> 9)
        b = (c + (c << 3)) & MASK32
        c = ((c << 21) | (c >> 11)) & MASK32
        d = (d + 1) & MASK32
        t = (t + d) & MASK32
        c = (c + t) & MASK32
        self._a, self._b, self._c, self._d = a, b, c, d
        return t

    def __call__(self) -> float:
        return self.next_u32() / TWO_32

    def uniform(self, lo: float, hi: float) -> float:
        """Uniform real in [lo, hi)."""
        return lo + (hi - lo) * self()

    def randint(self, lo: int, hi: int) -> int:
        """Uniform integer in [lo, hi], both ends inclusive."""
        return math.floor(self.uniform(lo, hi + 1))

    def choice(self, items: Sequence[T]) -> T:
        return items[int(self() * len(items))]

    def chance(self, p: float) -> bool:
        return self() < p

    @property
    def deterministic(self) -> bool:
        return self.seed is not None


def make_rng(seed: Optional[str]) -> SeededRng:
    """
    Build a generator for a seed string.

    Blank or missing seeds get an entropy-seeded generator; reproducibility
    is waived in that case.
    """
    if not seed:
        return SeededRng.from_entropy()
    return SeededRng.from_string(seed)


def resolve_seed(broaden_seed: Optional[str], main_seed: Optional[str] = None) -> str:
    """
    Pick the seed for a broadening run.

    The dedicated broadening seed wins, then the page's main seed. With
    neither, a timestamp seed makes consecutive runs genuinely different.
    """
    for candidate in (broaden_seed, main_seed):
        s = (candidate or "").strip()
        if s:
            return s
    return f"t={int(time.time() * 1000)}"
