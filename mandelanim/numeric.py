"""Complex arithmetic at two precisions.

The per-pixel loops work on the builtin ``complex`` type (IEEE double). Anything
that needs more than 53 bits - the frame centre, the reference orbit and the
glitch fallback - uses :class:`BigComplex`, an mpmath-backed complex number that
carries its own precision.

Each precision gets a private ``mpmath`` context, so rendering never touches the
global ``mpmath.mp`` settings. Values cross between the two representations only
through :meth:`BigComplex.offset` (double delta into extended precision) and
:meth:`BigComplex.to_complex` (extended precision rounded to double).
"""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Tuple, Union

from mpmath.ctx_mp import MPContext

DOUBLE_BITS = 53

Real = Union[str, int, float]


@lru_cache(maxsize=64)
def precision_context(bits: int) -> MPContext:
    if bits < DOUBLE_BITS:
        raise ValueError(f"precision must be at least {DOUBLE_BITS} bits, got {bits}")
    ctx = MPContext()
    ctx.prec = int(bits)
    return ctx


def _pack(ctx: MPContext, x, bits: int) -> Tuple[int, int]:
    # x has at most `bits` significant bits, so the scaled mantissa is an exact integer.
    man, exp = ctx.frexp(x)
    return int(ctx.ldexp(man, bits)), int(exp) - bits


def _unpack(ctx: MPContext, packed: Tuple[int, int]):
    man, exp = packed
    return ctx.ldexp(ctx.mpf(man), exp)


def _rebuild(re: Tuple[int, int], im: Tuple[int, int], bits: int) -> "BigComplex":
    ctx = precision_context(bits)
    return BigComplex(ctx.mpc(_unpack(ctx, re), _unpack(ctx, im)), bits)


class BigComplex:
    """Immutable arbitrary-precision complex number."""

    __slots__ = ("_value", "bits")

    def __init__(self, value, bits: int):
        ctx = precision_context(bits)
        self.bits = int(bits)
        self._value = value if isinstance(value, ctx.mpc) else ctx.mpc(value)

    @classmethod
    def parse(cls, re: Real, im: Real, bits: int) -> "BigComplex":
        """Build from decimal strings (or numbers) rounded to ``bits`` of precision."""
        ctx = precision_context(bits)
        return cls(ctx.mpc(ctx.mpf(re), ctx.mpf(im)), bits)

    @classmethod
    def zero(cls, bits: int) -> "BigComplex":
        return cls(precision_context(bits).mpc(0), bits)

    @property
    def _ctx(self) -> MPContext:
        return precision_context(self.bits)

    @property
    def real(self):
        return self._value.real

    @property
    def imag(self):
        return self._value.imag

    def _same(self, other: "BigComplex") -> "BigComplex":
        if not isinstance(other, BigComplex):
            raise TypeError(f"expected BigComplex, got {type(other).__name__}")
        return other if other.bits == self.bits else other.with_precision(self.bits)

    def with_precision(self, bits: int) -> "BigComplex":
        if bits == self.bits:
            return self
        re, im = self.packed()
        return _rebuild(re, im, bits)

    def packed(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        ctx = self._ctx
        return _pack(ctx, self._value.real, self.bits), _pack(ctx, self._value.imag, self.bits)

    def __add__(self, other: "BigComplex") -> "BigComplex":
        return BigComplex(self._value + self._same(other)._value, self.bits)

    def __sub__(self, other: "BigComplex") -> "BigComplex":
        return BigComplex(self._value - self._same(other)._value, self.bits)

    def __mul__(self, other: "BigComplex") -> "BigComplex":
        return BigComplex(self._value * self._same(other)._value, self.bits)

    def square(self) -> "BigComplex":
        return BigComplex(self._value * self._value, self.bits)

    def square_add(self, c: "BigComplex") -> "BigComplex":
        """One Mandelbrot step, ``self**2 + c``."""
        return BigComplex(self._value * self._value + self._same(c)._value, self.bits)

    def norm_sqr(self):
        re, im = self._value.real, self._value.imag
        return re * re + im * im

    def offset(self, delta: complex) -> "BigComplex":
        """Add a double-precision delta; exact on entry, rounded once by the sum."""
        return BigComplex(self._value + self._ctx.mpc(complex(delta)), self.bits)

    def toward(self, other: "BigComplex", t: float) -> "BigComplex":
        """Point at fraction ``t`` of the way from ``self`` to ``other``."""
        other = self._same(other)
        step = (other._value - self._value) * self._ctx.mpf(t)
        return BigComplex(self._value + step, self.bits)

    def to_complex(self) -> complex:
        return complex(float(self._value.real), float(self._value.imag))

    def to_strings(self, digits: int = 0) -> Tuple[str, str]:
        ctx = self._ctx
        digits = digits or int(math.ceil(self.bits * math.log10(2))) + 1
        return ctx.nstr(self._value.real, digits), ctx.nstr(self._value.imag, digits)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BigComplex):
            return NotImplemented
        return self.bits == other.bits and self._value == other._value

    def __hash__(self) -> int:
        return hash((self.bits, self.packed()))

    def __reduce__(self):
        re, im = self.packed()
        return _rebuild, (re, im, self.bits)

    def __repr__(self) -> str:
        re, im = self.to_strings(20)
        return f"BigComplex({re!r}, {im!r}, bits={self.bits})"
