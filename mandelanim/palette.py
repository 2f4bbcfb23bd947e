from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple

import numpy as np

from mandelanim.escape import BOUNDED


def _hsv_to_rgb(h: np.ndarray, s: float, v: np.ndarray) -> np.ndarray:
    """Vectorised HSV -> uint8 RGB, ``h`` in [0, 1)."""
    h6 = h * 6.0
    c = v * s
    x = c * (1.0 - np.abs(np.mod(h6, 2.0) - 1.0))
    m = v - c
    zeros = np.zeros_like(c)
    sector = np.floor(h6).astype(np.int64) % 6

    r = np.choose(sector, [c, x, zeros, zeros, x, c])
    g = np.choose(sector, [x, c, c, x, zeros, zeros])
    b = np.choose(sector, [zeros, zeros, x, c, c, x])

    rgb = np.stack([r + m, g + m, b + m], axis=-1) * 255.0
    return np.clip(rgb, 0.0, 255.0).astype(np.uint8)


@dataclass(frozen=True)
class Palette:
    """HSV cycle indexed by the smooth escape value.

    ``t = clamp(value / span)`` walks the hue ``hue_cycles`` times around the
    wheel while brightness ramps up from ``value_floor``. Non-escaping points
    get ``background``.
    """

    span: float = 2000.0
    hue_offset: float = 0.65
    hue_cycles: float = 2.2
    saturation: float = 0.95
    value_floor: float = 0.25
    value_gain: float = 0.85
    background: Tuple[int, int, int] = (0, 0, 0)

    def for_iterations(self, max_iterations: int) -> "Palette":
        return replace(self, span=float(max_iterations))

    def colorize(self, values) -> np.ndarray:
        values = np.asarray(values, dtype=np.float64)
        out = np.empty(values.shape + (3,), dtype=np.uint8)
        out[...] = self.background

        escaped = values != BOUNDED
        if escaped.any():
            t = np.clip(values[escaped] / self.span, 0.0, 1.0)
            hue = np.mod(self.hue_offset + self.hue_cycles * t, 1.0)
            val = np.clip(self.value_floor + self.value_gain * t, 0.0, 1.0)
            out[escaped] = _hsv_to_rgb(hue, self.saturation, val)
        return out

    def color_for(self, value: float) -> Tuple[int, int, int]:
        r, g, b = self.colorize([value])[0]
        return int(r), int(g), int(b)


DEFAULT_PALETTE = Palette()
