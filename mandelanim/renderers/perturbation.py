"""Frame rendering: one reference orbit, then every pixel by perturbation.

Rows are cut into bands. With ``workers > 1`` the bands go to a process pool
whose workers receive the frame's reference orbit once, through the pool
initializer, and only ever read it. Each band comes back with its first row
index and is copied into a preallocated grid, so the result does not depend on
completion order.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from PIL import Image

from mandelanim.config import RenderConfig
from mandelanim.escape import evaluate_many
from mandelanim.orbit import ReferenceOrbit, compute_orbit
from mandelanim.palette import DEFAULT_PALETTE, Palette
from mandelanim.schedule import FrameSpec
from mandelanim.util.logging_setup import frame_logger, logging_initialiser

_G: Dict[str, Any] = {}


@dataclass(frozen=True)
class FrameGrid:
    values: np.ndarray
    glitched: int


@dataclass(frozen=True)
class RenderedFrame:
    image: Image.Image
    grid: FrameGrid


def pixel_offset(row: int, col: int, width: int, height: int, magnification: float) -> complex:
    """Complex-plane offset of a pixel from the frame centre.

    ``magnification`` is the half-extent of the shorter image side, so pixels
    stay square for any aspect ratio.
    """
    scale = magnification / (min(width, height) / 2.0)
    return complex((col - width / 2.0) * scale, (row - height / 2.0) * scale)


def band_offsets(y0: int, y1: int, width: int, height: int, magnification: float) -> np.ndarray:
    """:func:`pixel_offset` for every pixel of rows ``y0:y1``, as a complex array."""
    scale = magnification / (min(width, height) / 2.0)
    re = (np.arange(width, dtype=np.float64) - width / 2.0) * scale
    im = (np.arange(y0, y1, dtype=np.float64) - height / 2.0) * scale
    out = np.empty((y1 - y0, width), dtype=np.complex128)
    out.real = re[np.newaxis, :]
    out.imag = im[:, np.newaxis]
    return out


def _bands(height: int, band_rows: int) -> List[Tuple[int, int]]:
    step = max(1, int(band_rows))
    return [(y, min(height, y + step)) for y in range(0, height, step)]


def _evaluate_band(
    orbit: ReferenceOrbit, y0: int, y1: int, width: int, height: int, magnification: float, max_iter: int
) -> Tuple[np.ndarray, int]:
    values, glitched = evaluate_many(band_offsets(y0, y1, width, height, magnification), orbit, max_iter)
    return values, int(glitched.sum())


def _init_worker(orbit, width, height, magnification, max_iter, frame_id, log_queue, log_level):
    _G["orbit"] = orbit
    _G["width"] = width
    _G["height"] = height
    _G["magnification"] = magnification
    _G["max_iter"] = max_iter
    _G["frame_id"] = frame_id
    logging_initialiser(log_queue, log_level)


def _render_band(y0_y1: Tuple[int, int]):
    y0, y1 = y0_y1
    band, glitched = _evaluate_band(
        _G["orbit"], y0, y1, _G["width"], _G["height"], _G["magnification"], _G["max_iter"]
    )
    if glitched:
        frame_logger(_G["frame_id"]).debug("rows %s-%s: %s glitched pixels recomputed", y0, y1, glitched)
    return y0, band, glitched


def render_escape_grid(
    spec: FrameSpec,
    config: RenderConfig,
    *,
    log_queue=None,
    log_level: Optional[int] = None,
) -> FrameGrid:
    logger = frame_logger(spec.frame_id)
    width, height, max_iter = config.width, config.height, config.max_iterations

    orbit = compute_orbit(spec.center, max_iter, spec.precision_bits)
    logger.info(
        "reference orbit: %s/%s iterations at %s bits%s",
        orbit.max_iterations_computed, max_iter, orbit.precision_bits,
        " (reference escaped)" if orbit.escaped else "",
    )

    values = np.empty((height, width), dtype=np.float64)
    glitched = 0
    bands = _bands(height, config.band_rows)

    if config.workers <= 1 or len(bands) == 1:
        for y0, y1 in bands:
            band, g = _evaluate_band(orbit, y0, y1, width, height, spec.magnification, max_iter)
            values[y0:y1] = band
            glitched += g
    else:
        level = logger.getEffectiveLevel() if log_level is None else log_level
        with ProcessPoolExecutor(
            max_workers=config.workers,
            initializer=_init_worker,
            initargs=(orbit, width, height, spec.magnification, max_iter, spec.frame_id, log_queue, level),
        ) as pool:
            for y0, band, g in pool.map(_render_band, bands):
                values[y0:y0 + band.shape[0]] = band
                glitched += g

    return FrameGrid(values=values, glitched=glitched)


def render_frame(
    spec: FrameSpec,
    config: RenderConfig,
    palette: Optional[Palette] = None,
    *,
    log_queue=None,
    log_level: Optional[int] = None,
) -> RenderedFrame:
    logger = frame_logger(spec.frame_id)
    palette = palette or DEFAULT_PALETTE.for_iterations(config.max_iterations)

    logger.info(
        "render start magnification=%.6e size=%sx%s iter=%s",
        spec.magnification, config.width, config.height, config.max_iterations,
    )
    grid = render_escape_grid(spec, config, log_queue=log_queue, log_level=log_level)
    img = Image.fromarray(palette.colorize(grid.values))
    logger.info("render done, %s glitched pixels recomputed", grid.glitched)
    return RenderedFrame(image=img, grid=grid)
