from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from mandelanim.schedule import DEFAULT_GUARD_BITS, ZoomSchedule


class ConfigError(ValueError):
    """Invalid run configuration, reported before any frame is rendered."""


DEFAULTS: Dict[str, Any] = {
    "width": 1920,
    "height": 1080,
    "frames": 300,
    "fps": 30,
    "max_iter": 2000,
    "zoom_start": 1.0,
    "zoom_end": 1e-6,
    "out_dir": "out/frames",
    "workers": None,
    "band_rows": 16,
    "guard_bits": DEFAULT_GUARD_BITS,
    "overwrite": False,
    "on_error": "abort",
    "shard": "0/1",
}

ON_ERROR_CHOICES = ("abort", "skip")


@dataclass(frozen=True)
class RenderConfig:
    width: int
    height: int
    max_iterations: int
    out_dir: str
    workers: int = 1
    band_rows: int = 16
    guard_bits: int = DEFAULT_GUARD_BITS
    overwrite: bool = False

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ConfigError("width/height must be positive.")
        if self.max_iterations <= 0:
            raise ConfigError("max_iter must be positive.")
        if self.workers <= 0 or self.band_rows <= 0:
            raise ConfigError("workers/band_rows must be positive.")
        if self.guard_bits < 0:
            raise ConfigError("guard_bits must not be negative.")


@dataclass(frozen=True)
class RunConfig:
    render: RenderConfig
    schedule: ZoomSchedule
    fps: int
    shard_index: int = 0
    shard_count: int = 1
    on_error: str = "abort"


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    if not config_path:
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config {config_path}: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigError("Config JSON must be an object.")
    return cfg


def parse_shard(value: str) -> Tuple[int, int]:
    try:
        k, n = (int(p) for p in str(value).split("/"))
    except ValueError as e:
        raise ConfigError(f"shard must look like K/N, got {value!r}") from e
    if n < 1 or not 0 <= k < n:
        raise ConfigError(f"shard index out of range: {value!r}")
    return k, n


def normalise_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``cfg`` over DEFAULTS and coerce every field to its type."""
    unknown = sorted(set(cfg) - set(DEFAULTS))
    if unknown:
        raise ConfigError(f"Unknown config field(s): {', '.join(unknown)}")

    merged = dict(DEFAULTS)
    merged.update({k: v for k, v in cfg.items() if v is not None})

    out: Dict[str, Any] = {}
    try:
        for key in ("width", "height", "frames", "fps", "max_iter", "band_rows", "guard_bits"):
            out[key] = int(merged[key])
        out["zoom_start"] = float(merged["zoom_start"])
        out["zoom_end"] = float(merged["zoom_end"])
        out["workers"] = int(merged["workers"] or os.cpu_count() or 1)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Bad config value: {e}") from e

    out["out_dir"] = str(merged["out_dir"])
    out["overwrite"] = bool(merged["overwrite"])
    out["on_error"] = str(merged["on_error"])
    out["shard"] = str(merged["shard"])

    if out["frames"] <= 0 or out["fps"] <= 0:
        raise ConfigError("frames/fps must be positive.")
    if out["on_error"] not in ON_ERROR_CHOICES:
        raise ConfigError(f"on_error must be one of: {', '.join(ON_ERROR_CHOICES)}")
    return out


def ensure_output_dir(path: str) -> str:
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"Cannot create output directory {path}: {e}") from e
    if not os.access(path, os.W_OK | os.X_OK):
        raise ConfigError(f"Output directory is not writable: {path}")
    return path


def build_run_config(cfg: Dict[str, Any], *, create_dirs: bool = True) -> RunConfig:
    cfg = normalise_config(cfg)
    try:
        schedule = ZoomSchedule(
            start_magnification=cfg["zoom_start"],
            end_magnification=cfg["zoom_end"],
            frame_count=cfg["frames"],
        )
    except ValueError as e:
        raise ConfigError(str(e)) from e

    render = RenderConfig(
        width=cfg["width"],
        height=cfg["height"],
        max_iterations=cfg["max_iter"],
        out_dir=cfg["out_dir"],
        workers=cfg["workers"],
        band_rows=cfg["band_rows"],
        guard_bits=cfg["guard_bits"],
        overwrite=cfg["overwrite"],
    )
    shard_index, shard_count = parse_shard(cfg["shard"])
    if create_dirs:
        ensure_output_dir(render.out_dir)

    return RunConfig(
        render=render,
        schedule=schedule,
        fps=cfg["fps"],
        shard_index=shard_index,
        shard_count=shard_count,
        on_error=cfg["on_error"],
    )
