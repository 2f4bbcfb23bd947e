from __future__ import annotations

import logging
import os
from concurrent.futures.process import BrokenProcessPool
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from tqdm import tqdm

from mandelanim.config import RunConfig
from mandelanim.output.frame_writer import frame_exists, remove_stale_partials, write_frame
from mandelanim.palette import DEFAULT_PALETTE, Palette
from mandelanim.renderers.perturbation import render_frame
from mandelanim.schedule import DEFAULT_PATH, CenterPath, frame_indices, frame_spec
from mandelanim.util.logging_setup import frame_logger, get_logger


class RenderRunError(RuntimeError):
    def __init__(self, failed: Sequence[int]):
        super().__init__(f"Rendering aborted, failed frame(s): {list(failed)}")
        self.failed = list(failed)


@dataclass
class RunSummary:
    rendered: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    glitched_pixels: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed


def ffmpeg_command(out_dir: str, fps: int, output: str = "out/mandelbrot.mp4") -> List[str]:
    return [
        "ffmpeg", "-y",
        "-framerate", str(fps),
        "-i", os.path.join(out_dir, "frame_%06d.png"),
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        output,
    ]


def render_sequence(
    run: RunConfig,
    *,
    path: CenterPath = DEFAULT_PATH,
    palette: Optional[Palette] = None,
    log_queue=None,
    log_level: int = logging.INFO,
    progress: bool = True,
) -> RunSummary:
    logger = get_logger()
    cfg = run.render
    schedule = run.schedule
    palette = palette or DEFAULT_PALETTE.for_iterations(cfg.max_iterations)
    indices = frame_indices(schedule.frame_count, run.shard_index, run.shard_count)

    logger.info(
        "Render start frames=%s (shard %s/%s: %s) size=%sx%s zoom=%s..%s iter=%s workers=%s",
        schedule.frame_count, run.shard_index, run.shard_count, len(indices), cfg.width, cfg.height,
        schedule.start_magnification, schedule.end_magnification, cfg.max_iterations, cfg.workers,
    )
    remove_stale_partials(cfg.out_dir)

    summary = RunSummary()
    for i in tqdm(indices, desc="frames", unit="frame", disable=not progress):
        if not cfg.overwrite and frame_exists(cfg.out_dir, i):
            frame_logger(i).info("Skipped: already rendered")
            summary.skipped.append(i)
            continue

        spec = frame_spec(schedule, i, path, cfg.guard_bits)
        try:
            frame = render_frame(spec, cfg, palette, log_queue=log_queue, log_level=log_level)
            out = write_frame(frame.image, cfg.out_dir, i)
        except (OSError, MemoryError, BrokenProcessPool) as e:
            summary.failed.append(i)
            frame_logger(i).error("FAILED: %s", e)
            if run.on_error == "abort":
                raise RenderRunError(summary.failed) from e
            continue

        summary.rendered.append(i)
        summary.glitched_pixels += frame.grid.glitched
        frame_logger(i).info("Saved %s", out)

    if summary.failed:
        logger.error("Render finished with %s failed frame(s): %s", len(summary.failed), summary.failed)
    else:
        logger.info(
            "Render complete out_dir=%s rendered=%s skipped=%s glitched_pixels=%s",
            cfg.out_dir, len(summary.rendered), len(summary.skipped), summary.glitched_pixels,
        )
    return summary
