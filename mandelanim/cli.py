from __future__ import annotations

import argparse
import logging
import os
import shlex
from typing import Any, Dict, Optional

from mandelanim.config import ConfigError, RunConfig, build_run_config, load_config
from mandelanim.pipeline import RenderRunError, ffmpeg_command, render_sequence
from mandelanim.schedule import frame_indices, frame_spec
from mandelanim.util.logging_setup import configure_logging, get_logger, queue_listener
from mandelanim.util.manifest import build_manifest, git_commit, manifest_name, write_manifest

EXIT_OK = 0
EXIT_FRAMES_FAILED = 1
EXIT_CONFIG = 2

# argparse dest -> config key
_OVERRIDES = {
    "width": "width",
    "height": "height",
    "frames": "frames",
    "fps": "fps",
    "max_iter": "max_iter",
    "zoom_start": "zoom_start",
    "zoom_end": "zoom_end",
    "out_dir": "out_dir",
    "workers": "workers",
    "band_rows": "band_rows",
    "guard_bits": "guard_bits",
    "shard": "shard",
}


def _schedule_options() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument("--width", type=int, default=None, help="Frame width in pixels.")
    p.add_argument("--height", type=int, default=None, help="Frame height in pixels.")
    p.add_argument("--frames", type=int, default=None, help="Number of frames in the zoom.")
    p.add_argument("--fps", type=int, default=None, help="Frame rate for the encoder hint.")
    p.add_argument("--max-iter", type=int, default=None, help="Iteration budget per pixel.")
    p.add_argument("--zoom-start", type=float, default=None, help="Half-extent of the first frame.")
    p.add_argument("--zoom-end", type=float, default=None, help="Half-extent of the last frame.")
    p.add_argument("--out-dir", type=str, default=None, help="Directory for frame_NNNNNN.png files.")
    p.add_argument("--guard-bits", type=int, default=None, help="Extra precision bits beyond the zoom depth.")
    p.add_argument("--shard", type=str, default=None, help="Render only frames i with i %% N == K (K/N).")
    return p


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mandelanim", description="Render deep-zoom Mandelbrot frames for a video.")
    p.add_argument("--config", type=str, default=None, help="Path to config JSON.")
    p.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level.")
    p.add_argument("--log-file", type=str, default="render.log", help="Log file path (rotating). Set empty to disable file logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    common = _schedule_options()
    r = sub.add_parser("render", parents=[common], help="Render frames to the output directory.")
    r.add_argument("--workers", type=int, default=None, help="Worker processes per frame (default: CPU count).")
    r.add_argument("--band-rows", type=int, default=None, help="Rows per worker task.")
    r.add_argument("--overwrite", action="store_true", help="Re-render frames that already exist.")
    r.add_argument("--on-error", type=str, default=None, choices=["abort", "skip"], help="What to do when a frame fails.")
    r.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")

    sub.add_parser("plan", parents=[common], help="Print the per-frame zoom schedule without rendering.")
    return p


def _collect_config(args: argparse.Namespace) -> Dict[str, Any]:
    cfg = load_config(args.config)
    for dest, key in _OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is not None:
            cfg[key] = value
    if getattr(args, "overwrite", False):
        cfg["overwrite"] = True
    if getattr(args, "on_error", None):
        cfg["on_error"] = args.on_error
    return cfg


def _plan(run: RunConfig) -> None:
    schedule = run.schedule
    for i in frame_indices(schedule.frame_count, run.shard_index, run.shard_count):
        spec = frame_spec(schedule, i, guard_bits=run.render.guard_bits)
        re, im = spec.center.to_strings(30)
        print(f"{spec.frame_id}  zoom={spec.magnification:.6e}  bits={spec.precision_bits}  center=({re}, {im})")


def _render(run: RunConfig, args: argparse.Namespace, log_level: int) -> int:
    logger = get_logger()
    manifest_path = os.path.join(run.render.out_dir, manifest_name(run))
    write_manifest(manifest_path, build_manifest(run=run, commit=git_commit()))
    logger.info("Run manifest written: %s", manifest_path)

    try:
        with queue_listener(logger) as queue:
            summary = render_sequence(run, log_queue=queue, log_level=log_level, progress=not args.no_progress)
    except RenderRunError as e:
        logger.error("%s", e)
        return EXIT_FRAMES_FAILED

    if not summary.ok:
        return EXIT_FRAMES_FAILED
    print("ffmpeg example:")
    print(" ".join(shlex.quote(part) for part in ffmpeg_command(run.render.out_dir, run.fps)))
    return EXIT_OK


def main(argv: Optional[list] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    log_file = args.log_file if args.log_file and args.log_file.strip() else None
    logger = configure_logging(log_level, log_file)

    try:
        run = build_run_config(_collect_config(args), create_dirs=args.cmd == "render")
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG

    if args.cmd == "plan":
        _plan(run)
        return EXIT_OK
    return _render(run, args, log_level)
