import dataclasses
import importlib.metadata as importlib_metadata
import json
import os
import platform
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from mpmath.libmp.backend import BACKEND

from mandelanim.config import RunConfig


@dataclass(frozen=True)
class RunManifest:
    started_utc: str
    config: Dict[str, Any]
    python: Dict[str, Any]
    packages: Dict[str, str]
    mpmath_backend: str
    git: Dict[str, Any]
    system: Dict[str, Any]


def _utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _safe_pkg_version(name: str) -> Optional[str]:
    try:
        return importlib_metadata.version(name)
    except importlib_metadata.PackageNotFoundError:
        return None


def git_commit() -> Optional[str]:
    try:
        r = subprocess.run(["git", "rev-parse", "HEAD"], capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError):
        return None
    return r.stdout.strip()


def build_manifest(*, run: RunConfig, commit: Optional[str]) -> RunManifest:
    pkgs = {}
    for name in ["numpy", "Pillow", "mpmath", "tqdm", "gmpy2"]:
        v = _safe_pkg_version(name)
        if v:
            pkgs[name] = v

    return RunManifest(
        started_utc=_utc_iso(),
        config=dataclasses.asdict(run),
        python={"version": sys.version, "executable": sys.executable},
        packages=pkgs,
        mpmath_backend=BACKEND,
        git={"commit": commit},
        system={"platform": platform.platform(), "machine": platform.machine(), "processor": platform.processor()},
    )


def write_manifest(path: str, manifest: RunManifest) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(dataclasses.asdict(manifest), f, indent=2, sort_keys=True)


def manifest_name(run: RunConfig) -> str:
    """``run.json``, or ``run.shardKofN.json`` for a sharded run."""
    if run.shard_count == 1:
        return "run.json"
    return f"run.shard{run.shard_index}of{run.shard_count}.json"
