"""Shared helpers for vmdeck: console logging, environment lookups and subprocess calls."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import List, Optional

from vmdeck.constants import _LOG_VERBOSE, TRUTHY

LEVEL_COLOURS = {
    "INFO": "\033[0;34m",
    "WARN": "\033[1;33m",
    "ERROR": "\033[0;31m",
    "SUCCESS": "\033[0;32m",
    "DEBUG": "\033[0;90m",
}


def log(level: str, message: str) -> None:
    """Print ``[LEVEL] message`` to stdout.

    Known levels get an ANSI colour. DEBUG lines are dropped unless
    VMDECK_LOG_VERBOSE is set.
    """
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colour = LEVEL_COLOURS.get(level)
    tag = f"{colour}[{level}]\033[0m" if colour else f"[{level}]"
    print(f"{tag} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Read a VMDECK_* style override; an empty variable counts as unset."""
    value = os.environ.get(name)
    return value if value else default


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = get_env(name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUTHY


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def nearest_existing_parent(path: Path) -> Path:
    """Walk up from ``path`` until an existing directory is found."""
    candidate = path
    while not candidate.exists() and candidate != candidate.parent:
        candidate = candidate.parent
    return candidate


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Invoke an external tool such as ``qemu-img``, echoing it at DEBUG."""
    log("DEBUG", f"$ {' '.join(cmd)}")
    result = subprocess.run(cmd, check=check, text=True, **kwargs)
    if result.returncode != 0:
        log("DEBUG", f"{cmd[0]} exited with status {result.returncode}")
    return result
