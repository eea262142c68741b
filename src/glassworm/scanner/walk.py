"""Enumerate candidate files under a scan root."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path

logger = logging.getLogger(__name__)

# Directories to always skip
SKIP_DIRS = frozenset({".git", ".hg", ".svn", "dist", "build", "coverage", "__tests__"})

# File names that never carry package code
SKIP_FILES = frozenset(
    {
        "LICENSE",
        "CHANGELOG",
        "CHANGES",
        "README",
        "HISTORY",
        "NOTICE",
        "yarn.lock",
        "pnpm-lock.yaml",
        "package-lock.json",
        "npm-shrinkwrap.json",
    }
)

SKIP_SUFFIXES = (
    ".min.js",
    ".map",
    ".d.ts",
    ".md",
    ".markdown",
    ".txt",
    ".svg",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".wasm",
)


def is_ignored_name(name: str) -> bool:
    return name in SKIP_FILES or name.endswith(SKIP_SUFFIXES)


def iter_candidate_files(
    root: str | Path,
    exclude: Iterable[str] = (),
) -> Iterator[str]:
    """Walk ``root`` yielding file paths that survive the name filters."""
    excluded = set(exclude)

    def _on_error(err: OSError) -> None:
        logger.debug("Skipping unreadable directory %s: %s", err.filename, err)

    for dirpath, dirs, files in os.walk(root, onerror=_on_error):
        # Prune skipped directories in-place
        dirs[:] = [d for d in dirs if d not in SKIP_DIRS and d not in excluded]

        for name in files:
            if is_ignored_name(name) or name in excluded:
                continue
            yield os.path.join(dirpath, name)
