"""Per-file inspection: classify, extract, score, filter."""

from __future__ import annotations

import os
from pathlib import Path

from glassworm.config import ScanConfig
from glassworm.scanner.content import is_binary
from glassworm.scanner.extractor import extract
from glassworm.scanner.languages.manifest import MANIFEST_NAME
from glassworm.scanner.models import FileKind, Finding, Severity
from glassworm.scanner.scoring import classify, score

SOURCE_EXTENSIONS = frozenset({".js", ".mjs", ".cjs", ".ts", ".jsx", ".tsx"})


def file_kind(path: str | Path) -> FileKind | None:
    """Source for JS/TS extensions, manifest for package.json, else None."""
    name = os.path.basename(path)
    ext = os.path.splitext(name)[1].lower()
    if ext == ".json":
        return FileKind.PACKAGE_MANIFEST if name == MANIFEST_NAME else None
    if ext in SOURCE_EXTENSIONS:
        return FileKind.SOURCE
    return None


def inspect(path: str | Path, config: ScanConfig) -> Finding | None:
    """Inspect one file and return a Finding, or None if nothing to report.

    Raises OSError when the file cannot be stat'ed or read.
    """
    kind = file_kind(path)
    if kind is None:
        return None

    if os.stat(path).st_size > config.max_file_bytes:
        return None

    data = Path(path).read_bytes()
    if is_binary(data):
        return None

    text = data.decode("utf-8", errors="replace")
    signals = extract(text, kind, config.indicators)
    points = score(signals)
    severity = classify(points)

    # The score gate only applies to low-class findings
    if (
        severity is Severity.LOW
        and not config.include_low
        and points < config.min_score
    ):
        return None

    return Finding(
        file_path=str(path),
        score=points,
        severity=severity,
        signals=signals.freeze(),
        kind=kind,
    )
