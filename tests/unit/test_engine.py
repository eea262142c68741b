"""Tests for the concurrent scan engine."""

from __future__ import annotations

import os
import re
import threading
import time
from pathlib import Path

import pytest

from glassworm.config import ScanConfig
from glassworm.scanner.engine import ScanEngine
from glassworm.scanner.errors import ScannerFatalError
from glassworm.scanner.inspector import inspect
from glassworm.scanner.models import (
    Finding,
    ScanProgress,
    Severity,
    SignalSet,
    SkipReason,
)
from glassworm.scanner.report import summary
from glassworm.scanner.scoring import classify


def _finding(path: str, score: int, severity: Severity) -> Finding:
    return Finding(file_path=path, score=score, severity=severity, signals=SignalSet())


def _stuck_on_one_file(path: str, config: ScanConfig) -> Finding | None:
    """Module-level so it can be sent to an inspection process."""
    if path.endswith("stuck.js"):
        # Exponential backtracking that never releases the GIL
        re.match(r"(a+)+$", "a" * 64 + "!")
    return None


def _names(result) -> list[str]:
    return [os.path.basename(f.file_path) for f in result.findings]


def test_scan_package_tree(package_tree: Path, config: ScanConfig):
    result = ScanEngine(config).scan(package_tree)

    assert result.total == 5
    assert result.processed == 5
    assert result.skipped == ()
    assert result.directory == str(package_tree.resolve())
    assert _names(result) == ["index.js", "wallet.js", "package.json"]
    assert [f.score for f in result.findings] == [100, 85, 50]
    assert summary(result) == {"critical": 2, "high": 0, "medium": 1, "low": 0}


def test_ignored_paths_never_dispatched(package_tree: Path, config: ScanConfig):
    seen: list[str] = []
    lock = threading.Lock()

    def recording(path: str, cfg: ScanConfig):
        with lock:
            seen.append(path)
        return inspect(path, cfg)

    ScanEngine(config, inspector=recording, isolate=False).scan(package_tree)
    assert not any(p.endswith("README.md") for p in seen)
    assert not any(f"{os.sep}dist{os.sep}" in p for p in seen)


def test_exclude_names(package_tree: Path, config: ScanConfig):
    result = ScanEngine(config).scan(package_tree, exclude=["evil-pkg"])
    assert result.total == 2
    assert result.findings == ()


def test_worker_count_does_not_change_results(package_tree: Path):
    two = ScanEngine(ScanConfig(concurrency=2)).scan(package_tree)
    eight = ScanEngine(ScanConfig(concurrency=8)).scan(package_tree)
    assert [(f.file_path, f.score) for f in two.findings] == [
        (f.file_path, f.score) for f in eight.findings
    ]
    assert summary(two) == summary(eight)


def test_repeated_scans_are_identical(package_tree: Path, config: ScanConfig):
    first = ScanEngine(config).scan(package_tree)
    second = ScanEngine(config).scan(package_tree)
    assert summary(first) == summary(second)
    assert [f.file_path for f in first.findings] == [
        f.file_path for f in second.findings
    ]


def test_slow_file_times_out_without_blocking_others():
    release = threading.Event()

    def inspector(path: str, cfg: ScanConfig):
        if path == "slow.js":
            release.wait(5)
            return _finding(path, 100, Severity.CRITICAL)
        return _finding(path, 90, Severity.CRITICAL)

    config = ScanConfig(concurrency=2, per_file_timeout_ms=200)
    paths = ["slow.js"] + [f"fast{i}.js" for i in range(10)]
    start = time.monotonic()
    try:
        result = ScanEngine(config, inspector=inspector, isolate=False).run(paths)
    finally:
        release.set()

    assert time.monotonic() - start < 3
    assert result.processed == 11
    assert len(result.findings) == 10
    assert [(s.file_path, s.reason) for s in result.skipped] == [
        ("slow.js", SkipReason.TIMEOUT)
    ]
    assert "slow.js" not in {f.file_path for f in result.findings}


def test_inspector_errors_count_as_processed():
    def inspector(path: str, cfg: ScanConfig):
        if path == "unreadable.js":
            raise PermissionError(path)
        if path == "broken.js":
            raise RuntimeError("boom")
        return _finding(path, 85, Severity.CRITICAL)

    paths = ["unreadable.js", "broken.js", "ok.js"]
    engine = ScanEngine(
        ScanConfig(concurrency=2), inspector=inspector, isolate=False
    )
    result = engine.run(paths)

    assert result.processed == 3
    assert result.skipped == ()
    assert [f.file_path for f in result.findings] == ["ok.js"]


def test_findings_sorted_by_score_then_path():
    scores = {"b.js": 70, "a.js": 70, "c.js": 95, "d.js": 45}

    def inspector(path: str, cfg: ScanConfig):
        return _finding(path, scores[path], classify(scores[path]))

    engine = ScanEngine(
        ScanConfig(concurrency=3), inspector=inspector, isolate=False
    )
    result = engine.run(list(scores))
    assert [f.file_path for f in result.findings] == ["c.js", "a.js", "b.js", "d.js"]


def test_empty_tree(tmp_path: Path, config: ScanConfig):
    result = ScanEngine(config).scan(tmp_path)
    assert result.total == 0
    assert result.processed == 0
    assert summary(result) == {"critical": 0, "high": 0, "medium": 0, "low": 0}


def test_missing_root_is_fatal(tmp_path: Path, config: ScanConfig):
    with pytest.raises(ScannerFatalError):
        ScanEngine(config).scan(tmp_path / "nope")


def test_file_root_is_fatal(tmp_path: Path, config: ScanConfig):
    path = tmp_path / "index.js"
    path.write_text("eval(x)")
    with pytest.raises(ScannerFatalError):
        ScanEngine(config).scan(path)


def test_progress_callback(package_tree: Path, config: ScanConfig):
    updates: list[ScanProgress] = []
    engine = ScanEngine(config, on_progress=updates.append, progress_interval=0.01)
    result = engine.scan(package_tree)

    assert updates
    final = updates[-1]
    assert final.processed == final.total == result.total
    assert final.findings == len(result.findings)
    assert final.percent == 100
    assert all(u.processed <= u.total for u in updates)


def test_long_identifier_file_meets_deadline(tmp_path: Path):
    root = tmp_path / "node_modules" / "pkg"
    root.mkdir(parents=True)
    (root / "big.js").write_text("var x='" + "a" * 400_000 + "';\n")
    for i in range(4):
        (root / f"small{i}.js").write_text(f"fetch('http://217.69.3.218/{i}');\n")

    config = ScanConfig(concurrency=2, per_file_timeout_ms=2_000)
    result = ScanEngine(config).scan(tmp_path / "node_modules")

    assert result.skipped == ()
    assert result.processed == 5
    assert "big.js" not in _names(result)


def test_stuck_inspection_is_killed_at_deadline():
    config = ScanConfig(concurrency=2, per_file_timeout_ms=500)
    paths = ["stuck.js", "a.js", "b.js", "c.js"]
    start = time.monotonic()
    result = ScanEngine(config, inspector=_stuck_on_one_file).run(paths)

    assert time.monotonic() - start < 30
    assert result.processed == 4
    assert [(s.file_path, s.reason) for s in result.skipped] == [
        ("stuck.js", SkipReason.TIMEOUT)
    ]


def test_isolated_engine_rejects_local_inspector(config: ScanConfig):
    def local(path: str, cfg: ScanConfig):
        return None

    with pytest.raises(ValueError, match="child process"):
        ScanEngine(config, inspector=local)
