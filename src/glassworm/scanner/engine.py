"""Scan engine — runs the file inspector over a bounded worker pool."""

from __future__ import annotations

import logging
import multiprocessing
import multiprocessing.pool
import os
import pickle
import queue
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, wait
from pathlib import Path

from glassworm.config import ScanConfig
from glassworm.scanner.errors import ScannerFatalError
from glassworm.scanner.inspector import inspect
from glassworm.scanner.models import (
    Finding,
    ScanProgress,
    ScanResult,
    SkipReason,
    SkipRecord,
)
from glassworm.scanner.report import count_by_severity, sort_findings
from glassworm.scanner.walk import iter_candidate_files

logger = logging.getLogger(__name__)

Inspector = Callable[[str, ScanConfig], Finding | None]

# Inspection processes are started fresh; forking would copy the worker threads
_MP_CONTEXT = multiprocessing.get_context("spawn")


class _DeadlineExceeded(Exception):
    """An inspection did not finish within the per-file timeout."""


class _ThreadRunner:
    """Runs each inspection on a daemon thread.

    A timed-out thread is abandoned rather than stopped, so an inspection
    stuck in C code keeps holding the GIL. Only for inspectors that cannot
    be sent to a child process.
    """

    def __init__(self, inspector: Inspector, config: ScanConfig) -> None:
        self._inspector = inspector
        self._config = config

    def inspect(self, path: str) -> Finding | None:
        future: Future = Future()

        def _runner() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self._inspector(path, self._config))
            except BaseException as exc:
                future.set_exception(exc)

        threading.Thread(target=_runner, name="glassworm-inspect", daemon=True).start()
        done, _ = wait((future,), timeout=self._config.per_file_timeout)
        if not done:
            raise _DeadlineExceeded(path)
        return future.result()

    def close(self) -> None:
        pass


# Set in each inspection process by the pool initializer
_child_inspector: Inspector | None = None
_child_config: ScanConfig | None = None


def _init_child(inspector: Inspector, config: ScanConfig) -> None:
    global _child_inspector, _child_config
    _child_inspector = inspector
    _child_config = config


def _inspect_in_child(path: str) -> Finding | None:
    return _child_inspector(path, _child_config)


def _child_ready() -> bool:
    return True


class _ProcessRunner:
    """Runs inspections in one child process, killed and replaced on timeout."""

    def __init__(self, inspector: Inspector, config: ScanConfig) -> None:
        self._inspector = inspector
        self._config = config
        self._pool: multiprocessing.pool.Pool | None = None

    def inspect(self, path: str) -> Finding | None:
        pool = self._ensure_pool()
        pending = pool.apply_async(_inspect_in_child, (path,))
        try:
            return pending.get(timeout=self._config.per_file_timeout)
        except multiprocessing.TimeoutError:
            pool.terminate()
            self._pool = None
            raise _DeadlineExceeded(path) from None

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool.join()
            self._pool = None

    def _ensure_pool(self) -> multiprocessing.pool.Pool:
        if self._pool is None:
            self._pool = _MP_CONTEXT.Pool(
                processes=1,
                initializer=_init_child,
                initargs=(self._inspector, self._config),
            )
            # Process startup is not charged to the first file's deadline
            self._pool.apply(_child_ready)
        return self._pool


class _ScanState:
    """Results shared by the workers. Thread-safe: guarded by a lock."""

    def __init__(self, total: int) -> None:
        self.total = total
        self.start = time.monotonic()
        self._lock = threading.Lock()
        self._findings: list[Finding] = []
        self._skipped: list[SkipRecord] = []
        self._processed = 0

    def complete(self, finding: Finding | None) -> None:
        with self._lock:
            if finding is not None:
                self._findings.append(finding)
            self._processed += 1

    def skip(self, record: SkipRecord) -> None:
        with self._lock:
            self._skipped.append(record)
            self._processed += 1

    def snapshot(self) -> ScanProgress:
        with self._lock:
            return ScanProgress(
                processed=self._processed,
                total=self.total,
                elapsed=time.monotonic() - self.start,
                findings=len(self._findings),
                skipped=len(self._skipped),
            )

    def result(self, directory: str) -> ScanResult:
        with self._lock:
            findings = sort_findings(self._findings)
            skipped = sorted(self._skipped, key=lambda s: s.file_path)
            processed = self._processed
        return ScanResult(
            directory=directory,
            findings=tuple(findings),
            skipped=tuple(skipped),
            counts_by_severity=count_by_severity(findings),
            processed=processed,
            total=self.total,
            elapsed_ms=int((time.monotonic() - self.start) * 1000),
        )


class ScanEngine:
    """Runs inspections concurrently with a per-file deadline.

    With ``isolate`` (the default) every worker inspects files in its own
    child process, which is killed when a file overruns the deadline. The
    inspector must then be picklable, i.e. a module-level function. Without
    it, inspections run on threads and an overrunning one is abandoned.
    """

    def __init__(
        self,
        config: ScanConfig,
        inspector: Inspector = inspect,
        on_progress: Callable[[ScanProgress], None] | None = None,
        progress_interval: float = 0.5,
        isolate: bool = True,
    ) -> None:
        if isolate:
            try:
                pickle.dumps(inspector)
            except (pickle.PicklingError, AttributeError, TypeError) as e:
                raise ValueError(
                    f"Inspector cannot run in a child process: {e}"
                ) from e
        self._config = config
        self._inspector = inspector
        self._on_progress = on_progress
        self._progress_interval = progress_interval
        self._isolate = isolate

    @property
    def config(self) -> ScanConfig:
        return self._config

    def scan(self, root: str | Path, exclude: Iterable[str] = ()) -> ScanResult:
        """Enumerate candidate files under ``root`` and inspect them.

        Raises ScannerFatalError if ``root`` is not a readable directory.
        """
        root = Path(root)
        if not root.is_dir():
            raise ScannerFatalError(f"Scan root is not a directory: {root}")
        try:
            with os.scandir(root):
                pass
        except OSError as e:
            raise ScannerFatalError(f"Cannot read scan root {root}: {e}") from e

        paths = list(iter_candidate_files(root, exclude))
        return self.run(paths, directory=str(root.resolve()))

    def run(self, paths: Sequence[str], directory: str = "") -> ScanResult:
        """Inspect ``paths`` on ``config.concurrency`` workers."""
        work: queue.Queue[str] = queue.Queue()
        for path in paths:
            work.put(path)

        state = _ScanState(total=len(paths))
        logger.info(
            "Inspecting %d files with %d workers", state.total, self._config.concurrency
        )

        stop_progress = threading.Event()
        reporter = None
        if self._on_progress is not None:
            reporter = threading.Thread(
                target=self._report_progress,
                args=(state, stop_progress),
                name="glassworm-progress",
                daemon=True,
            )
            reporter.start()

        workers = [
            threading.Thread(
                target=self._worker,
                args=(work, state),
                name=f"glassworm-worker-{i}",
                daemon=True,
            )
            for i in range(self._config.concurrency)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        stop_progress.set()
        if reporter is not None:
            reporter.join()
            self._on_progress(state.snapshot())

        result = state.result(directory)
        logger.info(
            "Scan finished: %d/%d files, %d findings, %d skipped in %dms",
            result.processed,
            result.total,
            len(result.findings),
            len(result.skipped),
            result.elapsed_ms,
        )
        return result

    def _worker(self, work: queue.Queue[str], state: _ScanState) -> None:
        runner = self._new_runner()
        try:
            while True:
                try:
                    path = work.get_nowait()
                except queue.Empty:
                    return
                self._process(path, state, runner)
        finally:
            runner.close()

    def _new_runner(self) -> _ProcessRunner | _ThreadRunner:
        if self._isolate:
            return _ProcessRunner(self._inspector, self._config)
        return _ThreadRunner(self._inspector, self._config)

    def _process(
        self, path: str, state: _ScanState, runner: _ProcessRunner | _ThreadRunner
    ) -> None:
        try:
            finding = runner.inspect(path)
        except _DeadlineExceeded:
            logger.debug(
                "Timed out after %dms: %s", self._config.per_file_timeout_ms, path
            )
            state.skip(SkipRecord(file_path=path, reason=SkipReason.TIMEOUT))
            return
        except OSError as e:
            logger.debug("Skipping %s: %s", path, e)
            finding = None
        except Exception:
            logger.debug("Inspection failed for %s", path, exc_info=True)
            finding = None
        state.complete(finding)

    def _report_progress(self, state: _ScanState, stop: threading.Event) -> None:
        while not stop.wait(timeout=self._progress_interval):
            self._on_progress(state.snapshot())
