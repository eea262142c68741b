"""Scan configuration — defaults, validation and environment overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

import psutil

from glassworm.scanner.indicators import Indicators, default_indicators
from glassworm.scanner.models import Severity

DEFAULT_MAX_FILE_BYTES = 3 * 1024 * 1024
DEFAULT_REPORT_PATH = "glassworm-scan-report.json"
FAIL_ON_CHOICES = ("critical", "high", "medium", "low", "none")


def available_parallelism() -> int:
    """CPUs this process may run on."""
    try:
        return len(psutil.Process().cpu_affinity())
    except (AttributeError, psutil.Error, OSError):
        # cpu_affinity() is not available on macOS
        return psutil.cpu_count(logical=True) or 1


def default_concurrency() -> int:
    return max(2, available_parallelism() // 2)


@dataclass(frozen=True)
class ScanConfig:
    """Settings for one scan. Immutable once the scan starts."""

    min_score: int = 60
    include_low: bool = False
    per_file_timeout_ms: int = 15_000
    concurrency: int = field(default_factory=default_concurrency)
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    indicators: Indicators = field(default_factory=default_indicators)

    def __post_init__(self) -> None:
        if self.concurrency < 2:
            raise ValueError(f"concurrency must be at least 2, got {self.concurrency}")
        if self.per_file_timeout_ms <= 0:
            raise ValueError("per-file timeout must be positive")
        if self.max_file_bytes <= 0:
            raise ValueError("max file size must be positive")

    @property
    def per_file_timeout(self) -> float:
        """Per-file deadline in seconds."""
        return self.per_file_timeout_ms / 1000

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides,
    ) -> ScanConfig:
        """Build a config from environment variables; keyword overrides win."""
        env = os.environ if environ is None else environ
        values: dict = {}

        if env.get("MIN_SCORE"):
            values["min_score"] = int(env["MIN_SCORE"])
        if "INCLUDE_LOW" in env:
            values["include_low"] = env["INCLUDE_LOW"] == "1"
        if env.get("INSPECT_TIMEOUT"):
            values["per_file_timeout_ms"] = int(env["INSPECT_TIMEOUT"])
        if env.get("SCAN_CONCURRENCY"):
            values["concurrency"] = int(env["SCAN_CONCURRENCY"])
        if env.get("MAX_FILE_BYTES"):
            values["max_file_bytes"] = int(env["MAX_FILE_BYTES"])

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass(frozen=True)
class RunSettings:
    """CLI-level settings that do not affect detection."""

    fail_on: str = "critical"
    ci_mode: bool = False
    report_path: str = DEFAULT_REPORT_PATH

    def __post_init__(self) -> None:
        if self.fail_on not in FAIL_ON_CHOICES:
            raise ValueError(
                f"fail-on must be one of {', '.join(FAIL_ON_CHOICES)}, got {self.fail_on!r}"
            )

    @property
    def fail_on_severity(self) -> Severity | None:
        return None if self.fail_on == "none" else Severity(self.fail_on)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides,
    ) -> RunSettings:
        env = os.environ if environ is None else environ
        values: dict = {
            "ci_mode": env.get("CI") == "true" or env.get("CI_MODE") == "1",
        }
        if env.get("FAIL_ON"):
            values["fail_on"] = env["FAIL_ON"].lower()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
