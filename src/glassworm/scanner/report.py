"""Report aggregation — ordering, grouping and the exported JSON document."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from glassworm.scanner.models import Finding, ScanResult, Severity

if TYPE_CHECKING:
    from glassworm.config import ScanConfig

logger = logging.getLogger(__name__)

# Classes shown in the console listing
PRINTABLE_SEVERITIES = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM)
MAX_PRINTED_FINDINGS = 500


def sort_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Score descending, then path ascending."""
    return sorted(findings, key=lambda f: (-f.score, f.file_path))


def group_by_severity(findings: Iterable[Finding]) -> dict[Severity, list[Finding]]:
    """Group findings by class, preserving the order they come in."""
    grouped: dict[Severity, list[Finding]] = {}
    for finding in findings:
        grouped.setdefault(finding.severity, []).append(finding)
    return grouped


def count_by_severity(findings: Iterable[Finding]) -> dict[Severity, int]:
    counts = {severity: 0 for severity in Severity}
    for finding in findings:
        counts[finding.severity] += 1
    return counts


def summary(result: ScanResult) -> dict[str, int]:
    """Counts keyed by class name, all four classes present."""
    return {s.value: result.counts_by_severity.get(s, 0) for s in Severity}


def printable_findings(
    result: ScanResult, limit: int = MAX_PRINTED_FINDINGS
) -> list[Finding]:
    """Critical, high and medium findings, highest first, at most ``limit``."""
    grouped = group_by_severity(result.findings)
    ordered = [f for s in PRINTABLE_SEVERITIES for f in grouped.get(s, [])]
    return ordered[:limit]


def finding_to_dict(finding: Finding) -> dict[str, Any]:
    return {
        "file": finding.file_path,
        "level": finding.severity.value,
        "score": finding.score,
        "signals": finding.signals.names(),
        "details": dict(finding.evidence),
    }


def build_report(result: ScanResult, config: ScanConfig) -> dict[str, Any]:
    """The JSON document written after a scan."""
    grouped = group_by_severity(result.findings)
    return {
        "scannedPath": result.directory,
        "timestamp": datetime.fromtimestamp(result.timestamp, tz=timezone.utc)
        .isoformat()
        .replace("+00:00", "Z"),
        "threshold": {
            "minScore": config.min_score,
            "includeLow": config.include_low,
        },
        "summary": summary(result),
        "findings": {
            severity.value: [finding_to_dict(f) for f in grouped[severity]]
            for severity in Severity
            if severity in grouped
        },
        "skipped": [
            {"file": s.file_path, "reason": s.reason.value} for s in result.skipped
        ],
        "stats": {
            "processed": result.processed,
            "total": result.total,
            "elapsedMs": result.elapsed_ms,
        },
    }


def write_json_report(report: Mapping[str, Any], path: str | Path) -> Path:
    path = Path(path)
    path.write_text(
        json.dumps(report, indent=2, ensure_ascii=False, default=str),
        encoding="utf-8",
    )
    logger.info("Report written to %s", path)
    return path


def exit_code_for(counts: Mapping[str, int], fail_on: str) -> int:
    """1 if any class at or above ``fail_on`` has findings, else 0."""
    if fail_on == "none":
        return 0
    threshold = Severity(fail_on)
    failing = [s for s in Severity if s.rank <= threshold.rank]
    return 1 if any(counts.get(s.value, 0) > 0 for s in failing) else 0
