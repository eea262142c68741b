"""CLI command: glassworm scan <directory> — malware indicator scan."""

from __future__ import annotations

import json
import os
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from glassworm.config import FAIL_ON_CHOICES, RunSettings, ScanConfig
from glassworm.scanner.engine import ScanEngine
from glassworm.scanner.errors import ScannerFatalError
from glassworm.scanner.indicators import load_indicators
from glassworm.scanner.models import Finding, ScanProgress, ScanResult, Severity
from glassworm.scanner.report import (
    build_report,
    exit_code_for,
    printable_findings,
    summary,
    write_json_report,
)

console = Console(stderr=True)

_SEVERITY_COLORS = {
    Severity.CRITICAL: "red",
    Severity.HIGH: "magenta",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
}

# Skipped files listed on the console
_MAX_LISTED_SKIPS = 10


@click.command()
@click.argument("directory", default="./node_modules", type=click.Path())
@click.option(
    "--min-score",
    type=int,
    help="Minimum score for low findings [env: MIN_SCORE].",
)
@click.option(
    "--include-low",
    is_flag=True,
    help="Report low-severity findings [env: INCLUDE_LOW=1].",
)
@click.option(
    "--timeout",
    "timeout_ms",
    type=int,
    help="Per-file timeout in ms [env: INSPECT_TIMEOUT].",
)
@click.option("--concurrency", "-j", type=int, help="Number of workers (at least 2).")
@click.option("--max-bytes", type=int, help="Skip files larger than this.")
@click.option(
    "--fail-on",
    type=click.Choice(FAIL_ON_CHOICES, case_sensitive=False),
    help="Exit 1 if findings at or above this level exist [env: FAIL_ON].",
)
@click.option("--ci", is_flag=True, help="CI mode: no live progress [env: CI=true].")
@click.option(
    "--output",
    "-o",
    "report_path",
    type=click.Path(dir_okay=False),
    help="JSON report path.",
)
@click.option(
    "--indicators",
    "indicators_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file with extra C2 IPs, wallets and wallet extensions.",
)
@click.option("--exclude", "-e", multiple=True, help="Directory or file names to skip.")
def scan(
    directory: str,
    min_score: int | None,
    include_low: bool,
    timeout_ms: int | None,
    concurrency: int | None,
    max_bytes: int | None,
    fail_on: str | None,
    ci: bool,
    report_path: str | None,
    indicators_path: str | None,
    exclude: tuple[str, ...],
) -> None:
    """Scan a package tree for GlassWorm-style malware indicators."""
    try:
        config = ScanConfig.from_env(
            min_score=min_score,
            include_low=include_low or None,
            per_file_timeout_ms=timeout_ms,
            concurrency=concurrency,
            max_file_bytes=max_bytes,
            indicators=load_indicators(indicators_path) if indicators_path else None,
        )
        settings = RunSettings.from_env(
            fail_on=fail_on.lower() if fail_on else None,
            ci_mode=ci or None,
            report_path=report_path,
        )
    except (ValueError, OSError) as e:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        sys.exit(2)

    console.print(
        f"[bold]GlassWorm[/bold] scanning [cyan]{escape(directory)}[/cyan] "
        f"with {config.concurrency} workers\n"
    )

    try:
        result = _run_scan(config, settings, directory, exclude)
    except ScannerFatalError as e:
        console.print(f"[red]Scan failed:[/red] {escape(str(e))}")
        sys.exit(2)

    _print_summary(result)
    _print_skipped(result)
    _print_findings(result, os.path.normpath(directory))

    report = build_report(result, config)
    try:
        path = write_json_report(report, settings.report_path)
    except OSError as e:
        console.print(f"[red]Cannot write report:[/red] {escape(str(e))}")
        sys.exit(2)
    console.print(f"\nReport written to [cyan]{escape(str(path))}[/cyan]")

    counts = summary(result)
    exit_code = exit_code_for(counts, settings.fail_on)
    if settings.fail_on != "none":
        if exit_code:
            console.print(
                f"\n[red]Scan failed:[/red] {counts['critical']} critical, "
                f"{counts['high']} high, {counts['medium']} medium, "
                f"{counts['low']} low (threshold: {settings.fail_on})"
            )
        else:
            console.print(
                f"\n[green]Scan passed:[/green] no findings at or above "
                f"{settings.fail_on}"
            )
    sys.exit(exit_code)


def _run_scan(
    config: ScanConfig,
    settings: RunSettings,
    directory: str,
    exclude: tuple[str, ...],
) -> ScanResult:
    if settings.ci_mode:
        return ScanEngine(config).scan(directory, exclude)

    with console.status("Collecting files...") as status:

        def on_progress(progress: ScanProgress) -> None:
            status.update(_format_progress(progress))

        return ScanEngine(config, on_progress=on_progress).scan(directory, exclude)


def _format_progress(progress: ScanProgress) -> str:
    return (
        f"Progress: {progress.processed}/{progress.total} ({progress.percent}%) | "
        f"{int(progress.elapsed)}s elapsed | {progress.findings} findings | "
        f"{progress.skipped} skipped"
    )


def _print_summary(result: ScanResult) -> None:
    console.print(
        f"Scanned {result.processed}/{result.total} files in "
        f"{result.elapsed_ms / 1000:.2f}s | {len(result.findings)} findings | "
        f"{len(result.skipped)} skipped"
    )

    table = Table(title=f"Summary @ {escape(result.directory)}", show_header=True)
    table.add_column("Severity", style="bold")
    table.add_column("Count", justify="right")
    for severity in Severity:
        color = _SEVERITY_COLORS[severity]
        table.add_row(
            f"[{color}]{severity.value}[/{color}]",
            str(result.counts_by_severity.get(severity, 0)),
        )
    console.print(table)


def _print_skipped(result: ScanResult) -> None:
    if not result.skipped:
        return
    console.print(f"\n{len(result.skipped)} files skipped due to timeout:")
    for record in result.skipped[:_MAX_LISTED_SKIPS]:
        console.print(f"  {escape(record.file_path)}")
    if len(result.skipped) > _MAX_LISTED_SKIPS:
        console.print(f"  ... and {len(result.skipped) - _MAX_LISTED_SKIPS} more")


def _print_findings(result: ScanResult, base_dir: str) -> None:
    findings = printable_findings(result)
    if not findings:
        console.print("\n[green]No findings at medium or above.[/green]")
        return

    table = Table(title="Top findings", show_lines=True)
    table.add_column("Level", style="bold", width=9)
    table.add_column("Score", justify="right")
    table.add_column("File", style="cyan")
    table.add_column("Signals")

    for finding in findings:
        color = _SEVERITY_COLORS[finding.severity]
        signals = ", ".join(finding.signals.names())
        details = _describe(finding)
        table.add_row(
            f"[{color}]{finding.severity.value.upper()}[/{color}]",
            str(finding.score),
            escape(_shorten_path(finding.file_path, base_dir)),
            escape(signals + ("\n" + details if details else "")),
        )
    console.print(table)


def _describe(finding: Finding) -> str:
    """One line per evidence item worth showing inline."""
    ev = finding.evidence
    lines = []
    if ev.get("invisIdentifiers"):
        lines.append("invisIdentifiers: " + ", ".join(ev["invisIdentifiers"]))
    if ev.get("ips"):
        lines.append("ips: " + ", ".join(ev["ips"]))
    if ev.get("pkgScripts"):
        lines.append("pkgScripts: " + json.dumps(ev["pkgScripts"]))
    if ev.get("pkgExecNet"):
        lines.append("pkgExecNet: " + json.dumps(ev["pkgExecNet"]))
    if ev.get("base64"):
        lines.append(
            "base64-decoded: " + " | ".join(h["decodedPreview"] for h in ev["base64"])
        )
    if ev.get("suspiciousWords"):
        words = ev["suspiciousWords"]
        lines.append(f"suspiciousWords: {words['match']} …{words['snippet']}…")
    return "\n".join(lines)


def _shorten_path(file_path: str, base_dir: str) -> str:
    """Shorten file path relative to scan directory."""
    if file_path.startswith(base_dir):
        return file_path[len(base_dir) :].lstrip("/")
    return file_path
