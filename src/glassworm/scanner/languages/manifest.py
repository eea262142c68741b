"""package.json analyzer — lifecycle scripts, bin entries, editor engines."""

from __future__ import annotations

import json
import logging
from typing import Any

from glassworm.scanner import patterns
from glassworm.scanner.models import Signal, SignalSet

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"


def scan_manifest(content: str) -> SignalSet:
    """Evaluate manifest rules; malformed JSON yields no signals."""
    signals = SignalSet()
    try:
        manifest = json.loads(content)
    except (ValueError, RecursionError) as e:
        logger.debug("Unparseable manifest: %s", e)
        return signals
    if not isinstance(manifest, dict):
        return signals

    _check_scripts(manifest.get("scripts"), signals)

    bin_entries = manifest.get("bin")
    if isinstance(bin_entries, dict) and bin_entries:
        signals.fire(Signal.EXECUTABLE_BIN)

    engines = manifest.get("engines")
    if isinstance(engines, dict) and engines.get("vscode"):
        evidence: dict[str, Any] = {"vsCodeEngine": engines["vscode"]}
        if manifest.get("activationEvents"):
            evidence["activationEvents"] = manifest["activationEvents"]
        signals.fire(Signal.VSCODE_EXTENSION_API, **evidence)

    return signals


def _check_scripts(scripts: Any, signals: SignalSet) -> None:
    if not isinstance(scripts, dict):
        return
    entries = {k: v for k, v in scripts.items() if isinstance(v, str)}

    lifecycle = {
        name: body
        for name, body in entries.items()
        if patterns.LIFECYCLE_SCRIPT.fullmatch(name) and _runs_network_or_exec(body)
    }
    if lifecycle:
        signals.fire(Signal.PKG_POST_INSTALL, pkgScripts=lifecycle)
        return

    exec_net = [
        (name, body)
        for name, body in entries.items()
        if patterns.HTTP_URL.search(body) and patterns.SHELL_OR_DOWNLOADER.search(body)
    ]
    if exec_net:
        signals.fire(Signal.PKG_EXEC_NETWORK, pkgExecNet=dict(exec_net[:5]))


def _runs_network_or_exec(body: str) -> bool:
    network = patterns.HTTP_URL.search(body) or patterns.has_shell_download(body)
    spawn = patterns.DANGEROUS_FUNCTIONS.search(body) or patterns.INTERPRETER.search(
        body
    )
    return bool(network or spawn)
