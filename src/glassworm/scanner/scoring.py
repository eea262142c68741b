"""Severity scoring — the single source of truth for weights and classes."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from glassworm.scanner.models import Severity, Signal, SignalSet

MAX_SCORE = 100

# MULTIPLE_SIGNALS needs at least this many canonical signals to count
MULTIPLE_SIGNALS_THRESHOLD = 3

WEIGHTS: Mapping[Signal, int] = MappingProxyType(
    {
        Signal.KNOWN_C2_INFRASTRUCTURE: 60,
        Signal.SOLANA_BLOCKCHAIN_C2: 50,
        Signal.GOOGLE_CALENDAR_C2: 50,
        Signal.BASE64_URL_DECODED: 45,
        Signal.INVISIBLE_IN_IDENTIFIER: 40,
        Signal.PKG_POST_INSTALL: 40,
        Signal.CREDENTIAL_THEFT: 35,
        Signal.SHELL_DOWNLOAD: 35,
        Signal.CRYPTO_WALLET_TARGETING: 30,
        Signal.PKG_EXEC_NETWORK: 30,
        Signal.DANGEROUS_FUNCTIONS: 25,
        Signal.SUSPICIOUS_WORDS: 25,
        Signal.VSCODE_EXTENSION_API: 20,
        Signal.HARDCODED_IP: 20,
        Signal.NETWORK_FUNCTIONS: 15,
        Signal.MULTIPLE_SIGNALS: 15,
        Signal.INVISIBLE_ANYWHERE: 10,
        Signal.EXECUTABLE_BIN: 10,
    }
)

# Lower bound (inclusive) of each class, highest first
SEVERITY_THRESHOLDS: tuple[tuple[int, Severity], ...] = (
    (80, Severity.CRITICAL),
    (60, Severity.HIGH),
    (40, Severity.MEDIUM),
)


def score(signals: SignalSet | Mapping[Signal, int]) -> int:
    """Sum the weights of fired signals, capped at 100."""
    values = signals.values if isinstance(signals, SignalSet) else signals
    total = 0
    for signal, value in values.items():
        if signal is Signal.MULTIPLE_SIGNALS:
            if value >= MULTIPLE_SIGNALS_THRESHOLD:
                total += WEIGHTS[signal]
        elif value:
            total += WEIGHTS[signal]
    return min(total, MAX_SCORE)


def classify(score: int) -> Severity:
    """Map a score to its severity class."""
    for threshold, severity in SEVERITY_THRESHOLDS:
        if score >= threshold:
            return severity
    return Severity.LOW
