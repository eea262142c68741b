"""Scanner data models — signals, findings and scan results."""

from __future__ import annotations

import enum
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


class Severity(enum.Enum):
    """Finding severity class, derived from the score."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 for critical up to 3 for low."""
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW)


class FileKind(enum.Enum):
    """How a file's content is analyzed."""

    SOURCE = "source"
    PACKAGE_MANIFEST = "packageManifest"


class SkipReason(enum.Enum):
    """Why a dispatched file produced neither a finding nor a clean result."""

    TIMEOUT = "timeout"
    IO_ERROR = "ioError"
    BINARY = "binary"
    OUT_OF_SCOPE = "outOfScope"


class Signal(enum.Enum):
    """Every detector the extractor knows about.

    Values are the names used in reports.
    """

    INVISIBLE_IN_IDENTIFIER = "invisInIdentifier"
    INVISIBLE_ANYWHERE = "invisAnywhere"
    SUSPICIOUS_WORDS = "suspiciousWords"
    NETWORK_FUNCTIONS = "netFuncs"
    DANGEROUS_FUNCTIONS = "dangerous"
    SHELL_DOWNLOAD = "shellDownload"
    HARDCODED_IP = "hardcodedIp"
    BASE64_URL_DECODED = "b64UrlDecoded"
    PKG_POST_INSTALL = "pkgPostInstall"
    PKG_EXEC_NETWORK = "pkgExecNet"
    EXECUTABLE_BIN = "fileIsExecutableScript"
    KNOWN_C2_INFRASTRUCTURE = "knownC2Infrastructure"
    SOLANA_BLOCKCHAIN_C2 = "solanaBlockchainC2"
    GOOGLE_CALENDAR_C2 = "googleCalendarC2"
    CREDENTIAL_THEFT = "credentialTheft"
    VSCODE_EXTENSION_API = "vsCodeExtensionAPI"
    CRYPTO_WALLET_TARGETING = "cryptoWalletTargeting"
    MULTIPLE_SIGNALS = "multipleSignals"


@dataclass
class SignalSet:
    """Signals fired for one file, plus evidence keyed by detail name.

    ``values`` only ever holds truthy entries: booleans are stored as 1 and
    ``MULTIPLE_SIGNALS`` as its count. Once scored, the set is replaced by
    its ``freeze()`` copy, whose mappings are read-only.
    """

    values: Mapping[Signal, int] = field(default_factory=dict)
    evidence: Mapping[str, Any] = field(default_factory=dict)

    @property
    def frozen(self) -> bool:
        return isinstance(self.values, MappingProxyType)

    def fire(self, signal: Signal, value: int = 1, **evidence: Any) -> None:
        if self.frozen:
            raise TypeError("cannot fire signals on a frozen SignalSet")
        if value:
            self.values[signal] = value
        self.evidence.update(evidence)

    def freeze(self) -> SignalSet:
        """Read-only copy of this set."""
        return SignalSet(
            values=MappingProxyType(dict(self.values)),
            evidence=MappingProxyType(dict(self.evidence)),
        )

    def __reduce__(self):
        # Mapping proxies cannot be pickled; findings cross process boundaries
        return _rebuild_signal_set, (
            dict(self.values),
            dict(self.evidence),
            self.frozen,
        )

    def get(self, signal: Signal) -> int:
        return self.values.get(signal, 0)

    def __contains__(self, signal: object) -> bool:
        return signal in self.values

    def __len__(self) -> int:
        return len(self.values)

    def names(self) -> dict[str, int | bool]:
        """Report form: camelCase names, booleans for on/off detectors."""
        return {
            s.value: (v if s is Signal.MULTIPLE_SIGNALS else True)
            for s, v in self.values.items()
        }


def _rebuild_signal_set(
    values: dict[Signal, int], evidence: dict[str, Any], frozen: bool
) -> SignalSet:
    signals = SignalSet(values=values, evidence=evidence)
    return signals.freeze() if frozen else signals


@dataclass(frozen=True)
class Finding:
    """A scored file that passed the severity filter."""

    file_path: str
    score: int
    severity: Severity
    signals: SignalSet
    kind: FileKind = FileKind.SOURCE

    @property
    def evidence(self) -> Mapping[str, Any]:
        return self.signals.evidence


@dataclass(frozen=True)
class SkipRecord:
    """A dispatched file whose inspection did not complete normally."""

    file_path: str
    reason: SkipReason


@dataclass(frozen=True)
class ScanProgress:
    """Point-in-time view of a running scan."""

    processed: int
    total: int
    elapsed: float
    findings: int
    skipped: int

    @property
    def percent(self) -> int:
        return int(self.processed * 100 / self.total) if self.total else 0


@dataclass(frozen=True)
class ScanResult:
    """Aggregate result of a scan."""

    directory: str
    findings: tuple[Finding, ...] = ()
    skipped: tuple[SkipRecord, ...] = ()
    counts_by_severity: dict[Severity, int] = field(default_factory=dict)
    processed: int = 0
    total: int = 0
    elapsed_ms: int = 0
    timestamp: float = field(default_factory=time.time)
