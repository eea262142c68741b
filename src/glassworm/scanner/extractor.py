"""Signal extraction — dispatch by file kind, then derive the combined signal."""

from __future__ import annotations

from glassworm.scanner.indicators import Indicators, default_indicators
from glassworm.scanner.languages.javascript import scan_javascript
from glassworm.scanner.languages.manifest import scan_manifest
from glassworm.scanner.models import FileKind, Signal, SignalSet

# Signals counted towards MULTIPLE_SIGNALS. Low-weight and manifest-only
# flags are left out.
CANONICAL_SIGNALS: frozenset[Signal] = frozenset(
    {
        Signal.INVISIBLE_IN_IDENTIFIER,
        Signal.SUSPICIOUS_WORDS,
        Signal.NETWORK_FUNCTIONS,
        Signal.DANGEROUS_FUNCTIONS,
        Signal.SHELL_DOWNLOAD,
        Signal.HARDCODED_IP,
        Signal.BASE64_URL_DECODED,
        Signal.SOLANA_BLOCKCHAIN_C2,
        Signal.GOOGLE_CALENDAR_C2,
        Signal.CREDENTIAL_THEFT,
        Signal.CRYPTO_WALLET_TARGETING,
    }
)


def extract(
    text: str,
    kind: FileKind,
    indicators: Indicators | None = None,
) -> SignalSet:
    """Evaluate every detector for ``kind`` against decoded file text."""
    if kind is FileKind.PACKAGE_MANIFEST:
        signals = scan_manifest(text)
    else:
        signals = scan_javascript(text, indicators or default_indicators())

    signals.fire(
        Signal.MULTIPLE_SIGNALS,
        sum(1 for s in CANONICAL_SIGNALS if s in signals),
    )
    return signals
