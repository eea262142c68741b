"""JavaScript/TypeScript analyzer — regex detectors over raw source text."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable

from glassworm.scanner import patterns
from glassworm.scanner.content import is_binary
from glassworm.scanner.indicators import Indicators
from glassworm.scanner.models import Signal, SignalSet

# Longer sources are analyzed on this prefix only
MAX_SOURCE_CHARS = 500_000

# Base64 candidates examined per file
MAX_BASE64_CANDIDATES = 50

_SNIPPET_SPAN = 140

Detector = Callable[[str, SignalSet, Indicators], None]


def scan_javascript(content: str, indicators: Indicators) -> SignalSet:
    """Run every source detector over the (truncated) file content."""
    text = content[:MAX_SOURCE_CHARS]
    signals = SignalSet()
    for detector in DETECTORS:
        detector(text, signals, indicators)
    return signals


def _detect_invisible(text: str, signals: SignalSet, indicators: Indicators) -> None:
    identifiers = patterns.INVISIBLE_IDENTIFIER.findall(text)
    if identifiers:
        signals.fire(
            Signal.INVISIBLE_IN_IDENTIFIER,
            invisIdentifiers=patterns.unique(identifiers, 5),
        )
    elif patterns.INVISIBLE.search(text):
        signals.fire(Signal.INVISIBLE_ANYWHERE)


def _detect_suspicious_words(
    text: str, signals: SignalSet, indicators: Indicators
) -> None:
    m = patterns.SUSPICIOUS_WORDS.search(text)
    if m:
        signals.fire(
            Signal.SUSPICIOUS_WORDS,
            suspiciousWords={"match": m.group(0), "snippet": snippet(text, m.start())},
        )


def _detect_functions(text: str, signals: SignalSet, indicators: Indicators) -> None:
    if patterns.NETWORK_FUNCTIONS.search(text):
        signals.fire(Signal.NETWORK_FUNCTIONS)
    if patterns.DANGEROUS_FUNCTIONS.search(text):
        signals.fire(Signal.DANGEROUS_FUNCTIONS)
    if patterns.has_shell_download(text):
        signals.fire(Signal.SHELL_DOWNLOAD)


def _detect_ips(text: str, signals: SignalSet, indicators: Indicators) -> None:
    ips = [ip for ip in patterns.IPV4.findall(text) if not patterns.is_private_ip(ip)]
    if not ips:
        return
    signals.fire(Signal.HARDCODED_IP, ips=patterns.unique(ips, 8))
    known = [ip for ip in ips if ip in indicators.known_c2_ips]
    if known:
        signals.fire(
            Signal.KNOWN_C2_INFRASTRUCTURE, knownC2Ips=patterns.unique(known, 8)
        )


def _detect_solana(text: str, signals: SignalSet, indicators: Indicators) -> None:
    wallets = patterns.SOLANA_WALLET.findall(text)
    if not wallets:
        return
    has_known = any(w in indicators.known_solana_wallets for w in wallets)
    if has_known or patterns.SOLANA_VOCABULARY.search(text):
        evidence: dict = {"solanaWallets": patterns.unique(wallets, 5)}
        if has_known:
            evidence["hasKnownMaliciousWallet"] = True
        signals.fire(Signal.SOLANA_BLOCKCHAIN_C2, **evidence)


def _detect_calendar(text: str, signals: SignalSet, indicators: Indicators) -> None:
    regex = indicators.calendar_regex
    if regex is None:
        return
    urls = regex.findall(text)
    if urls:
        signals.fire(Signal.GOOGLE_CALENDAR_C2, calendarUrls=patterns.unique(urls, 3))


def _detect_credentials(text: str, signals: SignalSet, indicators: Indicators) -> None:
    matches = [m.group(0) for m in patterns.CREDENTIAL_THEFT.finditer(text)]
    if matches:
        signals.fire(
            Signal.CREDENTIAL_THEFT, credentialPatterns=patterns.unique(matches, 5)
        )


def _detect_extension_api(
    text: str, signals: SignalSet, indicators: Indicators
) -> None:
    if patterns.EXTENSION_API.search(text):
        signals.fire(Signal.VSCODE_EXTENSION_API)


def _detect_wallet_targeting(
    text: str, signals: SignalSet, indicators: Indicators
) -> None:
    regex = indicators.wallet_extension_regex
    if regex is None:
        return
    matches = [m.group(0) for m in regex.finditer(text)]
    if matches:
        signals.fire(
            Signal.CRYPTO_WALLET_TARGETING,
            targetedWallets=patterns.unique(matches, 10),
        )


def _detect_base64(text: str, signals: SignalSet, indicators: Indicators) -> None:
    hits: list[dict[str, str]] = []
    for count, m in enumerate(patterns.BASE64_RUN.finditer(text), start=1):
        if count > MAX_BASE64_CANDIDATES:
            break
        encoded = m.group(1)
        decoded = decode_base64(encoded)
        if decoded is None:
            continue
        if patterns.HTTP_URL.search(decoded) or patterns.INVOCATION.search(decoded):
            hits.append(
                {
                    "b64Preview": encoded[:80] + ("…" if len(encoded) > 80 else ""),
                    "decodedPreview": patterns.collapse_whitespace(decoded[:200]),
                }
            )
    if hits:
        signals.fire(Signal.BASE64_URL_DECODED, base64=hits[:3])


def decode_base64(encoded: str) -> str | None:
    """Decode a base64 run leniently; None if invalid, empty or binary."""
    try:
        data = base64.b64decode(encoded + "=" * (-len(encoded) % 4))
    except (binascii.Error, ValueError):
        return None
    if not data or is_binary(data):
        return None
    return data.decode("utf-8", errors="replace")


def snippet(text: str, index: int, span: int = _SNIPPET_SPAN) -> str:
    """Whitespace-collapsed context of ``span`` chars centred on ``index``."""
    start = max(0, index - span // 2)
    end = min(len(text), index + span // 2)
    return patterns.collapse_whitespace(text[start:end])


DETECTORS: tuple[Detector, ...] = (
    _detect_invisible,
    _detect_suspicious_words,
    _detect_functions,
    _detect_ips,
    _detect_solana,
    _detect_calendar,
    _detect_credentials,
    _detect_extension_api,
    _detect_wallet_targeting,
    _detect_base64,
)
