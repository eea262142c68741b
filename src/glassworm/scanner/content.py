"""Binary/text classification of raw file content."""

from __future__ import annotations

from dataclasses import dataclass

SAMPLE_SIZE = 4096

# Share of control bytes in the sample above which content counts as binary
_WEIRD_RATIO = 0.1


@dataclass(frozen=True)
class ContentClass:
    """Outcome of sampling a byte buffer."""

    binary: bool


def is_binary(data: bytes) -> bool:
    """Return True if the buffer looks like binary data.

    Only the first 4096 bytes are sampled. A NUL byte is conclusive; otherwise
    control characters other than tab, LF, VT, FF and CR are counted and the
    buffer is binary when they exceed 10% of the sample.
    """
    sample = data[:SAMPLE_SIZE]
    if b"\x00" in sample:
        return True
    weird = sum(1 for c in sample if c < 9 or 13 < c < 32)
    return weird > len(sample) * _WEIRD_RATIO


def classify(data: bytes) -> ContentClass:
    return ContentClass(binary=is_binary(data))
