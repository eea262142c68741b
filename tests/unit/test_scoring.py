"""Tests for the weight table and severity classification."""

from __future__ import annotations

import itertools

import pytest

from glassworm.scanner.models import Severity, Signal, SignalSet
from glassworm.scanner.scoring import WEIGHTS, classify, score

EXPECTED_WEIGHTS = {
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

BOOLEAN_SIGNALS = [s for s in Signal if s is not Signal.MULTIPLE_SIGNALS]


def _signals(*fired: Signal, multiple: int = 0) -> SignalSet:
    signals = SignalSet()
    for s in fired:
        signals.fire(s)
    signals.fire(Signal.MULTIPLE_SIGNALS, multiple)
    return signals


class TestWeights:
    def test_every_signal_has_a_weight(self):
        assert set(WEIGHTS) == set(Signal)

    def test_weight_table(self):
        assert dict(WEIGHTS) == EXPECTED_WEIGHTS

    @pytest.mark.parametrize("signal", BOOLEAN_SIGNALS)
    def test_single_signal_scores_its_weight(self, signal: Signal):
        assert score(_signals(signal)) == EXPECTED_WEIGHTS[signal]

    def test_empty_set_scores_zero(self):
        assert score(SignalSet()) == 0

    def test_multiple_signals_bonus_needs_three(self):
        assert score(_signals(multiple=2)) == 0
        assert score(_signals(multiple=3)) == 15
        assert score(_signals(multiple=7)) == 15

    def test_saturates_at_100(self):
        assert score(_signals(*BOOLEAN_SIGNALS, multiple=11)) == 100

    def test_accepts_plain_mapping(self):
        assert score({Signal.SHELL_DOWNLOAD: 1, Signal.HARDCODED_IP: 1}) == 55


class TestMonotonicity:
    def test_adding_signals_never_lowers_score(self):
        # Grow a set one signal at a time for several orderings
        for start in range(len(BOOLEAN_SIGNALS)):
            order = BOOLEAN_SIGNALS[start:] + BOOLEAN_SIGNALS[:start]
            fired: list[Signal] = []
            previous = 0
            for signal in order:
                fired.append(signal)
                current = score(_signals(*fired))
                assert previous <= current <= 100
                previous = current

    def test_all_pairs_within_bounds(self):
        for a, b in itertools.combinations(BOOLEAN_SIGNALS, 2):
            pair = score(_signals(a, b))
            assert 0 <= pair <= 100
            assert pair >= score(_signals(a))
            assert pair >= score(_signals(b))


class TestClassify:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (100, Severity.CRITICAL),
            (80, Severity.CRITICAL),
            (79, Severity.HIGH),
            (60, Severity.HIGH),
            (59, Severity.MEDIUM),
            (40, Severity.MEDIUM),
            (39, Severity.LOW),
            (0, Severity.LOW),
        ],
    )
    def test_boundaries(self, value: int, expected: Severity):
        assert classify(value) is expected

    def test_every_score_maps_consistently(self):
        for value in range(0, 101):
            severity = classify(value)
            if value >= 80:
                assert severity is Severity.CRITICAL
            elif value >= 60:
                assert severity is Severity.HIGH
            elif value >= 40:
                assert severity is Severity.MEDIUM
            else:
                assert severity is Severity.LOW

    def test_severity_rank_order(self):
        ranks = [s.rank for s in Severity]
        assert ranks == [0, 1, 2, 3]
