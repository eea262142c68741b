"""Load campaign indicators (C2 IPs, wallets, wallet extensions) from YAML."""

from __future__ import annotations

import functools
import importlib.resources
import re
from dataclasses import dataclass
from pathlib import Path

import yaml

_LIST_FIELDS = (
    "known_c2_ips",
    "known_solana_wallets",
    "calendar_hosts",
    "wallet_extensions",
)


@dataclass(frozen=True)
class Indicators:
    """Fixed lists the detectors match against."""

    known_c2_ips: frozenset[str] = frozenset()
    known_solana_wallets: frozenset[str] = frozenset()
    calendar_hosts: tuple[str, ...] = ()
    wallet_extensions: tuple[str, ...] = ()
    name: str = "unnamed"

    @functools.cached_property
    def wallet_extension_regex(self) -> re.Pattern[str] | None:
        """Case-insensitive whole-word alternation over the extension names."""
        if not self.wallet_extensions:
            return None
        alternatives = [
            r"[\s_-]?".join(re.escape(word) for word in ext.split())
            for ext in self.wallet_extensions
        ]
        return re.compile(r"\b(?:" + "|".join(alternatives) + r")\b", re.IGNORECASE)

    @functools.cached_property
    def calendar_regex(self) -> re.Pattern[str] | None:
        """Matches a calendar host followed by its event path."""
        if not self.calendar_hosts:
            return None
        hosts = "|".join(re.escape(h) for h in self.calendar_hosts)
        return re.compile(r"(?:" + hosts + r")(?:/[A-Za-z0-9]+)?", re.IGNORECASE)


@functools.lru_cache(maxsize=1)
def default_indicators() -> Indicators:
    """The indicator preset bundled with the package."""
    pkg = importlib.resources.files("glassworm.scanner.presets")
    text = pkg.joinpath("default.yaml").read_text(encoding="utf-8")
    return _build_indicators(yaml.safe_load(text), base=None)


def load_indicators(path: str | Path) -> Indicators:
    """Load an indicator file, extending the bundled defaults."""
    text = Path(path).read_text(encoding="utf-8")
    return load_indicators_from_string(text)


def load_indicators_from_string(text: str) -> Indicators:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid indicator YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Indicator YAML must be a mapping")
    base = default_indicators() if data.get("inherit", True) else None
    return _build_indicators(data, base=base)


def _build_indicators(data: dict, base: Indicators | None) -> Indicators:
    lists = {key: _parse_list(data, key) for key in _LIST_FIELDS}

    if base is not None:
        # Inherited entries first, duplicates dropped
        lists["calendar_hosts"] = _merge(base.calendar_hosts, lists["calendar_hosts"])
        lists["wallet_extensions"] = _merge(
            base.wallet_extensions, lists["wallet_extensions"]
        )
        lists["known_c2_ips"] = list(base.known_c2_ips) + lists["known_c2_ips"]
        lists["known_solana_wallets"] = (
            list(base.known_solana_wallets) + lists["known_solana_wallets"]
        )

    return Indicators(
        known_c2_ips=frozenset(lists["known_c2_ips"]),
        known_solana_wallets=frozenset(lists["known_solana_wallets"]),
        calendar_hosts=tuple(lists["calendar_hosts"]),
        wallet_extensions=tuple(lists["wallet_extensions"]),
        name=str(data.get("name", "unnamed")),
    )


def _parse_list(data: dict, key: str) -> list[str]:
    raw = data.get(key) or []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
        raise ValueError(f"Indicator field '{key}' must be a list of strings")
    return [v.strip() for v in raw if v.strip()]


def _merge(first: tuple[str, ...], second: list[str]) -> tuple[str, ...]:
    seen = {v.lower() for v in first}
    merged = list(first)
    for value in second:
        if value.lower() not in seen:
            seen.add(value.lower())
            merged.append(value)
    return tuple(merged)
