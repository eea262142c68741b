"""Compiled regexes shared by the source and manifest analyzers."""

from __future__ import annotations

import re

# Zero-width, soft hyphen, variation selectors, BOM and Mongolian vowel separator
_INVISIBLE_CHARS = "\u200b\u200c\u200d\u2060\u2063\u00ad\ufe00-\ufe0f\ufeff\u180e"

INVISIBLE = re.compile(f"[{_INVISIBLE_CHARS}]")
# Only attempted where an identifier run starts
INVISIBLE_IDENTIFIER = re.compile(
    "(?<![A-Za-z0-9_$])"
    f"[A-Za-z_$][A-Za-z0-9_$]*[{_INVISIBLE_CHARS}][A-Za-z0-9_${_INVISIBLE_CHARS}]*"
)

SUSPICIOUS_WORDS = re.compile(
    r"\b(?:solana|metaplex|phantom|solscan|rpc(?:Url|\.url)?"
    r"|calendar\.app\.google|calendar\.google|transaction|memo"
    r"|getTransaction|getParsedTransaction|wallet|chrome\.storage|browser\.storage)\b",
    re.IGNORECASE,
)

NETWORK_FUNCTIONS = re.compile(
    r"\b(?:fetch|XMLHttpRequest|axios)\b"
    r"|\brequire\(\s*['\"]https?['\"]\s*\)"
    r"|\bhttps?\.(?:get|request)\b"
)

DANGEROUS_FUNCTIONS = re.compile(
    r"\b(?:eval|Function|child_process|spawn|exec|execFile|PowerShell|WScript\.Shell)\b"
)

DOWNLOADER = re.compile(r"\b(?:curl|wget|iwr|Invoke-WebRequest)\b", re.IGNORECASE)
URL_SCHEME = re.compile(r"\bhttps?://", re.IGNORECASE)

IPV4 = re.compile(
    r"\b(?:(?:25[0-5]|2[0-4]\d|[01]?\d?\d)(?:\.(?:25[0-5]|2[0-4]\d|[01]?\d?\d)){3})\b"
)

PRIVATE_IP_PREFIXES = ("127.", "0.", "10.", "192.168.", "172.16.")

HTTP_URL = re.compile(r"https?://[^\s\"'`<>{}]+", re.IGNORECASE)

BASE64_RUN = re.compile(r"(?<![A-Za-z0-9+/=])([A-Za-z0-9+/]{80,200}={0,2})(?![A-Za-z0-9+/=])")

INVOCATION = re.compile(r"(?:fetch|XMLHttpRequest|atob|Function|eval)\s*\(")

SOLANA_WALLET = re.compile(r"\b[1-9A-HJ-NP-Za-km-z]{32,44}\b")

SOLANA_VOCABULARY = re.compile(
    r"\b(?:getTransaction|getParsedTransaction|memo|Connection)\b|@solana/web3"
)

CREDENTIAL_THEFT = re.compile(
    r"(?:\b(?:NPM_TOKEN|GITHUB_TOKEN|GH_TOKEN|GITHUB_API_KEY|git-credentials"
    r"|credentials\.helper|process\.env\.(?:npm|github|git))"
    r"|\.npmrc|\.gitconfig)\b",
    re.IGNORECASE,
)

EXTENSION_API = re.compile(
    r"\b(?:vscode\.(?:workspace|window|commands|extensions)"
    r"|chrome\.runtime|browser\.runtime|chrome\.storage|browser\.storage)\b"
)

# package.json script rules
LIFECYCLE_SCRIPT = re.compile(
    r"(?:postinstall|preinstall|install|prepare|prepublish(?:Only)?)",
    re.IGNORECASE,
)
INTERPRETER = re.compile(r"\b(?:node|sh|bash|powershell)\b")
SHELL_OR_DOWNLOADER = re.compile(r"\b(?:sh|bash|powershell|curl|wget|node)\b")

WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return WHITESPACE.sub(" ", text)


def is_private_ip(ip: str) -> bool:
    """Loopback, unspecified and the private ranges the scanner ignores."""
    return ip.startswith(PRIVATE_IP_PREFIXES)


def has_shell_download(text: str) -> bool:
    """A downloader command followed by a URL on the same line."""
    pos = 0
    while True:
        m = DOWNLOADER.search(text, pos)
        if m is None:
            return False
        eol = text.find("\n", m.end())
        if eol == -1:
            eol = len(text)
        if URL_SCHEME.search(text, m.end(), eol):
            return True
        # Later downloaders on this line would search the same span
        pos = eol


def unique(values, limit: int) -> list[str]:
    """First ``limit`` distinct values, in order of appearance."""
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
            if len(seen) >= limit:
                break
    return seen
