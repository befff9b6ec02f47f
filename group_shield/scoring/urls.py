"""URL and text helpers shared by the scorer and the orchestrator."""

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import urlsplit

_URL_PATTERN = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
_INVITE_PATTERN = re.compile(r"(?:t|telegram)\.me/(?:\+|joinchat/)", re.IGNORECASE)
_ZERO_WIDTH = re.compile(r"[\u200b-\u200d\ufeff]")
_WHITESPACE = re.compile(r"\s+")

URL_SHORTENERS: frozenset[str] = frozenset(
    {
        "bit.ly",
        "tinyurl.com",
        "cutt.ly",
        "short.link",
        "t.co",
        "goo.gl",
        "ow.ly",
        "is.gd",
    }
)

# Cyrillic lookalikes commonly used to dodge keyword filters
_HOMOGLYPHS = str.maketrans(
    {"\u0430": "a", "\u0435": "e", "\u043e": "o", "\u0440": "p", "\u0441": "c", "\u0445": "x"}
)


def normalize_text(text: str) -> str:
    """Lowercase, strip zero-width characters, fold homoglyphs, squeeze whitespace."""
    text = _ZERO_WIDTH.sub("", text.lower())
    text = text.translate(_HOMOGLYPHS)
    return _WHITESPACE.sub(" ", text).strip()


def extract_urls(text: str, entity_urls: Iterable[str] = ()) -> tuple[str, ...]:
    """Collect URLs from message entities plus a regex pass over the text.

    Order is preserved and duplicates are dropped, so a link that appears
    both as an entity and in the raw text counts once.
    """
    seen: dict[str, None] = {}
    for url in entity_urls:
        if url:
            seen.setdefault(url.strip(), None)
    for match in _URL_PATTERN.findall(text or ""):
        seen.setdefault(match.rstrip(".,);!?"), None)
    return tuple(seen)


def hostname(url: str) -> str:
    """Lower-cased host of *url*; bare domains get a scheme first."""
    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"http://{candidate}"
    try:
        return (urlsplit(candidate).hostname or "").lower()
    except ValueError:
        return ""


def is_whitelisted(url: str, whitelist: Iterable[str]) -> bool:
    """Exact domain or subdomain match against the whitelist."""
    host = hostname(url)
    if not host:
        return False
    for domain in whitelist:
        domain = domain.lower().strip()
        if domain and (host == domain or host.endswith("." + domain)):
            return True
    return False


def is_url_shortener(url: str) -> bool:
    host = hostname(url)
    return any(host == s or host.endswith("." + s) for s in URL_SHORTENERS)


def is_invite_link(url: str) -> bool:
    return bool(_INVITE_PATTERN.search(url))
