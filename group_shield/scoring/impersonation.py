"""Display-name similarity against protected names (team, brand, support)."""

from __future__ import annotations

from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Iterable

from group_shield.scoring.urls import normalize_text

# digits and symbols commonly swapped in for letters
_LEET = str.maketrans({"0": "o", "1": "l", "3": "e", "4": "a", "5": "s", "@": "a", "$": "s"})


@dataclass(frozen=True, slots=True)
class ImpersonationMatch:
    is_impersonation: bool
    matched_name: str | None = None
    similarity: float = 0.0


def _fold(value: str) -> str:
    return normalize_text(value).translate(_LEET).replace("_", " ")


def _similarity(a: str, b: str) -> float:
    return SequenceMatcher(None, a, b).ratio() * 100


def check_impersonation(
    first_name: str | None,
    last_name: str | None,
    username: str | None,
    protected_names: Iterable[str],
    threshold: float = 80,
) -> ImpersonationMatch:
    """Compare a user's names to protected names.

    Exact (after folding) scores 100, containment 95, otherwise the best
    ``difflib`` ratio is reported and flagged when it reaches *threshold*.
    """
    display = f"{first_name or ''} {last_name or ''}".strip()
    full = _fold(display or username or "")
    handle = _fold(username) if username else ""
    if not full:
        return ImpersonationMatch(is_impersonation=False)

    best = 0.0
    best_name: str | None = None
    for name in protected_names:
        protected = _fold(name)
        if not protected:
            continue
        if full == protected or (handle and handle == protected):
            return ImpersonationMatch(True, name, 100.0)
        if protected in full or (handle and protected in handle):
            return ImpersonationMatch(True, name, 95.0)
        score = max(
            _similarity(full, protected),
            _similarity(handle, protected) if handle else 0.0,
        )
        if score > best:
            best, best_name = score, name

    if best >= threshold:
        return ImpersonationMatch(True, best_name, best)
    return ImpersonationMatch(False, None, best)
