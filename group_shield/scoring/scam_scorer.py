"""Deterministic scam/spam scoring for a single message."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from group_shield.core.models import ScamScore
from group_shield.core.types import Severity
from group_shield.scoring.urls import (
    is_invite_link,
    is_url_shortener,
    is_whitelisted,
    normalize_text,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Signal:
    pattern: re.Pattern[str]
    weight: int
    reason: str


def _signal(pattern: str, weight: int, reason: str) -> _Signal:
    return _Signal(re.compile(pattern, re.IGNORECASE), weight, reason)


# Weights: HIGH=10, MEDIUM=6, LOW=3
HIGH_RISK_PHRASES: tuple[_Signal, ...] = (
    # account / verification
    _signal(r"konto\s+(eingeschränkt|gesperrt|blockiert)", 10, "account_restriction_scam"),
    _signal(r"account\s+(restricted|suspended|blocked|locked)", 10, "account_restriction_scam"),
    _signal(r"account\s+restore", 10, "account_restore_scam"),
    _signal(r"account\s+wiederherstellen", 10, "account_restore_scam"),
    _signal(r"verify\s+now", 10, "verify_now_scam"),
    _signal(r"dringend\s+bestätigen", 10, "urgent_verify_scam"),
    _signal(r"security\s+alert", 10, "security_alert_scam"),
    # fake support
    _signal(r"support", 10, "support_scam"),
    _signal(r"official\s+support", 10, "official_support_scam"),
    _signal(r"telegram\s+support", 10, "telegram_support_scam"),
    _signal(r"kontakt\s+admin", 10, "contact_admin_scam"),
    _signal(r"admin\s+kontaktieren", 10, "contact_admin_scam"),
    # lure into private chat
    _signal(r"write\s+me\s+privately", 10, "pm_request"),
    _signal(r"schreib\s+mir\s+privat", 10, "pm_request"),
)

MEDIUM_RISK_PHRASES: tuple[_Signal, ...] = (
    _signal(r"bonus\s+code", 6, "bonus_code_scam"),
    _signal(r"airdrop", 6, "airdrop_scam"),
    _signal(r"giveaway", 6, "giveaway_scam"),
    _signal(r"claim", 6, "claim_scam"),
    _signal(r"reward", 6, "reward_scam"),
    _signal(r"belohnung\s+wartet", 6, "reward_scam"),
    _signal(r"investiere\s+jetzt", 6, "investment_scam"),
    _signal(r"100%\s+profit", 6, "guaranteed_profit_scam"),
    _signal(r"verdiene\s+geld\s+schnell", 6, "quick_money_scam"),
    _signal(r"geschäftsmöglichkeit", 6, "business_opportunity_scam"),
)

LOW_RISK_PHRASES: tuple[_Signal, ...] = (
    _signal(r"signal\s+group", 3, "signal_group_scam"),
    _signal(r"vip\s+gruppe", 3, "vip_group_scam"),
    _signal(r"cloud\s+mining", 3, "mining_scam"),
    _signal(r"pump\s+and\s+dump", 3, "pump_dump_scam"),
)

UNAPPROVED_URL_WEIGHT = 8
INVITE_LINK_WEIGHT = 10
SHORTENER_WEIGHT = 10
FORWARDED_SUSPICIOUS_WEIGHT = 4
LINK_DENSITY_WEIGHT = 4
LINK_DENSITY_MIN_URLS = 3


class ScamScorer:
    """Maps message features to a weighted score, severity tier and reasons.

    ``score`` has no side effects and depends only on its arguments and the
    whitelist/thresholds fixed at construction, so identical input always
    yields an identical ``ScamScore``.
    """

    def __init__(
        self,
        url_whitelist: Iterable[str] = (),
        medium_threshold: int = 10,
        high_threshold: int = 18,
    ) -> None:
        if high_threshold <= medium_threshold:
            raise ValueError("high_threshold must exceed medium_threshold")
        self._whitelist = tuple(d.lower() for d in url_whitelist)
        self._medium = medium_threshold
        self._high = high_threshold

    @property
    def whitelist(self) -> tuple[str, ...]:
        return self._whitelist

    def score(
        self,
        text: str,
        urls: Iterable[str],
        *,
        is_forwarded: bool = False,
        has_entities: bool = False,
    ) -> ScamScore:
        normalized = normalize_text(text or "")
        urls = tuple(urls)
        value = 0
        reasons: list[str] = []

        keyword_hit = False
        for group in (HIGH_RISK_PHRASES, MEDIUM_RISK_PHRASES, LOW_RISK_PHRASES):
            for sig in group:
                if sig.pattern.search(normalized):
                    value += sig.weight
                    reasons.append(sig.reason)
                    if group is not LOW_RISK_PHRASES:
                        keyword_hit = True

        for url in urls:
            if not is_whitelisted(url, self._whitelist):
                value += UNAPPROVED_URL_WEIGHT
                reasons.append("unapproved_url")
            if is_invite_link(url):
                value += INVITE_LINK_WEIGHT
                reasons.append("telegram_invite_link")
            if is_url_shortener(url):
                value += SHORTENER_WEIGHT
                reasons.append("url_shortener")

        if is_forwarded and keyword_hit:
            value += FORWARDED_SUSPICIOUS_WEIGHT
            reasons.append("forwarded_suspicious")

        if has_entities and len(urls) >= LINK_DENSITY_MIN_URLS:
            value += LINK_DENSITY_WEIGHT
            reasons.append("link_density")

        # stable de-duplication keeps first-seen order
        ordered = tuple(dict.fromkeys(reasons))
        return ScamScore(value=value, severity=self.severity_for(value, ordered), reasons=ordered)

    def severity_for(self, value: int, reasons: tuple[str, ...]) -> Severity:
        if value >= self._high:
            return Severity.HIGH
        if value >= self._medium:
            return Severity.MEDIUM
        if value > 0 or reasons:
            return Severity.LOW
        return Severity.NONE
