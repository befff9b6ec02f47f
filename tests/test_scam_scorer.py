"""Unit tests for URL helpers and the scam scorer."""

from __future__ import annotations

import pytest

from group_shield.core.types import Severity
from group_shield.scoring.scam_scorer import ScamScorer
from group_shield.scoring.urls import (
    extract_urls,
    is_invite_link,
    is_url_shortener,
    is_whitelisted,
    normalize_text,
)

WHITELIST = ("geldhelden.org", "staatenlos.ch")


@pytest.fixture
def scorer() -> ScamScorer:
    return ScamScorer(WHITELIST)


# ---------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------


class TestUrlHelpers:
    @pytest.mark.asyncio
    async def test_extract_merges_entities_and_text(self) -> None:
        urls = extract_urls(
            "see https://a.example/x, and https://b.example/y.",
            ["https://hidden.example/z", "https://a.example/x"],
        )
        assert urls == ("https://hidden.example/z", "https://a.example/x", "https://b.example/y")

    @pytest.mark.asyncio
    async def test_whitelist_matches_subdomains_only(self) -> None:
        assert is_whitelisted("https://geldhelden.org/a", WHITELIST)
        assert is_whitelisted("https://shop.geldhelden.org", WHITELIST)
        assert not is_whitelisted("https://geldhelden.org.evil.io", WHITELIST)
        assert not is_whitelisted("https://notgeldhelden.org", WHITELIST)

    @pytest.mark.asyncio
    async def test_invite_and_shortener_detection(self) -> None:
        assert is_invite_link("https://t.me/+AbCdEf")
        assert is_invite_link("https://telegram.me/joinchat/xyz")
        assert not is_invite_link("https://t.me/somechannel")
        assert is_url_shortener("https://bit.ly/abc")
        assert not is_url_shortener("https://example.com")

    @pytest.mark.asyncio
    async def test_normalize_strips_zero_width_and_homoglyphs(self) -> None:
        assert normalize_text("Air\u200bdr\u043ep   NOW") == "airdrop now"


# ---------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------


class TestScamScorer:
    @pytest.mark.asyncio
    async def test_clean_message_is_none(self, scorer: ScamScorer) -> None:
        result = scorer.score("Good morning everyone", [])
        assert result.severity is Severity.NONE
        assert result.value == 0
        assert result.reasons == ()

    @pytest.mark.asyncio
    async def test_single_unapproved_url_is_low(self, scorer: ScamScorer) -> None:
        result = scorer.score("look here", ["https://random.example/page"])
        assert result.severity is Severity.LOW
        assert result.reasons == ("unapproved_url",)

    @pytest.mark.asyncio
    async def test_whitelisted_url_scores_nothing(self, scorer: ScamScorer) -> None:
        result = scorer.score("our site", ["https://geldhelden.org/news"])
        assert result.severity is Severity.NONE

    @pytest.mark.asyncio
    async def test_medium_keywords(self, scorer: ScamScorer) -> None:
        result = scorer.score("Claim your reward today", [])
        assert result.severity is Severity.MEDIUM
        assert result.reasons == ("claim_scam", "reward_scam")

    @pytest.mark.asyncio
    async def test_high_combination(self, scorer: ScamScorer) -> None:
        result = scorer.score(
            "Official support: join https://t.me/+abc for the airdrop",
            ["https://t.me/+abc"],
        )
        assert result.severity is Severity.HIGH
        assert "telegram_invite_link" in result.reasons
        assert "airdrop_scam" in result.reasons

    @pytest.mark.asyncio
    async def test_forwarded_only_counts_with_keyword(self, scorer: ScamScorer) -> None:
        plain = scorer.score("hello", [], is_forwarded=True)
        lure = scorer.score("giveaway", [], is_forwarded=True)
        assert plain.severity is Severity.NONE
        assert "forwarded_suspicious" in lure.reasons

    @pytest.mark.asyncio
    async def test_link_density(self, scorer: ScamScorer) -> None:
        urls = ["https://geldhelden.org/1", "https://geldhelden.org/2", "https://geldhelden.org/3"]
        result = scorer.score("links", urls, has_entities=True)
        assert result.reasons == ("link_density",)
        assert result.severity is Severity.LOW

    @pytest.mark.asyncio
    async def test_reasons_are_deduplicated(self, scorer: ScamScorer) -> None:
        urls = ["https://x.example/1", "https://y.example/2"]
        result = scorer.score("", urls)
        assert result.reasons == ("unapproved_url",)
        assert result.value == 16

    @pytest.mark.asyncio
    async def test_scoring_is_pure(self, scorer: ScamScorer) -> None:
        args = ("Verify now at https://bit.ly/x", ["https://bit.ly/x"])
        first = scorer.score(*args, is_forwarded=True, has_entities=True)
        second = scorer.score(*args, is_forwarded=True, has_entities=True)
        assert first == second
        assert repr(first) == repr(second)

    @pytest.mark.asyncio
    async def test_threshold_boundaries(self, scorer: ScamScorer) -> None:
        assert scorer.severity_for(9, ("x",)) is Severity.LOW
        assert scorer.severity_for(10, ("x",)) is Severity.MEDIUM
        assert scorer.severity_for(17, ("x",)) is Severity.MEDIUM
        assert scorer.severity_for(18, ("x",)) is Severity.HIGH
        assert scorer.severity_for(0, ()) is Severity.NONE

    @pytest.mark.asyncio
    async def test_rejects_inverted_thresholds(self) -> None:
        with pytest.raises(ValueError):
            ScamScorer(WHITELIST, medium_threshold=20, high_threshold=10)
