"""Message signal scoring."""

from group_shield.scoring.impersonation import ImpersonationMatch, check_impersonation
from group_shield.scoring.scam_scorer import ScamScorer
from group_shield.scoring.urls import extract_urls, is_whitelisted

__all__ = [
    "ImpersonationMatch",
    "check_impersonation",
    "ScamScorer",
    "extract_urls",
    "is_whitelisted",
]
