from group_shield.moderation.admin_sync import AdminSync
from group_shield.moderation.content_policy import ContentPolicyModerator
from group_shield.moderation.escalation import LoggingRiskEscalator, RiskEscalator
from group_shield.moderation.flood_moderation import FloodModerator
from group_shield.moderation.impersonation_guard import ImpersonationGuard
from group_shield.moderation.join_moderation import JoinModerator
from group_shield.moderation.orchestrator import ModerationOrchestrator
from group_shield.moderation.service_cleanup import ServiceCleanup

__all__ = [
    "AdminSync",
    "ContentPolicyModerator",
    "LoggingRiskEscalator",
    "RiskEscalator",
    "FloodModerator",
    "ImpersonationGuard",
    "JoinModerator",
    "ModerationOrchestrator",
    "ServiceCleanup",
]
