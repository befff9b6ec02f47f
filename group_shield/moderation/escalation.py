"""Risk escalation hook invoked after severe scam actions."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class RiskEscalator(ABC):
    """External risk-level service: subject id and reason in, nothing out."""

    @abstractmethod
    async def escalate(self, user_id: int, reason: str) -> None: ...


class LoggingRiskEscalator(RiskEscalator):
    """Default escalator when no risk service is wired in; records the call only."""

    def __init__(self) -> None:
        self.escalations = 0

    async def escalate(self, user_id: int, reason: str) -> None:
        self.escalations += 1
        logger.warning("[RISK] escalate user=%d reason=%r", user_id, reason)
