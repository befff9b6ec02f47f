"""In-memory, process-local state trackers."""

from group_shield.trackers.cooldown import CooldownStore
from group_shield.trackers.dedup import DedupGate, JoinDedup
from group_shield.trackers.flood import FloodTracker

__all__ = ["CooldownStore", "DedupGate", "JoinDedup", "FloodTracker"]
