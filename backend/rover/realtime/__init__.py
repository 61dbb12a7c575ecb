"""Realtime hazard events: sessions, region subscriptions and fanout."""

from rover.realtime.connections import ConnectionManager
from rover.realtime.fanout import HazardEventService
from rover.realtime.registry import SubscriptionRegistry

__all__ = [
    "ConnectionManager",
    "HazardEventService",
    "SubscriptionRegistry",
]
