"""Services that run and schedule merge cycles."""

from feed_aggregator.services.feed_service import CycleResult, FeedService
from feed_aggregator.services.scheduler import FeedScheduler, TriggerResult, TriggerStatus

__all__ = ["CycleResult", "FeedService", "FeedScheduler", "TriggerResult", "TriggerStatus"]
