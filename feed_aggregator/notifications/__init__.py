"""Notification delivery for newly admitted feed items.

Components:
- NotificationChannel / SlackChannel: Delivery channels
- CircuitBreaker: Resilience wrapper for channels
- NotificationConfig / NotificationDispatcher: Dispatch orchestration
"""

from feed_aggregator.notifications.channels import (
    CircuitBreaker,
    NotificationChannel,
    SlackChannel,
)
from feed_aggregator.notifications.dispatcher import (
    NotificationConfig,
    NotificationDispatcher,
)

__all__ = [
    "CircuitBreaker",
    "NotificationChannel",
    "SlackChannel",
    "NotificationConfig",
    "NotificationDispatcher",
]
