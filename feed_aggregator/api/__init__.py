"""
FastAPI control surface.

Provides:
- GET /api/feed - The persisted feed
- POST /api/refresh - Manual merge cycle trigger
- POST /api/slack/send - Send selected items to Slack
- GET /health - Scheduler and sink health
"""

from feed_aggregator.api.app import create_app

__all__ = ["create_app"]
