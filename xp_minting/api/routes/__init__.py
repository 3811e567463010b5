"""API routes package."""

from . import cron

__all__ = ["cron"]
