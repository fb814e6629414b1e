"""Notifer Engine — Resolver, HTTP client, orchestration, config, credentials, logging."""

from notifer.engine.client import NotiferClient  # noqa: F401
from notifer.engine.notifier import BuildNotifier  # noqa: F401
from notifer.engine.resolver import NotificationResolver  # noqa: F401

__all__ = [
    "NotiferClient",
    "BuildNotifier",
    "NotificationResolver",
]
