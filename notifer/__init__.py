"""
Notifer — Build-lifecycle notifications for Notifer topics.

Resolves a build event plus sparse per-job settings into one notification
and publishes it to ``{server_url}/{topic}``.

    from notifer import BuildNotifier, RawRequest
"""

__version__ = "1.0.0"

from notifer.engine.notifier import BuildNotifier  # noqa: F401,E402
from notifer.engine.models import (  # noqa: F401,E402
    BuildContext,
    BuildOutcome,
    NotifyPreferences,
    RawRequest,
    ResolvedPayload,
    SendResult,
)

__all__ = [
    "BuildNotifier",
    "BuildContext",
    "BuildOutcome",
    "NotifyPreferences",
    "RawRequest",
    "ResolvedPayload",
    "SendResult",
]
