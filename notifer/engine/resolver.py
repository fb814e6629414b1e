"""
Notifer Resolver — Turn a sparse request plus a build outcome into a payload.

Precedence (per field): request value → global default → derived value.

    server_url     request → GlobalDefaults.server_url
    topic          request → GlobalDefaults.default_topic        (required)
    credentials_id request → GlobalDefaults.default_credentials_id (required)
    message        request → "Build #N STATUS / Job / Details" text
    title          request → "[STATUS] job #N"
    priority       request (1-5) → derived from outcome
    tags           [outcome] + "jenkins" + request tags, capped at 5

Pure computation: no I/O, no retries, identical inputs give identical output.
Token lookup happens in the caller once credentials_id is known.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Union

from notifer.engine.config import GlobalDefaults
from notifer.engine.environment import Expander, identity
from notifer.engine.errors import MissingCredentialsError, MissingTopicError
from notifer.engine.models import (
    BuildContext,
    BuildOutcome,
    NotifyPreferences,
    RawRequest,
    ResolvedPayload,
    clamp,
    split_tags,
)

logger = logging.getLogger("notifer.engine.resolver")

MAX_TAGS = 5
FIXED_TAG = "jenkins"

_OUTCOME_PRIORITY = {
    BuildOutcome.SUCCESS: 2,
    BuildOutcome.UNKNOWN: 2,
    BuildOutcome.UNSTABLE: 3,
    BuildOutcome.FAILURE: 5,
}


def should_notify(outcome: Union[None, str, BuildOutcome], preferences: NotifyPreferences) -> bool:
    """Gate a notification on the build outcome. Unlisted outcomes always notify."""
    outcome = BuildOutcome.from_result(outcome)
    if outcome in (BuildOutcome.SUCCESS, BuildOutcome.UNKNOWN):
        return preferences.success
    if outcome is BuildOutcome.FAILURE:
        return preferences.failure
    if outcome is BuildOutcome.UNSTABLE:
        return preferences.unstable
    if outcome is BuildOutcome.ABORTED:
        return preferences.aborted
    return True


def priority_for_outcome(outcome: Union[None, str, BuildOutcome]) -> int:
    return _OUTCOME_PRIORITY.get(BuildOutcome.from_result(outcome), 3)


def default_message(context: BuildContext, outcome: Union[None, str, BuildOutcome]) -> str:
    status = BuildOutcome.from_result(outcome).status_label
    return (
        f"Build #{context.build_number} {status}\n"
        f"Job: {context.display_full_name}\n"
        f"Details: {context.build_url}"
    )


def default_title(context: BuildContext, outcome: Union[None, str, BuildOutcome]) -> str:
    status = BuildOutcome.from_result(outcome).status_label
    return f"[{status}] {context.job_name} #{context.build_number}"


def build_tags(
    outcome: Union[None, str, BuildOutcome],
    custom_tags: List[str],
    expand: Expander = identity,
) -> List[str]:
    """
    Assemble the tag list.

    The outcome tag (when known) and "jenkins" come first; custom tags are
    appended in order only while fewer than MAX_TAGS are present, so the
    fixed tags always survive and later custom tags are the ones dropped.
    """
    tags: List[str] = []
    outcome = BuildOutcome.from_result(outcome)
    if outcome is not BuildOutcome.UNKNOWN:
        tags.append(outcome.value.lower())
    tags.append(FIXED_TAG)

    for raw_tag in custom_tags:
        for piece in split_tags(expand(raw_tag)):
            if len(tags) >= MAX_TAGS:
                return tags
            tags.append(piece)
    return tags


class NotificationResolver:
    """
    Resolves a RawRequest against GlobalDefaults for one build outcome.

    Args:
        expand: Text substitution applied to topic, user-supplied message and
            title, and every tag. Defaults to identity.
    """

    def __init__(self, expand: Optional[Expander] = None):
        self._expand: Expander = expand or identity

    def should_notify(self, outcome: Union[None, str, BuildOutcome], preferences: NotifyPreferences) -> bool:
        return should_notify(outcome, preferences)

    def resolve(
        self,
        raw: RawRequest,
        outcome: Union[None, str, BuildOutcome],
        global_defaults: GlobalDefaults,
        context: BuildContext,
    ) -> ResolvedPayload:
        """
        Compute the final payload.

        Raises:
            MissingTopicError: no topic from the request or the global default.
            MissingCredentialsError: no credentials id from either source.
        """
        expand = self._expand
        outcome = BuildOutcome.from_result(outcome)

        server_url = raw.server_url or global_defaults.server_url

        topic = raw.topic or global_defaults.default_topic
        if not topic:
            raise MissingTopicError(
                "Topic is required. Set it in the request or the global configuration."
            )
        topic = expand(topic)
        if not topic:
            raise MissingTopicError("Topic expanded to an empty value", topic_template=raw.topic)

        credentials_id = raw.credentials_id or global_defaults.default_credentials_id
        if not credentials_id:
            raise MissingCredentialsError(
                "Credentials are required. Set credentials_id in the request or the global configuration.",
                topic=topic,
            )

        # The payload message is never empty, even if expansion blanks it.
        message = (expand(raw.message) if raw.message else "") or default_message(context, outcome)
        title = expand(raw.title) if raw.title else default_title(context, outcome)

        priority = raw.priority if raw.priority > 0 else priority_for_outcome(outcome)

        payload = ResolvedPayload(
            topic=topic,
            message=message,
            title=title,
            priority=clamp(priority, 1, 5),
            tags=build_tags(outcome, raw.tags, expand),
            server_url=server_url,
            credentials_id=credentials_id,
        )
        logger.debug(
            "Resolved notification for topic '%s' (priority=%d, tags=%s)",
            payload.topic, payload.priority, payload.tags,
        )
        return payload
