"""
Notifer Build Notifier — One build event → at most one notification.

Pipeline (per call):
    1. Gate on the build outcome (NotifyPreferences); a skip is logged, not raised
    2. Resolve request against a snapshot of the global defaults
    3. Look up the topic token for the resolved credentials id
    4. Send via NotiferClient (single attempt)
    5. On send failure: raise if fail_on_error, otherwise log and return None

Resolution failures (missing topic / credentials / token) always raise:
nothing is sent for a partially resolved request.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Union

import httpx

from notifer.engine.client import TIMEOUT_SECONDS, NotiferClient
from notifer.engine.config import GlobalDefaults, get_global_defaults
from notifer.engine.environment import Expander
from notifer.engine.errors import (
    MissingTokenError,
    MissingTopicError,
    NotiferResolutionError,
    NotiferSendError,
    NotiferValidationError,
)
from notifer.engine.logging import (
    FileLogger,
    LogEntry,
    log_notification_failed,
    log_notification_sent,
    log_notification_skipped,
)
from notifer.engine.models import (
    BuildContext,
    BuildOutcome,
    NotifyPreferences,
    RawRequest,
    ResolvedPayload,
    SendResult,
)
from notifer.engine.resolver import NotificationResolver

logger = logging.getLogger("notifer.engine.notifier")

TokenLookup = Callable[[str], Optional[str]]

TEST_MESSAGE = "Test notification from Jenkins Notifer Plugin"
TEST_TITLE = "Connection Test"
TEST_PRIORITY = 2
TEST_TAGS = ["jenkins-test"]


class BuildNotifier:
    """
    Host-side orchestration around NotificationResolver and NotiferClient.

    Args:
        token_lookup: credentials id → token (None/"" when unknown).
            CredentialStore.get_token fits.
        global_defaults: Fixed defaults to resolve against. If None, a fresh
            snapshot of the process-wide defaults is taken per call.
        expand: Variable expansion for free-text fields. Defaults to identity.
        audit_log: JSONL audit log for every attempt. None disables it.
        transport: Optional httpx transport passed to every client.
    """

    def __init__(
        self,
        token_lookup: TokenLookup,
        global_defaults: Optional[GlobalDefaults] = None,
        expand: Optional[Expander] = None,
        audit_log: Optional[FileLogger] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = TIMEOUT_SECONDS,
    ):
        self._token_lookup = token_lookup
        self._global_defaults = global_defaults
        self._resolver = NotificationResolver(expand=expand)
        self._audit_log = audit_log
        self._transport = transport
        self._timeout = timeout

    def notify(
        self,
        request: RawRequest,
        outcome: Union[None, str, BuildOutcome],
        context: Optional[BuildContext] = None,
        preferences: Optional[NotifyPreferences] = None,
    ) -> Optional[SendResult]:
        """
        Notify for one build event.

        Returns:
            The success record, or None when skipped or when a send failure
            was tolerated (fail_on_error=False).

        Raises:
            NotiferResolutionError: topic, credentials or token missing.
            NotiferSendError: send failed and request.fail_on_error is set.
        """
        outcome = BuildOutcome.from_result(outcome)
        context = context or BuildContext()
        preferences = preferences or NotifyPreferences()
        outcome_label = outcome.status_label

        if not self._resolver.should_notify(outcome, preferences):
            logger.info(f"Skipping notification for result: {outcome_label}")
            self._log(log_notification_skipped(outcome_label, context.job_name, context.build_number))
            return None

        global_defaults = (
            self._global_defaults.model_copy() if self._global_defaults else get_global_defaults()
        )

        try:
            payload = self._resolver.resolve(request, outcome, global_defaults, context)
            token = self._lookup_token(payload.credentials_id, payload.topic)
        except NotiferResolutionError as e:
            logger.error(f"Notification not sent: {e.message}")
            self._log(log_notification_failed(
                e.to_dict(), outcome_label, True, context.job_name, context.build_number,
            ))
            raise

        logger.info(f"Sending notification to topic: {payload.topic}")
        start_time = time.monotonic()

        try:
            result = self._client(payload.server_url, token).send(payload)
        except NotiferSendError as e:
            self._log(log_notification_failed(
                e.to_dict(), outcome_label, request.fail_on_error,
                context.job_name, context.build_number,
            ))
            if request.fail_on_error:
                logger.error(f"Failed to send notification: {e.message}")
                raise
            logger.warning(f"Failed to send notification: {e.message}")
            return None

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(f"Notification sent successfully. ID: {result.id}")
        self._log(log_notification_sent(
            topic=payload.topic,
            server_url=payload.server_url,
            notification_id=result.id,
            outcome=outcome_label,
            priority=payload.priority,
            tags=list(payload.tags),
            duration_ms=duration_ms,
            job_name=context.job_name,
            build_number=context.build_number,
        ))
        return result

    def test_connection(
        self,
        server_url: str,
        credentials_id: str,
        topic: str,
    ) -> SendResult:
        """
        Send a fixed test message to verify server URL, token and topic.

        Raises:
            NotiferValidationError: server URL missing or not http(s).
            MissingTopicError / MissingTokenError: nothing to send to / with.
            NotiferSendError: the server could not be reached or rejected the message.
        """
        if not server_url:
            raise NotiferValidationError("Server URL is required")
        if not server_url.startswith(("http://", "https://")):
            raise NotiferValidationError(
                "Server URL must start with http:// or https://", server_url=server_url,
            )
        if not topic:
            raise MissingTopicError("Default topic is required for testing")

        token = self._lookup_token(credentials_id, topic) if credentials_id else None
        if not token:
            raise MissingTokenError("Valid credentials are required", topic=topic)

        payload = ResolvedPayload(
            topic=topic,
            message=TEST_MESSAGE,
            title=TEST_TITLE,
            priority=TEST_PRIORITY,
            tags=list(TEST_TAGS),
            server_url=server_url,
            credentials_id=credentials_id,
        )
        result = self._client(server_url, token).send(payload)
        logger.info(f"Connection test succeeded. ID: {result.id}")
        return result

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _lookup_token(self, credentials_id: str, topic: str) -> str:
        token = self._token_lookup(credentials_id)
        if not token:
            raise MissingTokenError(
                f"Could not retrieve token from credentials: {credentials_id}",
                credentials_id=credentials_id,
                topic=topic,
            )
        return token

    def _client(self, server_url: str, token: str) -> NotiferClient:
        return NotiferClient(server_url, token, timeout=self._timeout, transport=self._transport)

    def _log(self, entry: LogEntry) -> None:
        if self._audit_log is not None:
            self._audit_log.write(entry)
