"""
Notifer Client — Single outbound POST to a Notifer topic.

    POST {server_url}/{topic}
    Content-Type: application/json
    X-Topic-Token: {token}
    {"message": ..., "title"?: ..., "priority": 1-5, "tags"?: [...]}

One httpx.Client per send, closed on every exit path. No retries, no
connection reuse between calls.

Failure classification:
    2xx + JSON object body → SendResult
    2xx + unparseable body → TransportFailure (status_code = -1)
    other status           → RemoteRejection  (status_code, body verbatim)
    httpx transport error  → TransportFailure (status_code = -1)
    non-ASCII token        → TransportFailure (status_code = -1)
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx
from pydantic import ValidationError

from notifer.engine.config import DEFAULT_SERVER_URL
from notifer.engine.errors import RemoteRejection, TransportFailure
from notifer.engine.models import ResolvedPayload, SendResult

logger = logging.getLogger("notifer.engine.client")

TIMEOUT_SECONDS = 30.0


def normalize_server_url(url: Optional[str]) -> str:
    """Default an empty URL and strip exactly one trailing slash."""
    if not url:
        return DEFAULT_SERVER_URL
    return url[:-1] if url.endswith("/") else url


class NotiferClient:
    """
    Sends one resolved payload to the Notifer publish endpoint.

    Args:
        server_url: Base URL of the Notifer server (e.g., https://app.notifer.io).
        token: Topic access token with write permission.
        timeout: Connect/read/write/pool timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        server_url: Optional[str],
        token: str,
        timeout: float = TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._server_url = normalize_server_url(server_url)
        self._token = token
        self._timeout = timeout
        self._transport = transport

    @property
    def server_url(self) -> str:
        return self._server_url

    def build_url(self, topic: str) -> str:
        # Topic is used as a raw path segment, not percent-encoded.
        return f"{self._server_url}/{topic}"

    def send(self, payload: ResolvedPayload) -> SendResult:
        """
        Publish the payload.

        Returns:
            The parsed success record.

        Raises:
            RemoteRejection: non-2xx status.
            TransportFailure: no usable response.
        """
        url = self.build_url(payload.topic)
        headers = {
            "Content-Type": "application/json",
            "X-Topic-Token": self._token,
        }
        start_time = time.monotonic()

        logger.debug("Sending notification to %s", url)

        try:
            with httpx.Client(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            ) as client:
                response = client.post(url, json=payload.to_body(), headers=headers)
                status_code = response.status_code
                response_body = response.text
        except UnicodeEncodeError:
            message = "Failed to send notification: topic token contains non-ASCII characters"
            logger.error(message)
            raise TransportFailure(message, topic=payload.topic, url=url, cause="UnicodeEncodeError")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            message = f"Failed to send notification: {e}"
            logger.error(message)
            raise TransportFailure(message, topic=payload.topic, url=url, cause=type(e).__name__)

        duration_ms = (time.monotonic() - start_time) * 1000

        if not 200 <= status_code < 300:
            message = f"Notifer API returned status {status_code}: {response_body}"
            logger.warning(message)
            raise RemoteRejection(
                message,
                topic=payload.topic,
                url=url,
                status_code=status_code,
                response_body=response_body,
            )

        try:
            result = SendResult.model_validate_json(response_body)
        except ValidationError as e:
            message = f"Failed to parse Notifer response: {e.error_count()} error(s): {response_body[:200]}"
            logger.error(message)
            raise TransportFailure(message, topic=payload.topic, url=url, response_body=response_body)

        logger.debug(
            "Notification sent successfully: id=%s (%d, %.1fms)",
            result.id, status_code, duration_ms,
        )
        return result
