"""
Notifer Error Hierarchy — Structured exceptions for notification attempts.

Every error serializes to a JSON-compatible dict so the orchestration layer
can write it to the notifications/ log folder unchanged.

Hierarchy:
    NotiferError
    ├── NotiferResolutionError     — Attempt aborted before any network activity
    │   ├── MissingTopicError       — No topic from request or global default
    │   ├── MissingCredentialsError — No credentials id from request or global default
    │   └── MissingTokenError       — Credentials id resolved, token lookup empty
    ├── NotiferSendError           — Attempt reached the sender and failed
    │   ├── TransportFailure        — No usable HTTP response (status_code = -1)
    │   └── RemoteRejection         — Non-2xx HTTP response
    ├── NotiferConfigError         — notifer.yaml unreadable or invalid
    ├── NotiferCredentialsError    — Credential store cannot be read/decrypted
    └── NotiferValidationError     — Invalid host input (e.g. unknown build result)
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Status code carried by failures where no HTTP response was received.
NO_STATUS = -1


class NotiferError(Exception):
    """
    Base error for all notifer failures.
    Structured for logging — all context serializable to JSON.
    """

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.topic: Optional[str] = context.get("topic")
        self.credentials_id: Optional[str] = context.get("credentials_id")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "topic": self.topic,
            "credentials_id": self.credentials_id,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("topic", "credentials_id")
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.topic:
            parts.append(f"topic={self.topic}")
        if self.credentials_id:
            parts.append(f"credentials_id={self.credentials_id}")
        return " | ".join(parts)


class NotiferResolutionError(NotiferError):
    """A required field could not be resolved. Nothing was sent."""
    pass


class MissingTopicError(NotiferResolutionError):
    """No topic in the request and no global default topic."""
    pass


class MissingCredentialsError(NotiferResolutionError):
    """No credentials id in the request and no global default credentials id."""
    pass


class MissingTokenError(NotiferResolutionError):
    """The credentials id resolved but the token lookup returned nothing."""
    pass


class NotiferSendError(NotiferError):
    """
    The HTTP exchange failed.
    Includes status_code (-1 when no response arrived) and the raw response body.
    """

    def __init__(self, message: str, **context: Any):
        self.status_code: int = context.get("status_code", NO_STATUS)
        self.response_body: Optional[str] = context.get("response_body")
        self.url: Optional[str] = context.get("url")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["status_code"] = self.status_code
        d["url"] = self.url
        return d


class TransportFailure(NotiferSendError):
    """DNS, connection, timeout or unparseable response. Never carries an HTTP status."""

    def __init__(self, message: str, **context: Any):
        context["status_code"] = NO_STATUS
        super().__init__(message, **context)


class RemoteRejection(NotiferSendError):
    """The server answered with a non-2xx status."""

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["response_body"] = self.response_body
        return d


class NotiferConfigError(NotiferError):
    """Configuration error — invalid notifer.yaml or rejected admin update."""

    def __init__(self, message: str, **context: Any):
        self.validation_errors: Optional[list] = context.get("validation_errors")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["validation_errors"] = self.validation_errors
        return d


class NotiferCredentialsError(NotiferError):
    """Credential store unreadable, or a token failed to decrypt."""
    pass


class NotiferValidationError(NotiferError):
    """Host input failed validation."""
    pass
