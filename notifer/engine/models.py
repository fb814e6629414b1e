"""
Notifer Models — Value types flowing through a notification attempt.

    RawRequest + BuildOutcome + NotifyPreferences + GlobalDefaults
        → NotificationResolver → ResolvedPayload
        → NotiferClient        → SendResult (or NotiferSendError)

GlobalDefaults lives in notifer.engine.config with the rest of the
configuration models.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from notifer.engine.errors import NotiferValidationError

# Runs of commas and/or whitespace separate tags in the delimited form.
TAG_SEPARATOR = re.compile(r"[,\s]+")


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def split_tags(text: str) -> List[str]:
    """Split a delimited tag string, dropping empty pieces."""
    return [piece.strip() for piece in TAG_SEPARATOR.split(text) if piece.strip()]


def normalize_tags(value: Union[None, str, List[str], tuple]) -> List[str]:
    """
    Accept either a delimited string or an ordered sequence of strings and
    return one list. Sequence entries are kept as given; they are split again
    after expansion during resolution.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return split_tags(value)
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    raise TypeError(f"tags must be a string or a list of strings, got {type(value).__name__}")


class BuildOutcome(str, Enum):
    """Terminal (or current) result of the triggering build."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    UNSTABLE = "UNSTABLE"
    ABORTED = "ABORTED"
    NOT_BUILT = "NOT_BUILT"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_result(cls, value: Union[None, str, "BuildOutcome"]) -> "BuildOutcome":
        """
        Map a host build result to an outcome.

        None, "" and "RUNNING" (an in-progress build) map to UNKNOWN.
        Matching is case-insensitive.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        name = str(value).strip().upper()
        if name in ("", "RUNNING"):
            return cls.UNKNOWN
        try:
            return cls(name)
        except ValueError:
            raise NotiferValidationError(
                f"Unknown build result '{value}'",
                valid_results=", ".join(o.value for o in cls),
            )

    @property
    def status_label(self) -> str:
        """Upper-case label used in generated message and title text."""
        return "RUNNING" if self is BuildOutcome.UNKNOWN else self.value


class NotifyPreferences(BaseModel):
    """Which outcomes trigger a notification (per-job configuration)."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    failure: bool = True
    unstable: bool = True
    aborted: bool = False


class BuildContext(BaseModel):
    """Build metadata supplied by the host for auto-generated text."""

    model_config = ConfigDict(frozen=True)

    job_name: str = ""
    build_number: Union[int, str] = 0
    build_url: str = ""
    # Folder-qualified name ("team/app/main"); the message body prefers it.
    full_job_name: Optional[str] = None

    @property
    def display_full_name(self) -> str:
        return self.full_job_name or self.job_name


class RawRequest(BaseModel):
    """
    Sparse user input for one notification attempt.

    Empty strings mean "fall back": to the global default for topic,
    credentials_id and server_url, to generated text for message and title.
    A priority of 0 means "derive from the outcome"; anything outside
    [0, 5] is clamped on construction and assignment.
    """

    model_config = ConfigDict(validate_assignment=True)

    topic: str = ""
    message: str = ""
    title: str = ""
    priority: int = 0
    tags: List[str] = Field(default_factory=list)
    credentials_id: str = ""
    server_url: str = ""
    fail_on_error: bool = False

    @field_validator("topic", "message", "title", "credentials_id", "server_url", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("priority", mode="before")
    @classmethod
    def clamp_priority(cls, v: Any) -> int:
        if v is None or v == "":
            return 0
        return clamp(int(v), 0, 5)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> List[str]:
        return normalize_tags(v)


class ResolvedPayload(BaseModel):
    """
    Fully resolved notification, ready to transmit.

    server_url and credentials_id are the resolved connection parameters;
    they are never part of the request body.
    """

    model_config = ConfigDict(frozen=True)

    topic: str
    message: str
    title: Optional[str] = None
    priority: int = 3
    tags: List[str] = Field(default_factory=list)
    server_url: str = ""
    credentials_id: str = ""

    def to_body(self) -> dict:
        """JSON body for the publish endpoint."""
        body: dict = {"message": self.message}
        if self.title:
            body["title"] = self.title
        body["priority"] = clamp(self.priority, 1, 5)
        if self.tags:
            body["tags"] = list(self.tags)
        return body


class SendResult(BaseModel):
    """Success record returned by the Notifer publish endpoint."""

    model_config = ConfigDict(extra="ignore")

    id: str
    topic: str = ""
    message: str = ""
    priority: int = 0
    tags: List[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("tags", mode="before")
    @classmethod
    def null_tags(cls, v: Any) -> Any:
        return [] if v is None else v
