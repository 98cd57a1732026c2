"""Core data models for buildhook."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Result(str, Enum):
    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILURE = "FAILURE"
    NOT_BUILT = "NOT_BUILT"
    ABORTED = "ABORTED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> Optional["Result"]:
        """Map a host result name to a Result. None stays None (still running)."""
        if value is None:
            return None
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


class RunKind(str, Enum):
    FREESTYLE = "freestyle"  # notifies "started" from the pre-build phase
    PIPELINE = "pipeline"    # notifies "started" from the main phase


class EventKind(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    CUSTOM = "custom"


# ---------------------------------------------------------------------------
# Card (wire payload)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Fact:
    name: str
    value: str


@dataclass
class Section:
    activity_title: str
    activity_subtitle: str
    facts: list[Fact] = field(default_factory=list)


@dataclass(frozen=True)
class PotentialAction:
    """A named hyperlink rendered as a button on the card."""

    name: str
    target: str


@dataclass
class Card:
    """Complete notification payload sent to a webhook."""

    summary: str
    sections: list[Section]
    theme_color: Optional[str] = None
    potential_action: list[PotentialAction] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Webhook configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Macro:
    """Template gated by an expected literal value."""

    template: str
    value: str


DEFAULT_TIMEOUT_SEC = 30


@dataclass
class Webhook:
    url: str
    name: str = ""
    timeout: float = DEFAULT_TIMEOUT_SEC

    start_notification: bool = False
    notify_success: bool = False
    notify_aborted: bool = False
    notify_not_built: bool = False
    notify_unstable: bool = False
    notify_failure: bool = False
    notify_back_to_normal: bool = False
    notify_repeated_failure: bool = False

    macros: list[Macro] = field(default_factory=list)

    def __str__(self) -> str:
        return self.name or self.url


# ---------------------------------------------------------------------------
# Build metadata supplied by the host
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestSummary:
    __test__ = False

    total: int
    failed: int = 0
    skipped: int = 0

    @property
    def passed(self) -> int:
        return self.total - self.failed - self.skipped


@dataclass(frozen=True)
class ChangeEntry:
    """One version-control change.

    ``affected_files`` is None when the SCM cannot list files for the entry.
    """

    author: str
    affected_files: Optional[frozenset[str]] = frozenset()
    commit_id: str = ""


@dataclass(frozen=True)
class ObjectMetadata:
    object_url: str
    object_display_name: str = ""


@dataclass(frozen=True)
class ContributorMetadata:
    contributor: str = ""
    contributor_display_name: str = ""


@dataclass(frozen=True)
class ChangeRequest:
    """Pull/merge request a job was created for."""

    pronoun: str = ""
    object_metadata: Optional[ObjectMetadata] = None
    contributor_metadata: Optional[ContributorMetadata] = None


@dataclass(frozen=True)
class MessageParameters:
    """Arguments of a pipeline-triggered custom message."""

    message: Optional[str] = None
    status: Optional[str] = None
    color: Optional[str] = None
    webhook_url: Optional[str] = None
