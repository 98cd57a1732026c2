"""Ordered fact collection for a notification card."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from .models import Fact, Result, TestSummary

NAME_STATUS = "Status"
NAME_START_TIME = "Start time"
NAME_COMPLETION_TIME = "Completion time"
NAME_TOTAL_TESTS = "Total Tests"
NAME_PASSED_TESTS = "Total Passed Tests"
NAME_FAILED_TESTS = "Total Failed Tests"
NAME_SKIPPED_TESTS = "Total Skipped Tests"
NAME_BACK_TO_NORMAL_TIME = "Back to normal time"
NAME_FAILING_SINCE_BUILD = "Failing since build"
NAME_FAILING_SINCE_TIME = "Failing since time"
NAME_REMARKS = "Remarks"
NAME_CULPRITS = "Culprits"
NAME_DEVELOPERS = "Developers"
NAME_FILES_CHANGED = "Number of files changed"

STATUS_STARTED = "Started"
STATUS_RUNNING = "Running"

_BLAMEABLE = (Result.FAILURE, Result.UNSTABLE)


def format_timestamp(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).strftime("%a %b %d %H:%M:%S %Z %Y")


def format_duration(millis: int) -> str:
    """Human time span using the two most significant units."""
    millis = max(0, int(millis))
    seconds, ms = divmod(millis, 1000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)

    if days:
        return f"{days} day{'s' if days != 1 else ''} {hours} hr"
    if hours:
        return f"{hours} hr {minutes} min"
    if minutes:
        return f"{minutes} min {seconds} sec"
    if seconds >= 10:
        return f"{seconds} sec"
    if seconds:
        return f"{seconds}.{ms // 100} sec"
    return f"{ms} ms"


class FactsBuilder:
    """Append-only builder; insertion order is display order.

    Names are not unique and nothing is merged.
    """

    def __init__(self) -> None:
        self._facts: list[Fact] = []

    def add_fact(self, name: str | Fact, value: Optional[str] = None) -> "FactsBuilder":
        if isinstance(name, Fact):
            self._facts.append(name)
        else:
            self._facts.append(Fact(name, "" if value is None else str(value)))
        return self

    def add_status(self, value: str) -> "FactsBuilder":
        return self.add_fact(NAME_STATUS, value)

    def add_status_started(self) -> "FactsBuilder":
        return self.add_status(STATUS_STARTED)

    def add_status_running(self) -> "FactsBuilder":
        return self.add_status(STATUS_RUNNING)

    def add_start_time(self, run) -> "FactsBuilder":
        return self.add_fact(NAME_START_TIME, format_timestamp(run.start_time_millis))

    def add_completion_time(self, run) -> "FactsBuilder":
        return self.add_fact(
            NAME_COMPLETION_TIME,
            format_timestamp(run.start_time_millis + run.duration_millis),
        )

    def add_tests(self, summary: Optional[TestSummary]) -> "FactsBuilder":
        if summary is None:
            return self
        self.add_fact(NAME_TOTAL_TESTS, str(summary.total))
        self.add_fact(NAME_PASSED_TESTS, str(summary.passed))
        self.add_fact(NAME_FAILED_TESTS, str(summary.failed))
        self.add_fact(NAME_SKIPPED_TESTS, str(summary.skipped))
        return self

    def add_remarks(self, causes: Iterable[str]) -> "FactsBuilder":
        seen: set[str] = set()
        for cause in causes:
            if not cause or cause in seen:
                continue
            seen.add(cause)
            self.add_fact(NAME_REMARKS, cause)
        return self

    def add_culprits(self, result: Optional[Result], users: Iterable[str]) -> "FactsBuilder":
        # Nobody is blamed for a good build.
        if result not in _BLAMEABLE:
            return self
        names = sorted(set(u for u in users if u))
        if names:
            self.add_fact(NAME_CULPRITS, ", ".join(names))
        return self

    def add_developers(self, authors: Iterable[str]) -> "FactsBuilder":
        names = sorted(set(a for a in authors if a))
        if names:
            self.add_fact(NAME_DEVELOPERS, ", ".join(names))
        return self

    def add_number_of_files_changed(self, files: set[str] | frozenset[str]) -> "FactsBuilder":
        return self.add_fact(NAME_FILES_CHANGED, str(len(files)))

    def add_back_to_normal_time(self, duration_millis: int) -> "FactsBuilder":
        return self.add_fact(NAME_BACK_TO_NORMAL_TIME, format_duration(duration_millis))

    def add_failing_since_build(self, number: int) -> "FactsBuilder":
        return self.add_fact(NAME_FAILING_SINCE_BUILD, f"build #{number}")

    def add_failing_since_time(self, millis: int) -> "FactsBuilder":
        return self.add_fact(NAME_FAILING_SINCE_TIME, format_timestamp(millis))

    def collect(self) -> list[Fact]:
        return list(self._facts)
