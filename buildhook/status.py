"""Build status classification against the build history."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Protocol

from .models import Result

COLOR_SUCCESS = "96CEB4"
COLOR_FAILURE = "FF6F69"
COLOR_OTHER = "FFCC5C"


class _Timed(Protocol):
    number: int
    start_time_millis: int
    duration_millis: int


@dataclass(frozen=True)
class StatusClassification:
    """Outcome of classifying one completed build.

    The optional fields are only set on the paths that report them:
    ``back_to_normal_millis`` for "Back to Normal", the ``failing_since_*``
    pair for "Repeated Failure".
    """

    status: str
    summary_suffix: str
    theme_color: str
    back_to_normal_millis: Optional[int] = None
    failing_since_build: Optional[int] = None
    failing_since_time_millis: Optional[int] = None


def theme_color_for(result: Result) -> str:
    if result == Result.SUCCESS:
        return COLOR_SUCCESS
    if result == Result.FAILURE:
        return COLOR_FAILURE
    return COLOR_OTHER


def resolve_failing_since(run):
    """First build of the current failure streak.

    That is the build after the previous not-failed build, or the job's first
    build when nothing before has ever succeeded.
    """
    last_good = run.previous_not_failed_build
    if last_good is not None:
        return last_good.next_build
    return run.first_build


def effective_duration(start_time_millis: int, duration_millis: int, now_millis: int) -> int:
    """Recorded duration, or time elapsed so far when the host has not set one."""
    if duration_millis == 0:
        return now_millis - start_time_millis
    return duration_millis


def classify_status(
    result: Optional[Result],
    previous_result: Optional[Result],
    failing_since: Optional[_Timed],
    start_time_millis: int,
    duration_millis: int,
    now_millis: Optional[int] = None,
) -> StatusClassification:
    """Classify a completed build. First matching rule wins.

    ``result`` None is treated as SUCCESS: pipelines only ever set a worse
    result while running. ``previous_result`` None means there is no previous
    build and is treated as SUCCESS too.
    """
    result = result or Result.SUCCESS
    previous_result = previous_result or Result.SUCCESS
    color = theme_color_for(result)

    if result == Result.SUCCESS and previous_result in (Result.FAILURE, Result.UNSTABLE):
        back_to_normal = None
        if failing_since is not None:
            if now_millis is None:
                now_millis = int(time.time() * 1000)
            completed_at = start_time_millis + effective_duration(
                start_time_millis, duration_millis, now_millis
            )
            back_to_normal = max(0, completed_at - failing_since.start_time_millis)
        return StatusClassification(
            "Back to Normal", " Back to Normal", color, back_to_normal_millis=back_to_normal,
        )

    if result == Result.FAILURE and failing_since is not None:
        if previous_result == Result.FAILURE:
            return StatusClassification(
                "Repeated Failure",
                " Repeated Failure",
                color,
                failing_since_build=failing_since.number,
                failing_since_time_millis=failing_since.start_time_millis + failing_since.duration_millis,
            )
        return StatusClassification("Build Failed", " Failed", color)

    if result == Result.ABORTED:
        return StatusClassification("Build Aborted", " Aborted", color)
    if result == Result.UNSTABLE:
        return StatusClassification("Build Unstable", " Unstable", color)
    if result == Result.SUCCESS:
        return StatusClassification("Build Success", " Success", color)
    if result == Result.NOT_BUILT:
        return StatusClassification("Not Built", " Not Built", color)

    return StatusClassification(result.value, f" {result.value}", color)
