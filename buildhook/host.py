"""Interfaces to the host orchestration system.

The notifier never talks to the CI server directly: everything it needs about
a build, its history and its job is read through the protocols below, so a
host integration only has to implement them once.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence

from .models import ChangeEntry, ChangeRequest, Result, RunKind, TestSummary


class MacroEvaluationError(Exception):
    """Raised when a macro template cannot be expanded."""


class BuildRecordError(Exception):
    """Raised when the host cannot provide some metadata for this build shape."""


class BuildRun(Protocol):
    """One execution of a job, as seen by the notifier."""

    number: int
    result: Optional[Result]
    start_time_millis: int
    duration_millis: int
    kind: RunKind

    @property
    def job_display_name(self) -> str:
        ...

    @property
    def previous_build(self) -> Optional["BuildRun"]:
        ...

    @property
    def next_build(self) -> Optional["BuildRun"]:
        ...

    @property
    def previous_not_failed_build(self) -> Optional["BuildRun"]:
        ...

    @property
    def first_build(self) -> Optional["BuildRun"]:
        ...

    @property
    def change_request(self) -> Optional[ChangeRequest]:
        ...

    @property
    def root_dir(self) -> Path:
        ...

    def get_causes(self) -> Sequence[str]:
        ...

    def get_culprits(self) -> Sequence[str]:
        ...

    def get_change_entries(self) -> Sequence[ChangeEntry]:
        ...

    def get_test_summary(self) -> Optional[TestSummary]:
        ...

    def get_environment(self) -> Mapping[str, str]:
        ...


class MacroEngine(Protocol):
    async def expand(self, run: BuildRun, workspace: Path, template: str) -> str:
        ...


class UrlProvider(Protocol):
    def get_run_url(self, run: BuildRun) -> str:
        ...


class RecordUrlProvider:
    """Resolve the build URL from the record itself."""

    def get_run_url(self, run: BuildRun) -> str:
        return getattr(run, "url", "")


# ---------------------------------------------------------------------------
# Environment token expansion
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_.]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def expand_environment(text: str, environment: Mapping[str, str]) -> str:
    """Replace ``${VAR}`` / ``$VAR`` tokens. Unknown tokens are kept verbatim."""

    def _replace(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        return environment.get(name, match.group(0))

    return _TOKEN_RE.sub(_replace, text)


class EnvironmentMacroEngine:
    """Macro engine backed by the build's environment variables.

    On top of the environment it knows ``BUILD_NUMBER``, ``BUILD_RESULT`` and
    ``JOB_NAME``. A template referencing any other token fails instead of
    silently comparing unexpanded text.
    """

    async def expand(self, run: BuildRun, workspace: Path, template: str) -> str:
        try:
            variables = dict(run.get_environment())
        except OSError as exc:
            raise MacroEvaluationError(f"Cannot read environment of build #{run.number}: {exc}") from exc
        variables.setdefault("BUILD_NUMBER", str(run.number))
        variables.setdefault("JOB_NAME", run.job_display_name)
        variables.setdefault("BUILD_RESULT", run.result.value if run.result else "")

        unknown = [
            m.group(1) or m.group(2)
            for m in _TOKEN_RE.finditer(template)
            if (m.group(1) or m.group(2)) not in variables
        ]
        if unknown:
            raise MacroEvaluationError(
                f"Unrecognized macro '{unknown[0]}' in '{template}'"
            )
        return expand_environment(template, variables)
