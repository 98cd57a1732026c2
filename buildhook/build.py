"""In-memory build history and snapshot loading.

A snapshot is a JSON or YAML document describing a job, its build history and
the build being notified::

    job:
      display_name: api-server
      change_request:
        pronoun: Pull Request
        object_url: https://git.example.com/pr/12
        object_display_name: Add rate limiting
        contributor: octocat
        contributor_display_name: Mona Lisa
    current: 3
    builds:
      - number: 3
        result: SUCCESS
        start_time_millis: 1700000000000
        duration_millis: 42000
        url: https://ci.example.com/job/api-server/3/
        causes: ["Started by user admin"]
        culprits: []
        changes:
          - author: octocat
            files: [src/app.py]
        tests: {total: 10, failed: 0, skipped: 1}
        environment: {BRANCH_NAME: main}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence

import yaml

from .host import BuildRecordError
from .models import (
    ChangeEntry,
    ChangeRequest,
    ContributorMetadata,
    ObjectMetadata,
    Result,
    RunKind,
    TestSummary,
)


@dataclass
class JobRecord:
    display_name: str
    change_request: Optional[ChangeRequest] = None
    builds: list["BuildRecord"] = field(default_factory=list)

    def add_build(self, build: "BuildRecord") -> "BuildRecord":
        build.job = self
        self.builds.append(build)
        self.builds.sort(key=lambda b: b.number)
        return build

    def get_build(self, number: int) -> Optional["BuildRecord"]:
        return next((b for b in self.builds if b.number == number), None)


@dataclass
class BuildRecord:
    """A build of a job, implementing the ``BuildRun`` protocol."""

    number: int
    result: Optional[Result] = None
    start_time_millis: int = 0
    duration_millis: int = 0
    kind: RunKind = RunKind.PIPELINE
    url: str = ""
    causes: list[str] = field(default_factory=list)
    culprits: Optional[list[str]] = field(default_factory=list)
    changes: Optional[list[ChangeEntry]] = field(default_factory=list)
    tests: Optional[TestSummary] = None
    environment: dict[str, str] = field(default_factory=dict)
    job: Optional[JobRecord] = field(default=None, repr=False, compare=False)

    # -- history -----------------------------------------------------------

    def _history(self) -> list["BuildRecord"]:
        return self.job.builds if self.job else [self]

    @property
    def job_display_name(self) -> str:
        return self.job.display_name if self.job else ""

    @property
    def change_request(self) -> Optional[ChangeRequest]:
        return self.job.change_request if self.job else None

    @property
    def previous_build(self) -> Optional["BuildRecord"]:
        earlier = [b for b in self._history() if b.number < self.number]
        return earlier[-1] if earlier else None

    @property
    def next_build(self) -> Optional["BuildRecord"]:
        later = [b for b in self._history() if b.number > self.number]
        return later[0] if later else None

    @property
    def previous_not_failed_build(self) -> Optional["BuildRecord"]:
        build = self.previous_build
        while build is not None:
            if build.result != Result.FAILURE:
                return build
            build = build.previous_build
        return None

    @property
    def first_build(self) -> Optional["BuildRecord"]:
        history = self._history()
        return history[0] if history else None

    @property
    def root_dir(self) -> Path:
        return Path(self.environment.get("WORKSPACE", "."))

    # -- metadata ----------------------------------------------------------

    def get_causes(self) -> Sequence[str]:
        return list(self.causes)

    def get_culprits(self) -> Sequence[str]:
        if self.culprits is None:
            raise BuildRecordError(f"Build #{self.number} does not track culprits")
        return list(self.culprits)

    def get_change_entries(self) -> Sequence[ChangeEntry]:
        if self.changes is None:
            raise BuildRecordError(f"Build #{self.number} does not track change sets")
        return list(self.changes)

    def get_test_summary(self) -> Optional[TestSummary]:
        return self.tests

    def get_environment(self) -> Mapping[str, str]:
        return dict(self.environment)

    def __str__(self) -> str:
        return f"{self.job_display_name} #{self.number}"


# ---------------------------------------------------------------------------
# Snapshot loading
# ---------------------------------------------------------------------------

def _parse_change_request(data: dict | None) -> Optional[ChangeRequest]:
    if not data:
        return None
    obj = None
    if data.get("object_url"):
        obj = ObjectMetadata(
            object_url=data["object_url"],
            object_display_name=data.get("object_display_name", ""),
        )
    contributor = None
    if data.get("contributor") or data.get("contributor_display_name"):
        contributor = ContributorMetadata(
            contributor=data.get("contributor", ""),
            contributor_display_name=data.get("contributor_display_name", ""),
        )
    return ChangeRequest(
        pronoun=data.get("pronoun", ""),
        object_metadata=obj,
        contributor_metadata=contributor,
    )


def _parse_changes(raw: list | None) -> Optional[list[ChangeEntry]]:
    if raw is None:
        return None
    entries = []
    for c in raw:
        files = c.get("files", [])
        entries.append(ChangeEntry(
            author=c.get("author", ""),
            affected_files=None if files is None else frozenset(files),
            commit_id=c.get("commit_id", ""),
        ))
    return entries


def _parse_build(data: dict) -> BuildRecord:
    tests = data.get("tests")
    return BuildRecord(
        number=int(data["number"]),
        result=Result.parse(data.get("result")),
        start_time_millis=int(data.get("start_time_millis", 0)),
        duration_millis=int(data.get("duration_millis", 0)),
        kind=RunKind(data.get("kind", RunKind.PIPELINE.value)),
        url=data.get("url", ""),
        causes=list(data.get("causes", [])),
        culprits=data.get("culprits", []),
        changes=_parse_changes(data.get("changes", [])),
        tests=TestSummary(
            total=int(tests.get("total", 0)),
            failed=int(tests.get("failed", 0)),
            skipped=int(tests.get("skipped", 0)),
        ) if isinstance(tests, dict) else None,
        environment={str(k): str(v) for k, v in (data.get("environment") or {}).items()},
    )


def parse_snapshot(data: dict) -> BuildRecord:
    """Build a job history from a snapshot mapping and return the current build."""
    if not isinstance(data, dict):
        raise ValueError(f"Invalid snapshot: expected mapping, got {type(data).__name__}")

    job_data = data.get("job") or {}
    job = JobRecord(
        display_name=job_data.get("display_name", ""),
        change_request=_parse_change_request(job_data.get("change_request")),
    )
    builds = data.get("builds") or []
    if not builds:
        raise ValueError("Invalid snapshot: no builds")
    for b in builds:
        job.add_build(_parse_build(b))

    current = data.get("current")
    build = job.get_build(int(current)) if current is not None else job.builds[-1]
    if build is None:
        raise ValueError(f"Invalid snapshot: build #{current} not in history")
    return build


def load_snapshot(path: str | Path) -> BuildRecord:
    """Load a JSON/YAML build snapshot file."""
    raw = Path(path).read_text(encoding="utf-8")
    return parse_snapshot(yaml.safe_load(raw))
