"""Shared fixtures for buildhook tests."""

import pytest

from buildhook.build import BuildRecord, JobRecord
from buildhook.models import Result, RunKind

START = 1_700_000_000_000  # Tue Nov 14 22:13:20 UTC 2023
HOUR = 3_600_000


class FakeMacroEngine:
    """Macro engine that looks templates up in a dict and records calls."""

    def __init__(self, values=None, error=None):
        self.values = values or {}
        self.error = error
        self.calls = []

    async def expand(self, run, workspace, template):
        self.calls.append(template)
        if self.error is not None:
            raise self.error
        return self.values.get(template, "")


@pytest.fixture
def job():
    return JobRecord(display_name="api-server")


@pytest.fixture
def make_history(job):
    """Add builds #1..#n with the given results; return the last one.

    Build #n starts ``n`` hours after START and lasts one minute.
    """

    def _make(*results, kind=RunKind.PIPELINE, **last_build_fields):
        build = None
        for i, result in enumerate(results, 1):
            fields = dict(
                number=i,
                result=result,
                start_time_millis=START + i * HOUR,
                duration_millis=60_000,
                kind=kind,
                url=f"https://ci.example.com/job/api-server/{i}/",
            )
            if i == len(results):
                fields.update(last_build_fields)
            build = job.add_build(BuildRecord(**fields))
        return build

    return _make


@pytest.fixture
def engine():
    return FakeMacroEngine()


@pytest.fixture
def tmp_project(tmp_path):
    """Project with .buildhook/config.yaml holding two webhooks."""
    config_dir = tmp_path / ".buildhook"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("""\
dispatch:
  max_workers: 2
  max_pending: 16
  default_timeout: 15
logging:
  level: info
webhooks:
  - name: failures
    url: https://hooks.example.com/failures
    notify_failure: true
    notify_repeated_failure: true
  - name: main-only
    url: https://hooks.example.com/${BRANCH_NAME}
    timeout: 5
    notify_success: true
    macros:
      - template: "${BRANCH_NAME}"
        value: main
""")
    return tmp_path


@pytest.fixture
def snapshot_file(tmp_path):
    """Snapshot of a failed build #2 after a successful #1."""
    path = tmp_path / "build.yaml"
    path.write_text(f"""\
job:
  display_name: api-server
current: 2
builds:
  - number: 1
    result: SUCCESS
    start_time_millis: {START}
    duration_millis: 30000
  - number: 2
    result: FAILURE
    start_time_millis: {START + HOUR}
    duration_millis: 45000
    url: https://ci.example.com/job/api-server/2/
    causes: ["Started by user admin"]
    culprits: [alice]
    changes:
      - author: alice
        files: [src/app.py, src/db.py]
    environment:
      BRANCH_NAME: main
""")
    return path
