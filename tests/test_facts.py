"""Tests for the ordered fact builder."""

from buildhook.facts import FactsBuilder, format_duration, format_timestamp
from buildhook.models import Fact, Result, TestSummary

from conftest import START


def _pairs(builder):
    return [(f.name, f.value) for f in builder.collect()]


# --- Ordering ---

def test_insertion_order_preserved():
    b = FactsBuilder()
    b.add_status("Build Failed").add_fact("Zeta", "1").add_fact("Alpha", "2")
    assert [f.name for f in b.collect()] == ["Status", "Zeta", "Alpha"]


def test_duplicate_names_not_merged():
    b = FactsBuilder()
    b.add_fact("Developer", "alice")
    b.add_fact(Fact("Developer", "bob"))
    assert _pairs(b) == [("Developer", "alice"), ("Developer", "bob")]


def test_collect_is_not_destructive():
    b = FactsBuilder().add_status_running()
    first = b.collect()
    first.append(Fact("x", "y"))
    assert b.collect() == [Fact("Status", "Running")]


def test_status_shortcuts():
    b = FactsBuilder().add_status_started().add_status_running()
    assert _pairs(b) == [("Status", "Started"), ("Status", "Running")]


# --- Times ---

class _Run:
    start_time_millis = START
    duration_millis = 90_000


def test_start_and_completion_time():
    b = FactsBuilder().add_start_time(_Run()).add_completion_time(_Run())
    assert _pairs(b) == [
        ("Start time", "Tue Nov 14 22:13:20 UTC 2023"),
        ("Completion time", "Tue Nov 14 22:14:50 UTC 2023"),
    ]


def test_format_timestamp_utc():
    assert format_timestamp(0) == "Thu Jan 01 00:00:00 UTC 1970"


def test_format_duration_units():
    assert format_duration(250) == "250 ms"
    assert format_duration(4_500) == "4.5 sec"
    assert format_duration(12_000) == "12 sec"
    assert format_duration(250_000) == "4 min 10 sec"
    assert format_duration(3_720_000) == "1 hr 2 min"
    assert format_duration(2 * 86_400_000 + 3_600_000) == "2 days 1 hr"


# --- Tests ---

def test_tests_added_when_available():
    b = FactsBuilder().add_tests(TestSummary(total=10, failed=2, skipped=1))
    assert _pairs(b) == [
        ("Total Tests", "10"),
        ("Total Passed Tests", "7"),
        ("Total Failed Tests", "2"),
        ("Total Skipped Tests", "1"),
    ]


def test_tests_omitted_when_unavailable():
    assert FactsBuilder().add_tests(None).collect() == []


# --- Remarks ---

def test_remarks_one_fact_per_distinct_cause():
    b = FactsBuilder().add_remarks(["Started by user admin", "Started by timer", "Started by user admin"])
    assert _pairs(b) == [("Remarks", "Started by user admin"), ("Remarks", "Started by timer")]


def test_remarks_empty():
    assert FactsBuilder().add_remarks([]).collect() == []


# --- Culprits / developers ---

def test_culprits_on_failure_and_unstable():
    for result in (Result.FAILURE, Result.UNSTABLE):
        b = FactsBuilder().add_culprits(result, ["bob", "alice", "bob"])
        assert _pairs(b) == [("Culprits", "alice, bob")]


def test_no_culprits_on_success():
    assert FactsBuilder().add_culprits(Result.SUCCESS, ["alice"]).collect() == []
    assert FactsBuilder().add_culprits(None, ["alice"]).collect() == []


def test_developers_and_files():
    b = FactsBuilder()
    b.add_developers(["carol", "alice", "carol"])
    b.add_number_of_files_changed({"a.py", "b.py", "c.py"})
    assert _pairs(b) == [("Developers", "alice, carol"), ("Number of files changed", "3")]


# --- Classifier-driven facts ---

def test_failing_since_and_back_to_normal_facts():
    b = FactsBuilder()
    b.add_back_to_normal_time(3_720_000)
    b.add_failing_since_build(10)
    b.add_failing_since_time(0)
    assert _pairs(b) == [
        ("Back to normal time", "1 hr 2 min"),
        ("Failing since build", "build #10"),
        ("Failing since time", "Thu Jan 01 00:00:00 UTC 1970"),
    ]
