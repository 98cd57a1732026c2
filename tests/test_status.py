"""Tests for status classification."""

import itertools

import pytest

from buildhook.build import BuildRecord
from buildhook.models import Result
from buildhook.status import (
    COLOR_FAILURE,
    COLOR_OTHER,
    COLOR_SUCCESS,
    classify_status,
    resolve_failing_since,
)

from conftest import HOUR, START

ALL_RESULTS = [None, *Result]


def _build(number, start=0, duration=0):
    return BuildRecord(number=number, start_time_millis=start, duration_millis=duration)


# --- Scenarios ---

def test_first_failure():
    """Failure after success → Build Failed, red."""
    this = _build(5, start=1000)
    c = classify_status(Result.FAILURE, Result.SUCCESS, this, 1000, 500)
    assert c.status == "Build Failed"
    assert c.summary_suffix == " Failed"
    assert c.theme_color == COLOR_FAILURE
    assert c.failing_since_build is None


def test_repeated_failure_reports_streak_start():
    since = _build(10, start=2000, duration=300)
    c = classify_status(Result.FAILURE, Result.FAILURE, since, 9000, 100)
    assert c.status == "Repeated Failure"
    assert c.summary_suffix == " Repeated Failure"
    assert c.failing_since_build == 10
    assert c.failing_since_time_millis == 2300


def test_back_to_normal_uses_elapsed_time_when_duration_unset():
    """duration=0 → effective duration is now - start."""
    since = _build(7, start=200)
    c = classify_status(Result.SUCCESS, Result.UNSTABLE, since, 1000, 0, now_millis=5000)
    assert c.status == "Back to Normal"
    assert c.summary_suffix == " Back to Normal"
    assert c.back_to_normal_millis == (1000 + 4000) - 200


def test_back_to_normal_uses_recorded_duration():
    since = _build(7, start=200)
    c = classify_status(Result.SUCCESS, Result.FAILURE, since, 1000, 300, now_millis=99999)
    assert c.back_to_normal_millis == 1100


def test_back_to_normal_never_negative():
    since = _build(7, start=10_000)
    c = classify_status(Result.SUCCESS, Result.FAILURE, since, 1000, 10, now_millis=2000)
    assert c.back_to_normal_millis == 0


def test_back_to_normal_without_failing_since_has_no_duration():
    c = classify_status(Result.SUCCESS, Result.FAILURE, None, 1000, 10)
    assert c.status == "Back to Normal"
    assert c.back_to_normal_millis is None


def test_back_to_normal_color_follows_result():
    """Back to Normal is a SUCCESS result, so it gets the success color."""
    c = classify_status(Result.SUCCESS, Result.FAILURE, _build(1), 0, 1)
    assert c.theme_color == COLOR_SUCCESS


@pytest.mark.parametrize("result, status, suffix", [
    (Result.ABORTED, "Build Aborted", " Aborted"),
    (Result.UNSTABLE, "Build Unstable", " Unstable"),
    (Result.SUCCESS, "Build Success", " Success"),
    (Result.NOT_BUILT, "Not Built", " Not Built"),
    (Result.UNKNOWN, "UNKNOWN", " UNKNOWN"),
])
def test_plain_statuses(result, status, suffix):
    c = classify_status(result, Result.SUCCESS, _build(1), 0, 1)
    assert (c.status, c.summary_suffix) == (status, suffix)


def test_failure_without_failing_since_falls_back_to_name():
    c = classify_status(Result.FAILURE, Result.SUCCESS, None, 0, 1)
    assert c.status == "FAILURE"
    assert c.theme_color == COLOR_FAILURE


def test_missing_result_classified_as_success():
    """Pipelines may not have set a result yet."""
    c = classify_status(None, None, _build(1), 0, 1)
    assert c.status == "Build Success"
    assert c.theme_color == COLOR_SUCCESS


# --- Theme color depends on the current result only ---

@pytest.mark.parametrize("result, previous", list(itertools.product(ALL_RESULTS, ALL_RESULTS)))
def test_theme_color_ignores_previous_result(result, previous):
    c = classify_status(result, previous, _build(1), 0, 1, now_millis=10)
    if result in (None, Result.SUCCESS):
        assert c.theme_color == COLOR_SUCCESS
    elif result == Result.FAILURE:
        assert c.theme_color == COLOR_FAILURE
    else:
        assert c.theme_color == COLOR_OTHER


# --- Failing-since resolution ---

def test_failing_since_is_build_after_last_good(make_history):
    current = make_history(Result.SUCCESS, Result.UNSTABLE, Result.FAILURE, Result.FAILURE, Result.FAILURE)
    # #2 is unstable, which is "not failed"
    assert resolve_failing_since(current).number == 3


def test_failing_since_first_build_when_never_good(make_history):
    current = make_history(Result.FAILURE, Result.FAILURE, Result.FAILURE)
    assert resolve_failing_since(current).number == 1


def test_failing_since_on_first_failure_is_current_build(make_history):
    current = make_history(Result.SUCCESS, Result.FAILURE)
    since = resolve_failing_since(current)
    assert since is current
    assert since.start_time_millis == START + 2 * HOUR
