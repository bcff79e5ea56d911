"""Tests for message normalization and the grouping modes."""

import pytest

from conftest import make_record
from logviewer.models.logs import GroupBy
from logviewer.services.grouping import (
    extract_error_type,
    flatten_nested_groups,
    group_by_error_type,
    group_by_similar_errors,
    group_by_user_then_errors,
    group_exact,
    group_records,
    normalize_message,
)


# ── normalize_message ─────────────────────────────────────────


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Error at position: 578, reading: 18", "Error at position: N, reading: N"),
        ("Error at position: 12, reading: 3", "Error at position: N, reading: N"),
        ("NullReferenceException at 0xDEADBEEF", "NullReferenceException at 0xHEX"),
        (
            "IndexOutOfRangeException: index [12] out of range, capacity: 400",
            "IndexOutOfRangeException: index [N] out of range, capacity: N",
        ),
        ("Buffer overflow: Size=1024 > limit 512", "Buffer overflow: Size=N > limit N"),
        ("user 1234567 kicked", "user ID kicked"),
        ("check 5<10", "check N < N"),
        ("check 1 <= 2 <= 3", "check N <= N <= N"),
        ("flags 1&&0", "flags N && N"),
        ("Reconnect attempt 3 failed", "Reconnect attempt N failed"),
        ("  padded 7  ", "padded N"),
        ("v2 of build_42 ready", "v2 of build_42 ready"),
        ("client 1.2.3 rejected", "client N rejected"),
        ("client 10.0.19041 rejected", "client N rejected"),
        ("build: 2.4.1, retry 3.", "build: N, retry N."),
        ("", ""),
    ],
)
def test_normalize_message(message, expected):
    assert normalize_message(message) == expected


@pytest.mark.parametrize(
    "message",
    [
        "Error at position: 578, reading: 18",
        "NullReferenceException at 0xDEADBEEF",
        "index [3] of 1234567 failed, Size=9 > 10",
        "check 5<10 && 3>=2",
    ],
)
def test_normalize_message_is_idempotent(message):
    once = normalize_message(message)
    assert normalize_message(once) == once


# ── extract_error_type ────────────────────────────────────────


@pytest.mark.parametrize(
    "message, expected",
    [
        ("NullReferenceException at 0x1F", "NullReferenceException"),
        ("Error at position: 5", "Error"),
        ("socket TimeoutError after 30s", "TimeoutError"),
        ("[warning] Frame time: 18.2 ms over budget", "warning"),
        ("User joined the game", "Other"),
        ("", "Unknown"),
    ],
)
def test_extract_error_type(message, expected):
    assert extract_error_type(message) == expected


# ── grouping modes ────────────────────────────────────────────


def test_group_exact_sorts_keys_and_buckets_empty_values():
    records = [
        make_record("1", server="TESTINGSERVER"),
        make_record("2", server=""),
        make_record("3", server="PRODSERVER"),
        make_record("4", server="TESTINGSERVER"),
    ]

    groups = group_exact(records, "server")

    assert list(groups) == ["PRODSERVER", "TESTINGSERVER", "Unknown"]
    assert [r.log_id for r in groups["TESTINGSERVER"]] == ["1", "4"]
    assert [r.log_id for r in groups["Unknown"]] == ["2"]


def test_group_exact_by_user_id_uses_wire_name():
    records = [make_record("1", user_id="u2"), make_record("2", user_id="u1")]

    assert list(group_exact(records, "userId")) == ["u1", "u2"]


def test_group_exact_rejects_unknown_field():
    with pytest.raises(ValueError):
        group_exact([], "message")


def test_similar_errors_collapse_variable_content():
    records = [
        make_record("1", message="Error at position: 578, reading: 18"),
        make_record("2", message="User joined the game"),
        make_record("3", message="Error at position: 12, reading: 3"),
    ]

    groups = group_by_similar_errors(records)

    assert list(groups) == ["Error at position: N, reading: N", "User joined the game"]
    assert [r.log_id for r in groups["Error at position: N, reading: N"]] == ["1", "3"]


def test_similar_errors_grouping_is_stable_across_runs():
    records = [
        make_record("1", message="Error at position: 578, reading: 18"),
        make_record("2", message="NullReferenceException at 0xDEADBEEF"),
        make_record("3", message="Error at position: 12, reading: 3"),
        make_record("4", message=""),
        make_record("5", message="NullReferenceException at 0x0"),
    ]

    first = group_by_similar_errors(records)
    second = group_by_similar_errors(records)

    assert list(first) == list(second)
    for key in first:
        assert [r.log_id for r in first[key]] == [r.log_id for r in second[key]]
    assert [r.log_id for r in first["NullReferenceException at 0xHEX"]] == ["2", "5"]


def test_similar_errors_of_empty_input_is_empty():
    assert group_by_similar_errors([]) == {}


def test_user_then_errors_nests_patterns_per_user():
    records = [
        make_record("1", user_id="u1", message="Reconnect attempt 3 failed"),
        make_record("2", user_id="u2", message="Reconnect attempt 9 failed"),
        make_record("3", user_id="u1", message="Reconnect attempt 4 failed"),
        make_record("4", user_id="", message="User left the game"),
    ]

    nested = group_by_user_then_errors(records)

    assert list(nested) == ["u1", "u2", "Unknown"]
    assert [r.log_id for r in nested["u1"]["Reconnect attempt N failed"]] == ["1", "3"]
    assert list(nested["Unknown"]) == ["User left the game"]


def test_flatten_nested_groups_joins_keys():
    nested = {"u1": {"A": [make_record("1")]}, "u2": {"B": [make_record("2")]}}

    assert list(flatten_nested_groups(nested)) == ["u1 :: A", "u2 :: B"]


def test_group_by_error_type():
    records = [
        make_record("1", message="NullReferenceException at 0x1"),
        make_record("2", message="User joined the game"),
        make_record("3", message="NullReferenceException at 0x2"),
    ]

    groups = group_by_error_type(records)

    assert {key: len(logs) for key, logs in groups.items()} == {
        "NullReferenceException": 2,
        "Other": 1,
    }


@pytest.mark.parametrize(
    "group_by, expected_keys",
    [
        (GroupBy.PLATFORM, ["Android", "iOS"]),
        (GroupBy.SIMILAR_ERRORS, ["Reconnect attempt N failed"]),
        (GroupBy.ERROR_TYPE, ["Other"]),
    ],
)
def test_group_records_dispatch(group_by, expected_keys):
    records = [
        make_record("1", platform="iOS", message="Reconnect attempt 1 failed"),
        make_record("2", platform="Android", message="Reconnect attempt 2 failed"),
    ]

    assert list(group_records(records, group_by)) == expected_keys
