"""Tests for the schedule validation boundary."""

import json
from typing import Any

import pytest

from daywise.planner.models import Schedule, ScheduleItem
from daywise.planner.schedule_validator import coerce_schedule, validate_schedule


def item(name: str, start: str, end: str) -> dict[str, Any]:
    return {"name": name, "startTime": start, "endTime": end}


@pytest.mark.unit
class TestAcceptedOutput:
    """Test scheduler replies that satisfy the contract."""

    def test_all_tasks_fit(self) -> None:
        """Test a valid possible schedule is accepted unchanged."""
        raw = {
            "schedule": [item("A", "09:00", "10:00"), item("B", "10:15", "11:15")],
            "isPossible": True,
        }

        result = validate_schedule(raw)

        assert result.is_valid is True
        assert result.reason is None
        assert result.schedule == Schedule(
            schedule=[
                ScheduleItem(name="A", start_time="09:00", end_time="10:00"),
                ScheduleItem(name="B", start_time="10:15", end_time="11:15"),
            ],
            is_possible=True,
        )

    def test_impossible_empty_schedule(self) -> None:
        """Test an impossible schedule with no items is accepted unchanged."""
        result = validate_schedule({"schedule": [], "isPossible": False})

        assert result.is_valid is True
        assert result.schedule == Schedule(schedule=[], is_possible=False)

    def test_json_text_is_decoded(self, valid_schedule_payload: dict) -> None:
        """Test replies given as JSON text are parsed."""
        result = validate_schedule(json.dumps(valid_schedule_payload))

        assert result.is_valid is True
        assert len(result.schedule.schedule) == 2

    def test_error_string_is_kept(self) -> None:
        """Test the scheduler's error string is carried through."""
        result = validate_schedule(
            {"schedule": [], "isPossible": False, "error": "Not enough time"}
        )

        assert result.is_valid is True
        assert result.schedule.error == "Not enough time"

    def test_partial_schedule_with_error(self) -> None:
        """Test an impossible schedule may list items when an error explains it."""
        result = validate_schedule(
            {
                "schedule": [item("A", "09:00", "10:00")],
                "isPossible": False,
                "error": "B did not fit",
            }
        )

        assert result.is_valid is True
        assert len(result.schedule.schedule) == 1

    def test_extra_keys_are_ignored(self) -> None:
        """Test unknown fields do not fail validation."""
        raw = {
            "schedule": [{**item("A", "09:00", "10:00"), "note": "x"}],
            "isPossible": True,
            "model": "llama",
        }

        assert validate_schedule(raw).is_valid is True

    def test_overlap_tolerated_by_default(self) -> None:
        """Test overlapping items pass outside strict mode."""
        raw = {
            "schedule": [item("A", "09:00", "10:00"), item("B", "09:30", "10:30")],
            "isPossible": True,
        }

        assert validate_schedule(raw).is_valid is True


@pytest.mark.unit
class TestNormalization:
    """Test normalization of inconsistent but well-formed replies."""

    def test_possible_but_empty_becomes_impossible(self) -> None:
        """Test a possible schedule with nothing placed is reported impossible."""
        result = validate_schedule({"schedule": [], "isPossible": True})

        assert result.is_valid is True
        assert result.schedule.is_possible is False
        assert result.schedule.schedule == []

    def test_empty_error_string_is_dropped(self) -> None:
        """Test an empty error string counts as no error."""
        result = validate_schedule({"schedule": [], "isPossible": False, "error": ""})

        assert result.schedule.error is None


@pytest.mark.unit
class TestRejectedOutput:
    """Test replies that break the contract."""

    @pytest.mark.parametrize(
        "raw",
        [
            {"schedule": [item("A", "9:00", "10:00")], "isPossible": True},
            {"schedule": [item("A", "09:00", "24:00")], "isPossible": True},
            {"schedule": [item("A", "09:00", "09:60")], "isPossible": True},
            {"schedule": [item("A", "10:00", "09:00")], "isPossible": True},
            {"schedule": [item("A", "09:00", "09:00")], "isPossible": True},
            {"schedule": [item("A", "09:00", "10:00\n")], "isPossible": True},
            {"schedule": [{"startTime": "09:00", "endTime": "10:00"}], "isPossible": True},
            {"schedule": ["A"], "isPossible": True},
            {"schedule": [item("A", "09:00", "10:00")], "isPossible": False},
            {"schedule": [], "isPossible": "true"},
            {"schedule": [], "isPossible": 1},
            {"schedule": [], "isPossible": False, "error": 42},
            {"schedule": {}, "isPossible": True},
            {"isPossible": True},
            {"schedule": []},
            [],
            None,
            "not json",
        ],
    )
    def test_invalid_reply_yields_error_schedule(self, raw: Any) -> None:
        """Test every contract violation gives the explicit error schedule."""
        result = validate_schedule(raw)

        assert result.is_valid is False
        assert result.reason
        assert result.schedule == Schedule(schedule=[], is_possible=False, error=None)

    def test_non_padded_hour(self) -> None:
        """Test a non-padded hour is rejected and nothing is kept."""
        raw = {"schedule": [item("A", "9:00", "10:00")], "isPossible": True}

        schedule = coerce_schedule(raw)

        assert schedule.to_dict() == {"schedule": [], "isPossible": False}

    def test_rejection_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test the raw payload is logged when rejected."""
        validate_schedule({"schedule": "oops", "isPossible": True})

        assert "failed validation" in caplog.text
        assert "oops" in caplog.text


@pytest.mark.unit
class TestStrictMode:
    """Test ordering and overlap checks."""

    def test_overlap_rejected(self) -> None:
        """Test overlapping items fail strict validation."""
        raw = {
            "schedule": [item("A", "09:00", "10:00"), item("B", "09:30", "10:30")],
            "isPossible": True,
        }

        result = validate_schedule(raw, strict=True)

        assert result.is_valid is False
        assert "overlaps" in result.reason

    def test_out_of_order_rejected(self) -> None:
        """Test items must be in start order."""
        raw = {
            "schedule": [item("B", "11:00", "12:00"), item("A", "09:00", "10:00")],
            "isPossible": True,
        }

        result = validate_schedule(raw, strict=True)

        assert result.is_valid is False
        assert "starts before" in result.reason

    def test_back_to_back_items_accepted(self) -> None:
        """Test an item may start exactly when the previous one ends."""
        raw = {
            "schedule": [item("A", "09:00", "10:00"), item("B", "10:00", "11:00")],
            "isPossible": True,
        }

        assert validate_schedule(raw, strict=True).is_valid is True
