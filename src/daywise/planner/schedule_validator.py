"""Validation boundary for untrusted scheduler output."""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from .config import TIME_PATTERN
from .models import Schedule, ScheduleItem, ValidationResult

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(TIME_PATTERN)


def validate_schedule(raw: Any, strict: bool = False) -> ValidationResult:
    """
    Validate raw scheduler output against the schedule contract.

    Checks, in order: top-level shape (``schedule`` list, ``isPossible``
    boolean, optional ``error`` string), every item's ``name`` and
    ``HH:MM`` times with start before end, and that an impossible schedule
    without an error is empty. A possible schedule with no items and no
    error is normalized to impossible.

    In strict mode items must also be in non-decreasing start order and
    must not overlap.

    This function never raises. Any failure yields the explicit error
    schedule and the reason; the raw payload is logged, not returned.

    Args:
        raw: Mapping or JSON text returned by the scheduler
        strict: Also check ordering and overlap across items

    Returns:
        ValidationResult carrying either the normalized schedule or the
        error schedule plus a reason
    """
    try:
        schedule = _parse(raw, strict)
    except ValueError as e:
        reason = str(e)
        logger.warning(f"Scheduler output failed validation: {reason}; raw={raw!r}")
        return ValidationResult(is_valid=False, schedule=Schedule.failed(), reason=reason)

    return ValidationResult(is_valid=True, schedule=schedule)


def coerce_schedule(raw: Any, strict: bool = False) -> Schedule:
    """Validate raw scheduler output, substituting the error schedule on failure."""
    return validate_schedule(raw, strict=strict).schedule


def _parse(raw: Any, strict: bool) -> Schedule:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Response is not valid JSON: {e}") from e

    if not isinstance(raw, Mapping):
        raise ValueError("Response is not an object")

    if "schedule" not in raw or not isinstance(raw["schedule"], list):
        raise ValueError("Missing or non-array field: schedule")

    # bool is checked by type; 0/1 are not accepted
    if "isPossible" not in raw or not isinstance(raw["isPossible"], bool):
        raise ValueError("Missing or non-boolean field: isPossible")

    error = raw.get("error")
    if error is not None and not isinstance(error, str):
        raise ValueError("Field error must be a string")
    error = error or None

    items = [_parse_item(index, item) for index, item in enumerate(raw["schedule"])]
    is_possible = raw["isPossible"]

    if not is_possible and error is None and items:
        raise ValueError("Impossible schedule must not contain items")

    if is_possible and not items and error is None:
        logger.info("Scheduler reported a possible schedule with no items")
        is_possible = False

    if strict:
        _check_chronology(items)

    return Schedule(schedule=items, is_possible=is_possible, error=error)


def _parse_item(index: int, item: Any) -> ScheduleItem:
    if not isinstance(item, Mapping):
        raise ValueError(f"Item {index} is not an object")

    name = item.get("name")
    if not isinstance(name, str):
        raise ValueError(f"Item {index} has no string name")

    start = item.get("startTime")
    end = item.get("endTime")
    for label, value in (("startTime", start), ("endTime", end)):
        if not isinstance(value, str) or not _TIME_RE.fullmatch(value):
            raise ValueError(f"Item {index} {label} is not in HH:MM format: {value!r}")

    # Zero-padded same-day clock times compare correctly as strings.
    if not start < end:
        raise ValueError(f"Item {index} ends at {end} before it starts at {start}")

    return ScheduleItem(name=name, start_time=start, end_time=end)


def _check_chronology(items: list[ScheduleItem]) -> None:
    for index, (previous, current) in enumerate(zip(items, items[1:]), start=1):
        if current.start_time < previous.start_time:
            raise ValueError(f"Item {index} starts before item {index - 1}")
        if current.start_time < previous.end_time:
            raise ValueError(f"Item {index} overlaps item {index - 1}")
