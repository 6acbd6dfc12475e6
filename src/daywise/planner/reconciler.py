"""Stable item identifiers and in-place edits for generated schedules."""

import dataclasses
import logging
import re
import uuid

from .config import TIME_PATTERN
from .exceptions import InvalidInputError, TaskNotFoundError
from .models import Schedule

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(TIME_PATTERN)


def reconcile(schedule: Schedule) -> Schedule:
    """
    Give every schedule item a stable id.

    Items that already carry an id keep it, so reconciling an already
    reconciled schedule returns an equal schedule.

    Args:
        schedule: Validated schedule

    Returns:
        New schedule whose items all have ids, in input order
    """
    items = [
        item if item.id is not None else dataclasses.replace(item, id=str(uuid.uuid4()))
        for item in schedule.schedule
    ]
    return dataclasses.replace(schedule, schedule=items)


def apply_edit(
    schedule: Schedule, item_id: str, start_time: str, end_time: str
) -> Schedule:
    """
    Change the times of one schedule item.

    Only the edited item is checked; overlap with other items is left to the
    caller. The result is re-sorted by start time, which is why edits target
    ids rather than positions.

    Args:
        schedule: Reconciled schedule
        item_id: Id of the item to change
        start_time: New start time (HH:MM)
        end_time: New end time (HH:MM)

    Returns:
        New schedule with the edit applied

    Raises:
        TaskNotFoundError: If no item has that id
        InvalidInputError: If the new times are malformed or not increasing
    """
    for label, value in (("start", start_time), ("end", end_time)):
        if not isinstance(value, str) or not _TIME_RE.fullmatch(value):
            raise InvalidInputError(f"Invalid {label} time format (HH:MM): {value!r}")
    if not start_time < end_time:
        raise InvalidInputError("End time must be after start time")

    if not any(item.id == item_id for item in schedule.schedule):
        raise TaskNotFoundError(f"Schedule item with ID {item_id} not found")

    items = [
        dataclasses.replace(item, start_time=start_time, end_time=end_time)
        if item.id == item_id
        else item
        for item in schedule.schedule
    ]
    items.sort(key=lambda item: item.start_time)

    logger.info(f"Moved schedule item {item_id} to {start_time}-{end_time}")
    return dataclasses.replace(schedule, schedule=items)
