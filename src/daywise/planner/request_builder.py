"""Projection of a task list into the scheduler's input contract."""

import logging
from collections.abc import Sequence

from .exceptions import InvalidInputError
from .models import ScheduleRequest, Task

logger = logging.getLogger(__name__)


def build_request(tasks: Sequence[Task]) -> ScheduleRequest:
    """
    Build the scheduler request for a task list.

    Ids, owner and storage timestamps are dropped; only the fields the
    scheduler reasons about are kept.

    Args:
        tasks: Tasks to schedule

    Returns:
        ScheduleRequest with one entry per task, in list order

    Raises:
        InvalidInputError: If the task list is empty
    """
    if not tasks:
        raise InvalidInputError("At least one task is required to build a schedule")

    request = ScheduleRequest(tasks=[task.to_draft() for task in tasks])
    logger.debug(f"Built schedule request for {len(request.tasks)} tasks")
    return request
