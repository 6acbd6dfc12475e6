"""Day planning: tasks, optimistic mutations and LLM-generated schedules."""

from .models import (
    LOCAL_OWNER,
    Identity,
    Importance,
    LocalOwner,
    MutationResult,
    MutationState,
    Notification,
    RemoteOwner,
    Schedule,
    ScheduleItem,
    ScheduleRequest,
    Task,
    TaskDraft,
    ValidationResult,
)
from .mutation_coordinator import OptimisticMutationCoordinator
from .planner_service import PlannerService
from .task_store import TaskStore

__all__ = [
    "LOCAL_OWNER",
    "Identity",
    "Importance",
    "LocalOwner",
    "MutationResult",
    "MutationState",
    "Notification",
    "RemoteOwner",
    "Schedule",
    "ScheduleItem",
    "ScheduleRequest",
    "Task",
    "TaskDraft",
    "ValidationResult",
    "OptimisticMutationCoordinator",
    "PlannerService",
    "TaskStore",
]
