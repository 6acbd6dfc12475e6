"""Data models for tasks, owners and generated schedules."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Importance(str, Enum):
    """Task importance enumeration."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MutationState(str, Enum):
    """Lifecycle of one optimistic mutation."""

    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    REJECTED = "rejected"  # refused before anything was applied


class NotificationVariant(str, Enum):
    """How prominently a notification should be shown."""

    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class LocalOwner:
    """Owner key for guest tasks that live only in memory."""

    def __str__(self) -> str:
        return "local"


@dataclass(frozen=True)
class RemoteOwner:
    """Owner key for a signed-in account whose tasks are persisted."""

    owner_id: str

    def __str__(self) -> str:
        return f"remote:{self.owner_id}"


OwnerKey = LocalOwner | RemoteOwner

LOCAL_OWNER = LocalOwner()


@dataclass(frozen=True)
class Identity:
    """Identity issued by the authentication provider."""

    owner_id: str
    is_ephemeral: bool = False


@dataclass(frozen=True)
class TaskDraft:
    """A task as entered by the user, before it has an id."""

    name: str
    estimated_time: int
    importance: Importance = Importance.MEDIUM
    description: str | None = None
    deadline: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        """Render the scheduler wire shape (camelCase, optional keys omitted)."""
        payload: dict[str, Any] = {"name": self.name}
        if self.description:
            payload["description"] = self.description
        if self.deadline is not None:
            payload["deadline"] = self.deadline.isoformat()
        payload["importance"] = self.importance.value
        payload["estimatedTime"] = self.estimated_time
        return payload


@dataclass(frozen=True)
class Task:
    """Represents a task item owned by a guest or an account."""

    id: str
    name: str
    estimated_time: int
    importance: Importance = Importance.MEDIUM
    description: str | None = None
    deadline: datetime | None = None
    owner_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_draft(
        cls,
        task_id: str,
        draft: TaskDraft,
        owner_id: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> "Task":
        """Build a task from a draft plus identity and storage metadata."""
        return cls(
            id=task_id,
            name=draft.name,
            estimated_time=draft.estimated_time,
            importance=draft.importance,
            description=draft.description,
            deadline=draft.deadline,
            owner_id=owner_id,
            created_at=created_at,
            updated_at=updated_at,
        )

    def to_draft(self) -> TaskDraft:
        """Strip identity and storage metadata."""
        return TaskDraft(
            name=self.name,
            estimated_time=self.estimated_time,
            importance=self.importance,
            description=self.description,
            deadline=self.deadline,
        )


@dataclass
class ScheduleRequest:
    """Minimal input handed to the external scheduler."""

    tasks: list[TaskDraft]

    def to_payload(self) -> dict[str, Any]:
        return {"tasks": [task.to_payload() for task in self.tasks]}


@dataclass(frozen=True)
class ScheduleItem:
    """One task placed on the day."""

    name: str
    start_time: str
    end_time: str
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.id is not None:
            data["id"] = self.id
        return data


@dataclass
class Schedule:
    """Result of one schedule generation request."""

    schedule: list[ScheduleItem] = field(default_factory=list)
    is_possible: bool = False
    error: str | None = None

    @classmethod
    def failed(cls, error: str | None = None) -> "Schedule":
        """The explicit error schedule: nothing placed, not possible."""
        return cls(schedule=[], is_possible=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schedule": [item.to_dict() for item in self.schedule],
            "isPossible": self.is_possible,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ValidationResult:
    """Result of validating raw scheduler output."""

    is_valid: bool
    schedule: Schedule
    reason: str | None = None


@dataclass
class MutationResult:
    """Outcome of an optimistic task mutation."""

    state: MutationState
    task: Task | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == MutationState.COMMITTED


@dataclass(frozen=True)
class Notification:
    """A user-visible message."""

    title: str
    description: str | None = None
    variant: NotificationVariant = NotificationVariant.DEFAULT
