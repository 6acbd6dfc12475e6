"""Shared fixtures for planner tests."""

import asyncio
import dataclasses
import uuid
from datetime import UTC, datetime, timedelta

import pytest

from daywise.planner.exceptions import PersistenceError, TaskNotFoundError
from daywise.planner.interfaces import TaskRepository
from daywise.planner.models import Importance, Task, TaskDraft


class InMemoryRepository(TaskRepository):
    """
    Dict-backed task repository.

    Writes and list reads can be held on an ``asyncio.Event`` and made to
    fail, which lets tests interleave several in-flight mutations deterministically.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, Task]] = {}
        self.gates: list[asyncio.Event] = []
        self.failures: list[Exception | None] = []
        self.list_calls = 0
        self.list_gate: asyncio.Event | None = None
        self.list_failure: Exception | None = None
        self._clock = datetime(2024, 5, 1, 8, 0, tzinfo=UTC)

    def hold_next(self, failure: Exception | None = None) -> asyncio.Event:
        """Block the next write until the returned event is set."""
        gate = asyncio.Event()
        self.gates.append(gate)
        self.failures.append(failure)
        return gate

    def hold_next_list(self, failure: Exception | None = None) -> asyncio.Event:
        """Block the next list read until the returned event is set."""
        self.list_gate = asyncio.Event()
        self.list_failure = failure
        return self.list_gate

    async def _write_gate(self) -> None:
        if not self.gates:
            return
        gate = self.gates.pop(0)
        failure = self.failures.pop(0)
        await gate.wait()
        if failure is not None:
            raise failure

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def seed(self, owner_id: str, *drafts: TaskDraft) -> list[Task]:
        tasks = []
        for draft in drafts:
            now = self._tick()
            task = Task.from_draft(
                uuid.uuid4().hex, draft, owner_id=owner_id, created_at=now, updated_at=now
            )
            self.collections.setdefault(owner_id, {})[task.id] = task
            tasks.append(task)
        return tasks

    async def insert_task(self, owner_id: str, draft: TaskDraft) -> Task:
        await self._write_gate()
        return self.seed(owner_id, draft)[0]

    async def list_tasks(self, owner_id: str) -> list[Task]:
        self.list_calls += 1
        if self.list_gate is not None:
            gate, failure = self.list_gate, self.list_failure
            self.list_gate = self.list_failure = None
            await gate.wait()
            if failure is not None:
                raise failure
        return sorted(
            self.collections.get(owner_id, {}).values(), key=lambda t: t.created_at
        )

    async def update_task(self, owner_id: str, task: Task) -> Task:
        await self._write_gate()
        collection = self.collections.get(owner_id, {})
        if task.id not in collection:
            raise TaskNotFoundError(f"Task with ID {task.id} not found")
        stored = dataclasses.replace(
            task, created_at=collection[task.id].created_at, updated_at=self._tick()
        )
        collection[task.id] = stored
        return stored

    async def delete_task(self, owner_id: str, task_id: str) -> bool:
        await self._write_gate()
        return self.collections.get(owner_id, {}).pop(task_id, None) is not None


class FailingRepository(InMemoryRepository):
    """Repository whose reads and writes always fail."""

    async def insert_task(self, owner_id: str, draft: TaskDraft) -> Task:
        raise PersistenceError("store unavailable")

    async def list_tasks(self, owner_id: str) -> list[Task]:
        raise PersistenceError("store unavailable")

    async def update_task(self, owner_id: str, task: Task) -> Task:
        raise PersistenceError("store unavailable")

    async def delete_task(self, owner_id: str, task_id: str) -> bool:
        raise PersistenceError("store unavailable")


@pytest.fixture
def repository() -> InMemoryRepository:
    """Create an empty in-memory repository."""
    return InMemoryRepository()


@pytest.fixture
def sample_draft() -> TaskDraft:
    """Create a sample task draft."""
    return TaskDraft(
        name="Write report",
        estimated_time=90,
        importance=Importance.HIGH,
        description="Quarterly numbers",
        deadline=datetime(2024, 5, 1, 17, 0, tzinfo=UTC),
    )


@pytest.fixture
def valid_schedule_payload() -> dict:
    """Create a scheduler reply that satisfies the schedule contract."""
    return {
        "schedule": [
            {"name": "Write report", "startTime": "09:00", "endTime": "10:30"},
            {"name": "Gym", "startTime": "10:45", "endTime": "11:45"},
        ],
        "isPossible": True,
    }


@pytest.fixture
def failing_repository() -> FailingRepository:
    """Create a repository that rejects every call."""
    return FailingRepository()
