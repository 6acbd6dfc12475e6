"""Task Store holding the visible task list of every owner."""

import dataclasses
import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from .config import (
    MAX_ESTIMATED_TIME,
    MAX_TASK_DESCRIPTION_LENGTH,
    MAX_TASK_NAME_LENGTH,
    MIN_ESTIMATED_TIME,
)
from .exceptions import InvalidInputError, PersistenceError, TaskNotFoundError
from .interfaces import TaskRepository
from .models import Importance, LocalOwner, OwnerKey, RemoteOwner, Task, TaskDraft

logger = logging.getLogger(__name__)

InvalidationListener = Callable[[OwnerKey], None]


def validate_draft(draft: TaskDraft) -> TaskDraft:
    """
    Check task field limits.

    Args:
        draft: Task fields as entered by the user

    Returns:
        The draft with its name and description stripped of surrounding
        whitespace and its importance coerced to ``Importance``

    Raises:
        InvalidInputError: If any field is out of range
    """
    name = draft.name.strip() if isinstance(draft.name, str) else ""
    if not name:
        raise InvalidInputError("Task name is required")
    if len(name) > MAX_TASK_NAME_LENGTH:
        raise InvalidInputError(
            f"Task name is longer than {MAX_TASK_NAME_LENGTH} characters"
        )

    description = draft.description.strip() if draft.description else None
    if description and len(description) > MAX_TASK_DESCRIPTION_LENGTH:
        raise InvalidInputError(
            f"Task description is longer than {MAX_TASK_DESCRIPTION_LENGTH} characters"
        )

    estimated = draft.estimated_time
    if isinstance(estimated, bool) or not isinstance(estimated, int):
        raise InvalidInputError("Estimated time must be a whole number of minutes")
    if not MIN_ESTIMATED_TIME <= estimated <= MAX_ESTIMATED_TIME:
        raise InvalidInputError(
            f"Estimated time must be between {MIN_ESTIMATED_TIME} and "
            f"{MAX_ESTIMATED_TIME} minutes"
        )

    try:
        importance = Importance(draft.importance)
    except ValueError:
        raise InvalidInputError(f"Unknown importance: {draft.importance!r}") from None

    if draft.deadline is not None and draft.deadline.tzinfo is None:
        raise InvalidInputError("Deadline must carry a UTC offset")

    return dataclasses.replace(
        draft, name=name, description=description or None, importance=importance
    )


class TaskStore:
    """
    Authoritative in-memory view of each owner's task list.

    Guest tasks live only here. Signed-in owners' tasks are persisted through
    the task repository and this view is refreshed from it on invalidation.
    """

    def __init__(self, repository: TaskRepository | None = None) -> None:
        """
        Initialize Task Store.

        Args:
            repository: Persistent store for signed-in owners
        """
        self._repository = repository
        self._tasks: dict[OwnerKey, list[Task]] = {}
        self._listeners: list[InvalidationListener] = []

    def add_invalidation_listener(
        self, listener: InvalidationListener
    ) -> Callable[[], None]:
        """
        Register a callback fired whenever an owner's task list changes.

        Returns:
            Callable that unregisters the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def invalidate(self, owner: OwnerKey) -> None:
        """Signal that anything derived from the owner's tasks is stale."""
        for listener in list(self._listeners):
            listener(owner)

    def list_tasks(self, owner: OwnerKey) -> list[Task]:
        """Return the currently known tasks for an owner."""
        return list(self._tasks.get(owner, []))

    def find(self, owner: OwnerKey, task_id: str) -> Task | None:
        for task in self._tasks.get(owner, []):
            if task.id == task_id:
                return task
        return None

    def replace(self, owner: OwnerKey, tasks: list[Task]) -> None:
        """Overwrite the visible list. Only the mutation coordinator calls this."""
        self._tasks[owner] = list(tasks)

    async def refresh(self, owner: OwnerKey) -> list[Task]:
        """
        Reload an owner's list from the persistent store.

        Guest lists have nothing to reload and are returned unchanged.

        Raises:
            PersistenceError: If the store cannot be read
        """
        if isinstance(owner, LocalOwner):
            return self.list_tasks(owner)

        repository = self._require_repository()
        tasks = await repository.list_tasks(owner.owner_id)
        self._tasks[owner] = tasks
        logger.debug(f"Refreshed {len(tasks)} tasks for {owner}")
        return list(tasks)

    async def create(self, owner: OwnerKey, draft: TaskDraft) -> Task:
        """
        Create a task and add it to the visible list.

        Raises:
            InvalidInputError: If the draft is out of range
            PersistenceError: If the remote store rejects the write
        """
        task = await self.persist_create(owner, draft)
        self._tasks.setdefault(owner, []).append(task)
        logger.info(f"Added task {task.id} for {owner}: {task.name}")
        self.invalidate(owner)
        return task

    async def update(self, owner: OwnerKey, task: Task) -> Task:
        """
        Replace a task by id.

        Raises:
            TaskNotFoundError: If the id is absent for that owner
            PersistenceError: If the remote store rejects the write
        """
        stored = await self.persist_update(owner, task)
        self._tasks[owner] = [
            stored if existing.id == stored.id else existing
            for existing in self._tasks.get(owner, [])
        ]
        logger.info(f"Updated task {stored.id} for {owner}")
        self.invalidate(owner)
        return stored

    async def remove(self, owner: OwnerKey, task_id: str) -> None:
        """
        Remove a task by id. Removing an absent id is not an error.

        Raises:
            PersistenceError: If the remote store rejects the delete
        """
        await self.persist_remove(owner, task_id)
        self._tasks[owner] = [
            task for task in self._tasks.get(owner, []) if task.id != task_id
        ]
        logger.info(f"Deleted task {task_id} for {owner}")
        self.invalidate(owner)

    async def persist_create(self, owner: OwnerKey, draft: TaskDraft) -> Task:
        """Confirm a new task with the owner's store without touching the view."""
        draft = validate_draft(draft)
        if isinstance(owner, LocalOwner):
            now = datetime.now(UTC)
            return Task.from_draft(
                uuid.uuid4().hex, draft, created_at=now, updated_at=now
            )

        return await self._require_repository().insert_task(owner.owner_id, draft)

    async def persist_update(self, owner: OwnerKey, task: Task) -> Task:
        """Confirm a task replacement with the owner's store without touching the view."""
        draft = validate_draft(task.to_draft())
        task = dataclasses.replace(
            task,
            name=draft.name,
            description=draft.description,
            importance=draft.importance,
        )
        if isinstance(owner, LocalOwner):
            if self.find(owner, task.id) is None:
                raise TaskNotFoundError(f"Task with ID {task.id} not found")
            return dataclasses.replace(
                task, owner_id=None, updated_at=datetime.now(UTC)
            )

        self._check_owned(owner, task)
        return await self._require_repository().update_task(owner.owner_id, task)

    async def persist_remove(self, owner: OwnerKey, task_id: str) -> None:
        """Confirm a delete with the owner's store without touching the view."""
        if isinstance(owner, LocalOwner):
            return

        removed = await self._require_repository().delete_task(owner.owner_id, task_id)
        if not removed:
            logger.debug(f"Task {task_id} was already absent for {owner}")

    def _check_owned(self, owner: RemoteOwner, task: Task) -> None:
        # Local-only tasks never reach the persistent store.
        if task.owner_id != owner.owner_id:
            raise InvalidInputError(
                f"Task {task.id} does not belong to owner {owner.owner_id}"
            )

    def _require_repository(self) -> TaskRepository:
        if self._repository is None:
            raise PersistenceError("No persistent task store configured")
        return self._repository
