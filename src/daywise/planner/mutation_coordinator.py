"""Optimistic task mutations with rollback and refetch."""

import dataclasses
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from .config import TEMP_ID_PREFIX
from .exceptions import TaskNotFoundError
from .models import (
    LocalOwner,
    MutationResult,
    MutationState,
    OwnerKey,
    Task,
    TaskDraft,
)
from .task_store import TaskStore, validate_draft

logger = logging.getLogger(__name__)

TaskListUpdate = Callable[[list[Task]], list[Task]]


@dataclass
class _Mutation:
    """One in-flight or settled mutation in an owner's journal."""

    label: str
    apply: TaskListUpdate
    snapshot: list[Task]
    state: MutationState = MutationState.PENDING


class OptimisticMutationCoordinator:
    """
    Applies task mutations to the visible list before the store confirms them.

    Every mutation goes through ``Pending`` and ends ``Committed`` or
    ``RolledBack``. The local change is made synchronously, before the first
    suspension point, so the caller sees it immediately. Mutations for an
    owner are journaled in start order; rolling one back rebuilds the
    list by replaying the whole journal from its base, skipping rolled-back
    mutations. Committed mutations replay their confirmed result, so a failure
    never undoes another mutation's edit.

    The owner is invalidated each time its visible list changes.

    Once no mutation for an owner is pending, the owner's list is refetched
    from the store. That refetch is the convergence point; the optimistic
    list is only a latency hedge.

    Guest mutations are authoritative immediately and skip the journal.
    """

    def __init__(self, task_store: TaskStore) -> None:
        """
        Initialize the coordinator.

        Args:
            task_store: Store owning the visible task lists
        """
        self._store = task_store
        self._journals: dict[OwnerKey, list[_Mutation]] = {}

    def pending_count(self, owner: OwnerKey) -> int:
        """Number of unsettled mutations for an owner."""
        return sum(
            1
            for mutation in self._journals.get(owner, [])
            if mutation.state == MutationState.PENDING
        )

    async def create(self, owner: OwnerKey, draft: TaskDraft) -> MutationResult:
        """
        Add a task optimistically.

        A temporary task is shown at once and swapped for the store-confirmed
        task on success, matched by its temporary id.

        Raises:
            InvalidInputError: If the draft is out of range (nothing is applied)
        """
        draft = validate_draft(draft)

        if isinstance(owner, LocalOwner):
            task = await self._store.create(owner, draft)
            return MutationResult(state=MutationState.COMMITTED, task=task)

        temp_task = Task.from_draft(
            f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}",
            draft,
            owner_id=owner.owner_id,
            created_at=datetime.now(UTC),
        )
        mutation = self._begin(owner, f"create {temp_task.id}", _append(temp_task))

        try:
            confirmed = await self._store.persist_create(owner, draft)
        except Exception as e:
            logger.error(f"Error adding task '{draft.name}' for {owner}: {e}")
            return await self._fail(owner, mutation, e)

        self._commit(
            owner,
            mutation,
            visible=_replace_by_id(temp_task.id, confirmed),
            replay=_append(confirmed),
        )
        await self._settle(owner)
        return MutationResult(state=MutationState.COMMITTED, task=confirmed)

    async def update(self, owner: OwnerKey, task: Task) -> MutationResult:
        """
        Replace a task optimistically.

        Raises:
            TaskNotFoundError: If the task is not in the owner's visible list
            InvalidInputError: If the new fields are out of range
        """
        if self._store.find(owner, task.id) is None:
            raise TaskNotFoundError(f"Task with ID {task.id} not found")
        draft = validate_draft(task.to_draft())

        if isinstance(owner, LocalOwner):
            stored = await self._store.update(owner, task)
            return MutationResult(state=MutationState.COMMITTED, task=stored)

        task = dataclasses.replace(
            task,
            name=draft.name,
            description=draft.description,
            importance=draft.importance,
            owner_id=owner.owner_id,
        )
        mutation = self._begin(owner, f"update {task.id}", _replace_by_id(task.id, task))

        try:
            stored = await self._store.persist_update(owner, task)
        except Exception as e:
            logger.error(f"Error updating task {task.id} for {owner}: {e}")
            return await self._fail(owner, mutation, e)

        replace_stored = _replace_by_id(task.id, stored)
        self._commit(owner, mutation, visible=replace_stored, replay=replace_stored)
        await self._settle(owner)
        return MutationResult(state=MutationState.COMMITTED, task=stored)

    async def remove(self, owner: OwnerKey, task_id: str) -> MutationResult:
        """Remove a task optimistically. Removing an absent task is a no-op."""
        existing = self._store.find(owner, task_id)

        if isinstance(owner, LocalOwner) or existing is None:
            await self._store.remove(owner, task_id)
            return MutationResult(state=MutationState.COMMITTED, task=existing)

        drop = _remove_by_id(task_id)
        mutation = self._begin(owner, f"remove {task_id}", drop)

        try:
            await self._store.persist_remove(owner, task_id)
        except Exception as e:
            logger.error(f"Error deleting task {task_id} for {owner}: {e}")
            return await self._fail(owner, mutation, e)

        self._commit(owner, mutation, visible=drop, replay=drop)
        await self._settle(owner)
        return MutationResult(state=MutationState.COMMITTED, task=existing)

    def _begin(self, owner: OwnerKey, label: str, apply: TaskListUpdate) -> _Mutation:
        # Synchronous: snapshot capture and local apply cannot interleave.
        snapshot = self._store.list_tasks(owner)
        mutation = _Mutation(label=label, apply=apply, snapshot=snapshot)
        self._journals.setdefault(owner, []).append(mutation)
        self._store.replace(owner, apply(snapshot))
        self._store.invalidate(owner)
        logger.debug(f"Pending {label} for {owner}")
        return mutation

    def _commit(
        self,
        owner: OwnerKey,
        mutation: _Mutation,
        visible: TaskListUpdate,
        replay: TaskListUpdate,
    ) -> None:
        mutation.state = MutationState.COMMITTED
        mutation.apply = replay
        self._store.replace(owner, visible(self._store.list_tasks(owner)))
        self._store.invalidate(owner)
        logger.debug(f"Committed {mutation.label} for {owner}")

    async def _fail(
        self, owner: OwnerKey, mutation: _Mutation, error: Exception
    ) -> MutationResult:
        mutation.state = MutationState.ROLLED_BACK
        journal = self._journals.get(owner, [mutation])
        # Rebuild from the journal base so earlier commits keep their confirmed form.
        self._store.replace(owner, _replay(journal[0].snapshot, journal))
        self._store.invalidate(owner)
        logger.info(f"Rolled back {mutation.label} for {owner}")

        await self._settle(owner)
        return MutationResult(state=MutationState.ROLLED_BACK, error=str(error))

    async def _settle(self, owner: OwnerKey) -> None:
        if self.pending_count(owner):
            return

        self._journals.pop(owner, None)
        visible = self._store.list_tasks(owner)
        try:
            fetched = await self._store.refresh(owner)
        except Exception as e:
            logger.error(f"Error refetching tasks for {owner}: {e}")
            return

        # Mutations started while the refetch was in flight stay visible.
        started_meanwhile = self._journals.get(owner)
        if started_meanwhile:
            self._store.replace(owner, _replay(fetched, started_meanwhile))

        if self._store.list_tasks(owner) != visible:
            self._store.invalidate(owner)
            logger.debug(f"Refetch changed the task list for {owner}")


def _replay(base: list[Task], mutations: list[_Mutation]) -> list[Task]:
    tasks = list(base)
    for mutation in mutations:
        mutation.snapshot = list(tasks)
        if mutation.state != MutationState.ROLLED_BACK:
            tasks = mutation.apply(tasks)
    return tasks


def _append(task: Task) -> TaskListUpdate:
    return lambda tasks: [*tasks, task]


def _replace_by_id(task_id: str, replacement: Task) -> TaskListUpdate:
    return lambda tasks: [replacement if t.id == task_id else t for t in tasks]


def _remove_by_id(task_id: str) -> TaskListUpdate:
    return lambda tasks: [t for t in tasks if t.id != task_id]
