"""Abstract interfaces for the planner's external collaborators."""

from abc import ABC, abstractmethod
from typing import Any

from daywise.planner.models import ScheduleRequest, Task, TaskDraft


class TaskRepository(ABC):
    """Abstract interface for the persistent per-owner task store."""

    @abstractmethod
    async def insert_task(self, owner_id: str, draft: TaskDraft) -> Task:
        """
        Persist a new task under an owner's namespace.

        The store assigns the id and the creation/update timestamps.

        Args:
            owner_id: Owner namespace
            draft: Task fields entered by the user

        Returns:
            The store-confirmed task

        Raises:
            PersistenceError: If the write is rejected
        """
        pass

    @abstractmethod
    async def list_tasks(self, owner_id: str) -> list[Task]:
        """
        List every task in an owner's namespace.

        Raises:
            PersistenceError: If the read fails
        """
        pass

    @abstractmethod
    async def update_task(self, owner_id: str, task: Task) -> Task:
        """
        Replace a task document by id.

        Raises:
            TaskNotFoundError: If the id is absent for that owner
            PersistenceError: If the write is rejected
        """
        pass

    @abstractmethod
    async def delete_task(self, owner_id: str, task_id: str) -> bool:
        """
        Delete a task by id.

        Returns:
            True if a task was removed, False if it was already absent

        Raises:
            PersistenceError: If the delete is rejected
        """
        pass


class Scheduler(ABC):
    """Abstract interface for the external schedule generator."""

    @abstractmethod
    async def generate(self, request: ScheduleRequest) -> Any:
        """
        Map a task list to a placed schedule.

        The return value is untrusted and must go through the schedule
        validator before use.

        Args:
            request: Tasks to place, stripped of identity metadata

        Returns:
            Raw scheduler output (mapping or JSON text)

        Raises:
            SchedulerError: If the call itself fails
        """
        pass
