"""Planner session tying tasks, identity and schedule generation together."""

import logging
import time

from .config import GENERATION_FAILED_MESSAGE, INVALID_SCHEDULE_MESSAGE
from .exceptions import InvalidInputError, PersistenceError, PlannerError
from .identity import IdentityProvider, owner_key_for
from .interfaces import Scheduler
from .models import (
    Identity,
    LocalOwner,
    MutationResult,
    MutationState,
    NotificationVariant,
    OwnerKey,
    Schedule,
    Task,
    TaskDraft,
    ValidationResult,
)
from .mutation_coordinator import OptimisticMutationCoordinator
from .notifications import NotificationChannel
from .reconciler import apply_edit, reconcile
from .request_builder import build_request
from .schedule_validator import validate_schedule
from .task_store import TaskStore

logger = logging.getLogger(__name__)


class PlannerService:
    """
    One user's planning session.

    Follows the current identity, routes task mutations through the
    optimistic coordinator, and owns the single displayed schedule. Any
    change to the current owner's tasks discards that schedule; it is
    regenerated on request, never patched.
    """

    def __init__(
        self,
        task_store: TaskStore,
        scheduler: Scheduler,
        notifications: NotificationChannel | None = None,
        identity: IdentityProvider | None = None,
        coordinator: OptimisticMutationCoordinator | None = None,
        strict_validation: bool = False,
    ) -> None:
        """
        Initialize the planner service.

        Args:
            task_store: Store owning the visible task lists
            scheduler: External schedule generator
            notifications: Channel for user-visible messages
            identity: Identity provider to follow
            coordinator: Mutation coordinator (one is created when omitted)
            strict_validation: Reject overlapping or unordered schedules
        """
        self._store = task_store
        self._scheduler = scheduler
        self._notifications = notifications or NotificationChannel()
        self._identity = identity or IdentityProvider()
        self._coordinator = coordinator or OptimisticMutationCoordinator(task_store)
        self._strict_validation = strict_validation

        self._owner: OwnerKey = owner_key_for(self._identity.current)
        self._schedule: Schedule | None = None
        self._generating = False
        self._tasks_version = 0

        self._unsubscribers = [
            task_store.add_invalidation_listener(self._on_tasks_changed),
            self._identity.subscribe(self._on_identity_changed),
        ]

    @property
    def owner(self) -> OwnerKey:
        return self._owner

    @property
    def is_guest(self) -> bool:
        return isinstance(self._owner, LocalOwner)

    @property
    def notifications(self) -> NotificationChannel:
        return self._notifications

    @property
    def schedule(self) -> Schedule | None:
        """The displayed schedule, or None when none is current."""
        return self._schedule

    @property
    def is_generating(self) -> bool:
        return self._generating

    @property
    def tasks(self) -> list[Task]:
        return self._store.list_tasks(self._owner)

    async def initialize(self) -> None:
        """Load the current owner's tasks."""
        await self._load_tasks()

    async def shutdown(self) -> None:
        """Detach from the store and identity provider."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    async def add_task(self, draft: TaskDraft) -> MutationResult:
        """Add a task for the current owner."""
        owner = self._owner
        try:
            result = await self._coordinator.create(owner, draft)
        except PlannerError as e:
            return self._reject("Failed to add task.", e)

        if not result.succeeded:
            self._notify_error("Failed to add task.")
        elif isinstance(owner, LocalOwner):
            self._notifications.notify(
                "Task Added (Locally)", "Sign in to save your tasks permanently."
            )
        else:
            self._notifications.notify(
                "Task Added", f'"{result.task.name}" has been added.'
            )
        return result

    async def edit_task(self, task: Task) -> MutationResult:
        """Replace one of the current owner's tasks."""
        owner = self._owner
        try:
            result = await self._coordinator.update(owner, task)
        except PlannerError as e:
            return self._reject(f'Failed to update "{task.name}".', e)

        if not result.succeeded:
            self._notify_error(f'Failed to update "{task.name}".')
        elif isinstance(owner, LocalOwner):
            self._notifications.notify("Task Updated (Locally)", "Sign in to save changes.")
        else:
            self._notifications.notify(
                "Task Updated", f'"{task.name}" has been updated.'
            )
        return result

    async def delete_task(self, task_id: str) -> MutationResult:
        """Delete one of the current owner's tasks."""
        owner = self._owner
        try:
            result = await self._coordinator.remove(owner, task_id)
        except PlannerError as e:
            return self._reject("Failed to delete task.", e)

        if not result.succeeded:
            self._notify_error("Failed to delete task.")
        elif isinstance(owner, LocalOwner):
            self._notifications.notify(
                "Task Deleted (Locally)", variant=NotificationVariant.DESTRUCTIVE
            )
        else:
            self._notifications.notify(
                "Task Deleted",
                "Task has been removed.",
                variant=NotificationVariant.DESTRUCTIVE,
            )
        return result

    async def generate_schedule(self) -> Schedule | None:
        """
        Generate a schedule for the current owner's tasks.

        Only one generation runs at a time. Scheduler failures and invalid
        scheduler output both become the explicit error schedule; nothing
        raised by the scheduler reaches the caller.

        Returns:
            The reconciled schedule now on display, or None when nothing was
            generated (no tasks, generation already running, or the tasks
            changed while generating)
        """
        if self._generating:
            self._notifications.notify(
                "Generation In Progress",
                "A schedule is already being generated.",
            )
            return None

        try:
            request = build_request(self.tasks)
        except InvalidInputError:
            self._notify_error(
                "Add some tasks before generating a schedule.", title="No Tasks"
            )
            return None

        self._generating = True
        self._schedule = None
        version = self._tasks_version
        start_time = time.time()
        validation: ValidationResult | None = None

        try:
            try:
                raw = await self._scheduler.generate(request)
            except Exception as e:
                logger.error(f"Error generating schedule: {e}")
                schedule = Schedule.failed(error=GENERATION_FAILED_MESSAGE)
            else:
                validation = validate_schedule(raw, strict=self._strict_validation)
                schedule = validation.schedule
            schedule = reconcile(schedule)
        finally:
            self._generating = False

        logger.info(
            f"Schedule generation finished in {time.time() - start_time:.3f}s: "
            f"{len(schedule.schedule)} items, possible={schedule.is_possible}"
        )

        if self._tasks_version != version:
            self._notifications.notify(
                "Tasks Changed",
                "Your tasks changed while the schedule was generated. Please try again.",
            )
            return None

        self._schedule = schedule
        self._announce(schedule, validation)
        return schedule

    def edit_schedule_item(
        self, item_id: str, start_time: str, end_time: str
    ) -> Schedule | None:
        """
        Move one item of the displayed schedule.

        Returns:
            The updated schedule, or None if the edit was refused
        """
        if self._schedule is None:
            self._notify_error("There is no schedule to edit.")
            return None

        try:
            self._schedule = apply_edit(self._schedule, item_id, start_time, end_time)
        except PlannerError as e:
            self._notify_error(str(e))
            return None

        item = next(item for item in self._schedule.schedule if item.id == item_id)
        self._notifications.notify(
            "Schedule Updated", f'"{item.name}" time has been adjusted.'
        )
        return self._schedule

    def _announce(self, schedule: Schedule, validation: ValidationResult | None) -> None:
        if validation is not None and not validation.is_valid:
            self._notify_error(INVALID_SCHEDULE_MESSAGE, title="Invalid Schedule")
        elif schedule.error:
            self._notify_error(schedule.error, title="AI Error")
        elif schedule.is_possible:
            self._notifications.notify(
                "Schedule Generated", "Your optimal schedule is ready!"
            )
            if self.is_guest:
                self._notifications.notify(
                    "Sign In to Save",
                    "Your schedule is generated. Sign in to save your tasks and schedules.",
                )
        else:
            self._notify_error(
                "Could not fit any task in one day.", title="Scheduling Conflict"
            )

    async def _load_tasks(self) -> None:
        try:
            await self._store.refresh(self._owner)
        except PersistenceError as e:
            logger.error(f"Error loading tasks for {self._owner}: {e}")
            self._notify_error(f"Error loading tasks: {e}")

    async def _on_identity_changed(self, identity: Identity | None) -> None:
        self._owner = owner_key_for(identity)
        self._schedule = None
        self._tasks_version += 1
        await self._load_tasks()

    def _on_tasks_changed(self, owner: OwnerKey) -> None:
        if owner != self._owner:
            return
        self._tasks_version += 1
        if self._schedule is not None:
            logger.debug("Task list changed, discarding schedule")
        self._schedule = None

    def _reject(self, message: str, error: PlannerError) -> MutationResult:
        logger.warning(f"{message} {error}")
        self._notify_error(f"{message} {error}")
        return MutationResult(state=MutationState.REJECTED, error=str(error))

    def _notify_error(self, description: str, title: str = "Error") -> None:
        self._notifications.notify(
            title, description, variant=NotificationVariant.DESTRUCTIVE
        )
