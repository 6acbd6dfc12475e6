"""Tests for the planner session."""

import asyncio
import dataclasses
from typing import Any
from unittest.mock import AsyncMock

import pytest

from daywise.planner.config import GENERATION_FAILED_MESSAGE
from daywise.planner.exceptions import PersistenceError, SchedulerError
from daywise.planner.identity import IdentityProvider
from daywise.planner.models import (
    LOCAL_OWNER,
    Identity,
    MutationState,
    NotificationVariant,
    RemoteOwner,
    Schedule,
    TaskDraft,
)
from daywise.planner.planner_service import PlannerService
from daywise.planner.task_store import TaskStore


def titles(planner: PlannerService) -> list[str]:
    """Notification titles, oldest first."""
    return [n.title for n in reversed(planner.notifications.notifications)]


@pytest.fixture
def mock_scheduler(valid_schedule_payload: dict) -> AsyncMock:
    """Create a scheduler returning a valid schedule."""
    scheduler = AsyncMock()
    scheduler.generate = AsyncMock(return_value=valid_schedule_payload)
    return scheduler


@pytest.fixture
async def guest_planner(repository, mock_scheduler: AsyncMock) -> PlannerService:
    """Create a guest planner session."""
    planner = PlannerService(TaskStore(repository), mock_scheduler)
    await planner.initialize()
    return planner


@pytest.fixture
async def account_planner(repository, mock_scheduler: AsyncMock) -> PlannerService:
    """Create a planner session signed in as alice."""
    planner = PlannerService(
        TaskStore(repository),
        mock_scheduler,
        identity=IdentityProvider(Identity("alice")),
    )
    await planner.initialize()
    return planner


async def add_two_tasks(planner: PlannerService) -> None:
    await planner.add_task(TaskDraft(name="Write report", estimated_time=90))
    await planner.add_task(TaskDraft(name="Gym", estimated_time=60))


@pytest.mark.unit
@pytest.mark.asyncio
class TestTaskMutations:
    """Test task mutations and their notifications."""

    async def test_guest_add_is_local(self, guest_planner: PlannerService, repository) -> None:
        """Test guests are told their task is only kept locally."""
        result = await guest_planner.add_task(TaskDraft(name="Gym", estimated_time=60))

        assert result.state == MutationState.COMMITTED
        assert guest_planner.owner == LOCAL_OWNER
        assert guest_planner.is_guest is True
        assert titles(guest_planner) == ["Task Added (Locally)"]
        assert repository.collections == {}

    async def test_account_add_is_persisted(
        self, account_planner: PlannerService, repository
    ) -> None:
        """Test account tasks are stored and announced."""
        result = await account_planner.add_task(TaskDraft(name="Gym", estimated_time=60))

        assert result.succeeded
        assert account_planner.owner == RemoteOwner("alice")
        assert result.task.id in repository.collections["alice"]
        assert titles(account_planner) == ["Task Added"]
        assert account_planner.notifications.notifications[0].description == (
            '"Gym" has been added.'
        )

    async def test_invalid_task_is_rejected(self, guest_planner: PlannerService) -> None:
        """Test invalid input is refused with an error notification."""
        result = await guest_planner.add_task(TaskDraft(name="", estimated_time=60))

        assert result.state == MutationState.REJECTED
        assert guest_planner.tasks == []
        latest = guest_planner.notifications.notifications[0]
        assert latest.title == "Error"
        assert latest.variant == NotificationVariant.DESTRUCTIVE

    async def test_edit_unknown_task_is_rejected(
        self, account_planner: PlannerService
    ) -> None:
        """Test editing a task that is not visible is refused."""
        await account_planner.add_task(TaskDraft(name="Gym", estimated_time=60))
        task = account_planner.tasks[0]
        await account_planner.delete_task(task.id)

        result = await account_planner.edit_task(dataclasses.replace(task, name="Run"))

        assert result.state == MutationState.REJECTED

    async def test_failed_delete_is_rolled_back(
        self, account_planner: PlannerService, repository
    ) -> None:
        """Test a rejected delete restores the task and reports the error."""
        await account_planner.add_task(TaskDraft(name="Gym", estimated_time=60))
        task = account_planner.tasks[0]
        gate = repository.hold_next(failure=PersistenceError("offline"))
        gate.set()

        result = await account_planner.delete_task(task.id)

        assert result.state == MutationState.ROLLED_BACK
        assert account_planner.tasks == [task]
        latest = account_planner.notifications.notifications[0]
        assert (latest.title, latest.description) == ("Error", "Failed to delete task.")

    async def test_guest_edit_and_delete(self, guest_planner: PlannerService) -> None:
        """Test guest edits and deletes are announced as local."""
        await guest_planner.add_task(TaskDraft(name="Gym", estimated_time=60))
        task = guest_planner.tasks[0]

        await guest_planner.edit_task(dataclasses.replace(task, estimated_time=30))
        await guest_planner.delete_task(task.id)

        assert titles(guest_planner)[1:] == ["Task Updated (Locally)", "Task Deleted (Locally)"]
        assert guest_planner.tasks == []

    async def test_load_failure_is_reported(
        self, failing_repository, mock_scheduler: AsyncMock
    ) -> None:
        """Test an unreadable store produces an error notification."""
        planner = PlannerService(
            TaskStore(failing_repository),
            mock_scheduler,
            identity=IdentityProvider(Identity("alice")),
        )

        await planner.initialize()

        assert titles(planner) == ["Error"]
        assert planner.tasks == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestGenerateSchedule:
    """Test schedule generation."""

    async def test_empty_task_list_never_calls_scheduler(
        self, guest_planner: PlannerService, mock_scheduler: AsyncMock
    ) -> None:
        """Test generation without tasks is refused before any scheduler call."""
        result = await guest_planner.generate_schedule()

        assert result is None
        mock_scheduler.generate.assert_not_called()
        assert titles(guest_planner) == ["No Tasks"]

    async def test_guest_schedule_generated(
        self, guest_planner: PlannerService, mock_scheduler: AsyncMock
    ) -> None:
        """Test a valid reply is reconciled and displayed."""
        await add_two_tasks(guest_planner)

        schedule = await guest_planner.generate_schedule()

        assert schedule is not None
        assert schedule.is_possible is True
        assert all(item.id for item in schedule.schedule)
        assert guest_planner.schedule is schedule
        assert titles(guest_planner)[-2:] == ["Schedule Generated", "Sign In to Save"]

        request = mock_scheduler.generate.await_args.args[0]
        assert [draft.name for draft in request.tasks] == ["Write report", "Gym"]

    async def test_account_is_not_asked_to_sign_in(
        self, account_planner: PlannerService
    ) -> None:
        """Test signed-in users only get the success notification."""
        await add_two_tasks(account_planner)

        await account_planner.generate_schedule()

        assert titles(account_planner)[-1] == "Schedule Generated"
        assert "Sign In to Save" not in titles(account_planner)

    async def test_invalid_reply_gives_error_schedule(
        self, guest_planner: PlannerService, mock_scheduler: AsyncMock
    ) -> None:
        """Test a malformed reply is replaced by the error schedule."""
        await add_two_tasks(guest_planner)
        mock_scheduler.generate.return_value = {
            "schedule": [{"name": "A", "startTime": "9:00", "endTime": "10:00"}],
            "isPossible": True,
        }

        schedule = await guest_planner.generate_schedule()

        assert schedule == Schedule(schedule=[], is_possible=False, error=None)
        assert titles(guest_planner)[-1] == "Invalid Schedule"

    async def test_scheduler_failure_gives_error_schedule(
        self, guest_planner: PlannerService, mock_scheduler: AsyncMock
    ) -> None:
        """Test scheduler exceptions never reach the caller."""
        await add_two_tasks(guest_planner)
        mock_scheduler.generate.side_effect = SchedulerError("model not found")

        schedule = await guest_planner.generate_schedule()

        assert schedule == Schedule.failed(error=GENERATION_FAILED_MESSAGE)
        assert titles(guest_planner)[-1] == "AI Error"
        assert guest_planner.is_generating is False

    async def test_impossible_schedule_is_a_conflict(
        self, guest_planner: PlannerService, mock_scheduler: AsyncMock
    ) -> None:
        """Test an impossible reply is reported as a scheduling conflict."""
        await guest_planner.add_task(TaskDraft(name="Huge", estimated_time=1440))
        mock_scheduler.generate.return_value = {"schedule": [], "isPossible": False}

        schedule = await guest_planner.generate_schedule()

        assert schedule == Schedule(schedule=[], is_possible=False)
        assert titles(guest_planner)[-1] == "Scheduling Conflict"

    async def test_one_generation_at_a_time(
        self,
        guest_planner: PlannerService,
        mock_scheduler: AsyncMock,
        valid_schedule_payload: dict,
    ) -> None:
        """Test a second request while generating is refused."""
        await add_two_tasks(guest_planner)
        gate = asyncio.Event()

        async def slow(request: Any) -> dict:
            await gate.wait()
            return valid_schedule_payload

        mock_scheduler.generate.side_effect = slow
        first = asyncio.create_task(guest_planner.generate_schedule())
        for _ in range(10):
            await asyncio.sleep(0)
        assert guest_planner.is_generating is True

        assert await guest_planner.generate_schedule() is None
        assert titles(guest_planner)[-1] == "Generation In Progress"

        gate.set()
        assert await first is not None
        assert mock_scheduler.generate.await_count == 1

    async def test_tasks_changed_during_generation(
        self,
        guest_planner: PlannerService,
        mock_scheduler: AsyncMock,
        valid_schedule_payload: dict,
    ) -> None:
        """Test a schedule for a stale task list is discarded."""
        await add_two_tasks(guest_planner)
        gate = asyncio.Event()

        async def slow(request: Any) -> dict:
            await gate.wait()
            return valid_schedule_payload

        mock_scheduler.generate.side_effect = slow
        pending = asyncio.create_task(guest_planner.generate_schedule())
        for _ in range(10):
            await asyncio.sleep(0)

        await guest_planner.add_task(TaskDraft(name="Late addition", estimated_time=15))
        gate.set()

        assert await pending is None
        assert guest_planner.schedule is None
        assert titles(guest_planner)[-1] == "Tasks Changed"


@pytest.mark.unit
@pytest.mark.asyncio
class TestScheduleLifecycle:
    """Test when the displayed schedule is discarded or edited."""

    async def test_task_change_discards_schedule(self, guest_planner: PlannerService) -> None:
        """Test any task mutation clears the displayed schedule."""
        await add_two_tasks(guest_planner)
        await guest_planner.generate_schedule()
        assert guest_planner.schedule is not None

        await guest_planner.delete_task(guest_planner.tasks[0].id)

        assert guest_planner.schedule is None

    async def test_refetch_change_discards_schedule(
        self, account_planner: PlannerService, repository
    ) -> None:
        """Test a refetch that brings in other tasks clears the schedule."""
        await account_planner.add_task(TaskDraft(name="Write report", estimated_time=90))
        refetch_gate = repository.hold_next_list()
        list_calls = repository.list_calls

        pending = asyncio.create_task(
            account_planner.add_task(TaskDraft(name="Gym", estimated_time=60))
        )
        for _ in range(10):
            await asyncio.sleep(0)
        assert repository.list_calls == list_calls + 1

        assert await account_planner.generate_schedule() is not None
        repository.seed("alice", TaskDraft(name="Other device", estimated_time=30))
        refetch_gate.set()
        await pending

        assert "Other device" in [task.name for task in account_planner.tasks]
        assert account_planner.schedule is None

    async def test_identity_change_switches_owner(self, repository) -> None:
        """Test signing in loads the account's tasks and drops the schedule."""
        repository.seed("alice", TaskDraft(name="Stored", estimated_time=30))
        identity = IdentityProvider()
        planner = PlannerService(TaskStore(repository), AsyncMock(), identity=identity)
        await planner.initialize()
        await planner.add_task(TaskDraft(name="Guest task", estimated_time=10))

        await identity.sign_in("alice")

        assert planner.owner == RemoteOwner("alice")
        assert [task.name for task in planner.tasks] == ["Stored"]
        assert planner.schedule is None

        await identity.sign_out()
        assert [task.name for task in planner.tasks] == ["Guest task"]

    async def test_edit_schedule_item(self, guest_planner: PlannerService) -> None:
        """Test moving an item re-sorts the schedule and notifies."""
        await add_two_tasks(guest_planner)
        schedule = await guest_planner.generate_schedule()
        gym = schedule.schedule[1]

        updated = guest_planner.edit_schedule_item(gym.id, "08:00", "08:45")

        assert updated.schedule[0].id == gym.id
        assert guest_planner.schedule is updated
        assert titles(guest_planner)[-1] == "Schedule Updated"

    async def test_edit_schedule_item_refused(self, guest_planner: PlannerService) -> None:
        """Test invalid edits keep the schedule and report an error."""
        assert guest_planner.edit_schedule_item("x", "09:00", "10:00") is None

        await add_two_tasks(guest_planner)
        schedule = await guest_planner.generate_schedule()

        assert guest_planner.edit_schedule_item(schedule.schedule[0].id, "10:00", "09:00") is None
        assert guest_planner.schedule is schedule
        assert titles(guest_planner)[-1] == "Error"

    async def test_shutdown_detaches_listeners(self, guest_planner: PlannerService) -> None:
        """Test a shut down session no longer reacts to task changes."""
        await add_two_tasks(guest_planner)
        await guest_planner.generate_schedule()
        await guest_planner.shutdown()

        await guest_planner.add_task(TaskDraft(name="After", estimated_time=5))

        assert guest_planner.schedule is not None
