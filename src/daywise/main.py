"""Command-line interface for the day planner."""

import argparse
import asyncio
import dataclasses
import sys
from datetime import datetime

from .logging_utils import configure_logging, get_logger
from .planner.config import (
    DEFAULT_DATABASE_PATH,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
)
from .planner.database import TaskDatabase
from .planner.exceptions import PersistenceError
from .planner.identity import IdentityProvider
from .planner.llm_scheduler import OllamaScheduler
from .planner.models import (
    Identity,
    Importance,
    Notification,
    NotificationVariant,
    Schedule,
    Task,
    TaskDraft,
)
from .planner.planner_service import PlannerService
from .planner.task_store import TaskStore

logger = get_logger(__name__)

DEFAULT_CLI_USER = "default"


class PlannerCLI:
    """Runs one planner command and prints the outcome."""

    def __init__(self, planner: PlannerService) -> None:
        """
        Initialize the CLI.

        Args:
            planner: Planner session for the selected user
        """
        self._planner = planner
        self._planner.notifications.subscribe(self._on_notification)

    def _on_notification(self, notification: Notification) -> None:
        icon = "❌" if notification.variant == NotificationVariant.DESTRUCTIVE else "✅"
        if notification.description:
            print(f"{icon} {notification.title}: {notification.description}")
        else:
            print(f"{icon} {notification.title}")

    def _find_task(self, task_id: str) -> Task | None:
        matches = [task for task in self._planner.tasks if task.id.startswith(task_id)]
        if len(matches) != 1:
            print(f"❌ No unique task matches '{task_id}'")
            return None
        return matches[0]

    async def add(self, args: argparse.Namespace) -> bool:
        draft = TaskDraft(
            name=args.name,
            estimated_time=args.time,
            importance=Importance(args.importance),
            description=args.description,
            deadline=args.deadline,
        )
        result = await self._planner.add_task(draft)
        return result.succeeded

    async def list(self, args: argparse.Namespace) -> bool:
        tasks = self._planner.tasks
        if not tasks:
            print("No tasks yet. Add one with: daywise add NAME --time MINUTES")
            return True

        for task in tasks:
            line = (
                f"{task.id[:8]}  [{task.importance.value:>6}] {task.name} "
                f"({task.estimated_time} min)"
            )
            if task.deadline:
                line += f" due {task.deadline.isoformat(timespec='minutes')}"
            print(line)
            if task.description:
                print(f"          {task.description}")
        return True

    async def edit(self, args: argparse.Namespace) -> bool:
        task = self._find_task(args.task_id)
        if task is None:
            return False

        changes = {
            field: value
            for field, value in (
                ("name", args.name),
                ("estimated_time", args.time),
                ("description", args.description),
                ("deadline", args.deadline),
            )
            if value is not None
        }
        if args.importance is not None:
            changes["importance"] = Importance(args.importance)

        result = await self._planner.edit_task(dataclasses.replace(task, **changes))
        return result.succeeded

    async def delete(self, args: argparse.Namespace) -> bool:
        task = self._find_task(args.task_id)
        if task is None:
            return False
        result = await self._planner.delete_task(task.id)
        return result.succeeded

    async def schedule(self, args: argparse.Namespace) -> bool:
        print("🧠 Generating schedule...")
        schedule = await self._planner.generate_schedule()
        if schedule is None:
            return False

        self._print_schedule(schedule)
        return schedule.error is None and schedule.is_possible

    def _print_schedule(self, schedule: Schedule) -> None:
        if not schedule.schedule:
            return
        print()
        for item in schedule.schedule:
            print(f"  {item.start_time} - {item.end_time}  {item.name}")

        placed = {item.name for item in schedule.schedule}
        skipped = [task.name for task in self._planner.tasks if task.name not in placed]
        if skipped:
            print(f"\n  Not scheduled: {', '.join(skipped)}")


async def main(args: argparse.Namespace) -> bool:
    """
    Run the selected command against the user's persisted tasks.

    Returns:
        True if the command succeeded
    """
    database = TaskDatabase(args.db_path)
    try:
        await database.initialize()
    except PersistenceError as e:
        print(f"❌ Cannot open task database: {e}")
        return False

    planner = PlannerService(
        task_store=TaskStore(database),
        scheduler=OllamaScheduler(model=args.model, base_url=args.ollama_url),
        identity=IdentityProvider(Identity(owner_id=args.user)),
        strict_validation=getattr(args, "strict", False),
    )
    cli = PlannerCLI(planner)

    try:
        await planner.initialize()
        command = getattr(cli, args.command)
        return await command(args)
    finally:
        await planner.shutdown()
        await database.close()


def _deadline(value: str) -> datetime:
    try:
        deadline = datetime.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {value}") from e
    if deadline.tzinfo is None:
        deadline = deadline.astimezone()
    return deadline


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="daywise",
        description="DayWise - Plan your day with a local AI scheduler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  daywise add "Write report" --time 90 --importance high
  daywise add "Gym" --time 60 --deadline 2024-05-01T18:00:00+02:00
  daywise list
  daywise edit 3f2a --time 45
  daywise delete 3f2a
  daywise schedule                      # Ask the local model for today's plan
  daywise --user alice schedule --strict
        """,
    )

    parser.add_argument(
        "--user",
        default=DEFAULT_CLI_USER,
        help=f"Account whose tasks are used (default: {DEFAULT_CLI_USER})",
    )
    parser.add_argument(
        "--db-path",
        default=DEFAULT_DATABASE_PATH,
        metavar="PATH",
        help=f"SQLite task database (default: {DEFAULT_DATABASE_PATH})",
    )
    parser.add_argument(
        "--model",
        default=DEFAULT_OLLAMA_MODEL,
        help=f"Ollama model used for scheduling (default: {DEFAULT_OLLAMA_MODEL})",
    )
    parser.add_argument(
        "--ollama-url",
        default=DEFAULT_OLLAMA_BASE_URL,
        metavar="URL",
        help=f"Ollama service URL (default: {DEFAULT_OLLAMA_BASE_URL})",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging and debug information",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable trace logging (most verbose, includes prompts)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    add = subparsers.add_parser("add", help="Add a task")
    add.add_argument("name", help="Task name")
    add.add_argument(
        "--time", type=int, required=True, metavar="MINUTES", help="Estimated time"
    )
    add.add_argument(
        "--importance",
        choices=[importance.value for importance in Importance],
        default=Importance.MEDIUM.value,
    )
    add.add_argument("--description", default=None)
    add.add_argument(
        "--deadline", type=_deadline, default=None, help="ISO-8601 timestamp"
    )

    subparsers.add_parser("list", help="List tasks")

    edit = subparsers.add_parser("edit", help="Edit a task")
    edit.add_argument("task_id", help="Task id or unique id prefix")
    edit.add_argument("--name", default=None)
    edit.add_argument("--time", type=int, default=None, metavar="MINUTES")
    edit.add_argument(
        "--importance",
        choices=[importance.value for importance in Importance],
        default=None,
    )
    edit.add_argument("--description", default=None)
    edit.add_argument("--deadline", type=_deadline, default=None)

    delete = subparsers.add_parser("delete", help="Delete a task")
    delete.add_argument("task_id", help="Task id or unique id prefix")

    schedule = subparsers.add_parser("schedule", help="Generate today's schedule")
    schedule.add_argument(
        "--strict",
        action="store_true",
        help="Reject schedules whose items overlap or are out of order",
    )

    return parser


def handle_arguments(args: argparse.Namespace) -> bool:
    """
    Configure logging for the parsed arguments and run the selected command.

    Args:
        args: Parsed command line arguments

    Returns:
        True if the command succeeded
    """
    configure_logging(verbose=args.verbose, trace=args.trace)
    return asyncio.run(main(args))


def cli_entry_with_args() -> None:
    """CLI entry point with argument parsing."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        success = handle_arguments(args)
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        print(f"❌ Unexpected error: {e}")
        sys.exit(1)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    cli_entry_with_args()
