"""MCP Server for the day planner using FastMCP."""

import asyncio
import dataclasses
import logging
import sys
from datetime import datetime
from typing import Any

from fastmcp import FastMCP

from .config import (
    DEFAULT_DATABASE_PATH,
    DEFAULT_MCP_HOST,
    DEFAULT_MCP_PORT,
    DEFAULT_MCP_SERVER_NAME,
)
from .database import TaskDatabase
from .identity import IdentityProvider
from .llm_scheduler import OllamaScheduler
from .models import Importance, MutationResult, Task, TaskDraft
from .planner_service import PlannerService
from .task_store import TaskStore

logger = logging.getLogger(__name__)

# Create FastMCP server instance
mcp = FastMCP(DEFAULT_MCP_SERVER_NAME)

# Planner session served by the tools (initialized in cli_entry())
_planner: PlannerService | None = None


def get_planner() -> PlannerService:
    """Get the planner session served by the tools."""
    if _planner is None:
        raise RuntimeError("Planner not initialized")
    return _planner


def set_planner(planner: PlannerService | None) -> None:
    """Set the planner session served by the tools."""
    global _planner
    _planner = planner


def _task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "name": task.name,
        "description": task.description,
        "deadline": task.deadline.isoformat() if task.deadline else None,
        "importance": task.importance.value,
        "estimated_time": task.estimated_time,
        "created_at": task.created_at.isoformat() if task.created_at else None,
        "updated_at": task.updated_at.isoformat() if task.updated_at else None,
    }


def _mutation_response(result: MutationResult) -> dict[str, Any]:
    if not result.succeeded:
        return {"success": False, "error": result.error or "Mutation failed"}
    response: dict[str, Any] = {"success": True}
    if result.task is not None:
        response["task"] = _task_to_dict(result.task)
    return response


def _parse_deadline(deadline: str | None) -> datetime | None:
    if not deadline:
        return None
    return datetime.fromisoformat(deadline)


async def _list_tasks_impl() -> dict[str, Any]:
    """Implementation of list_tasks tool."""
    try:
        planner = get_planner()
        return {"tasks": [_task_to_dict(task) for task in planner.tasks]}

    except Exception as e:
        logger.error(f"Error listing tasks: {e}")
        return {"success": False, "error": str(e)}


async def _add_task_impl(
    name: str,
    estimated_time: int,
    importance: str = "medium",
    description: str | None = None,
    deadline: str | None = None,
) -> dict[str, Any]:
    """
    Add a new task.

    Args:
        name: Task name (required)
        estimated_time: Estimated time in minutes (1-1440)
        importance: Task importance (low, medium, high)
        description: Optional description
        deadline: Deadline in ISO format with UTC offset (optional)

    Returns:
        Dictionary with the created task and success status
    """
    try:
        planner = get_planner()

        try:
            task_importance = Importance(importance)
        except ValueError:
            return {"success": False, "error": f"Invalid importance: {importance}"}

        try:
            parsed_deadline = _parse_deadline(deadline)
        except ValueError:
            return {"success": False, "error": f"Invalid date format: {deadline}"}

        result = await planner.add_task(
            TaskDraft(
                name=name,
                estimated_time=estimated_time,
                importance=task_importance,
                description=description,
                deadline=parsed_deadline,
            )
        )
        return _mutation_response(result)

    except Exception as e:
        logger.error(f"Error adding task: {e}")
        return {"success": False, "error": str(e)}


async def _update_task_impl(
    task_id: str,
    name: str | None = None,
    estimated_time: int | None = None,
    importance: str | None = None,
    description: str | None = None,
    deadline: str | None = None,
) -> dict[str, Any]:
    """
    Update fields of an existing task. Omitted fields keep their value.

    Returns:
        Dictionary with the updated task and success status
    """
    try:
        planner = get_planner()

        current = next((task for task in planner.tasks if task.id == task_id), None)
        if current is None:
            return {"success": False, "error": f"Task with ID {task_id} not found"}

        changes: dict[str, Any] = {}
        if name is not None:
            changes["name"] = name
        if estimated_time is not None:
            changes["estimated_time"] = estimated_time
        if description is not None:
            changes["description"] = description
        if importance is not None:
            try:
                changes["importance"] = Importance(importance)
            except ValueError:
                return {"success": False, "error": f"Invalid importance: {importance}"}
        if deadline is not None:
            try:
                changes["deadline"] = _parse_deadline(deadline)
            except ValueError:
                return {"success": False, "error": f"Invalid date format: {deadline}"}

        result = await planner.edit_task(dataclasses.replace(current, **changes))
        return _mutation_response(result)

    except Exception as e:
        logger.error(f"Error updating task: {e}")
        return {"success": False, "error": str(e)}


async def _delete_task_impl(task_id: str) -> dict[str, Any]:
    """
    Delete a task.

    Args:
        task_id: Task id

    Returns:
        Dictionary with success status
    """
    try:
        planner = get_planner()
        result = await planner.delete_task(task_id)
        return _mutation_response(result)

    except Exception as e:
        logger.error(f"Error deleting task: {e}")
        return {"success": False, "error": str(e)}


async def _generate_schedule_impl() -> dict[str, Any]:
    """Implementation of generate_schedule tool."""
    try:
        planner = get_planner()
        schedule = await planner.generate_schedule()
        if schedule is None:
            latest = planner.notifications.notifications
            message = latest[0].description if latest else "No schedule generated"
            return {"success": False, "error": message}

        return {"success": schedule.error is None, "schedule": schedule.to_dict()}

    except Exception as e:
        logger.error(f"Error generating schedule: {e}")
        return {"success": False, "error": str(e)}


async def _edit_schedule_item_impl(
    item_id: str, start_time: str, end_time: str
) -> dict[str, Any]:
    """Implementation of edit_schedule_item tool."""
    try:
        planner = get_planner()
        schedule = planner.edit_schedule_item(item_id, start_time, end_time)
        if schedule is None:
            latest = planner.notifications.notifications
            message = latest[0].description if latest else "Edit refused"
            return {"success": False, "error": message}

        return {"success": True, "schedule": schedule.to_dict()}

    except Exception as e:
        logger.error(f"Error editing schedule item: {e}")
        return {"success": False, "error": str(e)}


# FastMCP decorated wrappers (for actual MCP server)
@mcp.tool()
async def list_tasks() -> dict[str, Any]:
    """
    List the current owner's tasks.

    Returns:
        Dictionary with tasks list
    """
    return await _list_tasks_impl()


@mcp.tool()
async def add_task(
    name: str,
    estimated_time: int,
    importance: str = "medium",
    description: str | None = None,
    deadline: str | None = None,
) -> dict[str, Any]:
    """
    Add a new task.

    Args:
        name: Task name (required, at most 100 characters)
        estimated_time: Estimated time in minutes (1-1440)
        importance: Task importance (low, medium, high)
        description: Optional description (at most 500 characters)
        deadline: Deadline in ISO format with UTC offset (optional)

    Returns:
        Dictionary with the created task and success status
    """
    return await _add_task_impl(
        name=name,
        estimated_time=estimated_time,
        importance=importance,
        description=description,
        deadline=deadline,
    )


@mcp.tool()
async def update_task(
    task_id: str,
    name: str | None = None,
    estimated_time: int | None = None,
    importance: str | None = None,
    description: str | None = None,
    deadline: str | None = None,
) -> dict[str, Any]:
    """
    Update a task. Omitted fields keep their current value.

    Returns:
        Dictionary with the updated task and success status
    """
    return await _update_task_impl(
        task_id=task_id,
        name=name,
        estimated_time=estimated_time,
        importance=importance,
        description=description,
        deadline=deadline,
    )


@mcp.tool()
async def delete_task(task_id: str) -> dict[str, Any]:
    """
    Delete a task.

    Args:
        task_id: Task id

    Returns:
        Dictionary with success status
    """
    return await _delete_task_impl(task_id=task_id)


@mcp.tool()
async def generate_schedule() -> dict[str, Any]:
    """
    Generate a schedule for today from the current tasks.

    Returns:
        Dictionary with the schedule (items with id, name, startTime, endTime)
    """
    return await _generate_schedule_impl()


@mcp.tool()
async def edit_schedule_item(item_id: str, start_time: str, end_time: str) -> dict[str, Any]:
    """
    Move one item of the current schedule.

    Args:
        item_id: Schedule item id
        start_time: New start time (HH:MM)
        end_time: New end time (HH:MM)

    Returns:
        Dictionary with the updated schedule
    """
    return await _edit_schedule_item_impl(
        item_id=item_id, start_time=start_time, end_time=end_time
    )


# Compatibility wrapper for tests
class MCPServer:
    """
    Compatibility wrapper for testing.

    The actual MCP server uses FastMCP with function decorators.
    This class provides a request/response interface over the same tools.
    """

    def __init__(
        self,
        planner: PlannerService,
        server_name: str = DEFAULT_MCP_SERVER_NAME,
        host: str = DEFAULT_MCP_HOST,
        port: int = DEFAULT_MCP_PORT,
    ) -> None:
        """Initialize MCP Server wrapper."""
        self._planner = planner
        self._server_name = server_name
        self._host = host
        self._port = port
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize the server."""
        set_planner(self._planner)
        self._initialized = True

    async def shutdown(self) -> None:
        """Shutdown the server."""
        set_planner(None)
        self._initialized = False

    def get_available_tools(self) -> list[str]:
        """Get list of available tools."""
        return [
            "list_tasks",
            "add_task",
            "update_task",
            "delete_task",
            "generate_schedule",
            "edit_schedule_item",
        ]

    async def handle_list_tasks(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle list_tasks request."""
        return await _list_tasks_impl()

    async def handle_add_task(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle add_task request."""
        for required in ("name", "estimated_time"):
            if required not in params:
                return {"success": False, "error": f"Missing required field: {required}"}
        return await _add_task_impl(
            name=params["name"],
            estimated_time=params["estimated_time"],
            importance=params.get("importance", "medium"),
            description=params.get("description"),
            deadline=params.get("deadline"),
        )

    async def handle_update_task(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle update_task request."""
        if "task_id" not in params:
            return {"success": False, "error": "Missing required field: task_id"}
        return await _update_task_impl(
            task_id=params["task_id"],
            name=params.get("name"),
            estimated_time=params.get("estimated_time"),
            importance=params.get("importance"),
            description=params.get("description"),
            deadline=params.get("deadline"),
        )

    async def handle_delete_task(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle delete_task request."""
        if "task_id" not in params:
            return {"success": False, "error": "Missing required field: task_id"}
        return await _delete_task_impl(task_id=params["task_id"])

    async def handle_generate_schedule(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle generate_schedule request."""
        return await _generate_schedule_impl()

    async def handle_edit_schedule_item(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle edit_schedule_item request."""
        for required in ("item_id", "start_time", "end_time"):
            if required not in params:
                return {"success": False, "error": f"Missing required field: {required}"}
        return await _edit_schedule_item_impl(
            item_id=params["item_id"],
            start_time=params["start_time"],
            end_time=params["end_time"],
        )


async def create_planner(
    owner_id: str | None, database_path: str = DEFAULT_DATABASE_PATH
) -> PlannerService:
    """
    Build a planner session backed by the SQLite store and Ollama.

    Args:
        owner_id: Account to serve; None serves an in-memory guest list
        database_path: SQLite database file

    Returns:
        Initialized planner service
    """
    database = TaskDatabase(database_path)
    await database.initialize()

    identity = IdentityProvider()
    planner = PlannerService(
        task_store=TaskStore(database),
        scheduler=OllamaScheduler(),
        identity=identity,
    )
    if owner_id:
        await identity.sign_in(owner_id)
    await planner.initialize()
    return planner


def cli_entry() -> None:
    """CLI entry point for the MCP server: ``daywise-mcp [stdio|sse|http] [OWNER_ID]``."""
    transport_type = "stdio"
    if len(sys.argv) > 1 and sys.argv[1] in ("stdio", "sse", "http"):
        transport_type = "sse" if sys.argv[1] == "http" else sys.argv[1]
    owner_id = sys.argv[2] if len(sys.argv) > 2 else None

    # Build the planner before FastMCP takes over the event loop
    set_planner(asyncio.run(create_planner(owner_id)))
    logger.info(
        f"MCP Server initialized with 6 tools (transport={transport_type}, "
        f"owner={owner_id or 'guest'})"
    )

    if transport_type == "stdio":
        mcp.run(transport="stdio")
    else:
        logger.info(f"Server will listen on http://{DEFAULT_MCP_HOST}:{DEFAULT_MCP_PORT}")
        mcp.run(transport="sse", host=DEFAULT_MCP_HOST, port=DEFAULT_MCP_PORT)


if __name__ == "__main__":
    cli_entry()
