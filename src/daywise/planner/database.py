"""Database layer for per-owner task storage using SQLite."""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from daywise.planner.config import SCHEMA_VERSION
from daywise.planner.exceptions import PersistenceError, SchemaError, TaskNotFoundError
from daywise.planner.interfaces import TaskRepository
from daywise.planner.models import Importance, Task, TaskDraft

logger = logging.getLogger(__name__)


class TaskDatabase(TaskRepository):
    """SQLite database holding one task collection per owner."""

    def __init__(self, db_path: str, wal_mode: bool = True) -> None:
        """
        Initialize database connection settings.

        Args:
            db_path: Path to SQLite database file (use ":memory:" for in-memory)
            wal_mode: Enable WAL mode for concurrent access
        """
        self.db_path = db_path
        self.wal_mode = wal_mode
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Initialize database schema and connection."""
        if self._connection is None:
            try:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = await aiosqlite.connect(self.db_path)
            except (aiosqlite.Error, OSError) as e:
                raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
            self._connection.row_factory = aiosqlite.Row

            # WAL is not supported for :memory:
            if self.wal_mode and self.db_path != ":memory:":
                await self._connection.execute("PRAGMA journal_mode=WAL")

        await self._create_schema()

    async def _create_schema(self) -> None:
        """Create database schema with tables and indexes."""
        async with self._get_connection() as conn:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

            cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
            result = await cursor.fetchone()
            current_version = result[0] if result and result[0] is not None else 0

            if current_version > SCHEMA_VERSION:
                raise SchemaError(
                    f"Database schema version {current_version} is newer than "
                    f"supported version {SCHEMA_VERSION}"
                )

            if current_version < SCHEMA_VERSION:
                await self._apply_migrations(conn, current_version)

            await conn.commit()

    async def _apply_migrations(
        self, conn: aiosqlite.Connection, from_version: int
    ) -> None:
        """
        Apply database migrations.

        Args:
            conn: Database connection
            from_version: Current schema version
        """
        if from_version < 1:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    owner_id TEXT NOT NULL,
                    id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT,
                    deadline TIMESTAMP,
                    importance TEXT NOT NULL,
                    estimated_time INTEGER NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (owner_id, id)
                )
                """
            )
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_owner_created "
                "ON tasks(owner_id, created_at)"
            )
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_deadline ON tasks(deadline)"
            )

            await conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            logger.info(f"Applied schema migration {from_version} -> {SCHEMA_VERSION}")

    @asynccontextmanager
    async def _get_connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Get database connection context manager.

        Yields:
            Database connection

        Raises:
            PersistenceError: If connection is not initialized
        """
        if self._connection is None:
            raise PersistenceError("Database not initialized")
        yield self._connection

    async def get_schema_version(self) -> int:
        """Get current schema version."""
        async with self._get_connection() as conn:
            cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
            result = await cursor.fetchone()
            return result[0] if result and result[0] is not None else 0

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def insert_task(self, owner_id: str, draft: TaskDraft) -> Task:
        """
        Insert a new task into an owner's collection.

        Args:
            owner_id: Owner namespace
            draft: Task fields

        Returns:
            The stored task with its store-assigned id and timestamps

        Raises:
            PersistenceError: If insertion fails
        """
        now = datetime.now(UTC)
        task = Task.from_draft(
            uuid.uuid4().hex, draft, owner_id=owner_id, created_at=now, updated_at=now
        )
        try:
            async with self._get_connection() as conn:
                await conn.execute(
                    """
                    INSERT INTO tasks (
                        owner_id, id, name, description, deadline, importance,
                        estimated_time, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        owner_id,
                        task.id,
                        task.name,
                        task.description,
                        task.deadline.isoformat() if task.deadline else None,
                        task.importance.value,
                        task.estimated_time,
                        now.isoformat(),
                        now.isoformat(),
                    ),
                )
                await conn.commit()
        except PersistenceError:
            raise
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to insert task: {e}") from e

        return task

    async def get_task(self, owner_id: str, task_id: str) -> Task:
        """
        Get a task by ID.

        Raises:
            TaskNotFoundError: If task not found for that owner
        """
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM tasks WHERE owner_id = ? AND id = ?", (owner_id, task_id)
            )
            row = await cursor.fetchone()

        if row is None:
            raise TaskNotFoundError(f"Task with ID {task_id} not found")

        return self._row_to_task(row)

    async def list_tasks(self, owner_id: str) -> list[Task]:
        """
        List an owner's tasks in creation order.

        Raises:
            PersistenceError: If the query fails
        """
        try:
            async with self._get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT * FROM tasks WHERE owner_id = ? ORDER BY created_at, rowid",
                    (owner_id,),
                )
                rows = await cursor.fetchall()
        except PersistenceError:
            raise
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to list tasks: {e}") from e

        return [self._row_to_task(row) for row in rows]

    async def update_task(self, owner_id: str, task: Task) -> Task:
        """
        Replace every user-editable field of a task.

        Args:
            owner_id: Owner namespace
            task: Task carrying the new field values

        Returns:
            The stored task with a fresh update timestamp

        Raises:
            TaskNotFoundError: If task not found for that owner
            PersistenceError: If update fails
        """
        now = datetime.now(UTC)
        try:
            async with self._get_connection() as conn:
                cursor = await conn.execute(
                    """
                    UPDATE tasks
                    SET name = ?, description = ?, deadline = ?, importance = ?,
                        estimated_time = ?, updated_at = ?
                    WHERE owner_id = ? AND id = ?
                    """,
                    (
                        task.name,
                        task.description,
                        task.deadline.isoformat() if task.deadline else None,
                        task.importance.value,
                        task.estimated_time,
                        now.isoformat(),
                        owner_id,
                        task.id,
                    ),
                )
                await conn.commit()
                updated = cursor.rowcount
        except PersistenceError:
            raise
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to update task {task.id}: {e}") from e

        if updated == 0:
            raise TaskNotFoundError(f"Task with ID {task.id} not found")

        return await self.get_task(owner_id, task.id)

    async def delete_task(self, owner_id: str, task_id: str) -> bool:
        """
        Delete a task. Deleting an absent task is not an error.

        Returns:
            True if a row was removed
        """
        try:
            async with self._get_connection() as conn:
                cursor = await conn.execute(
                    "DELETE FROM tasks WHERE owner_id = ? AND id = ?", (owner_id, task_id)
                )
                await conn.commit()
                deleted = cursor.rowcount
        except PersistenceError:
            raise
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to delete task {task_id}: {e}") from e

        return deleted > 0

    def _row_to_task(self, row: aiosqlite.Row) -> Task:
        """Convert database row to Task object."""
        return Task(
            id=row["id"],
            name=row["name"],
            estimated_time=row["estimated_time"],
            importance=Importance(row["importance"]),
            description=row["description"],
            deadline=(
                datetime.fromisoformat(row["deadline"]) if row["deadline"] else None
            ),
            owner_id=row["owner_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
