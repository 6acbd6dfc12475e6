"""Custom exceptions for the day planner."""


class PlannerError(Exception):
    """Base exception for planner errors."""

    pass


class InvalidInputError(PlannerError):
    """Exception raised when a task or schedule request is malformed or empty."""

    pass


class TaskNotFoundError(PlannerError):
    """Exception raised when a task or schedule item is not found."""

    pass


class PersistenceError(PlannerError):
    """Exception raised when the task store rejects a read or write."""

    pass


class SchemaError(PersistenceError):
    """Exception raised for database schema errors."""

    pass


class SchedulerError(PlannerError):
    """Exception raised when the external scheduler call fails."""

    pass
