"""Configuration constants for the day planner."""

import os

# LLM Configuration
DEFAULT_OLLAMA_MODEL = "llama3.2:3b"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_TIMEOUT = 60.0  # seconds
DEFAULT_OLLAMA_MAX_RETRIES = 3
DEFAULT_OLLAMA_TEMPERATURE = 0.2

# Storage Configuration
DEFAULT_DATABASE_PATH = os.path.expanduser("~/.daywise/tasks.db")
DEFAULT_WAL_MODE = True

# Database Schema Version
SCHEMA_VERSION = 1

# Task limits
MAX_TASK_NAME_LENGTH = 100
MAX_TASK_DESCRIPTION_LENGTH = 500
MIN_ESTIMATED_TIME = 1  # minutes
MAX_ESTIMATED_TIME = 24 * 60  # minutes

# Scheduling policy handed to the scheduler
DEFAULT_DAY_START = "09:00"
DEFAULT_DAY_END = "17:00"
MIN_BREAK_MINUTES = 10
MAX_BREAK_MINUTES = 15

# 24-hour, zero-padded clock time
TIME_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"

# Temporary ids for optimistically inserted tasks
TEMP_ID_PREFIX = "temp-"

# Notifications
DEFAULT_NOTIFICATION_LIMIT = 20

# User-facing diagnostics
GENERATION_FAILED_MESSAGE = "Failed to generate schedule. Please try again."
INVALID_SCHEDULE_MESSAGE = "The scheduler returned a schedule that could not be used."

# MCP Server Configuration
DEFAULT_MCP_HOST = "localhost"
DEFAULT_MCP_PORT = 3000
DEFAULT_MCP_SERVER_NAME = "daywise-planner"

# LLM Prompt Template
# Placeholders: {day_start}, {day_end}, {min_break}, {max_break}, {tasks}
DEFAULT_SCHEDULE_PROMPT = """Given the following list of tasks, suggest an optimal schedule for a single day, considering deadlines and importance.
The schedule must be in chronological order. Start and end times for each task must be in strict HH:MM format (24-hour clock).
Assume a standard working day ({day_start} to {day_end}) unless deadlines require extending beyond this.
Prioritize higher importance and earlier deadlines. Fit as many tasks as possible. Include reasonable breaks ({min_break}-{max_break} min) between tasks if time permits.

Tasks:
{tasks}

Constraints:
- Output must be a single JSON object and nothing else.
- Start and End times MUST be in HH:MM format (e.g., "09:00", "14:30").
- The "schedule" array contains objects with "name", "startTime", and "endTime".

Return Logic:
- If it's impossible to schedule *any* tasks (e.g., a single task is longer than the available day), return an empty schedule array and set "isPossible" to false.
- If some tasks can be scheduled but not all, return the partial schedule of tasks that *do* fit and set "isPossible" to true.
- If all tasks fit, return the full schedule and set "isPossible" to true.

Example Output for partial fit:
{{"schedule": [{{"name": "High Prio Task", "startTime": "09:00", "endTime": "10:30"}}, {{"name": "Medium Prio Task", "startTime": "10:45", "endTime": "11:45"}}], "isPossible": true}}

Example Output for impossible:
{{"schedule": [], "isPossible": false}}

Generate the schedule now.
"""
