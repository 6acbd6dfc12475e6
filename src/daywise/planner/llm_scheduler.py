"""Schedule generation using a local LLM via Ollama."""

import asyncio
import json
import time
from typing import Any

import ollama

from ..logging_utils import get_logger
from .config import (
    DEFAULT_DAY_END,
    DEFAULT_DAY_START,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MAX_RETRIES,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_TEMPERATURE,
    DEFAULT_OLLAMA_TIMEOUT,
    DEFAULT_SCHEDULE_PROMPT,
    MAX_BREAK_MINUTES,
    MIN_BREAK_MINUTES,
)
from .exceptions import InvalidInputError, SchedulerError
from .interfaces import Scheduler
from .models import ScheduleRequest, TaskDraft

logger = get_logger(__name__)


class OllamaScheduler(Scheduler):
    """Asks a local LLM to place tasks on a single day."""

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_MODEL,
        base_url: str = DEFAULT_OLLAMA_BASE_URL,
        timeout: float = DEFAULT_OLLAMA_TIMEOUT,
        max_retries: int = DEFAULT_OLLAMA_MAX_RETRIES,
        temperature: float = DEFAULT_OLLAMA_TEMPERATURE,
        day_start: str = DEFAULT_DAY_START,
        day_end: str = DEFAULT_DAY_END,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            model: Ollama model name
            base_url: Ollama service URL
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
            temperature: LLM temperature for generation
            day_start: Start of the default day window (HH:MM)
            day_end: End of the default day window (HH:MM)
        """
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.temperature = temperature
        self.day_start = day_start
        self.day_end = day_end
        self._client = ollama.AsyncClient(host=base_url)

    def _format_task(self, task: TaskDraft) -> str:
        # Quotes and newlines are flattened so task text cannot break the prompt layout.
        def clean(text: str) -> str:
            return text.replace("\n", " ").replace('"', "'")

        lines = [f"- Name: {clean(task.name)}"]
        if task.description:
            lines.append(f"  Description: {clean(task.description)}")
        if task.deadline is not None:
            lines.append(f"  Deadline: {task.deadline.isoformat()}")
        lines.append(f"  Importance: {task.importance.value}")
        lines.append(f"  Estimated Time: {task.estimated_time} minutes")
        return "\n".join(lines)

    def _generate_prompt(self, request: ScheduleRequest) -> str:
        """
        Generate the scheduling prompt for the LLM.

        Args:
            request: Tasks to place

        Returns:
            Formatted prompt string
        """
        return DEFAULT_SCHEDULE_PROMPT.format(
            day_start=self.day_start,
            day_end=self.day_end,
            min_break=MIN_BREAK_MINUTES,
            max_break=MAX_BREAK_MINUTES,
            tasks="\n".join(self._format_task(task) for task in request.tasks),
        )

    def _parse_response(self, response_text: str) -> Any:
        """
        Decode the LLM's JSON reply.

        Only the transport encoding is checked here; the schedule contract is
        enforced by the schedule validator.

        Raises:
            SchedulerError: If the reply is not JSON
        """
        try:
            return json.loads(response_text)
        except json.JSONDecodeError as e:
            raise SchedulerError(f"Invalid JSON response: {e}") from e

    async def generate(self, request: ScheduleRequest) -> Any:
        """
        Generate a schedule for the requested tasks.

        Args:
            request: Tasks to place

        Returns:
            Decoded, still unvalidated scheduler output

        Raises:
            InvalidInputError: If the request holds no tasks
            SchedulerError: If the call fails or the reply is not JSON
        """
        if not request.tasks:
            raise InvalidInputError("Schedule request holds no tasks")

        prompt = self._generate_prompt(request)
        logger.trace(f"Scheduling prompt:\n{prompt}")  # type: ignore[attr-defined]
        start_time = time.time()

        for attempt in range(self.max_retries):
            try:
                response = await asyncio.wait_for(
                    self._client.chat(
                        model=self.model,
                        messages=[{"role": "user", "content": prompt}],
                        format="json",
                        options={"temperature": self.temperature},
                    ),
                    timeout=self.timeout,
                )

                content = response["message"]["content"]
                result = self._parse_response(content)

                logger.info(
                    f"Schedule generated for {len(request.tasks)} tasks in "
                    f"{time.time() - start_time:.3f}s"
                )
                logger.debug(f"Raw scheduler output: {content}")
                return result

            except TimeoutError as e:
                logger.error(f"Timeout on attempt {attempt + 1}/{self.max_retries}: {e}")
                if attempt < self.max_retries - 1:
                    # Exponential backoff
                    await asyncio.sleep(2**attempt)
                else:
                    raise SchedulerError(
                        f"Max retries exceeded after {self.max_retries} attempts"
                    ) from e

            except SchedulerError:
                raise

            except ConnectionError as e:
                logger.error(f"Connection error: {e}")
                raise SchedulerError(f"Connection failed: {e}") from e

            except Exception as e:
                logger.error(f"Schedule generation error: {e}")
                raise SchedulerError(f"Schedule generation failed: {e}") from e

        raise SchedulerError(f"Max retries exceeded after {self.max_retries} attempts")
