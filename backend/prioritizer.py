"""
Task prioritization: validate a task snapshot, ask a language model for
reasons, validate what comes back, and merge the reasons into tasks.
"""
import json
import logging
from typing import Any, Iterable, NamedTuple, Optional, Protocol, Sequence

import anthropic
import pydantic

from config import settings
from models import (
    PrioritizationRequest,
    PrioritizationResponse,
    PrioritizationSuggestion,
    Task,
    TaskSummary,
)
from prompts import render_prioritization_prompt

logger = logging.getLogger(__name__)


class PrioritizationError(Exception):
    pass

class ValidationError(PrioritizationError):
    """The request does not match the task summary schema."""

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__("; ".join(errors) or "invalid prioritization request")

class ModelResponseError(PrioritizationError):
    """The model backend failed or returned output that does not match the schema."""


class Validated(NamedTuple):
    ok: bool
    value: Optional[Any] = None
    errors: tuple[str, ...] = ()


def _format_errors(exc: pydantic.ValidationError) -> tuple[str, ...]:
    return tuple(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )


def validate_request(tasks: Any) -> Validated:
    """Validate a sequence of task summaries (mappings or TaskSummary objects)."""
    if isinstance(tasks, (str, bytes)) or not isinstance(tasks, Sequence):
        return Validated(ok=False, errors=("tasks: expected a sequence of tasks",))
    payload = [
        task.model_dump(by_alias=True, exclude_none=True) if isinstance(task, TaskSummary) else task
        for task in tasks
    ]
    try:
        request = PrioritizationRequest.model_validate({"tasks": payload})
    except pydantic.ValidationError as e:
        return Validated(ok=False, errors=_format_errors(e))
    return Validated(ok=True, value=request)


def validate_response(data: Any) -> Validated:
    try:
        response = PrioritizationResponse.model_validate(data)
    except pydantic.ValidationError as e:
        return Validated(ok=False, errors=_format_errors(e))
    return Validated(ok=True, value=response)


def output_schema() -> dict:
    return PrioritizationResponse.model_json_schema(by_alias=True, mode="serialization")


class LanguageModel(Protocol):
    async def generate(self, prompt: str, output_schema: dict) -> Any:
        """Return structured data parsed from the model's reply."""
        ...


def strip_code_fence(text: str) -> str:
    """Strip a markdown code block around the model output, if present."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


STRUCTURED_OUTPUT_TOOL = "prioritization_suggestions"


class AnthropicModel:
    """LanguageModel backed by the Anthropic Messages API."""

    def __init__(self, client: Optional[anthropic.AsyncAnthropic] = None, model: Optional[str] = None,
                 max_tokens: Optional[int] = None):
        self._client = client
        self.model = model or settings.ANTHROPIC_MODEL
        self.max_tokens = max_tokens or settings.ANTHROPIC_MAX_TOKENS

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not settings.api_key_configured:
                raise ModelResponseError("API key not configured")
            # No retries: one outbound call per prioritization
            self._client = anthropic.AsyncAnthropic(
                api_key=settings.ANTHROPIC_API_KEY,
                timeout=settings.ANTHROPIC_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._client

    async def generate(self, prompt: str, output_schema: dict) -> Any:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system="You respond with JSON only.",
                messages=[{"role": "user", "content": prompt}],
                tools=[{
                    "name": STRUCTURED_OUTPUT_TOOL,
                    "description": "Record prioritization suggestions for the tasks.",
                    "input_schema": output_schema,
                }],
                tool_choice={"type": "tool", "name": STRUCTURED_OUTPUT_TOOL},
            )
        except anthropic.APIError as e:
            raise ModelResponseError(f"API error: {e}") from e

        # Structured output arrives as the forced tool call's input
        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == STRUCTURED_OUTPUT_TOOL:
                logger.debug("Model tool input: %s", block.input)
                return block.input

        ai_text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        logger.debug("Model response: %s", ai_text)

        try:
            return json.loads(strip_code_fence(ai_text))
        except json.JSONDecodeError as e:
            raise ModelResponseError("Failed to parse AI response") from e


async def prioritize(tasks: Any, model: LanguageModel) -> list[PrioritizationSuggestion]:
    """
    Ask the model for a prioritization reason per task.

    Raises ValidationError before any network call if the tasks are malformed,
    and ModelResponseError if the backend fails or returns non-conforming data.
    Suggestions are returned as the model produced them; out-of-range indices
    are left for merge_suggestions to drop.
    """
    validated = validate_request(tasks)
    if not validated.ok:
        raise ValidationError(validated.errors)

    request: PrioritizationRequest = validated.value
    if not request.tasks:
        return []

    schema = output_schema()
    prompt = render_prioritization_prompt(request.tasks, schema)

    try:
        data = await model.generate(prompt, schema)
    except ModelResponseError:
        raise
    except Exception as e:
        raise ModelResponseError(f"Model backend failed: {e}") from e

    result = validate_response(data)
    if not result.ok:
        logger.warning("Model output failed validation: %s", result.errors)
        raise ModelResponseError("Model output does not match the expected schema")

    suggestions = result.value.prioritization_suggestions
    logger.info("Received %d suggestions for %d tasks", len(suggestions), len(request.tasks))
    return suggestions


def merge_suggestions(tasks: Sequence[Task], suggestions: Iterable[PrioritizationSuggestion]) -> list[Task]:
    """
    Return a copy of tasks with each suggestion's reason set on the task at its index.
    Later suggestions for the same index win; out-of-range indices are dropped.
    """
    merged = list(tasks)
    for suggestion in suggestions:
        index = suggestion.task_index
        if not 0 <= index < len(merged):
            logger.warning("Dropping suggestion for out-of-range task index %d (%d tasks)", index, len(merged))
            continue
        merged[index] = merged[index].model_copy(update={"prioritization_reason": suggestion.reason})
    return merged
