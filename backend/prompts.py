import json
from typing import Iterable, Optional

from models import TaskSummary

# Prompt for task prioritization
# Tasks are enumerated with their zero-based index; suggestions refer back to that index
PRIORITIZATION_PROMPT = """You are an AI assistant designed to provide intelligent suggestions for prioritizing a list of tasks. Consider the due date and estimated effort of each task. Provide a prioritization suggestion for each task including the index of the task in the list that was provided and a short reason why that task should be prioritized.

Tasks:
{task_list}
Respond with this exact JSON format:
{{
    "prioritizationSuggestions": [
        {{"taskId": <task index>, "reason": "short reason"}}
    ]
}}
{schema_section}
Only respond with valid JSON, no other text."""

TASK_ENTRY = """Task Index: {index}
Title: {title}
Description: {description}
Due Date: {due_date}
Estimated Effort: {estimated_effort}
"""


def _field(value: Optional[str]) -> str:
    """Absent fields render as empty, never as 'None'."""
    return "" if value is None else value


def render_task_list(tasks: Iterable[TaskSummary]) -> str:
    return "".join(
        TASK_ENTRY.format(
            index=index,
            title=task.title,
            description=_field(task.description),
            due_date=_field(task.due_date),
            estimated_effort=_field(task.estimated_effort),
        )
        for index, task in enumerate(tasks)
    )


def render_prioritization_prompt(tasks: Iterable[TaskSummary], output_schema: Optional[dict] = None) -> str:
    schema_section = ""
    if output_schema:
        schema_section = "\nThe response must conform to this JSON schema:\n" + json.dumps(output_schema, indent=2) + "\n"
    return PRIORITIZATION_PROMPT.format(
        task_list=render_task_list(tasks),
        schema_section=schema_section,
    )
