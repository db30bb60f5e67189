import logging
import uuid
from typing import Iterable, Optional

from models import PrioritizationSuggestion, Task, TaskCreate, TaskUpdate
from prioritizer import merge_suggestions

logger = logging.getLogger(__name__)


class StaleResponseError(Exception):
    """A newer prioritization was started after this one."""


class TaskStore:
    """
    In-memory ordered task list. Newest tasks come first.
    Owned by the app; nothing here survives a restart.
    """

    def __init__(self):
        self._tasks: list[Task] = []
        self._prioritization_seq = 0
        self._applied_seq = 0

    def create(self, data: TaskCreate) -> Task:
        task = Task(id=str(uuid.uuid4()), **data.model_dump())
        self._tasks.insert(0, task)
        return task

    def get(self, task_id: str) -> Optional[Task]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def _replace(self, task_id: str, **updates) -> Optional[Task]:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                self._tasks[i] = task.model_copy(update=updates)
                return self._tasks[i]
        return None

    def update(self, task_id: str, data: TaskUpdate) -> Optional[Task]:
        """
        Update a task with the fields provided.
        Explicit nulls clear optional fields; title and status can't be cleared.
        """
        updates = data.model_dump(exclude_unset=True)
        for field in ("title", "status"):
            if updates.get(field, "") is None:
                del updates[field]
        return self._replace(task_id, **updates)

    def delete(self, task_id: str) -> bool:
        before = len(self._tasks)
        self._tasks = [t for t in self._tasks if t.id != task_id]
        return len(self._tasks) < before

    def toggle_status(self, task_id: str) -> Optional[Task]:
        task = self.get(task_id)
        if not task:
            return None
        status = "completed" if task.status == "pending" else "pending"
        return self._replace(task_id, status=status)

    def list_tasks(self, status: str = "all", search: str = "") -> list[Task]:
        """Filter by status and case-insensitive search on title or description."""
        needle = search.lower()
        result = []
        for task in self._tasks:
            if status != "all" and task.status != status:
                continue
            if needle and needle not in task.title.lower() and needle not in (task.description or "").lower():
                continue
            result.append(task)
        return result

    def snapshot(self) -> list[Task]:
        return list(self._tasks)

    # Prioritization sequencing: a run may merge unless a run started after it has already merged.
    # Failed runs never merge, so they never block older runs.

    def begin_prioritization(self) -> tuple[int, list[Task]]:
        self._prioritization_seq += 1
        return self._prioritization_seq, self.snapshot()

    def apply_prioritization(self, token: int, snapshot: list[Task],
                             suggestions: Iterable[PrioritizationSuggestion]) -> list[Task]:
        """
        Merge suggestions (indexed against snapshot) into the current tasks by id.
        Tasks deleted since the snapshot are skipped.
        Raises StaleResponseError if a newer prioritization has already been applied.
        """
        if token < self._applied_seq:
            logger.info("Ignoring stale prioritization response %d (run %d already applied)", token, self._applied_seq)
            raise StaleResponseError(f"prioritization {token} superseded by {self._applied_seq}")
        self._applied_seq = token

        merged = merge_suggestions(snapshot, suggestions)
        for before, after in zip(snapshot, merged):
            if after.prioritization_reason != before.prioritization_reason:
                if self._replace(after.id, prioritization_reason=after.prioritization_reason) is None:
                    logger.debug("Task %s was deleted before suggestions arrived", after.id)
        return self.snapshot()
