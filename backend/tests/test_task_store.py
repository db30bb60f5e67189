"""
Tests for task_store.py - in-memory CRUD, filtering, and prioritization sequencing.
"""
import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import PrioritizationSuggestion, TaskCreate, TaskUpdate
from task_store import StaleResponseError


class TestTaskCRUD:
    """Tests for basic task create/read/update/delete operations."""

    def test_create_task_basic(self, store):
        task = store.create(TaskCreate(title="Buy groceries"))

        assert task.id
        assert task.title == "Buy groceries"
        assert task.status == "pending"
        assert task.due_date is None
        assert task.prioritization_reason is None

    def test_new_tasks_come_first(self, store):
        store.create(TaskCreate(title="First"))
        store.create(TaskCreate(title="Second"))

        assert [t.title for t in store.list_tasks()] == ["Second", "First"]

    def test_ids_are_unique(self, store):
        a = store.create(TaskCreate(title="A"))
        b = store.create(TaskCreate(title="A"))
        assert a.id != b.id

    def test_update_task_fields(self, store):
        task = store.create(TaskCreate(title="Old title"))

        updated = store.update(task.id, TaskUpdate(
            title="New title",
            due_date=date(2024, 1, 1),
            estimated_effort="medium",
        ))

        assert updated.title == "New title"
        assert updated.due_date == date(2024, 1, 1)
        assert updated.estimated_effort == "medium"
        assert store.get(task.id) == updated

    def test_update_only_provided_fields(self, store):
        task = store.create(TaskCreate(title="Report", description="Q3"))

        updated = store.update(task.id, TaskUpdate(estimated_effort="low"))

        assert updated.title == "Report"
        assert updated.description == "Q3"

    def test_update_explicit_null_clears_optional_field(self, store):
        task = store.create(TaskCreate(title="Report", due_date=date(2024, 1, 1)))

        updated = store.update(task.id, TaskUpdate.model_validate({"due_date": None, "title": None}))

        assert updated.due_date is None
        assert updated.title == "Report"

    def test_update_keeps_prioritization_reason(self, store):
        task = store.create(TaskCreate(title="A"))
        token, snapshot = store.begin_prioritization()
        store.apply_prioritization(token, snapshot, [PrioritizationSuggestion(task_index=0, reason="Urgent")])

        updated = store.update(task.id, TaskUpdate(title="A2"))

        assert updated.prioritization_reason == "Urgent"

    def test_update_not_found(self, store):
        assert store.update("nonexistent", TaskUpdate(title="x")) is None

    def test_delete_task(self, store):
        task = store.create(TaskCreate(title="Delete me"))

        assert store.delete(task.id) is True
        assert store.list_tasks() == []

    def test_delete_not_found(self, store):
        assert store.delete("nonexistent") is False

    def test_toggle_status(self, store):
        task = store.create(TaskCreate(title="Toggle me"))

        assert store.toggle_status(task.id).status == "completed"
        assert store.toggle_status(task.id).status == "pending"

    def test_toggle_not_found(self, store):
        assert store.toggle_status("nonexistent") is None


class TestFiltering:
    """Tests for status filter and search."""

    @pytest.fixture
    def populated(self, store):
        store.create(TaskCreate(title="Buy groceries", description="Milk and eggs"))
        store.create(TaskCreate(title="Team meeting", status="completed"))
        store.create(TaskCreate(title="Review PR", description="Backend refactor"))
        return store

    def test_all(self, populated):
        assert len(populated.list_tasks()) == 3

    def test_status_filter(self, populated):
        assert [t.title for t in populated.list_tasks(status="completed")] == ["Team meeting"]
        assert len(populated.list_tasks(status="pending")) == 2

    def test_search_title_case_insensitive(self, populated):
        assert [t.title for t in populated.list_tasks(search="TEAM")] == ["Team meeting"]

    def test_search_description(self, populated):
        assert [t.title for t in populated.list_tasks(search="eggs")] == ["Buy groceries"]

    def test_search_and_status_combined(self, populated):
        assert populated.list_tasks(status="pending", search="meeting") == []


class TestPrioritizationSequencing:
    """Tests for applying suggestions to the store."""

    def test_merges_by_snapshot_position(self, store):
        b = store.create(TaskCreate(title="B"))
        a = store.create(TaskCreate(title="A"))
        token, snapshot = store.begin_prioritization()

        store.apply_prioritization(token, snapshot, [PrioritizationSuggestion(task_index=1, reason="Urgent")])

        assert store.get(a.id).prioritization_reason is None
        assert store.get(b.id).prioritization_reason == "Urgent"

    def test_task_added_during_request_not_misattributed(self, store):
        a = store.create(TaskCreate(title="A"))
        token, snapshot = store.begin_prioritization()
        late = store.create(TaskCreate(title="Late"))

        store.apply_prioritization(token, snapshot, [PrioritizationSuggestion(task_index=0, reason="Urgent")])

        assert store.get(a.id).prioritization_reason == "Urgent"
        assert store.get(late.id).prioritization_reason is None

    def test_task_deleted_during_request_skipped(self, store):
        a = store.create(TaskCreate(title="A"))
        token, snapshot = store.begin_prioritization()
        store.delete(a.id)

        tasks = store.apply_prioritization(token, snapshot, [PrioritizationSuggestion(task_index=0, reason="Urgent")])

        assert tasks == []

    def test_out_of_range_leaves_store_unchanged(self, store):
        store.create(TaskCreate(title="A"))
        before = store.snapshot()
        token, snapshot = store.begin_prioritization()

        store.apply_prioritization(token, snapshot, [PrioritizationSuggestion(task_index=3, reason="Phantom")])

        assert store.snapshot() == before

    def test_stale_response_rejected(self, store):
        """Two overlapping runs: the one started first can no longer merge."""
        a = store.create(TaskCreate(title="A"))
        first_token, first_snapshot = store.begin_prioritization()
        second_token, second_snapshot = store.begin_prioritization()

        store.apply_prioritization(second_token, second_snapshot, [PrioritizationSuggestion(task_index=0, reason="Second")])
        with pytest.raises(StaleResponseError):
            store.apply_prioritization(first_token, first_snapshot, [PrioritizationSuggestion(task_index=0, reason="First")])

        assert store.get(a.id).prioritization_reason == "Second"

    def test_older_run_applies_while_newer_unfinished(self, store):
        """A newer run that never merges (e.g. it failed) does not block an older one."""
        a = store.create(TaskCreate(title="A"))
        first_token, first_snapshot = store.begin_prioritization()
        store.begin_prioritization()

        store.apply_prioritization(first_token, first_snapshot, [PrioritizationSuggestion(task_index=0, reason="First")])

        assert store.get(a.id).prioritization_reason == "First"

    def test_newer_run_overwrites_older(self, store):
        a = store.create(TaskCreate(title="A"))
        first_token, first_snapshot = store.begin_prioritization()
        second_token, second_snapshot = store.begin_prioritization()

        store.apply_prioritization(first_token, first_snapshot, [PrioritizationSuggestion(task_index=0, reason="First")])
        store.apply_prioritization(second_token, second_snapshot, [PrioritizationSuggestion(task_index=0, reason="Second")])

        assert store.get(a.id).prioritization_reason == "Second"
