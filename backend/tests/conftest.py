"""
Shared pytest fixtures for backend tests.
Each test gets a fresh in-memory task store and a fake language model.
"""
import pytest
import sys
import os

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from task_store import TaskStore
from fakes import FakeModel


@pytest.fixture
def store():
    return TaskStore()


@pytest.fixture
def fake_model():
    """Fake model returning an empty suggestion list unless a test sets one."""
    return FakeModel({"prioritizationSuggestions": []})


@pytest.fixture
def app_client(store, fake_model, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Swaps the module-level store and model for the test fixtures.
    """
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(main, "store", store)
    monkeypatch.setattr(main, "model", fake_model)

    with TestClient(main.app) as client:
        yield client
