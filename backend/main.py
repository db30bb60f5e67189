from contextlib import asynccontextmanager
from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from typing import Any, Literal
import logging

from config import settings
from logging_setup import setup_logging
from models import Task, TaskCreate, TaskUpdate
from prioritizer import (
    AnthropicModel,
    ModelResponseError,
    ValidationError,
    prioritize,
)
from task_store import StaleResponseError, TaskStore

logger = logging.getLogger(__name__)

PRIORITIZATION_FAILED = "Could not retrieve prioritization suggestions. Please try again."

@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    setup_logging(settings.LOG_LEVEL)
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Tasks live in memory for the lifetime of the process
store = TaskStore()
model = AnthropicModel()


@app.get("/tasks")
def get_tasks(
    status: Literal["all", "pending", "completed"] = "all",
    search: str = Query(default=""),
) -> list[Task]:
    return store.list_tasks(status=status, search=search)


@app.post("/tasks")
def create_task(task_data: TaskCreate) -> Task:
    return store.create(task_data)


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, task_data: TaskUpdate) -> Task:
    result = store.update(task_id, task_data)
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str) -> dict:
    if not store.delete(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"status": "deleted"}


@app.post("/tasks/{task_id}/toggle")
def toggle_task(task_id: str) -> Task:
    result = store.toggle_status(task_id)
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result


@app.post("/prioritize")
async def prioritize_endpoint(payload: dict[str, Any] = Body(...)) -> dict:
    """Raw prioritization exchange: {tasks: [...]} -> {prioritizationSuggestions: [...]}."""
    try:
        suggestions = await prioritize(payload.get("tasks"), model)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)
    except ModelResponseError as e:
        logger.error("AI prioritization error: %s", e)
        raise HTTPException(status_code=502, detail=PRIORITIZATION_FAILED)

    return {
        "prioritizationSuggestions": [
            s.model_dump(by_alias=True) for s in suggestions
        ]
    }


@app.post("/tasks/prioritize")
async def prioritize_tasks() -> dict:
    """Ask the model for a reason per task and attach the reasons to the stored tasks."""
    token, snapshot = store.begin_prioritization()

    try:
        suggestions = await prioritize([task.to_summary() for task in snapshot], model)
    except (ValidationError, ModelResponseError) as e:
        logger.error("AI prioritization error: %s", e)
        raise HTTPException(status_code=502, detail=PRIORITIZATION_FAILED)

    try:
        tasks = store.apply_prioritization(token, snapshot, suggestions)
    except StaleResponseError:
        raise HTTPException(status_code=409, detail="A newer prioritization request is in progress")

    return {
        "message": "Prioritization reasons have been added to your tasks.",
        "tasks": tasks,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
