"""
Data access for the evaluation engine.

The engine never talks to a database directly. It is handed a
repository object that implements `ConditionRepository` (reads) and,
for the authoring path, `WritableConditionRepository`.

`InMemoryRepository` is the reference implementation used by the API
app and the tests. It can be seeded from a JSON dataset.
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from smart_routines.core.schema import (
    Condition,
    GoalProgress,
    Person,
    Routine,
    Task,
    TaskCompletion,
    TaskStatus,
)


class NotFoundError(Exception):
    """Raised when a referenced condition, task, routine or person does not exist."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} '{entity_id}' not found")


class ConditionRepository(Protocol):
    """Read-only view of the data the engine evaluates against."""

    async def get_condition(self, condition_id: str) -> Condition | None: ...

    async def list_routine_conditions(
        self, routine_id: str, controls_routine: bool | None = None
    ) -> list[Condition]: ...

    async def list_conditions_referencing(self, routine_id: str) -> list[Condition]: ...

    async def get_task(self, task_id: str) -> Task | None: ...

    async def list_active_tasks(self, routine_id: str) -> list[Task]: ...

    async def get_routine(self, routine_id: str) -> Routine | None: ...

    async def get_person(self, person_id: str) -> Person | None: ...

    async def list_completions(
        self, task_id: str, person_id: str, since: datetime
    ) -> list[TaskCompletion]: ...

    async def get_goal_progress(self, goal_id: str, person_id: str) -> GoalProgress | None: ...


class WritableConditionRepository(ConditionRepository, Protocol):
    """Repository that also persists conditions (authoring path)."""

    async def save_condition(self, condition: Condition) -> None: ...

    async def delete_condition(self, condition_id: str) -> bool: ...


class InMemoryRepository:
    """Thread-safe in-memory repository.

    Completions are append-only. Conditions are stored whole, so saving
    a condition replaces all of its checks.
    """

    def __init__(self):
        self._persons: dict[str, Person] = {}
        self._routines: dict[str, Routine] = {}
        self._tasks: dict[str, Task] = {}
        self._completions: list[TaskCompletion] = []
        self._conditions: dict[str, Condition] = {}
        self._goal_progress: dict[str, GoalProgress] = {}
        self._lock = threading.RLock()

    # -----------------------------------------------------------------
    # Seeding
    # -----------------------------------------------------------------

    def add_person(self, person: Person) -> None:
        with self._lock:
            self._persons[person.id] = person

    def add_routine(self, routine: Routine) -> None:
        with self._lock:
            self._routines[routine.id] = routine

    def add_task(self, task: Task) -> None:
        with self._lock:
            self._tasks[task.id] = task

    def add_completion(self, completion: TaskCompletion) -> None:
        with self._lock:
            self._completions.append(completion)

    def add_condition(self, condition: Condition) -> None:
        with self._lock:
            self._conditions[condition.id] = condition

    def set_goal_progress(self, progress: GoalProgress) -> None:
        """Store the goal service's latest progress signal for a goal."""
        with self._lock:
            self._goal_progress[progress.goal_id] = progress

    def load_dataset(self, data: dict[str, Any]) -> None:
        """Seed the repository from a dict of entity lists.

        Recognized keys: persons, routines, tasks, completions,
        conditions, goals. Each entry is validated by its model.
        """
        for raw in data.get("persons", []):
            self.add_person(Person.model_validate(raw))
        for raw in data.get("routines", []):
            self.add_routine(Routine.model_validate(raw))
        for raw in data.get("tasks", []):
            self.add_task(Task.model_validate(raw))
        for raw in data.get("completions", []):
            self.add_completion(TaskCompletion.model_validate(raw))
        for raw in data.get("goals", []):
            self.set_goal_progress(GoalProgress.model_validate(raw))
        for raw in data.get("conditions", []):
            self.add_condition(Condition.model_validate(raw))

    @classmethod
    def from_json_file(cls, path: str | Path) -> "InMemoryRepository":
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        repository = cls()
        repository.load_dataset(data)
        return repository

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    async def get_condition(self, condition_id: str) -> Condition | None:
        with self._lock:
            return self._conditions.get(condition_id)

    async def list_routine_conditions(
        self, routine_id: str, controls_routine: bool | None = None
    ) -> list[Condition]:
        with self._lock:
            return [
                c for c in self._conditions.values()
                if c.routine_id == routine_id
                and (controls_routine is None or c.controls_routine == controls_routine)
            ]

    async def list_conditions_referencing(self, routine_id: str) -> list[Condition]:
        """Conditions with a check that targets the routine or one of its tasks."""
        with self._lock:
            task_ids = {t.id for t in self._tasks.values() if t.routine_id == routine_id}
            return [
                c for c in self._conditions.values()
                if any(
                    check.target_routine_id == routine_id or check.target_task_id in task_ids
                    for check in c.checks
                )
            ]

    async def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            return self._tasks.get(task_id)

    async def list_active_tasks(self, routine_id: str) -> list[Task]:
        with self._lock:
            tasks = [
                t for t in self._tasks.values()
                if t.routine_id == routine_id and t.status == TaskStatus.ACTIVE
            ]
        # sorted() is stable, so equal orders keep insertion order
        return sorted(tasks, key=lambda t: t.order)

    async def get_routine(self, routine_id: str) -> Routine | None:
        with self._lock:
            return self._routines.get(routine_id)

    async def get_person(self, person_id: str) -> Person | None:
        with self._lock:
            return self._persons.get(person_id)

    async def list_completions(
        self, task_id: str, person_id: str, since: datetime
    ) -> list[TaskCompletion]:
        """Completions of a task by a person at or after `since`, newest first."""
        with self._lock:
            completions = [
                c for c in self._completions
                if c.task_id == task_id and c.person_id == person_id and c.completed_at >= since
            ]
        return sorted(completions, key=lambda c: c.completed_at, reverse=True)

    async def get_goal_progress(self, goal_id: str, person_id: str) -> GoalProgress | None:
        with self._lock:
            return self._goal_progress.get(goal_id)

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------

    async def save_condition(self, condition: Condition) -> None:
        with self._lock:
            self._conditions[condition.id] = condition

    async def delete_condition(self, condition_id: str) -> bool:
        """Delete a condition (and with it, its checks). Returns True if it existed."""
        with self._lock:
            return self._conditions.pop(condition_id, None) is not None
