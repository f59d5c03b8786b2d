"""
Shared test fixtures and helpers for the smart routines test suite.

Provides World — a small builder around InMemoryRepository so tests can
lay out routines, tasks, completions and conditions in a few lines.
"""

from datetime import datetime, timedelta

import pytest

from smart_routines.core.repository import InMemoryRepository
from smart_routines.core.schema import (
    Condition,
    EvaluationContext,
    GoalProgress,
    Person,
    ResetPeriod,
    Routine,
    RoutineType,
    Task,
    TaskCompletion,
    TaskStatus,
    TaskType,
)

# Wednesday 09:00. With the default 23:55 rollover, the daily period
# started on Tuesday 2026-03-10 at 23:55.
NOW = datetime(2026, 3, 11, 9, 0)
PERSON_ID = "kid-1"


class World:
    """Test helper that seeds an InMemoryRepository.

    Usage:
        world = World()
        world.routine("morning")
        world.task("brush", "morning")
        world.complete("brush")
        world.condition("cond", "evening", [{"operator": "TASK_COMPLETED", "target_task_id": "brush"}])
    """

    def __init__(self, now: datetime = NOW, person_id: str = PERSON_ID):
        self.now = now
        self.person_id = person_id
        self.repo = InMemoryRepository()
        self.repo.add_person(Person(id=person_id, name="Sam"))
        self._completion_seq = 0

    def person(self, person_id: str) -> Person:
        person = Person(id=person_id)
        self.repo.add_person(person)
        return person

    def routine(
        self,
        routine_id: str,
        type: RoutineType = RoutineType.REGULAR,
        reset_period: ResetPeriod = ResetPeriod.DAILY,
        reset_day: int | None = None,
        name: str = "",
    ) -> Routine:
        routine = Routine(
            id=routine_id,
            name=name or routine_id,
            type=type,
            reset_period=reset_period,
            reset_day=reset_day,
        )
        self.repo.add_routine(routine)
        return routine

    def task(
        self,
        task_id: str,
        routine_id: str,
        order: int = 0,
        type: TaskType = TaskType.SIMPLE,
        status: TaskStatus = TaskStatus.ACTIVE,
        condition_id: str | None = None,
    ) -> Task:
        task = Task(
            id=task_id,
            routine_id=routine_id,
            name=task_id,
            order=order,
            type=type,
            status=status,
            condition_id=condition_id,
        )
        self.repo.add_task(task)
        return task

    def complete(
        self,
        task_id: str,
        at: datetime | None = None,
        value: float | None = None,
        person_id: str | None = None,
    ) -> TaskCompletion:
        self._completion_seq += 1
        completion = TaskCompletion(
            id=f"completion-{self._completion_seq}",
            task_id=task_id,
            person_id=person_id or self.person_id,
            completed_at=at or self.now - timedelta(hours=1),
            value=value,
        )
        self.repo.add_completion(completion)
        return completion

    def goal(self, goal_id: str, achieved: bool, percentage: float = 0.0) -> GoalProgress:
        progress = GoalProgress(goal_id=goal_id, achieved=achieved, percentage=percentage)
        self.repo.set_goal_progress(progress)
        return progress

    def condition(
        self,
        condition_id: str,
        routine_id: str,
        checks: list[dict],
        logic: str = "AND",
        controls_routine: bool = False,
    ) -> Condition:
        condition = Condition(
            id=condition_id,
            routine_id=routine_id,
            logic=logic,
            controls_routine=controls_routine,
            checks=[
                {"id": f"{condition_id}-{index}", **check}
                for index, check in enumerate(checks, start=1)
            ],
        )
        self.repo.add_condition(condition)
        return condition


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def context() -> EvaluationContext:
    """Evaluation context frozen at NOW (a Wednesday)."""
    return EvaluationContext(current_time=NOW)
