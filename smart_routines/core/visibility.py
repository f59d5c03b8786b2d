"""
Visibility resolver for smart tasks and smart routines.

Regular tasks and routines are always visible. A smart task is visible
when its controlling condition is met. A smart routine is visible when
every one of its routine-controlling conditions is met (an implicit AND
across conditions, on top of each condition's own AND/OR logic).
"""

import asyncio
import logging

from smart_routines.core.evaluator import ConditionEvaluator
from smart_routines.core.repository import ConditionRepository, NotFoundError
from smart_routines.core.schema import (
    EvaluationContext,
    Routine,
    RoutineType,
    Task,
    TaskType,
)

logger = logging.getLogger(__name__)


class VisibilityResolver:
    """Decides what a person gets to see.

    Args:
        repository: Read access to tasks, routines and conditions.
        evaluator: Condition evaluator (defaults to one on the same repository).
    """

    def __init__(
        self,
        repository: ConditionRepository,
        evaluator: ConditionEvaluator | None = None,
    ):
        self._repository = repository
        self._evaluator = evaluator or ConditionEvaluator(repository)

    async def is_task_visible(
        self,
        task_id: str,
        person_id: str,
        context: EvaluationContext | None = None,
    ) -> bool:
        """Determine if a task should be visible to a person.

        Raises:
            NotFoundError: If the task, its condition or the person does not exist.
        """
        task = await self._repository.get_task(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        await self._require_person(person_id)
        return await self._task_visible(task, person_id, context)

    async def is_routine_visible(
        self,
        routine_id: str,
        person_id: str,
        context: EvaluationContext | None = None,
    ) -> bool:
        """Determine if a routine should be visible to a person.

        Raises:
            NotFoundError: If the routine or the person does not exist.
        """
        routine = await self._repository.get_routine(routine_id)
        if routine is None:
            raise NotFoundError("routine", routine_id)
        await self._require_person(person_id)
        return await self._routine_visible(routine, person_id, context)

    async def get_visible_tasks(
        self,
        routine_id: str,
        person_id: str,
        context: EvaluationContext | None = None,
    ) -> list[Task]:
        """Return the routine's active tasks that are visible, in declared order."""
        if await self._repository.get_routine(routine_id) is None:
            raise NotFoundError("routine", routine_id)
        await self._require_person(person_id)

        context = (context or EvaluationContext()).frozen()
        tasks = await self._repository.list_active_tasks(routine_id)
        visible = await asyncio.gather(
            *(self._task_visible(task, person_id, context) for task in tasks)
        )
        return [task for task, is_visible in zip(tasks, visible) if is_visible]

    async def get_visible_smart_routines(
        self,
        routine_ids: list[str],
        person_id: str,
        context: EvaluationContext | None = None,
    ) -> list[str]:
        """Return the ids from `routine_ids` that are visible, keeping input order."""
        context = (context or EvaluationContext()).frozen()
        visible = await asyncio.gather(
            *(self.is_routine_visible(rid, person_id, context) for rid in routine_ids)
        )
        return [rid for rid, is_visible in zip(routine_ids, visible) if is_visible]

    # -----------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------

    async def _require_person(self, person_id: str) -> None:
        if await self._repository.get_person(person_id) is None:
            raise NotFoundError("person", person_id)

    async def _task_visible(
        self,
        task: Task,
        person_id: str,
        context: EvaluationContext | None,
    ) -> bool:
        if task.type != TaskType.SMART or task.condition_id is None:
            return True

        evaluation = await self._evaluator.evaluate_condition(task.condition_id, person_id, context)
        if evaluation.reason:
            logger.info("Task %s hidden for person %s: %s", task.id, person_id, evaluation.reason)
        return evaluation.result

    async def _routine_visible(
        self,
        routine: Routine,
        person_id: str,
        context: EvaluationContext | None,
    ) -> bool:
        if routine.type != RoutineType.SMART:
            return True

        conditions = await self._repository.list_routine_conditions(
            routine.id, controls_routine=True
        )
        # No controlling conditions means "always show"
        if not conditions:
            return True

        evaluations = await asyncio.gather(
            *(self._evaluator.evaluate_condition(c.id, person_id, context) for c in conditions)
        )
        return all(e.result for e in evaluations)
