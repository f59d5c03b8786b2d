"""
Dependency cycle detection for the routine "controls" graph.

An edge A -> B exists when routine A has a routine-controlling condition
with a check that targets routine B. If the graph had a cycle, a
routine's visibility would depend on its own completion state, so every
new edge is checked before it is written.

The traversal is iterative (explicit stack + visited map) so deep
graphs cannot exhaust the interpreter's recursion limit.
"""

import logging

from pydantic import BaseModel, Field

from smart_routines.core.repository import ConditionRepository

logger = logging.getLogger(__name__)


class RoutineDependents(BaseModel):
    """Who would be affected if a routine were removed."""

    routine_id: str
    routine_ids: list[str] = Field(
        default_factory=list,
        description="Routines owning a condition that references this routine or its tasks",
    )
    condition_ids: list[str] = Field(default_factory=list)
    task_ids: list[str] = Field(
        default_factory=list,
        description="Tasks of this routine that those conditions reference",
    )


class CycleDetector:
    """Walks the controls graph through a read-only repository."""

    def __init__(self, repository: ConditionRepository):
        self._repository = repository

    async def would_create_cycle(self, source_routine_id: str, target_routine_id: str) -> bool:
        """Return True if adding source -> target would close a cycle.

        A self reference (source == target) is always a cycle.
        """
        return await self.find_cycle_path(source_routine_id, target_routine_id) is not None

    async def find_cycle_path(
        self,
        source_routine_id: str,
        target_routine_id: str,
    ) -> list[str] | None:
        """Return the cycle the new edge would close, or None.

        The path starts and ends at the source: [source, target, ..., source].
        """
        # Each visited routine maps to the routine it was reached from
        parents: dict[str, str] = {target_routine_id: source_routine_id}
        stack = [target_routine_id]

        while stack:
            routine_id = stack.pop()
            if routine_id == source_routine_id:
                return _build_path(parents, source_routine_id, target_routine_id)

            conditions = await self._repository.list_routine_conditions(
                routine_id, controls_routine=True
            )
            for condition in conditions:
                for next_id in condition.routine_targets():
                    if next_id not in parents:
                        parents[next_id] = routine_id
                        stack.append(next_id)

        return None

    async def describe_cycle_path(self, path: list[str]) -> str:
        """Render a cycle path with routine names, e.g. "Morning → Chores → Morning"."""
        names = []
        for routine_id in path:
            routine = await self._repository.get_routine(routine_id)
            names.append(routine.name if routine is not None and routine.name else routine_id)
        return " → ".join(names)

    async def get_dependents(self, routine_id: str) -> RoutineDependents:
        """Find the routines and conditions that reference a routine or its tasks."""
        conditions = await self._repository.list_conditions_referencing(routine_id)

        routine_ids: list[str] = []
        task_ids: list[str] = []
        for condition in conditions:
            if condition.routine_id not in routine_ids:
                routine_ids.append(condition.routine_id)
            for check in condition.checks:
                if check.target_task_id is None or check.target_task_id in task_ids:
                    continue
                task = await self._repository.get_task(check.target_task_id)
                if task is not None and task.routine_id == routine_id:
                    task_ids.append(task.id)

        return RoutineDependents(
            routine_id=routine_id,
            routine_ids=routine_ids,
            condition_ids=[c.id for c in conditions],
            task_ids=task_ids,
        )


def _build_path(parents: dict[str, str], source: str, target: str) -> list[str]:
    """Follow parent links from the source back to the target of the new edge."""
    reversed_path = [source]
    current = source
    while current != target:
        current = parents[current]
        reversed_path.append(current)
    return [source] + list(reversed(reversed_path))
