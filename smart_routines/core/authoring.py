"""
Condition write path.

Conditions are created and replaced whole: an update swaps in the new
list of checks, and deleting a condition removes its checks with it.
Before any write, every routine-targeting check is run through the
cycle detector; a write that would close a cycle is rejected and
nothing is persisted.
"""

import asyncio
import logging

from smart_routines.core.cycles import CycleDetector
from smart_routines.core.repository import NotFoundError, WritableConditionRepository
from smart_routines.core.schema import Condition

logger = logging.getLogger(__name__)


class ConditionExistsError(ValueError):
    """Raised when creating a condition whose id is already taken."""


class CycleRejectedError(Exception):
    """Raised when a condition write would create a dependency cycle."""

    def __init__(self, source_routine_id: str, target_routine_id: str, path: list[str], message: str):
        self.source_routine_id = source_routine_id
        self.target_routine_id = target_routine_id
        self.path = path
        self.message = message
        super().__init__(message)


class ConditionAuthoringService:
    """Validates and persists conditions.

    Writes are serialized through one lock, so the cycle check and the
    write it protects cannot interleave with another writer's.
    """

    def __init__(self, repository: WritableConditionRepository, detector: CycleDetector | None = None):
        self._repository = repository
        self._detector = detector or CycleDetector(repository)
        self._write_lock = asyncio.Lock()

    async def create_condition(self, condition: Condition) -> Condition:
        """Persist a new condition.

        Raises:
            NotFoundError: If the owning routine does not exist.
            CycleRejectedError: If the condition would create a cycle.
            ConditionExistsError: If a condition with the same id already exists.
            ValueError: If the condition has no checks.
        """
        async with self._write_lock:
            if await self._repository.get_condition(condition.id) is not None:
                raise ConditionExistsError(f"Condition '{condition.id}' already exists")
            await self._validate(condition)
            await self._repository.save_condition(condition)

        logger.info("Created condition %s on routine %s", condition.id, condition.routine_id)
        return condition

    async def update_condition(self, condition: Condition) -> Condition:
        """Replace an existing condition and all of its checks.

        Raises:
            NotFoundError: If the condition or its routine does not exist.
            CycleRejectedError: If the new checks would create a cycle.
            ValueError: If the condition has no checks or changes routine.
        """
        async with self._write_lock:
            existing = await self._repository.get_condition(condition.id)
            if existing is None:
                raise NotFoundError("condition", condition.id)
            if existing.routine_id != condition.routine_id:
                raise ValueError(
                    f"Condition '{condition.id}' cannot move from routine "
                    f"'{existing.routine_id}' to '{condition.routine_id}'"
                )
            await self._validate(condition)
            await self._repository.save_condition(condition)

        logger.info("Replaced condition %s (%d checks)", condition.id, len(condition.checks))
        return condition

    async def delete_condition(self, condition_id: str) -> None:
        """Delete a condition and its checks.

        Raises:
            NotFoundError: If the condition does not exist.
        """
        async with self._write_lock:
            if not await self._repository.delete_condition(condition_id):
                raise NotFoundError("condition", condition_id)

        logger.info("Deleted condition %s", condition_id)

    async def _validate(self, condition: Condition) -> None:
        if not condition.checks:
            raise ValueError(f"Condition '{condition.id}' needs at least one check")

        if await self._repository.get_routine(condition.routine_id) is None:
            raise NotFoundError("routine", condition.routine_id)

        # Task-level conditions are checked too: a routine may not target itself
        for target_id in condition.routine_targets():
            path = await self._detector.find_cycle_path(condition.routine_id, target_id)
            if path is None:
                continue

            readable = await self._detector.describe_cycle_path(path)
            logger.info(
                "Rejected condition %s: routine %s -> %s closes a cycle",
                condition.id, condition.routine_id, target_id,
            )
            raise CycleRejectedError(
                source_routine_id=condition.routine_id,
                target_routine_id=target_id,
                path=path,
                message=f"Circular dependency detected: {readable}",
            )
