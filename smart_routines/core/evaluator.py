"""
Deterministic condition evaluator for smart tasks and routines.

Evaluation happens in two steps:
1. CheckEvaluator computes the raw boolean of one check, dispatching on
   the operator's category (task, routine, goal, time, day, date).
2. ConditionEvaluator evaluates every check of a condition, applies
   negation, and combines the results with the condition's AND/OR logic.

A failing check never raises out of ConditionEvaluator: the condition
is reported as not met, with the error kept in the per-check breakdown.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from smart_routines.core.repository import ConditionRepository, NotFoundError
from smart_routines.core.reset_period import DEFAULT_RESET_TIME, get_reset_period_start
from smart_routines.core.schema import (
    CheckBreakdown,
    Condition,
    ConditionCheck,
    ConditionEvaluation,
    ConditionLogic,
    ConditionOperator,
    EvaluationContext,
    OperatorCategory,
    ResetPeriod,
    Routine,
    TimeOperator,
)
from smart_routines.core.utils import (
    minutes_since_midnight,
    parse_date_range,
    parse_float,
    parse_int,
    parse_time_of_day,
)

logger = logging.getLogger(__name__)

# Tolerance for ROUTINE_PERCENT_EQUALS, in percentage points
PERCENT_TOLERANCE = 0.01

PeriodStartResolver = Callable[[ResetPeriod, int | None, datetime, str], datetime]


class EvaluationError(Exception):
    """Raised when a check's operands or referenced data cannot be evaluated."""

    def __init__(self, check_id: str, message: str):
        self.check_id = check_id
        self.message = message
        super().__init__(f"Check '{check_id}': {message}")


def operator_name(operator: ConditionOperator | str) -> str:
    return operator.value if isinstance(operator, ConditionOperator) else str(operator)


def combine(logic: ConditionLogic, results: list[bool]) -> bool:
    """Combine final (already negated) check results.

    AND requires every check to pass, OR requires at least one.
    A condition without checks is never met, under either logic.
    """
    if not results:
        return False

    match logic:
        case ConditionLogic.AND:
            return all(results)
        case ConditionLogic.OR:
            return any(results)

    return False


class CheckEvaluator:
    """Computes the raw result of a single check for a person.

    Args:
        repository: Read access to tasks, routines, completions and goals.
        reset_time: HH:MM at which reset periods roll over.
        period_start: Reset period boundary function. Called on every
            evaluation so counts always reflect the current period.
    """

    def __init__(
        self,
        repository: ConditionRepository,
        reset_time: str = DEFAULT_RESET_TIME,
        period_start: PeriodStartResolver = get_reset_period_start,
    ):
        self._repository = repository
        self._reset_time = reset_time
        self._period_start = period_start

    async def evaluate(
        self,
        check: ConditionCheck,
        person_id: str,
        context: EvaluationContext | None = None,
    ) -> bool:
        """Return the check result before negation.

        Raises:
            NotFoundError: If the check's target does not exist.
            EvaluationError: If the check's operands cannot be evaluated.
        """
        context = context or EvaluationContext()
        now = context.resolve_now()

        match check.category:
            case OperatorCategory.TASK:
                return await self._evaluate_task_check(check, person_id, now)
            case OperatorCategory.ROUTINE:
                return await self._evaluate_routine_check(check, person_id, now)
            case OperatorCategory.GOAL:
                return await self._evaluate_goal_check(check, person_id)
            case OperatorCategory.TIME:
                return _evaluate_time_check(check, now)
            case OperatorCategory.DAY:
                return _evaluate_day_check(check, context.resolve_day_of_week(now))
            case OperatorCategory.DATE:
                return _evaluate_date_range_check(check, now)

        # Unrecognized operator: user-authored config degrades to "not met"
        logger.warning("Unknown operator '%s' on check %s", check.operator, check.id)
        return False

    # -----------------------------------------------------------------
    # Completion-based checks
    # -----------------------------------------------------------------

    def _routine_period_start(self, routine: Routine, now: datetime) -> datetime:
        return self._period_start(routine.reset_period, routine.reset_day, now, self._reset_time)

    async def _period_completions(self, task_id: str, person_id: str, since: datetime, now: datetime):
        completions = await self._repository.list_completions(task_id, person_id, since)
        return [c for c in completions if c.completed_at <= now]

    async def _evaluate_task_check(self, check: ConditionCheck, person_id: str, now: datetime) -> bool:
        task = await self._repository.get_task(check.target_task_id)
        if task is None:
            raise NotFoundError("task", check.target_task_id)

        routine = await self._repository.get_routine(task.routine_id)
        if routine is None:
            raise NotFoundError("routine", task.routine_id)

        since = self._routine_period_start(routine, now)
        completions = await self._period_completions(task.id, person_id, since, now)
        count = len(completions)

        match check.operator:
            case ConditionOperator.TASK_COMPLETED:
                return count > 0
            case ConditionOperator.TASK_NOT_COMPLETED:
                return count == 0
            case ConditionOperator.TASK_COUNT_EQUALS:
                return count == parse_int(check.value)
            case ConditionOperator.TASK_COUNT_GT:
                return count > parse_int(check.value)
            case ConditionOperator.TASK_COUNT_LT:
                return count < parse_int(check.value)

        if not completions:
            return False

        latest = max(completions, key=lambda c: c.completed_at)
        latest_value = parse_float(latest.value)
        target = parse_float(check.value)

        match check.operator:
            case ConditionOperator.TASK_VALUE_EQUALS:
                return latest_value == target
            case ConditionOperator.TASK_VALUE_GT:
                return latest_value > target
            case ConditionOperator.TASK_VALUE_LT:
                return latest_value < target

        return False

    async def _evaluate_routine_check(self, check: ConditionCheck, person_id: str, now: datetime) -> bool:
        routine = await self._repository.get_routine(check.target_routine_id)
        if routine is None:
            raise NotFoundError("routine", check.target_routine_id)

        tasks = await self._repository.list_active_tasks(routine.id)
        # An empty routine is not "100% complete"
        if not tasks:
            return False

        since = self._routine_period_start(routine, now)
        per_task = await asyncio.gather(
            *(self._period_completions(task.id, person_id, since, now) for task in tasks)
        )
        completed = sum(1 for completions in per_task if completions)
        percent = completed / len(tasks) * 100
        target = parse_float(check.value)

        match check.operator:
            case ConditionOperator.ROUTINE_PERCENT_EQUALS:
                return abs(percent - target) < PERCENT_TOLERANCE
            case ConditionOperator.ROUTINE_PERCENT_GT:
                return percent > target
            case ConditionOperator.ROUTINE_PERCENT_LT:
                return percent < target

        return False

    async def _evaluate_goal_check(self, check: ConditionCheck, person_id: str) -> bool:
        progress = await self._repository.get_goal_progress(check.target_goal_id, person_id)
        if progress is None:
            raise NotFoundError("goal", check.target_goal_id)

        match check.operator:
            case ConditionOperator.GOAL_ACHIEVED:
                return progress.achieved
            case ConditionOperator.GOAL_NOT_ACHIEVED:
                return not progress.achieved

        return False


# ---------------------------------------------------------------------
# Calendar checks (no data access)
# ---------------------------------------------------------------------


def _evaluate_time_check(check: ConditionCheck, now: datetime) -> bool:
    """Compare the time of day in minutes since midnight.

    BEFORE and AFTER are strict; BETWEEN is inclusive on both ends and
    does not wrap around midnight.
    """
    current = minutes_since_midnight(now)
    start = parse_time_of_day(check.time_value)
    if start is None:
        raise EvaluationError(check.id, f"invalid time_value '{check.time_value}'")

    match check.time_operator:
        case TimeOperator.BEFORE:
            return current < start
        case TimeOperator.AFTER:
            return current > start
        case TimeOperator.BETWEEN:
            end = parse_time_of_day(check.value2)
            if end is None:
                raise EvaluationError(check.id, "BETWEEN requires an end time (value2)")
            if end < start:
                raise EvaluationError(
                    check.id,
                    f"BETWEEN {check.time_value}-{check.value2} spans midnight",
                )
            return start <= current <= end

    raise EvaluationError(check.id, f"unsupported time_operator '{check.time_operator}'")


def _evaluate_day_check(check: ConditionCheck, day_of_week: int) -> bool:
    if not check.day_of_week:
        return False
    return day_of_week in check.day_of_week


def _evaluate_date_range_check(check: ConditionCheck, now: datetime) -> bool:
    date_range = parse_date_range(check.value)
    if date_range is None:
        logger.debug("Check %s has a malformed date range '%s'", check.id, check.value)
        return False
    start, end = date_range
    return start <= now.date() <= end


class ConditionEvaluator:
    """Evaluates whole conditions and reports a per-check breakdown.

    Args:
        repository: Read access used to load conditions and check data.
        check_evaluator: Optional custom CheckEvaluator (defaults to one
            built on the same repository).
    """

    def __init__(
        self,
        repository: ConditionRepository,
        check_evaluator: CheckEvaluator | None = None,
    ):
        self._repository = repository
        self._checks = check_evaluator or CheckEvaluator(repository)

    async def evaluate_condition(
        self,
        condition_id: str,
        person_id: str,
        context: EvaluationContext | None = None,
    ) -> ConditionEvaluation:
        """Load a condition and evaluate it for a person.

        Raises:
            NotFoundError: If the condition or the person does not exist.
        """
        condition = await self._repository.get_condition(condition_id)
        if condition is None:
            raise NotFoundError("condition", condition_id)
        if await self._repository.get_person(person_id) is None:
            raise NotFoundError("person", person_id)

        return await self.evaluate(condition, person_id, context)

    async def evaluate(
        self,
        condition: Condition,
        person_id: str,
        context: EvaluationContext | None = None,
    ) -> ConditionEvaluation:
        """Evaluate an already loaded condition."""
        # Every check of one evaluation sees the same instant
        context = (context or EvaluationContext()).frozen()

        breakdown = list(await asyncio.gather(
            *(self._evaluate_check(check, person_id, context) for check in condition.checks)
        ))

        failed = [b for b in breakdown if b.error is not None]
        reason = None
        if failed:
            result = False
            reason = "; ".join(f"check '{b.check_id}' failed: {b.error}" for b in failed)
        elif not breakdown:
            result = False
            reason = "condition has no checks"
        else:
            result = combine(condition.logic, [b.final_result for b in breakdown])

        logger.debug(
            "Condition %s for person %s evaluated to %s (%d checks)",
            condition.id, person_id, result, len(breakdown),
        )
        return ConditionEvaluation(
            condition_id=condition.id,
            result=result,
            checks=breakdown,
            reason=reason,
        )

    async def _evaluate_check(
        self,
        check: ConditionCheck,
        person_id: str,
        context: EvaluationContext,
    ) -> CheckBreakdown:
        operator = operator_name(check.operator)
        try:
            raw = await self._checks.evaluate(check, person_id, context)
        except Exception as e:
            logger.warning("Check %s (%s) could not be evaluated: %s", check.id, operator, e)
            return CheckBreakdown(
                check_id=check.id,
                operator=operator,
                result=False,
                negate=check.negate,
                final_result=False,
                error=str(e),
            )

        return CheckBreakdown(
            check_id=check.id,
            operator=operator,
            result=raw,
            negate=check.negate,
            final_result=not raw if check.negate else raw,
        )
