"""
Data model for smart routines and their visibility conditions.

These Pydantic models are the contract between the persistence layer
and the evaluation engine. A Condition is a list of checks combined
with AND/OR logic; each check is one atomic predicate over completion
history, goal progress, the time of day, or the calendar.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from smart_routines.core.utils import parse_time_of_day, to_naive_local


# --- Enums ---


class ConditionLogic(str, Enum):
    """How the checks of a single condition are combined."""

    AND = "AND"
    OR = "OR"


class ConditionOperator(str, Enum):
    """Supported check operators.

    All operators are evaluated deterministically in backend code.
    """

    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_NOT_COMPLETED = "TASK_NOT_COMPLETED"
    TASK_COUNT_EQUALS = "TASK_COUNT_EQUALS"
    TASK_COUNT_GT = "TASK_COUNT_GT"
    TASK_COUNT_LT = "TASK_COUNT_LT"
    TASK_VALUE_EQUALS = "TASK_VALUE_EQUALS"
    TASK_VALUE_GT = "TASK_VALUE_GT"
    TASK_VALUE_LT = "TASK_VALUE_LT"
    ROUTINE_PERCENT_EQUALS = "ROUTINE_PERCENT_EQUALS"
    ROUTINE_PERCENT_GT = "ROUTINE_PERCENT_GT"
    ROUTINE_PERCENT_LT = "ROUTINE_PERCENT_LT"
    GOAL_ACHIEVED = "GOAL_ACHIEVED"
    GOAL_NOT_ACHIEVED = "GOAL_NOT_ACHIEVED"
    TIME_OF_DAY = "TIME_OF_DAY"
    DAY_OF_WEEK = "DAY_OF_WEEK"
    DATE_RANGE = "DATE_RANGE"

    @property
    def category(self) -> "OperatorCategory":
        return OPERATOR_CATEGORIES[self]


class OperatorCategory(str, Enum):
    """Operator families. Each family references a different kind of target."""

    TASK = "TASK"
    ROUTINE = "ROUTINE"
    GOAL = "GOAL"
    TIME = "TIME"
    DAY = "DAY"
    DATE = "DATE"


OPERATOR_CATEGORIES: dict[ConditionOperator, OperatorCategory] = {
    ConditionOperator.TASK_COMPLETED: OperatorCategory.TASK,
    ConditionOperator.TASK_NOT_COMPLETED: OperatorCategory.TASK,
    ConditionOperator.TASK_COUNT_EQUALS: OperatorCategory.TASK,
    ConditionOperator.TASK_COUNT_GT: OperatorCategory.TASK,
    ConditionOperator.TASK_COUNT_LT: OperatorCategory.TASK,
    ConditionOperator.TASK_VALUE_EQUALS: OperatorCategory.TASK,
    ConditionOperator.TASK_VALUE_GT: OperatorCategory.TASK,
    ConditionOperator.TASK_VALUE_LT: OperatorCategory.TASK,
    ConditionOperator.ROUTINE_PERCENT_EQUALS: OperatorCategory.ROUTINE,
    ConditionOperator.ROUTINE_PERCENT_GT: OperatorCategory.ROUTINE,
    ConditionOperator.ROUTINE_PERCENT_LT: OperatorCategory.ROUTINE,
    ConditionOperator.GOAL_ACHIEVED: OperatorCategory.GOAL,
    ConditionOperator.GOAL_NOT_ACHIEVED: OperatorCategory.GOAL,
    ConditionOperator.TIME_OF_DAY: OperatorCategory.TIME,
    ConditionOperator.DAY_OF_WEEK: OperatorCategory.DAY,
    ConditionOperator.DATE_RANGE: OperatorCategory.DATE,
}

# Which target field each category must set (None: no target allowed)
_CATEGORY_TARGET_FIELD: dict[OperatorCategory, str | None] = {
    OperatorCategory.TASK: "target_task_id",
    OperatorCategory.ROUTINE: "target_routine_id",
    OperatorCategory.GOAL: "target_goal_id",
    OperatorCategory.TIME: None,
    OperatorCategory.DAY: None,
    OperatorCategory.DATE: None,
}

_TARGET_FIELDS = ("target_task_id", "target_routine_id", "target_goal_id")


class TimeOperator(str, Enum):
    """Comparison used by TIME_OF_DAY checks."""

    BEFORE = "BEFORE"
    AFTER = "AFTER"
    BETWEEN = "BETWEEN"


class TaskType(str, Enum):
    SIMPLE = "SIMPLE"
    MULTIPLE_CHECKIN = "MULTIPLE_CHECKIN"
    PROGRESS = "PROGRESS"
    SMART = "SMART"


class TaskStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class RoutineType(str, Enum):
    REGULAR = "REGULAR"
    SMART = "SMART"
    TEACHER_CLASSROOM = "TEACHER_CLASSROOM"


class ResetPeriod(str, Enum):
    """Recurring accounting window for completions."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"


# MONTHLY reset_day marker for "last day of the month"
LAST_DAY_OF_MONTH = 99


# --- Condition Models ---


class ConditionCheck(BaseModel):
    """A single predicate inside a condition.

    Task, routine and goal checks reference exactly one target.
    Time-of-day, day-of-week and date-range checks reference none.
    """

    id: str = Field(..., min_length=1, description="Unique check identifier")
    operator: ConditionOperator | str = Field(
        ...,
        union_mode="left_to_right",
        description="The predicate to apply (unrecognized values evaluate to not met)",
    )
    negate: bool = Field(default=False, description="Invert the check result")
    value: str | None = Field(
        default=None,
        description="Generic operand: a number, a 'start,end' date range, etc.",
    )
    value2: str | None = Field(
        default=None,
        description="End bound (HH:MM) for TIME_OF_DAY BETWEEN",
    )
    target_task_id: str | None = None
    target_routine_id: str | None = None
    target_goal_id: str | None = None
    time_operator: TimeOperator | None = None
    time_value: str | None = Field(
        default=None,
        description="Time of day (HH:MM) for TIME_OF_DAY checks",
    )
    day_of_week: list[int] = Field(
        default_factory=list,
        description="Days the check passes on (0=Sunday ... 6=Saturday)",
    )

    @property
    def category(self) -> OperatorCategory | None:
        """The operator family, or None for an unrecognized operator."""
        if isinstance(self.operator, ConditionOperator):
            return self.operator.category
        return None

    @model_validator(mode="after")
    def validate_target_and_operands(self) -> "ConditionCheck":
        """Enforce the target reference rules and time-of-day operands."""
        category = self.category
        if category is None:
            return self

        set_targets = [name for name in _TARGET_FIELDS if getattr(self, name) is not None]
        required = _CATEGORY_TARGET_FIELD[category]

        if required is None:
            if set_targets:
                raise ValueError(
                    f"Check '{self.id}' with operator '{self.operator.value}' "
                    f"must not reference a target (got {set_targets})"
                )
        elif set_targets != [required]:
            raise ValueError(
                f"Check '{self.id}' with operator '{self.operator.value}' "
                f"must reference exactly one target: '{required}'"
            )

        if category is OperatorCategory.TIME:
            self._validate_time_operands()

        if category is OperatorCategory.DAY:
            invalid = [d for d in self.day_of_week if not 0 <= d <= 6]
            if invalid:
                raise ValueError(f"Check '{self.id}' has invalid day indexes: {invalid}")

        return self

    def _validate_time_operands(self) -> None:
        if self.time_operator is None:
            raise ValueError(f"Check '{self.id}' is TIME_OF_DAY but has no time_operator")

        start = parse_time_of_day(self.time_value)
        if start is None:
            raise ValueError(f"Check '{self.id}' has invalid time_value '{self.time_value}'")

        if self.time_operator is TimeOperator.BETWEEN:
            end = parse_time_of_day(self.value2)
            if end is None:
                raise ValueError(
                    f"Check '{self.id}' uses BETWEEN but has no valid end time (value2)"
                )
            # Ranges that wrap past midnight are not supported
            if end < start:
                raise ValueError(
                    f"Check '{self.id}' BETWEEN {self.time_value}-{self.value2} "
                    "spans midnight, which is not supported"
                )


class Condition(BaseModel):
    """A boolean expression over checks, attached to a routine.

    When `controls_routine` is set the condition gates the routine itself;
    otherwise it gates a single smart task inside the routine.
    """

    id: str = Field(..., min_length=1, description="Unique condition identifier")
    routine_id: str = Field(..., min_length=1, description="The owning routine")
    controls_routine: bool = Field(
        default=False,
        description="True when this condition gates the routine's own visibility",
    )
    logic: ConditionLogic = Field(
        default=ConditionLogic.AND,
        description="Applied uniformly to every check in the condition",
    )
    checks: list[ConditionCheck] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_check_ids(self) -> "Condition":
        seen = set()
        for check in self.checks:
            if check.id in seen:
                raise ValueError(f"Duplicate check ID: '{check.id}'")
            seen.add(check.id)
        return self

    def routine_targets(self) -> list[str]:
        """Return the routine ids referenced by this condition's checks."""
        return [c.target_routine_id for c in self.checks if c.target_routine_id is not None]


# --- Tracked Entities ---


class Person(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = ""


class Routine(BaseModel):
    """A recurring list of tasks with its own reset period."""

    id: str = Field(..., min_length=1)
    name: str = ""
    type: RoutineType = RoutineType.REGULAR
    status: TaskStatus = TaskStatus.ACTIVE
    reset_period: ResetPeriod = ResetPeriod.DAILY
    reset_day: int | None = Field(
        default=None,
        description="Weekday (0-6) for WEEKLY, day of month (1-28 or 99=last) for MONTHLY",
    )

    @model_validator(mode="after")
    def validate_reset_day(self) -> "Routine":
        if self.reset_day is None:
            return self

        match self.reset_period:
            case ResetPeriod.WEEKLY:
                if not 0 <= self.reset_day <= 6:
                    raise ValueError(
                        f"Routine '{self.id}' has invalid weekly reset_day {self.reset_day} (expected 0-6)"
                    )
            case ResetPeriod.MONTHLY:
                if not (1 <= self.reset_day <= 28 or self.reset_day == LAST_DAY_OF_MONTH):
                    raise ValueError(
                        f"Routine '{self.id}' has invalid monthly reset_day {self.reset_day} "
                        f"(expected 1-28 or {LAST_DAY_OF_MONTH})"
                    )
        return self


class Task(BaseModel):
    id: str = Field(..., min_length=1)
    routine_id: str = Field(..., min_length=1)
    name: str = ""
    type: TaskType = TaskType.SIMPLE
    status: TaskStatus = TaskStatus.ACTIVE
    order: int = 0
    condition_id: str | None = Field(
        default=None,
        description="Controlling condition (only used by SMART tasks)",
    )


class TaskCompletion(BaseModel):
    id: str = Field(..., min_length=1)
    task_id: str
    person_id: str
    completed_at: datetime
    value: float | None = None

    @field_validator("completed_at")
    @classmethod
    def normalize_completed_at(cls, v: datetime) -> datetime:
        return to_naive_local(v)


class GoalProgress(BaseModel):
    """Progress signal computed by the goal service."""

    goal_id: str
    achieved: bool = False
    percentage: float = 0.0


# --- Evaluation Models ---


class EvaluationContext(BaseModel):
    """Optional overrides that make time-based checks deterministic.

    `day_of_week` uses 0=Sunday ... 6=Saturday. When only `current_time`
    is given, the day is derived from it.
    """

    current_time: datetime | None = None
    day_of_week: int | None = Field(default=None, ge=0, le=6)

    @field_validator("current_time")
    @classmethod
    def normalize_current_time(cls, v: datetime | None) -> datetime | None:
        # Completions are stored as naive local time
        return to_naive_local(v)

    def frozen(self) -> "EvaluationContext":
        """Return a copy with `current_time` pinned, so a batch sees one instant."""
        if self.current_time is not None:
            return self
        return self.model_copy(update={"current_time": datetime.now()})

    def resolve_now(self) -> datetime:
        return self.current_time if self.current_time is not None else datetime.now()

    def resolve_day_of_week(self, now: datetime) -> int:
        if self.day_of_week is not None:
            return self.day_of_week
        # datetime.weekday() is Monday=0
        return (now.weekday() + 1) % 7


class CheckBreakdown(BaseModel):
    """Per-check audit record of a condition evaluation."""

    check_id: str
    operator: str
    result: bool
    negate: bool
    final_result: bool
    error: str | None = None


class ConditionEvaluation(BaseModel):
    """Outcome of evaluating one condition for one person."""

    condition_id: str
    result: bool
    checks: list[CheckBreakdown] = Field(default_factory=list)
    reason: str | None = Field(
        default=None,
        description="Why the condition was not met, when evaluation degraded",
    )
