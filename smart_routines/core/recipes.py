"""
Pre-built condition recipes.

Recipes are templates for common calendar-based conditions ("weekdays
only", "after school", ...). Building a recipe produces a validated
Condition that can go through the normal authoring path.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from smart_routines.core.schema import (
    Condition,
    ConditionCheck,
    ConditionLogic,
    ConditionOperator,
    TimeOperator,
)


class RecipeCategory(str, Enum):
    TIME_BASED = "TIME_BASED"
    CONTEXT = "CONTEXT"


class ConditionRecipe(BaseModel):
    """A named condition template. Checks carry no ids until built."""

    id: str
    name: str
    description: str
    category: RecipeCategory = RecipeCategory.TIME_BASED
    logic: ConditionLogic = ConditionLogic.AND
    checks: list[dict[str, Any]] = Field(..., min_length=1)
    usage_hint: str | None = None


def _between(start: str, end: str) -> dict[str, Any]:
    return {
        "operator": ConditionOperator.TIME_OF_DAY,
        "time_operator": TimeOperator.BETWEEN,
        "time_value": start,
        "value2": end,
    }


def _days(*days: int) -> dict[str, Any]:
    return {"operator": ConditionOperator.DAY_OF_WEEK, "day_of_week": list(days)}


CONDITION_RECIPES: list[ConditionRecipe] = [
    ConditionRecipe(
        id="weekdays-only",
        name="Weekdays Only",
        description="Show only Monday through Friday",
        checks=[_days(1, 2, 3, 4, 5)],
        usage_hint="Perfect for school-related routines",
    ),
    ConditionRecipe(
        id="weekend-only",
        name="Weekend Only",
        description="Show only on Saturday and Sunday",
        checks=[_days(0, 6)],
        usage_hint="Great for weekend chores or activities",
    ),
    ConditionRecipe(
        id="morning-routine",
        name="Morning Routine",
        description="Available from 6 AM to 12 PM",
        checks=[_between("06:00", "12:00")],
    ),
    ConditionRecipe(
        id="after-school",
        name="After School",
        description="Available from 3 PM to 6 PM",
        checks=[_between("15:00", "18:00")],
        usage_hint="Perfect for homework and after-school activities",
    ),
    ConditionRecipe(
        id="evening-routine",
        name="Evening Routine",
        description="Available from 6 PM to 9 PM",
        checks=[_between("18:00", "21:00")],
    ),
    ConditionRecipe(
        id="school-days-morning",
        name="School Day Mornings",
        description="Weekday mornings from 6 AM to 8 AM",
        checks=[_days(1, 2, 3, 4, 5), _between("06:00", "08:00")],
        usage_hint="Perfect for getting ready for school",
    ),
    ConditionRecipe(
        id="before-noon",
        name="Before Noon",
        description="Hidden from 12 PM onwards",
        category=RecipeCategory.CONTEXT,
        checks=[{
            "operator": ConditionOperator.TIME_OF_DAY,
            "time_operator": TimeOperator.BEFORE,
            "time_value": "12:00",
        }],
    ),
]

_RECIPES_BY_ID: dict[str, ConditionRecipe] = {r.id: r for r in CONDITION_RECIPES}


def get_recipe(recipe_id: str) -> ConditionRecipe:
    """Look up a recipe. Raises KeyError for unknown ids."""
    return _RECIPES_BY_ID[recipe_id]


def build_condition_from_recipe(
    recipe_id: str,
    condition_id: str,
    routine_id: str,
    controls_routine: bool = True,
) -> Condition:
    """Instantiate a recipe as a Condition on the given routine.

    Check ids are derived from the condition id ("<condition_id>-1", ...).
    """
    recipe = get_recipe(recipe_id)
    checks = [
        ConditionCheck(id=f"{condition_id}-{index}", **template)
        for index, template in enumerate(recipe.checks, start=1)
    ]
    return Condition(
        id=condition_id,
        routine_id=routine_id,
        controls_routine=controls_routine,
        logic=recipe.logic,
        checks=checks,
    )
