"""
FastAPI routes for the smart routines engine.

Endpoints:
- POST   /conditions/{id}/evaluate        — evaluate a condition for a person
- POST   /conditions                      — create a condition (cycle-checked)
- PUT    /conditions/{id}                 — replace a condition and its checks
- DELETE /conditions/{id}                 — delete a condition and its checks
- GET    /tasks/{id}/visibility           — is a task visible to a person
- GET    /routines/{id}/visibility        — is a routine visible to a person
- GET    /routines/{id}/visible-tasks     — visible tasks of a routine, in order
- POST   /routines/{id}/cycle-check       — would a new edge close a cycle
- GET    /routines/{id}/dependents        — who references this routine
- GET    /recipes                         — pre-built condition recipes
- GET    /health                          — health check
"""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from smart_routines.core.authoring import (
    ConditionAuthoringService,
    ConditionExistsError,
    CycleRejectedError,
)
from smart_routines.core.cycles import CycleDetector, RoutineDependents
from smart_routines.core.evaluator import CheckEvaluator, ConditionEvaluator
from smart_routines.core.recipes import CONDITION_RECIPES
from smart_routines.core.repository import InMemoryRepository, NotFoundError
from smart_routines.core.reset_period import DEFAULT_RESET_TIME
from smart_routines.core.schema import (
    Condition,
    ConditionEvaluation,
    EvaluationContext,
    Task,
)
from smart_routines.core.visibility import VisibilityResolver

logger = logging.getLogger(__name__)

router = APIRouter()

# These will be injected by the app factory
_repository: InMemoryRepository | None = None
_evaluator: ConditionEvaluator | None = None
_resolver: VisibilityResolver | None = None
_detector: CycleDetector | None = None
_authoring: ConditionAuthoringService | None = None


def configure_routes(repository: InMemoryRepository, reset_time: str = DEFAULT_RESET_TIME):
    """Build the engine components on top of a repository and inject them.

    Called by the app factory during startup.
    """
    global _repository, _evaluator, _resolver, _detector, _authoring
    _repository = repository
    _evaluator = ConditionEvaluator(repository, CheckEvaluator(repository, reset_time=reset_time))
    _resolver = VisibilityResolver(repository, _evaluator)
    _detector = CycleDetector(repository)
    _authoring = ConditionAuthoringService(repository, _detector)


def _require_configured() -> None:
    if _repository is None:
        raise HTTPException(status_code=500, detail="Server not properly configured")


def _context(current_time: datetime | None, day_of_week: int | None) -> EvaluationContext:
    return EvaluationContext(current_time=current_time, day_of_week=day_of_week)


# --- Request / Response Models ---


class EvaluateRequest(BaseModel):
    """Request body for condition evaluation."""

    person_id: str
    current_time: datetime | None = None
    day_of_week: int | None = Field(default=None, ge=0, le=6)


class VisibilityResponse(BaseModel):
    entity_id: str
    person_id: str
    visible: bool


class CycleCheckRequest(BaseModel):
    target_routine_id: str


class CycleCheckResponse(BaseModel):
    has_cycle: bool
    path: list[str] | None = None
    description: str | None = None


# --- Endpoints ---


@router.post("/conditions/{condition_id}/evaluate", response_model=ConditionEvaluation)
async def evaluate_condition(condition_id: str, request: EvaluateRequest):
    """Evaluate a condition and return the per-check breakdown."""
    _require_configured()
    try:
        return await _evaluator.evaluate_condition(
            condition_id,
            request.person_id,
            _context(request.current_time, request.day_of_week),
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/conditions", response_model=Condition, status_code=201)
async def create_condition(condition: Condition):
    """Create a condition after checking it for dependency cycles."""
    _require_configured()
    try:
        return await _authoring.create_condition(condition)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CycleRejectedError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ConditionExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/conditions/{condition_id}", response_model=Condition)
async def update_condition(condition_id: str, condition: Condition):
    """Replace a condition and all of its checks."""
    _require_configured()
    if condition.id != condition_id:
        raise HTTPException(status_code=400, detail="Condition id does not match the URL")
    try:
        return await _authoring.update_condition(condition)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CycleRejectedError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/conditions/{condition_id}")
async def delete_condition(condition_id: str):
    """Delete a condition together with its checks."""
    _require_configured()
    try:
        await _authoring.delete_condition(condition_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}


@router.get("/tasks/{task_id}/visibility", response_model=VisibilityResponse)
async def task_visibility(
    task_id: str,
    person_id: str,
    current_time: datetime | None = None,
    day_of_week: int | None = Query(default=None, ge=0, le=6),
):
    _require_configured()
    try:
        visible = await _resolver.is_task_visible(
            task_id, person_id, _context(current_time, day_of_week)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return VisibilityResponse(entity_id=task_id, person_id=person_id, visible=visible)


@router.get("/routines/{routine_id}/visibility", response_model=VisibilityResponse)
async def routine_visibility(
    routine_id: str,
    person_id: str,
    current_time: datetime | None = None,
    day_of_week: int | None = Query(default=None, ge=0, le=6),
):
    _require_configured()
    try:
        visible = await _resolver.is_routine_visible(
            routine_id, person_id, _context(current_time, day_of_week)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return VisibilityResponse(entity_id=routine_id, person_id=person_id, visible=visible)


@router.get("/routines/{routine_id}/visible-tasks", response_model=list[Task])
async def visible_tasks(
    routine_id: str,
    person_id: str,
    current_time: datetime | None = None,
    day_of_week: int | None = Query(default=None, ge=0, le=6),
):
    """Visible active tasks of a routine, in the routine's declared order."""
    _require_configured()
    try:
        return await _resolver.get_visible_tasks(
            routine_id, person_id, _context(current_time, day_of_week)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/routines/{routine_id}/cycle-check", response_model=CycleCheckResponse)
async def cycle_check(routine_id: str, request: CycleCheckRequest):
    """Report whether making `routine_id` depend on the target would close a cycle."""
    _require_configured()
    path = await _detector.find_cycle_path(routine_id, request.target_routine_id)
    if path is None:
        return CycleCheckResponse(has_cycle=False)
    return CycleCheckResponse(
        has_cycle=True,
        path=path,
        description=await _detector.describe_cycle_path(path),
    )


@router.get("/routines/{routine_id}/dependents", response_model=RoutineDependents)
async def routine_dependents(routine_id: str):
    _require_configured()
    return await _detector.get_dependents(routine_id)


@router.get("/recipes")
async def list_recipes():
    """List the pre-built condition recipes."""
    return {"recipes": [r.model_dump(mode="json") for r in CONDITION_RECIPES]}


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "configured": _repository is not None,
    }
