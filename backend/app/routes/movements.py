from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.core.auth import actor_name, require_permission
from app.models.user import User
from app.schemas.machine import (
    MovementErrorOut,
    MovementListOut,
    MovementOut,
    MovementRequest,
    MovementResultOut,
    StatusAdjustRequest,
)
from app.services.deps import get_registry, get_transition_engine
from app.services.machine_registry import MachineRegistry
from app.services.sheet_layout import SENTINEL
from app.services.text_utils import normalize_spaces
from app.services.transitions import MovementValidationError, TransitionEngine, TransitionOutcome

router = APIRouter(tags=["Movements"])
get_movement_operator = require_permission("machines.move")
get_status_adjuster = require_permission("machines.adjust")
get_history_viewer = require_permission("history.view")


def validation_error_response(exc: MovementValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"ok": False, "msg": str(exc)},
    )


def build_result_out(outcome: TransitionOutcome) -> MovementResultOut:
    errors = [MovementErrorOut(serial=item.serial, step=item.step, msg=item.msg or None) for item in outcome.errors]
    if outcome.needs_origin:
        return MovementResultOut(
            ok=False,
            msg="Não foi possível identificar a origem de algumas máquinas. Informe a origem para concluir o retorno.",
            needs_origin_prompt=True,
            serials=outcome.needs_origin,
            errors=errors,
        )
    if errors:
        return MovementResultOut(
            ok=False,
            msg="Alguns itens não foram processados.",
            applied=outcome.applied,
            errors=errors,
        )
    return MovementResultOut(ok=True, applied=outcome.applied)


@router.post("/movements/check-out-in", response_model=MovementResultOut, response_model_exclude_none=True)
def register_check_out_in(
    payload: MovementRequest,
    engine: TransitionEngine = Depends(get_transition_engine),
    current_user: User = Depends(get_movement_operator),
):
    try:
        outcome = engine.register_movements(payload, actor=actor_name(current_user))
    except MovementValidationError as exc:
        return validation_error_response(exc)
    return build_result_out(outcome)


@router.post("/status-adjust", response_model=MovementResultOut, response_model_exclude_none=True)
def adjust_status(
    payload: StatusAdjustRequest,
    engine: TransitionEngine = Depends(get_transition_engine),
    current_user: User = Depends(get_status_adjuster),
):
    try:
        outcome = engine.adjust_status(payload, actor=actor_name(current_user))
    except MovementValidationError as exc:
        return validation_error_response(exc)
    return build_result_out(outcome)


@router.get("/movements/history", response_model=MovementListOut)
def list_history(
    serial: Optional[str] = Query(default=None),
    limit: int = Query(default=500, ge=1, le=20000),
    registry: MachineRegistry = Depends(get_registry),
    current_user: User = Depends(get_history_viewer),
):
    target = normalize_spaces(serial)
    rows = [item for item in reversed(registry.get_history()) if not target or item.serial == target]
    history = [
        MovementOut(**{key: value or SENTINEL for key, value in item.model_dump().items()})
        for item in rows[:limit]
    ]
    return MovementListOut(ok=True, history=history)
