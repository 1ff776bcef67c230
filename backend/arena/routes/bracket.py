"""
Bracket API Routes
Draws, bracket views, reset, dependency resolution and format previews.
"""
import random
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session

from arena.database import get_session
from arena.dependencies import get_broadcaster
from arena.models.tournament import BracketType, Tournament
from arena.models.tournament_stage import TournamentStage
from arena.services.advancement_service import resolve_all_dependencies
from arena.services.bracket_errors import BracketError
from arena.services.bracket_structure import generate_skeleton
from arena.services.bracket_view import build_stage_view, skeleton_to_dict
from arena.services.broadcast import EVENT_BRACKET_UPDATED, BracketBroadcaster
from arena.services.seed_placement import POLICY_ORDERED, POLICY_RANDOM, get_target_stage, reset_stage, run_draw
from arena.utils.http_errors import bracket_http_error, internal_error

router = APIRouter()


class DrawRequest(BaseModel):
    stage_id: Optional[int] = None
    # Fixed seed makes a random draw reproducible
    seed: Optional[int] = None


class StageSelectRequest(BaseModel):
    stage_id: Optional[int] = None


def _stage_payload(session: Session, stage: TournamentStage) -> Dict[str, Any]:
    return {
        "stage": {
            "id": stage.id,
            "name": stage.name,
            "stage_type": stage.stage_type,
            "order": stage.order,
            "slot_count": stage.slot_count,
            "draw_order": stage.draw_order,
        },
        "bracket": build_stage_view(session, stage),
    }


def _draw(
    tournament_id: int,
    draw_data: DrawRequest,
    policy: str,
    background_tasks: BackgroundTasks,
    session: Session,
    broadcaster: BracketBroadcaster,
) -> Dict[str, Any]:
    try:
        rng = random.Random(draw_data.seed) if draw_data.seed is not None else None
        result = run_draw(session, tournament_id, stage_id=draw_data.stage_id, policy=policy, rng=rng)
    except BracketError as e:
        session.rollback()
        raise bracket_http_error(e)
    except Exception as e:
        raise internal_error(session, "run draw", e)

    background_tasks.add_task(
        broadcaster.broadcast,
        tournament_id,
        EVENT_BRACKET_UPDATED,
        {"stage_id": result.stage.id, "reason": "draw", "policy": policy},
    )
    payload = _stage_payload(session, result.stage)
    payload.update(
        {
            "tournament_id": tournament_id,
            "policy": policy,
            "matches_created": result.matches_created,
            "byes_resolved": result.byes_resolved,
        }
    )
    return payload


@router.get("/tournaments/{tournament_id}/bracket")
def get_bracket(
    tournament_id: int,
    stage_id: Optional[int] = Query(None),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Bracket view for a stage (first stage by default)"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    try:
        stage = get_target_stage(session, tournament, stage_id)
    except BracketError as e:
        raise bracket_http_error(e)
    payload = _stage_payload(session, stage)
    payload["tournament_id"] = tournament_id
    return payload


@router.post("/tournaments/{tournament_id}/bracket/random-draw")
def random_draw(
    tournament_id: int,
    background_tasks: BackgroundTasks,
    draw_data: Optional[DrawRequest] = None,
    session: Session = Depends(get_session),
    broadcaster: BracketBroadcaster = Depends(get_broadcaster),
) -> Dict[str, Any]:
    """Shuffle registered teams into the stage (overwrites any previous draw)"""
    return _draw(tournament_id, draw_data or DrawRequest(), POLICY_RANDOM, background_tasks, session, broadcaster)


@router.post("/tournaments/{tournament_id}/bracket/setup-teams")
def setup_teams(
    tournament_id: int,
    background_tasks: BackgroundTasks,
    stage_data: Optional[StageSelectRequest] = None,
    session: Session = Depends(get_session),
    broadcaster: BracketBroadcaster = Depends(get_broadcaster),
) -> Dict[str, Any]:
    """Place registered teams in registration order"""
    stage_id = stage_data.stage_id if stage_data else None
    return _draw(tournament_id, DrawRequest(stage_id=stage_id), POLICY_ORDERED, background_tasks, session, broadcaster)


@router.post("/tournaments/{tournament_id}/bracket/reset")
def reset_bracket(
    tournament_id: int,
    background_tasks: BackgroundTasks,
    stage_data: Optional[StageSelectRequest] = None,
    session: Session = Depends(get_session),
    broadcaster: BracketBroadcaster = Depends(get_broadcaster),
) -> Dict[str, Any]:
    """Clear every team assignment, score and winner in the stage"""
    try:
        stage = reset_stage(session, tournament_id, stage_data.stage_id if stage_data else None)
    except BracketError as e:
        session.rollback()
        raise bracket_http_error(e)
    except Exception as e:
        raise internal_error(session, "reset bracket", e)

    background_tasks.add_task(
        broadcaster.broadcast, tournament_id, EVENT_BRACKET_UPDATED, {"stage_id": stage.id, "reason": "reset"}
    )
    payload = _stage_payload(session, stage)
    payload["tournament_id"] = tournament_id
    return payload


@router.post("/tournaments/{tournament_id}/stages/{stage_id}/resolve")
def resolve_stage_dependencies(
    tournament_id: int,
    stage_id: int,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    broadcaster: BracketBroadcaster = Depends(get_broadcaster),
) -> Dict[str, Any]:
    """
    Re-apply progression for every resolved match in the stage.
    Idempotent; fills any downstream slot that is still missing its team.
    """
    stage = session.get(TournamentStage, stage_id)
    if not stage or stage.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Stage not found")
    try:
        result = resolve_all_dependencies(session, stage_id)
    except BracketError as e:
        session.rollback()
        raise bracket_http_error(e)
    except Exception as e:
        raise internal_error(session, "resolve dependencies", e)

    if result["teams_advanced"]:
        background_tasks.add_task(
            broadcaster.broadcast, tournament_id, EVENT_BRACKET_UPDATED, {"stage_id": stage_id, "reason": "resolve"}
        )
    return result


@router.get("/brackets/preview")
def preview_bracket(bracket_type: BracketType, max_teams: int) -> Dict[str, Any]:
    """Empty skeleton for a format and size, no tournament needed"""
    try:
        return skeleton_to_dict(generate_skeleton(bracket_type, max_teams))
    except BracketError as e:
        raise bracket_http_error(e)
