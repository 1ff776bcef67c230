from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session, select

from arena.database import get_session
from arena.dependencies import get_broadcaster
from arena.models.match import Match
from arena.models.team import Team
from arena.models.tournament import BracketType, Tournament, TournamentStatus
from arena.models.tournament_stage import TournamentStage
from arena.services.bracket_errors import BracketError
from arena.services.broadcast import EVENT_STAGE_CREATED, BracketBroadcaster
from arena.services.stage_builder import create_stage
from arena.services.standings import compute_leaderboard, compute_standings
from arena.utils.http_errors import bracket_http_error, internal_error

router = APIRouter()


class StageCreateRequest(BaseModel):
    name: Optional[str] = None
    stage_type: Optional[BracketType] = None


class StageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    name: str
    stage_type: BracketType
    order: int
    slot_count: int
    draw_order: Optional[List[int]] = None
    is_active: bool
    created_at: datetime


def _get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.get("/tournaments/{tournament_id}/stages", response_model=List[StageResponse])
def list_stages(tournament_id: int, session: Session = Depends(get_session)):
    _get_tournament_or_404(session, tournament_id)
    return session.exec(
        select(TournamentStage)
        .where(TournamentStage.tournament_id == tournament_id)
        .order_by(TournamentStage.order, TournamentStage.id)
    ).all()


@router.post("/tournaments/{tournament_id}/stages", response_model=StageResponse, status_code=201)
def add_stage(
    tournament_id: int,
    stage_data: StageCreateRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    broadcaster: BracketBroadcaster = Depends(get_broadcaster),
):
    """Add a stage with its empty bracket skeleton (defaults to the tournament's format)"""
    tournament = _get_tournament_or_404(session, tournament_id)
    if TournamentStatus(tournament.status) == TournamentStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Cannot add stages to a completed tournament")

    try:
        stage = create_stage(session, tournament, name=stage_data.name, stage_type=stage_data.stage_type)
        session.commit()
        session.refresh(stage)
    except BracketError as e:
        session.rollback()
        raise bracket_http_error(e)
    except Exception as e:
        raise internal_error(session, "create stage", e)

    background_tasks.add_task(
        broadcaster.broadcast, tournament_id, EVENT_STAGE_CREATED, {"stage_id": stage.id, "name": stage.name}
    )
    return stage


@router.get("/tournaments/{tournament_id}/stages/{stage_id}/standings")
def get_stage_standings(tournament_id: int, stage_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Points table for group/Swiss stages, score totals for leaderboard stages"""
    stage = session.get(TournamentStage, stage_id)
    if not stage or stage.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Stage not found")

    stage_type = BracketType(stage.stage_type)
    matches = session.exec(select(Match).where(Match.stage_id == stage_id)).all()
    team_names = {
        t.id: t.name for t in session.exec(select(Team).where(Team.tournament_id == tournament_id)).all()
    }

    if stage_type == BracketType.LEADERBOARD:
        return {"stage_id": stage_id, "stage_type": stage_type.value, "standings": compute_leaderboard(matches, team_names)}
    if stage_type == BracketType.GROUP_STAGE:
        groups: Dict[int, List[Match]] = {}
        for m in matches:
            groups.setdefault(m.group_index, []).append(m)
        return {
            "stage_id": stage_id,
            "stage_type": stage_type.value,
            "groups": [
                {
                    "group_index": g,
                    "standings": [
                        s.to_dict()
                        for s in compute_standings(
                            groups[g],
                            team_names,
                            sorted({tid for m in groups[g] for tid in (m.team1_id, m.team2_id) if tid is not None}),
                        )
                    ],
                }
                for g in sorted(groups)
            ],
        }
    if stage_type == BracketType.SWISS:
        return {
            "stage_id": stage_id,
            "stage_type": stage_type.value,
            "standings": [s.to_dict() for s in compute_standings(matches, team_names, stage.draw_order or [])],
        }
    raise HTTPException(status_code=400, detail="Standings are only available for group, Swiss and leaderboard stages")
