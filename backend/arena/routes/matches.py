"""
Match API Routes: listing, result entry, manual advancement and scheduling.
A result is applied and routed through the bracket in one transaction.
"""
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session, select

from arena.database import get_session
from arena.dependencies import get_broadcaster
from arena.models.match import Match
from arena.models.tournament import Tournament
from arena.services.bracket_errors import BracketError
from arena.services.broadcast import EVENT_BRACKET_UPDATED, EVENT_MATCH_UPDATED, BracketBroadcaster
from arena.services.match_results import advance_match, apply_match_result, schedule_match
from arena.utils.http_errors import bracket_http_error, internal_error

router = APIRouter()


class MatchResultUpdate(BaseModel):
    score1: int = Field(ge=0)
    # Required everywhere except leaderboard slots
    score2: Optional[int] = Field(default=None, ge=0)


class MatchScheduleUpdate(BaseModel):
    scheduled_time: Optional[datetime] = None

    @field_validator("scheduled_time")
    @classmethod
    def normalize_datetime(cls, v):
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class MatchState(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    stage_id: int
    match_code: str
    bracket_side: str
    group_index: Optional[int] = None
    round_number: int
    match_number: int
    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    placeholder_1: str
    placeholder_2: Optional[str] = None
    score1: Optional[int] = None
    score2: Optional[int] = None
    winner_id: Optional[int] = None
    status: str
    scheduled_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class MatchResultResponse(BaseModel):
    match: MatchState
    advanced_count: int = 0
    tournament_completed: bool = False


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchState])
def list_matches(
    tournament_id: int,
    stage_id: Optional[int] = None,
    round_number: Optional[int] = None,
    session: Session = Depends(get_session),
):
    if not session.get(Tournament, tournament_id):
        raise HTTPException(status_code=404, detail="Tournament not found")
    query = select(Match).where(Match.tournament_id == tournament_id)
    if stage_id is not None:
        query = query.where(Match.stage_id == stage_id)
    if round_number is not None:
        query = query.where(Match.round_number == round_number)
    return session.exec(
        query.order_by(Match.stage_id, Match.round_number, Match.group_index, Match.match_number)
    ).all()


@router.get("/matches/{match_id}", response_model=MatchState)
def get_match(match_id: int, session: Session = Depends(get_session)):
    match = session.get(Match, match_id)
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


@router.put("/matches/{match_id}/result", response_model=MatchResultResponse)
def update_match_result(
    match_id: int,
    body: MatchResultUpdate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    broadcaster: BracketBroadcaster = Depends(get_broadcaster),
):
    """
    Record scores, derive the winner and progress the bracket.
    Ties are refused in elimination stages. A 409 means a concurrent result
    changed a downstream slot first; nothing was saved.
    """
    try:
        outcome = apply_match_result(session, match_id, body.score1, body.score2)
    except BracketError as e:
        raise bracket_http_error(e)
    except Exception as e:
        raise internal_error(session, "record match result", e)

    match = outcome.match
    background_tasks.add_task(
        broadcaster.broadcast,
        match.tournament_id,
        EVENT_MATCH_UPDATED,
        {"match_id": match.id, "stage_id": match.stage_id, "winner_id": match.winner_id},
    )
    if outcome.advanced_count:
        background_tasks.add_task(
            broadcaster.broadcast, match.tournament_id, EVENT_BRACKET_UPDATED, {"stage_id": match.stage_id}
        )
    return MatchResultResponse(
        match=MatchState.model_validate(match),
        advanced_count=outcome.advanced_count,
        tournament_completed=outcome.tournament_completed,
    )


@router.post("/matches/{match_id}/advance", response_model=MatchResultResponse)
def advance_match_winner(
    match_id: int,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    broadcaster: BracketBroadcaster = Depends(get_broadcaster),
):
    """Re-route an already resolved match's teams downstream (idempotent)"""
    try:
        count = advance_match(session, match_id)
    except BracketError as e:
        raise bracket_http_error(e)
    except Exception as e:
        raise internal_error(session, "advance match", e)

    match = session.get(Match, match_id)
    if count:
        background_tasks.add_task(
            broadcaster.broadcast, match.tournament_id, EVENT_BRACKET_UPDATED, {"stage_id": match.stage_id}
        )
    return MatchResultResponse(match=MatchState.model_validate(match), advanced_count=count)


@router.put("/matches/{match_id}/schedule", response_model=MatchState)
@router.put("/tournaments/{tournament_id}/matches/{match_id}/schedule", response_model=MatchState)
def update_match_schedule(
    match_id: int,
    body: MatchScheduleUpdate,
    background_tasks: BackgroundTasks,
    tournament_id: Optional[int] = None,
    session: Session = Depends(get_session),
    broadcaster: BracketBroadcaster = Depends(get_broadcaster),
):
    """Set a match's start time. Under a tournament path the match must belong to it."""
    try:
        match = schedule_match(session, match_id, body.scheduled_time, tournament_id)
    except BracketError as e:
        raise bracket_http_error(e)
    except Exception as e:
        raise internal_error(session, "schedule match", e)

    background_tasks.add_task(
        broadcaster.broadcast,
        match.tournament_id,
        EVENT_MATCH_UPDATED,
        {"match_id": match.id, "stage_id": match.stage_id, "scheduled_time": match.scheduled_time.isoformat()},
    )
    return match
