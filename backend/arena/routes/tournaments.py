from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlmodel import Session, func, select, text

from arena.database import get_session
from arena.models.tournament import BracketType, Tournament, TournamentStatus
from arena.models.tournament_stage import TournamentStage
from arena.services.bracket_errors import BracketError
from arena.services.bracket_structure import MAX_SLOTS, MIN_SLOTS
from arena.services.stage_builder import create_stage, rebuild_stage
from arena.services.tournament_status import calculate_tournament_status, status_rank
from arena.utils.http_errors import bracket_http_error, internal_error

router = APIRouter()


def _naive_utc(value):
    """Stored datetimes are naive UTC."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TournamentCreate(BaseModel):
    name: str
    host: Optional[str] = None
    description: Optional[str] = None
    bracket_type: BracketType
    max_teams: int
    registration_start: datetime
    registration_end: Optional[datetime] = None
    tournament_start: datetime
    tournament_end: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("max_teams")
    @classmethod
    def validate_max_teams(cls, v):
        if v < MIN_SLOTS or v > MAX_SLOTS:
            raise ValueError(f"max_teams must be between {MIN_SLOTS} and {MAX_SLOTS}")
        return v

    @field_validator("registration_start", "registration_end", "tournament_start", "tournament_end")
    @classmethod
    def normalize_datetime(cls, v):
        return _naive_utc(v)

    @model_validator(mode="after")
    def validate_date_order(self):
        if self.registration_end and self.registration_end < self.registration_start:
            raise ValueError("registration_end must be >= registration_start")
        if self.tournament_start < self.registration_start:
            raise ValueError("tournament_start must be >= registration_start")
        if self.tournament_end and self.tournament_end < self.tournament_start:
            raise ValueError("tournament_end must be >= tournament_start")
        return self


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    host: Optional[str] = None
    description: Optional[str] = None
    max_teams: Optional[int] = None
    status: Optional[TournamentStatus] = None
    registration_start: Optional[datetime] = None
    registration_end: Optional[datetime] = None
    tournament_start: Optional[datetime] = None
    tournament_end: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("max_teams")
    @classmethod
    def validate_max_teams(cls, v):
        if v is not None and (v < MIN_SLOTS or v > MAX_SLOTS):
            raise ValueError(f"max_teams must be between {MIN_SLOTS} and {MAX_SLOTS}")
        return v

    @field_validator("registration_start", "registration_end", "tournament_start", "tournament_end")
    @classmethod
    def normalize_datetime(cls, v):
        return _naive_utc(v)


class TournamentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    host: Optional[str] = None
    description: Optional[str] = None
    bracket_type: BracketType
    max_teams: int
    status: TournamentStatus
    registration_start: datetime
    registration_end: Optional[datetime] = None
    tournament_start: datetime
    tournament_end: Optional[datetime] = None
    is_active: bool
    team_count: int = 0
    created_at: datetime
    updated_at: datetime


def _to_response(tournament: Tournament) -> TournamentResponse:
    response = TournamentResponse.model_validate(tournament)
    response.team_count = len(tournament.teams)
    return response


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(status: Optional[TournamentStatus] = None, session: Session = Depends(get_session)):
    """List tournaments, optionally filtered by status"""
    query = select(Tournament).order_by(Tournament.tournament_start, Tournament.id)
    if status is not None:
        query = query.where(Tournament.status == status.value)
    return [_to_response(t) for t in session.exec(query).all()]


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament, derive its status from the dates and create its first stage"""
    try:
        data = tournament_data.model_dump()
        status = calculate_tournament_status(
            data["registration_start"],
            data["registration_end"],
            data["tournament_start"],
            data["tournament_end"],
            TournamentStatus.DRAFT,
        )
        tournament = Tournament(**data, status=status)
        session.add(tournament)
        session.flush()

        create_stage(session, tournament)
        session.commit()
        session.refresh(tournament)
        return _to_response(tournament)
    except BracketError as e:
        session.rollback()
        raise bracket_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(session, "create tournament", e)


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return _to_response(tournament)


@router.put("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    """
    Update a tournament.

    Date changes move the status forward when the new dates imply a later
    phase. An explicit status overrides that. Changing max_teams regenerates
    unseeded stages and is refused once any stage has been drawn.
    """
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    try:
        update_data = tournament_data.model_dump(exclude_unset=True)
        explicit_status = update_data.pop("status", None)
        new_max_teams = update_data.pop("max_teams", None)

        for field, value in update_data.items():
            setattr(tournament, field, value)

        if (
            tournament.registration_end and tournament.registration_end < tournament.registration_start
        ) or tournament.tournament_start < tournament.registration_start or (
            tournament.tournament_end and tournament.tournament_end < tournament.tournament_start
        ):
            raise HTTPException(status_code=400, detail="Tournament dates are out of order")

        stages = session.exec(select(TournamentStage).where(TournamentStage.tournament_id == tournament_id)).all()
        if new_max_teams is not None and new_max_teams != tournament.max_teams:
            if any(s.is_seeded for s in stages):
                raise HTTPException(status_code=400, detail="Cannot change max_teams after a draw; reset the bracket first")
            if new_max_teams < len(tournament.teams):
                raise HTTPException(status_code=400, detail="max_teams is below the number of registered teams")
            tournament.max_teams = new_max_teams
            for stage in stages:
                rebuild_stage(session, tournament, stage)

        if explicit_status is not None:
            tournament.status = explicit_status
        elif any(k.startswith(("registration_", "tournament_")) for k in update_data):
            current = TournamentStatus(tournament.status)
            implied = calculate_tournament_status(
                tournament.registration_start,
                tournament.registration_end,
                tournament.tournament_start,
                tournament.tournament_end,
                current,
            )
            if status_rank(implied) > status_rank(current):
                tournament.status = implied

        tournament.updated_at = datetime.utcnow()
        session.add(tournament)
        session.commit()
        session.refresh(tournament)
        return _to_response(tournament)
    except BracketError as e:
        session.rollback()
        raise bracket_http_error(e)
    except HTTPException:
        session.rollback()
        raise
    except Exception as e:
        raise internal_error(session, "update tournament", e)


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a tournament and all its related data (stages, matches, teams, players)"""
    try:
        tournament_exists = session.exec(select(func.count(Tournament.id)).where(Tournament.id == tournament_id)).one()

        if tournament_exists == 0:
            raise HTTPException(status_code=404, detail="Tournament not found")

        # Raw SQL, children before parents
        params = {"tournament_id": tournament_id}
        session.execute(
            text("DELETE FROM player WHERE team_id IN (SELECT id FROM team WHERE tournament_id = :tournament_id)"),
            params,
        )
        session.execute(text("DELETE FROM match WHERE tournament_id = :tournament_id"), params)
        session.execute(text("DELETE FROM team WHERE tournament_id = :tournament_id"), params)
        session.execute(text("DELETE FROM tournamentstage WHERE tournament_id = :tournament_id"), params)
        session.execute(text("DELETE FROM tournament WHERE id = :tournament_id"), params)
        session.commit()
        session.expire_all()
        return None
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(session, "delete tournament", e)
