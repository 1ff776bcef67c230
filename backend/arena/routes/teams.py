"""
Team Registration API Routes
Registers teams (with their players) into a tournament while registration is open.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session, select

from arena.database import get_session
from arena.models.match import Match
from arena.models.player import Player
from arena.models.team import Team
from arena.models.tournament import Tournament, TournamentStatus
from arena.utils.http_errors import internal_error

router = APIRouter()

MIN_PLAYERS = 5


# ============================================================================
# Request/Response Models
# ============================================================================


class PlayerCreateRequest(BaseModel):
    name: str
    player_tag: Optional[str] = None


class TeamRegisterRequest(BaseModel):
    name: str
    tag: Optional[str] = None
    logo: Optional[str] = None
    players: List[PlayerCreateRequest] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("players")
    @classmethod
    def validate_players(cls, v):
        if len(v) < MIN_PLAYERS:
            raise ValueError(f"At least {MIN_PLAYERS} players are required")
        return v


class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    player_tag: Optional[str] = None


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    name: str
    tag: Optional[str] = None
    logo: Optional[str] = None
    created_at: datetime
    players: List[PlayerResponse] = []


def _get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def _get_team_or_404(session: Session, tournament_id: int, team_id: int) -> Team:
    team = session.get(Team, team_id)
    if not team or team.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


# ============================================================================
# Team Endpoints
# ============================================================================


@router.get("/tournaments/{tournament_id}/teams", response_model=List[TeamResponse])
def get_teams(tournament_id: int, session: Session = Depends(get_session)):
    """Get all teams for a tournament in registration order"""
    _get_tournament_or_404(session, tournament_id)
    return session.exec(
        select(Team).where(Team.tournament_id == tournament_id).order_by(Team.created_at, Team.id)
    ).all()


@router.post("/tournaments/{tournament_id}/teams", response_model=TeamResponse, status_code=201)
def register_team(tournament_id: int, team_data: TeamRegisterRequest, session: Session = Depends(get_session)):
    """
    Register a team and its players.

    Requires REGISTRATION_OPEN, a free slot (max_teams) and a team name not
    already used in the tournament.
    """
    tournament = _get_tournament_or_404(session, tournament_id)
    if TournamentStatus(tournament.status) != TournamentStatus.REGISTRATION_OPEN:
        raise HTTPException(status_code=400, detail="Registration is not open for this tournament")

    existing = session.exec(select(Team).where(Team.tournament_id == tournament_id)).all()
    if len(existing) >= tournament.max_teams:
        raise HTTPException(status_code=400, detail="Tournament is full")
    if any(t.name.lower() == team_data.name.lower() for t in existing):
        raise HTTPException(status_code=400, detail=f"Team name '{team_data.name}' is already registered")

    try:
        team = Team(tournament_id=tournament_id, name=team_data.name, tag=team_data.tag, logo=team_data.logo)
        session.add(team)
        session.flush()
        for p in team_data.players:
            session.add(Player(team_id=team.id, name=p.name, player_tag=p.player_tag))
        session.commit()
        session.refresh(team)
        return team
    except Exception as e:
        raise internal_error(session, "register team", e)


@router.get("/tournaments/{tournament_id}/teams/{team_id}", response_model=TeamResponse)
def get_team(tournament_id: int, team_id: int, session: Session = Depends(get_session)):
    """Get a single team with its players"""
    return _get_team_or_404(session, tournament_id, team_id)


@router.delete("/tournaments/{tournament_id}/teams/{team_id}", status_code=204)
def delete_team(tournament_id: int, team_id: int, session: Session = Depends(get_session)):
    """Withdraw a team. Refused once the team has been placed in a match."""
    team = _get_team_or_404(session, tournament_id, team_id)
    placed = session.exec(
        select(Match).where((Match.team1_id == team_id) | (Match.team2_id == team_id))
    ).first()
    if placed:
        raise HTTPException(status_code=400, detail="Team is already placed in the bracket; reset the bracket first")

    try:
        for player in team.players:
            session.delete(player)
        session.delete(team)
        session.commit()
        return None
    except Exception as e:
        raise internal_error(session, "delete team", e)
