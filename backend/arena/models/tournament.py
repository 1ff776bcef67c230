from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.match import Match
    from arena.models.team import Team
    from arena.models.tournament_stage import TournamentStage


class BracketType(str, Enum):
    SINGLE_ELIMINATION = "SINGLE_ELIMINATION"
    DOUBLE_ELIMINATION = "DOUBLE_ELIMINATION"
    SWISS = "SWISS"
    GROUP_STAGE = "GROUP_STAGE"
    LEADERBOARD = "LEADERBOARD"


ELIMINATION_TYPES = (BracketType.SINGLE_ELIMINATION, BracketType.DOUBLE_ELIMINATION)


class TournamentStatus(str, Enum):
    DRAFT = "DRAFT"
    REGISTRATION_OPEN = "REGISTRATION_OPEN"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    host: Optional[str] = None
    description: Optional[str] = None
    bracket_type: BracketType = Field(sa_column=Column(String, nullable=False))
    max_teams: int
    status: TournamentStatus = Field(default=TournamentStatus.DRAFT, sa_column=Column(String, nullable=False))
    registration_start: datetime
    registration_end: Optional[datetime] = None
    tournament_start: datetime
    tournament_end: Optional[datetime] = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    stages: List["TournamentStage"] = Relationship(back_populates="tournament")
    teams: List["Team"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
