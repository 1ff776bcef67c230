from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.match import Match
    from arena.models.player import Player
    from arena.models.tournament import Tournament


class Team(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "name", name="uq_tournament_team_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str
    tag: Optional[str] = None  # Clan tag, e.g. "#2PP"
    logo: Optional[str] = None  # URL produced by the upload service
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="teams")
    players: List["Player"] = Relationship(back_populates="team")
    matches_as_team1: List["Match"] = Relationship(
        back_populates="team1", sa_relationship_kwargs={"foreign_keys": "Match.team1_id"}
    )
    matches_as_team2: List["Match"] = Relationship(
        back_populates="team2", sa_relationship_kwargs={"foreign_keys": "Match.team2_id"}
    )
