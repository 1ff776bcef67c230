from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

from arena.models.tournament import BracketType

if TYPE_CHECKING:
    from arena.models.match import Match
    from arena.models.tournament import Tournament


class TournamentStage(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "order", name="uq_tournament_stage_order"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str
    stage_type: BracketType = Field(sa_column=Column(String, nullable=False))
    order: int = Field(default=0)
    # Capacity the skeleton was generated for (max_teams, or the drawn team count)
    slot_count: int
    # Team ids in draw position order; null until the stage is seeded
    draw_order: Optional[List[int]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="stages")
    matches: List["Match"] = Relationship(back_populates="stage")

    @property
    def is_seeded(self) -> bool:
        return self.draw_order is not None
