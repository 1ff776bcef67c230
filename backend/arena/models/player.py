from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.team import Team


class Player(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    name: str
    player_tag: Optional[str] = None  # In-game player tag
    created_at: datetime = Field(default_factory=datetime.utcnow)

    team: "Team" = Relationship(back_populates="players")
