from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.team import Team
    from arena.models.tournament import Tournament
    from arena.models.tournament_stage import TournamentStage

# Bracket sides
SIDE_MAIN = "MAIN"
SIDE_WINNERS = "WINNERS"
SIDE_LOSERS = "LOSERS"
SIDE_GRAND_FINAL = "GRAND_FINAL"
SIDE_GROUP = "GROUP"
SIDE_SWISS = "SWISS"
SIDE_LEADERBOARD = "LEADERBOARD"

# Match statuses
STATUS_PENDING = "PENDING"
STATUS_COMPLETED = "COMPLETED"
STATUS_BYE = "BYE"


class Match(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("stage_id", "match_code", name="uq_match_stage_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    stage_id: int = Field(foreign_key="tournamentstage.id", index=True)
    match_code: str  # e.g. "R1-1", "WB-R2-1", "LB-R1-1", "GF-1", "GA-R1-2", "SW-R3-4", "LB-1"
    bracket_side: str = Field(default=SIDE_MAIN)  # MAIN | WINNERS | LOSERS | GRAND_FINAL | GROUP | SWISS | LEADERBOARD
    group_index: Optional[int] = Field(default=None)  # 0-based, group stage only
    round_number: int
    match_number: int  # Position within the round (1..n)

    # Team assignments (nullable - populated by the draw or by progression)
    team1_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team2_id: Optional[int] = Field(default=None, foreign_key="team.id")

    # Display text while a slot is empty
    placeholder_1: str
    placeholder_2: Optional[str] = None  # None for single-team leaderboard slots

    # Draw positions feeding round-1 slots
    seed_1: Optional[int] = Field(default=None)
    seed_2: Optional[int] = Field(default=None)

    # Upstream match -> team slot wiring
    source_match_1_id: Optional[int] = Field(default=None, foreign_key="match.id")
    source_match_2_id: Optional[int] = Field(default=None, foreign_key="match.id")
    source_1_role: Optional[str] = Field(default=None)  # "WINNER" | "LOSER"
    source_2_role: Optional[str] = Field(default=None)

    score1: Optional[int] = Field(default=None)
    score2: Optional[int] = Field(default=None)
    winner_id: Optional[int] = Field(default=None, foreign_key="team.id")
    status: str = Field(default=STATUS_PENDING)  # PENDING | COMPLETED | BYE
    scheduled_time: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
    stage: "TournamentStage" = Relationship(back_populates="matches")
    team1: Optional["Team"] = Relationship(
        back_populates="matches_as_team1", sa_relationship_kwargs={"foreign_keys": "Match.team1_id"}
    )
    team2: Optional["Team"] = Relationship(
        back_populates="matches_as_team2", sa_relationship_kwargs={"foreign_keys": "Match.team2_id"}
    )

    @property
    def has_result(self) -> bool:
        return self.status in (STATUS_COMPLETED, STATUS_BYE)
