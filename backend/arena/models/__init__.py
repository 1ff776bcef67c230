from arena.models.match import Match
from arena.models.player import Player
from arena.models.team import Team
from arena.models.tournament import BracketType, Tournament, TournamentStatus
from arena.models.tournament_stage import TournamentStage

__all__ = [
    "Tournament",
    "TournamentStatus",
    "BracketType",
    "TournamentStage",
    "Team",
    "Player",
    "Match",
]
