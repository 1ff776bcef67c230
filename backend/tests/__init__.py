# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from arena.models.match import Match  # noqa: F401
from arena.models.player import Player  # noqa: F401
from arena.models.team import Team  # noqa: F401
from arena.models.tournament import Tournament  # noqa: F401
from arena.models.tournament_stage import TournamentStage  # noqa: F401
