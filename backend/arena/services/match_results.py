"""
Match result application.

Records scores, derives the winner and runs progression in one transaction:
either the result, every downstream slot it fills and any completion it
triggers are committed together, or nothing is.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from arena.models.match import STATUS_COMPLETED, STATUS_PENDING, Match
from arena.models.tournament import ELIMINATION_TYPES, BracketType
from arena.models.tournament_stage import TournamentStage
from arena.services.advancement_service import progress_stage
from arena.services.bracket_errors import BracketNotFoundError, BracketStateError, BracketValidationError
from arena.services.tournament_status import complete_tournament_if_finished

logger = logging.getLogger(__name__)


@dataclass
class MatchResultOutcome:
    match: Match
    advanced_count: int
    tournament_completed: bool


def determine_winner(team1_id: Optional[int], team2_id: Optional[int], score1: int, score2: int) -> Optional[int]:
    """team1 on a higher score1, team2 on a higher score2, None on a tie."""
    if score1 > score2:
        return team1_id
    if score2 > score1:
        return team2_id
    return None


def _validate_scores(score1, score2) -> None:
    for label, value in (("score1", score1), ("score2", score2)):
        if value is None and label == "score2":
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            raise BracketValidationError(f"{label} must be an integer")
        if value < 0:
            raise BracketValidationError(f"{label} must be non-negative")


def apply_match_result(
    session: Session, match_id: int, score1: int, score2: Optional[int] = None
) -> MatchResultOutcome:
    """
    Record a result and progress the bracket. Commits on success, rolls back on failure.

    - Elimination stages reject ties (there is no tie-break).
    - Group stage and Swiss keep ties with no winner.
    - Leaderboard slots record points only; score2 is ignored and no winner is set.
    - Every other stage needs both scores.
    """
    _validate_scores(score1, score2)

    match = session.get(Match, match_id)
    if match is None:
        raise BracketNotFoundError(f"Match {match_id} not found")
    stage = session.get(TournamentStage, match.stage_id)
    stage_type = BracketType(stage.stage_type)
    if score2 is None and stage_type != BracketType.LEADERBOARD:
        raise BracketValidationError("score2 is required")

    try:
        if stage_type == BracketType.LEADERBOARD:
            if match.team1_id is None:
                raise BracketStateError(f"Match {match.match_code} has no team assigned yet")
            match.score1 = score1
            match.score2 = None
            match.winner_id = None
        else:
            if match.team1_id is None or match.team2_id is None:
                raise BracketStateError(f"Match {match.match_code} does not have both teams assigned yet")
            winner_id = determine_winner(match.team1_id, match.team2_id, score1, score2)
            if winner_id is None and stage_type in ELIMINATION_TYPES:
                raise BracketValidationError("Elimination matches cannot end in a tie")
            match.score1 = score1
            match.score2 = score2
            match.winner_id = winner_id

        match.status = STATUS_COMPLETED
        match.completed_at = datetime.utcnow()
        session.add(match)
        session.flush()

        advanced_count = progress_stage(session, stage, match)
        tournament_completed = complete_tournament_if_finished(session, match.tournament_id)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(match)
    logger.info(
        "Match %s result %s-%s (winner %s), %d downstream updates",
        match.match_code, score1, score2, match.winner_id, advanced_count,
    )
    return MatchResultOutcome(match=match, advanced_count=advanced_count, tournament_completed=tournament_completed)


def advance_match(session: Session, match_id: int) -> int:
    """Re-run progression for one already-resolved match. Commits; returns slots filled."""
    match = session.get(Match, match_id)
    if match is None:
        raise BracketNotFoundError(f"Match {match_id} not found")
    if match.status == STATUS_PENDING or match.winner_id is None:
        raise BracketStateError(f"Match {match.match_code} has no winner to advance")
    stage = session.get(TournamentStage, match.stage_id)
    try:
        count = progress_stage(session, stage, match)
        complete_tournament_if_finished(session, match.tournament_id)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return count


def schedule_match(
    session: Session, match_id: int, scheduled_time: Optional[datetime], tournament_id: Optional[int] = None
) -> Match:
    """Set when a match is to be played. Commits; a tournament_id scopes the lookup."""
    if scheduled_time is None:
        raise BracketValidationError("Scheduled time is required")
    match = session.get(Match, match_id)
    if match is None or (tournament_id is not None and match.tournament_id != tournament_id):
        raise BracketNotFoundError("Match not found")
    match.scheduled_time = scheduled_time
    session.add(match)
    session.commit()
    session.refresh(match)
    logger.info("Match %s scheduled for %s", match.match_code, scheduled_time.isoformat())
    return match
