"""
Tournament lifecycle: date-driven status calculation, the periodic sweep, and
stage/tournament completion after results.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from arena.models.match import SIDE_GRAND_FINAL, SIDE_MAIN, Match
from arena.models.tournament import BracketType, Tournament, TournamentStatus
from arena.models.tournament_stage import TournamentStage

logger = logging.getLogger(__name__)

STATUS_ORDER = [
    TournamentStatus.DRAFT,
    TournamentStatus.REGISTRATION_OPEN,
    TournamentStatus.REGISTRATION_CLOSED,
    TournamentStatus.IN_PROGRESS,
    TournamentStatus.COMPLETED,
]

STATUS_CHANGE_REASONS = {
    TournamentStatus.DRAFT: "Tournament is in draft phase",
    TournamentStatus.REGISTRATION_OPEN: "Registration period has started",
    TournamentStatus.REGISTRATION_CLOSED: "Registration period has ended",
    TournamentStatus.IN_PROGRESS: "Tournament has started",
    TournamentStatus.COMPLETED: "Tournament has ended",
}


@dataclass
class StatusUpdate:
    tournament_id: int
    old_status: str
    new_status: str
    reason: str

    def to_dict(self) -> Dict:
        return asdict(self)


def status_rank(status) -> int:
    return STATUS_ORDER.index(TournamentStatus(status))


def calculate_tournament_status(
    registration_start: datetime,
    registration_end: Optional[datetime],
    tournament_start: datetime,
    tournament_end: Optional[datetime],
    current_status,
    now: Optional[datetime] = None,
) -> TournamentStatus:
    """Status implied by the tournament dates. COMPLETED stays COMPLETED."""
    now = now or datetime.utcnow()
    if TournamentStatus(current_status) == TournamentStatus.COMPLETED:
        return TournamentStatus.COMPLETED

    if now >= tournament_start:
        if tournament_end and now > tournament_end:
            return TournamentStatus.COMPLETED
        return TournamentStatus.IN_PROGRESS
    if registration_end and now > registration_end:
        return TournamentStatus.REGISTRATION_CLOSED
    if now >= registration_start:
        return TournamentStatus.REGISTRATION_OPEN
    return TournamentStatus.DRAFT


def sweep_tournament_statuses(session: Session, now: Optional[datetime] = None) -> List[StatusUpdate]:
    """
    Recompute every active tournament's status from its dates and commit the changes.

    Only forward moves are applied: a tournament already advanced past the
    date-implied status (e.g. by a draw) keeps its status.
    """
    now = now or datetime.utcnow()
    tournaments = session.exec(
        select(Tournament).where(Tournament.is_active == True).order_by(Tournament.id)  # noqa: E712
    ).all()

    updates: List[StatusUpdate] = []
    for tournament in tournaments:
        old_status = TournamentStatus(tournament.status)
        new_status = calculate_tournament_status(
            tournament.registration_start,
            tournament.registration_end,
            tournament.tournament_start,
            tournament.tournament_end,
            old_status,
            now=now,
        )
        if status_rank(new_status) <= status_rank(old_status):
            continue
        tournament.status = new_status
        tournament.updated_at = now
        session.add(tournament)
        updates.append(
            StatusUpdate(
                tournament_id=tournament.id,
                old_status=old_status.value,
                new_status=new_status.value,
                reason=STATUS_CHANGE_REASONS[new_status],
            )
        )
        logger.info("Tournament %s status updated: %s -> %s", tournament.id, old_status.value, new_status.value)

    if updates:
        session.commit()
    return updates


def is_stage_complete(session: Session, stage: TournamentStage) -> bool:
    """
    Elimination stages finish with their final (or grand final); round-robin,
    Swiss and leaderboard stages once every match has a result.
    """
    if not stage.is_seeded:
        return False
    matches = session.exec(select(Match).where(Match.stage_id == stage.id)).all()
    if not matches:
        return False

    stage_type = BracketType(stage.stage_type)
    if stage_type == BracketType.SINGLE_ELIMINATION:
        last_round = max(m.round_number for m in matches if m.bracket_side == SIDE_MAIN)
        final = [m for m in matches if m.round_number == last_round]
        return all(m.winner_id is not None for m in final)
    if stage_type == BracketType.DOUBLE_ELIMINATION:
        grand_final = [m for m in matches if m.bracket_side == SIDE_GRAND_FINAL]
        return bool(grand_final) and all(m.winner_id is not None for m in grand_final)
    return all(m.has_result for m in matches)


def complete_tournament_if_finished(session: Session, tournament_id: int) -> bool:
    """Move the tournament to COMPLETED when every stage is complete. Flushes, does not commit."""
    tournament = session.get(Tournament, tournament_id)
    if tournament is None or TournamentStatus(tournament.status) == TournamentStatus.COMPLETED:
        return False
    stages = session.exec(select(TournamentStage).where(TournamentStage.tournament_id == tournament_id)).all()
    if not stages or not all(is_stage_complete(session, s) for s in stages):
        return False

    tournament.status = TournamentStatus.COMPLETED
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.flush()
    logger.info("Tournament %s completed", tournament_id)
    return True
