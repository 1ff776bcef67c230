"""
Stage materialisation: persist a bracket skeleton as Match rows.

Creates one row per skeleton match, then wires source_match_{1,2}_id from the
skeleton's SlotSource codes. Rebuilding a stage deletes its matches first, so
scores and winners never survive a re-draw.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy import delete
from sqlmodel import Session, func, select

from arena.models.match import Match
from arena.models.tournament import BracketType, Tournament
from arena.models.tournament_stage import TournamentStage
from arena.services.bracket_structure import BracketSkeleton, generate_skeleton

logger = logging.getLogger(__name__)


def default_stage_name(bracket_type) -> str:
    """SINGLE_ELIMINATION -> "Single Elimination Stage"."""
    return f"{BracketType(bracket_type).value.replace('_', ' ').title()} Stage"


def clear_stage_matches(session: Session, stage_id: int) -> None:
    session.execute(delete(Match).where(Match.stage_id == stage_id))


def materialize_skeleton(session: Session, stage: TournamentStage, skeleton: BracketSkeleton) -> List[Match]:
    """Insert skeleton matches for a stage and wire their sources. Flushes, does not commit."""
    by_code: Dict[str, Match] = {}
    rows: List[Match] = []
    for sk in skeleton.matches:
        match = Match(
            tournament_id=stage.tournament_id,
            stage_id=stage.id,
            match_code=sk.code,
            bracket_side=sk.side,
            group_index=sk.group_index,
            round_number=sk.round_number,
            match_number=sk.match_number,
            placeholder_1=sk.placeholder(1),
            placeholder_2=sk.placeholder(2),
            seed_1=sk.seed_1,
            seed_2=sk.seed_2,
            source_1_role=sk.source_1.role if sk.source_1 else None,
            source_2_role=sk.source_2.role if sk.source_2 else None,
        )
        session.add(match)
        by_code[sk.code] = match
        rows.append(match)
    session.flush()

    # Second pass: ids exist now
    for sk in skeleton.matches:
        match = by_code[sk.code]
        if sk.source_1:
            match.source_match_1_id = by_code[sk.source_1.match_code].id
        if sk.source_2:
            match.source_match_2_id = by_code[sk.source_2.match_code].id
        session.add(match)
    session.flush()

    stage.slot_count = skeleton.slot_count
    session.add(stage)
    logger.debug("Stage %s materialised with %d matches", stage.id, len(rows))
    return rows


def rebuild_stage(
    session: Session,
    tournament: Tournament,
    stage: TournamentStage,
    team_count: Optional[int] = None,
) -> List[Match]:
    """Drop a stage's matches and regenerate them from a fresh skeleton."""
    clear_stage_matches(session, stage.id)
    skeleton = generate_skeleton(stage.stage_type, tournament.max_teams, team_count)
    return materialize_skeleton(session, stage, skeleton)


def create_stage(
    session: Session,
    tournament: Tournament,
    name: Optional[str] = None,
    stage_type=None,
    order: Optional[int] = None,
) -> TournamentStage:
    """Add a stage to a tournament with its empty skeleton. Flushes, does not commit."""
    stage_type = BracketType(stage_type or tournament.bracket_type)
    if order is None:
        current_max = session.exec(
            select(func.max(TournamentStage.order)).where(TournamentStage.tournament_id == tournament.id)
        ).one()
        order = 0 if current_max is None else current_max + 1

    skeleton = generate_skeleton(stage_type, tournament.max_teams)
    stage = TournamentStage(
        tournament_id=tournament.id,
        name=name or default_stage_name(stage_type),
        stage_type=stage_type,
        order=order,
        slot_count=skeleton.slot_count,
    )
    session.add(stage)
    session.flush()
    materialize_skeleton(session, stage, skeleton)
    logger.info("Created stage %s (%s) for tournament %s", stage.id, stage_type.value, tournament.id)
    return stage
