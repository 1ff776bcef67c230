"""
Seed placement: order a tournament's teams and write them into a stage.

The draw rebuilds the stage from a fresh skeleton (clearing any previous
assignments, scores and winners), stores the draw order on the stage, fills
every draw-position slot, then resolves byes.
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from arena.models.match import SIDE_SWISS, Match
from arena.models.team import Team
from arena.models.tournament import ELIMINATION_TYPES, BracketType, Tournament, TournamentStatus
from arena.models.tournament_stage import TournamentStage
from arena.services.advancement_service import resolve_byes
from arena.services.bracket_errors import BracketNotFoundError, BracketStateError, BracketValidationError
from arena.services.stage_builder import clear_stage_matches, materialize_skeleton, rebuild_stage
from arena.services.bracket_structure import generate_skeleton

logger = logging.getLogger(__name__)

POLICY_RANDOM = "RANDOM"
POLICY_ORDERED = "ORDERED"

MIN_TEAMS = 2
MIN_GROUP_STAGE_TEAMS = 4

# A draw pulls the tournament out of its pre-start states
DRAW_STARTS_FROM = (
    TournamentStatus.DRAFT,
    TournamentStatus.REGISTRATION_OPEN,
    TournamentStatus.REGISTRATION_CLOSED,
)


@dataclass
class DrawResult:
    stage: TournamentStage
    draw_order: List[int]
    matches_created: int
    byes_resolved: int


def get_registered_teams(session: Session, tournament_id: int) -> List[Team]:
    """Teams in registration order (created_at, then id)."""
    return session.exec(
        select(Team).where(Team.tournament_id == tournament_id).order_by(Team.created_at, Team.id)
    ).all()


def draw_order(teams: List[Team], policy: str = POLICY_RANDOM, rng: Optional[random.Random] = None) -> List[int]:
    """
    Team ids in draw-position order.

    RANDOM is a uniform shuffle; ORDERED keeps the given order.
    """
    ids = [t.id for t in teams]
    if policy == POLICY_ORDERED:
        return ids
    if policy != POLICY_RANDOM:
        raise BracketValidationError(f"Unknown placement policy: {policy}")
    (rng or random.Random()).shuffle(ids)
    return ids


def validate_team_count(stage_type, team_count: int, slot_capacity: int) -> None:
    stage_type = BracketType(stage_type)
    minimum = MIN_GROUP_STAGE_TEAMS if stage_type == BracketType.GROUP_STAGE else MIN_TEAMS
    if team_count < minimum:
        raise BracketValidationError(
            f"At least {minimum} teams are required for {stage_type.value}, found {team_count}"
        )
    if stage_type in ELIMINATION_TYPES and team_count > slot_capacity:
        raise BracketValidationError(
            f"{team_count} teams do not fit a bracket of {slot_capacity} slots"
        )


def get_target_stage(session: Session, tournament: Tournament, stage_id: Optional[int] = None) -> TournamentStage:
    """The requested stage, or the tournament's first stage by order."""
    if stage_id is not None:
        stage = session.get(TournamentStage, stage_id)
        if stage is None or stage.tournament_id != tournament.id:
            raise BracketNotFoundError(f"Stage {stage_id} not found")
        return stage
    stage = session.exec(
        select(TournamentStage)
        .where(TournamentStage.tournament_id == tournament.id)
        .order_by(TournamentStage.order, TournamentStage.id)
    ).first()
    if stage is None:
        raise BracketNotFoundError(f"Tournament {tournament.id} has no stages")
    return stage


def apply_draw_order(session: Session, stage: TournamentStage, order: List[int]) -> None:
    """Write teams into every slot that carries a draw position. Later Swiss rounds wait for results."""
    matches = session.exec(select(Match).where(Match.stage_id == stage.id)).all()
    for match in matches:
        if match.bracket_side == SIDE_SWISS and match.round_number > 1:
            continue
        if match.seed_1 is not None and match.seed_1 < len(order):
            match.team1_id = order[match.seed_1]
        if match.seed_2 is not None and match.seed_2 < len(order):
            match.team2_id = order[match.seed_2]
        session.add(match)
    session.flush()


def run_draw(
    session: Session,
    tournament_id: int,
    stage_id: Optional[int] = None,
    policy: str = POLICY_RANDOM,
    rng: Optional[random.Random] = None,
) -> DrawResult:
    """
    Seed a stage with the tournament's registered teams and commit.

    Overwrites any previous draw on the stage. Fails on a completed
    tournament, too few teams, or more teams than round-1 slots.
    """
    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        raise BracketNotFoundError(f"Tournament {tournament_id} not found")
    if TournamentStatus(tournament.status) == TournamentStatus.COMPLETED:
        raise BracketStateError("Cannot draw a completed tournament")

    stage = get_target_stage(session, tournament, stage_id)
    teams = get_registered_teams(session, tournament.id)
    validate_team_count(stage.stage_type, len(teams), tournament.max_teams)

    order = draw_order(teams, policy, rng)
    matches = rebuild_stage(session, tournament, stage, team_count=len(order))
    stage.draw_order = order
    session.add(stage)
    apply_draw_order(session, stage, order)
    byes = resolve_byes(session, stage)

    if TournamentStatus(tournament.status) in DRAW_STARTS_FROM:
        tournament.status = TournamentStatus.IN_PROGRESS
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()
    session.refresh(stage)

    logger.info(
        "Draw (%s) for tournament %s stage %s: %d teams, %d matches, %d byes",
        policy, tournament.id, stage.id, len(order), len(matches), byes,
    )
    return DrawResult(stage=stage, draw_order=order, matches_created=len(matches), byes_resolved=byes)


def reset_stage(session: Session, tournament_id: int, stage_id: Optional[int] = None) -> TournamentStage:
    """Clear every assignment and result in a stage and restore its empty skeleton."""
    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        raise BracketNotFoundError(f"Tournament {tournament_id} not found")
    stage = get_target_stage(session, tournament, stage_id)

    clear_stage_matches(session, stage.id)
    materialize_skeleton(session, stage, generate_skeleton(stage.stage_type, tournament.max_teams))
    stage.draw_order = None
    session.add(stage)
    session.commit()
    session.refresh(stage)
    logger.info("Reset stage %s of tournament %s", stage.id, tournament.id)
    return stage
