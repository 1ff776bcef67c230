"""
Bracket progression: when a match is resolved, populate downstream match team slots.

Downstream matches name their feeders through source_match_{1,2}_id plus a
WINNER/LOSER role, so single and double elimination (including the
losers-bracket drop-downs and the grand final) route through the same code.
Every slot write is a compare-and-swap; callers own the transaction.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from arena.models.match import STATUS_BYE, STATUS_COMPLETED, Match
from arena.models.tournament import ELIMINATION_TYPES, BracketType
from arena.models.tournament_stage import TournamentStage
from arena.services.bracket_errors import BracketStateError, SlotConflictError
from arena.services.bracket_structure import ROLE_LOSER, ROLE_WINNER

logger = logging.getLogger(__name__)


def loser_of(match: Match) -> Optional[int]:
    """The losing team of a resolved match; byes and ties have none."""
    if match.status != STATUS_COMPLETED or match.winner_id is None:
        return None
    if match.winner_id == match.team1_id:
        return match.team2_id
    if match.winner_id == match.team2_id:
        return match.team1_id
    return None


def _slot_team(match: Match, slot: int) -> Optional[int]:
    return match.team1_id if slot == 1 else match.team2_id


def write_slot(session: Session, match: Match, slot: int, expected: Optional[int], team_id: Optional[int]) -> None:
    """
    Set match.team{slot}_id from `expected` to `team_id` atomically.

    Raises SlotConflictError when the stored value is no longer `expected`
    (a concurrent result landed first).
    """
    column = Match.team1_id if slot == 1 else Match.team2_id
    condition = column.is_(None) if expected is None else column == expected
    result = session.execute(
        update(Match)
        .where(Match.id == match.id, condition)
        .values({column.key: team_id})
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount == 0:
        raise SlotConflictError(
            f"Slot {slot} of match {match.match_code} changed concurrently; reload and retry"
        )


def apply_advancement_for_final_match(session: Session, match_id: int) -> int:
    """
    Given a resolved match, route its winner (and loser) into every downstream
    match in the same stage that lists it as a source.

    Returns count of downstream slots that were written.
    Idempotent: a slot already holding the routed team is left alone.
    A corrected result replaces the previously routed team, unless the
    downstream match has already been played.
    """
    match = session.get(Match, match_id)
    if not match or not match.has_result or match.winner_id is None:
        return 0

    routed = {ROLE_WINNER: match.winner_id, ROLE_LOSER: loser_of(match)}
    updated_count = 0

    for slot in (1, 2):
        source_col = Match.source_match_1_id if slot == 1 else Match.source_match_2_id
        downstream = session.exec(
            select(Match).where(Match.stage_id == match.stage_id, source_col == match_id).order_by(Match.id)
        ).all()
        for down in downstream:
            role = down.source_1_role if slot == 1 else down.source_2_role
            team_id = routed.get(role or ROLE_WINNER)
            if team_id is None:
                continue
            current = _slot_team(down, slot)
            if current == team_id:
                continue
            if current is not None and down.has_result:
                raise BracketStateError(
                    f"Cannot change {match.match_code}: {down.match_code} has already been played"
                )
            write_slot(session, down, slot, current, team_id)
            updated_count += 1
            logger.debug(
                "Routed %s of %s (team %s) into %s slot %d", role, match.match_code, team_id, down.match_code, slot
            )

    return updated_count


class StageGraph:
    """
    Read-only view of a stage's wiring, used to decide which empty slots can
    never be filled (dead slots) once the stage is seeded.
    """

    def __init__(self, matches: List[Match], seeded: bool):
        self.by_id: Dict[int, Match] = {m.id: m for m in matches}
        self.seeded = seeded
        self._winner_memo: Dict[int, bool] = {}
        self._loser_memo: Dict[int, bool] = {}

    def slot_dead(self, match: Match, slot: int) -> bool:
        if _slot_team(match, slot) is not None:
            return False
        source_id = match.source_match_1_id if slot == 1 else match.source_match_2_id
        if source_id is None:
            # Unfed slot: the draw already placed every team it ever will
            return self.seeded
        source = self.by_id.get(source_id)
        if source is None:
            return True
        role = match.source_1_role if slot == 1 else match.source_2_role
        if role == ROLE_LOSER:
            return not self.produces_loser(source)
        return not self.produces_winner(source)

    def produces_winner(self, match: Match) -> bool:
        if match.id not in self._winner_memo:
            if match.has_result:
                value = match.winner_id is not None
            else:
                value = not (self.slot_dead(match, 1) and self.slot_dead(match, 2))
            self._winner_memo[match.id] = value
        return self._winner_memo[match.id]

    def produces_loser(self, match: Match) -> bool:
        if match.id not in self._loser_memo:
            if match.status == STATUS_BYE:
                value = False
            elif match.status == STATUS_COMPLETED:
                value = loser_of(match) is not None
            else:
                value = not self.slot_dead(match, 1) and not self.slot_dead(match, 2)
            self._loser_memo[match.id] = value
        return self._loser_memo[match.id]


def _stage_matches(session: Session, stage_id: int) -> List[Match]:
    return session.exec(
        select(Match)
        .where(Match.stage_id == stage_id)
        .order_by(Match.round_number, Match.group_index, Match.match_number)
    ).all()


def resolve_byes(session: Session, stage: TournamentStage) -> int:
    """
    Auto-resolve elimination matches holding one team whose other slot can
    never be filled. The lone team advances with status BYE; no loser is routed.
    Repeats until no further bye appears. Returns number of byes resolved.
    """
    if BracketType(stage.stage_type) not in ELIMINATION_TYPES or not stage.is_seeded:
        return 0

    resolved = 0
    while True:
        matches = _stage_matches(session, stage.id)
        graph = StageGraph(matches, seeded=True)
        bye_match = None
        for m in matches:
            if m.has_result:
                continue
            if m.team1_id is not None and m.team2_id is None and graph.slot_dead(m, 2):
                bye_match = m
                break
            if m.team2_id is not None and m.team1_id is None and graph.slot_dead(m, 1):
                bye_match = m
                break
        if bye_match is None:
            break

        bye_match.winner_id = bye_match.team1_id or bye_match.team2_id
        bye_match.status = STATUS_BYE
        bye_match.completed_at = datetime.utcnow()
        session.add(bye_match)
        session.flush()
        apply_advancement_for_final_match(session, bye_match.id)
        session.flush()
        resolved += 1
        logger.info("Match %s resolved as bye for team %s", bye_match.match_code, bye_match.winner_id)

    return resolved


def advance_swiss_rounds(session: Session, stage: TournamentStage) -> int:
    """
    Populate the next Swiss round once every match of the round before it has
    a result. Pairings come from the fixed schedule stored as draw positions.
    Returns number of matches populated.
    """
    if BracketType(stage.stage_type) != BracketType.SWISS or not stage.draw_order:
        return 0

    by_round: Dict[int, List[Match]] = {}
    for m in _stage_matches(session, stage.id):
        by_round.setdefault(m.round_number, []).append(m)

    populated = 0
    for round_number in sorted(by_round):
        if round_number == 1:
            continue
        previous = by_round.get(round_number - 1, [])
        if not all(m.has_result for m in previous):
            break
        for m in by_round[round_number]:
            if m.team1_id is not None or m.team2_id is not None:
                continue
            m.team1_id = stage.draw_order[m.seed_1]
            m.team2_id = stage.draw_order[m.seed_2]
            session.add(m)
            populated += 1
        if populated:
            logger.info("Swiss stage %s: populated round %d", stage.id, round_number)
            break

    session.flush()
    return populated


def progress_stage(session: Session, stage: TournamentStage, match: Match) -> int:
    """Run format-specific progression after `match` changed. Returns slots/matches filled."""
    stage_type = BracketType(stage.stage_type)
    if stage_type in ELIMINATION_TYPES:
        count = apply_advancement_for_final_match(session, match.id)
        session.flush()
        count += resolve_byes(session, stage)
        return count
    if stage_type == BracketType.SWISS:
        return advance_swiss_rounds(session, stage)
    return 0


def resolve_all_dependencies(session: Session, stage_id: int) -> Dict:
    """
    Bulk re-apply progression for every resolved match in a stage.

    Returns:
        Dict with:
        - matches_processed: number of resolved matches processed
        - teams_advanced: total number of downstream slots filled
        - unknown_before: count of matches with an empty slot before
        - unknown_after: count of matches with an empty slot after

    Guarantees:
        - Idempotent (safe to call multiple times)
        - Deterministic ordering (processes by match id)
    """
    stage = session.get(TournamentStage, stage_id)
    if stage is None:
        return {"matches_processed": 0, "teams_advanced": 0, "unknown_before": 0, "unknown_after": 0}

    def unknown_count() -> int:
        return sum(
            1
            for m in _stage_matches(session, stage_id)
            if m.team1_id is None or (m.placeholder_2 is not None and m.team2_id is None)
        )

    unknown_before = unknown_count()

    resolved = session.exec(
        select(Match)
        .where(Match.stage_id == stage_id, Match.winner_id.is_not(None))
        .order_by(Match.id)
    ).all()

    matches_processed = 0
    teams_advanced = 0
    for match in resolved:
        teams_advanced += apply_advancement_for_final_match(session, match.id)
        matches_processed += 1
    session.flush()
    teams_advanced += resolve_byes(session, stage)
    teams_advanced += advance_swiss_rounds(session, stage)

    session.commit()
    session.expire_all()

    return {
        "matches_processed": matches_processed,
        "teams_advanced": teams_advanced,
        "unknown_before": unknown_before,
        "unknown_after": unknown_count(),
    }
