"""
Bracket structure generation.

Pure functions: given a bracket format and a size, produce the full match
skeleton (rounds, slot wiring, draw positions) with no team assignments.
The skeleton is the blueprint that stage materialisation persists and that the
bracket view renders when no matches exist yet.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from arena.models.match import (
    SIDE_GRAND_FINAL,
    SIDE_GROUP,
    SIDE_LEADERBOARD,
    SIDE_LOSERS,
    SIDE_MAIN,
    SIDE_SWISS,
    SIDE_WINNERS,
)
from arena.models.tournament import BracketType
from arena.services.bracket_errors import BracketValidationError
from arena.services.pairing_rules import (
    elimination_round_count,
    group_letter,
    group_positions,
    matches_in_round,
    rr_pairings_by_round,
    swiss_pairings,
)

ROLE_WINNER = "WINNER"
ROLE_LOSER = "LOSER"

MIN_SLOTS = 2
MAX_SLOTS = 256


@dataclass(frozen=True)
class SlotSource:
    """Slot fed by the winner or loser of another skeleton match."""

    match_code: str
    role: str = ROLE_WINNER


@dataclass
class SkeletonMatch:
    side: str
    round_number: int
    match_number: int
    group_index: Optional[int] = None
    seed_1: Optional[int] = None
    seed_2: Optional[int] = None
    source_1: Optional[SlotSource] = None
    source_2: Optional[SlotSource] = None
    single_slot: bool = False
    # Round number within the side (losers bracket rounds restart at 1)
    side_round: Optional[int] = None

    @property
    def code(self) -> str:
        side_round = self.side_round or self.round_number
        if self.side == SIDE_WINNERS:
            return f"WB-R{side_round}-{self.match_number}"
        if self.side == SIDE_LOSERS:
            return f"LB-R{side_round}-{self.match_number}"
        if self.side == SIDE_GRAND_FINAL:
            return f"GF-{self.match_number}"
        if self.side == SIDE_GROUP:
            return f"G{group_letter(self.group_index or 0)}-R{self.round_number}-{self.match_number}"
        if self.side == SIDE_SWISS:
            return f"SW-R{self.round_number}-{self.match_number}"
        if self.side == SIDE_LEADERBOARD:
            return f"SLOT-{self.match_number}"
        return f"R{self.round_number}-{self.match_number}"

    def placeholder(self, slot: int) -> Optional[str]:
        if slot == 2 and self.single_slot:
            return None
        source = self.source_1 if slot == 1 else self.source_2
        seed = self.seed_1 if slot == 1 else self.seed_2
        if source is not None:
            label = "Winner" if source.role == ROLE_WINNER else "Loser"
            return f"{label} of {source.match_code}"
        if seed is not None:
            return f"SEED_{seed + 1}"
        return "TBD"

    @property
    def key(self) -> Tuple[str, Optional[int], int, int]:
        return (self.side, self.group_index, self.round_number, self.match_number)


@dataclass
class SkeletonRound:
    side: str
    round_number: int
    name: str
    matches: List[SkeletonMatch] = field(default_factory=list)
    group_index: Optional[int] = None


@dataclass
class BracketSkeleton:
    bracket_type: BracketType
    slot_count: int
    rounds: List[SkeletonRound] = field(default_factory=list)
    # (winners_round, winners_match) -> (losers_round, losers_match, slot)
    loser_routes: Dict[Tuple[int, int], Tuple[int, int, int]] = field(default_factory=dict)
    winners_rounds: int = 0
    losers_rounds: int = 0

    @property
    def matches(self) -> List[SkeletonMatch]:
        return [m for r in self.rounds for m in r.matches]

    @property
    def total_matches(self) -> int:
        return sum(len(r.matches) for r in self.rounds)

    @property
    def total_rounds(self) -> int:
        return len({(r.side, r.round_number) for r in self.rounds})

    def find(self, code: str) -> Optional[SkeletonMatch]:
        for m in self.matches:
            if m.code == code:
                return m
        return None


def round_name(round_number: int, total_rounds: int, prefix: str = "") -> str:
    """Final / Semifinal / Quarterfinal counted back from the last round."""
    remaining = total_rounds - round_number
    if remaining == 0:
        base = "Final"
    elif remaining == 1:
        base = "Semifinal"
    elif remaining == 2:
        base = "Quarterfinal"
    else:
        base = f"Round {round_number}"
    return f"{prefix}{base}"


def _seed(position: int, slot_count: int) -> Optional[int]:
    return position if position < slot_count else None


def _single_elimination(slot_count: int) -> BracketSkeleton:
    skeleton = BracketSkeleton(BracketType.SINGLE_ELIMINATION, slot_count)
    total = elimination_round_count(slot_count)
    previous: List[SkeletonMatch] = []
    for r in range(1, total + 1):
        sk_round = SkeletonRound(SIDE_MAIN, r, round_name(r, total))
        for m in range(1, matches_in_round(slot_count, r) + 1):
            match = SkeletonMatch(SIDE_MAIN, r, m)
            if r == 1:
                match.seed_1 = _seed(2 * (m - 1), slot_count)
                match.seed_2 = _seed(2 * (m - 1) + 1, slot_count)
            else:
                # Feeders 2m-1 (slot 1) and 2m (slot 2); a missing feeder is a structural bye
                if 2 * m - 1 <= len(previous):
                    match.source_1 = SlotSource(previous[2 * m - 2].code)
                if 2 * m <= len(previous):
                    match.source_2 = SlotSource(previous[2 * m - 1].code)
            sk_round.matches.append(match)
        skeleton.rounds.append(sk_round)
        previous = sk_round.matches
    skeleton.winners_rounds = total
    return skeleton


def _double_elimination(slot_count: int) -> BracketSkeleton:
    skeleton = BracketSkeleton(BracketType.DOUBLE_ELIMINATION, slot_count)
    w = elimination_round_count(slot_count)
    size = 2 ** w
    losers_total = 2 * (w - 1)
    skeleton.winners_rounds = w
    skeleton.losers_rounds = losers_total

    # Winners bracket: single elimination over the padded size
    wb: Dict[int, List[SkeletonMatch]] = {}
    for r in range(1, w + 1):
        sk_round = SkeletonRound(SIDE_WINNERS, r, round_name(r, w, "Winners "))
        for m in range(1, size // (2 ** r) + 1):
            match = SkeletonMatch(SIDE_WINNERS, r, m, side_round=r)
            if r == 1:
                match.seed_1 = _seed(2 * (m - 1), slot_count)
                match.seed_2 = _seed(2 * (m - 1) + 1, slot_count)
            else:
                match.source_1 = SlotSource(wb[r - 1][2 * m - 2].code)
                match.source_2 = SlotSource(wb[r - 1][2 * m - 1].code)
            sk_round.matches.append(match)
        wb[r] = sk_round.matches
        skeleton.rounds.append(sk_round)

    # Losers bracket
    lb: Dict[int, List[SkeletonMatch]] = {}
    for lr in range(1, losers_total + 1):
        persisted_round = w + lr
        name = "Losers Final" if lr == losers_total else f"Losers Round {lr}"
        sk_round = SkeletonRound(SIDE_LOSERS, persisted_round, name)
        if lr == 1:
            count = size // 4
        elif lr % 2 == 0:
            count = size // (2 ** (lr // 2 + 1))
        else:
            count = len(lb[lr - 1]) // 2
        for k in range(1, count + 1):
            match = SkeletonMatch(SIDE_LOSERS, persisted_round, k, side_round=lr)
            if lr == 1:
                match.source_1 = SlotSource(wb[1][2 * k - 2].code, ROLE_LOSER)
                match.source_2 = SlotSource(wb[1][2 * k - 1].code, ROLE_LOSER)
                skeleton.loser_routes[(1, 2 * k - 1)] = (1, k, 1)
                skeleton.loser_routes[(1, 2 * k)] = (1, k, 2)
            elif lr % 2 == 0:
                # Survivor of the previous losers round meets a team dropping from the winners bracket
                wb_round = lr // 2 + 1
                match.source_1 = SlotSource(lb[lr - 1][k - 1].code)
                match.source_2 = SlotSource(wb[wb_round][k - 1].code, ROLE_LOSER)
                skeleton.loser_routes[(wb_round, k)] = (lr, k, 2)
            else:
                match.source_1 = SlotSource(lb[lr - 1][2 * k - 2].code)
                match.source_2 = SlotSource(lb[lr - 1][2 * k - 1].code)
            sk_round.matches.append(match)
        lb[lr] = sk_round.matches
        skeleton.rounds.append(sk_round)

    # Grand final: winners champion vs losers champion
    gf_round = w + losers_total + 1
    grand_final = SkeletonMatch(SIDE_GRAND_FINAL, gf_round, 1, side_round=1)
    grand_final.source_1 = SlotSource(wb[w][0].code)
    if losers_total:
        grand_final.source_2 = SlotSource(lb[losers_total][0].code)
    else:
        # Two-slot bracket: the losers side is just the winners final loser
        grand_final.source_2 = SlotSource(wb[w][0].code, ROLE_LOSER)
    skeleton.rounds.append(SkeletonRound(SIDE_GRAND_FINAL, gf_round, "Grand Final", [grand_final]))
    return skeleton


def _group_stage(team_count: int) -> BracketSkeleton:
    skeleton = BracketSkeleton(BracketType.GROUP_STAGE, team_count)
    for g, positions in enumerate(group_positions(team_count)):
        by_round: Dict[int, SkeletonRound] = {}
        for round_number, seq, idx_a, idx_b in rr_pairings_by_round(len(positions)):
            sk_round = by_round.get(round_number)
            if sk_round is None:
                sk_round = SkeletonRound(
                    SIDE_GROUP, round_number, f"Group {group_letter(g)} Round {round_number}", group_index=g
                )
                by_round[round_number] = sk_round
            sk_round.matches.append(
                SkeletonMatch(
                    SIDE_GROUP,
                    round_number,
                    seq,
                    group_index=g,
                    seed_1=positions[idx_a],
                    seed_2=positions[idx_b],
                )
            )
        skeleton.rounds.extend(by_round[r] for r in sorted(by_round))
    return skeleton


def _swiss(team_count: int) -> BracketSkeleton:
    skeleton = BracketSkeleton(BracketType.SWISS, team_count)
    for r, pairs in enumerate(swiss_pairings(team_count), start=1):
        sk_round = SkeletonRound(SIDE_SWISS, r, f"Round {r}")
        for m, (pos_a, pos_b) in enumerate(pairs, start=1):
            sk_round.matches.append(SkeletonMatch(SIDE_SWISS, r, m, seed_1=pos_a, seed_2=pos_b))
        skeleton.rounds.append(sk_round)
    return skeleton


def _leaderboard(team_count: int) -> BracketSkeleton:
    skeleton = BracketSkeleton(BracketType.LEADERBOARD, team_count)
    sk_round = SkeletonRound(SIDE_LEADERBOARD, 1, "Leaderboard")
    for i in range(team_count):
        sk_round.matches.append(SkeletonMatch(SIDE_LEADERBOARD, 1, i + 1, seed_1=i, single_slot=True))
    skeleton.rounds.append(sk_round)
    return skeleton


def stage_slot_count(bracket_type: BracketType, max_teams: int, team_count: Optional[int] = None) -> int:
    """Elimination brackets are sized by capacity; other formats by the teams actually drawn."""
    if bracket_type in (BracketType.SINGLE_ELIMINATION, BracketType.DOUBLE_ELIMINATION):
        return max_teams
    return team_count if team_count is not None else max_teams


def generate_skeleton(bracket_type, max_teams: int, team_count: Optional[int] = None) -> BracketSkeleton:
    """
    Build the empty bracket for a format.

    Single/double elimination are sized by max_teams; group stage, Swiss and
    leaderboard by team_count when given (the draw), else by max_teams.
    """
    try:
        bracket_type = BracketType(bracket_type)
    except ValueError:
        raise BracketValidationError(f"Unsupported bracket type: {bracket_type}")
    if max_teams < MIN_SLOTS or max_teams > MAX_SLOTS:
        raise BracketValidationError(f"max_teams must be between {MIN_SLOTS} and {MAX_SLOTS}")
    if team_count is not None and (team_count < MIN_SLOTS or team_count > max_teams):
        raise BracketValidationError(f"team_count must be between {MIN_SLOTS} and {max_teams}")

    slot_count = stage_slot_count(bracket_type, max_teams, team_count)
    if bracket_type == BracketType.SINGLE_ELIMINATION:
        return _single_elimination(slot_count)
    if bracket_type == BracketType.DOUBLE_ELIMINATION:
        return _double_elimination(slot_count)
    if bracket_type == BracketType.GROUP_STAGE:
        return _group_stage(slot_count)
    if bracket_type == BracketType.SWISS:
        return _swiss(slot_count)
    return _leaderboard(slot_count)
