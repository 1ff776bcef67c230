"""
Pairing Rules - Single Source of Truth

Round-robin, group split and Swiss schedule rules used by the skeleton
generator and by Swiss round advancement.
"""
import math
from typing import List, Optional, Tuple

GROUP_COUNT = 4
MAX_SWISS_ROUNDS = 5


# =============================================================================
# Elimination sizing
# =============================================================================

def elimination_round_count(slot_count: int) -> int:
    """ceil(log2(N)); a 2-slot bracket is a single final."""
    if slot_count < 2:
        return 0
    return math.ceil(math.log2(slot_count))


def matches_in_round(slot_count: int, round_number: int) -> int:
    """Round r holds ceil(N / 2^r) matches."""
    return math.ceil(slot_count / (2 ** round_number))


# =============================================================================
# Group stage
# =============================================================================

def group_size(team_count: int) -> int:
    return math.ceil(team_count / GROUP_COUNT)


def group_positions(team_count: int) -> List[List[int]]:
    """
    Contiguous split of draw positions into GROUP_COUNT groups.

    Groups hold ceil(n/4) positions each; trailing groups may be short or empty
    (e.g. 5 teams -> [0,1], [2,3], [4], []).
    """
    size = group_size(team_count)
    groups: List[List[int]] = []
    for g in range(GROUP_COUNT):
        start = g * size
        end = min(start + size, team_count)
        groups.append(list(range(start, end)) if start < end else [])
    return groups


def group_letter(group_index: int) -> str:
    return chr(ord("A") + group_index)


# Draw positions 0 and 1 meet in the final round
GROUP_OF_FOUR_ROUNDS = (((0, 3), (1, 2)), ((0, 2), (1, 3)), ((0, 1), (2, 3)))


def rr_pairings_by_round(teams_per_group: int) -> List[Tuple[int, int, int, int]]:
    """
    Every-team-meets-every-team schedule for one group, as
    (round_number, sequence_in_round, pos_a, pos_b) with 0-based draw positions.

    A full group of 4 keeps the two top-drawn clans apart until the last round,
    so the deciding clash of the group comes last. Any other size rotates around
    a fixed first position; with an odd size one clan rests each round.
    """
    if teams_per_group < 2:
        return []
    if teams_per_group == 4:
        return [
            (round_number, seq, a, b)
            for round_number, pairs in enumerate(GROUP_OF_FOUR_ROUNDS, start=1)
            for seq, (a, b) in enumerate(pairs, start=1)
        ]

    # None marks the resting seat of an odd-sized group
    seats: List[Optional[int]] = list(range(teams_per_group))
    if teams_per_group % 2:
        seats.append(None)
    size = len(seats)

    pairings: List[Tuple[int, int, int, int]] = []
    for round_number in range(1, size):
        facing = [(seats[i], seats[size - 1 - i]) for i in range(size // 2)]
        played = [(a, b) for a, b in facing if a is not None and b is not None]
        for seq, (a, b) in enumerate(played, start=1):
            pairings.append((round_number, seq, min(a, b), max(a, b)))
        # seat 0 stays put, the last seat moves to the front of the ring
        seats = seats[:1] + seats[-1:] + seats[1:-1]
    return pairings


# =============================================================================
# Swiss
# =============================================================================

def swiss_round_count(team_count: int) -> int:
    """min(5, ceil(log2(n)) + 2)."""
    if team_count < 2:
        return 0
    return min(MAX_SWISS_ROUNDS, math.ceil(math.log2(team_count)) + 2)


def swiss_pairings(team_count: int) -> List[List[Tuple[int, int]]]:
    """
    Fixed, non-adaptive Swiss schedule over draw positions.

    Round 1 pairs positions sequentially (0v1, 2v3, ...). Later rounds follow
    a circle rotation of the draw order; pairings never depend on results.
    Odd counts leave one position out each round. When the schedule is longer
    than n-1 rounds the rotation wraps and pairings repeat.
    """
    rounds = swiss_round_count(team_count)
    n = team_count
    n2 = n + (n % 2)
    half = n2 // 2

    def to_position(abstract: int) -> int:
        # Maps circle indices so that round 1 pairs (2i, 2i+1)
        if abstract < half:
            return 2 * abstract
        return 2 * (n2 - 1 - abstract) + 1

    schedule: List[List[Tuple[int, int]]] = []
    circle = list(range(n2))
    for _ in range(rounds):
        pairs: List[Tuple[int, int]] = []
        for i in range(half):
            a = to_position(circle[i])
            b = to_position(circle[n2 - 1 - i])
            if a >= n or b >= n:
                continue
            pairs.append((min(a, b), max(a, b)))
        pairs.sort()
        schedule.append(pairs)
        circle = [circle[0]] + [circle[-1]] + circle[1:-1]
    return schedule
