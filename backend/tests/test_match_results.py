"""Result application and progression: single/double elimination, ties, corrections, conflicts."""
from datetime import datetime

import pytest
from sqlmodel import Session, select

from arena.models.match import STATUS_COMPLETED, Match
from arena.models.tournament import BracketType, Tournament, TournamentStatus
from arena.services.advancement_service import (
    apply_advancement_for_final_match,
    resolve_all_dependencies,
    write_slot,
)
from arena.services.bracket_errors import (
    BracketNotFoundError,
    BracketStateError,
    BracketValidationError,
    SlotConflictError,
)
from arena.services.match_results import advance_match, apply_match_result, determine_winner, schedule_match
from arena.services.seed_placement import POLICY_ORDERED, run_draw


def _match(session: Session, stage_id: int, code: str) -> Match:
    return session.exec(select(Match).where(Match.stage_id == stage_id, Match.match_code == code)).one()


def _seeded(session, make_tournament, add_teams, bracket_type=BracketType.SINGLE_ELIMINATION, max_teams=8, count=8):
    tournament = make_tournament(bracket_type=bracket_type, max_teams=max_teams)
    teams = add_teams(tournament, count)
    result = run_draw(session, tournament.id, policy=POLICY_ORDERED)
    return tournament, result.stage, teams


def test_determine_winner():
    assert determine_winner(1, 2, 3, 1) == 1
    assert determine_winner(1, 2, 0, 2) == 2
    assert determine_winner(1, 2, 2, 2) is None


# ============================================================================
# Single elimination
# ============================================================================


def test_single_elimination_full_run(session, make_tournament, add_teams):
    tournament, stage, teams = _seeded(session, make_tournament, add_teams)
    t = [team.id for team in teams]

    # Round 1: team1 always wins
    for m in range(1, 5):
        outcome = apply_match_result(session, _match(session, stage.id, f"R1-{m}").id, 3, 1)
        assert outcome.advanced_count == 1
        assert outcome.match.winner_id == t[2 * (m - 1)]
    session.expire_all()

    semi1 = _match(session, stage.id, "R2-1")
    semi2 = _match(session, stage.id, "R2-2")
    assert (semi1.team1_id, semi1.team2_id) == (t[0], t[2])
    assert (semi2.team1_id, semi2.team2_id) == (t[4], t[6])

    # Semifinals: team2 wins
    apply_match_result(session, semi1.id, 0, 2)
    apply_match_result(session, semi2.id, 1, 2)
    session.expire_all()
    final = _match(session, stage.id, "R3-1")
    assert (final.team1_id, final.team2_id) == (t[2], t[6])

    outcome = apply_match_result(session, final.id, 5, 4)
    assert outcome.advanced_count == 0  # terminal
    assert outcome.tournament_completed is True
    session.expire_all()
    assert session.get(Tournament, tournament.id).status == TournamentStatus.COMPLETED


def test_invalid_results_are_rejected(session, make_tournament, add_teams):
    _, stage, _ = _seeded(session, make_tournament, add_teams, max_teams=4, count=4)
    r1 = _match(session, stage.id, "R1-1")

    with pytest.raises(BracketValidationError):
        apply_match_result(session, r1.id, -1, 2)
    with pytest.raises(BracketNotFoundError):
        apply_match_result(session, 99999, 1, 0)
    with pytest.raises(BracketValidationError):
        apply_match_result(session, r1.id, 2, 2)
    with pytest.raises(BracketValidationError, match="score2 is required"):
        apply_match_result(session, r1.id, 3)
    with pytest.raises(BracketStateError):
        apply_match_result(session, _match(session, stage.id, "R2-1").id, 1, 0)

    session.expire_all()
    r1 = _match(session, stage.id, "R1-1")
    assert r1.score1 is None
    assert r1.winner_id is None


def test_correcting_result_replaces_unplayed_downstream_slot(session, make_tournament, add_teams):
    _, stage, teams = _seeded(session, make_tournament, add_teams, max_teams=4, count=4)
    r1_1 = _match(session, stage.id, "R1-1")

    apply_match_result(session, r1_1.id, 2, 0)
    apply_match_result(session, r1_1.id, 0, 2)
    session.expire_all()
    assert _match(session, stage.id, "R2-1").team1_id == teams[1].id

    apply_match_result(session, _match(session, stage.id, "R1-2").id, 1, 0)
    apply_match_result(session, _match(session, stage.id, "R2-1").id, 1, 0)
    with pytest.raises(BracketStateError):
        apply_match_result(session, r1_1.id, 3, 0)

    session.expire_all()
    r1_1 = _match(session, stage.id, "R1-1")
    assert (r1_1.score1, r1_1.score2) == (0, 2)


def test_advancement_is_idempotent(session, make_tournament, add_teams):
    _, stage, teams = _seeded(session, make_tournament, add_teams, max_teams=4, count=4)
    r1_1 = _match(session, stage.id, "R1-1")
    apply_match_result(session, r1_1.id, 2, 1)

    assert apply_advancement_for_final_match(session, r1_1.id) == 0
    assert advance_match(session, r1_1.id) == 0

    first = resolve_all_dependencies(session, stage.id)
    second = resolve_all_dependencies(session, stage.id)
    assert first["matches_processed"] == 1
    assert second["teams_advanced"] == 0
    assert second["unknown_after"] == first["unknown_after"]
    assert _match(session, stage.id, "R2-1").team1_id == teams[0].id


def test_advance_requires_a_winner(session, make_tournament, add_teams):
    _, stage, _ = _seeded(session, make_tournament, add_teams, max_teams=4, count=4)
    with pytest.raises(BracketStateError):
        advance_match(session, _match(session, stage.id, "R1-1").id)


def test_resolve_all_dependencies_fills_missing_slots(session, make_tournament, add_teams):
    _, stage, teams = _seeded(session, make_tournament, add_teams, max_teams=4, count=4)
    r1_1 = _match(session, stage.id, "R1-1")
    apply_match_result(session, r1_1.id, 2, 1)

    # Simulate a lost downstream write
    r2 = _match(session, stage.id, "R2-1")
    r2.team1_id = None
    session.add(r2)
    session.commit()

    result = resolve_all_dependencies(session, stage.id)
    assert result["teams_advanced"] == 1
    assert result["matches_processed"] == 1
    assert _match(session, stage.id, "R2-1").team1_id == teams[0].id


def test_stale_slot_write_raises_conflict(session, make_tournament, add_teams):
    _, stage, teams = _seeded(session, make_tournament, add_teams, max_teams=4, count=4)
    r2 = _match(session, stage.id, "R2-1")
    write_slot(session, r2, 1, None, teams[0].id)
    with pytest.raises(SlotConflictError):
        write_slot(session, r2, 1, None, teams[1].id)
    session.rollback()


# ============================================================================
# Double elimination
# ============================================================================


def test_double_elimination_4_team_run(session, make_tournament, add_teams):
    tournament, stage, teams = _seeded(
        session, make_tournament, add_teams, bracket_type=BracketType.DOUBLE_ELIMINATION, max_teams=4, count=4
    )
    t1, t2, t3, t4 = [team.id for team in teams]

    apply_match_result(session, _match(session, stage.id, "WB-R1-1").id, 2, 0)  # t1 beats t2
    apply_match_result(session, _match(session, stage.id, "WB-R1-2").id, 2, 1)  # t3 beats t4
    session.expire_all()

    wb_final = _match(session, stage.id, "WB-R2-1")
    lb1 = _match(session, stage.id, "LB-R1-1")
    assert (wb_final.team1_id, wb_final.team2_id) == (t1, t3)
    assert (lb1.team1_id, lb1.team2_id) == (t2, t4)

    apply_match_result(session, lb1.id, 2, 0)  # t2 survives
    apply_match_result(session, wb_final.id, 2, 1)  # t1 wins winners bracket, t3 drops
    session.expire_all()

    lb_final = _match(session, stage.id, "LB-R2-1")
    assert (lb_final.team1_id, lb_final.team2_id) == (t2, t3)
    gf = _match(session, stage.id, "GF-1")
    assert gf.team1_id == t1
    assert gf.team2_id is None

    apply_match_result(session, lb_final.id, 0, 3)  # t3 wins losers bracket
    session.expire_all()
    gf = _match(session, stage.id, "GF-1")
    assert (gf.team1_id, gf.team2_id) == (t1, t3)

    outcome = apply_match_result(session, gf.id, 1, 2)
    assert outcome.match.winner_id == t3
    assert outcome.tournament_completed is True
    session.expire_all()
    assert session.get(Tournament, tournament.id).status == TournamentStatus.COMPLETED


def test_double_elimination_bye_sends_no_loser(session, make_tournament, add_teams):
    _, stage, teams = _seeded(
        session, make_tournament, add_teams, bracket_type=BracketType.DOUBLE_ELIMINATION, max_teams=4, count=3
    )
    t1, t2, t3 = [team.id for team in teams]
    session.expire_all()

    # t3 has no opponent in WB-R1-2
    bye = _match(session, stage.id, "WB-R1-2")
    assert bye.winner_id == t3
    assert _match(session, stage.id, "WB-R2-1").team2_id == t3

    apply_match_result(session, _match(session, stage.id, "WB-R1-1").id, 0, 1)  # t2 beats t1
    session.expire_all()
    # t1 drops to LB-R1-1 where the other slot is dead, so it advances by bye
    lb1 = _match(session, stage.id, "LB-R1-1")
    assert lb1.team1_id == t1
    assert lb1.winner_id == t1
    assert _match(session, stage.id, "LB-R2-1").team1_id == t1


# ============================================================================
# Group stage / Swiss / Leaderboard
# ============================================================================


def test_group_stage_tie_is_recorded(session, make_tournament, add_teams):
    _, stage, _ = _seeded(session, make_tournament, add_teams, bracket_type=BracketType.GROUP_STAGE, count=8)
    match = _match(session, stage.id, "GA-R1-1")
    outcome = apply_match_result(session, match.id, 1, 1)
    assert outcome.match.winner_id is None
    assert outcome.match.status == STATUS_COMPLETED
    assert outcome.advanced_count == 0


def test_swiss_next_round_waits_for_current_round(session, make_tournament, add_teams):
    _, stage, teams = _seeded(session, make_tournament, add_teams, bracket_type=BracketType.SWISS, count=4)
    order = stage.draw_order
    r1 = [_match(session, stage.id, "SW-R1-1"), _match(session, stage.id, "SW-R1-2")]
    assert (r1[0].team1_id, r1[0].team2_id) == (order[0], order[1])
    assert _match(session, stage.id, "SW-R2-1").team1_id is None

    apply_match_result(session, r1[0].id, 2, 1)
    session.expire_all()
    assert _match(session, stage.id, "SW-R2-1").team1_id is None

    outcome = apply_match_result(session, r1[1].id, 1, 1)
    assert outcome.advanced_count == 2
    session.expire_all()
    r2_1 = _match(session, stage.id, "SW-R2-1")
    r2_2 = _match(session, stage.id, "SW-R2-2")
    assert (r2_1.team1_id, r2_1.team2_id) == (order[0], order[3])
    assert (r2_2.team1_id, r2_2.team2_id) == (order[1], order[2])


def test_leaderboard_records_points_without_winner(session, make_tournament, add_teams):
    _, stage, teams = _seeded(session, make_tournament, add_teams, bracket_type=BracketType.LEADERBOARD, count=3)
    slot = _match(session, stage.id, "SLOT-1")
    outcome = apply_match_result(session, slot.id, 42, 0)
    assert outcome.match.score1 == 42
    assert outcome.match.score2 is None
    assert outcome.match.winner_id is None


# ============================================================================
# Scheduling
# ============================================================================


def test_schedule_match_sets_time(session, make_tournament, add_teams):
    tournament, stage, _ = _seeded(session, make_tournament, add_teams, max_teams=4, count=4)
    r1 = _match(session, stage.id, "R1-1")
    when = datetime(2026, 11, 1, 18, 30)

    scheduled = schedule_match(session, r1.id, when, tournament_id=tournament.id)
    assert scheduled.scheduled_time == when
    assert scheduled.status == "PENDING"

    with pytest.raises(BracketValidationError):
        schedule_match(session, r1.id, None)
    with pytest.raises(BracketNotFoundError):
        schedule_match(session, r1.id, when, tournament_id=tournament.id + 1)
    with pytest.raises(BracketNotFoundError):
        schedule_match(session, 99999, when)
