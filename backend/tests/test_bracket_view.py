"""Bracket view assembly: skeleton merge, empty stages, per-format shapes."""
from arena.models.match import Match
from arena.models.team import Team
from arena.models.tournament import BracketType
from arena.services.bracket_structure import generate_skeleton
from arena.services.bracket_view import assemble_bracket_view, build_stage_view, skeleton_to_dict
from arena.services.match_results import apply_match_result
from arena.services.seed_placement import POLICY_ORDERED, run_draw


def test_empty_stage_renders_like_skeleton():
    skeleton = generate_skeleton(BracketType.SINGLE_ELIMINATION, 8)
    assert assemble_bracket_view(skeleton, [], {}) == skeleton_to_dict(skeleton)

    view = skeleton_to_dict(skeleton)
    assert [r["name"] for r in view["rounds"]] == ["Quarterfinal", "Semifinal", "Final"]
    first = view["rounds"][0]["matches"][0]
    assert first["id"] is None
    assert first["team1"] is None
    assert first["placeholder_1"] == "SEED_1"
    assert first["status"] == "PENDING"


def test_persisted_rows_supply_teams_and_scores():
    skeleton = generate_skeleton(BracketType.SINGLE_ELIMINATION, 4)
    teams = {1: Team(id=1, tournament_id=1, name="Royal Raiders"), 2: Team(id=2, tournament_id=1, name="Hog Riders")}
    row = Match(
        id=10,
        tournament_id=1,
        stage_id=1,
        match_code="R1-1",
        bracket_side="MAIN",
        round_number=1,
        match_number=1,
        team1_id=1,
        team2_id=2,
        placeholder_1="SEED_1",
        placeholder_2="SEED_2",
        score1=3,
        score2=1,
        winner_id=1,
        status="COMPLETED",
    )
    view = assemble_bracket_view(skeleton, [row], teams)
    merged = view["rounds"][0]["matches"][0]
    assert merged["id"] == 10
    assert merged["team1"]["name"] == "Royal Raiders"
    assert merged["team2"]["name"] == "Hog Riders"
    assert (merged["score1"], merged["score2"], merged["winner_id"]) == (3, 1, 1)
    # Rows the stage does not have still render from the skeleton
    assert view["rounds"][0]["matches"][1]["id"] is None
    assert view["rounds"][1]["matches"][0]["placeholder_1"] == "Winner of R1-1"


def test_unknown_team_id_does_not_fail():
    skeleton = generate_skeleton(BracketType.SINGLE_ELIMINATION, 2)
    row = Match(
        id=1, tournament_id=1, stage_id=1, match_code="R1-1", bracket_side="MAIN",
        round_number=1, match_number=1, team1_id=77, placeholder_1="SEED_1", placeholder_2="SEED_2",
    )
    view = assemble_bracket_view(skeleton, [row], {})
    assert view["rounds"][0]["matches"][0]["team1"]["name"] == "Team 77"


def test_double_elimination_view_shape():
    view = skeleton_to_dict(generate_skeleton(BracketType.DOUBLE_ELIMINATION, 8))
    assert [r["name"] for r in view["winners_bracket"]] == ["Winners Quarterfinal", "Winners Semifinal", "Winners Final"]
    assert len(view["losers_bracket"]) == 4
    assert view["losers_bracket"][-1]["name"] == "Losers Final"
    assert view["grand_final"]["match_code"] == "GF-1"
    assert view["grand_final"]["placeholder_2"] == "Winner of LB-R4-1"


def test_group_stage_view_includes_standings(session, make_tournament, add_teams):
    tournament = make_tournament(bracket_type=BracketType.GROUP_STAGE, max_teams=16)
    teams = add_teams(tournament, 8)
    result = run_draw(session, tournament.id, policy=POLICY_ORDERED)
    ga = [m for m in result.stage.matches if m.match_code == "GA-R1-1"][0]
    apply_match_result(session, ga.id, 2, 0)

    view = build_stage_view(session, result.stage)
    assert [g["name"] for g in view["groups"]] == ["Group A", "Group B", "Group C", "Group D"]
    standings = view["groups"][0]["standings"]
    assert standings[0]["team_id"] == teams[0].id
    assert standings[0]["points"] == 3
    assert standings[1]["points"] == 0


def test_leaderboard_view(session, make_tournament, add_teams):
    tournament = make_tournament(bracket_type=BracketType.LEADERBOARD)
    teams = add_teams(tournament, 3)
    result = run_draw(session, tournament.id, policy=POLICY_ORDERED)
    slot = [m for m in result.stage.matches if m.match_code == "SLOT-2"][0]
    apply_match_result(session, slot.id, 30)

    view = build_stage_view(session, result.stage)
    assert len(view["matches"]) == 3
    assert view["standings"][0]["team_id"] == teams[1].id
    assert view["standings"][0]["total_score"] == 30
    assert view["standings"][0]["position"] == 1
