"""
Test suite for the live scoring API
Tests routes defined in routes/match_routes.py
"""

import pytest

from database import db
from database.models import Match as DBMatch, Player as DBPlayer, Team as DBTeam


def player_ids(team):
    return [str(p.id) for p in team.players]


def _create(client, team_a, team_b, **extra):
    body = {
        "team_a_id": team_a.id,
        "team_b_id": team_b.id,
        "match_format": "T20",
        "date": "2026-05-01T14:00:00",
    }
    body.update(extra)
    response = client.post("/api/matches", json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["match"]["id"]


def _start(client, match_id, batting, bowling):
    bat, bowl = player_ids(batting), player_ids(bowling)
    return client.post(f"/api/matches/{match_id}/start", json={
        "striker_id": bat[0],
        "non_striker_id": bat[1],
        "bowler_id": bowl[10],
    })


def _ball(client, match_id, **delta):
    return client.post(f"/api/matches/{match_id}/ball", json=delta)


def _squad(owner, name, short_code, size):
    team = DBTeam(name=name, short_code=short_code, user_id=owner.id)
    db.session.add(team)
    db.session.flush()
    for i in range(1, size + 1):
        db.session.add(DBPlayer(team_id=team.id, name=f"{short_code} Player {i}", role="Batsman"))
    db.session.commit()
    return team


@pytest.fixture
def live_match(scorer_client, team_a, team_b):
    """A T20 match with the openers and first bowler in place."""
    match_id = _create(scorer_client, team_a, team_b)
    response = _start(scorer_client, match_id, team_a, team_b)
    assert response.status_code == 200
    return match_id


class TestCreateMatch:
    """Tests for match creation."""

    def test_create_match_success(self, scorer_client, team_a, team_b):
        """A new match starts in Setup with team A batting."""
        response = scorer_client.post("/api/matches", json={
            "team_a_id": team_a.id,
            "team_b_id": team_b.id,
            "match_format": "ODI",
            "venue": "Riverside Oval",
            "date": "2026-05-01T10:30:00",
        })
        assert response.status_code == 201
        data = response.get_json()
        assert data["match"]["status"] == "Scheduled"
        assert data["match"]["game_id"] == f"{min(str(team_a.id), str(team_b.id))}_" \
                                           f"{max(str(team_a.id), str(team_b.id))}_2026-05-01"
        assert data["state"]["battingTeamId"] == str(team_a.id)
        assert data["state"]["history"] == []

    def test_create_match_same_team(self, scorer_client, team_a):
        """Both sides must be different teams."""
        response = scorer_client.post("/api/matches", json={
            "team_a_id": team_a.id, "team_b_id": team_a.id,
        })
        assert response.status_code == 400

    def test_create_match_unknown_format(self, scorer_client, team_a, team_b):
        """Only registered formats are accepted."""
        response = scorer_client.post("/api/matches", json={
            "team_a_id": team_a.id, "team_b_id": team_b.id, "match_format": "Hundred",
        })
        assert response.status_code == 400

    def test_create_match_viewer_forbidden(self, viewer_client, team_a, team_b):
        """Viewers cannot create matches."""
        response = viewer_client.post("/api/matches", json={
            "team_a_id": team_a.id, "team_b_id": team_b.id,
        })
        assert response.status_code == 403

    def test_create_match_unauthenticated(self, client, team_a, team_b):
        """Anonymous requests are rejected with JSON 401."""
        response = client.post("/api/matches", json={
            "team_a_id": team_a.id, "team_b_id": team_b.id,
        })
        assert response.status_code == 401

    def test_duplicate_fixture_flagged(self, scorer_client, team_a, team_b):
        """Same teams on the same day: the second match points at the first."""
        first = _create(scorer_client, team_a, team_b)
        response = scorer_client.post("/api/matches", json={
            "team_a_id": team_b.id,
            "team_b_id": team_a.id,
            "date": "2026-05-01T18:00:00",
        })
        data = response.get_json()
        assert data["match"]["is_duplicate"] is True
        assert data["match"]["primary_match_id"] == first


class TestGetMatch:
    """Tests for reading match state."""

    def test_get_new_match(self, scorer_client, team_a, team_b):
        match_id = _create(scorer_client, team_a, team_b)
        response = scorer_client.get(f"/api/matches/{match_id}")
        assert response.status_code == 200
        data = response.get_json()
        assert data["phase"] == "Setup"
        assert data["read_only"] is False
        assert data["match_over"] is False

    def test_get_unknown_match(self, scorer_client):
        response = scorer_client.get("/api/matches/does-not-exist")
        assert response.status_code == 404

    def test_viewer_sees_read_only(self, live_match, viewer_client):
        response = viewer_client.get(f"/api/matches/{live_match}")
        assert response.status_code == 200
        assert response.get_json()["read_only"] is True


class TestStartMatch:
    """Tests for the opening selection."""

    def test_start_missing_fields(self, scorer_client, team_a, team_b):
        match_id = _create(scorer_client, team_a, team_b)
        response = scorer_client.post(f"/api/matches/{match_id}/start", json={"striker_id": "1"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "All fields are required to start the match."

    def test_start_same_batters(self, scorer_client, team_a, team_b):
        match_id = _create(scorer_client, team_a, team_b)
        bat = player_ids(team_a)
        response = scorer_client.post(f"/api/matches/{match_id}/start", json={
            "striker_id": bat[0], "non_striker_id": bat[0], "bowler_id": player_ids(team_b)[10],
        })
        assert response.status_code == 400
        assert response.get_json()["error"] == "Striker and Non-Striker must be different players."

    def test_start_with_wrong_team(self, scorer_client, team_a, team_b):
        match_id = _create(scorer_client, team_a, team_b)
        response = _start(scorer_client, match_id, team_b, team_a)
        assert response.status_code == 400

    def test_start_success(self, scorer_client, team_a, team_b):
        match_id = _create(scorer_client, team_a, team_b)
        response = _start(scorer_client, match_id, team_a, team_b)
        assert response.status_code == 200
        data = response.get_json()
        assert data["phase"] == "Live"
        assert data["state"]["strikerId"] == player_ids(team_a)[0]
        assert db.session.get(DBMatch, match_id).status == "Live"


class TestScoring:
    """Tests for ball, wicket, undo and edit endpoints."""

    def test_boundary(self, scorer_client, live_match):
        response = _ball(scorer_client, live_match, runs=4)
        assert response.status_code == 200
        data = response.get_json()
        assert data["state"]["score"] == 4
        assert data["event"]["runs"] == 4
        assert data["commentary"]["text"]
        assert db.session.get(DBMatch, live_match).team_a_score == "4/0 (0.1)"

    def test_negative_runs_rejected(self, scorer_client, live_match):
        response = _ball(scorer_client, live_match, runs=-2)
        assert response.status_code == 400

    def test_wicket_through_ball_endpoint_rejected(self, scorer_client, live_match):
        response = _ball(scorer_client, live_match, is_wicket=True)
        assert response.status_code == 400

    def test_over_needs_new_bowler(self, scorer_client, live_match, team_b):
        for _ in range(6):
            _ball(scorer_client, live_match, runs=0)

        response = _ball(scorer_client, live_match, runs=1)
        assert response.status_code == 409
        assert "bowler selection required" in response.get_json()["error"]

        bowl = player_ids(team_b)
        response = scorer_client.post(f"/api/matches/{live_match}/bowler", json={"bowler_id": bowl[10]})
        assert response.status_code == 400
        assert "consecutive" in response.get_json()["error"]

        response = scorer_client.post(f"/api/matches/{live_match}/bowler", json={"bowler_id": bowl[9]})
        assert response.status_code == 200
        assert _ball(scorer_client, live_match, runs=1).status_code == 200

    def test_caught_needs_fielder(self, scorer_client, live_match, team_a):
        response = scorer_client.post(f"/api/matches/{live_match}/wicket", json={
            "wicket_type": "Caught", "out_player_id": player_ids(team_a)[0],
        })
        assert response.status_code == 400

    def test_wicket_and_new_batter(self, scorer_client, live_match, team_a):
        bat = player_ids(team_a)
        response = scorer_client.post(f"/api/matches/{live_match}/wicket", json={
            "wicket_type": "Bowled", "out_player_id": bat[0],
        })
        assert response.status_code == 200
        state = response.get_json()["state"]
        assert state["wickets"] == 1
        assert state["strikerId"] == ""

        response = scorer_client.post(f"/api/matches/{live_match}/batter", json={"player_id": bat[0]})
        assert response.status_code == 400

        response = scorer_client.post(f"/api/matches/{live_match}/batter",
                                      json={"player_id": bat[2], "slot": "striker"})
        assert response.status_code == 200
        assert response.get_json()["state"]["strikerId"] == bat[2]

    def test_undo_nothing(self, scorer_client, team_a, team_b):
        match_id = _create(scorer_client, team_a, team_b)
        response = scorer_client.post(f"/api/matches/{match_id}/undo")
        assert response.status_code == 409
        assert response.get_json()["error"] == "Cannot undo"

    def test_undo_ball(self, scorer_client, live_match):
        _ball(scorer_client, live_match, runs=6)
        response = scorer_client.post(f"/api/matches/{live_match}/undo")
        assert response.status_code == 200
        assert response.get_json()["state"]["score"] == 0

    def test_edit_ball(self, scorer_client, live_match):
        event = _ball(scorer_client, live_match, runs=4).get_json()["event"]

        response = scorer_client.patch(f"/api/matches/{live_match}/balls/{event['timestamp']}",
                                       json={"shotHeight": "Lofted"})
        assert response.status_code == 200
        assert response.get_json()["state"]["score"] == 4

        response = scorer_client.patch(f"/api/matches/{live_match}/balls/{event['timestamp']}",
                                       json={"runs": 6})
        assert response.get_json()["state"]["score"] == 6

    def test_edit_unknown_ball(self, scorer_client, live_match):
        response = scorer_client.patch(f"/api/matches/{live_match}/balls/1", json={"runs": 2})
        assert response.status_code == 404

    def test_retire_and_correct(self, scorer_client, live_match, team_a):
        bat = player_ids(team_a)
        response = scorer_client.post(f"/api/matches/{live_match}/correct-player", json={
            "old_id": bat[0], "new_id": bat[3], "role": "striker",
        })
        assert response.get_json()["state"]["strikerId"] == bat[3]

        response = scorer_client.post(f"/api/matches/{live_match}/retire", json={
            "player_id": bat[3], "retire_type": "RetiredHurt",
        })
        assert response.status_code == 200
        assert response.get_json()["state"]["strikerId"] == ""

    def test_stats_and_scorecard(self, scorer_client, live_match, team_b):
        _ball(scorer_client, live_match, runs=4)
        response = scorer_client.get(f"/api/matches/{live_match}/stats")
        data = response.get_json()
        assert data["stats"]["run_rate"] == 24.0
        assert player_ids(team_b)[10] in data["eligible_bowlers"]
        assert data["bowler_availability"][player_ids(team_b)[10]]["overs_remaining"] == 4

        response = scorer_client.get(f"/api/matches/{live_match}/scorecard")
        assert response.mimetype == "text/plain"
        assert "Riverside Rangers 4/0 (0.1 ov)" in response.get_data(as_text=True)


class TestScorerLock:
    """Tests for the single-writer lock."""

    def test_first_scorer_takes_lock(self, scorer_client, second_scorer_client, team_a, team_b):
        match_id = _create(scorer_client, team_a, team_b)
        assert scorer_client.get(f"/api/matches/{match_id}").get_json()["state"]["activeScorerId"] is None

        assert _start(scorer_client, match_id, team_a, team_b).status_code == 200
        response = _ball(scorer_client, match_id, runs=1)
        assert response.get_json()["state"]["activeScorerId"] == "scorer@example.com"

        response = _ball(second_scorer_client, match_id, runs=1)
        assert response.status_code == 403
        assert response.get_json()["read_only"] is True
        assert db.session.get(DBMatch, match_id).active_scorer_id == "scorer@example.com"

    def test_unlocked_match_goes_to_next_writer(self, scorer_client, second_scorer_client, team_a, team_b):
        match_id = _create(scorer_client, team_a, team_b)
        response = _start(second_scorer_client, match_id, team_a, team_b)
        assert response.status_code == 200
        assert response.get_json()["state"]["activeScorerId"] == "scorer2@example.com"
        assert _ball(scorer_client, match_id, runs=1).status_code == 403

    def test_locked_match_is_read_only(self, scorer_client, second_scorer_client, live_match):
        assert scorer_client.post(f"/api/matches/{live_match}/lock/claim").status_code == 200

        response = _ball(second_scorer_client, live_match, runs=1)
        assert response.status_code == 403
        data = response.get_json()
        assert data["read_only"] is True
        assert data["active_scorer_id"] == "scorer@example.com"

        response = second_scorer_client.post(f"/api/matches/{live_match}/lock/claim")
        assert response.status_code == 403

    def test_release_lets_others_score(self, scorer_client, second_scorer_client, live_match):
        scorer_client.post(f"/api/matches/{live_match}/lock/claim")
        scorer_client.post(f"/api/matches/{live_match}/lock/release")
        response = _ball(second_scorer_client, live_match, runs=1)
        assert response.status_code == 200
        assert response.get_json()["state"]["activeScorerId"] == "scorer2@example.com"

    def test_admin_override(self, scorer_client, admin_client, live_match):
        scorer_client.post(f"/api/matches/{live_match}/lock/claim")
        response = admin_client.post(f"/api/matches/{live_match}/lock/override")
        assert response.status_code == 200
        assert response.get_json()["state"]["activeScorerId"] == "admin@example.com"
        assert _ball(scorer_client, live_match, runs=1).status_code == 403
        assert db.session.get(DBMatch, live_match).active_scorer_id == "admin@example.com"

    def test_scorer_cannot_override(self, scorer_client, second_scorer_client, live_match):
        scorer_client.post(f"/api/matches/{live_match}/lock/claim")
        response = second_scorer_client.post(f"/api/matches/{live_match}/lock/override")
        assert response.status_code == 403

    def test_viewer_cannot_score(self, viewer_client, live_match):
        assert _ball(viewer_client, live_match, runs=1).status_code == 403
        assert viewer_client.post(f"/api/matches/{live_match}/lock/claim").status_code == 403


class TestInningsAndMatchEnd:
    """Tests for innings transitions and the match result."""

    def test_second_innings_target(self, scorer_client, live_match, team_b):
        _ball(scorer_client, live_match, runs=4)
        response = scorer_client.post(f"/api/matches/{live_match}/innings/next")
        assert response.status_code == 200
        state = response.get_json()["state"]
        assert state["innings"] == 2
        assert state["target"] == 5
        assert state["battingTeamId"] == str(team_b.id)
        assert response.get_json()["lead"] == "Need 5 from 120 balls"

    def test_follow_on_only_in_tests(self, scorer_client, live_match):
        response = scorer_client.post(f"/api/matches/{live_match}/innings/next", json={"follow_on": True})
        assert response.status_code == 400

    def test_chase_completes_match(self, scorer_client, team_a, team_b):
        match_id = _create(scorer_client, team_a, team_b, match_format="custom", overs_per_side=1)
        _start(scorer_client, match_id, team_a, team_b)
        _ball(scorer_client, match_id, runs=10)
        scorer_client.post(f"/api/matches/{match_id}/innings/next")
        assert _start(scorer_client, match_id, team_b, team_a).status_code == 200

        data = _ball(scorer_client, match_id, runs=12).get_json()
        assert data["completion_reason"] == "Target reached"
        assert data["match_over"] is True
        assert data["result"]["result"] == "Hilltop Hawks won by 10 wicket(s)"

        response = scorer_client.post(f"/api/matches/{match_id}/innings/end", json={"match_end": True})
        assert response.status_code == 200
        row = db.session.get(DBMatch, match_id)
        assert row.status == "Completed"
        assert row.result_description == "Hilltop Hawks won by 10 wicket(s)"
        assert row.winner_team_id == team_b.id
        assert row.team_a_score == "10/0"

        assert _ball(scorer_client, match_id, runs=1).status_code == 409

    def test_last_hour_not_in_t20(self, scorer_client, live_match):
        response = scorer_client.post(f"/api/matches/{live_match}/last-hour")
        assert response.status_code == 409

    def test_last_hour_in_test(self, scorer_client, team_a, team_b):
        match_id = _create(scorer_client, team_a, team_b, match_format="Test")
        _start(scorer_client, match_id, team_a, team_b)
        response = scorer_client.post(f"/api/matches/{match_id}/last-hour")
        assert response.status_code == 200
        assert response.get_json()["state"]["adjustments"]["lastHourOversRemaining"] == 15

    def test_session_and_timer(self, scorer_client, live_match):
        response = scorer_client.post(f"/api/matches/{live_match}/session")
        assert response.get_json()["session"] == "Day 1 - Session 2"

        assert scorer_client.post(f"/api/matches/{live_match}/timer/pause").status_code == 200
        assert scorer_client.post(f"/api/matches/{live_match}/timer/pause").status_code == 409
        assert scorer_client.post(f"/api/matches/{live_match}/timer/resume").status_code == 200
        assert scorer_client.post(f"/api/matches/{live_match}/timer/stop").status_code == 404

    def test_metadata(self, scorer_client, live_match):
        response = scorer_client.patch(f"/api/matches/{live_match}/metadata",
                                       json={"umpires": ["Dar", "Bowden"]})
        assert response.status_code == 200
        assert response.get_json()["state"]["umpires"] == ["Dar", "Bowden"]

        response = scorer_client.patch(f"/api/matches/{live_match}/metadata", json={"bogus": 1})
        assert response.status_code == 400

    def test_metadata_rejects_same_batter_at_both_ends(self, scorer_client, live_match, team_a):
        bat = player_ids(team_a)
        response = scorer_client.patch(f"/api/matches/{live_match}/metadata", json={"strikerId": bat[1]})
        assert response.status_code == 400

        response = scorer_client.patch(f"/api/matches/{live_match}/metadata",
                                       json={"strikerId": bat[2], "nonStrikerId": bat[2]})
        assert response.status_code == 400
        assert response.get_json()["error"] == "Striker and Non-Striker must be different players."

        state = scorer_client.get(f"/api/matches/{live_match}").get_json()["state"]
        assert (state["strikerId"], state["nonStrikerId"]) == (bat[0], bat[1])

    def test_metadata_checks_rosters_and_dismissals(self, scorer_client, live_match, team_a, team_b):
        bat = player_ids(team_a)
        url = f"/api/matches/{live_match}/metadata"
        assert scorer_client.patch(url, json={"strikerId": player_ids(team_b)[0]}).status_code == 400
        assert scorer_client.patch(url, json={"bowlerId": bat[5]}).status_code == 400

        scorer_client.post(f"/api/matches/{live_match}/wicket", json={
            "wicket_type": "Bowled", "out_player_id": bat[0],
        })
        response = scorer_client.patch(url, json={"strikerId": bat[0]})
        assert response.status_code == 400
        assert response.get_json()["error"] == "Batter is already out"

        response = scorer_client.patch(url, json={"strikerId": bat[2]})
        assert response.status_code == 200
        assert response.get_json()["state"]["strikerId"] == bat[2]

    def test_flexible_squad_result(self, scorer_client, scorer_user):
        rangers = _squad(scorer_user, "Pocket Rangers", "PR", 3)
        hawks = _squad(scorer_user, "Pocket Hawks", "PH", 3)
        match_id = _create(scorer_client, rangers, hawks, match_format="custom", overs_per_side=1,
                           players_per_side=3, allow_flexible_squad=True)

        def bowl_out(batting, bowling, runs):
            bat, bowl = player_ids(batting), player_ids(bowling)
            response = scorer_client.post(f"/api/matches/{match_id}/start", json={
                "striker_id": bat[0], "non_striker_id": bat[1], "bowler_id": bowl[2],
            })
            assert response.status_code == 200
            _ball(scorer_client, match_id, runs=runs)
            scorer_client.post(f"/api/matches/{match_id}/wicket",
                               json={"wicket_type": "Bowled", "out_player_id": bat[0]})
            scorer_client.post(f"/api/matches/{match_id}/batter", json={"player_id": bat[2]})
            return scorer_client.post(f"/api/matches/{match_id}/wicket",
                                      json={"wicket_type": "Bowled", "out_player_id": bat[2]}).get_json()

        assert bowl_out(rangers, hawks, 8)["completion_reason"] == "All out"
        assert scorer_client.post(f"/api/matches/{match_id}/innings/next").status_code == 200

        data = bowl_out(hawks, rangers, 4)
        assert data["completion_reason"] == "All out"
        assert data["match_over"] is True
        assert data["result"]["result"] == "Pocket Rangers won by 4 run(s)"

        scorer_client.post(f"/api/matches/{match_id}/innings/end", json={"match_end": True})
        row = db.session.get(DBMatch, match_id)
        assert row.result_description == "Pocket Rangers won by 4 run(s)"
        assert row.winner_team_id == rangers.id
        assert (row.margin_type, row.margin_value) == ("runs", 4)


class TestPushState:
    """Tests for whole-state writes from another client."""

    def test_push_replaces_state(self, scorer_client, live_match):
        state = scorer_client.get(f"/api/matches/{live_match}").get_json()["state"]
        state["score"] = 99
        state["version"] += 1

        response = scorer_client.put(f"/api/matches/{live_match}/state", json={"state": state})
        assert response.status_code == 200
        assert response.get_json()["state"]["score"] == 99
        assert db.session.get(DBMatch, live_match).saved_state["score"] == 99

    def test_push_requires_state(self, scorer_client, live_match):
        response = scorer_client.put(f"/api/matches/{live_match}/state", json={})
        assert response.status_code == 400


class TestPlayerStats:
    """Tests for career statistics across scored matches."""

    def test_batting_and_bowling(self, scorer_client, live_match, team_a, team_b):
        _ball(scorer_client, live_match, runs=4)
        _ball(scorer_client, live_match, runs=6)

        response = scorer_client.get("/api/players/stats")
        assert response.status_code == 200
        data = response.get_json()
        assert data["matches"] == 1

        batter = next(b for b in data["batting"] if b["player_id"] == player_ids(team_a)[0])
        assert batter["Runs"] == 10
        assert batter["Player"] == "RR Player 1"

        bowler = next(b for b in data["bowling"] if b["player_id"] == player_ids(team_b)[10])
        assert bowler["Runs"] == 10

    def test_text_format(self, scorer_client, live_match):
        _ball(scorer_client, live_match, runs=1)
        response = scorer_client.get("/api/players/stats?format=text")
        assert response.mimetype == "text/plain"
        text = response.get_data(as_text=True)
        assert "BATTING" in text and "BOWLING" in text
