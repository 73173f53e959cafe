"""
Tests for the SQLAlchemy match store and roster lookup.
"""

import pytest

from database import db
from database.models import Match as DBMatch, Team as DBTeam, Player as DBPlayer
from database.store import MatchStore, RosterProvider, format_team_score
from engine.format_config import resolve_rules
from engine.match import MatchEngine
from engine.match_state import MatchState
from engine.sync import StoreUnavailable


@pytest.fixture
def store(app):
    return MatchStore(db, DBMatch, DBTeam)


@pytest.fixture
def match_row(app, scorer_user, team_a, team_b):
    row = DBMatch(user_id=scorer_user.id, team_a_id=team_a.id, team_b_id=team_b.id,
                  match_format="custom", overs_per_side=1)
    db.session.add(row)
    db.session.commit()
    return row


def _engine(row):
    state = MatchState.new(str(row.team_a_id), str(row.team_b_id))
    engine = MatchEngine(state, resolve_rules(row.match_format, row.overs_per_side))
    engine.start_match("1", "2", "20")
    return engine


class TestMatchStore:

    def test_persist_full_state(self, store, match_row):
        engine = _engine(match_row)
        engine.apply_ball(runs=4)
        store.persist(match_row.id, engine.state)

        row = db.session.get(DBMatch, match_row.id)
        assert row.status == "Live"
        assert row.state_version == engine.state.version
        assert row.saved_state["score"] == 4
        assert row.team_a_score == "4/0 (0.1)"
        assert row.team_b_score is None
        assert store.load(match_row.id).to_dict() == engine.state.to_dict()

    def test_partial_update(self, store, match_row):
        store.persist(match_row.id, {"status": "Live", "result_description": "Rain delay",
                                     "wickets": 3})
        row = db.session.get(DBMatch, match_row.id)
        assert row.status == "Live"
        assert row.result_description == "Rain delay"

    def test_partial_score_strings(self, store, match_row):
        store.persist(match_row.id, {"score": {str(match_row.team_a_id): "120/4 (20.0)"}})
        assert db.session.get(DBMatch, match_row.id).team_a_score == "120/4 (20.0)"

    def test_unknown_match(self, store):
        with pytest.raises(StoreUnavailable):
            store.persist("missing", MatchState.new("1", "2"))

    def test_load_unscored_match(self, store, match_row):
        assert store.load(match_row.id) is None

    def test_subscribers_receive_snapshot(self, store, match_row):
        received = []
        unsubscribe = store.subscribe(match_row.id, received.append)
        engine = _engine(match_row)
        store.persist(match_row.id, engine.state)
        assert received[-1]["version"] == engine.state.version

        unsubscribe()
        store.persist(match_row.id, engine.state)
        assert len(received) == 1

    def test_completion_writes_result(self, store, match_row, team_a, team_b):
        engine = _engine(match_row)
        engine.apply_ball(runs=30)
        engine.start_innings(str(team_b.id), str(team_a.id))
        engine.start_match("12", "13", "5")
        engine.apply_ball(runs=12)
        for _ in range(5):
            engine.apply_ball(runs=0)
        engine.end_innings(is_match_end=True)

        store.persist(match_row.id, engine.state)
        row = db.session.get(DBMatch, match_row.id)
        assert row.status == "Completed"
        assert row.result_description == "Riverside Rangers won by 18 run(s)"
        assert row.winner_team_id == team_a.id
        assert (row.margin_type, row.margin_value) == ("runs", 18)

    def test_flexible_squad_result_uses_roster_size(self, store, scorer_user):
        teams = []
        for name, code in (("Pocket Rangers", "PR"), ("Pocket Hawks", "PH")):
            team = DBTeam(name=name, short_code=code, user_id=scorer_user.id)
            db.session.add(team)
            db.session.flush()
            for i in range(1, 4):
                db.session.add(DBPlayer(team_id=team.id, name=f"{code} Player {i}"))
            teams.append(team)
        rangers, hawks = teams
        row = DBMatch(user_id=scorer_user.id, team_a_id=rangers.id, team_b_id=hawks.id,
                      match_format="custom", overs_per_side=1, players_per_side=11,
                      allow_flexible_squad=True)
        db.session.add(row)
        db.session.commit()

        rules = resolve_rules("custom", 1, 11, True)
        sizes = {str(rangers.id): 3, str(hawks.id): 3}
        engine = MatchEngine(MatchState.new(str(rangers.id), str(hawks.id)), rules, sizes)
        for batting, bowling, runs in ((rangers, hawks, 8), (hawks, rangers, 4)):
            if batting is hawks:
                engine.start_innings(str(hawks.id), str(rangers.id))
            engine.start_match(f"{batting.id}-1", f"{batting.id}-2", f"{bowling.id}-3")
            engine.apply_ball(runs=runs)
            engine.record_wicket("Bowled", out_player_id=f"{batting.id}-1")
            engine.select_batter("striker", f"{batting.id}-3")
            engine.record_wicket("Bowled", out_player_id=f"{batting.id}-3")
        engine.end_innings(is_match_end=True)

        store.persist(row.id, engine.state)
        row = db.session.get(DBMatch, row.id)
        assert row.result_description == "Pocket Rangers won by 4 run(s)"
        assert row.winner_team_id == rangers.id
        assert (row.margin_type, row.margin_value) == ("runs", 4)


def test_format_team_score_declared():
    state = MatchState.new("A", "B")
    state.score = 320
    state.wickets = 7
    state.innings_scores[0].declared = True
    state.innings_scores[0].score, state.innings_scores[0].wickets = 320, 7
    state.innings_scores[0].is_complete = True
    assert format_team_score(state, "A") == "320/7d"
    assert format_team_score(state, "B") is None


class TestRosterProvider:

    def test_roster_and_names(self, app, team_a):
        provider = RosterProvider(db, DBTeam, DBPlayer)
        roster = provider.roster(team_a.id)
        assert len(roster) == 11
        assert roster[0] == {"id": str(team_a.players[0].id), "name": "RR Player 1", "role": "Batsman"}

        assert provider.team_names(team_a.id, 9999) == {str(team_a.id): "Riverside Rangers"}

        players = provider.player_names(team_a.id, 9999)
        assert len(players) == 11
        assert players[roster[0]["id"]] == "RR Player 1"
        assert players[roster[10]["id"]] == "RR Player 11"

    def test_team_and_player_ids_do_not_collide(self, app, team_a, team_b):
        provider = RosterProvider(db, DBTeam, DBPlayer)
        assert str(team_a.id) == str(team_a.players[0].id)
        assert provider.team_names(team_a.id, team_b.id)[str(team_a.id)] == "Riverside Rangers"
        assert provider.player_names(team_a.id, team_b.id)[str(team_a.id)] == "RR Player 1"
