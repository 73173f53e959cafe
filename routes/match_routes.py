"""Live scoring JSON API routes."""

import json
import re
from datetime import datetime
from functools import wraps

from flask import Response, jsonify, request
from flask_login import current_user, login_required

from engine.ball_event import InvalidDeltaError, RetireType
from engine.bowler_manager import BowlerManager, get_bowler_availability
from engine.commentary_engine import CommentaryEngine, describe_event
from engine.format_config import FORMAT_REGISTRY, resolve_rules
from engine.innings import can_enforce_follow_on, describe_result
from engine.match import MatchEngine
from engine.match_state import MatchState
from engine.stats import derive_stats, lead_text
from engine.stats_aggregator import StatsAggregator
from engine.sync import (
    ADMINISTRATOR,
    SCORER,
    MatchSync,
    StoreUnavailable,
    can_mutate,
    claim_lock,
    is_authorized,
    is_locked_by_other,
    override_lock,
    release_lock,
)
from engine.wicket_flow import WicketFlow
from utils.duplicates import check_for_duplicate_match, filter_non_duplicate, mark_as_duplicate

from tabulate import tabulate


def _snake(key):
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def register_match_routes(
    app,
    *,
    db,
    DBMatch,
    DBTeam,
    store,
    roster,
    scoring_settings,
    MATCH_INSTANCES,
    MATCH_INSTANCES_LOCK,
):
    commentary = CommentaryEngine()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def api_errors(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                # One request at a time per process; engines are single-threaded.
                with MATCH_INSTANCES_LOCK:
                    return view(*args, **kwargs)
            except InvalidDeltaError as e:
                return jsonify({"error": str(e)}), 400
            except StoreUnavailable as e:
                app.logger.error(f"[Store] {request.path}: {e}", exc_info=True)
                return jsonify({"error": "Match store unavailable"}), 503
            except Exception as e:
                app.logger.error(f"[API] Error handling {request.method} {request.path}: {e}", exc_info=True)
                return jsonify({"error": "Internal server error"}), 500
        return wrapper

    def _body():
        return request.get_json(silent=True) or {}

    def _rules_for(row):
        return resolve_rules(row.match_format, row.overs_per_side,
                             row.players_per_side, row.allow_flexible_squad)

    def _load_live(match_id):
        """(row, engine, sync) for a match, building the engine on first use."""
        with MATCH_INSTANCES_LOCK:
            row = db.session.get(DBMatch, match_id)
            if row is None:
                return None, None, None
            if match_id not in MATCH_INSTANCES:
                state = store.load(match_id)
                fresh = state is None
                if fresh:
                    state = MatchState.new(str(row.team_a_id), str(row.team_b_id))
                sizes = {
                    str(row.team_a_id): len(roster.roster(row.team_a_id)),
                    str(row.team_b_id): len(roster.roster(row.team_b_id)),
                }
                engine = MatchEngine(state, _rules_for(row), sizes)
                sync = MatchSync(engine, store, match_id,
                                 strict_versioning=scoring_settings()["strict_versioning"])
                if fresh:
                    sync.flush()
                MATCH_INSTANCES[match_id] = (engine, sync)
            engine, sync = MATCH_INSTANCES[match_id]
            return row, engine, sync

    def _live_or_404(match_id):
        row, engine, sync = _load_live(match_id)
        if row is None:
            return None, None, None, (jsonify({"error": "Match not found"}), 404)
        return row, engine, sync, None

    def _write_guard(engine):
        """403 payload when the current user may not mutate this match."""
        state = engine.state
        if not is_authorized(state, current_user):
            return jsonify({"error": "Not authorized to score this match", "read_only": True}), 403
        if is_locked_by_other(state, current_user.id):
            return jsonify({
                "error": "Match is being scored by another user",
                "read_only": True,
                "active_scorer_id": state.active_scorer_id,
            }), 403
        return None

    def _mutable(match_id, claim=True):
        row, engine, sync, err = _live_or_404(match_id)
        if err:
            return None, None, None, err
        err = _write_guard(engine)
        if err:
            return None, None, None, err
        # The first writer on an unlocked match becomes the active scorer.
        if claim:
            claim_lock(engine, current_user.id)
        return row, engine, sync, None

    def _state_payload(row, engine, **extra):
        state = engine.state
        reason = engine.completion_reason()
        payload = {
            "match_id": row.id,
            "state": state.to_dict(),
            "phase": state.phase,
            "innings_status": state.innings_status,
            "completion_reason": reason,
            "match_over": engine.is_match_over(),
            "needs_bowler_change": state.needs_bowler_change,
            "lead": lead_text(state, engine.rules.total_overs_allowed),
            "read_only": not can_mutate(state, current_user),
        }
        if payload["match_over"]:
            names = roster.team_names(row.team_a_id, row.team_b_id)
            payload["result"] = describe_result(state, engine.rules, names, engine.roster_size())
        payload.update(extra)
        return payload

    def _ok(row, engine, status=200, **extra):
        return jsonify(_state_payload(row, engine, **extra)), status

    def _conflict(message):
        return jsonify({"error": message}), 409

    def _roster_ids(team_id):
        return {p["id"] for p in roster.roster(team_id)}

    def _commentary_for(row, event):
        names = roster.player_names(row.team_a_id, row.team_b_id)
        payload = describe_event(event, names)
        return {**payload, "text": commentary.get_commentary(payload)}

    # ------------------------------------------------------------------ #
    # Match lifecycle
    # ------------------------------------------------------------------ #

    @app.route("/api/matches", methods=["POST"])
    @login_required
    @api_errors
    def create_match():
        if current_user.role not in (SCORER, ADMINISTRATOR):
            return jsonify({"error": "Only scorers can create matches"}), 403

        data = _body()
        try:
            team_a = db.session.get(DBTeam, int(data.get("team_a_id") or 0))
            team_b = db.session.get(DBTeam, int(data.get("team_b_id") or 0))
            when = datetime.fromisoformat(data["date"]) if data.get("date") else datetime.utcnow()
        except (TypeError, ValueError):
            return jsonify({"error": "Invalid team selection or date"}), 400
        if team_a is None or team_b is None:
            return jsonify({"error": "Invalid team selection"}), 400
        if team_a.id == team_b.id:
            return jsonify({"error": "Please select two different teams"}), 400

        match_format = data.get("match_format", "T20")
        if match_format not in FORMAT_REGISTRY:
            return jsonify({"error": "Invalid or unsupported match format"}), 400

        batting_team_id = str(data.get("batting_team_id") or team_a.id)
        if batting_team_id not in (str(team_a.id), str(team_b.id)):
            return jsonify({"error": "Batting team must be one of the two teams"}), 400
        bowling_team_id = str(team_b.id) if batting_team_id == str(team_a.id) else str(team_a.id)

        row = DBMatch(
            user_id=current_user.id,
            team_a_id=team_a.id,
            team_b_id=team_b.id,
            venue=data.get("venue"),
            date=when,
            match_format=match_format,
            overs_per_side=data.get("overs_per_side"),
            players_per_side=int(data.get("players_per_side") or scoring_settings()["default_players_per_side"]),
            allow_flexible_squad=bool(data.get("allow_flexible_squad", False)),
        )

        existing = DBMatch.query.filter(
            DBMatch.game_id.isnot(None),
        ).all()
        is_duplicate, primary, game_id = check_for_duplicate_match(team_a.id, team_b.id, when, existing)
        row.game_id = game_id
        if is_duplicate:
            mark_as_duplicate(row, primary)
            app.logger.info(f"[Match] New match duplicates {primary.id} ({game_id})")

        state = MatchState.new(batting_team_id, bowling_team_id, umpires=data.get("umpires"))
        row.saved_state = state.to_dict()
        db.session.add(row)
        db.session.commit()

        app.logger.info(f"[Match] {current_user.id} created {match_format} match {row.id}: "
                        f"{team_a.name} v {team_b.name}")
        return jsonify({"match": row.to_dict(), "state": row.saved_state}), 201

    @app.route("/api/matches/<match_id>", methods=["GET"])
    @login_required
    @api_errors
    def get_match(match_id):
        row, engine, _sync, err = _live_or_404(match_id)
        if err:
            return err
        return _ok(row, engine, match=row.to_dict())

    @app.route("/api/matches/<match_id>/stats", methods=["GET"])
    @login_required
    @api_errors
    def match_stats(match_id):
        row, engine, _sync, err = _live_or_404(match_id)
        if err:
            return err
        state = engine.state
        stats = derive_stats(state, engine.rules.total_overs_allowed)
        manager = BowlerManager(roster.roster(state.bowling_team_id), engine.rules)
        availability = {
            pid: {
                "overs_bowled": a.overs_bowled,
                "overs_remaining": a.overs_remaining,
                "available": a.available,
            }
            for pid, a in manager.availability(state).items()
        }
        return jsonify({
            "stats": stats.to_dict(),
            "lead": lead_text(state, engine.rules.total_overs_allowed),
            "bowler_availability": availability,
            "eligible_bowlers": [p["id"] for p in manager.eligible_bowlers(state)],
        })

    @app.route("/api/matches/<match_id>/scorecard", methods=["GET"])
    @login_required
    @api_errors
    def match_scorecard(match_id):
        row, engine, _sync, err = _live_or_404(match_id)
        if err:
            return err
        state = engine.state
        names = roster.player_names(row.team_a_id, row.team_b_id)
        team_names = roster.team_names(row.team_a_id, row.team_b_id)
        stats = derive_stats(state, engine.rules.total_overs_allowed)

        batting = [
            [names.get(b.player_id, b.player_id), b.how_out or "not out", b.runs, b.balls,
             b.fours, b.sixes, f"{b.strike_rate:.2f}"]
            for b in stats.batters.values()
        ]
        bowling = [
            [names.get(b.player_id, b.player_id), b.overs, b.maidens, b.runs, b.wickets, f"{b.economy:.2f}"]
            for b in stats.bowlers.values()
        ]
        text = "\n\n".join([
            f"{team_names.get(state.batting_team_id, state.batting_team_id)} "
            f"{state.score}/{state.wickets} ({state.overs_str} ov)",
            tabulate(batting, headers=["Batter", "Status", "R", "B", "4s", "6s", "SR"], tablefmt="grid"),
            f"Extras: {stats.extras.total} (w {stats.extras.wides}, nb {stats.extras.no_balls}, "
            f"b {stats.extras.byes}, lb {stats.extras.leg_byes})",
            tabulate(bowling, headers=["Bowler", "O", "M", "R", "W", "Econ"], tablefmt="grid"),
        ])
        return Response(text, mimetype="text/plain")

    @app.route("/api/matches/<match_id>/state", methods=["PUT"])
    @login_required
    @api_errors
    def push_state(match_id):
        """Whole-state write from another client; last write wins."""
        row, engine, _sync, err = _mutable(match_id, claim=False)
        if err:
            return err
        snapshot = _body().get("state")
        if not isinstance(snapshot, dict):
            return jsonify({"error": "A savedState object is required"}), 400
        store.persist(match_id, MatchState.from_dict(snapshot))
        return _ok(row, engine)

    # ------------------------------------------------------------------ #
    # Scoring
    # ------------------------------------------------------------------ #

    @app.route("/api/matches/<match_id>/start", methods=["POST"])
    @login_required
    @api_errors
    def start_match(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        data = _body()
        striker, non_striker, bowler = data.get("striker_id"), data.get("non_striker_id"), data.get("bowler_id")
        if not striker or not non_striker or not bowler:
            return jsonify({"error": "All fields are required to start the match."}), 400
        if striker == non_striker:
            return jsonify({"error": "Striker and Non-Striker must be different players."}), 400

        state = engine.state
        batting_ids = _roster_ids(state.batting_team_id)
        if striker not in batting_ids or non_striker not in batting_ids:
            return jsonify({"error": "Batters must belong to the batting team"}), 400
        if bowler not in _roster_ids(state.bowling_team_id):
            return jsonify({"error": "Bowler must belong to the bowling team"}), 400

        if engine.start_match(striker, non_striker, bowler) is None:
            return _conflict("Match cannot be started")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/ball", methods=["POST"])
    @login_required
    @api_errors
    def score_ball(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        data = _body()
        if data.get("is_wicket"):
            return jsonify({"error": "Use the wicket endpoint to record dismissals"}), 400

        event = engine.apply_ball(
            runs=data.get("runs", 0),
            extra_type=data.get("extra_type"),
            extra_runs=data.get("extra_runs", 0),
            note=data.get("note", ""),
            pitch_coords=data.get("pitch_coords"),
            shot_coords=data.get("shot_coords"),
            shot_height=data.get("shot_height"),
        )
        if event is None:
            return _conflict(f"Ball not recorded: {engine.blocked_reason() or 'rejected'}")
        return _ok(row, engine, event=event.to_dict(), commentary=_commentary_for(row, event))

    @app.route("/api/matches/<match_id>/wicket", methods=["POST"])
    @login_required
    @api_errors
    def score_wicket(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        data = _body()

        flow = WicketFlow().start()
        flow.select_type(data.get("wicket_type"))
        flow.select_out_player(data.get("out_player_id"))
        if flow.needs_fielder:
            if not data.get("fielder_id"):
                return jsonify({"error": f"{flow.wicket_type.value} needs a fielder"}), 400
            flow.select_fielder(data["fielder_id"])

        event = flow.confirm(
            engine,
            runs=data.get("runs", 0),
            extra_type=data.get("extra_type"),
            extra_runs=data.get("extra_runs", 0),
        )
        if event is None:
            return _conflict(f"Wicket not recorded: {engine.blocked_reason() or 'rejected'}")
        return _ok(row, engine, event=event.to_dict(), commentary=_commentary_for(row, event))

    @app.route("/api/matches/<match_id>/undo", methods=["POST"])
    @login_required
    @api_errors
    def undo_ball(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        if not engine.undo_ball():
            return _conflict("Cannot undo")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/balls/<int:timestamp>", methods=["PATCH"])
    @login_required
    @api_errors
    def edit_ball(match_id, timestamp):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        updates = {_snake(k): v for k, v in _body().items()}
        if not engine.edit_ball(timestamp, updates):
            return jsonify({"error": "Ball not found or nothing to update"}), 404
        return _ok(row, engine)

    # ------------------------------------------------------------------ #
    # Crease management
    # ------------------------------------------------------------------ #

    @app.route("/api/matches/<match_id>/bowler", methods=["POST"])
    @login_required
    @api_errors
    def select_bowler(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        bowler_id = _body().get("bowler_id")
        state = engine.state
        if not bowler_id or bowler_id not in _roster_ids(state.bowling_team_id):
            return jsonify({"error": "Select a bowler from the bowling team"}), 400

        manager = BowlerManager(roster.roster(state.bowling_team_id), engine.rules)
        if not manager.can_bowl_next_over(state, bowler_id):
            availability = get_bowler_availability(state, engine.rules, bowler_id)
            if not availability.available:
                return jsonify({"error": "Bowler has completed their quota of overs"}), 400
            return jsonify({"error": "Bowler cannot bowl consecutive overs"}), 400

        if engine.select_bowler(bowler_id) is None:
            return _conflict("Bowler not changed")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/batter", methods=["POST"])
    @login_required
    @api_errors
    def select_batter(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        data = _body()
        player_id = data.get("player_id")
        state = engine.state
        if not player_id or player_id not in _roster_ids(state.batting_team_id):
            return jsonify({"error": "Select a batter from the batting team"}), 400
        if player_id in state.dismissed_ids():
            return jsonify({"error": "Batter is already out"}), 400
        if player_id in (state.striker_id, state.non_striker_id):
            return jsonify({"error": "Batter is already at the crease"}), 400

        if engine.select_batter(data.get("slot", "striker"), player_id) is None:
            return _conflict("Batter not changed")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/replace-bowler", methods=["POST"])
    @login_required
    @api_errors
    def replace_bowler(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        bowler_id = _body().get("bowler_id")
        if not bowler_id or bowler_id not in _roster_ids(engine.state.bowling_team_id):
            return jsonify({"error": "Select a bowler from the bowling team"}), 400
        if engine.replace_bowler_mid_over(bowler_id) is None:
            return _conflict("Bowler not replaced")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/correct-player", methods=["POST"])
    @login_required
    @api_errors
    def correct_player(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        data = _body()
        if not engine.correct_player_identity(data.get("old_id"), data.get("new_id"), data.get("role")):
            return _conflict("Player is not in that position")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/retire", methods=["POST"])
    @login_required
    @api_errors
    def retire_batter(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        data = _body()
        try:
            retire_type = RetireType(data.get("retire_type", RetireType.RETIRED_HURT.value))
        except ValueError:
            return jsonify({"error": "Unknown retirement type"}), 400
        if not engine.retire_batter(data.get("player_id"), retire_type):
            return _conflict("Batter is not at the crease")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/metadata", methods=["PATCH"])
    @login_required
    @api_errors
    def update_metadata(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        partial = {_snake(k): v for k, v in _body().items()}
        # The lock has its own endpoints.
        partial.pop("active_scorer_id", None)

        state = engine.state
        batting_ids = _roster_ids(state.batting_team_id)
        dismissed = state.dismissed_ids()
        for key in ("striker_id", "non_striker_id"):
            player_id = partial.get(key)
            if not player_id:
                continue
            if player_id not in batting_ids:
                return jsonify({"error": "Batters must belong to the batting team"}), 400
            if player_id in dismissed:
                return jsonify({"error": "Batter is already out"}), 400
        striker = partial.get("striker_id", state.striker_id)
        non_striker = partial.get("non_striker_id", state.non_striker_id)
        if striker and striker == non_striker:
            return jsonify({"error": "Striker and Non-Striker must be different players."}), 400
        bowler_id = partial.get("bowler_id")
        if bowler_id and bowler_id not in _roster_ids(state.bowling_team_id):
            return jsonify({"error": "Bowler must belong to the bowling team"}), 400

        if not engine.update_metadata(**partial):
            return jsonify({"error": "Nothing to update"}), 400
        return _ok(row, engine)

    # ------------------------------------------------------------------ #
    # Innings transitions
    # ------------------------------------------------------------------ #

    @app.route("/api/matches/<match_id>/innings/next", methods=["POST"])
    @login_required
    @api_errors
    def next_innings(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        data = _body()
        state = engine.state
        follow_on = bool(data.get("follow_on", False))

        if follow_on:
            if not can_enforce_follow_on(state, engine.rules):
                return jsonify({"error": "Follow-on cannot be enforced"}), 400
            batting, bowling = state.batting_team_id, state.bowling_team_id
        else:
            batting, bowling = state.bowling_team_id, state.batting_team_id

        if not engine.start_innings(batting, bowling, data.get("target"), is_follow_on=follow_on):
            return _conflict("Cannot start another innings")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/innings/end", methods=["POST"])
    @login_required
    @api_errors
    def end_innings(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        if not engine.end_innings(bool(_body().get("match_end", False))):
            return _conflict("No innings in progress")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/innings/declare", methods=["POST"])
    @login_required
    @api_errors
    def declare_innings(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        if not engine.declare_innings():
            return _conflict("No innings in progress")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/innings/forfeit", methods=["POST"])
    @login_required
    @api_errors
    def forfeit_innings(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        if not engine.forfeit_innings():
            return _conflict("No innings in progress")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/conclude", methods=["POST"])
    @login_required
    @api_errors
    def conclude_match(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        if not engine.conclude_innings():
            return _conflict("Match is already completed")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/last-hour", methods=["POST"])
    @login_required
    @api_errors
    def last_hour(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        minimum = _body().get("minimum_overs") or scoring_settings()["last_hour_min_overs"]
        if not engine.trigger_last_hour(int(minimum)):
            return _conflict("Last hour cannot be signalled")
        return _ok(row, engine)

    @app.route("/api/matches/<match_id>/session", methods=["POST"])
    @login_required
    @api_errors
    def advance_session(match_id):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        label = engine.advance_session()
        return _ok(row, engine, session=label)

    @app.route("/api/matches/<match_id>/timer/<action>", methods=["POST"])
    @login_required
    @api_errors
    def timer(match_id, action):
        row, engine, _sync, err = _mutable(match_id)
        if err:
            return err
        if action == "pause":
            changed = engine.pause_timer()
        elif action == "resume":
            changed = engine.resume_timer()
        else:
            return jsonify({"error": "Unknown timer action"}), 404
        if not changed:
            return _conflict(f"Timer cannot {action}")
        return _ok(row, engine)

    # ------------------------------------------------------------------ #
    # Write lock
    # ------------------------------------------------------------------ #

    @app.route("/api/matches/<match_id>/lock/<action>", methods=["POST"])
    @login_required
    @api_errors
    def write_lock(match_id, action):
        row, engine, _sync, err = _live_or_404(match_id)
        if err:
            return err
        if not is_authorized(engine.state, current_user):
            return jsonify({"error": "Not authorized to score this match", "read_only": True}), 403

        if action == "claim":
            ok = claim_lock(engine, current_user.id)
        elif action == "release":
            ok = release_lock(engine, current_user.id)
        elif action == "override":
            if not current_user.is_admin:
                return jsonify({"error": "Only administrators can take over scoring"}), 403
            ok = override_lock(engine, current_user)
        else:
            return jsonify({"error": "Unknown lock action"}), 404

        if not ok:
            return jsonify({
                "error": "Match is being scored by another user",
                "read_only": True,
                "active_scorer_id": engine.state.active_scorer_id,
            }), 403
        return _ok(row, engine)

    # ------------------------------------------------------------------ #
    # Career statistics
    # ------------------------------------------------------------------ #

    @app.route("/api/players/stats", methods=["GET"])
    @login_required
    @api_errors
    def player_stats():
        query = DBMatch.query.filter(DBMatch.saved_state.isnot(None))
        team_id = request.args.get("team_id", type=int)
        if team_id:
            query = query.filter((DBMatch.team_a_id == team_id) | (DBMatch.team_b_id == team_id))
        matches = filter_non_duplicate(query.all())

        names = {}
        for m in matches:
            names.update(roster.player_names(m.team_a_id, m.team_b_id))
        aggregator = StatsAggregator({m.id: m.saved_state for m in matches}, names)
        batting = aggregator.batting_stats()
        bowling = aggregator.bowling_stats()

        if request.args.get("format") == "text":
            text = "BATTING\n" + aggregator.to_table(batting) + "\n\nBOWLING\n" + aggregator.to_table(bowling)
            return Response(text, mimetype="text/plain")

        return jsonify({
            "matches": len(matches),
            "batting": json.loads(batting.to_json(orient="records")) if not batting.empty else [],
            "bowling": json.loads(bowling.to_json(orient="records")) if not bowling.empty else [],
        })
