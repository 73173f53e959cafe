"""
SQLAlchemy-backed store for live match state, plus the roster lookup the
engine uses to resolve player ids.

The store is the only resource shared between scorers.  ``persist`` writes
the whole savedState (last write wins) and then pushes it to every in-process
subscriber of that match, which is how a MatchSync learns about writes made
by other clients.
"""

import logging
import threading
from collections import defaultdict

from sqlalchemy.exc import SQLAlchemyError

from engine.format_config import resolve_rules
from engine.innings import describe_result
from engine.match_state import MatchState
from engine.sync import StoreUnavailable

logger = logging.getLogger(__name__)

PARTIAL_FIELDS = ("status", "score", "result_description", "active_scorer_id")


def format_team_score(state, team_id):
    """Scoreboard string for one side, e.g. "250 & 120/3 (41.2)"."""
    parts = []
    open_entry = state.open_innings_score
    for entry in state.innings_scores:
        if entry.team_id != team_id:
            continue
        if entry is open_entry:
            parts.append(f"{state.score}/{state.wickets} ({state.overs_str})")
        else:
            text = f"{entry.score}/{entry.wickets}"
            if entry.declared:
                text += "d"
            elif entry.forfeited:
                text += " (forfeited)"
            parts.append(text)
    return " & ".join(parts) or None


class MatchStore:
    def __init__(self, db, match_model, team_model=None):
        self.db = db
        self.Match = match_model
        self.Team = team_model
        self._subscribers = defaultdict(list)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get(self, match_id):
        try:
            return self.db.session.get(self.Match, match_id)
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e

    def load(self, match_id):
        """MatchState for a match, or None when it has never been scored."""
        row = self.get(match_id)
        if row is None or not row.saved_state:
            return None
        return MatchState.from_dict(row.saved_state)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def persist(self, match_id, state_or_partial):
        row = self.get(match_id)
        if row is None:
            raise StoreUnavailable(f"Match {match_id} not found")

        try:
            if isinstance(state_or_partial, MatchState):
                self._write_state(row, state_or_partial)
            else:
                self._write_partial(row, state_or_partial or {})
            self.db.session.commit()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            raise StoreUnavailable(str(e)) from e

        self._publish(match_id, row.saved_state)
        return True

    def _write_state(self, row, state):
        row.saved_state = state.to_dict()
        row.active_scorer_id = state.active_scorer_id
        row.state_version = state.version
        row.team_a_score = format_team_score(state, str(row.team_a_id))
        row.team_b_score = format_team_score(state, str(row.team_b_id))

        if state.is_completed:
            if row.status != 'Completed':
                self._write_result(row, state)
            row.status = 'Completed'
        elif state.history or state.striker_id:
            row.status = 'Live'

    def _write_result(self, row, state):
        rules = resolve_rules(row.match_format, row.overs_per_side,
                              row.players_per_side, row.allow_flexible_squad)
        names = {}
        roster_sizes = {}
        for team in (row.team_a, row.team_b):
            if team is not None:
                names[str(team.id)] = team.name
                roster_sizes[str(team.id)] = len(team.players)

        result = describe_result(state, rules, names, roster_sizes.get(state.batting_team_id))
        row.result_description = result["result"]
        row.winner_team_id = int(result["winner_team_id"]) if result["winner_team_id"] else None
        row.margin_type = result["margin_type"]
        row.margin_value = result["margin_value"]
        logger.info(f"Match {row.id} completed: {row.result_description}")

    def _write_partial(self, row, partial):
        for key, value in partial.items():
            if key not in PARTIAL_FIELDS:
                logger.warning(f"Partial update ignored unknown field '{key}' for match {row.id}")
                continue
            if key == "score":
                row.team_a_score = value.get(str(row.team_a_id), row.team_a_score)
                row.team_b_score = value.get(str(row.team_b_id), row.team_b_score)
            else:
                setattr(row, key, value)

    # ------------------------------------------------------------------ #
    # Subscriptions
    # ------------------------------------------------------------------ #

    def subscribe(self, match_id, callback):
        with self._lock:
            self._subscribers[match_id].append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers.get(match_id, []):
                    self._subscribers[match_id].remove(callback)
        return unsubscribe

    def _publish(self, match_id, snapshot):
        with self._lock:
            callbacks = list(self._subscribers.get(match_id, []))
        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Subscriber for match {match_id} failed: {e}", exc_info=True)


class RosterProvider:
    def __init__(self, db, team_model, player_model):
        self.db = db
        self.Team = team_model
        self.Player = player_model

    def roster(self, team_id):
        players = self.Player.query.filter_by(team_id=int(team_id)).order_by(self.Player.id).all()
        return [p.to_dict() for p in players]

    def _teams(self, team_ids):
        for team_id in team_ids:
            team = self.db.session.get(self.Team, int(team_id))
            if team is not None:
                yield team

    def team_names(self, *team_ids):
        """team id -> team name."""
        return {str(team.id): team.name for team in self._teams(team_ids)}

    def player_names(self, *team_ids):
        """player id -> display name for every player of the given teams."""
        return {str(p.id): p.name for team in self._teams(team_ids) for p in team.players}
