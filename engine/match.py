"""
engine/match.py
===============

MatchEngine: the authoritative state machine for one live match.

The engine owns a single MatchState value.  Every operation either applies
cleanly (bumping ``state.version`` and notifying subscribers with a
StateChange) or is a silent, logged no-op returning None/False.  Only
malformed calls (negative runs, a wicket without a dismissed batter, the
same player at both ends) raise InvalidDeltaError.

The engine never persists anything and never checks who is calling it;
engine/sync.py layers the lock discipline and the store on top.

Usage
-----
    rules = resolve_rules("T20")
    engine = MatchEngine(MatchState.new("team-a", "team-b"), rules)
    engine.start_match("a1", "a2", "b11")
    engine.apply_ball(runs=4)
    engine.record_wicket("Bowled", out_player_id="a1")
    engine.undo_ball()
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from engine.ball_event import (
    ANALYTICS_FIELDS,
    SCORING_FIELDS,
    BallEvent,
    EventKind,
    ExtraType,
    InvalidDeltaError,
    RetireType,
    WicketType,
    _camel,
    validate_delta,
)
from engine.format_config import LAST_HOUR_MIN_OVERS, MatchRules
from engine.innings import check_end_of_innings, compute_target, is_match_over
from engine.match_state import (
    SESSIONS,
    Adjustments,
    InningsScore,
    MatchState,
    MatchTimer,
    now_ms,
)

logger = logging.getLogger(__name__)

METADATA_FIELDS = (
    "striker_id",
    "non_striker_id",
    "bowler_id",
    "umpires",
    "match_timer",
    "active_scorer_id",
    "adjustments",
)

_ROLE_SLOTS = {
    "striker": "striker_id",
    "nonstriker": "non_striker_id",
    "bowler": "bowler_id",
}


@dataclass
class StateChange:
    """What subscribers receive after every mutation."""
    action: str
    state: MatchState
    reason: Optional[str] = None      # completion policy verdict after the change
    match_over: bool = False
    event: Optional[BallEvent] = None


def _slot_for_role(role) -> str:
    key = str(getattr(role, "value", role) or "").replace("_", "").replace("-", "").replace("@", "").lower()
    if key not in _ROLE_SLOTS:
        raise InvalidDeltaError(f"Unknown player role: {role}")
    return _ROLE_SLOTS[key]


class MatchEngine:
    def __init__(self, state: MatchState, rules: MatchRules,
                 batting_roster_sizes: Optional[Dict[str, int]] = None):
        self.state = state
        self.rules = rules
        self.batting_roster_sizes = dict(batting_roster_sizes or {})
        self._listeners: List[Callable[[StateChange], None]] = []

    # ------------------------------------------------------------------ #
    # Subscription / completion                                            #
    # ------------------------------------------------------------------ #

    def subscribe(self, listener: Callable[[StateChange], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def roster_size(self) -> Optional[int]:
        return self.batting_roster_sizes.get(self.state.batting_team_id)

    def completion_reason(self) -> Optional[str]:
        return check_end_of_innings(self.state, self.rules, self.roster_size())

    def is_match_over(self) -> bool:
        return is_match_over(self.state, self.rules, self.completion_reason())

    def _notify(self, change: StateChange):
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.error(f"State listener failed after '{change.action}': {e}", exc_info=True)

    def _commit(self, action: str, event: Optional[BallEvent] = None) -> StateChange:
        state = self.state
        state.version += 1

        entry = state.open_innings_score
        if entry is not None:
            entry.score = state.score
            entry.wickets = state.wickets

        reason = self.completion_reason()
        change = StateChange(
            action=action,
            state=state,
            reason=reason,
            match_over=is_match_over(state, self.rules, reason),
            event=event,
        )
        logger.debug(f"[{action}] innings {state.innings}: {state.score}/{state.wickets} "
                     f"({state.overs_str} ov) v{state.version}")
        if reason:
            logger.info(f"Innings {state.innings} completion: {reason} "
                        f"(match over: {change.match_over})")
        self._notify(change)
        return change

    def replace_state(self, new_state: MatchState):
        """Swap in a whole snapshot received from another client."""
        self.state = new_state
        logger.info(f"Local state replaced by remote snapshot v{new_state.version}")
        self._notify(StateChange(
            action="remote",
            state=new_state,
            reason=self.completion_reason(),
            match_over=is_match_over(new_state, self.rules, self.completion_reason()),
        ))

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def _next_timestamp(self) -> int:
        ts = now_ms()
        last = self.state.last_event()
        if last is not None and ts <= last.timestamp:
            ts = last.timestamp + 1
        return ts

    def _new_event(self, kind: EventKind = EventKind.DELIVERY, **fields) -> BallEvent:
        state = self.state
        return BallEvent(
            innings=state.innings,
            over=state.total_balls // 6,
            ball=state.total_balls % 6 + (1 if kind == EventKind.DELIVERY else 0),
            striker_id=state.striker_id,
            non_striker_id=state.non_striker_id,
            bowler_id=state.bowler_id,
            kind=kind,
            timestamp=self._next_timestamp(),
            before=state.crease,
            **fields,
        )

    def _log_admin(self, kind: EventKind, **fields) -> BallEvent:
        event = self._new_event(kind, **fields)
        self.state.history.append(event)
        return event

    def _swap_strike(self):
        state = self.state
        state.striker_id, state.non_striker_id = state.non_striker_id, state.striker_id

    def _vacate(self, player_id: str) -> bool:
        state = self.state
        if player_id and state.striker_id == player_id:
            state.striker_id = ""
            return True
        if player_id and state.non_striker_id == player_id:
            state.non_striker_id = ""
            return True
        return False

    def blocked_reason(self) -> Optional[str]:
        state = self.state
        if state.is_completed:
            return "match is completed"
        if state.open_innings_score is None:
            return "innings is closed"
        reason = self.completion_reason()
        if reason:
            return f"innings is over ({reason})"
        if not state.striker_id:
            return "new batter required"
        if not state.bowler_id:
            return "bowler selection required"
        return None

    def _close_open_innings(self) -> Optional[InningsScore]:
        entry = self.state.open_innings_score
        if entry is not None:
            entry.score = self.state.score
            entry.wickets = self.state.wickets
            entry.is_complete = True
        return entry

    def _on_over_complete(self):
        adj = self.state.adjustments
        if adj.is_last_hour and adj.last_hour_overs_remaining is not None:
            adj.last_hour_overs_remaining = max(0, adj.last_hour_overs_remaining - 1)
            if adj.last_hour_overs_remaining == 0:
                adj.concluded = True
                logger.info("Last hour minimum overs completed; play concluded")

    # ------------------------------------------------------------------ #
    # Scoring                                                              #
    # ------------------------------------------------------------------ #

    def apply_ball(self, runs=0, extra_type=None, extra_runs=0, is_wicket=False,
                   wicket_type=None, out_player_id=None, fielder_id=None, note="",
                   pitch_coords=None, shot_coords=None, shot_height=None) -> Optional[BallEvent]:
        """
        Append one delivery built from the current crease and the delta.

        Returns the appended BallEvent, or None when scoring is blocked
        (match over, innings over, empty striker or bowler slot).
        """
        extra, wicket = validate_delta(runs, extra_runs, extra_type, is_wicket,
                                       wicket_type, out_player_id)
        state = self.state
        if is_wicket and out_player_id not in (state.striker_id, state.non_striker_id):
            raise InvalidDeltaError(f"Player {out_player_id} is not at the crease")

        blocked = self.blocked_reason()
        if blocked:
            logger.warning(f"Ball rejected: {blocked}")
            return None

        event = self._new_event(
            runs=runs,
            extra_type=extra,
            extra_runs=extra_runs,
            is_wicket=bool(is_wicket),
            wicket_type=wicket,
            out_player_id=out_player_id if is_wicket else None,
            fielder_id=fielder_id if is_wicket else None,
            note=note or "",
            pitch_coords=pitch_coords,
            shot_coords=shot_coords,
            shot_height=shot_height,
        )
        state.history.append(event)

        state.score += event.total_runs
        if event.is_wicket:
            state.wickets += 1

        if event.runs_run % 2 == 1:
            self._swap_strike()

        if event.is_legal:
            state.total_balls += 1
            if state.total_balls % 6 == 0:
                self._swap_strike()
                state.bowler_id = ""
                self._on_over_complete()

        if event.is_wicket:
            self._vacate(event.out_player_id)

        self._commit("ball", event)
        return event

    def record_wicket(self, wicket_type, out_player_id, fielder_id=None, runs=0,
                      extra_type=None, extra_runs=0, note="") -> Optional[BallEvent]:
        return self.apply_ball(
            runs=runs,
            extra_type=extra_type,
            extra_runs=extra_runs,
            is_wicket=True,
            wicket_type=wicket_type,
            out_player_id=out_player_id,
            fielder_id=fielder_id,
            note=note,
        )

    def undo_ball(self) -> bool:
        """Remove the latest event of the current innings and reverse it."""
        state = self.state
        last = state.last_event()
        if last is None:
            logger.info("Cannot undo: history is empty")
            return False
        if last.innings != state.innings or state.open_innings_score is None or state.is_completed:
            logger.info("Cannot undo: latest event belongs to a closed innings")
            return False

        state.history.pop()

        if last.is_delivery:
            state.score -= last.total_runs
            if last.is_wicket:
                state.wickets -= 1
            if last.is_legal:
                if state.total_balls % 6 == 0:
                    self._reverse_over_complete()
                state.total_balls -= 1
        elif last.kind == EventKind.BATTER_RETIRED and last.counts_as_wicket:
            state.wickets -= 1
        elif last.kind == EventKind.LAST_HOUR:
            state.adjustments.is_last_hour = False
            state.adjustments.last_hour_overs_remaining = None

        state.striker_id = last.before.striker_id
        state.non_striker_id = last.before.non_striker_id
        state.bowler_id = last.before.bowler_id

        self._commit("undo", last)
        return True

    def _reverse_over_complete(self):
        adj = self.state.adjustments
        if adj.is_last_hour and adj.last_hour_overs_remaining is not None:
            if adj.last_hour_overs_remaining == 0:
                adj.concluded = False
            adj.last_hour_overs_remaining += 1

    def edit_ball(self, timestamp: int, updates: dict) -> bool:
        """
        Correct a historical event in place.

        Analytics fields are cosmetic.  Changing a scoring field re-derives
        that innings' score, wickets and balls from the history; the crease
        is left as it is.
        """
        event = next((e for e in self.state.history if e.timestamp == timestamp), None)
        if event is None:
            logger.warning(f"Edit ignored: no event with timestamp {timestamp}")
            return False

        allowed = {}
        for key, value in (updates or {}).items():
            if key in ANALYTICS_FIELDS or key in SCORING_FIELDS:
                allowed[key] = value
            else:
                logger.warning(f"Edit ignored unknown field '{key}'")
        if not allowed:
            return False

        scoring_change = any(k in SCORING_FIELDS for k in allowed)
        if scoring_change and not event.is_delivery:
            raise InvalidDeltaError(f"Scoring fields cannot be edited on a {event.kind.value} event")
        if scoring_change:
            merged = {k: getattr(event, k) for k in SCORING_FIELDS}
            merged.update({k: v for k, v in allowed.items() if k in SCORING_FIELDS})
            extra, wicket = validate_delta(
                merged["runs"], merged["extra_runs"], merged["extra_type"],
                merged["is_wicket"], merged["wicket_type"], merged["out_player_id"],
            )
            allowed["extra_type"] = extra
            allowed["wicket_type"] = wicket
            if not merged["is_wicket"]:
                allowed["out_player_id"] = None
                allowed["fielder_id"] = None

        for key, value in allowed.items():
            setattr(event, key, value)

        if scoring_change:
            self._recount_innings(event.innings)
        self._commit("edit", event)
        return True

    def _recount_innings(self, innings: int):
        events = self.state.innings_history(innings)
        score = sum(e.total_runs for e in events)
        wickets = sum(1 for e in events if e.counts_as_wicket)
        balls = sum(1 for e in events if e.is_legal)

        state = self.state
        if innings == state.innings:
            state.score, state.wickets, state.total_balls = score, wickets, balls
        for entry in state.innings_scores:
            if entry.innings == innings:
                entry.score, entry.wickets = score, wickets
        logger.info(f"Innings {innings} re-derived from history: {score}/{wickets} in {balls} balls")

    # ------------------------------------------------------------------ #
    # Crease management                                                    #
    # ------------------------------------------------------------------ #

    def start_match(self, striker_id: str, non_striker_id: str, bowler_id: str) -> Optional[BallEvent]:
        """Put the opening pair and bowler in place and start the clock."""
        if not striker_id or not non_striker_id or not bowler_id:
            raise InvalidDeltaError("All fields are required to start the match.")
        if striker_id == non_striker_id:
            raise InvalidDeltaError("Striker and Non-Striker must be different players.")
        state = self.state
        if state.is_completed or state.open_innings_score is None:
            logger.warning("Start ignored: no open innings")
            return None

        event = self._log_admin(EventKind.MATCH_STARTED, note="Match Started")
        state.striker_id, state.non_striker_id, state.bowler_id = striker_id, non_striker_id, bowler_id
        if state.match_timer.start_time is None:
            state.match_timer.start_time = event.timestamp
        self._commit("start", event)
        return event

    def select_bowler(self, bowler_id: str) -> Optional[BallEvent]:
        """Bowler for a new over."""
        if not bowler_id:
            raise InvalidDeltaError("A bowler is required.")
        if self.state.is_completed:
            return None
        event = self._log_admin(EventKind.NEW_BOWLER, note="New Bowler")
        self.state.bowler_id = bowler_id
        self._commit("new_bowler", event)
        return event

    def select_batter(self, slot: str, player_id: str) -> Optional[BallEvent]:
        """Fill the empty striker or non-striker slot."""
        attr = _slot_for_role(slot)
        if attr == "bowler_id" or not player_id:
            raise InvalidDeltaError("A batter and a batting slot are required.")
        state = self.state
        other = state.non_striker_id if attr == "striker_id" else state.striker_id
        if player_id == other:
            raise InvalidDeltaError("Striker and Non-Striker must be different players.")
        if state.is_completed:
            return None
        event = self._log_admin(EventKind.NEW_BATTER, note=attr)
        setattr(state, attr, player_id)
        self._commit("new_batter", event)
        return event

    def replace_bowler_mid_over(self, new_bowler_id: str) -> Optional[BallEvent]:
        """Injury or correction substitute; no ball is bowled."""
        if not new_bowler_id:
            raise InvalidDeltaError("A bowler is required.")
        if self.state.is_completed:
            return None
        event = self._log_admin(EventKind.BOWLER_REPLACED,
                                note=f"{self.state.bowler_id}->{new_bowler_id}")
        self.state.bowler_id = new_bowler_id
        self._commit("replace_bowler", event)
        return event

    def correct_player_identity(self, old_id: str, new_id: str, role) -> bool:
        """Fix a mis-selected player going forward; recorded balls keep the old id."""
        attr = _slot_for_role(role)
        state = self.state
        if not new_id or getattr(state, attr) != old_id:
            logger.warning(f"Correction ignored: {old_id} is not the current {attr}")
            return False
        event = self._log_admin(EventKind.PLAYER_CORRECTED, note=f"{old_id}->{new_id}")
        setattr(state, attr, new_id)
        self._commit("correct_player", event)
        return True

    def retire_batter(self, player_id: str, retire_type=RetireType.RETIRED_HURT) -> bool:
        retire = RetireType(retire_type)
        state = self.state
        if player_id not in (state.striker_id, state.non_striker_id) or not player_id:
            logger.warning(f"Retirement ignored: {player_id} is not at the crease")
            return False
        event = self._log_admin(EventKind.BATTER_RETIRED, out_player_id=player_id, note=retire.value)
        if retire == RetireType.RETIRED_OUT:
            state.wickets += 1
        self._vacate(player_id)
        self._commit("retire", event)
        return True

    def update_metadata(self, **partial) -> bool:
        """Merge-patch for state that is not a scoring event."""
        state = self.state
        applied = False
        for key, value in partial.items():
            if key not in METADATA_FIELDS:
                logger.warning(f"Metadata update ignored unknown field '{key}'")
                continue
            if key == "match_timer" and isinstance(value, dict):
                merged = state.match_timer.to_dict()
                merged.update({_camel(k): v for k, v in value.items()})
                value = MatchTimer.from_dict(merged)
            elif key == "adjustments" and isinstance(value, dict):
                merged = state.adjustments.to_dict()
                merged.update({_camel(k): v for k, v in value.items()})
                value = Adjustments.from_dict(merged)
            elif key == "umpires":
                if value is not None and not isinstance(value, (list, tuple)):
                    logger.warning(f"Metadata update ignored umpires={value!r}: expected a list")
                    continue
                value = list(value or [])
            elif key != "active_scorer_id":
                value = value or ""
            setattr(state, key, value)
            applied = True

        if applied:
            self._commit("metadata")
        return applied

    # ------------------------------------------------------------------ #
    # Innings transitions                                                  #
    # ------------------------------------------------------------------ #

    def start_innings(self, batting_team_id: str, bowling_team_id: str,
                      initial_target: Optional[int] = None, is_follow_on: bool = False) -> bool:
        state = self.state
        if not batting_team_id or not bowling_team_id:
            logger.warning("Cannot start innings: both teams are required")
            return False
        if state.is_completed:
            logger.warning("Cannot start innings: match is completed")
            return False

        # A fresh state saved without an innings entry opens innings 1 in place.
        if state.current_innings_score is None and not state.innings_history():
            state.batting_team_id, state.bowling_team_id = batting_team_id, bowling_team_id
            state.innings_scores.append(InningsScore(team_id=batting_team_id, innings=state.innings))
            if initial_target is not None:
                state.target = initial_target
            self._commit("start_innings")
            return True

        if state.innings >= self.rules.max_innings:
            logger.warning(f"Cannot start innings: {self.rules.match_format} allows "
                           f"{self.rules.max_innings} innings")
            return False

        target = initial_target
        if target is None:
            target = compute_target(state, self.rules, batting_team_id)

        self._close_open_innings()
        state.innings += 1
        state.batting_team_id, state.bowling_team_id = batting_team_id, bowling_team_id
        state.score = state.wickets = state.total_balls = 0
        state.striker_id = state.non_striker_id = state.bowler_id = ""
        state.target = target
        state.innings_scores.append(InningsScore(
            team_id=batting_team_id, innings=state.innings, follow_on=bool(is_follow_on)))

        logger.info(f"Innings {state.innings} started: {batting_team_id} batting"
                    f"{' (follow-on)' if is_follow_on else ''}"
                    f"{f', target {target}' if target else ''}")
        self._commit("start_innings")
        return True

    def end_innings(self, is_match_end: bool = False) -> bool:
        state = self.state
        if state.is_completed:
            return False
        entry = self._close_open_innings()
        if entry is None and not is_match_end:
            return False
        if is_match_end:
            state.is_completed = True
            logger.info("Match completed")
        self._commit("end_innings")
        return True

    def declare_innings(self) -> bool:
        state = self.state
        entry = state.open_innings_score
        if entry is None or state.is_completed:
            return False
        event = self._log_admin(EventKind.INNINGS_DECLARED, note="Declared")
        entry.declared = True
        self._close_open_innings()
        self._commit("declare", event)
        return True

    def forfeit_innings(self) -> bool:
        state = self.state
        entry = state.open_innings_score
        if entry is None or state.is_completed:
            return False
        entry.forfeited = True
        self._close_open_innings()
        self._commit("forfeit")
        return True

    def conclude_innings(self) -> bool:
        """Manual "End Match": bypasses the completion policy."""
        state = self.state
        if state.is_completed:
            return False
        self._close_open_innings()
        state.adjustments.concluded = True
        state.is_completed = True
        self._commit("conclude")
        return True

    # ------------------------------------------------------------------ #
    # Multi-day / timer                                                    #
    # ------------------------------------------------------------------ #

    def trigger_last_hour(self, minimum_overs: int = LAST_HOUR_MIN_OVERS) -> bool:
        state = self.state
        adj = state.adjustments
        if not self.rules.is_test or adj.is_last_hour or adj.concluded or state.is_completed:
            return False
        # An over already under way does not count toward the minimum.
        remaining = minimum_overs + (1 if state.total_balls % 6 else 0)
        event = self._log_admin(EventKind.LAST_HOUR, note=f"{remaining} overs")
        adj.is_last_hour = True
        adj.last_hour_overs_remaining = remaining
        self._commit("last_hour", event)
        return True

    def advance_session(self) -> str:
        adj = self.state.adjustments
        if adj.session in SESSIONS and adj.session != SESSIONS[-1]:
            adj.session = SESSIONS[SESSIONS.index(adj.session) + 1]
        else:
            adj.current_day += 1
            adj.session = SESSIONS[0]
            adj.is_last_hour = False
            adj.last_hour_overs_remaining = None
        self._commit("session")
        return f"Day {adj.current_day} - {adj.session}"

    def pause_timer(self, now: Optional[int] = None) -> bool:
        timer = self.state.match_timer
        if timer.start_time is None or timer.is_paused:
            return False
        timer.is_paused = True
        timer.last_pause_time = now if now is not None else now_ms()
        self._commit("pause")
        return True

    def resume_timer(self, now: Optional[int] = None) -> bool:
        timer = self.state.match_timer
        if not timer.is_paused:
            return False
        now = now if now is not None else now_ms()
        timer.total_allowances += max(0, now - (timer.last_pause_time or now))
        timer.is_paused = False
        timer.last_pause_time = None
        self._commit("resume")
        return True


__all__ = [
    "MatchEngine",
    "StateChange",
    "ExtraType",
    "WicketType",
    "RetireType",
]
