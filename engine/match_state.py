"""
engine/match_state.py
=====================

The MatchState aggregate: everything that is persisted for a live match.

The engine (engine/match.py) is the only writer.  Serialisation produces the
JSON-compatible ``savedState`` object stored on the match row and exchanged
with other scorers; ``MatchState.from_dict(state.to_dict())`` is lossless.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from engine.ball_event import BallEvent, Crease


# Innings status values
NOT_STARTED = "NotStarted"
IN_PROGRESS = "InProgress"
BREAK = "Break"
COMPLETED = "Completed"

# Match phase values
SETUP = "Setup"
LIVE = "Live"

SESSIONS = ("Session 1", "Session 2", "Session 3")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class InningsScore:
    team_id: str
    innings: int
    score: int = 0
    wickets: int = 0
    is_complete: bool = False
    declared: bool = False
    forfeited: bool = False
    follow_on: bool = False

    def to_dict(self):
        return {
            "teamId": self.team_id,
            "innings": self.innings,
            "score": self.score,
            "wickets": self.wickets,
            "isComplete": self.is_complete,
            "declared": self.declared,
            "forfeited": self.forfeited,
            "followOn": self.follow_on,
        }

    @staticmethod
    def from_dict(data):
        return InningsScore(
            team_id=data["teamId"],
            innings=int(data["innings"]),
            score=int(data.get("score", 0)),
            wickets=int(data.get("wickets", 0)),
            is_complete=bool(data.get("isComplete", False)),
            declared=bool(data.get("declared", False)),
            forfeited=bool(data.get("forfeited", False)),
            follow_on=bool(data.get("followOn", False)),
        )


@dataclass
class MatchTimer:
    start_time: Optional[int] = None
    is_paused: bool = False
    last_pause_time: Optional[int] = None
    total_allowances: int = 0   # ms of stoppage granted back to the fielding side

    def elapsed_ms(self, now: Optional[int] = None) -> int:
        """Playing time since the start, excluding pauses and allowances."""
        if self.start_time is None:
            return 0
        now = now if now is not None else now_ms()
        if self.is_paused and self.last_pause_time is not None:
            now = self.last_pause_time
        return max(0, now - self.start_time - self.total_allowances)

    def to_dict(self):
        return {
            "startTime": self.start_time,
            "isPaused": self.is_paused,
            "lastPauseTime": self.last_pause_time,
            "totalAllowances": self.total_allowances,
        }

    @staticmethod
    def from_dict(data):
        data = data or {}
        return MatchTimer(
            start_time=data.get("startTime"),
            is_paused=bool(data.get("isPaused", False)),
            last_pause_time=data.get("lastPauseTime"),
            total_allowances=int(data.get("totalAllowances", 0) or 0),
        )


@dataclass
class Adjustments:
    """Multi-day bookkeeping (Test matches)."""
    current_day: int = 1
    session: str = SESSIONS[0]
    is_last_hour: bool = False
    last_hour_overs_remaining: Optional[int] = None
    concluded: bool = False

    def to_dict(self):
        return {
            "currentDay": self.current_day,
            "session": self.session,
            "isLastHour": self.is_last_hour,
            "lastHourOversRemaining": self.last_hour_overs_remaining,
            "concluded": self.concluded,
        }

    @staticmethod
    def from_dict(data):
        data = data or {}
        return Adjustments(
            current_day=int(data.get("currentDay", 1) or 1),
            session=data.get("session") or SESSIONS[0],
            is_last_hour=bool(data.get("isLastHour", False)),
            last_hour_overs_remaining=data.get("lastHourOversRemaining"),
            concluded=bool(data.get("concluded", False)),
        )


@dataclass
class MatchState:
    batting_team_id: str
    bowling_team_id: str
    score: int = 0
    wickets: int = 0
    total_balls: int = 0
    striker_id: str = ""
    non_striker_id: str = ""
    bowler_id: str = ""
    innings: int = 1
    history: List[BallEvent] = field(default_factory=list)
    innings_scores: List[InningsScore] = field(default_factory=list)
    is_completed: bool = False
    target: Optional[int] = None
    match_timer: MatchTimer = field(default_factory=MatchTimer)
    umpires: List[str] = field(default_factory=list)
    active_scorer_id: Optional[str] = None
    adjustments: Adjustments = field(default_factory=Adjustments)
    version: int = 0

    @staticmethod
    def new(batting_team_id, bowling_team_id, striker_id="", non_striker_id="",
            bowler_id="", umpires=None):
        """Fresh state for a match that has not been scored yet."""
        state = MatchState(
            batting_team_id=batting_team_id,
            bowling_team_id=bowling_team_id,
            striker_id=striker_id or "",
            non_striker_id=non_striker_id or "",
            bowler_id=bowler_id or "",
            umpires=list(umpires or []),
        )
        if batting_team_id:
            state.innings_scores.append(InningsScore(team_id=batting_team_id, innings=1))
        return state

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    @property
    def crease(self) -> Crease:
        return Crease(self.striker_id, self.non_striker_id, self.bowler_id)

    @property
    def current_innings_score(self) -> Optional[InningsScore]:
        for entry in reversed(self.innings_scores):
            if entry.innings == self.innings and entry.team_id == self.batting_team_id:
                return entry
        return None

    @property
    def open_innings_score(self) -> Optional[InningsScore]:
        entry = self.current_innings_score
        if entry is not None and not entry.is_complete:
            return entry
        return None

    def innings_history(self, innings: Optional[int] = None) -> List[BallEvent]:
        innings = self.innings if innings is None else innings
        return [e for e in self.history if e.innings == innings]

    def recent(self) -> List[BallEvent]:
        """History newest first, the order scorers read it in."""
        return list(reversed(self.history))

    def last_event(self) -> Optional[BallEvent]:
        return self.history[-1] if self.history else None

    def dismissed_ids(self, innings: Optional[int] = None) -> set:
        out = set()
        for event in self.innings_history(innings):
            if event.counts_as_wicket and event.out_player_id:
                out.add(event.out_player_id)
        return out

    def team_total(self, team_id: str, include_current: bool = True) -> int:
        """Aggregate runs across all of a team's innings."""
        total = sum(s.score for s in self.innings_scores if s.team_id == team_id and s.is_complete)
        open_entry = self.open_innings_score
        if include_current and open_entry is not None and open_entry.team_id == team_id:
            total += self.score
        return total

    @property
    def overs_str(self) -> str:
        return f"{self.total_balls // 6}.{self.total_balls % 6}"

    @property
    def needs_bowler_change(self) -> bool:
        return (
            not self.is_completed
            and self.total_balls > 0
            and self.total_balls % 6 == 0
            and not self.bowler_id
        )

    @property
    def innings_status(self) -> str:
        if self.is_completed:
            return COMPLETED
        if self.open_innings_score is None:
            return BREAK
        if not self.innings_history() and not self.striker_id:
            return NOT_STARTED
        return IN_PROGRESS

    @property
    def phase(self) -> str:
        if self.is_completed:
            return COMPLETED
        if not self.history and not self.striker_id:
            return SETUP
        return LIVE

    # ------------------------------------------------------------------ #
    # Serialisation                                                        #
    # ------------------------------------------------------------------ #

    def to_dict(self) -> Dict[str, Any]:
        return {
            "battingTeamId": self.batting_team_id,
            "bowlingTeamId": self.bowling_team_id,
            "score": self.score,
            "wickets": self.wickets,
            "totalBalls": self.total_balls,
            "strikerId": self.striker_id,
            "nonStrikerId": self.non_striker_id,
            "bowlerId": self.bowler_id,
            "innings": self.innings,
            "history": [e.to_dict() for e in self.history],
            "inningsScores": [s.to_dict() for s in self.innings_scores],
            "isCompleted": self.is_completed,
            "target": self.target,
            "matchTimer": self.match_timer.to_dict(),
            "umpires": list(self.umpires),
            "activeScorerId": self.active_scorer_id,
            "adjustments": self.adjustments.to_dict(),
            "version": self.version,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MatchState":
        return MatchState(
            batting_team_id=data.get("battingTeamId", ""),
            bowling_team_id=data.get("bowlingTeamId", ""),
            score=int(data.get("score", 0)),
            wickets=int(data.get("wickets", 0)),
            total_balls=int(data.get("totalBalls", 0)),
            striker_id=data.get("strikerId") or "",
            non_striker_id=data.get("nonStrikerId") or "",
            bowler_id=data.get("bowlerId") or "",
            innings=int(data.get("innings", 1)),
            history=[BallEvent.from_dict(e) for e in data.get("history", [])],
            innings_scores=[InningsScore.from_dict(s) for s in data.get("inningsScores", [])],
            is_completed=bool(data.get("isCompleted", False)),
            target=data.get("target"),
            match_timer=MatchTimer.from_dict(data.get("matchTimer")),
            umpires=list(data.get("umpires") or []),
            active_scorer_id=data.get("activeScorerId"),
            adjustments=Adjustments.from_dict(data.get("adjustments")),
            version=int(data.get("version", 0) or 0),
        )
