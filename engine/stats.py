"""
engine/stats.py
===============

Derived statistics for the current innings.

Nothing in here is stored: every figure is recomputed from the ball history
and the running counters of a MatchState each time it is asked for, so an
undo or an edit is reflected immediately.

Usage
-----
    from engine.stats import derive_stats, lead_text

    stats = derive_stats(state, rules.total_overs_allowed)
    stats.batters["p1"].strike_rate
    stats.required_rate      # None once no balls remain and target unmet
"""

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from engine.ball_event import BallEvent, EventKind, ExtraType, RetireType
from engine.match_state import MatchState


@dataclass
class BatterStats:
    player_id: str
    runs: int = 0
    balls: int = 0
    fours: int = 0
    sixes: int = 0
    is_out: bool = False
    how_out: Optional[str] = None

    @property
    def strike_rate(self) -> float:
        if self.balls == 0:
            return 0.0
        return round(self.runs * 100 / self.balls, 2)


@dataclass
class BowlerStats:
    player_id: str
    balls: int = 0
    maidens: int = 0
    runs: int = 0
    wickets: int = 0

    @property
    def overs(self) -> str:
        return f"{self.balls // 6}.{self.balls % 6}"

    @property
    def economy(self) -> float:
        if self.balls == 0:
            return 0.0
        return round(self.runs / (self.balls / 6), 2)


@dataclass
class Extras:
    wides: int = 0
    no_balls: int = 0
    byes: int = 0
    leg_byes: int = 0

    @property
    def total(self) -> int:
        return self.wides + self.no_balls + self.byes + self.leg_byes


@dataclass
class Partnership:
    runs: int = 0
    balls: int = 0


@dataclass
class DerivedStats:
    batters: Dict[str, BatterStats] = field(default_factory=dict)
    bowlers: Dict[str, BowlerStats] = field(default_factory=dict)
    extras: Extras = field(default_factory=Extras)
    partnership: Partnership = field(default_factory=Partnership)
    run_rate: float = 0.0
    required_rate: Optional[float] = None
    balls_remaining: Optional[int] = None
    projected_score: Optional[int] = None

    def to_dict(self):
        return {
            "batters": [
                {**asdict(b), "strike_rate": b.strike_rate} for b in self.batters.values()
            ],
            "bowlers": [
                {**asdict(b), "overs": b.overs, "economy": b.economy} for b in self.bowlers.values()
            ],
            "extras": {**asdict(self.extras), "total": self.extras.total},
            "partnership": asdict(self.partnership),
            "run_rate": self.run_rate,
            "required_rate": self.required_rate,
            "balls_remaining": self.balls_remaining,
            "projected_score": self.projected_score,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _runs_conceded(event: BallEvent) -> int:
    """Runs charged to the bowler: off the bat plus wide/no-ball runs."""
    if event.extra_type in (ExtraType.WIDE, ExtraType.NO_BALL):
        return event.runs + event.extra_runs + event.penalty
    return event.runs


def _batter(batters: Dict[str, BatterStats], player_id: str) -> Optional[BatterStats]:
    if not player_id:
        return None
    if player_id not in batters:
        batters[player_id] = BatterStats(player_id=player_id)
    return batters[player_id]


def _count_maidens(events: List[BallEvent]) -> Dict[str, int]:
    overs: Dict[tuple, List[int]] = {}
    for e in events:
        if not e.is_delivery:
            continue
        key = (e.over, e.bowler_id)
        legal, conceded = overs.get(key, [0, 0])
        overs[key] = [legal + (1 if e.is_legal else 0), conceded + _runs_conceded(e)]

    maidens: Dict[str, int] = {}
    for (_, bowler_id), (legal, conceded) in overs.items():
        if legal == 6 and conceded == 0:
            maidens[bowler_id] = maidens.get(bowler_id, 0) + 1
    return maidens


def _ball_counts(state: MatchState, total_overs_allowed: Optional[int]):
    if total_overs_allowed is None:
        return None
    return max(0, total_overs_allowed * 6 - state.total_balls)


def compute_required_rate(target: Optional[int], score: int,
                          balls_remaining: Optional[int]) -> Optional[float]:
    """
    Runs per over needed to reach the target.

    None when there is nothing to chase, the innings has no overs limit, or
    no balls remain with the target unmet (the match is decided).
    """
    if target is None or balls_remaining is None:
        return None
    needed = target - score
    if needed <= 0:
        return 0.0
    if balls_remaining <= 0:
        return None
    return round(needed * 6 / balls_remaining, 2)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

def derive_stats(state: MatchState, total_overs_allowed: Optional[int]) -> DerivedStats:
    events = state.innings_history()
    stats = DerivedStats()

    for e in events:
        if e.kind == EventKind.BATTER_RETIRED:
            batter = _batter(stats.batters, e.out_player_id)
            if batter is not None and e.note == RetireType.RETIRED_OUT.value:
                batter.is_out = True
                batter.how_out = RetireType.RETIRED_OUT.value
            continue
        if not e.is_delivery:
            continue

        striker = _batter(stats.batters, e.striker_id)
        _batter(stats.batters, e.non_striker_id)
        if striker is not None:
            striker.runs += e.runs
            if e.extra_type != ExtraType.WIDE:
                striker.balls += 1
            if e.runs == 4:
                striker.fours += 1
            elif e.runs == 6:
                striker.sixes += 1

        if e.is_wicket:
            out = _batter(stats.batters, e.out_player_id)
            if out is not None:
                out.is_out = True
                out.how_out = e.wicket_type.value if e.wicket_type else None

        if e.bowler_id:
            bowler = stats.bowlers.setdefault(e.bowler_id, BowlerStats(player_id=e.bowler_id))
            if e.is_legal:
                bowler.balls += 1
            bowler.runs += _runs_conceded(e)
            if e.bowler_credited:
                bowler.wickets += 1

        if e.extra_type == ExtraType.WIDE:
            stats.extras.wides += e.extra_runs + e.penalty
        elif e.extra_type == ExtraType.NO_BALL:
            stats.extras.no_balls += e.extra_runs + e.penalty
        elif e.extra_type == ExtraType.BYE:
            stats.extras.byes += e.extra_runs
        elif e.extra_type == ExtraType.LEG_BYE:
            stats.extras.leg_byes += e.extra_runs

    for bowler_id, maidens in _count_maidens(events).items():
        if bowler_id in stats.bowlers:
            stats.bowlers[bowler_id].maidens = maidens

    # Partnership: everything since the last dismissal
    for e in events:
        if e.counts_as_wicket:
            stats.partnership = Partnership()
            continue
        if e.is_delivery:
            stats.partnership.runs += e.total_runs
            if e.is_legal:
                stats.partnership.balls += 1

    if state.total_balls > 0:
        stats.run_rate = round(state.score * 6 / state.total_balls, 2)

    stats.balls_remaining = _ball_counts(state, total_overs_allowed)
    stats.required_rate = compute_required_rate(state.target, state.score, stats.balls_remaining)

    if state.target is None and stats.balls_remaining is not None:
        stats.projected_score = round(state.score + stats.run_rate * stats.balls_remaining / 6)

    return stats


def lead_text(state: MatchState, total_overs_allowed: Optional[int] = None) -> str:
    """Scoreboard line: chase equation, or lead/trail across innings."""
    if state.target is not None:
        needed = state.target - state.score
        if needed <= 0:
            return "Target reached"
        remaining = _ball_counts(state, total_overs_allowed)
        if remaining is not None:
            return f"Need {needed} from {remaining} balls"
        return f"Need {needed} to win"

    if state.innings == 1:
        return ""

    lead = state.team_total(state.batting_team_id) - state.team_total(state.bowling_team_id)
    if lead > 0:
        return f"Lead by {lead}"
    if lead < 0:
        return f"Trail by {abs(lead)}"
    return "Scores Level"
