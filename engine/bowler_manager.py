"""
engine/bowler_manager.py
========================

Bowling quota and consecutive-over queries for any cricket format.

Nothing is tracked here: overs bowled are read back from the ball history
of the current innings every time, so undo and corrections can never leave
a stale quota behind.

Rules enforced
--------------
1. Bowling quota: a bowler may not exceed rules.max_overs_per_bowler
   per innings (4 for T20, 10 for ODI, none for Test).
2. No-consecutive: the bowler of the previous over may not bowl the next.

Usage
-----
    from engine.bowler_manager import BowlerManager, get_bowler_availability

    availability = get_bowler_availability(state, rules, bowler_id)
    availability.available, availability.overs_remaining

    manager = BowlerManager(bowling_roster, rules)
    manager.eligible_bowlers(state)
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from engine.format_config import MatchRules
from engine.match_state import MatchState

logger = logging.getLogger(__name__)


@dataclass
class BowlerAvailability:
    bowler_id: str
    balls_bowled: int
    overs_bowled: str
    overs_remaining: Optional[int]   # None when the format has no quota
    available: bool


def legal_balls_by_bowler(state: MatchState) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for event in state.innings_history():
        if event.is_legal and event.bowler_id:
            counts[event.bowler_id] = counts.get(event.bowler_id, 0) + 1
    return counts


def previous_over_bowler(state: MatchState) -> Optional[str]:
    """Bowler of the last completed over of the current innings."""
    if state.total_balls == 0 or state.total_balls % 6 != 0:
        return None
    last_over = state.total_balls // 6 - 1
    for event in reversed(state.innings_history()):
        if event.is_legal and event.over == last_over:
            return event.bowler_id
    return None


def get_bowler_availability(state: MatchState, rules: MatchRules, bowler_id: str) -> BowlerAvailability:
    balls = legal_balls_by_bowler(state).get(bowler_id, 0)
    completed_overs = balls // 6

    remaining = None
    available = True
    if rules.max_overs_per_bowler is not None:
        remaining = max(0, rules.max_overs_per_bowler - completed_overs)
        available = remaining > 0

    return BowlerAvailability(
        bowler_id=bowler_id,
        balls_bowled=balls,
        overs_bowled=f"{completed_overs}.{balls % 6}",
        overs_remaining=remaining,
        available=available,
    )


class BowlerManager:
    """
    Quota view over one bowling roster.

    Parameters
    ----------
    bowling_roster : list of player dicts ({"id", "name", "role"}).
    rules          : MatchRules for the match.
    """

    def __init__(self, bowling_roster: List[dict], rules: MatchRules):
        self.rules = rules
        self.roster = list(bowling_roster or [])

    def availability(self, state: MatchState) -> Dict[str, BowlerAvailability]:
        return {
            p["id"]: get_bowler_availability(state, self.rules, p["id"])
            for p in self.roster
        }

    def eligible_bowlers(self, state: MatchState) -> List[dict]:
        """Roster entries who may bowl the next over."""
        blocked = previous_over_bowler(state)
        eligible = []
        for p in self.roster:
            if p["id"] == blocked:
                continue
            if not get_bowler_availability(state, self.rules, p["id"]).available:
                continue
            eligible.append(p)

        if not eligible:
            logger.warning(f"No eligible bowlers left in innings {state.innings} "
                           f"after {state.overs_str} overs")
        return eligible

    def can_bowl_next_over(self, state: MatchState, bowler_id: str) -> bool:
        if bowler_id == previous_over_bowler(state):
            return False
        return get_bowler_availability(state, self.rules, bowler_id).available
