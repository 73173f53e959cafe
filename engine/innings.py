"""
engine/innings.py
=================

Innings completion policy and the match-level decisions that hang off it
(targets, follow-on, match over, result text).

Everything here is a pure function of (MatchState, MatchRules): evaluating
the policy twice on the same state returns the same answer.
"""

from typing import Dict, Optional

from engine.format_config import MatchRules
from engine.match_state import MatchState


ALL_OUT = "All out"
OVERS_EXHAUSTED = "Overs exhausted"
TARGET_REACHED = "Target reached"
DECLARED = "Innings declared"
FORFEITED = "Innings forfeited"
CONCLUDED = "Match concluded"


def check_end_of_innings(state: MatchState, rules: MatchRules,
                         batting_roster_size: Optional[int] = None) -> Optional[str]:
    """
    Return the reason the current innings must end, or None.

    Order matters: all-out is checked before anything else, so a wicket
    that also happens to be the last ball of the innings reports "All out".
    An empty striker/non-striker slot is never a reason on its own.
    """
    if state.wickets >= rules.all_out_wickets(batting_roster_size):
        return ALL_OUT

    if rules.max_balls is not None and state.total_balls >= rules.max_balls:
        return OVERS_EXHAUSTED

    if state.target is not None and state.score >= state.target:
        return TARGET_REACHED

    entry = state.current_innings_score
    if entry is not None:
        if entry.forfeited:
            return FORFEITED
        if entry.declared:
            return DECLARED

    if state.adjustments.concluded:
        return CONCLUDED

    return None


def is_match_over(state: MatchState, rules: MatchRules, reason: Optional[str] = None) -> bool:
    """Whether the innings that just ended (for `reason`) also ends the match."""
    if state.is_completed:
        return True
    if reason is None:
        return False
    if reason in (TARGET_REACHED, CONCLUDED):
        return True
    if state.innings >= rules.max_innings:
        return True

    # Innings defeat: the side batting third is still behind once it is done.
    if rules.is_test and state.innings == rules.max_innings - 1:
        return state.team_total(state.batting_team_id) < state.team_total(state.bowling_team_id)
    return False


def compute_target(state: MatchState, rules: MatchRules, next_batting_team_id: str) -> Optional[int]:
    """
    Target for the innings that is about to start, if it is the last one.

    Limited overs: first-innings score + 1.  Test: the deficit across both
    sides' innings + 1.
    """
    next_innings = state.innings + 1
    if next_innings != rules.max_innings:
        return None

    other_team = state.batting_team_id
    if other_team == next_batting_team_id:
        other_team = state.bowling_team_id

    deficit = state.team_total(other_team) - state.team_total(next_batting_team_id)
    return max(1, deficit + 1)


def first_innings_lead(state: MatchState) -> Optional[int]:
    """Runs the side batting first leads by after both first innings."""
    first = next((s for s in state.innings_scores if s.innings == 1), None)
    second = next((s for s in state.innings_scores if s.innings == 2), None)
    if first is None or second is None:
        return None
    second_score = second.score
    if not second.is_complete and state.innings == 2:
        second_score = state.score
    return first.score - second_score


def can_enforce_follow_on(state: MatchState, rules: MatchRules) -> bool:
    if not rules.is_test or rules.follow_on_threshold is None:
        return False
    if state.innings != 2 or state.is_completed:
        return False
    lead = first_innings_lead(state)
    return lead is not None and lead >= rules.follow_on_threshold


def describe_result(state: MatchState, rules: MatchRules,
                    team_names: Optional[Dict[str, str]] = None,
                    batting_roster_size: Optional[int] = None) -> Dict:
    """
    Result summary for a finished match.

    Returns {"result", "winner_team_id", "margin_type", "margin_value"};
    margin_type is "runs", "wickets", "innings", "tie" or None (draw/no result).
    """
    names = team_names or {}
    bat, bowl = state.batting_team_id, state.bowling_team_id
    bat_total = state.team_total(bat)
    bowl_total = state.team_total(bowl)
    reason = check_end_of_innings(state, rules, batting_roster_size)

    def outcome(text, winner=None, margin_type=None, margin_value=None):
        return {
            "result": text,
            "winner_team_id": winner,
            "margin_type": margin_type,
            "margin_value": margin_value,
        }

    if state.target is not None and state.score >= state.target:
        wickets_left = rules.all_out_wickets(batting_roster_size) - state.wickets
        return outcome(f"{names.get(bat, bat)} won by {wickets_left} wicket(s)",
                       bat, "wickets", wickets_left)

    innings_done = reason in (ALL_OUT, OVERS_EXHAUSTED, FORFEITED, DECLARED)

    if rules.is_test:
        if state.innings == rules.max_innings - 1 and innings_done and bat_total < bowl_total:
            margin = bowl_total - bat_total
            return outcome(f"{names.get(bowl, bowl)} won by an innings and {margin} run(s)",
                           bowl, "innings", margin)
        if state.innings == rules.max_innings and innings_done and reason != DECLARED:
            margin = bowl_total - bat_total
            return outcome(f"{names.get(bowl, bowl)} won by {margin} run(s)", bowl, "runs", margin)
        return outcome("Match drawn")

    if state.innings < rules.max_innings or not innings_done:
        return outcome("No result")
    if bowl_total > bat_total:
        margin = bowl_total - bat_total
        return outcome(f"{names.get(bowl, bowl)} won by {margin} run(s)", bowl, "runs", margin)
    if bowl_total == bat_total:
        return outcome("Match tied", None, "tie", 0)
    # Chasing side passed the total without a target being set.
    return outcome(f"{names.get(bat, bat)} won", bat, None, None)
