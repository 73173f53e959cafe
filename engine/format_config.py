"""
engine/format_config.py
=======================

Single source of truth for all format-specific parameters of a live match.

Every engine component that has a format-sensitive value reads from a
MatchRules instance rather than hardcoding T20 constants.  Adding a new
format requires only a new entry in FORMAT_REGISTRY.

Usage
-----
    from engine.format_config import resolve_rules

    rules = resolve_rules(match.match_format, match.overs_per_side,
                          match.players_per_side, match.allow_flexible_squad)
    rules.total_overs_allowed   # 20, 50 or None (Test)
    rules.max_overs_per_bowler  # 4, 10 or None
    rules.follow_on_threshold   # 200 (Test) or None
    rules.all_out_wickets()     # 10 for an XI

Rules are a pure function of the match configuration; they are recomputed
whenever needed and never cached across match mutations.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional


# ---------------------------------------------------------------------------
# FormatConfig
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FormatConfig:
    """
    Static parameterisation of a cricket format.

    Attributes
    ----------
    name                 : canonical format name ("T20", "ODI", "Test", "custom")
    overs                : overs per innings, None for timeless innings
    innings_per_side     : 1 for limited-overs, 2 for Test
    follow_on_threshold  : first-innings lead that allows the follow-on
    bowler_quota_divisor : a bowler may bowl overs / divisor (rounded up)
    """
    name: str
    overs: Optional[int]
    innings_per_side: int
    follow_on_threshold: Optional[int] = None
    bowler_quota_divisor: int = 5

    @property
    def max_innings(self) -> int:
        return self.innings_per_side * 2

    @property
    def is_limited_overs(self) -> bool:
        return self.overs is not None


FORMAT_REGISTRY: Dict[str, FormatConfig] = {
    "T20":    FormatConfig(name="T20", overs=20, innings_per_side=1),
    "ODI":    FormatConfig(name="ODI", overs=50, innings_per_side=1),
    "Test":   FormatConfig(name="Test", overs=None, innings_per_side=2,
                           follow_on_threshold=200),
    "custom": FormatConfig(name="custom", overs=20, innings_per_side=1),
}

# Minimum overs bowled in the last hour of a Test day.
LAST_HOUR_MIN_OVERS = 15


def get_format(match_format: Optional[str]) -> FormatConfig:
    """
    Return the FormatConfig for the given match_format string.
    Defaults to T20 for None or unrecognised values.
    """
    return FORMAT_REGISTRY.get(match_format or "T20", FORMAT_REGISTRY["T20"])


# ---------------------------------------------------------------------------
# MatchRules: the resolved constraints for one match
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchRules:
    match_format: str
    total_overs_allowed: Optional[int]
    max_overs_per_bowler: Optional[int]
    follow_on_threshold: Optional[int]
    max_innings: int
    players_per_side: int
    allow_flexible_squad: bool

    @property
    def is_limited_overs(self) -> bool:
        return self.total_overs_allowed is not None

    @property
    def is_test(self) -> bool:
        return self.match_format == "Test"

    @property
    def max_balls(self) -> Optional[int]:
        if self.total_overs_allowed is None:
            return None
        return self.total_overs_allowed * 6

    def all_out_wickets(self, batting_roster_size: Optional[int] = None) -> int:
        """
        Wickets that end an innings.

        Flexible squads may field fewer (or more) than the configured number
        of players, so the actual batting roster decides when one is given.
        """
        side = self.players_per_side
        if self.allow_flexible_squad and batting_roster_size:
            side = batting_roster_size
        return max(1, side - 1)


def resolve_rules(match_format: Optional[str], overs_per_innings: Optional[int] = None,
                  players_per_side: int = 11, allow_flexible_squad: bool = False) -> MatchRules:
    fmt = get_format(match_format)

    overs = fmt.overs
    if fmt.is_limited_overs and overs_per_innings:
        overs = int(overs_per_innings)

    quota = None
    if overs is not None:
        quota = max(1, math.ceil(overs / fmt.bowler_quota_divisor))

    return MatchRules(
        match_format=fmt.name,
        total_overs_allowed=overs,
        max_overs_per_bowler=quota,
        follow_on_threshold=fmt.follow_on_threshold,
        max_innings=fmt.max_innings,
        players_per_side=int(players_per_side or 11),
        allow_flexible_squad=bool(allow_flexible_squad),
    )
