"""
engine/ball_event.py
====================

The record type for one delivery (or one administrative event) in a live
match.  Everything the engine knows about a match is derived from an ordered
list of these.

Two kinds of events share the same record:

* ``EventKind.DELIVERY``  – a scoring ball (runs, extras, wicket markers).
* administrative kinds    – match started, new bowler, retirement, ... which
                            never touch score or balls but are kept in the
                            history so undo can restore the crease.

Serialised form uses the camelCase keys of the persisted ``savedState``
object, e.g. ``{"runs": 4, "extraType": "None", "isWicket": false, ...}``.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional


class ExtraType(str, Enum):
    NONE = "None"
    WIDE = "Wide"
    NO_BALL = "NoBall"
    BYE = "Bye"
    LEG_BYE = "LegBye"


class WicketType(str, Enum):
    BOWLED = "Bowled"
    CAUGHT = "Caught"
    CAUGHT_BEHIND = "CaughtBehind"
    LBW = "LBW"
    RUN_OUT = "RunOut"
    STUMPED = "Stumped"
    HIT_WICKET = "HitWicket"
    OBSTRUCTING_FIELD = "ObstructingField"
    HANDLED_BALL = "HandledBall"
    TIMED_OUT = "TimedOut"


class RetireType(str, Enum):
    RETIRED_HURT = "RetiredHurt"
    RETIRED_OUT = "RetiredOut"


class EventKind(str, Enum):
    DELIVERY = "Delivery"
    MATCH_STARTED = "MatchStarted"
    NEW_BOWLER = "NewBowler"
    BOWLER_REPLACED = "BowlerReplaced"
    NEW_BATTER = "NewBatter"
    BATTER_RETIRED = "BatterRetired"
    PLAYER_CORRECTED = "PlayerCorrected"
    INNINGS_DECLARED = "InningsDeclared"
    LAST_HOUR = "LastHour"


# Deliveries that do not count toward the over and carry a one-run penalty.
ILLEGAL_DELIVERIES = (ExtraType.WIDE, ExtraType.NO_BALL)

# Dismissals a bowler is not credited with.
NON_BOWLER_WICKETS = (
    WicketType.RUN_OUT,
    WicketType.OBSTRUCTING_FIELD,
    WicketType.HANDLED_BALL,
    WicketType.TIMED_OUT,
)

# Dismissals that need a fielder before the wicket can be confirmed.
FIELDER_WICKETS = (
    WicketType.CAUGHT,
    WicketType.CAUGHT_BEHIND,
    WicketType.RUN_OUT,
    WicketType.STUMPED,
)

# Fields that only feed analytics; editing them never touches the totals.
ANALYTICS_FIELDS = ("pitch_coords", "shot_coords", "shot_height", "note")

SCORING_FIELDS = (
    "runs",
    "extra_type",
    "extra_runs",
    "is_wicket",
    "wicket_type",
    "out_player_id",
    "fielder_id",
)


class InvalidDeltaError(ValueError):
    """Raised for structurally malformed ball deltas."""


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass
class Crease:
    """Who was at the crease (and bowling) at a point in time."""
    striker_id: str = ""
    non_striker_id: str = ""
    bowler_id: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "strikerId": self.striker_id,
            "nonStrikerId": self.non_striker_id,
            "bowlerId": self.bowler_id,
        }

    @staticmethod
    def from_dict(data: Optional[Dict[str, Any]]) -> "Crease":
        data = data or {}
        return Crease(
            striker_id=data.get("strikerId", "") or "",
            non_striker_id=data.get("nonStrikerId", "") or "",
            bowler_id=data.get("bowlerId", "") or "",
        )


@dataclass
class BallEvent:
    """One entry of the match history."""
    innings: int
    over: int
    ball: int
    striker_id: str = ""
    non_striker_id: str = ""
    bowler_id: str = ""
    runs: int = 0
    extra_type: ExtraType = ExtraType.NONE
    extra_runs: int = 0
    is_wicket: bool = False
    wicket_type: Optional[WicketType] = None
    out_player_id: Optional[str] = None
    fielder_id: Optional[str] = None
    kind: EventKind = EventKind.DELIVERY
    note: str = ""
    timestamp: int = 0
    pitch_coords: Optional[Dict[str, float]] = None
    shot_coords: Optional[Dict[str, float]] = None
    shot_height: Optional[str] = None
    before: Crease = field(default_factory=Crease)

    # ------------------------------------------------------------------ #
    # Derived properties                                                   #
    # ------------------------------------------------------------------ #

    @property
    def is_delivery(self) -> bool:
        return self.kind == EventKind.DELIVERY

    @property
    def is_legal(self) -> bool:
        """True when the delivery counts toward the over."""
        return self.is_delivery and self.extra_type not in ILLEGAL_DELIVERIES

    @property
    def penalty(self) -> int:
        if self.is_delivery and self.extra_type in ILLEGAL_DELIVERIES:
            return 1
        return 0

    @property
    def total_runs(self) -> int:
        if not self.is_delivery:
            return 0
        return self.runs + self.extra_runs + self.penalty

    @property
    def runs_run(self) -> int:
        """Runs physically completed between the wickets (decides strike)."""
        if not self.is_delivery:
            return 0
        return self.runs + self.extra_runs

    @property
    def counts_as_wicket(self) -> bool:
        if self.is_delivery:
            return self.is_wicket
        return self.kind == EventKind.BATTER_RETIRED and self.note == RetireType.RETIRED_OUT.value

    @property
    def bowler_credited(self) -> bool:
        return self.is_delivery and self.is_wicket and self.wicket_type not in NON_BOWLER_WICKETS

    # ------------------------------------------------------------------ #
    # Serialisation                                                        #
    # ------------------------------------------------------------------ #

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, Crease):
                value = value.to_dict()
            elif isinstance(value, dict):
                value = dict(value)
            data[_camel(f.name)] = value
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "BallEvent":
        kwargs = {}
        for f in fields(BallEvent):
            key = _camel(f.name)
            if key in data:
                kwargs[f.name] = data[key]
        event = BallEvent(**kwargs)
        event.extra_type = ExtraType(event.extra_type or ExtraType.NONE.value)
        event.kind = EventKind(event.kind or EventKind.DELIVERY.value)
        if event.wicket_type:
            event.wicket_type = WicketType(event.wicket_type)
        if not isinstance(event.before, Crease):
            event.before = Crease.from_dict(event.before)
        return event

    def over_ball_str(self) -> str:
        return f"{self.over}.{self.ball}"


def validate_delta(runs=0, extra_runs=0, extra_type=None, is_wicket=False,
                   wicket_type=None, out_player_id=None):
    """
    Structural checks on a delivery delta.

    Returns the normalised ``(extra_type, wicket_type)`` pair or raises
    InvalidDeltaError.  Cricket-law combinations (e.g. bowled off a
    no-ball) are not checked.
    """
    for label, value in (("runs", runs), ("extra_runs", extra_runs)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidDeltaError(f"{label} must be a non-negative integer")

    try:
        extra = ExtraType(extra_type) if extra_type else ExtraType.NONE
    except ValueError:
        raise InvalidDeltaError(f"Unknown extra type: {extra_type}")

    wicket = None
    if is_wicket:
        if not wicket_type or not out_player_id:
            raise InvalidDeltaError("A wicket needs a wicket type and the dismissed batter")
        try:
            wicket = WicketType(wicket_type)
        except ValueError:
            raise InvalidDeltaError(f"Unknown wicket type: {wicket_type}")

    return extra, wicket
