"""
engine/wicket_flow.py
=====================

Step-by-step capture of a dismissal before it is recorded.

    Idle -> TypeSelected -> OutPlayerSelected -> [FielderSelected] -> Confirmed

The fielder step only applies to dismissals that need one (caught, caught
behind, run out, stumped).  The flow is UI-side bookkeeping and is never
persisted; confirming hands the collected payload to MatchEngine.record_wicket
and starts over.
"""

import logging
from typing import Optional

from engine.ball_event import FIELDER_WICKETS, InvalidDeltaError, WicketType

logger = logging.getLogger(__name__)

IDLE = "Idle"
TYPE_SELECTED = "TypeSelected"
OUT_PLAYER_SELECTED = "OutPlayerSelected"
FIELDER_SELECTED = "FielderSelected"


class WicketFlow:
    def __init__(self):
        self.reset()

    def reset(self):
        self.step = IDLE
        self.wicket_type: Optional[WicketType] = None
        self.out_player_id: Optional[str] = None
        self.fielder_id: Optional[str] = None

    def start(self):
        self.reset()
        return self

    @property
    def needs_fielder(self) -> bool:
        return self.wicket_type in FIELDER_WICKETS

    def select_type(self, wicket_type):
        try:
            self.wicket_type = WicketType(wicket_type)
        except ValueError:
            raise InvalidDeltaError(f"Unknown wicket type: {wicket_type}")
        self.out_player_id = None
        self.fielder_id = None
        self.step = TYPE_SELECTED

    def select_out_player(self, player_id: str):
        if self.step == IDLE:
            raise InvalidDeltaError("Select the dismissal type first")
        if not player_id:
            raise InvalidDeltaError("A dismissed batter is required")
        self.out_player_id = player_id
        self.fielder_id = None
        self.step = OUT_PLAYER_SELECTED

    def select_fielder(self, fielder_id: str):
        if self.step not in (OUT_PLAYER_SELECTED, FIELDER_SELECTED):
            raise InvalidDeltaError("Select the dismissed batter first")
        if not self.needs_fielder:
            raise InvalidDeltaError(f"{self.wicket_type.value} does not involve a fielder")
        self.fielder_id = fielder_id
        self.step = FIELDER_SELECTED

    @property
    def is_ready(self) -> bool:
        if self.step == OUT_PLAYER_SELECTED:
            return not self.needs_fielder
        return self.step == FIELDER_SELECTED and bool(self.fielder_id)

    def payload(self) -> dict:
        return {
            "wicket_type": self.wicket_type,
            "out_player_id": self.out_player_id,
            "fielder_id": self.fielder_id,
        }

    def confirm(self, engine, runs=0, extra_type=None, extra_runs=0):
        """Record the collected dismissal on `engine` and reset the flow."""
        if not self.is_ready:
            raise InvalidDeltaError("Wicket details are incomplete")
        event = engine.record_wicket(runs=runs, extra_type=extra_type,
                                     extra_runs=extra_runs, **self.payload())
        if event is None:
            logger.warning("Wicket not recorded; the engine rejected the ball")
        self.reset()
        return event
