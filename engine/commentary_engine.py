import json
import random
import logging
import os
from typing import Dict, Optional

from engine.ball_event import BallEvent, ExtraType

logger = logging.getLogger(__name__)


def describe_event(event: BallEvent, names: Optional[Dict[str, str]] = None) -> dict:
    """
    Commentary payload for one delivery, with player ids resolved to names.

    Consumers (audio commentary, live feed) only ever see this shape.
    """
    names = names or {}

    def name_of(player_id):
        if not player_id:
            return None
        return names.get(player_id, player_id)

    return {
        "runs": event.runs,
        "extraType": event.extra_type.value,
        "wicketType": event.wicket_type.value if event.wicket_type else None,
        "strikerName": name_of(event.striker_id),
        "bowlerName": name_of(event.bowler_id),
        "outPlayerName": name_of(event.out_player_id),
        "fielderName": name_of(event.fielder_id),
    }


class CommentaryEngine:
    def __init__(self, data_path=None, rng=None):
        if data_path is None:
            # Default to data/commentary_pack.json relative to project root
            base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
            data_path = os.path.join(base_dir, "data", "commentary_pack.json")

        self.data_path = data_path
        self.rng = rng or random.Random()
        self.data = self._load_data()
        self.events = self.data.get("events", {})
        self.narratives = self.data.get("narratives", {})

    def _load_data(self):
        try:
            with open(self.data_path, 'r') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load commentary pack from {self.data_path}: {e}")
            return {"events": {}, "narratives": {}}

    def get_commentary(self, payload: dict) -> str:
        """Generate a commentary line from a describe_event payload."""
        key = self._map_payload_to_key(payload)
        templates = self.events.get(key, [])
        if not templates and key.startswith("wicket_"):
            return f"WICKET! {payload.get('wicketType')}!"
        if not templates:
            runs = payload.get("runs", 0)
            return f"{runs} runs" if runs else "Play continues."

        text = self.rng.choice(templates).get("text", "")
        return text.format(
            batter=payload.get("strikerName") or "The batter",
            bowler=payload.get("bowlerName") or "The bowler",
            out_player=payload.get("outPlayerName") or "The batter",
            fielder=payload.get("fielderName") or "the fielder",
            runs=payload.get("runs", 0),
        )

    def _map_payload_to_key(self, payload):
        """Map a payload to a JSON key."""
        extra_type = payload.get("extraType") or ExtraType.NONE.value
        runs = payload.get("runs", 0)

        if extra_type == ExtraType.WIDE.value:
            return "wide"
        if extra_type == ExtraType.NO_BALL.value:
            return "noball"
        if extra_type == ExtraType.BYE.value:
            return "bye"
        if extra_type == ExtraType.LEG_BYE.value:
            return "legbye"

        if payload.get("wicketType"):
            return f"wicket_{payload['wicketType'].lower()}"

        return {
            0: "dot",
            1: "single",
            2: "double",
            3: "three",
            4: "boundary_four",
            6: "boundary_six",
        }.get(runs, "other")

    # ------------------------------------------------------------------ #
    #  End-of-over summary
    # ------------------------------------------------------------------ #

    def end_of_over(self, state, stats) -> Optional[str]:
        """Summary line after the last ball of an over, given DerivedStats."""
        if state.total_balls == 0 or state.total_balls % 6 != 0:
            return None

        context = {
            "over": state.total_balls // 6,
            "score": state.score,
            "wickets": state.wickets,
            "run_rate": f"{stats.run_rate:.2f}",
        }
        templates = []
        if state.target is not None:
            needed = state.target - state.score
            if needed <= 0:
                return None
            context["needed"] = needed
            templates.extend(self._format_narratives("end_of_over_chase", **context))
            if stats.required_rate is not None:
                context["required_rate"] = f"{stats.required_rate:.2f}"
                templates.extend(self._format_narratives("end_of_over_required_rate", **context))
        else:
            templates.extend(self._format_narratives("end_of_over", **context))
            if stats.projected_score:
                templates.extend(self._format_narratives(
                    "end_of_over_projected", projected=stats.projected_score, **context))

        if templates:
            return self.rng.choice(templates)
        return None

    def _format_narratives(self, key, **kwargs):
        """Get narrative templates and format them with context."""
        raw = self.narratives.get(key, [])
        if not raw:
            return []
        formatted = []
        for text in raw:
            try:
                formatted.append(text.format(**kwargs))
            except (KeyError, IndexError):
                formatted.append(text)
        return formatted
