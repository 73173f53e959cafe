import os
import yaml

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

def load_config():
    config_path = os.getenv("CRICKETCORE_CONFIG_PATH") or os.path.join(PROJECT_ROOT, "config", "config.yaml")
    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def scoring_settings(config=None):
    """The `scoring` section with defaults filled in."""
    config = config if config is not None else load_config()
    scoring = config.get("scoring") or {}
    return {
        "strict_versioning": bool(scoring.get("strict_versioning", False)),
        "last_hour_min_overs": int(scoring.get("last_hour_min_overs", 15)),
        "default_players_per_side": int(scoring.get("default_players_per_side", 11)),
    }
