"""
Duplicate live-match detection.

Two scorers sometimes create the same fixture independently.  Matches for
the same pair of teams on the same calendar day share a ``game_id``; the
first one created is the primary, later ones are flagged as duplicates and
left out of career statistics.
"""

from datetime import date, datetime, timezone


def _date_str(value):
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        # ms since epoch
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date().isoformat()
    return datetime.fromisoformat(str(value)).date().isoformat()


def generate_game_id(team_a_id, team_b_id, when):
    """Same id regardless of which side is listed first."""
    team_1, team_2 = sorted([str(team_a_id), str(team_b_id)])
    return f"{team_1}_{team_2}_{_date_str(when)}"


def check_for_duplicate_match(team_a_id, team_b_id, when, existing):
    """
    Returns (is_duplicate, primary_match, game_id).

    ``existing`` is any iterable of objects with ``game_id`` and
    ``is_duplicate`` attributes (Match rows).  Without both teams and a
    date nothing can be checked and game_id is "".
    """
    if not team_a_id or not team_b_id or when is None:
        return False, None, ""

    game_id = generate_game_id(team_a_id, team_b_id, when)
    primary = next(
        (m for m in existing if m.game_id == game_id and not m.is_duplicate),
        None,
    )
    return primary is not None, primary, game_id


def mark_as_duplicate(match, primary, reason=None):
    match.is_duplicate = True
    match.primary_match_id = primary.id
    match.duplicate_reason = reason or f"Duplicate of match {primary.id}"
    match.game_id = primary.game_id
    return match


def filter_non_duplicate(matches):
    return [m for m in matches if not m.is_duplicate]
