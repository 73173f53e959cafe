"""
engine/sync.py
==============

Lock discipline and store synchronisation for a live match.

Several scorers may open the same match.  Only one of them holds the soft
write lock (``state.active_scorer_id``); everybody else sees a read-only
view.  The lock never expires and is not fenced: an Administrator can take
it over explicitly.

MatchSync persists the whole MatchState after every engine mutation and
merges snapshots pushed by the store back into the engine: a snapshot that
differs from the local state (deep equality) replaces it wholesale, last
write wins.  With ``strict_versioning`` a snapshot carrying an older
``version`` than the local state is dropped instead.
"""

import logging
from typing import Any, Optional

from engine.match_state import MatchState

logger = logging.getLogger(__name__)

SCORER = "Scorer"
ADMINISTRATOR = "Administrator"
UMPIRE = "Umpire"


class StoreUnavailable(Exception):
    """The backing store could not be reached; local state stays authoritative."""


def _field(actor: Any, name: str) -> Optional[str]:
    if actor is None:
        return None
    if isinstance(actor, dict):
        return actor.get(name)
    return getattr(actor, name, None)


def _actor_id(actor: Any) -> Optional[str]:
    value = _field(actor, "id")
    return str(value) if value is not None else None


# ---------------------------------------------------------------------------
# Lock discipline
# ---------------------------------------------------------------------------

def is_authorized(state: MatchState, actor: Any) -> bool:
    """Scorers and Administrators always; Umpires only when assigned."""
    role = _field(actor, "role")
    if role in (SCORER, ADMINISTRATOR):
        return True
    if role == UMPIRE:
        return _actor_id(actor) in [str(u) for u in state.umpires]
    return False


def is_locked_by_other(state: MatchState, actor_id: Optional[str]) -> bool:
    holder = state.active_scorer_id
    return bool(holder) and holder != (str(actor_id) if actor_id is not None else None)


def can_mutate(state: MatchState, actor: Any) -> bool:
    return is_authorized(state, actor) and not is_locked_by_other(state, _actor_id(actor))


def claim_lock(engine, actor_id) -> bool:
    """Take the write lock if nobody holds it."""
    actor_id = str(actor_id)
    holder = engine.state.active_scorer_id
    if holder == actor_id:
        return True
    if holder:
        logger.info(f"Lock claim by {actor_id} refused: held by {holder}")
        return False
    engine.update_metadata(active_scorer_id=actor_id)
    logger.info(f"Scorer {actor_id} claimed the write lock")
    return True


def release_lock(engine, actor_id) -> bool:
    if engine.state.active_scorer_id != str(actor_id):
        return False
    engine.update_metadata(active_scorer_id=None)
    logger.info(f"Scorer {actor_id} released the write lock")
    return True


def override_lock(engine, admin: Any) -> bool:
    """Administrator takeover of a lock held by someone else."""
    if _field(admin, "role") != ADMINISTRATOR:
        logger.warning(f"Lock override refused for non-administrator {_actor_id(admin)}")
        return False
    previous = engine.state.active_scorer_id
    engine.update_metadata(active_scorer_id=_actor_id(admin))
    logger.warning(f"Write lock overridden by {_actor_id(admin)} (was {previous})")
    return True


# ---------------------------------------------------------------------------
# Store synchronisation
# ---------------------------------------------------------------------------

class MatchSync:
    def __init__(self, engine, store, match_id, strict_versioning: bool = False):
        self.engine = engine
        self.store = store
        self.match_id = match_id
        self.strict_versioning = strict_versioning
        self.dirty = False
        self._unsubscribe_engine = engine.subscribe(self._on_state_change)
        self._unsubscribe_store = store.subscribe(match_id, self.on_remote_change)

    def _on_state_change(self, change):
        if change.action == "remote":
            return
        self.dirty = True
        self.flush()

    def flush(self) -> bool:
        """Push the full local state; False (still dirty) if the store is down."""
        try:
            self.store.persist(self.match_id, self.engine.state)
        except StoreUnavailable as e:
            logger.error(f"Persist failed for match {self.match_id}: {e}", exc_info=True)
            return False
        self.dirty = False
        return True

    def on_remote_change(self, snapshot) -> bool:
        """Merge a snapshot from the store; True when the local state was replaced."""
        if snapshot is None:
            return False
        remote = snapshot if isinstance(snapshot, MatchState) else MatchState.from_dict(snapshot)
        local = self.engine.state

        if remote.to_dict() == local.to_dict():
            return False
        if self.strict_versioning and remote.version < local.version:
            logger.info(f"Stale snapshot v{remote.version} ignored for match {self.match_id} "
                        f"(local v{local.version})")
            return False

        self.engine.replace_state(remote)
        return True

    def close(self):
        self._unsubscribe_engine()
        self._unsubscribe_store()
