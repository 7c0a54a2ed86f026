"""
Manual skip-list of deviations the parse stage should ignore.
"""

import logging

from .models import ExclusionEntry
from .storage import ArtifactStore

logger = logging.getLogger("deviation-import")

DEFAULT_REASON = "Manual exclusion"


def list_exclusions(store: ArtifactStore) -> list[ExclusionEntry]:
    return store.load_exclusions()


def add_exclusion(store: ArtifactStore, numeric_id: str, reason: str = DEFAULT_REASON) -> bool:
    """Exclude a deviation. Returns False (and warns) if it was already excluded."""
    entries = store.load_exclusions()
    if any(e.numeric_id == numeric_id for e in entries):
        logger.warning(f"ID {numeric_id} is already excluded.")
        return False

    entries.append(ExclusionEntry(numeric_id=numeric_id, reason=reason))
    store.save_exclusions(entries)
    logger.info(f"Excluded deviation {numeric_id}: {reason}")
    return True


def remove_exclusion(store: ArtifactStore, numeric_id: str) -> bool:
    """Un-exclude a deviation. Returns False (and warns) if it was not excluded."""
    entries = store.load_exclusions()
    remaining = [e for e in entries if e.numeric_id != numeric_id]
    if len(remaining) == len(entries):
        logger.warning(f"ID {numeric_id} was not in the exclusion list.")
        return False

    store.save_exclusions(remaining)
    logger.info(f"Removed {numeric_id} from exclusion list.")
    return True
