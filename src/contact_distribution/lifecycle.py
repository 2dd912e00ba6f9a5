"""Item lifecycle - status changes on contact items with counters recomputed on every write."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from contact_distribution.core.config import Settings
from contact_distribution.core.database import Database
from contact_distribution.core.errors import (
    InvalidItemFields,
    InvalidStatus,
    ItemNotFound,
    SubListNotFound,
    TransitionError,
)
from contact_distribution.core.models import ContactItem, ItemStatus, StatusUpdateResult, SubList

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Forward-only transition map (used when allow_status_regression is False)
# ---------------------------------------------------------------------------

FORWARD_TRANSITIONS: dict[ItemStatus, set[ItemStatus]] = {
    ItemStatus.PENDING: {
        ItemStatus.CONTACTED,
        ItemStatus.COMPLETED,
        ItemStatus.FAILED,
    },
    ItemStatus.CONTACTED: {
        ItemStatus.COMPLETED,
        ItemStatus.FAILED,
    },
    ItemStatus.COMPLETED: set(),
    ItemStatus.FAILED: set(),
}

# Item fields a status update may also overwrite
EDITABLE_FIELDS = {"notes"}


def parse_status(value: str | ItemStatus) -> ItemStatus:
    if isinstance(value, ItemStatus):
        return value
    try:
        return ItemStatus(value)
    except ValueError:
        raise InvalidStatus(str(value), [s.value for s in ItemStatus]) from None


def apply_status(
    item: ContactItem,
    status: ItemStatus,
    now: datetime,
    extra: dict[str, Any] | None = None,
) -> None:
    """Set the status; stamp contacted_at/completed_at only on first entry."""
    item.status = status
    if status == ItemStatus.CONTACTED and item.contacted_at is None:
        item.contacted_at = now
    elif status == ItemStatus.COMPLETED and item.completed_at is None:
        item.completed_at = now

    for key, value in (extra or {}).items():
        setattr(item, key, value)


class ItemLifecycleTracker:
    """Applies status updates to items inside a Sub-List."""

    def __init__(self, db: Database, settings: Settings | None = None):
        self.db = db
        self.settings = settings or Settings()

    async def update_item_status(
        self,
        sub_list_id: str,
        item_id: str,
        status: str | ItemStatus,
        extra: dict[str, Any] | None = None,
    ) -> StatusUpdateResult:
        """Update one item and persist the whole Sub-List atomically.

        Re-applying the current status changes nothing: timestamps keep their
        first value and the recomputed counters come out the same.
        """
        target = parse_status(status)
        overrides = self._clean_extra(extra)

        def mutate(sub_list: SubList) -> None:
            item = sub_list.find_item(item_id)
            if item is None:
                raise ItemNotFound(item_id)
            self._validate_transition(item.status, target)
            apply_status(item, target, datetime.now(timezone.utc), overrides)

        updated = await self.db.mutate_sub_list(sub_list_id, mutate)
        if updated is None:
            raise SubListNotFound(sub_list_id)

        logger.info(
            "List %s item %s -> %s (%d/%d completed)",
            sub_list_id, item_id, target.value,
            updated.completed_items, updated.total_items,
        )
        return StatusUpdateResult(
            sub_list_id=sub_list_id,
            item_id=item_id,
            status=target,
            completion_percentage=updated.completion_percentage,
        )

    def _validate_transition(self, current: ItemStatus, target: ItemStatus) -> None:
        """Check the transition against the configured policy."""
        if self.settings.allow_status_regression or current == target:
            return
        allowed = FORWARD_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise TransitionError(
                current.value, target.value, sorted(s.value for s in allowed)
            )

    def _clean_extra(self, extra: dict[str, Any] | None) -> dict[str, Any]:
        if not extra:
            return {}
        unknown = sorted(set(extra) - EDITABLE_FIELDS)
        if unknown:
            raise InvalidItemFields(unknown, sorted(EDITABLE_FIELDS))
        cleaned = dict(extra)
        if "notes" in cleaned:
            notes = "" if cleaned["notes"] is None else str(cleaned["notes"]).strip()
            # Empty notes leave the stored value alone
            if notes:
                cleaned["notes"] = notes[: self.settings.notes_max_length]
            else:
                del cleaned["notes"]
        return cleaned
