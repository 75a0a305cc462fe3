"""
Discontinued style registry: styles owned by a sale-channel import, which
regular inventory sources must not list.

Storage lives behind the store interfaces below; the engine only defines the
contract. Store errors propagate to the caller.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .schemas import DiscontinuedStyleRecord, InventoryVariant
from .utils import normalize_style

logger = logging.getLogger(__name__)


class StyleRegistryStore(ABC):
    """Persistence for DiscontinuedStyleRecords."""

    @abstractmethod
    def get_records(self, sale_source_id: Optional[str] = None) -> list[DiscontinuedStyleRecord]:
        """All records, or only those of one sale source."""

    @abstractmethod
    def save_record(self, record: DiscontinuedStyleRecord) -> None:
        """Insert or replace the record for (sale_source_id, style)."""

    def get_active_styles(self, sale_source_id: Optional[str] = None) -> set[str]:
        return {r.style for r in self.get_records(sale_source_id) if r.active}


class InventoryStore(ABC):
    """Persisted inventory rows of regular (non-sale) data sources."""

    @abstractmethod
    def get_items(self, data_source_id: str) -> list[InventoryVariant]:
        pass

    @abstractmethod
    def delete_items(self, data_source_id: str, keys: set[tuple[str, str, str]]) -> int:
        """Deletes the items whose natural key (`InventoryVariant.key`) is in `keys`."""


class InMemoryStyleRegistry(StyleRegistryStore):
    def __init__(self):
        self._records: dict[tuple[str, str], DiscontinuedStyleRecord] = {}

    def get_records(self, sale_source_id: Optional[str] = None) -> list[DiscontinuedStyleRecord]:
        return [
            r.model_copy()
            for r in self._records.values()
            if sale_source_id is None or r.sale_source_id == sale_source_id
        ]

    def save_record(self, record: DiscontinuedStyleRecord) -> None:
        self._records[(record.sale_source_id, record.style)] = record.model_copy()


class InMemoryInventoryStore(InventoryStore):
    def __init__(self, items: Optional[dict[str, list[InventoryVariant]]] = None):
        self._items = items or {}

    def get_items(self, data_source_id: str) -> list[InventoryVariant]:
        return list(self._items.get(data_source_id, []))

    def delete_items(self, data_source_id: str, keys: set[tuple[str, str, str]]) -> int:
        before = self._items.get(data_source_id, [])
        kept = [item for item in before if item.key not in keys]
        self._items[data_source_id] = kept
        return len(before) - len(kept)


def register_sale_file_styles(
    store: StyleRegistryStore, sale_source_id: str, items: list[InventoryVariant]
) -> dict[str, int]:
    """
    Makes the registry mirror the latest sale file for a source: every style
    in `items` becomes active, every previously registered style missing
    from it is deactivated (never deleted).
    """
    current = {normalize_style(item.style) for item in items} - {""}
    if not current:
        logger.warning(
            f"⚠️ Sale file for '{sale_source_id}' has no styles. Registry left unchanged."
        )
        return {"added": 0, "updated": 0, "deactivated": 0, "total": 0}

    existing = {r.style: r for r in store.get_records(sale_source_id)}
    added = updated = deactivated = 0

    for style in sorted(current):
        record = existing.get(style)
        if record is None:
            added += 1
        elif not record.active:
            updated += 1
        else:
            continue
        store.save_record(
            DiscontinuedStyleRecord(sale_source_id=sale_source_id, style=style, active=True)
        )

    for style, record in existing.items():
        if record.active and style not in current:
            store.save_record(record.model_copy(update={"active": False}))
            deactivated += 1

    logger.info(
        f"  > Registered {len(current)} sale styles for '{sale_source_id}' "
        f"({added} new, {updated} reactivated, {deactivated} deactivated)."
    )
    return {"added": added, "updated": updated, "deactivated": deactivated, "total": len(current)}


def filter_discontinued_styles(
    store: StyleRegistryStore,
    items: list[InventoryVariant],
    scope_source_id: Optional[str] = None,
) -> tuple[list[InventoryVariant], int, list[str]]:
    """
    Drops items whose normalized style is an active registry entry.
    Returns (kept items, removed count, matched styles).
    """
    active = store.get_active_styles(scope_source_id)
    if not active:
        return items, 0, []

    kept, matched = [], set()
    for item in items:
        style = normalize_style(item.style)
        if style in active:
            matched.add(style)
        else:
            kept.append(item)

    removed = len(items) - len(kept)
    if removed:
        logger.info(f"  > Filtered {removed} items across {len(matched)} discontinued styles.")
    return kept, removed, sorted(matched)


def remove_discontinued_inventory_items(
    registry: StyleRegistryStore,
    inventory: InventoryStore,
    data_source_id: str,
    scope_source_id: Optional[str] = None,
) -> int:
    """Purges already-persisted rows of `data_source_id` whose style is now discontinued."""
    active = registry.get_active_styles(scope_source_id)
    if not active:
        return 0

    doomed = {
        item.key
        for item in inventory.get_items(data_source_id)
        if normalize_style(item.style) in active
    }
    if not doomed:
        return 0
    removed = inventory.delete_items(data_source_id, doomed)
    logger.info(f"  > Removed {removed} stored items of '{data_source_id}' with discontinued styles.")
    return removed
