import logging
from datetime import date, timedelta
from typing import Optional

from . import settings
from .schemas import InventoryVariant

logger = logging.getLogger(__name__)


def zero_future_stock(
    variants: list[InventoryVariant], offset_days: Optional[int] = None, today: Optional[date] = None
) -> int:
    """
    Forces stock to 0 for variants whose ship date, shifted by `offset_days`,
    is still in the future. Returns how many in-stock variants were zeroed.
    """
    offset = timedelta(days=offset_days if offset_days is not None else settings.DATE_OFFSET_DAYS)
    today = today or date.today()
    zeroed = 0
    for variant in variants:
        if variant.ship_date is None or variant.ship_date + offset <= today:
            continue
        if variant.stock > 0:
            zeroed += 1
        variant.stock = 0
        variant.stock_zeroed = True
    return zeroed


def _pick(group: list[InventoryVariant], today: date, offset: timedelta) -> InventoryVariant:
    """
    Chooses the survivor of a duplicate group:
    1. highest stock among members with stock > 0,
    2. else the soonest still-future ship date,
    3. else the most recent past ship date,
    4. else the first member seen.
    """
    in_stock = [v for v in group if v.stock > 0]
    if in_stock:
        # max() keeps the first of equal maxima.
        return max(in_stock, key=lambda v: v.stock)

    dated = [v for v in group if v.ship_date is not None]
    future = [v for v in dated if v.ship_date + offset > today]
    if future:
        return min(future, key=lambda v: v.ship_date)
    if dated:
        return max(dated, key=lambda v: v.ship_date)
    return group[0]


def deduplicate(
    variants: list[InventoryVariant], offset_days: Optional[int] = None, today: Optional[date] = None
) -> tuple[list[InventoryVariant], int]:
    """Collapses variants sharing a case-insensitive (style, color, size) key."""
    offset = timedelta(days=offset_days if offset_days is not None else settings.DATE_OFFSET_DAYS)
    today = today or date.today()

    groups: dict[tuple[str, str, str], list[InventoryVariant]] = {}
    for variant in variants:
        groups.setdefault(variant.key, []).append(variant)

    survivors = [group[0] if len(group) == 1 else _pick(group, today, offset) for group in groups.values()]
    return survivors, len(variants) - len(survivors)


def reconcile(
    variants: list[InventoryVariant], offset_days: Optional[int] = None, today: Optional[date] = None
) -> tuple[list[InventoryVariant], int, int]:
    """
    Zeroes not-yet-arrived stock, then keeps one variant per key.
    Returns (variants, duplicates_removed, stock_zeroed).
    """
    today = today or date.today()
    stock_zeroed = zero_future_stock(variants, offset_days, today)
    survivors, duplicates_removed = deduplicate(variants, offset_days, today)
    logger.info(
        f"  > Reconciled: {len(survivors)} variants ({duplicates_removed} duplicates removed, "
        f"{stock_zeroed} zeroed for future ship dates)."
    )
    return survivors, duplicates_removed, stock_zeroed
