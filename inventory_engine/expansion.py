"""
Variant expansion: synthesize neighboring sizes for in-stock variants so a
style can be offered a few sizes beyond what the vendor file lists.
"""

import logging
import re
from typing import Any, Iterable, Optional

from . import sizes
from .schemas import CacheVariant, ExpansionConfig, InventoryVariant, SizeLimitConfig
from .utils import SkuError, build_sku, parse_price

logger = logging.getLogger(__name__)

SIZE_TOKENS = {"XXS", "XS", "S", "M", "L", "XL", "2XL", "3XL", "4XL", "XXL", "XXXL"}
NUMERIC_SIZE_TOKEN_RE = re.compile(r"^(0{1,3}|[2-9]|1[0-9]|2[0-9]|30)$")


def _looks_like_size(token: str) -> bool:
    return token.strip().upper() in SIZE_TOKENS or bool(NUMERIC_SIZE_TOKEN_RE.match(token.strip()))


def _looks_like_style(token: str) -> bool:
    return bool(re.search(r"\d", token)) and not _looks_like_size(token)


def build_style_price_map(cache_variants: Iterable[CacheVariant | dict[str, Any]]) -> dict[str, float]:
    """
    Folds catalog-cache records into a style -> price lookup.

    Style keys come from the SKU segments ('Tarik-Ediz-50902-Black-4' gives
    'Tarik Ediz 50902', 'Jovani-12345-Red-6' gives 'Jovani 12345',
    '12345-Black-4' gives '12345') and from product titles containing a digit.
    On collision the highest price wins.
    """
    style_prices: dict[str, float] = {}

    def set_price(key: str, price: float):
        key = key.strip()
        if len(key) < 2:
            return
        if key not in style_prices or price > style_prices[key]:
            style_prices[key] = price

    sku_matches = title_matches = 0
    for record in cache_variants:
        if isinstance(record, dict):
            record = CacheVariant.model_validate(record)
        price = parse_price(record.price)
        if price is None or price <= 0:
            continue

        if record.sku:
            parts = record.sku.split("-")
            if len(parts) >= 4 and _looks_like_style(parts[2]):
                set_price(f"{parts[0]} {parts[1]} {parts[2]}", price)
                sku_matches += 1
            if len(parts) >= 3 and _looks_like_style(parts[1]):
                set_price(f"{parts[0]} {parts[1]}", price)
                sku_matches += 1
            if len(parts) >= 2 and _looks_like_style(parts[0]):
                set_price(parts[0], price)
                sku_matches += 1

        if record.product_title and re.search(r"\d", record.product_title):
            set_price(record.product_title, price)
            title_matches += 1

    logger.info(
        f"  > Style price map: {len(style_prices)} styles ({sku_matches} from SKU, {title_matches} from titles)."
    )
    return style_prices


def resolve_expand_counts(config: ExpansionConfig, price: Optional[float]) -> tuple[int, int]:
    """(down, up) for a price: the first tier, highest minPrice first, that the price reaches."""
    if config.tiers and price is not None:
        for tier in sorted(config.tiers, key=lambda t: t.min_price, reverse=True):
            if price >= tier.min_price:
                return tier.expand_down, tier.expand_up
    return config.default_expand_down, config.default_expand_up


def _index_key(style: str, color: str, size: str) -> tuple[str, str, str]:
    # Aliases (XXL / 2XL) share a slot so expansion never duplicates them.
    label = sizes.canonical_size(size) or size.strip().upper()
    return (style.strip().lower(), color.strip().lower(), label)


def expand_sizes(
    variants: list[InventoryVariant],
    config: Optional[ExpansionConfig],
    style_prices: Optional[dict[str, float]] = None,
    size_limits: Optional[SizeLimitConfig] = None,
) -> tuple[list[InventoryVariant], int, int]:
    """
    Adds neighboring sizes around each in-stock variant.

    Returns (variants, added, raised): the batch with new variants appended,
    how many were created, and how many existing zero-stock variants were
    raised to the expanded stock instead of being duplicated.

    Variants created or raised here are flagged `is_expanded_size` and never
    act as sources themselves, so running this twice adds nothing new.
    """
    if config is None or not config.enabled:
        return variants, 0, 0
    if not config.tiers and not (config.default_expand_down or config.default_expand_up):
        logger.info("  > Expansion enabled but no tiers or defaults configured. Skipping.")
        return variants, 0, 0

    style_prices = style_prices or {}
    arena = list(variants)
    index = {_index_key(v.style, v.color, v.size): i for i, v in enumerate(arena)}
    already_expanded = set()
    added = raised = 0

    for source_position in range(len(variants)):
        source = arena[source_position]
        if source.is_expanded_size or source.raw_data.get("_expanded"):
            continue
        style = source.style.strip()
        if not style or source.stock < config.trigger_threshold:
            continue

        price = style_prices.get(style)
        if price is None:
            price = parse_price(source.price)
        down, up = resolve_expand_counts(config, price)
        if down <= 0 and up <= 0:
            continue

        source_key = (source.style, source.color, source.size.strip())
        if source_key in already_expanded:
            continue
        already_expanded.add(source_key)

        label = sizes.canonical_size(source.size)
        if label is None:
            continue
        sequence = sizes.DOMAIN_SEQUENCES[sizes.domain_of(label)]
        position = sequence.index(label)
        candidates = [sequence[position - i] for i in range(1, down + 1) if position - i >= 0]
        candidates += [sequence[position + i] for i in range(1, up + 1) if position + i < len(sequence)]

        for new_size in candidates:
            if size_limits is not None and not sizes.is_allowed(new_size, size_limits, source.style):
                continue

            key = _index_key(source.style, source.color, new_size)
            if key in index:
                existing = arena[index[key]]
                if existing.stock == 0:
                    existing.stock = config.expanded_stock
                    existing.ship_date = None
                    existing.is_expanded_size = True
                    existing.raw_data.update(
                        {"_expanded": True, "_fromSize": source.size, "_priceBasedExpansion": True}
                    )
                    raised += 1
                continue

            try:
                sku = build_sku(source.style, source.color, new_size)
            except SkuError as e:
                logger.warning(f"⚠️ Expansion skipped size {new_size} for '{source.style}': {e}")
                continue

            arena.append(
                source.model_copy(
                    update={
                        "size": new_size,
                        "sku": sku,
                        "stock": config.expanded_stock,
                        "ship_date": None,
                        "has_future_stock": False,
                        "preserve_zero_stock": False,
                        "stock_zeroed": False,
                        "is_expanded_size": True,
                        "raw_data": {
                            **source.raw_data,
                            "_expanded": True,
                            "_fromSize": source.size,
                            "_priceBasedExpansion": True,
                        },
                    },
                    deep=True,
                )
            )
            index[key] = len(arena) - 1
            added += 1

    if added or raised:
        logger.info(f"  > Expansion: {added} sizes added, {raised} zero-stock sizes raised.")
    return arena, added, raised
