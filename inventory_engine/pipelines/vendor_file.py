import logging
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from inventory_engine import colors, expansion, parsers, reconcile, registry, sizes, utils
from inventory_engine.classifier import ClassificationError, classify_format
from inventory_engine.pipeline import DataPipeline
from inventory_engine.schemas import (
    ClassificationResult,
    ExpansionConfig,
    InventoryVariant,
    SizeLimitConfig,
)

logger = logging.getLogger(__name__)


class VendorFilePipeline(DataPipeline):
    """
    Imports one vendor inventory file of unknown layout:
    classify -> extract -> clean -> reconcile -> size limits -> expand -> discontinued filter.
    """

    def __init__(
        self,
        file_path: Path,
        source_name: str,
        size_limits: Optional[SizeLimitConfig] = None,
        expansion_config: Optional[ExpansionConfig] = None,
        style_prices: Optional[dict[str, float]] = None,
        color_mappings: Optional[dict[str, str]] = None,
        style_registry: Optional[registry.StyleRegistryStore] = None,
        inventory_store: Optional[registry.InventoryStore] = None,
        sale_source_id: Optional[str] = None,
        offset_days: Optional[int] = None,
        classify: Callable[..., ClassificationResult] = classify_format,
        today: Optional[date] = None,
        test_mode: bool = False,
    ):
        super().__init__("inventory", source_name, test_mode=test_mode)
        self.file_path = file_path
        self.size_limits = size_limits
        self.expansion_config = expansion_config
        self.style_prices = style_prices or {}
        self.color_mappings = color_mappings if color_mappings is not None else {}
        self.style_registry = style_registry
        self.inventory_store = inventory_store
        self.sale_source_id = sale_source_id
        self.offset_days = offset_days
        self.classify = classify
        self.today = today

        if self.size_limits is not None:
            sizes.check_size_limit_config(self.size_limits)

    def extract(self) -> Optional[list[InventoryVariant]]:
        logger.info(f"--- Reading {self.file_path.name} ---")
        df = utils.load_sheet(self.file_path)
        if df is None or df.empty:
            return None
        rows = utils.sheet_to_rows(df)

        try:
            classification = self.classify(rows, filename=self.file_path.name)
        except ClassificationError as e:
            logger.error(f"❌ Could not classify {self.file_path.name}: {e}")
            return None
        self.summary["format"] = classification.format_type

        try:
            return parsers.extract_variants(rows, classification)
        except parsers.ExtractionError as e:
            logger.error(f"❌ Layout does not fit {self.file_path.name}: {e}")
            return None

    def transform(self, variants: list[InventoryVariant]) -> Optional[list[InventoryVariant]]:
        logger.info("\n--- Normalizing Variants ---")

        # --- 1. Discontinued items with nothing left to sell ---
        before = len(variants)
        variants = [
            v
            for v in variants
            if not (v.discontinued and v.stock == 0 and v.ship_date is None)
        ]
        self.summary["discontinued_zero_stock_removed"] = before - len(variants)

        # --- 2. Colors, sizes ---
        variants, clean_stats = colors.clean_variants(variants, self.color_mappings)
        self.summary.update(clean_stats)

        # --- 3. Future stock & duplicates ---
        variants, duplicates_removed, stock_zeroed = reconcile.reconcile(
            variants, self.offset_days, self.today
        )
        self.summary["duplicates_removed"] = duplicates_removed
        self.summary["stock_zeroed"] = stock_zeroed

        # --- 4. Size limits ---
        if self.size_limits is not None and self.size_limits.enabled:
            before = len(variants)
            variants = [v for v in variants if sizes.is_allowed(v.size, self.size_limits, v.style)]
            self.summary["size_filtered"] = before - len(variants)
            logger.info(f"  > Size limits removed {before - len(variants)} variants.")

        # --- 5. Expansion ---
        variants, added, raised = expansion.expand_sizes(
            variants, self.expansion_config, self.style_prices, self.size_limits
        )
        self.summary["sizes_expanded"] = added + raised

        # --- 6. Styles now owned by a sale file ---
        if self.style_registry is not None and self.sale_source_id:
            if self.inventory_store is not None:
                self.summary["stored_discontinued_removed"] = registry.remove_discontinued_inventory_items(
                    self.style_registry, self.inventory_store, self.source_name, self.sale_source_id
                )
            variants, removed, _ = registry.filter_discontinued_styles(
                self.style_registry, variants, self.sale_source_id
            )
            self.summary["discontinued_styles_filtered"] = removed

        variants.sort(key=lambda v: (v.style.lower(), v.color.lower(), sizes.size_sort_key(v.size)))
        return variants
