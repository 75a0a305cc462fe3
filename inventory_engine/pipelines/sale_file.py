import logging
from datetime import date
from pathlib import Path
from typing import Optional

from inventory_engine import colors, parsers, reconcile, registry, utils
from inventory_engine.pipeline import DataPipeline
from inventory_engine.schemas import InterleavedConfig, InventoryVariant

logger = logging.getLogger(__name__)


class SaleFilePipeline(DataPipeline):
    """
    Imports a sale-channel file (interleaved style/color rows) and records
    its styles in the discontinued style registry once the output is saved.
    """

    def __init__(
        self,
        file_path: Path,
        sale_source_id: str,
        style_registry: registry.StyleRegistryStore,
        layout: Optional[InterleavedConfig] = None,
        color_mappings: Optional[dict[str, str]] = None,
        offset_days: Optional[int] = None,
        today: Optional[date] = None,
        test_mode: bool = False,
    ):
        super().__init__("sale", sale_source_id, test_mode=test_mode)
        self.file_path = file_path
        self.sale_source_id = sale_source_id
        self.style_registry = style_registry
        self.layout = layout or InterleavedConfig()
        self.color_mappings = color_mappings if color_mappings is not None else {}
        self.offset_days = offset_days
        self.today = today

    def extract(self) -> Optional[list[InventoryVariant]]:
        logger.info(f"--- Reading sale file {self.file_path.name} ---")
        df = utils.load_sheet(self.file_path)
        if df is None or df.empty:
            return None
        try:
            return parsers.extract_interleaved(utils.sheet_to_rows(df), self.layout)
        except parsers.ExtractionError as e:
            logger.error(f"❌ Layout does not fit {self.file_path.name}: {e}")
            return None

    def transform(self, variants: list[InventoryVariant]) -> Optional[list[InventoryVariant]]:
        variants, clean_stats = colors.clean_variants(variants, self.color_mappings)
        self.summary.update(clean_stats)
        variants, duplicates_removed, stock_zeroed = reconcile.reconcile(
            variants, self.offset_days, self.today
        )
        self.summary["duplicates_removed"] = duplicates_removed
        self.summary["stock_zeroed"] = stock_zeroed
        return variants

    def load(self, variants: list[InventoryVariant]):
        super().load(variants)
        if variants:
            result = registry.register_sale_file_styles(
                self.style_registry, self.sale_source_id, variants
            )
            self.summary["styles_registered"] = result["total"]
