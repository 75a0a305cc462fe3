import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from . import data_handler
from .schemas import InventoryVariant

logger = logging.getLogger(__name__)


class DataPipeline(ABC):
    """
    Abstract base class for import pipelines (vendor files, sale files).
    Follows an Extract -> Transform -> Load (ETL) pattern.
    """

    def __init__(self, report_type: str, source_name: str, test_mode: bool = False):
        self.report_type = report_type
        self.source_name = source_name
        self.test_mode = test_mode
        # Counters reported at the end of the run and sent with the webhook.
        self.summary: dict[str, Any] = {"source": source_name, "status": "pending"}

    def run(self) -> Optional[list[InventoryVariant]]:
        """
        Orchestrates the pipeline execution. Returns the normalized variants,
        or None when the file could not be parsed.
        """
        logger.info(f"🚀 STEP: {self.report_type.upper()} IMPORT ({self.source_name})")
        logger.info("-" * 30)

        # --- 1. EXTRACT ---
        raw_variants = self.extract()
        if raw_variants is None:
            self.summary["status"] = "unparsed"
            logger.warning(f"⚠️ Nothing extracted for {self.source_name}. File left unparsed.")
            return None
        self.summary["extracted"] = len(raw_variants)

        # --- 2. TRANSFORM ---
        variants = self.transform(raw_variants)
        if variants is None:
            self.summary["status"] = "failed"
            logger.error(f"❌ Transformation failed for {self.source_name}.")
            return None

        # --- 3. LOAD ---
        self.summary["status"] = "imported"
        self.summary["variants"] = len(variants)
        self.load(variants)

        logger.info(f"✅ {self.report_type.capitalize()} Pipeline Finished.\n")
        logger.info("=" * 60)
        return variants

    @abstractmethod
    def extract(self) -> Optional[list[InventoryVariant]]:
        """
        Reads the source file and turns it into raw variants.
        Returns None when the file cannot be parsed.
        """
        pass

    @abstractmethod
    def transform(self, variants: list[InventoryVariant]) -> Optional[list[InventoryVariant]]:
        """Cleans, reconciles and filters the raw variants."""
        pass

    def load(self, variants: list[InventoryVariant]):
        """
        Saves data to disk and posts to webhook.
        """
        # 1. Print Summary
        logger.info("\n--- Final Import Summary ---")
        for key, value in self.summary.items():
            logger.info(f"{key}: {value}")

        # 2. Save Outputs (CSV/JSON)
        if variants:
            data_handler.save_outputs(variants, f"{self.report_type}_{self.source_name}")
        else:
            logger.warning("No data to save to disk.")

        # 3. Post to Webhook
        if not self.test_mode:
            data_handler.post_to_webhook(
                variants=variants,
                summary=self.summary,
                report_type=self.report_type,
            )
        else:
            logger.info("🧪 Test Mode: Skipping webhook post.")
