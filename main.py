import logging
from pathlib import Path
from typing import Optional
from pydantic import ValidationError

from inventory_engine import data_handler, expansion, settings
from inventory_engine.logger import setup_logger
from inventory_engine.pipelines.sale_file import SaleFilePipeline
from inventory_engine.pipelines.vendor_file import VendorFilePipeline
from inventory_engine.registry import InMemoryStyleRegistry
from inventory_engine.schemas import SourceConfig

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".xlsm", ".xls")


def find_latest_file(input_dir: Path, prefix: str) -> Optional[Path]:
    """Newest file in `input_dir` whose name starts with `prefix`."""
    if not input_dir.exists():
        return None
    matches = [
        p
        for p in input_dir.iterdir()
        if p.is_file() and p.name.startswith(prefix) and p.suffix.lower() in SUPPORTED_SUFFIXES
    ]
    return max(matches, key=lambda p: p.stat().st_mtime) if matches else None


def load_sources() -> list[SourceConfig]:
    raw_sources = data_handler.load_json_file(settings.SOURCES_FILE, default=[])
    sources = []
    for raw in raw_sources:
        try:
            sources.append(SourceConfig.model_validate(raw))
        except ValidationError as e:
            logger.error(f"❌ Invalid source entry {raw.get('name', raw)!r}:")
            logger.error(e)
    return sources


def run_process():
    """Imports every configured source found in the input directory."""
    setup_logger()
    logger.info("--- Starting Inventory Normalization Process ---")

    sources = load_sources()
    if not sources:
        logger.warning(f"⚠️ No sources configured in {settings.SOURCES_FILE}. Nothing to do.")
        return

    color_mappings = data_handler.load_color_mappings()
    style_prices = expansion.build_style_price_map(
        data_handler.load_json_file(settings.PRICE_CACHE_FILE, default=[])
    )
    style_registry = InMemoryStyleRegistry()

    # Sale files first so their styles are registered before regular sources are filtered.
    for source in sorted(sources, key=lambda s: s.kind != "sale"):
        path = find_latest_file(settings.INPUT_DIR, source.file_prefix)
        if path is None:
            logger.warning(f"⚠️ No file found for '{source.name}' ({source.file_prefix}*). Skipping.")
            continue
        logger.info(f"\n-- Processing Source: {source.name} ({path.name}) --")

        if source.kind == "sale":
            pipeline = SaleFilePipeline(
                path,
                sale_source_id=source.sale_source_id or source.name,
                style_registry=style_registry,
                layout=source.interleaved_config,
                color_mappings=color_mappings,
                offset_days=source.date_offset_days,
            )
        else:
            pipeline = VendorFilePipeline(
                path,
                source_name=source.name,
                size_limits=source.size_limit_config,
                expansion_config=source.expansion_config,
                style_prices=style_prices,
                color_mappings=color_mappings,
                style_registry=style_registry,
                sale_source_id=source.sale_source_id,
                offset_days=source.date_offset_days,
            )
        pipeline.run()

    data_handler.save_color_mappings(color_mappings)
    logger.info("\n--- Process Finished Successfully ---")


if __name__ == "__main__":
    run_process()
