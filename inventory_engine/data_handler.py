import json
import logging
import re
from pathlib import Path
from typing import Any, Optional
import pandas as pd
import requests

from . import settings
from . import utils
from .schemas import InventoryVariant

logger = logging.getLogger(__name__)

CSV_EXCLUDE = {"raw_data"}


def variants_to_dataframe(variants: list[InventoryVariant]) -> pd.DataFrame:
    """One row per variant, aliased column names, rawData left out."""
    columns = [
        info.alias or name
        for name, info in InventoryVariant.model_fields.items()
        if name not in CSV_EXCLUDE
    ]
    records = [v.model_dump(mode="json", by_alias=True, exclude=CSV_EXCLUDE) for v in variants]
    return pd.DataFrame(records, columns=columns)


def save_outputs(variants: list[InventoryVariant], filename_base: str) -> Path:
    """Saves the variants to CSV and conditionally to JSON, with dated filenames."""
    settings.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    date_suffix = utils.get_date_suffix_for_filename()
    safe_base = re.sub(r"[^A-Za-z0-9_.-]+", "_", filename_base)

    csv_path = settings.OUTPUT_DIR / f"{safe_base}_{date_suffix}.csv"
    json_path = settings.OUTPUT_DIR / f"{safe_base}_{date_suffix}.json"

    variants_to_dataframe(variants).to_csv(csv_path, index=False)
    logger.info(f"✅ Normalized report saved to: {csv_path}")

    if settings.SAVE_JSON_OUTPUT:
        with open(json_path, "w") as f:
            json_data = [v.model_dump(mode="json", by_alias=True) for v in variants]
            json.dump(json_data, f, indent=2, default=str)
        logger.info(f"✅ JSON output saved to: {json_path}")
    else:
        logger.info("INFO: Skipping JSON file save as per configuration.")
    return csv_path


def post_to_webhook(
    variants: list[InventoryVariant], summary: dict[str, Any], report_type: str
):
    """
    Posts the normalized variants AND the run summary to the webhook.
    """
    if not settings.WEBHOOK_URL:
        logger.warning("⚠️ WEBHOOK_URL not set. Skipping webhook post.")
        return

    logger.info(f"🚀 Posting {report_type} data and summary to webhook: {settings.WEBHOOK_URL}")

    payload = {
        "reportType": report_type,
        "reportData": [v.model_dump(mode="json", by_alias=True) for v in variants],
        "summary": summary,
    }

    try:
        response = requests.post(settings.WEBHOOK_URL, json=payload, timeout=15)
        response.raise_for_status()
        logger.info("✅ Data and summary successfully posted to webhook.")
    except requests.exceptions.RequestException as e:
        logger.error(f"❌ Error posting to webhook: {e}")


# --- Local caches ---


def load_json_file(path: Path, default: Any = None) -> Any:
    """Reads a JSON cache/config file; a missing file yields `default`."""
    if not path.exists():
        return default
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_color_mappings(path: Optional[Path] = None) -> dict[str, str]:
    """Reads the bad -> good color cache, keys lowercased."""
    path = path or settings.COLOR_MAPPINGS_FILE
    data = load_json_file(path, default={})
    if isinstance(data, list):
        data = {m["badColor"]: m["goodColor"] for m in data}
    return {bad.strip().lower(): good for bad, good in data.items()}


def save_color_mappings(mappings: dict[str, str], path: Optional[Path] = None):
    path = path or settings.COLOR_MAPPINGS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(dict(sorted(mappings.items())), f, indent=2)
    logger.info(f"✅ {len(mappings)} color mappings saved to: {path}")
