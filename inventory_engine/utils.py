import csv
import logging
import math
import re
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Optional
import pandas as pd

from . import settings

logger = logging.getLogger(__name__)

EXCEL_EPOCH = date(1899, 12, 30)


class SkuError(ValueError):
    """Raised when a SKU cannot be derived because a key component is missing."""


def get_date_suffix_for_filename() -> str:
    """Returns the current date as a YYYY-MM-DD string for filenames."""
    return datetime.now().strftime("%Y-%m-%d")


# --- Loading ---


def _read_csv_grid(file_path: Path, encoding: str) -> pd.DataFrame:
    """
    Reads a CSV whose rows may have different widths (title lines, notes
    under the table). A first pass finds the widest row so pandas sizes the
    grid from it instead of from line 1.
    """
    with open(file_path, newline="", encoding=encoding) as f:
        width = max((len(row) for row in csv.reader(f)), default=0)
    if width == 0:
        raise pd.errors.EmptyDataError(f"No columns to parse from {file_path.name}")
    return pd.read_csv(
        file_path,
        encoding=encoding,
        header=None,
        names=list(range(width)),
        dtype=str,
        keep_default_na=False,
    )


def load_sheet(file_path: Path) -> pd.DataFrame | None:
    """
    Loads a vendor spreadsheet as a raw grid with no header inference.
    Layout detection decides later which row holds the headers.

    CSV files use a multi-stage encoding fallback:
    1. UTF-8 with BOM support ('utf-8-sig').
    2. Latin-1, which reads any byte.
    Any other read failure is logged and the file is skipped (None).
    """
    if not file_path.exists():
        logger.info(f"INFO: Report not found at {file_path}, skipping.")
        return None

    if file_path.suffix.lower() in (".xlsx", ".xlsm", ".xls"):
        try:
            df = pd.read_excel(file_path, header=None, dtype=object)
        except Exception as e:
            logger.error(f"ERROR: Could not read {file_path.name}. Reason: {e}")
            return None
        return df.fillna("")

    try:
        return _read_csv_grid(file_path, "utf-8-sig")
    except UnicodeDecodeError:
        logger.info(
            f"INFO: UTF-8 decoding failed for {file_path.name}. Retrying with 'latin-1'."
        )
        try:
            return _read_csv_grid(file_path, "latin-1")
        except Exception as e_latin1:
            logger.error(
                f"ERROR: Could not read {file_path.name} even with latin-1. Reason: {e_latin1}"
            )
            return None
    except pd.errors.EmptyDataError:
        logger.warning(f"⚠️ {file_path.name} is empty.")
        return pd.DataFrame()
    except Exception as e:
        logger.error(f"ERROR: Could not read {file_path.name}. Reason: {e}")
        return None


def sheet_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    """Flattens a raw sheet into a list of rows, trailing blank cells removed."""
    rows = []
    for values in df.itertuples(index=False, name=None):
        row = list(values)
        while row and is_blank(row[-1]):
            row.pop()
        rows.append(row)
    return rows


# --- Cell helpers ---


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value).strip() == ""


def cell_text(value: Any) -> str:
    """Stringifies a cell so that a numeric 0 stays '0' and 2.0 becomes '2'."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def cell_at(row: list[Any], index: Optional[int]) -> Any:
    if index is None or index < 0 or index >= len(row):
        return None
    return row[index]


def find_column(headers: list[Any], name: Optional[str]) -> Optional[int]:
    """Case-insensitive header lookup; returns the column index or None."""
    if not name:
        return None
    wanted = str(name).strip().lower()
    for i, header in enumerate(headers):
        if cell_text(header).lower() == wanted:
            return i
    return None


def detect_header_row(rows: list[list[Any]], max_rows: int = 10) -> int:
    """
    Picks the header row among the first `max_rows` rows: the one with the
    most cells containing a known header keyword. Defaults to row 0.
    """
    keyword_re = re.compile("|".join(settings.HEADER_KEYWORDS), re.IGNORECASE)
    best_index, best_hits = 0, 0
    for i, row in enumerate(rows[:max_rows]):
        hits = sum(1 for cell in row if keyword_re.search(cell_text(cell)))
        if hits > best_hits:
            best_index, best_hits = i, hits
    return best_index


# --- Value parsing ---


def normalize_style(value: Any) -> str:
    """Collapses internal whitespace and trims."""
    return re.sub(r"\s+", " ", cell_text(value)).strip()


def build_sku(style: Any, color: Any, size: Any) -> str:
    """
    Derives the SKU from the natural key: style-color-size, with any
    whitespace or slash runs collapsed to a single '-'.
    """
    parts = [cell_text(style), cell_text(color), cell_text(size)]
    if not all(parts):
        raise SkuError(f"Cannot build SKU from style={parts[0]!r} color={parts[1]!r} size={parts[2]!r}")
    sku = "-".join(parts)
    sku = re.sub(r"[/\s]+", "-", sku)
    return re.sub(r"-+", "-", sku)


def parse_stock(value: Any, text_values: Optional[dict[str, int]] = None) -> int:
    """
    Parses a stock cell into a non-negative integer.
    Known words ('yes', 'sold out', ...) map through `text_values`; anything
    else has currency and separators stripped and is truncated. Defaults to 0.
    """
    if is_blank(value) or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(0, int(value))

    text = str(value).strip().lower()
    mapping = text_values if text_values is not None else settings.STOCK_TEXT_VALUES
    if text in mapping:
        return mapping[text]

    cleaned = re.sub(r"[^0-9.\-]", "", text)
    try:
        return max(0, int(float(cleaned)))
    except ValueError:
        return 0


def parse_price(value: Any) -> Optional[float]:
    """Strips currency symbols and thousands separators; None when unparseable."""
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = re.sub(r"[^0-9.\-]", "", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return None


def format_price(value: Any) -> Optional[str]:
    price = parse_price(value)
    return f"{price:.2f}" if price is not None else None


def parse_ship_date(value: Any) -> Optional[date]:
    """
    Parses a ship date from a date object, an ISO string, M/D/YYYY, M/D/YY,
    or an Excel serial number. Placeholders like 'TBD' mean no date.
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return None if pd.isna(value) else value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _from_excel_serial(value)

    text = str(value).strip()
    if text.lower() in settings.NO_DATE_VALUES:
        return None
    if re.fullmatch(r"\d+(\.\d+)?", text):
        return _from_excel_serial(float(text))

    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y"):
        try:
            return datetime.strptime(text[:10] if fmt == "%Y-%m-%d" else text, fmt).date()
        except ValueError:
            continue

    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        logger.warning(f"⚠️ Unparseable ship date '{text}', ignoring.")
        return None
    return parsed.date()


def _from_excel_serial(serial: float) -> Optional[date]:
    if 40000 <= serial <= 55000:
        return EXCEL_EPOCH + timedelta(days=int(serial))
    return None
