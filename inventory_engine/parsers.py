"""
Layout extractors: turn a raw sheet (a list of rows) into InventoryVariants.

Every extractor is a single forward pass and emits variants in input order.
Explicit sizes such as "0" and "00" are real sizes, never treated as absent.
"""

import logging
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional
from pydantic import ValidationError

from . import settings
from .schemas import (
    ClassificationResult,
    GroupedPivotConfig,
    InterleavedConfig,
    InventoryVariant,
    PivotConfig,
)
from .utils import (
    cell_at,
    cell_text,
    detect_header_row,
    find_column,
    is_blank,
    normalize_style,
    parse_price,
    parse_ship_date,
    parse_stock,
)

logger = logging.getLogger(__name__)

ROW_FIELDS = [
    "style",
    "sku",
    "color",
    "size",
    "stock",
    "price",
    "cost",
    "salePrice",
    "shipDate",
    "status",
    "discontinued",
]

STYLE_HEADER_PREFIX_RE = re.compile(r"^(style|item)\s*#?\s*", re.IGNORECASE)


class ExtractionError(ValueError):
    """The layout config doesn't fit the sheet it was applied to."""


def _make_variant(fields: dict[str, Any], row_number: int) -> Optional[InventoryVariant]:
    try:
        return InventoryVariant(**fields)
    except ValidationError as e:
        logger.warning(f"⚠️ Row {row_number}: dropped, invalid variant ({e.error_count()} errors).")
        return None


def _raw_data(headers: list[Any], row: list[Any]) -> dict[str, Any]:
    return {
        cell_text(h) or f"col_{i}": cell_text(cell_at(row, i))
        for i, h in enumerate(headers)
    }


def _strip_style_prefix(value: Any) -> str:
    style = STYLE_HEADER_PREFIX_RE.sub("", cell_text(value))
    return normalize_style(style.lstrip("#"))


def normalize_size_header(label: Any) -> str:
    """Vendors type the letter O for zero in size headers: 'OO' -> '00'."""
    text = cell_text(label)
    if re.fullmatch(r"[Oo]{1,3}", text):
        return "0" * len(text)
    return text


# --- Row layout ---


def resolve_column_mapping(mapping: dict[str, str]) -> dict[str, str]:
    """
    Normalizes a column mapping to field -> column name. The service may
    answer in either direction; keys that are field names win.
    """
    known = {f.lower(): f for f in ROW_FIELDS}
    resolved = {}
    for key, value in mapping.items():
        if not key or not value:
            continue
        if key.lower() in known:
            resolved[known[key.lower()]] = value
        elif str(value).lower() in known:
            resolved.setdefault(known[str(value).lower()], key)
    return resolved


def extract_rows(
    rows: list[list[Any]],
    column_mapping: dict[str, str],
    header_row_index: Optional[int] = None,
    data_start_row: Optional[int] = None,
) -> list[InventoryVariant]:
    """One variant per data row; rows with no style or sku are dropped."""
    if header_row_index is None:
        header_row_index = detect_header_row(rows)
    if data_start_row is None or data_start_row <= header_row_index:
        data_start_row = header_row_index + 1

    headers = rows[header_row_index] if header_row_index < len(rows) else []
    mapping = resolve_column_mapping(column_mapping)
    columns = {}
    for field, column_name in mapping.items():
        index = find_column(headers, column_name)
        if index is None:
            logger.warning(f"⚠️ Mapped column '{column_name}' ({field}) not found in header row.")
        columns[field] = index

    if columns.get("style") is None and columns.get("sku") is None:
        raise ExtractionError("Row layout needs a style or sku column.")

    variants = []
    for row_number in range(data_start_row, len(rows)):
        row = rows[row_number]
        if all(is_blank(cell) for cell in row):
            continue

        def value(field):
            return cell_at(row, columns.get(field))

        style = normalize_style(value("style")) or normalize_style(value("sku"))
        if not style:
            continue

        stock = parse_stock(value("stock"))
        ship_date = parse_ship_date(value("shipDate"))
        status = cell_text(value("status")).lower()
        flag = cell_text(value("discontinued")).lower()

        variant = _make_variant(
            {
                "style": style,
                "color": cell_text(value("color")),
                "size": cell_text(value("size")),
                "stock": stock,
                "price": parse_price(value("price")),
                "cost": parse_price(value("cost")),
                "sale_price": parse_price(value("salePrice")),
                "ship_date": ship_date,
                "discontinued": status in settings.DISCONTINUED_KEYWORDS
                or flag in ("yes", "y", "true", "x"),
                "has_future_stock": ship_date is not None,
                "preserve_zero_stock": ship_date is not None and stock == 0,
                "raw_data": _raw_data(headers, row),
            },
            row_number,
        )
        if variant:
            variants.append(variant)

    logger.info(f"  > Row layout: {len(variants)} variants from {len(rows) - data_start_row} rows.")
    return variants


# --- Column pivot ---


def extract_pivot(
    rows: list[list[Any]],
    config: PivotConfig,
    header_row_index: int = 0,
    data_start_row: Optional[int] = None,
) -> list[InventoryVariant]:
    """One variant per (row, size column) pair."""
    if data_start_row is None or data_start_row <= header_row_index:
        data_start_row = header_row_index + 1
    headers = rows[header_row_index] if header_row_index < len(rows) else []

    style_index = find_column(headers, config.style_column)
    if style_index is None:
        raise ExtractionError(f"Style column '{config.style_column}' not found.")
    color_index = find_column(headers, config.color_column)
    price_index = find_column(headers, config.price_column)

    size_columns = []
    for column_name in config.size_columns:
        index = find_column(headers, column_name)
        if index is None:
            logger.warning(f"⚠️ Size column '{column_name}' not found, skipping it.")
            continue
        size_columns.append((index, normalize_size_header(column_name)))
    if not size_columns:
        raise ExtractionError("None of the pivot size columns were found.")

    variants = []
    for row_number in range(data_start_row, len(rows)):
        row = rows[row_number]
        style = normalize_style(cell_at(row, style_index))
        if not style:
            continue
        color = cell_text(cell_at(row, color_index))
        price = parse_price(cell_at(row, price_index))
        raw = _raw_data(headers, row)

        for index, size in size_columns:
            variant = _make_variant(
                {
                    "style": style,
                    "color": color,
                    "size": size,
                    "stock": parse_stock(cell_at(row, index)),
                    "price": price,
                    "raw_data": raw,
                },
                row_number,
            )
            if variant:
                variants.append(variant)

    logger.info(f"  > Pivot layout: {len(variants)} variants, {len(size_columns)} size columns.")
    return variants


# --- Grouped pivot ---


def _is_empty_or_zero(value: Any) -> bool:
    if is_blank(value):
        return True
    number = parse_price(value)
    return number is not None and number == 0


def _skip_row(cell: str, patterns: list[str]) -> bool:
    """Case-insensitive substring match; a pattern that is valid regex may also match as one."""
    for pattern in patterns:
        if pattern.lower() in cell.lower():
            return True
        try:
            if re.search(pattern, cell, re.IGNORECASE):
                return True
        except re.error:
            continue
    return False


def _is_style_header(row: list[Any], config: GroupedPivotConfig) -> bool:
    style_cell = cell_text(cell_at(row, config.style_column))
    if not style_cell:
        return False

    method = config.style_detection_method
    if method == "single_cell":
        # Cells past the end of a short row count as empty.
        empty = sum(
            1
            for j in range(len(config.size_labels))
            if _is_empty_or_zero(cell_at(row, config.size_start_column + j))
        )
        return empty >= 0.8 * len(config.size_labels)

    if method == "pattern":
        if not config.style_pattern:
            return False
        try:
            return re.search(config.style_pattern, style_cell, re.IGNORECASE) is not None
        except re.error:
            return style_cell.lower().startswith(config.style_pattern.lower())

    # column_count
    filled = sum(1 for cell in row if not _is_empty_or_zero(cell))
    return filled <= 2


def extract_grouped_pivot(
    rows: list[list[Any]], config: GroupedPivotConfig, data_start_row: Optional[int] = None
) -> list[InventoryVariant]:
    """
    Walks the sheet once with a current-style state. A style header row
    switches the style; each following color row emits one variant per
    size label. Data rows seen before any style header are orphans.
    """
    start = data_start_row if data_start_row is not None else (config.data_start_row or 0)
    current_style = None
    orphans = 0
    variants = []

    for row_number in range(start, len(rows)):
        row = rows[row_number]
        if all(is_blank(cell) for cell in row):
            continue
        if config.skip_patterns and _skip_row(
            cell_text(cell_at(row, config.style_column)), config.skip_patterns
        ):
            continue

        if _is_style_header(row, config):
            current_style = _strip_style_prefix(cell_at(row, config.style_column))
            continue

        if not current_style:
            orphans += 1
            continue

        color = cell_text(cell_at(row, config.color_column))
        if not color:
            continue
        price = parse_price(cell_at(row, config.price_column)) or None

        for j, size in enumerate(config.size_labels):
            index = config.size_start_column + j
            if index >= len(row):
                continue
            variant = _make_variant(
                {
                    "style": current_style,
                    "color": color,
                    "size": normalize_size_header(size),
                    "stock": parse_stock(row[index]),
                    "price": price,
                },
                row_number,
            )
            if variant:
                variants.append(variant)

    if orphans:
        logger.info(f"  > Skipped {orphans} data rows before the first style header.")
    logger.info(f"  > Grouped pivot layout: {len(variants)} variants.")
    return variants


# --- Interleaved style/color rows ---


class RowKind(Enum):
    NORMAL_HEADER = "normal_header"
    MISALIGNED_HEADER = "misaligned_header"
    DATA_ROW = "data_row"
    ORPHAN = "orphan"
    SKIP = "skip"


class RowClassifier(ABC):
    """
    Decides what a row means for a stateful vendor layout. New vendor
    quirks get a new subclass, the extraction loop stays the same.
    """

    @abstractmethod
    def classify(self, style_cell: str, color_cell: str, has_style: bool) -> RowKind:
        pass

    def style_for(self, kind: RowKind, style_cell: str, color_cell: str) -> str:
        source = color_cell if kind == RowKind.MISALIGNED_HEADER else style_cell
        return normalize_style(source.lstrip("#"))


class InterleavedRowClassifier(RowClassifier):
    """
    Style numbers sometimes land in the color column. A row is a header when
    the style cell is set and color is empty, or the style cell is a 4-6 digit
    number; a row with only a numeric color is a misaligned header.
    """

    STYLE_NUMBER_RE = re.compile(r"^#?\d{4,6}$")
    NUMERIC_RE = re.compile(r"^#?\d+$")

    def classify(self, style_cell: str, color_cell: str, has_style: bool) -> RowKind:
        if (style_cell and not color_cell) or self.STYLE_NUMBER_RE.match(style_cell):
            return RowKind.NORMAL_HEADER
        if not style_cell and self.NUMERIC_RE.match(color_cell):
            return RowKind.MISALIGNED_HEADER
        if not has_style:
            return RowKind.ORPHAN
        if not color_cell or self.NUMERIC_RE.match(color_cell):
            return RowKind.SKIP
        return RowKind.DATA_ROW


def extract_interleaved(
    rows: list[list[Any]],
    config: InterleavedConfig,
    classifier: Optional[RowClassifier] = None,
) -> list[InventoryVariant]:
    classifier = classifier or InterleavedRowClassifier()
    header_row_index = config.header_row_index
    headers = rows[header_row_index] if header_row_index < len(rows) else []

    style_index = find_column(headers, config.style_column)
    color_index = find_column(headers, config.color_column)
    size_index = find_column(headers, config.size_column)
    stock_index = find_column(headers, config.stock_column)
    price_index = find_column(headers, config.price_column)
    missing = [
        name
        for name, index in [
            (config.style_column, style_index),
            (config.color_column, color_index),
            (config.size_column, size_index),
            (config.stock_column, stock_index),
        ]
        if index is None
    ]
    if missing:
        raise ExtractionError(f"Interleaved layout columns not found: {missing}")

    current_style = None
    counts = {kind: 0 for kind in RowKind}
    variants = []

    for row_number in range(header_row_index + 1, len(rows)):
        row = rows[row_number]
        if all(is_blank(cell) for cell in row):
            continue

        style_cell = cell_text(cell_at(row, style_index))
        color_cell = cell_text(cell_at(row, color_index))
        kind = classifier.classify(style_cell, color_cell, current_style is not None)
        counts[kind] += 1

        if kind in (RowKind.NORMAL_HEADER, RowKind.MISALIGNED_HEADER):
            current_style = classifier.style_for(kind, style_cell, color_cell)
            continue
        if kind != RowKind.DATA_ROW:
            continue

        variant = _make_variant(
            {
                "style": current_style,
                "color": color_cell,
                "size": cell_text(cell_at(row, size_index)),
                "stock": parse_stock(cell_at(row, stock_index)),
                "price": parse_price(cell_at(row, price_index)),
                "raw_data": _raw_data(headers, row),
            },
            row_number,
        )
        if variant:
            variants.append(variant)

    logger.info(
        f"  > Interleaved layout: {len(variants)} variants "
        f"({counts[RowKind.MISALIGNED_HEADER]} misaligned headers, {counts[RowKind.ORPHAN]} orphans)."
    )
    return variants


# --- Dispatch ---


def extract_variants(rows: list[list[Any]], classification: ClassificationResult) -> list[InventoryVariant]:
    """Runs the extractor that matches the classified layout."""
    if classification.format_type == "pivot_grouped":
        return extract_grouped_pivot(
            rows,
            classification.grouped_pivot_config,
            data_start_row=classification.grouped_pivot_config.data_start_row
            if classification.grouped_pivot_config.data_start_row is not None
            else classification.data_start_row,
        )
    if classification.format_type == "pivot":
        return extract_pivot(
            rows,
            classification.pivot_config,
            header_row_index=classification.header_row_index,
            data_start_row=classification.data_start_row,
        )
    return extract_rows(
        rows,
        classification.column_mapping,
        header_row_index=classification.header_row_index,
        data_start_row=classification.data_start_row,
    )
