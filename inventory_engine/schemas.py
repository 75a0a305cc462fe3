from datetime import date
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from .utils import SkuError, build_sku, format_price, parse_ship_date


def _as_text(value: Any) -> str:
    """Spreadsheet cells arrive as str, int or float; sizes like 0 must survive."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


class InventoryVariant(BaseModel):
    """
    One style + color + size combination, the canonical unit the engine
    produces. Lives for a single import run; callers own persistence.
    """

    style: str
    color: str
    size: str
    stock: int = Field(default=0, ge=0)
    price: Optional[str] = None
    cost: Optional[str] = None
    sale_price: Optional[str] = Field(default=None, alias="salePrice")
    ship_date: Optional[date] = Field(default=None, alias="shipDate")
    sku: str = ""
    discontinued: bool = False
    has_future_stock: bool = Field(default=False, alias="hasFutureStock")
    preserve_zero_stock: bool = Field(default=False, alias="preserveZeroStock")
    is_expanded_size: bool = Field(default=False, alias="isExpandedSize")
    stock_zeroed: bool = Field(default=False, alias="stockZeroed")
    raw_data: dict[str, Any] = Field(default_factory=dict, alias="rawData")

    class Config:
        populate_by_name = True

    @field_validator("style", "color", "size", "sku", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        return _as_text(value)

    @field_validator("price", "cost", "sale_price", mode="before")
    @classmethod
    def _coerce_price(cls, value):
        return format_price(value)

    @field_validator("ship_date", mode="before")
    @classmethod
    def _coerce_ship_date(cls, value):
        return parse_ship_date(value)

    @model_validator(mode="after")
    def _derive_sku(self):
        if not self.sku:
            try:
                self.sku = build_sku(self.style, self.color, self.size)
            except SkuError:
                pass
        return self

    @property
    def key(self) -> tuple[str, str, str]:
        """Natural key, compared case-insensitively."""
        return (self.style.lower(), self.color.lower(), self.size.lower())

    def rebuild_sku(self) -> None:
        self.sku = build_sku(self.style, self.color, self.size)


# --- Size limits ---


class SizeBounds(BaseModel):
    """Per-domain min/max bounds shared by the global config and overrides."""

    min_size: Optional[str] = Field(default=None, alias="minSize")
    max_size: Optional[str] = Field(default=None, alias="maxSize")
    min_w_size: Optional[str] = Field(default=None, alias="minWSize")
    max_w_size: Optional[str] = Field(default=None, alias="maxWSize")
    min_letter_size: Optional[str] = Field(default=None, alias="minLetterSize")
    max_letter_size: Optional[str] = Field(default=None, alias="maxLetterSize")
    allowed_sizes: Optional[list[str]] = Field(default=None, alias="allowedSizes")

    class Config:
        populate_by_name = True

    @field_validator(
        "min_size",
        "max_size",
        "min_w_size",
        "max_w_size",
        "min_letter_size",
        "max_letter_size",
        mode="before",
    )
    @classmethod
    def _blank_bound_is_unset(cls, value):
        text = _as_text(value)
        return text or None

    @field_validator("allowed_sizes", mode="before")
    @classmethod
    def _allowed_as_text(cls, value):
        if value is None:
            return None
        return [_as_text(v) for v in value if _as_text(v)]


class PrefixOverride(SizeBounds):
    pattern: str


class SizeLimitConfig(SizeBounds):
    enabled: bool = False
    prefix_overrides: list[PrefixOverride] = Field(
        default_factory=list, alias="prefixOverrides"
    )


# --- Expansion ---


class PriceTier(BaseModel):
    min_price: float = Field(..., alias="minPrice")
    expand_down: int = Field(default=0, ge=0, alias="expandDown")
    expand_up: int = Field(default=0, ge=0, alias="expandUp")

    class Config:
        populate_by_name = True


class ExpansionConfig(BaseModel):
    enabled: bool = False
    tiers: list[PriceTier] = Field(default_factory=list)
    default_expand_down: int = Field(default=0, ge=0, alias="defaultExpandDown")
    default_expand_up: int = Field(default=0, ge=0, alias="defaultExpandUp")
    expanded_stock: int = Field(default=1, ge=0, alias="expandedStock")
    trigger_threshold: int = Field(default=1, ge=1, alias="triggerThreshold")

    class Config:
        populate_by_name = True


class CacheVariant(BaseModel):
    """A catalog-cache record used to build the style -> price lookup."""

    sku: Optional[str] = None
    price: Any = None
    product_title: Optional[str] = Field(default=None, alias="productTitle")

    class Config:
        populate_by_name = True


# --- Layout configs returned by the classification service ---


class PivotConfig(BaseModel):
    enabled: bool = True
    style_column: str = Field(..., alias="styleColumn")
    color_column: Optional[str] = Field(default=None, alias="colorColumn")
    size_columns: list[str] = Field(..., min_length=1, alias="sizeColumns")
    price_column: Optional[str] = Field(default=None, alias="priceColumn")

    class Config:
        populate_by_name = True


class GroupedPivotConfig(BaseModel):
    enabled: bool = True
    style_detection_method: Literal["single_cell", "pattern", "column_count"] = Field(
        default="single_cell", alias="styleDetectionMethod"
    )
    style_pattern: Optional[str] = Field(default=None, alias="stylePattern")
    style_column: int = Field(default=0, ge=0, alias="styleColumn")
    color_column: int = Field(default=0, ge=0, alias="colorColumn")
    size_start_column: int = Field(..., ge=0, alias="sizeStartColumn")
    size_labels: list[str] = Field(..., min_length=1, alias="sizeLabels")
    price_column: Optional[int] = Field(default=None, ge=0, alias="priceColumn")
    data_start_row: Optional[int] = Field(default=None, ge=0, alias="dataStartRow")
    skip_patterns: list[str] = Field(default_factory=list, alias="skipPatterns")

    class Config:
        populate_by_name = True

    @field_validator("size_labels", mode="before")
    @classmethod
    def _labels_as_text(cls, value):
        return [_as_text(v) for v in value] if isinstance(value, list) else value


class InterleavedConfig(BaseModel):
    """Column names for vendors whose style and color columns drift."""

    style_column: str = Field(default="Style", alias="styleColumn")
    color_column: str = Field(default="Color", alias="colorColumn")
    size_column: str = Field(default="Size", alias="sizeColumn")
    stock_column: str = Field(default="Stock", alias="stockColumn")
    price_column: Optional[str] = Field(default=None, alias="priceColumn")
    header_row_index: int = Field(default=0, ge=0, alias="headerRowIndex")

    class Config:
        populate_by_name = True


class ClassificationResult(BaseModel):
    format_type: Literal["row", "pivot", "pivot_grouped"] = Field(
        ..., alias="formatType"
    )
    confidence: float = Field(..., strict=True)
    header_row_index: int = Field(default=0, ge=0, alias="headerRowIndex")
    data_start_row: int = Field(default=1, ge=0, alias="dataStartRow")
    column_mapping: dict[str, str] = Field(default_factory=dict, alias="columnMapping")
    pivot_config: Optional[PivotConfig] = Field(default=None, alias="pivotConfig")
    grouped_pivot_config: Optional[GroupedPivotConfig] = Field(
        default=None, alias="groupedPivotConfig"
    )
    notes: list[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def _exactly_one_layout(self):
        layouts = {
            "row": bool(self.column_mapping),
            "pivot": self.pivot_config is not None,
            "pivot_grouped": self.grouped_pivot_config is not None,
        }
        if not layouts[self.format_type]:
            raise ValueError(f"'{self.format_type}' response carries no layout config")
        # Pivot responses often echo headers in columnMapping, so only the
        # two pivot configs are mutually exclusive with the declared format.
        extra = [
            name
            for name in ("pivot", "pivot_grouped")
            if layouts[name] and name != self.format_type
        ]
        if extra:
            raise ValueError(f"'{self.format_type}' response also carries {extra}")
        return self


# --- Colors & registry ---


class ColorSuggestion(BaseModel):
    bad_color: str = Field(..., alias="badColor")
    good_color: str = Field(..., alias="goodColor")
    confidence: float = 0.0

    class Config:
        populate_by_name = True


class DiscontinuedStyleRecord(BaseModel):
    sale_source_id: str = Field(..., alias="saleSourceId")
    style: str
    active: bool = True

    class Config:
        populate_by_name = True


# --- Per-source import configuration ---


class SourceConfig(BaseModel):
    """
    One entry of the sources file: which input files belong to a data
    source and how they are normalized.
    """

    name: str
    file_prefix: str = Field(..., alias="filePrefix")
    kind: Literal["inventory", "sale"] = "inventory"
    # For a sale source, its own registry id; for an inventory source, the
    # sale source whose styles it must not list.
    sale_source_id: Optional[str] = Field(default=None, alias="saleSourceId")
    size_limit_config: Optional[SizeLimitConfig] = Field(default=None, alias="sizeLimitConfig")
    expansion_config: Optional[ExpansionConfig] = Field(
        default=None, alias="priceBasedExpansionConfig"
    )
    interleaved_config: Optional[InterleavedConfig] = Field(
        default=None, alias="interleavedConfig"
    )
    date_offset_days: Optional[int] = Field(default=None, alias="dateOffsetDays")

    class Config:
        populate_by_name = True
