"""
Size taxonomy: ranking and range filtering for garment size labels.

Three domains are recognized:
  numeric  000, 00, 0, 2, 4 ... 36
  plus     16W, 18W ... 36W, each ranked right after its base size
  letter   XXS, XS, S, M, L, XL, 2XL ... 5XL (XXL, XXXL ... fold onto 2XL ...)

Letter ranks live in 0..99 and numeric ranks start at 100 so the two
never alias. Anything else is unrecognized and ranks -1.
"""

import logging
import re
from enum import Enum
from typing import Optional

from .schemas import SizeBounds, SizeLimitConfig

logger = logging.getLogger(__name__)

UNRECOGNIZED = -1
NUMERIC_RANK_OFFSET = 100

LETTER_SIZES = ["XXS", "XS", "S", "M", "L", "XL", "2XL", "3XL", "4XL", "5XL"]

LETTER_SIZE_MAP = {size: i for i, size in enumerate(LETTER_SIZES)}
LETTER_SIZE_MAP.update({"XXL": 6, "XXXL": 7, "XXXXL": 8, "XXXXXL": 9})

NUMERIC_SIZES = [
    "000", "00", "0", "2", "4", "6", "8", "10", "12", "14",
    "16", "16W",
    "18", "18W",
    "20", "20W",
    "22", "22W",
    "24", "24W",
    "26", "26W",
    "28", "28W",
    "30", "30W",
    "32", "32W",
    "34", "34W",
    "36", "36W",
]  # fmt: skip

NUMERIC_SIZE_MAP = {size: NUMERIC_RANK_OFFSET + i for i, size in enumerate(NUMERIC_SIZES)}


class SizeDomain(str, Enum):
    NUMERIC = "numeric"
    PLUS = "plus"
    LETTER = "letter"


# Expansion walks one domain at a time.
DOMAIN_SEQUENCES = {
    SizeDomain.LETTER: LETTER_SIZES,
    SizeDomain.NUMERIC: [s for s in NUMERIC_SIZES if not s.endswith("W")],
    SizeDomain.PLUS: [s for s in NUMERIC_SIZES if s.endswith("W")],
}

BOUND_FIELDS = {
    SizeDomain.NUMERIC: ("min_size", "max_size"),
    SizeDomain.PLUS: ("min_w_size", "max_w_size"),
    SizeDomain.LETTER: ("min_letter_size", "max_letter_size"),
}


def _canonical(size) -> str:
    return str(size if size is not None else "").strip().upper()


def rank(size: str) -> int:
    canonical = _canonical(size)
    if canonical in LETTER_SIZE_MAP:
        return LETTER_SIZE_MAP[canonical]
    return NUMERIC_SIZE_MAP.get(canonical, UNRECOGNIZED)


def is_letter_size(size: str) -> bool:
    return _canonical(size) in LETTER_SIZE_MAP


def is_w_size(size: str) -> bool:
    return _canonical(size).endswith("W")


def domain_of(size: str) -> SizeDomain:
    """
    Letter sizes are the ones in the letter map; anything ending in W is
    plus; everything else is treated as numeric, recognized or not.
    """
    if is_letter_size(size):
        return SizeDomain.LETTER
    if is_w_size(size):
        return SizeDomain.PLUS
    return SizeDomain.NUMERIC


def canonical_size(size: str) -> Optional[str]:
    """The sequence label for a size (e.g. 'xxl' -> '2XL'), or None."""
    r = rank(size)
    if r == UNRECOGNIZED:
        return None
    if r < NUMERIC_RANK_OFFSET:
        return LETTER_SIZES[r]
    return NUMERIC_SIZES[r - NUMERIC_RANK_OFFSET]


def size_sort_key(size: str) -> tuple[int, int, str]:
    """Numeric sizes first, then letters, unrecognized labels last (alphabetically)."""
    r = rank(size)
    if r == UNRECOGNIZED:
        return (2, 0, _canonical(size))
    return (0 if r >= NUMERIC_RANK_OFFSET else 1, r, "")


# --- Range filtering ---


def _pattern_matches(pattern: str, style: str) -> bool:
    try:
        return re.search(pattern, style, re.IGNORECASE) is not None
    except re.error:
        return style.lower().startswith(pattern.lower())


def effective_bounds(config: SizeLimitConfig, style: Optional[str] = None) -> SizeBounds:
    """
    Resolves the bounds that apply to `style`: the global bounds, with the
    fields explicitly set on the first matching prefix override replacing them.
    """
    bounds = SizeBounds(**config.model_dump(include=set(SizeBounds.model_fields)))
    if not style:
        return bounds

    for override in config.prefix_overrides:
        if override.pattern and _pattern_matches(override.pattern, style):
            replaced = override.model_dump(
                include=set(SizeBounds.model_fields), exclude_none=True
            )
            return bounds.model_copy(update=replaced)
    return bounds


def _in_range(size_rank: int, low: Optional[str], high: Optional[str]) -> bool:
    # A bound value the taxonomy doesn't recognize leaves that side open.
    if low and rank(low) != UNRECOGNIZED and size_rank < rank(low):
        return False
    if high and rank(high) != UNRECOGNIZED and size_rank > rank(high):
        return False
    return True


def is_allowed(size: str, config: Optional[SizeLimitConfig], style: Optional[str] = None) -> bool:
    """
    Whether a size passes the configured limits for a style.

    Once any domain carries a bound, a size from a domain with no bound of
    its own is rejected, as is an unrecognized size.
    """
    if config is None or not config.enabled:
        return True

    label = _canonical(size)
    if not label:
        return False

    bounds = effective_bounds(config, style)

    if bounds.allowed_sizes:
        return label in {_canonical(s) for s in bounds.allowed_sizes}

    configured = {
        domain: (getattr(bounds, low), getattr(bounds, high))
        for domain, (low, high) in BOUND_FIELDS.items()
        if getattr(bounds, low) or getattr(bounds, high)
    }
    if not configured:
        return True

    size_rank = rank(label)
    if size_rank == UNRECOGNIZED:
        return False

    domain = domain_of(label)
    if domain in configured:
        return _in_range(size_rank, *configured[domain])

    # Legacy configs put W sizes in the plain numeric range (e.g. maxSize=24W).
    # Honor that only when one of the numeric bounds is itself a W size.
    if domain == SizeDomain.PLUS and SizeDomain.NUMERIC in configured:
        low, high = configured[SizeDomain.NUMERIC]
        if (low and is_w_size(low)) or (high and is_w_size(high)):
            return _in_range(size_rank, low, high)

    return False


def allowed_size_range(min_size: Optional[str] = None, max_size: Optional[str] = None) -> list[str]:
    """Lists the sequence sizes between two bounds, inclusive."""
    if not min_size and not max_size:
        return []
    anchor = min_size or max_size
    sequence = LETTER_SIZES if is_letter_size(anchor) else NUMERIC_SIZES
    return [s for s in sequence if _in_range(rank(s), min_size, max_size)]


def check_size_limit_config(config: SizeLimitConfig) -> list[str]:
    """
    Returns human-readable warnings for bounds the taxonomy doesn't know,
    bounds filed under the wrong domain, and inverted ranges.
    """
    warnings = []
    scopes = [("global", config)] + [
        (f"override '{o.pattern}'", o) for o in config.prefix_overrides
    ]
    for scope, bounds in scopes:
        for domain, fields in BOUND_FIELDS.items():
            low, high = (getattr(bounds, f) for f in fields)
            for field, value in zip(fields, (low, high)):
                if not value:
                    continue
                if rank(value) == UNRECOGNIZED:
                    warnings.append(f"{scope}: {field}={value!r} is not a recognized size")
                elif domain_of(value) != domain and not (
                    domain == SizeDomain.NUMERIC and domain_of(value) == SizeDomain.PLUS
                ):
                    warnings.append(f"{scope}: {field}={value!r} is not a {domain.value} size")
            if low and high and UNRECOGNIZED not in (rank(low), rank(high)) and rank(low) > rank(high):
                warnings.append(f"{scope}: {fields[0]}={low!r} is above {fields[1]}={high!r}")
        if getattr(bounds, "pattern", None):
            try:
                re.compile(bounds.pattern)
            except re.error:
                warnings.append(f"{scope}: invalid regex, matching as a literal prefix")

    for warning in warnings:
        logger.warning(f"⚠️ Size limits: {warning}")
    return warnings
