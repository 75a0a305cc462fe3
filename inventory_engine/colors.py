import logging
import re
from typing import Callable, Optional
import requests
from pydantic import ValidationError

from . import settings
from .schemas import ColorSuggestion, InventoryVariant
from .utils import SkuError

logger = logging.getLogger(__name__)

STANDARD_COLOR_NAMES = {
    "black", "white", "red", "blue", "green", "yellow", "orange", "purple",
    "pink", "brown", "gray", "grey", "navy", "beige", "cream", "ivory", "tan",
    "khaki", "maroon", "burgundy", "coral", "salmon", "peach", "mint", "teal",
    "aqua", "turquoise", "cyan", "magenta", "fuchsia", "lavender", "violet",
    "indigo", "gold", "silver", "bronze", "copper", "charcoal", "slate",
    "olive", "sage", "forest", "hunter", "emerald", "jade", "lime",
    "chartreuse", "mustard", "rust", "wine", "plum", "mauve", "lilac",
    "periwinkle", "rose", "blush", "nude", "taupe", "camel", "cognac",
    "espresso", "chocolate", "mocha", "sand", "stone", "ash", "smoke",
    "navy blue", "royal blue", "sky blue", "baby blue", "light blue",
    "dark blue", "hot pink", "light pink", "dark pink", "bright pink",
    "light green", "dark green", "light gray", "dark gray", "light grey",
    "dark grey", "off white", "off-white", "eggshell", "champagne", "pearl",
    "oatmeal", "multi", "multicolor", "multicolour", "print", "pattern",
    "floral", "stripe", "stripes", "striped", "animal", "leopard", "zebra",
    "camo", "camouflage", "tie dye", "tie-dye", "ombre", "heather",
    "heathered", "melange", "marl", "neon", "bright", "pastel", "muted",
    "vintage", "natural", "neutral", "earth", "denim", "indigo blue",
    "chambray", "bleach", "acid wash",
}  # fmt: skip


def is_color_code(color: str) -> bool:
    """
    Heuristic for vendor abbreviations (BLK, NVY, RD2, ...) as opposed to
    real color words. Known color names are never codes.
    """
    trimmed = (color or "").strip()
    if not trimmed or trimmed.lower() in STANDARD_COLOR_NAMES:
        return False
    if " " in trimmed and len(trimmed) > 6:
        return False

    is_upper = trimmed == trimmed.upper() and re.search(r"[A-Z]", trimmed) is not None
    if len(trimmed) <= 4 and (is_upper or not re.search(r"[aeiou]", trimmed, re.IGNORECASE)):
        return True
    if trimmed == trimmed.upper() and re.fullmatch(r"[A-Z0-9]+", trimmed) and len(trimmed) <= 6:
        return True
    return bool(
        re.fullmatch(r"[A-Z]{2,4}[0-9]+", trimmed, re.IGNORECASE)
        or re.fullmatch(r"[0-9]+[A-Z]{2,4}", trimmed, re.IGNORECASE)
    )


def format_color_name(color: str) -> str:
    """Title-cases each word, keeping '-', '/' and whitespace separators: 'navy/WHITE' -> 'Navy/White'."""
    trimmed = (color or "").strip()
    parts = re.split(r"(\s+|[-/])", trimmed.lower())
    return "".join(part[:1].upper() + part[1:] for part in parts)


def normalize_color_value(color: str) -> str:
    """Collapses spacing: 'Red / White' -> 'Red/White', 'Black  &White' -> 'Black & White'."""
    if not color:
        return color
    result = re.sub(r"\s{2,}", " ", color.strip())
    result = re.sub(r"\s*/\s*", "/", result)
    result = re.sub(r"\s*-\s*", "-", result)
    result = re.sub(r"\s*&\s*", " & ", result)
    return re.sub(r"\s{2,}", " ", result).strip()


def suggest_color_corrections(
    codes: list[str], url: Optional[str] = None, timeout: Optional[float] = None
) -> list[ColorSuggestion]:
    """
    Asks the color-correction service to expand abbreviation codes.
    Fails open: any transport or format error yields no suggestions.
    """
    url = url or settings.COLOR_SERVICE_URL
    if not codes:
        return []
    if not url:
        logger.info("INFO: COLOR_SERVICE_URL not set. Skipping color suggestions.")
        return []

    try:
        response = requests.post(
            url,
            json={"colors": codes},
            timeout=timeout if timeout is not None else settings.COLOR_SERVICE_TIMEOUT,
        )
        response.raise_for_status()
        body = response.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error(f"❌ Color suggestion request failed: {e}")
        return []

    records = body.get("corrections", []) if isinstance(body, dict) else body
    if not isinstance(records, list):
        logger.error("❌ Color suggestion response has no corrections list.")
        return []

    suggestions = []
    for record in records:
        try:
            suggestions.append(ColorSuggestion.model_validate(record))
        except ValidationError:
            logger.warning(f"⚠️ Ignoring malformed color suggestion: {record!r}")
    return suggestions


def accept_suggestions(
    suggestions: list[ColorSuggestion],
    color_mappings: dict[str, str],
    threshold: Optional[float] = None,
) -> dict[str, str]:
    """
    Returns the suggestions worth keeping as new bad -> good mappings:
    confident enough, actually a change, and not overriding a known mapping.
    """
    threshold = threshold if threshold is not None else settings.COLOR_CONFIDENCE_THRESHOLD
    accepted = {}
    for suggestion in suggestions:
        bad = suggestion.bad_color.strip().lower()
        good = format_color_name(suggestion.good_color)
        if (
            suggestion.confidence >= threshold
            and bad != good.lower()
            and bad not in color_mappings
        ):
            accepted[bad] = good
    return accepted


def _refresh_sku(variant: InventoryVariant) -> None:
    try:
        variant.rebuild_sku()
    except SkuError:
        variant.sku = ""


def clean_variants(
    variants: list[InventoryVariant],
    color_mappings: Optional[dict[str, str]] = None,
    suggest: Optional[Callable[[list[str]], list[ColorSuggestion]]] = None,
) -> tuple[list[InventoryVariant], dict[str, int]]:
    """
    Tidies a batch before reconciliation:
    - drops variants with no size ("0" and "00" are sizes),
    - maps color codes through `color_mappings`, asking the color service
      about codes it doesn't know yet (accepted answers are added to the dict),
    - title-cases colors and rebuilds SKUs,
    - rewrites size D0 to 00, dropping it where that style/color already has a 00.

    `color_mappings` is owned by the caller (bad color, lowercased -> good color).
    """
    color_mappings = {} if color_mappings is None else color_mappings
    suggest = suggest or suggest_color_corrections
    for bad in [b for b in color_mappings if b != b.strip().lower()]:
        color_mappings[bad.strip().lower()] = color_mappings.pop(bad)
    stats = {"no_size_removed": 0, "colors_fixed": 0, "ai_colors_fixed": 0, "d0_removed": 0, "d0_converted": 0}

    # --- 1. Drop sizeless variants ---
    sized = [v for v in variants if v.size.strip()]
    stats["no_size_removed"] = len(variants) - len(sized)

    # --- 2. Learn new mappings for unknown codes ---
    unmapped = sorted(
        {
            color
            for color in (normalize_color_value(v.color) for v in sized)
            if color and color.lower() not in color_mappings and is_color_code(color)
        }
    )
    ai_mapped = {}
    if unmapped:
        ai_mapped = accept_suggestions(suggest(unmapped), color_mappings)
        color_mappings.update(ai_mapped)
        if ai_mapped:
            logger.info(f"  > Learned {len(ai_mapped)} new color mappings.")

    # --- 3. Apply mappings ---
    for variant in sized:
        color = normalize_color_value(variant.color)
        mapped = color_mappings.get(color.lower())
        if mapped and mapped.lower() != color.lower():
            stats["ai_colors_fixed" if color.lower() in ai_mapped else "colors_fixed"] += 1
            color = mapped
        new_color = format_color_name(color)
        if new_color != variant.color:
            variant.color = new_color
            _refresh_sku(variant)

    # --- 4. D0 -> 00 ---
    with_00 = {(v.style.lower(), v.color.lower()) for v in sized if v.size.strip() == "00"}
    cleaned = []
    for variant in sized:
        if variant.size.strip().upper() == "D0":
            if (variant.style.lower(), variant.color.lower()) in with_00:
                stats["d0_removed"] += 1
                continue
            variant.size = "00"
            _refresh_sku(variant)
            stats["d0_converted"] += 1
        cleaned.append(variant)

    logger.info(
        f"  > Cleaned: {stats['no_size_removed']} sizeless removed, "
        f"{stats['colors_fixed'] + stats['ai_colors_fixed']} colors fixed, "
        f"{stats['d0_converted']} D0 -> 00."
    )
    return cleaned, stats
