import logging
from typing import Any, Optional
import requests
from pydantic import ValidationError

from . import settings
from .schemas import ClassificationResult
from .utils import cell_text

logger = logging.getLogger(__name__)


class ClassificationError(Exception):
    """The file layout could not be determined; the file must be treated as unparsed."""


def render_sample_rows(
    rows: list[list[Any]], limit: Optional[int] = None, width: Optional[int] = None
) -> str:
    """
    Renders the first rows as a readable table for the classification service:
        Row 0: Style | Color | (empty) | 00
    """
    limit = limit if limit is not None else settings.SAMPLE_ROWS
    width = width if width is not None else settings.SAMPLE_CELL_WIDTH

    lines = []
    for i, row in enumerate(rows[:limit]):
        cells = [cell_text(cell)[:width] or "(empty)" for cell in row]
        lines.append(f"Row {i}: {' | '.join(cells)}")
    return "\n".join(lines)


def parse_classification(payload: Any) -> ClassificationResult:
    """Validates a raw service response; any deviation from the contract is an error."""
    if not isinstance(payload, dict):
        raise ClassificationError(
            f"Classification response is not a JSON object: {type(payload).__name__}"
        )
    try:
        return ClassificationResult.model_validate(payload)
    except ValidationError as e:
        raise ClassificationError(f"Malformed classification response: {e}") from e


def classify_format(
    rows: list[list[Any]],
    filename: Optional[str] = None,
    url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> ClassificationResult:
    """
    Asks the remote classification service whether a sheet is laid out as
    'row', 'pivot' or 'pivot_grouped', and returns the validated layout config.
    Never guesses: transport failures, timeouts and malformed responses raise
    ClassificationError.
    """
    url = url or settings.CLASSIFIER_URL
    if not url:
        raise ClassificationError("CLASSIFIER_URL not set.")
    if not rows:
        raise ClassificationError("Cannot classify an empty sheet.")

    payload = {
        "filename": filename or "unknown",
        "totalRows": len(rows),
        "sampleRows": render_sample_rows(rows),
    }
    headers = {}
    if settings.CLASSIFIER_API_KEY:
        headers["Authorization"] = f"Bearer {settings.CLASSIFIER_API_KEY}"

    logger.info(
        f"🔎 Classifying '{payload['filename']}' ({min(len(rows), settings.SAMPLE_ROWS)} sample rows)..."
    )
    try:
        response = requests.post(
            url,
            json=payload,
            headers=headers,
            timeout=timeout if timeout is not None else settings.CLASSIFIER_TIMEOUT,
        )
        response.raise_for_status()
        body = response.json()
    except requests.exceptions.RequestException as e:
        raise ClassificationError(f"Classification request failed: {e}") from e
    except ValueError as e:
        raise ClassificationError(f"Classification response is not JSON: {e}") from e

    result = parse_classification(body)
    logger.info(
        f"  > Detected format: {result.format_type} (confidence: {result.confidence})"
    )
    for note in result.notes:
        logger.info(f"  > Note: {note}")
    return result
