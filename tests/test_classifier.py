import pytest
import requests

from inventory_engine import settings
from inventory_engine.classifier import (
    ClassificationError,
    classify_format,
    parse_classification,
    render_sample_rows,
)

URL = "http://classifier.test/classify"

GROUPED_RESPONSE = {
    "formatType": "pivot_grouped",
    "confidence": 0.92,
    "headerRowIndex": 0,
    "dataStartRow": 0,
    "groupedPivotConfig": {
        "enabled": True,
        "styleDetectionMethod": "single_cell",
        "sizeStartColumn": 1,
        "sizeLabels": ["00", "0", "2"],
    },
    "notes": ["Style headers sit alone in column A."],
}

# -------------------------
# Sample rendering
# -------------------------

def test_render_sample_rows():
    text = render_sample_rows([["STYLE 100"], ["Blue", 0, "", 3]])
    assert text == "Row 0: STYLE 100\nRow 1: Blue | 0 | (empty) | 3"


def test_render_sample_rows_truncates():
    rows = [["x" * 80] for _ in range(40)]
    lines = render_sample_rows(rows, limit=25, width=50).splitlines()
    assert len(lines) == 25
    assert lines[0] == "Row 0: " + "x" * 50

# -------------------------
# Successful classification
# -------------------------

def test_classify_grouped(fake_post, grouped_rows):
    fake_post.respond(GROUPED_RESPONSE)
    result = classify_format(grouped_rows, filename="feriani.xlsx", url=URL)

    assert result.format_type == "pivot_grouped"
    assert result.grouped_pivot_config.size_labels == ["00", "0", "2"]
    call = fake_post.calls[0]
    assert call["url"] == URL
    assert call["json"]["filename"] == "feriani.xlsx"
    assert call["json"]["totalRows"] == 3
    assert call["json"]["sampleRows"].startswith("Row 0: STYLE 100")
    assert call["timeout"] == settings.CLASSIFIER_TIMEOUT


def test_classify_row(fake_post):
    fake_post.respond(
        {
            "formatType": "row",
            "confidence": 0.99,
            "columnMapping": {"style": "Style", "color": "Color", "size": "Size"},
        }
    )
    result = classify_format([["Style", "Color", "Size"]], url=URL)
    assert result.format_type == "row"
    assert result.column_mapping["size"] == "Size"


def test_classify_pivot(fake_post):
    fake_post.respond(
        {
            "formatType": "pivot",
            "confidence": 0.8,
            "pivotConfig": {"styleColumn": "Style", "sizeColumns": ["OO", "0", "2"]},
        }
    )
    result = classify_format([["Style", "OO", "0", "2"]], url=URL)
    assert result.pivot_config.style_column == "Style"


def test_classify_sends_api_key(fake_post, monkeypatch, grouped_rows):
    monkeypatch.setattr(settings, "CLASSIFIER_API_KEY", "secret")
    fake_post.respond(GROUPED_RESPONSE)
    classify_format(grouped_rows, url=URL)
    assert fake_post.calls[0]["headers"] == {"Authorization": "Bearer secret"}

# -------------------------
# Failures
# -------------------------

@pytest.mark.parametrize(
    "payload",
    [
        dict(GROUPED_RESPONSE, formatType="matrix"),
        {"formatType": "pivot_grouped", "confidence": 0.9},
        dict(GROUPED_RESPONSE, confidence="high"),
        dict(GROUPED_RESPONSE, pivotConfig={"styleColumn": "Style", "sizeColumns": ["2"]}),
        ["not", "an", "object"],
    ],
)
def test_malformed_response_raises(fake_post, grouped_rows, payload):
    fake_post.respond(payload)
    with pytest.raises(ClassificationError):
        classify_format(grouped_rows, url=URL)


def test_timeout_raises(fake_post, grouped_rows):
    fake_post.response = requests.exceptions.Timeout("read timed out")
    with pytest.raises(ClassificationError):
        classify_format(grouped_rows, url=URL)


def test_http_error_raises(fake_post, grouped_rows):
    fake_post.respond(GROUPED_RESPONSE, status_code=502)
    with pytest.raises(ClassificationError):
        classify_format(grouped_rows, url=URL)


def test_non_json_raises(fake_post, grouped_rows):
    fake_post.respond(bad_json=True)
    with pytest.raises(ClassificationError):
        classify_format(grouped_rows, url=URL)


def test_missing_url_raises(fake_post, grouped_rows):
    with pytest.raises(ClassificationError):
        classify_format(grouped_rows)
    assert fake_post.calls == []


def test_empty_sheet_raises(fake_post):
    with pytest.raises(ClassificationError):
        classify_format([], url=URL)


def test_parse_classification_rejects_non_dict():
    with pytest.raises(ClassificationError):
        parse_classification(None)
