import sys, pathlib
from datetime import date

import pytest
import requests

ROOT = pathlib.Path(__file__).resolve().parents[1]          # Project repo root
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from inventory_engine import settings
from inventory_engine.schemas import InventoryVariant


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    # Keep every test off the network and out of the repo's output folder.
    monkeypatch.setattr(settings, "OUTPUT_DIR", tmp_path / "output")
    monkeypatch.setattr(settings, "SAVE_JSON_OUTPUT", False)
    monkeypatch.setattr(settings, "WEBHOOK_URL", None)
    monkeypatch.setattr(settings, "CLASSIFIER_URL", None)
    monkeypatch.setattr(settings, "COLOR_SERVICE_URL", None)
    monkeypatch.setattr(settings, "DATE_OFFSET_DAYS", 0)


@pytest.fixture
def today():
    return date(2026, 1, 15)


@pytest.fixture
def make_variant():
    def _make(style="A", color="Red", size="6", stock=1, **kwargs):
        return InventoryVariant(style=style, color=color, size=size, stock=stock, **kwargs)
    return _make


class FakeResponse:
    def __init__(self, payload=None, status_code=200, bad_json=False):
        self.payload = payload
        self.status_code = status_code
        self.bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self.bad_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


@pytest.fixture
def fake_post(monkeypatch):
    """
    Replaces requests.post. Use `.respond(...)` for a canned response or set
    `.response` to an exception to raise; every call is recorded in `.calls`.
    """
    class _FakePost:
        def __init__(self):
            self.calls = []
            self.response = FakeResponse({})

        def respond(self, payload=None, status_code=200, bad_json=False):
            self.response = FakeResponse(payload, status_code, bad_json)

        def __call__(self, url, json=None, headers=None, timeout=None):
            self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
            if isinstance(self.response, Exception):
                raise self.response
            return self.response

    fake = _FakePost()
    monkeypatch.setattr(requests, "post", fake)
    return fake


@pytest.fixture
def grouped_rows():
    return [["STYLE 100"], ["Blue", 0, 1, 3], ["Red", 2, 0, 1]]


@pytest.fixture
def grouped_config_payload():
    return {
        "enabled": True,
        "styleDetectionMethod": "single_cell",
        "styleColumn": 0,
        "colorColumn": 0,
        "sizeStartColumn": 1,
        "sizeLabels": ["00", "0", "2"],
    }
