import json

import pandas as pd
import pytest

import main
from inventory_engine import data_handler, registry, settings
from inventory_engine.classifier import ClassificationError
from inventory_engine.pipelines.sale_file import SaleFilePipeline
from inventory_engine.pipelines.vendor_file import VendorFilePipeline
from inventory_engine.schemas import ClassificationResult, ExpansionConfig, SizeLimitConfig

VENDOR_CSV = """Feriani Stock Report,,,,
,00,0,2,Price
STYLE 100,,,,
Blue,0,1,3,250
Red,2,0,1,250
Style 200,,,,
Black,1,1,0,300
"""

SALE_CSV = """Style,Color,Size,Stock
12345,,,
,Red,0,2
,Blue,2,1
,67890,,
,Black,4,3
"""

GROUPED_RESPONSE = {
    "formatType": "pivot_grouped",
    "confidence": 0.95,
    "dataStartRow": 2,
    "groupedPivotConfig": {
        "styleDetectionMethod": "single_cell",
        "sizeStartColumn": 1,
        "sizeLabels": ["00", "0", "2"],
        "priceColumn": 4,
    },
}


@pytest.fixture
def vendor_file(tmp_path):
    path = tmp_path / "feriani_2026-01-15.csv"
    path.write_text(VENDOR_CSV, encoding="utf-8")
    return path


@pytest.fixture
def sale_file(tmp_path):
    path = tmp_path / "jovani_sale.csv"
    path.write_text(SALE_CSV, encoding="utf-8")
    return path


def fake_classify(rows, filename=None):
    return ClassificationResult.model_validate(GROUPED_RESPONSE)


def _outputs(pattern):
    return sorted(settings.OUTPUT_DIR.glob(pattern))

# -------------------------
# Vendor files
# -------------------------

def test_vendor_pipeline_end_to_end(vendor_file, today):
    pipeline = VendorFilePipeline(
        vendor_file, "feriani", classify=fake_classify, today=today, test_mode=True
    )
    variants = pipeline.run()

    assert len(variants) == 9
    assert [(v.style, v.color, v.size) for v in variants[:3]] == [
        ("100", "Blue", "00"),
        ("100", "Blue", "0"),
        ("100", "Blue", "2"),
    ]
    assert variants[-1].price == "300.00"
    assert pipeline.summary["status"] == "imported"
    assert pipeline.summary["format"] == "pivot_grouped"

    csv_files = _outputs("inventory_feriani_*.csv")
    assert len(csv_files) == 1
    df = pd.read_csv(csv_files[0], dtype=str, keep_default_na=False)
    assert len(df) == 9
    assert "shipDate" in df.columns
    assert "rawData" not in df.columns
    assert df["sku"].iloc[0] == "100-Blue-00"


def test_vendor_pipeline_limits_and_expansion(vendor_file, today):
    pipeline = VendorFilePipeline(
        vendor_file,
        "feriani",
        size_limits=SizeLimitConfig(enabled=True, maxSize="4"),
        expansion_config=ExpansionConfig(enabled=True, defaultExpandUp=1),
        classify=fake_classify,
        today=today,
        test_mode=True,
    )
    variants = pipeline.run()

    assert len(variants) == 11
    assert pipeline.summary["sizes_expanded"] == 4
    red = {v.size: v for v in variants if v.style == "100" and v.color == "Red"}
    assert list(red) == ["00", "0", "2", "4"]
    assert red["0"].stock == 1
    assert red["0"].is_expanded_size
    assert red["4"].stock == 1


def test_vendor_pipeline_filters_sale_styles(vendor_file, today, make_variant):
    style_registry = registry.InMemoryStyleRegistry()
    registry.register_sale_file_styles(style_registry, "sale-a", [make_variant("200")])

    pipeline = VendorFilePipeline(
        vendor_file,
        "feriani",
        style_registry=style_registry,
        sale_source_id="sale-a",
        classify=fake_classify,
        today=today,
        test_mode=True,
    )
    variants = pipeline.run()
    assert {v.style for v in variants} == {"100"}
    assert pipeline.summary["discontinued_styles_filtered"] == 3


def test_vendor_pipeline_title_line_narrower_than_table(tmp_path, today):
    path = tmp_path / "feriani_stock.csv"
    path.write_text(VENDOR_CSV.replace("Feriani Stock Report,,,,", "Feriani Stock Report"), encoding="utf-8")

    pipeline = VendorFilePipeline(path, "feriani", classify=fake_classify, today=today, test_mode=True)
    variants = pipeline.run()

    assert len(variants) == 9
    assert pipeline.summary["status"] == "imported"


def test_vendor_pipeline_unreadable_file(vendor_file, monkeypatch):
    def broken_read_csv(*args, **kwargs):
        raise pd.errors.ParserError("Error tokenizing data")

    monkeypatch.setattr(pd, "read_csv", broken_read_csv)
    pipeline = VendorFilePipeline(vendor_file, "feriani", classify=fake_classify, test_mode=True)
    assert pipeline.run() is None
    assert pipeline.summary["status"] == "unparsed"


def test_vendor_pipeline_unclassifiable_file(vendor_file):
    def failing_classify(rows, filename=None):
        raise ClassificationError("service timed out")

    pipeline = VendorFilePipeline(vendor_file, "feriani", classify=failing_classify, test_mode=True)
    assert pipeline.run() is None
    assert pipeline.summary["status"] == "unparsed"
    assert _outputs("*.csv") == []


def test_vendor_transform_drops_discontinued_items_with_nothing_to_sell(tmp_path, make_variant, today):
    pipeline = VendorFilePipeline(tmp_path / "unused.csv", "feriani", today=today, test_mode=True)
    variants = [
        make_variant("100", "Red", "2", stock=0, discontinued=True),
        make_variant("100", "Red", "4", stock=0, discontinued=True, ship_date="2099-01-01"),
        make_variant("100", "Red", "6", stock=2, discontinued=True),
    ]
    result = pipeline.transform(variants)
    assert [v.size for v in result] == ["4", "6"]
    assert pipeline.summary["discontinued_zero_stock_removed"] == 1


def test_vendor_pipeline_posts_to_webhook(vendor_file, fake_post, monkeypatch, today):
    monkeypatch.setattr(settings, "WEBHOOK_URL", "http://hooks.test/inventory")
    VendorFilePipeline(vendor_file, "feriani", classify=fake_classify, today=today).run()

    payload = fake_post.calls[0]["json"]
    assert payload["reportType"] == "inventory"
    assert payload["summary"]["status"] == "imported"
    assert len(payload["reportData"]) == 9
    assert payload["reportData"][0]["rawData"] == {}

# -------------------------
# Sale files
# -------------------------

def test_sale_pipeline_registers_styles(sale_file, today):
    style_registry = registry.InMemoryStyleRegistry()
    pipeline = SaleFilePipeline(sale_file, "jovani-sale", style_registry, today=today, test_mode=True)
    variants = pipeline.run()

    assert [(v.style, v.color, v.size, v.stock) for v in variants] == [
        ("12345", "Red", "0", 2),
        ("12345", "Blue", "2", 1),
        ("67890", "Black", "4", 3),
    ]
    assert style_registry.get_active_styles("jovani-sale") == {"12345", "67890"}
    assert pipeline.summary["styles_registered"] == 2
    assert len(_outputs("sale_jovani-sale_*.csv")) == 1

# -------------------------
# Outputs
# -------------------------

def test_save_outputs_writes_json_when_enabled(monkeypatch, make_variant):
    monkeypatch.setattr(settings, "SAVE_JSON_OUTPUT", True)
    data_handler.save_outputs([make_variant("100", ship_date="2099-01-01")], "inventory_feriani")
    json_files = _outputs("inventory_feriani_*.json")
    assert len(json_files) == 1
    records = json.loads(json_files[0].read_text())
    assert records[0]["shipDate"] == "2099-01-01"
    assert records[0]["sku"] == "100-Red-6"


def test_color_mappings_round_trip(tmp_path):
    path = tmp_path / "cache" / "color_mappings.json"
    data_handler.save_color_mappings({"nvy": "Navy", "blk": "Black"}, path)
    assert data_handler.load_color_mappings(path) == {"blk": "Black", "nvy": "Navy"}
    assert data_handler.load_color_mappings(tmp_path / "missing.json") == {}

# -------------------------
# Runner
# -------------------------

def test_find_latest_file(tmp_path):
    (tmp_path / "feriani_old.csv").write_text("x")
    (tmp_path / "other.csv").write_text("x")
    (tmp_path / "feriani_notes.txt").write_text("x")
    assert main.find_latest_file(tmp_path, "feriani") == tmp_path / "feriani_old.csv"
    assert main.find_latest_file(tmp_path, "jovani") is None
    assert main.find_latest_file(tmp_path / "missing", "feriani") is None


def test_run_process(tmp_path, monkeypatch, fake_post):
    input_dir = tmp_path / "input"
    input_dir.mkdir()
    (input_dir / "feriani_2026-01-15.csv").write_text(VENDOR_CSV, encoding="utf-8")
    (input_dir / "jovani_sale.csv").write_text(SALE_CSV.replace("67890", "200"), encoding="utf-8")

    sources_file = tmp_path / "sources.json"
    sources_file.write_text(
        json.dumps(
            [
                {"name": "feriani", "filePrefix": "feriani", "saleSourceId": "jovani-sale"},
                {"name": "jovani-sale", "filePrefix": "jovani_sale", "kind": "sale"},
            ]
        )
    )
    monkeypatch.setattr(settings, "INPUT_DIR", input_dir)
    monkeypatch.setattr(settings, "SOURCES_FILE", sources_file)
    monkeypatch.setattr(settings, "COLOR_MAPPINGS_FILE", tmp_path / "cache" / "color_mappings.json")
    monkeypatch.setattr(settings, "PRICE_CACHE_FILE", tmp_path / "cache" / "price_cache.json")
    monkeypatch.setattr(settings, "CLASSIFIER_URL", "http://classifier.test")
    monkeypatch.setattr(main, "setup_logger", lambda: None)
    fake_post.respond(GROUPED_RESPONSE)

    main.run_process()

    vendor_csv = _outputs("inventory_feriani_*.csv")
    assert len(vendor_csv) == 1
    df = pd.read_csv(vendor_csv[0], dtype=str, keep_default_na=False)
    assert set(df["style"]) == {"100"}
    assert len(_outputs("sale_jovani-sale_*.csv")) == 1
    assert (tmp_path / "cache" / "color_mappings.json").exists()
