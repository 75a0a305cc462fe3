import os
from pathlib import Path
from dotenv import load_dotenv

# --- Base Directory ---
BASE_DIR = Path(__file__).resolve().parent.parent

# --- Load Environment Variables ---
load_dotenv(BASE_DIR / ".env")

# --- Path Configuration ---
INPUT_DIR = BASE_DIR / os.getenv("INPUT_DIR", "input")
OUTPUT_DIR = BASE_DIR / os.getenv("OUTPUT_DIR", "output")
SAVE_JSON_OUTPUT = os.getenv("SAVE_JSON_OUTPUT", "false").lower() == "true"

# --- Local Caches & Source Configuration ---
SOURCES_FILE = BASE_DIR / os.getenv("SOURCES_FILE", "sources.json")
COLOR_MAPPINGS_FILE = BASE_DIR / os.getenv("COLOR_MAPPINGS_FILE", "cache/color_mappings.json")
PRICE_CACHE_FILE = BASE_DIR / os.getenv("PRICE_CACHE_FILE", "cache/price_cache.json")

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = BASE_DIR / os.getenv("LOG_FILE", "logs/app.log")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", str(5 * 1024 * 1024)))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "3"))

# --- Webhook ---
WEBHOOK_URL = os.getenv("WEBHOOK_URL")

# --- Format Classification Service ---
CLASSIFIER_URL = os.getenv("CLASSIFIER_URL")
CLASSIFIER_API_KEY = os.getenv("CLASSIFIER_API_KEY")
CLASSIFIER_TIMEOUT = float(os.getenv("CLASSIFIER_TIMEOUT", "60"))

# How much of the file the classifier gets to see.
SAMPLE_ROWS = int(os.getenv("SAMPLE_ROWS", "25"))
SAMPLE_CELL_WIDTH = int(os.getenv("SAMPLE_CELL_WIDTH", "50"))

# --- Color Correction Service ---
COLOR_SERVICE_URL = os.getenv("COLOR_SERVICE_URL")
COLOR_SERVICE_TIMEOUT = float(os.getenv("COLOR_SERVICE_TIMEOUT", "30"))
COLOR_CONFIDENCE_THRESHOLD = float(os.getenv("COLOR_CONFIDENCE_THRESHOLD", "0.7"))

# --- Shared Business Logic ---
# Days added to a ship date before deciding whether the stock has arrived.
DATE_OFFSET_DAYS = int(os.getenv("DATE_OFFSET_DAYS", "0"))

HEADER_KEYWORDS = [
    "sku",
    "code",
    "id",
    "name",
    "title",
    "desc",
    "style",
    "color",
    "colour",
    "size",
    "stock",
    "qty",
    "price",
    "cost",
    "msrp",
]

STOCK_TEXT_VALUES = {
    "yes": 1,
    "in stock": 1,
    "available": 1,
    "no": 0,
    "sold out": 0,
    "out of stock": 0,
    "-": 0,
    "n/a": 0,
}

DISCONTINUED_KEYWORDS = [
    "discontinued",
    "disc",
    "inactive",
    "obsolete",
]

NO_DATE_VALUES = ["n/a", "na", "tbd", "none", "-"]
