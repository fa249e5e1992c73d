# sourcing/config/settings.py

"""Central configuration for the product sourcing pipeline."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the product sourcing pipeline."""

    # --- Credentials (from environment / .env) ---
    RAPIDAPI_KEY: str = os.getenv("RAPIDAPI_KEY", "")
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")

    # --- Outgoing requests ---
    MIN_REQUEST_INTERVAL: float = 0.1   # Seconds between any two calls
    REQUEST_TIMEOUT: int = 20           # Seconds before a request times out
    DEFAULT_PAGE_SIZE: int = 40
    AGGREGATED_PAGE_SIZE: int = 50

    # --- Cache TTLs (seconds) ---
    SEARCH_CACHE_TTL: float = 15 * 60
    AGGREGATED_CACHE_TTL: float = 10 * 60
    DETAIL_CACHE_TTL: float = 4 * 60 * 60
    HOT_PRODUCTS_CACHE_TTL: float = 60 * 60

    # --- Normalization ---
    PLACEHOLDER_IMAGE: str = (
        "https://via.placeholder.com/300x300?text=No+Image"
    )
    CLOTHING_KEYWORDS: list[str] = [
        "shirt", "top", "dress", "blouse", "pants", "jeans",
        "skirt", "jacket", "coat", "sweater", "hoodie",
        "t-shirt", "shorts",
    ]
    SIZE_LADDER: list[str] = ["S", "M", "L", "XL", "XXL"]
    DEFAULT_ESTIMATED_DELIVERY: str = "15-30 days"

    # --- Query optimisation ---
    QUERY_MAX_TERMS: int = 4
    QUERY_FILLER_WORDS: frozenset[str] = frozenset({
        "the", "a", "an", "and", "or", "for", "with", "in", "on",
        "to", "of", "that", "this", "is", "i", "my", "me", "need",
        "want", "looking", "find", "search", "good", "best",
        "cheap", "please", "help",
    })

    # --- AI text enhancement ---
    AI_MODEL: str = os.getenv("AI_MODEL", "gemini-2.0-flash")
    AI_ENDPOINT: str = (
        "https://generativelanguage.googleapis.com/v1beta/"
        "models/{model}:generateContent"
    )
    AI_PLACEHOLDER_MARKERS: list[str] = [
        "Unknown",
        "Unnamed Product",
        "Imported from AliExpress",
        "Thoughtfully designed with quality materials",
        "Crafted with care and attention to detail",
        "Premium materials meet refined design",
    ]

    # --- Importing ---
    DEFAULT_COLLECTION: str = "decor"
    DEFAULT_CATEGORY_LABEL: str = "General"

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    COLLECTIONS_PATH: Path = (
        BASE_DIR / "sourcing" / "config" / "collections.json"
    )
    CATALOG_PATH: Path = BASE_DIR / "data" / "catalog.json"
    IMPORT_HISTORY_DB_PATH: Path = BASE_DIR / "data" / "imports.db"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Marketplaces (registry) ---
    AVAILABLE_SOURCES: list[dict[str, str]] = [
        {
            "id": "aliexpress",
            "label": "AliExpress",
            "host": "aliexpress-datahub.p.rapidapi.com",
            "client": (
                "sourcing.clients.aliexpress_client."
                "AliExpressClient"
            ),
        },
        {
            "id": "alibaba",
            "label": "Alibaba",
            "host": "alibaba-datahub.p.rapidapi.com",
            "client": (
                "sourcing.clients.alibaba_client.AlibabaClient"
            ),
        },
        {
            "id": "aliexpress_true",
            "label": "AliExpress True API",
            "host": "aliexpress-true-api.p.rapidapi.com",
            "client": (
                "sourcing.clients.aliexpress_true_client."
                "AliExpressTrueClient"
            ),
        },
    ]
    DEFAULT_SOURCES: list[str] = ["aliexpress", "alibaba"]
