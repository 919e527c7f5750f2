# shopmate/config/settings.py

"""Central configuration for the shopmate aggregation pipeline."""

import os
from pathlib import Path
from typing import Any

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str) -> bool:
    """Read a ``true``/``false`` environment flag."""
    return os.getenv(name, "").strip().lower() == "true"


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, ignoring junk values."""
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


class Settings:
    """Central configuration for the shopmate aggregation pipeline.

    Class attributes are the defaults (some taken from ``.env``).
    Instances may override any of them by keyword, which is how the
    pipeline and tests receive an explicit configuration object::

        settings = Settings(USE_SERPAPI=True, GEMINI_API_KEY="")
    """

    # --- Scraping ---
    REQUEST_DELAY: float = 1.0          # Seconds between requests
    REQUEST_TIMEOUT: int = 10           # Seconds before a request times out
    MAX_RETRIES: int = 2                # Retry count on transient failures
    MAX_PAGES: int = 1                  # Max pagination depth per source

    # --- Resilience ---
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-IN,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Aggregation strategy ---
    USE_SERPAPI: bool = _env_flag("USE_SERPAPI")
    USE_AMAZON_FLIPKART_DIRECT: bool = _env_flag(
        "USE_AMAZON_FLIPKART_DIRECT"
    )
    SOURCE_TIMEOUT: float = (
        _env_float("SCRAPER_TIMEOUT_MS", 6000.0) / 1000.0
    )
    RANKING_CANDIDATES: int = 20        # Top-N slice sent for scoring
    VERDICT_CANDIDATES: int = 5         # Products shown to the verdict
    REDIRECT_DOMAIN: str = "google.com"
    CURRENCY_SYMBOL: str = "₹"

    # --- SerpAPI ---
    SERPAPI_KEY: str = os.getenv("SERPAPI_KEY", "")
    SERPAPI_URL: str = "https://serpapi.com/search.json"
    SERPAPI_COUNTRY: str = "in"
    SERPAPI_SIGNUP_URL: str = "https://serpapi.com/users/sign_up"

    # --- Gemini ---
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_TIMEOUT: int = 20            # Seconds, passed to the SDK in ms

    # --- Ranking (hand-tuned, not validated business logic) ---
    WEIGHT_RELEVANCE: float = 3.0
    WEIGHT_VALUE: float = 1.0
    WEIGHT_IRRELEVANCE: float = 5.0
    IRRELEVANCE_PENALTY: float = 0.9
    NEUTRAL_RELEVANCE: float = 0.5
    PREMIUM_PRICE_THRESHOLD: float = 10000.0
    PREMIUM_REFERENCE_MULTIPLIER: float = 1.15
    BUDGET_REFERENCE_MULTIPLIER: float = 2.0

    # --- Accessory heuristic ---
    ACCESSORY_KEYWORDS: list[str] = [
        "case",
        "cover",
        "charger",
        "cable",
        "protector",
        "adapter",
        "stand",
        "mouse pad",
        "screen guard",
        "tempered glass",
    ]
    ACCESSORY_PRICE_THRESHOLD: float = 1000.0

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "shopmate" / "config" / "selectors.json"
    RESULTS_DIR: Path = BASE_DIR / "results"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Sources (direct sites first: merge priority follows this order) ---
    AVAILABLE_SOURCES: list[dict[str, str]] = [
        {
            "id": "amazon",
            "label": "Amazon",
            "scraper": "shopmate.scrapers.amazon_scraper.AmazonScraper",
            "kind": "direct",
        },
        {
            "id": "flipkart",
            "label": "Flipkart",
            "scraper": "shopmate.scrapers.flipkart_scraper.FlipkartScraper",
            "kind": "direct",
        },
        {
            "id": "serpapi",
            "label": "SerpAPI (Other Stores)",
            "scraper": "shopmate.scrapers.serpapi_source.SerpApiSource",
            "kind": "aggregator",
        },
    ]

    _PLACEHOLDER_KEYS: frozenset[str] = frozenset(
        {"your_gemini_api_key_here", "your_serpapi_key_here"}
    )

    def __init__(self, **overrides: Any) -> None:
        for name, value in overrides.items():
            if not name.isupper() or not hasattr(Settings, name):
                msg = f"Unknown setting: {name}"
                raise AttributeError(msg)
            setattr(self, name, value)

    def _key_is_set(self, key: str) -> bool:
        return bool(key) and key not in self._PLACEHOLDER_KEYS

    @property
    def gemini_configured(self) -> bool:
        """True when a usable Gemini API key is present."""
        return self._key_is_set(self.GEMINI_API_KEY)

    @property
    def serpapi_configured(self) -> bool:
        """True when a usable SerpAPI key is present."""
        return self._key_is_set(self.SERPAPI_KEY)

    def strategy(self) -> dict[str, bool]:
        """Return the enabled-source flags reported in result metadata."""
        return {
            "amazonFlipkartDirect": self.USE_AMAZON_FLIPKART_DIRECT,
            "serpApiOthers": self.USE_SERPAPI,
        }

    def enabled_sources(self) -> list[dict[str, str]]:
        """Return the registry entries switched on by the strategy flags."""
        enabled: list[dict[str, str]] = []
        for src in self.AVAILABLE_SOURCES:
            if src["kind"] == "direct":
                if self.USE_AMAZON_FLIPKART_DIRECT:
                    enabled.append(src)
            elif self.USE_SERPAPI:
                enabled.append(src)
        return enabled
