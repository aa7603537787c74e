# lead_scout/config.py
import os
import json
import logging
from dataclasses import dataclass, field
from dotenv import load_dotenv
from typing import List, Dict, Any, Optional, Tuple

from .site_selectors import DEFAULT_SELECTORS, merge_selectors

# Load environment variables from .env file at the project root
load_dotenv()

logger = logging.getLogger('LeadScout.Config')

GOOGLE_MAPS = "google_maps"
YELLOW_PAGES = "yellow_pages"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ScraperConfig:
    """Central configuration for a run, loaded from environment variables."""
    # Run parameters (normally filled from the CLI prompts)
    query: str = ""
    location: str = ""
    max_results: int = 50
    sources: List[str] = field(default_factory=lambda: [GOOGLE_MAPS])
    extract_emails: bool = False
    output_file: str = "business_leads"
    yellow_pages_strategy: str = "paginate"  # or "scroll"

    # Classification service (loaded from .env file)
    openai_api_key: str = os.getenv('OPENAI_API_KEY', '')
    openai_model: str = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
    openai_api_url: str = os.getenv('OPENAI_API_URL', 'https://api.openai.com/v1/chat/completions')
    classification_timeout_s: float = 30.0

    # Document store
    mongodb_uri: str = os.getenv('MONGODB_URI', 'mongodb://localhost:27017/')
    mongodb_database: str = os.getenv('MONGODB_DATABASE', 'business_scraper')
    mongodb_collection: str = os.getenv('MONGODB_COLLECTION', 'businesses')

    # Browser settings
    headless: bool = _env_flag('HEADLESS', False)
    captcha_screenshot_path: str = "captcha_screenshot.png"
    selectors_file: str = os.getenv('LEAD_SCOUT_SELECTORS', '')

    # Timeouts (milliseconds, as Playwright expects them)
    search_timeout_ms: int = 60000
    maps_detail_timeout_ms: int = 45000
    website_timeout_ms: int = 30000
    wait_timeout_ms: int = 15000

    # Concurrency
    detail_workers: int = 2
    email_workers: int = 3

    # Politeness (seconds, as (min, max) windows)
    retry_attempts: int = 2
    retry_delay: Tuple[float, float] = (2.0, 4.0)
    settle_delay: Tuple[float, float] = (3.0, 5.0)
    scroll_delay: Tuple[float, float] = (2.0, 4.0)
    page_delay: Tuple[float, float] = (4.0, 7.0)
    email_delay: Tuple[float, float] = (1.0, 3.0)
    classification_delay: Tuple[float, float] = (1.0, 3.0)

    # Loaded in __post_init__
    selectors: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Loads the selector priority lists, merging any override file over the defaults."""
        self.selectors = self._load_selectors()
        if self.yellow_pages_strategy not in ("paginate", "scroll"):
            logger.warning(f"Unknown Yellow Pages strategy '{self.yellow_pages_strategy}'; using 'paginate'.")
            self.yellow_pages_strategy = "paginate"

    def _load_selectors(self) -> Dict[str, Any]:
        if not self.selectors_file:
            return merge_selectors({}, DEFAULT_SELECTORS)
        try:
            with open(self.selectors_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            logger.info(f"Loaded selector overrides from {self.selectors_file}")
            return merge_selectors(data, DEFAULT_SELECTORS)
        except (FileNotFoundError, json.JSONDecodeError) as e:
            logger.error(f"Could not load {self.selectors_file}: {e}; using defaults.")
            return merge_selectors({}, DEFAULT_SELECTORS)

    @property
    def classification_enabled(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def excel_path(self) -> str:
        name = (self.output_file or "").strip() or "business_leads"
        if not name.endswith(".xlsx"):
            name = f"{name}.xlsx"
        return os.path.join(".", name)

    def browser_args(self) -> List[str]:
        """Chromium launch flags shared by every browser session of a run."""
        from .utils import DEFAULT_USER_AGENT
        return [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-web-security",
            "--disable-features=IsolateOrigins,site-per-process",
            "--disable-site-isolation-trials",
            "--disable-blink-features=AutomationControlled",
            f"--user-agent={DEFAULT_USER_AGENT}",
        ]


def parse_sources(answer: Optional[str]) -> List[str]:
    """Maps the source prompt answer ('1', '2', '3' or names) to source keys."""
    text = (answer or "").strip().lower()
    sources = []
    if "1" in text or "3" in text or "google" in text:
        sources.append(GOOGLE_MAPS)
    if "2" in text or "3" in text or "yellow" in text:
        sources.append(YELLOW_PAGES)
    if not sources:
        logger.warning("No valid sources selected. Defaulting to Google Maps.")
        sources.append(GOOGLE_MAPS)
    return sources
