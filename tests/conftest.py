import pytest

from lead_scout.config import ScraperConfig, GOOGLE_MAPS
from lead_scout.models import LeadRecord


@pytest.fixture
def config():
    """Config with no external credentials and no waiting between steps."""
    return ScraperConfig(
        query="plumbers",
        location="Austin",
        max_results=10,
        openai_api_key="",
        retry_delay=(0, 0),
        settle_delay=(0, 0),
        scroll_delay=(0, 0),
        page_delay=(0, 0),
        email_delay=(0, 0),
        classification_delay=(0, 0),
    )


@pytest.fixture
def make_record():
    def _make(name="Joe's Cafe", source=GOOGLE_MAPS, **fields):
        return LeadRecord(name=name, source=source, **fields)
    return _make
