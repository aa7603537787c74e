# lead_scout/enrichment.py
"""
Detail and email enrichment stages.

Each stage runs one task per record through a fixed-size pool and returns
only after every task has finished. A task that fails leaves its record with
whatever fields it already had.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar
from urllib.parse import urljoin

from playwright.async_api import Page

from .acquisition import BrowserSession, url_logger
from .config import ScraperConfig, GOOGLE_MAPS, YELLOW_PAGES
from .models import LeadRecord
from . import markup
from . import utils

logger = logging.getLogger('LeadScout.Enrichment')

T = TypeVar("T")


async def run_bounded(items: Sequence[T], worker: Callable[[T], Awaitable[Any]], concurrency: int,
                      label: str = "task") -> List[Any]:
    """Runs worker over items with at most `concurrency` in flight; waits for all of them."""
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _guarded(item: T):
        async with semaphore:
            return await worker(item)

    results = await asyncio.gather(*(_guarded(item) for item in items), return_exceptions=True)
    for item, result in zip(items, results):
        if isinstance(result, Exception):
            name = getattr(item, "name", item)
            logger.error(f"A {label} task failed for {name}: {result}")
    return list(results)


def resolve_detail_url(detail_url: str, base_url: str) -> str:
    if not detail_url:
        return ""
    if detail_url.startswith("http"):
        return detail_url
    return urljoin(base_url, detail_url)


class DetailEnricher:
    """Opens each record's detail page and fills the contact fields it is missing."""

    def __init__(self, config: ScraperConfig, session: BrowserSession):
        self.config = config
        self.session = session

    def _timeout_for(self, source: str) -> int:
        return self.config.maps_detail_timeout_ms if source == GOOGLE_MAPS else self.config.website_timeout_ms

    async def _load(self, url: str, source: str) -> Page:
        page = await self.session.new_page(self._timeout_for(source))
        try:
            url_logger.info(f"DETAIL: {url}")
            await utils.polite_goto(
                page, url, timeout_ms=self._timeout_for(source), logger=logger,
                attempts=self.config.retry_attempts, delay=self.config.retry_delay,
            )
            await utils.random_delay(self.config.retry_delay)
        except Exception:
            await page.close()
            raise
        return page

    def apply_detail(self, record: LeadRecord, html: str) -> None:
        """Merges the detail page fields into the record; populated fields are never replaced."""
        if record.source == GOOGLE_MAPS:
            fields = markup.parse_google_maps_detail(html, self.config.selectors)
        elif record.source == YELLOW_PAGES:
            fields = markup.parse_yellow_pages_detail(html, self.config.selectors)
        else:
            logger.warning(f"No detail parser for source '{record.source}' ({record.name})")
            return
        for name, value in fields.items():
            record.fill(name, value)

    async def enrich(self, record: LeadRecord) -> LeadRecord:
        if not record.details_needed or not record.detail_url:
            return record

        base_url = self.config.selectors.get(record.source, {}).get("base_url", "")
        record.detail_url = resolve_detail_url(record.detail_url, base_url)
        page = None
        try:
            page = await self._load(record.detail_url, record.source)
            self.apply_detail(record, await page.content())
            record.details_needed = False
        except Exception as e:
            logger.warning(f"Detail scraping failed for {record.name} ({record.source}): {e}")
        finally:
            if page is not None and not page.is_closed():
                await page.close()
        return record

    async def enrich_all(self, records: List[LeadRecord]) -> List[LeadRecord]:
        pending = [r for r in records if r.details_needed and r.detail_url]
        logger.info(f"Extracting details for {len(pending)} of {len(records)} records")
        done = {"n": 0}

        async def _task(record: LeadRecord):
            done["n"] += 1
            logger.info(f"Extracting details for {record.name} ({done['n']}/{len(pending)})")
            return await self.enrich(record)

        await run_bounded(pending, _task, self.config.detail_workers, label="detail")
        return records


class EmailResolver:
    """Visits each record's website and takes the first acceptable contact address."""

    def __init__(self, config: ScraperConfig, session: BrowserSession):
        self.config = config
        self.session = session

    async def find_email(self, website: str) -> Optional[str]:
        page = await self.session.new_page(self.config.website_timeout_ms)
        try:
            logger.info(f"Extracting email from website: {website}")
            url_logger.info(f"WEBSITE: {website}")
            await utils.polite_goto(
                page, website, timeout_ms=self.config.website_timeout_ms, logger=logger,
                attempts=self.config.retry_attempts, delay=self.config.retry_delay,
            )
            return markup.first_email_from_html(await page.content())
        finally:
            await page.close()

    async def resolve(self, record: LeadRecord) -> LeadRecord:
        if not record.website or record.email:
            return record
        try:
            email = await self.find_email(record.website)
            if record.fill("email", email):
                logger.info(f"✓ Email for {record.name}: {record.email}")
        except Exception as e:
            logger.warning(f"Email extraction failed for {record.website} ({record.name}): {e}")
        finally:
            await utils.random_delay(self.config.email_delay)
        return record

    async def resolve_all(self, records: List[LeadRecord]) -> List[LeadRecord]:
        pending = [r for r in records if r.website and not r.email]
        logger.info(f"Extracting emails for {len(pending)} of {len(records)} records")
        await run_bounded(pending, self.resolve, self.config.email_workers, label="email")
        return records
