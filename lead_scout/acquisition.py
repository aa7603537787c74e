# lead_scout/acquisition.py
import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TYPE_CHECKING
from urllib.parse import quote_plus, quote

from playwright.async_api import async_playwright, Page, Browser, BrowserContext, Response

from .config import ScraperConfig, GOOGLE_MAPS, YELLOW_PAGES
from .models import LeadRecord
from .payloads import CapturedResponse, MIN_CAPTURE_BYTES, MIN_EMBEDDED_BYTES
from . import utils

if TYPE_CHECKING:
    from .extraction import RecordExtractor


# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------
logger = logging.getLogger('LeadScout.Acquisition')

url_logger = logging.getLogger('VisitedUrls')
if not url_logger.handlers:
    handler = logging.FileHandler('visited_urls.log', 'a')
    handler.setFormatter(logging.Formatter('%(message)s'))
    url_logger.addHandler(handler)
    url_logger.setLevel(logging.INFO)
    url_logger.propagate = False


class CaptchaDetected(Exception):
    """The source answered with an anti-bot challenge; acquisition from it stops."""


class BrowserLaunchError(RuntimeError):
    pass


# ---------------------------------------------------------------------------
# Browser session
# ---------------------------------------------------------------------------
class BrowserSession:
    """One browser + context, opened on enter and always closed on exit."""

    def __init__(self, config: ScraperConfig, label: str = "primary"):
        self.config = config
        self.label = label
        self._pw = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "BrowserSession":
        try:
            self._pw = await async_playwright().start()
            self.browser = await self._pw.chromium.launch(
                headless=self.config.headless,
                args=self.config.browser_args(),
            )
            self.context = await utils.new_context_with_profile(self.browser)
        except Exception as e:
            await self.close()
            raise BrowserLaunchError(f"Could not launch {self.label} browser: {e}") from e
        logger.info(f"Browser session '{self.label}' started.")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def new_page(self, navigation_timeout_ms: Optional[int] = None) -> Page:
        page = await self.context.new_page()
        page.set_default_navigation_timeout(navigation_timeout_ms or self.config.search_timeout_ms)
        page.set_default_timeout(self.config.wait_timeout_ms)
        return page

    async def close(self):
        for closer in (self.context, self.browser):
            if closer is None:
                continue
            try:
                await closer.close()
            except Exception as e:
                logger.debug(f"Error closing {self.label} browser resource: {e}")
        self.context = None
        self.browser = None
        if self._pw is not None:
            try:
                await self._pw.stop()
            except Exception as e:
                logger.debug(f"Error stopping Playwright for {self.label}: {e}")
            self._pw = None
            logger.info(f"Browser session '{self.label}' closed.")


# ---------------------------------------------------------------------------
# Network capture
# ---------------------------------------------------------------------------
def payload_mirror_script(endpoints: Sequence[str], element_id: str) -> str:
    """Init script copying listing XHR bodies into a hidden element the extractor can read back."""
    return """
(() => {
  const endpoints = %s;
  const elementId = %s;
  const XHR = XMLHttpRequest.prototype;
  const open = XHR.open;
  const send = XHR.send;
  XHR.open = function (method, url) {
    this._leadScoutUrl = url;
    return open.apply(this, arguments);
  };
  XHR.send = function () {
    this.addEventListener('load', function () {
      const url = String(this._leadScoutUrl || '');
      if (!endpoints.some((e) => url.includes(e))) return;
      try {
        let el = document.getElementById(elementId);
        if (!el) {
          el = document.createElement('div');
          el.id = elementId;
          el.style.height = 0;
          el.style.overflow = 'hidden';
          document.body.appendChild(el);
        }
        el.innerText = this.responseText;
      } catch (e) {}
    });
    return send.apply(this, arguments);
  };
})();
""" % (json.dumps(list(endpoints)), json.dumps(element_id))


class ResponseCapture:
    """Keeps the raw text of listing/detail endpoint responses seen by a page."""

    def __init__(self, endpoints: Sequence[str], min_bytes: int = MIN_CAPTURE_BYTES):
        self.endpoints = list(endpoints)
        self.min_bytes = min_bytes
        self.responses: List[CapturedResponse] = []
        self._pending: List[asyncio.Task] = []

    def matches(self, url: str) -> bool:
        return any(e in url for e in self.endpoints)

    def attach(self, page: Page):
        page.on("response", lambda response: self._pending.append(asyncio.ensure_future(self.on_response(response))))

    async def on_response(self, response: Response):
        url = response.url
        if not self.matches(url):
            return
        try:
            text = await response.text()
        except Exception as e:
            logger.debug(f"Could not read response body for {url}: {e}")
            return
        if text and len(text) > self.min_bytes:
            self.responses.append(CapturedResponse(url=url, data=text))
            logger.debug(f"Captured {len(text)} bytes from {url}")

    async def drain(self):
        """Waits for body reads still in flight."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
            self._pending.clear()


async def check_for_captcha(page: Page, selector: str, screenshot_path: str) -> None:
    has_captcha = await page.evaluate("(selector) => !!document.querySelector(selector)", selector)
    if has_captcha:
        logger.error("CAPTCHA detected. Saving screenshot...")
        try:
            await page.screenshot(path=screenshot_path)
        except Exception as e:
            logger.warning(f"Could not save CAPTCHA screenshot: {e}")
        raise CaptchaDetected(f"CAPTCHA detected on {page.url}")


# ---------------------------------------------------------------------------
# Incremental reveal loops
# ---------------------------------------------------------------------------
async def scroll_until_count(
    count: Callable[[], Awaitable[int]],
    scroll: Callable[[], Awaitable[Any]],
    target: int,
    pause: Callable[[], Awaitable[None]],
    max_stale: int = 3,
) -> int:
    """Scrolls until `target` nodes are rendered or `max_stale` scrolls add nothing; returns the last count."""
    previous = 0
    stale = 0
    current = 0
    while True:
        current = await count()
        logger.info(f"Loaded so far: {current}")
        if current >= target:
            logger.info(f"✓ Reached {current}/{target}")
            break

        await scroll()
        await pause()

        if current == previous:
            stale += 1
        else:
            stale = 0
            previous = current

        if stale >= max_stale:
            logger.info(f"No more results. Total: {current}")
            break
    return current


async def scroll_and_click_until_count(
    count: Callable[[], Awaitable[int]],
    scroll: Callable[[], Awaitable[bool]],
    click_more: Callable[[], Awaitable[bool]],
    target: int,
    pause: Callable[[], Awaitable[None]],
    max_unresponsive: int = 3,
    max_stale: int = 8,
    max_cycles: int = 50,
    final_bursts: int = 5,
    burst_pause: float = 0.2,
    final_settle: float = 2.0,
) -> int:
    """Scroll plus 'show more' clicks each cycle, with unresponsive, stale and hard-cap stop rules."""
    previous = 0
    unresponsive = 0
    stale = 0
    cycles = 0
    while True:
        current = await count()
        scrolled = await scroll()
        clicked = await click_more()
        cycles += 1
        logger.info(f"Scroll attempt {cycles}: found {current} results (target: {target})")

        if current >= target:
            logger.info(f"✓ Reached target: {current} listings found")
            return current

        if not scrolled and not clicked:
            unresponsive += 1
            if unresponsive >= max_unresponsive:
                logger.info(f"Scroll container no longer responsive, found {current} listings")
                return current
        else:
            unresponsive = 0

        if current == previous:
            stale += 1
            if stale >= max_stale:
                logger.info("Performing final scroll...")
                for _ in range(final_bursts):
                    await scroll()
                    await click_more()
                    await asyncio.sleep(burst_pause)
                await asyncio.sleep(final_settle)
                final = await count()
                logger.info(f"✓ Scrolling complete: {final} listings found (no more results loading)")
                return final
        else:
            stale = 0
            previous = current

        if cycles >= max_cycles:
            logger.info(f"✓ Scrolling stopped after {max_cycles} attempts, found {current} listings")
            return current

        await pause()


# ---------------------------------------------------------------------------
# Acquisition results
# ---------------------------------------------------------------------------
@dataclass
class AcquisitionResult:
    source: str
    target: int
    responses: List[CapturedResponse] = field(default_factory=list)
    embedded_payload: Optional[str] = None
    html: str = ""
    listings: Optional[List[LeadRecord]] = None
    found_count: int = 0
    pages_failed: int = 0


# ---------------------------------------------------------------------------
# Google Maps
# ---------------------------------------------------------------------------
class GoogleMapsAcquirer:
    source = GOOGLE_MAPS

    def __init__(self, config: ScraperConfig):
        self.config = config
        self.sel = config.selectors[GOOGLE_MAPS]

    def search_url(self, query: str, location: str) -> str:
        return self.sel["search_url"].format(query=quote(query), location=quote(location))

    async def acquire(self, session: BrowserSession, query: str, location: str, target: int) -> AcquisitionResult:
        result = AcquisitionResult(source=self.source, target=target)
        capture = ResponseCapture(self.sel["payload_endpoints"])
        page = await session.new_page(self.config.search_timeout_ms)
        try:
            capture.attach(page)
            await page.add_init_script(payload_mirror_script(self.sel["payload_endpoints"], self.sel["embedded_payload"].lstrip("#")))

            url = self.search_url(query, location)
            logger.info(f"Navigating to: {url}")
            url_logger.info(f"SEARCH: {url}")
            await utils.polite_goto(page, url, timeout_ms=self.config.search_timeout_ms, logger=logger)
            await utils.random_delay(self.config.settle_delay)
            await utils.handle_consent(page, logger=logger)

            await check_for_captcha(page, self.sel["captcha"], self.config.captcha_screenshot_path)

            logger.info("Scrolling to load listings...")
            result.found_count = await scroll_until_count(
                count=lambda: page.evaluate("(sel) => document.querySelectorAll(sel).length", self.sel["result_nodes"]),
                scroll=lambda: page.evaluate(
                    "(sel) => { const c = document.querySelector(sel); if (c) { c.scrollBy(0, c.scrollHeight); return true; } return false; }",
                    self.sel["scroll_container"],
                ),
                target=target,
                pause=lambda: utils.random_delay(self.config.scroll_delay),
            )

            await capture.drain()
            result.responses = list(capture.responses)
            if not result.responses:
                result.embedded_payload = await self._read_embedded_payload(page)
            result.html = await page.content()
        finally:
            await page.close()

        logger.info(f"Google Maps acquisition: {result.found_count} rendered, {len(result.responses)} payloads captured")
        return result

    async def _read_embedded_payload(self, page: Page) -> Optional[str]:
        try:
            text = await page.evaluate(
                "(sel) => { const el = document.querySelector(sel); return el ? el.innerText : null; }",
                self.sel["embedded_payload"],
            )
        except Exception as e:
            logger.debug(f"Could not read embedded payload: {e}")
            return None
        if not text or len(text) < MIN_EMBEDDED_BYTES:
            logger.info("No API responses captured to parse")
            return None
        return text


# ---------------------------------------------------------------------------
# Yellow Pages
# ---------------------------------------------------------------------------
_COUNT_LISTINGS_JS = """
(selectors) => {
  const all = new Set();
  selectors.forEach((s) => document.querySelectorAll(s).forEach((el) => all.add(el)));
  return all.size;
}
"""

_SCROLL_WINDOW_JS = """
() => { try { window.scrollBy(0, 1000); return true; } catch (e) { return false; } }
"""

_CLICK_MORE_JS = """
([controls, texts]) => {
  const wanted = texts.map((t) => t.toLowerCase());
  let clicked = false;
  document.querySelectorAll(controls).forEach((btn) => {
    const text = (btn.textContent || '').toLowerCase();
    if (!wanted.some((w) => text.includes(w))) return;
    try {
      if (btn.offsetParent !== null) { btn.click(); clicked = true; }
    } catch (e) {}
  });
  return clicked;
}
"""

_NEXT_PAGE_JS = """
(sel) => {
  const next = document.querySelector(sel);
  return next !== null && !next.disabled && next.offsetParent !== null;
}
"""


class YellowPagesAcquirer:
    source = YELLOW_PAGES

    def __init__(self, config: ScraperConfig, extractor: "RecordExtractor", max_failed_pages: int = 3):
        self.config = config
        self.extractor = extractor
        self.sel = config.selectors[YELLOW_PAGES]
        self.max_failed_pages = max_failed_pages

    def search_url(self, query: str, location: str, page_number: int) -> str:
        return self.sel["search_url"].format(query=quote_plus(query), location=quote_plus(location), page=page_number)

    async def acquire(self, session: BrowserSession, query: str, location: str, target: int) -> AcquisitionResult:
        if self.config.yellow_pages_strategy == "scroll":
            return await self._acquire_by_scrolling(session, query, location, target)
        return await self._acquire_by_pages(session, query, location, target)

    async def _open_search_page(self, session: BrowserSession, url: str) -> Page:
        page = await session.new_page(self.config.search_timeout_ms)
        url_logger.info(f"SEARCH: {url}")
        try:
            await utils.polite_goto(page, url, timeout_ms=self.config.search_timeout_ms, logger=logger)
            await utils.random_delay(self.config.settle_delay)
        except Exception:
            await page.close()
            raise
        return page

    async def _acquire_by_pages(self, session: BrowserSession, query: str, location: str, target: int) -> AcquisitionResult:
        result = AcquisitionResult(source=self.source, target=target, listings=[])
        page_number = 1
        has_more = True
        zero_pages = 0

        while len(result.listings) < target and has_more and zero_pages < self.max_failed_pages:
            url = self.search_url(query, location, page_number)
            logger.info(f"Navigating to Yellow Pages (Page {page_number}): {url}")
            page = None
            try:
                page = await self._open_search_page(session, url)
                await check_for_captcha(page, self.sel["captcha"], self.config.captcha_screenshot_path)

                if not await utils.wait_for_any(page, self.sel["results_ready"], timeout=self.config.wait_timeout_ms):
                    logger.warning(f"No results found on page {page_number}")
                    zero_pages += 1
                    result.pages_failed += 1
                else:
                    listings = self.extractor.extract_markup(await page.content(), self.source)
                    if listings:
                        result.listings.extend(listings)
                        logger.info(f"Extracted {len(listings)} items from page {page_number}")
                        zero_pages = 0
                    else:
                        logger.info(f"No results found at page {page_number}")
                        zero_pages += 1
                        result.pages_failed += 1

                next_exists = await page.evaluate(_NEXT_PAGE_JS, self.sel["next_page"])
                has_more = bool(next_exists) and len(result.listings) < target
            except CaptchaDetected:
                raise
            except Exception as e:
                logger.error(f"Error scraping page {page_number}: {e}")
                zero_pages += 1
                result.pages_failed += 1
            finally:
                if page is not None:
                    await page.close()

            if has_more and zero_pages < self.max_failed_pages and len(result.listings) < target:
                page_number += 1
                await utils.random_delay(self.config.page_delay)

        result.found_count = len(result.listings)
        logger.info(f"Yellow Pages acquisition: {result.found_count} listings over {page_number} page(s)")
        return result

    async def _acquire_by_scrolling(self, session: BrowserSession, query: str, location: str, target: int) -> AcquisitionResult:
        result = AcquisitionResult(source=self.source, target=target)
        url = self.search_url(query, location, 1)
        logger.info(f"Navigating to Yellow Pages: {url}")
        page = await self._open_search_page(session, url)
        try:
            await check_for_captcha(page, self.sel["captcha"], self.config.captcha_screenshot_path)
            logger.info("Scrolling Yellow Pages to load all listings...")
            result.found_count = await scroll_and_click_until_count(
                count=lambda: page.evaluate(_COUNT_LISTINGS_JS, self.sel["result_nodes"]),
                scroll=lambda: page.evaluate(_SCROLL_WINDOW_JS),
                click_more=lambda: page.evaluate(_CLICK_MORE_JS, [self.sel["show_more_controls"], self.sel["show_more_texts"]]),
                target=target,
                pause=lambda: asyncio.sleep(1.0),
            )
            result.html = await page.content()
        finally:
            await page.close()
        return result
