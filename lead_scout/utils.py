# -- coding: utf-8 --
"""
utils.py

Helpers for Playwright sessions: anti-detection profile, polite navigation
with retries, randomized delays and small text cleaners.
"""

import asyncio
import random
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    TimeoutError as PwTimeoutError,
)
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_random

__all__ = [
    "DEFAULT_USER_AGENT", "SessionProfile",
    "new_context_with_profile", "ANTI_DETECTION_SCRIPT", "random_delay", "polite_goto",
    "wait_for_any", "handle_consent", "clean_phone_number", "clean_text",
]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

EXTRA_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
}

# Overrides the navigator signals headless Chromium leaks
ANTI_DETECTION_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.chrome = { runtime: {} };
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
"""


class _NullLogger:
    def debug(self, *args, **kwargs): pass
    def info(self, *args, **kwargs): pass
    def warning(self, *args, **kwargs): pass
    def error(self, *args, **kwargs): pass


def _get_logger(logger: Optional[Any]) -> Any:
    return logger if logger is not None else _NullLogger()


async def random_delay(window: Tuple[float, float]) -> None:
    """Sleeps for a random number of seconds inside the (min, max) window."""
    low, high = window
    await asyncio.sleep(random.uniform(low, high))


@dataclass
class SessionProfile:
    user_agent: str = DEFAULT_USER_AGENT
    viewport: Dict[str, int] = field(default_factory=lambda: {'width': 1920, 'height': 1080})
    headers: Dict[str, str] = field(default_factory=lambda: dict(EXTRA_HEADERS))
    locale: str = "en-US"


async def new_context_with_profile(browser: Browser, profile: Optional[SessionProfile] = None, **kwargs) -> BrowserContext:
    p = profile or SessionProfile()
    context_args = {
        'user_agent': p.user_agent,
        'viewport': p.viewport,
        'locale': p.locale,
        'extra_http_headers': p.headers,
    }
    context_args.update(kwargs)  # Allow overriding, e.g., with proxy
    ctx = await browser.new_context(**context_args)
    await ctx.add_init_script(ANTI_DETECTION_SCRIPT)
    return ctx


async def polite_goto(page: Page, url: str, timeout_ms: int = 60000, logger: Optional[Any] = None,
                      attempts: int = 1, delay: Tuple[float, float] = (2.0, 4.0)) -> None:
    """Navigates with up to `attempts` tries, sleeping a random `delay` between them."""
    log = _get_logger(logger)

    def _log_retry(state: RetryCallState) -> None:
        log.debug(f"Attempt {state.attempt_number}/{attempts} failed for {url}: {state.outcome.exception()}")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_random(*delay),
        before_sleep=_log_retry,
        reraise=True,
    )
    try:
        async for attempt in retrying:
            with attempt:
                await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
    except Exception as e:
        log.error(f"Navigation failed for {url}: {e}")
        raise


async def wait_for_any(page: Page, selector: Union[str, Sequence[str]], timeout: int = 15000) -> bool:
    union_selector = selector if isinstance(selector, str) else ", ".join(selector)
    if not union_selector:
        return False
    try:
        await page.locator(union_selector).first.wait_for(state='attached', timeout=timeout)
        return True
    except PwTimeoutError:
        return False


async def handle_consent(page: Page, logger: Optional[Any] = None) -> bool:
    """Dismisses a cookie/consent interstitial if one is shown."""
    log = _get_logger(logger)
    selectors = [
        'button:has-text("Accept all")',
        'button:has-text("Accept All")',
        '#onetrust-accept-btn-handler',
    ]
    for sel in selectors:
        try:
            btn = page.locator(sel).first
            if await btn.is_visible(timeout=1000):
                await btn.click()
                log.info(f"[Consent] Handled with selector '{sel}'")
                return True
        except Exception:
            continue
    return False


_PHONE_BOILERPLATE = re.compile(r"send to phone", re.IGNORECASE)


def clean_phone_number(phone: Optional[str]) -> str:
    """Drops boilerplate phrases and every character except digits and a leading '+'."""
    if not phone:
        return ""
    text = _PHONE_BOILERPLATE.sub("", phone)
    digits = re.sub(r"[^\d]", "", text)
    if not digits:
        return ""
    first = re.search(r"[+\d]", text)
    return ("+" + digits) if first.group(0) == "+" else digits


def clean_text(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()
