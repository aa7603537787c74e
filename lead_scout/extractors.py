# lead_scout/extractors.py
"""
Field extractors.

Every field is read through an ordered list of strategies; the first strategy
producing a non-empty value wins. Markup strategies work on BeautifulSoup
nodes, payload strategies on decoded JSON fragments (lists or dicts).
"""

import logging
import re
from typing import Any, Callable, Iterable, List, Optional, Sequence, Union

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from .models import is_empty
from .utils import clean_phone_number, clean_text

logger = logging.getLogger('LeadScout.Extractors')

Node = Union[BeautifulSoup, Tag]
Strategy = Callable[[], Any]


def first_success(strategies: Iterable[Strategy]) -> Any:
    """Evaluates strategies in priority order and returns the first non-empty result."""
    for strategy in strategies:
        try:
            value = strategy()
        except Exception as e:
            logger.debug(f"Extraction strategy failed: {e}")
            continue
        if not is_empty(value):
            return value
    return None


def _select_one(node: Node, selector: str) -> Optional[Tag]:
    try:
        return node.select_one(selector)
    except (SelectorSyntaxError, ValueError) as e:
        logger.debug(f"Bad selector '{selector}': {e}")
        return None


def select_first(node: Node, selectors: Sequence[str]) -> Optional[Tag]:
    for sel in selectors:
        el = _select_one(node, sel)
        if el is not None:
            return el
    return None


def node_text(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    return clean_text(el.get_text(" ", strip=True))


def first_text(node: Node, selectors: Sequence[str], accept: Optional[Callable[[str], bool]] = None) -> str:
    """Text of the first selector match that is non-empty (and accepted, when a predicate is given)."""
    def _make(sel):
        def _strategy():
            text = node_text(_select_one(node, sel))
            if text and (accept is None or accept(text)):
                return text
            return None
        return _strategy
    return first_success(_make(sel) for sel in selectors) or ""


def first_attr(node: Node, selectors: Sequence[str], attrs: Sequence[str],
               accept: Optional[Callable[[str], bool]] = None) -> str:
    """Value of the first listed attribute found on the first matching element."""
    def _make(sel):
        def _strategy():
            el = _select_one(node, sel)
            if el is None:
                return None
            for attr in attrs:
                value = (el.get(attr) or "").strip()
                if value and (accept is None or accept(value)):
                    return value
            return None
        return _strategy
    return first_success(_make(sel) for sel in selectors) or ""


# ---------------------------------------------------------------------------
# Typed field parsers
# ---------------------------------------------------------------------------
def parse_rating(value: Any) -> Optional[float]:
    """Reads a 0-5 star rating from a number or a text such as '4.5 stars'."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        rating = float(value)
    else:
        m = re.search(r"\d+(?:[.,]\d+)?", str(value))
        if not m:
            return None
        rating = float(m.group(0).replace(",", "."))
    if 0 <= rating <= 5:
        return rating
    return None


def parse_rating_count(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(int(value)) if value >= 0 else None
    digits = re.sub(r"\D", "", str(value))
    return digits or None


def clean_description(text: Optional[str], limit: int = 300) -> Optional[str]:
    """Collapses whitespace, drops unusual symbols and truncates; None when too short to be useful."""
    if not text:
        return None
    cleaned = re.sub(r"[\n\r\t]+", " ", text)
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = re.sub(r"[^\w\s.,!?\-&@#%$*()]", "", cleaned)
    cleaned = cleaned.strip()[:limit].strip()
    return cleaned if len(cleaned) > 10 else None


# ---------------------------------------------------------------------------
# Markup field extractors
# ---------------------------------------------------------------------------
def extract_rating(node: Node, selectors: Sequence[str]) -> float:
    def _make(sel):
        def _strategy():
            el = _select_one(node, sel)
            if el is None:
                return None
            return parse_rating(el.get("aria-label") or node_text(el))
        return _strategy
    rating = first_success(_make(sel) for sel in selectors)
    return rating if rating is not None else 0.0


def extract_rating_count(node: Node, selectors: Sequence[str]) -> str:
    def _make(sel):
        return lambda: parse_rating_count(node_text(_select_one(node, sel)))
    return first_success(_make(sel) for sel in selectors) or "0"


def extract_address(node: Node, selectors: Sequence[str]) -> str:
    return first_text(node, selectors, accept=lambda t: "Directions" not in t)


def extract_category(node: Node, selectors: Sequence[str]) -> str:
    text = first_text(node, selectors)
    return text.split("·")[0].strip() if text else ""


def extract_phone(node: Node, selectors: Sequence[str]) -> str:
    """Phone from attribute data (aria-label, data-phone-number, tel: href) before visible text."""
    def _make(sel):
        def _strategy():
            el = _select_one(node, sel)
            if el is None:
                return None
            href = el.get("href") or ""
            raw = (
                el.get("aria-label")
                or el.get("data-phone-number")
                or (href[4:] if href.startswith("tel:") else "")
                or node_text(el)
            )
            return clean_phone_number(raw.replace("Phone:", ""))
        return _strategy
    return first_success(_make(sel) for sel in selectors) or ""


def extract_website(node: Node, selectors: Sequence[str], exclude: Sequence[str] = ()) -> str:
    def _ok(href: str) -> bool:
        return href.startswith("http") and not any(x in href for x in exclude)
    return first_attr(node, selectors, ["href"], accept=_ok)


def extract_description(node: Node, selectors: Sequence[str], min_len: int = 0, max_len: Optional[int] = None) -> str:
    def _ok(text: str) -> bool:
        return len(text) > min_len and (max_len is None or len(text) < max_len)
    return first_text(node, selectors, accept=_ok)


# ---------------------------------------------------------------------------
# Payload field extractors
# ---------------------------------------------------------------------------
def positional(entry: Any, *path: int) -> Any:
    """Walks nested lists by index; None when any step is missing."""
    current = entry
    for idx in path:
        if isinstance(current, list) and -len(current) <= idx < len(current):
            current = current[idx]
        else:
            return None
    return current


def named(entry: Any, *path: Union[str, int]) -> Any:
    current = entry
    for key in path:
        if isinstance(current, dict) and key in current:
            current = current[key]
        elif isinstance(current, list) and isinstance(key, int) and -len(current) <= key < len(current):
            current = current[key]
        else:
            return None
    return current


def payload_field(entry: Any, positions: List[Sequence[int]], names: List[Sequence[Union[str, int]]]) -> Any:
    """Positional reads first (dense array shape), then named reads (object shape)."""
    strategies = [lambda p=p: positional(entry, *p) for p in positions]
    strategies += [lambda n=n: named(entry, *n) for n in names]
    value = first_success(strategies)
    if isinstance(value, str):
        return value.strip()
    return value
