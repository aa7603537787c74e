# lead_scout/markup.py
"""
Markup path: listing, detail page and contact extraction from rendered HTML.

Used when no structured payload produced records, for sources that only
render markup, and for every detail/website page during enrichment.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from bs4 import BeautifulSoup, Tag
from email_validator import validate_email, EmailNotValidError

from . import extractors as fx
from .config import GOOGLE_MAPS, YELLOW_PAGES
from .models import LeadRecord
from .site_selectors import DEFAULT_SELECTORS

logger = logging.getLogger('LeadScout.Markup')

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9._-]+\.[a-zA-Z0-9._-]+")
PLACEHOLDER_EMAIL_PATTERNS = [
    "example.com",
    "yourdomain",
    "domain.com",
    "@example",
    "@test",
    "w3.org",
    ".png",
    ".jpg",
    ".svg",
    ".gif",
]


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def find_listings(soup: BeautifulSoup, selectors: Sequence[str]) -> List[Tag]:
    """Listing nodes for the first selector that matches anything; families are never mixed."""
    for sel in selectors:
        try:
            nodes = soup.select(sel)
        except Exception as e:
            logger.debug(f"Bad listing selector '{sel}': {e}")
            continue
        if nodes:
            logger.debug(f"Listing selector '{sel}' matched {len(nodes)} nodes")
            return nodes
    return []


def _dedupe_by_name(records: Iterable[LeadRecord]) -> List[LeadRecord]:
    seen: Set[str] = set()
    unique = []
    for r in records:
        if r.name in seen:
            continue
        seen.add(r.name)
        unique.append(r)
    return unique


# ---------------------------------------------------------------------------
# Google Maps
# ---------------------------------------------------------------------------
def _maps_name(el: Tag, selectors: Sequence[str]) -> str:
    def _make(sel):
        def _strategy():
            node = el.select_one(sel)
            if node is None:
                return None
            return fx.node_text(node) or (node.get("aria-label") or "").strip()
        return _strategy
    return fx.first_success(_make(sel) for sel in selectors) or ""


def _maps_listing(el: Tag, sel: Dict[str, Any]) -> Optional[LeadRecord]:
    name = _maps_name(el, sel["name"])
    if len(name) < 2:
        return None
    record = LeadRecord(
        name=name,
        source=GOOGLE_MAPS,
        category=fx.extract_category(el, sel["category"]),
        address=fx.extract_address(el, sel["address"]),
        rating=fx.extract_rating(el, sel["rating"]),
        rating_count=fx.extract_rating_count(el, sel["rating_count"]),
        phone=fx.extract_phone(el, sel["phone"]),
        website=fx.extract_website(el, sel["website"]),
        email="",
        detail_url=fx.first_attr(el, sel["detail_link"], ["href"]),
    )
    record.details_needed = not record.has_full_detail
    return record


def extract_google_maps_listings(html: str, selectors: Optional[Dict[str, Any]] = None) -> List[LeadRecord]:
    sel = (selectors or DEFAULT_SELECTORS)["google_maps"]["listing"]
    soup = _soup(html)
    listings = find_listings(soup, sel["listings"])
    logger.debug(f"Found {len(listings)} potential listings in markup")
    records = []
    for el in listings:
        try:
            record = _maps_listing(el, sel)
        except Exception as e:
            logger.warning(f"Error parsing Google Maps listing: {e}")
            continue
        if record:
            records.append(record)
    records = _dedupe_by_name(records)
    logger.info(f"Extracted {len(records)} items from Google Maps markup")
    return records


def parse_google_maps_detail(html: str, selectors: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    """Phone, website, address and description from a place detail page."""
    sel = (selectors or DEFAULT_SELECTORS)["google_maps"]["detail"]
    soup = _soup(html)

    def _phone_from_data_id():
        btn = soup.select_one(sel["phone_button"])
        if btn is None:
            return None
        return (btn.get("data-item-id") or "").replace("phone:tel:", "")

    def _phone_from_button_text():
        btn = soup.select_one(sel["phone_button"])
        if btn is None:
            return None
        return fx.node_text(btn.select_one(sel["phone_text"])) or fx.node_text(btn)

    def _phone_from_aria():
        btn = soup.select_one(sel["phone_aria"])
        if btn is None:
            return None
        return (btn.get("aria-label") or "").replace("Phone:", "").strip()

    phone = fx.first_success([_phone_from_data_id, _phone_from_button_text, _phone_from_aria]) or ""

    return {
        "phone": fx.clean_phone_number(phone),
        "website": fx.first_attr(soup, sel["website"], ["href"]),
        "address": fx.node_text(soup.select_one(sel["address"])),
        "description": extract_maps_description(soup, sel) or "",
    }


def extract_maps_description(soup: BeautifulSoup, sel: Dict[str, Any]) -> Optional[str]:
    def _from_meta():
        content = fx.first_attr(soup, sel["description_meta"], ["content"], accept=lambda c: len(c) > 20)
        return content or None

    def _from_sections():
        return fx.extract_description(soup, sel["description"], min_len=30, max_len=500) or None

    def _from_headers():
        for header in soup.select(sel["description_headers"]):
            text = fx.node_text(header).lower()
            if "about" in text or "description" in text or "overview" in text:
                sibling = header.find_next_sibling()
                sibling_text = fx.node_text(sibling)
                if len(sibling_text) > 20:
                    return sibling_text
        return None

    raw = fx.first_success([_from_meta, _from_sections, _from_headers])
    return fx.clean_description(raw)


# ---------------------------------------------------------------------------
# Yellow Pages
# ---------------------------------------------------------------------------
def _clean_directory_website(href: str) -> str:
    return href.split("?")[0]


def _yp_listing(el: Tag, sel: Dict[str, Any]) -> Optional[LeadRecord]:
    name = fx.first_text(el, sel["name"])
    if len(name) < 2:
        return None

    rating = 0.0
    rating_count = "0"
    rating_el = fx.select_first(el, sel["rating"])
    if rating_el is not None:
        rating = fx.parse_rating(rating_el.get("aria-label") or fx.node_text(rating_el)) or 0.0
        rating_count = fx.extract_rating_count(el, sel["rating_count"])

    website = fx.extract_website(el, sel["website"], exclude=["yellowpages.com", "track"])
    description = fx.first_text(el, sel["description"])[:200]

    record = LeadRecord(
        name=name,
        source=YELLOW_PAGES,
        phone=fx.clean_phone_number(fx.first_text(el, sel["phone"])),
        address=fx.first_text(el, sel["address"]),
        category=fx.first_text(el, sel["category"]),
        rating=rating,
        rating_count=rating_count,
        website=_clean_directory_website(website) if website else "",
        email="",
        description=description,
        detail_url=fx.first_attr(el, sel["detail_link"], ["href"]),
    )
    record.details_needed = not record.has_full_detail
    return record


def extract_yellow_pages_listings(html: str, selectors: Optional[Dict[str, Any]] = None) -> List[LeadRecord]:
    sel = (selectors or DEFAULT_SELECTORS)["yellow_pages"]["listing"]
    soup = _soup(html)
    records = []
    for el in find_listings(soup, sel["listings"]):
        try:
            record = _yp_listing(el, sel)
        except Exception as e:
            logger.warning(f"Error processing Yellow Pages listing: {e}")
            continue
        if record:
            records.append(record)
    records = _dedupe_by_name(records)
    logger.info(f"Extracted {len(records)} items from Yellow Pages markup")
    return records


def parse_yellow_pages_detail(html: str, selectors: Optional[Dict[str, Any]] = None) -> Dict[str, Optional[str]]:
    sel = (selectors or DEFAULT_SELECTORS)["yellow_pages"]["detail"]
    soup = _soup(html)
    description = fx.extract_description(soup, sel["description"], min_len=20)
    return {
        "email": first_email_from_html(html, mailto_first=True),
        "description": description[:300] if description else "",
    }


def extract_listings(html: str, source: str, selectors: Optional[Dict[str, Any]] = None) -> List[LeadRecord]:
    if source == GOOGLE_MAPS:
        return extract_google_maps_listings(html, selectors)
    if source == YELLOW_PAGES:
        return extract_yellow_pages_listings(html, selectors)
    raise ValueError(f"Unknown source: {source}")


# ---------------------------------------------------------------------------
# Emails
# ---------------------------------------------------------------------------
def is_placeholder_email(email: str) -> bool:
    low = email.lower()
    return any(pattern in low for pattern in PLACEHOLDER_EMAIL_PATTERNS)


def _is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


def extract_emails(body_text: str, mailto_hrefs: Iterable[str] = (), mailto_first: bool = False) -> List[str]:
    """Text matches and mailto: targets with case-insensitive dedupe; placeholders dropped."""
    results: List[str] = []
    seen: Set[str] = set()

    from_text = [m.group(0).rstrip(".") for m in EMAIL_PATTERN.finditer(body_text or "")]
    from_text = [c.lower() for c in from_text if len(c) > 5]
    from_links = []
    for href in mailto_hrefs:
        target = href[len("mailto:"):] if href.lower().startswith("mailto:") else href
        from_links.append(target.split("?")[0].strip())
    candidates = from_links + from_text if mailto_first else from_text + from_links

    for email in candidates:
        key = email.lower()
        if not email or key in seen:
            continue
        seen.add(key)
        if is_placeholder_email(email) or not _is_valid_email(email):
            continue
        results.append(email)
    return results


def first_email_from_html(html: str, mailto_first: bool = False) -> Optional[str]:
    soup = _soup(html)
    body = soup.body or soup
    mailtos = [a.get("href", "") for a in soup.select('a[href^="mailto:"]')]
    emails = extract_emails(body.get_text(" ", strip=True), mailtos, mailto_first=mailto_first)
    return emails[0] if emails else None
