# lead_scout/payloads.py
"""
Structured payload path: turns captured listing-endpoint responses into
LeadRecords without touching the rendered markup.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Set

from .config import GOOGLE_MAPS
from .extractors import first_success, named, parse_rating, parse_rating_count, payload_field, positional
from .models import LeadRecord

logger = logging.getLogger('LeadScout.Payloads')

XSSI_PREFIX = ")]}'"
MIN_CAPTURE_BYTES = 100
MIN_EMBEDDED_BYTES = 50


@dataclass
class CapturedResponse:
    url: str
    data: str


def strip_prefix(text: str) -> str:
    if text.startswith(XSSI_PREFIX):
        return text[len(XSSI_PREFIX):]
    return text


def is_html_shaped(text: str) -> bool:
    head = text.strip()[:15].lower()
    if head.startswith("<!doctype") or head.startswith("<html"):
        return True
    return any(marker in text for marker in ("<body", "<script", "<div"))


def decode_payload(text: Optional[str]) -> Any:
    """Prefix-stripped JSON decode; None for HTML-shaped or malformed bodies."""
    if not text:
        return None
    data = strip_prefix(text)
    if is_html_shaped(data):
        logger.debug("Got HTML instead of JSON, skipping response.")
        return None
    try:
        return json.loads(data)
    except (json.JSONDecodeError, ValueError):
        logger.debug("Response is not valid JSON, skipping.")
        return None


def _inner_businesses(parsed: Any) -> Any:
    """The 'd' field wraps a second prefixed JSON document."""
    wrapped = named(parsed, "d")
    if not isinstance(wrapped, str):
        return None
    try:
        inner = json.loads(wrapped[4:])
    except (json.JSONDecodeError, ValueError) as e:
        logger.debug(f"Error parsing inner JSON: {e}")
        return None
    return first_success([
        lambda: positional(inner, 6, 0),
        lambda: positional(inner, 64),
    ])


# Probed in order; the first path yielding a non-empty value is used.
BUSINESS_ARRAY_PATHS: List[Callable[[Any], Any]] = [
    _inner_businesses,
    lambda parsed: positional(parsed, 6, 0),
    lambda parsed: positional(parsed, 0),
    lambda parsed: named(parsed, "results"),
    lambda parsed: named(parsed, "features"),
]


def locate_businesses(parsed: Any) -> Optional[list]:
    found = first_success(lambda probe=probe: probe(parsed) for probe in BUSINESS_ARRAY_PATHS)
    if isinstance(found, list):
        return found
    return None


def _text(value: Any) -> str:
    if isinstance(value, list) and value and isinstance(value[0], str):
        value = value[0]
    if value is None or isinstance(value, (list, dict)):
        return ""
    return str(value).strip()


def record_from_entry(entry: Any, source: str = GOOGLE_MAPS) -> Optional[LeadRecord]:
    """Maps one business entry (dense positional array or named object) to a LeadRecord."""
    name = _text(payload_field(entry, [(14,)], [("name",), ("title",)]))
    if not name:
        return None
    rating = parse_rating(payload_field(entry, [(4, 7)], [("rating",)]))
    rating_count = parse_rating_count(payload_field(entry, [(4, 8)], [("user_ratings_total",)]))
    record = LeadRecord(
        name=name,
        source=source,
        address=_text(payload_field(entry, [(39,), (18,)], [("address",)])),
        category=_text(payload_field(entry, [(13,)], [("category",), ("types", 0)])),
        rating=rating if rating is not None else 0.0,
        rating_count=rating_count or "0",
        phone=_text(payload_field(entry, [(178, 0, 0)], [("phone",)])),
        website=_text(payload_field(entry, [(7, 0)], [("website",)])),
        email="",
        description=_text(payload_field(entry, [(3, 1)], [("description",)])),
        detail_url=_text(payload_field(entry, [(5, 0)], [("url",)])),
    )
    record.details_needed = not record.has_full_detail
    return record


def records_from_payloads(texts: Iterable[str], source: str = GOOGLE_MAPS) -> List[LeadRecord]:
    """Runs every captured body through decode/locate/map, keeping the first record per name."""
    results: List[LeadRecord] = []
    seen: Set[str] = set()
    for text in texts:
        parsed = decode_payload(text)
        if parsed is None:
            continue
        businesses = locate_businesses(parsed)
        if not businesses:
            continue
        for entry in businesses:
            try:
                record = record_from_entry(entry, source)
            except Exception as e:
                logger.debug(f"Error processing business entry: {e}")
                continue
            if record is None or record.name in seen:
                continue
            seen.add(record.name)
            results.append(record)
    logger.info(f"Extracted {len(results)} items from structured payloads")
    return results
