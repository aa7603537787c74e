# lead_scout/qualification.py
import logging
from typing import Iterable, List, Set, Tuple

from .models import LeadRecord, fingerprint, is_empty

logger = logging.getLogger('LeadScout.Qualification')

INVALID_NAME = "Invalid name"
NO_CONTACT_INFO = "No contact info"
LOW_RATING = "Low rating"


def validate_record(record: LeadRecord) -> List[str]:
    name = (record.name or "").strip()
    if len(name) < 2:
        return [INVALID_NAME]
    return []


def qualify_record(record: LeadRecord) -> List[str]:
    reasons = []
    if is_empty(record.email) and is_empty(record.phone):
        reasons.append(NO_CONTACT_INFO)
    # Only the lower bound is enforced; ratings above 5 pass.
    if record.rating is not None and record.rating < 0:
        reasons.append(LOW_RATING)
    return reasons


def qualify(record: LeadRecord) -> List[str]:
    """All violation reasons for a record; an empty list means it is accepted."""
    return validate_record(record) + qualify_record(record)


def partition(records: Iterable[LeadRecord]) -> Tuple[List[LeadRecord], List[Tuple[LeadRecord, List[str]]]]:
    accepted, rejected = [], []
    for record in records:
        reasons = qualify(record)
        if reasons:
            logger.info(f"Skipping {record.name!r}: {', '.join(reasons)}")
            rejected.append((record, reasons))
        else:
            accepted.append(record)
    return accepted, rejected


def fingerprints_of(rows: Iterable[dict]) -> Set[str]:
    """Fingerprints of stored rows (dicts holding name/phone/address)."""
    return {fingerprint(row.get("name"), row.get("phone"), row.get("address")) for row in rows}


def dedupe_against(records: Iterable[LeadRecord], existing: Set[str]) -> Tuple[List[LeadRecord], int]:
    """Drops records whose fingerprint is already known, including repeats within the batch.

    Returns the fresh records and the number skipped as duplicates.
    """
    seen = set(existing)
    fresh, skipped = [], 0
    for record in records:
        key = record.fingerprint
        if key in seen:
            skipped += 1
            continue
        seen.add(key)
        fresh.append(record)
    return fresh, skipped
