# lead_scout/extraction.py
import logging
from typing import Any, Dict, List, Optional, Set

from .acquisition import AcquisitionResult
from .models import LeadRecord
from .payloads import records_from_payloads
from . import markup

logger = logging.getLogger('LeadScout.Extraction')


class RecordExtractor:
    """Structured payloads first, rendered markup when they yield nothing."""

    def __init__(self, selectors: Optional[Dict[str, Any]] = None):
        self.selectors = selectors

    def extract_structured(self, result: AcquisitionResult) -> List[LeadRecord]:
        texts = [r.data for r in result.responses]
        records = records_from_payloads(texts, result.source) if texts else []
        if not records and result.embedded_payload:
            logger.info("Parsing payload mirrored into the page")
            records = records_from_payloads([result.embedded_payload], result.source)
        return records

    def extract_markup(self, html: str, source: str) -> List[LeadRecord]:
        return markup.extract_listings(html, source, self.selectors)

    def extract(self, result: AcquisitionResult) -> List[LeadRecord]:
        records = self.extract_structured(result)
        if records:
            logger.info(f"Successfully extracted {len(records)} items from {result.source} payloads")
        else:
            if result.responses or result.embedded_payload:
                logger.info("Payload extraction yielded nothing, falling back to markup parsing...")
            if result.listings is not None:
                records = list(result.listings)
            else:
                records = self.extract_markup(result.html, result.source)

        records = self._finalize(records, result.source)
        if result.target and len(records) > result.target:
            records = records[:result.target]
        logger.info(f"{result.source}: {len(records)} records ready for enrichment")
        return records

    @staticmethod
    def _finalize(records: List[LeadRecord], source: str) -> List[LeadRecord]:
        """Dedupes by first-seen name and stamps source/workflow fields."""
        seen: Set[str] = set()
        final = []
        for record in records:
            if record.name in seen:
                continue
            seen.add(record.name)
            record.source = source
            record.email = record.email or ""
            record.details_needed = not record.has_full_detail
            final.append(record)
        return final
