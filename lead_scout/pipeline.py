# lead_scout/pipeline.py
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .acquisition import (
    BrowserSession, BrowserLaunchError, CaptchaDetected,
    GoogleMapsAcquirer, YellowPagesAcquirer,
)
from .classifier import Classifier
from .config import ScraperConfig, GOOGLE_MAPS, YELLOW_PAGES
from .enrichment import DetailEnricher, EmailResolver
from .extraction import RecordExtractor
from .models import LeadRecord
from .qualification import partition
from .storage import ExcelLeadSheet, MergeReport, MongoLeadStore

logger = logging.getLogger('LeadScout.Pipeline')


@dataclass
class RunSummary:
    collected: int = 0
    per_source: Dict[str, int] = field(default_factory=dict)
    blocked_sources: List[str] = field(default_factory=list)
    qualified: int = 0
    rejected: int = 0
    excel: Optional[MergeReport] = None
    mongo: Optional[MergeReport] = None

    def lines(self) -> List[str]:
        out = [f"Leads collected: {self.collected}"]
        for source, n in self.per_source.items():
            out.append(f"  {source}: {n}")
        if self.blocked_sources:
            out.append(f"Blocked by CAPTCHA: {', '.join(self.blocked_sources)}")
        out.append(f"{self.qualified} qualified leads found out of {self.collected}")
        if self.excel:
            out.append(f"Excel appended: {self.excel.written}, skipped as duplicates: {self.excel.skipped}")
        if self.mongo:
            out.append(f"MongoDB upserted: {self.mongo.written}, skipped as duplicates: {self.mongo.skipped}")
        return out


class LeadPipeline:
    """Acquire → extract → enrich → classify → qualify → persist, one stage after another."""

    def __init__(self, config: ScraperConfig,
                 extractor: Optional[RecordExtractor] = None,
                 classifier: Optional[Classifier] = None,
                 mongo_store: Optional[MongoLeadStore] = None,
                 excel_sheet: Optional[ExcelLeadSheet] = None):
        self.config = config
        self.extractor = extractor or RecordExtractor(config.selectors)
        self.classifier = classifier or Classifier(config)
        self.mongo_store = mongo_store or MongoLeadStore(
            config.mongodb_uri, config.mongodb_database, config.mongodb_collection,
        )
        self.excel_sheet = excel_sheet or ExcelLeadSheet(config.excel_path)
        self.summary = RunSummary()

    def _acquirer_for(self, source: str):
        if source == GOOGLE_MAPS:
            return GoogleMapsAcquirer(self.config)
        if source == YELLOW_PAGES:
            return YellowPagesAcquirer(self.config, self.extractor)
        raise ValueError(f"Unknown source: {source}")

    async def acquire(self) -> List[LeadRecord]:
        """Runs every requested source in one search session; a blocked source does not stop the others."""
        records: List[LeadRecord] = []
        async with BrowserSession(self.config, "search") as session:
            for source in self.config.sources:
                logger.info(f"🔎 Scraping {source} for '{self.config.query}' in '{self.config.location}'")
                try:
                    result = await self._acquirer_for(source).acquire(
                        session, self.config.query, self.config.location, self.config.max_results,
                    )
                except CaptchaDetected as e:
                    logger.error(f"{source} aborted: {e}")
                    self.summary.blocked_sources.append(source)
                    continue
                except Exception as e:
                    logger.error(f"Error scraping {source}: {e}")
                    continue

                extracted = self.extractor.extract(result)
                self.summary.per_source[source] = len(extracted)
                records.extend(extracted)

        if self.summary.blocked_sources and len(self.summary.blocked_sources) == len(self.config.sources):
            logger.error("Every requested source was blocked by a CAPTCHA.")
        self.summary.collected = len(records)
        return records

    async def enrich_details(self, records: List[LeadRecord]) -> List[LeadRecord]:
        if not any(r.details_needed and r.detail_url for r in records):
            return records
        async with BrowserSession(self.config, "detail") as session:
            await DetailEnricher(self.config, session).enrich_all(records)
        return records

    async def resolve_emails(self, records: List[LeadRecord]) -> List[LeadRecord]:
        if not self.config.extract_emails or not any(r.website and not r.email for r in records):
            return records
        async with BrowserSession(self.config, "email") as session:
            await EmailResolver(self.config, session).resolve_all(records)
        return records

    def persist(self, records: List[LeadRecord]) -> List[LeadRecord]:
        """Qualifies the batch and merges the accepted records into MongoDB (if reachable) and Excel."""
        accepted, rejected = partition(records)
        self.summary.qualified = len(accepted)
        self.summary.rejected = len(rejected)
        logger.info(f"{len(accepted)} qualified leads found out of {len(records)}")

        if self.mongo_store.connect():
            try:
                self.summary.mongo = self.mongo_store.merge(accepted)
            except Exception as e:
                logger.error(f"Error saving to MongoDB: {e}")
            finally:
                self.mongo_store.close()
        else:
            logger.warning("Skipping MongoDB; saving to Excel only.")

        try:
            self.summary.excel = self.excel_sheet.merge(accepted)
        except Exception as e:
            logger.error(f"Error saving to xlsx: {e}")
        return accepted

    async def run(self) -> RunSummary:
        """Full run. Only a browser that cannot be launched ends it early."""
        try:
            records = await self.acquire()
            if not records:
                logger.warning("No leads found.")
                return self.summary
            logger.info(f"📊 Extracting details for {len(records)} leads...")
            await self.enrich_details(records)
            if self.config.extract_emails:
                logger.info("✉️ Extracting emails from business websites...")
                await self.resolve_emails(records)
            logger.info("🧠 Classifying leads...")
            await self.classifier.classify_all(records)
            self.persist(records)
        except BrowserLaunchError:
            logger.critical("Browser could not be launched; stopping run.")
            raise
        return self.summary
