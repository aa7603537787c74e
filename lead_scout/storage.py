# lead_scout/storage.py
"""
Persistence for qualified leads.

Both destinations are keyed by the business fingerprint: rows whose
fingerprint is already stored (or repeats earlier in the same batch) are
skipped, so re-running the same batch writes nothing new.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

import pandas as pd
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .models import LeadRecord
from .qualification import dedupe_against, fingerprints_of

logger = logging.getLogger('LeadScout.Storage')

SHEET_NAME = "BusinessData"

# Persisted column names, in output order
COLUMNS = {
    "name": "name",
    "phone": "phone",
    "rating": "rating",
    "rating_count": "ratingCount",
    "address": "address",
    "category": "category",
    "website": "website",
    "email": "email",
    "description": "description",
    "source": "source",
    "detail_url": "detailUrl",
    "is_relevant": "isRelevant",
    "clean_category": "cleanCategory",
    "summary": "summary",
    "original_category": "originalCategory",
    "original_description": "originalDescription",
}

# Everything except the numeric and boolean columns is read back as text
TEXT_COLUMNS = [c for c in COLUMNS.values() if c not in ("rating", "isRelevant")]


def to_row(record: LeadRecord) -> Dict[str, Any]:
    data = record.to_dict()
    return {column: data[attr] for attr, column in COLUMNS.items()}


@dataclass
class MergeReport:
    destination: str
    written: int = 0
    skipped: int = 0
    failed: int = 0

    def __str__(self):
        text = f"{self.destination}: added {self.written} new records, skipped {self.skipped} duplicates"
        if self.failed:
            text += f", {self.failed} failed"
        return text


class MongoLeadStore:
    """Upserts leads into a MongoDB collection keyed by (name, source)."""

    def __init__(self, uri: str, database: str, collection: str, client: Optional[MongoClient] = None,
                 timeout_ms: int = 5000):
        self.uri = uri
        self.database_name = database
        self.collection_name = collection
        self.timeout_ms = timeout_ms
        self.client = client
        self.collection = None

    def connect(self) -> bool:
        """Connects and pings the server. Returns False (and logs) when it is unreachable."""
        try:
            if self.client is None:
                self.client = MongoClient(self.uri, serverSelectionTimeoutMS=self.timeout_ms)
            self.client.admin.command('ping')
            self.collection = self.client[self.database_name][self.collection_name]
            logger.info(f"✅ Connected to MongoDB database: {self.database_name}")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB connection failed: {e}")
            self.collection = None
            return False

    @property
    def connected(self) -> bool:
        return self.collection is not None

    def existing_fingerprints(self) -> Set[str]:
        projection = {"_id": 0, "name": 1, "phone": 1, "address": 1}
        return fingerprints_of(self.collection.find({}, projection))

    def merge(self, records: Iterable[LeadRecord]) -> MergeReport:
        report = MergeReport(destination=f"MongoDB {self.database_name}.{self.collection_name}")
        if not self.connected:
            raise RuntimeError("MongoLeadStore.merge called before a successful connect()")

        fresh, report.skipped = dedupe_against(records, self.existing_fingerprints())
        for record in fresh:
            try:
                self.collection.replace_one(
                    {"name": record.name, "source": record.source},
                    to_row(record),
                    upsert=True,
                )
                report.written += 1
            except PyMongoError as e:
                logger.error(f"Error saving {record.name} to MongoDB: {e}")
                report.failed += 1
        logger.info(str(report))
        return report

    def close(self):
        if self.client is not None:
            self.client.close()
            self.client = None
            self.collection = None


class ExcelLeadSheet:
    """Append-merge of leads into a single-sheet workbook."""

    def __init__(self, path: str, sheet_name: str = SHEET_NAME):
        self.path = path
        self.sheet_name = sheet_name

    def read_existing(self) -> pd.DataFrame:
        if not os.path.exists(self.path):
            return pd.DataFrame(columns=list(COLUMNS.values()))
        # First sheet, whatever it is called
        df = pd.read_excel(
            self.path, sheet_name=0, engine="openpyxl",
            dtype={c: str for c in TEXT_COLUMNS}, keep_default_na=False,
        )
        logger.info(f"Loaded {len(df)} existing rows from {self.path}")
        return df

    def merge(self, records: Iterable[LeadRecord]) -> MergeReport:
        report = MergeReport(destination=self.path)
        existing = self.read_existing()
        known = fingerprints_of(existing.to_dict("records"))
        fresh, report.skipped = dedupe_against(records, known)

        incoming = pd.DataFrame([to_row(r) for r in fresh], columns=list(COLUMNS.values()))
        combined = incoming if existing.empty else pd.concat([existing, incoming], ignore_index=True)
        self._write(combined)
        report.written = len(fresh)
        logger.info(f"✓ Saved/Appended data to {self.path}")
        logger.info(str(report))
        return report

    def _write(self, df: pd.DataFrame):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        df.to_excel(self.path, sheet_name=self.sheet_name, index=False, engine="openpyxl")

    def rows(self) -> List[Dict[str, Any]]:
        return self.read_existing().to_dict("records")
