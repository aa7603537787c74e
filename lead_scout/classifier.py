# lead_scout/classifier.py
import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

import requests

from .config import ScraperConfig
from .models import LeadRecord
from . import utils

logger = logging.getLogger('LeadScout.Classifier')

SYSTEM_PROMPT = (
    "You are a lead classification assistant. Always return response in strict JSON "
    "with keys: isRelevant, cleanCategory, summary."
)

PROMPT_TEMPLATE = """
Classify this lead in clean format:

Name: {name}
Category: {category}
Description: {description}
Website: {website}
Email: {email}

Return ONLY valid JSON in this format:
{{ "isRelevant": true/false, "cleanCategory": "string", "summary": "string" }}
"""

TRANSPORT_FAILURE = {"isRelevant": False, "cleanCategory": "", "summary": ""}
EMPTY_RESPONSE = {"isRelevant": False, "cleanCategory": "", "summary": "No text generated"}


def build_prompt(record: LeadRecord) -> str:
    return PROMPT_TEMPLATE.format(
        name=record.name,
        category=record.category,
        description=record.description,
        website=record.website or "N/A",
        email=record.email or "N/A",
    )


def _balanced_object(text: str) -> Optional[str]:
    """The first '{...}' block whose braces balance, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return None


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parses the first JSON object embedded in free text; None when there is none."""
    if not text:
        return None
    candidates = [_balanced_object(text)]
    greedy = re.search(r"\{[\s\S]*\}", text)
    candidates.append(greedy.group(0) if greedy else None)
    for candidate in candidates:
        if not candidate:
            continue
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def default_classification(record: LeadRecord) -> Dict[str, Any]:
    return {
        "isRelevant": False,
        "cleanCategory": record.category or "",
        "summary": record.description or "",
    }


def normalize_classification(raw: Optional[Dict[str, Any]], record: LeadRecord) -> Dict[str, Any]:
    """Exactly the three expected keys; anything missing takes the record-based default."""
    default = default_classification(record)
    if not isinstance(raw, dict):
        return default
    return {
        "isRelevant": _as_bool(raw["isRelevant"]) if "isRelevant" in raw else default["isRelevant"],
        "cleanCategory": str(raw["cleanCategory"]) if raw.get("cleanCategory") is not None else default["cleanCategory"],
        "summary": str(raw["summary"]) if raw.get("summary") is not None else default["summary"],
    }


class ClassificationClient:
    """Chat-completions client; answers with a classification dict, or None for unparseable JSON."""

    def __init__(self, config: ScraperConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {config.openai_api_key}",
            "Content-Type": "application/json",
        })

    def _post(self, prompt: str) -> Dict[str, Any]:
        payload = {
            "model": self.config.openai_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        resp = self.session.post(self.config.openai_api_url, json=payload, timeout=self.config.classification_timeout_s)
        resp.raise_for_status()
        return resp.json()

    async def call(self, prompt: str) -> Optional[Dict[str, Any]]:
        try:
            data = await asyncio.to_thread(self._post, prompt)
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Classification request failed: {e}")
            return dict(TRANSPORT_FAILURE)

        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            text = ""
        if not text:
            return dict(EMPTY_RESPONSE)

        parsed = extract_json_object(text)
        if parsed is not None:
            return parsed
        if "{" in text:
            # Looked like JSON but did not parse; the caller substitutes its default
            logger.warning("Classification response held an unparseable JSON object")
            return None
        return {"isRelevant": True, "cleanCategory": "Uncategorized", "summary": text.strip()[:500]}


class Classifier:
    """Attaches isRelevant/cleanCategory/summary to records; never raises."""

    def __init__(self, config: ScraperConfig, client: Optional[ClassificationClient] = None):
        self.config = config
        self.client = client
        if self.client is None and config.classification_enabled:
            self.client = ClassificationClient(config)
        if self.client is None:
            logger.warning("OPENAI_API_KEY missing; every lead gets the default classification.")

    async def classify(self, record: LeadRecord) -> Dict[str, Any]:
        if self.client is None:
            return default_classification(record)
        try:
            raw = await self.client.call(build_prompt(record))
        except Exception as e:
            logger.error(f"Classification failed for {record.name}: {e}")
            return default_classification(record)
        return normalize_classification(raw, record)

    @staticmethod
    def apply(record: LeadRecord, result: Dict[str, Any]) -> LeadRecord:
        record.original_category = record.category
        record.original_description = record.description
        record.is_relevant = result["isRelevant"]
        record.clean_category = result["cleanCategory"]
        record.summary = result["summary"]
        return record

    async def classify_all(self, records: List[LeadRecord]) -> List[LeadRecord]:
        for i, record in enumerate(records, start=1):
            logger.info(f"Enriching {record.name} ({i}/{len(records)})")
            self.apply(record, await self.classify(record))
            if self.client is not None and i < len(records):
                await utils.random_delay(self.config.classification_delay)
        return records
