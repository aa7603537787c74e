# lead_scout/models.py
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def merge_field(existing: Any, candidate: Any) -> Any:
    """First writer wins: keep a populated value, otherwise take the candidate."""
    if not is_empty(existing):
        return existing
    if is_empty(candidate):
        return existing
    return candidate


def fingerprint(name: Optional[str], phone: Optional[str], address: Optional[str]) -> str:
    """Business identity key, insensitive to case and whitespace."""
    raw = f"{name or ''}-{phone or ''}-{address or ''}"
    return re.sub(r"\s+", "", raw.lower())


@dataclass
class LeadRecord:
    """A business discovered on one of the listing surfaces."""
    # Identity
    name: str
    source: str
    phone: str = ""
    address: str = ""
    category: str = ""
    website: str = ""
    email: Optional[str] = ""
    description: str = ""
    rating: float = 0.0
    rating_count: str = "0"

    # Workflow
    detail_url: str = ""
    details_needed: bool = True

    # Classification
    is_relevant: Optional[bool] = None
    clean_category: Optional[str] = None
    summary: Optional[str] = None
    original_category: Optional[str] = None
    original_description: Optional[str] = None

    def fill(self, field_name: str, value: Any) -> bool:
        """Sets a field unless it already holds data. Returns True if the value was taken."""
        current = getattr(self, field_name)
        merged = merge_field(current, value)
        if merged is current:
            return False
        setattr(self, field_name, merged)
        return True

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.name, self.phone, self.address)

    @property
    def has_full_detail(self) -> bool:
        return all(not is_empty(getattr(self, f)) for f in ("phone", "website", "address", "description"))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
