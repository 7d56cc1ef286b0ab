# List view helpers - tab/search filtering, recency sort, eligibility counts
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from models import CanonicalEligibility, NormalizedRecord

TABS = ("all", "safe", "review", "unsuitable")
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

EMPTY_MESSAGE = "No records match the current filters."


def filter_by_tab(records: Iterable[NormalizedRecord], tab: str) -> List[NormalizedRecord]:
    """Keep records whose eligibility matches the tab. "all" passes everything through."""
    tab = (tab or "all").strip().lower()
    if tab == "all":
        return list(records)
    return [r for r in records if r.eligibility.value.lower() == tab]


def filter_by_search(records: Iterable[NormalizedRecord], query: Optional[str]) -> List[NormalizedRecord]:
    """Case-insensitive substring match on name, email and treatment."""
    q = (query or "").strip().lower()
    if not q:
        return list(records)
    return [
        r for r in records
        if q in r.displayName.lower() or q in r.email.lower() or q in r.treatment.lower()
    ]


def _sort_key(record: NormalizedRecord) -> datetime:
    return record.timestamp or EPOCH


def sort_by_recency(records: Iterable[NormalizedRecord]) -> List[NormalizedRecord]:
    """Newest first. Missing timestamps sort as the epoch; ties keep input order."""
    return sorted(records, key=_sort_key, reverse=True)


def filter_since(records: Iterable[NormalizedRecord], since: Optional[datetime]) -> List[NormalizedRecord]:
    """Keep records at or after `since`. Undated records are dropped once a bound is set."""
    if since is None:
        return list(records)
    return [r for r in records if r.timestamp is not None and r.timestamp >= since]


def take(records: List[NormalizedRecord], limit: Optional[int]) -> List[NormalizedRecord]:
    if limit is None or limit < 0:
        return records
    return records[:limit]


def count_by_eligibility(records: Iterable[NormalizedRecord]) -> Dict[str, int]:
    counts = {e.value.lower(): 0 for e in CanonicalEligibility}
    total = 0
    for r in records:
        counts[r.eligibility.value.lower()] += 1
        total += 1
    counts["total"] = total
    return counts
