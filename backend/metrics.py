# Dashboard aggregates - computed from raw pre-screen and drop-off rows
# Eligibility always comes from logic.normalize_eligibility so the totals
# agree with what the list views show.
from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from fields import as_text, get_first_non_empty
from logic import TREATMENT_FIELDS, normalize_eligibility, record_timestamp
from models import CanonicalEligibility, RawRecord

FAIL_REASON_FIELDS = [
    "fail_reason_category_calc",
    "fail_reason_category",
    "fail_reason",
    "Fail Reason",
    "Reason",
    "reason",
]
STEP_FIELDS = ["dropoff_step", "Drop-off Step", "Step", "step", "Last Step", "last_step"]


def _pct(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def is_canonical_fail(dropoff: RawRecord) -> bool:
    """True failed pre-screens are drop-off rows marked outcome FAIL and canonical YES."""
    outcome = as_text(get_first_non_empty(dropoff, ["outcome_type_calc"])).strip().upper()
    canonical = as_text(get_first_non_empty(dropoff, ["canonical_record_calc"])).strip().upper()
    return outcome == "FAIL" and canonical == "YES"


def treatments_of(row: RawRecord) -> List[str]:
    """Treatment names on a row, from a list field or comma-separated text."""
    raw = get_first_non_empty(row, TREATMENT_FIELDS)
    if raw is None:
        return []
    items = raw if isinstance(raw, (list, tuple)) else as_text(raw).split(",")
    return [as_text(i).strip() for i in items if as_text(i).strip()]


def eligibility_distribution(prescreens: Iterable[RawRecord]) -> Counter:
    return Counter(normalize_eligibility(r) for r in prescreens)


def get_fail_reasons(canonical_fails: Iterable[RawRecord]) -> List[Dict[str, Any]]:
    counter: Counter = Counter()
    for row in canonical_fails:
        reason = get_first_non_empty(row, FAIL_REASON_FIELDS)
        counter[as_text(reason).strip() if reason is not None else "Unspecified"] += 1
    return [{"reason": reason, "count": count} for reason, count in counter.most_common()]


def get_funnel(dropoffs: Sequence[RawRecord]) -> List[Dict[str, Any]]:
    """Drop-off counts per form step, largest first."""
    counter: Counter = Counter()
    for row in dropoffs:
        step = get_first_non_empty(row, STEP_FIELDS)
        counter[as_text(step).strip() if step is not None else "Unknown"] += 1
    total = len(dropoffs)
    return [
        {"step": step, "count": count, "conversion": _pct(count, total)}
        for step, count in counter.most_common()
    ]


def get_treatment_stats(
    prescreens: Sequence[RawRecord],
    dropoffs: Sequence[RawRecord],
) -> List[Dict[str, Any]]:
    """
    Per-treatment volume, pass rate and drop-off rate.
    count covers pre-screens and drop-offs; passRate is SAFE pre-screens over
    pre-screens for that treatment; dropOffRate is drop-offs over count.
    """
    screened: Counter = Counter()
    passed: Counter = Counter()
    dropped: Counter = Counter()

    for row in prescreens:
        safe = normalize_eligibility(row) == CanonicalEligibility.SAFE
        for name in treatments_of(row):
            screened[name] += 1
            if safe:
                passed[name] += 1
    for row in dropoffs:
        for name in treatments_of(row):
            dropped[name] += 1

    totals = screened + dropped
    return [
        {
            "name": name,
            "count": count,
            "passRate": _pct(passed[name], screened[name]),
            "dropOffRate": _pct(dropped[name], count),
        }
        for name, count in totals.most_common()
    ]


def analytics_totals(prescreens: Sequence[RawRecord], dropoffs: Sequence[RawRecord]) -> Dict[str, int]:
    dist = eligibility_distribution(prescreens)
    return {
        "total": len(prescreens),
        "pass": dist[CanonicalEligibility.SAFE],
        "fail": dist[CanonicalEligibility.UNSUITABLE],
        "review": dist[CanonicalEligibility.REVIEW],
        "dropoffs": len(dropoffs),
    }


def compute_dashboard_metrics(
    prescreens: Sequence[RawRecord],
    dropoffs: Sequence[RawRecord],
) -> Dict[str, Any]:
    total = len(prescreens)
    dist = eligibility_distribution(prescreens)
    canonical_fails = [d for d in dropoffs if is_canonical_fail(d)]
    return {
        "totalPreScreens": total,
        "passRate": _pct(dist[CanonicalEligibility.SAFE], total),
        "dropOffRate": _pct(len(dropoffs), total),
        "hardFails": len(canonical_fails),
        "tempFails": dist[CanonicalEligibility.REVIEW],
        "canonicalFailCount": len(canonical_fails),
        "failReasons": get_fail_reasons(canonical_fails),
        "funnelData": get_funnel(dropoffs),
        "treatmentStats": get_treatment_stats(prescreens, dropoffs),
    }


def daily_totals(
    prescreens: Sequence[RawRecord],
    days: int = 30,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Pre-screens per UTC day over the last `days` days, oldest first. Undated rows are skipped."""
    now = now or datetime.now(timezone.utc)
    start = (now - timedelta(days=days)).date()
    counter: Counter = Counter()
    for row in prescreens:
        ts = record_timestamp(row)
        if ts is None:
            continue
        day = ts.astimezone(timezone.utc).date()
        if start < day <= now.date():
            counter[day.isoformat()] += 1
    return [{"date": day, "total": counter[day]} for day in sorted(counter)]
