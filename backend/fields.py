# Field access and value coercion for loosely-typed record-store rows
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from models import RawEligibility, TriState

TRUTHY_TEXT = {"true", "yes", "1", "y"}
YES_TEXT = {"yes", "yes, i'm 18 or over", "true"}
NO_TEXT = {"no", "false"}
UNSURE_TEXT = {"not sure", "unsure", "maybe"}


def as_text(value: Any) -> str:
    """
    String form of a record value, following the record store's JSON semantics:
    booleans render as true/false, lists join with "," and integral floats drop
    their fractional part. None renders as "".
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(as_text(v) for v in value)
    return str(value)


def _is_blank(value: Any) -> bool:
    return as_text(value).strip() == ""


def get_first_non_empty(record: Any, candidate_names: Sequence[str]) -> Optional[Any]:
    """
    Return the first non-blank value across candidate names, in priority order.
    Each name is tried on the record itself, then under its nested "fields" map.
    """
    if not candidate_names or not isinstance(record, Mapping):
        return None

    nested = record.get("fields")
    if not isinstance(nested, Mapping):
        nested = None

    for name in candidate_names:
        value = record.get(name)
        if not _is_blank(value):
            return value
        if nested is not None:
            value = nested.get(name)
            if not _is_blank(value):
                return value
    return None


def get_text(record: Any, candidate_names: Sequence[str], default: str = "") -> str:
    """Trimmed text of the first non-empty candidate, or default."""
    value = get_first_non_empty(record, candidate_names)
    if value is None:
        return default
    if isinstance(value, (list, tuple)):
        return ", ".join(as_text(v).strip() for v in value if not _is_blank(v))
    return as_text(value).strip()


def is_truthy(value: Any) -> bool:
    """Conservative: only true/yes/1/y (or boolean True) count as truthy."""
    if value is True:
        return True
    if value is False or value is None:
        return False
    return as_text(value).strip().lower() in TRUTHY_TEXT


def yes_no_to_tri_bool(value: Any) -> bool:
    """Clinical yes/no answer (e.g. age verification) as a boolean. Anything not starting with "yes" is False."""
    if isinstance(value, bool):
        return value
    text = as_text(value).strip().lower()
    if text in YES_TEXT or text.startswith("yes"):
        return True
    return False


def answer_to_tri_state(value: Any) -> Optional[TriState]:
    """Exact-match reading of a yes / no / not sure answer. None when unrecognized."""
    text = as_text(value).strip().lower()
    if text in ("yes", "true"):
        return TriState.YES
    if text in UNSURE_TEXT:
        return TriState.UNSURE
    if text in NO_TEXT:
        return TriState.NO
    return None


def normalize_eligibility_raw(value: Any) -> RawEligibility:
    text = as_text(value).strip().lower()
    if text == "pass":
        return RawEligibility.PASS
    if "review" in text:
        return RawEligibility.REVIEW
    if text == "fail" or "unsuitable" in text:
        return RawEligibility.FAIL
    return RawEligibility.UNKNOWN


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 text, date/datetime objects or epoch milliseconds. Naive means UTC."""
    if value is None or isinstance(value, bool):
        return None
    parsed: Optional[datetime] = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = as_text(value).strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
