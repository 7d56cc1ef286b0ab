# Business logic - eligibility rules and record presentation
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fields import (
    as_text,
    answer_to_tri_state,
    get_first_non_empty,
    get_text,
    is_truthy,
    normalize_eligibility_raw,
    parse_timestamp,
    yes_no_to_tri_bool,
)
from models import (
    PLACEHOLDER,
    BookingStatus,
    CanonicalEligibility,
    NormalizedRecord,
    RawEligibility,
    RawRecord,
    ReviewSignal,
    TriState,
)

# Candidate field names, in priority order. Producers disagree on naming
# (snake_case API names vs. human-readable column names).
REVIEW_COMPLETE_FIELDS = ["Review Complete", "review_complete", "reviewComplete"]
ELIGIBILITY_FIELDS = ["eligibility", "Eligibility"]
REVIEW_FLAG_FIELDS = [
    "manual_review_flag",
    "Flagged for Review",
    "flagged_for_review",
    "manual_review",
    "Manual Review",
    "manual_review_required",
    "review_flag",
    "Review Flag",
    "flagged",
    "Flagged",
]
PREGNANCY_FIELDS = [
    "pregnant_breastfeeding",
    "Pregnant/Breastfeeding",
    "Pregnant Breastfeeding",
    "pregnant_breastfeed",
    "pregnancy",
]
ALLERGY_FIELDS = ["allergies_yesno", "allergies", "Allergies"]
ANTIBIOTIC_FIELDS = [
    "antibiotics_14d",
    "Antibiotics_14d",
    "Antibiotics 14d",
    "Antibiotics (14d)",
    "Antibiotics (14 days)",
]

ID_FIELDS = ["id", "record_id", "Record ID"]
NAME_FIELDS = ["name", "Name", "Patient", "patient_name"]
EMAIL_FIELDS = ["email", "Email"]
PHONE_FIELDS = ["phone", "Phone", "mobile", "Mobile"]
TREATMENT_FIELDS = [
    "treatment_selected",
    "interested_treatments",
    "Interested Treatments",
    "Treatment",
    "treatment",
]
BOOKING_FIELDS = ["booking_status", "Booking Status"]
TIMESTAMP_FIELDS = [
    "webhook_timestamp",
    "Webhook_Timestamp",
    "Webhook Timestamp",
    "created_time",
    "Created time",
    "Created Time",
    "created_at",
    "Created",
    "CreatedAt",
    "submitted_at",
    "Submitted At",
    "SubmittedAt",
    "createdTime",
]

# Review-signal detail fields, most clinically urgent first
SIGNAL_FIELDS = [
    ("Allergy", ["allergies_details", "Allergies Details", "allergy_details", "Allergy Details"]),
    ("Medication", ["medication_details", "Medication Details", "medications", "Medications", "current_medications"]),
    ("Pregnancy", ["pregnancy_details", "Pregnancy Details", "pregnant_breastfeeding_details"]),
    ("Medical condition", ["medical_conditions", "Medical Conditions", "condition_details", "Condition Details"]),
]
REASON_FIELDS = ["review_reason", "Review Reason", "fail_reason", "Fail Reason", "reason", "Reason"]

AGE_FIELDS = ["age_verified", "Age Verified"]

# Drill-down pre-screen answers
ANSWER_ROWS = [
    ("Over 18?", AGE_FIELDS),
    ("Pregnancy/Nursing?", PREGNANCY_FIELDS),
    ("Allergies?", ALLERGY_FIELDS),
    ("Antibiotics (14d)?", ANTIBIOTIC_FIELDS),
]
AI_SUMMARY_FIELDS = ["Pre-screen Summary (AI)", "ai_summary", "AI Summary", "pre_screen_summary"]

CLINICAL_YES = {"yes", "true"}


def _answer(record: RawRecord, candidates: List[str]) -> str:
    return as_text(get_first_non_empty(record, candidates)).strip().lower()


def has_inferred_review_trigger(record: RawRecord) -> bool:
    """True when a clinical answer always warrants a second look."""
    pregnancy = answer_to_tri_state(get_first_non_empty(record, PREGNANCY_FIELDS))
    if pregnancy in (TriState.YES, TriState.UNSURE):
        return True
    if _answer(record, ALLERGY_FIELDS) in CLINICAL_YES:
        return True
    return _answer(record, ANTIBIOTIC_FIELDS) in CLINICAL_YES


def normalize_eligibility(record: RawRecord) -> CanonicalEligibility:
    """
    Derive the canonical eligibility of a pre-screen record.

    Rules run in precedence order:
    1. raw "fail" is a hard stop (UNSUITABLE), nothing overrides it
    2. a completed review disables rules 3 and 4
    3. raw "review" or an explicit review flag gives REVIEW
    4. a pregnancy (yes/not sure), allergy or antibiotics answer gives REVIEW
    5. raw "pass" gives SAFE
    6. otherwise UNKNOWN
    """
    raw = normalize_eligibility_raw(get_first_non_empty(record, ELIGIBILITY_FIELDS))
    if raw == RawEligibility.FAIL:
        return CanonicalEligibility.UNSUITABLE

    review_complete = is_truthy(get_first_non_empty(record, REVIEW_COMPLETE_FIELDS))
    if not review_complete:
        if raw == RawEligibility.REVIEW or is_truthy(get_first_non_empty(record, REVIEW_FLAG_FIELDS)):
            return CanonicalEligibility.REVIEW
        if has_inferred_review_trigger(record):
            return CanonicalEligibility.REVIEW

    if raw == RawEligibility.PASS:
        return CanonicalEligibility.SAFE
    return CanonicalEligibility.UNKNOWN


def eligibility_label(record: RawRecord, eligibility: Optional[CanonicalEligibility] = None) -> str:
    """Badge text. UNKNOWN shows the raw value uppercased, or a placeholder."""
    if eligibility is None:
        eligibility = normalize_eligibility(record)
    if eligibility != CanonicalEligibility.UNKNOWN:
        return eligibility.value
    raw_text = get_text(record, ELIGIBILITY_FIELDS)
    return raw_text.upper() if raw_text else PLACEHOLDER


def build_review_signals(record: RawRecord) -> List[ReviewSignal]:
    signals = []
    for label, candidates in SIGNAL_FIELDS:
        value = get_text(record, candidates)
        if value:
            signals.append(ReviewSignal(label=label, value=value))
    if signals:
        return signals

    reason = get_text(record, REASON_FIELDS)
    if reason:
        return [ReviewSignal(label="Note", value=reason)]
    return []


def normalize_booking_status(value: Any) -> BookingStatus:
    if value is True or as_text(value).strip().lower() == "booked":
        return BookingStatus.BOOKED
    return BookingStatus.PENDING


def record_timestamp(record: RawRecord) -> Optional[datetime]:
    """Parsed value of the first non-empty created/submitted field, if it parses."""
    return parse_timestamp(get_first_non_empty(record, TIMESTAMP_FIELDS))


def normalize_for_display(record: RawRecord) -> NormalizedRecord:
    eligibility = normalize_eligibility(record)
    return NormalizedRecord(
        id=get_text(record, ID_FIELDS),
        displayName=get_text(record, NAME_FIELDS, default="Unnamed"),
        email=get_text(record, EMAIL_FIELDS),
        phone=get_text(record, PHONE_FIELDS),
        treatment=get_text(record, TREATMENT_FIELDS, default=PLACEHOLDER),
        eligibility=eligibility,
        eligibilityLabel=eligibility_label(record, eligibility),
        bookingStatus=normalize_booking_status(get_first_non_empty(record, BOOKING_FIELDS)),
        timestamp=record_timestamp(record),
        raw=record,
    )


def build_answer_rows(record: RawRecord) -> List[Dict[str, str]]:
    """Pre-screen answers for the drill-down panel, skipping unanswered questions."""
    rows = []
    for label, candidates in ANSWER_ROWS:
        value = get_first_non_empty(record, candidates)
        if value is not None:
            rows.append({"label": label, "value": as_text(value).strip()})
    return rows


def ai_summary(record: RawRecord) -> Optional[str]:
    return get_text(record, AI_SUMMARY_FIELDS) or None


def build_record_detail(record: RawRecord) -> Dict:
    """Everything the drill-down panel shows for one record."""
    normalized = normalize_for_display(record)
    signals = build_review_signals(record) if normalized.eligibility == CanonicalEligibility.REVIEW else []
    return {
        "record": normalized.to_dict(),
        "reviewSignals": [{"label": s.label, "value": s.value} for s in signals],
        "ageVerified": yes_no_to_tri_bool(get_first_non_empty(record, AGE_FIELDS)),
        "answers": build_answer_rows(record),
        "aiSummary": ai_summary(record),
    }
