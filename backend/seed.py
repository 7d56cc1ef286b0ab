# Seed data - deterministic mock clinics, pre-screens, drop-offs and AI questions
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from models import ClinicProfile

logger = logging.getLogger(__name__)

TREATMENT_OPTIONS = ["Lip Fillers", "Anti-Wrinkle Injections", "Dermal Fillers", "Skin Boosters", "Microneedling"]
FAIL_REASONS = [
    "Antibiotics in last 14 days",
    "Pregnancy / breastfeeding",
    "Did not accept clinic policies",
    "Client self-assessed not suitable",
    "Underage",
    "Active infection",
]
DROPOFF_STEPS = ["Contact details", "Medical history", "Policies", "Treatment selection"]
ALLERGY_DETAILS = ["Lidocaine", "Hyaluronidase", "Latex", "Penicillin"]

MOCK_CLINICS = [
    ClinicProfile(
        id="rec_uanco_pilot_alpha_89s7d",
        name="Lerae Medical Aesthetics",
        enabled_features=["overview", "prescreens", "ai-insight", "compliance", "feedback"],
    ),
    ClinicProfile(
        id="rec_uanco_pilot_beta_x9d8f",
        name="Skin & Glow Co",
        enabled_features=["overview", "prescreens", "feedback"],
    ),
]


def _random_time(rng: random.Random, now: datetime, days_ago: int) -> str:
    moment = now - timedelta(days=rng.randrange(days_ago), minutes=rng.randrange(24 * 60))
    return moment.isoformat().replace("+00:00", "Z")


def _prescreen(rng: random.Random, clinic_id: str, i: int, now: datetime) -> Dict:
    roll = rng.random()
    if roll < 0.6:
        eligibility = "Pass"
    elif roll < 0.8:
        eligibility = "Review"
    else:
        eligibility = "Fail"

    allergies = "Yes" if rng.random() < 0.1 else "No"
    treatment = rng.choice(TREATMENT_OPTIONS)
    record = {
        "id": f"rec-{clinic_id}-{i}",
        "clinic_id": clinic_id,
        "Clinic": [clinic_id],
        "name": f"Client {i}",
        "email": f"client{i}@example.com",
        "phone": f"+447000000{i:03d}",
        "eligibility": eligibility,
        "interested_treatments": [treatment],
        "treatment_selected": treatment,
        "manual_review_flag": rng.random() > 0.9,
        "reason": rng.choice(FAIL_REASONS) if eligibility != "Pass" else None,
        "pre_screen_summary": "AI analysis complete.",
        "created_time": _random_time(rng, now, 30),
        "booking_status": "Booked" if eligibility == "Pass" and rng.random() > 0.5 else "Pending",
        "age_verified": "Yes, I'm 18 or over",
        "pregnant_breastfeeding": rng.choice(["No", "No", "No", "Yes", "Not sure"]),
        "allergies_yesno": allergies,
        "antibiotics_14d": "Yes" if rng.random() < 0.1 else "No",
        "policies_ack": True,
    }
    if allergies == "Yes":
        record["allergies_details"] = rng.choice(ALLERGY_DETAILS)
    return record


def _dropoff(rng: random.Random, clinic_id: str, i: int, now: datetime) -> Dict:
    failed = rng.random() < 0.4
    return {
        "id": f"drop-{clinic_id}-{i}",
        "clinic_id": clinic_id,
        "Clinic": [clinic_id],
        "email": f"drop{i}@test.com",
        "reason": "Policy step",
        "created_time": _random_time(rng, now, 30),
        "interested_treatments": [rng.choice(TREATMENT_OPTIONS)],
        "dropoff_step": rng.choice(DROPOFF_STEPS),
        "outcome_type_calc": "FAIL" if failed else "INCOMPLETE",
        "canonical_record_calc": "YES" if failed else "NO",
        "fail_reason_category_calc": rng.choice(FAIL_REASONS) if failed else None,
    }


def _question(rng: random.Random, clinic_id: str, i: int, now: datetime) -> Dict:
    treatment = rng.choice(TREATMENT_OPTIONS)
    return {
        "id": f"q-{clinic_id}-{i}",
        "clinic_id": clinic_id,
        "Clinic": [clinic_id],
        "name": f"Client {i}",
        "email": f"client{i}@example.com",
        "question": f"How long does {treatment.lower()} last?",
        "ai_answer": "Results vary; your practitioner will advise at consultation.",
        "timestamp": _random_time(rng, now, 30),
        "weekly_summary": f"Most questions this week were about {treatment}.",
    }


def generate_mock_data(
    seed: int = 7,
    now: Optional[datetime] = None,
    prescreens_per_clinic: int = 50,
    dropoffs_per_clinic: int = 15,
    questions_per_clinic: int = 8,
) -> Dict[str, List[Dict]]:
    """Generate mock rows for every mock clinic. Same seed and now give the same data."""
    rng = random.Random(seed)
    now = now or datetime.now(timezone.utc)

    prescreens: List[Dict] = []
    dropoffs: List[Dict] = []
    questions: List[Dict] = []
    for clinic in MOCK_CLINICS:
        prescreens.extend(_prescreen(rng, clinic.id, i, now) for i in range(prescreens_per_clinic))
        dropoffs.extend(_dropoff(rng, clinic.id, i, now) for i in range(dropoffs_per_clinic))
        questions.extend(_question(rng, clinic.id, i, now) for i in range(questions_per_clinic))

    treatments = [{"id": f"treat-{i}", "Name": name} for i, name in enumerate(TREATMENT_OPTIONS)]

    logger.info(
        "Mock data generated: %d clinics, %d pre-screens, %d drop-offs, %d questions",
        len(MOCK_CLINICS), len(prescreens), len(dropoffs), len(questions),
    )
    return {
        "preScreens": prescreens,
        "dropOffs": dropoffs,
        "questions": questions,
        "treatments": treatments,
    }
