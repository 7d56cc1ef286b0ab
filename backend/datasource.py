# Data sources - mock (generated) and live (Airtable) behind one interface.
# The choice is made once, from Settings, when the app is built.
from __future__ import annotations

import copy
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from airtable import AirtableClient, AirtableError
from auth import SupabaseAuth
from config import Settings
from models import AuthUser, ClinicProfile
from seed import MOCK_CLINICS, generate_mock_data

logger = logging.getLogger(__name__)

BOOKING_VALUES = ("Booked", "Pending")
ELIGIBILITY_VALUES = ("Pass", "Review", "Fail")

# Update key -> record-store column. Column names must match Airtable exactly.
UPDATE_FIELDS = {
    "booking_status": "booking_status",
    "review_complete": "Review Complete",
    "eligibility": "eligibility",
}
UPDATE_ALIASES = {
    "bookingStatus": "booking_status",
    "reviewComplete": "review_complete",
}


class DataSourceError(RuntimeError):
    """Record store unreachable or misconfigured."""


class RecordNotFoundError(LookupError):
    pass


class ClinicNotFoundError(LookupError):
    pass


class ForbiddenError(PermissionError):
    pass


class UpdateValidationError(ValueError):
    pass


def validate_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check a partial update against the mutation contract and return it keyed
    by record-store column name. Accepts booking_status, review_complete and
    eligibility (camelCase aliases allowed).
    """
    if not isinstance(updates, dict) or not updates:
        raise UpdateValidationError("Missing id or updates")

    fields: Dict[str, Any] = {}
    for key, value in updates.items():
        name = UPDATE_ALIASES.get(key, key)
        if name not in UPDATE_FIELDS:
            raise UpdateValidationError(f"Field '{key}' cannot be updated")
        if name == "booking_status" and value not in BOOKING_VALUES:
            raise UpdateValidationError("booking_status must be 'Booked' or 'Pending'")
        if name == "review_complete" and not isinstance(value, bool):
            raise UpdateValidationError("review_complete must be true or false")
        if name == "eligibility" and value not in ELIGIBILITY_VALUES:
            raise UpdateValidationError("eligibility must be 'Pass', 'Review' or 'Fail'")
        fields[UPDATE_FIELDS[name]] = value
    return fields


class DataSource(Protocol):
    """What the HTTP layer needs from the data layer."""

    def get_clinic_for_user(self, user: AuthUser) -> ClinicProfile:
        ...

    def list_clinics(self, user: AuthUser) -> List[Dict[str, Any]]:
        ...

    def get_dashboard(self, clinic_id: str) -> Dict[str, Any]:
        """Raw rows for one clinic: preScreens, dropOffs, questions, treatments, errors."""
        ...

    def get_failed(self, limit: int = 50) -> List[Dict[str, Any]]:
        ...

    def ping(self) -> Dict[str, Any]:
        ...

    def update_record(self, record_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        ...


class MockDataSource:
    """Generated data held in memory. Updates apply to this instance only."""

    def __init__(self, seed: int = 7, now: Optional[datetime] = None):
        self.seed = seed
        self.data = generate_mock_data(seed=seed, now=now)

    def get_clinic_for_user(self, user: AuthUser) -> ClinicProfile:
        return MOCK_CLINICS[0]

    def list_clinics(self, user: AuthUser) -> List[Dict[str, Any]]:
        return [
            {
                "name": c.name,
                "airtable_clinic_record_id": c.id,
                "public_clinic_key": "demo" if i == 0 else None,
                "active": c.active,
            }
            for i, c in enumerate(MOCK_CLINICS)
        ]

    def _for_clinic(self, key: str, clinic_id: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self.data[key] if r.get("clinic_id") == clinic_id]

    def get_dashboard(self, clinic_id: str) -> Dict[str, Any]:
        return {
            "preScreens": self._for_clinic("preScreens", clinic_id),
            "dropOffs": self._for_clinic("dropOffs", clinic_id),
            "questions": self._for_clinic("questions", clinic_id),
            "treatments": copy.deepcopy(self.data["treatments"]),
            "errors": {},
        }

    def get_failed(self, limit: int = 50) -> List[Dict[str, Any]]:
        failed = [
            copy.deepcopy(r) for r in self.data["dropOffs"]
            if r.get("outcome_type_calc") == "FAIL" and r.get("canonical_record_calc") == "YES"
        ]
        return failed[:limit]

    def ping(self) -> Dict[str, Any]:
        return {"mock": True, "seed": self.seed, "sampleRecordsReturned": len(MOCK_CLINICS)}

    def update_record(self, record_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        fields = validate_updates(updates)
        for record in self.data["preScreens"]:
            if record.get("id") == record_id:
                record.update(fields)
                return {"id": record_id, "fields": dict(fields)}
        raise RecordNotFoundError(f"Pre-screen {record_id} not found")


class AirtableDataSource:
    """Live data: Airtable for clinic rows, Supabase for admin profiles."""

    def __init__(self, client: AirtableClient, settings: Settings, auth: Optional[SupabaseAuth] = None):
        self.client = client
        self.settings = settings
        self.auth = auth

    def get_clinic_for_user(self, user: AuthUser) -> ClinicProfile:
        if not user.email:
            raise ClinicNotFoundError("User email missing")
        try:
            rec = self.client.find_clinic_by_email(self.settings.table_clinics, user.email)
        except AirtableError as e:
            raise DataSourceError(str(e))
        if not rec:
            raise ClinicNotFoundError("No clinic found for this dashboard email in Airtable Clinics table")
        enabled = rec.get("Enabled Features") or []
        return ClinicProfile(
            # The Airtable record id doubles as the clinic id everywhere else
            id=rec["id"],
            name=rec.get("Name") or "Clinic",
            active=bool(rec.get("Active")),
            enabled_features=list(enabled) if isinstance(enabled, list) else [],
        )

    def list_clinics(self, user: AuthUser) -> List[Dict[str, Any]]:
        if self.auth is None:
            raise DataSourceError("Auth provider not configured")
        if self.auth.get_profile_role(user.id) != "super_admin":
            raise ForbiddenError("Forbidden")
        return self.auth.list_clinics()

    def get_dashboard(self, clinic_id: str) -> Dict[str, Any]:
        s = self.settings
        tables = {
            "preScreens": s.table_prescreens,
            "dropOffs": s.table_dropoffs,
            "questions": s.table_questions,
            "treatments": s.table_treatments,
        }
        result: Dict[str, Any] = {"errors": {}}
        for key, table in tables.items():
            records, error = self.client.fetch_clinic_table(table, clinic_id)
            result[key] = records
            if error:
                result["errors"][table] = error
        return result

    def get_failed(self, limit: int = 50) -> List[Dict[str, Any]]:
        try:
            return self.client.list_records(
                self.settings.table_dropoffs,
                page_size=limit,
                max_pages=1,
                view=self.settings.failed_view,
            )
        except AirtableError as e:
            raise DataSourceError(str(e))

    def ping(self) -> Dict[str, Any]:
        try:
            count = len(self.client.list_records(self.settings.table_clinics, page_size=1, max_pages=1))
        except AirtableError as e:
            raise DataSourceError(str(e))
        return {
            "baseIdSuffix": self.settings.airtable_base_id[-6:],
            "clinicsTable": self.settings.table_clinics,
            "sampleRecordsReturned": count,
        }

    def update_record(self, record_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        fields = validate_updates(updates)
        try:
            return self.client.update_record(self.settings.table_prescreens, record_id, fields)
        except AirtableError as e:
            if e.status == 404:
                raise RecordNotFoundError(f"Pre-screen {record_id} not found")
            raise DataSourceError(str(e))


def build_data_source(settings: Settings, auth: Optional[SupabaseAuth] = None) -> DataSource:
    if settings.use_mock:
        logger.info("Using mock data source (seed=%s)", settings.mock_seed)
        return MockDataSource(seed=settings.mock_seed)
    missing = settings.missing_live_settings()
    if missing:
        logger.warning("Live data source missing settings: %s", ", ".join(missing))
    logger.info("Using Airtable data source (base=...%s)", settings.airtable_base_id[-6:])
    client = AirtableClient(settings.airtable_token, settings.airtable_base_id)
    auth = auth or SupabaseAuth(settings.supabase_url, settings.supabase_service_key)
    return AirtableDataSource(client, settings, auth)
