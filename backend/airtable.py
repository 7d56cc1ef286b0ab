# Airtable REST client - the only module that talks to the record store
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

AIRTABLE_API = "https://api.airtable.com/v0"


class AirtableError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def escape_formula_value(value: str) -> str:
    """Escape single quotes for use inside an Airtable formula string."""
    return value.replace("'", "\\'")


def flatten(record: Dict[str, Any]) -> Dict[str, Any]:
    """{id, createdTime, fields: {...}} -> {id, createdTime, ...fields}"""
    flat: Dict[str, Any] = {"id": record.get("id")}
    if record.get("createdTime"):
        flat["createdTime"] = record["createdTime"]
    flat.update(record.get("fields") or {})
    return flat


class AirtableClient:
    """HTTP facade to one Airtable base."""

    def __init__(
        self,
        token: str,
        base_id: str,
        session: Optional[requests.Session] = None,
        timeout: int = 20,
        api_url: str = AIRTABLE_API,
    ):
        self.token = token
        self.base_id = base_id
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_url = api_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            raise AirtableError("Missing AIRTABLE_PAT or AIRTABLE_TOKEN")
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    def _url(self, table: str, record_id: Optional[str] = None) -> str:
        if not self.base_id:
            raise AirtableError("Missing AIRTABLE_BASE_ID")
        url = f"{self.api_url}/{self.base_id}/{quote(table, safe='')}"
        if record_id:
            url += f"/{quote(record_id, safe='')}"
        return url

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            r = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise AirtableError(f"Airtable request failed: {e}")
        if not r.ok:
            raise AirtableError(f"Airtable error {r.status_code}: {r.text}", status=r.status_code)
        try:
            return r.json()
        except ValueError:
            raise AirtableError("Airtable returned a non-JSON body", status=r.status_code)

    def list_records(
        self,
        table: str,
        page_size: int = 100,
        max_pages: int = 10,
        view: Optional[str] = None,
        formula: Optional[str] = None,
        max_records: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch and flatten records, following offset pagination up to max_pages."""
        params: Dict[str, Any] = {"pageSize": str(page_size)}
        if view:
            params["view"] = view
        if formula:
            params["filterByFormula"] = formula
        if max_records:
            params["maxRecords"] = str(max_records)

        records: List[Dict[str, Any]] = []
        for _page in range(max_pages):
            data = self._request("GET", self._url(table), params=dict(params))
            records.extend(flatten(r) for r in data.get("records") or [])
            offset = data.get("offset")
            if not offset:
                break
            params["offset"] = offset
        return records

    def fetch_clinic_table(
        self,
        table: str,
        clinic_id: str,
        link_field: str = "Clinic",
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """
        Fetch a table and keep rows whose linked-record field contains clinic_id.
        Filtering happens here rather than with filterByFormula, which fails
        silently on linked fields. Errors are returned, not raised, so one
        broken table does not blank the whole dashboard.
        """
        try:
            records = self.list_records(table)
        except AirtableError as e:
            logger.warning("Airtable fetch failed for table=%s: %s", table, e)
            return [], str(e)
        filtered = [
            r for r in records
            if isinstance(r.get(link_field), list) and clinic_id in r[link_field]
        ]
        return filtered, None

    def find_clinic_by_email(
        self,
        table: str,
        email: str,
        email_field: str = "Dashboard Email",
    ) -> Optional[Dict[str, Any]]:
        formula = f"{{{email_field}}}='{escape_formula_value(email)}'"
        records = self.list_records(table, page_size=1, max_pages=1, formula=formula, max_records=1)
        return records[0] if records else None

    def update_record(self, table: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PATCH", self._url(table, record_id), json={"fields": fields})
