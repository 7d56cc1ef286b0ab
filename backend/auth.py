# Hosted-auth session validation (Supabase) for the dashboard endpoints
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import requests

from models import AuthUser

logger = logging.getLogger(__name__)

_BEARER_RE = re.compile(r"^Bearer (.+)$", re.IGNORECASE)

DEMO_USER = AuthUser(id="demo_user_123", email="demo@clinic.com")


class AuthError(RuntimeError):
    """Session token missing or rejected by the auth provider."""


class AuthProviderError(RuntimeError):
    """Auth provider unreachable or misconfigured."""


def get_bearer_token(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    m = _BEARER_RE.match(header.strip())
    token = m.group(1).strip() if m else ""
    return token or None


class SupabaseAuth:
    """Validates access tokens server-side with the service role key."""

    def __init__(self, url: str, service_key: str, session: Optional[requests.Session] = None, timeout: int = 10):
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, path: str, bearer: str, params: Optional[Dict[str, str]] = None) -> requests.Response:
        if not self.url or not self.service_key:
            raise AuthProviderError("Missing Supabase server env vars")
        headers = {"apikey": self.service_key, "Authorization": f"Bearer {bearer}"}
        try:
            return self.session.get(f"{self.url}{path}", headers=headers, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthProviderError(f"Supabase request failed: {e}")

    @staticmethod
    def _json(r: requests.Response) -> Any:
        try:
            return r.json()
        except ValueError:
            raise AuthProviderError("Supabase returned a non-JSON body")

    def get_user(self, token: str) -> AuthUser:
        r = self._get("/auth/v1/user", token)
        if r.status_code in (401, 403):
            raise AuthError("Invalid session token")
        if not r.ok:
            raise AuthProviderError(f"Supabase error {r.status_code}")
        data = self._json(r) or {}
        if not data.get("id"):
            raise AuthError("Invalid session token")
        return AuthUser(id=data["id"], email=data.get("email") or "")

    def get_profile_role(self, user_id: str) -> Optional[str]:
        r = self._get(
            "/rest/v1/profiles",
            self.service_key,
            params={"id": f"eq.{user_id}", "select": "role"},
        )
        if not r.ok:
            raise AuthProviderError("Profile lookup failed")
        rows = self._json(r) or []
        return rows[0].get("role") if rows else None

    def list_clinics(self) -> List[Dict[str, Any]]:
        r = self._get(
            "/rest/v1/clinics",
            self.service_key,
            params={
                "select": "id,public_clinic_key,airtable_clinic_record_id,active,name",
                "order": "created_at.asc",
            },
        )
        if not r.ok:
            raise AuthProviderError("Clinic list failed")
        return self._json(r) or []


class DemoAuth:
    """Mock-mode stand-in: any non-empty token maps to the demo user."""

    def get_user(self, token: str) -> AuthUser:
        if not token:
            raise AuthError("Missing Bearer token")
        return DEMO_USER
