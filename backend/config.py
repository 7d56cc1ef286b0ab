# Runtime configuration - read once from the environment and passed to create_app()
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
]


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


@dataclass
class Settings:
    """Explicit settings. use_mock selects the generated data source instead of Airtable."""
    use_mock: bool = False
    mock_seed: int = 7
    airtable_token: str = ""
    airtable_base_id: str = ""
    table_prescreens: str = "PreScreens"
    table_dropoffs: str = "PreScreen_DropOffs"
    table_questions: str = "AI_Questions"
    table_treatments: str = "Treatments"
    table_clinics: str = "Clinics"
    failed_view: str = "DASH – Failed (Canonical)"
    supabase_url: str = ""
    supabase_service_key: str = ""
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    service_name: str = "prescreen-dashboard"

    def missing_live_settings(self) -> List[str]:
        """Names of env vars required by the live (non-mock) data source that are unset."""
        missing = []
        if not self.airtable_token:
            missing.append("AIRTABLE_PAT")
        if not self.airtable_base_id:
            missing.append("AIRTABLE_BASE_ID")
        if not self.supabase_url:
            missing.append("SUPABASE_URL")
        if not self.supabase_service_key:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")
        return missing


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables (os.environ by default)."""
    env = os.environ if env is None else env

    origins = list(DEFAULT_ALLOWED_ORIGINS)
    frontend_url = env.get("FRONTEND_URL", "")
    if frontend_url:
        origins.append(frontend_url)

    try:
        seed = int(env.get("MOCK_SEED", "7"))
    except ValueError:
        seed = 7

    return Settings(
        use_mock=_flag(env.get("USE_MOCK")) or _flag(env.get("DEMO_MODE")),
        mock_seed=seed,
        # Older deployments used AIRTABLE_TOKEN
        airtable_token=env.get("AIRTABLE_PAT") or env.get("AIRTABLE_TOKEN") or "",
        airtable_base_id=env.get("AIRTABLE_BASE_ID", ""),
        table_prescreens=env.get("AIRTABLE_TABLE_PRESCREENS") or "PreScreens",
        table_dropoffs=env.get("AIRTABLE_TABLE_DROPOFFS") or "PreScreen_DropOffs",
        table_questions=env.get("AIRTABLE_TABLE_QUESTIONS") or "AI_Questions",
        table_treatments=env.get("AIRTABLE_TABLE_TREATMENTS") or "Treatments",
        table_clinics=env.get("AIRTABLE_TABLE_CLINICS") or "Clinics",
        supabase_url=env.get("SUPABASE_URL", ""),
        supabase_service_key=env.get("SUPABASE_SERVICE_ROLE_KEY", ""),
        allowed_origins=origins,
    )
