"""
Tests for config.py - settings from environment variables
"""
from config import DEFAULT_ALLOWED_ORIGINS, Settings, load_settings


class TestLoadSettings:
    def test_defaults(self):
        s = load_settings({})
        assert s.use_mock is False
        assert s.mock_seed == 7
        assert s.table_prescreens == "PreScreens"
        assert s.table_dropoffs == "PreScreen_DropOffs"
        assert s.failed_view == "DASH – Failed (Canonical)"
        assert s.allowed_origins == DEFAULT_ALLOWED_ORIGINS

    def test_mock_flags(self):
        assert load_settings({"USE_MOCK": "true"}).use_mock is True
        assert load_settings({"DEMO_MODE": "TRUE"}).use_mock is True
        assert load_settings({"USE_MOCK": "1"}).use_mock is False

    def test_token_fallback(self):
        assert load_settings({"AIRTABLE_TOKEN": "old"}).airtable_token == "old"
        assert load_settings({"AIRTABLE_PAT": "new", "AIRTABLE_TOKEN": "old"}).airtable_token == "new"

    def test_frontend_url_is_allowed(self):
        s = load_settings({"FRONTEND_URL": "https://dash.example.com"})
        assert s.allowed_origins[-1] == "https://dash.example.com"

    def test_bad_seed_falls_back(self):
        assert load_settings({"MOCK_SEED": "abc"}).mock_seed == 7
        assert load_settings({"MOCK_SEED": "42"}).mock_seed == 42

    def test_table_overrides(self):
        s = load_settings({"AIRTABLE_TABLE_CLINICS": "Clinics_v2"})
        assert s.table_clinics == "Clinics_v2"


class TestMissingLiveSettings:
    def test_reports_each_missing_var(self):
        assert Settings().missing_live_settings() == [
            "AIRTABLE_PAT",
            "AIRTABLE_BASE_ID",
            "SUPABASE_URL",
            "SUPABASE_SERVICE_ROLE_KEY",
        ]

    def test_complete(self):
        s = Settings(airtable_token="t", airtable_base_id="b", supabase_url="u", supabase_service_key="k")
        assert s.missing_live_settings() == []
