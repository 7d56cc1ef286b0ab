"""
Tests for airtable.py - REST client over a fake requests session
"""
import pytest
import requests

from airtable import AirtableClient, AirtableError, escape_formula_value, flatten
from conftest import FakeResponse, FakeSession, airtable_page


def _client(session, token="pat123", base_id="appTEST"):
    return AirtableClient(token, base_id, session=session)


class TestHelpers:
    def test_flatten_lifts_fields(self):
        rec = {"id": "rec1", "createdTime": "2024-01-01T00:00:00.000Z", "fields": {"Name": "Jo"}}
        assert flatten(rec) == {"id": "rec1", "createdTime": "2024-01-01T00:00:00.000Z", "Name": "Jo"}

    def test_flatten_without_fields(self):
        assert flatten({"id": "rec2"}) == {"id": "rec2"}

    def test_escape_formula_value(self):
        assert escape_formula_value("o'brien@clinic.com") == "o\\'brien@clinic.com"


class TestListRecords:
    def test_follows_offset_pages(self):
        session = FakeSession([
            airtable_page([{"id": "rec1", "Name": "A"}], offset="itr1"),
            airtable_page([{"id": "rec2", "Name": "B"}]),
        ])
        records = _client(session).list_records("PreScreens")
        assert [r["id"] for r in records] == ["rec1", "rec2"]
        assert len(session.calls) == 2
        assert "offset" not in session.calls[0]["params"]
        assert session.calls[1]["params"]["offset"] == "itr1"

    def test_stops_at_max_pages(self):
        session = FakeSession([
            airtable_page([{"id": "rec1"}], offset="a"),
            airtable_page([{"id": "rec2"}], offset="b"),
        ])
        records = _client(session).list_records("PreScreens", max_pages=2)
        assert len(records) == 2
        assert session.responses == []

    def test_request_shape(self):
        session = FakeSession([airtable_page([])])
        _client(session).list_records("PreScreen_DropOffs", page_size=5, view="DASH – Failed (Canonical)")
        call = session.calls[0]
        assert call["method"] == "GET"
        assert call["url"] == "https://api.airtable.com/v0/appTEST/PreScreen_DropOffs"
        assert call["headers"]["Authorization"] == "Bearer pat123"
        assert call["params"]["pageSize"] == "5"
        assert call["params"]["view"] == "DASH – Failed (Canonical)"

    def test_http_error_carries_status(self):
        session = FakeSession([FakeResponse(422, {"error": "INVALID_FILTER"})])
        with pytest.raises(AirtableError) as exc:
            _client(session).list_records("PreScreens")
        assert exc.value.status == 422

    def test_network_error(self):
        session = FakeSession([requests.ConnectionError("boom")])
        with pytest.raises(AirtableError, match="request failed"):
            _client(session).list_records("PreScreens")

    def test_missing_credentials(self):
        with pytest.raises(AirtableError, match="AIRTABLE_PAT"):
            _client(FakeSession(), token="").list_records("PreScreens")
        with pytest.raises(AirtableError, match="AIRTABLE_BASE_ID"):
            _client(FakeSession(), base_id="").list_records("PreScreens")


class TestClinicScopedFetch:
    def test_keeps_rows_linked_to_clinic(self):
        session = FakeSession([airtable_page([
            {"id": "rec1", "Clinic": ["recA"]},
            {"id": "rec2", "Clinic": ["recB"]},
            {"id": "rec3", "Clinic": ["recB", "recA"]},
            {"id": "rec4", "Clinic": "recA"},
            {"id": "rec5"},
        ])])
        records, error = _client(session).fetch_clinic_table("PreScreens", "recA")
        assert error is None
        assert [r["id"] for r in records] == ["rec1", "rec3"]

    def test_error_is_returned_not_raised(self):
        session = FakeSession([FakeResponse(403, {"error": "NOT_AUTHORIZED"})])
        records, error = _client(session).fetch_clinic_table("AI_Questions", "recA")
        assert records == []
        assert "403" in error


class TestClinicLookupAndUpdate:
    def test_find_clinic_by_email_builds_formula(self):
        session = FakeSession([airtable_page([{"id": "recClinic", "Name": "Lerae"}])])
        clinic = _client(session).find_clinic_by_email("Clinics", "owner@lerae.com")
        assert clinic["id"] == "recClinic"
        params = session.calls[0]["params"]
        assert params["filterByFormula"] == "{Dashboard Email}='owner@lerae.com'"
        assert params["maxRecords"] == "1"

    def test_find_clinic_by_email_none(self):
        session = FakeSession([airtable_page([])])
        assert _client(session).find_clinic_by_email("Clinics", "nobody@x.com") is None

    def test_update_record_patches_fields(self):
        session = FakeSession([FakeResponse(200, {"id": "rec9", "fields": {"booking_status": "Booked"}})])
        result = _client(session).update_record("PreScreens", "rec9", {"booking_status": "Booked"})
        assert result["fields"]["booking_status"] == "Booked"
        call = session.calls[0]
        assert call["method"] == "PATCH"
        assert call["url"].endswith("/appTEST/PreScreens/rec9")
        assert call["json"] == {"fields": {"booking_status": "Booked"}}

    def test_non_json_body(self):
        session = FakeSession([FakeResponse(200, None, text="<html>")])
        with pytest.raises(AirtableError, match="non-JSON"):
            _client(session).update_record("PreScreens", "rec9", {"eligibility": "Pass"})
