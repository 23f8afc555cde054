import pytest

from ed_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


def test_missing_hospital_header_returns_error_envelope(api_client):
    resp = api_client.get("/api/v1/encounters/")

    assert resp.status_code == 400
    assert resp.data["error"]["code"] == "validation_error"
    assert "Missing scope header" in resp.data["error"]["message"]
    assert "request_id" in resp.data["error"]


def test_invalid_hospital_header_returns_error_envelope(api_client):
    resp = api_client.get("/api/v1/alerts/", HTTP_X_HOSPITAL_ID="not-a-uuid")

    assert resp.status_code == 400
    assert resp.data["error"]["code"] == "validation_error"
    assert "Invalid scope header" in resp.data["error"]["message"]


def test_encounter_from_other_hospital_is_hidden(api_client, encounter, other_hospital_id):
    resp = api_client.get(f"/api/v1/encounters/{encounter.id}/", **scoped(other_hospital_id))

    assert resp.status_code == 404
    assert resp.data["error"]["code"] == "not_found"
