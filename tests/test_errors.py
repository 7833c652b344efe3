"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
from datetime import datetime, timezone

from engagement.core.errors import (
    AlreadyCompletedError,
    AlreadyExcludedError,
    CadenceError,
    CatalogUnavailableError,
    CollaboratorError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_not_found(self):
        err = NotFoundError("task", "abc")
        assert err.http_status == 404
        assert err.code == "NOT_FOUND"
        assert err.to_dict()["details"] == {"kind": "task", "id": "abc"}

    def test_already_completed(self):
        err = AlreadyCompletedError("t-1")
        assert err.http_status == 409
        assert err.code == "TASK_ALREADY_COMPLETED"
        assert "completed" in err.message
        assert err.details == {"task_id": "t-1", "status": "completed"}

    def test_already_excluded(self):
        err = AlreadyExcludedError("t-1")
        assert err.http_status == 409
        assert err.code == "TASK_ALREADY_EXCLUDED"
        assert err.details["status"] == "excluded"

    def test_invalid_transition(self):
        err = InvalidTransitionError("t-1", "in_progress", "in_progress")
        assert err.http_status == 409
        assert err.code == "INVALID_TRANSITION"
        assert err.details["current"] == "in_progress"

    def test_cadence_error(self):
        when = datetime(2091, 3, 12, 12, tzinfo=timezone.utc)
        err = CadenceError(when, snapshot_payload={"locationId": "x"})
        assert err.http_status == 429
        assert err.code == "REFRESH_NOT_DUE"
        d = err.to_dict()
        assert d["details"]["next_refresh"] == when.isoformat()
        assert d["details"]["snapshot"] == {"locationId": "x"}

    def test_cadence_error_without_snapshot(self):
        err = CadenceError(datetime(2091, 3, 12, tzinfo=timezone.utc))
        assert "snapshot" not in err.details
        assert err.snapshot is None

    def test_conflict_is_retryable(self):
        err = ConflictError("loc-1", attempts=3)
        assert err.http_status == 409
        assert err.code == "CONCURRENT_UPDATE"
        assert err.details == {"location_id": "loc-1", "retryable": True, "attempts": 3}

    def test_collaborator_error(self):
        err = CollaboratorError("listing_updater", "boom", task_id="t-9")
        assert err.http_status == 502
        assert err.details == {"collaborator": "listing_updater", "task_id": "t-9"}

    def test_catalog_unavailable(self):
        err = CatalogUnavailableError("missing file")
        assert err.http_status == 500
        assert "missing file" in err.message
        assert "details" not in err.to_dict()


# ---------------------------------------------------------------------------
# Integration: envelopes over HTTP
# ---------------------------------------------------------------------------

class TestErrorEnvelopes:
    def test_validation_error_shape(self, client):
        r = client.post("/tasks/refresh", json={"locationId": ""})
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["message"]
        fields = [e["field"] for e in body["details"]["errors"]]
        assert "locationId" in fields

    def test_not_found_shape(self, client):
        r = client.get("/tasks", params={"locationId": "ghost"})
        assert r.status_code == 404
        body = r.json()
        assert set(body) == {"code", "message", "details"}
        assert body["details"]["id"] == "ghost"

    def test_bad_json_body(self, client):
        r = client.post(
            "/tasks/refresh",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"
