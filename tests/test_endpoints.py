"""
HTTP tests for the tasks API (camelCase JSON, `{code, message, details}` errors).

These run against the real clock; task ids are always taken from responses.
"""


def _refresh(client, location_id, **extra):
    return client.post("/tasks/refresh", json={"locationId": location_id, **extra})


def _task_id(body, definition_id):
    return next(t["id"] for t in body["tasks"]["active"] if t["definitionId"] == definition_id)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


# ---------------------------------------------------------------------------
# POST /tasks/refresh
# ---------------------------------------------------------------------------

class TestRefresh:
    def test_first_refresh(self, client, location_id):
        r = _refresh(client, location_id)
        assert r.status_code == 200
        body = r.json()
        assert body["locationId"] == location_id
        assert body["stats"]["level"] == 1
        assert body["stats"]["totalPoints"] == 0
        assert body["stats"]["progressToNextLevel"] == 0.0
        assert [t["definitionId"] for t in body["tasks"]["active"]] == ["def_a", "def_b", "def_c"]
        assert body["nextRefresh"] is not None
        assert body["week"]
        assert "3" in body["message"]
        assert set(body["scores"]) == {"profile", "engagement", "content", "total"}

    def test_second_refresh_is_429_with_snapshot(self, client, location_id):
        first = _refresh(client, location_id).json()
        r = _refresh(client, location_id)
        assert r.status_code == 429
        body = r.json()
        assert body["code"] == "REFRESH_NOT_DUE"
        assert body["details"]["next_refresh"]
        snapshot = body["details"]["snapshot"]
        assert snapshot["locationId"] == location_id
        assert snapshot["tasks"]["active"] == first["tasks"]["active"]
        assert snapshot["nextRefresh"] == first["nextRefresh"]

    def test_profile_in_body(self, client, location_id, catalog):
        r = _refresh(client, location_id, profile={"hasHours": True, "photoCount": 3})
        assert r.status_code == 200
        assert catalog.requests[-1].profile.has_hours is True
        assert catalog.requests[-1].profile.photo_count == 3
        # hours (25) + photos (20)
        assert r.json()["scores"]["profile"] == 45

    def test_location_prefix_stripped(self, client, location_id):
        r = _refresh(client, f"locations/{location_id}")
        assert r.status_code == 200
        assert r.json()["locationId"] == location_id

    def test_missing_location_id(self, client):
        r = client.post("/tasks/refresh", json={})
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# GET /tasks
# ---------------------------------------------------------------------------

class TestGetTasks:
    def test_snapshot(self, client, location_id):
        refreshed = _refresh(client, location_id).json()
        r = client.get("/tasks", params={"locationId": location_id})
        assert r.status_code == 200
        body = r.json()
        assert body["tasks"]["active"] == refreshed["tasks"]["active"]
        assert body["completedTasks"] == []
        assert body["excludedTasks"] == []
        assert body["performance"]["cycle"]["total"] == 3
        assert body["milestones"]["recent"] == []
        assert body["achievements"] == []

    def test_query_location_prefix_stripped(self, client, location_id):
        _refresh(client, f"locations/{location_id}")
        r = client.get("/tasks", params={"locationId": f" locations/{location_id} "})
        assert r.status_code == 200
        assert r.json()["locationId"] == location_id

    def test_unknown_location(self, client):
        r = client.get("/tasks", params={"locationId": "nobody-here"})
        assert r.status_code == 404
        assert r.json()["code"] == "NOT_FOUND"

    def test_missing_query(self, client):
        r = client.get("/tasks")
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# POST /tasks/{taskId}/complete
# ---------------------------------------------------------------------------

class TestComplete:
    def test_complete_awards_points(self, client, location_id):
        task_id = _task_id(_refresh(client, location_id).json(), "def_a")
        r = client.post(f"/tasks/{task_id}/complete", json={"locationId": location_id})
        assert r.status_code == 200
        body = r.json()
        assert body["taskId"] == task_id
        assert body["pointsAwarded"] == 100
        assert body["newTotalPoints"] == 100
        assert body["leveledUp"] is True
        assert body["newLevel"] == 2
        assert body["newStreak"] == 1
        assert body["gmbUpdated"] is False
        assert "first_task" in {a["definitionId"] for a in body["newAchievements"]}
        assert "points_100" in {m["definitionId"] for m in body["newMilestones"]}

        snap = client.get("/tasks", params={"locationId": location_id}).json()
        assert snap["stats"]["totalPoints"] == 100
        assert [t["id"] for t in snap["completedTasks"]] == [task_id]
        assert task_id not in {t["id"] for t in snap["tasks"]["active"]}

    def test_double_complete_is_409(self, client, location_id):
        task_id = _task_id(_refresh(client, location_id).json(), "def_b")
        client.post(f"/tasks/{task_id}/complete", json={"locationId": location_id})
        r = client.post(f"/tasks/{task_id}/complete", json={"locationId": location_id})
        assert r.status_code == 409
        assert r.json()["code"] == "TASK_ALREADY_COMPLETED"

        snap = client.get("/tasks", params={"locationId": location_id}).json()
        assert snap["stats"]["totalPoints"] == 50

    def test_wrong_location_is_404(self, client, location_id):
        task_id = _task_id(_refresh(client, location_id).json(), "def_b")
        r = client.post(f"/tasks/{task_id}/complete", json={"locationId": "someone-else"})
        assert r.status_code == 404

    def test_collaborator_failure_is_502(self, failing_client, location_id):
        task_id = _task_id(_refresh(failing_client, location_id).json(), "def_a")
        r = failing_client.post(f"/tasks/{task_id}/complete", json={"locationId": location_id})
        assert r.status_code == 502
        assert r.json()["code"] == "COLLABORATOR_ERROR"

        snap = failing_client.get("/tasks", params={"locationId": location_id}).json()
        assert snap["stats"]["totalPoints"] == 0
        assert task_id in {t["id"] for t in snap["tasks"]["active"]}


# ---------------------------------------------------------------------------
# POST /tasks/{taskId}/exclude and /start
# ---------------------------------------------------------------------------

class TestExcludeAndStart:
    def test_exclude(self, client, location_id):
        task_id = _task_id(_refresh(client, location_id).json(), "def_c")
        r = client.post(f"/tasks/{task_id}/exclude", json={"reason": "not_interested"})
        assert r.status_code == 200
        body = r.json()
        assert [t["id"] for t in body["excludedTasks"]] == [task_id]
        assert body["excludedTasks"][0]["excludeReason"] == "not_interested"
        assert body["excludedTasks"][0]["status"] == "excluded"

    def test_exclude_twice_is_409(self, client, location_id):
        task_id = _task_id(_refresh(client, location_id).json(), "def_c")
        client.post(f"/tasks/{task_id}/exclude", json={})
        r = client.post(f"/tasks/{task_id}/exclude", json={})
        assert r.status_code == 409
        assert r.json()["code"] == "TASK_ALREADY_EXCLUDED"

    def test_exclude_unknown_is_404(self, client):
        r = client.post("/tasks/does-not-exist/exclude", json={})
        assert r.status_code == 404

    def test_start(self, client, location_id):
        task_id = _task_id(_refresh(client, location_id).json(), "def_a")
        r = client.post(f"/tasks/{task_id}/start", json={"locationId": location_id})
        assert r.status_code == 200
        started = next(t for t in r.json()["tasks"]["active"] if t["id"] == task_id)
        assert started["status"] == "in_progress"

        again = client.post(f"/tasks/{task_id}/start", json={"locationId": location_id})
        assert again.status_code == 409
        assert again.json()["code"] == "INVALID_TRANSITION"
