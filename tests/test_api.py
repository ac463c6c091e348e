"""Tests for the Flask attendance blueprint."""

from timeclock.models import AttendanceRecord, AttendanceStatus


def test_check_in_and_status(client, clock):
    response = client.post("/attendance/w-1/check-in")

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["pending_sync"] is False
    assert body["data"]["status"] == "checked_in"
    assert body["data"]["version"] == 1

    status = client.get("/attendance/w-1/status").get_json()
    assert status["data"]["check_in_time"] == clock.now().isoformat()


def test_rejection_is_conflict_response(client):
    client.post("/attendance/w-1/check-in")

    response = client.post("/attendance/w-1/check-in")

    assert response.status_code == 409
    body = response.get_json()
    assert body["success"] is False
    assert body["error"] == "already_checked_in_today"
    assert body["message"]


def test_full_day_over_http(client, clock):
    client.post("/attendance/w-1/check-in")
    clock.advance(hours=4)
    client.post("/attendance/w-1/break-start")
    clock.advance(hours=1)
    client.post("/attendance/w-1/break-end")
    clock.advance(hours=4)

    body = client.post("/attendance/w-1/check-out").get_json()

    assert body["data"]["status"] == "checked_out"
    assert body["data"]["total_hours"] == 8.0
    assert body["data"]["break_time_total"] == 1.0


def test_offline_transition_reports_pending_sync(client, remote):
    remote.online = False

    body = client.post("/attendance/w-1/check-in").get_json()

    assert body["success"] is True
    assert body["pending_sync"] is True

    remote.online = True
    result = client.post("/attendance/reconcile").get_json()
    assert result["success"] is True
    assert result["result"]["replayed"] == 1
    assert client.get("/attendance/w-1/status").get_json()["pending_sync"] is False


def test_overrides(client, clock):
    client.post("/attendance/w-1/check-in")
    clock.advance(hours=10)

    forced = client.post("/attendance/w-1/force-check-out").get_json()
    assert forced["data"]["status"] == "checked_out"

    reset = client.post("/attendance/w-1/reset-day").get_json()
    assert reset["data"]["status"] == "not_checked_in"
    assert reset["data"]["version"] == 3


def test_reset_before_check_out_is_rejected(client):
    client.post("/attendance/w-1/check-in")

    response = client.post("/attendance/w-1/reset-day")

    assert response.status_code == 409
    assert response.get_json()["error"] == "reset_not_allowed"


def test_activity_feed(client):
    client.post("/attendance/w-1/check-in")
    client.post("/attendance/w-2/check-in")

    body = client.get("/attendance/activity?limit=1").get_json()

    assert body["success"] is True
    assert len(body["data"]) == 1
    assert body["data"][0]["worker_id"] == "w-2"
    assert client.get("/attendance/activity?limit=abc").status_code == 400


def test_conflicts_listing_and_acknowledge(client, remote, clock):
    remote.online = False
    client.post("/attendance/w-1/check-in")
    remote.seed(
        AttendanceRecord(
            worker_id="w-1",
            date=clock.today(),
            status=AttendanceStatus.CHECKED_IN,
            check_in_time=clock.now(),
            version=1,
        )
    )
    remote.online = True
    client.post("/attendance/reconcile")

    listing = client.get("/attendance/conflicts").get_json()
    assert listing["count"] == 1
    conflict_id = listing["data"][0]["id"]

    response = client.post(f"/attendance/conflicts/{conflict_id}/acknowledge")
    assert response.status_code == 200
    assert client.get("/attendance/conflicts").get_json()["count"] == 0
    assert client.post("/attendance/conflicts/9999/acknowledge").status_code == 404


def test_sync_status(client, remote):
    remote.online = False
    client.post("/attendance/w-1/check-in")

    body = client.get("/attendance/sync-status").get_json()

    assert body["pending"]["pending_transitions"] == 1
    assert body["scheduler"]["running"] is False


def test_refused_write_is_a_bad_gateway(client, remote):
    remote.refuse = lambda record: True

    response = client.post("/attendance/w-1/check-in")

    assert response.status_code == 502
    assert response.get_json()["error"] == "remote_store_refused"
    assert client.get("/attendance/sync-status").get_json()["pending"]["pending_transitions"] == 0
