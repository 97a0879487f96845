SCHEDULE = {
    "title": "Daily Summary",
    "prompt": "Summarize my inbox and send an email.",
    "model": "google/gemini-3-flash-preview",
    "frequency_text": "every day at 9am",
    "cron": "0 9 * * *",
}


def create(client, **overrides):
    res = client.post("/api/schedules", json={**SCHEDULE, **overrides})
    assert res.status_code == 201, res.text
    return res.json()


def test_create_enable_disable_delete_scenario(client):
    schedule = create(client)
    sid = schedule["id"]
    assert schedule["enabled"] is True
    assert schedule["next_run_at"] is not None
    assert client.get("/api/schedules/active-count").json() == {"count": 1}

    res = client.patch(f"/api/schedules/{sid}", json={"enabled": False})
    assert res.status_code == 200
    assert res.json()["next_run_at"] is None
    assert client.get("/api/schedules/active-count").json() == {"count": 0}

    # disabled: run-now does nothing
    assert client.post(f"/api/schedules/{sid}/run").json() == {"success": False, "run_id": None}
    assert client.get("/api/schedules/runs", params={"schedule_id": sid}).json() == []

    client.patch(f"/api/schedules/{sid}", json={"enabled": True})
    run = client.post(f"/api/schedules/{sid}/run").json()
    assert run["success"] is True
    assert len(client.get("/api/schedules/runs", params={"schedule_id": sid}).json()) == 1

    assert client.delete(f"/api/schedules/{sid}").status_code == 204
    assert client.get(f"/api/schedules/{sid}").status_code == 404
    assert client.get("/api/schedules/runs", params={"schedule_id": sid}).json() == []
    assert client.get(f"/api/schedules/runs/{run['run_id']}").status_code == 404
    assert client.post(f"/api/schedules/{sid}/run").status_code == 404


def test_list_schedules_newest_first(client):
    create(client, title="First")
    create(client, title="Second")
    titles = [s["title"] for s in client.get("/api/schedules").json()]
    assert titles == ["Second", "First"]


def test_title_defaults_from_prompt(client):
    long_prompt = "Check every open pull request and summarise the review comments"
    assert create(client, title="", prompt=long_prompt)["title"] == long_prompt[:45] + "..."
    assert create(client, title="  ", prompt="Water the plants")["title"] == "Water the plants"
    assert create(client, title="", prompt="   ")["title"] == "Scheduled Task"


def test_invalid_cron_is_stored_with_error_status(client):
    schedule = create(client, cron="every morning")
    assert schedule["last_status"] == "error"
    assert schedule["next_run_at"] is None
    assert client.get("/api/health").json()["status"] == "degraded"

    fixed = client.patch(f"/api/schedules/{schedule['id']}", json={"cron": "0  8 * * 1-5"})
    assert fixed.json()["cron"] == "0 8 * * 1-5"
    assert fixed.json()["next_run_at"] is not None


def test_update_cron_and_timezone_rearms(client):
    sid = create(client)["id"]
    res = client.patch(f"/api/schedules/{sid}", json={"cron": "30 7 * * *", "timezone": "Asia/Tokyo"})
    body = res.json()
    assert body["timezone"] == "Asia/Tokyo"
    assert body["next_run_at"] is not None

    cleared = client.patch(f"/api/schedules/{sid}", json={"timezone": None}).json()
    assert cleared["timezone"] is None


def test_unknown_schedule_returns_404(client):
    assert client.get("/api/schedules/nope").status_code == 404
    assert client.patch("/api/schedules/nope", json={"enabled": False}).status_code == 404
    assert client.delete("/api/schedules/nope").status_code == 404


def test_run_lifecycle_over_http(client):
    sid = create(client)["id"]
    run_id = client.post(f"/api/schedules/{sid}/run").json()["run_id"]
    assert client.get(f"/api/schedules/{sid}").json()["last_status"] == "running"

    res = client.post(f"/api/schedules/runs/{run_id}/conversation", json={"conversation_id": "conv-7"})
    assert res.json()["conversation_id"] == "conv-7"

    res = client.post(f"/api/schedules/runs/{run_id}/complete", json={"status": "success", "output": "All done"})
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "success"
    assert body["conversation_id"] == "conv-7"
    assert body["finished_at"] is not None

    run = client.get(f"/api/schedules/runs/{run_id}").json()
    assert run["schedule"]["id"] == sid
    assert run["schedule"]["last_status"] == "success"


def test_patch_run_like_the_execution_consumer(client):
    sid = create(client)["id"]
    run_id = client.post(f"/api/schedules/{sid}/run").json()["run_id"]

    linked = client.patch(f"/api/schedules/runs/{run_id}", json={"conversation_id": "conv-9"}).json()
    assert linked["status"] == "running"

    failed = client.patch(
        f"/api/schedules/runs/{run_id}",
        json={"status": "error", "error": "Schedule run failed", "finished_at": "2026-01-15T09:05:00Z"},
    ).json()
    assert failed["status"] == "error"
    assert failed["conversation_id"] == "conv-9"
    assert failed["finished_at"].startswith("2026-01-15T09:05:00")
    assert client.get(f"/api/schedules/{sid}").json()["last_status"] == "error"


def test_run_validation(client):
    sid = create(client)["id"]
    run_id = client.post(f"/api/schedules/{sid}/run").json()["run_id"]

    assert client.post(f"/api/schedules/runs/{run_id}/complete", json={"status": "running"}).status_code == 422
    assert client.patch(f"/api/schedules/runs/{run_id}", json={"status": "running"}).status_code == 422
    assert client.post("/api/schedules/runs/missing/complete", json={"status": "success"}).status_code == 404
    assert client.patch("/api/schedules/runs/missing", json={"output": "x"}).status_code == 404


def test_websocket_consumer_receives_trigger_event(client):
    schedule = create(client)

    with client.websocket_connect("/ws/schedules") as ws:
        run_id = client.post(f"/api/schedules/{schedule['id']}/run").json()["run_id"]
        message = ws.receive_json()
        while message["event"] != "schedule:run":
            message = ws.receive_json()

    assert message["data"] == {
        "run_id": run_id,
        "schedule_id": schedule["id"],
        "title": SCHEDULE["title"],
        "prompt": SCHEDULE["prompt"],
        "model": SCHEDULE["model"],
        "frequency_text": SCHEDULE["frequency_text"],
        "cron": SCHEDULE["cron"],
        "timezone": None,
    }


def test_shutdown_check(client):
    assert client.get("/api/shutdown/check").json()["requires_confirmation"] is False

    create(client)
    check = client.get("/api/shutdown/check").json()
    assert check["requires_confirmation"] is True
    assert check["active_count"] == 1
    assert check["detail"] == "Quitting will pause these schedules until you reopen the app."


def test_health(client):
    create(client)
    create(client, enabled=False)
    health = client.get("/api/health").json()
    assert health["status"] == "ok"
    assert health["scheduler_running"] is True
    assert health["live_timers"] == 1
    assert health["active_schedules"] == 1
