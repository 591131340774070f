"""Health endpoint tests."""


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "scheduler_running": False}


def test_health_reports_running_scheduler(client, scheduler):
    scheduler.start()
    try:
        assert client.get("/health").json()["scheduler_running"] is True
    finally:
        scheduler.stop()
