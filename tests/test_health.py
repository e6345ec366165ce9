import pytest


@pytest.mark.anyio
async def test_healthcheck(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["db_ok"] is True
    assert body["migrations_ok"] is True
    assert body["migrations_status"] == "up_to_date"
    assert body["payos_configured"] is True
    assert body["chat_webhook_configured"] is True
    assert body["scheduler_running"] is False


@pytest.mark.anyio
async def test_health_degrades_on_db_failure(monkeypatch, client):
    class BrokenEngine:
        def connect(self):
            raise RuntimeError("db down")

    monkeypatch.setattr("app.routers.health.get_engine", lambda: BrokenEngine())

    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["db_ok"] is False
    assert body["db_status"] == "error"
    assert body["migrations_status"] == "unknown"


@pytest.mark.anyio
async def test_health_reports_stale_migrations(monkeypatch, client):
    from app.routers import health as health_module

    monkeypatch.setattr(health_module, "_expected_migration_head", lambda: "20991231_future")

    response = await client.get("/health")
    body = response.json()
    assert body["status"] == "degraded"
    assert body["migrations_status"] == "out_of_date"
