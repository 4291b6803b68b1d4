from sqlalchemy import create_engine

import harmony.main


def test_health(client, monkeypatch):
    monkeypatch.setattr(harmony.main, "engine", create_engine("sqlite://"))
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_health_database_down(client, monkeypatch):
    broken = create_engine("sqlite:////nonexistent-dir/harmony.db")
    monkeypatch.setattr(harmony.main, "engine", broken)
    response = client.get("/health")
    assert response.status_code == 503
    assert response.json() == {"status": "unhealthy"}
