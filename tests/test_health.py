"""
Health endpoints.
"""


def test_basic_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["service"] == "Notebase Backend API"


def test_database_health(client):
    response = client.get("/health/database")
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "healthy"
    assert response.json()["note_count"] == 0


def test_system_health(client):
    response = client.get("/health/system")
    assert response.status_code == 200
    system = response.json()["system"]
    assert system["status"] == "healthy"
    assert 0 <= system["memory"]["percent_used"] <= 100


def test_detailed_health_is_degraded_without_integrations(client):
    response = client.get("/health/detailed")
    assert response.status_code == 200
    body = response.json()
    assert body["database"]["status"] == "healthy"
    assert body["integrations"]["storage"] == "not_configured"
    assert body["overall_status"] == "degraded"


def test_responses_carry_request_tracing_and_security_headers(client):
    response = client.get("/health/liveness")
    assert response.headers["X-Request-ID"]
    assert "X-Process-Time" in response.headers
    assert response.headers["X-Content-Type-Options"] == "nosniff"
