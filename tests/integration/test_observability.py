def test_request_id_header_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.status_code == 200
    assert response.headers.get("X-Request-ID") == "req-123"


def test_error_payload_carries_request_id(client):
    response = client.post("/api/get-available-time-blocks", json={}, headers={"X-Request-ID": "req-456"})
    assert response.json()["request_id"] == "req-456"


def test_metrics_endpoint_returns_prometheus_text(client, calcom):
    calcom.event_types = [{"lengthInMinutes": 15, "slug": "15min"}]
    client.post("/api/get-available-time-blocks", json={"username": "atl5d"})

    response = client.get("/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers.get("content-type", "")
    body = response.text
    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert 'calcom_requests_total{operation="event_types",outcome="ok"}' in body
