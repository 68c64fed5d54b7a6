def test_availability_rate_limit_returns_429(client, calcom, config):
    config.availability_max_requests = 2

    first = client.post("/api/get-available-time-blocks", json={"username": "atl5d"})
    second = client.post("/api/get-available-time-blocks", json={"username": "atl5d"})
    third = client.post("/api/get-available-time-blocks", json={"username": "atl5d"})

    assert first.status_code == 200
    assert second.status_code == 200
    assert third.status_code == 429
    assert third.json()["error"]["code"] == "http_429"
    assert 1 <= int(third.headers["Retry-After"]) <= config.availability_rate_limit_window_seconds
    assert len(calcom.calls_to("/event-types")) == 2


def test_retry_after_follows_the_scope_window_from_config(client, config):
    config.proof_max_requests = 1
    config.proof_rate_limit_window_seconds = 600

    payload = {"bookingId": "bk_101", "proofUrl": "https://www.tiktok.com/@atl5d/video/1"}
    first = client.post("/api/verify-proof", json=payload)
    second = client.post("/api/verify-proof", json=payload)

    assert first.status_code == 200
    assert second.status_code == 429
    assert int(second.headers["Retry-After"]) > 60
    assert "error" in second.json()


def test_scopes_have_separate_budgets(client, config):
    config.proof_max_requests = 1
    config.availability_max_requests = 1

    payload = {"bookingId": "bk_101", "proofUrl": "https://www.tiktok.com/@atl5d/video/1"}
    assert client.post("/api/verify-proof", json=payload).status_code == 200
    assert client.post("/api/get-available-time-blocks", json={"username": "atl5d"}).status_code == 200
    assert client.post("/api/verify-proof", json=payload).status_code == 429
