def test_error_response_has_unified_shape(client):
    response = client.post("/api/get-available-time-blocks", json={})
    assert response.status_code == 400
    body = response.json()
    assert "error" in body
    assert "code" in body["error"]
    assert "message" in body["error"]
    assert "detail" in body
    assert "request_id" in body


def test_health_endpoint_returns_healthy_and_request_id(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
    assert "x-request-id" in response.headers


def test_malformed_json_body_is_a_validation_error(client, calcom):
    response = client.post(
        "/api/get-available-time-blocks",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation_error"
    assert calcom.requests == []


def test_error_message_is_also_top_level_for_the_booking_form(client, calcom, paid_headers):
    calcom.booking_error = (409, "Slot no longer available")

    response = client.post(
        "/api/book-service-pwyc",
        json={
            "attendeeName": "Jo Peach",
            "attendeeEmail": "jo@example.com",
            "startTime": "2026-11-02T15:00:00Z",
            "offeredAmount": "20",
            "serviceDescription": "15-min Livestream Promo",
            "bookedDuration": 15,
            "organizerUsername": "atl5d",
        },
        headers=paid_headers,
    )

    body = response.json()
    assert response.status_code == 500
    assert body["message"] == body["error"]["message"]
    assert "Slot no longer available" in body["message"]
