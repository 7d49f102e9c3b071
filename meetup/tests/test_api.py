HEADERS = {"X-User-Id": "user-1"}


def _create(client, slots=(("2025-03-08", "18:00"), ("2025-03-09", "12:30")), **extra):
    body = {
        "name": "Weekend Brunch",
        "location": "Central Park",
        "time_slots": [{"date": d, "time": t} for d, t in slots],
        **extra,
    }
    res = client.post("/events", json=body, headers=HEADERS)
    assert res.status_code == 201, res.text
    data = res.json()
    return data["event"]["id"], [s["id"] for s in data["time_slots"]]


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["redis"] == "healthy"
    assert body["store"] == "healthy"


def test_create_event_and_fetch(client):
    event_id, slot_ids = _create(client, phone_contacts=[{"number": " +1 234 567 8900 ", "name": "Sam"}])

    res = client.get(f"/events/{event_id}")
    assert res.status_code == 200
    data = res.json()
    assert data["event"]["name"] == "Weekend Brunch"
    assert data["event"]["creator_id"] == "user-1"
    assert data["responses"] == []
    assert data["phone_contacts"][0]["number"] == "+1 234 567 8900"

    slots = client.get(f"/events/{event_id}/slots").json()
    assert [s["id"] for s in slots] == slot_ids
    assert slots[0]["date"] == "2025-03-08"
    assert slots[0]["time"] == "18:00"


def test_create_event_requires_creator(client):
    body = {"name": "x", "time_slots": [{"date": "2025-03-08", "time": "18:00"}]}
    res = client.post("/events", json=body)
    assert res.status_code == 401
    assert res.json()["error"] == "unauthorized"


def test_create_event_validation(client):
    res = client.post("/events", json={"name": "   ", "time_slots": [{"date": "2025-03-08", "time": "18:00"}]}, headers=HEADERS)
    assert res.status_code == 422
    assert res.json()["error"] == "validation_error"

    res = client.post("/events", json={"name": "Brunch", "time_slots": []}, headers=HEADERS)
    assert res.status_code == 422

    res = client.post("/events", json={"name": "Brunch", "time_slots": [{"date": "2025-13-40", "time": "18:00"}]}, headers=HEADERS)
    assert res.status_code == 422

    res = client.post("/events", json={"name": "Brunch", "time_slots": [{"date": "2025-03-08", "time": "25:00"}]}, headers=HEADERS)
    assert res.status_code == 422


def test_unknown_event_is_not_found(client):
    for path in ("/events/nope", "/events/nope/slots", "/events/nope/summary", "/events/nope/messages"):
        res = client.get(path)
        assert res.status_code == 404, path
        assert res.json()["error"] == "not_found"


def test_submit_and_summarize(client):
    event_id, (s1, s2) = _create(client)

    res = client.post(f"/events/{event_id}/availability", json={"user_name": "Alice", "responses": {s1: True, s2: False}})
    assert res.status_code == 200
    assert res.json()["notified"] is True
    client.post(f"/events/{event_id}/availability", json={"user_name": "Bob", "responses": {s1: True, s2: True}})

    summary = client.get(f"/events/{event_id}/summary").json()
    assert summary["respondent_count"] == 2
    assert summary["has_consensus"] is True
    assert summary["status"] == {"kind": "confirmed", "count": 2}
    assert summary["status_label"] == "2 confirmed"
    first, second = summary["slots"]
    assert first["slot"]["id"] == s1
    assert first["available_users"] == ["Alice", "Bob"]
    assert second["unavailable_users"] == ["Alice"]


def test_partial_submissions_merge(client):
    event_id, (s1, s2) = _create(client)

    client.post(f"/events/{event_id}/availability", json={"user_name": "Carol", "responses": {s1: True}})
    summary = client.get(f"/events/{event_id}/summary").json()
    assert summary["slots"][1]["unavailable_users"] == []

    client.post(f"/events/{event_id}/availability", json={"user_name": "Carol", "responses": {s2: False}})
    summary = client.get(f"/events/{event_id}/summary").json()
    assert summary["slots"][0]["available_users"] == ["Carol"]
    assert summary["slots"][1]["unavailable_users"] == ["Carol"]
    assert summary["respondent_count"] == 1


def test_submit_validation(client):
    event_id, (s1, _s2) = _create(client)

    res = client.post(f"/events/{event_id}/availability", json={"user_name": " ", "responses": {s1: True}})
    assert res.status_code == 422
    res = client.post(f"/events/{event_id}/availability", json={"user_name": "Alice", "responses": {}})
    assert res.status_code == 422
    res = client.post(f"/events/{event_id}/availability", json={"user_name": "Alice", "responses": {"bogus": True}})
    assert res.status_code == 422
    assert "bogus" in res.json()["detail"]
    res = client.post("/events/nope/availability", json={"user_name": "Alice", "responses": {s1: True}})
    assert res.status_code == 404


def test_list_events_with_status(client):
    empty_id, _ = _create(client)
    busy_id, (s1, _s2) = _create(client)
    client.post(f"/events/{busy_id}/availability", json={"user_name": "Alice", "responses": {s1: False}})

    res = client.get("/events", params={"creator_id": "user-1"})
    assert res.status_code == 200
    labels = {item["event"]["id"]: item["status_label"] for item in res.json()}
    assert labels[empty_id] == "No responses"
    assert labels[busy_id] == "1 responded"


def test_chat_messages(client):
    event_id, _ = _create(client)

    res = client.post(f"/events/{event_id}/messages", json={"user_name": " Alice ", "text": " hello "})
    assert res.status_code == 201
    first = res.json()["message"]
    assert first["user_name"] == "Alice"
    assert first["text"] == "hello"
    client.post(f"/events/{event_id}/messages", json={"user_name": "Bob", "text": "hi!"})

    data = client.get(f"/events/{event_id}/messages").json()
    assert [m["text"] for m in data["messages"]] == ["hello", "hi!"]

    newer = client.get(f"/events/{event_id}/messages", params={"after_id": first["id"]}).json()
    assert [m["text"] for m in newer["messages"]] == ["hi!"]
    assert newer["last_id"] == data["last_id"]


def test_chat_rejects_blank_input(client):
    event_id, _ = _create(client)

    res = client.post(f"/events/{event_id}/messages", json={"user_name": "Alice", "text": "   "})
    assert res.status_code == 422
    assert res.json()["error"] == "validation_error"
    res = client.post(f"/events/{event_id}/messages", json={"user_name": "", "text": "hello"})
    assert res.status_code == 422

    assert client.get(f"/events/{event_id}/messages").json()["messages"] == []


def test_message_paging_with_last_id(client):
    event_id, _ = _create(client)
    for i in range(5):
        client.post(f"/events/{event_id}/messages", json={"user_name": "Alice", "text": f"m{i}"})

    seen, cursor = [], 0
    while True:
        page = client.get(f"/events/{event_id}/messages", params={"after_id": cursor, "limit": 2}).json()
        if not page["messages"]:
            assert page["last_id"] == cursor
            break
        seen.extend(m["text"] for m in page["messages"])
        cursor = page["last_id"]

    assert seen == ["m0", "m1", "m2", "m3", "m4"]
