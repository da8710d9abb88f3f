from __future__ import annotations

import time

from sse_utils import read_chat_stream


def _login(client, headers, **body):
    response = client.post("/session", json={"email": "pat@example.com", "name": "Pat", **body}, headers=headers)
    assert response.status_code == 200
    return response.json()


def test_chat_requires_authorization_and_a_session(client, auth_headers):
    assert client.get("/chat/messages").status_code == 401
    assert client.get("/chat/messages", headers=auth_headers("nobody")).status_code == 401


def test_login_greets_and_lists_menu(client, auth_headers):
    payload = _login(client, auth_headers("user-pat"))

    assert payload["session_key"].startswith("sess_")
    assert len(payload["messages"]) == 1
    greeting = payload["messages"][0]
    assert greeting["type"] == "options"
    assert greeting["content"].startswith("Welcome back, Pat!")
    assert "View chat history" in greeting["options"]
    assert payload["modes"] == {"active": "idle", "history_panel_open": False}


def test_session_key_restores_login(client, auth_headers):
    headers = auth_headers("user-restore")
    first = _login(client, headers)
    restored = client.post("/session", json={"session_key": first["session_key"]}, headers=headers)
    assert restored.status_code == 200
    assert restored.json()["messages"][0]["content"].startswith("Welcome back, Pat!")

    stolen = client.post("/session", json={"session_key": first["session_key"]}, headers=auth_headers("intruder"))
    assert stolen.status_code == 401


def test_headache_message_opens_symptom_checker(client, auth_headers):
    headers = auth_headers("user-a")
    _login(client, headers)

    response = client.post("/chat/message", json={"message": "I have a headache"}, headers=headers)
    assert response.status_code == 200
    payload = response.json()
    assert [message["type"] for message in payload["appended"]] == ["symptom-checker"]
    assert "Headache" in payload["appended"][0]["options"]
    assert payload["modes"]["active"] == "symptom-checker"

    messages = client.get("/chat/messages", headers=headers).json()["messages"]
    assert messages[-2]["content"] == "I have a headache"
    assert messages[-2]["sender"] == "user"


def test_unmatched_message_without_model_gets_apology(client, auth_headers):
    headers = auth_headers("user-apology")
    _login(client, headers)

    payload = client.post("/chat/message", json={"message": "Tell me a joke"}, headers=headers).json()
    assert payload["appended"][0]["content"].startswith("I'm sorry")


def test_empty_message_is_rejected(client, auth_headers):
    headers = auth_headers("user-empty")
    _login(client, headers)
    assert client.post("/chat/message", json={"message": "   "}, headers=headers).status_code == 422
    assert client.post("/chat/stream", json={"message": ""}, headers=headers).status_code == 422


def test_menu_option_and_cancel(client, auth_headers):
    headers = auth_headers("user-b")
    _login(client, headers)

    payload = client.post("/chat/option", json={"option": "Get health tips"}, headers=headers).json()
    assert payload["appended"] == []
    assert payload["modes"]["active"] == "health-tips"

    assert client.post("/modes/reminder/cancel", headers=headers).status_code == 409
    assert client.post("/modes/teleport/cancel", headers=headers).status_code == 404
    cancelled = client.post("/modes/health-tips/cancel", headers=headers)
    assert cancelled.json() == {"active": "idle", "history_panel_open": False}


def test_reminder_form_flow(client, auth_headers):
    headers = auth_headers("user-c")
    _login(client, headers)
    client.post("/chat/option", json={"option": "Set medication reminder"}, headers=headers)

    invalid = client.post("/modes/reminder/complete", json={"medication_name": "", "time": "08:00"}, headers=headers)
    assert invalid.status_code == 422
    bad_time = client.post("/modes/reminder/complete", json={"medication_name": "Metformin", "time": "8am"}, headers=headers)
    assert bad_time.status_code == 422

    response = client.post("/modes/reminder/complete", json={"medication_name": "Metformin", "time": "08:00"}, headers=headers)
    assert response.status_code == 200
    payload = response.json()
    assert len(payload["appended"]) == 1
    assert "Metformin" in payload["appended"][0]["content"]
    assert "08:00" in payload["appended"][0]["content"]
    assert payload["modes"]["active"] == "idle"

    profile = client.get("/profile", headers=headers).json()
    reminders = profile["medical_info"]["reminders"]
    assert [(item["medication_name"], item["time"], item["active"]) for item in reminders] == [("Metformin", "08:00", True)]


def test_completing_inactive_form_conflicts(client, auth_headers):
    headers = auth_headers("user-conflict")
    _login(client, headers)
    response = client.post("/modes/appointment/complete", json={"slot_id": 1}, headers=headers)
    assert response.status_code == 409


def test_nearby_provider_selection_feeds_appointment(client, auth_headers):
    headers = auth_headers("user-d")
    _login(client, headers)
    client.post("/chat/option", json={"option": "Find nearby doctors"}, headers=headers)

    nearby = client.get("/providers/nearby", params={"lat": 40.44, "lng": -79.99}, headers=headers).json()
    assert nearby["using_live_data"] is False
    provider = nearby["providers"][1]

    selected = client.post("/modes/nearby-provider/select", json=provider, headers=headers).json()
    assert selected["appended"][0]["content"].startswith(f"You selected {provider['name']}")
    assert selected["modes"]["active"] == "appointment"
    assert client.get("/modes", headers=headers).json()["selected_provider"]["name"] == provider["name"]

    booked = client.post(
        "/modes/appointment/complete",
        json={"date": "2025-05-04", "time": "09:30 AM", "purpose": "Follow-up"},
        headers=headers,
    ).json()
    assert f"Doctor: {provider['name']}" in booked["appended"][0]["content"]
    assert client.get("/modes", headers=headers).json()["selected_provider"] is None


def test_appointment_form_requires_slot_or_datetime(client, auth_headers):
    headers = auth_headers("user-slot")
    _login(client, headers)
    client.post("/chat/option", json={"option": "Schedule appointment"}, headers=headers)
    assert client.post("/modes/appointment/complete", json={"date": "2025-05-02"}, headers=headers).status_code == 422


def test_chat_stream_emits_messages_then_mode(client, auth_headers):
    headers = auth_headers("user-sse")
    _login(client, headers)

    response = client.post("/chat/stream", json={"message": "I need to schedule an appointment"}, headers=headers)
    assert response.status_code == 200
    frames = read_chat_stream(response.text)

    assert [name for name, _ in frames] == ["message", "mode"]
    assert frames[0][1]["type"] == "appointment"
    assert frames[1][1]["active"] == "appointment"


def test_suggest_reply_without_model_is_empty(client, auth_headers):
    headers = auth_headers("user-suggest")
    _login(client, headers)
    assert client.post("/chat/suggest-reply", headers=headers).json() == {"suggestion": ""}


def test_history_is_saved_listed_and_loaded(client, auth_headers, monkeypatch):
    monkeypatch.setenv("ASSISTANT_HISTORY_DEBOUNCE_SECONDS", "0.3")
    headers = auth_headers("user-e")
    _login(client, headers)
    for text in ("How much water should I drink", "What about during exercise", "Thanks for that"):
        client.post("/chat/message", json={"message": text}, headers=headers)

    items = []
    for _ in range(60):
        items = client.get("/history", headers=headers).json()["items"]
        if items:
            break
        time.sleep(0.05)
    assert len(items) == 1
    assert items[0]["topic"] == "How much water should I..."

    opened = client.post("/history/open", headers=headers).json()
    assert opened["panel_open"] is True

    assert client.post("/history/missing/load", headers=headers).status_code == 404
    loaded = client.post(f"/history/{items[0]['id']}/load", headers=headers).json()
    assert loaded["message"]["content"].startswith("I've loaded your previous conversation")
    assert loaded["modes"]["history_panel_open"] is False
    assert loaded["messages"][-1]["id"] == loaded["message"]["id"]


def test_logout_resets_and_requires_new_login(client, auth_headers):
    headers = auth_headers("user-f")
    _login(client, headers)
    client.post("/chat/message", json={"message": "Tell me about vitamins"}, headers=headers)

    assert client.delete("/session", headers=headers).json() == {"ok": True}
    assert client.get("/chat/messages", headers=headers).status_code == 401
    assert client.delete("/session", headers=headers).status_code == 401

    history = client.get("/profile", headers=headers).json()["ai_personalization"]["chat_history"]
    assert len(history) == 1


def test_profile_update_merges_sections(client, auth_headers):
    headers = auth_headers("user-g")
    _login(client, headers)

    response = client.post(
        "/profile",
        json={"basic_info": {"contact_number": "555-0100"}, "medical_info": {"blood_group": "B+"}},
        headers=headers,
    )
    assert response.json() == {"ok": True, "sections": ["basic_info", "medical_info"]}

    profile = client.get("/profile", headers=headers).json()
    assert profile["basic_info"]["contact_number"] == "555-0100"
    assert profile["basic_info"]["full_name"] == "Pat"
    assert profile["medical_info"]["blood_group"] == "B+"

    assert client.post("/profile", json={"billing": {}}, headers=headers).status_code == 400
    bad = client.post("/profile", json={"medical_info": {"reminders": [{"medication_name": "X", "time": "noon"}]}}, headers=headers)
    assert bad.status_code == 422


def test_profile_is_empty_before_first_login(client, auth_headers):
    assert client.get("/profile", headers=auth_headers("brand-new")).json() == {}


def test_health_data_and_notifications(client, auth_headers):
    data = client.get("/health-data").json()
    assert {symptom["label"] for symptom in data["symptoms"]} >= {"Headache", "Fever"}
    assert len(data["appointment_slots"]) == 8
    assert data["menu_options"][-1] == "View chat history"

    assert client.get("/notifications", headers=auth_headers("user-h")).json() == {"items": []}
