"""Integration tests for notification settings and the reminder endpoints."""
from datetime import timedelta

from app.utils.dates import utcnow


def test_get_settings_masks_credentials(client, auth_headers):
    response = client.get("/api/v1/users/me/notifications", headers=auth_headers)

    assert response.status_code == 200
    settings = response.json()["settings"]
    assert settings["whatsapp_enabled"] is True
    assert settings["whatsapp_phone_number"] == "*******4567"
    assert settings["has_api_key"] is True
    assert "whatsapp_api_key" not in settings


def test_enable_without_api_key_is_rejected(client, auth_headers):
    response = client.put(
        "/api/v1/users/me/notifications",
        json={"whatsapp_api_key": None},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["errors"] == ["whatsapp_enabled: WhatsApp needs both a phone number and an API key"]

    response = client.put(
        "/api/v1/users/me/notifications",
        json={"whatsapp_enabled": False, "whatsapp_api_key": None},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["settings"]["has_api_key"] is False


def test_update_rejects_short_phone(client, auth_headers):
    response = client.put(
        "/api/v1/users/me/notifications",
        json={"whatsapp_phone_number": "12345"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["errors"] == ["whatsapp_phone_number: Phone number too short"]


def test_validate_whatsapp_saves_credentials(client, auth_headers, fake_transport):
    response = client.post(
        "/api/v1/users/me/notifications/validate-whatsapp",
        json={"phone_number": "+44 7700 900123", "api_key": "newkey"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["settings"]["whatsapp_phone_number"].endswith("0123")
    assert fake_transport.sent[0]["phone_number"] == "447700900123"
    assert fake_transport.sent[0]["api_key"] == "newkey"


def test_validate_whatsapp_failure_keeps_old_key(client, auth_headers, fake_transport):
    fake_transport.succeed = False
    response = client.post(
        "/api/v1/users/me/notifications/validate-whatsapp",
        json={"phone_number": "+44 7700 900123", "api_key": "badkey"},
        headers=auth_headers,
    )

    body = response.json()
    assert body["success"] is False
    assert body["error"] == "HTTP 500: Internal Server Error"

    response = client.get("/api/v1/users/me/notifications", headers=auth_headers)
    assert response.json()["settings"]["whatsapp_phone_number"].endswith("4567")


def test_setup_instructions(client, auth_headers):
    response = client.get("/api/v1/users/me/notifications/setup-instructions", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["service"] == "CallMeBot"


def test_reminder_status(client, auth_headers):
    client.post(
        "/api/v1/todo",
        json={"title": "Check deliveries", "reminder_date": (utcnow() + timedelta(hours=1)).isoformat()},
        headers=auth_headers,
    )

    response = client.get("/api/v1/reminders/status", headers=auth_headers)

    assert response.status_code == 200
    status = response.json()["status"]
    assert status["pending_reminders"] == 1
    assert status["last_check"] is None


def test_send_test_reminder(client, auth_headers, fake_transport):
    response = client.post("/api/v1/reminders/test", json={}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["result"]["serviceUsed"] == "whatsapp"
    assert "TEST REMINDER" in fake_transport.sent[0]["message"]

    # The throwaway todo is removed after a successful send
    response = client.get("/api/v1/todo", headers=auth_headers)
    assert response.json()["count"] == 0


def test_send_test_reminder_for_unknown_todo(client, auth_headers):
    response = client.post(
        "/api/v1/reminders/test",
        json={"todo_id": "00000000-0000-0000-0000-000000000000"},
        headers=auth_headers,
    )
    assert response.status_code == 404
