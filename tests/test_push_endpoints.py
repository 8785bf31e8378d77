"""API tests for device registration and notification endpoints."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from app.config import settings
from app.services.push.store import SubscriptionStore
from app.tasks.notifications import dispatch_notification


# User agent public key and auth secret from the RFC 8291 example
P256DH = "BCVxsr7N_eNgVRqvHtD0zTZsEc6-VV-JvLexhqUzORcxaOzi6-AYWXvTBHm4bjyPjs7Vd8pZGH6SRpkNtoIAiw4"
AUTH = "tBHItJI5svbpez7KI4CCXg"

SUBSCRIPTION = {
    "endpoint": "https://fcm.googleapis.com/fcm/send/device-1",
    "keys": {"p256dh": P256DH, "auth": AUTH},
}


@pytest.fixture()
def vapid(monkeypatch):
    monkeypatch.setattr(settings, "VAPID_PUBLIC_KEY", "BPublicKeyForBrowsersToSubscribeWith")
    monkeypatch.setattr(settings, "VAPID_PRIVATE_KEY", "very-secret-private-key")
    monkeypatch.setattr(settings, "VAPID_SUBJECT", "mailto:admin@example.com")


@pytest.fixture()
def queued():
    with patch.object(dispatch_notification, "delay", return_value=MagicMock(id="task-123")) as delay:
        yield delay


def test_requests_without_token_are_rejected(client, club):
    response = client.post("/api/v1/push/subscribe", json=SUBSCRIPTION)

    assert response.status_code == 401


def test_inactive_member_cannot_authenticate(client, club, auth_headers):
    response = client.get("/api/v1/push/status", headers=auth_headers(club["inactive"]))

    assert response.status_code == 401


def test_vapid_public_key(client, vapid):
    response = client.get("/api/v1/push/vapid-public-key")

    assert response.status_code == 200
    assert response.json() == {"publicKey": "BPublicKeyForBrowsersToSubscribeWith"}


def test_vapid_public_key_unconfigured(client, monkeypatch):
    monkeypatch.setattr(settings, "VAPID_PUBLIC_KEY", None)

    response = client.get("/api/v1/push/vapid-public-key")

    assert response.status_code == 503


def test_subscribe_twice_keeps_one_row(client, club, auth_headers, db_session):
    headers = {**auth_headers(club["athlete"]), "User-Agent": "Mozilla/5.0 (Android 14)"}

    first = client.post("/api/v1/push/subscribe", json=SUBSCRIPTION, headers=headers)
    second = client.post("/api/v1/push/subscribe", json=SUBSCRIPTION, headers=headers)

    assert first.status_code == 200
    assert first.json()["success"] is True
    assert first.json()["subscriptionId"] == second.json()["subscriptionId"]
    rows = SubscriptionStore(db_session).list_for_member(4)
    assert len(rows) == 1
    assert rows[0].user_agent == "Mozilla/5.0 (Android 14)"


def test_subscribe_requires_keys(client, club, auth_headers):
    response = client.post(
        "/api/v1/push/subscribe",
        json={"endpoint": SUBSCRIPTION["endpoint"], "keys": {"p256dh": "abc"}},
        headers=auth_headers(club["athlete"]),
    )

    assert response.status_code == 422


def test_status_reflects_registered_devices(client, club, auth_headers, add_subscription):
    headers = auth_headers(club["coach"])
    assert client.get("/api/v1/push/status", headers=headers).json() == {"enabled": False, "subscriptions": 0}

    add_subscription(3, "https://push.example/coach-phone")
    add_subscription(3, "https://push.example/coach-tablet")

    assert client.get("/api/v1/push/status", headers=headers).json() == {"enabled": True, "subscriptions": 2}


def test_unsubscribe_only_touches_own_devices(client, club, auth_headers, add_subscription, db_session):
    add_subscription(1, "https://push.example/admin-phone")

    foreign = client.request(
        "DELETE",
        "/api/v1/push/unsubscribe",
        json={"endpoint": "https://push.example/admin-phone"},
        headers=auth_headers(club["athlete"]),
    )
    own = client.request(
        "DELETE",
        "/api/v1/push/unsubscribe",
        json={"endpoint": "https://push.example/admin-phone"},
        headers=auth_headers(club["admin"]),
    )
    again = client.request(
        "DELETE",
        "/api/v1/push/unsubscribe",
        json={"endpoint": "https://push.example/admin-phone"},
        headers=auth_headers(club["admin"]),
    )

    assert foreign.json() == {"success": True, "removed": 0}
    assert own.json() == {"success": True, "removed": 1}
    assert again.json() == {"success": True, "removed": 0}
    assert SubscriptionStore(db_session).count_for_member(1) == 0


def test_test_notification_is_queued_for_caller(client, club, auth_headers, queued):
    response = client.post("/api/v1/push/test", headers=auth_headers(club["athlete"]))

    assert response.status_code == 202
    assert response.json() == {"status": "queued", "taskId": "task-123"}
    target, notification, channel = queued.call_args.args
    assert target == {"kind": "members", "member_ids": [4], "roles": [], "team_ids": []}
    assert notification["title"] == settings.PUSH_DEFAULT_TITLE
    assert channel is None


def test_test_notification_survives_broker_outage(client, club, auth_headers):
    with patch.object(dispatch_notification, "delay", side_effect=ConnectionError("broker unreachable")):
        response = client.post("/api/v1/push/test", headers=auth_headers(club["athlete"]))

    assert response.status_code == 202
    assert response.json()["taskId"] is None


def test_broadcast_requires_staff(client, club, auth_headers, queued):
    response = client.post(
        "/api/v1/push/broadcast",
        json={"target": {"kind": "all_staff"}, "notification": {"title": "Hi"}},
        headers=auth_headers(club["athlete"]),
    )

    assert response.status_code == 403
    queued.assert_not_called()


def test_broadcast_by_role(client, club, auth_headers, queued):
    response = client.post(
        "/api/v1/push/broadcast",
        json={
            "target": {"kind": "roles", "roles": ["Trainer", "coach"]},
            "notification": {"title": "Staff meeting", "body": "Tonight 20:00", "url": "/meetings/3"},
            "channel": "hosted",
        },
        headers=auth_headers(club["orga"]),
    )

    assert response.status_code == 202
    target, notification, channel = queued.call_args.args
    assert target["kind"] == "roles"
    assert target["roles"] == ["trainer", "coach"]
    assert notification == {"title": "Staff meeting", "body": "Tonight 20:00", "url": "/meetings/3"}
    assert channel == "hosted"


@pytest.mark.parametrize(
    "body",
    [
        {"target": {"kind": "roles", "roles": []}, "notification": {"title": "Hi"}},
        {"target": {"kind": "everyone"}, "notification": {"title": "Hi"}},
        {"target": {"kind": "members", "member_ids": [1]}, "notification": {"title": ""}},
        {"target": {"kind": "members", "member_ids": [1]}, "notification": {"title": "Hi"}, "channel": "sms"},
        {"target": {"kind": "members", "member_ids": [1]}, "notification": {"title": "   "}},
    ],
)
def test_broadcast_rejects_malformed_requests(client, club, auth_headers, queued, body):
    response = client.post("/api/v1/push/broadcast", json=body, headers=auth_headers(club["admin"]))

    assert response.status_code == 422
    queued.assert_not_called()


def test_config_hides_secrets(client, club, auth_headers, vapid):
    response = client.get("/api/v1/push/config", headers=auth_headers(club["admin"]))

    assert response.status_code == 200
    data = response.json()
    assert data["directEnabled"] is True
    assert data["publicKeyPreview"] == "BPublicKeyForBrowser..."
    assert "very-secret-private-key" not in response.text


def test_config_requires_staff(client, club, auth_headers):
    response = client.get("/api/v1/push/config", headers=auth_headers(club["junior"]))

    assert response.status_code == 403


@pytest.mark.parametrize(
    "keys",
    [
        {"p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA", "auth": AUTH},
        {"p256dh": P256DH, "auth": "auth-secret"},
        {"p256dh": "not base64 at all!", "auth": AUTH},
        {"p256dh": P256DH, "auth": AUTH + AUTH},
    ],
)
def test_subscribe_rejects_malformed_key_material(client, club, auth_headers, db_session, keys):
    response = client.post(
        "/api/v1/push/subscribe",
        json={"endpoint": SUBSCRIPTION["endpoint"], "keys": keys},
        headers=auth_headers(club["athlete"]),
    )

    assert response.status_code == 422
    assert SubscriptionStore(db_session).count_for_member(4) == 0


def test_subscribe_accepts_padded_and_standard_base64_keys(client, club, auth_headers):
    standard = P256DH.replace("-", "+").replace("_", "/") + "="
    response = client.post(
        "/api/v1/push/subscribe",
        json={"endpoint": SUBSCRIPTION["endpoint"], "keys": {"p256dh": standard, "auth": AUTH + "=="}},
        headers=auth_headers(club["athlete"]),
    )

    assert response.status_code == 200


def test_resubscribe_moves_rotated_endpoint_onto_existing_row(client, club, auth_headers, db_session):
    created = client.post("/api/v1/push/subscribe", json=SUBSCRIPTION, headers=auth_headers(club["coach"]))
    original = SubscriptionStore(db_session).list_for_member(3)[0]
    created_at = original.created_at

    response = client.post(
        "/api/v1/push/resubscribe",
        json={
            "oldEndpoint": SUBSCRIPTION["endpoint"],
            "endpoint": "https://fcm.googleapis.com/fcm/send/device-1-rotated",
            "keys": {"p256dh": P256DH, "auth": "AAAAAAAAAAAAAAAAAAAAAA"},
        },
    )

    assert response.status_code == 200
    assert response.json()["subscriptionId"] == created.json()["subscriptionId"]
    db_session.expire_all()
    rows = SubscriptionStore(db_session).list_for_member(3)
    assert len(rows) == 1
    assert rows[0].endpoint == "https://fcm.googleapis.com/fcm/send/device-1-rotated"
    assert rows[0].auth == "AAAAAAAAAAAAAAAAAAAAAA"
    assert rows[0].created_at == created_at


def test_resubscribe_unknown_endpoint_is_not_found(client, club):
    response = client.post(
        "/api/v1/push/resubscribe",
        json={
            "oldEndpoint": "https://push.example/never-registered",
            "endpoint": "https://push.example/new",
            "keys": {"p256dh": P256DH, "auth": AUTH},
        },
    )

    assert response.status_code == 404


def test_resubscribe_validates_keys(client, club, add_subscription):
    add_subscription(3, "https://push.example/coach")

    response = client.post(
        "/api/v1/push/resubscribe",
        json={"oldEndpoint": "https://push.example/coach", "endpoint": "https://push.example/new", "keys": {"p256dh": "x", "auth": AUTH}},
    )

    assert response.status_code == 422
