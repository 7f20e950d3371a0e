"""API tests for the notification endpoints (services mocked via dependency overrides)."""

import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from redis.exceptions import RedisError

from coachchat.chat.conversation import ConversationHub, RedeliveryGuard
from coachchat.config import get_settings
from coachchat.dependencies import get_conversation_hub
from coachchat.notifications.errors import NotFoundError, PushConfigurationError, ValidationError
from coachchat.notifications.filtering import SUPPRESSION_REASON
from coachchat.notifications.types import DeliveryOutcome, SendResult

ROUTER = "coachchat.notifications.router"

WEBHOOK_BODY = {
    "type": "message.new",
    "channel_id": "coaching-abc",
    "message": {"id": "m-100", "text": "hello", "user": {"id": "u-student", "name": "Sam"}},
    "members": [{"user_id": "u-student"}, {"user_id": "u-coach"}],
}


class TestRegister:
    async def test_created(self, client: AsyncClient, db_mock):
        with patch(f"{ROUTER}.register_token", AsyncMock(return_value="created")) as register:
            response = await client.post(
                "/api/v1/notifications/register",
                json={"userId": "u1", "token": "fcm-token", "platform": "web", "tokenType": "fcm"},
            )

        assert response.status_code == 200
        assert response.json() == {"success": True, "action": "created"}
        register.assert_awaited_once_with(db_mock, "u1", "fcm-token", "web", "fcm")
        db_mock.commit.assert_awaited_once()

    async def test_updated(self, client: AsyncClient):
        with patch(f"{ROUTER}.register_token", AsyncMock(return_value="updated")):
            response = await client.post(
                "/api/v1/notifications/register",
                json={"userId": "u1", "token": "expo-token", "platform": "ios", "tokenType": "expo"},
            )
        assert response.json()["action"] == "updated"

    async def test_missing_fields(self, client: AsyncClient):
        response = await client.post("/api/v1/notifications/register", json={"userId": "u1", "platform": "web"})
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Missing required fields")

    async def test_overlong_user_id_rejected(self, client: AsyncClient, db_mock):
        with patch(f"{ROUTER}.register_token", AsyncMock()) as register:
            response = await client.post(
                "/api/v1/notifications/register",
                json={"userId": "u" * 65, "token": "t", "platform": "web", "tokenType": "fcm"},
            )

        assert response.status_code == 400
        assert response.json() == {"detail": "userId must be at most 64 characters"}
        register.assert_not_awaited()
        db_mock.commit.assert_not_awaited()

    async def test_unknown_platform_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/notifications/register",
            json={"userId": "u1", "token": "t", "platform": "desktop", "tokenType": "fcm"},
        )
        assert response.status_code == 422


class TestSend:
    async def test_sent_with_summary(self, client: AsyncClient, orchestrator_mock):
        orchestrator_mock.send_notification.return_value = SendResult(
            status="sent",
            outcomes=[
                DeliveryOutcome("web", "sent"),
                DeliveryOutcome("ios", "failed", "DeviceNotRegistered"),
            ],
            total=2,
        )

        response = await client.post(
            "/api/v1/notifications/send",
            json={"userId": "u1", "type": "system", "title": "Hi", "body": "There", "forceSend": True},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "sent"
        assert body["results"] == {
            "total": 2,
            "successful": 1,
            "failed": 1,
            "details": [
                {"platform": "web", "status": "sent", "error": ""},
                {"platform": "ios", "status": "failed", "error": "DeviceNotRegistered"},
            ],
        }
        request = orchestrator_mock.send_notification.await_args.args[0]
        assert request.force_send is True
        assert request.data == {}

    async def test_suppressed(self, client: AsyncClient, orchestrator_mock):
        orchestrator_mock.send_notification.return_value = SendResult(status="suppressed", reason=SUPPRESSION_REASON)
        response = await client.post(
            "/api/v1/notifications/send",
            json={"userId": "u1", "type": "system", "title": "Hi", "body": "There"},
        )
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "status": "suppressed",
            "reason": SUPPRESSION_REASON,
            "results": None,
        }

    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (ValidationError("Missing required fields: title"), 400),
            (NotFoundError("No active notification tokens found for user"), 404),
            (PushConfigurationError("Push backend 'fcm' is not configured"), 503),
        ],
    )
    async def test_errors_mapped(self, client: AsyncClient, orchestrator_mock, error, status):
        orchestrator_mock.send_notification.side_effect = error
        response = await client.post("/api/v1/notifications/send", json={"userId": "u1"})
        assert response.status_code == status
        assert response.json() == {"detail": error.detail}


class TestWebhook:
    async def test_new_message_handled(self, client: AsyncClient, orchestrator_mock, redis_mock):
        response = await client.post("/api/v1/notifications/webhook", json=WEBHOOK_BODY)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        event = orchestrator_mock.handle_inbound_message_event.await_args.args[0]
        assert event.message.id == "m-100"
        assert event.member_ids == ["u-student", "u-coach"]
        assert redis_mock.set.await_args.args[0] == "chat:event:m-100"

    async def test_members_as_plain_ids(self, client: AsyncClient, orchestrator_mock):
        response = await client.post(
            "/api/v1/notifications/webhook", json={**WEBHOOK_BODY, "members": ["u-student", "u-coach"]}
        )

        assert response.status_code == 200
        event = orchestrator_mock.handle_inbound_message_event.await_args.args[0]
        assert event.member_ids == ["u-student", "u-coach"]

    async def test_unsupported_members_rejected(self, client: AsyncClient, orchestrator_mock):
        response = await client.post("/api/v1/notifications/webhook", json={**WEBHOOK_BODY, "members": [7]})
        assert response.status_code == 400
        orchestrator_mock.handle_inbound_message_event.assert_not_awaited()

    async def test_lifecycle_events_update_conversation_without_notifying(
        self, client: AsyncClient, orchestrator_mock, conversation_hub
    ):
        edited = {
            **WEBHOOK_BODY,
            "type": "message.updated",
            "message": {**WEBHOOK_BODY["message"], "text": "edited"},
        }

        await client.post("/api/v1/notifications/webhook", json=WEBHOOK_BODY)
        response = await client.post("/api/v1/notifications/webhook", json=edited)

        assert response.json() == {"success": True}
        assert orchestrator_mock.handle_inbound_message_event.await_count == 1
        state = conversation_hub.subscription_for("coaching-abc").state
        assert [m.text for m in state.messages] == ["edited"]

    async def test_non_message_events_ignored(
        self, client: AsyncClient, orchestrator_mock, redis_mock, conversation_hub
    ):
        response = await client.post("/api/v1/notifications/webhook", json={"type": "channel.created"})
        assert response.json() == {"success": True}
        orchestrator_mock.handle_inbound_message_event.assert_not_awaited()
        redis_mock.set.assert_not_awaited()
        assert conversation_hub.active_conversations == []

    async def test_redelivery_ignored(self, client: AsyncClient, orchestrator_mock, redis_mock):
        redis_mock.set.return_value = None
        response = await client.post("/api/v1/notifications/webhook", json=WEBHOOK_BODY)
        assert response.status_code == 200
        orchestrator_mock.handle_inbound_message_event.assert_not_awaited()

    async def test_malformed_message_event(self, client: AsyncClient, orchestrator_mock):
        response = await client.post("/api/v1/notifications/webhook", json={"type": "message.new"})
        assert response.status_code == 400
        orchestrator_mock.handle_inbound_message_event.assert_not_awaited()

    async def test_invalid_json(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/notifications/webhook",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    async def test_signature_checked_when_enabled(self, client: AsyncClient, chat_client_mock, monkeypatch):
        monkeypatch.setenv("COACHCHAT_CHAT_WEBHOOK_VERIFY_SIGNATURE", "true")
        get_settings.cache_clear()
        chat_client_mock.verify_webhook.return_value = False
        try:
            response = await client.post(
                "/api/v1/notifications/webhook",
                json=WEBHOOK_BODY,
                headers={"X-Signature": "bogus"},
            )
        finally:
            monkeypatch.delenv("COACHCHAT_CHAT_WEBHOOK_VERIFY_SIGNATURE")
            get_settings.cache_clear()

        assert response.status_code == 401
        raw, signature = chat_client_mock.verify_webhook.call_args.args
        assert signature == "bogus"
        assert json.loads(raw) == WEBHOOK_BODY

    async def test_in_memory_dedup_without_redis(self, app, client: AsyncClient, orchestrator_mock):
        hub = ConversationHub(
            orchestrator_mock.handle_inbound_message_event,
            RedeliveryGuard(600, redis_getter=lambda: None),
        )
        app.dependency_overrides[get_conversation_hub] = lambda: hub

        await client.post("/api/v1/notifications/webhook", json=WEBHOOK_BODY)
        await client.post("/api/v1/notifications/webhook", json=WEBHOOK_BODY)

        assert orchestrator_mock.handle_inbound_message_event.await_count == 1

    async def test_redis_failure_falls_back_to_memory(self, client: AsyncClient, orchestrator_mock, redis_mock):
        redis_mock.set.side_effect = RedisError("connection reset")

        first = await client.post("/api/v1/notifications/webhook", json=WEBHOOK_BODY)
        second = await client.post("/api/v1/notifications/webhook", json=WEBHOOK_BODY)

        assert first.status_code == second.status_code == 200
        assert orchestrator_mock.handle_inbound_message_event.await_count == 1


class TestTokensAndLogs:
    async def test_list_tokens(self, client: AsyncClient):
        tokens = [
            SimpleNamespace(id=1, platform="ios", token_type="expo", is_active=True, updated_at=None),
            SimpleNamespace(id=2, platform="web", token_type="fcm", is_active=True, updated_at=None),
        ]
        with patch(f"{ROUTER}.get_active_tokens", AsyncMock(return_value=tokens)):
            response = await client.get("/api/v1/notifications/tokens/u1")

        assert response.status_code == 200
        data = response.json()["tokens"]
        assert [t["platform"] for t in data] == ["ios", "web"]
        assert "token" not in data[0]

    async def test_deactivate(self, client: AsyncClient, db_mock):
        with patch(f"{ROUTER}.deactivate_token", AsyncMock(return_value=True)):
            response = await client.delete("/api/v1/notifications/tokens/u1/ios")
        assert response.status_code == 200
        db_mock.commit.assert_awaited_once()

    async def test_deactivate_missing(self, client: AsyncClient):
        with patch(f"{ROUTER}.deactivate_token", AsyncMock(return_value=False)):
            response = await client.delete("/api/v1/notifications/tokens/u1/ios")
        assert response.status_code == 404

    async def test_logs(self, client: AsyncClient):
        entry = SimpleNamespace(
            id=7,
            type="chat_message",
            title="New message from Sam",
            body="hello",
            status="suppressed",
            platform=None,
            error_message=None,
            sent_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )
        with patch(f"{ROUTER}.get_logs", AsyncMock(return_value=[entry])) as get_logs:
            response = await client.get("/api/v1/notifications/logs/u1?limit=5")

        assert response.status_code == 200
        assert response.json()["logs"][0]["status"] == "suppressed"
        assert get_logs.await_args.args[1:] == ("u1", 5)

