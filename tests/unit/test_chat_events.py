"""Unit tests for webhook event parsing."""

import pytest

from coachchat.chat.events import ChatMessageEvent


def _webhook(**overrides) -> dict:
    body = {
        "type": "message.new",
        "cid": "messaging:coaching-abc",
        "channel_id": "coaching-abc",
        "message": {
            "id": "m1",
            "text": "hello coach",
            "user": {"id": "u-student", "name": "Sam"},
            "created_at": "2026-03-01T12:00:00.000000Z",
        },
        "members": [{"user_id": "u-student"}, {"user_id": "u-coach"}],
    }
    body.update(overrides)
    return body


class TestFromWebhook:
    def test_full_payload(self):
        event = ChatMessageEvent.from_webhook(_webhook())
        assert event.type == "message.new"
        assert event.is_new_message is True
        assert event.channel_id == "coaching-abc"
        assert event.message.id == "m1"
        assert event.message.text == "hello coach"
        assert event.message.sender.id == "u-student"
        assert event.message.sender.name == "Sam"
        assert event.message.created_at is not None
        assert event.member_ids == ["u-student", "u-coach"]

    def test_channel_id_from_cid(self):
        body = _webhook()
        del body["channel_id"]
        assert ChatMessageEvent.from_webhook(body).channel_id == "coaching-abc"

    def test_channel_id_from_channel_object(self):
        body = _webhook(channel={"id": "coaching-xyz"})
        del body["channel_id"]
        del body["cid"]
        assert ChatMessageEvent.from_webhook(body).channel_id == "coaching-xyz"

    def test_members_with_nested_user(self):
        body = _webhook(members=[{"user": {"id": "u-a"}}, {"user": {"id": "u-b"}}, {}])
        assert ChatMessageEvent.from_webhook(body).member_ids == ["u-a", "u-b"]

    def test_members_as_plain_ids(self):
        body = _webhook(members=["u-student", "u-coach", ""])
        assert ChatMessageEvent.from_webhook(body).member_ids == ["u-student", "u-coach"]

    def test_mixed_member_shapes(self):
        body = _webhook(members=["u-a", {"user_id": "u-b"}, {"user": {"id": "u-c"}}])
        assert ChatMessageEvent.from_webhook(body).member_ids == ["u-a", "u-b", "u-c"]

    @pytest.mark.parametrize("members", [[42], [None], [["u-a"]], "u-a"])
    def test_unsupported_members_rejected(self, members):
        with pytest.raises(ValueError, match="member"):
            ChatMessageEvent.from_webhook(_webhook(members=members))

    def test_sender_from_top_level_user(self):
        body = _webhook()
        del body["message"]["user"]
        body["user"] = {"id": "u-coach"}
        event = ChatMessageEvent.from_webhook(body)
        assert event.message.sender.id == "u-coach"
        assert event.message.sender.name == "u-coach"

    def test_updated_event_is_not_new(self):
        assert ChatMessageEvent.from_webhook(_webhook(type="message.updated")).is_new_message is False

    def test_missing_message(self):
        body = _webhook()
        del body["message"]
        with pytest.raises(ValueError, match="no message"):
            ChatMessageEvent.from_webhook(body)

    def test_missing_channel(self):
        body = _webhook()
        del body["channel_id"]
        del body["cid"]
        with pytest.raises(ValueError, match="no channel"):
            ChatMessageEvent.from_webhook(body)
