"""Tests for conversations and messages."""

import uuid

import pytest

from afroconnect.errors import NotFoundError, PermissionDenied, ValidationError
from afroconnect.messaging.models import Conversation, MessageType
from afroconnect.messaging.service import (
    MAX_MESSAGE_LENGTH,
    get_conversation,
    get_conversation_messages,
    get_or_create_conversation,
    get_user_conversations,
    mark_messages_as_read,
    send_message,
    serialize_conversation,
    serialize_message,
)


class TestGetOrCreateConversation:
    def test_creates_once_then_reuses(self, db_session, test_user, other_user):
        first = get_or_create_conversation(db_session, test_user.id, other_user.id)
        db_session.commit()
        second = get_or_create_conversation(db_session, other_user.id, test_user.id)
        assert first.id == second.id
        assert db_session.query(Conversation).count() == 1

    def test_cannot_talk_to_self(self, db_session, test_user):
        with pytest.raises(ValidationError):
            get_or_create_conversation(db_session, test_user.id, test_user.id)

    def test_unknown_user(self, db_session, test_user):
        with pytest.raises(NotFoundError):
            get_or_create_conversation(db_session, test_user.id, uuid.uuid4())


class TestSendMessage:
    def test_persists_and_bumps_last_message(self, db_session, conversation, test_user):
        message = send_message(db_session, conversation.id, test_user.id, "  Hello  ")
        db_session.commit()
        assert message.content == "Hello"
        assert message.message_type == MessageType.TEXT
        assert conversation.last_message_id == message.id

    def test_non_participant_rejected(self, db_session, conversation, user_factory):
        outsider = user_factory("x@example.com")
        with pytest.raises(PermissionDenied):
            send_message(db_session, conversation.id, outsider.id, "Hi")

    def test_unknown_conversation(self, db_session, test_user):
        with pytest.raises(NotFoundError):
            send_message(db_session, uuid.uuid4(), test_user.id, "Hi")

    @pytest.mark.parametrize("content", ["", "   ", "x" * (MAX_MESSAGE_LENGTH + 1)])
    def test_invalid_content(self, db_session, conversation, test_user, content):
        with pytest.raises(ValidationError):
            send_message(db_session, conversation.id, test_user.id, content)

    def test_file_message_without_text(self, db_session, conversation, test_user):
        message = send_message(
            db_session, conversation.id, test_user.id, "", "FILE", "https://files.example.com/a.pdf", "a.pdf"
        )
        assert message.message_type == MessageType.FILE

    def test_unknown_message_type(self, db_session, conversation, test_user):
        with pytest.raises(ValidationError):
            send_message(db_session, conversation.id, test_user.id, "Hi", "VIDEO")


class TestReadingMessages:
    def test_messages_in_chronological_order(self, db_session, conversation, test_user, other_user):
        for text in ("one", "two", "three"):
            send_message(db_session, conversation.id, test_user.id, text)
        db_session.commit()
        messages = get_conversation_messages(db_session, conversation.id, other_user.id)
        assert [m.content for m in messages] == ["one", "two", "three"]

    def test_mark_read_only_affects_other_senders(self, db_session, conversation, test_user, other_user):
        send_message(db_session, conversation.id, test_user.id, "from me")
        send_message(db_session, conversation.id, other_user.id, "from them")
        db_session.commit()
        assert mark_messages_as_read(db_session, conversation.id, test_user.id) == 1
        db_session.commit()
        assert mark_messages_as_read(db_session, conversation.id, test_user.id) == 0

    def test_user_conversations(self, db_session, conversation, test_user, user_factory):
        assert [c.id for c in get_user_conversations(db_session, test_user.id)] == [conversation.id]
        assert get_user_conversations(db_session, user_factory("nobody@example.com").id) == []

    def test_get_conversation_checks_participant(self, db_session, conversation, user_factory):
        with pytest.raises(PermissionDenied):
            get_conversation(db_session, conversation.id, user_factory("z@example.com").id)


class TestSerialization:
    def test_message_includes_sender(self, db_session, conversation, test_user):
        message = send_message(db_session, conversation.id, test_user.id, "Hi")
        data = serialize_message(message)
        assert data["conversationId"] == str(conversation.id)
        assert data["sender"]["displayName"] == "Amara Okafor"
        assert data["messageType"] == "TEXT"

    def test_conversation_includes_last_message(self, db_session, conversation, test_user):
        send_message(db_session, conversation.id, test_user.id, "Latest")
        db_session.commit()
        data = serialize_conversation(db_session, conversation)
        assert data["lastMessage"]["content"] == "Latest"
        assert len(data["participants"]) == 2
