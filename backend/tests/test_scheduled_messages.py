"""Tests for scheduled messages and the minute dispatcher."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from afroconnect.errors import NotFoundError, PermissionDenied, ValidationError
from afroconnect.messaging.jobs import dispatch_scheduled_messages, send_due_scheduled_messages
from afroconnect.messaging.models import Message, ScheduledMessage, ScheduledMessageStatus
from afroconnect.messaging.scheduled_service import (
    cancel_scheduled_message,
    create_scheduled_message,
    get_user_scheduled_messages,
    serialize_scheduled_message,
    update_scheduled_message,
)


def _queue(db, conversation, sender, content, scheduled_for):
    scheduled = ScheduledMessage(
        sender_id=sender.id,
        conversation_id=conversation.id,
        content=content,
        scheduled_for=scheduled_for,
        status=ScheduledMessageStatus.PENDING,
    )
    db.add(scheduled)
    db.commit()
    return scheduled


class TestCreateScheduledMessage:
    def test_creates_pending(self, db_session, conversation, test_user, now):
        scheduled = create_scheduled_message(
            db_session, test_user.id, conversation.id, " Hello later ", now + timedelta(hours=1), now=now
        )
        db_session.commit()
        assert scheduled.status == ScheduledMessageStatus.PENDING
        assert scheduled.content == "Hello later"

    def test_rejects_past_time(self, db_session, conversation, test_user, now):
        with pytest.raises(ValidationError):
            create_scheduled_message(db_session, test_user.id, conversation.id, "Hi", now - timedelta(minutes=1), now=now)

    def test_rejects_non_participant(self, db_session, conversation, user_factory, now):
        outsider = user_factory("outsider@example.com")
        with pytest.raises(PermissionDenied):
            create_scheduled_message(db_session, outsider.id, conversation.id, "Hi", now + timedelta(hours=1), now=now)

    def test_rejects_empty_content(self, db_session, conversation, test_user, now):
        with pytest.raises(ValidationError):
            create_scheduled_message(db_session, test_user.id, conversation.id, "   ", now + timedelta(hours=1), now=now)


class TestManageScheduledMessages:
    def test_cancel_then_cannot_cancel_again(self, db_session, conversation, test_user, now):
        scheduled = _queue(db_session, conversation, test_user, "Hi", now + timedelta(hours=1))
        cancel_scheduled_message(db_session, scheduled.id, test_user.id)
        db_session.commit()
        assert scheduled.status == ScheduledMessageStatus.CANCELLED
        with pytest.raises(NotFoundError):
            cancel_scheduled_message(db_session, scheduled.id, test_user.id)

    def test_other_user_cannot_cancel(self, db_session, conversation, test_user, other_user, now):
        scheduled = _queue(db_session, conversation, test_user, "Hi", now + timedelta(hours=1))
        with pytest.raises(NotFoundError):
            cancel_scheduled_message(db_session, scheduled.id, other_user.id)

    def test_update_content_and_time(self, db_session, conversation, test_user, now):
        scheduled = _queue(db_session, conversation, test_user, "Hi", now + timedelta(hours=1))
        update_scheduled_message(
            db_session, scheduled.id, test_user.id, content="Updated", scheduled_for=now + timedelta(hours=3), now=now
        )
        db_session.commit()
        data = serialize_scheduled_message(scheduled)
        assert data["content"] == "Updated"
        assert data["scheduledFor"] == (now + timedelta(hours=3)).isoformat()

    def test_list_filters_by_status(self, db_session, conversation, test_user, now):
        keep = _queue(db_session, conversation, test_user, "A", now + timedelta(hours=1))
        drop = _queue(db_session, conversation, test_user, "B", now + timedelta(hours=2))
        cancel_scheduled_message(db_session, drop.id, test_user.id)
        db_session.commit()
        pending = get_user_scheduled_messages(db_session, test_user.id, ScheduledMessageStatus.PENDING)
        assert [s.id for s in pending] == [keep.id]
        assert len(get_user_scheduled_messages(db_session, test_user.id)) == 2


class TestSendDueScheduledMessages:
    def test_past_due_sent_exactly_once(self, db_session, conversation, test_user, now):
        scheduled = _queue(db_session, conversation, test_user, "Due", now - timedelta(minutes=5))

        sent = send_due_scheduled_messages(db_session, now=now)
        assert len(sent) == 1
        assert sent[0]["content"] == "Due"
        assert sent[0]["sender"]["id"] == str(test_user.id)

        assert send_due_scheduled_messages(db_session, now=now + timedelta(minutes=1)) == []
        db_session.refresh(scheduled)
        assert scheduled.status == ScheduledMessageStatus.SENT
        assert scheduled.sent_at is not None
        assert db_session.query(Message).count() == 1

    def test_future_message_untouched(self, db_session, conversation, test_user, now):
        scheduled = _queue(db_session, conversation, test_user, "Later", now + timedelta(minutes=5))
        assert send_due_scheduled_messages(db_session, now=now) == []
        db_session.refresh(scheduled)
        assert scheduled.status == ScheduledMessageStatus.PENDING
        assert db_session.query(Message).count() == 0

    def test_failure_is_isolated_and_marked_failed(self, db_session, conversation, test_user, user_factory, now):
        outsider = user_factory("left@example.com")
        broken = ScheduledMessage(
            sender_id=outsider.id,
            conversation_id=conversation.id,
            content="Not a participant any more",
            scheduled_for=now - timedelta(minutes=10),
            status=ScheduledMessageStatus.PENDING,
        )
        db_session.add(broken)
        db_session.commit()
        ok = _queue(db_session, conversation, test_user, "Fine", now - timedelta(minutes=5))

        sent = send_due_scheduled_messages(db_session, now=now)

        assert [p["content"] for p in sent] == ["Fine"]
        db_session.refresh(broken)
        db_session.refresh(ok)
        assert broken.status == ScheduledMessageStatus.FAILED
        assert ok.status == ScheduledMessageStatus.SENT

    def test_dispatch_emits_to_conversation_room(self, db_session, conversation, test_user, now):
        _queue(db_session, conversation, test_user, "Ping", now - timedelta(minutes=1))
        relay = AsyncMock()

        count = asyncio.run(dispatch_scheduled_messages(db_session, relay=relay, now=now))

        assert count == 1
        relay.emit_to_room.assert_awaited_once()
        room, event, payload = relay.emit_to_room.await_args.args
        assert room == f"conversation_{conversation.id}"
        assert event == "new_message"
        assert payload["content"] == "Ping"

    def test_dispatch_without_relay_still_sends(self, db_session, conversation, test_user, now):
        _queue(db_session, conversation, test_user, "Quiet", now - timedelta(minutes=1))
        assert asyncio.run(dispatch_scheduled_messages(db_session, now=now)) == 1
