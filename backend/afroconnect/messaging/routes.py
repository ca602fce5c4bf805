"""Conversation, message and scheduled-message routes."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..auth.models import User
from ..database.base import get_db
from ..dependencies import get_current_user, get_relay
from ..schemas import (
    ConversationCreateRequest,
    MessageCreateRequest,
    ScheduledMessageCreateRequest,
    ScheduledMessageUpdateRequest,
)
from .models import ScheduledMessageStatus
from .scheduled_service import (
    cancel_scheduled_message,
    create_scheduled_message,
    get_user_scheduled_messages,
    serialize_scheduled_message,
    update_scheduled_message,
)
from .service import (
    get_conversation,
    get_conversation_messages,
    get_or_create_conversation,
    get_user_conversations,
    mark_messages_as_read,
    send_message,
    serialize_conversation,
    serialize_message,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["messaging"])


# ── Conversations ─────────────────────────────────────────────────────


@router.get("/conversations")
def list_conversations(
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    conversations = get_user_conversations(db, user.id, page, min(limit, 100))
    return JSONResponse({"conversations": [serialize_conversation(db, c) for c in conversations]})


@router.post("/conversations")
def start_conversation(
    body: ConversationCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    conversation = get_or_create_conversation(db, user.id, body.participant_id, body.consultation_id)
    db.commit()
    return JSONResponse({"ok": True, "conversation": serialize_conversation(db, conversation)})


@router.get("/conversations/{conversation_id}/messages")
def list_messages(
    conversation_id: UUID,
    page: int = 1,
    limit: int = 50,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    messages = get_conversation_messages(db, conversation_id, user.id, page, min(limit, 100))
    return JSONResponse({"messages": [serialize_message(m) for m in messages], "page": page})


@router.post("/conversations/{conversation_id}/messages", status_code=201)
async def post_message(
    conversation_id: UUID,
    body: MessageCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    relay=Depends(get_relay),
):
    def _send() -> dict:
        message = send_message(db, conversation_id, user.id, body.content, body.message_type, body.file_url, body.file_name)
        payload = serialize_message(message)
        db.commit()
        return payload

    payload = await run_in_threadpool(_send)
    await relay.emit_to_room(f"conversation_{conversation_id}", "new_message", payload)
    return JSONResponse({"ok": True, "message": payload}, status_code=201)


@router.put("/conversations/{conversation_id}/read")
async def read_conversation(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    relay=Depends(get_relay),
):
    def _mark() -> int:
        get_conversation(db, conversation_id, user.id)
        count = mark_messages_as_read(db, conversation_id, user.id)
        db.commit()
        return count

    count = await run_in_threadpool(_mark)
    await relay.emit_to_room(
        f"conversation_{conversation_id}",
        "messages_read",
        {"conversationId": str(conversation_id), "userId": str(user.id)},
    )
    return JSONResponse({"ok": True, "updated": count})


# ── Scheduled messages ────────────────────────────────────────────────


@router.get("/scheduled-messages")
def list_scheduled_messages(
    status: ScheduledMessageStatus | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    scheduled = get_user_scheduled_messages(db, user.id, status)
    return JSONResponse({"scheduledMessages": [serialize_scheduled_message(s) for s in scheduled]})


@router.post("/scheduled-messages", status_code=201)
def schedule_message(
    body: ScheduledMessageCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    scheduled = create_scheduled_message(
        db,
        user.id,
        body.conversation_id,
        body.content,
        body.scheduled_for,
        body.message_type,
        body.file_url,
        body.file_name,
    )
    db.commit()
    logger.info("Message %s scheduled for %s", scheduled.id, scheduled.scheduled_for)
    return JSONResponse({"ok": True, "scheduledMessage": serialize_scheduled_message(scheduled)}, status_code=201)


@router.put("/scheduled-messages/{scheduled_message_id}")
def edit_scheduled_message(
    scheduled_message_id: UUID,
    body: ScheduledMessageUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    scheduled = update_scheduled_message(
        db, scheduled_message_id, user.id, content=body.content, scheduled_for=body.scheduled_for
    )
    db.commit()
    return JSONResponse({"ok": True, "scheduledMessage": serialize_scheduled_message(scheduled)})


@router.delete("/scheduled-messages/{scheduled_message_id}")
def delete_scheduled_message(
    scheduled_message_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cancel_scheduled_message(db, scheduled_message_id, user.id)
    db.commit()
    return JSONResponse({"ok": True})
