"""Real-time chat relay over WebSockets.

Clients exchange JSON frames ``{"event": <name>, "data": <payload>}``.
The relay keeps, per process, which socket belongs to which user and which
rooms (``user_<id>``, ``conversation_<id>``) each socket joined. Message
persistence goes through the messaging service; the relay only fans out.
"""

import json
import logging
import uuid

from fastapi import WebSocket
from starlette.concurrency import run_in_threadpool

from ..database.base import SessionLocal
from ..errors import ServiceError
from ..messaging.service import mark_messages_as_read, send_message, serialize_message
from ..timeutils import to_uuid, utcnow
from .presence import InMemoryPresenceStore, PresenceStore

logger = logging.getLogger(__name__)


def user_room(user_id: str) -> str:
    return f"user_{user_id}"


def conversation_room(conversation_id: str) -> str:
    return f"conversation_{conversation_id}"


class ChatRelay:
    """Socket registry, rooms and event handlers for the chat WebSocket."""

    def __init__(self, presence: PresenceStore | None = None, session_factory=None) -> None:
        self.presence = presence or InMemoryPresenceStore()
        self._session_factory = session_factory or SessionLocal
        self._sockets: dict[str, WebSocket] = {}
        self._socket_users: dict[str, str] = {}
        self._user_sockets: dict[str, set[str]] = {}
        self._rooms: dict[str, set[str]] = {}
        self._handlers = {
            "join": self._on_join,
            "join_user": self._on_join,
            "user_online": self._on_join,
            "join_conversation": self._on_join_conversation,
            "leave_conversation": self._on_leave_conversation,
            "send_message": self._on_send_message,
            "mark_read": self._on_mark_read,
            "typing_start": self._on_typing_start,
            "typing_stop": self._on_typing_stop,
            "get_online_users": self._on_get_online_users,
        }

    # ── Connection lifecycle ──────────────────────────────────────────

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        sid = uuid.uuid4().hex
        self._sockets[sid] = websocket
        logger.debug("Socket %s connected", sid)
        return sid

    async def disconnect(self, sid: str) -> None:
        self._sockets.pop(sid, None)
        for members in self._rooms.values():
            members.discard(sid)
        self._rooms = {room: members for room, members in self._rooms.items() if members}

        user_id = self._socket_users.pop(sid, None)
        if user_id is None:
            logger.debug("Anonymous socket %s disconnected", sid)
            return

        sockets = self._user_sockets.get(user_id, set())
        sockets.discard(sid)
        if not sockets:
            self._user_sockets.pop(user_id, None)
        self.presence.remove(user_id)

        if not self.presence.is_online(user_id):
            await self.broadcast("user_status_change", {"userId": user_id, "isOnline": False}, skip_sid=sid)
            await self.broadcast("online_users", self.presence.online_users())
        logger.info("User %s disconnected (remaining sockets: %d)", user_id, len(sockets))

    def user_for(self, sid: str) -> str | None:
        return self._socket_users.get(sid)

    def room_members(self, room: str) -> set[str]:
        return set(self._rooms.get(room, set()))

    # ── Emitting ──────────────────────────────────────────────────────

    async def emit(self, sid: str, event: str, data) -> bool:
        """Send one frame to one socket. Returns False if the socket is gone."""
        websocket = self._sockets.get(sid)
        if websocket is None:
            return False
        try:
            await websocket.send_json({"event": event, "data": data})
        except Exception:
            logger.warning("Dropping dead socket %s", sid)
            self._sockets.pop(sid, None)
            return False
        return True

    async def emit_to_room(self, room: str, event: str, data, skip_sid: str | None = None) -> int:
        delivered = 0
        for sid in list(self._rooms.get(room, ())):
            if sid != skip_sid and await self.emit(sid, event, data):
                delivered += 1
        return delivered

    async def broadcast(self, event: str, data, skip_sid: str | None = None) -> int:
        delivered = 0
        for sid in list(self._sockets):
            if sid != skip_sid and await self.emit(sid, event, data):
                delivered += 1
        return delivered

    async def send_notification_to_user(self, user_id, notification: dict) -> int:
        return await self.emit_to_room(user_room(str(user_id)), "notification", notification)

    def _join(self, sid: str, room: str) -> None:
        self._rooms.setdefault(room, set()).add(sid)

    # ── Inbound frames ────────────────────────────────────────────────

    async def dispatch(self, sid: str, raw: str) -> None:
        """Decode one inbound frame and run its handler."""
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            await self.emit(sid, "error", {"error": "Invalid JSON frame"})
            return
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await self.emit(sid, "error", {"error": "Frame must be an object with an 'event' name"})
            return

        handler = self._handlers.get(frame["event"])
        if handler is None:
            await self.emit(sid, "error", {"error": f"Unknown event: {frame['event']}"})
            return
        await handler(sid, frame.get("data"))

    async def _on_join(self, sid: str, data) -> None:
        user_id = to_uuid(data.get("userId") if isinstance(data, dict) else data)
        if user_id is None:
            await self.emit(sid, "error", {"error": "join requires a valid userId"})
            return
        user_id = str(user_id)

        current = self._socket_users.get(sid)
        if current == user_id:
            return
        if current is not None:
            await self.emit(sid, "error", {"error": "Socket already bound to another user"})
            return

        self._socket_users[sid] = user_id
        self._user_sockets.setdefault(user_id, set()).add(sid)
        self._join(sid, user_room(user_id))
        self.presence.add(user_id)
        logger.info("User %s joined and is now online", user_id)

        await self.broadcast("user_status_change", {"userId": user_id, "isOnline": True}, skip_sid=sid)
        await self.broadcast("online_users", self.presence.online_users())

    async def _on_join_conversation(self, sid: str, data) -> None:
        conversation_id = data.get("conversationId") if isinstance(data, dict) else data
        if conversation_id is None:
            return
        self._join(sid, conversation_room(str(conversation_id)))
        logger.debug("Socket %s joined conversation %s", sid, conversation_id)

    async def _on_leave_conversation(self, sid: str, data) -> None:
        conversation_id = data.get("conversationId") if isinstance(data, dict) else data
        if conversation_id is None:
            return
        self._rooms.get(conversation_room(str(conversation_id)), set()).discard(sid)

    def _persist_message(self, data: dict) -> dict:
        conversation_id = to_uuid(data.get("conversationId"))
        sender_id = to_uuid(data.get("senderId"))
        if conversation_id is None or sender_id is None:
            raise ServiceError("conversationId and senderId are required")
        with self._session_factory() as db:
            message = send_message(
                db,
                conversation_id,
                sender_id,
                data.get("content", ""),
                data.get("messageType", "TEXT"),
                data.get("fileUrl"),
                data.get("fileName"),
            )
            payload = serialize_message(message)
            db.commit()
        return payload

    async def _on_send_message(self, sid: str, data) -> None:
        data = data if isinstance(data, dict) else {}
        if self.user_for(sid) and "senderId" not in data:
            data = {**data, "senderId": self.user_for(sid)}
        try:
            payload = await run_in_threadpool(self._persist_message, data)
        except Exception as exc:
            logger.exception("Error sending message")
            await self.emit(
                sid,
                "message_error",
                {
                    "error": "Failed to send message",
                    "details": exc.message if isinstance(exc, ServiceError) else "Unknown error",
                    "conversationId": data.get("conversationId"),
                    "errorType": type(exc).__name__,
                    "timestamp": utcnow().isoformat(),
                },
            )
            return

        room = conversation_room(payload["conversationId"])
        delivered = await self.emit_to_room(room, "new_message", payload)
        await self.emit(sid, "message_sent", {"messageId": payload["id"], "conversationId": payload["conversationId"]})
        logger.info("Message %s relayed to %d sockets in %s", payload["id"], delivered, room)

    def _mark_read(self, conversation_id, user_id) -> int:
        with self._session_factory() as db:
            count = mark_messages_as_read(db, conversation_id, user_id)
            db.commit()
        return count

    async def _on_mark_read(self, sid: str, data) -> None:
        data = data if isinstance(data, dict) else {}
        conversation_id = to_uuid(data.get("conversationId"))
        user_id = to_uuid(data.get("userId") or self.user_for(sid))
        if conversation_id is None or user_id is None:
            await self.emit(sid, "error", {"error": "mark_read requires conversationId and userId"})
            return
        try:
            await run_in_threadpool(self._mark_read, conversation_id, user_id)
        except Exception:
            logger.exception("Error marking messages as read in %s", conversation_id)
            return
        await self.emit_to_room(
            conversation_room(str(conversation_id)),
            "messages_read",
            {"conversationId": str(conversation_id), "userId": str(user_id)},
            skip_sid=sid,
        )

    async def _typing(self, sid: str, data, is_typing: bool) -> None:
        data = data if isinstance(data, dict) else {}
        conversation_id = data.get("conversationId")
        if conversation_id is None:
            return
        payload = {
            "conversationId": conversation_id,
            "userId": data.get("userId") or self.user_for(sid),
            "isTyping": is_typing,
        }
        if is_typing and data.get("userName"):
            payload["userName"] = data["userName"]
        await self.emit_to_room(conversation_room(str(conversation_id)), "user_typing", payload, skip_sid=sid)

    async def _on_typing_start(self, sid: str, data) -> None:
        await self._typing(sid, data, True)

    async def _on_typing_stop(self, sid: str, data) -> None:
        await self._typing(sid, data, False)

    async def _on_get_online_users(self, sid: str, data) -> None:
        await self.emit(sid, "online_users", self.presence.online_users())
