"""
Chat Store
Session and message persistence. Each user owns many sessions; each session
owns an append-only, timestamp-ordered list of messages.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from cybermozhi.core.exceptions import PersistenceError
from cybermozhi.models.chat_schema import ChatMessage, ChatSession, Role

logger = logging.getLogger("ChatStore")


class ChatStore(ABC):
    """What the conversation flow and the chat router need from storage."""

    @abstractmethod
    async def create_session(self, user_id: str, title: str, first_message: str) -> ChatSession:
        """Create a session together with its first user message."""

    @abstractmethod
    async def append_message(self, user_id: str, session_id: str, role: Role, text: str) -> ChatMessage:
        """Append a message and bump the session's last activity time."""

    @abstractmethod
    async def get_session(self, user_id: str, session_id: str) -> Optional[ChatSession]:
        ...

    @abstractmethod
    async def list_sessions(self, user_id: str, limit: int = 50) -> List[ChatSession]:
        ...

    @abstractmethod
    async def list_messages(self, user_id: str, session_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        """Messages oldest-first. With a limit, only the most recent `limit` messages."""

    @abstractmethod
    async def delete_session(self, user_id: str, session_id: str) -> bool:
        ...


def _object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _session_from_doc(doc: dict) -> ChatSession:
    return ChatSession(
        id=str(doc["_id"]),
        user_id=doc["user_id"],
        title=doc["title"],
        created_at=doc["created_at"],
        last_message_at=doc["last_message_at"],
    )


def _message_from_doc(doc: dict) -> ChatMessage:
    return ChatMessage(
        id=str(doc["_id"]),
        session_id=doc["session_id"],
        role=doc["role"],
        text=doc["text"],
        timestamp=doc["timestamp"],
    )


class MongoChatStore(ChatStore):
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db

    @property
    def sessions(self):
        return self.db["chat_sessions"]

    @property
    def messages(self):
        return self.db["chat_messages"]

    async def ensure_indexes(self) -> None:
        await self.sessions.create_index([("user_id", ASCENDING), ("last_message_at", DESCENDING)])
        await self.messages.create_index([("session_id", ASCENDING), ("timestamp", ASCENDING), ("_id", ASCENDING)])

    async def create_session(self, user_id: str, title: str, first_message: str) -> ChatSession:
        now = datetime.now(timezone.utc)
        session_doc = {
            "user_id": user_id,
            "title": title,
            "created_at": now,
            "last_message_at": now,
        }
        try:
            result = await self.sessions.insert_one(session_doc)
        except PyMongoError as e:
            raise PersistenceError(f"Could not create chat session: {e}") from e

        session_doc["_id"] = result.inserted_id
        session_id = str(result.inserted_id)
        try:
            await self.messages.insert_one({
                "session_id": session_id,
                "user_id": user_id,
                "role": "user",
                "text": first_message,
                "timestamp": now,
            })
        except PyMongoError as e:
            # A session is never left without its first message.
            await self.sessions.delete_one({"_id": result.inserted_id})
            raise PersistenceError(f"Could not save first message of session {session_id}: {e}") from e

        logger.info(f"Created chat session {session_id} for user {user_id}: '{title}'")
        return _session_from_doc(session_doc)

    async def append_message(self, user_id: str, session_id: str, role: Role, text: str) -> ChatMessage:
        oid = _object_id(session_id)
        if oid is None:
            raise PersistenceError(f"Chat session {session_id} not found")
        try:
            # $max keeps lastMessageAt monotonic, and the message reuses it so
            # timestamps within a session never go backwards.
            session = await self.sessions.find_one_and_update(
                {"_id": oid, "user_id": user_id},
                {"$max": {"last_message_at": datetime.now(timezone.utc)}},
                return_document=ReturnDocument.AFTER,
            )
            if session is None:
                raise PersistenceError(f"Chat session {session_id} not found")

            message_doc = {
                "session_id": session_id,
                "user_id": user_id,
                "role": role,
                "text": text,
                "timestamp": session["last_message_at"],
            }
            result = await self.messages.insert_one(message_doc)
        except PyMongoError as e:
            raise PersistenceError(f"Could not append {role} message to session {session_id}: {e}") from e

        message_doc["_id"] = result.inserted_id
        return _message_from_doc(message_doc)

    async def get_session(self, user_id: str, session_id: str) -> Optional[ChatSession]:
        oid = _object_id(session_id)
        if oid is None:
            return None
        try:
            doc = await self.sessions.find_one({"_id": oid, "user_id": user_id})
        except PyMongoError as e:
            raise PersistenceError(f"Could not read chat session {session_id}: {e}") from e
        return _session_from_doc(doc) if doc else None

    async def list_sessions(self, user_id: str, limit: int = 50) -> List[ChatSession]:
        try:
            cursor = self.sessions.find({"user_id": user_id}).sort("last_message_at", DESCENDING).limit(limit)
            docs = await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise PersistenceError(f"Could not list chat sessions: {e}") from e
        return [_session_from_doc(doc) for doc in docs]

    async def list_messages(self, user_id: str, session_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        query = {"session_id": session_id, "user_id": user_id}
        try:
            if limit:
                cursor = self.messages.find(query).sort([("timestamp", DESCENDING), ("_id", DESCENDING)]).limit(limit)
                docs = await cursor.to_list(length=limit)
                docs.reverse()
            else:
                cursor = self.messages.find(query).sort([("timestamp", ASCENDING), ("_id", ASCENDING)])
                docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise PersistenceError(f"Could not read messages of session {session_id}: {e}") from e
        return [_message_from_doc(doc) for doc in docs]

    async def delete_session(self, user_id: str, session_id: str) -> bool:
        oid = _object_id(session_id)
        if oid is None:
            return False
        try:
            result = await self.sessions.delete_one({"_id": oid, "user_id": user_id})
            if result.deleted_count == 0:
                return False
            await self.messages.delete_many({"session_id": session_id, "user_id": user_id})
        except PyMongoError as e:
            raise PersistenceError(f"Could not delete chat session {session_id}: {e}") from e
        logger.info(f"Deleted chat session {session_id} for user {user_id}")
        return True
