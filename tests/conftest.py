"""
Shared pytest fixtures for the CyberMozhi test suite.

Provides:
- In-memory chat and profile stores
- A scripted model invoker
- Settings isolated from the developer's environment
"""

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Set

import pytest

from cybermozhi.core.config import Settings
from cybermozhi.core.exceptions import PersistenceError
from cybermozhi.db.chat_store import ChatStore
from cybermozhi.db.profile_store import ProfileStore
from cybermozhi.llm.invoker import ModelInvoker, ToolBinding
from cybermozhi.models.chat_schema import ChatMessage, ChatSession, Role
from cybermozhi.models.profile_schema import UserProfile

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FakeChatStore(ChatStore):
    """Chat store kept in dicts. Set the `fail_*` flags to simulate an unreachable database."""

    def __init__(self) -> None:
        self.sessions: Dict[str, ChatSession] = {}
        self.messages: Dict[str, List[ChatMessage]] = {}
        self.fail_create = False
        self.fail_append_roles: Set[str] = set()
        self.fail_list = False
        self._ids = itertools.count(1)
        self._ticks = itertools.count()

    def _now(self) -> datetime:
        return BASE_TIME + timedelta(seconds=next(self._ticks))

    def add_session(self, user_id: str, title: str = "Existing chat") -> ChatSession:
        now = self._now()
        session = ChatSession(
            id=f"session-{next(self._ids)}", user_id=user_id, title=title, created_at=now, last_message_at=now
        )
        self.sessions[session.id] = session
        self.messages[session.id] = []
        return session

    def roles(self, session_id: str) -> List[str]:
        return [message.role for message in self.messages[session_id]]

    async def create_session(self, user_id: str, title: str, first_message: str) -> ChatSession:
        if self.fail_create:
            raise PersistenceError("database unavailable")
        session = self.add_session(user_id, title)
        await self.append_message(user_id, session.id, "user", first_message)
        return self.sessions[session.id]

    async def append_message(self, user_id: str, session_id: str, role: Role, text: str) -> ChatMessage:
        if role in self.fail_append_roles:
            raise PersistenceError("database unavailable")
        session = self.sessions.get(session_id)
        if session is None or session.user_id != user_id:
            raise PersistenceError(f"Chat session {session_id} not found")
        now = self._now()
        message = ChatMessage(id=f"message-{next(self._ids)}", session_id=session_id, role=role, text=text, timestamp=now)
        self.messages[session_id].append(message)
        self.sessions[session_id] = session.model_copy(update={"last_message_at": now})
        return message

    async def get_session(self, user_id: str, session_id: str) -> Optional[ChatSession]:
        session = self.sessions.get(session_id)
        return session if session and session.user_id == user_id else None

    async def list_sessions(self, user_id: str, limit: int = 50) -> List[ChatSession]:
        owned = [s for s in self.sessions.values() if s.user_id == user_id]
        return sorted(owned, key=lambda s: s.last_message_at, reverse=True)[:limit]

    async def list_messages(self, user_id: str, session_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        if self.fail_list:
            raise PersistenceError("database unavailable")
        if await self.get_session(user_id, session_id) is None:
            return []
        messages = list(self.messages[session_id])
        return messages[-limit:] if limit else messages

    async def delete_session(self, user_id: str, session_id: str) -> bool:
        if await self.get_session(user_id, session_id) is None:
            return False
        del self.sessions[session_id]
        del self.messages[session_id]
        return True


class FakeProfileStore(ProfileStore):
    def __init__(self, profiles: Optional[Dict[str, UserProfile]] = None) -> None:
        self.profiles: Dict[str, UserProfile] = dict(profiles or {})
        self.fail_get = False
        self.get_calls = 0

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        self.get_calls += 1
        if self.fail_get:
            raise PersistenceError("database unavailable")
        return self.profiles.get(user_id)

    async def save_profile(self, user_id: str, profile: UserProfile) -> UserProfile:
        current = self.profiles.get(user_id) or UserProfile()
        merged = current.model_copy(update=profile.model_dump(exclude_none=True))
        self.profiles[user_id] = merged
        return merged


class FakeInvoker(ModelInvoker):
    """
    Answers each template from `responses`: a model instance to return, an
    exception to raise, or an async callable `(data, tools)` for anything more.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None) -> None:
        self.responses: Dict[str, Any] = dict(responses or {})
        self.calls: List[tuple] = []

    def templates_called(self) -> List[str]:
        return [template_id for template_id, _, _ in self.calls]

    def last_data(self, template_id: str) -> Any:
        return [data for called, data, _ in self.calls if called == template_id][-1]

    async def invoke(self, template_id: str, data: Any, tools: Sequence[ToolBinding] = ()) -> Any:
        self.calls.append((template_id, data, list(tools)))
        if template_id not in self.responses:
            raise AssertionError(f"Unexpected call to template '{template_id}'")
        response = self.responses[template_id]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return await response(data, tools)
        return response


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        gemini_api_keys="test-key-aaaa1111,test-key-bbbb2222",
        generate_chat_titles=False,
        chat_history_window=10,
        llm_max_tool_rounds=3,
    )


@pytest.fixture
def chat_store() -> FakeChatStore:
    return FakeChatStore()


@pytest.fixture
def profile_store() -> FakeProfileStore:
    return FakeProfileStore()
