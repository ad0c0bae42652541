"""
Conversation Flow Controller

Runs one chat turn:

    Idle -> Validating -> (NewSession | ExistingSession) -> Invoking -> Persisting -> Done

with Failed reachable from any state. A turn never raises to its caller: every
outcome, including failures, carries displayable answer text.

Guests (no authenticated user) are answered from the history their client
sends and nothing is written to the store. For signed-in users the store is
the source of truth for history; the client's copy is only used when the store
cannot be read.
"""

import logging
from typing import List, Optional, Tuple

from cybermozhi.core.config import Settings
from cybermozhi.core.exceptions import (
    AllQuotaExhaustedError,
    ConfigurationError,
    CyberMozhiError,
    EmptyOutputError,
    InvalidRequestError,
    PersistenceError,
    TransportError,
)
from cybermozhi.db.chat_store import ChatStore
from cybermozhi.db.profile_store import ProfileStore
from cybermozhi.llm.invoker import ModelInvoker
from cybermozhi.llm.templates import CHAT_ANSWER, CHAT_TITLE
from cybermozhi.models.chat_schema import ChatAnswerInput, ChatTitleInput, HistoryTurn, TurnRequest, TurnResult
from cybermozhi.models.profile_schema import UserProfile, is_profile_incomplete
from cybermozhi.services.document_drafter import DocumentDraftingTool

logger = logging.getLogger("ConversationFlow")

TITLE_MAX_CHARS = 40

HIGH_TRAFFIC_MESSAGE = (
    "CyberMozhi is receiving very high traffic right now and could not answer your question. "
    "Please try again in a few minutes."
)
EMPTY_OUTPUT_MESSAGE = (
    "Sorry, I couldn't generate a response to that. The request may have been blocked by the safety policy. "
    "Please try rephrasing your question."
)
NOT_CONFIGURED_MESSAGE = (
    "Sorry, the assistant is not configured to answer questions right now. Please contact the site administrator."
)
UNEXPECTED_ERROR_MESSAGE = "Sorry, something went wrong while answering your question. Please try again."

# Error codes returned alongside the answer text
ERROR_INVALID_REQUEST = "invalid_request"
ERROR_ALL_QUOTA_EXHAUSTED = "all_quota_exhausted"
ERROR_EMPTY_OUTPUT = "empty_output"
ERROR_CONFIGURATION = "configuration"
ERROR_TRANSPORT = "transport"
ERROR_INTERNAL = "internal"


def fallback_title(query: str) -> str:
    query = " ".join(query.split())
    if len(query) <= TITLE_MAX_CHARS:
        return query
    return query[:TITLE_MAX_CHARS] + "..."


def normalize_history(turns: List[HistoryTurn]) -> List[HistoryTurn]:
    """
    Keep only complete user/model exchanges. A user message with no reply (a
    turn whose model call failed) and a model message without a preceding user
    message (a cut at the window edge) are dropped, so the model always sees
    strict alternation starting with `user`.
    """
    paired: List[HistoryTurn] = []
    pending_user: Optional[HistoryTurn] = None
    for turn in turns:
        if turn.role == "user":
            pending_user = turn
        elif pending_user is not None:
            paired.extend([pending_user, turn])
            pending_user = None
    return paired


def failure_response(error: Exception) -> Tuple[str, str]:
    """Answer text and error code for a failed turn."""
    if isinstance(error, AllQuotaExhaustedError):
        return HIGH_TRAFFIC_MESSAGE, ERROR_ALL_QUOTA_EXHAUSTED
    if isinstance(error, EmptyOutputError):
        return EMPTY_OUTPUT_MESSAGE, ERROR_EMPTY_OUTPUT
    if isinstance(error, ConfigurationError):
        return NOT_CONFIGURED_MESSAGE, ERROR_CONFIGURATION
    if isinstance(error, TransportError):
        return f"Sorry, I encountered an error: {error.detail}", ERROR_TRANSPORT
    return UNEXPECTED_ERROR_MESSAGE, ERROR_INTERNAL


class ConversationController:
    def __init__(
        self,
        invoker: ModelInvoker,
        chat_store: ChatStore,
        profile_store: ProfileStore,
        settings: Settings,
        document_tool: Optional[DocumentDraftingTool] = None,
    ) -> None:
        self.invoker = invoker
        self.chat_store = chat_store
        self.profile_store = profile_store
        self.settings = settings
        self.document_tool = document_tool or DocumentDraftingTool(invoker)

    async def handle_turn(self, request: TurnRequest) -> TurnResult:
        self._enter("Validating")
        try:
            query, user_id = self.validate(request)
        except InvalidRequestError as e:
            self._enter("Failed", str(e))
            return TurnResult(answer=str(e), error=ERROR_INVALID_REQUEST)

        session_id: Optional[str] = None
        new_session_id: Optional[str] = None
        try:
            profile, incomplete = await self._load_profile(request, user_id)

            if user_id is None:
                history = request.chat_history
            elif request.chat_session_id:
                self._enter("ExistingSession", request.chat_session_id)
                history = await self._load_history(user_id, request.chat_session_id, request.chat_history)
                session_id = await self._append_user_message(user_id, request.chat_session_id, query)
            else:
                self._enter("NewSession")
                history = request.chat_history
                session_id = await self._start_session(user_id, query)
                new_session_id = session_id

            self._enter("Invoking", session_id)
            answer = await self._answer(request, query, history, profile, incomplete)

            if session_id:
                self._enter("Persisting", session_id)
                await self._persist_answer(user_id, session_id, answer)

            self._enter("Done", session_id)
            return TurnResult(answer=answer, new_chat_session_id=new_session_id, chat_session_id=session_id)

        except CyberMozhiError as e:
            self._enter("Failed", f"{type(e).__name__}: {e}")
            answer, code = failure_response(e)
        except Exception as e:
            logger.error(f"Unexpected error while handling chat turn: {e}", exc_info=True)
            answer, code = failure_response(e)

        return TurnResult(answer=answer, new_chat_session_id=new_session_id, chat_session_id=session_id, error=code)

    def validate(self, request: TurnRequest) -> Tuple[str, Optional[str]]:
        """The trimmed query and the owning user id (None for guests). Raises InvalidRequestError."""
        query = (request.query or "").strip()
        if not query:
            raise InvalidRequestError("Query cannot be empty.")
        if request.authenticated and not request.user_id:
            raise InvalidRequestError("User ID is required for authenticated requests.")
        return query, request.user_id if request.authenticated else None

    async def _load_profile(self, request: TurnRequest, user_id: Optional[str]) -> Tuple[Optional[UserProfile], bool]:
        profile = request.user_details
        if profile is None and user_id is not None:
            try:
                profile = await self.profile_store.get_profile(user_id)
            except PersistenceError as e:
                logger.warning(f"Profile fetch failed for user {user_id}, continuing without it: {e}")
                profile = None

        if user_id is None:
            # Guests have nowhere to save a profile, so they are never nudged.
            return profile, bool(request.is_profile_incomplete)
        if request.is_profile_incomplete is not None:
            return profile, request.is_profile_incomplete
        return profile, is_profile_incomplete(profile)

    async def _load_history(
        self, user_id: str, session_id: str, client_history: List[HistoryTurn]
    ) -> List[HistoryTurn]:
        try:
            messages = await self.chat_store.list_messages(
                user_id, session_id, limit=self.settings.chat_history_window
            )
        except PersistenceError as e:
            logger.warning(f"History fetch failed for session {session_id}, using the client's copy: {e}")
            return client_history
        return [message.as_turn() for message in messages]

    async def _start_session(self, user_id: str, query: str) -> Optional[str]:
        title = await self._make_title(query)
        try:
            session = await self.chat_store.create_session(user_id, title, query)
        except PersistenceError as e:
            logger.error(f"Could not create a chat session for user {user_id}; answering without saving: {e}")
            return None
        return session.id

    async def _append_user_message(self, user_id: str, session_id: str, query: str) -> Optional[str]:
        try:
            await self.chat_store.append_message(user_id, session_id, "user", query)
        except PersistenceError as e:
            logger.error(f"Could not save the user message to session {session_id}; answering without saving: {e}")
            return None
        return session_id

    async def _persist_answer(self, user_id: str, session_id: str, answer: str) -> None:
        try:
            await self.chat_store.append_message(user_id, session_id, "model", answer)
        except PersistenceError as e:
            logger.error(f"Could not save the answer to session {session_id}: {e}")

    async def _make_title(self, query: str) -> str:
        if not self.settings.generate_chat_titles:
            return fallback_title(query)
        try:
            output = await self.invoker.invoke(CHAT_TITLE, ChatTitleInput(query=query))
        except CyberMozhiError as e:
            logger.warning(f"Title generation failed, truncating the query instead: {e}")
            return fallback_title(query)
        title = output.title.strip().strip('"').strip()
        return title or fallback_title(query)

    async def _answer(
        self,
        request: TurnRequest,
        query: str,
        history: List[HistoryTurn],
        profile: Optional[UserProfile],
        incomplete: bool,
    ) -> str:
        window = self.settings.chat_history_window
        history = normalize_history(history[-window:])

        user_name = request.user_name or (profile.display_name if profile else None)
        user_contact = request.user_contact or (profile.contact if profile else None)

        drafts: List[str] = []
        tool = self.document_tool.binding(user_name=user_name, user_contact=user_contact, on_draft=drafts.append)

        payload = ChatAnswerInput(
            query=query,
            user_name=user_name,
            user_contact=user_contact,
            chat_history=history,
            user_details=profile,
            is_profile_incomplete=incomplete,
        )
        output = await self.invoker.invoke(CHAT_ANSWER, payload, tools=[tool])

        answer = output.answer
        for document in drafts:
            if document not in answer:
                answer = f"{answer}\n\n{document}"
        return answer

    def _enter(self, state: str, detail: Optional[str] = None) -> None:
        logger.debug(f"Turn state -> {state}" + (f" ({detail})" if detail else ""))
