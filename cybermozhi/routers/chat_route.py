import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from cybermozhi.core.deps import get_chat_store, get_controller
from cybermozhi.core.exceptions import PersistenceError
from cybermozhi.db.chat_store import ChatStore
from cybermozhi.models.auth_schema import MessageResponse
from cybermozhi.models.chat_schema import ChatHistory, ChatRequest, ChatSessionList, TurnRequest, TurnResult
from cybermozhi.services.conversation import ERROR_INVALID_REQUEST, ConversationController
from cybermozhi.utils.encryption import get_current_user, get_current_user_optional
from cybermozhi.utils.http_errors import to_http_exception

router = APIRouter()
logger = logging.getLogger("ChatRouter")


# Chat Route
@router.post("/chat", response_model=TurnResult, response_model_exclude_none=True)
async def chat_endpoint(
    request: ChatRequest,
    current_user: Optional[dict] = Depends(get_current_user_optional),
    controller: ConversationController = Depends(get_controller),
):
    """
    One chat turn. Signed-in users get their turn saved to a session; guests
    are answered without anything being stored.
    """
    user_id = current_user["user_id"] if current_user else None
    if user_id and request.user_id and request.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="userId does not match the signed-in user")

    turn = TurnRequest(
        query=request.query,
        authenticated=current_user is not None,
        user_id=user_id,
        user_name=request.user_name,
        user_contact=request.user_contact,
        chat_history=request.chat_history,
        user_details=request.user_details,
        is_profile_incomplete=request.is_profile_incomplete,
        chat_session_id=request.chat_session_id,
    )
    who = current_user["username"] if current_user else "guest"
    logger.info(f"Processing chat from {who} (Session: {request.chat_session_id or 'new'})")

    result = await controller.handle_turn(turn)
    if result.error == ERROR_INVALID_REQUEST:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.answer)
    if result.error:
        logger.warning(f"Chat turn for {who} ended with '{result.error}'")
    return result


@router.get("/chat/sessions", response_model=ChatSessionList)
async def list_chat_sessions(
    limit: int = 50,
    current_user: dict = Depends(get_current_user),
    chat_store: ChatStore = Depends(get_chat_store),
):
    try:
        sessions = await chat_store.list_sessions(current_user["user_id"], limit=max(1, min(limit, 100)))
    except PersistenceError as e:
        logger.error(f"Error in list_chat_sessions: {e}")
        raise to_http_exception(e)
    return ChatSessionList(sessions=sessions, total_count=len(sessions))


@router.get("/chat/sessions/{session_id}/messages", response_model=ChatHistory)
async def get_chat_messages(
    session_id: str,
    current_user: dict = Depends(get_current_user),
    chat_store: ChatStore = Depends(get_chat_store),
):
    user_id = current_user["user_id"]
    try:
        session = await chat_store.get_session(user_id, session_id)
        if session is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat session not found")
        messages = await chat_store.list_messages(user_id, session_id)
    except PersistenceError as e:
        logger.error(f"Error in get_chat_messages: {e}")
        raise to_http_exception(e)

    logger.info(f"Fetched {len(messages)} message(s) of session {session_id}")
    return ChatHistory(messages=messages, total_count=len(messages))


@router.delete("/chat/sessions/{session_id}", response_model=MessageResponse)
async def delete_chat_session(
    session_id: str,
    current_user: dict = Depends(get_current_user),
    chat_store: ChatStore = Depends(get_chat_store),
):
    try:
        deleted = await chat_store.delete_session(current_user["user_id"], session_id)
    except PersistenceError as e:
        logger.error(f"Error in delete_chat_session: {e}")
        raise to_http_exception(e)

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat session not found")
    return {"message": "Chat session deleted"}
