import logging
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidatorFunctionWrapHandler, field_validator

from cybermozhi.models.profile_schema import UserProfile

logger = logging.getLogger("ChatSchema")

Role = Literal["user", "model"]


class HistoryTurn(BaseModel):
    """One prior message as the client or the store hands it to the model."""

    role: Role
    text: str


# Chat models exposed to the front end
class ChatRequest(BaseModel):
    """Chat turn submission"""

    model_config = ConfigDict(populate_by_name=True)

    query: str
    user_id: Optional[str] = Field(None, alias="userId")
    user_name: Optional[str] = Field(None, alias="userName")
    user_contact: Optional[str] = Field(None, alias="userContact")
    chat_history: List[HistoryTurn] = Field(default_factory=list, alias="chatHistory")
    user_details: Optional[UserProfile] = Field(None, alias="userDetails")
    is_profile_incomplete: Optional[bool] = Field(None, alias="isProfileIncomplete")
    chat_session_id: Optional[str] = Field(None, alias="chatSessionId")

    @field_validator("user_details", mode="wrap")
    @classmethod
    def drop_invalid_user_details(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> Optional[UserProfile]:
        """A malformed profile snapshot is ignored so the stored profile is used instead."""
        try:
            return handler(value)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid userDetails snapshot: {e.error_count()} error(s)")
            return None


class TurnRequest(BaseModel):
    """The unit of work handled by the conversation flow.

    Built by the router from a ChatRequest plus whatever the bearer token says
    about the caller.
    """

    query: str
    authenticated: bool = False
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_contact: Optional[str] = None
    chat_history: List[HistoryTurn] = Field(default_factory=list)
    user_details: Optional[UserProfile] = None
    is_profile_incomplete: Optional[bool] = None
    chat_session_id: Optional[str] = None


class TurnResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answer: str = Field(..., min_length=1)
    new_chat_session_id: Optional[str] = Field(None, alias="newChatSessionId")
    chat_session_id: Optional[str] = Field(None, alias="chatSessionId")
    error: Optional[str] = None


# Store records
class ChatSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str = Field(..., alias="userId")
    title: str
    created_at: datetime = Field(..., alias="createdAt")
    last_message_at: datetime = Field(..., alias="lastMessageAt")


class ChatMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    session_id: str = Field(..., alias="sessionId")
    role: Role
    text: str
    timestamp: datetime

    def as_turn(self) -> HistoryTurn:
        return HistoryTurn(role=self.role, text=self.text)


class ChatSessionList(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sessions: List[ChatSession]
    total_count: int = Field(..., alias="totalCount")


class ChatHistory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatMessage]
    total_count: int = Field(..., alias="totalCount")


# Title generation contract
class ChatTitleInput(BaseModel):
    query: str = Field(..., min_length=1)


class ChatTitleOutput(BaseModel):
    title: str = Field(..., min_length=1)


# Chat answer template contract
class ChatAnswerInput(BaseModel):
    query: str = Field(..., min_length=1)
    user_name: Optional[str] = None
    user_contact: Optional[str] = None
    chat_history: List[HistoryTurn] = Field(default_factory=list)
    user_details: Optional[UserProfile] = None
    is_profile_incomplete: bool = False


class ChatAnswerOutput(BaseModel):
    answer: str = Field(..., min_length=1)
