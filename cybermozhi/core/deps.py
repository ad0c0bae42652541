"""Reusable FastAPI dependency functions."""
from functools import lru_cache

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from cybermozhi.core.config import Settings, get_settings
from cybermozhi.db.chat_store import ChatStore, MongoChatStore
from cybermozhi.db.connection import get_db
from cybermozhi.db.profile_store import MongoProfileStore, ProfileStore
from cybermozhi.llm.invoker import ModelInvoker
from cybermozhi.llm.key_pool import KeyPool, KeyPoolRotator
from cybermozhi.llm.llm_client import ModelGateway
from cybermozhi.services.conversation import ConversationController
from cybermozhi.services.document_drafter import DocumentDraftingTool


def get_chat_store(db: AsyncIOMotorDatabase = Depends(get_db)) -> ChatStore:
    return MongoChatStore(db)


def get_profile_store(db: AsyncIOMotorDatabase = Depends(get_db)) -> ProfileStore:
    return MongoProfileStore(db)


# One pool and one gateway per process: the rotation cursor and the per-key
# clients are shared by every request.
@lru_cache
def get_key_pool() -> KeyPool:
    return KeyPool.from_settings(get_settings())


@lru_cache
def get_gateway() -> ModelGateway:
    return ModelGateway(get_settings())


def get_invoker(
    pool: KeyPool = Depends(get_key_pool),
    gateway: ModelGateway = Depends(get_gateway),
) -> ModelInvoker:
    return KeyPoolRotator(pool, gateway)


def get_document_tool(invoker: ModelInvoker = Depends(get_invoker)) -> DocumentDraftingTool:
    return DocumentDraftingTool(invoker)


def get_controller(
    invoker: ModelInvoker = Depends(get_invoker),
    chat_store: ChatStore = Depends(get_chat_store),
    profile_store: ProfileStore = Depends(get_profile_store),
    settings: Settings = Depends(get_settings),
) -> ConversationController:
    return ConversationController(invoker, chat_store, profile_store, settings)
