import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from cybermozhi.core.exceptions import PersistenceError
from cybermozhi.models.profile_schema import UserProfile

logger = logging.getLogger("ProfileStore")


def get_user_collection(db: AsyncIOMotorDatabase):
    return db["users"]


class ProfileStore(ABC):
    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """The stored profile, or None if the user never saved one."""

    @abstractmethod
    async def save_profile(self, user_id: str, profile: UserProfile) -> UserProfile:
        """Merge the given fields into the stored profile and return the result."""


class MongoProfileStore(ProfileStore):
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            doc = await get_user_collection(self.db).find_one({"_id": ObjectId(user_id)}, {"profile": 1})
        except InvalidId:
            return None
        except PyMongoError as e:
            raise PersistenceError(f"Could not read profile of user {user_id}: {e}") from e

        if not doc or not doc.get("profile"):
            return None
        try:
            return UserProfile.model_validate(doc["profile"])
        except ValidationError as e:
            # Stored data predates a validation rule; treat it as no profile rather than failing.
            logger.warning(f"Ignoring malformed stored profile for user {user_id}: {e}")
            return None

    async def save_profile(self, user_id: str, profile: UserProfile) -> UserProfile:
        updates = {f"profile.{key}": value for key, value in profile.to_document().items()}
        updates["updated_at"] = datetime.now(timezone.utc)
        try:
            result = await get_user_collection(self.db).update_one({"_id": ObjectId(user_id)}, {"$set": updates})
        except InvalidId as e:
            raise PersistenceError(f"User {user_id} not found") from e
        except PyMongoError as e:
            raise PersistenceError(f"Could not save profile of user {user_id}: {e}") from e

        if result.matched_count == 0:
            raise PersistenceError(f"User {user_id} not found")

        logger.info(f"Saved profile fields {sorted(profile.to_document())} for user {user_id}")
        stored = await self.get_profile(user_id)
        return stored or profile
