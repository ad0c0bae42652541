import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status

from cybermozhi.core.deps import get_profile_store
from cybermozhi.core.exceptions import PersistenceError
from cybermozhi.db.profile_store import ProfileStore
from cybermozhi.models.profile_schema import ProfileResponse, UserProfile, is_profile_incomplete
from cybermozhi.utils.encryption import get_current_user

router = APIRouter()
logger = logging.getLogger("ProfileRouter")


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    current_user: dict = Depends(get_current_user),
    profile_store: ProfileStore = Depends(get_profile_store),
):
    user_id = current_user["user_id"]
    try:
        profile = await profile_store.get_profile(user_id)
    except PersistenceError as e:
        logger.error(f"Error in get_profile: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    return ProfileResponse(
        user_id=user_id,
        profile=profile or UserProfile(),
        is_profile_incomplete=is_profile_incomplete(profile),
    )


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    profile: UserProfile,
    current_user: dict = Depends(get_current_user),
    profile_store: ProfileStore = Depends(get_profile_store),
):
    user_id = current_user["user_id"]
    try:
        saved = await profile_store.save_profile(user_id, profile)
    except PersistenceError as e:
        logger.error(f"Error in update_profile: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update profile")

    return ProfileResponse(
        user_id=user_id,
        profile=saved,
        is_profile_incomplete=saved.is_incomplete(),
        updated_at=datetime.now(timezone.utc),
    )
