import logging
from datetime import datetime, timezone

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

# Local imports
from cybermozhi.core.config import Settings, get_settings
from cybermozhi.db.connection import get_db
from cybermozhi.db.profile_store import get_user_collection
from cybermozhi.models.auth_schema import (
    AuthenticatedUserResponse,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from cybermozhi.utils.encryption import get_current_user, hash_password, verify_password
from cybermozhi.utils.jwt_handler import create_access_token, create_refresh_token, verify_token

router = APIRouter()
logger = logging.getLogger("AuthRouter")


def _user_response(user: dict) -> UserResponse:
    return UserResponse(
        user_id=str(user["_id"]),
        username=user["username"],
        email=user.get("email"),
        created_at=user.get("created_at"),
    )


def _issue_tokens(user_id: str, username: str) -> dict:
    claims = {"sub": user_id, "username": username}
    return {
        "access_token": create_access_token(data=claims),
        "refresh_token": create_refresh_token(data=claims),
        "token_type": "bearer",
    }


@router.post("/register", response_model=MessageResponse)
async def register_user(request: RegisterRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        user_collection = get_user_collection(db)
        existing_user = await user_collection.find_one({"username": request.username})
        if existing_user:
            raise HTTPException(status_code=400, detail="Username already exists")

        user_data = {
            "username": request.username,
            "password": hash_password(request.password),
            "email": request.email,
            "created_at": datetime.now(timezone.utc),
        }
        if request.display_name:
            user_data["profile"] = {"displayName": request.display_name}
        await user_collection.insert_one(user_data)
        logger.info(f"Registered user {request.username}")
        return {"message": "User registered successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in User Registration: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/login", response_model=AuthenticatedUserResponse)
async def login_user(
    request: LoginRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        user_collection = get_user_collection(db)
        user = await user_collection.find_one({"username": request.username})
        if not user or not verify_password(request.password, user["password"]):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid username or password",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return AuthenticatedUserResponse(
            user=_user_response(user),
            expires_in=settings.access_token_expire_minutes * 60,
            **_issue_tokens(str(user["_id"]), user["username"]),
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in Login: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/refresh", response_model=TokenResponse)
async def refresh_access_token(request: RefreshTokenRequest, settings: Settings = Depends(get_settings)):
    payload = verify_token(request.refresh_token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Check if it's actually a refresh token
    if payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenResponse(
        expires_in=settings.access_token_expire_minutes * 60,
        **_issue_tokens(user_id, payload.get("username")),
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: dict = Depends(get_current_user), db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        user = await get_user_collection(db).find_one({"_id": ObjectId(current_user["user_id"])})
    except InvalidId:
        user = None
    except Exception as e:
        logger.error(f"Error in get_current_user_info: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _user_response(user)
