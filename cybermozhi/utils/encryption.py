import bcrypt
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from .jwt_handler import verify_token

# Security scheme for JWT
security = HTTPBearer()

def hash_password(password: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def _user_from_token(token: str) -> Optional[dict]:
    payload = verify_token(token)
    if payload is None or payload.get("type", "access") != "access":
        return None

    user_id: Optional[str] = payload.get("sub")
    if not user_id:
        return None

    return {"user_id": user_id, "username": payload.get("username"), "payload": payload}


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """
    Dependency to get current authenticated user from JWT token.

    Returns:
        {"user_id", "username", "payload"} taken from the token

    Raises:
        HTTPException: If token is invalid, expired or not an access token
    """
    user = _user_from_token(credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user

def get_current_user_optional(credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False))) -> Optional[dict]:
    """
    Optional dependency to get current user. Returns None for guests or bad tokens.
    """
    if credentials is None:
        return None
    return _user_from_token(credentials.credentials)
