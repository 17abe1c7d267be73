"""
Bearer token verification
Authentication is performed by an external identity service; the engine
only verifies its tokens and turns the subject into an explicit actor id
"""
import logging
from datetime import datetime, timedelta, UTC
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from app.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer()


def create_access_token(actor_id: str, role: str = "staff",
                        expires_delta: Optional[timedelta] = None) -> str:
    """Issue a token compatible with the engine (identity service, tests)"""
    expire = datetime.now(UTC) + (expires_delta or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode = {
        "sub": str(actor_id),
        "role": role,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and verify a token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """Actor id of the staff member making the request"""
    payload = decode_token(credentials.credentials)
    actor_id = payload.get("sub")
    if not actor_id:
        logger.warning("Token without subject rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )
    return str(actor_id)
