import logging
from jose import jwt, ExpiredSignatureError, JWTError
from datetime import datetime, timedelta, timezone
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from typing import Annotated, Optional

from ..config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

logger = logging.getLogger(__name__)

# Tokens are minted by the login service; this app only checks them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Sign an access token whose ``sub`` is the opaque ``user_id``."""
    lifetime = expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(user_id),
        "type": "access",
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str = Depends(oauth2_scheme)) -> dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise unauthorized("Token has expired")
    except JWTError as e:
        logger.debug("Rejected bearer token: %s", e)
        raise unauthorized("Could not validate credentials")


async def get_current_user_id(payload: Annotated[dict, Depends(verify_token)]) -> str:
    if payload.get("type") != "access" or not payload.get("sub"):
        raise unauthorized("Invalid token type")
    return str(payload["sub"])
