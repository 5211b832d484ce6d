import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from rolegate.core.config import settings

security = HTTPBearer()


def create_session_token(session_id: str, principal_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a bearer token binding a client to an authorization session."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRATION_HOURS)
    to_encode = {"sub": principal_id, "sid": session_id, "exp": expire}
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_token_claims(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    payload = decode_token(credentials.credentials)
    if payload.get("sid") is None or payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return {"session_id": payload["sid"], "principal_id": payload["sub"], "payload": payload}


async def verify_identity_handoff(x_identity_secret: Optional[str] = Header(None)) -> None:
    """
    Guard for the identity hand-off endpoint.

    Identities are verified by the sign-in layer, never here. When
    IDENTITY_HANDOFF_SECRET is set, only a caller presenting it in
    `X-Identity-Secret` may open sessions. Production refuses hand-offs
    while no secret is configured.
    """
    expected = settings.IDENTITY_HANDOFF_SECRET
    if not expected:
        if settings.APP_ENV == "production":
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Identity hand-off is not configured",
            )
        return
    if not x_identity_secret or not secrets.compare_digest(x_identity_secret, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid identity hand-off secret",
        )
