from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.models.user import User


# Token creation
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_service_token(service_name: str, expires_delta: Optional[timedelta] = None) -> str:
    """Token the recognition service presents when calling the webhook"""
    return create_access_token(
        {"sub": service_name, "iss": settings.AI_SERVICE_ISSUER, "service": True},
        expires_delta,
    )


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


oauth2_scheme = HTTPBearer()

credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


# Extract current user from token
def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise credentials_exception

    user = db.query(User).filter(User.email == payload["sub"]).first()
    if user is None:
        raise credentials_exception

    return user


def get_ai_service_identity(credentials: HTTPAuthorizationCredentials = Depends(oauth2_scheme)) -> dict:
    """Accept only service tokens issued for the recognition service"""
    payload = decode_token(credentials.credentials)
    if not payload or payload.get("iss") != settings.AI_SERVICE_ISSUER or payload.get("service") is not True:
        raise credentials_exception
    return payload
