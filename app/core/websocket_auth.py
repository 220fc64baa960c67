from typing import Optional
from fastapi import WebSocket
from sqlalchemy.orm import Session
import logging

from app.core.security import decode_token
from app.db.session import SessionLocal
from app.models.user import User

logger = logging.getLogger(__name__)


def get_user_from_token(token: str) -> Optional[User]:
    """Get user from JWT token"""
    payload = decode_token(token)
    if not payload:
        logger.warning("Invalid or expired token")
        return None

    user_email = payload.get("sub")
    if not user_email:
        return None

    db: Session = SessionLocal()
    try:
        return db.query(User).filter(User.email == user_email).first()
    finally:
        db.close()


def extract_token(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get("token")
    if not token:
        auth_header = websocket.headers.get("authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.split(" ", 1)[1]
    return token


async def authenticate_websocket(websocket: WebSocket) -> Optional[User]:
    """Authenticate WebSocket connection using token from query params or headers"""
    token = extract_token(websocket)
    if not token:
        logger.warning("No token provided in WebSocket connection")
        return None

    user = get_user_from_token(token)
    if not user:
        logger.warning("Invalid token in WebSocket connection")
        return None

    logger.info(f"WebSocket authenticated for user: {user.id}")
    return user
