"""
FastAPI dependencies resolving the acting principal.
"""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..schemas.identity import Identity
from .errors import Unauthorized
from .logging_config import set_request_context
from .security import verify_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Identity:
    """Verify the bearer token and return the caller's identity"""
    if credentials is None or not credentials.credentials:
        raise Unauthorized(errors=["No token provided"])

    payload = verify_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise Unauthorized("Invalid or expired token", ["Token verification failed"])

    user = db.query(User).filter(User.id == payload["sub"]).first()
    if not user or not user.is_active:
        raise Unauthorized("Invalid or inactive user", ["User not found or inactive"])

    request_id = getattr(request.state, "request_id", "")
    set_request_context(request_id, user.id)

    return Identity.from_user(user)
