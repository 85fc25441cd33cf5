"""
API Dependencies

Caller identity and common query parameter dependencies.

Authentication itself happens upstream; requests arrive with the caller's
user id in the X-User-Id header, which is resolved to a User row here so
role checks can run in the services.
"""
from typing import Annotated, Optional

from fastapi import Depends, Header, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.exceptions import AuthenticationError
from app.models.user import User
from app.schemas.common import PaginationParams

USER_HEADER = "X-User-Id"


def _load_user(db: Session, raw_id: Optional[str]) -> Optional[User]:
    if raw_id is None or raw_id == "":
        return None
    try:
        user_id = int(raw_id)
    except ValueError:
        raise AuthenticationError(f"Invalid {USER_HEADER} header")

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Unknown or inactive user")
    return user


async def get_current_user(
    x_user_id: Annotated[Optional[str], Header(alias=USER_HEADER)] = None,
    db: Session = Depends(get_db),
) -> User:
    """Resolve the calling user; 401 when the header is missing or unknown."""
    user = _load_user(db, x_user_id)
    if user is None:
        raise AuthenticationError(f"{USER_HEADER} header required")
    return user


async def get_optional_user(
    x_user_id: Annotated[Optional[str], Header(alias=USER_HEADER)] = None,
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Caller if identified, else None (kiosk and board views)."""
    return _load_user(db, x_user_id)


def get_pagination_params(
    offset: int = Query(default=0, ge=0, description="Number of records to skip"),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum number of records to return (1-500)"),
) -> PaginationParams:
    return PaginationParams(offset=offset, limit=limit)
