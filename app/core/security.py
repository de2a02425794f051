"""
Principal resolution.

Token verification belongs to the authentication gateway in front of this
service; it forwards the authenticated user id as `X-User-Id`.
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ForbiddenError, UnauthorizedError
from app.db.base import get_db
from app.models.user import User, UserRole
from app.schemas.common import ev


def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    if not x_user_id:
        raise UnauthorizedError("Missing X-User-Id header.")
    user = db.get(User, x_user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("Unknown or inactive user.")
    if settings.REQUIRE_EMAIL_VERIFICATION and not user.is_email_verified:
        raise ForbiddenError("Email address has not been verified.")
    return user


def require_roles(*roles: UserRole):
    allowed = {r.value for r in roles}

    def dependency(user: User = Depends(get_current_user)) -> User:
        if ev(user.role) not in allowed:
            raise ForbiddenError()
        return user

    return dependency


require_staff = require_roles(UserRole.hr, UserRole.admin)
require_admin = require_roles(UserRole.admin)
