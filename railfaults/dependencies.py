"""Reusable FastAPI dependencies for auth and database access."""
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy.orm import Session

from .auth import require_authenticated_user
from .database import get_db
from .errors import AccessDeniedError, AuthError
from .models import RoleEnum, User

basic_scheme = HTTPBasic(description="Username and password of a fault tracker user", auto_error=False)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise AuthError("Not authenticated")
    user = require_authenticated_user(db, credentials.username, credentials.password)
    request.state.username = user.username
    return user


def allow_roles(*roles: RoleEnum) -> Callable[[User], User]:
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise AccessDeniedError("Insufficient permissions")
        return current_user

    return dependency


require_manager = allow_roles(RoleEnum.ADMIN, RoleEnum.ENGINEER)
