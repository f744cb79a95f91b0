from fastapi import APIRouter, Depends, Request
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from railfaults import auth
from railfaults.config import get_settings
from railfaults.database import get_db
from railfaults.dependencies import get_current_user
from railfaults.models import User
from railfaults.rate_limit import limiter
from railfaults.schemas import LoginRequest, UserRead

settings = get_settings()
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=UserRead)
@limiter.limit(settings.login_rate_limit, key_func=get_remote_address)
def login(request: Request, credentials: LoginRequest, db: Session = Depends(get_db)) -> User:
    user = auth.require_authenticated_user(db, credentials.username, credentials.password)
    request.state.username = user.username
    return user


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)) -> User:
    return current_user
