from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from railfaults import organization
from railfaults.database import get_db
from railfaults.dependencies import get_current_user, require_manager
from railfaults.models import User
from railfaults.schemas import MessageResponse, UserCreate, UserRead, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserRead])
def list_users(_: User = Depends(require_manager), db: Session = Depends(get_db)) -> List[User]:
    return organization.list_users(db)


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, _: User = Depends(require_manager), db: Session = Depends(get_db)) -> User:
    return organization.get_user(db, user_id)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(user_in: UserCreate, current_user: User = Depends(require_manager), db: Session = Depends(get_db)) -> User:
    return organization.create_user(db, user_in, current_user)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    return organization.update_user(db, user_id, user_update, current_user)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(user_id: int, current_user: User = Depends(require_manager), db: Session = Depends(get_db)) -> MessageResponse:
    organization.delete_user(db, user_id, current_user)
    return MessageResponse(message="User deleted")
