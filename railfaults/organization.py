"""Administration of regions, projects, chiefdoms and user accounts.

Deletes never cascade through the organisation tree: a unit that still has
dependents is refused with ``ConflictError`` so nothing is orphaned silently.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import auth
from .cache import CHIEFDOM_DIRECTORY_KEY, directory_cache, invalidate_directory
from .errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from .models import Chiefdom, Fault, Project, Region, RoleEnum, User
from .schemas import (
    ChiefdomCreate,
    ChiefdomRead,
    ChiefdomUpdate,
    ProjectCreate,
    ProjectUpdate,
    RegionCreate,
    RegionUpdate,
    UserCreate,
    UserUpdate,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

MANAGER_ROLES = {RoleEnum.ADMIN, RoleEnum.ENGINEER}
SELF_SERVICE_FIELDS = {"full_name", "email", "phone", "password"}


def _get_or_404(db: Session, model: Type[ModelT], entity_id: int, label: str) -> ModelT:
    entity = db.get(model, entity_id)
    if entity is None:
        raise NotFoundError(f"{label} {entity_id} not found")
    return entity


def _ensure_unique_name(db: Session, model: Any, name: str, label: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(model).filter(model.name == name)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"{label} '{name}' already exists")


def _commit(db: Session, conflict_message: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(conflict_message) from exc
    invalidate_directory()


# --- Regions ----------------------------------------------------------------


def list_regions(db: Session) -> List[Region]:
    return db.query(Region).options(selectinload(Region.projects)).order_by(Region.name).all()


def create_region(db: Session, data: RegionCreate) -> Region:
    _ensure_unique_name(db, Region, data.name, "Region")
    region = Region(name=data.name)
    db.add(region)
    _commit(db, "Region already exists")
    return region


def update_region(db: Session, region_id: int, data: RegionUpdate) -> Region:
    region = _get_or_404(db, Region, region_id, "Region")
    if data.name is not None:
        _ensure_unique_name(db, Region, data.name, "Region", exclude_id=region_id)
        region.name = data.name
    _commit(db, "Region already exists")
    return region


def delete_region(db: Session, region_id: int) -> None:
    region = _get_or_404(db, Region, region_id, "Region")
    if region.projects:
        raise ConflictError(f"Region {region_id} has dependents: {len(region.projects)} project(s)")
    db.delete(region)
    _commit(db, "Region has dependents")
    logger.info("Region %s deleted", region_id)


# --- Projects ---------------------------------------------------------------


def list_projects(db: Session) -> List[Project]:
    return (
        db.query(Project)
        .options(selectinload(Project.chiefdoms), selectinload(Project.region))
        .order_by(Project.name)
        .all()
    )


def create_project(db: Session, data: ProjectCreate) -> Project:
    _ensure_unique_name(db, Project, data.name, "Project")
    if data.region_id is not None:
        _get_or_404(db, Region, data.region_id, "Region")
    project = Project(name=data.name, region_id=data.region_id)
    db.add(project)
    _commit(db, "Project already exists")
    return project


def update_project(db: Session, project_id: int, data: ProjectUpdate) -> Project:
    project = _get_or_404(db, Project, project_id, "Project")
    if data.name is not None:
        _ensure_unique_name(db, Project, data.name, "Project", exclude_id=project_id)
        project.name = data.name
    if "region_id" in data.model_fields_set:
        if data.region_id is not None:
            _get_or_404(db, Region, data.region_id, "Region")
        project.region_id = data.region_id
    _commit(db, "Project already exists")
    return project


def delete_project(db: Session, project_id: int) -> None:
    project = _get_or_404(db, Project, project_id, "Project")
    if project.chiefdoms:
        raise ConflictError(f"Project {project_id} has dependents: {len(project.chiefdoms)} chiefdom(s)")
    db.delete(project)
    _commit(db, "Project has dependents")
    logger.info("Project %s deleted", project_id)


# --- Chiefdoms --------------------------------------------------------------


def list_chiefdom_directory(db: Session) -> List[dict[str, Any]]:
    """Chiefdoms with their project and assigned users, served from the TTL cache."""

    def load() -> List[dict[str, Any]]:
        chiefdoms = (
            db.query(Chiefdom)
            .options(selectinload(Chiefdom.users), selectinload(Chiefdom.project))
            .order_by(Chiefdom.name)
            .all()
        )
        return [ChiefdomRead.model_validate(c).model_dump(mode="json", by_alias=True) for c in chiefdoms]

    return directory_cache.get_or_load(CHIEFDOM_DIRECTORY_KEY, load)


def get_chiefdom(db: Session, chiefdom_id: int) -> Chiefdom:
    return _get_or_404(db, Chiefdom, chiefdom_id, "Chiefdom")


def create_chiefdom(db: Session, data: ChiefdomCreate) -> Chiefdom:
    _ensure_unique_name(db, Chiefdom, data.name, "Chiefdom")
    if data.project_id is not None:
        _get_or_404(db, Project, data.project_id, "Project")
    chiefdom = Chiefdom(name=data.name, project_id=data.project_id)
    db.add(chiefdom)
    _commit(db, "Chiefdom already exists")
    return chiefdom


def update_chiefdom(db: Session, chiefdom_id: int, data: ChiefdomUpdate) -> Chiefdom:
    chiefdom = get_chiefdom(db, chiefdom_id)
    if data.name is not None:
        _ensure_unique_name(db, Chiefdom, data.name, "Chiefdom", exclude_id=chiefdom_id)
        chiefdom.name = data.name
    if "project_id" in data.model_fields_set:
        if data.project_id is not None:
            _get_or_404(db, Project, data.project_id, "Project")
        chiefdom.project_id = data.project_id
    _commit(db, "Chiefdom already exists")
    return chiefdom


def delete_chiefdom(db: Session, chiefdom_id: int) -> None:
    chiefdom = get_chiefdom(db, chiefdom_id)
    user_count = len(chiefdom.users)
    fault_count = db.query(Fault).filter(Fault.chiefdom_id == chiefdom_id).count()
    if user_count or fault_count:
        raise ConflictError(
            f"Chiefdom {chiefdom_id} has dependents: {user_count} user(s), {fault_count} fault(s)"
        )
    db.delete(chiefdom)
    _commit(db, "Chiefdom has dependents")
    logger.info("Chiefdom %s deleted", chiefdom_id)


# --- Users ------------------------------------------------------------------


def list_users(db: Session) -> List[User]:
    return db.query(User).options(selectinload(User.chiefdom)).order_by(User.username).all()


def get_user(db: Session, user_id: int) -> User:
    return _get_or_404(db, User, user_id, "User")


def _check_role_grant(actor: User, role: Optional[RoleEnum]) -> None:
    if role is RoleEnum.ADMIN and actor.role is not RoleEnum.ADMIN:
        raise AccessDeniedError("Only admins can grant the admin role")


def _check_assignment(db: Session, user: User) -> None:
    if user.chiefdom_id is not None:
        _get_or_404(db, Chiefdom, user.chiefdom_id, "Chiefdom")
    if user.role is RoleEnum.WORKER and user.chiefdom_id is None:
        raise ValidationError("Workers must be assigned to a chiefdom")


def create_user(db: Session, data: UserCreate, actor: User) -> User:
    _check_role_grant(actor, data.role)
    if db.query(User).filter(User.username == data.username).first() is not None:
        raise ConflictError(f"Username '{data.username}' already exists")
    user = User(
        username=data.username,
        hashed_password=auth.get_password_hash(data.password),
        full_name=data.full_name,
        role=data.role,
        chiefdom_id=data.chiefdom_id,
        email=data.email,
        phone=data.phone,
    )
    _check_assignment(db, user)
    db.add(user)
    _commit(db, "Username already exists")
    logger.info("User %s (%s) created by %s", user.username, user.role.value, actor.username)
    return user


def update_user(db: Session, user_id: int, data: UserUpdate, actor: User) -> User:
    """Apply an account update.

    Admins and engineers may edit any account (admin accounts only by admins).
    Everyone else may only change the profile fields of their own account.
    """
    changes = data.model_dump(exclude_unset=True)
    if actor.role not in MANAGER_ROLES:
        if actor.id != user_id:
            raise AccessDeniedError("Users may only update their own profile")
        forbidden = set(changes) - SELF_SERVICE_FIELDS
        if forbidden:
            raise AccessDeniedError(f"Cannot change {', '.join(sorted(forbidden))} on your own account")

    user = get_user(db, user_id)
    if user.role is RoleEnum.ADMIN and actor.role is not RoleEnum.ADMIN:
        raise AccessDeniedError("Only admins can modify admin accounts")
    _check_role_grant(actor, data.role)

    password = changes.pop("password", None)
    if "username" in changes and changes["username"] != user.username:
        if db.query(User).filter(User.username == changes["username"]).first() is not None:
            raise ConflictError(f"Username '{changes['username']}' already exists")
    for field, value in changes.items():
        if value is None and field != "chiefdom_id":
            continue
        setattr(user, field, value)
    if password:
        user.hashed_password = auth.get_password_hash(password)
    _check_assignment(db, user)
    _commit(db, "Username already exists")
    return user


def delete_user(db: Session, user_id: int, actor: User) -> None:
    user = get_user(db, user_id)
    if user.id == actor.id:
        raise ConflictError("Users cannot delete their own account")
    if user.role is RoleEnum.ADMIN and actor.role is not RoleEnum.ADMIN:
        raise AccessDeniedError("Only admins can delete admin accounts")
    reported = db.query(Fault).filter(Fault.reported_by_id == user_id).count()
    if reported:
        raise ConflictError(f"User {user_id} has dependents: {reported} reported fault(s)")
    db.query(Fault).filter(Fault.assigned_to_id == user_id).update(
        {Fault.assigned_to_id: None}, synchronize_session=False
    )
    db.delete(user)
    _commit(db, "User has dependents")
    logger.info("User %s deleted by %s", user.username, actor.username)
