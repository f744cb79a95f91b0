"""Fault lifecycle: creation, listing, field updates, closure and deletion."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from .errors import AccessDeniedError, InternalError, NotFoundError, ValidationError
from .images import IngestBatch, RawImage, enforce_batch_limit, ingest_images, path_for_url, remove_stored_files
from .models import CLOSURE_FIELDS, Chiefdom, Fault, FaultImage, FaultStatus, RoleEnum, User
from .schemas import FaultCreate, FaultUpdate
from .scoping import FaultView, ScopeFilter

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "assigned_to_id") + CLOSURE_FIELDS
REQUIRED_FOR_CLOSURE = ("fault_date", "solution")
VIEW_STATUS = {FaultView.ACTIVE: FaultStatus.OPEN, FaultView.HISTORY: FaultStatus.CLOSED}
REPORTER_OVERRIDE_ROLES = {RoleEnum.ADMIN, RoleEnum.ENGINEER}

CLOSURE_DATE_FORMAT = "%d.%m.%Y"
CLOSURE_TIME_FORMAT = "%H:%M"
EPOCH = datetime(1970, 1, 1)


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _fault_query(db: Session) -> Query:
    return db.query(Fault).options(
        selectinload(Fault.chiefdom),
        selectinload(Fault.reported_by),
        selectinload(Fault.assigned_to),
        selectinload(Fault.images),
    )


def _apply_scope(query: Query, scope: ScopeFilter) -> Query:
    if scope.chiefdom_id is not None:
        query = query.filter(Fault.chiefdom_id == scope.chiefdom_id)
    if scope.reported_by_id is not None:
        query = query.filter(Fault.reported_by_id == scope.reported_by_id)
    return query


def _require_user(db: Session, user_id: int, label: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"{label} {user_id} not found")
    return user


def _commit(db: Session, batch: Optional[IngestBatch] = None) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        if batch is not None:
            remove_stored_files(batch.stored_paths)
        logger.exception("Fault commit failed")
        raise InternalError("Could not save fault") from exc


def closure_timestamp(fault: Fault) -> datetime:
    """Timestamp of the closure record, or the epoch when it has no usable date."""

    if _is_blank(fault.fault_date):
        return EPOCH
    try:
        day = datetime.strptime(fault.fault_date.strip(), CLOSURE_DATE_FORMAT)
    except ValueError:
        return EPOCH
    if not _is_blank(fault.fault_time):
        try:
            clock = datetime.strptime(fault.fault_time.strip(), CLOSURE_TIME_FORMAT)
        except ValueError:
            return day
        return day.replace(hour=clock.hour, minute=clock.minute)
    return day


def get_fault(db: Session, fault_id: int, scope: ScopeFilter) -> Fault:
    fault = _apply_scope(_fault_query(db), scope).filter(Fault.id == fault_id).first()
    if fault is None:
        # Faults outside the caller's scope are indistinguishable from missing ones.
        raise NotFoundError(f"Fault {fault_id} not found")
    return fault


def list_faults(
    db: Session,
    scope: ScopeFilter,
    *,
    chiefdom_id: Optional[int] = None,
    reported_by_id: Optional[int] = None,
    status: Optional[FaultStatus] = None,
    view: Optional[FaultView] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Fault]:
    """Faults visible under ``scope`` narrowed by the explicit filters.

    Without a view every status is listed newest-created first. The active
    view keeps open faults in that order. The history view keeps closed faults
    ordered by closure date and time, newest first, with a stable sort so faults
    sharing a closure timestamp keep their creation order.
    """
    query = _apply_scope(_fault_query(db), scope)
    if chiefdom_id is not None:
        query = query.filter(Fault.chiefdom_id == chiefdom_id)
    if reported_by_id is not None:
        query = query.filter(Fault.reported_by_id == reported_by_id)
    if status is not None:
        query = query.filter(Fault.status == status)
    if view is not None:
        query = query.filter(Fault.status == VIEW_STATUS[view])
    query = query.order_by(Fault.created_at.desc(), Fault.id.desc())

    if view is FaultView.HISTORY:
        faults = sorted(query.all(), key=closure_timestamp, reverse=True)
        end = None if limit is None else offset + limit
        return faults[offset:end]

    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def create_fault(
    db: Session,
    data: FaultCreate,
    reporter: User,
    scope: ScopeFilter,
    images: Sequence[RawImage] = (),
) -> Tuple[Fault, IngestBatch]:
    """Create a fault and attach any uploaded images in one commit.

    Only admins and engineers may file a fault on behalf of another reporter.
    """
    enforce_batch_limit(images)
    for field in ("title", "description"):
        if _is_blank(getattr(data, field)):
            raise ValidationError(f"'{field}' is required")
    if data.status is FaultStatus.CLOSED:
        _check_closure_fields(data)

    if db.get(Chiefdom, data.chiefdom_id) is None:
        raise NotFoundError(f"Chiefdom {data.chiefdom_id} not found")
    reported_by_id = data.reported_by_id if data.reported_by_id is not None else reporter.id
    if reported_by_id != reporter.id and reporter.role not in REPORTER_OVERRIDE_ROLES:
        raise AccessDeniedError("Only admins and engineers can report on behalf of another user")
    _require_user(db, reported_by_id, "Reporter")
    if data.assigned_to_id is not None:
        _require_user(db, data.assigned_to_id, "Assignee")

    fault = Fault(
        title=data.title.strip(),
        description=data.description.strip(),
        status=data.status,
        chiefdom_id=data.chiefdom_id,
        reported_by_id=reported_by_id,
        assigned_to_id=data.assigned_to_id,
    )
    for field in CLOSURE_FIELDS:
        value = getattr(data, field)
        if not _is_blank(value):
            setattr(fault, field, value)
    if not scope.allows(fault):
        raise AccessDeniedError("Fault is outside your scope")

    db.add(fault)
    # Images need the fault id in their log lines; the rows themselves go in one commit.
    db.flush()
    batch = ingest_images(db, fault, images)
    _commit(db, batch)
    logger.info(
        "Fault %s created in chiefdom %s by user %s with %d image(s)",
        fault.id,
        fault.chiefdom_id,
        reporter.id,
        batch.ingested_count,
    )
    return get_fault(db, fault.id, scope), batch


def _check_closure_fields(changes: object) -> None:
    missing = [field for field in REQUIRED_FOR_CLOSURE if _is_blank(getattr(changes, field, None))]
    if missing:
        raise ValidationError(f"Closing a fault requires: {', '.join(missing)}")


def _check_assignee(db: Session, changes: FaultUpdate) -> None:
    if changes.assigned_to_id is not None:
        _require_user(db, changes.assigned_to_id, "Assignee")


def _merge_fields(fault: Fault, changes: FaultUpdate) -> List[str]:
    """Copy provided, non-empty fields onto ``fault``; others keep their value."""

    changed = []
    for field in EDITABLE_FIELDS:
        if field not in changes.model_fields_set:
            continue
        value = getattr(changes, field)
        if _is_blank(value):
            continue
        setattr(fault, field, value)
        changed.append(field)
    return changed


def _mutate(
    db: Session,
    fault: Fault,
    changes: FaultUpdate,
    images: Sequence[RawImage],
    close: bool,
) -> Tuple[Fault, IngestBatch]:
    batch = ingest_images(db, fault, images)
    changed = _merge_fields(fault, changes)
    if close:
        fault.status = FaultStatus.CLOSED
    _commit(db, batch)
    db.refresh(fault)
    logger.info(
        "Fault %s updated (fields=%s, images=%d, status=%s)",
        fault.id,
        ",".join(changed) or "-",
        batch.ingested_count,
        fault.status.value,
    )
    return fault, batch


def transition_to_closed(
    db: Session, fault_id: int, changes: FaultUpdate, images: Sequence[RawImage], scope: ScopeFilter
) -> Tuple[Fault, IngestBatch]:
    fault = get_fault(db, fault_id, scope)
    enforce_batch_limit(images)
    _check_closure_fields(changes)
    _check_assignee(db, changes)
    return _mutate(db, fault, changes, images, close=True)


def update_fault_fields(
    db: Session, fault_id: int, changes: FaultUpdate, images: Sequence[RawImage], scope: ScopeFilter
) -> Tuple[Fault, IngestBatch]:
    fault = get_fault(db, fault_id, scope)
    enforce_batch_limit(images)
    if changes.status is FaultStatus.OPEN and fault.status is FaultStatus.CLOSED:
        raise ValidationError("A closed fault cannot be reopened")
    _check_assignee(db, changes)
    return _mutate(db, fault, changes, images, close=False)


def apply_fault_update(
    db: Session, fault_id: int, changes: FaultUpdate, images: Sequence[RawImage], scope: ScopeFilter
) -> Tuple[Fault, IngestBatch]:
    """Route an update to closure or a plain field edit based on ``status``."""

    if changes.status is FaultStatus.CLOSED:
        return transition_to_closed(db, fault_id, changes, images, scope)
    return update_fault_fields(db, fault_id, changes, images, scope)


def delete_fault(db: Session, fault_id: int, scope: ScopeFilter) -> None:
    fault = get_fault(db, fault_id, scope)
    paths = [path_for_url(image.url) for image in fault.images]
    for image in list(fault.images):
        db.delete(image)
    db.delete(fault)
    _commit(db)
    remove_stored_files(paths)
    logger.info("Fault %s deleted with %d image(s)", fault_id, len(paths))


def delete_fault_image(db: Session, image_id: int, scope: ScopeFilter) -> None:
    image = db.get(FaultImage, image_id)
    if image is None or not scope.allows(image.fault):
        raise NotFoundError(f"Image {image_id} not found")
    path = path_for_url(image.url)
    db.delete(image)
    _commit(db)
    remove_stored_files([path])
    logger.info("Image %s removed from fault %s", image_id, image.fault_id)
