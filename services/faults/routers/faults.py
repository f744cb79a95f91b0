import json
from typing import Any, List, Optional, Tuple, Type, TypeVar

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from railfaults import lifecycle
from railfaults.database import get_db
from railfaults.dependencies import get_current_user, require_manager
from railfaults.errors import ValidationError
from railfaults.images import IngestBatch, RawImage
from railfaults.models import Fault, FaultStatus, User
from railfaults.schemas import (
    FaultCreate,
    FaultMutationRead,
    FaultRead,
    FaultUpdate,
    ImageUploadResult,
    MessageResponse,
)
from railfaults.scoping import FaultView, ScopeFilter, scope_filter

router = APIRouter(prefix="/faults", tags=["faults"])

UPLOAD_FIELDS = {"files", "images"}
FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")

SchemaT = TypeVar("SchemaT", FaultCreate, FaultUpdate)


def active_scope(current_user: User = Depends(get_current_user)) -> ScopeFilter:
    return scope_filter(current_user, FaultView.ACTIVE)


async def _read_payload(request: Request) -> Tuple[dict[str, Any], List[RawImage]]:
    """Split a multipart, urlencoded or JSON body into text fields and raw uploads."""

    fields: dict[str, Any] = {}
    images: List[RawImage] = []
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key in UPLOAD_FIELDS:
                    images.append(
                        RawImage(filename=value.filename or "", content_type=value.content_type, data=await value.read())
                    )
                continue
            # Empty form fields mean "leave unchanged".
            if value.strip():
                fields[key] = value
    else:
        raw = await request.body()
        try:
            body = json.loads(raw) if raw else {}
        except ValueError as exc:
            raise ValidationError("Body must be JSON or multipart form data") from exc
        if not isinstance(body, dict):
            raise ValidationError("Body must be a JSON object")
        fields = body
    return fields, images


def _validate(schema: Type[SchemaT], fields: dict[str, Any], label: str) -> SchemaT:
    try:
        return schema.model_validate(fields)
    except SchemaValidationError as exc:
        raise ValidationError(f"Invalid {label}", errors=exc.errors(include_url=False)) from exc


def _mutation_result(fault: Fault, batch: IngestBatch) -> FaultMutationRead:
    result = FaultMutationRead.model_validate(fault)
    result.uploads = [
        ImageUploadResult(filename=item.filename, ok=item.ok, url=item.url, error=item.error)
        for item in batch.results
    ]
    return result


def _create(
    db: Session, data: FaultCreate, reporter: User, images: List[RawImage], scope: ScopeFilter
) -> FaultMutationRead:
    return _mutation_result(*lifecycle.create_fault(db, data, reporter, scope, images))


def _apply_update(
    db: Session, fault_id: int, changes: FaultUpdate, images: List[RawImage], scope: ScopeFilter
) -> FaultMutationRead:
    return _mutation_result(*lifecycle.apply_fault_update(db, fault_id, changes, images, scope))


@router.get("", response_model=List[FaultRead])
def list_faults(
    chiefdom_id: Optional[int] = Query(default=None, alias="chiefdomId"),
    reported_by_id: Optional[int] = Query(default=None, alias="reportedById"),
    fault_status: Optional[FaultStatus] = Query(default=None, alias="status"),
    view: Optional[FaultView] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[Fault]:
    scope = scope_filter(current_user, view or FaultView.ACTIVE)
    return lifecycle.list_faults(
        db,
        scope,
        chiefdom_id=chiefdom_id,
        reported_by_id=reported_by_id,
        status=fault_status,
        view=view,
        limit=limit,
        offset=offset,
    )


@router.get("/{fault_id}", response_model=FaultRead)
def get_fault(fault_id: int, scope: ScopeFilter = Depends(active_scope), db: Session = Depends(get_db)) -> Fault:
    return lifecycle.get_fault(db, fault_id, scope)


@router.post("", response_model=FaultMutationRead, status_code=status.HTTP_201_CREATED)
async def create_fault(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FaultMutationRead:
    scope = scope_filter(current_user, FaultView.ACTIVE)
    fields, images = await _read_payload(request)
    fault_in = _validate(FaultCreate, fields, "fault")
    return await run_in_threadpool(_create, db, fault_in, current_user, images, scope)


@router.put("/{fault_id}", response_model=FaultMutationRead)
async def update_fault(
    fault_id: int,
    request: Request,
    scope: ScopeFilter = Depends(active_scope),
    db: Session = Depends(get_db),
) -> FaultMutationRead:
    fields, images = await _read_payload(request)
    changes = _validate(FaultUpdate, fields, "fault update")
    return await run_in_threadpool(_apply_update, db, fault_id, changes, images, scope)


@router.delete("/images/{image_id}", response_model=MessageResponse)
def delete_fault_image(
    image_id: int, scope: ScopeFilter = Depends(active_scope), db: Session = Depends(get_db)
) -> MessageResponse:
    lifecycle.delete_fault_image(db, image_id, scope)
    return MessageResponse(message="Image deleted")


@router.delete("/{fault_id}", response_model=MessageResponse)
def delete_fault(
    fault_id: int,
    current_user: User = Depends(require_manager),
    db: Session = Depends(get_db),
) -> MessageResponse:
    lifecycle.delete_fault(db, fault_id, scope_filter(current_user, FaultView.ACTIVE))
    return MessageResponse(message="Fault deleted")
