from typing import Any, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from railfaults import organization
from railfaults.database import get_db
from railfaults.dependencies import get_current_user, require_manager
from railfaults.models import Chiefdom, Project, Region, User
from railfaults.schemas import (
    ChiefdomCreate,
    ChiefdomRead,
    ChiefdomUpdate,
    MessageResponse,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
    RegionCreate,
    RegionRead,
    RegionUpdate,
)

regions_router = APIRouter(prefix="/regions", tags=["organization"])
projects_router = APIRouter(prefix="/projects", tags=["organization"])
chiefdoms_router = APIRouter(prefix="/chiefdoms", tags=["organization"])


@regions_router.get("", response_model=List[RegionRead])
def list_regions(_: User = Depends(get_current_user), db: Session = Depends(get_db)) -> List[Region]:
    return organization.list_regions(db)


@regions_router.post("", response_model=RegionRead, status_code=status.HTTP_201_CREATED)
def create_region(region_in: RegionCreate, _: User = Depends(require_manager), db: Session = Depends(get_db)) -> Region:
    return organization.create_region(db, region_in)


@regions_router.put("/{region_id}", response_model=RegionRead)
def update_region(
    region_id: int, region_update: RegionUpdate, _: User = Depends(require_manager), db: Session = Depends(get_db)
) -> Region:
    return organization.update_region(db, region_id, region_update)


@regions_router.delete("/{region_id}", response_model=MessageResponse)
def delete_region(region_id: int, _: User = Depends(require_manager), db: Session = Depends(get_db)) -> MessageResponse:
    organization.delete_region(db, region_id)
    return MessageResponse(message="Region deleted")


@projects_router.get("", response_model=List[ProjectRead])
def list_projects(_: User = Depends(get_current_user), db: Session = Depends(get_db)) -> List[Project]:
    return organization.list_projects(db)


@projects_router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    project_in: ProjectCreate, _: User = Depends(require_manager), db: Session = Depends(get_db)
) -> Project:
    return organization.create_project(db, project_in)


@projects_router.put("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: int, project_update: ProjectUpdate, _: User = Depends(require_manager), db: Session = Depends(get_db)
) -> Project:
    return organization.update_project(db, project_id, project_update)


@projects_router.delete("/{project_id}", response_model=MessageResponse)
def delete_project(project_id: int, _: User = Depends(require_manager), db: Session = Depends(get_db)) -> MessageResponse:
    organization.delete_project(db, project_id)
    return MessageResponse(message="Project deleted")


@chiefdoms_router.get("", response_model=List[ChiefdomRead])
def list_chiefdoms(_: User = Depends(get_current_user), db: Session = Depends(get_db)) -> List[dict[str, Any]]:
    return organization.list_chiefdom_directory(db)


@chiefdoms_router.get("/{chiefdom_id}", response_model=ChiefdomRead)
def get_chiefdom(chiefdom_id: int, _: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Chiefdom:
    return organization.get_chiefdom(db, chiefdom_id)


@chiefdoms_router.post("", response_model=ChiefdomRead, status_code=status.HTTP_201_CREATED)
def create_chiefdom(
    chiefdom_in: ChiefdomCreate, _: User = Depends(require_manager), db: Session = Depends(get_db)
) -> Chiefdom:
    return organization.create_chiefdom(db, chiefdom_in)


@chiefdoms_router.put("/{chiefdom_id}", response_model=ChiefdomRead)
def update_chiefdom(
    chiefdom_id: int,
    chiefdom_update: ChiefdomUpdate,
    _: User = Depends(require_manager),
    db: Session = Depends(get_db),
) -> Chiefdom:
    return organization.update_chiefdom(db, chiefdom_id, chiefdom_update)


@chiefdoms_router.delete("/{chiefdom_id}", response_model=MessageResponse)
def delete_chiefdom(chiefdom_id: int, _: User = Depends(require_manager), db: Session = Depends(get_db)) -> MessageResponse:
    organization.delete_chiefdom(db, chiefdom_id)
    return MessageResponse(message="Chiefdom deleted")
