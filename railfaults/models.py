"""SQLAlchemy models for the organisation tree, users and faults."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import DateTime, Enum as SqlEnum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class RoleEnum(str, Enum):
    ADMIN = "admin"
    ENGINEER = "engineer"
    CTC_WATCHMAN = "ctc_watchman"
    CTC = "ctc"
    WORKER = "worker"


class FaultStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


# Closure record columns, in the order the closing form presents them.
CLOSURE_FIELDS = (
    "fault_date",
    "fault_time",
    "reporter_name",
    "line_info",
    "closure_fault_info",
    "solution",
    "working_personnel",
    "tcdd_personnel",
)


class Region(Base):
    __tablename__ = "regions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)

    projects: Mapped[List["Project"]] = relationship(back_populates="region")


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    region_id: Mapped[Optional[int]] = mapped_column(ForeignKey("regions.id"), index=True, default=None)

    region: Mapped[Optional[Region]] = relationship(back_populates="projects")
    chiefdoms: Mapped[List["Chiefdom"]] = relationship(back_populates="project")


class Chiefdom(Base):
    __tablename__ = "chiefdoms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    project_id: Mapped[Optional[int]] = mapped_column(ForeignKey("projects.id"), index=True, default=None)

    project: Mapped[Optional[Project]] = relationship(back_populates="chiefdoms")
    users: Mapped[List["User"]] = relationship(back_populates="chiefdom")
    faults: Mapped[List["Fault"]] = relationship(back_populates="chiefdom")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    full_name: Mapped[str] = mapped_column(String(100))
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum), default=RoleEnum.WORKER)
    chiefdom_id: Mapped[Optional[int]] = mapped_column(ForeignKey("chiefdoms.id"), index=True, default=None)
    email: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    phone: Mapped[Optional[str]] = mapped_column(String(30), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    chiefdom: Mapped[Optional[Chiefdom]] = relationship(back_populates="users")
    reported_faults: Mapped[List["Fault"]] = relationship(
        back_populates="reported_by", foreign_keys="Fault.reported_by_id"
    )
    assigned_faults: Mapped[List["Fault"]] = relationship(
        back_populates="assigned_to", foreign_keys="Fault.assigned_to_id"
    )


class Fault(Base):
    __tablename__ = "faults"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    status: Mapped[FaultStatus] = mapped_column(SqlEnum(FaultStatus), default=FaultStatus.OPEN, index=True)
    reported_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    assigned_to_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), index=True, default=None
    )
    chiefdom_id: Mapped[int] = mapped_column(ForeignKey("chiefdoms.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    fault_date: Mapped[Optional[str]] = mapped_column(String(10), default=None)
    fault_time: Mapped[Optional[str]] = mapped_column(String(5), default=None)
    reporter_name: Mapped[Optional[str]] = mapped_column(String(100), default=None)
    line_info: Mapped[Optional[str]] = mapped_column(Text, default=None)
    closure_fault_info: Mapped[Optional[str]] = mapped_column(Text, default=None)
    solution: Mapped[Optional[str]] = mapped_column(Text, default=None)
    working_personnel: Mapped[Optional[str]] = mapped_column(Text, default=None)
    tcdd_personnel: Mapped[Optional[str]] = mapped_column(Text, default=None)

    reported_by: Mapped[User] = relationship(back_populates="reported_faults", foreign_keys=[reported_by_id])
    assigned_to: Mapped[Optional[User]] = relationship(back_populates="assigned_faults", foreign_keys=[assigned_to_id])
    chiefdom: Mapped[Chiefdom] = relationship(back_populates="faults")
    images: Mapped[List["FaultImage"]] = relationship(back_populates="fault", order_by="FaultImage.id")


class FaultImage(Base):
    __tablename__ = "fault_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    fault_id: Mapped[int] = mapped_column(ForeignKey("faults.id", ondelete="CASCADE"), index=True)
    url: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    fault: Mapped[Fault] = relationship(back_populates="images")
