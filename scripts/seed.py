#!/usr/bin/env python3
"""Seed a development database with chiefdoms, staff accounts and workers.

Safe to run repeatedly: existing rows are left alone and workers are
re-attached to their chiefdom.
"""
import logging

from railfaults import models  # noqa: F401
from railfaults.auth import get_password_hash
from railfaults.database import Base, SessionLocal, engine
from railfaults.models import Chiefdom, RoleEnum, User

logger = logging.getLogger("seed")

DEFAULT_PASSWORD = "123"
CHIEFDOM_COUNT = 5
WORKERS_PER_CHIEFDOM = 3


def _ensure_user(db, username: str, full_name: str, role: RoleEnum, chiefdom_id=None) -> User:
    user = db.query(User).filter(User.username == username).first()
    if user is None:
        user = User(
            username=username,
            hashed_password=get_password_hash(DEFAULT_PASSWORD),
            full_name=full_name,
            role=role,
            chiefdom_id=chiefdom_id,
        )
        db.add(user)
    elif chiefdom_id is not None:
        user.chiefdom_id = chiefdom_id
    return user


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        chiefdoms = []
        for i in range(1, CHIEFDOM_COUNT + 1):
            name = f"Chiefdom {i}"
            chiefdom = db.query(Chiefdom).filter(Chiefdom.name == name).first()
            if chiefdom is None:
                chiefdom = Chiefdom(name=name)
                db.add(chiefdom)
            chiefdoms.append(chiefdom)
        db.flush()

        _ensure_user(db, "admin", "System Admin", RoleEnum.ADMIN)
        _ensure_user(db, "ctc", "CTC Watchman", RoleEnum.CTC_WATCHMAN)
        for chiefdom in chiefdoms:
            for i in range(1, WORKERS_PER_CHIEFDOM + 1):
                _ensure_user(
                    db,
                    f"worker_{chiefdom.id}_{i}",
                    f"Worker {i} of {chiefdom.name}",
                    RoleEnum.WORKER,
                    chiefdom_id=chiefdom.id,
                )
        db.commit()
    finally:
        db.close()
    logger.info(
        "Seed data created: %d chiefdoms, admin, CTC watchman and %d workers",
        CHIEFDOM_COUNT,
        CHIEFDOM_COUNT * WORKERS_PER_CHIEFDOM,
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed()
