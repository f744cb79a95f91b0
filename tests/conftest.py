import io
import os
import tempfile
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="railfaults-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_ROOT / 'test.db'}")
os.environ.setdefault("UPLOAD_DIR", str(_TEST_ROOT / "uploads"))
os.environ.setdefault("LOG_DIR", str(_TEST_ROOT / "logs"))
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("RUN_DB_MIGRATIONS", "false")

from railfaults.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from railfaults.auth import get_password_hash  # noqa: E402
from railfaults.cache import directory_cache  # noqa: E402
from railfaults.database import Base, SessionLocal, engine  # noqa: E402
from railfaults.models import Chiefdom, RoleEnum, User  # noqa: E402
from services.faults.app import app  # noqa: E402

PASSWORD = "secret-pass"
# Hashing is deliberately slow; reuse one hash for every fixture user.
_PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    directory_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def upload_dir() -> Path:
    return Path(os.environ["UPLOAD_DIR"])


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def make_chiefdom(db_session) -> Callable[..., Chiefdom]:
    def factory(name: str, project_id: Optional[int] = None) -> Chiefdom:
        chiefdom = Chiefdom(name=name, project_id=project_id)
        db_session.add(chiefdom)
        db_session.commit()
        return chiefdom

    return factory


@pytest.fixture()
def make_user(db_session) -> Callable[..., User]:
    def factory(username: str, role: RoleEnum, chiefdom_id: Optional[int] = None) -> User:
        user = User(
            username=username,
            hashed_password=_PASSWORD_HASH,
            full_name=username.title(),
            role=role,
            chiefdom_id=chiefdom_id,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return factory


def creds(user: User) -> tuple[str, str]:
    return (user.username, PASSWORD)


def photo_bytes(size: tuple[int, int] = (2048, 1536), fmt: str = "JPEG") -> bytes:
    """Noisy image standing in for a phone photo."""

    image = Image.effect_noise(size, 64).convert("RGB")
    buffer = io.BytesIO()
    save_kwargs = {"quality": 95} if fmt == "JPEG" else {}
    image.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()
