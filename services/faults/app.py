from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator

from railfaults import models  # noqa: F401  registers tables on Base.metadata
from railfaults.config import get_settings
from railfaults.database import Base, engine
from railfaults.errors import register_error_handlers
from railfaults.images import upload_root
from railfaults.logging_middleware import add_audit_middleware
from railfaults.rate_limit import apply_rate_limiter

from .routers import auth, faults, organization, users

settings = get_settings()
API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title="Rail Fault Tracker",
        description="Fault reporting, closure and image attachments for railway maintenance units",
        version="1.0.0",
        lifespan=lifespan,
    )
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "faults")
    register_error_handlers(fastapi_app)

    fastapi_app.include_router(auth.router, prefix=API_PREFIX)
    fastapi_app.include_router(faults.router, prefix=API_PREFIX)
    fastapi_app.include_router(organization.regions_router, prefix=API_PREFIX)
    fastapi_app.include_router(organization.projects_router, prefix=API_PREFIX)
    fastapi_app.include_router(organization.chiefdoms_router, prefix=API_PREFIX)
    fastapi_app.include_router(users.router, prefix=API_PREFIX)
    fastapi_app.mount("/uploads", StaticFiles(directory=upload_root()), name="uploads")

    Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "faults"}
