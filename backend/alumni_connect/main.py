from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from alumni_connect.core.config import settings
from alumni_connect.core.logging_config import configure_logging
from alumni_connect.db.base import Base
from alumni_connect.db.session import engine

# Import all models so SQLAlchemy can discover them for table creation
from alumni_connect.models import (  # noqa: F401
    AuthUser,
    ConnectionRequest,
    Event,
    EventRegistration,
    Job,
    JobApplication,
    Profile,
    RevokedToken,
)

# Import API router
from alumni_connect.api.api import api_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on startup."""
    configure_logging()
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Alumni networking data service: authentication and row-level table access",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS Middleware - allowlist from env (comma-separated)
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in settings.BACKEND_CORS_ORIGINS.split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {"message": f"Welcome to {settings.APP_NAME} API"}


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include API router with /api/v1 prefix
app.include_router(api_router, prefix="/api/v1")
