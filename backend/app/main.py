"""Leasehold - FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.database import close_db
from app.core.env_validation import validate_environment
from app.core.errors import setup_exception_handlers
from app.routers import auth_router, leases_router

# CRITICAL: Validate environment before proceeding
# This will hard-fail (exit 1) if required configuration is missing
validate_environment()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    yield
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Residential lease lifecycle: applications, drafting, e-signature, inspections, renewals and deposits.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS - Dynamically configured from ALLOWED_ORIGINS environment variable
# In production, wildcard (*) is blocked by env_validation.py
allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",")]

print(f"🔒 CORS configured with origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

# API v1 routers
app.include_router(auth_router, prefix=settings.api_v1_prefix)
app.include_router(leases_router, prefix=settings.api_v1_prefix)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
    }
