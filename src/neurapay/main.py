# src/neurapay/main.py
"""Main entry point for the NeuraPay access backend."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from neurapay.api.v1 import (
    access_router,
    chat_router,
    leaderboard_router,
    services_router,
    system_router,
)
from neurapay.core.settings import settings

# Initialize FastAPI app
app = FastAPI(
    title="NeuraPay API",
    description="Pay-per-use access to AI services gated by on-chain payments",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(access_router, prefix="/api/v1")
app.include_router(leaderboard_router, prefix="/api/v1")
app.include_router(chat_router, prefix="/api/v1")
app.include_router(services_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok", "message": "NeuraPay access API is running"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Pay-per-use access to AI services gated by on-chain payments",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("neurapay.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
