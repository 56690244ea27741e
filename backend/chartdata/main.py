"""
Chart Data Client - FastAPI Application.

Main entry point for the backend API server.
Serves chart data bundles (form data, datasource metadata,
annotations and query results) assembled from a Superset-style
backend.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chartdata.config import settings
from chartdata.routes import charts
from chartdata.services.plugins import register_default_plugins
from chartdata.services.transport import close_transport, get_transport

app = FastAPI(
    title="Chart Data API",
    description=(
        "API for loading everything a chart widget needs to render "
        "from a Superset-style backend."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware for frontend development server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routes
app.include_router(charts.router)


@app.on_event("startup")
def on_startup():
    """
    Configure logging, register the preset chart plugins and
    build the shared transport.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    register_default_plugins()
    get_transport()


@app.on_event("shutdown")
async def on_shutdown():
    """Close the shared transport's connection pool."""
    await close_transport()


@app.get("/api/health", tags=["health"])
def health_check():
    """Health check endpoint to verify the API is running."""
    return {"status": "ok"}
