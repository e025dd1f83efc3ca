"""FastAPI application entry point."""

import logging

from fastapi import FastAPI

from app import __version__
from app.api import branches, etabs, health, projects, versions
from app.api.envelope import register_error_handlers
from app.config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="ETABS Version Control",
    description="Branch-and-version storage for ETABS design files with E2K and geometry diffs",
    version=__version__,
    debug=settings.debug,
)

register_error_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(projects.router, prefix="/projects", tags=["projects"])
app.include_router(branches.router, prefix="/branches", tags=["branches"])
app.include_router(versions.router, prefix="/versions", tags=["versions"])
app.include_router(etabs.router, prefix="/etabs", tags=["etabs"])
