# =============================================================================
# FastAPI Main Application
# =============================================================================
# Entry point for the deploy gateway API.
# =============================================================================

import logging

from fastapi import FastAPI

from awx_deploy import __version__
from awx_deploy.config import get_settings
from awx_deploy.routers import audit, awx, health

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Application instance
app = FastAPI(
    title="AWX Deploy Gateway",
    description="Launch AWX job templates against single hosts through disposable inventories, with an audit trail.",
    version=__version__,
)

# Include routers
app.include_router(health.router)
app.include_router(awx.router)
app.include_router(audit.router)
