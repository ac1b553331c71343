"""
SITA Web - FastAPI application.

Mounts the onboarding router. Serve with any ASGI server, e.g.
`uvicorn sita.web.app:app`.
"""

import logging

from fastapi import FastAPI

from onboarding.api import router as onboarding_router
from sita import __version__

logger = logging.getLogger(__name__)

app = FastAPI(title="SITA", version=__version__)
app.include_router(onboarding_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__, "service": "sita-onboarding"}
