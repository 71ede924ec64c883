# =============================================================================
# Health Router
# =============================================================================
# Liveness of the gateway and identity of the calling operator.
# =============================================================================

import os

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from awx_deploy import __version__
from awx_deploy.auth.dependencies import AuthenticatedUser, get_current_user
from awx_deploy.config import Settings, get_settings

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    awx_configured: bool
    audit_writable: bool


class OperatorResponse(BaseModel):
    username: str
    display_name: str
    actor: str


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Unauthenticated probe for container orchestration.

    Reports ``degraded`` when audit records could not be written, since every
    deploy attempt must leave one.
    """
    audit_writable = os.access(settings.audit_log_dir, os.W_OK)
    return HealthResponse(
        status="healthy" if audit_writable else "degraded",
        version=__version__,
        awx_configured=bool(settings.awx_token),
        audit_writable=audit_writable,
    )


@router.get("/whoami", response_model=OperatorResponse)
async def whoami(
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> OperatorResponse:
    """The operator recorded as actor for this caller's deploys."""
    return OperatorResponse(
        username=current_user.username,
        display_name=current_user.display_name,
        actor=current_user.actor,
    )
