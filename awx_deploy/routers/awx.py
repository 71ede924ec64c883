# =============================================================================
# AWX Router
# =============================================================================
# Endpoints to list templates, launch a deploy, poll and finalize its job.
# Handlers are sync: AWX calls block and run in the FastAPI threadpool.
# =============================================================================

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator

from awx_deploy.auth.dependencies import (
    AuthenticatedUser,
    get_attempt_context,
    get_current_user,
)
from awx_deploy.services.deploy_service import get_deploy_service
from awx_deploy.services.job_monitor import is_terminal
from awx_deploy.services.session_store import AttemptContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/awx", tags=["awx"])


class TemplateListResponse(BaseModel):
    templates: list[str]


class LaunchRequest(BaseModel):
    """Launch a job template against one host."""

    hostname: str = Field(..., description="Target host")
    template_name: str = Field(..., description="AWX job template name")

    @field_validator("hostname", "template_name")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()


class LaunchResponse(BaseModel):
    success: bool
    log: str
    job_id: Optional[int] = None


class JobStatusResponse(BaseModel):
    job_id: int
    status: str
    output: str
    terminal: bool


class FinalizeRequest(BaseModel):
    final_status: str = Field(..., description="Terminal status seen by the poller")
    output: str = Field("", description="Final job output")


class FinalizeResponse(BaseModel):
    success: bool
    message: str


class SessionResponse(BaseModel):
    """In-flight attempt of the caller's session, if any."""

    job_id: Optional[int] = None
    hostname: Optional[str] = None
    template_name: Optional[str] = None
    start_time: Optional[datetime] = None
    inventory_id: Optional[int] = None
    active: bool = False


@router.get("/templates", response_model=TemplateListResponse)
def list_templates(
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> TemplateListResponse:
    """List AWX job templates. Empty when AWX is unavailable."""
    return TemplateListResponse(templates=get_deploy_service().get_templates())


@router.post("/launch", response_model=LaunchResponse)
def launch(
    body: LaunchRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    context: AttemptContext = Depends(get_attempt_context),
) -> LaunchResponse:
    """
    Launch a job template against a host.

    Creates a scoped inventory for the job; the caller then polls
    ``/awx/jobs/{job_id}/status`` and calls finalize once it is terminal.
    """
    outcome = get_deploy_service().launch(
        body.hostname, body.template_name, current_user.actor, context
    )
    return LaunchResponse(success=outcome.success, log=outcome.log, job_id=outcome.job_id)


@router.get("/jobs/{job_id}/status", response_model=JobStatusResponse)
def job_status(
    job_id: int,
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> JobStatusResponse:
    """Poll a job's status and output."""
    snapshot = get_deploy_service().poll_status(job_id)
    return JobStatusResponse(
        job_id=job_id,
        status=snapshot.status.value,
        output=snapshot.output,
        terminal=is_terminal(snapshot.status),
    )


@router.post("/jobs/{job_id}/finalize", response_model=FinalizeResponse)
def finalize(
    job_id: int,
    body: FinalizeRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    context: AttemptContext = Depends(get_attempt_context),
) -> FinalizeResponse:
    """Record the job outcome and release its scoped inventory."""
    try:
        result = get_deploy_service().finalize(
            job_id, body.final_status, body.output, current_user.actor, context
        )
    except Exception as exc:
        logger.exception(f"Failed to finalize job {job_id}")
        raise HTTPException(status_code=503, detail=f"Failed to finalize job: {exc}") from exc

    return FinalizeResponse(success=result.success, message=result.message)


@router.get("/session", response_model=SessionResponse)
def current_session(
    current_user: AuthenticatedUser = Depends(get_current_user),
    context: AttemptContext = Depends(get_attempt_context),
) -> SessionResponse:
    """The caller's in-flight job, so a monitor view can resume after navigation."""
    attempt = get_deploy_service().current_attempt(context)
    if attempt is None:
        return SessionResponse()
    return SessionResponse(**attempt.model_dump(), active=True)
