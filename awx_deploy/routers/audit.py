# =============================================================================
# Audit Router
# =============================================================================
# Endpoints for browsing the deploy audit trail.
# =============================================================================

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from awx_deploy.auth.dependencies import AuthenticatedUser, get_current_user
from awx_deploy.models import AuditDetail, AuditRecord
from awx_deploy.services.audit_service import get_audit_service

router = APIRouter(prefix="/audit", tags=["audit"])


class AuditListResponse(BaseModel):
    items: list[AuditRecord]
    count: int


@router.get("/", response_model=AuditListResponse)
def list_audit_records(
    start: Optional[datetime] = Query(None, description="Inclusive lower bound"),
    end: Optional[datetime] = Query(None, description="Inclusive upper bound"),
    limit: int = Query(200, ge=1, le=1000, description="Maximum results"),
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> AuditListResponse:
    """List audit records, newest first."""
    records = get_audit_service().query(start=start, end=end, limit=limit)
    return AuditListResponse(items=records, count=len(records))


@router.get("/detail", response_model=AuditDetail)
def get_audit_detail(
    timestamp: datetime = Query(..., description="Timestamp of the record"),
    hostname: str = Query(..., description="Target host of the record"),
    actor: str = Query(..., description="Operator of the record"),
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> AuditDetail:
    """Get the detail document of one audit record."""
    detail = get_audit_service().get_detail(timestamp, hostname, actor)
    if detail is None:
        raise HTTPException(status_code=404, detail="Audit detail not found")
    return detail
