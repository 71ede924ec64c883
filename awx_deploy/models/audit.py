# =============================================================================
# Audit Record Models
# =============================================================================
# Immutable records of deploy attempts persisted to the audit trail.
# =============================================================================

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


__all__ = ["AuditRecord", "AuditDetail"]


class AuditRecord(BaseModel):
    """
    One deploy attempt: who targeted which host with what, and the outcome.

    Written exactly once per attempt, either when the launch fails or when
    the launched job is finalized.

    Attributes:
        timestamp: When the attempt concluded (UTC)
        actor: Authenticated operator
        hostname: Target host
        template_or_package: Job template (or package) that was deployed
        success: Whether the attempt succeeded
        output: Operator log or job output
        job_id: AWX job id, when a job was launched
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the attempt concluded (UTC)",
    )
    actor: str = Field(..., description="Operator who requested the deploy")
    hostname: str = Field(..., description="Target host")
    template_or_package: str = Field(..., description="Deployed template/package")
    success: bool = Field(..., description="Outcome of the attempt")
    output: str = Field("", description="Operator log or job output")
    job_id: Optional[int] = Field(None, description="AWX job id if launched")


class AuditDetail(AuditRecord):
    """Detailed per-attempt document stored next to the day partitions."""

    log_file: str = Field(..., description="Name of the detail file")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the detail file was written",
    )
