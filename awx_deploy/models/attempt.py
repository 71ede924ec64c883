# =============================================================================
# Deploy Attempt Model
# =============================================================================
# Session-scoped context of one in-flight AWX job.
# =============================================================================

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


__all__ = ["DeployAttempt", "UNKNOWN_PLACEHOLDER"]


UNKNOWN_PLACEHOLDER = "Unknown"


class DeployAttempt(BaseModel):
    """
    Context of a launched job, held by the requesting session until finalize.

    Every field is optional so that a partially populated (or stale) session
    can still be loaded; finalization substitutes placeholders for gaps.

    Attributes:
        job_id: AWX job id returned by the launch
        hostname: Target host of the deploy
        template_name: Name of the launched job template
        start_time: When the job was launched (UTC)
        inventory_id: Scoped inventory to release on finalize
    """

    job_id: Optional[int] = Field(None, description="AWX job id")
    hostname: Optional[str] = Field(None, description="Target host")
    template_name: Optional[str] = Field(None, description="Launched template")
    start_time: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Launch timestamp (UTC)",
    )
    inventory_id: Optional[int] = Field(
        None, description="Scoped inventory owned by this attempt"
    )

    @property
    def hostname_or_placeholder(self) -> str:
        return self.hostname or UNKNOWN_PLACEHOLDER

    @property
    def template_or_placeholder(self) -> str:
        return self.template_name or UNKNOWN_PLACEHOLDER
