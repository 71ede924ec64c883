# =============================================================================
# Data Models
# =============================================================================
# Models shared by the AWX client, the deploy workflow and the audit trail.
# =============================================================================

"""
Data models for the deploy gateway.

This package provides:
- AWX resources: JobTemplate, ScopedInventory, JobStatus, JobSnapshot
- DeployAttempt: session-scoped context of an in-flight job
- AuditRecord / AuditDetail: audit trail entries
"""

from .awx import (
    TERMINAL_STATUSES,
    JobSnapshot,
    JobStatus,
    JobTemplate,
    ScopedInventory,
)
from .attempt import UNKNOWN_PLACEHOLDER, DeployAttempt
from .audit import AuditDetail, AuditRecord

__all__ = [
    # AWX
    "JobSnapshot",
    "JobStatus",
    "JobTemplate",
    "ScopedInventory",
    "TERMINAL_STATUSES",
    # Session
    "DeployAttempt",
    "UNKNOWN_PLACEHOLDER",
    # Audit
    "AuditDetail",
    "AuditRecord",
]
