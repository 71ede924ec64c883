# =============================================================================
# Services Module
# =============================================================================
# AWX client, deploy workflow, finalization and audit trail.
# =============================================================================

from awx_deploy.services.awx_service import AWXService, get_awx_service
from awx_deploy.services.audit_service import AuditService, get_audit_service
from awx_deploy.services.deploy_service import (
    DeployService,
    LaunchOutcome,
    get_deploy_service,
)
from awx_deploy.services.finalization_service import FinalizationService, FinalizeResult
from awx_deploy.services.job_monitor import JobMonitor, is_terminal
from awx_deploy.services.provisioning_service import ProvisioningService
from awx_deploy.services.reachability import ReachabilityProbe, ReachabilityResult
from awx_deploy.services.session_store import (
    AttemptContext,
    DeploySessionStore,
    get_session_store,
)

__all__ = [
    # AWX
    "AWXService",
    "get_awx_service",
    # Audit
    "AuditService",
    "get_audit_service",
    # Workflow
    "ProvisioningService",
    "JobMonitor",
    "is_terminal",
    "FinalizationService",
    "FinalizeResult",
    "ReachabilityProbe",
    "ReachabilityResult",
    # Caller-facing
    "DeployService",
    "LaunchOutcome",
    "get_deploy_service",
    # Session
    "AttemptContext",
    "DeploySessionStore",
    "get_session_store",
]
