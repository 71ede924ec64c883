# =============================================================================
# Deploy Errors
# =============================================================================
# Exception taxonomy for the provisioning / launch / finalize workflow.
# =============================================================================

from typing import Optional


class DeployError(Exception):
    """Base class for every deploy workflow failure.

    ``orphaned_inventory_id`` is set when a rollback could not delete the
    scoped inventory created for the failed attempt.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.orphaned_inventory_id: Optional[int] = None


class InvalidHostname(DeployError):
    """Hostname is empty or lacks an allowed prefix."""


class HostUnreachable(DeployError):
    """Target host did not resolve or did not answer the connectivity probe."""


class HostNotRegistered(DeployError):
    """Target host is not present in any AWX inventory."""


class TemplateNotFound(DeployError):
    """No job template matches the requested name."""


class InventoryCreationFailed(DeployError):
    """The scoped inventory could not be created."""


class HostRegistrationFailed(DeployError):
    """The target host could not be added to the scoped inventory."""


class CommunicationError(DeployError):
    """Generic remote I/O failure talking to AWX."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LaunchError(CommunicationError):
    """AWX refused or failed to launch the job template."""


class AuditWriteFailure(DeployError):
    """An audit record could not be persisted. Logged, never fatal."""
