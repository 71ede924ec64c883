# =============================================================================
# Provisioning Service - Scoped Inventory + Job Launch
# =============================================================================
# Orchestrates one deploy attempt against AWX, rolling back on failure.
# =============================================================================

import logging
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional

from awx_deploy.config import Settings, get_settings
from awx_deploy.errors import (
    DeployError,
    HostNotRegistered,
    HostRegistrationFailed,
    InventoryCreationFailed,
)
from awx_deploy.models import DeployAttempt, ScopedInventory
from awx_deploy.services.awx_service import AWXService

logger = logging.getLogger(__name__)

StepCallback = Callable[[str], None]


def build_inventory_name(prefix: str, hostname: str, now: Optional[datetime] = None) -> str:
    """
    Generate a unique scoped inventory name for a host.

    Example:
        deploy_temp_PDV01_20250101120000_a1b2c3
    """
    now = now or datetime.now(timezone.utc)
    return f"{prefix}_{hostname}_{now:%Y%m%d%H%M%S}_{secrets.token_hex(3)}"


class ProvisioningService:
    """
    Create a scoped inventory, register the host and launch the template.

    Every step is attempted once and in order; each one needs the id the
    previous step produced.
    """

    def __init__(self, awx: AWXService, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        self._awx = awx
        self._organization_id = settings.awx_organization_id
        self._inventory_prefix = settings.awx_inventory_prefix

    def launch(
        self,
        hostname: str,
        template_name: str,
        on_step: Optional[StepCallback] = None,
    ) -> DeployAttempt:
        """
        Launch a job template against a single host.

        Args:
            hostname: Target host (must already exist in AWX)
            template_name: Job template name
            on_step: Optional callback receiving operator-facing progress lines

        Returns:
            DeployAttempt for the launched job. The scoped inventory stays open;
            releasing it is the job of finalization.

        Raises:
            HostNotRegistered: Host unknown to AWX, nothing created
            InventoryCreationFailed: Inventory not created, nothing to roll back
            HostRegistrationFailed: Host not added, inventory rolled back
            TemplateNotFound, LaunchError: Launch failed, inventory rolled back
        """
        step = on_step or (lambda line: None)

        if not self._awx.host_exists(hostname):
            raise HostNotRegistered(
                f"Host '{hostname}' was not found in any AWX inventory. Deploy cancelled."
            )

        step(f"-> Creating ad-hoc inventory for '{hostname}'...")
        started_at = datetime.now(timezone.utc)
        inventory = self._awx.create_inventory(
            build_inventory_name(self._inventory_prefix, hostname, started_at),
            self._organization_id,
        )
        if inventory is None:
            raise InventoryCreationFailed(
                f"Failed to create a temporary inventory for '{hostname}'. Deploy cancelled."
            )
        step(f"OK Ad-hoc inventory created (ID: {inventory.id})")

        try:
            step(f"-> Adding host '{hostname}' to the inventory...")
            if not self._awx.add_host(inventory.id, hostname):
                raise HostRegistrationFailed(
                    f"Failed to add host '{hostname}' to the temporary inventory. Deploy cancelled."
                )
            inventory = ScopedInventory(id=inventory.id, name=inventory.name, hosts=(hostname,))
            step("OK Host added to the inventory")

            step(f"-> Launching job template '{template_name}' with the ad-hoc inventory...")
            job_id = self._awx.launch_template(hostname, template_name, inventory.id)
        except Exception as exc:
            self._rollback(inventory, exc, step)
            raise

        logger.info(f"Job {job_id} launched for '{hostname}' (inventory {inventory.id})")
        step("SUCCESS: Job template launched!")
        step(f"Job ID: {job_id}")

        return DeployAttempt(
            job_id=job_id,
            hostname=hostname,
            template_name=template_name,
            start_time=started_at,
            inventory_id=inventory.id,
        )

    def _rollback(
        self, inventory: ScopedInventory, error: Exception, step: StepCallback
    ) -> None:
        """Delete the inventory of a failed attempt without masking the error."""
        logger.warning(f"Rolling back inventory {inventory.id} after failure: {error}")
        try:
            deleted = self._awx.delete_inventory(inventory.id)
        except Exception:
            logger.exception(f"Rollback of inventory {inventory.id} raised")
            deleted = False

        if deleted:
            step(f"Temporary inventory {inventory.id} removed.")
            return

        logger.error(f"Inventory {inventory.id} ({inventory.name}) left orphaned in AWX")
        step(f"WARNING: temporary inventory {inventory.id} could not be removed.")
        if isinstance(error, DeployError):
            error.orphaned_inventory_id = inventory.id
