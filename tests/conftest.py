"""
Shared pytest fixtures for the deploy gateway tests.

Provides settings, a mocked AWX client, a temporary audit trail and a fresh
session context so tests never touch a real AWX or the working directory.
"""

from unittest.mock import MagicMock

import pytest

from awx_deploy.config import Settings
from awx_deploy.models import ScopedInventory
from awx_deploy.services.audit_service import AuditService
from awx_deploy.services.awx_service import AWXService
from awx_deploy.services.session_store import AttemptContext, DeploySessionStore


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a fake AWX and a temporary audit directory."""
    return Settings(
        awx_base_url="http://awx.test",
        awx_token="test-token",
        awx_timeout_seconds=5.0,
        awx_read_retries=2,
        awx_retry_wait_seconds=0,
        awx_organization_id=1,
        audit_log_dir=str(tmp_path / "audit_logs"),
        reachability_check_enabled=False,
    )


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def mock_awx():
    """AWXService double configured for the happy path of PDV01 / job 901."""
    awx = MagicMock(spec=AWXService)
    awx.host_exists.return_value = True
    awx.create_inventory.side_effect = lambda name, org: _inventory(42, name)
    awx.add_host.return_value = True
    awx.launch_template.return_value = 901
    awx.delete_inventory.return_value = True
    awx.list_templates.return_value = ["Install-Agent", "Restart-Service"]
    return awx


def _inventory(inventory_id, name):
    return ScopedInventory(id=inventory_id, name=name)


@pytest.fixture
def audit_service(tmp_path):
    """AuditService writing into a temporary directory."""
    return AuditService(log_dir=tmp_path / "audit_logs")


@pytest.fixture
def session_store():
    return DeploySessionStore()


@pytest.fixture
def context(session_store):
    """Deploy context of a single session."""
    return AttemptContext(session_store, "session-1")
