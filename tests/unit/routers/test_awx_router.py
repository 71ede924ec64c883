import inspect
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from awx_deploy.auth.dependencies import get_attempt_context, get_current_user
from awx_deploy.auth.providers import AuthenticatedUser
from awx_deploy.main import app
from awx_deploy.models import DeployAttempt, JobSnapshot, JobStatus
from awx_deploy.routers import awx
from awx_deploy.services.deploy_service import LaunchOutcome
from awx_deploy.services.finalization_service import FinalizeResult

client = TestClient(app)


@pytest.fixture
def mock_auth():
    user = AuthenticatedUser(username="test_user", display_name="Test User")
    app.dependency_overrides[get_current_user] = lambda: user
    yield user
    app.dependency_overrides = {}


@pytest.fixture
def session_context(mock_auth, context):
    app.dependency_overrides[get_attempt_context] = lambda: context
    return context


@pytest.fixture
def mock_deploy_service():
    with patch("awx_deploy.routers.awx.get_deploy_service") as mock:
        service = MagicMock()
        mock.return_value = service
        yield service


def test_list_templates(mock_auth, mock_deploy_service):
    """Templates come straight from the deploy service."""
    mock_deploy_service.get_templates.return_value = ["Install-Agent", "Restart-Service"]

    response = client.get("/awx/templates")

    assert response.status_code == 200
    assert response.json() == {"templates": ["Install-Agent", "Restart-Service"]}


def test_launch(session_context, mock_deploy_service):
    """Launch passes the operator and session context through."""
    mock_deploy_service.launch.return_value = LaunchOutcome(
        success=True, log="SUCCESS: Job template launched!\n", job_id=901
    )

    response = client.post(
        "/awx/launch", json={"hostname": " PDV01 ", "template_name": "Install-Agent"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["job_id"] == 901
    mock_deploy_service.launch.assert_called_once_with(
        "PDV01", "Install-Agent", "test_user", session_context
    )


def test_launch_failure_is_reported_in_body(session_context, mock_deploy_service):
    mock_deploy_service.launch.return_value = LaunchOutcome(
        success=False, log="ERROR: Host 'PDV99' was not found in any AWX inventory.\n"
    )

    response = client.post(
        "/awx/launch", json={"hostname": "PDV99", "template_name": "Install-Agent"}
    )

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["job_id"] is None


def test_launch_requires_fields(session_context, mock_deploy_service):
    response = client.post("/awx/launch", json={"hostname": "PDV01"})

    assert response.status_code == 422
    mock_deploy_service.launch.assert_not_called()


def test_job_status(mock_auth, mock_deploy_service):
    mock_deploy_service.poll_status.return_value = JobSnapshot(
        job_id=901, status=JobStatus.RUNNING, output="TASK [ping]"
    )

    response = client.get("/awx/jobs/901/status")

    assert response.status_code == 200
    assert response.json() == {
        "job_id": 901,
        "status": "running",
        "output": "TASK [ping]",
        "terminal": False,
    }


def test_job_status_terminal(mock_auth, mock_deploy_service):
    mock_deploy_service.poll_status.return_value = JobSnapshot(
        job_id=901, status=JobStatus.FAILED, output="fatal"
    )

    response = client.get("/awx/jobs/901/status")

    assert response.json()["terminal"] is True


def test_finalize(session_context, mock_deploy_service):
    mock_deploy_service.finalize.return_value = FinalizeResult(
        job_id=901,
        success=True,
        message="Job finalized, audit saved and temporary inventory deleted.",
        audit_written=True,
        inventory_released=True,
    )

    response = client.post(
        "/awx/jobs/901/finalize", json={"final_status": "successful", "output": "ok=3"}
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    mock_deploy_service.finalize.assert_called_once_with(
        901, "successful", "ok=3", "test_user", session_context
    )


def test_finalize_unexpected_error_returns_503(session_context, mock_deploy_service):
    mock_deploy_service.finalize.side_effect = RuntimeError("ledger broken")

    response = client.post("/awx/jobs/901/finalize", json={"final_status": "failed"})

    assert response.status_code == 503
    assert "ledger broken" in response.json()["detail"]


def test_session_without_attempt(session_context, mock_deploy_service):
    mock_deploy_service.current_attempt.return_value = None

    response = client.get("/awx/session")

    assert response.status_code == 200
    assert response.json()["active"] is False


def test_session_with_attempt(session_context, mock_deploy_service):
    mock_deploy_service.current_attempt.return_value = DeployAttempt(
        job_id=901,
        hostname="PDV01",
        template_name="Install-Agent",
        inventory_id=42,
        start_time=datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc),
    )

    response = client.get("/awx/session")

    data = response.json()
    assert data["active"] is True
    assert data["job_id"] == 901
    assert data["inventory_id"] == 42


def test_requires_authentication():
    response = client.get("/awx/templates")

    assert response.status_code == 401


@pytest.mark.parametrize(
    "handler", [awx.list_templates, awx.launch, awx.job_status, awx.finalize, awx.current_session]
)
def test_blocking_handlers_run_in_threadpool(handler):
    """AWX calls block, so handlers must be plain functions."""
    assert not inspect.iscoroutinefunction(handler)
