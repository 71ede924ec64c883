"""
Unit tests for FinalizationService.

Covers the single audit record per job, inventory release, context
clearing and recovery from partial failures.
"""

from unittest.mock import MagicMock, patch

import pytest

from awx_deploy.errors import AuditWriteFailure
from awx_deploy.models import DeployAttempt
from awx_deploy.services.audit_service import AuditService
from awx_deploy.services.finalization_service import FinalizationService
from awx_deploy.services.session_store import AttemptContext


@pytest.fixture
def service(mock_awx, audit_service):
    return FinalizationService(mock_awx, audit_service)


@pytest.fixture
def attempt():
    return DeployAttempt(
        job_id=901, hostname="PDV01", template_name="Install-Agent", inventory_id=42
    )


class TestFinalize:
    def test_writes_audit_and_releases_inventory(
        self, service, mock_awx, audit_service, context, attempt
    ):
        context.save(attempt)

        result = service.finalize(901, "successful", "PLAY RECAP ok=3", context, "alice")

        assert result.success is True
        assert result.audit_written is True
        assert result.inventory_released is True
        assert result.message == "Job finalized, audit saved and temporary inventory deleted."
        mock_awx.delete_inventory.assert_called_once_with(42)

        records = audit_service.query()
        assert len(records) == 1
        record = records[0]
        assert record.actor == "alice"
        assert record.hostname == "PDV01"
        assert record.template_or_package == "Install-Agent"
        assert record.success is True
        assert record.output == "PLAY RECAP ok=3"
        assert record.job_id == 901

    def test_clears_context(self, service, context, attempt):
        context.save(attempt)

        service.finalize(901, "successful", "", context, "alice")

        assert context.load() is None

    @pytest.mark.parametrize("status", ["failed", "error", "canceled"])
    def test_non_successful_status_is_audited_as_failure(
        self, service, audit_service, context, attempt, status
    ):
        context.save(attempt)

        service.finalize(901, status, "fatal: unreachable", context, "alice")

        assert audit_service.query()[0].success is False

    def test_second_finalize_is_a_noop(self, service, mock_awx, audit_service, context, attempt):
        context.save(attempt)

        service.finalize(901, "successful", "", context, "alice")
        context.save(attempt)
        result = service.finalize(901, "successful", "", context, "alice")

        assert result.already_finalized is True
        assert result.message == "Job already finalized."
        assert len(audit_service.query()) == 1
        mock_awx.delete_inventory.assert_called_once_with(42)
        assert context.load() is None

    def test_missing_context_uses_placeholders(self, service, mock_awx, audit_service, context):
        result = service.finalize(901, "failed", "boom", context, "alice")

        record = audit_service.query()[0]
        assert record.hostname == "Unknown"
        assert record.template_or_package == "Unknown"
        assert record.job_id == 901
        assert result.message == "Job finalized and audit saved."
        mock_awx.delete_inventory.assert_not_called()

    def test_context_of_another_job_is_ignored(self, service, mock_awx, audit_service, context):
        other = DeployAttempt(
            job_id=777, hostname="CN02", template_name="Restart-Service", inventory_id=55
        )
        context.save(other)

        service.finalize(901, "successful", "", context, "alice")

        assert audit_service.query()[0].hostname == "Unknown"
        mock_awx.delete_inventory.assert_not_called()
        assert context.load() == other


class TestPartialFailures:
    def test_deletion_failure_is_retried_without_second_audit(
        self, service, mock_awx, audit_service, context, attempt
    ):
        context.save(attempt)
        mock_awx.delete_inventory.return_value = False

        first = service.finalize(901, "successful", "", context, "alice")

        assert first.success is True
        assert first.orphaned_inventory_id == 42
        assert "could not be deleted" in first.message

        mock_awx.delete_inventory.return_value = True
        second = service.finalize(901, "successful", "", context, "alice")

        assert second.inventory_released is True
        assert second.orphaned_inventory_id is None
        assert mock_awx.delete_inventory.call_count == 2
        assert len(audit_service.query()) == 1

    def test_audit_failure_keeps_context_for_retry(self, mock_awx, audit_service, context, attempt):
        audit = MagicMock(spec=AuditService)
        audit.find_job_record.return_value = None
        audit.log_deploy.side_effect = [AuditWriteFailure("disk full"), None]
        service = FinalizationService(mock_awx, audit)
        context.save(attempt)

        first = service.finalize(901, "successful", "", context, "alice")

        assert first.success is False
        assert first.audit_written is False
        assert first.message.startswith("ERROR:")
        assert context.load() == attempt
        mock_awx.delete_inventory.assert_called_once_with(42)

        second = service.finalize(901, "successful", "", context, "alice")

        assert second.success is True
        assert audit.log_deploy.call_count == 2
        assert context.load() is None
        mock_awx.delete_inventory.assert_called_once_with(42)


class TestCrossSessionFinalize:
    def test_owner_releases_inventory_after_foreign_finalize(
        self, service, mock_awx, audit_service, session_store, attempt
    ):
        foreign = AttemptContext(session_store, "session-other")
        owner = AttemptContext(session_store, "session-owner")
        owner.save(attempt)

        service.finalize(901, "successful", "", foreign, "mallory")
        result = service.finalize(901, "successful", "", owner, "alice")

        mock_awx.delete_inventory.assert_called_once_with(42)
        assert result.inventory_released is True
        assert result.orphaned_inventory_id is None
        assert owner.load() is None
        assert len(audit_service.query()) == 1

    def test_registered_attempt_is_finalized_from_any_session(
        self, service, mock_awx, audit_service, session_store, attempt
    ):
        owner = AttemptContext(session_store, "session-owner")
        owner.save(attempt)
        service.register(attempt, "alice")

        first = service.finalize(
            901, "failed", "fatal", AttemptContext(session_store, "session-other"), "mallory"
        )
        second = service.finalize(901, "failed", "fatal", owner, "alice")

        [record] = audit_service.query()
        assert record.hostname == "PDV01"
        assert record.template_or_package == "Install-Agent"
        assert record.actor == "alice"
        assert first.inventory_released is True
        assert second.message == "Job already finalized."
        mock_awx.delete_inventory.assert_called_once_with(42)
        assert owner.load() is None


class TestDurableIdempotence:
    def test_existing_audit_record_is_not_duplicated(
        self, mock_awx, audit_service, session_store, attempt
    ):
        before_restart = FinalizationService(mock_awx, audit_service)
        after_restart = FinalizationService(mock_awx, audit_service)
        first_context = AttemptContext(session_store, "session-1")
        retry_context = AttemptContext(session_store, "session-2")
        first_context.save(attempt)
        retry_context.save(attempt)

        before_restart.finalize(901, "successful", "", first_context, "alice")
        result = after_restart.finalize(901, "successful", "", retry_context, "alice")

        assert len(audit_service.query()) == 1
        assert result.already_finalized is True
        assert retry_context.load() is None

    def test_completed_jobs_are_evicted_from_ledger(self, service, context):
        with patch("awx_deploy.services.finalization_service.COMPLETED_LEDGER_SIZE", 2):
            for job_id in (1, 2, 3):
                service.finalize(job_id, "successful", "", context, "alice")

        assert sorted(service._ledger) == [2, 3]
