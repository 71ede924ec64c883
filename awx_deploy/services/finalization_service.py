# =============================================================================
# Finalization Service - Audit + Inventory Release
# =============================================================================
# Concludes a launched job: one audit record, then scoped inventory cleanup.
# =============================================================================

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from awx_deploy.errors import AuditWriteFailure
from awx_deploy.models import TERMINAL_STATUSES, DeployAttempt, JobStatus
from awx_deploy.services.audit_service import AuditService
from awx_deploy.services.awx_service import AWXService
from awx_deploy.services.session_store import AttemptContext

logger = logging.getLogger(__name__)

# Finished jobs remembered to answer repeated finalize calls.
COMPLETED_LEDGER_SIZE = 1024


@dataclass
class FinalizeResult:
    """Outcome of a finalize call."""

    job_id: int
    success: bool
    message: str
    audit_written: bool = False
    inventory_released: bool = False
    already_finalized: bool = False
    orphaned_inventory_id: Optional[int] = None


@dataclass
class _JobLedgerEntry:
    """What is known about a job and what has been done for it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    attempt: Optional[DeployAttempt] = None
    actor: Optional[str] = None
    audited: bool = False
    inventory_released: bool = False

    @property
    def inventory_id(self) -> Optional[int]:
        return self.attempt.inventory_id if self.attempt is not None else None

    @property
    def complete(self) -> bool:
        return self.audited and (self.inventory_id is None or self.inventory_released)


class FinalizationService:
    """
    Persist the outcome of a concluded job and release its scoped inventory.

    Idempotent per job id: repeated calls never write a second audit record
    and never delete the inventory twice. A call that only partly succeeded
    can be repeated to finish the remaining step.

    Launched attempts are registered here, so cleanup does not depend on
    which session calls finalize. The audit trail itself is checked before
    writing, so a record survives restarts of the ledger.
    """

    def __init__(self, awx: AWXService, audit: AuditService) -> None:
        self._awx = awx
        self._audit = audit
        self._ledger: dict[int, _JobLedgerEntry] = {}
        self._completed: "OrderedDict[int, None]" = OrderedDict()
        self._ledger_lock = threading.Lock()

    def _entry_for(self, job_id: int) -> _JobLedgerEntry:
        with self._ledger_lock:
            entry = self._ledger.get(job_id)
            if entry is None:
                entry = self._ledger[job_id] = _JobLedgerEntry()
            return entry

    def _mark_completed(self, job_id: int) -> None:
        with self._ledger_lock:
            self._completed[job_id] = None
            self._completed.move_to_end(job_id)
            while len(self._completed) > COMPLETED_LEDGER_SIZE:
                evicted, _ = self._completed.popitem(last=False)
                self._ledger.pop(evicted, None)

    def register(self, attempt: DeployAttempt, actor: str) -> None:
        """Remember a launched attempt and its operator until it is finalized."""
        if attempt.job_id is None:
            return
        entry = self._entry_for(attempt.job_id)
        with entry.lock:
            entry.attempt = attempt
            entry.actor = actor

    def finalize(
        self,
        job_id: int,
        final_status: str,
        output: str,
        context: AttemptContext,
        actor: str,
    ) -> FinalizeResult:
        """
        Finalize a job.

        Args:
            job_id: AWX job id
            final_status: Terminal status reported by the poller
            output: Final job output
            context: The caller's session context holding the DeployAttempt
            actor: Operator recorded in the audit trail when the launch
                was not registered

        Returns:
            FinalizeResult
        """
        entry = self._entry_for(job_id)

        with entry.lock:
            owned = self._owned_attempt(job_id, context)
            if owned is not None and entry.inventory_id is None:
                entry.attempt = owned

            if entry.complete:
                logger.info(f"Job {job_id} already finalized, nothing to do")
                if owned is not None:
                    context.clear()
                return FinalizeResult(
                    job_id=job_id,
                    success=True,
                    message="Job already finalized.",
                    audit_written=True,
                    inventory_released=entry.inventory_released,
                    already_finalized=True,
                )

            attempt = entry.attempt or DeployAttempt(job_id=job_id, start_time=None)

            was_audited = entry.audited
            if not entry.audited:
                existing = self._audit.find_job_record(job_id, since=attempt.start_time)
                if existing is not None:
                    logger.info(f"Job {job_id} already has an audit record, not writing another")
                    entry.audited = was_audited = True
                else:
                    self._write_audit(
                        entry, job_id, final_status, output, attempt, entry.actor or actor
                    )

            released_now = False
            if entry.inventory_id is not None and not entry.inventory_released:
                logger.info(f"Deleting temporary inventory {entry.inventory_id} of job {job_id}")
                released_now = entry.inventory_released = self._awx.delete_inventory(
                    entry.inventory_id
                )
                if not entry.inventory_released:
                    logger.warning(
                        f"Failed to delete temporary inventory {entry.inventory_id} of job {job_id}"
                    )

            if entry.audited and owned is not None:
                context.clear()

            if entry.complete:
                self._mark_completed(job_id)

            return self._result(job_id, entry, was_audited, released_now)

    @staticmethod
    def _owned_attempt(job_id: int, context: AttemptContext) -> Optional[DeployAttempt]:
        """The caller's attempt, if it belongs to ``job_id``."""
        attempt = context.load()
        if attempt is None:
            return None
        if attempt.job_id is not None and attempt.job_id != job_id:
            logger.warning(
                f"Session context belongs to job {attempt.job_id}, not {job_id}; ignoring it"
            )
            return None
        return attempt

    def _write_audit(
        self,
        entry: _JobLedgerEntry,
        job_id: int,
        final_status: str,
        output: str,
        attempt: DeployAttempt,
        actor: str,
    ) -> None:
        status = JobStatus.parse(final_status)
        if status not in TERMINAL_STATUSES:
            logger.warning(f"Finalizing job {job_id} with non-terminal status '{final_status}'")

        try:
            self._audit.log_deploy(
                actor=actor,
                hostname=attempt.hostname_or_placeholder,
                template_or_package=attempt.template_or_placeholder,
                success=status == JobStatus.SUCCESSFUL,
                output=output,
                job_id=job_id,
            )
        except AuditWriteFailure as exc:
            logger.error(f"Audit record for job {job_id} not written: {exc}")
            return

        entry.audited = True
        logger.info(f"Audit saved for job {job_id} (status: {status.value})")

    @staticmethod
    def _result(
        job_id: int, entry: _JobLedgerEntry, was_audited: bool, released_now: bool
    ) -> FinalizeResult:
        orphaned = (
            entry.inventory_id
            if entry.inventory_id is not None and not entry.inventory_released
            else None
        )

        if not entry.audited:
            message = "ERROR: job finalized but the audit record could not be saved."
        elif orphaned is not None:
            message = (
                f"Job finalized and audit saved, but temporary inventory {orphaned} "
                "could not be deleted."
            )
        elif was_audited and not released_now:
            message = "Job already finalized."
        elif entry.inventory_id is not None:
            message = "Job finalized, audit saved and temporary inventory deleted."
        else:
            message = "Job finalized and audit saved."

        return FinalizeResult(
            job_id=job_id,
            success=entry.audited,
            message=message,
            audit_written=entry.audited,
            inventory_released=entry.inventory_released,
            already_finalized=was_audited,
            orphaned_inventory_id=orphaned,
        )
