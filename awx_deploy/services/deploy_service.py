# =============================================================================
# Deploy Service - Caller-Facing Operations
# =============================================================================
# Template listing, launch, status polling and finalize, as used by the API.
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Optional

from awx_deploy.config import Settings, get_settings
from awx_deploy.errors import AuditWriteFailure, DeployError, HostUnreachable, InvalidHostname
from awx_deploy.models import DeployAttempt, JobSnapshot
from awx_deploy.services.audit_service import AuditService, get_audit_service
from awx_deploy.services.awx_service import AWXService, get_awx_service
from awx_deploy.services.finalization_service import FinalizationService, FinalizeResult
from awx_deploy.services.job_monitor import JobMonitor
from awx_deploy.services.provisioning_service import ProvisioningService
from awx_deploy.services.reachability import ReachabilityProbe
from awx_deploy.services.session_store import AttemptContext

logger = logging.getLogger(__name__)


@dataclass
class LaunchOutcome:
    """Result of a launch request as shown to the operator."""

    success: bool
    log: str
    job_id: Optional[int] = None


class DeployService:
    """Operations exposed to the presentation layer."""

    def __init__(
        self,
        awx: Optional[AWXService] = None,
        audit: Optional[AuditService] = None,
        settings: Optional[Settings] = None,
        probe: Optional[ReachabilityProbe] = None,
    ) -> None:
        settings = settings or get_settings()
        self._awx = awx or get_awx_service()
        self._audit = audit or get_audit_service()
        self._provisioning = ProvisioningService(self._awx, settings)
        self._monitor = JobMonitor(self._awx)
        self._finalization = FinalizationService(self._awx, self._audit)
        self._allowed_prefixes = tuple(p.upper() for p in settings.allowed_host_prefixes)

        if probe is None and settings.reachability_check_enabled:
            probe = ReachabilityProbe(
                port=settings.reachability_port,
                timeout=settings.reachability_timeout_seconds,
            )
        self._probe = probe

    def validate_hostname(self, hostname: str) -> None:
        """
        Reject hostnames without an allowed prefix (case-insensitive).

        Raises:
            InvalidHostname
        """
        if not hostname.upper().startswith(self._allowed_prefixes):
            raise InvalidHostname(
                f"Hostname '{hostname}' does not have a valid prefix "
                f"({', '.join(self._allowed_prefixes)})."
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_templates(self) -> list[str]:
        templates = self._awx.list_templates()
        logger.info(f"Fetched {len(templates)} AWX job templates")
        return templates

    def launch(
        self,
        hostname: str,
        template_name: str,
        actor: str,
        context: AttemptContext,
    ) -> LaunchOutcome:
        """
        Launch a template against a host for an operator.

        Input rejections make no remote call and are not audited; this
        includes a session whose previous job is not finalized yet. Every
        other failure is audited once and clears the session context; a
        success stores the DeployAttempt in ``context`` and defers auditing
        to finalize.
        """
        hostname = (hostname or "").strip()
        template_name = (template_name or "").strip()
        logger.info(f"Launch requested: host={hostname}, template={template_name}, actor={actor}")

        if not hostname or not template_name:
            return LaunchOutcome(success=False, log="ERROR: Hostname and template are required.")

        try:
            self.validate_hostname(hostname)
        except InvalidHostname as exc:
            logger.warning(f"Rejected launch: {exc}")
            return LaunchOutcome(success=False, log=f"ERROR: {exc}")

        previous = context.load()
        if previous is not None and previous.job_id is not None:
            logger.warning(
                f"Rejected launch: session {context.session_id} has unfinalized job {previous.job_id}"
            )
            return LaunchOutcome(
                success=False,
                log=(
                    f"ERROR: Job {previous.job_id} on '{previous.hostname_or_placeholder}' "
                    "has not been finalized yet. Finalize it before launching another deploy."
                ),
                job_id=previous.job_id,
            )

        lines: list[str] = []
        try:
            if self._probe is not None:
                self._check_reachability(hostname, lines)
            attempt = self._provisioning.launch(hostname, template_name, on_step=lines.append)
        except DeployError as exc:
            logger.error(f"Launch of '{template_name}' on '{hostname}' failed: {exc}")
            lines.append(f"ERROR: {exc}")
            return self._fail(lines, actor, hostname, template_name, context)
        except Exception as exc:
            logger.exception(f"Unexpected error launching '{template_name}' on '{hostname}'")
            lines.append(f"\n******************\nUNEXPECTED SERVER ERROR:\n{exc}\n******************")
            return self._fail(lines, actor, hostname, template_name, context)

        lines.append("Monitoring execution...")
        self._finalization.register(attempt, actor)
        context.save(attempt)
        return LaunchOutcome(success=True, log=self._join(lines), job_id=attempt.job_id)

    def poll_status(self, job_id: int) -> JobSnapshot:
        snapshot = self._monitor.poll(job_id)
        logger.info(f"Job {job_id} status: {snapshot.status.value}")
        return snapshot

    def finalize(
        self,
        job_id: int,
        final_status: str,
        output: str,
        actor: str,
        context: AttemptContext,
    ) -> FinalizeResult:
        logger.info(f"Finalizing job {job_id} with status {final_status}")
        return self._finalization.finalize(job_id, final_status, output, context, actor)

    def current_attempt(self, context: AttemptContext) -> Optional[DeployAttempt]:
        """The in-flight attempt of a session, for resuming a monitor view."""
        return context.load()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_reachability(self, hostname: str, lines: list[str]) -> None:
        lines.append(f"-> Checking connectivity with '{hostname}'...")
        result = self._probe.check(hostname)
        if not result.reachable:
            raise HostUnreachable(f"CONNECTION FAILURE: {result.detail}. Deploy cancelled.")
        lines.append(f"   SUCCESS: {result.detail}.")
        lines.append("---------------------------------------")

    @staticmethod
    def _join(lines: list[str]) -> str:
        return "\n".join(lines) + "\n"

    def _fail(
        self,
        lines: list[str],
        actor: str,
        hostname: str,
        template_name: str,
        context: AttemptContext,
    ) -> LaunchOutcome:
        log = self._join(lines)
        try:
            self._audit.log_deploy(
                actor=actor,
                hostname=hostname,
                template_or_package=template_name,
                success=False,
                output=log,
            )
        except AuditWriteFailure as exc:
            logger.error(f"Audit of failed launch on '{hostname}' not written: {exc}")
        context.clear()
        return LaunchOutcome(success=False, log=log)


# Singleton instance
_deploy_service: Optional[DeployService] = None


def get_deploy_service() -> DeployService:
    """Get or create the DeployService singleton."""
    global _deploy_service
    if _deploy_service is None:
        _deploy_service = DeployService()
    return _deploy_service
