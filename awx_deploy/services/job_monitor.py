# =============================================================================
# Job Monitor
# =============================================================================
# Poll contract and terminal-state predicate for launched AWX jobs.
# =============================================================================

from typing import Union

from awx_deploy.models import TERMINAL_STATUSES, JobSnapshot, JobStatus
from awx_deploy.services.awx_service import AWXService


def is_terminal(status: Union[str, JobStatus]) -> bool:
    """True iff the status is successful, failed, error or canceled."""
    return JobStatus.parse(status) in TERMINAL_STATUSES


class JobMonitor:
    """
    Poll-based status retrieval for launched jobs.

    Carries no timers: the caller polls until ``is_terminal`` holds.
    """

    def __init__(self, awx: AWXService) -> None:
        self._awx = awx

    def poll(self, job_id: int) -> JobSnapshot:
        return self._awx.get_job_status_and_output(job_id)

    is_terminal = staticmethod(is_terminal)
