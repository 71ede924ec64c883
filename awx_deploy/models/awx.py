# =============================================================================
# AWX Resource Models
# =============================================================================
# Job templates, scoped inventories and job status snapshots.
# =============================================================================

from dataclasses import dataclass
from enum import Enum
from typing import Union


__all__ = [
    "JobStatus",
    "JobSnapshot",
    "JobTemplate",
    "ScopedInventory",
    "TERMINAL_STATUSES",
]


class JobStatus(str, Enum):
    """Status of an AWX job as seen by the gateway."""

    PENDING = "pending"
    WAITING = "waiting"
    RUNNING = "running"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    ERROR = "error"
    CANCELED = "canceled"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Union[str, "JobStatus", None]) -> "JobStatus":
        """Map a raw AWX status string to a JobStatus.

        Values outside the known set (AWX also reports ``new``) become UNKNOWN.
        """
        if isinstance(value, JobStatus):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


TERMINAL_STATUSES = frozenset(
    {
        JobStatus.SUCCESSFUL,
        JobStatus.FAILED,
        JobStatus.ERROR,
        JobStatus.CANCELED,
    }
)


@dataclass(frozen=True)
class JobTemplate:
    """A job template resolved by name."""

    name: str
    id: int


@dataclass(frozen=True)
class ScopedInventory:
    """Single-use inventory created to scope one job's execution."""

    id: int
    name: str
    hosts: tuple[str, ...] = ()


@dataclass
class JobSnapshot:
    """Status and accumulated log output of a job at poll time."""

    job_id: int
    status: JobStatus
    output: str

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
