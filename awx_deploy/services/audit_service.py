# =============================================================================
# Audit Service - Deploy Audit Trail
# =============================================================================
# Append-only, day-partitioned JSON log of every deploy attempt.
# =============================================================================

import json
import logging
import os
import re
import threading
import uuid
from datetime import date, datetime, timezone
from itertools import islice
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from pydantic import ValidationError

from awx_deploy.config import get_settings
from awx_deploy.errors import AuditWriteFailure
from awx_deploy.models import AuditDetail, AuditRecord

logger = logging.getLogger(__name__)

PARTITION_PREFIX = "deploy_audit_"
DETAIL_PREFIX = "deploy_detailed_"
DETAIL_DIR = "detailed"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def sanitize_component(value: str) -> str:
    """Make a hostname/actor safe for use inside a file name."""
    return _UNSAFE_CHARS.sub("_", value)


class AuditService:
    """Service for audit trail persistence and queries."""

    def __init__(self, log_dir: Optional[Union[str, Path]] = None) -> None:
        if log_dir is None:
            log_dir = get_settings().audit_log_dir
        self._root = Path(log_dir)
        self._detail_dir = self._root / DETAIL_DIR
        self._root.mkdir(parents=True, exist_ok=True)
        self._detail_dir.mkdir(parents=True, exist_ok=True)

        self._partition_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @staticmethod
    def partition_name(day: date) -> str:
        return f"{PARTITION_PREFIX}{day:%Y%m%d}.json"

    def _lock_for(self, partition: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._partition_locks.get(partition)
            if lock is None:
                lock = self._partition_locks[partition] = threading.Lock()
            return lock

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def record(self, entry: AuditRecord) -> None:
        """
        Append an audit record to its day partition and write its detail file.

        Args:
            entry: Record to persist

        Raises:
            AuditWriteFailure: If the partition could not be written
        """
        try:
            self._append_to_partition(entry)
        except OSError as exc:
            logger.error(f"Failed to write audit record for {entry.actor}@{entry.hostname}: {exc}")
            raise AuditWriteFailure(f"Audit record could not be written: {exc}") from exc

        try:
            self._write_detail(entry)
        except OSError as exc:
            # The partition already holds the record; a missing detail file
            # only degrades get_detail.
            logger.warning(f"Failed to write audit detail for {entry.actor}@{entry.hostname}: {exc}")

        logger.info(
            f"Audit saved: {entry.actor} deployed {entry.template_or_package} "
            f"on {entry.hostname} - success: {entry.success}"
        )

    def log_deploy(
        self,
        actor: str,
        hostname: str,
        template_or_package: str,
        success: bool,
        output: str,
        job_id: Optional[int] = None,
    ) -> AuditRecord:
        """Build and record an audit entry. Returns the stored record."""
        entry = AuditRecord(
            actor=actor,
            hostname=hostname,
            template_or_package=template_or_package,
            success=success,
            output=output,
            job_id=job_id,
        )
        self.record(entry)
        return entry

    def _append_to_partition(self, entry: AuditRecord) -> None:
        path = self._root / self.partition_name(_as_utc(entry.timestamp).date())
        with self._lock_for(path.name):
            records = self._read_for_append(path)
            records.append(entry.model_dump(mode="json"))
            self._atomic_write(path, records)
        logger.debug(f"Audit partition {path.name} now holds {len(records)} records")

    def _read_for_append(self, path: Path) -> list[Any]:
        if not path.exists():
            return []
        content = path.read_text(encoding="utf-8")
        if not content.strip():
            return []

        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            data = None

        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            logger.warning(f"Audit partition {path.name} held a single object, converted to array")
            return [data]

        aside = path.with_name(
            f"{path.name}.corrupt-{datetime.now(timezone.utc):%Y%m%d%H%M%S%f}"
        )
        path.replace(aside)
        logger.warning(f"Audit partition {path.name} was unreadable, moved to {aside.name}")
        return []

    def _write_detail(self, entry: AuditRecord) -> None:
        ts = _as_utc(entry.timestamp)
        file_name = (
            f"{DETAIL_PREFIX}{ts:%Y%m%d_%H%M%S_%f}_"
            f"{sanitize_component(entry.hostname)}_{sanitize_component(entry.actor)}.json"
        )
        detail = AuditDetail(**entry.model_dump(), log_file=file_name)
        self._atomic_write(self._detail_dir / file_name, detail.model_dump(mode="json"))

    @staticmethod
    def _atomic_write(path: Path, payload: Any) -> None:
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, path)
        finally:
            if tmp.exists():
                tmp.unlink()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _partitions(self) -> list[tuple[date, Path]]:
        """Day partitions on disk, newest first."""
        partitions = []
        for path in self._root.glob(f"{PARTITION_PREFIX}*.json"):
            try:
                day = datetime.strptime(path.stem[len(PARTITION_PREFIX):], "%Y%m%d").date()
            except ValueError:
                logger.warning(f"Ignoring unrecognised audit file {path.name}")
                continue
            partitions.append((day, path))
        partitions.sort(key=lambda item: item[0], reverse=True)
        return partitions

    def _load_partition(self, path: Path) -> list[AuditRecord]:
        try:
            data = json.loads(path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Skipping unreadable audit partition {path.name}: {exc}")
            return []

        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            logger.warning(f"Skipping malformed audit partition {path.name}")
            return []

        records = []
        for item in data:
            try:
                records.append(AuditRecord.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Skipping invalid audit record in {path.name}: {exc.errors()}")
        return records

    def iter_records(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Iterator[AuditRecord]:
        """
        Lazily yield records within [start, end], newest first.

        Partitions outside the window are never opened; a corrupt partition is
        skipped with a warning.
        """
        start_utc = _as_utc(start) if start else None
        end_utc = _as_utc(end) if end else None

        for day, path in self._partitions():
            if end_utc and day > end_utc.date():
                continue
            if start_utc and day < start_utc.date():
                break

            records = [
                record
                for record in self._load_partition(path)
                if (start_utc is None or _as_utc(record.timestamp) >= start_utc)
                and (end_utc is None or _as_utc(record.timestamp) <= end_utc)
            ]
            records.sort(key=lambda record: _as_utc(record.timestamp), reverse=True)
            yield from records

    def query(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[AuditRecord]:
        """
        Get audit records in a time window, newest first.

        Args:
            start: Optional inclusive lower bound
            end: Optional inclusive upper bound
            limit: Optional maximum number of records

        Returns:
            List of AuditRecord
        """
        return list(islice(self.iter_records(start, end), limit))

    def find_job_record(
        self, job_id: int, since: Optional[datetime] = None
    ) -> Optional[AuditRecord]:
        """
        Get the audit record already written for a job, if any.

        Args:
            job_id: AWX job id
            since: Optional lower bound (e.g. the launch time) to avoid
                scanning older partitions

        Returns:
            The newest AuditRecord carrying ``job_id``, or None
        """
        for record in self.iter_records(start=since):
            if record.job_id == job_id:
                return record
        return None

    def get_detail(
        self, timestamp: datetime, hostname: str, actor: str
    ) -> Optional[AuditDetail]:
        """
        Find the detail document of one attempt.

        Scans the detail files named after (hostname, actor) and returns the
        one whose timestamp matches.

        Returns:
            AuditDetail or None if not found
        """
        pattern = f"{DETAIL_PREFIX}*_{sanitize_component(hostname)}_{sanitize_component(actor)}.json"
        target = _as_utc(timestamp)

        for path in sorted(self._detail_dir.glob(pattern)):
            try:
                detail = AuditDetail.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as exc:
                logger.warning(f"Skipping unreadable audit detail {path.name}: {exc}")
                continue

            if (
                _as_utc(detail.timestamp) == target
                and detail.hostname == hostname
                and detail.actor == actor
            ):
                return detail

        return None


# Singleton instance
_audit_service: Optional[AuditService] = None


def get_audit_service() -> AuditService:
    """Get or create the AuditService singleton."""
    global _audit_service
    if _audit_service is None:
        _audit_service = AuditService()
    return _audit_service
