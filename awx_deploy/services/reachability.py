# =============================================================================
# Reachability Probe
# =============================================================================
# Pre-flight connectivity check of a deploy target (DNS + TCP connect).
# =============================================================================

import logging
import socket
import time
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class ReachabilityResult:
    """Outcome of a connectivity probe."""

    hostname: str
    reachable: bool
    address: Optional[str] = None
    elapsed_ms: Optional[int] = None
    detail: str = ""


class ReachabilityProbe:
    """Resolve a host and open a TCP connection to one of its ports."""

    def __init__(self, port: int = 22, timeout: float = 5.0) -> None:
        self._port = port
        self._timeout = timeout

    def check(self, hostname: str) -> ReachabilityResult:
        """
        Probe a host.

        Args:
            hostname: Target hostname or IP address

        Returns:
            ReachabilityResult; ``reachable`` is False when the name does not
            resolve or the TCP connection fails
        """
        try:
            address = socket.gethostbyname(hostname)
        except OSError as exc:
            logger.warning(f"Host '{hostname}' did not resolve: {exc}")
            return ReachabilityResult(
                hostname=hostname,
                reachable=False,
                detail=f"Host '{hostname}' could not be resolved (DNS error)",
            )

        started = time.monotonic()
        try:
            with socket.create_connection((address, self._port), timeout=self._timeout):
                elapsed_ms = int((time.monotonic() - started) * 1000)
        except OSError as exc:
            logger.warning(f"Host '{hostname}' ({address}) unreachable on port {self._port}: {exc}")
            return ReachabilityResult(
                hostname=hostname,
                reachable=False,
                address=address,
                detail=f"Host '{hostname}' ({address}) did not answer on port {self._port}: {exc}",
            )

        logger.debug(f"Host '{hostname}' ({address}) answered in {elapsed_ms}ms")
        return ReachabilityResult(
            hostname=hostname,
            reachable=True,
            address=address,
            elapsed_ms=elapsed_ms,
            detail=f"Host '{hostname}' ({address}) answered in {elapsed_ms}ms",
        )
