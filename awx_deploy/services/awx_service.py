# =============================================================================
# AWX Service - Automation API Operations
# =============================================================================
# Service wrapper for the AWX / Ansible Tower REST API (v2).
# =============================================================================

import logging
from typing import Any, Optional

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from awx_deploy.config import Settings, get_settings
from awx_deploy.errors import CommunicationError, LaunchError, TemplateNotFound
from awx_deploy.models import JobSnapshot, JobStatus, JobTemplate, ScopedInventory

logger = logging.getLogger(__name__)

# Remote bodies are attached to errors for diagnostics; keep them bounded.
MAX_ERROR_BODY = 2000


class AWXService:
    """Service for AWX REST API operations."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        settings = settings or get_settings()
        self._client = httpx.Client(
            base_url=settings.awx_base_url.rstrip("/") + "/api/v2/",
            headers={
                "Authorization": f"Bearer {settings.awx_token}",
                "Accept": "application/json",
            },
            timeout=settings.awx_timeout_seconds,
            verify=settings.awx_verify_ssl,
            transport=transport,
        )
        self._retrying = Retrying(
            stop=stop_after_attempt(max(1, settings.awx_read_retries)),
            wait=wait_exponential(multiplier=settings.awx_retry_wait_seconds, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _body_of(response: httpx.Response) -> str:
        try:
            return response.text[:MAX_ERROR_BODY]
        except (httpx.ResponseNotRead, UnicodeDecodeError):
            return ""

    def _get(self, path: str, params: Optional[dict] = None) -> httpx.Response:
        """GET with bounded retry on transport errors."""
        try:
            return self._retrying(self._client.get, path, params=params)
        except httpx.HTTPError as exc:
            raise CommunicationError(f"GET {path} failed: {exc}") from exc

    def _get_json(self, path: str, params: Optional[dict] = None) -> dict[str, Any]:
        response = self._get(path, params=params)
        if response.is_error:
            raise CommunicationError(
                f"GET {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=self._body_of(response),
            )
        try:
            return response.json()
        except ValueError as exc:
            raise CommunicationError(
                f"GET {path} returned invalid JSON",
                status_code=response.status_code,
                body=self._body_of(response),
            ) from exc

    def _send(self, method: str, path: str, payload: Optional[dict] = None) -> httpx.Response:
        """Single-attempt mutating request."""
        try:
            return self._client.request(method, path, json=payload)
        except httpx.HTTPError as exc:
            raise CommunicationError(f"{method} {path} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Job templates
    # ------------------------------------------------------------------

    def resolve_template(self, name: str) -> Optional[JobTemplate]:
        """
        Look up a job template by exact name.

        When several templates share the name, the first result wins.

        Args:
            name: Job template name

        Returns:
            JobTemplate or None if no template matches

        Raises:
            CommunicationError: If AWX could not be queried
        """
        data = self._get_json("job_templates/", params={"name": name})
        results = data.get("results") or []
        if not results:
            return None
        first = results[0]
        return JobTemplate(name=first.get("name", name), id=int(first["id"]))

    def list_templates(self) -> list[str]:
        """
        List job template names, following AWX pagination.

        Returns an empty list if AWX cannot be reached so that a listing
        outage never breaks the caller.
        """
        names: list[str] = []
        path: Optional[str] = "job_templates/"
        params: Optional[dict] = {"page_size": 200, "order_by": "name"}

        try:
            while path:
                data = self._get_json(path, params=params)
                names.extend(
                    result["name"] for result in data.get("results", []) if "name" in result
                )
                next_page = data.get("next")
                path = str(self._client.base_url.join(next_page)) if next_page else None
                params = None
        except (CommunicationError, KeyError, TypeError) as exc:
            logger.error(f"Failed to list AWX job templates: {exc}")
            return []

        return names

    # ------------------------------------------------------------------
    # Hosts and inventories
    # ------------------------------------------------------------------

    def host_exists(self, hostname: str) -> bool:
        """
        Check whether a host is registered in any AWX inventory.

        Fails closed: returns False when AWX cannot be queried, so a deploy is
        never allowed on unconfirmed membership.
        """
        try:
            data = self._get_json("hosts/", params={"name": hostname})
            count = int(data.get("count", 0))
        except (CommunicationError, TypeError, ValueError) as exc:
            logger.error(f"Failed to check AWX host '{hostname}': {exc}")
            return False

        if count > 0:
            logger.info(f"Host '{hostname}' found in AWX (count: {count})")
            return True

        logger.warning(f"Host '{hostname}' not found in AWX")
        return False

    def create_inventory(self, name: str, organization_id: int) -> Optional[ScopedInventory]:
        """
        Create an inventory.

        Returns:
            ScopedInventory, or None if AWX did not create it
        """
        try:
            response = self._send(
                "POST",
                "inventories/",
                {
                    "name": name,
                    "organization": organization_id,
                    "description": "Scoped inventory for a single deploy",
                },
            )
        except CommunicationError as exc:
            logger.error(f"Failed to create inventory '{name}': {exc}")
            return None

        if response.is_error:
            logger.error(
                f"AWX refused inventory '{name}': HTTP {response.status_code} "
                f"{self._body_of(response)}"
            )
            return None

        try:
            inventory_id = int(response.json()["id"])
        except (ValueError, KeyError, TypeError):
            logger.error(f"AWX returned no id for inventory '{name}'")
            return None

        logger.info(f"Created inventory '{name}' (id: {inventory_id})")
        return ScopedInventory(id=inventory_id, name=name)

    def add_host(self, inventory_id: int, hostname: str) -> bool:
        """Register a host in an inventory."""
        try:
            response = self._send(
                "POST", f"inventories/{inventory_id}/hosts/", {"name": hostname}
            )
        except CommunicationError as exc:
            logger.error(f"Failed to add host '{hostname}' to inventory {inventory_id}: {exc}")
            return False

        if response.is_error:
            logger.error(
                f"AWX refused host '{hostname}' in inventory {inventory_id}: "
                f"HTTP {response.status_code} {self._body_of(response)}"
            )
            return False

        return True

    def delete_inventory(self, inventory_id: int) -> bool:
        """
        Delete an inventory.

        A 404 means the inventory is already gone and counts as deleted.
        """
        try:
            response = self._send("DELETE", f"inventories/{inventory_id}/")
        except CommunicationError as exc:
            logger.error(f"Failed to delete inventory {inventory_id}: {exc}")
            return False

        if response.status_code == 404:
            logger.info(f"Inventory {inventory_id} already deleted")
            return True

        if response.is_error:
            logger.error(
                f"AWX refused to delete inventory {inventory_id}: "
                f"HTTP {response.status_code} {self._body_of(response)}"
            )
            return False

        logger.info(f"Deleted inventory {inventory_id}")
        return True

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def launch_template(self, hostname: str, template_name: str, inventory_id: int) -> int:
        """
        Launch a job template against a host using a scoped inventory.

        Args:
            hostname: Target host, passed to the playbook as ``target_host``
            template_name: Job template name
            inventory_id: Inventory the job runs against

        Returns:
            The AWX job id

        Raises:
            TemplateNotFound: If the template does not resolve
            LaunchError: If AWX does not launch the job
        """
        logger.info(f"Launching job template '{template_name}' for host '{hostname}'")

        try:
            template = self.resolve_template(template_name)
        except CommunicationError as exc:
            raise TemplateNotFound(
                f"Job template '{template_name}' could not be resolved: {exc}"
            ) from exc

        if template is None:
            raise TemplateNotFound(f"Job template '{template_name}' not found")

        path = f"job_templates/{template.id}/launch/"
        payload = {
            "extra_vars": {"target_host": hostname},
            "inventory": inventory_id,
        }

        try:
            response = self._client.post(path, json=payload)
        except httpx.HTTPError as exc:
            raise LaunchError(f"Launch of '{template_name}' failed: {exc}") from exc

        if response.is_error:
            body = self._body_of(response)
            logger.error(f"AWX launch failed: HTTP {response.status_code}. Response: {body}")
            raise LaunchError(
                f"Launch of '{template_name}' returned HTTP {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            return int(response.json()["job"])
        except (ValueError, KeyError, TypeError) as exc:
            raise LaunchError(
                f"Launch of '{template_name}' returned no job id",
                status_code=response.status_code,
                body=self._body_of(response),
            ) from exc

    def get_job_status_and_output(self, job_id: int) -> JobSnapshot:
        """
        Fetch a job's status and plain-text log.

        Logs that are not available yet (HTTP 404) yield a placeholder output;
        any other failure yields status ``error`` with the failure message as
        output. Never raises.
        """
        try:
            data = self._get_json(f"jobs/{job_id}/")
            status = JobStatus.parse(data.get("status"))

            log_response = self._get(
                f"jobs/{job_id}/stdout/", params={"format": "txt_download"}
            )
            if log_response.status_code == 404:
                output = f"Awaiting AWX logs (HTTP {log_response.status_code})..."
            elif log_response.is_error:
                raise CommunicationError(
                    f"GET jobs/{job_id}/stdout/ returned HTTP {log_response.status_code}",
                    status_code=log_response.status_code,
                    body=self._body_of(log_response),
                )
            else:
                output = log_response.text
        except CommunicationError as exc:
            logger.error(f"Failed to fetch status/output of AWX job {job_id}: {exc}")
            return JobSnapshot(
                job_id=job_id,
                status=JobStatus.ERROR,
                output=f"AWX communication error: {exc}",
            )

        return JobSnapshot(job_id=job_id, status=status, output=output)


# Singleton instance
_awx_service: Optional[AWXService] = None


def get_awx_service() -> AWXService:
    """Get or create the AWX service singleton."""
    global _awx_service
    if _awx_service is None:
        _awx_service = AWXService()
    return _awx_service
