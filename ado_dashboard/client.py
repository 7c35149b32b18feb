"""Read-only Azure DevOps REST client used by the dashboard."""

import logging
import uuid
from typing import Any

import requests
from opentelemetry import trace
from requests.adapters import HTTPAdapter

from .auth import AuthCredential, build_headers, resolve_credential
from .config import DashboardConfig
from .errors import (
    AdoAuthenticationError,
    AdoNetworkError,
    AdoNotFoundError,
    AdoRateLimitError,
    AdoTimeoutError,
)
from .models import Project
from .operations import BuildOperations, DefinitionOperations, GitOperations, LibraryOperations
from .retry import RetryManager
from .telemetry import get_telemetry_manager, initialize_telemetry

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AdoClient:
    """
    A client for the parts of the Azure DevOps REST API the dashboard reads.

    Handles authentication, connection pooling and retries. Endpoint groups
    live in `ado_dashboard.operations`; this class exposes them through
    delegating methods so callers (and test doubles) see a single surface.

    Args:
        organization_url (str): The URL of the Azure DevOps organization.
        pat (str | AuthCredential, optional): Credentials for the calls. Falls
            back to the AZURE_DEVOPS_EXT_PAT environment variable.
        config (DashboardConfig, optional): Settings; loaded from the
            environment when omitted.

    Raises:
        ValueError: If no organization URL is available.
        AdoAuthenticationError: If no credentials are available.
    """

    def __init__(
        self,
        organization_url: str | None = None,
        pat: "str | AuthCredential | None" = None,
        config: DashboardConfig | None = None,
    ):
        self.config = config or DashboardConfig()
        self.organization_url = (organization_url or self.config.organization_url or "").rstrip("/")

        if not self.organization_url:
            raise ValueError(
                "Organization URL is required. Either provide it as a parameter or set ADO_ORGANIZATION_URL environment variable."
            )

        self.telemetry = get_telemetry_manager()
        if not self.telemetry and self.config.telemetry.enabled:
            self.telemetry = initialize_telemetry(self.config.telemetry)

        self.retry_manager = RetryManager(self.config.retry)
        self.session = self._create_session() if self.config.connection_pool.enabled else requests
        self.correlation_id = str(uuid.uuid4())

        self.credential = resolve_credential(pat or self.config.pat)
        self.headers = build_headers(self.credential)
        self.auth_method = self.credential.method

        self._definitions = DefinitionOperations(self)
        self._builds = BuildOperations(self)
        self._library = LibraryOperations(self)
        self._git = GitOperations(self)

        logger.info(
            f"AdoClient initialized for {self.organization_url} using {self.auth_method} "
            f"authentication with correlation_id={self.correlation_id}"
        )

    def _create_session(self) -> requests.Session:
        """
        Create a requests session with connection pooling.

        The pool is sized for the dashboard fan-out: one connection per worker
        plus headroom.
        """
        session = requests.Session()
        pool = self.config.connection_pool
        adapter = HTTPAdapter(
            pool_connections=pool.max_pool_connections,
            pool_maxsize=max(pool.max_pool_size, self.config.aggregation.max_workers),
            pool_block=pool.block,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def close(self):
        """Release pooled connections."""
        if self.session is not requests and hasattr(self.session, "close"):
            logger.debug("Closing connection pool session")
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _validate_response(self, response: requests.Response) -> None:
        """
        Detect the HTML sign-in page ADO serves instead of a 401 for bad PATs.

        Raises:
            AdoAuthenticationError: If the response is a sign-in page.
        """
        content_type = response.headers.get("Content-Type", "")
        if response.status_code in (401, 203) or (
            "text/html" in content_type and "Sign In" in response.text
        ):
            logger.error(
                f"Authentication failed for {response.url} (status {response.status_code})"
            )
            raise AdoAuthenticationError(
                "Authentication failed. The Personal Access Token (PAT) is likely invalid or expired.",
                context={
                    "correlation_id": self.correlation_id,
                    "url": str(response.url),
                    "status_code": response.status_code,
                    "auth_method": self.auth_method,
                },
            )

    def _send_request(self, method: str, url: str, **kwargs) -> dict[str, Any] | None:
        """
        Send an authenticated request to the Azure DevOps API with retry logic.

        Args:
            method (str): The HTTP method.
            url (str): The full URL for the API endpoint.
            **kwargs: Additional keyword arguments for `requests.request`.

        Returns:
            dict or None: The parsed JSON response, or None for an empty body.

        Raises:
            AdoAuthenticationError: For sign-in page / 401 responses.
            AdoNotFoundError: For 404 responses.
            AdoRateLimitError: When rate limiting persists after retries.
            AdoNetworkError: For network-related errors.
            AdoTimeoutError: For timeout errors.
            requests.exceptions.HTTPError: For other 4xx responses.
        """
        kwargs.setdefault("timeout", self.config.request_timeout_seconds)

        @self.retry_manager.retry_on_failure
        def make_request():
            try:
                response = self.session.request(method, url, headers=self.headers, **kwargs)
                self._validate_response(response)

                if response.status_code == 429:
                    retry_after = response.headers.get("Retry-After")
                    try:
                        retry_after = int(retry_after) if retry_after else None
                    except ValueError:
                        retry_after = None
                    raise AdoRateLimitError(
                        f"Rate limit exceeded for {method} {url}",
                        retry_after=retry_after,
                        context={"correlation_id": self.correlation_id, "url": url},
                    )

                response.raise_for_status()
                return response.json() if response.content else None

            except requests.exceptions.HTTPError as e:
                body = e.response.text[:500] if e.response is not None else "No response"
                logger.debug(f"HTTP Error: {e} - Response Body: {body}")
                raise
            except requests.exceptions.Timeout as e:
                raise AdoTimeoutError(
                    f"Request timeout for {method} {url}",
                    timeout_seconds=self.config.request_timeout_seconds,
                    context={"correlation_id": self.correlation_id, "url": url},
                    original_exception=e,
                )
            except requests.exceptions.RequestException as e:
                raise AdoNetworkError(
                    f"Network error for {method} {url}: {e}",
                    context={
                        "correlation_id": self.correlation_id,
                        "url": url,
                        "error_type": type(e).__name__,
                    },
                    original_exception=e,
                )

        try:
            return make_request()
        except requests.exceptions.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                raise AdoNotFoundError(
                    f"Not found: {method} {url}",
                    context={"correlation_id": self.correlation_id, "url": url},
                    original_exception=e,
                ) from e
            raise

    def _traced_get(self, operation: str, url: str, **attributes) -> dict[str, Any] | None:
        """GET inside an `ado_<operation>` span, with call metrics when telemetry is on."""
        with tracer.start_as_current_span(f"ado_{operation}") as span:
            span.set_attribute("ado.operation", operation)
            span.set_attribute("correlation_id", self.correlation_id)
            for key, value in attributes.items():
                span.set_attribute(key, value)

            if self.telemetry:
                with self.telemetry.trace_api_call(operation):
                    return self._send_request("GET", url)
            return self._send_request("GET", url)

    def get_project(self, project_id: str) -> Project:
        """
        Retrieve project metadata, including its browser link.

        Args:
            project_id (str): Project ID or name.

        Returns:
            Project: The project.
        """
        url = f"{self.organization_url}/_apis/projects/{project_id}?api-version=7.1"
        logger.debug(f"Fetching project {project_id}")
        response = self._traced_get("get_project", url, **{"ado.project_id": project_id})
        return Project(**response)

    def project_web_url(self, project: Project) -> str:
        """
        Browser URL of a project.

        Uses the `_links.web` entry when ADO returns one and otherwise derives
        it from the organization URL.
        """
        return project.web_url or f"{self.organization_url}/{project.name}"

    # Delegated endpoint groups
    def list_build_definitions(self, project_id: str):
        """List build definitions for a project."""
        return self._definitions.list_build_definitions(project_id)

    def get_build_definition(self, project_id: str, definition_id: int):
        """Get one full build definition."""
        return self._definitions.get_build_definition(project_id, definition_id)

    def list_builds(self, project_id: str, definition_id: int, top: int = 1):
        """List the most recent builds of a definition."""
        return self._builds.list_builds(project_id, definition_id, top)

    def list_variable_groups(self, project_id: str):
        """List the project's variable groups."""
        return self._library.list_variable_groups(project_id)

    def get_file_content(self, project_id: str, repository_id: str, path: str, branch: str):
        """Read a repository file at a branch."""
        return self._git.get_file_content(project_id, repository_id, path, branch)
