"""Repository content queries."""

import logging
from urllib.parse import urlencode

from ..errors import AdoNotFoundError
from ..models import GitItem

logger = logging.getLogger(__name__)


class GitOperations:
    """Azure DevOps Git content queries."""

    def __init__(self, client_core):
        """Initialize with reference to core client."""
        self._client = client_core

    def get_file_content(
        self, project_id: str, repository_id: str, path: str, branch: str
    ) -> str:
        """
        Read the text of one file at the head of a branch.

        Args:
            project_id (str): The ID of the project.
            repository_id (str): The ID of the repository.
            path (str): Path of the file inside the repository.
            branch (str): Branch name, with or without a `refs/heads/` prefix.

        Returns:
            str: The file content ("" for an empty file).

        Raises:
            AdoNotFoundError: If the file or branch does not exist.
        """
        if branch.startswith("refs/heads/"):
            branch = branch[len("refs/heads/") :]

        query = urlencode(
            {
                "path": path,
                "includeContent": "true",
                "versionDescriptor.version": branch,
                "versionDescriptor.versionType": "branch",
                "api-version": "7.1",
            }
        )
        url = f"{self._client.organization_url}/{project_id}/_apis/git/repositories/{repository_id}/items?{query}"
        logger.debug(f"Reading {path} from repository {repository_id} at {branch}")

        response = self._client._traced_get(
            "get_file_content",
            url,
            **{"ado.repository_id": repository_id, "ado.path": path},
        )
        if response is None:
            raise AdoNotFoundError(
                f"File {path} returned no content",
                context={"repository_id": repository_id, "path": path, "branch": branch},
            )
        return GitItem(**response).content or ""
