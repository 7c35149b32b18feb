"""Build history queries."""

import logging

from ..models import Build

logger = logging.getLogger(__name__)


class BuildOperations:
    """Azure DevOps build history queries."""

    def __init__(self, client_core):
        """Initialize with reference to core client."""
        self._client = client_core

    def list_builds(self, project_id: str, definition_id: int, top: int = 1) -> list[Build]:
        """
        Retrieve the most recent builds of a definition, newest first.

        Args:
            project_id (str): The ID of the project.
            definition_id (int): The ID of the build definition.
            top (int): Maximum number of builds to return.

        Returns:
            List[Build]: Up to `top` builds ordered by queue time, descending.
        """
        url = (
            f"{self._client.organization_url}/{project_id}/_apis/build/builds"
            f"?definitions={definition_id}&$top={top}&queryOrder=queueTimeDescending&api-version=7.1"
        )
        logger.debug(f"Getting {top} latest build(s) of definition {definition_id}")
        response = self._client._traced_get(
            "list_builds",
            url,
            **{"ado.definition_id": definition_id, "ado.top": top},
        )
        builds = [Build(**build_data) for build_data in (response or {}).get("value", [])]
        logger.debug(f"Definition {definition_id} returned {len(builds)} build(s)")
        return builds[:top]
