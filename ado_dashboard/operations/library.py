"""Variable group (Library) queries."""

import logging

from ..models import VariableGroup

logger = logging.getLogger(__name__)


class LibraryOperations:
    """Azure DevOps Library queries."""

    def __init__(self, client_core):
        """Initialize with reference to core client."""
        self._client = client_core

    def list_variable_groups(self, project_id: str) -> list[VariableGroup]:
        """
        Retrieve the variable groups of a project, secrets included as flags.

        ADO never returns secret values; their `value` comes back empty and
        `isSecret` is set.

        Args:
            project_id (str): The ID of the project.

        Returns:
            List[VariableGroup]: Groups in API order.
        """
        url = f"{self._client.organization_url}/{project_id}/_apis/distributedtask/variablegroups?api-version=7.1"
        logger.info(f"Fetching variable groups for project {project_id}")
        response = self._client._traced_get(
            "list_variable_groups", url, **{"ado.project_id": project_id}
        )
        groups = [VariableGroup(**group) for group in (response or {}).get("value", [])]
        logger.info(f"Retrieved {len(groups)} variable groups for project {project_id}")
        return groups
