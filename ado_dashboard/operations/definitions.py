"""Build definition queries."""

import logging

from opentelemetry import trace

from ..models import BuildDefinition, BuildDefinitionReference

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DefinitionOperations:
    """Azure DevOps build definition queries."""

    def __init__(self, client_core):
        """Initialize with reference to core client."""
        self._client = client_core

    def list_build_definitions(self, project_id: str) -> list[BuildDefinitionReference]:
        """
        Retrieve every build definition of a project.

        Args:
            project_id (str): The ID of the project.

        Returns:
            List[BuildDefinitionReference]: Definition references in API order.

        Raises:
            AdoError: For failed requests. Entries that fail to parse are
                skipped and recorded on the span.
        """
        url = f"{self._client.organization_url}/{project_id}/_apis/build/definitions?api-version=7.1"
        logger.info(f"Fetching build definitions for project {project_id}")

        with tracer.start_as_current_span("parse_build_definitions") as span:
            response = self._client._traced_get(
                "list_build_definitions", url, **{"ado.project_id": project_id}
            )
            definitions_data = (response or {}).get("value", [])
            span.set_attribute("ado.definitions_count", len(definitions_data))

            definitions = []
            for definition_data in definitions_data:
                try:
                    definitions.append(BuildDefinitionReference(**definition_data))
                except Exception as e:
                    logger.error(f"Failed to parse definition data: {definition_data}. Error: {e}")
                    span.record_exception(e)

        logger.info(f"Retrieved {len(definitions)} build definitions for project {project_id}")
        return definitions

    def get_build_definition(self, project_id: str, definition_id: int) -> BuildDefinition:
        """
        Retrieve one full build definition (repository, process, variable groups).

        Args:
            project_id (str): The ID of the project.
            definition_id (int): The ID of the definition.

        Returns:
            BuildDefinition: The definition.
        """
        url = f"{self._client.organization_url}/{project_id}/_apis/build/definitions/{definition_id}?api-version=7.1"
        logger.debug(f"Getting build definition {definition_id} for project {project_id}")
        response = self._client._traced_get(
            "get_build_definition",
            url,
            **{"ado.project_id": project_id, "ado.definition_id": definition_id},
        )
        return BuildDefinition(**response)
