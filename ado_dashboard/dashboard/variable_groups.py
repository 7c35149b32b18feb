"""
Binding pipeline variable-group references to the live Library.

Names parsed from YAML are matched exact-first, then by a symmetric
case-insensitive substring test, because teams often prefix or suffix the
group names they put in YAML. References a definition declares itself carry
ids and are matched by name or id. Nothing here raises: an unresolved
reference always gets a fallback link into the Library.
"""

import logging
from collections.abc import Iterable

from ..models import (
    DeclaredVariableGroup,
    DevopsVariable,
    DevopsVariableGroup,
    ParsedPipelineSettings,
    VariableGroup,
    VariableGroupRef,
)
from ..utils.fuzzy_matching import FuzzyMatcher, create_suggestion_message

logger = logging.getLogger(__name__)

SECRET_MASK = "******"


def library_search_url(project_url: str) -> str:
    """Link to the Library's variable group list, used when nothing better is known."""
    return f"{project_url}/_library?itemType=VariableGroups"


def variable_group_url(project_url: str, group_id: int) -> str:
    """Deep link to one variable group."""
    return f"{project_url}/_library?itemType=VariableGroups&view=VariableGroupView&variableGroupId={group_id}"


def to_dashboard_group(group: VariableGroup, project_url: str) -> DevopsVariableGroup:
    """Convert an upstream group, replacing every secret value with the mask."""
    variables = [
        DevopsVariable(
            name=name,
            value=SECRET_MASK if variable.isSecret else variable.value,
            is_secret=variable.isSecret,
            is_read_only=variable.isReadOnly,
        )
        for name, variable in (group.variables or {}).items()
    ]
    return DevopsVariableGroup(
        id=group.id,
        name=group.name,
        description=group.description,
        resource_url=variable_group_url(project_url, group.id),
        variables=variables,
    )


class VariableGroupIndex:
    """
    Read-only, case-insensitive index over a project's live variable groups.

    Built once per dashboard request and shared by all pipeline workers.
    """

    def __init__(
        self,
        groups: Iterable[DevopsVariableGroup],
        project_url: str,
        suggester: FuzzyMatcher | None = None,
    ):
        self.project_url = project_url
        self.suggester = suggester or FuzzyMatcher()
        self._groups: list[DevopsVariableGroup] = list(groups)
        self._by_name: dict[str, DevopsVariableGroup] = {}
        self._by_id: dict[int, DevopsVariableGroup] = {}
        for group in self._groups:
            self._by_name.setdefault(group.name.lower(), group)
            self._by_id.setdefault(group.id, group)

    @classmethod
    def from_upstream(cls, groups: Iterable[VariableGroup], project_url: str) -> "VariableGroupIndex":
        return cls((to_dashboard_group(group, project_url) for group in groups), project_url)

    @classmethod
    def empty(cls, project_url: str) -> "VariableGroupIndex":
        return cls([], project_url)

    @property
    def groups(self) -> list[DevopsVariableGroup]:
        return list(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def get_by_name(self, name: str | None) -> DevopsVariableGroup | None:
        if not name:
            return None
        return self._by_name.get(name.strip().lower())

    def get_by_id(self, group_id: int | None) -> DevopsVariableGroup | None:
        if group_id is None:
            return None
        return self._by_id.get(group_id)

    def find(self, name: str) -> DevopsVariableGroup | None:
        """
        Exact case-insensitive lookup, then the first group whose name equals,
        contains, or is contained in `name` (case-insensitive), in index order.
        """
        wanted = name.strip().lower()
        if not wanted:
            return None

        exact = self._by_name.get(wanted)
        if exact is not None:
            return exact

        for group in self._groups:
            key = group.name.lower()
            if key == wanted or wanted in key or key in wanted:
                logger.debug(f"Variable group '{name}' matched '{group.name}' by substring")
                return group
        return None

    def resolve_parsed(self, name: str, environment: str | None = None) -> VariableGroupRef:
        """Resolve a name parsed from YAML into a reference."""
        group = self.find(name)
        if group is not None:
            return VariableGroupRef(
                name=name,
                environment=environment,
                id=group.id,
                variable_count=len(group.variables),
                resource_url=group.resource_url,
            )

        suggestions = self.suggester.find_matches(name, self.groups)
        if self._groups:
            logger.info(create_suggestion_message(name, "Variable group", suggestions))
        return VariableGroupRef(
            name=name,
            environment=environment,
            id=None,
            variable_count=0,
            resource_url=library_search_url(self.project_url),
            suggestions=[match.name for match in suggestions],
        )

    def resolve_declared(self, declared: DeclaredVariableGroup) -> VariableGroupRef:
        """
        Resolve a group a definition references directly.

        The live group is looked up by name, then by id. A group missing from
        the live set keeps its declared id and links straight to it; without
        an id it links to the Library search.
        """
        declared_id = declared.id if declared.id and declared.id > 0 else None
        group = self.get_by_name(declared.name) or self.get_by_id(declared_id)

        if group is not None:
            return VariableGroupRef(
                name=declared.name or group.name,
                environment=None,
                id=declared_id if declared_id is not None else group.id,
                variable_count=len(group.variables),
                resource_url=group.resource_url,
            )

        if declared_id is not None:
            resource_url = variable_group_url(self.project_url, declared_id)
        else:
            resource_url = library_search_url(self.project_url)

        return VariableGroupRef(
            name=declared.name or "",
            environment=None,
            id=declared_id,
            variable_count=0,
            resource_url=resource_url,
        )

    def resolve_settings(self, settings: ParsedPipelineSettings) -> list[VariableGroupRef]:
        """References for every environment binding that names a group."""
        return [
            self.resolve_parsed(environment.variable_group_name, environment.environment_name)
            for environment in settings.environments
            if environment.variable_group_name and environment.variable_group_name.strip()
        ]

    def resolve_declared_groups(
        self, declared_groups: Iterable[DeclaredVariableGroup] | None
    ) -> list[VariableGroupRef]:
        return [self.resolve_declared(declared) for declared in declared_groups or []]
