import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Upstream Azure DevOps entities. Field names follow the REST payloads.
# ---------------------------------------------------------------------------


class Link(BaseModel):
    href: str | None = None


class ReferenceLinks(BaseModel):
    """
    Represents the `_links` bag attached to ADO objects.

    Only the links the dashboard reads are typed; everything else is kept as
    extra data.
    """

    model_config = ConfigDict(extra="allow")

    web: Link | None = None


class WebLinked(BaseModel):
    """Mixin for entities exposing a browser link under `_links.web.href`."""

    model_config = ConfigDict(populate_by_name=True)

    links: ReferenceLinks | None = Field(None, alias="_links")

    @property
    def web_url(self) -> str | None:
        """The canonical browser URL of this entity, if ADO supplied one."""
        if self.links and self.links.web and self.links.web.href:
            return self.links.web.href
        return None


class Project(WebLinked):
    """
    Represents an Azure DevOps project.
    """

    id: str
    name: str
    description: str | None = None
    url: str | None = None
    state: str | None = None


class BuildRepository(BaseModel):
    """Repository a build definition is bound to."""

    id: str | None = None
    name: str | None = None
    type: str | None = None
    defaultBranch: str | None = None
    url: str | None = None


class DefinitionProcess(BaseModel):
    """
    Build process of a definition. Type 2 is a YAML process and carries
    yamlFilename; designer (type 1) processes do not.
    """

    model_config = ConfigDict(extra="allow")

    type: int | None = None
    yamlFilename: str | None = None


class DeclaredVariableGroup(BaseModel):
    """A variable group referenced directly by a build definition."""

    id: int | None = None
    name: str | None = None


class BuildDefinitionReference(WebLinked):
    """
    Represents a build definition as returned by the definitions list.
    """

    id: int
    name: str
    path: str | None = None
    revision: int | None = None
    url: str | None = None
    queueStatus: str | None = None


class BuildDefinition(BuildDefinitionReference):
    """
    Represents the full build definition, including process and variable groups.
    """

    repository: BuildRepository | None = None
    process: DefinitionProcess | None = None
    variableGroups: list[DeclaredVariableGroup] | None = None

    @property
    def yaml_filename(self) -> str | None:
        """Path of the YAML file driving this definition, or None for designer pipelines."""
        if self.process and self.process.yamlFilename:
            return self.process.yamlFilename
        return None


class IdentityRef(BaseModel):
    displayName: str | None = None
    uniqueName: str | None = None
    id: str | None = None


class Build(WebLinked):
    """
    Represents a single build (pipeline run) from the Build API.
    """

    id: int
    buildNumber: str | None = None
    status: str | None = None
    result: str | None = None
    queueTime: str | None = None
    startTime: str | None = None
    finishTime: str | None = None
    sourceBranch: str | None = None
    sourceVersion: str | None = None
    reason: str | None = None
    requestedFor: IdentityRef | None = None
    requestedBy: IdentityRef | None = None
    triggerInfo: dict[str, Any] | None = None
    definition: BuildDefinitionReference | None = None


class VariableValue(BaseModel):
    value: str | None = None
    isSecret: bool = False
    isReadOnly: bool = False


class VariableGroup(BaseModel):
    """
    Represents a variable group from the distributed task (Library) API.
    """

    id: int
    name: str
    description: str | None = None
    type: str | None = None
    variables: dict[str, VariableValue] | None = None


class GitItem(BaseModel):
    path: str | None = None
    content: str | None = None
    commitId: str | None = None


_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def parse_ado_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ADO timestamp such as "2024-12-19T10:15:00.1234567Z".

    ADO emits up to seven fractional digits; they are truncated to the six
    that datetime supports. Unparseable values yield None.
    """
    if not value:
        return None
    normalized = _FRACTION_RE.sub(r"\1", value.strip())
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Dashboard view models.
# ---------------------------------------------------------------------------


class ConfidenceLevel(str, Enum):
    """
    How sure the parser is about an extracted binding.
    """

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class TriggerType(str, Enum):
    """
    UI-facing taxonomy of why a run started.
    """

    MANUAL = "Manual"
    CODE_PUSH = "CodePush"
    SCHEDULED = "Scheduled"
    PULL_REQUEST = "PullRequest"
    PIPELINE_COMPLETION = "PipelineCompletion"
    RESOURCE_TRIGGER = "ResourceTrigger"
    OTHER = "Other"


class TriggerInfo(BaseModel):
    """
    Classified trigger of a single run.
    """

    trigger_type: TriggerType = TriggerType.OTHER
    display_text: str = ""
    is_automated: bool = True
    reason: str | None = None
    triggered_by_user: str | None = None
    triggered_by_pipeline: str | None = None


class ParsedEnvironmentSettings(BaseModel):
    environment_name: str
    variable_group_name: str
    confidence: ConfidenceLevel = ConfidenceLevel.HIGH


class ParsedPipelineSettings(BaseModel):
    """
    Settings extracted from a pipeline's YAML text. Built fresh on every parse.
    """

    pipeline_id: int | None = None
    pipeline_name: str | None = None
    pipeline_path: str | None = None
    environments: list[ParsedEnvironmentSettings] = []
    code_project_name: str | None = None
    code_repo_name: str | None = None
    code_branch: str | None = None


class DevopsVariable(BaseModel):
    name: str
    value: str | None = None
    is_secret: bool = False
    is_read_only: bool = False


class DevopsVariableGroup(BaseModel):
    """
    A live variable group as shown on the dashboard. Secret values are masked.
    """

    id: int
    name: str
    description: str | None = None
    resource_url: str
    variables: list[DevopsVariable] = []


class VariableGroupRef(BaseModel):
    """
    A variable group used by a pipeline.

    id is None when the group could not be resolved against the live library;
    resource_url is then a fallback link and is never None.
    """

    name: str
    environment: str | None = None
    id: int | None = None
    variable_count: int = 0
    resource_url: str
    suggestions: list[str] = []

    @property
    def is_resolved(self) -> bool:
        return self.id is not None


class PipelineUrls(BaseModel):
    """
    Deep links derived for one dashboard row. Any link whose inputs are
    unknown is left as None.
    """

    pipeline_runs_url: str | None = None
    last_run_results_url: str | None = None
    last_run_logs_url: str | None = None
    repository_url: str | None = None
    commit_url: str | None = None
    code_repo_url: str | None = None
    code_branch_url: str | None = None
    pipeline_config_url: str | None = None
    edit_wizard_url: str | None = None


class PipelineListItem(BaseModel):
    """
    One row of the pipeline dashboard.
    """

    id: int
    name: str
    path: str = ""
    queue_status: str | None = None
    resource_url: str | None = None
    yaml_file_name: str | None = None

    repository_id: str | None = None
    repository_name: str = ""
    default_branch: str = ""
    code_project_name: str | None = None
    code_repo_name: str | None = None
    code_branch: str | None = None

    last_run_status: str = ""
    last_run_result: str = ""
    last_run_time: datetime | None = None
    last_run_start_time: datetime | None = None
    last_run_finish_time: datetime | None = None
    last_run_build_id: int | None = None
    last_run_build_number: str | None = None
    duration_seconds: float | None = None
    last_commit_id: str | None = None
    last_commit_id_full: str | None = None
    trigger_branch: str | None = None
    trigger: TriggerInfo | None = None

    variable_groups: list[VariableGroupRef] = []
    urls: PipelineUrls = Field(default_factory=PipelineUrls)

    @property
    def is_enabled(self) -> bool:
        return (self.queue_status or "enabled").lower() == "enabled"


class RunInfo(BaseModel):
    """
    A single historical run, used by the recent-runs view.
    """

    run_id: int
    build_number: str | None = None
    status: str = ""
    result: str = ""
    start_time: datetime | None = None
    finish_time: datetime | None = None
    duration_seconds: float | None = None
    source_branch: str | None = None
    source_version: str | None = None
    resource_url: str | None = None
    trigger: TriggerInfo = Field(default_factory=TriggerInfo)


class WarningStage(str, Enum):
    """
    Where a non-fatal failure happened while building the dashboard.
    """

    VARIABLE_GROUPS = "variable_groups"
    DEFINITION = "definition"
    LATEST_BUILD = "latest_build"
    CONFIG_TEXT = "config_text"
    DECLARED_VARIABLE_GROUPS = "declared_variable_groups"
    NOTIFICATION = "notification"
    PIPELINE = "pipeline"


class PipelineWarning(BaseModel):
    """
    A failure that did not abort the dashboard.

    Stage PIPELINE (and DEFINITION) means the pipeline was left out of the
    list; every other stage means only some of its fields are empty.
    """

    pipeline_id: int | None = None
    pipeline_name: str | None = None
    stage: WarningStage
    error_code: str = "UNKNOWN"
    message: str


class PipelineDashboardResponse(BaseModel):
    success: bool = False
    pipelines: list[PipelineListItem] = []
    total_count: int = 0
    enabled_count: int = 0
    available_variable_groups: list[DevopsVariableGroup] = []
    warnings: list[PipelineWarning] = []
    cancelled: bool = False
    error_message: str | None = None


class PipelineRunsResponse(BaseModel):
    success: bool = False
    runs: list[RunInfo] = []
    error_message: str | None = None


class PipelineConfigTextResponse(BaseModel):
    success: bool = False
    text: str = ""
    file_name: str | None = None
    error_message: str | None = None
