"""
Builds the pipeline dashboard for one Azure DevOps project.

The project's variable groups are loaded once and shared read-only; every
build definition is then turned into a `PipelineListItem` on a bounded
thread pool. Workers never touch shared state: each returns its item plus
the warnings it collected, and the calling thread merges them.

Failures are contained at three levels:
  * the project or definition list cannot be read: the whole request fails;
  * one pipeline fails (definition fetch, timeout, unexpected error): it is
    left out and a PIPELINE/DEFINITION warning is recorded;
  * a sub-fetch fails (latest build, YAML text, variable groups): only the
    affected fields stay empty and a warning names the stage.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator

from opentelemetry import trace

from ..client import AdoClient
from ..config import DashboardConfig
from ..errors import AdoError, AdoTimeoutError, ConfigTextUnavailableError, DashboardCancelledError
from ..models import (
    BuildDefinition,
    BuildDefinitionReference,
    ParsedPipelineSettings,
    PipelineConfigTextResponse,
    PipelineDashboardResponse,
    PipelineListItem,
    PipelineRunsResponse,
    PipelineUrls,
    PipelineWarning,
    WarningStage,
    parse_ado_timestamp,
)
from ..notifications import LoggingProgressNotifier, ProgressNotifier, notify
from ..telemetry import get_telemetry_manager
from .config_parser import parse_pipeline_config
from .runs import duration_seconds, run_info_from_build, shorten_commit
from .triggers import classify_build
from .urls import DEFAULT_BRANCH, ProjectUrls, strip_refs_heads
from .variable_groups import VariableGroupIndex

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ClientFactory = Callable[[object, str], AdoClient]


def make_warning(
    stage: WarningStage,
    error: Exception,
    pipeline_id: int | None = None,
    pipeline_name: str | None = None,
) -> PipelineWarning:
    return PipelineWarning(
        pipeline_id=pipeline_id,
        pipeline_name=pipeline_name,
        stage=stage,
        error_code=error.error_code if isinstance(error, AdoError) else type(error).__name__,
        message=str(error) or type(error).__name__,
    )


@dataclass
class _DashboardContext:
    """Shared, read-only inputs of one dashboard request."""

    client: AdoClient
    project_id: str
    urls: ProjectUrls
    variable_groups: VariableGroupIndex
    cancel_event: threading.Event
    deadline: float
    pipeline_timeout: float

    def checkpoint(self, pipeline_id: int, started: float) -> None:
        """Abandon the current pipeline when the request was cancelled or is out of time."""
        if self.cancel_event.is_set():
            raise DashboardCancelledError(context={"pipeline_id": pipeline_id})

        now = time.monotonic()
        if now - started > self.pipeline_timeout:
            raise AdoTimeoutError(
                f"Pipeline {pipeline_id} exceeded {self.pipeline_timeout:g}s",
                timeout_seconds=self.pipeline_timeout,
                context={"pipeline_id": pipeline_id},
            )
        if now > self.deadline:
            raise AdoTimeoutError(
                f"Dashboard time budget exhausted before pipeline {pipeline_id} finished",
                context={"pipeline_id": pipeline_id},
            )


@dataclass
class _PipelineOutcome:
    item: PipelineListItem
    warnings: list[PipelineWarning] = field(default_factory=list)


class DashboardAggregator:
    """
    Entry points of the dashboard: the full pipeline list, the recent runs of
    one pipeline, the raw YAML of one pipeline and an offline YAML parse.

    Args:
        config: Settings; loaded from the environment when omitted.
        client_factory: `(credentials, organization_url) -> AdoClient`.
            Defaults to constructing an `AdoClient`.
        notifier: Progress channel used when a connection id is supplied.
    """

    def __init__(
        self,
        config: DashboardConfig | None = None,
        client_factory: ClientFactory | None = None,
        notifier: ProgressNotifier | None = None,
    ):
        self.config = config or DashboardConfig()
        self.client_factory = client_factory or self._default_client_factory
        self.notifier = notifier or LoggingProgressNotifier()

    def with_notifier(self, notifier: ProgressNotifier) -> "DashboardAggregator":
        """A sibling aggregator that shares settings and client factory but reports elsewhere."""
        return DashboardAggregator(
            config=self.config, client_factory=self.client_factory, notifier=notifier
        )

    def _default_client_factory(self, credentials, organization_url: str) -> AdoClient:
        return AdoClient(organization_url=organization_url, pat=credentials, config=self.config)

    @contextmanager
    def _open_client(self, credentials, organization: str) -> Iterator[AdoClient]:
        client = self.client_factory(credentials, self.config.organization_url_for(organization))
        try:
            yield client
        finally:
            client.close()

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def get_dashboard(
        self,
        credentials,
        organization: str,
        project_id: str,
        connection_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> PipelineDashboardResponse:
        """
        Build the dashboard for a project.

        Args:
            credentials: PAT string or AuthCredential (None uses the environment PAT)
            organization: Organization name or URL
            project_id: Project ID or name
            connection_id: When set, progress messages are pushed to it
            cancel_event: Set by the caller to abandon the request

        Returns:
            PipelineDashboardResponse: success is False only when the project
            or the definition list could not be read.
        """
        response = PipelineDashboardResponse()
        cancel_event = cancel_event or threading.Event()
        notify(self.notifier, connection_id, "Loading pipeline dashboard...")

        with tracer.start_as_current_span("dashboard_get_dashboard") as span:
            span.set_attribute("ado.project_id", project_id)
            try:
                with self._open_client(credentials, organization) as client:
                    project = client.get_project(project_id)
                    project_url = client.project_web_url(project)
                    organization_url = self.config.organization_url_for(organization)

                    index = self._load_variable_groups(client, project.id, project_url, response)
                    definitions = client.list_build_definitions(project_id)
                    logger.info(
                        f"Building dashboard for {project.name}: {len(definitions)} pipeline(s), "
                        f"{len(index)} variable group(s)"
                    )

                    context = _DashboardContext(
                        client=client,
                        project_id=project_id,
                        urls=ProjectUrls(organization_url, project.name),
                        variable_groups=index,
                        cancel_event=cancel_event,
                        deadline=time.monotonic()
                        + self.config.aggregation.dashboard_timeout_seconds,
                        pipeline_timeout=self.config.aggregation.pipeline_timeout_seconds,
                    )
                    items = self._build_all(context, definitions, response, connection_id)
            except Exception as e:
                logger.error(f"Error loading pipeline dashboard for {project_id}: {e}")
                span.record_exception(e)
                return PipelineDashboardResponse(
                    success=False, error_message=f"Error loading pipeline dashboard: {e}"
                )

            items.sort(key=lambda item: (item.path.lower(), item.name.lower(), item.id))
            response.pipelines = items
            response.total_count = len(items)
            response.enabled_count = sum(1 for item in items if item.is_enabled)
            response.cancelled = cancel_event.is_set()
            response.success = True

            span.set_attribute("dashboard.pipelines", response.total_count)
            span.set_attribute("dashboard.warnings", len(response.warnings))
            logger.info(
                f"Dashboard for {project_id} ready: {response.total_count} pipeline(s), "
                f"{len(response.warnings)} warning(s)"
                + (" (cancelled)" if response.cancelled else "")
            )
            return response

    def _load_variable_groups(
        self,
        client: AdoClient,
        project_id: str,
        project_url: str,
        response: PipelineDashboardResponse,
    ) -> VariableGroupIndex:
        try:
            index = VariableGroupIndex.from_upstream(
                client.list_variable_groups(project_id), project_url
            )
        except Exception as e:
            logger.warning(f"Continuing without variable groups for {project_id}: {e}")
            response.warnings.append(make_warning(WarningStage.VARIABLE_GROUPS, e))
            return VariableGroupIndex.empty(project_url)

        response.available_variable_groups = index.groups
        return index

    def _build_all(
        self,
        context: _DashboardContext,
        definitions: list[BuildDefinitionReference],
        response: PipelineDashboardResponse,
        connection_id: str | None,
    ) -> list[PipelineListItem]:
        items: list[PipelineListItem] = []
        if not definitions:
            return items

        telemetry = get_telemetry_manager()
        workers = min(self.config.aggregation.max_workers, len(definitions))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dashboard")
        pending: dict[Future, BuildDefinitionReference] = {}
        try:
            pending = {
                executor.submit(self._build_pipeline, context, definition): definition
                for definition in definitions
            }
            remaining = max(context.deadline - time.monotonic(), 0)
            for future in as_completed(list(pending), timeout=remaining):
                definition = pending.pop(future)
                try:
                    outcome = future.result()
                except DashboardCancelledError:
                    if telemetry:
                        telemetry.record_pipeline_outcome("cancelled")
                    if context.cancel_event.is_set():
                        logger.info("Dashboard request cancelled; keeping pipelines built so far")
                        break
                    continue
                except Exception as e:
                    logger.warning(f"Skipping pipeline {definition.id} ({definition.name}): {e}")
                    stage = (
                        WarningStage.DEFINITION
                        if isinstance(e, AdoError) and not isinstance(e, AdoTimeoutError)
                        else WarningStage.PIPELINE
                    )
                    response.warnings.append(make_warning(stage, e, definition.id, definition.name))
                    if telemetry:
                        telemetry.record_pipeline_outcome("skipped")
                    continue

                items.append(outcome.item)
                response.warnings.extend(outcome.warnings)
                if telemetry:
                    telemetry.record_pipeline_outcome("loaded")
                if not notify(self.notifier, connection_id, f"Loaded pipeline: {outcome.item.name}"):
                    response.warnings.append(
                        PipelineWarning(
                            pipeline_id=outcome.item.id,
                            pipeline_name=outcome.item.name,
                            stage=WarningStage.NOTIFICATION,
                            message="Progress notification failed",
                        )
                    )

                if context.cancel_event.is_set():
                    logger.info("Dashboard request cancelled; keeping pipelines built so far")
                    break
        except FuturesTimeoutError:
            timeout = self.config.aggregation.dashboard_timeout_seconds
            logger.warning(f"Dashboard timed out after {timeout:g}s with {len(pending)} pipeline(s) pending")
            for definition in pending.values():
                response.warnings.append(
                    make_warning(
                        WarningStage.PIPELINE,
                        AdoTimeoutError(
                            f"Pipeline {definition.id} did not finish within the dashboard time budget",
                            timeout_seconds=timeout,
                        ),
                        definition.id,
                        definition.name,
                    )
                )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return items

    def _build_pipeline(
        self, context: _DashboardContext, reference: BuildDefinitionReference
    ) -> _PipelineOutcome:
        """Compose one dashboard row. Runs on a worker thread."""
        started = time.monotonic()
        with tracer.start_as_current_span("dashboard_build_pipeline") as span:
            span.set_attribute("ado.definition_id", reference.id)

            context.checkpoint(reference.id, started)
            definition = context.client.get_build_definition(context.project_id, reference.id)
            repository = definition.repository

            outcome = _PipelineOutcome(
                item=PipelineListItem(
                    id=reference.id,
                    name=reference.name or "",
                    path=reference.path or "",
                    queue_status=reference.queueStatus or definition.queueStatus,
                    resource_url=definition.web_url or reference.web_url,
                    yaml_file_name=definition.yaml_filename,
                    repository_id=repository.id if repository else None,
                    repository_name=(repository.name if repository else None) or "",
                    default_branch=(repository.defaultBranch if repository else None) or "",
                )
            )

            context.checkpoint(reference.id, started)
            self._apply_latest_build(context, outcome)
            self._apply_urls(context, outcome.item)

            context.checkpoint(reference.id, started)
            self._apply_config_text(context, definition, outcome)

            if not outcome.item.variable_groups:
                self._apply_declared_groups(context, definition, outcome)

            span.set_attribute("dashboard.variable_groups", len(outcome.item.variable_groups))
            span.set_attribute("dashboard.warnings", len(outcome.warnings))
            logger.debug(f"Built pipeline {reference.id} ({reference.name})")
            return outcome

    def _apply_latest_build(self, context: _DashboardContext, outcome: _PipelineOutcome) -> None:
        item = outcome.item
        try:
            builds = context.client.list_builds(context.project_id, item.id, top=1)
        except Exception as e:
            logger.debug(f"No latest build for pipeline {item.id}: {e}")
            outcome.warnings.append(make_warning(WarningStage.LATEST_BUILD, e, item.id, item.name))
            return

        if not builds:
            return

        build = builds[0]
        start = parse_ado_timestamp(build.startTime)
        finish = parse_ado_timestamp(build.finishTime)

        item.last_run_status = build.status or ""
        item.last_run_result = build.result or ""
        item.last_run_start_time = start
        item.last_run_finish_time = finish
        item.last_run_time = finish or start or parse_ado_timestamp(build.queueTime)
        item.last_run_build_id = build.id
        item.last_run_build_number = build.buildNumber
        item.trigger_branch = build.sourceBranch
        item.duration_seconds = duration_seconds(start, finish)
        item.last_commit_id_full = build.sourceVersion or None
        item.last_commit_id = shorten_commit(build.sourceVersion)
        item.trigger = classify_build(build)

    def _apply_urls(self, context: _DashboardContext, item: PipelineListItem) -> None:
        urls = context.urls
        item.urls = PipelineUrls(
            pipeline_runs_url=urls.pipeline_runs(item.id),
            last_run_results_url=urls.run_results(item.last_run_build_id),
            last_run_logs_url=urls.run_logs(item.last_run_build_id),
            repository_url=urls.repository(item.repository_name),
            commit_url=urls.commit(item.repository_name, item.last_commit_id_full),
            pipeline_config_url=urls.config_editor(item.id, item.trigger_branch, item.default_branch),
            edit_wizard_url=urls.edit_wizard(item.id),
        )

    def _apply_config_text(
        self, context: _DashboardContext, definition: BuildDefinition, outcome: _PipelineOutcome
    ) -> None:
        item = outcome.item
        repository = definition.repository
        yaml_file = definition.yaml_filename
        if not yaml_file or repository is None or not repository.id:
            return

        branch = strip_refs_heads(repository.defaultBranch) or DEFAULT_BRANCH
        try:
            text = context.client.get_file_content(
                context.project_id, repository.id, yaml_file, branch
            )
        except Exception as e:
            logger.debug(f"Could not read {yaml_file} for pipeline {item.id}: {e}")
            outcome.warnings.append(make_warning(WarningStage.CONFIG_TEXT, e, item.id, item.name))
            return

        if not text or not text.strip():
            return

        parsed = parse_pipeline_config(text, item.id, item.name, item.path)
        self._apply_code_repo(context, item, parsed)
        item.variable_groups = context.variable_groups.resolve_settings(parsed)

    def _apply_code_repo(
        self, context: _DashboardContext, item: PipelineListItem, parsed: ParsedPipelineSettings
    ) -> None:
        if not parsed.code_repo_name:
            return

        item.code_project_name = parsed.code_project_name
        item.code_repo_name = parsed.code_repo_name
        item.code_branch = parsed.code_branch

        urls = context.urls
        item.urls.code_repo_url = urls.code_repository(parsed.code_project_name, parsed.code_repo_name)
        item.urls.code_branch_url = urls.code_branch(
            parsed.code_project_name, parsed.code_repo_name, parsed.code_branch
        )
        if item.last_commit_id_full:
            # The last run built the code repo, so its commit lives there.
            item.urls.commit_url = urls.code_commit(
                parsed.code_project_name, parsed.code_repo_name, item.last_commit_id_full
            )

    def _apply_declared_groups(
        self, context: _DashboardContext, definition: BuildDefinition, outcome: _PipelineOutcome
    ) -> None:
        item = outcome.item
        try:
            item.variable_groups = context.variable_groups.resolve_declared_groups(
                definition.variableGroups
            )
        except Exception as e:
            logger.warning(f"Could not resolve declared variable groups of pipeline {item.id}: {e}")
            outcome.warnings.append(
                make_warning(WarningStage.DECLARED_VARIABLE_GROUPS, e, item.id, item.name)
            )

    # ------------------------------------------------------------------
    # Single-pipeline views
    # ------------------------------------------------------------------

    def get_recent_runs(
        self,
        credentials,
        organization: str,
        project_id: str,
        pipeline_id: int,
        top: int | None = None,
    ) -> PipelineRunsResponse:
        """
        The most recent runs of one pipeline, newest first, each classified.

        Args:
            top: Number of runs; defaults to `aggregation.recent_runs_top` (5)
        """
        top = top or self.config.aggregation.recent_runs_top
        with tracer.start_as_current_span("dashboard_get_recent_runs") as span:
            span.set_attribute("ado.definition_id", pipeline_id)
            try:
                with self._open_client(credentials, organization) as client:
                    builds = client.list_builds(project_id, pipeline_id, top=top)
            except Exception as e:
                logger.error(f"Error loading runs of pipeline {pipeline_id}: {e}")
                span.record_exception(e)
                return PipelineRunsResponse(
                    success=False, error_message=f"Error loading pipeline runs: {e}"
                )

            runs = [run_info_from_build(build) for build in builds]
            span.set_attribute("dashboard.runs", len(runs))
            return PipelineRunsResponse(success=True, runs=runs)

    def get_config_text(
        self, credentials, organization: str, project_id: str, pipeline_id: int
    ) -> PipelineConfigTextResponse:
        """
        Raw YAML of a pipeline at its repository's default branch, unparsed.

        Fails with "Pipeline does not use YAML process." for designer pipelines.
        """
        with tracer.start_as_current_span("dashboard_get_config_text") as span:
            span.set_attribute("ado.definition_id", pipeline_id)
            try:
                with self._open_client(credentials, organization) as client:
                    definition = client.get_build_definition(project_id, pipeline_id)
                    yaml_file = definition.yaml_filename
                    repository = definition.repository
                    if not yaml_file or repository is None or not repository.id:
                        raise ConfigTextUnavailableError(context={"pipeline_id": pipeline_id})

                    branch = strip_refs_heads(repository.defaultBranch) or DEFAULT_BRANCH
                    text = client.get_file_content(project_id, repository.id, yaml_file, branch)
            except ConfigTextUnavailableError as e:
                logger.info(f"Pipeline {pipeline_id} has no YAML file")
                return PipelineConfigTextResponse(success=False, error_message=str(e))
            except Exception as e:
                logger.error(f"Error loading YAML of pipeline {pipeline_id}: {e}")
                span.record_exception(e)
                return PipelineConfigTextResponse(
                    success=False, error_message=f"Error loading pipeline YAML: {e}"
                )

            return PipelineConfigTextResponse(success=True, text=text or "", file_name=yaml_file)

    @staticmethod
    def parse_config(
        text: str | None,
        pipeline_id: int | None = None,
        pipeline_name: str | None = None,
        pipeline_path: str | None = None,
    ) -> ParsedPipelineSettings:
        """Offline parse of pipeline YAML; see `parse_pipeline_config`."""
        return parse_pipeline_config(text, pipeline_id, pipeline_name, pipeline_path)
