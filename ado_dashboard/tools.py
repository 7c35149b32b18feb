import asyncio
import logging
import threading

from fastmcp import Context

from ado_dashboard.dashboard import DashboardAggregator
from ado_dashboard.graceful_cancellation import graceful_cancellation
from ado_dashboard.models import (
    ParsedPipelineSettings,
    PipelineConfigTextResponse,
    PipelineDashboardResponse,
    PipelineRunsResponse,
)
from ado_dashboard.notifications import ProgressNotifier

logger = logging.getLogger(__name__)


class ContextProgressNotifier(ProgressNotifier):
    """
    Forwards progress messages to the MCP client of one tool call.

    `send` is called from worker threads, so messages are scheduled onto the
    server's event loop without waiting for delivery.
    """

    def __init__(self, ctx: Context, loop: asyncio.AbstractEventLoop):
        self.ctx = ctx
        self.loop = loop

    def send(self, connection_id: str, message: str) -> None:
        asyncio.run_coroutine_threadsafe(self.ctx.info(message), self.loop)


def register_dashboard_tools(mcp_instance, aggregator: DashboardAggregator):
    """
    Registers the pipeline dashboard tools with the FastMCP instance.

    Credentials come from the environment (AZURE_DEVOPS_EXT_PAT) so they never
    travel through tool arguments.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        aggregator: The aggregator that serves every call.
    """

    @mcp_instance.tool
    async def get_pipeline_dashboard(
        organization: str, project_id: str, ctx: Context
    ) -> PipelineDashboardResponse:
        """
        Builds the dashboard of every build pipeline in a project: latest run,
        trigger, commit, deep links and the variable groups each pipeline uses.

        Args:
            organization (str): Organization name (e.g. "contoso") or URL.
            project_id (str): The ID or name of the project.

        Returns:
            PipelineDashboardResponse: Pipelines sorted by folder and name, the
            project's variable groups, and warnings for partial failures.
        """
        cancel_event = threading.Event()
        runner = aggregator.with_notifier(
            ContextProgressNotifier(ctx, asyncio.get_running_loop())
        )
        connection_id = ctx.request_id

        @graceful_cancellation("pipeline_dashboard", on_cancel=cancel_event.set)
        async def load() -> PipelineDashboardResponse:
            return await asyncio.to_thread(
                runner.get_dashboard, None, organization, project_id, connection_id, cancel_event
            )

        logger.info(f"Dashboard requested for {organization}/{project_id}")
        return await load()

    @mcp_instance.tool
    def get_recent_pipeline_runs(
        organization: str, project_id: str, pipeline_id: int, top: int = 5
    ) -> PipelineRunsResponse:
        """
        Lists the most recent runs of a pipeline, newest first.

        Args:
            organization (str): Organization name or URL.
            project_id (str): The ID or name of the project.
            pipeline_id (int): The build definition ID.
            top (int): Number of runs to return. Defaults to 5.

        Returns:
            PipelineRunsResponse: Runs with status, timing, trigger and links.
        """
        return aggregator.get_recent_runs(None, organization, project_id, pipeline_id, top=top)

    @mcp_instance.tool
    def get_pipeline_config_text(
        organization: str, project_id: str, pipeline_id: int
    ) -> PipelineConfigTextResponse:
        """
        Returns the raw YAML of a pipeline from its repository's default branch.

        Args:
            organization (str): Organization name or URL.
            project_id (str): The ID or name of the project.
            pipeline_id (int): The build definition ID.

        Returns:
            PipelineConfigTextResponse: The YAML text and file name, or an error
            message for classic (designer) pipelines.
        """
        return aggregator.get_config_text(None, organization, project_id, pipeline_id)

    @mcp_instance.tool
    def parse_pipeline_config(
        text: str,
        pipeline_id: int | None = None,
        pipeline_name: str | None = None,
        pipeline_path: str | None = None,
    ) -> ParsedPipelineSettings:
        """
        Extracts environment variable-group bindings and the BuildRepo code
        repository from pipeline YAML without calling Azure DevOps.

        Args:
            text (str): The pipeline YAML.
            pipeline_id (int, optional): Copied into the result.
            pipeline_name (str, optional): Copied into the result.
            pipeline_path (str, optional): Copied into the result.

        Returns:
            ParsedPipelineSettings: Environments found and the code repository.
        """
        return aggregator.parse_config(text, pipeline_id, pipeline_name, pipeline_path)
