"""Deep links into the Azure DevOps web UI."""

from urllib.parse import quote

_REFS_HEADS = "refs/heads/"
DEFAULT_BRANCH = "main"


def _escape(value: str) -> str:
    return quote(value, safe="")


def strip_refs_heads(branch: str | None) -> str | None:
    if branch is None:
        return None
    return branch.replace(_REFS_HEADS, "")


class ProjectUrls:
    """
    Builds web links for one project.

    Every method is a pure function of its arguments. Methods return None
    when a required input is missing instead of producing a broken link.

    Args:
        organization_url: e.g. "https://dev.azure.com/contoso"
        project_name: Display name of the project
    """

    def __init__(self, organization_url: str, project_name: str):
        self.organization_url = organization_url.rstrip("/")
        self.project_name = project_name
        self.base = self._project_base(project_name)

    def _project_base(self, project_name: str) -> str:
        return f"{self.organization_url}/{_escape(project_name)}"

    def pipeline_runs(self, pipeline_id: int | None) -> str | None:
        if pipeline_id is None:
            return None
        return f"{self.base}/_build?definitionId={pipeline_id}"

    def run_results(self, build_id: int | None) -> str | None:
        if build_id is None:
            return None
        return f"{self.base}/_build/results?buildId={build_id}&view=results"

    def run_logs(self, build_id: int | None) -> str | None:
        if build_id is None:
            return None
        return f"{self.base}/_build/results?buildId={build_id}&view=logs"

    def repository(self, repository_name: str | None) -> str | None:
        if not repository_name:
            return None
        return f"{self.base}/_git/{_escape(repository_name)}"

    def commit(self, repository_name: str | None, commit_id: str | None) -> str | None:
        if not repository_name or not commit_id:
            return None
        return f"{self.repository(repository_name)}/commit/{commit_id}"

    def code_repository(self, code_project: str | None, code_repo: str | None) -> str | None:
        """Repository named by the YAML BuildRepo resource, which may live in another project."""
        if not code_repo:
            return None
        base = self._project_base(code_project) if code_project else self.base
        return f"{base}/_git/{_escape(code_repo)}"

    def code_branch(
        self, code_project: str | None, code_repo: str | None, branch: str | None
    ) -> str | None:
        repo_url = self.code_repository(code_project, code_repo)
        if not repo_url or not branch:
            return None
        return f"{repo_url}?version=GB{_escape(branch)}"

    def code_commit(
        self, code_project: str | None, code_repo: str | None, commit_id: str | None
    ) -> str | None:
        repo_url = self.code_repository(code_project, code_repo)
        if not repo_url or not commit_id:
            return None
        return f"{repo_url}/commit/{commit_id}"

    def config_editor(
        self,
        pipeline_id: int | None,
        trigger_branch: str | None = None,
        default_branch: str | None = None,
    ) -> str | None:
        """
        YAML editor for a pipeline. Opens the branch of the last run, else the
        repository default branch, else main.
        """
        if pipeline_id is None:
            return None
        branch = (
            strip_refs_heads(trigger_branch)
            or strip_refs_heads(default_branch)
            or DEFAULT_BRANCH
        )
        return (
            f"{self.base}/_apps/hub/ms.vss-build-web.ci-designer-hub"
            f"?pipelineId={pipeline_id}&branch={_escape(branch)}"
        )

    @staticmethod
    def edit_wizard(pipeline_id: int | None) -> str | None:
        """Relative link into the in-app pipeline wizard."""
        if pipeline_id is None:
            return None
        return f"Wizard?import={pipeline_id}"
