from ado_dashboard.dashboard.urls import ProjectUrls, strip_refs_heads

ORG = "https://dev.azure.com/contoso"


class TestProjectUrls:
    def setup_method(self):
        self.urls = ProjectUrls(ORG + "/", "Shop Platform")
        self.base = f"{ORG}/Shop%20Platform"

    def test_project_name_is_escaped(self):
        assert self.urls.base == self.base, f"Expected '{self.base}' but got '{self.urls.base}'"

    def test_pipeline_runs(self):
        expected = f"{self.base}/_build?definitionId=42"
        assert self.urls.pipeline_runs(42) == expected, (
            f"Expected '{expected}' but got '{self.urls.pipeline_runs(42)}'"
        )

    def test_run_results_and_logs(self):
        results = self.urls.run_results(901)
        logs = self.urls.run_logs(901)

        assert results == f"{self.base}/_build/results?buildId=901&view=results", (
            f"Unexpected results link '{results}'"
        )
        assert logs == f"{self.base}/_build/results?buildId=901&view=logs", (
            f"Unexpected logs link '{logs}'"
        )

    def test_repository_and_commit(self):
        repository = self.urls.repository("shop api")
        commit = self.urls.commit("shop api", "abcdef1234567890")

        assert repository == f"{self.base}/_git/shop%20api", (
            f"Unexpected repository link '{repository}'"
        )
        assert commit == f"{self.base}/_git/shop%20api/commit/abcdef1234567890", (
            f"Unexpected commit link '{commit}'"
        )

    def test_code_repository_in_other_project(self):
        url = self.urls.code_repository("Core", "core-api")

        assert url == f"{ORG}/Core/_git/core-api", f"Unexpected code repo link '{url}'"

    def test_code_repository_defaults_to_own_project(self):
        url = self.urls.code_repository(None, "core-api")

        assert url == f"{self.base}/_git/core-api", f"Unexpected code repo link '{url}'"

    def test_code_branch(self):
        url = self.urls.code_branch("Core", "core-api", "release/2.0")

        assert url == f"{ORG}/Core/_git/core-api?version=GBrelease%2F2.0", (
            f"Unexpected code branch link '{url}'"
        )

    def test_code_commit(self):
        url = self.urls.code_commit("Core", "core-api", "abc123")

        assert url == f"{ORG}/Core/_git/core-api/commit/abc123", f"Unexpected commit link '{url}'"

    def test_config_editor_prefers_trigger_branch(self):
        url = self.urls.config_editor(42, "refs/heads/feature/x", "refs/heads/main")

        assert url == (
            f"{self.base}/_apps/hub/ms.vss-build-web.ci-designer-hub"
            "?pipelineId=42&branch=feature%2Fx"
        ), f"Unexpected editor link '{url}'"

    def test_config_editor_falls_back_to_default_then_main(self):
        from_default = self.urls.config_editor(42, None, "refs/heads/develop")
        from_nothing = self.urls.config_editor(42)

        assert from_default.endswith("branch=develop"), (
            f"Expected default branch but got '{from_default}'"
        )
        assert from_nothing.endswith("branch=main"), f"Expected main but got '{from_nothing}'"

    def test_edit_wizard(self):
        assert ProjectUrls.edit_wizard(42) == "Wizard?import=42", (
            f"Unexpected wizard link '{ProjectUrls.edit_wizard(42)}'"
        )

    def test_missing_inputs_give_no_link(self):
        assert self.urls.pipeline_runs(None) is None, "Expected no runs link without id"
        assert self.urls.run_results(None) is None, "Expected no results link without build"
        assert self.urls.run_logs(None) is None, "Expected no logs link without build"
        assert self.urls.repository("") is None, "Expected no repository link without name"
        assert self.urls.commit("repo", None) is None, "Expected no commit link without commit"
        assert self.urls.code_repository("Core", None) is None, "Expected no code repo link"
        assert self.urls.code_branch("Core", "core-api", None) is None, "Expected no branch link"
        assert self.urls.config_editor(None) is None, "Expected no editor link without id"
        assert ProjectUrls.edit_wizard(None) is None, "Expected no wizard link without id"


def test_strip_refs_heads():
    assert strip_refs_heads("refs/heads/main") == "main", "Expected prefix removed"
    assert strip_refs_heads("main") == "main", "Expected plain branch unchanged"
    assert strip_refs_heads(None) is None, "Expected None to stay None"
