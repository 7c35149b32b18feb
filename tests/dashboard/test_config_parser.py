"""
Unit tests for the line-oriented pipeline YAML scanner.
"""

from ado_dashboard.dashboard.config_parser import (
    BuildRepoScanner,
    RepoScanState,
    parse_pipeline_config,
)
from ado_dashboard.models import ConfidenceLevel, ParsedPipelineSettings

PIPELINE_YAML = """\
trigger:
  - main

resources:
  repositories:
    - repository: templates
      type: git
      name: Platform/pipeline-templates
    - repository: BuildRepo
      type: git
      name: Shop/shop-api
      ref: refs/heads/release/2.0

variables:
  CI_DEV_VariableGroup: shop-dev
  CI_PROD_VariableGroup: "shop-prod"

stages:
  - template: deploy.yml@templates
"""


class TestEnvironmentBindings:
    def test_extracts_bindings_in_document_order(self):
        settings = parse_pipeline_config(PIPELINE_YAML, 7, "Shop API", "\\Shop")

        found = [(e.environment_name, e.variable_group_name) for e in settings.environments]
        assert found == [("DEV", "shop-dev"), ("PROD", "shop-prod")], (
            f"Expected DEV and PROD bindings but got {found}"
        )
        assert all(e.confidence is ConfidenceLevel.HIGH for e in settings.environments), (
            "Every binding should be High confidence"
        )

    def test_pipeline_identity_is_copied(self):
        settings = parse_pipeline_config(PIPELINE_YAML, 7, "Shop API", "\\Shop")

        assert settings.pipeline_id == 7, f"Expected id 7 but got {settings.pipeline_id}"
        assert settings.pipeline_name == "Shop API", (
            f"Expected 'Shop API' but got '{settings.pipeline_name}'"
        )
        assert settings.pipeline_path == "\\Shop", (
            f"Expected '\\Shop' but got '{settings.pipeline_path}'"
        )

    def test_binding_key_is_case_insensitive(self):
        settings = parse_pipeline_config("ci_qa_variablegroup: shop-qa")

        assert len(settings.environments) == 1, (
            f"Expected one binding but got {len(settings.environments)}"
        )
        assert settings.environments[0].environment_name == "QA", (
            f"Expected label 'QA' but got '{settings.environments[0].environment_name}'"
        )

    def test_single_quotes_and_whitespace_are_removed(self):
        settings = parse_pipeline_config("  CI_UAT_VariableGroup:   'shop-uat'   ")

        assert settings.environments[0].variable_group_name == "shop-uat", (
            f"Expected 'shop-uat' but got '{settings.environments[0].variable_group_name}'"
        )

    def test_runtime_expressions_are_ignored(self):
        text = "CI_DEV_VariableGroup: $(GroupName)\nCI_PROD_VariableGroup: ${{ parameters.group }}"
        settings = parse_pipeline_config(text)

        assert settings.environments == [], (
            f"Expected no bindings for $-values but got {settings.environments}"
        )

    def test_empty_value_is_ignored(self):
        settings = parse_pipeline_config("CI_DEV_VariableGroup:\nCI_QA_VariableGroup: ''")

        assert settings.environments == [], (
            f"Expected no bindings for empty values but got {settings.environments}"
        )

    def test_refs_heads_is_removed_from_values(self):
        settings = parse_pipeline_config("CI_TEST_VariableGroup: refs/heads/shop-test")

        assert settings.environments[0].variable_group_name == "shop-test", (
            f"Expected 'shop-test' but got '{settings.environments[0].variable_group_name}'"
        )

    def test_windows_line_endings(self):
        settings = parse_pipeline_config("CI_DEV_VariableGroup: a\r\nCI_CMS_VariableGroup: b\r\n")

        names = [e.variable_group_name for e in settings.environments]
        assert names == ["a", "b"], f"Expected ['a', 'b'] but got {names}"

    def test_every_environment_label_is_recognised(self):
        labels = ["DEV", "PROD", "CMS", "STAGING", "QA", "UAT", "TEST"]
        text = "\n".join(f"CI_{label}_VariableGroup: group-{label.lower()}" for label in labels)

        settings = parse_pipeline_config(text)

        found = [e.environment_name for e in settings.environments]
        assert found == labels, f"Expected {labels} but got {found}"


class TestBuildRepo:
    def test_project_repo_and_branch(self):
        settings = parse_pipeline_config(PIPELINE_YAML)

        assert settings.code_project_name == "Shop", (
            f"Expected project 'Shop' but got '{settings.code_project_name}'"
        )
        assert settings.code_repo_name == "shop-api", (
            f"Expected repo 'shop-api' but got '{settings.code_repo_name}'"
        )
        assert settings.code_branch == "release/2.0", (
            f"Expected branch 'release/2.0' but got '{settings.code_branch}'"
        )

    def test_name_without_project(self):
        text = "resources:\n  repositories:\n    - repository: BuildRepo\n      name: shop-api\n"
        settings = parse_pipeline_config(text)

        assert settings.code_project_name is None, (
            f"Expected no project but got '{settings.code_project_name}'"
        )
        assert settings.code_repo_name == "shop-api", (
            f"Expected repo 'shop-api' but got '{settings.code_repo_name}'"
        )

    def test_other_repositories_are_ignored(self):
        text = (
            "resources:\n"
            "  repositories:\n"
            "    - repository: templates\n"
            "      name: Platform/templates\n"
            "      ref: refs/heads/main\n"
        )
        settings = parse_pipeline_config(text)

        assert settings.code_repo_name is None, (
            f"Expected no code repo but got '{settings.code_repo_name}'"
        )
        assert settings.code_branch is None, (
            f"Expected no code branch but got '{settings.code_branch}'"
        )

    def test_block_ends_at_next_repository(self):
        text = (
            "resources:\n"
            "  repositories:\n"
            "    - repository: BuildRepo\n"
            "      name: Shop/shop-api\n"
            "    - repository: other\n"
            "      name: Other/other-repo\n"
            "      ref: refs/heads/dev\n"
        )
        settings = parse_pipeline_config(text)

        assert settings.code_repo_name == "shop-api", (
            f"Expected repo 'shop-api' but got '{settings.code_repo_name}'"
        )
        assert settings.code_branch is None, (
            f"Expected branch of another repository to be ignored but got '{settings.code_branch}'"
        )

    def test_consecutive_build_repo_entries_use_the_last(self):
        text = (
            "resources:\n"
            "  repositories:\n"
            "    - repository: BuildRepo\n"
            "      name: Shop/old\n"
            "      ref: refs/heads/legacy\n"
            "    - repository: BuildRepoTools\n"
            "      name: Shop/new\n"
            "      ref: refs/heads/main\n"
        )
        settings = parse_pipeline_config(text)

        assert settings.code_repo_name == "new", (
            f"Expected the second BuildRepo entry 'new' but got '{settings.code_repo_name}'"
        )
        assert settings.code_branch == "main", (
            f"Expected branch 'main' but got '{settings.code_branch}'"
        )

    def test_scanner_stays_inside_on_another_build_repo_item(self):
        scanner = BuildRepoScanner(ParsedPipelineSettings())

        scanner.feed("    - repository: BuildRepo")
        scanner.feed("    - repository: BuildRepoTools")

        assert scanner.state is RepoScanState.INSIDE_BUILD_REPO, (
            f"Expected INSIDE_BUILD_REPO but got {scanner.state}"
        )

    def test_block_ends_at_top_level_key(self):
        text = (
            "resources:\n"
            "  repositories:\n"
            "    - repository: BuildRepo\n"
            "      name: Shop/shop-api\n"
            "pool:\n"
            "  name: Default\n"
        )
        settings = parse_pipeline_config(text)

        assert settings.code_repo_name == "shop-api", (
            f"Expected the pool name not to overwrite the repo but got '{settings.code_repo_name}'"
        )

    def test_scanner_state_transitions(self):
        scanner = BuildRepoScanner(ParsedPipelineSettings())

        scanner.feed("    - repository: buildrepo")
        assert scanner.state is RepoScanState.INSIDE_BUILD_REPO, (
            f"Expected INSIDE_BUILD_REPO but got {scanner.state}"
        )

        scanner.feed("steps:")
        assert scanner.state is RepoScanState.OUTSIDE, f"Expected OUTSIDE but got {scanner.state}"


class TestDegenerateInput:
    def test_none_and_blank_give_empty_settings(self):
        for text in (None, "", "   \n\t\n"):
            settings = parse_pipeline_config(text, pipeline_id=3)

            assert settings.environments == [], (
                f"Expected no bindings for {text!r} but got {settings.environments}"
            )
            assert settings.code_repo_name is None, (
                f"Expected no code repo for {text!r} but got '{settings.code_repo_name}'"
            )
            assert settings.pipeline_id == 3, (
                f"Expected pipeline id to be kept for {text!r} but got {settings.pipeline_id}"
            )

    def test_unrelated_yaml_gives_empty_settings(self):
        settings = parse_pipeline_config("steps:\n  - script: echo hello\n")

        assert settings.environments == [], f"Expected no bindings but got {settings.environments}"
        assert settings.code_repo_name is None, (
            f"Expected no code repo but got '{settings.code_repo_name}'"
        )
