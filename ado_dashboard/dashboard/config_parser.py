"""
Line-oriented scanner for pipeline YAML.

The dashboard only needs two things from a pipeline's YAML: which variable
group each environment is bound to (`CI_<ENV>_VariableGroup: <name>` lines)
and which source repository the `BuildRepo` resource points at. Both are
extracted with a single pass over the lines instead of a YAML parser, so
templated or partially invalid files still yield whatever is recognizable.
"""

import logging
from enum import Enum

from ..models import ConfidenceLevel, ParsedEnvironmentSettings, ParsedPipelineSettings

logger = logging.getLogger(__name__)

ENVIRONMENT_LABELS = ("DEV", "PROD", "CMS", "STAGING", "QA", "UAT", "TEST")

BUILD_REPO_IDENTIFIER = "BuildRepo"

_REFS_HEADS = "refs/heads/"
_REPOSITORY_ITEM = "- repository:"
_QUOTES = "\"'"


class RepoScanState(Enum):
    """States of the repository-resource scan."""

    OUTSIDE = "outside"
    INSIDE_BUILD_REPO = "inside_build_repo"


def _value_after_colon(trimmed: str) -> str | None:
    """
    Text after the first colon, or None when the colon is missing, leads the
    line or ends it.
    """
    colon_index = trimmed.find(":")
    if colon_index <= 0 or colon_index >= len(trimmed) - 1:
        return None
    return trimmed[colon_index + 1 :].strip().strip(_QUOTES)


def _strip_refs_heads(value: str) -> str:
    if value.lower().startswith(_REFS_HEADS):
        return value[len(_REFS_HEADS) :]
    return value


class BuildRepoScanner:
    """
    Finds the `BuildRepo` entry under `resources.repositories`.

    Transitions:
      Any state -> INSIDE_BUILD_REPO on a `- repository:` line naming BuildRepo,
        so a later BuildRepo entry overrides an earlier one.
      INSIDE_BUILD_REPO -> OUTSIDE on any other `- repository:` line, or on a
        non-empty line that starts at column zero and is not a list item.
    While inside, `name:` gives `project/repo` and `ref:` gives the branch.
    """

    def __init__(self, settings: ParsedPipelineSettings):
        self.settings = settings
        self.state = RepoScanState.OUTSIDE

    def feed(self, raw_line: str) -> None:
        trimmed = raw_line.strip()

        if (
            trimmed.startswith(_REPOSITORY_ITEM)
            and BUILD_REPO_IDENTIFIER.lower() in trimmed.lower()
        ):
            self.state = RepoScanState.INSIDE_BUILD_REPO
            return

        if self.state is RepoScanState.OUTSIDE:
            return

        leaves_block = trimmed.startswith(_REPOSITORY_ITEM) or (
            trimmed and not raw_line[0].isspace() and not trimmed.startswith("-")
        )
        if leaves_block:
            self.state = RepoScanState.OUTSIDE
            return

        if trimmed.startswith("name:"):
            self._read_name(trimmed)
        elif trimmed.startswith("ref:"):
            value = _value_after_colon(trimmed)
            if value is not None:
                self.settings.code_branch = _strip_refs_heads(value)

    def _read_name(self, trimmed: str) -> None:
        value = _value_after_colon(trimmed)
        if value is None:
            return
        parts = value.split("/")
        if len(parts) >= 2:
            self.settings.code_project_name = parts[0]
            self.settings.code_repo_name = parts[1]
        elif parts[0].strip():
            self.settings.code_repo_name = parts[0]


def _environment_bindings(trimmed: str) -> list[ParsedEnvironmentSettings]:
    lowered = trimmed.lower()
    bindings = []
    for label in ENVIRONMENT_LABELS:
        if f"ci_{label.lower()}_variablegroup" not in lowered:
            continue
        value = _value_after_colon(trimmed)
        if value is None:
            continue
        value = value.replace(_REFS_HEADS, "")
        if value.strip() and not value.startswith("$"):
            bindings.append(
                ParsedEnvironmentSettings(
                    environment_name=label,
                    variable_group_name=value,
                    confidence=ConfidenceLevel.HIGH,
                )
            )
    return bindings


def parse_pipeline_config(
    text: str | None,
    pipeline_id: int | None = None,
    pipeline_name: str | None = None,
    pipeline_path: str | None = None,
) -> ParsedPipelineSettings:
    """
    Extract environment variable-group bindings and the BuildRepo source from YAML text.

    Args:
        text: Raw pipeline YAML; None or blank gives an empty result.
        pipeline_id: Attributed to the result.
        pipeline_name: Attributed to the result.
        pipeline_path: Attributed to the result.

    Returns:
        ParsedPipelineSettings: Never raises. On an unexpected error the
        bindings found up to that line are returned.
    """
    settings = ParsedPipelineSettings(
        pipeline_id=pipeline_id,
        pipeline_name=pipeline_name,
        pipeline_path=pipeline_path,
    )

    if not text or not text.strip():
        return settings

    try:
        scanner = BuildRepoScanner(settings)
        for raw_line in text.replace("\r\n", "\n").split("\n"):
            settings.environments.extend(_environment_bindings(raw_line.strip()))
            scanner.feed(raw_line)
    except Exception as e:
        logger.warning(f"Stopped parsing YAML of pipeline {pipeline_id} early: {e}")

    for environment in settings.environments:
        environment.variable_group_name = environment.variable_group_name.strip()

    logger.debug(
        f"Parsed pipeline {pipeline_id}: {len(settings.environments)} binding(s), "
        f"code repo={settings.code_repo_name!r}"
    )
    return settings
