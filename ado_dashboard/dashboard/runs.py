"""Facts derived from a single build: timing, commit and trigger."""

from datetime import datetime

from ..models import Build, RunInfo, parse_ado_timestamp
from .triggers import classify_build

SHORT_COMMIT_LENGTH = 7


def shorten_commit(commit_id: str | None) -> str | None:
    """First seven characters of a commit hash; shorter hashes are returned unchanged."""
    if not commit_id or not commit_id.strip():
        return None
    return commit_id[:SHORT_COMMIT_LENGTH]


def duration_seconds(start: datetime | None, finish: datetime | None) -> float | None:
    """Run duration, or None unless both timestamps are known."""
    if start is None or finish is None:
        return None
    return (finish - start).total_seconds()


def run_info_from_build(build: Build) -> RunInfo:
    start = parse_ado_timestamp(build.startTime)
    finish = parse_ado_timestamp(build.finishTime)
    return RunInfo(
        run_id=build.id,
        build_number=build.buildNumber,
        status=build.status or "",
        result=build.result or "",
        start_time=start,
        finish_time=finish,
        duration_seconds=duration_seconds(start, finish),
        source_branch=build.sourceBranch,
        source_version=build.sourceVersion,
        resource_url=build.web_url,
        trigger=classify_build(build),
    )
