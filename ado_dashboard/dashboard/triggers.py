"""Classification of build reasons into the dashboard's trigger taxonomy."""

import logging
from typing import Any

from ..models import Build, IdentityRef, TriggerInfo, TriggerType

logger = logging.getLogger(__name__)

TRIGGERING_PIPELINE_KEY = "triggeringBuild.definition.name"

# Keys are lower-cased ADO BuildReason names.
_REASON_TABLE: dict[str, tuple[TriggerType, str, bool]] = {
    "manual": (TriggerType.MANUAL, "Manual", False),
    "individualci": (TriggerType.CODE_PUSH, "Code push", True),
    "batchedci": (TriggerType.CODE_PUSH, "Code push", True),
    "schedule": (TriggerType.SCHEDULED, "Scheduled", True),
    "pullrequest": (TriggerType.PULL_REQUEST, "Pull request", True),
    "validateshelveset": (TriggerType.PULL_REQUEST, "Pull request", True),
    "buildcompletion": (TriggerType.PIPELINE_COMPLETION, "Pipeline completion", True),
    "resourcetrigger": (TriggerType.RESOURCE_TRIGGER, "Resource", True),
}


def classify_trigger(
    reason: str | None,
    requested_for: IdentityRef | None = None,
    requested_by: IdentityRef | None = None,
    trigger_info: dict[str, Any] | None = None,
) -> TriggerInfo:
    """
    Map a raw build reason to a TriggerInfo.

    Total: unknown reasons become Other with the raw reason as display text,
    a missing reason becomes Other / "Unknown".

    Args:
        reason: BuildReason as reported by ADO (e.g. "individualCI")
        requested_for: Identity the run was requested for; preferred
        requested_by: Identity that queued the run
        trigger_info: The build's triggerInfo map

    Returns:
        TriggerInfo: The classification
    """
    key = (reason or "").strip().lower()
    trigger_type, display_text, is_automated = _REASON_TABLE.get(
        key, (TriggerType.OTHER, (reason or "").strip() or "Unknown", True)
    )

    info = TriggerInfo(
        trigger_type=trigger_type,
        display_text=display_text,
        is_automated=is_automated,
        reason=reason,
    )

    if requested_for is not None:
        info.triggered_by_user = requested_for.displayName
    elif requested_by is not None:
        info.triggered_by_user = requested_by.displayName

    if trigger_type is TriggerType.PIPELINE_COMPLETION and trigger_info:
        triggering_pipeline = trigger_info.get(TRIGGERING_PIPELINE_KEY)
        if isinstance(triggering_pipeline, str) and triggering_pipeline:
            info.triggered_by_pipeline = triggering_pipeline
        else:
            logger.debug(f"Build completion trigger without {TRIGGERING_PIPELINE_KEY}")

    return info


def classify_build(build: Build) -> TriggerInfo:
    """Classify the trigger of an upstream build."""
    return classify_trigger(
        build.reason,
        requested_for=build.requestedFor,
        requested_by=build.requestedBy,
        trigger_info=build.triggerInfo,
    )
