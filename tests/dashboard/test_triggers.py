import pytest

from ado_dashboard.dashboard.triggers import classify_build, classify_trigger
from ado_dashboard.models import Build, IdentityRef, TriggerType


@pytest.mark.parametrize(
    "reason, trigger_type, display_text, is_automated",
    [
        ("manual", TriggerType.MANUAL, "Manual", False),
        ("individualCI", TriggerType.CODE_PUSH, "Code push", True),
        ("batchedCI", TriggerType.CODE_PUSH, "Code push", True),
        ("schedule", TriggerType.SCHEDULED, "Scheduled", True),
        ("pullRequest", TriggerType.PULL_REQUEST, "Pull request", True),
        ("validateShelveset", TriggerType.PULL_REQUEST, "Pull request", True),
        ("buildCompletion", TriggerType.PIPELINE_COMPLETION, "Pipeline completion", True),
        ("resourceTrigger", TriggerType.RESOURCE_TRIGGER, "Resource", True),
    ],
)
def test_known_reasons(reason, trigger_type, display_text, is_automated):
    info = classify_trigger(reason)

    assert info.trigger_type is trigger_type, (
        f"Expected {trigger_type} for '{reason}' but got {info.trigger_type}"
    )
    assert info.display_text == display_text, (
        f"Expected '{display_text}' for '{reason}' but got '{info.display_text}'"
    )
    assert info.is_automated is is_automated, (
        f"Expected is_automated={is_automated} for '{reason}' but got {info.is_automated}"
    )
    assert info.reason == reason, f"Expected raw reason '{reason}' but got '{info.reason}'"


def test_reason_matching_ignores_case():
    info = classify_trigger("INDIVIDUALCI")

    assert info.trigger_type is TriggerType.CODE_PUSH, (
        f"Expected CODE_PUSH but got {info.trigger_type}"
    )


def test_unknown_reason_keeps_raw_text():
    info = classify_trigger("checkInShelveset")

    assert info.trigger_type is TriggerType.OTHER, f"Expected OTHER but got {info.trigger_type}"
    assert info.display_text == "checkInShelveset", (
        f"Expected raw reason as display text but got '{info.display_text}'"
    )
    assert info.is_automated is True, "Unknown reasons count as automated"


def test_missing_reason():
    for reason in (None, ""):
        info = classify_trigger(reason)

        assert info.trigger_type is TriggerType.OTHER, (
            f"Expected OTHER for {reason!r} but got {info.trigger_type}"
        )
        assert info.display_text == "Unknown", (
            f"Expected 'Unknown' for {reason!r} but got '{info.display_text}'"
        )


def test_requested_for_wins_over_requested_by():
    info = classify_trigger(
        "manual",
        requested_for=IdentityRef(displayName="Ada Lovelace"),
        requested_by=IdentityRef(displayName="Build Service"),
    )

    assert info.triggered_by_user == "Ada Lovelace", (
        f"Expected 'Ada Lovelace' but got '{info.triggered_by_user}'"
    )


def test_requested_by_is_fallback():
    info = classify_trigger("manual", requested_by=IdentityRef(displayName="Build Service"))

    assert info.triggered_by_user == "Build Service", (
        f"Expected 'Build Service' but got '{info.triggered_by_user}'"
    )


def test_triggering_pipeline_for_build_completion():
    info = classify_trigger(
        "buildCompletion", trigger_info={"triggeringBuild.definition.name": "shop-build"}
    )

    assert info.triggered_by_pipeline == "shop-build", (
        f"Expected 'shop-build' but got '{info.triggered_by_pipeline}'"
    )


def test_triggering_pipeline_only_for_build_completion():
    info = classify_trigger(
        "individualCI", trigger_info={"triggeringBuild.definition.name": "shop-build"}
    )

    assert info.triggered_by_pipeline is None, (
        f"Expected no triggering pipeline but got '{info.triggered_by_pipeline}'"
    )


def test_classify_build():
    build = Build(
        id=1,
        reason="schedule",
        requestedFor=IdentityRef(displayName="Project Collection Build Service"),
    )

    info = classify_build(build)

    assert info.trigger_type is TriggerType.SCHEDULED, (
        f"Expected SCHEDULED but got {info.trigger_type}"
    )
    assert info.triggered_by_user == "Project Collection Build Service", (
        f"Expected build service identity but got '{info.triggered_by_user}'"
    )
