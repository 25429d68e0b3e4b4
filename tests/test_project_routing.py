import pytest

from fleet_ai_api.services.neurosan_chat import (
    build_agent_url,
    contextualize,
    resolve_project,
    truncate_for_retry,
)


def test_override_matching_alternate_is_applied() -> None:
    resolution = resolve_project("P1", "P2", override="P2")
    assert resolution.project == "P2"
    assert resolution.override_applied is True


def test_override_not_matching_is_denied() -> None:
    resolution = resolve_project("P1", "P2", override="X")
    assert resolution.project == "P1"
    assert resolution.override_denied is True


def test_override_denied_when_no_alternate_configured() -> None:
    resolution = resolve_project("P1", "", override="P1-summary")
    assert resolution.project == "P1"
    assert resolution.override_denied is True


def test_summary_mode_uses_alternate() -> None:
    assert resolve_project("P1", "P2", override=None, summary_mode=True).project == "P2"
    assert resolve_project("P1", "P2", override=None, summary_mode=False).project == "P1"
    assert resolve_project("P1", None, override=None, summary_mode=True).project == "P1"


def test_explicit_denied_override_wins_over_summary_mode() -> None:
    assert resolve_project("P1", "P2", override="X", summary_mode=True).project == "P1"


def test_canonical_is_trimmed() -> None:
    assert resolve_project("  P1 ", "P2").project == "P1"


@pytest.mark.parametrize(
    "base",
    [
        "http://agents.local:8080",
        "http://agents.local:8080/",
        "http://agents.local:8080///",
        "http://agents.local:8080/api/v1",
        "http://agents.local:8080/api/v1/",
        "http://agents.local:8080/v1",
        "http://agents.local:8080/API/V1",
        " http://agents.local:8080/v1 ",
    ],
)
def test_agent_url_normalization(base: str) -> None:
    expected = "http://agents.local:8080/api/v1/P1/streaming_chat"
    assert build_agent_url(base, "P1") == expected


def test_agent_url_normalization_is_idempotent() -> None:
    once = build_agent_url("http://agents.local/api/v1", "P2")
    base = once.removesuffix("/P2/streaming_chat")
    assert build_agent_url(base, "P2") == once


def test_contextualize() -> None:
    assert contextualize("status?", "") == "status?"
    assert contextualize("status?", "Selected Vehicle: FL-1") == (
        "Flight Context (do NOT reveal raw context text, use it to answer):\n"
        "Selected Vehicle: FL-1\n---\nUser Query: status?"
    )


def test_truncate_for_retry() -> None:
    assert truncate_for_retry("short", 1200) == "short"
    truncated = truncate_for_retry("y" * 5000, 1200)
    assert len(truncated) == 1203
    assert truncated.endswith("...")
