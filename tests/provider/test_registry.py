import pytest

from readerai.provider.registry import (
    DEFAULT_PROVIDER,
    Provider,
    default_model,
    fallback_models,
    include_selected_model,
    is_local_provider,
    is_stable_model_id,
    local_tool_name,
    normalize_available_provider,
    normalize_provider,
    prioritize_stable_model_ids,
    provider_label,
    requires_credential,
    unique_model_ids,
)


def test_every_provider_has_fallback_models_and_label():
    for provider in Provider:
        assert fallback_models(provider), provider
        assert default_model(provider) == fallback_models(provider)[0]
        assert provider_label(provider)


def test_requires_credential_only_for_direct_cloud_providers():
    assert requires_credential(Provider.OPENAI)
    assert requires_credential(Provider.ANTHROPIC)
    assert requires_credential(Provider.GOOGLE)
    assert not requires_credential(Provider.GATEWAY)
    assert not requires_credential(Provider.CLAUDE_CODE)
    assert not requires_credential(Provider.CODEX)
    assert not requires_credential(Provider.GEMINI_CLI)


def test_local_providers_map_to_cli_tools():
    assert is_local_provider(Provider.CODEX)
    assert not is_local_provider(Provider.GATEWAY)
    assert local_tool_name(Provider.CLAUDE_CODE) == "claude"
    assert local_tool_name(Provider.CODEX) == "codex"
    assert local_tool_name(Provider.GEMINI_CLI) == "gemini"
    with pytest.raises(ValueError):
        local_tool_name(Provider.OPENAI)


@pytest.mark.parametrize("value", [None, "", "mistral", 42, ["openai"]])
def test_unknown_provider_tags_normalize_to_gateway(value):
    assert normalize_provider(value) is DEFAULT_PROVIDER


def test_local_provider_falls_back_when_not_allowed():
    assert normalize_available_provider("codex", allow_local_providers=True) is Provider.CODEX
    assert normalize_available_provider("codex", allow_local_providers=False) is Provider.GATEWAY
    assert normalize_available_provider("openai", allow_local_providers=False) is Provider.OPENAI


@pytest.mark.parametrize(
    "model_id,stable",
    [
        ("gpt-4.1-mini", True),
        ("gemini-2.5-pro", True),
        ("gemini-3-pro-preview", False),
        ("claude-BETA-1", False),
        ("model-EXP-0827", False),
        ("nightly-build", False),
        ("devstral", False),
    ],
)
def test_stable_classification_is_case_insensitive_substring(model_id, stable):
    assert is_stable_model_id(model_id) is stable


def test_unique_model_ids_trims_and_drops_empties():
    assert unique_model_ids([" a ", "b", "", "a", "   ", "c"]) == ["a", "b", "c"]


def test_prioritize_puts_stable_first_then_alphabetical():
    ranked = prioritize_stable_model_ids(["z-preview", "b", "a-beta", "a", "b"])
    assert ranked == ["a", "b", "a-beta", "z-preview"]


def test_include_selected_model_prepends_missing_selection():
    assert include_selected_model("x", ["a", "b"]) == ["x", "a", "b"]
    assert include_selected_model("b", ["a", "b"]) == ["a", "b"]
    assert include_selected_model("", ["a"]) == ["a"]
