import pytest

from readerai.errors import ConfigurationError, UpstreamError
from readerai.provider import sdk_selector
from readerai.provider.registry import Provider
from readerai.schemas.summary import SummarizeRequest, SummaryLength
from readerai.services.summary_service import (
    LOCAL_SUMMARY_UNSUPPORTED,
    SUMMARY_SYSTEM_PROMPT,
    build_summary_prompt,
    generate_summary,
    normalize_summary_request,
    parse_summary_reply,
    validate_summary_job,
)


def _job(**overrides):
    data = {
        "provider": "openai",
        "model": "gpt-4.1-mini",
        "apiKey": "sk-test",
        "articleContent": "Body text.",
        "articleTitle": "Title",
        "summaryLength": "short",
    }
    data.update(overrides)
    return normalize_summary_request(SummarizeRequest.model_validate(data))


def test_unknown_length_defaults_to_medium():
    assert _job(summaryLength="huge").length is SummaryLength.MEDIUM
    assert _job().length is SummaryLength.SHORT


def test_prompt_mentions_title_and_length():
    prompt = build_summary_prompt(_job())
    assert prompt.startswith('Please analyze and summarize the following article titled "Title":')
    assert "Provide a brief 2-3 sentence summary." in prompt


def test_validation_rejects_bad_jobs(make_settings):
    cfg = make_settings()
    with pytest.raises(ConfigurationError, match="Article content is required"):
        validate_summary_job(_job(articleContent="  "), cfg)
    with pytest.raises(ConfigurationError, match="API key is required for openai"):
        validate_summary_job(_job(apiKey=""), cfg)
    with pytest.raises(ConfigurationError) as exc_info:
        validate_summary_job(_job(provider="codex"), cfg)
    assert str(exc_info.value) == LOCAL_SUMMARY_UNSUPPORTED

    validate_summary_job(_job(provider="gateway", apiKey=""), cfg)


def test_parse_fenced_json_reply():
    reply = 'Sure!\n```json\n{"summary": "S", "keyPoints": ["a", "b", "c", "d", "e", "f"]}\n```'
    result = parse_summary_reply(reply)
    assert result.summary == "S"
    assert result.key_points == ["a", "b", "c", "d", "e"]


def test_parse_plain_text_reply_becomes_summary():
    result = parse_summary_reply("Just a paragraph.")
    assert result.summary == "Just a paragraph."
    assert result.key_points == []


def test_parse_rejects_json_without_summary():
    with pytest.raises(UpstreamError, match="Invalid summary format from AI"):
        parse_summary_reply('{"keyPoints": ["a"]}')


@pytest.mark.asyncio
async def test_generate_summary_calls_model_once(monkeypatch, make_settings):
    calls = []

    async def generate_text(**kwargs):
        calls.append(kwargs)
        return '{"summary": "Short.", "keyPoints": ["one"]}'

    async def unused(**kwargs):  # pragma: no cover
        raise AssertionError("unexpected call")

    monkeypatch.setitem(
        sdk_selector.SDK_DRIVERS,
        "openai",
        sdk_selector.SDKDriver(
            name="fake-openai",
            list_models=unused,
            generate_text=generate_text,
            stream_text=unused,
        ),
    )

    job = _job()
    result = await generate_summary(job, config=make_settings())

    assert result.model_dump(by_alias=True) == {"summary": "Short.", "keyPoints": ["one"]}
    assert len(calls) == 1
    assert calls[0]["system"] == SUMMARY_SYSTEM_PROMPT
    assert calls[0]["model_id"] == "gpt-4.1-mini"
    assert calls[0]["messages"] == [{"role": "user", "content": build_summary_prompt(job)}]
    assert job.provider is Provider.OPENAI
