"""
One-shot structured article summaries.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from readerai.errors import ConfigurationError, UpstreamError
from readerai.logging_config import logger
from readerai.provider.registry import Provider, is_local_provider, normalize_provider
from readerai.provider.sdk_selector import resolve_language_model
from readerai.schemas.chat import ChatMessage
from readerai.schemas.summary import SummarizeRequest, SummaryLength, SummaryResponse
from readerai.services.request_normalizer import (
    ensure_provider_usable,
    normalize_api_key,
    normalize_model,
    normalize_text,
)
from readerai.settings import Settings

MAX_ARTICLE_CONTENT_CHARS = 100_000
MAX_ARTICLE_TITLE_CHARS = 500
MAX_KEY_POINTS = 5

LOCAL_SUMMARY_UNSUPPORTED = (
    "Local providers are not supported for summary generation. "
    "Please use OpenAI, Anthropic, or Google."
)

SUMMARY_LENGTH_INSTRUCTIONS: dict[SummaryLength, str] = {
    SummaryLength.SHORT: "Provide a brief 2-3 sentence summary.",
    SummaryLength.MEDIUM: "Provide a comprehensive 4-6 sentence summary.",
    SummaryLength.LONG: "Provide a detailed 8-10 sentence summary covering all major points.",
}

SUMMARY_SYSTEM_PROMPT = """You are an expert at analyzing and summarizing articles. Your task is to:
1. Create a clear, concise summary that captures the main ideas and key insights
2. Extract 3-5 key points as bullet points that represent the most important takeaways
3. Maintain objectivity and accuracy

Format your response as JSON with this structure:
{
  "summary": "The summary text here...",
  "keyPoints": ["First key point", "Second key point", "Third key point"]
}"""

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")
_BARE_JSON_RE = re.compile(r"(\{[\s\S]*\})")


@dataclass(frozen=True)
class SummaryJob:
    provider: Provider
    model: str
    api_key: str
    content: str
    title: str
    length: SummaryLength


def normalize_summary_length(value: Any) -> SummaryLength:
    try:
        return SummaryLength(value)
    except (TypeError, ValueError):
        return SummaryLength.MEDIUM


def normalize_summary_request(body: SummarizeRequest) -> SummaryJob:
    provider = normalize_provider(body.provider)
    return SummaryJob(
        provider=provider,
        model=normalize_model(body.model, provider),
        api_key=normalize_api_key(body.api_key),
        content=normalize_text(body.article_content, MAX_ARTICLE_CONTENT_CHARS),
        title=normalize_text(body.article_title, MAX_ARTICLE_TITLE_CHARS),
        length=normalize_summary_length(body.summary_length),
    )


def validate_summary_job(job: SummaryJob, cfg: Settings) -> None:
    """Raise ConfigurationError for jobs that must be rejected up front."""
    if not job.content:
        raise ConfigurationError("Article content is required")
    ensure_provider_usable(job.provider, job.api_key, cfg)
    if is_local_provider(job.provider):
        raise ConfigurationError(LOCAL_SUMMARY_UNSUPPORTED)


def build_summary_prompt(job: SummaryJob) -> str:
    titled = f' titled "{job.title}"' if job.title else ""
    return (
        f"Please analyze and summarize the following article{titled}:\n\n"
        f"{job.content}\n\n"
        f"{SUMMARY_LENGTH_INSTRUCTIONS[job.length]}\n\n"
        "Remember to respond with valid JSON in the exact format specified."
    )


def _extract_json_text(text: str) -> str:
    match = _FENCED_JSON_RE.search(text) or _BARE_JSON_RE.search(text)
    return match.group(1) if match else text


def parse_summary_reply(reply: str) -> SummaryResponse:
    """
    Parse the model reply as {"summary", "keyPoints"}; a reply that is not
    JSON becomes the summary itself with no key points.
    """
    parsed: Optional[dict[str, Any]] = None
    try:
        candidate = json.loads(_extract_json_text(reply.strip()))
        if isinstance(candidate, dict):
            parsed = candidate
    except json.JSONDecodeError:
        logger.warning("summary: model reply was not valid JSON; using raw text")

    if parsed is None:
        parsed = {"summary": reply, "keyPoints": []}

    summary = parsed.get("summary")
    if not summary or not isinstance(summary, str):
        raise UpstreamError("Invalid summary format from AI")

    key_points = parsed.get("keyPoints")
    if not isinstance(key_points, list):
        key_points = []
    key_points = [str(point) for point in key_points[:MAX_KEY_POINTS]]

    return SummaryResponse(summary=summary, key_points=key_points)


async def generate_summary(job: SummaryJob, *, config: Settings) -> SummaryResponse:
    handle = resolve_language_model(job.provider, job.model, job.api_key, config=config)
    reply = await handle.generate(
        system=SUMMARY_SYSTEM_PROMPT,
        messages=[ChatMessage.user(build_summary_prompt(job))],
    )
    return parse_summary_reply(reply)


__all__ = [
    "LOCAL_SUMMARY_UNSUPPORTED",
    "MAX_KEY_POINTS",
    "SUMMARY_LENGTH_INSTRUCTIONS",
    "SummaryJob",
    "build_summary_prompt",
    "generate_summary",
    "normalize_summary_length",
    "normalize_summary_request",
    "parse_summary_reply",
    "validate_summary_job",
]
