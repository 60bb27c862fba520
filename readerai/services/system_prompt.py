"""
System prompt assembly for document chats.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence

from readerai.schemas.document import Annotation, DocumentContext

MAX_EXCERPT_CHARS = 4000
MAX_ANNOTATIONS = 40
MAX_ANNOTATION_CHARS = 240
MAX_SYSTEM_PROMPT_CHARS = 8000

PROMPT_PREAMBLE = (
    "You are an AI reading assistant embedded in a web annotation app.",
    "Help the user understand this article and improve their notes.",
    "Keep responses concise and practical.",
    "If you are unsure, explicitly say so.",
)

_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_html(html: str) -> str:
    """Replace tags with spaces and collapse whitespace."""
    return _WHITESPACE_RE.sub(" ", _TAG_RE.sub(" ", html)).strip()


def annotation_label(annotation: Annotation, position: int) -> str:
    anchor = annotation.anchor
    if anchor is not None and anchor.tag_name:
        return f"{anchor.tag_name.lower()} #{anchor.element_index + 1}"
    return f"note #{position}"


def render_annotation(annotation: Annotation, position: int) -> str:
    preview: Optional[str] = annotation.anchor.text_preview if annotation.anchor else None
    text = (annotation.text or preview or "").strip()[:MAX_ANNOTATION_CHARS]
    return f"{position}. ({annotation_label(annotation, position)}) {text or '[empty note]'}"


def render_annotations(annotations: Sequence[Annotation]) -> str:
    return "\n".join(
        render_annotation(annotation, position)
        for position, annotation in enumerate(annotations[:MAX_ANNOTATIONS], start=1)
    )


def build_system_prompt(document: DocumentContext, annotations: Sequence[Annotation]) -> str:
    """
    Preamble, document metadata, a plain-text excerpt and the rendered
    annotation list, capped at MAX_SYSTEM_PROMPT_CHARS.
    """
    excerpt = strip_html(document.content or "")[:MAX_EXCERPT_CHARS]
    notes_context = render_annotations(annotations)

    lines = [
        *PROMPT_PREAMBLE,
        f"Article title: {document.title or 'Untitled'}",
        f"Article URL: {document.url}",
    ]
    if document.byline:
        lines.append(f"Article byline: {document.byline}")
    lines.append(f"Article excerpt:\n{excerpt}")
    lines.append(
        f"Current notes:\n{notes_context}" if notes_context else "Current notes: none yet"
    )

    return "\n".join(lines)[:MAX_SYSTEM_PROMPT_CHARS]


__all__ = [
    "MAX_ANNOTATIONS",
    "MAX_ANNOTATION_CHARS",
    "MAX_EXCERPT_CHARS",
    "MAX_SYSTEM_PROMPT_CHARS",
    "build_system_prompt",
    "render_annotations",
    "strip_html",
]
