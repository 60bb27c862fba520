"""
Pydantic data models shared by the provider layer, the HTTP routes and
the client-side chat session.
"""

from .chat import (
    AIConfig,
    ChatMessage,
    ChatRequest,
    ChatRole,
    StreamRequest,
    messages_payload,
    parse_messages,
    serialize_messages,
)
from .document import Annotation, AnnotationAnchor, DocumentContext
from .model import CatalogSource, ModelOption, ModelsRequest, ModelsResponse
from .summary import SummarizeRequest, SummaryLength, SummaryResponse

__all__ = [
    "AIConfig",
    "Annotation",
    "AnnotationAnchor",
    "CatalogSource",
    "ChatMessage",
    "ChatRequest",
    "ChatRole",
    "DocumentContext",
    "ModelOption",
    "ModelsRequest",
    "ModelsResponse",
    "StreamRequest",
    "SummarizeRequest",
    "SummaryLength",
    "SummaryResponse",
    "messages_payload",
    "parse_messages",
    "serialize_messages",
]
