from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .chat import ChatMessage, parse_messages


class AnnotationAnchor(BaseModel):
    """Where an annotation is attached inside the rendered document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    element_index: int = Field(0, alias="elementIndex")
    tag_name: Optional[str] = Field(None, alias="tagName")
    text_preview: Optional[str] = Field(None, alias="textPreview")
    page_number: Optional[int] = Field(None, alias="pageNumber")


class Annotation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[Union[int, str]] = None
    text: str = ""
    anchor: Optional[AnnotationAnchor] = None


class DocumentContext(BaseModel):
    """
    The slice of a saved article/PDF the assistant needs: metadata, the
    raw (possibly HTML) content and the persisted chat history.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    url: str = ""
    title: str = ""
    byline: Optional[str] = None
    content: str = ""
    ai_chat: list[ChatMessage] = Field(default_factory=list, alias="aiChat")

    @field_validator("ai_chat", mode="before")
    @classmethod
    def _lenient_history(cls, value):
        return parse_messages(value)
