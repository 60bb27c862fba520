from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SummaryLength(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class SummarizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider: Any = None
    model: Any = None
    api_key: Any = Field(None, alias="apiKey")
    article_content: Any = Field(None, alias="articleContent")
    article_title: Any = Field(None, alias="articleTitle")
    summary_length: Any = Field(None, alias="summaryLength")


class SummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str
    key_points: list[str] = Field(default_factory=list, alias="keyPoints")
