from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class CatalogSource(str, Enum):
    LIVE = "live"
    FALLBACK = "fallback"


class ModelOption(BaseModel):
    """
    One selectable model as shown in the assistant settings.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Provider-side model identifier")
    name: str = Field(..., description="Display name (currently the id)")
    provider: str = Field(..., description="Provider tag the id belongs to")
    source: CatalogSource = Field(..., description="Whether the id came from live discovery")
    is_stable: bool = Field(..., alias="isStable", description="False for preview/beta/... ids")


class ModelsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider: Any = None
    api_key: Any = Field(None, alias="apiKey")
    model: Any = None


class ModelsResponse(BaseModel):
    models: list[ModelOption] = Field(default_factory=list)
    source: CatalogSource = CatalogSource.FALLBACK
    error: Optional[str] = None
