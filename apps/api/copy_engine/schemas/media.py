"""Media relay API schemas."""

from pydantic import Field

from copy_engine.schemas.base import ApiModel


class CreateProxyUrlRequest(ApiModel):
    source_url: str = Field(min_length=1, pattern=r"^https?://")


class CreateProxyUrlResponse(ApiModel):
    proxy_url: str
