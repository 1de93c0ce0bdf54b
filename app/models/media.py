"""Media references handed from acquisition to analysis."""

import base64
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, HttpUrl


class RemoteMedia(BaseModel):
    """Durable URL to bytes uploaded beforehand."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["url"] = "url"
    url: HttpUrl
    mime_type: Optional[str] = None


class InlineMedia(BaseModel):
    """Self-contained encoding of the media bytes."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["inline"] = "inline"
    mime_type: str
    data: bytes = Field(..., min_length=1, repr=False)

    def as_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


MediaReference = Annotated[Union[RemoteMedia, InlineMedia], Field(discriminator="kind")]


class PendingUpload(BaseModel):
    """Local media that must be transferred before analysis can start."""
    path: Path
    filename: str
    mime_type: str
    size: int = Field(..., gt=0)
