"""Codec rendering options and generated image models."""

from __future__ import annotations

import base64

from pydantic import BaseModel, ConfigDict, Field


class RenderOptions(BaseModel):
    """Rendering options passed to the QR codec."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    pixel_width: int = Field(default=400, gt=0)
    margin: int = Field(default=2, ge=0)
    dark_color: str = "#000000"
    light_color: str = "#FFFFFF"


DEFAULT_RENDER_OPTIONS = RenderOptions()


class GeneratedImage(BaseModel):
    """Encoded PNG held for preview and download."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    png: bytes
    payload_text: str
    width: int
    height: int

    @property
    def data_url(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.png).decode("ascii")
