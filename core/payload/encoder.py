"""Payload encoder: field snapshot -> JSON payload -> QR image."""

from __future__ import annotations

import io
import json

from PIL import Image

from core.codec.models import DEFAULT_RENDER_OPTIONS, GeneratedImage, RenderOptions
from core.codec.qr_codec import Codec
from core.fields.models import Field, FieldCollection
from core.utils.errors import EncodingFailedError, NoValidFieldsError


def valid_fields(collection: FieldCollection) -> list[Field]:
    """Return fields whose label and value are both non-blank, in order."""

    return [field for field in collection.fields if field.is_valid()]


def build_payload(fields: list[Field]) -> dict[str, str]:
    """Map label -> value; a repeated label keeps its first position and last value."""

    payload: dict[str, str] = {}
    for field in fields:
        payload[field.label] = field.value
    return payload


def serialize_payload(payload: dict[str, str]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def payload_text_for(collection: FieldCollection) -> str:
    """Validate and serialize a snapshot without encoding it."""

    fields = valid_fields(collection)
    if not fields:
        raise NoValidFieldsError()
    return serialize_payload(build_payload(fields))


def generate_image(
    collection: FieldCollection,
    codec: Codec,
    options: RenderOptions = DEFAULT_RENDER_OPTIONS,
) -> GeneratedImage:
    """Execute validate -> serialize -> encode for one snapshot."""

    payload_text = payload_text_for(collection)

    try:
        png = codec.encode(payload_text, options)
        width, height = _png_size(png)
    except EncodingFailedError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise EncodingFailedError(f"{type(exc).__name__}: {exc}", cause=exc) from exc

    return GeneratedImage(png=png, payload_text=payload_text, width=width, height=height)


def _png_size(png: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(png)) as image:
        return image.size
