"""Form controller owning the field collection and the displayed image."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from core.codec.models import DEFAULT_RENDER_OPTIONS, GeneratedImage, RenderOptions
from core.codec.qr_codec import Codec, QrCodec
from core.fields.models import FieldCollection
from core.payload.encoder import generate_image
from core.session.models import FormState
from core.utils.errors import NothingToDownloadError

DOWNLOAD_FILENAME = "qrcode.png"
DOWNLOAD_MEDIA_TYPE = "image/png"


@dataclass(frozen=True)
class DownloadArtifact:
    """Image offered to the user as a downloadable file."""

    filename: str
    media_type: str
    content: bytes


class FormController:
    """Explicit owner of form state for one rendering surface.

    Mutators are synchronous and swap in a new immutable snapshot.
    Generation captures the snapshot before suspending, runs the codec in a
    worker thread, and is serialized so that at most one attempt encodes at a
    time. A failed attempt leaves the previous image in place.
    """

    def __init__(
        self,
        codec: Codec | None = None,
        options: RenderOptions = DEFAULT_RENDER_OPTIONS,
    ) -> None:
        self.codec: Codec = codec if codec is not None else QrCodec()
        self.options = options
        self._fields = FieldCollection.default()
        self._image: GeneratedImage | None = None
        self._generate_lock = asyncio.Lock()
        self._generating = False

    @property
    def fields(self) -> FieldCollection:
        return self._fields

    @property
    def image(self) -> GeneratedImage | None:
        return self._image

    @property
    def generating(self) -> bool:
        return self._generating

    def add_field(self) -> FieldCollection:
        self._fields = self._fields.add_field()
        return self._fields

    def remove_field(self, index: int) -> FieldCollection:
        self._fields = self._fields.remove_field(index)
        return self._fields

    def update_field(self, index: int, key: str, new_value: str) -> FieldCollection:
        self._fields = self._fields.update_field(index, key, new_value)
        return self._fields

    def load_fields(self, collection: FieldCollection) -> FieldCollection:
        self._fields = collection
        return self._fields

    def reset(self) -> FieldCollection:
        self._fields = self._fields.reset()
        self._image = None
        return self._fields

    async def generate(self) -> GeneratedImage:
        """Encode the fields as they are at call time.

        The lock is held until the worker thread returns, even when the caller
        is cancelled first; a cancelled attempt's result is discarded.
        """

        snapshot = self._fields
        await self._generate_lock.acquire()
        self._generating = True
        worker = asyncio.ensure_future(
            asyncio.to_thread(generate_image, snapshot, self.codec, self.options)
        )
        worker.add_done_callback(self._finish_generation)
        image = await asyncio.shield(worker)
        self._image = image
        return image

    def _finish_generation(self, worker: asyncio.Future) -> None:
        self._generating = False
        self._generate_lock.release()
        if not worker.cancelled():
            # Marks the error as retrieved when the caller stopped waiting.
            worker.exception()

    def download(self) -> DownloadArtifact:
        if self._image is None:
            raise NothingToDownloadError()
        return DownloadArtifact(
            filename=DOWNLOAD_FILENAME,
            media_type=DOWNLOAD_MEDIA_TYPE,
            content=self._image.png,
        )

    def state(self) -> FormState:
        image = self._image
        return FormState(
            fields=list(self._fields.fields),
            can_remove=self._fields.can_remove,
            has_image=image is not None,
            generating=self._generating,
            image_data_url=image.data_url if image is not None else None,
            payload_text=image.payload_text if image is not None else None,
        )
