from __future__ import annotations

import asyncio
import io
import threading
import time

import pytest
from PIL import Image

from core.codec.models import RenderOptions
from core.fields.models import FieldCollection
from core.session.controller import FormController
from core.utils.errors import EncodingFailedError, NothingToDownloadError, NoValidFieldsError


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), (0, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


class RecordingCodec:
    def __init__(self) -> None:
        self.texts: list[str] = []

    def encode(self, text: str, options: RenderOptions) -> bytes:
        self.texts.append(text)
        return _png_bytes()


class BlockingCodec:
    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()
        self.texts: list[str] = []

    def encode(self, text: str, options: RenderOptions) -> bytes:
        self.texts.append(text)
        self.started.set()
        self.release.wait(5)
        return _png_bytes()


class OverlapCountingCodec:
    def __init__(self, delay: float = 0.05) -> None:
        self._lock = threading.Lock()
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0

    def encode(self, text: str, options: RenderOptions) -> bytes:
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.delay)
        with self._lock:
            self.active -= 1
        return _png_bytes()


def _controller_with(codec, pairs: list[tuple[str, str]]) -> FormController:  # noqa: ANN001
    controller = FormController(codec=codec)
    controller.load_fields(FieldCollection.from_pairs(pairs))
    return controller


def test_controller_starts_with_defaults_and_no_image() -> None:
    controller = FormController(codec=RecordingCodec())

    state = controller.state()

    assert [field.label for field in state.fields] == ["MAC Address", "Serial Number"]
    assert state.can_remove is True
    assert state.has_image is False
    assert state.image_data_url is None


def test_download_without_image_raises() -> None:
    controller = FormController(codec=RecordingCodec())

    with pytest.raises(NothingToDownloadError):
        controller.download()


@pytest.mark.anyio
async def test_generate_then_download_offers_qrcode_png() -> None:
    codec = RecordingCodec()
    controller = _controller_with(codec, [("MAC Address", "00:1A:2B:3C:4D:5E")])

    image = await controller.generate()
    artifact = controller.download()

    assert codec.texts == ['{\n  "MAC Address": "00:1A:2B:3C:4D:5E"\n}']
    assert artifact.filename == "qrcode.png"
    assert artifact.media_type == "image/png"
    assert artifact.content == image.png
    assert controller.state().has_image is True


@pytest.mark.anyio
async def test_failed_generation_keeps_previous_image() -> None:
    codec = RecordingCodec()
    controller = _controller_with(codec, [("A", "1")])
    first = await controller.generate()

    controller.update_field(0, "label", "")
    with pytest.raises(NoValidFieldsError):
        await controller.generate()

    assert controller.image is first
    assert len(codec.texts) == 1


@pytest.mark.anyio
async def test_encoding_failure_keeps_previous_image() -> None:
    class SwitchingCodec(RecordingCodec):
        fail = False

        def encode(self, text: str, options: RenderOptions) -> bytes:
            if self.fail:
                raise EncodingFailedError("too big")
            return super().encode(text, options)

    codec = SwitchingCodec()
    controller = _controller_with(codec, [("A", "1")])
    first = await controller.generate()

    codec.fail = True
    with pytest.raises(EncodingFailedError):
        await controller.generate()

    assert controller.image is first


@pytest.mark.anyio
async def test_reset_clears_image_and_restores_defaults() -> None:
    controller = _controller_with(RecordingCodec(), [("A", "1"), ("B", "2"), ("C", "3")])
    await controller.generate()

    controller.reset()

    assert controller.fields == FieldCollection.default()
    assert controller.image is None
    with pytest.raises(NothingToDownloadError):
        controller.download()


@pytest.mark.anyio
async def test_generate_encodes_snapshot_taken_at_request_time() -> None:
    codec = BlockingCodec()
    controller = _controller_with(codec, [("Serial", "before")])

    task = asyncio.create_task(controller.generate())
    assert await asyncio.to_thread(codec.started.wait, 5)
    assert controller.generating is True

    controller.update_field(0, "value", "after")
    codec.release.set()
    image = await task

    assert image.payload_text == '{\n  "Serial": "before"\n}'
    assert controller.fields[0].value == "after"
    assert controller.generating is False


@pytest.mark.anyio
async def test_concurrent_generations_are_serialized() -> None:
    codec = OverlapCountingCodec()
    controller = _controller_with(codec, [("A", "1")])

    await asyncio.gather(controller.generate(), controller.generate(), controller.generate())

    assert codec.max_active == 1


@pytest.mark.anyio
async def test_timed_out_generation_still_blocks_the_next_one() -> None:
    codec = OverlapCountingCodec(delay=0.3)
    controller = _controller_with(codec, [("A", "1")])

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(controller.generate(), timeout=0.05)
    assert controller.generating is True
    assert controller.image is None

    image = await controller.generate()

    assert codec.calls == 2
    assert codec.max_active == 1
    assert controller.image is image
    assert controller.generating is False


@pytest.mark.anyio
async def test_timed_out_generation_failure_does_not_leak() -> None:
    class SlowFailingCodec:
        def encode(self, text: str, options: RenderOptions) -> bytes:
            time.sleep(0.2)
            raise EncodingFailedError("too big")

    controller = _controller_with(SlowFailingCodec(), [("A", "1")])

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(controller.generate(), timeout=0.05)

    controller.codec = RecordingCodec()
    image = await controller.generate()

    assert controller.image is image
