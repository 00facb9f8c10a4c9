"""Tests for the rlottie/Pillow engine adapter."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from lottie2gif.core.datatypes import BackgroundLayer
from lottie2gif.core.exceptions import EncodeFailedError, EngineUnavailableError, LoadFailedError
from lottie2gif.tools.lottie_gif.engine import (
    OUTPUT_FORMATS,
    AnimationEncoder,
    EngineHandle,
    LottieContent,
    frame_durations,
    part_path,
)

# ── Fixtures ───────────────────────────────────────────────────────────────


def _mock_animation(*, size: tuple[int, int] = (512, 256), frames: int = 60, rate: float = 30.0) -> MagicMock:
    """Create a mock ``rlottie_python.LottieAnimation``."""
    anim = MagicMock()
    anim.lottie_animation_get_size.return_value = size
    anim.lottie_animation_get_totalframe.return_value = frames
    anim.lottie_animation_get_framerate.return_value = rate
    anim.render_pillow_frame.side_effect = lambda frame_num=0, width=None, height=None: Image.new(
        "RGBA", (width or size[0], height or size[1]), (frame_num % 256, 0, 0, 255)
    )
    return anim


@pytest.fixture()
def content(fake_engine: type[EngineHandle], lottie_file: Path) -> Iterator[Any]:
    """Load the 100x50 sample through the fake engine."""
    with fake_engine() as engine:
        yield engine.load_animation(lottie_file)


# ── TestLottieContent ──────────────────────────────────────────────────────


class TestLottieContent:
    """Tests for the ``LottieContent`` wrapper."""

    def test_intrinsic_size(self) -> None:
        """The native size is reported as floats."""
        content = LottieContent(_mock_animation(size=(512, 256)), source=Path("a.json"))
        assert content.intrinsic_size() == (512.0, 256.0)
        assert content.size == (512, 256)

    def test_set_size_rounds(self) -> None:
        """``set_size`` stores a rounded raster size."""
        content = LottieContent(_mock_animation(), source=Path("a.json"))
        content.set_size(239.6, 119.8)
        assert content.size == (240, 120)

    def test_frame_indices_halve_rate(self) -> None:
        """Rendering a 30 fps animation at 15 fps takes every other frame."""
        content = LottieContent(_mock_animation(frames=60, rate=30.0), source=Path("a.json"))
        indices = content.frame_indices(15)
        assert len(indices) == 30
        assert indices[:3] == [0, 2, 4]
        assert indices[-1] == 58

    def test_frame_indices_double_rate(self) -> None:
        """Rendering at twice the native rate repeats frames."""
        content = LottieContent(_mock_animation(frames=10, rate=30.0), source=Path("a.json"))
        indices = content.frame_indices(60)
        assert len(indices) == 20
        assert indices[:4] == [0, 0, 1, 1]
        assert max(indices) == 9

    def test_frame_indices_without_frames(self) -> None:
        """An animation reporting no frames still renders one."""
        content = LottieContent(_mock_animation(frames=0), source=Path("a.json"))
        assert content.frame_indices(30) == [0]

    def test_render_frames_uses_size(self) -> None:
        """Frames are rendered at the size set on the content."""
        anim = _mock_animation(frames=3, rate=30.0)
        content = LottieContent(anim, source=Path("a.json"))
        content.set_size(64, 32)

        frames = list(content.render_frames(30))

        assert len(frames) == 3
        assert all(frame.size == (64, 32) and frame.mode == "RGBA" for frame in frames)
        anim.render_pillow_frame.assert_any_call(frame_num=2, width=64, height=32)


# ── TestAnimationEncoder ───────────────────────────────────────────────────


class TestAnimationEncoder:
    """Tests for ``AnimationEncoder``."""

    def test_gif_save_and_flush(self, content: Any, tmp_path: Path) -> None:
        """A GIF with one frame per rendered frame is written on flush."""
        out = tmp_path / "out" / "anim.gif"
        encoder = AnimationEncoder(OUTPUT_FORMATS["gif"])

        encoder.save(content, out, 0, 30)
        assert not out.exists()
        assert part_path(out).exists()

        encoder.flush()

        assert out.exists()
        assert not part_path(out).exists()
        with Image.open(out) as img:
            assert img.format == "GIF"
            assert img.size == (100, 50)
            assert img.n_frames == 3

    def test_background_is_composited(self, content: Any, tmp_path: Path) -> None:
        """Transparent areas show the background colour."""
        out = tmp_path / "bg.gif"
        encoder = AnimationEncoder(OUTPUT_FORMATS["gif"])
        encoder.set_background(BackgroundLayer(color=(0, 255, 0), width=100, height=50))

        encoder.save(content, out, 0, 30)
        encoder.flush()

        with Image.open(out) as img:
            rgb = img.convert("RGB")
            assert rgb.getpixel((99, 49)) == (0, 255, 0)
            assert rgb.getpixel((0, 0)) == (255, 0, 0)

    def test_quality_limits_palette(self, content: Any, tmp_path: Path) -> None:
        """A low quality still produces a readable GIF."""
        out = tmp_path / "q.gif"
        encoder = AnimationEncoder(OUTPUT_FORMATS["gif"])
        encoder.set_background(BackgroundLayer(color=(0, 0, 255), width=100, height=50))

        encoder.save(content, out, 10, 30)
        encoder.flush()

        with Image.open(out) as img:
            assert img.n_frames == 3

    def test_apng_output(self, content: Any, tmp_path: Path) -> None:
        """APNG output is written as an animated PNG."""
        out = tmp_path / "anim.png"
        encoder = AnimationEncoder(OUTPUT_FORMATS["apng"])

        encoder.save(content, out, 0, 10)
        encoder.flush()

        with Image.open(out) as img:
            assert img.format == "PNG"
            assert img.n_frames == 3

    def test_flush_without_save_raises(self, tmp_path: Path) -> None:
        """Flushing before a successful save raises EncodeFailedError."""
        with pytest.raises(EncodeFailedError, match="Nothing to flush"):
            AnimationEncoder(OUTPUT_FORMATS["gif"]).flush()

    def test_render_failure_leaves_no_file(self, tmp_path: Path) -> None:
        """A rendering error raises EncodeFailedError and leaves nothing behind."""
        broken = MagicMock()
        broken.source = Path("broken.json")
        broken.render_frames.side_effect = RuntimeError("boom")
        out = tmp_path / "broken.gif"

        with pytest.raises(EncodeFailedError, match="Failed to encode"):
            AnimationEncoder(OUTPUT_FORMATS["gif"]).save(broken, out, 0, 30)

        assert not out.exists()
        assert not part_path(out).exists()

    def test_interrupt_during_write_leaves_no_file(self, content: Any, tmp_path: Path) -> None:
        """Ctrl-C while Pillow is writing removes the partial file and propagates."""
        out = tmp_path / "interrupted.gif"

        def partial_save(image: Image.Image, fp: str, *args: Any, **kwargs: Any) -> None:
            Path(fp).write_bytes(b"GIF89a")
            raise KeyboardInterrupt

        with patch.object(Image.Image, "save", partial_save), pytest.raises(KeyboardInterrupt):
            AnimationEncoder(OUTPUT_FORMATS["gif"]).save(content, out, 0, 30)

        assert not part_path(out).exists()
        assert not out.exists()

    def test_gif_delays_keep_native_timing(self, content: Any, tmp_path: Path) -> None:
        """GIF delays are whole hundredths that still add up to the real duration."""
        out = tmp_path / "timing.gif"
        encoder = AnimationEncoder(OUTPUT_FORMATS["gif"])
        encoder.save(content, out, 0, 30)
        encoder.flush()

        delays = []
        with Image.open(out) as img:
            for idx in range(img.n_frames):
                img.seek(idx)
                delays.append(img.info["duration"])

        assert delays == [30, 40, 30]

    def test_zero_fps_raises(self, content: Any, tmp_path: Path) -> None:
        """A frame rate below 1 is rejected."""
        with pytest.raises(EncodeFailedError, match="at least 1"):
            AnimationEncoder(OUTPUT_FORMATS["gif"]).save(content, tmp_path / "x.gif", 0, 0)

    def test_discard_removes_part_file(self, content: Any, tmp_path: Path) -> None:
        """``discard`` deletes a saved but unflushed file."""
        out = tmp_path / "d.gif"
        encoder = AnimationEncoder(OUTPUT_FORMATS["gif"])
        encoder.save(content, out, 0, 30)

        encoder.discard()

        assert not part_path(out).exists()
        assert not out.exists()


# ── TestEngineHandle ───────────────────────────────────────────────────────


class TestEngineHandle:
    """Tests for ``EngineHandle`` scoping and loading."""

    def test_context_manager_activates(self) -> None:
        """The handle is active only inside the ``with`` block."""
        handle = EngineHandle()
        with handle as engine:
            assert engine.active
        assert not handle.active

    def test_use_outside_context_raises(self, lottie_file: Path) -> None:
        """Loading without initialising raises EngineUnavailableError."""
        with pytest.raises(EngineUnavailableError, match="outside"):
            EngineHandle().load_animation(lottie_file)

    @patch("lottie2gif.tools.lottie_gif.engine.LottieAnimation")
    def test_load_json_and_release(self, mock_cls: MagicMock, lottie_file: Path) -> None:
        """JSON files are loaded with ``from_file`` and destroyed on exit."""
        anim = _mock_animation()
        mock_cls.from_file.return_value = anim

        with EngineHandle() as engine:
            content = engine.load_animation(lottie_file)
            assert content.intrinsic_size() == (512.0, 256.0)

        mock_cls.from_file.assert_called_once_with(str(lottie_file))
        anim.lottie_animation_destroy.assert_called_once()

    @patch("lottie2gif.tools.lottie_gif.engine.LottieAnimation")
    def test_load_tgs(self, mock_cls: MagicMock, tmp_path: Path) -> None:
        """``.tgs`` stickers are loaded with ``from_tgs``."""
        mock_cls.from_tgs.return_value = _mock_animation()
        sticker = tmp_path / "sticker.tgs"
        sticker.write_bytes(b"\x1f\x8b")

        with EngineHandle() as engine:
            engine.load_animation(sticker)

        mock_cls.from_tgs.assert_called_once_with(str(sticker))
        mock_cls.from_file.assert_not_called()

    @patch("lottie2gif.tools.lottie_gif.engine.LottieAnimation")
    def test_load_failure_raises(self, mock_cls: MagicMock, lottie_file: Path) -> None:
        """Loader errors are wrapped in LoadFailedError."""
        mock_cls.from_file.side_effect = RuntimeError("parse error")

        with EngineHandle() as engine, pytest.raises(LoadFailedError, match="Failed to load"):
            engine.load_animation(lottie_file)

    @patch("lottie2gif.tools.lottie_gif.engine.LottieAnimation")
    def test_load_null_handle_raises(self, mock_cls: MagicMock, lottie_file: Path) -> None:
        """A parse failure that yields an empty native handle is a LoadFailedError."""
        broken = _mock_animation()
        broken.animation_p = None
        mock_cls.from_file.return_value = broken

        with EngineHandle() as engine, pytest.raises(LoadFailedError, match="Failed to load"):
            engine.load_animation(lottie_file)

    def test_create_encoder_for_known_format(self) -> None:
        """GIF is always writable with Pillow."""
        with EngineHandle() as engine:
            encoder = engine.create_encoder("gif")
        assert isinstance(encoder, AnimationEncoder)

    def test_create_encoder_unknown_format(self) -> None:
        """An unknown format yields no encoder."""
        with EngineHandle() as engine:
            assert engine.create_encoder("bmp") is None

    def test_create_encoder_missing_writer(self) -> None:
        """A format Pillow cannot write yields no encoder."""
        with EngineHandle() as engine, patch.dict(Image.SAVE_ALL, clear=True):
            assert engine.create_encoder("gif") is None

    def test_terminate_discards_unflushed_output(self, content: Any, tmp_path: Path) -> None:
        """Leaving the context removes temporary files that were never flushed."""
        out = tmp_path / "pending.gif"
        with EngineHandle() as engine:
            encoder = engine.create_encoder("gif")
            assert encoder is not None
            encoder.save(content, out, 0, 30)
            assert part_path(out).exists()

        assert not part_path(out).exists()
        assert not out.exists()


# ── TestFrameDurations ─────────────────────────────────────────────────────


class TestFrameDurations:
    """Tests for ``frame_durations``."""

    def test_gif_steps_do_not_drift(self) -> None:
        """30 fps in 10 ms steps alternates delays and keeps one second per 30 frames."""
        delays = frame_durations(30, 30, 10)

        assert delays[:3] == [30, 40, 30]
        assert all(delay % 10 == 0 for delay in delays)
        assert sum(delays) == 1000

    def test_millisecond_steps(self) -> None:
        """Formats with millisecond delays round the running total."""
        assert frame_durations(3, 30) == [33, 34, 33]

    def test_rate_above_step_keeps_minimum_delay(self) -> None:
        """No frame gets a zero delay even above 100 fps."""
        assert min(frame_durations(10, 200, 10)) == 10
