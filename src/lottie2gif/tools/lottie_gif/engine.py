"""Rendering engine adapter — rlottie for rasterisation, Pillow for encoding.

The converter only talks to the engine through three objects:

* ``EngineHandle`` — a scoped engine context (``with EngineHandle() as e``);
  every conversion acquires its own handle, so handles can be used from
  several worker threads at once.
* ``LottieContent`` — a loaded animation with an intrinsic size and a
  resizable viewport.
* ``AnimationEncoder`` — writes an animated GIF, WebP or APNG.  Output goes
  to ``<target>.part`` first and ``flush()`` renames it into place, so an
  interrupted or failed conversion never leaves a truncated file behind.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Any

from PIL import Image
from rlottie_python import LottieAnimation

from lottie2gif.core.datatypes import BackgroundLayer
from lottie2gif.core.exceptions import EncodeFailedError, EngineUnavailableError, LoadFailedError

logger = logging.getLogger(__name__)

# ── Output formats ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class OutputFormat:
    """How a user-facing format name maps onto Pillow."""

    name: str
    ext: str
    pillow_format: str


OUTPUT_FORMATS: dict[str, OutputFormat] = {
    "gif": OutputFormat(name="gif", ext=".gif", pillow_format="GIF"),
    "webp": OutputFormat(name="webp", ext=".webp", pillow_format="WEBP"),
    "apng": OutputFormat(name="apng", ext=".png", pillow_format="PNG"),
}

DEFAULT_WEBP_QUALITY = 80

PART_SUFFIX = ".part"

# GIF stores frame delays in hundredths of a second.
GIF_DELAY_STEP_MS = 10


# ── Content ───────────────────────────────────────────────────────────────


class LottieContent:
    """A loaded Lottie animation with a resizable output viewport.

    Args:
        animation: The underlying ``rlottie_python.LottieAnimation``.
        source: Path the animation was loaded from (for messages).
    """

    def __init__(self, animation: LottieAnimation, source: Path) -> None:
        self._animation = animation
        self.source = source
        self._size: tuple[int, int] | None = None

    def intrinsic_size(self) -> tuple[float, float]:
        """Return the animation's native ``(width, height)``."""
        width, height = self._animation.lottie_animation_get_size()
        return float(width), float(height)

    def set_size(self, width: float, height: float) -> None:
        """Set the raster size frames are rendered at."""
        self._size = (max(1, round(width)), max(1, round(height)))

    @property
    def size(self) -> tuple[int, int]:
        """Return the render size, defaulting to the intrinsic size."""
        if self._size is not None:
            return self._size
        width, height = self.intrinsic_size()
        return max(1, round(width)), max(1, round(height))

    @property
    def frame_count(self) -> int:
        """Return the number of native frames."""
        return int(self._animation.lottie_animation_get_totalframe())

    @property
    def frame_rate(self) -> float:
        """Return the native frame rate."""
        return float(self._animation.lottie_animation_get_framerate())

    def frame_indices(self, fps: int) -> list[int]:
        """Map output frames at *fps* onto native frame numbers.

        The animation keeps its native duration; frames are dropped or
        repeated to match the requested rate.
        """
        total = self.frame_count
        if total <= 0:
            return [0]
        native = self.frame_rate
        if native <= 0:
            return list(range(total))
        count = max(1, round(total * fps / native))
        return [min(total - 1, int(i * native / fps)) for i in range(count)]

    def render_frames(self, fps: int) -> Iterator[Image.Image]:
        """Yield RGBA frames at the current size, resampled to *fps*."""
        width, height = self.size
        for frame_num in self.frame_indices(fps):
            frame = self._animation.render_pillow_frame(frame_num=frame_num, width=width, height=height)
            yield frame.convert("RGBA") if frame.mode != "RGBA" else frame

    def close(self) -> None:
        """Release the native animation."""
        self._animation.lottie_animation_destroy()


# ── Encoder ───────────────────────────────────────────────────────────────


def render_background(layer: BackgroundLayer) -> Image.Image:
    """Render a ``BackgroundLayer`` as an opaque RGBA image."""
    return Image.new("RGBA", (layer.width, layer.height), (*layer.color, 255))


def part_path(output_path: Path) -> Path:
    """Return the temporary path an encoder writes to before ``flush()``."""
    return output_path.with_name(output_path.name + PART_SUFFIX)


def frame_durations(frame_count: int, fps: int, step: int = 1) -> list[int]:
    """Return per-frame delays in milliseconds for *frame_count* frames at *fps*.

    Each delay is a multiple of *step*.  Delays are taken from the rounded
    running total rather than rounded one by one, so the rounding error
    never accumulates: 30 fps in 10 ms steps gives ``30, 40, 30, ...``.
    """
    durations: list[int] = []
    elapsed = 0
    for i in range(1, frame_count + 1):
        target = round(i * 1000 / fps / step) * step
        delay = max(step, target - elapsed)
        durations.append(delay)
        elapsed += delay
    return durations


class AnimationEncoder:
    """Composites frames over an optional background and writes them out.

    Args:
        output_format: Target format descriptor from ``OUTPUT_FORMATS``.
    """

    def __init__(self, output_format: OutputFormat) -> None:
        self.output_format = output_format
        self._background: BackgroundLayer | None = None
        self._pending: tuple[Path, Path] | None = None

    def set_background(self, layer: BackgroundLayer) -> None:
        """Draw *layer* beneath every frame."""
        self._background = layer

    def _composite(self, frame: Image.Image) -> Image.Image:
        if self._background is None:
            return frame
        canvas = Image.new("RGBA", frame.size, (0, 0, 0, 0))
        canvas.paste(render_background(self._background), (0, 0))
        canvas.alpha_composite(frame)
        return canvas.convert("RGB")

    def _save_kwargs(self, quality: int, fps: int, frame_count: int) -> dict[str, Any]:
        step = GIF_DELAY_STEP_MS if self.output_format.name == "gif" else 1
        kwargs: dict[str, Any] = {
            "format": self.output_format.pillow_format,
            "duration": frame_durations(frame_count, fps, step),
            "loop": 0,
        }
        if self.output_format.name == "gif":
            kwargs["disposal"] = 2
        elif self.output_format.name == "webp":
            kwargs["quality"] = quality or DEFAULT_WEBP_QUALITY
        return kwargs

    def _prepare(self, frame: Image.Image, quality: int) -> Image.Image:
        frame = self._composite(frame)
        # Palette size only applies to opaque GIF frames.
        if self.output_format.name == "gif" and quality and frame.mode == "RGB":
            colors = max(2, min(256, round(256 * quality / 100)))
            return frame.quantize(colors=colors)
        return frame

    def save(self, content: LottieContent, output_path: Path, quality: int, fps: int) -> None:
        """Render *content* and write it to a temporary file next to *output_path*.

        Args:
            content: The loaded, resized animation.
            output_path: Final destination; written by ``flush()``.
            quality: 1-100, or 0 for the encoder default.
            fps: Output frame rate.

        Raises:
            EncodeFailedError: If rendering or writing fails.
        """
        if fps < 1:
            msg = f"Frame rate must be at least 1, got {fps}"
            raise EncodeFailedError(msg)

        tmp_path = part_path(output_path)
        # Registered before writing so terminate() removes it if we are interrupted.
        self._pending = (tmp_path, output_path)
        try:
            frames = [self._prepare(frame, quality) for frame in content.render_frames(fps)]
            if not frames:
                msg = f"Animation '{content.source}' produced no frames"
                raise EncodeFailedError(msg)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            frames[0].save(
                str(tmp_path),
                save_all=True,
                append_images=frames[1:],
                **self._save_kwargs(quality, fps, len(frames)),
            )
        except EncodeFailedError:
            self.discard()
            raise
        except Exception as exc:
            self.discard()
            msg = f"Failed to encode '{content.source}' as {self.output_format.name}"
            raise EncodeFailedError(msg) from exc
        except BaseException:
            self.discard()
            raise

        logger.debug("Wrote %d frames to %s", len(frames), tmp_path)

    def flush(self) -> None:
        """Move the written file into place.

        Raises:
            EncodeFailedError: If nothing was saved or the rename fails.
        """
        if self._pending is None:
            msg = "Nothing to flush — save() has not succeeded"
            raise EncodeFailedError(msg)
        tmp_path, output_path = self._pending
        self._pending = None
        try:
            os.replace(tmp_path, output_path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            msg = f"Failed to finalise '{output_path}'"
            raise EncodeFailedError(msg) from exc

    def discard(self) -> None:
        """Remove a saved but not yet flushed temporary file."""
        if self._pending is not None:
            self._pending[0].unlink(missing_ok=True)
            self._pending = None


# ── Engine context ────────────────────────────────────────────────────────


class EngineHandle:
    """Scoped engine context.

    Content loaded through a handle is released when the handle terminates,
    whichever way the ``with`` block exits.
    """

    def __init__(self) -> None:
        self._active = False
        self._contents: list[LottieContent] = []
        self._encoders: list[AnimationEncoder] = []

    def __enter__(self) -> EngineHandle:
        self.initialize()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.terminate()

    @property
    def active(self) -> bool:
        """Return ``True`` between ``initialize()`` and ``terminate()``."""
        return self._active

    def initialize(self) -> None:
        """Prepare the engine for use.

        Raises:
            EngineUnavailableError: If Pillow's codec registry cannot be loaded.
        """
        try:
            Image.init()
        except Exception as exc:
            msg = "Image codecs could not be initialised"
            raise EngineUnavailableError(msg) from exc
        self._active = True
        logger.debug("Engine initialised")

    def terminate(self) -> None:
        """Release every animation and pending output owned by this handle."""
        for encoder in self._encoders:
            encoder.discard()
        for content in self._contents:
            try:
                content.close()
            except Exception:
                logger.exception("Failed to release animation %s", content.source)
        self._encoders.clear()
        self._contents.clear()
        self._active = False
        logger.debug("Engine terminated")

    def _require_active(self) -> None:
        if not self._active:
            msg = "Engine used outside of an initialised context"
            raise EngineUnavailableError(msg)

    def load_animation(self, path: Path) -> LottieContent:
        """Load a ``.json`` or ``.tgs`` animation.

        Raises:
            LoadFailedError: If rlottie cannot parse the file.
        """
        self._require_active()
        try:
            if path.suffix == ".tgs":
                animation = LottieAnimation.from_tgs(str(path))
            else:
                animation = LottieAnimation.from_file(str(path))
        except Exception as exc:
            msg = f"Failed to load lottie '{path}'"
            raise LoadFailedError(msg) from exc
        # rlottie hands back an object with a NULL native handle on parse errors.
        if animation is None or not animation.animation_p:
            msg = f"Failed to load lottie '{path}'"
            raise LoadFailedError(msg)

        content = LottieContent(animation, source=path)
        self._contents.append(content)
        return content

    def create_encoder(self, output_format: str) -> AnimationEncoder | None:
        """Return an encoder for *output_format*, or ``None`` if Pillow cannot write it."""
        self._require_active()
        fmt = OUTPUT_FORMATS.get(output_format)
        if fmt is None or fmt.pillow_format not in Image.SAVE_ALL:
            logger.debug("No animated writer for format %r", output_format)
            return None
        encoder = AnimationEncoder(fmt)
        self._encoders.append(encoder)
        return encoder
