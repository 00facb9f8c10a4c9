"""Shared value objects used across the converter."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class PathList:
    """An immutable list of filesystem paths produced or consumed by tools."""

    paths: tuple[Path, ...]


@dataclass(frozen=True)
class InputSpec:
    """An absolute, resolved path to a candidate animation file."""

    path: Path


@dataclass(frozen=True)
class RenderBox:
    """Requested output bounding box in pixels."""

    width: int = 600
    height: int = 600

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class ScalePlan:
    """Uniform scale that fits animation content inside a ``RenderBox``."""

    scale_factor: float
    scaled_width: float
    scaled_height: float

    @property
    def pixel_size(self) -> tuple[int, int]:
        """Return the raster size of the scaled content (at least 1x1)."""
        return max(1, round(self.scaled_width)), max(1, round(self.scaled_height))


@dataclass(frozen=True)
class BackgroundSpec:
    """Optional solid background colour drawn beneath the animation."""

    r: int = 0
    g: int = 0
    b: int = 0
    enabled: bool = False

    @property
    def rgb(self) -> tuple[int, int, int]:
        """Return the colour as an ``(r, g, b)`` tuple."""
        return self.r, self.g, self.b


@dataclass(frozen=True)
class BackgroundLayer:
    """A solid rectangle composited below the animation content."""

    color: tuple[int, int, int]
    width: int
    height: int


class ConversionStatus(enum.Enum):
    """Outcome kind of a single conversion."""

    SUCCESS = "success"
    LOAD_FAILED = "load_failed"
    ENGINE_UNAVAILABLE = "engine_unavailable"
    ENCODE_FAILED = "encode_failed"


@dataclass(frozen=True)
class ConversionResult:
    """Result of converting one input file."""

    input_path: Path
    status: ConversionStatus
    output_path: Path | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        """Return ``True`` when the output file was written."""
        return self.status is ConversionStatus.SUCCESS


@dataclass(frozen=True)
class BatchOptions:
    """Process-wide conversion settings, assembled once per invocation."""

    render_box: RenderBox = field(default_factory=RenderBox)
    fps: int = 30
    background: BackgroundSpec = field(default_factory=BackgroundSpec)
    explicit_output: Path | None = None
    output_format: str = "gif"
    quality: int = 0
    jobs: int = 1


@dataclass(frozen=True)
class BatchResult:
    """Aggregated outcome of a batch run."""

    results: tuple[ConversionResult, ...] = ()
    skipped: tuple[Path, ...] = ()
    cancelled: bool = False

    @property
    def succeeded(self) -> tuple[ConversionResult, ...]:
        """Return the results that produced an output file."""
        return tuple(r for r in self.results if r.ok)

    @property
    def failed(self) -> tuple[ConversionResult, ...]:
        """Return the results that did not produce an output file."""
        return tuple(r for r in self.results if not r.ok)

    @property
    def exit_code(self) -> int:
        """Return the process exit status for this batch.

        ``130`` when interrupted, ``1`` when any conversion failed, else ``0``.
        Skipped arguments (missing paths, non-animation files) do not count
        as failures.
        """
        if self.cancelled:
            return 130
        return 1 if self.failed else 0
