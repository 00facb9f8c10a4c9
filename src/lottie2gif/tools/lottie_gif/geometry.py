"""Pure geometry and colour helpers — no engine imports allowed."""

from __future__ import annotations

import re

from lottie2gif.core.datatypes import BackgroundLayer, BackgroundSpec, RenderBox, ScalePlan
from lottie2gif.core.exceptions import DegenerateContentError, ValidationError

_RESOLUTION_RE = re.compile(r"^\s*(\d+)\s*[xX]\s*(\d+)\s*$")
_HEX_RE = re.compile(r"^(?:#|0[xX])?([0-9a-fA-F]{1,6})$")


# ── Parsing ───────────────────────────────────────────────────────────────


def parse_resolution(value: str) -> RenderBox:
    """Parse a ``WxH`` string into a ``RenderBox``.

    Raises:
        ValidationError: If the string is malformed or a side is zero.
    """
    match = _RESOLUTION_RE.match(value)
    if match is None:
        msg = f"Resolution must look like WIDTHxHEIGHT, got '{value}'"
        raise ValidationError(msg)
    width, height = int(match.group(1)), int(match.group(2))
    if width < 1 or height < 1:
        msg = f"Resolution sides must be at least 1, got {width}x{height}"
        raise ValidationError(msg)
    return RenderBox(width=width, height=height)


def split_rgb(value: int) -> tuple[int, int, int]:
    """Split a 24-bit ``0xRRGGBB`` integer into its channels."""
    return (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF


def parse_hex_color(value: str) -> BackgroundSpec:
    """Parse an ``RRGGBB`` hex string into an enabled ``BackgroundSpec``.

    A leading ``#`` or ``0x`` is accepted.  Short values are read as
    integers, so ``"FF"`` is pure blue.

    Raises:
        ValidationError: If *value* is not a hex number of at most six digits.
    """
    match = _HEX_RE.match(value.strip())
    if match is None:
        msg = f"Background must be a hex colour like FF8000, got '{value}'"
        raise ValidationError(msg)
    r, g, b = split_rgb(int(match.group(1), 16))
    return BackgroundSpec(r=r, g=g, b=b, enabled=True)


# ── Planning ──────────────────────────────────────────────────────────────


def plan_scale(content_size: tuple[float, float], box: RenderBox) -> ScalePlan:
    """Fit content of *content_size* inside *box*, preserving aspect ratio.

    The content touches the box on at least one axis and never exceeds it
    on either.

    Args:
        content_size: Intrinsic ``(width, height)`` reported by the engine.
        box: Requested output bounding box.

    Returns:
        The uniform ``ScalePlan``.

    Raises:
        DegenerateContentError: If either content dimension is not positive.
    """
    width, height = content_size
    if width <= 0 or height <= 0:
        msg = f"Animation has a degenerate size {width}x{height}"
        raise DegenerateContentError(msg)

    scale = min(box.width / width, box.height / height)
    return ScalePlan(scale_factor=scale, scaled_width=width * scale, scaled_height=height * scale)


def build_background(spec: BackgroundSpec, plan: ScalePlan) -> BackgroundLayer | None:
    """Return the background layer for *plan*, or ``None`` when disabled.

    The layer covers the scaled content area, not the whole render box.
    """
    if not spec.enabled:
        return None
    width, height = plan.pixel_size
    return BackgroundLayer(color=spec.rgb, width=width, height=height)
