"""Shared test fixtures — a rlottie-free engine for driving the converter."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from lottie2gif.core.exceptions import LoadFailedError
from lottie2gif.tools.lottie_gif.engine import EngineHandle


class FakeContent:
    """Stand-in for ``LottieContent`` that draws a square whose shade changes per frame."""

    def __init__(self, source: Path, width: float, height: float, frames: int = 3) -> None:
        self.source = source
        self._intrinsic = (width, height)
        self.frames = frames
        self.size: tuple[int, int] = (max(1, round(width)), max(1, round(height)))
        self.closed = False

    def intrinsic_size(self) -> tuple[float, float]:
        return self._intrinsic

    def set_size(self, width: float, height: float) -> None:
        self.size = (max(1, round(width)), max(1, round(height)))

    def render_frames(self, fps: int) -> Iterator[Image.Image]:
        for idx in range(self.frames):
            frame = Image.new("RGBA", self.size, (0, 0, 0, 0))
            frame.paste((255, (idx * 40) % 256, 0, 255), (0, 0, max(1, self.size[0] // 2), max(1, self.size[1] // 2)))
            yield frame

    def close(self) -> None:
        self.closed = True


class FakeEngine(EngineHandle):
    """``EngineHandle`` whose loader reads ``w``/``h``/``op`` from plain JSON.

    Every instance is recorded in ``instances`` so tests can check that
    each conversion got its own, terminated handle.
    """

    instances: list[FakeEngine] = []

    def __init__(self) -> None:
        super().__init__()
        self.initialized = False
        self.terminated = False
        FakeEngine.instances.append(self)

    def initialize(self) -> None:
        super().initialize()
        self.initialized = True

    def terminate(self) -> None:
        super().terminate()
        self.terminated = True

    def load_animation(self, path: Path) -> Any:
        self._require_active()
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as exc:
            msg = f"Failed to load lottie '{path}'"
            raise LoadFailedError(msg) from exc
        content = FakeContent(path, float(data["w"]), float(data["h"]), int(data.get("op", 3)))
        self._contents.append(content)  # type: ignore[arg-type]
        return content


def write_lottie(path: Path, width: float = 100, height: float = 50, frames: int = 3) -> Path:
    """Write a minimal Lottie document and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    doc = {"v": "5.7.0", "fr": 30, "ip": 0, "op": frames, "w": width, "h": height, "layers": []}
    path.write_text(json.dumps(doc))
    return path


@pytest.fixture()
def fake_engine() -> Iterator[type[FakeEngine]]:
    """Return the ``FakeEngine`` class with a fresh instance log."""
    FakeEngine.instances = []
    yield FakeEngine
    FakeEngine.instances = []


@pytest.fixture()
def make_lottie() -> Callable[..., Path]:
    """Return the ``write_lottie`` helper."""
    return write_lottie


@pytest.fixture()
def lottie_file(tmp_path: Path) -> Path:
    """Create a 100x50 animation with three frames."""
    return write_lottie(tmp_path / "anim.json")


@pytest.fixture()
def lottie_tree(tmp_path: Path) -> Path:
    """Create a directory mixing animations, decoys, and hidden files."""
    root = tmp_path / "tree"
    write_lottie(root / "a.json")
    write_lottie(root / "b.JSON")
    (root / "b.txt").write_text("not an animation")
    write_lottie(root / ".hidden.json")
    write_lottie(root / "sub" / "c.json")
    write_lottie(root / ".cache" / "d.json")
    return root
