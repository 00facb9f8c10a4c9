"""Input discovery — path classification and recursive animation lookup."""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterator
from pathlib import Path

from lottie2gif.core.datatypes import InputSpec
from lottie2gif.core.exceptions import NotAnInputFileError, PathNotFoundError

logger = logging.getLogger(__name__)

# Matched case-sensitively: ``anim.JSON`` is not picked up.
INPUT_EXTENSIONS: tuple[str, ...] = (".json", ".tgs")

HIDDEN_PREFIX = "."


class PathKind(enum.Enum):
    """What a resolved input argument points at."""

    FILE = "file"
    DIRECTORY = "directory"


def classify(raw_path: str | Path) -> tuple[Path, PathKind]:
    """Resolve a user-supplied path and tell files from directories.

    Args:
        raw_path: Path as given on the command line.

    Returns:
        The absolute, symlink-free path and its kind.

    Raises:
        PathNotFoundError: If the path does not exist, cannot be accessed,
            is a dangling symlink, or is neither a file nor a directory.
    """
    try:
        resolved = Path(raw_path).expanduser().resolve(strict=True)
        if resolved.is_dir():
            return resolved, PathKind.DIRECTORY
        if resolved.is_file():
            return resolved, PathKind.FILE
    except (OSError, RuntimeError) as exc:
        msg = f"Path '{raw_path}' could not be resolved"
        raise PathNotFoundError(msg) from exc

    msg = f"Path '{raw_path}' is neither a regular file nor a directory"
    raise PathNotFoundError(msg)


def input_suffix(name: str) -> str | None:
    """Return the recognised animation suffix of *name*, if any.

    A bare ``.json`` with nothing before the suffix does not count.
    """
    for suffix in INPUT_EXTENSIONS:
        if name.endswith(suffix) and len(name) > len(suffix):
            return suffix
    return None


def is_input_file(name: str) -> bool:
    """Return ``True`` if *name* carries a recognised animation extension."""
    return input_suffix(name) is not None


def discover(path: Path, kind: PathKind) -> Iterator[InputSpec]:
    """Yield the animation files reachable from a classified path.

    For a file, yields it if its extension is recognised.  For a directory,
    walks the tree lazily, skipping hidden entries and anything that is not
    a regular file or directory.  Enumeration order is whatever the
    filesystem returns.

    Args:
        path: A path returned by :func:`classify`.
        kind: Its kind.

    Yields:
        One ``InputSpec`` per eligible file.

    Raises:
        NotAnInputFileError: If *path* is a file without a recognised
            extension.
    """
    if kind is PathKind.FILE:
        if not is_input_file(path.name):
            msg = f"'{path}' is not a Lottie animation ({', '.join(INPUT_EXTENSIONS)})"
            raise NotAnInputFileError(msg)
        yield InputSpec(path=path)
        return

    yield from _walk(path, visited=set())


def _walk(directory: Path, visited: set[Path]) -> Iterator[InputSpec]:
    """Recursively enumerate a directory, entering each real directory once."""
    real = directory.resolve()
    if real in visited:
        logger.debug("Skipping already visited directory %s", directory)
        return
    visited.add(real)

    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        logger.warning("Cannot open directory %s: %s", directory, exc)
        return

    for entry in entries:
        if entry.name.startswith(HIDDEN_PREFIX):
            continue
        try:
            if entry.is_dir():
                yield from _walk(entry, visited)
            elif entry.is_file() and is_input_file(entry.name):
                yield InputSpec(path=entry.resolve())
        except OSError as exc:
            logger.warning("Cannot inspect %s: %s", entry, exc)
