"""Single-frame and frame-sequence capture of a view.

A capture attaches the view immediately but renders lazily: frames are
produced as the returned :class:`ViewSnapshot` is iterated, and the view is
released once the stream is exhausted, closed, or aborted by an error.

Frame timing for ``[start_ms, end_ms]`` at ``fps``::

    frame_count = (end_ms - start_ms) * fps // 1000 + 1
    t(frame)    = start_ms + frame * 1000 // fps
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator

import numpy as np

from render_harness.capture.image_ops import format_image
from render_harness.view.prepared_view import PreparedView

if TYPE_CHECKING:
    from render_harness.session.manager import RenderSessionManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameSequence:
    """Frame times of a capture, in milliseconds from the view's clock base."""

    start_ms: int
    end_ms: int
    fps: int

    def __post_init__(self) -> None:
        if self.fps <= 0:
            raise ValueError(f"fps must be positive, got {self.fps}")
        if self.start_ms < 0:
            raise ValueError(f"start_ms must be >= 0, got {self.start_ms}")
        if self.end_ms < self.start_ms:
            raise ValueError(
                f"end_ms ({self.end_ms}) must not be before start_ms ({self.start_ms})"
            )

    @property
    def frame_count(self) -> int:
        return (self.end_ms - self.start_ms) * self.fps // 1000 + 1

    def timestamps(self) -> list[int]:
        return [
            self.start_ms + frame * 1000 // self.fps
            for frame in range(self.frame_count)
        ]


@dataclass(frozen=True)
class Snapshot:
    """One post-processed frame."""

    image: np.ndarray
    time_ms: int
    index: int


class ViewSnapshot:
    """Lazy, single-use stream of :class:`Snapshot` frames of one view."""

    def __init__(self, prepared: PreparedView, sequence: FrameSequence, frames: Iterator[Snapshot]) -> None:
        self.prepared = prepared
        self.sequence = sequence
        self._frames = frames
        self._iterated = False

    @property
    def fps(self) -> int:
        return self.sequence.fps

    @property
    def frame_count(self) -> int:
        return self.sequence.frame_count

    def __len__(self) -> int:
        return self.sequence.frame_count

    def __iter__(self) -> Iterator[Snapshot]:
        if self._iterated:
            raise RuntimeError("A ViewSnapshot can only be iterated once")
        self._iterated = True
        return self._frames

    def close(self) -> None:
        """Stop producing frames and release the view."""
        self._iterated = True
        self._frames.close()
        # a never-started generator skips its cleanup on close()
        self.prepared.release()

    def __enter__(self) -> "ViewSnapshot":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _produce(
    session: "RenderSessionManager",
    prepared: PreparedView,
    sequence: FrameSequence,
) -> Iterator[Snapshot]:
    with prepared:
        for index, time_ms in enumerate(sequence.timestamps()):
            raw = prepared.capture_at(time_ms)
            config = session.config
            yield Snapshot(format_image(raw, config.rendering_mode, config.device), time_ms, index)
    logger.debug("Captured %d frame(s) of %s", sequence.frame_count, type(prepared.view).__name__)


class SnapshotCapturer:
    """Capture views of one prepared session."""

    def __init__(self, session: "RenderSessionManager") -> None:
        self.session = session

    def snapshot(self, view: Any, offset_ms: int = 0) -> ViewSnapshot:
        """Single frame at ``offset_ms``, reported at 1 fps."""
        return self._capture(view, FrameSequence(offset_ms, offset_ms, 1))

    def gif(self, view: Any, start_ms: int = 0, end_ms: int = 500, fps: int = 30) -> ViewSnapshot:
        """Frames from ``start_ms`` to ``end_ms`` inclusive at ``fps``.

        Raises
        ------
        ValueError
            If ``end_ms < start_ms`` or ``fps <= 0``; nothing is attached.
        """
        return self._capture(view, FrameSequence(start_ms, end_ms, fps))

    def _capture(self, view: Any, sequence: FrameSequence) -> ViewSnapshot:
        prepared = self.session.prepare_view(view)
        return ViewSnapshot(prepared, sequence, _produce(self.session, prepared, sequence))
