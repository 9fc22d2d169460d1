"""Snapshot handlers: record golden images or verify against them.

Layout under the snapshot root::

    images/<file>.png                 single-frame snapshots (goldens)
    videos/<file>/<index>.png         frame sequences
    videos/<file>/metadata.yaml       fps, frame times, per-frame SHA-256
    failures/delta-<file>.png         verifier diff output

The handler is chosen from the environment by :func:`determine_handler`:
``RENDER_HARNESS_VERIFY=true`` verifies, anything else records.
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, Union

import numpy as np

from render_harness.capture.capturer import ViewSnapshot
from src.utils import fs, hashing, metrics

logger = logging.getLogger(__name__)

VERIFY_ENV = "RENDER_HARNESS_VERIFY"
SNAPSHOT_DIR_ENV = "RENDER_HARNESS_SNAPSHOT_DIR"
DEFAULT_SNAPSHOT_DIR = "snapshots"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


@dataclass(frozen=True)
class TestRecord:
    """Identity of one capture inside a test."""

    __test__ = False

    test_name: str
    class_name: str = ""
    name: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def file_name(self, extension: Optional[str] = None) -> str:
        base = f"{self.class_name}_{self.test_name}" if self.class_name else self.test_name
        if self.name:
            base += "_" + re.sub(r"\s", "_", self.name.lower())
        base = _UNSAFE_CHARS.sub("_", base)
        return f"{base}.{extension}" if extension else base


class SnapshotHandler(ABC):
    """Consumes the :class:`ViewSnapshot` of each capture."""

    @abstractmethod
    def handle_snapshot(self, snapshot: ViewSnapshot, record: TestRecord) -> None:
        ...

    def close(self) -> None:
        pass

    def __enter__(self) -> "SnapshotHandler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SnapshotRecorder(SnapshotHandler):
    """Write every frame to disk as PNG."""

    def __init__(self, root_dir: Union[str, Path] = DEFAULT_SNAPSHOT_DIR) -> None:
        self.root_dir = Path(root_dir)
        self.images_dir = self.root_dir / "images"
        self.videos_dir = self.root_dir / "videos"

    def handle_snapshot(self, snapshot: ViewSnapshot, record: TestRecord) -> None:
        with snapshot:
            if snapshot.frame_count == 1:
                self._record_image(snapshot, record)
            else:
                self._record_frames(snapshot, record)

    def _record_image(self, snapshot: ViewSnapshot, record: TestRecord) -> None:
        frame = next(iter(snapshot))
        path = self.images_dir / record.file_name("png")
        fs.atomic_save_image(frame.image, path)
        logger.info("Recorded %s (sha256=%s)", path, hashing.sha256_image(frame.image)[:16])

    def _record_frames(self, snapshot: ViewSnapshot, record: TestRecord) -> None:
        video_dir = self.videos_dir / record.file_name()
        frames = []
        for frame in snapshot:
            fs.atomic_save_image(frame.image, video_dir / f"{frame.index:03d}.png")
            frames.append({
                "index": frame.index,
                "time_ms": frame.time_ms,
                "sha256": hashing.sha256_image(frame.image),
            })
        fs.atomic_yaml_dump(
            {"fps": snapshot.fps, "frame_count": len(frames), "frames": frames},
            video_dir / "metadata.yaml",
        )
        logger.info("Recorded %d frame(s) to %s", len(frames), video_dir)


class SnapshotVerifier(SnapshotHandler):
    """Compare the first frame of each capture with its golden image.

    Raises
    ------
    AssertionError
        If the golden is missing, differs in size, or differs by more than
        ``max_percent_difference`` percent.
    """

    def __init__(
        self,
        max_percent_difference: float,
        root_dir: Union[str, Path] = DEFAULT_SNAPSHOT_DIR,
        write_diffs: bool = True,
    ) -> None:
        self.max_percent_difference = max_percent_difference
        self.root_dir = Path(root_dir)
        self.images_dir = self.root_dir / "images"
        self.failures_dir = self.root_dir / "failures"
        self.write_diffs = write_diffs

    def handle_snapshot(self, snapshot: ViewSnapshot, record: TestRecord) -> None:
        with snapshot:
            frame = next(iter(snapshot), None)
        if frame is None:
            raise AssertionError(f"No frame captured for {record.file_name()}")

        golden_path = self.images_dir / record.file_name("png")
        if not golden_path.exists():
            raise AssertionError(
                f"Golden image {golden_path} not found; record it with {VERIFY_ENV}=false"
            )
        golden = fs.load_image(golden_path)
        actual = frame.image

        if golden.shape != actual.shape:
            self._write_failure(record, golden, actual)
            raise AssertionError(
                f"Image size differs for {record.file_name()}: "
                f"expected {golden.shape[1]}x{golden.shape[0]}, "
                f"actual {actual.shape[1]}x{actual.shape[0]}"
            )

        diff = metrics.percent_difference(golden, actual)
        if diff > self.max_percent_difference:
            self._write_failure(record, golden, actual)
            raise AssertionError(
                f"{record.file_name()} differs from golden by {diff:.4f}% "
                f"(max {self.max_percent_difference}%, PSNR {metrics.psnr(golden, actual):.2f} dB)"
            )
        logger.debug("Verified %s (%.4f%% difference)", golden_path, diff)

    def _write_failure(self, record: TestRecord, golden: np.ndarray, actual: np.ndarray) -> None:
        if not self.write_diffs:
            return
        name = record.file_name()
        fs.atomic_save_image(actual, self.failures_dir / f"actual-{name}.png")
        if golden.shape == actual.shape:
            fs.atomic_save_image(metrics.diff_image(golden, actual), self.failures_dir / f"delta-{name}.png")


def _is_true(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in ("1", "true", "yes", "on")


def determine_handler(
    max_percent_difference: float,
    environ: Optional[Mapping[str, str]] = None,
) -> SnapshotHandler:
    """Verifier when ``RENDER_HARNESS_VERIFY`` is true, recorder otherwise."""
    env = os.environ if environ is None else environ
    root_dir = Path(env.get(SNAPSHOT_DIR_ENV, DEFAULT_SNAPSHOT_DIR))
    if _is_true(env.get(VERIFY_ENV)):
        logger.debug("Verifying snapshots against %s", root_dir)
        return SnapshotVerifier(max_percent_difference, root_dir)
    logger.debug("Recording snapshots to %s", root_dir)
    return SnapshotRecorder(root_dir)
