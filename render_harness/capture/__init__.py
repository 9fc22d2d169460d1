"""Capturing frames of prepared views and handling the results."""

from render_harness.capture.capturer import (
    FrameSequence,
    Snapshot,
    SnapshotCapturer,
    ViewSnapshot,
)
from render_harness.capture.handlers import (
    SnapshotHandler,
    SnapshotRecorder,
    SnapshotVerifier,
    TestRecord,
    determine_handler,
)
from render_harness.capture.image_ops import (
    THUMBNAIL_SIZE,
    apply_device_mask,
    format_image,
    scale,
    thumbnail_scale,
)

__all__ = [
    "FrameSequence",
    "Snapshot",
    "SnapshotCapturer",
    "SnapshotHandler",
    "SnapshotRecorder",
    "SnapshotVerifier",
    "THUMBNAIL_SIZE",
    "TestRecord",
    "ViewSnapshot",
    "apply_device_mask",
    "determine_handler",
    "format_image",
    "scale",
    "thumbnail_scale",
]
