"""Tests for snapshot recording, verification and handler selection."""

from __future__ import annotations

import pytest

from render_harness.backends.widgets import AnimatedBox, ColorBox
from render_harness.capture.capturer import SnapshotCapturer
from render_harness.capture.handlers import (
    SnapshotRecorder,
    SnapshotVerifier,
    TestRecord,
    determine_handler,
)
from render_harness.runtime.clock import TIME_OFFSET_NANOS
from src.utils import fs
from src.utils.validators import DeviceProfile

RECORD = TestRecord(test_name="test_box", class_name="BoxTest", name="Red Box")


def _capture(session, color: str = "#FF0000"):
    return SnapshotCapturer(session).snapshot(ColorBox(color, width=10, height=10))


class TestTestRecord:
    def test_file_name_with_label(self) -> None:
        assert RECORD.file_name("png") == "BoxTest_test_box_red_box.png"
        assert RECORD.file_name() == "BoxTest_test_box_red_box"

    def test_file_name_without_class_or_label(self) -> None:
        assert TestRecord(test_name="test_plain").file_name("png") == "test_plain.png"

    def test_unsafe_characters_replaced(self) -> None:
        record = TestRecord(test_name="test[param/1]")
        assert record.file_name() == "test_param_1_"


class TestDetermineHandler:
    def test_records_by_default(self) -> None:
        handler = determine_handler(0.1, environ={})
        assert isinstance(handler, SnapshotRecorder)
        assert str(handler.root_dir) == "snapshots"

    def test_verifies_when_requested(self, tmp_path) -> None:
        handler = determine_handler(
            0.5,
            environ={"RENDER_HARNESS_VERIFY": "true", "RENDER_HARNESS_SNAPSHOT_DIR": str(tmp_path)},
        )
        assert isinstance(handler, SnapshotVerifier)
        assert handler.max_percent_difference == 0.5
        assert handler.root_dir == tmp_path

    def test_false_value_records(self) -> None:
        handler = determine_handler(0.1, environ={"RENDER_HARNESS_VERIFY": "false"})
        assert isinstance(handler, SnapshotRecorder)


class TestSnapshotRecorder:
    def test_records_single_frame(self, session, tmp_path) -> None:
        with SnapshotRecorder(tmp_path) as recorder:
            recorder.handle_snapshot(_capture(session), RECORD)

        path = tmp_path / "images" / "BoxTest_test_box_red_box.png"
        image = fs.load_image(path)
        assert image.shape == (300, 200, 4)
        assert tuple(image[5, 5]) == (255, 0, 0, 255)

    def test_records_frame_sequence(self, session, tmp_path) -> None:
        snapshot = SnapshotCapturer(session).gif(AnimatedBox(), end_ms=100, fps=20)
        SnapshotRecorder(tmp_path).handle_snapshot(snapshot, RECORD)

        video_dir = tmp_path / "videos" / "BoxTest_test_box_red_box"
        assert sorted(p.name for p in video_dir.glob("*.png")) == ["000.png", "001.png", "002.png"]
        metadata = fs.load_yaml(video_dir / "metadata.yaml")
        assert metadata["fps"] == 20
        assert metadata["frame_count"] == 3
        assert [f["time_ms"] for f in metadata["frames"]] == [0, 50, 100]
        assert all(len(f["sha256"]) == 64 for f in metadata["frames"])


class TestSnapshotVerifier:
    def test_matching_golden_passes(self, session, tmp_path) -> None:
        SnapshotRecorder(tmp_path).handle_snapshot(_capture(session), RECORD)
        SnapshotVerifier(0.1, tmp_path).handle_snapshot(_capture(session), RECORD)

    def test_missing_golden_fails(self, session, tmp_path) -> None:
        snapshot = _capture(session)
        with pytest.raises(AssertionError, match="not found"):
            SnapshotVerifier(0.1, tmp_path).handle_snapshot(snapshot, RECORD)
        assert snapshot.prepared.released

    def test_different_image_fails_and_writes_diff(self, session, tmp_path) -> None:
        SnapshotRecorder(tmp_path).handle_snapshot(_capture(session), RECORD)

        with pytest.raises(AssertionError, match=r"differs from golden by .*PSNR \d+\.\d{2} dB"):
            SnapshotVerifier(0.0, tmp_path).handle_snapshot(_capture(session, "#0000FF"), RECORD)

        assert (tmp_path / "failures" / "delta-BoxTest_test_box_red_box.png").exists()
        assert (tmp_path / "failures" / "actual-BoxTest_test_box_red_box.png").exists()

    def test_difference_within_tolerance_passes(self, session, tmp_path) -> None:
        SnapshotRecorder(tmp_path).handle_snapshot(_capture(session), RECORD)
        SnapshotVerifier(100.0, tmp_path).handle_snapshot(_capture(session, "#0000FF"), RECORD)

    def test_size_mismatch_fails(self, session, tmp_path) -> None:
        SnapshotRecorder(tmp_path).handle_snapshot(_capture(session), RECORD)
        session.reconfigure(device=DeviceProfile(name="WIDE", width_px=300, height_px=200, density_dpi=160))

        with pytest.raises(AssertionError, match="size differs"):
            SnapshotVerifier(100.0, tmp_path, write_diffs=False).handle_snapshot(_capture(session), RECORD)
        assert not (tmp_path / "failures").exists()

    def test_verification_uses_relative_time(self, session, tmp_path) -> None:
        SnapshotRecorder(tmp_path).handle_snapshot(_capture(session), RECORD)
        session.advance(session.clock.elapsed() + 5_000_000_000)
        assert session.clock.now() > TIME_OFFSET_NANOS
        SnapshotVerifier(0.0, tmp_path).handle_snapshot(_capture(session), RECORD)
