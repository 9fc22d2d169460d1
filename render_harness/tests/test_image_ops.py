"""Tests for frame post-processing: round-screen mask and thumbnail scaling."""

from __future__ import annotations

import numpy as np
import pytest

from render_harness.capture import image_ops
from src.utils.validators import DeviceProfile, RenderingMode


@pytest.fixture
def round_watch() -> DeviceProfile:
    return DeviceProfile(name="WATCH", width_px=101, height_px=101, density_dpi=320, shape="round")


@pytest.fixture
def phone() -> DeviceProfile:
    return DeviceProfile(name="PHONE", width_px=101, height_px=101)


def _solid(h: int, w: int, value: int = 255) -> np.ndarray:
    return np.full((h, w, 4), value, dtype=np.uint8)


class TestScale:
    def test_thumbnail_scale_uses_longer_side(self) -> None:
        assert image_ops.thumbnail_scale(_solid(500, 2000)) == pytest.approx(0.5)
        assert image_ops.thumbnail_scale(_solid(4000, 1000)) == pytest.approx(0.25)

    def test_small_image_is_returned_as_is(self) -> None:
        img = _solid(300, 200)
        assert image_ops.scale(img) is img

    def test_exact_thumbnail_size_is_not_scaled(self) -> None:
        img = _solid(1000, 640)
        assert image_ops.scale(img) is img

    def test_large_image_is_downscaled(self) -> None:
        img = _solid(1000, 2000, value=200)
        out = image_ops.scale(img)
        assert out.shape == (500, 1000, 4)
        assert out.dtype == np.uint8
        assert np.all(out == 200)


class TestDeviceMask:
    def test_rectangular_device_is_identity(self, phone) -> None:
        img = _solid(101, 101)
        assert image_ops.apply_device_mask(img, RenderingMode.NORMAL, phone) is img

    @pytest.mark.parametrize("mode", [RenderingMode.SHRINK, RenderingMode.V_SCROLL, RenderingMode.FULL_EXPAND])
    def test_round_device_outside_normal_is_identity(self, round_watch, mode) -> None:
        img = _solid(101, 101)
        assert image_ops.apply_device_mask(img, mode, round_watch) is img

    def test_round_device_clears_corners(self, round_watch) -> None:
        img = _solid(101, 101)
        out = image_ops.apply_device_mask(img, RenderingMode.NORMAL, round_watch)

        assert out is not img
        assert out.shape == img.shape and out.dtype == img.dtype
        for y, x in [(0, 0), (0, 100), (100, 0), (100, 100)]:
            assert np.all(out[y, x] == 0)
        assert np.all(out[50, 50] == 255)
        assert np.all(img == 255)

    def test_mask_follows_image_bounds(self, round_watch) -> None:
        out = image_ops.apply_device_mask(_solid(60, 120), RenderingMode.NORMAL, round_watch)
        assert out.shape == (60, 120, 4)
        assert np.all(out[30, 5] == 255)
        assert np.all(out[2, 5] == 0)

    @pytest.mark.parametrize("size", [100, 384])
    def test_even_sized_mask_is_symmetric(self, round_watch, size) -> None:
        out = image_ops.apply_device_mask(_solid(size, size), RenderingMode.NORMAL, round_watch)
        alpha = out[..., 3]
        mid = size // 2

        assert np.array_equal(alpha, alpha[:, ::-1])
        assert np.array_equal(alpha, alpha[::-1, :])
        assert np.array_equal(alpha, alpha.T)
        assert alpha[mid, 0] == 255 and alpha[mid, size - 1] == 255
        assert alpha[0, mid] == 255 and alpha[size - 1, mid] == 255


class TestFormatImage:
    def test_mask_then_scale(self) -> None:
        watch = DeviceProfile(name="BIG_WATCH", width_px=2000, height_px=2000, shape="round")
        out = image_ops.format_image(_solid(2000, 2000), RenderingMode.NORMAL, watch)
        assert out.shape == (1000, 1000, 4)
        assert np.all(out[0, 0] == 0)
        assert np.all(out[500, 500] == 255)
