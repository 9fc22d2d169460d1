"""Test atomic filesystem operations.

Tests for src.utils.fs:
    - Atomic writes leave no temp files behind
    - PNG save/load preserves RGBA pixels exactly
    - YAML roundtrip preserves structure and key order
    - ensure_dir creates parents

Run:
    pytest tests/test_fs.py -v
"""

import numpy as np
import pytest
import yaml

from src.utils import fs


# ============================================================================
# DIRECTORIES AND BYTES
# ============================================================================

def test_ensure_dir(tmp_path):
    """ensure_dir creates nested parents and is idempotent."""
    target = tmp_path / "a" / "b" / "c"
    assert fs.ensure_dir(target) == target
    assert target.is_dir()
    assert fs.ensure_dir(str(target)) == target


def test_atomic_write_bytes(tmp_path):
    """Data lands at the target path and no .tmp file remains."""
    path = tmp_path / "nested" / "data.bin"
    fs.atomic_write_bytes(path, b"first")
    fs.atomic_write_bytes(path, b"second")

    assert path.read_bytes() == b"second"
    assert sorted(p.name for p in path.parent.iterdir()) == ["data.bin"]


# ============================================================================
# IMAGES
# ============================================================================

def test_atomic_save_image_rgba_roundtrip(tmp_path):
    """RGBA frames survive PNG save/load bit-exactly."""
    rng = np.random.default_rng(0)
    img = rng.integers(0, 256, size=(17, 23, 4), dtype=np.uint8)
    path = tmp_path / "images" / "frame.png"

    fs.atomic_save_image(img, path)
    loaded = fs.load_image(path)

    assert loaded.dtype == np.uint8
    np.testing.assert_array_equal(loaded, img)
    assert not list(path.parent.glob("*.tmp*"))


def test_load_image_converts_rgb_to_rgba(tmp_path):
    """RGB files come back with an opaque alpha channel."""
    img = np.full((4, 5, 3), 100, dtype=np.uint8)
    path = tmp_path / "rgb.png"
    fs.atomic_save_image(img, path)

    loaded = fs.load_image(path)
    assert loaded.shape == (4, 5, 4)
    assert np.all(loaded[..., :3] == 100)
    assert np.all(loaded[..., 3] == 255)


def test_atomic_save_image_clips_float(tmp_path):
    """Non-uint8 input is clipped into [0, 255]."""
    img = np.array([[[-10.0, 128.0, 300.0]]])
    path = tmp_path / "clipped.png"
    fs.atomic_save_image(img, path)

    loaded = fs.load_image(path)
    assert tuple(loaded[0, 0, :3]) == (0, 128, 255)


def test_load_image_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.load_image(tmp_path / "missing.png")


# ============================================================================
# YAML
# ============================================================================

def test_load_yaml_roundtrip(tmp_path):
    """YAML roundtrip preserves nested structure and key order."""
    obj = {"fps": 30, "frames": [{"index": 0, "time_ms": 0}, {"index": 1, "time_ms": 33}], "name": "ü"}
    path = tmp_path / "meta" / "metadata.yaml"

    fs.atomic_yaml_dump(obj, path)
    loaded = fs.load_yaml(path)

    assert loaded == obj
    assert list(loaded) == ["fps", "frames", "name"]


def test_load_yaml_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.load_yaml(tmp_path / "missing.yaml")


def test_load_yaml_invalid(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("key: [unclosed", encoding="utf-8")
    with pytest.raises(yaml.YAMLError, match="bad.yaml"):
        fs.load_yaml(path)
