"""Post-processing of captured frames: device mask, then downscale.

Operates on (H, W, 4) uint8 RGBA numpy arrays and never mutates its input.
"""

from __future__ import annotations

import cv2
import numpy as np

from src.utils.validators import DeviceProfile, RenderingMode

THUMBNAIL_SIZE = 1000


def thumbnail_scale(image: np.ndarray) -> float:
    """Factor mapping the longer side of ``image`` to ``THUMBNAIL_SIZE``."""
    h, w = image.shape[:2]
    return THUMBNAIL_SIZE / max(w, h)


def scale(image: np.ndarray) -> np.ndarray:
    """Downscale so the longer side is ``THUMBNAIL_SIZE``; never upscale.

    Returns ``image`` itself when no scaling is needed.
    """
    factor = thumbnail_scale(image)
    if factor >= 1:
        return image
    h, w = image.shape[:2]
    size = (max(int(w * factor), 1), max(int(h * factor), 1))
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA)


def apply_device_mask(
    image: np.ndarray,
    rendering_mode: RenderingMode,
    device: DeviceProfile,
) -> np.ndarray:
    """Clear pixels outside the ellipse inscribed in the image bounds.

    Only NORMAL rendering of a round device is masked; every other
    combination returns ``image`` unchanged.
    """
    if rendering_mode != RenderingMode.NORMAL or not device.is_round:
        return image

    h, w = image.shape[:2]
    ys, xs = np.ogrid[:h, :w]
    dy = (ys + 0.5 - h / 2) / (h / 2)
    dx = (xs + 0.5 - w / 2) / (w / 2)
    inside = dx * dx + dy * dy <= 1.0

    masked = np.zeros_like(image)
    masked[inside] = image[inside]
    return masked


def format_image(
    image: np.ndarray,
    rendering_mode: RenderingMode,
    device: DeviceProfile,
) -> np.ndarray:
    return scale(apply_device_mask(image, rendering_mode, device))
