"""Image comparison metrics for snapshot verification.

Provides:
    - percent_difference: Mean absolute channel delta as a percentage
    - psnr: Peak Signal-to-Noise Ratio
    - diff_image: Visual diff (red where pixels differ)

Used by:
    - SnapshotVerifier: max_percent_difference threshold against golden images
    - Determinism tests: PSNR of repeated captures must be infinite

All metrics operate on numpy uint8 arrays of shape (H, W, C).
"""

import numpy as np


def _check_same_shape(img1: np.ndarray, img2: np.ndarray) -> None:
    if img1.shape != img2.shape:
        raise ValueError(
            f"Image shapes differ: {img1.shape} vs {img2.shape}"
        )


def percent_difference(img1: np.ndarray, img2: np.ndarray) -> float:
    """Compute the channel-wise percent difference between two images.

    Parameters
    ----------
    img1 : np.ndarray
        First image, (H, W, C) uint8
    img2 : np.ndarray
        Second image, same shape as img1

    Returns
    -------
    float
        Sum of absolute per-channel deltas over the maximum possible delta,
        in percent [0, 100]. 0.0 means identical.

    Raises
    ------
    ValueError
        If shapes differ

    Examples
    --------
    >>> assert percent_difference(frame, golden) <= 0.1
    """
    _check_same_shape(img1, img2)
    if img1.size == 0:
        return 0.0

    delta = np.abs(img1.astype(np.int64) - img2.astype(np.int64)).sum()
    max_delta = 255 * img1.size
    return float(delta) * 100.0 / max_delta


def psnr(
    img1: np.ndarray,
    img2: np.ndarray,
    max_val: float = 255.0
) -> float:
    """Compute Peak Signal-to-Noise Ratio (PSNR).

    Parameters
    ----------
    img1 : np.ndarray
        First image
    img2 : np.ndarray
        Second image, same shape as img1
    max_val : float
        Maximum possible pixel value, default 255.0

    Returns
    -------
    float
        PSNR in dB; ``inf`` for identical images

    Notes
    -----
    PSNR = 10 * log10(max_val^2 / MSE)
    """
    _check_same_shape(img1, img2)
    mse = np.mean((img1.astype(np.float64) - img2.astype(np.float64)) ** 2)
    if mse == 0:
        return float('inf')
    return float(10.0 * np.log10((max_val ** 2) / mse))


def diff_image(img1: np.ndarray, img2: np.ndarray) -> np.ndarray:
    """Build an RGBA diff image: differing pixels red, equal pixels faded.

    Parameters
    ----------
    img1, img2 : np.ndarray
        (H, W, 4) uint8 images of the same shape

    Returns
    -------
    np.ndarray
        (H, W, 4) uint8 diff visualisation
    """
    _check_same_shape(img1, img2)
    differs = np.any(img1 != img2, axis=-1)

    out = (img2.astype(np.uint16) // 4).astype(np.uint8)
    out[..., 3] = 255
    out[differs] = (255, 0, 0, 255)
    return out
