"""SHA-256 hashing for snapshot provenance and reproducibility checks.

Provides:
    - sha256_file(): Hash file contents (golden PNGs)
    - sha256_image(): Hash raw pixel data (shape + dtype + bytes)

Snapshots must be bit-reproducible across runs, so two captures of the same
component at the same virtual time must produce identical sha256_image()
digests. Recorders log the digest of every frame they persist.

Usage:
    from src.utils import hashing
    digest = hashing.sha256_image(frame)

Note: Module named `hashing.py` to avoid shadowing builtin `hash()`.
"""

import hashlib
from pathlib import Path
from typing import Union

import numpy as np


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Compute SHA-256 hash of file contents.

    Parameters
    ----------
    path : Union[str, Path]
        File path
    chunk_size : int
        Read chunk size in bytes, default 1 MB

    Returns
    -------
    str
        SHA-256 hex digest (64 characters)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    sha256 = hashlib.sha256()

    with open(path, 'rb') as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            sha256.update(chunk)

    return sha256.hexdigest()


def sha256_image(img: np.ndarray) -> str:
    """Compute SHA-256 hash of image pixel values.

    Parameters
    ----------
    img : np.ndarray
        Image array (any shape, dtype)

    Returns
    -------
    str
        SHA-256 hex digest (64 characters)

    Notes
    -----
    Shape and dtype are folded into the digest, so a (2, 8) and a (4, 4)
    array with the same bytes hash differently.
    """
    sha256 = hashlib.sha256()
    sha256.update(f"{img.shape}|{img.dtype.str}|".encode('utf-8'))
    sha256.update(np.ascontiguousarray(img).tobytes())
    return sha256.hexdigest()

