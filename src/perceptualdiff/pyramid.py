"""
Constant-resolution blur pyramid.

Level 0 is the source luminance; every following level is the previous one
filtered with a 5x5 kernel (outer product of KERNEL). Nothing is decimated, so
all levels share the source shape and the blur radius compounds per level.
Borders are mirrored: -c below zero and 2*dim - 1 - c past the far edge.
"""

import logging

import numpy as np
from scipy import ndimage

logger = logging.getLogger(__name__)

MAX_LEVELS = 8
KERNEL = np.array([0.05, 0.25, 0.40, 0.25, 0.05], dtype=np.float64)
RADIUS = len(KERNEL) // 2


def reflect_indices(n: int, radius: int = RADIUS) -> np.ndarray:
    """Source indices for coordinates -radius .. n - 1 + radius"""
    idx = np.arange(-radius, n + radius)
    # A single reflection can overshoot when n <= radius; repeat until in range
    while True:
        low = idx < 0
        high = idx >= n
        if not (low.any() or high.any()):
            return idx
        idx = np.where(low, -idx, idx)
        idx = np.where(idx >= n, 2 * n - 1 - idx, idx)


def blur(image: np.ndarray) -> np.ndarray:
    """One pyramid step: 5x5 separable filter with mirrored borders"""
    h, w = image.shape
    padded = image[np.ix_(reflect_indices(h), reflect_indices(w))]
    # Interior of the padded array only reads padded samples, so the ndimage
    # boundary mode never comes into play for the part we keep
    out = ndimage.correlate1d(padded, KERNEL, axis=0, mode='nearest')
    out = ndimage.correlate1d(out, KERNEL, axis=1, mode='nearest')
    return out[RADIUS:RADIUS + h, RADIUS:RADIUS + w]


class Pyramid:
    """Blur pyramid of a single-channel image, all levels in one (MAX_LEVELS, H, W) array"""

    def __init__(self, image: np.ndarray):
        image = np.asarray(image, dtype=np.float64)
        if image.ndim != 2:
            raise ValueError(f"Pyramid needs a 2-D channel buffer, got shape {image.shape}")
        self.height, self.width = image.shape
        self.levels = np.empty((MAX_LEVELS,) + image.shape, dtype=np.float64)
        self.levels[0] = image
        for i in range(1, MAX_LEVELS):
            self.levels[i] = blur(self.levels[i - 1])
        logger.debug(f"Built {MAX_LEVELS}-level pyramid for {self.width}x{self.height} image")

    def __len__(self) -> int:
        return MAX_LEVELS

    def __getitem__(self, level: int) -> np.ndarray:
        return self.levels[level]

    def level(self, level: int) -> np.ndarray:
        return self.levels[level]

    def value(self, x: int, y: int, level: int) -> float:
        return float(self.levels[level, y, x])

    def flat(self) -> np.ndarray:
        """Levels as (MAX_LEVELS, H*W) row-major buffers (a view, no copy)"""
        return self.levels.reshape(MAX_LEVELS, -1)
