"""
Colour conversion for the perceptual metric.

Input pixels are assumed to be Adobe RGB (1998) with a D65 reference white.
Values are gamma decoded into linear light, mapped to XYZ and then through the
CIE LAB nonlinearity. Only the luminance (in cd/m^2) and the two chroma terms
are kept; L* itself is not needed downstream.
"""

from typing import Sequence, Tuple, Union

import numpy as np

# Adobe RGB (1998) -> XYZ, reference white D65 (brucelindbloom.com)
ADOBE_RGB_TO_XYZ = np.array([
    [0.576700, 0.185556, 0.188212],
    [0.297361, 0.627355, 0.0752847],
    [0.0270328, 0.0706879, 0.991248],
], dtype=np.float64)

REFERENCE_WHITE = ADOBE_RGB_TO_XYZ @ np.ones(3)

LAB_EPSILON = 216.0 / 24389.0
LAB_KAPPA = 24389.0 / 27.0

DEFAULT_GAMMA = 2.2
DEFAULT_LUMINANCE = 100.0


def unpack_rgb(pixel: int) -> Tuple[int, int, int]:
    """Split a packed 0xAARRGGBB value into (r, g, b); alpha is ignored"""
    return (pixel >> 16) & 0xFF, (pixel >> 8) & 0xFF, pixel & 0xFF


def _lab_f(ratio: np.ndarray) -> np.ndarray:
    return np.where(ratio > LAB_EPSILON, np.cbrt(ratio), (LAB_KAPPA * ratio + 16.0) / 116.0)


def rgb_to_lab_luminance(rgb: np.ndarray, gamma: float = DEFAULT_GAMMA,
                         luminance: float = DEFAULT_LUMINANCE) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Convert an (H, W, 3) array of 8-bit RGB samples.

    Args:
        rgb: uint8 samples, last axis is (r, g, b)
        gamma: decoding exponent applied to the normalised samples
        luminance: white luminance of the display in cd/m^2

    Returns:
        (lum, a, b) as float64 arrays of shape (H, W)
    """
    linear = np.power(np.asarray(rgb, dtype=np.float64) / 255.0, gamma)
    xyz = linear @ ADOBE_RGB_TO_XYZ.T
    f = _lab_f(xyz / REFERENCE_WHITE)
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]
    a = 500.0 * (fx - fy)
    b = 200.0 * (fy - fz)
    lum = xyz[..., 1] / REFERENCE_WHITE[1] * luminance
    return np.ascontiguousarray(lum), np.ascontiguousarray(a), np.ascontiguousarray(b)


def convert_pixel(pixel: Union[int, Sequence[int]], gamma: float = DEFAULT_GAMMA,
                  luminance: float = DEFAULT_LUMINANCE) -> Tuple[float, float, float]:
    """Convert one pixel (packed int or (r, g, b)) to (luminance, a, b)"""
    if isinstance(pixel, (int, np.integer)):
        pixel = unpack_rgb(int(pixel))
    rgb = np.array(pixel[:3], dtype=np.uint8).reshape(1, 1, 3)
    lum, a, b = rgb_to_lab_luminance(rgb, gamma, luminance)
    return float(lum[0, 0]), float(a[0, 0]), float(b[0, 0])
