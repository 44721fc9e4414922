"""
Psychophysical models of the human visual system.

- Threshold vs intensity (TVI) from Ward Larson, Siggraph 1997.
- Contrast sensitivity function (CSF) from Barten, SPIE 1989.
- Visual masking from Daly 1993.

The functions are scalar and compiled with numba so the per-pixel kernel in
``core`` can call them without leaving nopython mode. They are plain callables
from Python as well. Powers use ``math.pow`` (no fast approximation).
"""

import math

from numba import njit


@njit
def threshold_vs_intensity(adaptation_luminance: float) -> float:
    """Threshold of visibility in cd/m^2 for the given adaptation luminance"""
    log_a = math.log10(adaptation_luminance)
    if log_a < -3.94:
        r = -2.86
    elif log_a < -1.44:
        r = math.pow(0.405 * log_a + 1.6, 2.18) - 2.86
    elif log_a < -0.0184:
        r = log_a - 0.395
    elif log_a < 1.9:
        r = math.pow(0.249 * log_a + 0.65, 2.7) - 0.72
    else:
        r = log_a - 1.255
    return math.pow(10.0, r)


@njit
def contrast_sensitivity(cycles_per_degree: float, luminance: float) -> float:
    """Sensitivity to a spatial frequency (cpd) at a given luminance"""
    a = 440.0 * math.pow(1.0 + 0.7 / luminance, -0.2)
    b = 0.3 * math.pow(1.0 + 100.0 / luminance, 0.15)
    return (a * cycles_per_degree * math.exp(-b * cycles_per_degree)
            * math.sqrt(1.0 + 0.06 * math.exp(b * cycles_per_degree)))


@njit
def visual_masking(contrast: float) -> float:
    """Elevation of the detection threshold caused by existing contrast"""
    a = math.pow(392.498 * contrast, 0.7)
    b = math.pow(0.0153 * a, 4.0)
    return math.pow(1.0 + b, 0.25)
