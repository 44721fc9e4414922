"""perceptualdiff package
Exporting main classes for external use.

Example:
    from perceptualdiff import PerceptualDiff, PerceptualDiffConfig
"""
from .core import (
    ConfigError,
    ImageError,
    PerceptualDiff,
    PerceptualDiffConfig,
    PerceptualDiffError,
    Verdict,
    VERSION,
    compare,
    make_diff_mask,
)

__all__ = [
    'ConfigError',
    'ImageError',
    'PerceptualDiff',
    'PerceptualDiffConfig',
    'PerceptualDiffError',
    'Verdict',
    'VERSION',
    'compare',
    'make_diff_mask',
]
