"""
perceptualdiff - Perceptual image comparison
Decides whether a human observer would see two images as different, using
Yee's metric (A Perceptual Metric for Production Testing, Journal of Graphics
Tools 2004):
- Colour conversion to luminance and LAB chroma (color.py).
- Blur pyramids of both luminance channels (pyramid.py).
- Contrast sensitivity, masking and TVI thresholds per pixel (vision.py).
- Per-pixel pass/fail with an aggregate pixel-count threshold.
The per-pixel decision runs as a parallel numba kernel.
"""

import json
import logging
import math
from dataclasses import dataclass, asdict, field, fields
from typing import Any, Dict, Optional

import numpy as np
from numba import njit, prange
from PIL import Image

from .color import rgb_to_lab_luminance
from .pyramid import MAX_LEVELS, Pyramid
from .vision import contrast_sensitivity, threshold_vs_intensity, visual_masking

logger = logging.getLogger(__name__)

# Constants
DEFAULT_COLOR_FACTOR = 1.0
DEFAULT_FIELD_OF_VIEW = 45.0
DEFAULT_GAMMA = 2.2
DEFAULT_LUMINANCE = 100.0
DEFAULT_THRESHOLD_PIXELS = 100
BANDS = MAX_LEVELS - 2  # contrast at level i needs levels i + 1 and i + 2
EPSILON = 1e-5
SCOTOPIC_LUMINANCE = 10.0
CSF_PEAK_FREQUENCY = 3.248
CSF_REFERENCE_LUMINANCE = 100.0
FAIL_FAST_ROWS = 16
FAILED_COLOR = (255, 0, 0, 255)
PASSED_COLOR = (0, 0, 0, 255)
VERSION = "1.0.0"


class PerceptualDiffError(Exception):
    """Base class for perceptualdiff errors"""
    pass


class ConfigError(PerceptualDiffError):
    """Configuration related errors"""
    pass


class ImageError(PerceptualDiffError):
    """Unreadable or unusable image data"""
    pass


@dataclass(frozen=True)
class PerceptualDiffConfig:
    """Configuration for a perceptual comparison. Values are used as given."""
    color_factor: float = DEFAULT_COLOR_FACTOR
    field_of_view: float = DEFAULT_FIELD_OF_VIEW
    gamma: float = DEFAULT_GAMMA
    luminance: float = DEFAULT_LUMINANCE
    luminance_only: bool = False
    threshold_pixels: int = DEFAULT_THRESHOLD_PIXELS
    fail_fast: bool = False

    @classmethod
    def from_json(cls, path: str) -> 'PerceptualDiffConfig':
        """Load configuration from JSON file"""
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except Exception as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must hold a JSON object")
        try:
            return cls(**cls._typed(data))
        except TypeError as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e

    @classmethod
    def _typed(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Check JSON values against the field types; ints are accepted for floats"""
        types = {f.name: f.type for f in fields(cls)}
        checked = {}
        for name, value in data.items():
            expected = types.get(name)
            if expected is None:
                # unknown options are rejected by the constructor
                checked[name] = value
                continue
            numeric = isinstance(value, (int, float)) and not isinstance(value, bool)
            if expected is float and numeric:
                value = float(value)
            elif expected is int and isinstance(value, bool):
                raise ConfigError(f"Config option {name} must be int, got {value!r}")
            if not isinstance(value, expected):
                raise ConfigError(f"Config option {name} must be {expected.__name__}, got {value!r}")
            checked[name] = value
        return checked

    def to_json(self, path: str):
        """Save configuration to JSON file"""
        with open(path, 'w') as f:
            json.dump(asdict(self), f, indent=2)

    def validate(self) -> 'PerceptualDiffConfig':
        """Range checks for the user-facing options; the comparator itself never calls this"""
        if not 0.0 <= self.color_factor <= 1.0:
            raise ConfigError(f"Color factor must be within 0.0 to 1.0, got {self.color_factor}")
        if not 0.1 <= self.field_of_view <= 89.9:
            raise ConfigError(f"Field of view must be within 0.1 to 89.9 degrees, got {self.field_of_view}")
        return self

    def dump(self):
        for name, value in asdict(self).items():
            logger.debug(f"{name}: {value}")


@dataclass
class Verdict:
    """Outcome of one comparison"""
    passed: bool
    failed_pixels: int = 0
    exact: bool = True  # False when fail-fast stopped the scan; failed_pixels is then a lower bound
    dimension_match: bool = True
    identical: bool = False

    def __bool__(self) -> bool:
        return self.passed

    def report(self) -> str:
        if not self.dimension_match:
            return "Image dimensions do not match"
        if self.identical:
            return "Images are binary identical"
        count = f"{self.failed_pixels} pixels are different"
        if not self.exact:
            count = "at least " + count
        summary = "Images are perceptually indistinguishable" if self.passed else "Images are visibly different"
        return f"{summary}: {count}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['report'] = self.report()
        return data


@dataclass
class BandParameters:
    """Viewing-geometry dependent values, computed once per comparison"""
    num_one_degree_pixels: float
    pixels_per_degree: float
    adaptation_level: int
    cycles_per_degree: np.ndarray = field(repr=False)
    frequency_response: np.ndarray = field(repr=False)


def compute_band_parameters(width: int, field_of_view: float) -> BandParameters:
    """Spatial frequency of every pyramid level and the level matching one degree of view"""
    num_one_degree_pixels = 2 * math.tan(field_of_view * 0.5 * math.pi / 180) * 180 / math.pi
    pixels_per_degree = width / num_one_degree_pixels

    num_pixels = 1.0
    adaptation_level = 0
    for i in range(MAX_LEVELS):
        adaptation_level = i
        if num_pixels > num_one_degree_pixels:
            break
        num_pixels *= 2

    cycles_per_degree = np.array([0.5 * pixels_per_degree / (2 ** i) for i in range(MAX_LEVELS)])
    csf_max = contrast_sensitivity(CSF_PEAK_FREQUENCY, CSF_REFERENCE_LUMINANCE)
    frequency_response = np.array([
        csf_max / contrast_sensitivity(cycles_per_degree[i], CSF_REFERENCE_LUMINANCE)
        for i in range(BANDS)
    ])
    return BandParameters(num_one_degree_pixels, pixels_per_degree, adaptation_level,
                          cycles_per_degree, frequency_response)


@njit(parallel=True)
def _classify_pixels(levels_a, levels_b, a_a, b_a, a_b, b_b, cycles_per_degree, frequency_response,
                     adaptation_level, color_factor, luminance_only, start, stop, diff_mask, paint):
    """Count perceptually different pixels in [start, stop) and optionally paint the mask"""
    failed = 0
    for index in prange(start, stop):
        contrast = np.empty(BANDS)
        sum_contrast = 0.0
        for i in range(BANDS):
            n1 = abs(levels_a[i, index] - levels_a[i + 1, index])
            n2 = abs(levels_b[i, index] - levels_b[i + 1, index])
            numerator = max(n1, n2)
            d1 = abs(levels_a[i + 2, index])
            d2 = abs(levels_b[i + 2, index])
            denominator = max(max(d1, d2), EPSILON)
            contrast[i] = numerator / denominator
            sum_contrast += contrast[i]
        if sum_contrast < EPSILON:
            sum_contrast = EPSILON

        adapt = 0.5 * (levels_a[adaptation_level, index] + levels_b[adaptation_level, index])
        if adapt < EPSILON:
            adapt = EPSILON

        factor = 0.0
        for i in range(BANDS):
            mask = visual_masking(contrast[i] * contrast_sensitivity(cycles_per_degree[i], adapt))
            factor += contrast[i] * frequency_response[i] * mask / sum_contrast
        factor = min(max(factor, 1.0), 10.0)

        delta = abs(levels_a[0, index] - levels_b[0, index])
        passed = True
        if delta > factor * threshold_vs_intensity(adapt):
            passed = False
        elif not luminance_only:
            # no colour vision in scotopic conditions
            color_scale = color_factor
            if adapt < SCOTOPIC_LUMINANCE:
                color_scale = 0.0
            da = a_a[index] - a_b[index]
            db = b_a[index] - b_b[index]
            delta_e = (da * da + db * db) * color_scale
            if delta_e > factor:
                passed = False

        if not passed:
            failed += 1
        if paint:
            diff_mask[index, 0] = 0 if passed else 255
            diff_mask[index, 1] = 0
            diff_mask[index, 2] = 0
            diff_mask[index, 3] = 255
    return failed


def as_rgb_array(image: Any) -> np.ndarray:
    """Return an (H, W, 3) uint8 view of a PIL image or numpy array (alpha dropped)"""
    if isinstance(image, Image.Image):
        return np.asarray(image.convert('RGB'))
    arr = np.asarray(image)
    if arr.dtype != np.uint8:
        raise ImageError(f"Expected 8-bit samples, got dtype {arr.dtype}")
    if arr.ndim == 2:
        return np.repeat(arr[:, :, None], 3, axis=2)
    if arr.ndim == 3 and arr.shape[2] in (3, 4):
        return arr[:, :, :3]
    raise ImageError(f"Unsupported image array shape {arr.shape}")


def make_diff_mask(width: int, height: int) -> np.ndarray:
    """Allocate an RGBA buffer suitable for PerceptualDiff.compare"""
    return np.zeros((height, width, 4), dtype=np.uint8)


class PerceptualDiff:
    """Comparator implementing Yee's perceptual metric"""

    def __init__(self, config: Optional[PerceptualDiffConfig] = None):
        self.config = config or PerceptualDiffConfig()

    def compare(self, image_a: Any, image_b: Any, diff_mask: Optional[np.ndarray] = None) -> Verdict:
        """
        Compare two images.

        Args:
            image_a: PIL image or uint8 array (H, W), (H, W, 3) or (H, W, 4)
            image_b: same as image_a
            diff_mask: optional (H, W, 4) uint8 array, painted red where pixels
                differ and black elsewhere. When fail-fast stops the scan early,
                pixels after the last scanned row band keep their previous bytes

        Returns:
            Verdict; dimension mismatch yields a failed verdict, not an error
        """
        rgb_a = as_rgb_array(image_a)
        rgb_b = as_rgb_array(image_b)

        if rgb_a.shape != rgb_b.shape:
            logger.debug("Image dimensions do not match")
            return Verdict(passed=False, dimension_match=False)

        height, width = rgb_a.shape[:2]
        if diff_mask is not None:
            self._check_diff_mask(diff_mask, width, height)

        if np.array_equal(rgb_a, rgb_b):
            logger.debug("Images are binary identical")
            if diff_mask is not None:
                diff_mask[...] = PASSED_COLOR
            return Verdict(passed=True, identical=True)

        return self._compare_pixels(rgb_a, rgb_b, diff_mask)

    @staticmethod
    def _check_diff_mask(diff_mask: np.ndarray, width: int, height: int):
        if not isinstance(diff_mask, np.ndarray) or diff_mask.dtype != np.uint8:
            raise ImageError("Difference mask must be a uint8 numpy array")
        if diff_mask.shape != (height, width, 4):
            raise ImageError(f"Difference mask shape {diff_mask.shape} does not match {(height, width, 4)}")
        if not diff_mask.flags.c_contiguous or not diff_mask.flags.writeable:
            raise ImageError("Difference mask must be a writeable C-contiguous array")

    def _compare_pixels(self, rgb_a: np.ndarray, rgb_b: np.ndarray,
                        diff_mask: Optional[np.ndarray] = None) -> Verdict:
        """Full pipeline, without the identical-image shortcut"""
        config = self.config
        height, width = rgb_a.shape[:2]
        dim = width * height

        logger.debug("Converting RGB to XYZ")
        lum_a, a_a, b_a = rgb_to_lab_luminance(rgb_a, config.gamma, config.luminance)
        lum_b, a_b, b_b = rgb_to_lab_luminance(rgb_b, config.gamma, config.luminance)

        logger.debug("Constructing Laplacian pyramids")
        levels_a = Pyramid(lum_a).flat()
        levels_b = Pyramid(lum_b).flat()

        params = compute_band_parameters(width, config.field_of_view)
        logger.debug(f"Performing test: {params}")

        paint = diff_mask is not None
        mask = diff_mask.reshape(dim, 4) if paint else np.empty((0, 4), dtype=np.uint8)
        chroma = (a_a.ravel(), b_a.ravel(), a_b.ravel(), b_b.ravel())

        def scan(start: int, stop: int) -> int:
            return int(_classify_pixels(levels_a, levels_b, *chroma,
                                        params.cycles_per_degree, params.frequency_response,
                                        params.adaptation_level, float(config.color_factor),
                                        bool(config.luminance_only), start, stop, mask, paint))

        exact = True
        if config.fail_fast:
            pixels_failed = 0
            chunk = FAIL_FAST_ROWS * width
            for start, stop in _partitions(dim, chunk):
                if pixels_failed >= config.threshold_pixels:
                    exact = False
                    break
                pixels_failed += scan(start, stop)
        else:
            pixels_failed = scan(0, dim)

        verdict = Verdict(passed=pixels_failed < config.threshold_pixels,
                          failed_pixels=pixels_failed, exact=exact)
        logger.debug(verdict.report())
        return verdict


def _partitions(total: int, chunk: int):
    for start in range(0, total, chunk):
        yield start, min(total, start + chunk)


def compare(image_a: Any, image_b: Any, config: Optional[PerceptualDiffConfig] = None,
            diff_mask: Optional[np.ndarray] = None) -> Verdict:
    """Compare two images with the given (or default) configuration"""
    return PerceptualDiff(config).compare(image_a, image_b, diff_mask)
