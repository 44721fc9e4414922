#!/usr/bin/env python3
"""
Unit tests for the psychophysical models
"""

import math
import unittest

from perceptualdiff.vision import contrast_sensitivity, threshold_vs_intensity, visual_masking


class TestThresholdVsIntensity(unittest.TestCase):
    """Test the piecewise TVI fit"""

    def test_photopic_segment(self):
        """Above log10 = 1.9 the threshold is a fixed fraction of the adaptation luminance"""
        self.assertAlmostEqual(threshold_vs_intensity(100.0), 10 ** (2.0 - 1.255), places=9)

    def test_scotopic_floor(self):
        """Very dark adaptation hits the absolute threshold"""
        self.assertAlmostEqual(threshold_vs_intensity(1e-5), 10 ** -2.86, places=12)
        self.assertAlmostEqual(threshold_vs_intensity(1e-6), threshold_vs_intensity(1e-5), places=12)

    def test_mesopic_segments(self):
        expected = 10 ** (math.pow(0.65, 2.7) - 0.72)
        self.assertAlmostEqual(threshold_vs_intensity(1.0), expected, places=9)
        expected = 10 ** (math.log10(0.1) - 0.395)
        self.assertAlmostEqual(threshold_vs_intensity(0.1), expected, places=9)
        log_a = math.log10(0.001)
        expected = 10 ** (math.pow(0.405 * log_a + 1.6, 2.18) - 2.86)
        self.assertAlmostEqual(threshold_vs_intensity(0.001), expected, places=12)

    def test_grows_with_adaptation(self):
        values = [threshold_vs_intensity(x) for x in (1e-3, 0.1, 10.0, 1000.0)]
        self.assertEqual(values, sorted(values))


class TestContrastSensitivity(unittest.TestCase):
    """Test the Barten CSF"""

    def test_closed_form(self):
        cpd, lum = 3.248, 100.0
        a = 440.0 * (1.0 + 0.7 / lum) ** -0.2
        b = 0.3 * (1.0 + 100.0 / lum) ** 0.15
        expected = a * cpd * math.exp(-b * cpd) * math.sqrt(1.0 + 0.06 * math.exp(b * cpd))
        self.assertAlmostEqual(contrast_sensitivity(cpd, lum), expected, places=9)

    def test_zero_frequency(self):
        self.assertEqual(contrast_sensitivity(0.0, 100.0), 0.0)

    def test_falls_off_at_high_frequency(self):
        peak = contrast_sensitivity(3.248, 100.0)
        self.assertGreater(peak, contrast_sensitivity(30.0, 100.0))
        self.assertGreater(peak, contrast_sensitivity(0.1, 100.0))

    def test_lower_at_low_luminance(self):
        self.assertLess(contrast_sensitivity(3.248, 0.1), contrast_sensitivity(3.248, 100.0))


class TestVisualMasking(unittest.TestCase):
    """Test the Daly masking function"""

    def test_no_contrast_no_masking(self):
        self.assertEqual(visual_masking(0.0), 1.0)

    def test_monotonic(self):
        values = [visual_masking(c) for c in (0.01, 0.1, 1.0, 10.0, 100.0)]
        self.assertEqual(values, sorted(values))
        self.assertGreater(values[-1], values[0])


if __name__ == '__main__':
    unittest.main(verbosity=2)
