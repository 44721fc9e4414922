#!/usr/bin/env python3
"""
Unit tests for colour conversion
"""

import unittest

import numpy as np

from perceptualdiff.color import convert_pixel, rgb_to_lab_luminance, unpack_rgb


class TestUnpack(unittest.TestCase):

    def test_alpha_ignored(self):
        self.assertEqual(unpack_rgb(0x80123456), (0x12, 0x34, 0x56))
        self.assertEqual(unpack_rgb(0x00123456), (0x12, 0x34, 0x56))


class TestConvertPixel(unittest.TestCase):
    """Test single pixel conversion"""

    def test_white(self):
        lum, a, b = convert_pixel((255, 255, 255))
        self.assertAlmostEqual(lum, 100.0, places=9)
        self.assertAlmostEqual(a, 0.0, places=9)
        self.assertAlmostEqual(b, 0.0, places=9)

    def test_black(self):
        lum, a, b = convert_pixel((0, 0, 0))
        self.assertEqual(lum, 0.0)
        self.assertAlmostEqual(a, 0.0, places=9)
        self.assertAlmostEqual(b, 0.0, places=9)

    def test_gray_has_no_chroma(self):
        for v in (1, 40, 128, 200):
            _, a, b = convert_pixel((v, v, v))
            self.assertAlmostEqual(a, 0.0, places=6)
            self.assertAlmostEqual(b, 0.0, places=6)

    def test_white_luminance_scales(self):
        lum, _, _ = convert_pixel((255, 255, 255), luminance=80.0)
        self.assertAlmostEqual(lum, 80.0, places=9)

    def test_gamma_decoding(self):
        """51/255 = 0.2; with gamma 1 the luminance is 20% of white"""
        lum, _, _ = convert_pixel((51, 51, 51), gamma=1.0)
        self.assertAlmostEqual(lum, 20.0, places=6)
        lum_22, _, _ = convert_pixel((51, 51, 51), gamma=2.2)
        self.assertAlmostEqual(lum_22, 100.0 * 0.2 ** 2.2, places=6)

    def test_chroma_signs(self):
        _, a_red, _ = convert_pixel((255, 0, 0))
        _, a_green, _ = convert_pixel((0, 255, 0))
        _, _, b_blue = convert_pixel((0, 0, 255))
        _, _, b_yellow = convert_pixel((255, 255, 0))
        self.assertGreater(a_red, 50.0)
        self.assertLess(a_green, -50.0)
        self.assertLess(b_blue, -50.0)
        self.assertGreater(b_yellow, 50.0)

    def test_packed_matches_tuple(self):
        self.assertEqual(convert_pixel(0xFF00FF00), convert_pixel((0, 255, 0)))


class TestArrayConversion(unittest.TestCase):

    def test_matches_per_pixel(self):
        rng = np.random.default_rng(7)
        rgb = rng.integers(0, 256, (4, 5, 3), dtype=np.uint8)
        lum, a, b = rgb_to_lab_luminance(rgb, 2.2, 100.0)
        self.assertEqual(lum.shape, (4, 5))
        for y in range(4):
            for x in range(5):
                expected = convert_pixel(tuple(int(v) for v in rgb[y, x]))
                self.assertAlmostEqual(lum[y, x], expected[0], places=9)
                self.assertAlmostEqual(a[y, x], expected[1], places=9)
                self.assertAlmostEqual(b[y, x], expected[2], places=9)


if __name__ == '__main__':
    unittest.main(verbosity=2)
