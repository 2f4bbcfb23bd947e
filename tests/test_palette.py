import unittest

import numpy as np

from mandelanim.escape import BOUNDED
from mandelanim.palette import DEFAULT_PALETTE, Palette


class TestPalette(unittest.TestCase):

    def test_bounded_maps_to_background(self):
        self.assertEqual(DEFAULT_PALETTE.color_for(BOUNDED), (0, 0, 0))
        white_bg = Palette(background=(255, 255, 255))
        self.assertEqual(white_bg.color_for(BOUNDED), (255, 255, 255))

    def test_escaping_values_are_not_background(self):
        palette = DEFAULT_PALETTE.for_iterations(500)
        for value in (0.0, 3.5, 250.0, 499.0):
            self.assertNotEqual(palette.color_for(value), (0, 0, 0))

    def test_continuity_for_small_steps(self):
        palette = DEFAULT_PALETTE.for_iterations(500)
        values = np.arange(0.0, 600.0, 0.01)
        a = palette.colorize(values).astype(np.int32)
        b = palette.colorize(values + 1e-6).astype(np.int32)
        self.assertLessEqual(int(np.abs(a - b).max()), 2)
        # Neighbouring samples 0.01 apart never jump either.
        self.assertLessEqual(int(np.abs(np.diff(a, axis=0)).max()), 4)

    def test_colorize_grid_shape(self):
        grid = np.array([[BOUNDED, 1.0], [2.0, BOUNDED]])
        rgb = DEFAULT_PALETTE.colorize(grid)
        self.assertEqual(rgb.shape, (2, 2, 3))
        self.assertEqual(rgb.dtype, np.uint8)
        self.assertEqual(tuple(rgb[0, 0]), (0, 0, 0))
        self.assertEqual(tuple(rgb[1, 1]), (0, 0, 0))
        self.assertEqual(tuple(rgb[0, 1]), DEFAULT_PALETTE.color_for(1.0))

    def test_is_pure(self):
        self.assertEqual(DEFAULT_PALETTE.color_for(42.125), DEFAULT_PALETTE.color_for(42.125))


if __name__ == "__main__":
    unittest.main()
