import tempfile
import unittest

import numpy as np

from mandelanim.config import RenderConfig
from mandelanim.escape import BOUNDED, evaluate
from mandelanim.numeric import BigComplex
from mandelanim.orbit import compute_orbit
from mandelanim.renderers.perturbation import band_offsets, pixel_offset, render_escape_grid, render_frame
from mandelanim.schedule import FrameSpec, ZoomSchedule, frame_spec


def _spec(re="-0.5", im="0", magnification=1.0, bits=53, index=0):
    return FrameSpec(
        index=index,
        magnification=magnification,
        center=BigComplex.parse(re, im, bits),
        precision_bits=bits,
    )


class TestPixelOffset(unittest.TestCase):

    def test_center_pixel_is_zero(self):
        self.assertEqual(pixel_offset(32, 32, 64, 64, 1.0), 0j)

    def test_corners_span_magnification(self):
        self.assertEqual(pixel_offset(0, 0, 64, 64, 1.0), complex(-1.0, -1.0))
        self.assertEqual(pixel_offset(0, 0, 64, 64, 0.5), complex(-0.5, -0.5))

    def test_square_pixels_for_wide_frames(self):
        # Shorter side sets the scale: 1920x1080 spans +-1 vertically, wider horizontally.
        left = pixel_offset(540, 0, 1920, 1080, 1.0)
        top = pixel_offset(0, 960, 1920, 1080, 1.0)
        self.assertEqual(top, complex(0.0, -1.0))
        self.assertAlmostEqual(left.real, -1920 / 1080, places=12)

    def test_band_offsets_match_pixel_offset(self):
        band = band_offsets(3, 7, 10, 6, 0.25)
        self.assertEqual(band.shape, (4, 10))
        for row in range(3, 7):
            for col in range(10):
                self.assertEqual(band[row - 3, col], pixel_offset(row, col, 10, 6, 0.25))


class TestRenderFrame(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.config = RenderConfig(width=64, height=64, max_iterations=500, out_dir=self.tmp.name, workers=1)

    def tearDown(self):
        self.tmp.cleanup()

    def test_main_cardioid_scene(self):
        grid = render_escape_grid(_spec(), self.config).values
        self.assertEqual(grid.shape, (64, 64))
        self.assertEqual(grid[32, 32], BOUNDED)
        for row, col in ((0, 0), (0, 63), (63, 0), (63, 63)):
            self.assertNotEqual(grid[row, col], BOUNDED)
            self.assertLess(grid[row, col], 10.0)

    def test_image_is_rgb_of_requested_size(self):
        frame = render_frame(_spec(), self.config)
        self.assertEqual(frame.image.mode, "RGB")
        self.assertEqual(frame.image.size, (64, 64))
        self.assertEqual(frame.image.getpixel((32, 32)), (0, 0, 0))

    def test_deterministic(self):
        a = render_escape_grid(_spec(), self.config).values
        b = render_escape_grid(_spec(), self.config).values
        self.assertTrue(np.array_equal(a, b))

    def test_grid_matches_per_pixel_evaluation(self):
        config = RenderConfig(width=12, height=9, max_iterations=150, out_dir=self.tmp.name, workers=1, band_rows=4)
        spec = _spec(re="-0.75", im="0.1", magnification=0.3)
        grid = render_escape_grid(spec, config).values
        orbit = compute_orbit(spec.center, 150, spec.precision_bits)
        for row in range(9):
            for col in range(12):
                expected = evaluate(pixel_offset(row, col, 12, 9, 0.3), orbit, 150).escape_value
                self.assertAlmostEqual(grid[row, col], expected, delta=1e-9)

    def test_process_pool_matches_serial(self):
        config = RenderConfig(width=24, height=20, max_iterations=200, out_dir=self.tmp.name, workers=1, band_rows=3)
        pooled = RenderConfig(width=24, height=20, max_iterations=200, out_dir=self.tmp.name, workers=2, band_rows=3)
        spec = frame_spec(ZoomSchedule(1.0, 1e-4, 5), 1)
        serial = render_escape_grid(spec, config)
        parallel = render_escape_grid(spec, pooled)
        self.assertTrue(np.array_equal(serial.values, parallel.values))
        self.assertEqual(serial.glitched, parallel.glitched)


if __name__ == "__main__":
    unittest.main()
