import unittest

from mandelanim.numeric import BigComplex
from mandelanim.orbit import compute_orbit


class TestReferenceOrbit(unittest.TestCase):

    def test_origin_orbit_stays_at_zero(self):
        orbit = compute_orbit(BigComplex.parse("0", "0", 64), 1000)
        self.assertEqual(len(orbit), 1001)
        self.assertEqual(orbit.max_iterations_computed, 1000)
        self.assertFalse(orbit.escaped)
        self.assertTrue(all(z == 0j for z in orbit.fast))

    def test_matches_standard_iteration(self):
        c = complex(-0.75, 0.1)
        orbit = compute_orbit(BigComplex.parse("-0.75", "0.1", 53), 20)
        z = 0j
        for n in range(21):
            self.assertAlmostEqual(orbit.fast[n], z, delta=1e-12)
            z = z * z + c

    def test_period_two_point(self):
        orbit = compute_orbit(BigComplex.parse("-1", "0", 64), 6)
        self.assertEqual(list(orbit.fast), [0j, -1 + 0j, 0j, -1 + 0j, 0j, -1 + 0j, 0j])

    def test_escaping_center_gives_short_orbit(self):
        orbit = compute_orbit(BigComplex.parse("2", "2", 64), 1000)
        self.assertTrue(orbit.escaped)
        self.assertLess(orbit.max_iterations_computed, 1000)
        self.assertEqual(orbit.fast[1], complex(2, 2))
        self.assertEqual(orbit.fast[2], complex(2, 10))
        self.assertGreater(abs(orbit.fast[-1]), 1e10)

    def test_precision_override(self):
        orbit = compute_orbit(BigComplex.parse("-0.5", "0", 64), 10, precision_bits=128)
        self.assertEqual(orbit.precision_bits, 128)
        self.assertEqual(orbit.center.bits, 128)
        self.assertTrue(all(p.bits == 128 for p in orbit.points))

    def test_rejects_empty_budget(self):
        with self.assertRaises(ValueError):
            compute_orbit(BigComplex.parse("0", "0", 64), 0)


if __name__ == "__main__":
    unittest.main()
