import math
import unittest

from cadence_tracker.cadence import (
    estimate_cadence,
    parse_gear_ratio,
    parse_gear_ratios,
    wheel_circumference_from_diameter,
)

RATIOS = ["1.0", "1.5", "2.0"]


class TestEstimateCadence(unittest.TestCase):
    def test_cadence_from_speed_and_gear(self):
        cadence = estimate_cadence(3.0, 3, RATIOS, 2.1)
        self.assertAlmostEqual(cadence, (3.0 / 2.1) * 2.0 * 60.0)
        self.assertAlmostEqual(cadence, 171.43, places=2)

    def test_freewheeling_is_zero(self):
        self.assertEqual(estimate_cadence(8.0, 0, RATIOS, 2.1), 0.0)
        self.assertEqual(estimate_cadence(8.0, 0, [], 0.0), 0.0)

    def test_gear_given_as_string(self):
        self.assertEqual(estimate_cadence(8.0, "0", RATIOS, 2.1), 0.0)
        self.assertAlmostEqual(estimate_cadence(3.0, "3", RATIOS, 2.1), 171.43, places=2)
        self.assertIsNone(estimate_cadence(3.0, "third", RATIOS, 2.1))
        self.assertIsNone(estimate_cadence(3.0, None, RATIOS, 2.1))
        self.assertIsNone(estimate_cadence(3.0, float('inf'), RATIOS, 2.1))

    def test_gear_out_of_range_is_unavailable(self):
        self.assertIsNone(estimate_cadence(3.0, 4, RATIOS, 2.1))
        self.assertIsNone(estimate_cadence(3.0, -1, RATIOS, 2.1))
        self.assertIsNone(estimate_cadence(3.0, 1, [], 2.1))

    def test_unparseable_ratio_is_unavailable(self):
        ratios = ["abc", "1.5"]
        self.assertIsNone(estimate_cadence(3.0, 1, ratios, 2.1))
        self.assertAlmostEqual(estimate_cadence(2.1, 2, ratios, 2.1), 90.0)

    def test_bad_wheel_circumference_is_unavailable(self):
        self.assertIsNone(estimate_cadence(3.0, 1, RATIOS, 0.0))
        self.assertIsNone(estimate_cadence(3.0, 1, RATIOS, -2.1))
        self.assertIsNone(estimate_cadence(3.0, 1, RATIOS, float('nan')))

    def test_stationary_and_negative_speed(self):
        self.assertEqual(estimate_cadence(0.0, 2, RATIOS, 2.1), 0.0)
        self.assertEqual(estimate_cadence(-1.0, 2, RATIOS, 2.1), 0.0)

    def test_chainring_cog_ratio(self):
        self.assertAlmostEqual(estimate_cadence(2.1, 1, ["38/16"], 2.1), 60.0 * 38 / 16)


class TestGearRatioParsing(unittest.TestCase):
    def test_valid_entries(self):
        self.assertEqual(parse_gear_ratio("1.5"), 1.5)
        self.assertEqual(parse_gear_ratio(" 2 "), 2.0)
        self.assertEqual(parse_gear_ratio(3), 3.0)
        self.assertAlmostEqual(parse_gear_ratio("38/16"), 2.375)

    def test_invalid_entries(self):
        for entry in ("abc", "", "38/0", "0", "-1.5", "nan", "inf", None, True, [1.0]):
            with self.subTest(entry=entry):
                self.assertIsNone(parse_gear_ratio(entry))

    def test_invalid_entries_keep_their_slot(self):
        self.assertEqual(parse_gear_ratios(["1.0", "x", "2.0"]), [1.0, None, 2.0])
        self.assertEqual(parse_gear_ratios(None), [])


class TestWheelCircumference(unittest.TestCase):
    def test_from_diameter(self):
        self.assertAlmostEqual(wheel_circumference_from_diameter(0.7), math.pi * 0.7)
        self.assertIsNone(wheel_circumference_from_diameter(0))
        self.assertIsNone(wheel_circumference_from_diameter("wide"))


if __name__ == '__main__':
    unittest.main()
