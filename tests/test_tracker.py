import math
import queue
import threading
import unittest

from cadence_tracker import CadenceSpeedTracker, MotionSample, PositionFix, TrackerConfig

STEP = 0.25


def sample(i, ax=0.0, ay=0.0, az=0.0):
    return MotionSample(ax, ay, az, 0.0, 0.0, 0.0, i * STEP)


def quick_config(**overrides):
    # Calibration window closes on the third sample (t=0.5)
    settings = {'recalibration_interval': 1000.0, 'calibration_window': 0.5}
    settings.update(overrides)
    return TrackerConfig.from_dict(settings)


class TrackerTestCase(unittest.TestCase):
    def make_tracker(self, **overrides):
        tracker = CadenceSpeedTracker(quick_config(**overrides))
        for i in range(3):
            self.assertIsNone(tracker.process_motion(sample(i)))
        return tracker


class TestCalibrationPhase(TrackerTestCase):
    def test_samples_withheld_until_bias_ready(self):
        tracker = CadenceSpeedTracker(quick_config())
        self.assertIsNone(tracker.process_motion(sample(0)))
        self.assertTrue(tracker.get_state()['is_calibrating'])
        self.assertIsNone(tracker.process_motion(sample(1)))
        self.assertIsNone(tracker.process_motion(sample(2)))

        output = tracker.process_motion(sample(3))
        self.assertIsNotNone(output)
        state = tracker.get_state()
        self.assertEqual(state['samples_received'], 4)
        self.assertEqual(state['samples_withheld'], 3)
        self.assertTrue(state['bias'].valid)

    def test_bias_removed_from_stream(self):
        tracker = CadenceSpeedTracker(quick_config())
        for i in range(3):
            tracker.process_motion(sample(i, ax=0.05))
        output = tracker.process_motion(sample(3, ax=0.05))
        self.assertAlmostEqual(output.acceleration, 0.0)
        self.assertAlmostEqual(output.confidence, 0.0)


class TestSpeedFusion(TrackerTestCase):
    def test_fix_applied_and_published(self):
        tracker = self.make_tracker()
        self.assertTrue(tracker.process_fix(PositionFix(5.0, 5.0, 0.5)))

        state = tracker.get_state()
        self.assertAlmostEqual(state['speed'], 2.5)
        self.assertEqual(state['fixes_applied'], 1)
        self.assertEqual(state['last_gps_time'], 0.5)

    def test_bad_fix_discarded(self):
        tracker = self.make_tracker()
        self.assertFalse(tracker.process_fix(PositionFix(5.0, 500.0, 0.5)))
        self.assertEqual(tracker.get_state()['fixes_discarded'], 1)
        self.assertEqual(tracker.get_state()['speed'], 0.0)

    def test_acceleration_integrates_in_meters_per_second(self):
        tracker = self.make_tracker()
        output = tracker.process_motion(sample(3, ax=0.2))
        # 0.2 g for one step, then damped at full confidence (factor 1.0)
        self.assertAlmostEqual(output.confidence, 1.0)
        self.assertAlmostEqual(output.speed, 0.2 * 9.81 * STEP)

    def test_accelerometer_toggle(self):
        tracker = self.make_tracker(use_accelerometer=False)
        output = tracker.process_motion(sample(3, ax=0.2))
        self.assertEqual(output.speed, 0.0)

    def test_gps_toggle(self):
        tracker = self.make_tracker(use_gps=False)
        self.assertFalse(tracker.process_fix(PositionFix(5.0, 5.0, 0.5)))
        self.assertEqual(tracker.get_state()['fixes_applied'], 0)

    def test_speed_never_negative(self):
        tracker = self.make_tracker()
        tracker.process_fix(PositionFix(1.0, 5.0, 0.5))
        for i in range(3, 40):
            output = tracker.process_motion(sample(i, ax=-0.3, ay=-0.3))
            self.assertGreaterEqual(output.speed, 0.0)


class TestForcedStop(TrackerTestCase):
    def test_stationary_rider_forced_to_zero(self):
        tracker = self.make_tracker()
        tracker.process_fix(PositionFix(5.0, 5.0, 0.5))

        outputs = [tracker.process_motion(sample(i)) for i in range(3, 24)]
        # Low confidence from t=0.75; duration reached at t=5.75 (i=23)
        for output in outputs[:-1]:
            self.assertFalse(output.forced_stop)
            self.assertGreater(output.speed, 0.0)
        self.assertLess(outputs[-2].speed, outputs[0].speed)

        self.assertTrue(outputs[-1].forced_stop)
        self.assertEqual(outputs[-1].speed, 0.0)
        self.assertEqual(tracker.filter.estimated_speed, 0.0)

    def test_motion_interrupts_stop_timer(self):
        tracker = self.make_tracker()
        tracker.process_fix(PositionFix(5.0, 5.0, 0.5))

        for i in range(3, 24):
            ax = 0.1 if i == 12 else 0.0
            output = tracker.process_motion(sample(i, ax=ax))
            self.assertFalse(output.forced_stop)


class TestCadenceAndRecords(TrackerTestCase):
    def test_cadence_follows_gear(self):
        tracker = self.make_tracker(gear_ratios=["1.0", "1.5", "2.0"])
        tracker.process_fix(PositionFix(5.0, 5.0, 0.5))
        self.assertEqual(tracker.get_state()['cadence'], 0.0)

        tracker.set_ride_context(gear=3)
        state = tracker.get_state()
        self.assertAlmostEqual(state['cadence'], (state['speed'] / 2.1) * 2.0 * 60.0)

        tracker.set_ride_context(gear=7)
        self.assertIsNone(tracker.get_state()['cadence'])

    def test_records_emitted_while_recording(self):
        records = queue.Queue()
        tracker = CadenceSpeedTracker(quick_config(gear_ratios=["1.0"]), record_queue=records)
        for i in range(3):
            tracker.process_motion(sample(i))

        tracker.set_ride_context(gear=2, terrain="Gravel", is_standing=True)
        tracker.process_fix(PositionFix(4.0, 5.0, 0.5, latitude=47.6, longitude=-122.3))

        self.assertIsNone(tracker.process_motion(sample(3)).record)
        self.assertTrue(records.empty())

        tracker.recording = True
        output = tracker.process_motion(sample(4, ax=0.01))
        record = records.get_nowait()

        self.assertIs(output.record, record)
        self.assertIsNone(output.cadence)
        self.assertEqual(record.cadence, 0.0)
        self.assertEqual(record.gear, 2)
        self.assertEqual(record.terrain, "Gravel")
        self.assertTrue(record.is_standing)
        self.assertEqual(record.latitude, 47.6)
        self.assertAlmostEqual(record.sensor_data.acceleration_x, 0.01)
        self.assertEqual(record.to_dict()['terrain'], "Gravel")

    def test_full_queue_drops_records(self):
        records = queue.Queue(maxsize=1)
        tracker = CadenceSpeedTracker(quick_config(), record_queue=records)
        tracker.recording = True
        for i in range(6):
            tracker.process_motion(sample(i))

        self.assertEqual(records.qsize(), 1)
        self.assertEqual(tracker.get_state()['records_dropped'], 2)


class TestSettingsAndReset(TrackerTestCase):
    def test_apply_settings_keeps_speed(self):
        tracker = self.make_tracker()
        tracker.process_fix(PositionFix(5.0, 5.0, 0.5))
        tracker.set_ride_context(gear=1)

        tracker.apply_settings({'gear_ratios': ["38/16"], 'wheel_diameter': 0.7})
        state = tracker.get_state()

        self.assertAlmostEqual(state['speed'], 2.5)
        self.assertAlmostEqual(state['cadence'], 2.5 / (math.pi * 0.7) * (38 / 16) * 60.0)

    def test_apply_settings_retunes_filter(self):
        tracker = self.make_tracker()
        tracker.apply_settings({'gps_base_noise': 2.0, 'low_confidence_duration': 1.0})
        self.assertAlmostEqual(tracker.filter.measurement_noise(5.0), 2.0)
        self.assertEqual(tracker.decay.duration, 1.0)

    def test_reset_starts_new_session(self):
        tracker = self.make_tracker()
        tracker.process_fix(PositionFix(5.0, 5.0, 0.5))
        tracker.reset()

        state = tracker.get_state()
        self.assertEqual(state['speed'], 0.0)
        self.assertEqual(state['filter'].P, 1.0)
        self.assertIsNone(state['last_gps_time'])
        self.assertFalse(state['bias'].valid)
        self.assertIsNone(tracker.process_motion(sample(10)))

    def test_reset_speed(self):
        tracker = self.make_tracker()
        tracker.process_fix(PositionFix(5.0, 5.0, 0.5))
        tracker.reset_speed()
        self.assertEqual(tracker.get_state()['speed'], 0.0)
        self.assertEqual(tracker.get_state()['fixes_applied'], 1)


class TestConcurrentProducers(TrackerTestCase):
    def test_motion_and_fix_threads(self):
        tracker = self.make_tracker(gear_ratios=["1.0", "2.0"])
        tracker.set_ride_context(gear=2)
        errors = []

        def motion_producer():
            try:
                for i in range(3, 2003):
                    tracker.process_motion(sample(i, ax=0.05 * (i % 3)))
            except Exception as e:
                errors.append(e)

        def fix_producer():
            try:
                for i in range(200):
                    tracker.process_fix(PositionFix(4.0 + (i % 5) * 0.1, 5.0, 1.0 + i * 2.5))
                    tracker.get_state()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=motion_producer), threading.Thread(target=fix_producer)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        self.assertEqual(errors, [])
        state = tracker.get_state()
        self.assertEqual(state['samples_received'], 2003)
        self.assertEqual(state['fixes_applied'], 200)
        self.assertGreaterEqual(state['speed'], 0.0)
        self.assertTrue(math.isfinite(state['filter'].P))


if __name__ == '__main__':
    unittest.main()
