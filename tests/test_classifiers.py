"""
Test cases for gesture classifiers with synthetic timelines.
"""
import unittest

from factories import box_corners

from fingerframe.classifiers import (
    ContactClassifier,
    HoldClassifier,
    TwitchClassifier,
    TwitchDetector,
    make_classifier,
)
from fingerframe.config import ContactConfig, DeviceClass, DirectConfig, PipelineConfig, Policy, ProximityConfig
from fingerframe.types import ContactMeasurement, FrameCandidate, GestureState, Pairing


def valid(corners=None):
    return FrameCandidate(valid=True, corners=corners or box_corners(0.2, 0.2, 0.8, 0.8))


def measure(d, threshold=0.05, release_mult=1.4, hands_valid=True):
    contact = ContactMeasurement(
        same_index=d,
        same_thumb=d,
        cross_index_thumb=0.3,
        cross_thumb_index=0.3,
        contact_threshold=threshold,
        release_threshold=threshold * release_mult,
        hands_valid=hands_valid,
    )
    return FrameCandidate(valid=contact.touching_now, contact=contact)


class TestHoldClassifier(unittest.TestCase):

    def setUp(self):
        self.clf = HoldClassifier(ProximityConfig())

    def test_invalid_is_forming(self):
        result = self.clf.update(FrameCandidate.invalid(), None, None, 0.0)
        self.assertEqual(result.state, GestureState.FORMING)
        self.assertFalse(result.qualifying)

    def test_unknown_stability_is_holding(self):
        result = self.clf.update(valid(), None, None, 0.0)
        self.assertEqual(result.state, GestureState.HOLDING)

    def test_dwell(self):
        self.assertEqual(self.clf.update(valid(), None, 0.0, 0.0).state, GestureState.HOLDING)
        self.assertEqual(self.clf.update(valid(), None, 1.0, 0.05).state, GestureState.HOLDING)
        result = self.clf.update(valid(), None, 1.0, 0.1)
        self.assertEqual(result.state, GestureState.READY)
        self.assertTrue(result.qualifying)

    def test_ready_fires_once(self):
        self.clf.update(valid(), None, 0.0, 0.0)
        self.assertTrue(self.clf.update(valid(), None, 0.0, 0.1).qualifying)
        result = self.clf.update(valid(), None, 0.0, 0.2)
        self.assertEqual(result.state, GestureState.READY)
        self.assertFalse(result.qualifying)

    def test_movement_restarts_dwell_and_rearms(self):
        self.clf.update(valid(), None, 0.0, 0.0)
        self.assertTrue(self.clf.update(valid(), None, 0.0, 0.1).qualifying)
        self.assertEqual(self.clf.update(valid(), None, 12.0, 0.2).state, GestureState.HOLDING)
        self.assertEqual(self.clf.update(valid(), None, 0.0, 0.25).state, GestureState.HOLDING)
        self.assertTrue(self.clf.update(valid(), None, 0.0, 0.4).qualifying)

    def test_reports_stability(self):
        self.assertFalse(self.clf.update(valid(), None, 12.0, 0.0).stable)
        self.assertTrue(self.clf.update(valid(), None, 1.0, 0.05).stable)
        self.assertFalse(self.clf.update(FrameCandidate.invalid(), None, None, 0.1).stable)

    def test_release_does_not_rearm(self):
        self.clf.update(valid(), None, 0.0, 0.0)
        self.assertTrue(self.clf.update(valid(), None, 0.0, 0.1).qualifying)
        self.clf.release()
        self.assertEqual(self.clf.update(valid(), None, 0.0, 0.2).state, GestureState.HOLDING)
        result = self.clf.update(valid(), None, 0.0, 0.35)
        self.assertEqual(result.state, GestureState.READY)
        self.assertFalse(result.qualifying)


class TestTwitchDetector(unittest.TestCase):

    def setUp(self):
        self.detector = TwitchDetector(window_s=0.35, down_amp=0.02, up_amp=0.02, inst_down_vel=0.01)

    def run_trace(self, ys, ts):
        fired = []
        prev = ys[0]
        for y, t in zip(ys, ts):
            fired.append(self.detector.update(y, prev, t))
            prev = y
        return fired

    def test_down_then_up_fires_once(self):
        # Steps of 0, +0.03, +0.01, -0.03
        fired = self.run_trace([0.0, 0.03, 0.04, 0.01], [0.0, 0.1, 0.2, 0.3])
        self.assertEqual(fired, [False, False, False, True])
        self.assertEqual(self.detector.phase, TwitchDetector.IDLE)

    def test_too_slow(self):
        fired = self.run_trace([0.0, 0.03, 0.04, 0.01], [0.0, 0.25, 0.5, 0.75])
        self.assertEqual(fired.count(True), 0)

    def test_slow_drift_never_arms(self):
        ys = [0.005 * i for i in range(10)]
        ts = [0.05 * i for i in range(10)]
        self.assertEqual(self.run_trace(ys, ts).count(True), 0)
        self.assertEqual(self.detector.phase, TwitchDetector.IDLE)

    def test_down_without_return(self):
        fired = self.run_trace([0.0, 0.03, 0.04, 0.035], [0.0, 0.1, 0.2, 0.3])
        self.assertEqual(fired.count(True), 0)

    def test_upward_motion_ignored(self):
        fired = self.run_trace([0.1, 0.07, 0.04, 0.07], [0.0, 0.1, 0.2, 0.3])
        self.assertEqual(fired.count(True), 0)


class TestTwitchClassifier(unittest.TestCase):

    def setUp(self):
        self.clf = TwitchClassifier(DirectConfig())

    def tick(self, y, t, is_valid=True):
        corners = box_corners(0.2, y, 0.8, 0.7)
        return self.clf.update(FrameCandidate(valid=is_valid, corners=corners), corners, None, t)

    def test_arm_delay(self):
        for t, y in [(0.0, 0.30), (0.1, 0.30), (0.2, 0.33), (0.3, 0.34), (0.4, 0.31)]:
            result = self.tick(y, t)
            self.assertEqual(result.state, GestureState.HOLDING)
            self.assertFalse(result.qualifying)

    def test_click_after_arming(self):
        for i in range(8):
            self.tick(0.30, round(0.1 * i, 6))
        self.assertEqual(self.tick(0.30, 0.75).state, GestureState.READY)
        self.assertFalse(self.tick(0.33, 0.8).qualifying)
        self.assertFalse(self.tick(0.34, 0.85).qualifying)
        result = self.tick(0.31, 0.9)
        self.assertEqual(result.state, GestureState.READY)
        self.assertTrue(result.qualifying)
        self.assertFalse(self.tick(0.31, 0.95).qualifying)

    def test_invalid_frame_does_not_click(self):
        for i in range(8):
            self.tick(0.30, round(0.1 * i, 6))
        self.tick(0.33, 0.8, is_valid=False)
        self.tick(0.34, 0.85, is_valid=False)
        result = self.tick(0.31, 0.9, is_valid=False)
        self.assertEqual(result.state, GestureState.FORMING)
        self.assertFalse(result.qualifying)

    def test_invalid_frame_during_arm_delay_is_forming(self):
        self.assertEqual(self.tick(0.30, 0.0).state, GestureState.HOLDING)
        result = self.tick(0.30, 0.1, is_valid=False)
        self.assertEqual(result.state, GestureState.FORMING)
        self.assertFalse(result.qualifying)
        self.assertEqual(self.tick(0.30, 0.2).state, GestureState.HOLDING)

    def test_stability_is_reported_not_required(self):
        corners = box_corners(0.2, 0.3, 0.8, 0.7)
        candidate = FrameCandidate(valid=True, corners=corners)
        self.assertTrue(self.clf.update(candidate, corners, 2.0, 0.0).stable)
        for i in range(1, 8):
            self.clf.update(candidate, corners, 2.0, round(0.1 * i, 6))
        shaky = self.clf.update(candidate, corners, 10.0, 0.8)
        self.assertEqual(shaky.state, GestureState.READY)
        self.assertFalse(shaky.stable)
        steady = self.clf.update(candidate, corners, 2.0, 0.85)
        self.assertEqual(steady.state, GestureState.READY)
        self.assertTrue(steady.stable)
        self.assertFalse(self.clf.update(candidate, corners, None, 0.9).stable)

    def test_losing_corners_disarms(self):
        for i in range(8):
            self.tick(0.30, round(0.1 * i, 6))
        self.assertEqual(self.clf.update(FrameCandidate.invalid(), None, None, 0.8).state, GestureState.FORMING)
        self.assertEqual(self.tick(0.30, 0.9).state, GestureState.HOLDING)


class TestContactClassifier(unittest.TestCase):

    def setUp(self):
        self.clf = ContactClassifier(ContactConfig())

    def test_hysteresis(self):
        self.clf.update(measure(0.04), None, None, 0.0)
        self.assertTrue(self.clf.touching)
        # Between contact (0.05) and release (0.07): still touching.
        self.clf.update(measure(0.06), None, None, 0.05)
        self.assertTrue(self.clf.touching)
        self.clf.update(measure(0.08), None, None, 0.1)
        self.assertFalse(self.clf.touching)

    def test_reports_latched_pairing(self):
        self.assertIs(self.clf.update(measure(0.01), None, None, 0.0).pairing, Pairing.SAME)
        result = self.clf.update(measure(0.06), None, None, 0.05)
        self.assertFalse(result.qualifying)
        self.assertIs(result.pairing, Pairing.SAME)
        self.assertIsNone(self.clf.update(measure(0.08), None, None, 0.1).pairing)

    def test_needs_contact_threshold_to_engage(self):
        result = self.clf.update(measure(0.06), None, None, 0.0)
        self.assertFalse(self.clf.touching)
        self.assertEqual(result.state, GestureState.FORMING)

    def test_hold(self):
        self.assertEqual(self.clf.update(measure(0.01), None, None, 0.0).state, GestureState.HOLDING)
        self.assertEqual(self.clf.update(measure(0.01), None, None, 0.1).state, GestureState.HOLDING)
        result = self.clf.update(measure(0.01), None, None, 0.15)
        self.assertEqual(result.state, GestureState.READY)
        self.assertTrue(result.qualifying)
        self.assertTrue(result.touching)
        self.assertAlmostEqual(result.score, 0.2)
        self.assertFalse(self.clf.update(measure(0.01), None, None, 0.2).qualifying)

    def test_coarse_hold_is_longer(self):
        clf = ContactClassifier(ContactConfig(), DeviceClass.COARSE)
        clf.update(measure(0.01), None, None, 0.0)
        self.assertEqual(clf.update(measure(0.01), None, None, 0.15).state, GestureState.HOLDING)
        self.assertTrue(clf.update(measure(0.01), None, None, 0.2).qualifying)

    def test_separation_rearms(self):
        self.clf.update(measure(0.01), None, None, 0.0)
        self.assertTrue(self.clf.update(measure(0.01), None, None, 0.15).qualifying)
        self.clf.update(measure(0.1), None, None, 0.2)
        self.clf.update(measure(0.01), None, None, 0.3)
        self.assertTrue(self.clf.update(measure(0.01), None, None, 0.5).qualifying)

    def test_invalid_hands_reset(self):
        self.clf.update(measure(0.01), None, None, 0.0)
        result = self.clf.update(measure(0.01, hands_valid=False), None, None, 0.1)
        self.assertEqual(result.state, GestureState.FORMING)
        self.assertFalse(self.clf.touching)
        self.assertEqual(self.clf.update(FrameCandidate.invalid(), None, None, 0.2).state, GestureState.FORMING)


class TestMakeClassifier(unittest.TestCase):

    def test_per_policy(self):
        self.assertIsInstance(make_classifier(PipelineConfig(policy=Policy.PROXIMITY)), HoldClassifier)
        self.assertIsInstance(make_classifier(PipelineConfig(policy=Policy.DIRECT)), TwitchClassifier)
        self.assertIsInstance(make_classifier(PipelineConfig(policy=Policy.CONTACT)), ContactClassifier)


if __name__ == "__main__":
    unittest.main()
