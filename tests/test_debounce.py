"""
Tests for the single-flight capture gate.
"""
import unittest

from fingerframe.debounce import CaptureGate


class TestCaptureGate(unittest.TestCase):

    def setUp(self):
        self.gate = CaptureGate(min_interval_s=0.4)

    def test_single_flight(self):
        token = self.gate.try_acquire(0.0)
        self.assertIsNotNone(token)
        self.assertTrue(self.gate.busy)
        self.assertIsNone(self.gate.try_acquire(0.1))
        self.assertIsNone(self.gate.try_acquire(60.0))

    def test_cooldown_from_completion(self):
        token = self.gate.try_acquire(0.0)
        self.assertTrue(self.gate.release(token, 1.0))
        self.assertFalse(self.gate.busy)
        self.assertIsNone(self.gate.try_acquire(1.2))
        self.assertIsNone(self.gate.try_acquire(1.4))
        second = self.gate.try_acquire(1.5)
        self.assertIsNotNone(second)
        self.assertEqual(second.seq, token.seq + 1)

    def test_release_wrong_token(self):
        first = self.gate.try_acquire(0.0)
        self.gate.release(first, 0.5)
        second = self.gate.try_acquire(1.0)
        self.assertFalse(self.gate.release(first, 1.1))
        self.assertTrue(self.gate.busy)
        self.assertTrue(self.gate.release(second, 1.2))

    def test_never_stale_by_default(self):
        self.gate.try_acquire(0.0)
        self.assertFalse(self.gate.is_stale(3600.0))

    def test_stale_token_is_force_released(self):
        gate = CaptureGate(min_interval_s=0.4, stale_after_s=5.0)
        stuck = gate.try_acquire(0.0)
        self.assertIsNone(gate.try_acquire(4.0))
        self.assertTrue(gate.is_stale(5.0))
        with self.assertLogs("fingerframe.debounce", level="WARNING"):
            # Forced release counts as a completion, so cooldown still applies.
            self.assertIsNone(gate.try_acquire(5.0))
        fresh = gate.try_acquire(5.5)
        self.assertIsNotNone(fresh)
        self.assertFalse(gate.release(stuck, 6.0))
        self.assertTrue(gate.release(fresh, 6.0))

    def test_force_release_when_idle(self):
        self.assertIsNone(self.gate.force_release(1.0))

    def test_reset(self):
        token = self.gate.try_acquire(0.0)
        self.gate.release(token, 0.1)
        self.gate.reset()
        self.assertFalse(self.gate.cooling_down(0.2))
        self.assertIsNotNone(self.gate.try_acquire(0.2))


if __name__ == "__main__":
    unittest.main()
