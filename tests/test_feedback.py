"""
Tests for the capture feedback listener and shutter click synthesis.
"""
import unittest

import numpy as np

try:
    from fingerframe.feedback import CaptureFeedback, shutter_click
except OSError as exc:  # sounddevice raises OSError when PortAudio is missing
    raise unittest.SkipTest(f"sounddevice unavailable: {exc}")

from fingerframe.pipeline import CaptureListener


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeSound:
    def __init__(self):
        self.triggered = 0

    def trigger(self):
        self.triggered += 1


class TestShutterClick(unittest.TestCase):

    def test_normalized(self):
        click = shutter_click(44100)
        self.assertEqual(click.dtype, np.float32)
        self.assertEqual(click.size, int(44100 * 0.09))
        self.assertAlmostEqual(float(np.max(np.abs(click))), 1.0, places=5)

    def test_decays(self):
        click = shutter_click(8000, duration_s=0.1)
        head = float(np.abs(click[:80]).mean())
        tail = float(np.abs(click[-80:]).mean())
        self.assertGreater(head, tail * 10)


class TestCaptureFeedback(unittest.TestCase):

    def test_is_a_listener(self):
        self.assertIsInstance(CaptureFeedback(), CaptureListener)

    def test_flash_and_counts(self):
        clock = FakeClock(10.0)
        sound = FakeSound()
        feedback = CaptureFeedback(sound=sound, flash_s=0.1, clock=clock)
        self.assertEqual(feedback.flash_strength(), 0.0)

        feedback.capture_started(event=None)
        self.assertEqual(sound.triggered, 1)
        self.assertAlmostEqual(feedback.flash_strength(), 0.8)
        clock.now = 10.05
        self.assertAlmostEqual(feedback.flash_strength(), 0.4)
        clock.now = 10.2
        self.assertEqual(feedback.flash_strength(), 0.0)

        feedback.capture_finished(None, True)
        feedback.capture_finished(None, False)
        self.assertEqual((feedback.captures, feedback.failures), (1, 1))


if __name__ == "__main__":
    unittest.main()
