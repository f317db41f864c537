"""
Tests for background export and the gate handoff back to the pipeline.
"""
import os
import tempfile
import unittest

import cv2
import numpy as np

from factories import criss_cross_hands, times, touching_hands

from fingerframe.config import PipelineConfig, Policy
from fingerframe.export import CaptureWorker, ImageExporter
from fingerframe.pipeline import GesturePipeline

FRAME = (1000, 500)


def captured(pipeline):
    hands = criss_cross_hands()
    for t in times(0.0, 0.04, 6):
        result = pipeline.tick(hands, t, FRAME)
    return result.capture


class TestCaptureWorker(unittest.TestCase):

    def setUp(self):
        self.pipeline = GesturePipeline(PipelineConfig(policy=Policy.PROXIMITY))
        self.frame = np.zeros((FRAME[1], FRAME[0], 3), dtype=np.uint8)

    def test_success_releases_gate(self):
        event = captured(self.pipeline)
        worker = CaptureWorker(self.pipeline, lambda ev, frame: frame.shape, clock=lambda: 1.0)
        worker.submit(event, self.frame)
        outcomes = worker.close(wait=True)
        self.assertEqual(len(outcomes), 1)
        self.assertTrue(outcomes[0].ok)
        self.assertEqual(outcomes[0].result, (500, 1000, 3))
        self.assertFalse(self.pipeline.capturing)
        self.assertEqual(worker.pending, 0)

    def test_failure_releases_gate(self):
        def explode(ev, frame):
            raise OSError("disk full")

        event = captured(self.pipeline)
        worker = CaptureWorker(self.pipeline, explode, clock=lambda: 1.0)
        worker.submit(event, self.frame)
        with self.assertLogs("fingerframe.export", level="ERROR"):
            outcomes = worker.close(wait=True)
        self.assertFalse(outcomes[0].ok)
        self.assertIsInstance(outcomes[0].error, OSError)
        self.assertFalse(self.pipeline.capturing)

    def test_export_sees_a_copy(self):
        seen = []
        event = captured(self.pipeline)
        with CaptureWorker(self.pipeline, lambda ev, frame: seen.append(frame)) as worker:
            worker.submit(event, self.frame)
        self.assertIsNot(seen[0], self.frame)


class TestImageExporter(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def test_writes_cropped_image(self):
        pipeline = GesturePipeline(PipelineConfig(policy=Policy.PROXIMITY))
        event = captured(pipeline)
        frame = np.full((FRAME[1], FRAME[0], 3), 90, dtype=np.uint8)
        out_dir = os.path.join(self.tmp.name, "captures")

        path = ImageExporter(out_dir, "png")(event, frame)

        self.assertTrue(os.path.exists(path))
        self.assertTrue(path.endswith("-0001.png"))
        image = cv2.imread(path)
        self.assertEqual(image.shape, (200, 380, 3))

    def test_polygon_to_jpeg_drops_alpha(self):
        pipeline = GesturePipeline(PipelineConfig(policy=Policy.CONTACT))
        hands = touching_hands(0.01)
        event = None
        for t in times(0.0, 0.05, 4):
            event = pipeline.tick(hands, t, FRAME).capture or event
        frame = np.full((FRAME[1], FRAME[0], 3), 90, dtype=np.uint8)

        path = ImageExporter(self.tmp.name, ".JPG")(event, frame)

        self.assertTrue(path.endswith(".jpg"))
        self.assertEqual(cv2.imread(path, cv2.IMREAD_UNCHANGED).ndim, 3)


if __name__ == "__main__":
    unittest.main()
