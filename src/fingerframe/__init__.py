from .config import AppConfig, DeviceClass, PipelineConfig, Policy, load_config
from .crop import extract_region, project_box, project_polygon
from .pipeline import CaptureListener, GesturePipeline
from .types import CaptureEvent, Corners, CropRegion, FrameCandidate, GestureState, HandLandmark, HandObservation, TickResult

__all__ = [
    "AppConfig",
    "CaptureEvent",
    "CaptureListener",
    "Corners",
    "CropRegion",
    "DeviceClass",
    "FrameCandidate",
    "GesturePipeline",
    "GestureState",
    "HandLandmark",
    "HandObservation",
    "PipelineConfig",
    "Policy",
    "TickResult",
    "extract_region",
    "load_config",
    "project_box",
    "project_polygon",
]
