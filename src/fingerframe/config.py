"""
Configuration for the finger-frame camera.

Every value here is read once at start-up. ``GesturePipeline`` keeps its own
copy, so editing a config object after the pipeline exists has no effect.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar, Union

import yaml


class Policy(str, Enum):
    """Recognition policy: how a frame is matched and what triggers capture."""

    PROXIMITY = "proximity"  # fingertips meet at two corners, hold still to capture
    DIRECT = "direct"  # frame drawn through the four tips, index "click" to capture
    CONTACT = "contact"  # adaptive fingertip contact, touch and hold to capture


class DeviceClass(str, Enum):
    FINE = "fine"  # mouse / trackpad class devices
    COARSE = "coarse"  # phones and tablets


@dataclass
class ProximityConfig:
    contact_threshold: float = 0.08
    min_size: float = 0.04
    history_size: int = 3
    stable_px: float = 6.0
    dwell_s: float = 0.1


@dataclass
class DirectConfig:
    min_size: float = 0.025
    history_size: int = 2
    stable_px: float = 8.0
    twitch_window_s: float = 0.35
    down_amp: float = 0.02
    up_amp: float = 0.02
    inst_down_vel: float = 0.01
    arm_delay_s: float = 0.6


@dataclass
class ContactConfig:
    scale: float = 0.18  # fraction of the average index-to-thumb span
    min_threshold: float = 0.005
    max_threshold: float = 0.05
    min_span: float = 0.05
    hold_s: float = 0.15
    coarse_hold_extra_s: float = 0.02
    release_mult: float = 1.4
    coarse_boost: float = 3.5
    jitter_alpha: float = 0.35
    jitter_gain: float = 2.0
    history_size: int = 2


@dataclass
class DebounceConfig:
    min_interval_s: float = 0.4
    stale_after_s: Optional[float] = 10.0  # None: never force-release


@dataclass
class PipelineConfig:
    policy: Policy = Policy.PROXIMITY
    device: DeviceClass = DeviceClass.FINE
    proximity: ProximityConfig = field(default_factory=ProximityConfig)
    direct: DirectConfig = field(default_factory=DirectConfig)
    contact: ContactConfig = field(default_factory=ContactConfig)
    debounce: DebounceConfig = field(default_factory=DebounceConfig)

    @property
    def history_size(self) -> int:
        if self.policy is Policy.PROXIMITY:
            return self.proximity.history_size
        if self.policy is Policy.DIRECT:
            return self.direct.history_size
        return self.contact.history_size

    @property
    def clears_history_on_gap(self) -> bool:
        # Contact mode rides out single-frame detection drops.
        return self.policy is not Policy.CONTACT

    def validate(self) -> None:
        self.policy = Policy(self.policy)
        self.device = DeviceClass(self.device)

        for name in ("proximity", "direct", "contact"):
            size = getattr(self, name).history_size
            if int(size) < 2:
                raise ValueError(f"{name}.history_size must be at least 2, got {size}")

        positive = {
            "proximity.contact_threshold": self.proximity.contact_threshold,
            "proximity.min_size": self.proximity.min_size,
            "proximity.stable_px": self.proximity.stable_px,
            "direct.min_size": self.direct.min_size,
            "direct.stable_px": self.direct.stable_px,
            "direct.twitch_window_s": self.direct.twitch_window_s,
            "direct.down_amp": self.direct.down_amp,
            "direct.up_amp": self.direct.up_amp,
            "direct.inst_down_vel": self.direct.inst_down_vel,
            "contact.scale": self.contact.scale,
            "contact.min_threshold": self.contact.min_threshold,
            "contact.max_threshold": self.contact.max_threshold,
            "contact.coarse_boost": self.contact.coarse_boost,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        if self.contact.min_threshold > self.contact.max_threshold:
            raise ValueError("contact.min_threshold must not exceed contact.max_threshold")
        if self.contact.release_mult < 1.0:
            raise ValueError(f"contact.release_mult must be >= 1.0, got {self.contact.release_mult}")
        if not (0.0 <= self.contact.jitter_alpha <= 1.0):
            raise ValueError(f"contact.jitter_alpha must be in [0, 1], got {self.contact.jitter_alpha}")
        if self.debounce.min_interval_s < 0:
            raise ValueError("debounce.min_interval_s must not be negative")
        if self.debounce.stale_after_s is not None and self.debounce.stale_after_s <= 0:
            raise ValueError("debounce.stale_after_s must be positive or null")


@dataclass
class CameraConfig:
    index: int = 0
    width: int = 1280
    height: int = 720
    mirror: bool = True


@dataclass
class DetectorConfig:
    max_num_hands: int = 2
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    model_path: str = "models/hand_landmarker.task"


@dataclass
class OutputConfig:
    directory: str = "captures"
    image_format: str = "png"


@dataclass
class AppConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to a YAML config file. If None, the built-in defaults are returned.

    Returns:
        Configuration object; keys missing from the file keep their defaults.
    """
    if path is None:
        return AppConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    return config_from_dict(data)


def config_from_dict(data: Dict[str, Any]) -> AppConfig:
    """Convert a (possibly partial) dictionary to a validated configuration object."""
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping, got {type(data).__name__}")
    cfg = _build(AppConfig, data, "config")
    cfg.pipeline.validate()
    return cfg


_T = TypeVar("_T")

_ENUMS: Dict[str, Type[Enum]] = {"policy": Policy, "device": DeviceClass}


def _build(cls: Type[_T], data: Dict[str, Any], where: str) -> _T:
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ValueError(f"Unknown key(s) in {where}: {', '.join(unknown)}")

    obj = cls()
    for name, value in data.items():
        current = getattr(obj, name)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ValueError(f"{where}.{name} must be a mapping")
            value = _build(type(current), value, f"{where}.{name}")
        elif name in _ENUMS:
            try:
                value = _ENUMS[name](value)
            except ValueError:
                choices = ", ".join(e.value for e in _ENUMS[name])
                raise ValueError(f"{where}.{name} must be one of: {choices}; got {value!r}") from None
        setattr(obj, name, value)
    return obj
