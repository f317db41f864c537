from __future__ import annotations

from typing import Dict

from .config import Policy
from .types import GestureState

_COMMON: Dict[GestureState, str] = {
    GestureState.NO_HANDS: "Hands up!",
    GestureState.ONE_HAND: "Other hand up as well",
    GestureState.CAPTURING: "Capturing...",
}

_MESSAGES: Dict[Policy, Dict[GestureState, str]] = {
    Policy.PROXIMITY: {
        GestureState.FORMING: "Contact your fingertips to frame and capture",
        GestureState.HOLDING: "Hold steady",
        GestureState.READY: "Hold steady",
    },
    Policy.DIRECT: {
        GestureState.NO_HANDS: "Hands up like you're holding a camera",
        GestureState.FORMING: "Widen your frame",
        GestureState.HOLDING: "Ready...",
        GestureState.READY: 'Now "click"',
    },
    Policy.CONTACT: {
        GestureState.FORMING: "Touch tips to capture",
        GestureState.HOLDING: "Keep touching",
        GestureState.READY: "Keep touching",
    },
}


def status_message(policy: Policy, state: GestureState) -> str:
    """Human readable hint for the current gesture state."""
    return _MESSAGES[policy].get(state) or _COMMON[state]
