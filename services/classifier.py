"""Signal level classification."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple


class SignalStrength(str, Enum):
    """Qualitative buckets for a signal level, strongest first."""

    excellent = "excellent"
    good = "good"
    fair = "fair"
    poor = "poor"
    offline = "offline"


# Inclusive lower bounds in dBm, checked from strongest to weakest.
_THRESHOLDS: Tuple[Tuple[float, SignalStrength], ...] = (
    (-50.0, SignalStrength.excellent),
    (-60.0, SignalStrength.good),
    (-70.0, SignalStrength.fair),
    (-80.0, SignalStrength.poor),
)

_COLOR_CLASSES: Dict[SignalStrength, str] = {
    SignalStrength.excellent: "text-green-600 bg-green-50 border-green-200",
    SignalStrength.good: "text-blue-600 bg-blue-50 border-blue-200",
    SignalStrength.fair: "text-yellow-600 bg-yellow-50 border-yellow-200",
    SignalStrength.poor: "text-orange-600 bg-orange-50 border-orange-200",
    SignalStrength.offline: "text-red-600 bg-red-50 border-red-200",
}

_BADGE_CLASSES: Dict[SignalStrength, str] = {
    SignalStrength.excellent: "bg-green-100 text-green-800",
    SignalStrength.good: "bg-blue-100 text-blue-800",
    SignalStrength.fair: "bg-yellow-100 text-yellow-800",
    SignalStrength.poor: "bg-orange-100 text-orange-800",
    SignalStrength.offline: "bg-red-100 text-red-800",
}


def classify(level: float) -> SignalStrength:
    for lower_bound, strength in _THRESHOLDS:
        if level >= lower_bound:
            return strength
    return SignalStrength.offline


def color_class_for(strength: SignalStrength) -> str:
    return _COLOR_CLASSES[SignalStrength(strength)]


def badge_class_for(strength: SignalStrength) -> str:
    return _BADGE_CLASSES[SignalStrength(strength)]
