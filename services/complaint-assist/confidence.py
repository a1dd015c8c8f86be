"""Confidence tiers and the apply gate for extracted field scores."""

import logging
from enum import Enum

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6
# Below this, the single-field Apply action is disabled
APPLY_THRESHOLD = 0.3


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def clamp_score(score: float) -> float:
    """Clamp a score into [0, 1]; out-of-range input is logged, not trusted."""
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise TypeError(f"confidence score must be a number, got {type(score).__name__}")
    if score != score:  # NaN
        logger.debug("NaN confidence score treated as 0.0")
        return 0.0
    if score < 0.0 or score > 1.0:
        clamped = min(max(float(score), 0.0), 1.0)
        logger.debug("Confidence score %r clamped to %.2f", score, clamped)
        return clamped
    return float(score)


def classify(score: float) -> ConfidenceTier:
    score = clamp_score(score)
    if score >= HIGH_CONFIDENCE:
        return ConfidenceTier.HIGH
    if score >= MEDIUM_CONFIDENCE:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def can_auto_apply(score: float) -> bool:
    """True when a field scored high enough for the single-field Apply action."""
    return clamp_score(score) >= APPLY_THRESHOLD
