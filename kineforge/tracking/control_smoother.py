"""
Exponential smoothing of control values.

    next = previous + (raw - previous) * alpha

Each tick the remaining error shrinks by (1 - alpha), so a constant input
is approached monotonically with no overshoot.

Channel alphas:
- tilt/lift: moderate
- jaw: slightly lower (face landmarks are noisier)
- pinch: high while a hand is tracked; markedly lower when it is not,
  and the target is then 0 so stale raw values are ignored
- presence: own alpha so a single dropped detection does not flicker
"""

from __future__ import annotations

import math

from kineforge.core.config import SmoothingConfig
from kineforge.core.contracts import ControlValues


DEFAULT_SMOOTHING = SmoothingConfig()


def ease(previous: float, target: float, alpha: float) -> float:
    return previous + (target - previous) * alpha


def smooth(
    previous: ControlValues,
    raw: ControlValues,
    hand_tracked: bool,
    config: SmoothingConfig = DEFAULT_SMOOTHING,
) -> ControlValues:
    """
    One smoothing step over explicit previous state.

    Args:
        previous: Last smoothed control values
        raw: Unsmoothed control values for this frame
        hand_tracked: Whether a hand was detected this frame
        config: Channel alphas

    Returns:
        New smoothed control values (inputs are not mutated)
    """
    if hand_tracked:
        pinch_target, pinch_alpha = raw.pinch, config.pinch_tracked_alpha
    else:
        pinch_target, pinch_alpha = 0.0, config.pinch_untracked_alpha

    return ControlValues(
        tilt=ease(previous.tilt, raw.tilt, config.tilt_lift_alpha),
        lift=ease(previous.lift, raw.lift, config.tilt_lift_alpha),
        pinch=ease(previous.pinch, pinch_target, pinch_alpha),
        jaw=ease(previous.jaw, raw.jaw, config.jaw_alpha),
        presence=ease(previous.presence, raw.presence, config.presence_alpha),
    )


def frames_to_settle(alpha: float, initial_error: float, epsilon: float) -> int:
    """
    Ticks needed for |error| to drop below epsilon under constant input.

    Solves initial_error * (1 - alpha)^n < epsilon for the smallest n.
    """
    initial_error = abs(initial_error)
    if initial_error < epsilon:
        return 0
    if alpha >= 1.0:
        return 1
    n = math.log(epsilon / initial_error) / math.log(1.0 - alpha)
    return int(math.floor(n)) + 1


def slowest_settle(config: SmoothingConfig, initial_error: float, epsilon: float) -> int:
    """Upper bound on ticks for every channel to settle within epsilon."""
    slowest = min(
        config.tilt_lift_alpha,
        config.jaw_alpha,
        config.pinch_tracked_alpha,
        config.pinch_untracked_alpha,
        config.presence_alpha,
    )
    return frames_to_settle(slowest, initial_error, epsilon)
