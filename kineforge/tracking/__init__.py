"""
Control Tracking Module.

Responsibilities:
- Temporal smoothing of raw control values
- Convergence bounds for sustained input
"""

from .control_smoother import smooth, frames_to_settle, slowest_settle
