"""
Pipeline Module.

Responsibilities:
- Per-session runtime context (camera, models, graph, smoothing memory)
- Per-node compute steps
- Frame scheduler and its state machine
"""

from .runtime import RuntimeContext
from .steps import TickContext, STEPS, get_step
from .scheduler import FrameScheduler, FrameCallbackQueue
