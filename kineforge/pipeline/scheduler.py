"""
Frame Scheduler.

Drives one pass over the dataflow graph per display refresh:

1. Acquire the newest frame (no frame -> skip the tick)
2. Run the landmark source once per subject kind, same timestamp
3. Walk the graph in topological order, storing each node's outputs
4. Hand the sink's resolved inputs to the stage renderer
5. Materialize previews for observed nodes only

State machine:

    Idle -> Loading -> Live -> Idle       (stop)
                       Live -> Error -> Idle   (tick failure)
            Loading -> Error              (acquisition failure)

Single-threaded and cooperative: the next tick is requested through an
injected callback only after the current tick's work has finished.
"""

from __future__ import annotations

import json
import time
from typing import Optional, Callable, List

from loguru import logger

from kineforge.core.contracts import (
    ControlValues,
    FrameState,
    NodeKind,
    SchedulerState,
    SubjectKind,
    TickResult,
)
from kineforge.core.errors import AcquisitionError
from kineforge.vision.metrics import extract_face_metrics, extract_hand_metrics
from .runtime import RuntimeContext
from .steps import TickContext, get_step


FrameCallback = Callable[[], None]
RequestTick = Callable[[FrameCallback], None]
StatusListener = Callable[[SchedulerState, str], None]


class FrameCallbackQueue:
    """
    Stand-in for a display's frame-callback mechanism.

    Callbacks requested while the queue is running are deferred to the
    next run, so one run_pending() call equals one display refresh.
    """

    def __init__(self):
        self._pending: List[FrameCallback] = []

    def request(self, callback: FrameCallback):
        self._pending.append(callback)

    def run_pending(self) -> int:
        """Run callbacks queued so far. Returns how many ran."""
        batch, self._pending = self._pending, []
        for callback in batch:
            callback()
        return len(batch)

    def __len__(self) -> int:
        return len(self._pending)


class FrameScheduler:
    """
    Per-tick driver for a runtime context.

    Guarantees:
    - At most one tick in flight
    - Node evaluation follows the graph's deterministic order
    - Callbacks from a stopped session degrade to no-ops
    - Nothing raised inside a tick escapes the frame callback
    """

    def __init__(
        self,
        runtime: RuntimeContext,
        request_tick: RequestTick,
        on_status: Optional[StatusListener] = None,
    ):
        self.runtime = runtime
        self._request_tick = request_tick
        self._on_status = on_status

        self._state = SchedulerState.IDLE
        self.status_text = "Idle"
        self.last_error: Optional[str] = None
        self.last_result: Optional[TickResult] = None

        # Bumped on every start/stop; stale callbacks compare against it
        self._session = 0
        self._in_tick = False

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_live(self) -> bool:
        return self._state is SchedulerState.LIVE

    def _set_state(self, state: SchedulerState, message: str):
        self._state = state
        self.status_text = message
        logger.info(f"Scheduler {state.value}: {message}")
        if self._on_status is not None:
            self._on_status(state, message)

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    def start(self) -> bool:
        """
        Acquire resources and begin scheduling ticks.

        Returns:
            True if live; False if acquisition failed (state is Error)
        """
        if self._state in (SchedulerState.LIVE, SchedulerState.LOADING):
            return True

        self._set_state(SchedulerState.LOADING, "Loading landmark models...")
        try:
            self.runtime.acquire()
        except AcquisitionError as e:
            logger.warning(f"Acquisition failed: {e}")
            self._fail_start(str(e))
            return False
        except Exception as e:
            logger.exception(f"Unexpected error while starting: {e}")
            self._fail_start(f"{type(e).__name__}: {e}")
            return False

        self.last_error = None
        self._session += 1
        self._set_state(SchedulerState.LIVE, "Live capture running")
        self._schedule(self._session)
        return True

    def _fail_start(self, reason: str):
        self.last_error = reason
        self.runtime.release()
        self._set_state(SchedulerState.ERROR, f"Failed to start: {reason}")

    def stop(self):
        """Stop scheduling ticks and release the camera."""
        self._session += 1
        self.runtime.release()
        if self._state is not SchedulerState.IDLE:
            self._set_state(SchedulerState.IDLE, "Camera stopped")

    def reset(self):
        """Stop live capture and rebuild the default graph."""
        self.stop()
        self.runtime.reset_graph()
        self._set_state(SchedulerState.IDLE, "Graph reset")

    def _schedule(self, session: int):
        self._request_tick(lambda: self._on_frame(session))

    def _on_frame(self, session: int):
        if session != self._session or not self.is_live:
            return
        self.tick()
        if session == self._session and self.is_live:
            self._schedule(session)

    # ------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------

    def tick(self) -> Optional[TickResult]:
        """
        Run one scheduler pass.

        Returns:
            TickResult, or None if not live or a tick is already running
        """
        if not self.is_live:
            return None
        if self._in_tick:
            logger.warning("Tick requested while another tick is in flight")
            return None

        self._in_tick = True
        try:
            result = self._run_tick()
        except Exception as e:
            logger.exception(f"Tick failed: {e}")
            self._fail(str(e))
            return None
        finally:
            self._in_tick = False

        self.last_result = result
        return result

    def _fail(self, reason: str):
        self.last_error = reason
        self._session += 1
        self._set_state(SchedulerState.ERROR, f"Live capture failed: {reason}")
        self.runtime.release()
        self._set_state(SchedulerState.IDLE, "Camera stopped after failure")

    def _run_tick(self) -> TickResult:
        runtime = self.runtime
        graph = runtime.graph
        tick_start = time.perf_counter()

        # STEP 1: newest frame; none ready means skip
        frame, timestamp_ms, frame_id = runtime.frame_source.read_frame()
        if frame is None:
            logger.debug("Render skip: no frame available yet")
            return TickResult(
                frame_id=frame_id,
                timestamp_ms=timestamp_ms,
                controls=runtime.controls,
                skipped=True,
                skip_reason="no frame available",
            )

        timestamp_ms = runtime.advance_clock(timestamp_ms)
        runtime.prune_memory()

        # STEP 2: landmarks, once per subject kind
        detections = {
            kind: runtime.landmark_source.detect(frame, timestamp_ms, kind)
            for kind in runtime.subject_kinds
        }

        # STEP 3: graph walk
        tick = TickContext(
            frame_id=frame_id,
            timestamp_ms=timestamp_ms,
            frame=frame,
            detections=detections,
            calibration=runtime.config.calibration,
            smoothing=runtime.config.smoothing,
            memory=runtime.memory,
        )
        order = graph.topological_order()
        for node_id in order:
            node = graph.node(node_id)
            step = get_step(node.template.template_id)
            graph.store_outputs(node_id, step(node, graph.resolve_inputs(node_id), tick))

        # STEP 4: sink -> stage
        controls, stage_image = self._render_sink(order)
        runtime.controls = controls

        # STEP 5: previews, observed nodes only
        faces = detections.get(SubjectKind.FACE, [])
        hands = detections.get(SubjectKind.HAND, [])
        state = FrameState(
            frame_id=frame_id,
            timestamp_ms=timestamp_ms,
            frame=frame,
            faces=faces,
            hands=hands,
            face_metrics=extract_face_metrics(faces, runtime.config.calibration),
            hand_metrics=extract_hand_metrics(hands, runtime.config.calibration),
            controls=controls,
            stage_image=stage_image,
            fps=runtime.fps,
        )
        previews = runtime.materializer.materialize_observed(state)
        runtime.last_state = state

        latency_ms = (time.perf_counter() - tick_start) * 1000
        if latency_ms > runtime.config.scheduler.frame_budget_ms:
            logger.warning(
                f"Frame budget exceeded: {latency_ms:.1f}ms > "
                f"{runtime.config.scheduler.frame_budget_ms}ms"
            )

        self._maybe_snapshot(state, timestamp_ms)

        return TickResult(
            frame_id=frame_id,
            timestamp_ms=timestamp_ms,
            evaluated=order,
            controls=controls,
            stage_image=stage_image,
            previews=previews,
            latency_ms=latency_ms,
            fps=runtime.fps,
        )

    def _render_sink(self, order: List[int]):
        """Render the first sink in evaluation order; neutral when none exists."""
        graph = self.runtime.graph
        sinks = [n for n in order if graph.node(n).kind is NodeKind.SINK]
        if not sinks:
            mappers = [n for n in order if graph.node(n).kind is NodeKind.MAPPER]
            controls = graph.output(mappers[0], "controls") if mappers else None
            return controls or ControlValues.neutral(), None

        inputs = graph.resolve_inputs(sinks[0])
        controls = inputs.get("controls") or ControlValues.neutral()
        image = self.runtime.stage.render(inputs.get("image"), controls, self.runtime.fps)
        return controls, image

    def _maybe_snapshot(self, state: FrameState, timestamp_ms: float):
        runtime = self.runtime
        interval = runtime.config.scheduler.snapshot_interval_ms
        if timestamp_ms - runtime.last_snapshot_ms <= interval:
            return
        runtime.last_snapshot_ms = timestamp_ms
        runtime.last_snapshot = runtime.build_snapshot(state)
        logger.debug(json.dumps(runtime.last_snapshot))
