#!/usr/bin/env python3
"""
Kineforge - Node-based Live Performance Engine

Main entry point: webcam in, reactive stage visual out.

Usage:
    python main.py [--config CONFIG_PATH] [--device DEVICE_INDEX]

Keyboard Controls:
    S     - Start live capture
    X     - Stop live capture
    R     - Reset graph to the default layout
    1-9   - Toggle preview for the n-th node in evaluation order
    Q     - Quit
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Dict

import cv2
import numpy as np
from loguru import logger

from kineforge.core.config import load_config
from kineforge.core.contracts import SchedulerState, TickResult
from kineforge.pipeline import RuntimeContext, FrameScheduler, FrameCallbackQueue
from kineforge.render.drawing import blank, BACKGROUND
from kineforge.render.preview import PREVIEW_HINTS, PREVIEW_OFF_HINT, node_metric_lines


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging."""
    logger.remove()  # Remove default handler

    # Console output with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )

    # File output
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )


# ============================================================
# OUTPUT WINDOWS
# ============================================================

STATUS_COLORS = {
    SchedulerState.IDLE: (200, 200, 200),
    SchedulerState.LOADING: (255, 200, 100),
    SchedulerState.LIVE: (106, 251, 193),
    SchedulerState.ERROR: (80, 80, 255),
}


class OutputRenderer:
    """Stage window plus a tiled preview board (BGR display, RGB input)."""

    def __init__(self, runtime: RuntimeContext, window_name: str = "Kineforge Stage"):
        self.runtime = runtime
        self.window_name = window_name
        self.board_name = "Kineforge Nodes"

        cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
        cv2.namedWindow(self.board_name, cv2.WINDOW_NORMAL)

    def render(self, result: Optional[TickResult], state: SchedulerState, status: str):
        stage = result.stage_image if result is not None else None
        if stage is None:
            stage = self.runtime.stage.last_image
        if stage is None:
            cfg = self.runtime.config.stage
            stage = blank(cfg.width, cfg.height)

        display = cv2.cvtColor(stage, cv2.COLOR_RGB2BGR)
        h = display.shape[0]
        cv2.putText(display, status, (12, h - 34),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, STATUS_COLORS[state], 1, cv2.LINE_AA)
        cv2.putText(display, "S:Start  X:Stop  R:Reset  1-9:Preview  Q:Quit", (12, h - 12),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.45, (200, 200, 200), 1, cv2.LINE_AA)
        cv2.imshow(self.window_name, display)

        previews = result.previews if result is not None else {}
        cv2.imshow(self.board_name, self._board(previews))

    def _board(self, previews: Dict[int, np.ndarray]) -> np.ndarray:
        """One tile per node in evaluation order, three per row."""
        runtime = self.runtime
        w, h = runtime.config.preview.width, runtime.config.preview.height
        tile_h = h + 64
        nodes = [runtime.graph.node(n) for n in runtime.graph.topological_order()]
        rows = max(1, (len(nodes) + 2) // 3)
        board = np.empty((rows * tile_h, 3 * w, 3), dtype=np.uint8)
        board[:] = BACKGROUND

        state = runtime.last_state
        for i, node in enumerate(nodes):
            x, y = (i % 3) * w, (i // 3) * tile_h
            image = previews.get(node.node_id)
            if image is None:
                image = blank(w, h)
                hint = PREVIEW_HINTS[node.template.preview_source] if node.observed else PREVIEW_OFF_HINT
                cv2.putText(image, hint, (10, h // 2),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.45, (150, 150, 150), 1, cv2.LINE_AA)
            board[y:y + h, x:x + w] = image

            label = f"[{i + 1}] {node.title} #{node.node_id}"
            cv2.putText(board, label, (x + 8, y + h + 18),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.45, (230, 230, 230), 1, cv2.LINE_AA)
            if state is not None:
                lines = node_metric_lines(node.template.preview_source, state, runtime.stage.last_radius)
                cv2.putText(board, "  ".join(lines), (x + 8, y + h + 40),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.38, (170, 170, 170), 1, cv2.LINE_AA)

        return cv2.cvtColor(board, cv2.COLOR_RGB2BGR)

    def close(self):
        cv2.destroyAllWindows()


# ============================================================
# MAIN APPLICATION
# ============================================================

class KineforgeApp:
    """Main application class."""

    def __init__(self, config_path: Optional[str] = None, device: Optional[int] = None):
        self.config = load_config(config_path)
        if device is not None:
            self.config.capture.device_index = device

        self.frames = FrameCallbackQueue()
        self.runtime = RuntimeContext(self.config)
        self.scheduler = FrameScheduler(self.runtime, self.frames.request)

    def handle_key(self, key: int) -> bool:
        """Apply one key press. Returns False when quit was requested."""
        if key == ord('q'):
            return False
        if key == ord('s'):
            self.scheduler.start()
        elif key == ord('x'):
            self.scheduler.stop()
        elif key == ord('r'):
            self.scheduler.reset()
        elif ord('1') <= key <= ord('9'):
            # Slots follow evaluation order; node ids are not reused after a reset
            order = self.runtime.graph.topological_order()
            slot = key - ord('1')
            if slot < len(order):
                self.runtime.graph.toggle_observed(order[slot])
            else:
                logger.warning(f"No node in slot {slot + 1}")
        return True

    def run_headless(self, ticks: int):
        """Run a fixed number of frame callbacks without opening windows."""
        if not self.scheduler.start():
            logger.error(f"Failed to start: {self.scheduler.last_error}")
            return

        try:
            for _ in range(ticks):
                self.frames.run_pending()
                if not self.scheduler.is_live:
                    break
            logger.info(f"Final controls: {self.runtime.controls.as_dict()}")
        finally:
            self.scheduler.stop()
            self.runtime.dispose()

    def run(self):
        """Run the main application loop."""
        logger.info("Starting Kineforge")
        logger.info("Press S to start capture, Q to quit")

        renderer = OutputRenderer(self.runtime)

        try:
            while True:
                self.frames.run_pending()
                renderer.render(
                    self.scheduler.last_result,
                    self.scheduler.state,
                    self.scheduler.status_text,
                )

                key = cv2.waitKey(1) & 0xFF
                if key != 0xFF and not self.handle_key(key):
                    break

        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            self.scheduler.stop()
            self.runtime.dispose()
            renderer.close()
            logger.info("Engine stopped")


# ============================================================
# ENTRY POINT
# ============================================================

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Kineforge - node-based live performance engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--device", "-d",
        type=int,
        default=None,
        help="Video device index (default: from config)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-file",
        type=str,
        default="logs/kineforge.log",
        help="Log file path (default: logs/kineforge.log)",
    )

    parser.add_argument(
        "--headless-ticks",
        type=int,
        default=0,
        help="Run N ticks without windows, then exit",
    )

    args = parser.parse_args()

    # Setup logging
    setup_logging(args.log_level, args.log_file)

    # Create and run app
    app = KineforgeApp(args.config, args.device)
    if args.headless_ticks > 0:
        app.run_headless(args.headless_ticks)
    else:
        app.run()


if __name__ == "__main__":
    main()
