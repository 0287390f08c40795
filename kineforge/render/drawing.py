"""
Shared drawing helpers.

All images are RGB uint8 (H x W x 3) and all colors are RGB tuples.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple
import numpy as np
from numpy.typing import NDArray
import cv2

from kineforge.core.contracts import Landmark, ControlValues


Color = Tuple[int, int, int]

# Palette
BACKGROUND = (2, 6, 23)
STAGE_BACKGROUND = (7, 13, 29)
LIME_200 = (217, 249, 157)
LIME_300 = (190, 242, 100)
LIME_400 = (163, 230, 53)
LIME_500 = (132, 204, 22)
SLATE_300 = (203, 213, 225)
SCOPE_TRACK = (34, 41, 58)

HAND_CONNECTIONS = (
    (0, 1), (1, 2), (2, 3), (3, 4),
    (0, 5), (5, 6), (6, 7), (7, 8),
    (5, 9), (9, 10), (10, 11), (11, 12),
    (9, 13), (13, 14), (14, 15), (15, 16),
    (13, 17), (17, 18), (18, 19), (19, 20),
    (0, 17),
)


def blank(width: int, height: int, color: Color = BACKGROUND) -> NDArray[np.uint8]:
    image = np.empty((height, width, 3), dtype=np.uint8)
    image[:] = color
    return image


def cover_rect(
    source_width: int,
    source_height: int,
    target_width: int,
    target_height: int,
) -> Tuple[float, float, float, float]:
    """
    Placement of a source scaled to cover a target box.

    The source keeps its aspect ratio, fills the box completely and is
    centered; the overflow on one axis is cropped, never letter-boxed.

    Returns:
        (dx, dy, draw_width, draw_height) in target coordinates
    """
    source_ratio = source_width / source_height
    target_ratio = target_width / target_height

    if source_ratio > target_ratio:
        draw_height = float(target_height)
        draw_width = draw_height * source_ratio
        return ((target_width - draw_width) * 0.5, 0.0, draw_width, draw_height)

    draw_width = float(target_width)
    draw_height = draw_width / source_ratio
    return (0.0, (target_height - draw_height) * 0.5, draw_width, draw_height)


def cover(image: Optional[NDArray[np.uint8]], width: int, height: int) -> Optional[NDArray[np.uint8]]:
    """Resize and center-crop an image so it exactly covers width x height."""
    if image is None or image.size == 0:
        return None
    source_height, source_width = image.shape[:2]
    dx, dy, draw_width, draw_height = cover_rect(source_width, source_height, width, height)

    scaled_w = max(width, int(math.ceil(draw_width)))
    scaled_h = max(height, int(math.ceil(draw_height)))
    interpolation = cv2.INTER_AREA if scaled_w < source_width else cv2.INTER_LINEAR
    scaled = cv2.resize(image, (scaled_w, scaled_h), interpolation=interpolation)

    x0 = int(round(-dx)) if dx < 0 else 0
    y0 = int(round(-dy)) if dy < 0 else 0
    x0 = min(x0, scaled_w - width)
    y0 = min(y0, scaled_h - height)
    return np.ascontiguousarray(scaled[y0:y0 + height, x0:x0 + width])


def draw_points(
    image: NDArray[np.uint8],
    landmarks: Sequence[Landmark],
    color: Color,
    radius: float = 2.0,
    step: int = 5,
):
    """Dot every `step`-th landmark, in place."""
    if not landmarks:
        return
    h, w = image.shape[:2]
    r = max(1, int(round(radius)))
    for i in range(0, len(landmarks), step):
        cv2.circle(image, landmarks[i].to_pixels(w, h), r, color, -1, cv2.LINE_AA)


def draw_hand_connections(
    image: NDArray[np.uint8],
    landmarks: Sequence[Landmark],
    color: Color,
    thickness: int = 2,
):
    """Hand skeleton lines, in place. Missing endpoints are skipped."""
    if not landmarks:
        return
    h, w = image.shape[:2]
    for a, b in HAND_CONNECTIONS:
        if a >= len(landmarks) or b >= len(landmarks):
            continue
        cv2.line(image, landmarks[a].to_pixels(w, h), landmarks[b].to_pixels(w, h),
                 color, thickness, cv2.LINE_AA)


def draw_face(image: NDArray[np.uint8], faces, color: Color = LIME_300, radius: float = 1.4):
    if faces:
        draw_points(image, faces[0], color, radius, step=5)


def draw_hands(image: NDArray[np.uint8], hands, line_color: Color = LIME_500,
               point_color: Color = LIME_200, radius: float = 1.9):
    for hand in hands or []:
        draw_hand_connections(image, hand, line_color)
        draw_points(image, hand, point_color, radius, step=1)


def scope_bars(controls: ControlValues):
    """(label, value in [0,1], color) for the control scope."""
    def unit(v):
        return max(0.0, min(1.0, v))

    return [
        ("tilt", unit(abs(controls.tilt)), LIME_300),
        ("lift", unit(controls.lift), LIME_400),
        ("pinch", unit(controls.pinch), LIME_500),
        ("jaw", unit(controls.jaw * 25), LIME_200),
    ]


def draw_control_scope(controls: ControlValues, width: int, height: int) -> NDArray[np.uint8]:
    """Bar-chart scope of the control values."""
    image = blank(width, height, BACKGROUND)
    for index, (label, value, color) in enumerate(scope_bars(controls)):
        y = 26 + index * 36
        cv2.rectangle(image, (20, y), (width - 20, y + 10), SCOPE_TRACK, -1)
        fill = int(round((width - 40) * value))
        if fill > 0:
            cv2.rectangle(image, (20, y), (20 + fill, y + 10), color, -1)
        cv2.putText(image, f"{label}: {value:.2f}", (20, y - 7),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.35, SLATE_300, 1, cv2.LINE_AA)
    return image


def blend(base: NDArray[np.uint8], top: NDArray[np.uint8], opacity: float) -> NDArray[np.uint8]:
    return cv2.addWeighted(top, opacity, base, 1.0 - opacity, 0)


def encode_jpeg(image: NDArray[np.uint8], quality: int = 68) -> bytes:
    """JPEG bytes of an RGB image."""
    ok, buffer = cv2.imencode(
        ".jpg",
        cv2.cvtColor(image, cv2.COLOR_RGB2BGR),
        [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)],
    )
    if not ok:
        raise ValueError("JPEG encoding failed")
    return buffer.tobytes()
