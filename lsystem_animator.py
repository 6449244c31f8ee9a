import asyncio
from typing import List, Optional

import cv2
import numpy as np
from PIL import ImageColor

from lsystem_backends import Step
from lsystem_frame_manager import LSystemFrameManager


def _bgr(color):
    r, g, b = ImageColor.getrgb(color)[:3]
    return (b, g, r)


def _px(x, y):
    return (int(round(x)), int(round(y)))


def draw_step(canvas: np.ndarray, step: Step) -> None:
    """Draw one canvas-scaled step onto a BGR canvas (opacity is ignored)."""
    color = _bgr(step['color'])
    if step['type'] == 'line':
        start = _px(step['start']['x'], step['start']['y'])
        end = _px(step['end']['x'], step['end']['y'])
        cv2.line(canvas, start, end, color, max(1, int(step['width'])), cv2.LINE_AA)
    elif step['type'] == 'circle':
        cv2.circle(canvas, _px(step['x'], step['y']), max(1, int(round(step['radius']))), color, -1, cv2.LINE_AA)
    elif step['type'] == 'rect':
        w, h = step['width'] / 2, step['height'] / 2
        cv2.rectangle(canvas, _px(step['x'] - w, step['y'] - h), _px(step['x'] + w, step['y'] + h), color, -1)


def _jpeg(canvas: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".jpg", canvas)
    if not ok:
        raise RuntimeError("OpenCV JPEG encoding failed")
    return buffer.tobytes()


def _part(frame: bytes) -> bytes:
    return (
        b"--frame\r\n"
        b"Content-Type: image/jpeg\r\n\r\n" + frame + b"\r\n"
    )


async def animate_steps_stream(
    steps: List[Step],
    frame_manager: Optional[LSystemFrameManager] = None,
    step_delay=0.005,
    size=(800, 800),
    bg=(0, 0, 0),
):
    """Async MJPEG streamer drawing `steps` (already scaled to `size`) one at a time.

    Each intermediate frame is offered to `frame_manager`, which decides what
    to keep; the last frame closes the capture.
    """
    width, height = size
    canvas = np.full((height, width, 3), bg, dtype=np.uint8)

    for step in steps:
        draw_step(canvas, step)
        frame = _jpeg(canvas)
        if frame_manager is not None:
            await frame_manager.offer(frame)
        yield _part(frame)

        if step_delay > 0:
            await asyncio.sleep(step_delay)

    # Final frame
    frame = _jpeg(canvas)
    if frame_manager is not None:
        await frame_manager.finish(frame)
    yield _part(frame)
