import io
import os
from dataclasses import dataclass
from typing import Any, List, Optional, Union

import numpy as np
from PIL import Image, ImageColor, ImageDraw

from lsystem import LSystem, _require
from lsystem_backends import PrimitiveRecorder, Step
from lsystem_turtle import AsteriskFunction, TurtleState, render
from utils import get_logger

logger = get_logger(__name__)

IMAGE_FORMATS = ("png", "svg")


@dataclass
class DrawResult:
    commands: int
    filename: Optional[str]
    image: Union[Image.Image, str]
    steps: List[Step]


def rgb_to_hsv(rgb):
    """RGB components in 0-1 to (hue in degrees, saturation, value)."""
    r, g, b = np.clip(np.asarray(rgb, dtype=float), 0.0, 1.0)
    c_max = max(r, g, b)
    delta = c_max - min(r, g, b)

    if delta == 0:
        hue = 0.0
    elif c_max == r:
        hue = ((g - b) / delta) % 6
    elif c_max == g:
        hue = (b - r) / delta + 2
    else:
        hue = (r - g) / delta + 4
    saturation = delta / c_max if c_max else 0.0
    return float(hue * 60.0 % 360.0), float(saturation), float(c_max)


def make_turtle(starting_pen=(0.3, 0.6, 0.8), startingx=0.0, startingy=0.0, starting_orientation=0.0,
                opacity=0.9) -> TurtleState:
    """Build a turtle from an RGB starting pen (components 0-1)."""
    h, s, v = rgb_to_hsv(starting_pen)
    return TurtleState(
        x=float(startingx),
        y=float(startingy),
        heading=float(starting_orientation),
        hue=h,
        saturation=s,
        brightness=v,
        opacity=opacity,
    )


def steps_bounds(steps: List[Step]):
    """(min_x, min_y, max_x, max_y) of everything the steps touch, or None."""
    points = []
    for step in steps:
        if step['type'] == 'line':
            points.append((step['start']['x'], step['start']['y']))
            points.append((step['end']['x'], step['end']['y']))
        elif step['type'] == 'circle':
            r = abs(step['radius'])
            points.append((step['x'] - r, step['y'] - r))
            points.append((step['x'] + r, step['y'] + r))
        elif step['type'] == 'rect':
            w, h = abs(step['width']) / 2, abs(step['height']) / 2
            points.append((step['x'] - w, step['y'] - h))
            points.append((step['x'] + w, step['y'] + h))

    if not points:
        return None
    P = np.array(points, dtype=float)
    min_x, min_y = P.min(axis=0)
    max_x, max_y = P.max(axis=0)
    return float(min_x), float(min_y), float(max_x), float(max_y)


def _transform(steps, img_size, padding, fit):
    """Scale and offset mapping turtle coordinates onto the image."""
    if not fit:
        # Turtle origin at the centre of the image, as drawn, unscaled
        return 1.0, img_size[0] / 2, img_size[1] / 2

    bounds = steps_bounds(steps)
    if bounds is None:
        return 1.0, img_size[0] / 2, img_size[1] / 2
    min_x, min_y, max_x, max_y = bounds

    width = max_x - min_x
    height = max_y - min_y

    if width == 0 and height == 0:
        scale = 1
    else:
        scale_x = (img_size[0] - 2*padding) / width if width > 0 else float('inf')
        scale_y = (img_size[1] - 2*padding) / height if height > 0 else float('inf')
        scale = min(scale_x, scale_y)

    # Calculate offsets to center the drawing
    offset_x = padding - min_x * scale + (img_size[0] - 2*padding - width * scale) / 2
    offset_y = padding - min_y * scale + (img_size[1] - 2*padding - height * scale) / 2
    return scale, offset_x, offset_y


def _rgba(color, opacity):
    r, g, b = ImageColor.getrgb(color)[:3]
    return (r, g, b, int(round(min(max(opacity, 0.0), 1.0) * 255)))


def render_to_image(steps: List[Step], img_size=(800, 800), padding=50, background="black", fit=True):
    """Rasterise drawing steps to a PIL Image"""
    img = Image.new("RGB", img_size, background)
    if not steps:
        return img

    scale, offset_x, offset_y = _transform(steps, img_size, padding, fit)

    def transform_point(x, y):
        """Transform from turtle coordinates to image coordinates"""
        return (x * scale + offset_x, y * scale + offset_y)

    # RGBA mode blends translucent pens onto the background
    draw = ImageDraw.Draw(img, "RGBA")

    for step in steps:
        fill = _rgba(step['color'], step['opacity'])
        if step['type'] == 'line':
            start = transform_point(step['start']['x'], step['start']['y'])
            end = transform_point(step['end']['x'], step['end']['y'])
            width = max(1, int(round(step['width'] * scale)))
            draw.line([start, end], fill=fill, width=width)
        elif step['type'] == 'circle':
            cx, cy = transform_point(step['x'], step['y'])
            r = abs(step['radius']) * scale
            draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=fill)
        elif step['type'] == 'rect':
            cx, cy = transform_point(step['x'], step['y'])
            w, h = abs(step['width']) * scale / 2, abs(step['height']) * scale / 2
            draw.rectangle([cx - w, cy - h, cx + w, cy + h], fill=fill)

    return img


def _fmt(x: float, precision: int = 3) -> str:
    if not x:
        x = 0.0
    s = f"{x:.{precision}f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s or "0"


def render_to_svg(steps: List[Step], img_size=(800, 800), padding=50, background="black", fit=True) -> str:
    """Render drawing steps as a standalone SVG document"""
    w, h = img_size
    scale, offset_x, offset_y = _transform(steps, img_size, padding, fit)

    def transform_point(x, y):
        return (x * scale + offset_x, y * scale + offset_y)

    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<svg xmlns="http://www.w3.org/2000/svg" version="1.1" width="{w}" height="{h}" viewBox="0 0 {w} {h}">',
    ]
    if background and background.lower() != "none":
        lines.append(f'  <rect x="0" y="0" width="{w}" height="{h}" fill="{background}" />')

    for step in steps:
        color = step['color']
        opacity = _fmt(step['opacity'])
        if step['type'] == 'line':
            x1, y1 = transform_point(step['start']['x'], step['start']['y'])
            x2, y2 = transform_point(step['end']['x'], step['end']['y'])
            lines.append(
                f'  <line x1="{_fmt(x1)}" y1="{_fmt(y1)}" x2="{_fmt(x2)}" y2="{_fmt(y2)}" '
                f'stroke="{color}" stroke-opacity="{opacity}" '
                f'stroke-width="{_fmt(step["width"] * scale)}" stroke-linecap="round" />'
            )
        elif step['type'] == 'circle':
            cx, cy = transform_point(step['x'], step['y'])
            lines.append(
                f'  <circle cx="{_fmt(cx)}" cy="{_fmt(cy)}" r="{_fmt(abs(step["radius"]) * scale)}" '
                f'fill="{color}" fill-opacity="{opacity}" />'
            )
        elif step['type'] == 'rect':
            cx, cy = transform_point(step['x'], step['y'])
            rw, rh = abs(step['width']) * scale, abs(step['height']) * scale
            lines.append(
                f'  <rect x="{_fmt(cx - rw / 2)}" y="{_fmt(cy - rh / 2)}" width="{_fmt(rw)}" height="{_fmt(rh)}" '
                f'fill="{color}" fill-opacity="{opacity}" />'
            )

    lines.append("</svg>")
    return "\n".join(lines) + "\n"


def _image_format(filename) -> str:
    ext = os.path.splitext(str(filename))[1].lstrip(".").lower()
    _require(ext in IMAGE_FORMATS, f"unsupported image format {ext!r}, expected one of {IMAGE_FORMATS}")
    return ext


def trace_lsystem(
    lsystem: LSystem,
    forward=15,
    turn=45,
    iterations=6,
    starting_pen=(0.3, 0.6, 0.8),
    startingx=0,
    startingy=0,
    starting_orientation=0,
    asterisk_function: Optional[AsteriskFunction] = None,
    rng: Any = None,
):
    """Reset, evaluate and interpret `lsystem`; return (symbol count, recorder)."""
    # Start from the stored seed, because the state grows with every evaluation
    lsystem.reset()
    logger.debug("starting to evaluate LSystem...")
    lsystem.evaluate(iterations)
    logger.debug("...evaluated LSystem (%d symbols), now rendering", len(lsystem))

    turtle = make_turtle(starting_pen, startingx, startingy, starting_orientation)
    recorder = PrimitiveRecorder()
    counter = render(lsystem.state, turtle, forward, turn, recorder, asterisk_function=asterisk_function, rng=rng)
    return counter, recorder


def draw_lsystem(
    lsystem: LSystem,
    forward=15,
    turn=45,
    iterations=6,
    filename: Optional[str] = "lsystem.png",
    width=800,
    height=800,
    starting_pen=(0.3, 0.6, 0.8),
    startingx=0,
    startingy=0,
    starting_orientation=0,
    background="black",
    asterisk_function: Optional[AsteriskFunction] = None,
    rng: Any = None,
    fit=False,
    padding=50,
    fmt: Optional[str] = None,
) -> DrawResult:
    """Draw a Lindenmayer system.

    The system is reset to its seed, evaluated for `iterations` generations and
    interpreted with a fresh turtle, so calling this twice gives the same
    picture. The output format follows the extension of `filename` (.png or
    .svg); with `filename=None` nothing is written and a PNG-ready image is
    returned (`fmt` overrides the extension).

    With `fit=False` the turtle origin is the centre of the image and
    `startingx`/`startingy` shift the start; with `fit=True` the drawing is
    scaled to fill the image.
    """
    if fmt is None:
        fmt = _image_format(filename) if filename is not None else "png"
    _require(fmt in IMAGE_FORMATS, f"unsupported image format {fmt!r}, expected one of {IMAGE_FORMATS}")

    counter, recorder = trace_lsystem(
        lsystem, forward, turn, iterations, starting_pen, startingx, startingy, starting_orientation,
        asterisk_function, rng,
    )
    steps = recorder.steps()
    logger.debug("...executed %d graphical instructions", counter)

    if fmt == "svg":
        image = render_to_svg(steps, (width, height), padding, background, fit)
    else:
        image = render_to_image(steps, (width, height), padding, background, fit)

    if filename is not None:
        parent = os.path.dirname(os.path.abspath(filename))
        os.makedirs(parent, exist_ok=True)
        if fmt == "svg":
            with open(filename, "w", encoding="utf-8") as f:
                f.write(image)
        else:
            image.save(filename, format="PNG")
        logger.debug("...saved in file %s", filename)

    return DrawResult(commands=counter, filename=filename, image=image, steps=steps)


def draw_lsystem_bytes(lsystem: LSystem, fmt="png", **kwargs) -> bytes:
    """
    Draw the system and return the encoded image (for the web API)
    """
    result = draw_lsystem(lsystem, filename=None, fmt=fmt, **kwargs)
    if fmt == "svg":
        return result.image.encode("utf-8")

    buf = io.BytesIO()
    result.image.save(buf, format="PNG")
    buf.seek(0)
    return buf.getvalue()


def generate_drawing_steps(lsystem: LSystem, canvas_size=(800, 600), padding=50, **kwargs) -> List[Step]:
    """
    Generate step-by-step drawing instructions for canvas animation
    Returns the drawing steps scaled and centred into `canvas_size`
    """
    _, recorder = trace_lsystem(lsystem, **kwargs)
    steps = recorder.steps()
    scale, offset_x, offset_y = _transform(steps, canvas_size, padding, fit=True)

    def transform_point(x, y):
        return {'x': x * scale + offset_x, 'y': y * scale + offset_y}

    scaled = []
    for step in steps:
        step = dict(step)
        if step['type'] == 'line':
            step['start'] = transform_point(step['start']['x'], step['start']['y'])
            step['end'] = transform_point(step['end']['x'], step['end']['y'])
            step['width'] = max(1, int(round(step['width'] * scale)))
        elif step['type'] == 'circle':
            step.update(transform_point(step['x'], step['y']))
            step['radius'] = abs(step['radius']) * scale
        elif step['type'] == 'rect':
            step.update(transform_point(step['x'], step['y']))
            step['width'] = abs(step['width']) * scale
            step['height'] = abs(step['height']) * scale
        scaled.append(step)
    return scaled


__all__ = [
    "DrawResult",
    "draw_lsystem",
    "draw_lsystem_bytes",
    "generate_drawing_steps",
    "make_turtle",
    "render_to_image",
    "render_to_svg",
    "rgb_to_hsv",
    "steps_bounds",
    "trace_lsystem",
]
