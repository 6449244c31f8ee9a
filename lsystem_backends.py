from typing import Any, Dict, List, Protocol, Tuple

from PIL import ImageColor

Primitive = Tuple[Any, ...]
Step = Dict[str, Any]


class Backend(Protocol):
    """Receiver of the drawing primitives emitted by the interpreter."""

    def move_to(self, x: float, y: float) -> None: ...

    def line_to(self, x: float, y: float) -> None: ...

    def set_line_width(self, width: float) -> None: ...

    def set_pen_color(self, hue: float, saturation: float, brightness: float, opacity: float) -> None: ...

    def circle(self, x: float, y: float, radius: float) -> None: ...

    def rectangle(self, x: float, y: float, width: float, height: float) -> None: ...

    def pen_up(self) -> None: ...

    def pen_down(self) -> None: ...


def pen_color_hex(hue: float, saturation: float, brightness: float) -> str:
    """Convert hue in degrees and saturation/brightness in 0-1 to '#rrggbb'."""
    h = hue % 360.0
    s = min(max(saturation, 0.0), 1.0) * 100.0
    v = min(max(brightness, 0.0), 1.0) * 100.0
    r, g, b = ImageColor.getrgb(f"hsv({h:.3f},{s:.3f}%,{v:.3f}%)")[:3]
    return f"#{r:02x}{g:02x}{b:02x}"


class PrimitiveRecorder:
    """Backend that keeps the ordered primitive stream as tuples.

    `steps()` resolves the stream into self-contained drawing steps (lines,
    circles and rectangles with their colour and width), the format consumed by
    the image, SVG and animation renderers.
    """

    def __init__(self):
        self.primitives: List[Primitive] = []

    def move_to(self, x, y):
        self.primitives.append(("move_to", x, y))

    def line_to(self, x, y):
        self.primitives.append(("line_to", x, y))

    def set_line_width(self, width):
        self.primitives.append(("set_line_width", width))

    def set_pen_color(self, hue, saturation, brightness, opacity):
        self.primitives.append(("set_pen_color", hue, saturation, brightness, opacity))

    def circle(self, x, y, radius):
        self.primitives.append(("circle", x, y, radius))

    def rectangle(self, x, y, width, height):
        self.primitives.append(("rectangle", x, y, width, height))

    def pen_up(self):
        self.primitives.append(("pen_up",))

    def pen_down(self):
        self.primitives.append(("pen_down",))

    def __len__(self):
        return len(self.primitives)

    def steps(self) -> List[Step]:
        steps: List[Step] = []
        x, y = 0.0, 0.0
        color, opacity, width = "#ffffff", 1.0, 1.0
        visible = True

        for primitive in self.primitives:
            kind = primitive[0]
            if kind == "move_to":
                x, y = primitive[1], primitive[2]
            elif kind == "line_to":
                nx, ny = primitive[1], primitive[2]
                if visible:
                    steps.append({
                        'type': 'line',
                        'start': {'x': x, 'y': y},
                        'end': {'x': nx, 'y': ny},
                        'color': color,
                        'opacity': opacity,
                        'width': width
                    })
                x, y = nx, ny
            elif kind == "set_line_width":
                width = primitive[1]
            elif kind == "set_pen_color":
                color = pen_color_hex(*primitive[1:4])
                opacity = primitive[4]
            elif kind == "circle":
                steps.append({
                    'type': 'circle',
                    'x': primitive[1],
                    'y': primitive[2],
                    'radius': primitive[3],
                    'color': color,
                    'opacity': opacity
                })
            elif kind == "rectangle":
                steps.append({
                    'type': 'rect',
                    'x': primitive[1],
                    'y': primitive[2],
                    'width': primitive[3],
                    'height': primitive[4],
                    'color': color,
                    'opacity': opacity
                })
            elif kind == "pen_up":
                visible = False
            elif kind == "pen_down":
                visible = True
        return steps


__all__ = ["Backend", "PrimitiveRecorder", "pen_color_hex"]
