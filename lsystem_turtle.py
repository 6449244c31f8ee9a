"""
Turtle interpretation of an evaluated L-system.

The expanded sequence is read once, left to right. Each symbol is looked up in
COMMANDS and changes the turtle state, emits a drawing primitive to the
backend, or both. Symbols missing from the table are skipped so that rule
alphabets can carry placeholders that only matter while rewriting.

F - step forward               G - same as F
B - step backward              V - same as B
f - half a step forward        b - turn 180° and take half a step forward
U - pen up                     D - pen down
+ - turn by angle              - - turn back by angle
r - pick a new turn angle from 10° 15° 30° 45° 60°
T - random hue                 t - shift the hue by 5°
c - random saturation          O - random opacity
l - step size + 1              s - step size - 1
1..9 - line width 1..9         n - line width 0.5
@ - turn 5°                    & - turn -5°
o - circle, radius step/4      q - square, side step/4
[ - push position and heading  ] - pop position and heading
* - call the asterisk function with the turtle state
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from math import cos, radians, sin
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from lsystem import Symbol, SequenceLike, _require, as_symbols
from lsystem_backends import Backend
from utils import get_logger

logger = get_logger(__name__)

RANDOM_TURN_ANGLES = (10.0, 15.0, 30.0, 45.0, 60.0)
HUE_STEP = 5.0
NUDGE_ANGLE = 5.0


@dataclass
class TurtleState:
    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0  # degrees, 0 = +x
    # RGB (0.3, 0.6, 0.8) as hue/saturation/brightness
    hue: float = 204.0
    saturation: float = 0.625
    brightness: float = 0.8
    opacity: float = 0.9
    pen_width: float = 1.0
    step: float = 15.0
    turn_angle: float = 45.0
    pen_down: bool = True
    stack: List[Tuple[float, float, float]] = field(default_factory=list)

    def position(self):
        return (self.x, self.y)

    def turn(self, angle: float) -> None:
        self.heading += angle

    def advance(self, distance: float):
        self.x += distance * cos(radians(self.heading))
        self.y += distance * sin(radians(self.heading))
        return self.x, self.y

    def push(self) -> None:
        self.stack.append((self.x, self.y, self.heading))

    def pop(self) -> bool:
        """Restore the last pushed position and heading; False if nothing was pushed."""
        if not self.stack:
            return False
        self.x, self.y, self.heading = self.stack.pop()
        return True


class Command(Enum):
    FORWARD = auto()
    BACKWARD = auto()
    HALF_FORWARD = auto()
    HALF_BACKWARD = auto()
    PEN_UP = auto()
    PEN_DOWN = auto()
    TURN = auto()
    RANDOM_TURN = auto()
    RANDOM_HUE = auto()
    HUE_SHIFT = auto()
    RANDOM_SATURATION = auto()
    RANDOM_OPACITY = auto()
    GROW_STEP = auto()
    SHRINK_STEP = auto()
    PEN_WIDTH = auto()
    NUDGE = auto()
    CIRCLE = auto()
    SQUARE = auto()
    PUSH = auto()
    POP = auto()
    ASTERISK = auto()


COMMANDS: Dict[Symbol, Tuple[Command, Optional[float]]] = {
    ord("F"): (Command.FORWARD, None),
    ord("G"): (Command.FORWARD, None),
    ord("B"): (Command.BACKWARD, None),
    ord("V"): (Command.BACKWARD, None),
    ord("f"): (Command.HALF_FORWARD, None),
    ord("b"): (Command.HALF_BACKWARD, None),
    ord("U"): (Command.PEN_UP, None),
    ord("D"): (Command.PEN_DOWN, None),
    ord("+"): (Command.TURN, 1.0),
    ord("-"): (Command.TURN, -1.0),
    ord("r"): (Command.RANDOM_TURN, None),
    ord("T"): (Command.RANDOM_HUE, None),
    ord("t"): (Command.HUE_SHIFT, HUE_STEP),
    ord("c"): (Command.RANDOM_SATURATION, None),
    ord("O"): (Command.RANDOM_OPACITY, None),
    ord("l"): (Command.GROW_STEP, 1.0),
    ord("s"): (Command.SHRINK_STEP, 1.0),
    **{ord(str(d)): (Command.PEN_WIDTH, float(d)) for d in range(1, 10)},
    ord("n"): (Command.PEN_WIDTH, 0.5),
    ord("@"): (Command.NUDGE, NUDGE_ANGLE),
    ord("&"): (Command.NUDGE, -NUDGE_ANGLE),
    ord("o"): (Command.CIRCLE, None),
    ord("q"): (Command.SQUARE, None),
    ord("["): (Command.PUSH, None),
    ord("]"): (Command.POP, None),
    ord("*"): (Command.ASTERISK, None),
}

AsteriskFunction = Callable[[TurtleState], None]


class _Interpreter:
    def __init__(self, turtle: TurtleState, backend: Backend, asterisk_function: Optional[AsteriskFunction], rng):
        self.t = turtle
        self.backend = backend
        self.asterisk_function = asterisk_function
        self.rng = np.random.default_rng(rng)
        self.handlers = {
            Command.FORWARD: self.forward,
            Command.BACKWARD: self.backward,
            Command.HALF_FORWARD: self.half_forward,
            Command.HALF_BACKWARD: self.half_backward,
            Command.PEN_UP: self.pen_up,
            Command.PEN_DOWN: self.pen_down,
            Command.TURN: self.turn,
            Command.RANDOM_TURN: self.random_turn,
            Command.RANDOM_HUE: self.random_hue,
            Command.HUE_SHIFT: self.hue_shift,
            Command.RANDOM_SATURATION: self.random_saturation,
            Command.RANDOM_OPACITY: self.random_opacity,
            Command.GROW_STEP: self.grow_step,
            Command.SHRINK_STEP: self.shrink_step,
            Command.PEN_WIDTH: self.pen_width,
            Command.NUDGE: self.nudge,
            Command.CIRCLE: self.circle,
            Command.SQUARE: self.square,
            Command.PUSH: self.push,
            Command.POP: self.pop,
            Command.ASTERISK: self.asterisk,
        }

    def start(self):
        t = self.t
        self.backend.move_to(t.x, t.y)
        self.backend.set_line_width(t.pen_width)
        self._emit_color()
        if not t.pen_down:
            self.backend.pen_up()

    def _emit_color(self):
        t = self.t
        self.backend.set_pen_color(t.hue, t.saturation, t.brightness, t.opacity)

    def _move(self, distance):
        x, y = self.t.advance(distance)
        if self.t.pen_down:
            self.backend.line_to(x, y)
        else:
            self.backend.move_to(x, y)

    def forward(self, _):
        self._move(self.t.step)

    def backward(self, _):
        self.t.turn(180)
        self._move(self.t.step)
        self.t.turn(-180)

    def half_forward(self, _):
        self._move(self.t.step / 2)

    def half_backward(self, _):
        # Heading stays reversed afterwards
        self.t.turn(180)
        self._move(self.t.step / 2)

    def pen_up(self, _):
        self.t.pen_down = False
        self.backend.pen_up()

    def pen_down(self, _):
        self.t.pen_down = True
        self.backend.pen_down()

    def turn(self, sign):
        self.t.turn(sign * self.t.turn_angle)

    def random_turn(self, _):
        # The new angle is kept for every later + and - in this pass
        self.t.turn_angle = float(self.rng.choice(RANDOM_TURN_ANGLES))

    def random_hue(self, _):
        self.t.hue = float(self.rng.uniform(0.0, 360.0))
        self._emit_color()

    def hue_shift(self, amount):
        self.t.hue = (self.t.hue + amount) % 360.0
        self._emit_color()

    def random_saturation(self, _):
        self.t.saturation = float(self.rng.random())
        self._emit_color()

    def random_opacity(self, _):
        self.t.opacity = float(self.rng.random())
        self._emit_color()

    def grow_step(self, amount):
        self.t.step += amount

    def shrink_step(self, amount):
        self.t.step -= amount

    def pen_width(self, width):
        self.t.pen_width = width
        self.backend.set_line_width(width)

    def nudge(self, angle):
        self.t.turn(angle)

    def circle(self, _):
        self.backend.circle(self.t.x, self.t.y, self.t.step / 4)

    def square(self, _):
        side = self.t.step / 4
        self.backend.rectangle(self.t.x, self.t.y, side, side)

    def push(self, _):
        self.t.push()

    def pop(self, _):
        if self.t.pop():
            self.backend.move_to(self.t.x, self.t.y)

    def asterisk(self, _):
        if self.asterisk_function is None:
            return
        t = self.t
        before = (t.x, t.y, t.pen_width, t.hue, t.saturation, t.brightness, t.opacity, t.pen_down)
        self.asterisk_function(t)

        # Keep the backend in step with whatever the callback changed
        if (t.x, t.y) != before[:2]:
            self.backend.move_to(t.x, t.y)
        if t.pen_width != before[2]:
            self.backend.set_line_width(t.pen_width)
        if (t.hue, t.saturation, t.brightness, t.opacity) != before[3:7]:
            self._emit_color()
        if t.pen_down != before[7]:
            if t.pen_down:
                self.backend.pen_down()
            else:
                self.backend.pen_up()


def render(
    sequence: SequenceLike,
    turtle: TurtleState,
    step_length: float,
    turn_angle: float,
    backend: Backend,
    asterisk_function: Optional[AsteriskFunction] = None,
    rng=None,
) -> int:
    """Walk `sequence` once, driving `turtle` and emitting primitives to `backend`.

    `rng` seeds the random commands (r, T, c, O): a numpy Generator, an int
    seed, or None. Returns the number of symbols processed.
    """
    _require(step_length > 0, f"step length must be > 0, got {step_length}")
    _require(turtle.pen_width > 0, f"pen width must be > 0, got {turtle.pen_width}")

    symbols = as_symbols(sequence).tolist()
    turtle.step = float(step_length)
    turtle.turn_angle = float(turn_angle)
    if not symbols:
        return 0

    interpreter = _Interpreter(turtle, backend, asterisk_function, rng)
    handlers = interpreter.handlers
    interpreter.start()

    for symbol in symbols:
        entry = COMMANDS.get(symbol)
        if entry is None:
            continue
        command, argument = entry
        handlers[command](argument)

    logger.debug("executed %d graphical instructions", len(symbols))
    return len(symbols)


__all__ = [
    "COMMANDS",
    "Command",
    "RANDOM_TURN_ANGLES",
    "TurtleState",
    "render",
]
