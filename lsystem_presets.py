"""
Well-known L-systems with render parameters that produce a sensible picture
on an 800x800 canvas. Turns are in degrees; an orientation of -90 points the
turtle up the page.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

from lsystem import LSystem


@dataclass(frozen=True)
class Preset:
    name: str
    rules: Tuple[Tuple[str, str], ...]
    seed: str
    forward: float = 15
    turn: float = 45
    iterations: int = 6
    startingx: float = 0
    startingy: float = 0
    starting_orientation: float = 0
    starting_pen: Tuple[float, float, float] = (0.3, 0.6, 0.8)
    notes: str = field(default="", compare=False)

    def build(self) -> LSystem:
        return LSystem(dict(self.rules), self.seed)

    def draw_kwargs(self) -> Dict:
        return {
            "forward": self.forward,
            "turn": self.turn,
            "iterations": self.iterations,
            "startingx": self.startingx,
            "startingy": self.startingy,
            "starting_orientation": self.starting_orientation,
            "starting_pen": self.starting_pen,
        }

    def as_dict(self) -> Dict:
        return {"name": self.name, "rules": dict(self.rules), "seed": self.seed, "notes": self.notes,
                **self.draw_kwargs()}


_PRESETS = [
    Preset("simple", (("F", "F[t+FoF-F]"),), "F", forward=50, turn=90, iterations=6, startingy=-150),
    Preset("koch", (("F", "F+F--F+F"),), "F", forward=5, turn=60, iterations=4, startingx=-200),
    Preset("koch_snowflake", (("F", "F+F--F+F"),), "F-F-F", forward=5, turn=60, iterations=4,
           startingx=-200, startingy=-100),
    Preset("peano", (("F", "TF+F-F-toF-F+F+F+F-F"),), "3F", forward=20, turn=90, iterations=3, startingx=-250),
    Preset("peano_gosper", (("X", "X+YF++YF-tFX--FXFX-YF+"), ("Y", "-FX+YFYF++YF+FX--FX-Y")), "FX",
           forward=10, turn=60, iterations=4, startingx=-200, startingy=-50, starting_orientation=-90,
           starting_pen=(0, 0.8, 0.2)),
    Preset("quadratic_koch", (("F", "tF-F+F+FFF-F-F+F"),), "4F+F+F+F", forward=10, turn=90, iterations=2),
    Preset("thirty_two_segment", (("F", "t-F+F-F-F+F+FF-F+F+FF+F-F-FF+FF-FF+F+F-FF-F-F+FF-F-F+F+F-F+"),),
           "F+F+F+F", forward=5, turn=90, iterations=2),
    Preset("sierpinski_triangle", (("F", "G+F+Gt"), ("G", "F-G-F")), "G", forward=3, turn=60, iterations=8,
           startingx=-400, startingy=-350),
    Preset("square_curve", (("X", "XF-F+F-XF+F+XtF-F+F-X"),), "F+XF+F+XF", forward=10, turn=90, iterations=4),
    Preset("dragon_curve", (("F", "F+G+t"), ("G", "-F-G")), "F", forward=12, turn=90, iterations=10),
    Preset("hilbert", (("L", "+RF-LFL-cFR+"), ("R", "-LF+RFR+FL-")), "1L", forward=12, turn=90, iterations=6,
           startingx=-380, startingy=-380),
    Preset("hilbert_curve", (("L", "+RF-LFL-tFR+"), ("R", "-LF+RFR+FL-")), "3L", forward=25, turn=90,
           iterations=4, startingx=-200, startingy=-200),
    Preset("hilbert_curve2", (("X", "XFYFX+F+YFXFcY-F-XFYFX"), ("Y", "YFXFY-F-XFYFX+F+YFXFY")), "2X",
           forward=10, turn=90, iterations=4, startingx=-380, startingy=-380),
    Preset("plant", (("F", "F[-F]cF[+F][F]"),), "F", forward=7, turn=23, iterations=6, startingy=380,
           starting_orientation=-90, starting_pen=(0, 0.8, 0.3)),
    Preset("plant1", (("F", "FF"), ("X", "F-[[cX]+X]+F[+FX]-X")), "1X", forward=3, turn=13, iterations=7,
           startingx=-50, startingy=380, starting_orientation=-90, starting_pen=(0, 0.8, 0.2)),
    Preset("branch", (("F", "FF-[F+F+Fc]+[+F-F-F][+++F+F-F---][---F+F-F---]"),), "1FFFF", forward=12, turn=20,
           iterations=3, startingy=300, starting_orientation=-90, starting_pen=(0, 0.9, 0.2)),
    Preset("penrose",
           (("X", "PM++QM----YM[-PM----XM]++t"),
            ("Y", "+PM--QM[---XM--YM]+t"),
            ("P", "-XM++YM[+++PM++QM]-t"),
            ("Q", "--PM++++XM[+QM++++YM]--YMt"),
            ("M", "F"),
            ("F", "")),
           "1[Y]++[Y]++[Y]++[Y]++[Y]", forward=25, turn=36, iterations=7, starting_orientation=-90,
           starting_pen=(0.5, 0.8, 0.2),
           notes="M only becomes F one generation later; F itself is deleted"),
]

PRESETS: Dict[str, Preset] = {p.name: p for p in _PRESETS}


def get_preset(name: str) -> Preset:
    try:
        return PRESETS[name]
    except KeyError:
        raise KeyError(f"unknown preset {name!r}; known presets: {', '.join(sorted(PRESETS))}") from None


__all__ = ["PRESETS", "Preset", "get_preset"]
