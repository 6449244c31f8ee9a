import pytest

from lsystem import LSystemError, expand
from lsystem_backends import PrimitiveRecorder
from lsystem_turtle import COMMANDS, RANDOM_TURN_ANGLES, Command, TurtleState, render

SETUP = 3  # move_to, set_line_width, set_pen_color


def run(sequence, step=10, turn=90, turtle=None, **kwargs):
    turtle = turtle or TurtleState()
    recorder = PrimitiveRecorder()
    count = render(sequence, turtle, step, turn, recorder, **kwargs)
    return turtle, recorder, count


def drawn(recorder):
    return recorder.primitives[SETUP:]


class TestAlphabet:
    def test_recognised_symbols(self) -> None:
        assert {chr(s) for s in COMMANDS} == set("FGBVfbUD+-rTtcOls123456789n@&oq[]*")

    def test_every_command_is_used(self) -> None:
        assert {command for command, _ in COMMANDS.values()} == set(Command)

    def test_unknown_symbols_are_ignored(self) -> None:
        turtle, recorder, count = run("XYZ")
        assert count == 3
        assert drawn(recorder) == []
        assert turtle.position() == (0.0, 0.0)


class TestRender:
    def test_empty_sequence(self) -> None:
        seq = expand("F", {"F": ""}, 1)
        _, recorder, count = run(seq)
        assert count == 0
        assert recorder.primitives == []

    def test_setup_primitives(self) -> None:
        turtle = TurtleState(x=3, y=4, pen_width=2)
        _, recorder, _ = run("X", turtle=turtle)
        assert recorder.primitives[0] == ("move_to", 3, 4)
        assert recorder.primitives[1] == ("set_line_width", 2)
        assert recorder.primitives[2][0] == "set_pen_color"

    def test_branching_scenario(self) -> None:
        turtle, recorder, count = run("F[+F]F", step=10, turn=90)
        assert count == 6
        assert [p[0] for p in drawn(recorder)] == ["line_to", "line_to", "move_to", "line_to"]
        expected = [("line_to", 10, 0), ("line_to", 10, 10), ("move_to", 10, 0), ("line_to", 20, 0)]
        for primitive, (kind, x, y) in zip(drawn(recorder), expected):
            assert primitive[0] == kind
            assert primitive[1] == pytest.approx(x, abs=1e-9)
            assert primitive[2] == pytest.approx(y, abs=1e-9)
        assert turtle.heading == 0
        assert turtle.stack == []

    def test_count_includes_every_symbol(self) -> None:
        _, _, count = run("F+X-Y]")
        assert count == 6

    def test_non_positive_step_rejected(self) -> None:
        with pytest.raises(LSystemError):
            run("F", step=0)
        with pytest.raises(LSystemError):
            run("F", step=-3)

    def test_non_positive_pen_width_rejected(self) -> None:
        with pytest.raises(LSystemError):
            run("F", turtle=TurtleState(pen_width=0))

    def test_step_and_turn_stored_on_turtle(self) -> None:
        turtle, _, _ = run("", step=7, turn=33)
        assert turtle.step == 7
        assert turtle.turn_angle == 33


class TestMovement:
    def test_forward_aliases(self) -> None:
        turtle, recorder, _ = run("FG")
        assert turtle.position() == (pytest.approx(20), pytest.approx(0))
        assert [p[0] for p in drawn(recorder)] == ["line_to", "line_to"]

    def test_backward_keeps_heading(self) -> None:
        for symbol in "BV":
            turtle, recorder, _ = run(symbol)
            assert turtle.x == pytest.approx(-10)
            assert turtle.y == pytest.approx(0, abs=1e-9)
            assert turtle.heading == 0
            assert drawn(recorder)[0][0] == "line_to"

    def test_half_forward(self) -> None:
        turtle, _, _ = run("f")
        assert turtle.position() == (pytest.approx(5), pytest.approx(0))

    def test_half_backward_leaves_heading_reversed(self) -> None:
        turtle, _, _ = run("b")
        assert turtle.x == pytest.approx(-5)
        assert turtle.heading == 180

    def test_pen_up_and_down(self) -> None:
        _, recorder, _ = run("UFDF")
        kinds = [p[0] for p in drawn(recorder)]
        assert kinds == ["pen_up", "move_to", "pen_down", "line_to"]
        assert drawn(recorder)[1][1] == pytest.approx(10)
        assert drawn(recorder)[3][1] == pytest.approx(20)

    def test_starting_with_pen_up(self) -> None:
        turtle = TurtleState(pen_down=False)
        _, recorder, _ = run("F", turtle=turtle)
        assert recorder.primitives[3] == ("pen_up",)
        assert recorder.primitives[4][0] == "move_to"

    def test_grow_and_shrink_step(self) -> None:
        turtle, _, _ = run("lF")
        assert turtle.x == pytest.approx(11)
        assert turtle.step == 11
        turtle, _, _ = run("ssF")
        assert turtle.x == pytest.approx(8)


class TestTurning:
    def test_turns_cancel(self) -> None:
        turtle, _, _ = run("+-", turn=37.5)
        assert turtle.heading % 360 == 0

    def test_turn_directions(self) -> None:
        turtle, _, _ = run("++", turn=30)
        assert turtle.heading == 60
        turtle, _, _ = run("-", turn=30)
        assert turtle.heading == -30

    def test_nudges_ignore_turn_angle(self) -> None:
        turtle, _, _ = run("@@&", turn=90)
        assert turtle.heading == 5

    def test_random_turn_only_changes_angle(self) -> None:
        turtle, _, _ = run("r", rng=1)
        assert turtle.heading == 0
        assert turtle.turn_angle in RANDOM_TURN_ANGLES

    def test_random_turn_persists(self) -> None:
        turtle, _, _ = run("r++-", rng=7)
        assert turtle.heading == turtle.turn_angle


class TestStack:
    def test_push_pop_restores(self) -> None:
        turtle, _, _ = run("F+[F-F@]", turn=45)
        assert turtle.x == pytest.approx(10)
        assert turtle.y == pytest.approx(0, abs=1e-9)
        assert turtle.heading == 45

    def test_pop_on_empty_stack_is_noop(self) -> None:
        turtle, recorder, _ = run("]]")
        assert turtle == TurtleState(step=10, turn_angle=90)
        assert drawn(recorder) == []

    def test_colour_and_width_not_restored(self) -> None:
        turtle, _, _ = run("[5t]")
        assert turtle.pen_width == 5
        assert turtle.hue == pytest.approx(209)


class TestPen:
    def test_pen_widths(self) -> None:
        _, recorder, _ = run("159n")
        widths = [p[1] for p in drawn(recorder)]
        assert widths == [1.0, 5.0, 9.0, 0.5]

    def test_hue_shift_wraps(self) -> None:
        turtle, recorder, _ = run("t", turtle=TurtleState(hue=358))
        assert turtle.hue == pytest.approx(3)
        assert drawn(recorder)[0][0] == "set_pen_color"

    def test_random_colours_in_range(self) -> None:
        turtle, recorder, _ = run("TcO", rng=3)
        assert 0 <= turtle.hue < 360
        assert 0 <= turtle.saturation < 1
        assert 0 <= turtle.opacity < 1
        assert [p[0] for p in drawn(recorder)] == ["set_pen_color"] * 3

    def test_seeded_randomness_is_reproducible(self) -> None:
        sequence = "TF+cFrOF-F" * 5
        _, first, _ = run(sequence, rng=42)
        _, second, _ = run(sequence, rng=42)
        assert first.primitives == second.primitives


class TestShapes:
    def test_circle(self) -> None:
        _, recorder, _ = run("Fo", step=20)
        kind, x, y, radius = drawn(recorder)[1]
        assert kind == "circle"
        assert (x, y) == (pytest.approx(20), pytest.approx(0))
        assert radius == 5

    def test_square(self) -> None:
        _, recorder, _ = run("q", step=8)
        assert drawn(recorder)[0] == ("rectangle", 0.0, 0.0, 2.0, 2.0)


class TestAsterisk:
    def test_hook_receives_turtle(self) -> None:
        seen = []
        _, _, _ = run("F*", asterisk_function=lambda t: seen.append(t.position()))
        assert seen == [(pytest.approx(10), pytest.approx(0))]

    def test_without_hook_is_noop(self) -> None:
        turtle, recorder, _ = run("*")
        assert drawn(recorder) == []
        assert turtle.position() == (0.0, 0.0)

    def test_hook_changes_are_synchronised(self) -> None:
        def jump(t):
            t.x, t.y = 50.0, 60.0
            t.pen_width = 4
            t.hue = 90.0

        _, recorder, _ = run("*F", asterisk_function=jump)
        kinds = [p[0] for p in drawn(recorder)]
        assert kinds == ["move_to", "set_line_width", "set_pen_color", "line_to"]
        assert drawn(recorder)[0] == ("move_to", 50.0, 60.0)
        assert drawn(recorder)[3][1] == pytest.approx(60)
