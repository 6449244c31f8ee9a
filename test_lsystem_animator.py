import asyncio

import numpy as np
import pytest

from lsystem import LSystem
from lsystem_animator import animate_steps_stream, draw_step
from lsystem_draw import generate_drawing_steps
from lsystem_frame_manager import LSystemFrameManager


def koch_steps(size=(100, 100)):
    return generate_drawing_steps(LSystem({"F": "F+F--F+F"}, "F"), canvas_size=size, padding=10,
                                  iterations=1, turn=60)


async def collect(stream):
    return [part async for part in stream]


class TestDrawStep:
    def test_line(self) -> None:
        canvas = np.zeros((20, 20, 3), dtype=np.uint8)
        step = {'type': 'line', 'start': {'x': 2, 'y': 10}, 'end': {'x': 18, 'y': 10},
                'color': '#ff0000', 'opacity': 1.0, 'width': 1}
        draw_step(canvas, step)
        # BGR
        assert canvas[10, 10, 2] > 0
        assert canvas[10, 10, 0] == 0

    def test_filled_shapes(self) -> None:
        canvas = np.zeros((20, 20, 3), dtype=np.uint8)
        draw_step(canvas, {'type': 'circle', 'x': 5, 'y': 5, 'radius': 3, 'color': '#00ff00', 'opacity': 1.0})
        draw_step(canvas, {'type': 'rect', 'x': 15, 'y': 15, 'width': 4, 'height': 4,
                           'color': '#0000ff', 'opacity': 1.0})
        assert canvas[5, 5, 1] == 255
        assert canvas[15, 15, 0] == 255


class TestAnimateStream:
    def test_one_frame_per_step_plus_final(self) -> None:
        steps = koch_steps()
        parts = asyncio.run(collect(animate_steps_stream(steps, step_delay=0, size=(100, 100))))
        assert len(parts) == len(steps) + 1
        for part in parts:
            assert part.startswith(b"--frame\r\nContent-Type: image/jpeg\r\n\r\n\xff\xd8")

    def test_snapshots_captured(self) -> None:
        async def run():
            manager = LSystemFrameManager(every=2)
            await manager.begin({"preset": "koch", "iterations": 1})
            stream = animate_steps_stream(koch_steps(), manager, step_delay=0, size=(100, 100))
            first = await stream.__anext__()
            pending = await manager.snapshot()
            rest = await collect(stream)
            return first, pending, rest, await manager.snapshot()

        first, pending, rest, snapshot = asyncio.run(run())
        assert pending is None
        assert 1 + len(rest) == 5
        # Steps 0 and 2, then the final frame
        assert len(snapshot["frames"]) == 3
        assert snapshot["offered"] == 4
        assert snapshot["render"] == {"preset": "koch", "iterations": 1}
        assert rest[-1].endswith(snapshot["frames"][-1] + b"\r\n")

    def test_empty_steps(self) -> None:
        async def run():
            manager = LSystemFrameManager()
            parts = await collect(animate_steps_stream([], manager, step_delay=0, size=(50, 50)))
            return parts, await manager.snapshot()

        parts, snapshot = asyncio.run(run())
        assert len(parts) == 1
        assert len(snapshot["frames"]) == 1


class TestFrameManager:
    def test_thinning(self) -> None:
        async def run():
            manager = LSystemFrameManager(every=3)
            kept = [await manager.offer(bytes([i])) for i in range(7)]
            await manager.finish(b"end")
            return kept, await manager.snapshot()

        kept, snapshot = asyncio.run(run())
        assert kept == [True, False, False, True, False, False, True]
        assert snapshot["frames"] == [b"\x00", b"\x03", b"\x06", b"end"]
        assert snapshot["render"] is None

    def test_begin_discards_previous_render(self) -> None:
        async def run():
            manager = LSystemFrameManager()
            await manager.begin({"preset": "koch"})
            await manager.finish(b"a")
            ready = await manager.snapshot()
            await manager.begin({"preset": "plant"})
            return ready, await manager.snapshot()

        ready, restarted = asyncio.run(run())
        assert ready["frames"] == [b"a"]
        assert ready["render"] == {"preset": "koch"}
        assert restarted is None

    def test_label_is_copied(self) -> None:
        async def run():
            manager = LSystemFrameManager()
            label = {"preset": "koch"}
            await manager.begin(label)
            label["preset"] = "changed"
            await manager.finish(b"a")
            return await manager.snapshot()

        assert asyncio.run(run())["render"] == {"preset": "koch"}

    def test_every_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            LSystemFrameManager(every=0)
