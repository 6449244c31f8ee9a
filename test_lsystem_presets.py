import json

import pytest

from lsystem import LSystem, expanded_length
from lsystem_draw import draw_lsystem, trace_lsystem
from lsystem_presets import PRESETS, Preset, get_preset


class TestPresets:
    def test_known_names(self) -> None:
        assert len(PRESETS) == 17
        assert {"koch", "dragon_curve", "hilbert", "plant", "penrose"} <= set(PRESETS)
        assert all(name == preset.name for name, preset in PRESETS.items())

    def test_unknown_preset(self) -> None:
        with pytest.raises(KeyError, match="known presets"):
            get_preset("nope")

    def test_build_gives_fresh_systems(self) -> None:
        a = get_preset("koch").build()
        b = get_preset("koch").build()
        assert isinstance(a, LSystem)
        a.evaluate(2)
        assert b.state_string == "F"

    def test_as_dict_is_json_serialisable(self) -> None:
        data = json.loads(json.dumps(get_preset("peano_gosper").as_dict()))
        assert data["rules"] == {"X": "X+YF++YF-tFX--FXFX-YF+", "Y": "-FX+YFYF++YF+FX--FX-Y"}
        assert data["seed"] == "FX"
        assert data["starting_orientation"] == -90

    def test_presets_are_immutable(self) -> None:
        with pytest.raises(Exception):
            get_preset("koch").iterations = 99

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_every_preset_traces(self, name: str) -> None:
        preset = get_preset(name)
        lsystem = preset.build()
        params = preset.draw_kwargs()
        counter, recorder = trace_lsystem(lsystem, **params)
        assert counter == expanded_length(preset.seed, dict(preset.rules), preset.iterations)
        assert recorder.steps()

    def test_draw_koch(self, tmp_path) -> None:
        preset = get_preset("koch")
        result = draw_lsystem(preset.build(), filename=str(tmp_path / "koch.png"), **preset.draw_kwargs())
        assert result.commands == 4 ** 4 + 4 * (4 ** 4 - 1) // 3
        assert (tmp_path / "koch.png").exists()

    def test_custom_preset(self) -> None:
        algae = Preset("algae", (("A", "AB"), ("B", "A")), "A", iterations=4)
        assert algae.build().evaluate(algae.iterations).size == 8
