"""Tests for JSON preset loading and saving."""

import json
import logging

import pytest

from flame_generator.core.errors import ConfigurationError
from flame_generator.core.flame_types import Bounds
from flame_generator.io.presets import load_preset, preset_from_dict, preset_to_dict, save_preset


@pytest.fixture
def preset_data():
    return {
        "width": 64,
        "height": 48,
        "iterations": 5000,
        "burnIn": 10,
        "gamma": 2.2,
        "supersample": 2,
        "palette": ["#000", "#ff6600"],
        "coloring": {"mode": "radial-flux", "orbitLength": 12, "fluxScale": 3.5},
        "finalTransform": {"rotation": 30, "scale": 1.5, "translate": [4, -2],
                           "bounds": [-1, 1, -1, 1]},
        "functions": [
            {"affine": [0.5, 0, 0, 0, 0.5, 0], "variations": {"linear": 1}, "probability": 2},
            {"affine": [0.5, 0, 0.5, 0, 0.5, 0], "variations": {"curl": 0.5, "swirl": 0.5},
             "parameters": {"curl": {"a": 0.7, "b": 0.2}}, "color": 0.9},
        ],
    }


class TestPresetFromDict:
    def test_fields(self, preset_data):
        preset = preset_from_dict(preset_data)
        assert (preset.width, preset.height) == (64, 48)
        assert preset.burn_in == 10
        assert preset.supersample == 2
        assert preset.palette == ["#000", "#ff6600"]
        assert preset.coloring.mode == 'radial-flux'
        assert preset.coloring.orbit_length == 12
        assert preset.coloring.flux_scale == 3.5
        assert preset.final_transform.translate == (4.0, -2.0)
        assert preset.final_transform.bounds == Bounds(-1.0, 1.0, -1.0, 1.0)

        second = preset.functions[1]
        assert second.affine.c == 0.5
        assert second.variations == {"curl": 0.5, "swirl": 0.5}
        assert second.params_for('curl') == {"a": 0.7, "b": 0.2}
        assert second.color == 0.9
        assert second.probability == 1.0
        assert preset.functions[0].probability == 2.0

    def test_defaults(self):
        preset = preset_from_dict({"width": 8, "height": 8, "functions": [{}]})
        assert preset.iterations == 100000
        assert preset.burn_in == 20
        assert preset.gamma == 1.0
        assert preset.palette is None
        assert preset.coloring.mode == 'histogram'
        assert preset.final_transform is None
        assert preset.functions[0].variations == {'linear': 1.0}

    @pytest.mark.parametrize("key", ['width', 'height', 'functions'])
    def test_missing_required_key(self, preset_data, key):
        del preset_data[key]
        with pytest.raises(ConfigurationError, match=key):
            preset_from_dict(preset_data)

    @pytest.mark.parametrize("update", [
        {"width": "wide"},
        {"gamma": True},
        {"palette": 3},
        {"palette": ["#fff", 7]},
        {"functions": {"affine": []}},
        {"coloring": "histogram"},
        {"finalTransform": {"translate": [1]}},
        {"finalTransform": {"bounds": [0, 1, 0]}},
    ])
    def test_malformed(self, preset_data, update):
        preset_data.update(update)
        with pytest.raises(ConfigurationError):
            preset_from_dict(preset_data)

    def test_malformed_function_names_index(self, preset_data):
        preset_data["functions"][1]["affine"] = [1, 2, 3]
        with pytest.raises(ConfigurationError, match=r"functions\[1\]"):
            preset_from_dict(preset_data)

    def test_validation_can_be_skipped(self, preset_data):
        preset_data["functions"][0]["probability"] = -1
        with pytest.raises(ConfigurationError):
            preset_from_dict(preset_data)
        preset = preset_from_dict(preset_data, validate=False)
        assert preset.functions[0].probability == -1.0

    def test_unknown_coloring_keys_warn(self, preset_data, caplog):
        preset_data["coloring"]["sparkle"] = 1
        with caplog.at_level(logging.WARNING):
            preset_from_dict(preset_data)
        assert "sparkle" in caplog.text


class TestPresetFiles:
    def test_save_and_load(self, preset_data, tmp_path):
        preset = preset_from_dict(preset_data)
        path = save_preset(preset, tmp_path / 'nested' / 'flame.json')
        assert path.exists()

        loaded = load_preset(path)
        assert preset_to_dict(loaded) == preset_to_dict(preset)

    def test_to_dict_uses_json_keys(self, preset_data):
        data = preset_to_dict(preset_from_dict(preset_data))
        assert data["burnIn"] == 10
        assert data["coloring"] == {"mode": "radial-flux", "orbitLength": 12, "fluxScale": 3.5}
        assert data["finalTransform"]["bounds"] == [-1.0, 1.0, -1.0, 1.0]
        assert json.loads(json.dumps(data)) == data

    def test_invalid_json(self, tmp_path):
        path = tmp_path / 'broken.json'
        path.write_text('{"width": 10,')
        with pytest.raises(ConfigurationError, match="invalid JSON"):
            load_preset(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_preset(tmp_path / 'absent.json')
