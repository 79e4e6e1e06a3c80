"""
Preset loading and saving.

Presets are JSON documents with camelCase keys::

    {
      "width": 800, "height": 600,
      "iterations": 200000, "burnIn": 20, "gamma": 2.2, "supersample": 2,
      "palette": "fire",
      "coloring": {"mode": "orbit-distance", "distanceScale": 0.5},
      "finalTransform": {"rotation": 15, "scale": 1.2, "translate": [0, 0]},
      "functions": [
        {"affine": [0.5, 0, 0, 0, 0.5, 0], "variations": {"linear": 1},
         "probability": 1, "color": 0.2}
      ]
    }

``palette`` is either a registered palette name or a list of hex colors.
"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Union
import logging

from ..core.errors import ConfigurationError
from ..core.flame_types import (
    AffineMatrix, Bounds, ColoringOptions, FinalTransform, FlameFunction, FlamePreset,
)

logger = logging.getLogger(__name__)

# JSON key -> ColoringOptions field
COLORING_KEYS = {
    'mode': 'mode',
    'distanceScale': 'distance_scale',
    'orbitLength': 'orbit_length',
    'momentumScale': 'momentum_scale',
    'fluxScale': 'flux_scale',
}


def _number(data: Mapping[str, Any], key: str, default, kind=float):
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"'{key}' must be a number, got {value!r}")
    return kind(value)


def _function_from_dict(data: Mapping[str, Any], index: int) -> FlameFunction:
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"functions[{index}] must be an object")

    variations = data.get('variations', {'linear': 1.0})
    if not isinstance(variations, Mapping):
        raise ConfigurationError(f"functions[{index}].variations must be an object")

    parameters = data.get('parameters')
    if parameters is not None:
        if not isinstance(parameters, Mapping) or not all(
                isinstance(v, Mapping) for v in parameters.values()):
            raise ConfigurationError(f"functions[{index}].parameters must map names to objects")
        try:
            parameters = {str(name): {str(k): float(v) for k, v in params.items()}
                          for name, params in parameters.items()}
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"functions[{index}].parameters: {e}") from e

    try:
        return FlameFunction(
            affine=AffineMatrix.from_sequence(data.get('affine', AffineMatrix.identity().to_list())),
            variations={str(name): _number(variations, name, 0.0) for name in variations},
            parameters=parameters,
            color=_number(data, 'color', None),
            probability=_number(data, 'probability', 1.0),
        )
    except ConfigurationError as e:
        raise ConfigurationError(f"functions[{index}]: {e}") from e


def _final_transform_from_dict(data: Mapping[str, Any]) -> FinalTransform:
    if not isinstance(data, Mapping):
        raise ConfigurationError("finalTransform must be an object")
    translate = data.get('translate', [0.0, 0.0])
    if (not isinstance(translate, (list, tuple)) or len(translate) != 2
            or not all(isinstance(v, (int, float)) for v in translate)):
        raise ConfigurationError("finalTransform.translate must be [x, y]")
    bounds = data.get('bounds')
    if bounds is not None:
        if not isinstance(bounds, (list, tuple)) or len(bounds) != 4:
            raise ConfigurationError("finalTransform.bounds must be [xmin, xmax, ymin, ymax]")
        try:
            bounds = Bounds(*(float(v) for v in bounds))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"finalTransform.bounds: {e}") from e
    return FinalTransform(
        rotation=_number(data, 'rotation', 0.0),
        scale=_number(data, 'scale', 1.0),
        translate=(float(translate[0]), float(translate[1])),
        bounds=bounds,
    )


def _coloring_from_dict(data: Mapping[str, Any]) -> ColoringOptions:
    if not isinstance(data, Mapping):
        raise ConfigurationError("coloring must be an object")
    unknown = set(data) - set(COLORING_KEYS)
    if unknown:
        logger.warning(f"Ignoring unknown coloring options: {', '.join(sorted(unknown))}")
    options = ColoringOptions(mode=str(data.get('mode', 'histogram')))
    for key, attr in COLORING_KEYS.items():
        if key == 'mode':
            continue
        kind = int if key == 'orbitLength' else float
        setattr(options, attr, _number(data, key, None, kind))
    return options


def preset_from_dict(data: Mapping[str, Any], validate: bool = True) -> FlamePreset:
    """
    Build a preset from its JSON representation.

    Args:
        data: Parsed preset document
        validate: Run :meth:`FlamePreset.validate` on the result

    Raises:
        ConfigurationError: If the document is malformed or out of range
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError("preset must be a JSON object")
    for key in ('width', 'height', 'functions'):
        if data.get(key) is None:
            raise ConfigurationError(f"preset is missing required key '{key}'")

    functions = data['functions']
    if not isinstance(functions, list):
        raise ConfigurationError("functions must be a list")

    palette = data.get('palette')
    if palette is not None and not isinstance(palette, str):
        if not isinstance(palette, list) or not all(isinstance(c, str) for c in palette):
            raise ConfigurationError("palette must be a name or a list of hex colors")

    final = data.get('finalTransform')

    preset = FlamePreset(
        width=_number(data, 'width', None, int),
        height=_number(data, 'height', None, int),
        functions=[_function_from_dict(fn, i) for i, fn in enumerate(functions)],
        iterations=_number(data, 'iterations', 100000, int),
        burn_in=_number(data, 'burnIn', 20, int),
        gamma=_number(data, 'gamma', 1.0),
        supersample=max(1, _number(data, 'supersample', 1, int)),
        palette=palette,
        coloring=_coloring_from_dict(data.get('coloring') or {}),
        final_transform=_final_transform_from_dict(final) if final is not None else None,
    )

    if validate:
        preset.validate()
    return preset


def preset_to_dict(preset: FlamePreset) -> Dict[str, Any]:
    """Convert a preset to its JSON representation."""
    coloring: Dict[str, Any] = {}
    for key, attr in COLORING_KEYS.items():
        value = getattr(preset.coloring, attr)
        if value is not None:
            coloring[key] = value

    data: Dict[str, Any] = {
        'width': preset.width,
        'height': preset.height,
        'iterations': preset.iterations,
        'burnIn': preset.burn_in,
        'gamma': preset.gamma,
        'supersample': preset.supersample,
        'coloring': coloring,
        'functions': [fn.to_dict() for fn in preset.functions],
    }
    if preset.palette is not None:
        data['palette'] = preset.palette if isinstance(preset.palette, str) else list(preset.palette)
    if preset.final_transform is not None:
        data['finalTransform'] = preset.final_transform.to_dict()
    return data


def load_preset(filepath: Union[str, Path], validate: bool = True) -> FlamePreset:
    """
    Load a preset from a JSON file.

    Raises:
        ConfigurationError: If the file is not valid JSON or not a valid preset
        OSError: If the file cannot be read
    """
    filepath = Path(filepath)
    with open(filepath, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{filepath}: invalid JSON: {e}") from e

    preset = preset_from_dict(data, validate=validate)
    logger.info(f"Loaded preset {filepath} ({len(preset.functions)} functions, "
                f"{preset.width}x{preset.height})")
    return preset


def save_preset(preset: FlamePreset, filepath: Union[str, Path], indent: int = 2) -> Path:
    """Write a preset to a JSON file."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(preset_to_dict(preset), f, indent=indent)
        f.write("\n")
    logger.info(f"Saved preset: {filepath}")
    return filepath
