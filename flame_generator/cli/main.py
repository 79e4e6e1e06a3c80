"""
Command-line interface for flame rendering.

Renders JSON presets or random flames to PNG/TIFF and lists the registered
variations, palettes and coloring strategies.
"""

import click
import sys
import numpy as np
from pathlib import Path
import logging
import time

from .. import __version__
from ..api import FlameRenderer
from ..core.errors import FlameError
from ..core.variations import list_variations
from ..io.presets import load_preset, save_preset
from ..rendering.palette import list_palettes
from ..rendering.strategies import list_strategies
from ..tools.random_preset import random_flame_preset

logger = logging.getLogger(__name__)

# Errors reported as a one-line message with exit status 1
CLI_ERRORS = (FlameError, OSError, ValueError)


def _fail(ctx, e: Exception, prefix: str = "Error") -> None:
    click.echo(f"{prefix}: {e}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


def _apply_overrides(preset, overrides):
    """Apply non-None command-line overrides on top of a preset."""
    for key in ('width', 'height', 'iterations', 'burn_in', 'gamma', 'supersample'):
        if overrides.get(key) is not None:
            setattr(preset, key, overrides[key])
    if overrides.get('palette'):
        palette = overrides['palette']
        preset.palette = palette.split(',') if ',' in palette or palette.startswith('#') else palette
    if overrides.get('coloring'):
        preset.coloring.mode = overrides['coloring']
    if overrides.get('orbit_length') is not None:
        preset.coloring.orbit_length = overrides['orbit_length']
    preset.validate()
    return preset


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, verbose, quiet):
    """
    Flame Generator - fractal flame rendering tool.

    Render iterated function system flames from JSON presets or random
    parameters, with histogram and orbit-based coloring strategies.
    """
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"Flame Generator v{__version__}")
        click.echo(f"Python: {sys.version}")
        if ctx.invoked_subcommand is None:
            sys.exit(0)

    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose


@main.command()
@click.argument('preset_file', type=click.Path(exists=True))
@click.argument('output', type=click.Path())
@click.option('--width', '-w', type=int, help='Image width')
@click.option('--height', '-h', type=int, help='Image height')
@click.option('--iterations', '-n', type=int, help='Number of samples')
@click.option('--burn-in', type=int, help='Discarded warm-up iterations')
@click.option('--gamma', type=float, help='Gamma correction')
@click.option('--supersample', type=int, help='Supersampling factor')
@click.option('--palette', help='Palette name, or comma-separated hex colors')
@click.option('--coloring', help='Coloring strategy name')
@click.option('--orbit-length', type=int, help='Orbit length for orbit-based coloring')
@click.option('--no-metadata', is_flag=True, help='Do not embed render metadata')
@click.pass_context
def render(ctx, preset_file, output, no_metadata, **overrides):
    """
    Render a preset to an image.

    PRESET_FILE: JSON preset
    OUTPUT: Output image file path (.png, .tif, .tiff)
    """
    try:
        preset = _apply_overrides(load_preset(preset_file), overrides)

        click.echo(f"Rendering {preset_file} ({preset.width}x{preset.height}, "
                   f"{preset.iterations} iterations, {preset.coloring.mode})...")
        start_time = time.time()

        renderer = FlameRenderer()
        renderer.render_to_file(preset, Path(output), save_metadata=not no_metadata)

        click.echo(f"Render complete: {time.time() - start_time:.2f}s")
        click.echo(f"Saved: {output}")

    except CLI_ERRORS as e:
        _fail(ctx, e)


@main.command()
@click.argument('output', type=click.Path())
@click.option('--width', '-w', type=int, help='Image width (random if omitted)')
@click.option('--height', '-h', type=int, help='Image height (random if omitted)')
@click.option('--iterations', '-n', type=int, help='Override the random sample count')
@click.option('--seed', type=int, help='Seed for the random preset and the render')
@click.option('--save-preset', 'preset_output', type=click.Path(), help='Also write the generated preset as JSON')
@click.pass_context
def random(ctx, output, width, height, iterations, seed, preset_output):
    """
    Render a randomly generated flame.

    OUTPUT: Output image file path (.png, .tif, .tiff)
    """
    try:
        rng = np.random.default_rng(seed)

        preset = random_flame_preset(width, height, rng=rng)
        if iterations is not None:
            preset.iterations = iterations
            preset.validate()

        if preset_output:
            save_preset(preset, preset_output)
            click.echo(f"Saved preset: {preset_output}")

        click.echo(f"Rendering random flame ({preset.width}x{preset.height}, "
                   f"{len(preset.functions)} functions, {preset.coloring.mode})...")
        start_time = time.time()

        FlameRenderer(rng=rng).render_to_file(preset, Path(output))

        click.echo(f"Render complete: {time.time() - start_time:.2f}s")
        click.echo(f"Saved: {output}")

    except CLI_ERRORS as e:
        _fail(ctx, e)


@main.command('validate-preset')
@click.argument('preset_file', type=click.Path(exists=True))
@click.pass_context
def validate_preset(ctx, preset_file):
    """Validate a preset file."""
    try:
        preset = load_preset(preset_file)
        click.echo(f"✓ Preset is valid: {preset_file}")
        if ctx.obj.get('verbose'):
            click.echo(f"  {preset.width}x{preset.height}, {len(preset.functions)} functions, "
                       f"coloring={preset.coloring.mode}, palette={preset.palette}")
    except CLI_ERRORS as e:
        _fail(ctx, e, prefix=f"✗ Preset has errors: {preset_file}\n  Error")


@main.command('list-variations')
def list_variations_command():
    """List available variations."""
    click.echo("Available variations:")
    for name in list_variations():
        click.echo(f"  {name}")


@main.command('list-palettes')
def list_palettes_command():
    """List available color palettes."""
    click.echo("Available color palettes:")
    for name in list_palettes():
        click.echo(f"  {name}")


@main.command('list-strategies')
def list_strategies_command():
    """List available coloring strategies."""
    click.echo("Available coloring strategies:")
    for name in list_strategies():
        click.echo(f"  {name}")


if __name__ == '__main__':
    main()
