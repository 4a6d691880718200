"""
ktxify CLI - Command-line interface for texture conversion
"""

import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from ktxify import __version__
from ktxify.config import ConverterSettings
from ktxify.discovery import discover_textures
from ktxify.exceptions import ManifestError, TextureCollisionError, ToolNotFoundError
from ktxify.manifest import collect_color_spaces, find_manifests
from ktxify.pipeline import convert_assets, rewrite_manifests
from ktxify.tool import FAILED, find_tool

DEFAULT_ROOT = "assets"

# Exit status when the batch finished but some textures failed (click uses 2 for usage errors)
EXIT_PARTIAL = 3


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str, verbose: bool = False) -> None:
    click.secho(message, fg='red', err=True)
    if verbose:
        import traceback
        traceback.print_exc()
    sys.exit(1)


def _run_conversion(root, settings, manifests=None, verbose=False) -> None:
    """Run a conversion and report it; exits on fatal errors"""
    def progress(result, done, total):
        if result.status == FAILED:
            click.secho(f"  ✗ {result.texture.source}: {result.error}", fg='red', err=True)
        elif verbose:
            click.echo(f"  [{done}/{total}] {result.status}: {result.texture.source}")

    try:
        click.echo(f"Converting textures under {root} (this can take a few minutes)")
        report = convert_assets(root, settings, manifests=manifests, progress=progress)
    except ToolNotFoundError as e:
        _fail(f"Error: {e}", verbose)
    except FileNotFoundError as e:
        _fail(f"Error: {e}", verbose)
    except TextureCollisionError as e:
        _fail(f"Error: {e}", verbose)
    except ManifestError as e:
        _fail(f"Manifest Error: {e}", verbose)
    except Exception as e:
        _fail(f"Unexpected error: {e}", verbose)

    click.echo(
        f"Converted: {len(report.converted)}, up to date: {len(report.skipped)}, "
        f"failed: {len(report.failed)}"
    )
    for rewrite in report.manifests:
        click.echo(f"  {rewrite.path}: {rewrite.rewritten} reference(s) rewritten")

    if not report.ok:
        click.secho(f"✗ {len(report.failed)} texture(s) failed to convert", fg='yellow', err=True)
        sys.exit(EXIT_PARTIAL)
    click.secho("✓ Success! Textures converted to KTX2", fg='green')


def _settings(**overrides) -> ConverterSettings:
    try:
        return ConverterSettings.from_env(**overrides)
    except ValidationError as e:
        raise click.BadParameter(str(e))


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option('--convert', 'do_convert', is_flag=True, help='Convert textures under --root to KTX2')
@click.option('--root', default=DEFAULT_ROOT, show_default=True, type=click.Path(), help='Assets directory')
@click.option('--verbose', '-v', is_flag=True, help='Show per-texture progress and debug logs')
@click.pass_context
def cli(ctx, do_convert, root, verbose):
    """
    ktxify - Convert scene textures to GPU-native KTX2.

    Without --convert nothing is touched; the assets are used as they are.

    Examples:
        ktxify --convert
        ktxify convert assets/hidden_alley --workers 8
        ktxify scan assets
    """
    if ctx.invoked_subcommand is not None:
        return

    _setup_logging(verbose)
    if not do_convert:
        click.echo("Nothing to do. Pass --convert to encode textures to KTX2.")
        return

    _run_conversion(root, _settings(), verbose=verbose)


@cli.command()
@click.argument('root', type=click.Path())
@click.option('--manifest', '-m', 'manifests', multiple=True, type=click.Path(), help='Scene file to rewrite (repeatable, default: every *.gltf under ROOT)')
@click.option('--workers', '-j', type=int, default=None, help='Concurrent encoder processes (default: CPU count)')
@click.option('--tool', default=None, help='Encoder executable (default: kram, or KTXIFY_TOOL)')
@click.option('--level', type=int, default=None, help='Supercompression level 0-22')
@click.option('--no-mipmaps', is_flag=True, help='Do not generate mipmaps')
@click.option('--force', is_flag=True, help='Re-encode textures that are already up to date')
@click.option('--verbose', '-v', is_flag=True, help='Show per-texture progress and debug logs')
def convert(root, manifests, workers, tool, level, no_mipmaps, force, verbose):
    """
    Convert every texture under ROOT to KTX2 and rewrite the scene files.

    Examples:
        ktxify convert assets
        ktxify convert assets -m assets/scene.gltf --force
    """
    _setup_logging(verbose)
    settings = _settings(
        workers=workers,
        tool=tool,
        level=level,
        mipmaps=False if no_mipmaps else None,
        force=force or None,
    )
    _run_conversion(root, settings, manifests=list(manifests) or None, verbose=verbose)


@cli.command()
@click.argument('root', type=click.Path())
def scan(root):
    """
    List the textures under ROOT that would be converted.

    Example:
        ktxify scan assets
    """
    settings = _settings()
    try:
        manifests = find_manifests(root, settings)
        textures = discover_textures(root, settings, collect_color_spaces(manifests))
    except FileNotFoundError as e:
        _fail(f"Error: {e}")
    except TextureCollisionError as e:
        _fail(f"Error: {e}")
    except ManifestError as e:
        _fail(f"Manifest Error: {e}")

    for texture in textures:
        size = f"{texture.size[0]}x{texture.size[1]}" if texture.size else "unreadable"
        state = "up to date" if texture.is_up_to_date() else "pending"
        click.echo(f"{texture.source}  {size}  {texture.color_space}  {state}")
    click.echo(f"{len(textures)} texture(s), {len(manifests)} manifest(s)")


@cli.command()
@click.argument('root', type=click.Path())
@click.option('--manifest', '-m', 'manifests', multiple=True, type=click.Path(), help='Scene file to rewrite (repeatable, default: every *.gltf under ROOT)')
def rewrite(root, manifests):
    """
    Point scene files at existing KTX2 textures without encoding.

    Example:
        ktxify rewrite assets
    """
    try:
        rewrites = rewrite_manifests(root, _settings(), manifests=list(manifests) or None)
    except FileNotFoundError as e:
        _fail(f"Error: {e}")
    except TextureCollisionError as e:
        _fail(f"Error: {e}")
    except ManifestError as e:
        _fail(f"Manifest Error: {e}")

    for outcome in rewrites:
        click.echo(f"{outcome.path}: {outcome.rewritten} reference(s) rewritten")
        for ref in outcome.unresolved:
            click.secho(f"  kept {ref} (no KTX2 counterpart)", fg='yellow')


@cli.command()
@click.option('--tool', default=None, help='Encoder executable (default: kram, or KTXIFY_TOOL)')
def check(tool):
    """Check that the encoder can be found."""
    settings = _settings(tool=tool)
    try:
        path = find_tool(settings.tool)
    except ToolNotFoundError as e:
        _fail(f"Error: {e}")
    click.secho(f"✓ Found {settings.tool}: {path}", fg='green')


def main():
    """Entry point for the CLI"""
    cli()


if __name__ == '__main__':
    main()
