"""
Conversion pipeline

Discovers textures, encodes them in parallel and rewrites the scene
manifests once every encode has finished.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ktxify.config import ConverterSettings
from ktxify.discovery import discover_textures
from ktxify.exceptions import ConversionError
from ktxify.manifest import (
    ManifestRewrite,
    collect_color_spaces,
    find_manifests,
    rewrite_manifest,
)
from ktxify.tool import (
    CONVERTED,
    FAILED,
    SKIPPED,
    ConversionResult,
    convert_texture,
    find_tool,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ConversionResult, int, int], None]


@dataclass
class ConversionReport:
    """Everything a conversion run did"""
    results: List[ConversionResult] = field(default_factory=list)
    manifests: List[ManifestRewrite] = field(default_factory=list)

    @property
    def converted(self) -> List[ConversionResult]:
        return [r for r in self.results if r.status == CONVERTED]

    @property
    def skipped(self) -> List[ConversionResult]:
        return [r for r in self.results if r.status == SKIPPED]

    @property
    def failed(self) -> List[ConversionResult]:
        return [r for r in self.results if r.status == FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def references_rewritten(self) -> int:
        return sum(m.rewritten for m in self.manifests)

    def raise_for_failures(self) -> None:
        """Raise ConversionError if any texture failed"""
        if self.failed:
            names = ", ".join(str(r.texture.source) for r in self.failed)
            raise ConversionError(f"{len(self.failed)} texture(s) failed to convert: {names}")


def _resolve_manifests(root: Path, settings: ConverterSettings, manifests: Optional[Iterable]) -> List[Path]:
    if manifests is None:
        return find_manifests(root, settings)
    return [Path(m) for m in manifests]


def convert_assets(
    root,
    settings: Optional[ConverterSettings] = None,
    manifests: Optional[Iterable] = None,
    progress: Optional[ProgressCallback] = None,
) -> ConversionReport:
    """
    Convert every texture under root and point the manifests at the results.

    Args:
        root: Assets directory
        settings: Converter settings (defaults from the environment)
        manifests: Scene files to rewrite; found under root when None
        progress: Called as progress(result, done, total) after each texture

    Returns:
        ConversionReport with per-texture results and per-manifest rewrites

    Raises:
        ToolNotFoundError: If the encoder is missing (raised before any work)
        FileNotFoundError: If root does not exist
        TextureCollisionError: If two sources map to the same output (raised before any work)
        ManifestError: If a manifest cannot be read or written

    Example:
        >>> report = convert_assets("assets/hidden_alley")
        >>> print(len(report.converted), report.references_rewritten)
    """
    settings = settings or ConverterSettings.from_env()
    root = Path(root)

    tool_path = find_tool(settings.tool)
    if not root.is_dir():
        raise FileNotFoundError(f"Assets directory not found: {root}")

    manifest_paths = _resolve_manifests(root, settings, manifests)
    color_spaces = collect_color_spaces(manifest_paths)
    textures = discover_textures(root, settings, color_spaces)

    report = ConversionReport()
    total = len(textures)
    workers = settings.pool_size()
    logger.info(f"Converting {total} texture(s) with {workers} worker(s)")

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(convert_texture, tool_path, texture, settings): texture
            for texture in textures
        }
        for future in as_completed(futures):
            texture = futures[future]
            try:
                result = future.result()
            except Exception as e:
                logger.warning(f"Conversion of {texture.source} raised: {e!r}")
                result = ConversionResult(texture=texture, status=FAILED, error=f"{type(e).__name__}: {e}")
            report.results.append(result)
            if progress is not None:
                progress(result, len(report.results), total)

    report.results.sort(key=lambda r: r.texture.source)
    logger.info(
        f"Encoded {len(report.converted)}, skipped {len(report.skipped)}, "
        f"failed {len(report.failed)}"
    )

    # Every encode has finished; manifests only see outputs that exist
    for manifest in manifest_paths:
        report.manifests.append(rewrite_manifest(manifest, settings))

    return report


def rewrite_manifests(
    root,
    settings: Optional[ConverterSettings] = None,
    manifests: Optional[Iterable] = None,
) -> List[ManifestRewrite]:
    """
    Rewrite manifest references without encoding anything.

    Raises:
        FileNotFoundError: If root does not exist
        TextureCollisionError: If two sources map to the same output
        ManifestError: If a manifest cannot be read or written
    """
    settings = settings or ConverterSettings.from_env()
    root = Path(root)
    # Shared outputs would make references ambiguous
    discover_textures(root, settings)
    return [rewrite_manifest(m, settings) for m in _resolve_manifests(root, settings, manifests)]
