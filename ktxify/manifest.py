"""
Scene manifest handling

Reads glTF scene files to learn which images hold colour data, and rewrites
their texture references once the compressed counterparts exist.

glTF (.gltf) manifests are parsed as JSON and only `images[].uri` is touched,
together with its `mimeType`. Any other text manifest gets a plain
substitution pass over quoted references.
"""

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import unquote

from ktxify.config import ConverterSettings
from ktxify.discovery import LINEAR, SRGB, is_hidden
from ktxify.exceptions import ManifestError

logger = logging.getLogger(__name__)

KTX2_MIME_TYPE = "image/ktx2"

# Material slots that carry non-colour data
LINEAR_SLOTS = ("normalTexture", "occlusionTexture", "metallicRoughnessTexture")


@dataclass
class ManifestRewrite:
    """
    Result of rewriting one manifest.

    Attributes:
        path: Manifest file
        rewritten: Number of references switched to the compressed extension
        unresolved: References left alone because no compressed file exists
        changed: Whether the file was written
    """
    path: Path
    rewritten: int = 0
    unresolved: List[str] = field(default_factory=list)
    changed: bool = False


def find_manifests(root, settings: Optional[ConverterSettings] = None) -> List[Path]:
    """Find scene manifests below root, skipping hidden directories like discovery does"""
    settings = settings or ConverterSettings()
    root = Path(root)
    found = set()
    for pattern in settings.manifest_patterns:
        found.update(
            p for p in root.rglob(pattern)
            if p.is_file() and not is_hidden(p, root)
        )
    return sorted(found)


def _load_gltf(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except OSError as e:
        raise ManifestError(f"Could not read manifest {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ManifestError(f"Manifest {path} is not valid JSON: {e}") from e


def _is_gltf(path: Path) -> bool:
    return path.suffix.lower() == ".gltf"


def _is_data_uri(uri: str) -> bool:
    return uri.startswith("data:")


def _resolve_uri(manifest: Path, uri: str) -> Path:
    return (manifest.parent / unquote(uri)).resolve()


def _image_color_spaces(gltf: Dict[str, Any]) -> Dict[int, str]:
    """Map image index -> colour space from material usage"""
    textures = gltf.get("textures") or []
    spaces: Dict[int, str] = {}

    def mark(texture_info, space):
        if not isinstance(texture_info, dict):
            return
        tex_index = texture_info.get("index")
        if not isinstance(tex_index, int) or not 0 <= tex_index < len(textures):
            return
        image_index = textures[tex_index].get("source")
        if not isinstance(image_index, int):
            return
        # Colour usage wins over data usage
        if spaces.get(image_index) != SRGB:
            spaces[image_index] = space

    for material in gltf.get("materials") or []:
        pbr = material.get("pbrMetallicRoughness") or {}
        mark(pbr.get("baseColorTexture"), SRGB)
        mark(material.get("emissiveTexture"), SRGB)
        mark(pbr.get("metallicRoughnessTexture"), LINEAR)
        for slot in LINEAR_SLOTS:
            mark(material.get(slot), LINEAR)

    return spaces


def collect_color_spaces(manifests: Iterable[Path]) -> Dict[Path, str]:
    """
    Determine the colour space of every image referenced by glTF manifests.

    Images only used as normal, occlusion or metallic-roughness maps are
    linear; everything else is sRGB. Non-glTF manifests are ignored.

    Returns:
        Resolved image path -> "srgb" | "linear"
    """
    result: Dict[Path, str] = {}
    for manifest in manifests:
        manifest = Path(manifest)
        if not _is_gltf(manifest):
            continue
        gltf = _load_gltf(manifest)
        spaces = _image_color_spaces(gltf)
        for idx, image in enumerate(gltf.get("images") or []):
            uri = image.get("uri")
            if not uri or _is_data_uri(uri):
                continue
            path = _resolve_uri(manifest, uri)
            space = spaces.get(idx, SRGB)
            if result.get(path) != SRGB:
                result[path] = space
    return result


def _swap_extension(ref: str, ext: str, target_ext: str) -> str:
    return ref[:-len(ext)] + target_ext


def _matching_extension(ref: str, settings: ConverterSettings) -> Optional[str]:
    lowered = unquote(ref).lower()
    for ext in settings.extensions:
        if lowered.endswith(ext):
            return ext
    return None


def _rewrite_gltf(path: Path, settings: ConverterSettings) -> ManifestRewrite:
    gltf = _load_gltf(path)
    outcome = ManifestRewrite(path=path)

    for image in gltf.get("images") or []:
        uri = image.get("uri")
        if not uri or _is_data_uri(uri):
            continue
        ext = _matching_extension(uri, settings)
        if ext is None:
            continue

        target = _resolve_uri(path, uri).with_suffix(settings.target_extension)
        if not target.exists():
            outcome.unresolved.append(uri)
            continue

        image["uri"] = _swap_extension(uri, ext, settings.target_extension)
        image["mimeType"] = KTX2_MIME_TYPE
        outcome.rewritten += 1

    if outcome.rewritten:
        _write_atomic(path, json.dumps(gltf, indent=2, ensure_ascii=False) + "\n")
        outcome.changed = True
    return outcome


def _reference_pattern(settings: ConverterSettings) -> "re.Pattern[str]":
    exts = "|".join(re.escape(ext) for ext in settings.extensions)
    return re.compile(r'(["\'])([^"\'\r\n]+?)(' + exts + r')\1', re.IGNORECASE)


def _rewrite_text(path: Path, settings: ConverterSettings) -> ManifestRewrite:
    try:
        text = path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(f"Could not read manifest {path}: {e}") from e

    outcome = ManifestRewrite(path=path)

    def replace(match):
        quote, stem, ext = match.group(1), match.group(2), match.group(3)
        target = _resolve_uri(path, stem + ext).with_suffix(settings.target_extension)
        if not target.exists():
            outcome.unresolved.append(stem + ext)
            return match.group(0)
        outcome.rewritten += 1
        return f"{quote}{stem}{settings.target_extension}{quote}"

    new_text = _reference_pattern(settings).sub(replace, text)
    if new_text != text:
        _write_atomic(path, new_text)
        outcome.changed = True
    return outcome


def _write_atomic(path: Path, content: str) -> None:
    """Write through a sibling temp file so readers never see a partial manifest"""
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise ManifestError(f"Could not write manifest {path}: {e}") from e


def rewrite_manifest(path, settings: Optional[ConverterSettings] = None) -> ManifestRewrite:
    """
    Point a manifest's texture references at the compressed files.

    Only references whose compressed counterpart exists on disk are changed,
    so running this twice (or after a partially failed batch) is safe.

    Args:
        path: Manifest file (.gltf parsed as JSON, anything else as text)
        settings: Converter settings (source and target extensions)

    Returns:
        ManifestRewrite describing what changed

    Raises:
        ManifestError: If the manifest cannot be read, parsed or written
    """
    settings = settings or ConverterSettings()
    path = Path(path)
    if not path.is_file():
        raise ManifestError(f"Manifest not found: {path}")

    if _is_gltf(path):
        outcome = _rewrite_gltf(path, settings)
    else:
        outcome = _rewrite_text(path, settings)

    if outcome.unresolved:
        logger.warning(
            f"{path.name}: {len(outcome.unresolved)} reference(s) kept, "
            f"no {settings.target_extension} counterpart: {', '.join(outcome.unresolved)}"
        )
    logger.info(f"{path.name}: rewrote {outcome.rewritten} texture reference(s)")
    return outcome
