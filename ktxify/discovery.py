"""
Texture discovery

Walks an assets root and collects the image files that should be encoded.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from ktxify.config import ConverterSettings
from ktxify.exceptions import TextureCollisionError

logger = logging.getLogger(__name__)

SRGB = "srgb"
LINEAR = "linear"


@dataclass
class TextureFile:
    """
    A texture found under the assets root.

    Attributes:
        source: Original image path
        target: Compressed output path (same stem, target extension)
        extension: Original extension, lowercase
        size: (width, height) if Pillow could read the image
        mode: Pillow image mode (RGB, RGBA, L, ...) if readable
        color_space: "srgb" for colour data, "linear" for normals and masks
    """
    source: Path
    target: Path
    extension: str
    size: Optional[Tuple[int, int]] = None
    mode: Optional[str] = None
    color_space: str = SRGB

    @property
    def has_alpha(self) -> bool:
        return self.mode in ("RGBA", "LA", "PA") if self.mode else False

    def is_up_to_date(self) -> bool:
        """True when the output exists and is at least as new as the source"""
        try:
            return self.target.stat().st_mtime >= self.source.stat().st_mtime
        except FileNotFoundError:
            return False


def target_path(source: Path, settings: ConverterSettings) -> Path:
    """Path of the compressed counterpart of a source texture"""
    return source.with_suffix(settings.target_extension)


def probe_image(path: Path) -> Tuple[Optional[Tuple[int, int]], Optional[str]]:
    """
    Read image dimensions and mode without decoding pixel data.

    Returns (None, None) for files Pillow cannot identify; the encoder
    gets the final say on whether they are usable.
    """
    try:
        with Image.open(path) as img:
            return img.size, img.mode
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Could not probe {path}: {e}")
        return None, None


def is_hidden(path: Path, root: Path) -> bool:
    """True if any component of path below root starts with a dot"""
    return any(part.startswith('.') for part in path.relative_to(root).parts)


def check_collisions(textures: List[TextureFile]) -> None:
    """
    Make sure every texture owns its output file.

    Raises:
        TextureCollisionError: Listing each output claimed by more than one source
    """
    claims: Dict[str, List[TextureFile]] = {}
    for texture in textures:
        claims.setdefault(os.path.normcase(str(texture.target)), []).append(texture)

    clashes = [group for group in claims.values() if len(group) > 1]
    if not clashes:
        return

    lines = [
        f"{group[0].target}: " + ", ".join(str(t.source) for t in group)
        for group in clashes
    ]
    raise TextureCollisionError(
        "Several textures would be encoded to the same file. "
        "Rename or remove one source of each:\n  " + "\n  ".join(lines)
    )


def discover_textures(
    root,
    settings: Optional[ConverterSettings] = None,
    color_spaces: Optional[Dict[Path, str]] = None,
) -> List[TextureFile]:
    """
    Find every source texture below root.

    Args:
        root: Assets directory
        settings: Converter settings (extensions, target extension)
        color_spaces: Resolved path -> colour space, usually from the scene manifests.
                      Textures not listed are treated as sRGB.

    Returns:
        Textures sorted by path

    Raises:
        FileNotFoundError: If root does not exist or is not a directory
        TextureCollisionError: If two sources share an output path (floor.png and floor.jpg)
    """
    settings = settings or ConverterSettings()
    color_spaces = color_spaces or {}
    root = Path(root)

    if not root.is_dir():
        raise FileNotFoundError(f"Assets directory not found: {root}")

    textures = []
    for dirpath, dirnames, filenames in os.walk(root):
        # Prune hidden directories (.git, editor caches)
        dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))

        for name in sorted(filenames):
            if name.startswith('.'):
                continue
            if not settings.is_source(name):
                continue

            source = Path(dirpath) / name
            size, mode = probe_image(source)
            textures.append(TextureFile(
                source=source,
                target=target_path(source, settings),
                extension=source.suffix.lower(),
                size=size,
                mode=mode,
                color_space=color_spaces.get(source.resolve(), SRGB),
            ))

    textures.sort(key=lambda t: t.source)
    check_collisions(textures)
    logger.info(f"Discovered {len(textures)} texture(s) under {root}")
    return textures
