"""
External encoder wrapper

Runs the KTX2 encoder (kram by default) once per texture. The encoder is a
black box: we hand it a source image and fixed flags, and trust its exit
status.
"""

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ktxify.config import ConverterSettings
from ktxify.discovery import SRGB, TextureFile
from ktxify.exceptions import ToolNotFoundError

logger = logging.getLogger(__name__)

CONVERTED = "converted"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class ConversionResult:
    """Outcome of encoding a single texture"""
    texture: TextureFile
    status: str
    error: Optional[str] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status != FAILED


def find_tool(name: str = "kram") -> str:
    """
    Resolve the encoder executable.

    Args:
        name: Executable name looked up on PATH, or a path to the executable

    Returns:
        Absolute path to the executable

    Raises:
        ToolNotFoundError: If the executable cannot be found
    """
    resolved = shutil.which(name)
    if resolved:
        logger.debug(f"Resolved encoder {name} -> {resolved}")
        return resolved

    raise ToolNotFoundError(
        f"Texture encoder '{name}' not found on PATH.\n"
        "Install kram from: https://github.com/alecazam/kram\n"
        "Or set the KTXIFY_TOOL environment variable to its location."
    )


def build_command(
    tool_path: str,
    source: Path,
    output: Path,
    settings: ConverterSettings,
    color_space: str = SRGB,
) -> List[str]:
    """Build the encoder command line for one texture"""
    cmd = [
        tool_path,
        "encode",
        "-f", settings.texture_format,
        "-type", "2d",
    ]
    if color_space == SRGB:
        cmd.append("-srgb")
    cmd.extend([f"-{settings.codec}", str(settings.level)])
    if not settings.mipmaps:
        cmd.append("-mipnone")
    cmd.extend(["-o", str(output), "-i", str(source)])
    return cmd


def _partial_path(target: Path) -> Path:
    """Staging path the encoder writes to before the rename"""
    return target.with_name(f"{target.stem}.partial{target.suffix}")


def convert_texture(
    tool_path: str,
    texture: TextureFile,
    settings: Optional[ConverterSettings] = None,
) -> ConversionResult:
    """
    Encode one texture to its compressed counterpart.

    The encoder writes to a staging file next to the target which is renamed
    over the target only on success, so a crash never leaves a truncated
    output behind. Failures are returned, not raised.

    Args:
        tool_path: Resolved encoder path (see find_tool)
        texture: Texture to encode
        settings: Converter settings

    Returns:
        ConversionResult with status converted, skipped or failed
    """
    settings = settings or ConverterSettings()

    if not settings.force and texture.is_up_to_date():
        logger.debug(f"Up to date, skipping: {texture.source}")
        return ConversionResult(texture=texture, status=SKIPPED)

    staging = _partial_path(texture.target)
    cmd = build_command(tool_path, texture.source, staging, settings, texture.color_space)
    logger.debug(f"Running: {' '.join(cmd)}")

    start = time.monotonic()
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
    except OSError as e:
        _discard(staging)
        logger.warning(f"Could not launch encoder for {texture.source}: {e}")
        return ConversionResult(
            texture=texture,
            status=FAILED,
            error=f"Could not launch encoder: {e}",
            elapsed=time.monotonic() - start,
        )
    elapsed = time.monotonic() - start

    if result.returncode != 0:
        _discard(staging)
        detail = (result.stderr or result.stdout or "").strip()
        logger.warning(f"Encoder failed for {texture.source} (exit {result.returncode}): {detail}")
        return ConversionResult(
            texture=texture,
            status=FAILED,
            error=f"Encoder exited with status {result.returncode}: {detail}",
            elapsed=elapsed,
        )

    if not staging.exists():
        logger.warning(f"Encoder reported success but wrote no output for {texture.source}")
        return ConversionResult(
            texture=texture,
            status=FAILED,
            error=f"Encoder produced no output at {staging}",
            elapsed=elapsed,
        )

    os.replace(staging, texture.target)
    logger.info(f"Converted {texture.source.name} -> {texture.target.name} ({elapsed:.2f}s)")
    return ConversionResult(texture=texture, status=CONVERTED, elapsed=elapsed)


def _discard(path: Path) -> None:
    if path.exists():
        path.unlink()
