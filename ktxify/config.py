"""
Converter settings

All tunables of a conversion run live in one pydantic model so the CLI,
the environment and library callers share the same validation.

Environment overrides:
- KTXIFY_TOOL: encoder executable name or path (default: kram)
- KTXIFY_FORMAT: block-compressed target format (default: bc7)
- KTXIFY_LEVEL: supercompression level (default: 0)
- KTXIFY_WORKERS: worker pool size (default: CPU count)
"""

import os
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ENV_PREFIX = "KTXIFY_"

# Supercompression levels accepted by zstd
MIN_LEVEL = 0
MAX_LEVEL = 22


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if not ext:
        raise ValueError("Extensions must not be empty")
    if not ext.startswith("."):
        ext = "." + ext
    return ext


class ConverterSettings(BaseModel):
    """
    Settings for a texture conversion run.

    Example:
        >>> settings = ConverterSettings(level=3, workers=4)
        >>> settings.pool_size()
        4
    """
    model_config = ConfigDict(extra='forbid', frozen=True)

    tool: str = Field("kram", description="Encoder executable name or path.")
    texture_format: str = Field("bc7", description="Target block-compressed format.")
    codec: str = Field("zstd", description="Supercompression codec.")
    level: int = Field(0, description="Supercompression level, 0 selects the codec default.")
    mipmaps: bool = Field(True, description="Generate a mip chain in the output.")
    extensions: Tuple[str, ...] = Field(
        (".png", ".jpg", ".jpeg"),
        description="Source texture extensions.",
    )
    target_extension: str = Field(".ktx2", description="Extension of converted textures.")
    workers: Optional[int] = Field(None, description="Worker pool size, None for CPU count.")
    force: bool = Field(False, description="Re-encode even when the output is up to date.")
    manifest_patterns: Tuple[str, ...] = Field(
        ("*.gltf",),
        description="Glob patterns of scene manifests below the assets root.",
    )

    @field_validator('extensions')
    @classmethod
    def _check_extensions(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("At least one source extension is required")
        return tuple(dict.fromkeys(_normalize_extension(ext) for ext in v))

    @field_validator('target_extension')
    @classmethod
    def _check_target_extension(cls, v: str) -> str:
        return _normalize_extension(v)

    @field_validator('level')
    @classmethod
    def _check_level(cls, v: int) -> int:
        if not MIN_LEVEL <= v <= MAX_LEVEL:
            raise ValueError(f"Compression level must be between {MIN_LEVEL} and {MAX_LEVEL}, got {v}")
        return v

    @field_validator('workers')
    @classmethod
    def _check_workers(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError(f"Worker count must be at least 1, got {v}")
        return v

    @model_validator(mode='after')
    def _check_target_not_source(self) -> "ConverterSettings":
        if self.target_extension in self.extensions:
            raise ValueError(
                f"Target extension {self.target_extension} cannot also be a source extension"
            )
        return self

    @classmethod
    def from_env(cls, **overrides) -> "ConverterSettings":
        """
        Build settings from KTXIFY_* environment variables.

        Keyword overrides that are not None take precedence over the environment.
        """
        values = {}
        env_fields = {
            "TOOL": "tool",
            "FORMAT": "texture_format",
            "LEVEL": "level",
            "WORKERS": "workers",
        }
        for suffix, field_name in env_fields.items():
            raw = os.getenv(ENV_PREFIX + suffix)
            if raw:
                values[field_name] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)

    def pool_size(self) -> int:
        """Number of concurrent encoder processes"""
        if self.workers is not None:
            return self.workers
        return os.cpu_count() or 1

    def is_source(self, name: str) -> bool:
        """Check whether a file name carries one of the source extensions"""
        return os.path.splitext(name)[1].lower() in self.extensions
