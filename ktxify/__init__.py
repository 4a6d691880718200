"""
ktxify - Convert demo scene textures to GPU-native KTX2

Finds the PNG/JPEG textures of an asset package, encodes them to KTX2 with an
external encoder (kram) in parallel, and points the glTF scene files at the
compressed results.
"""

from ktxify.config import ConverterSettings
from ktxify.pipeline import ConversionReport, convert_assets, rewrite_manifests

__version__ = "0.1.0"
__all__ = ["ConverterSettings", "ConversionReport", "convert_assets", "rewrite_manifests"]
