"""Custom exceptions for texture conversion"""


class KtxifyError(Exception):
    """Base exception for ktxify errors"""
    pass


class ToolNotFoundError(KtxifyError, FileNotFoundError):
    """The external encoder could not be resolved on the search path"""
    pass


class ConversionError(KtxifyError):
    """A single texture failed to convert"""
    pass


class ManifestError(KtxifyError):
    """A scene manifest could not be read, parsed or written"""
    pass


class TextureCollisionError(KtxifyError):
    """Two source textures would be encoded to the same output file"""
    pass
