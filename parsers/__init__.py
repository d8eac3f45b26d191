"""
Filename parsers module.
"""

from parsers.filename_parser import (
    FilenameKey,
    FilenameKeyExtractor,
    KeyStrategy,
    STRATEGIES,
    is_image_filename,
)

__all__ = [
    "FilenameKey",
    "FilenameKeyExtractor",
    "KeyStrategy",
    "STRATEGIES",
    "is_image_filename",
]
