"""Simple PNG to Degas converter.

This module converts PNG images to Atari ST Degas pictures (PI1/PI2/PI3 and
the compressed PC1/PC2/PC3 variants) and back. It can be invoked through the
CLI (``python -m simple_degas_converter``) or imported to convert images in
memory.
"""

__version__ = "1.0.0"

from .converter import (
    ConvertOptions,
    ForeignImage,
    convert_degas_to_image,
    convert_degas_to_png,
    convert_image_to_degas,
    convert_png_to_degas,
    load_image,
)
from .degas import PlanarImage, Resolution
from .errors import (
    ConversionError,
    CorruptStreamError,
    MalformedHeaderError,
    QuantizationOverflowError,
    UnsupportedPixelFormatError,
    UnsupportedResolutionError,
)

__all__ = [
    "ConversionError",
    "ConvertOptions",
    "CorruptStreamError",
    "ForeignImage",
    "MalformedHeaderError",
    "PlanarImage",
    "QuantizationOverflowError",
    "Resolution",
    "UnsupportedPixelFormatError",
    "UnsupportedResolutionError",
    "convert_degas_to_image",
    "convert_degas_to_png",
    "convert_image_to_degas",
    "convert_png_to_degas",
    "load_image",
]
