"""Exceptions raised by the Degas converter."""


class ConversionError(Exception):
    """Custom exception for conversion errors."""


class QuantizationOverflowError(ConversionError):
    """Raised when an image has more distinct colors than the palette holds."""

    def __init__(self, colors: int, max_colors: int):
        super().__init__(f"too many colors -- {colors} > {max_colors}")
        self.colors = colors
        self.max_colors = max_colors


class UnsupportedPixelFormatError(ConversionError):
    """Raised for source pixel formats without a conversion rule."""


class UnsupportedResolutionError(ConversionError):
    """Raised when image dimensions match none of the Degas resolutions."""

    def __init__(self, width: int, height: int):
        super().__init__(
            f"unsupported image size {width}x{height} "
            "(expected 320x200, 640x200 or 640x400)"
        )
        self.width = width
        self.height = height


class CorruptStreamError(ConversionError):
    """Raised when run-length data reads or writes past its bounds."""


class MalformedHeaderError(ConversionError):
    """Raised for unknown format tags or files shorter than the format minimum."""
