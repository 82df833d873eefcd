"""Core conversion logic between PNG images and Degas pictures."""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from PIL import Image

from . import planar
from .degas import PlanarImage, resolution_for_size
from .errors import ConversionError, UnsupportedPixelFormatError
from .quantize import (
    ChannelTable,
    ComponentWidth,
    ExpansionRule,
    Palette,
    QuantizeMode,
    build_table,
    quantize_colors,
    rgb_to_hardware_colors,
)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# Pillow modes covering 1/2/4/8-bit gray, 1/2/4/8-bit indexed, RGB and RGBA.
SUPPORTED_MODES = ("1", "L", "P", "RGB", "RGBA")


@dataclass
class ConvertOptions:
    """Options for color quantization and output encoding."""

    component_width: str = "ST"  # ST, STE
    expansion: str = "zero"  # zero, replicate, full
    compress: Optional[bool] = None  # None: decided by the output name

    def quantize_mode(self) -> QuantizeMode:
        try:
            width = ComponentWidth[self.component_width.upper()]
        except KeyError as exc:
            raise ConversionError(f"Unknown component width: {self.component_width}") from exc
        try:
            expansion = ExpansionRule(self.expansion.lower())
        except ValueError as exc:
            raise ConversionError(f"Unknown expansion rule: {self.expansion}") from exc
        return QuantizeMode(width=width, expansion=expansion)

    def channel_table(self) -> ChannelTable:
        return build_table(self.quantize_mode())


@dataclass
class ForeignImage:
    """An image decoded by Pillow, not yet converted."""

    image: Image.Image


LoadedImage = Union[ForeignImage, PlanarImage]


@dataclass
class DegasConversion:
    """Result of a PNG to Degas conversion."""

    picture: PlanarImage
    palette: Palette


def check_pixel_format(image: Image.Image) -> None:
    if image.mode not in SUPPORTED_MODES:
        raise UnsupportedPixelFormatError(
            f"unsupported pixel format {image.mode} "
            f"(expected one of {', '.join(SUPPORTED_MODES)})"
        )


def quantize_image(image: Image.Image, options: ConvertOptions | None = None) -> DegasConversion:
    """Quantize ``image`` and lay it out as a Degas picture."""

    options = options or ConvertOptions()
    resolution = resolution_for_size(*image.size)
    check_pixel_format(image)

    table = options.channel_table()
    colors = rgb_to_hardware_colors(image.convert("RGB").tobytes(), table)
    palette = quantize_colors(colors, resolution.colors)

    width = resolution.width
    index_of = palette.index_of
    body = planar.pack(
        width,
        resolution.height,
        resolution.planes,
        lambda x, y: index_of[colors[y * width + x]],
    )
    picture = PlanarImage(resolution=resolution, palette=palette.words(), body=body)
    return DegasConversion(picture=picture, palette=palette)


def convert_image_to_degas(image: Image.Image, options: ConvertOptions | None = None) -> PlanarImage:
    return quantize_image(image, options).picture


def convert_degas_to_image(picture: PlanarImage, options: ConvertOptions | None = None) -> Image.Image:
    options = options or ConvertOptions()
    return picture.to_image(options.channel_table())


def load_image_bytes(data: bytes) -> LoadedImage:
    """Identify ``data`` as a PNG or a Degas picture and decode it."""

    if data.startswith(PNG_SIGNATURE):
        try:
            image = Image.open(BytesIO(data))
            image.load()
        except Image.DecompressionBombError as exc:
            raise ConversionError(f"unsupported image size ({exc})") from exc
        return ForeignImage(image=image)
    return PlanarImage.from_bytes(data)


def load_image(path: str | Path) -> LoadedImage:
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError as exc:
        raise ConversionError(f"Input file not found: {path}") from exc
    except OSError as exc:
        raise ConversionError(f"Failed to read input: {path}") from exc
    try:
        return load_image_bytes(data)
    except OSError as exc:
        raise ConversionError(f"Failed to read PNG: {path}") from exc


def convert_png_to_degas(path: str | Path, options: ConvertOptions | None = None) -> bytes:
    options = options or ConvertOptions()
    path = Path(path)
    try:
        with Image.open(path) as img:
            picture = convert_image_to_degas(img, options)
    except FileNotFoundError as exc:
        raise ConversionError(f"Input file not found: {path}") from exc
    except Image.DecompressionBombError as exc:
        raise ConversionError(f"unsupported image size ({exc}): {path}") from exc
    except OSError as exc:
        raise ConversionError(f"Failed to read PNG: {path}") from exc
    return picture.to_bytes(compressed=bool(options.compress))


def convert_degas_to_png(path: str | Path, options: ConvertOptions | None = None) -> Image.Image:
    loaded = load_image(path)
    if not isinstance(loaded, PlanarImage):
        raise ConversionError(f"Input is not a Degas picture: {path}")
    return convert_degas_to_image(loaded, options)


def guess_compression(output: str | Path) -> Optional[bool]:
    """Guess raw or compressed output from a ``.pi?``/``.pc?`` style name."""

    suffix = Path(output).suffix
    if len(suffix) != 4:
        return None
    kind, digit = suffix[1:3].lower(), suffix[3]
    return kind == "pc" and digit in "123"


def output_name(
    source: str | Path,
    picture: Optional[PlanarImage],
    compressed: bool = False,
    same_dir: bool = False,
) -> Path:
    """Build the automatic output path for ``source``.

    Degas output gets ``.pi?``/``.pc?`` after the resolution; PNG output (when
    ``picture`` is None) gets ``.png``. The file goes to the current directory
    unless ``same_dir`` is set.
    """

    source = Path(source)
    if picture is None:
        extension = ".png"
    else:
        extension = "." + picture.resolution.format_name(compressed).lower()
    name = source.stem + extension
    return source.with_name(name) if same_dir else Path(name)
