import binascii
import struct
import zlib
from pathlib import Path

import pytest
from PIL import Image

from simple_degas_converter import ConversionError
from simple_degas_converter.converter import (
    ConvertOptions,
    ForeignImage,
    convert_degas_to_image,
    convert_degas_to_png,
    convert_image_to_degas,
    convert_png_to_degas,
    guess_compression,
    load_image,
    load_image_bytes,
    output_name,
    quantize_image,
)
from simple_degas_converter.degas import LOW, PlanarImage
from simple_degas_converter.errors import (
    QuantizationOverflowError,
    UnsupportedPixelFormatError,
    UnsupportedResolutionError,
)


def _rgb_sample() -> Image.Image:
    image = Image.new("RGB", (320, 200), (0, 0, 0))
    image.paste((0xE0, 0x20, 0x00), (0, 0, 160, 100))
    image.paste((0x40, 0x60, 0xA0), (160, 100, 320, 200))
    image.paste((0xE0, 0xE0, 0xE0), (16, 150, 48, 151))
    return image


def test_rgb_image_to_pi1() -> None:
    picture = convert_image_to_degas(_rgb_sample())
    assert picture.resolution is LOW
    data = picture.to_bytes()
    assert len(data) == 32034
    assert data[:2] == b"\x00\x00"
    # palette sorted by luminance: black, red, blue-ish, white, then sentinels
    assert picture.palette[:5] == [0x000, 0x710, 0x235, 0x777, 0xFFF]
    assert picture.palette[15] == 0xFFF
    assert picture.index_at(0, 0) == 1
    assert picture.index_at(300, 199) == 2
    assert picture.index_at(20, 150) == 3
    assert picture.index_at(300, 0) == 0


def test_palette_and_index_map_are_returned() -> None:
    conversion = quantize_image(_rgb_sample())
    assert conversion.palette.used == 4
    assert conversion.palette.index_of[0xE20] == 1


def test_round_trip_through_compressed_bytes() -> None:
    source = _rgb_sample()
    data = convert_image_to_degas(source).to_bytes(compressed=True)
    assert data[:2] == b"\x80\x00"
    loaded = load_image_bytes(data)
    assert isinstance(loaded, PlanarImage)
    restored = convert_degas_to_image(loaded)
    assert restored.mode == "P"
    assert restored.convert("RGB").tobytes() == source.tobytes()


def test_indexed_medium_resolution() -> None:
    image = Image.new("P", (640, 200), 0)
    image.putpalette([0, 0, 0, 224, 0, 0, 0, 224, 0, 0, 0, 224])
    image.paste(1, (0, 0, 10, 10))
    image.paste(2, (100, 50, 200, 60))
    image.paste(3, (630, 190, 640, 200))
    picture = convert_image_to_degas(image)
    assert picture.resolution.planes == 2
    assert picture.palette[:4] == [0x000, 0x007, 0x700, 0x070]
    assert picture.index_at(0, 0) == 2
    assert picture.index_at(150, 55) == 3
    assert picture.index_at(639, 199) == 1


def test_bilevel_high_resolution() -> None:
    image = Image.new("1", (640, 400), 0)
    image.paste(255, (0, 0, 320, 400))
    picture = convert_image_to_degas(image)
    assert picture.resolution.planes == 1
    assert picture.palette[:2] == [0x000, 0x777]
    assert picture.index_at(0, 0) == 1
    assert picture.index_at(639, 399) == 0


def test_grayscale_and_rgba_are_accepted() -> None:
    gray = Image.new("L", (640, 400), 0x80)
    assert convert_image_to_degas(gray).palette[0] == 0x444
    rgba = Image.new("RGBA", (640, 200), (0x20, 0x40, 0x60, 0))
    assert convert_image_to_degas(rgba).palette[0] == 0x123


def test_ste_quantization() -> None:
    image = Image.new("RGB", (640, 400), (0x10, 0x10, 0x10))
    options = ConvertOptions(component_width="STE")
    picture = convert_image_to_degas(image, options)
    # standard 0x111 is stored with the low bit on top of each nibble
    assert picture.palette[0] == 0x888
    assert convert_image_to_degas(image).palette[0] == 0x000


def test_too_many_colors() -> None:
    image = Image.new("RGB", (640, 200), (0, 0, 0))
    for i in range(5):
        image.paste((i * 0x20, 0, 0), (i * 16, 0, i * 16 + 16, 1))
    with pytest.raises(QuantizationOverflowError, match="5 > 4"):
        convert_image_to_degas(image)


def test_unsupported_resolution() -> None:
    with pytest.raises(UnsupportedResolutionError, match="256x192"):
        convert_image_to_degas(Image.new("RGB", (256, 192)))


def test_unsupported_pixel_format() -> None:
    with pytest.raises(UnsupportedPixelFormatError):
        convert_image_to_degas(Image.new("LA", (320, 200)))
    with pytest.raises(UnsupportedPixelFormatError):
        convert_image_to_degas(Image.new("I", (320, 200)))


def test_invalid_options() -> None:
    with pytest.raises(ConversionError):
        ConvertOptions(component_width="TT").quantize_mode()
    with pytest.raises(ConversionError):
        ConvertOptions(expansion="dither").quantize_mode()


def test_png_files_round_trip(tmp_path: Path) -> None:
    png = tmp_path / "sample.png"
    _rgb_sample().save(png)

    assert isinstance(load_image(png), ForeignImage)

    data = convert_png_to_degas(png, ConvertOptions(compress=True))
    pc1 = tmp_path / "sample.pc1"
    pc1.write_bytes(data)
    assert isinstance(load_image(pc1), PlanarImage)

    restored = convert_degas_to_png(pc1)
    assert restored.size == (320, 200)
    assert restored.convert("RGB").tobytes() == _rgb_sample().tobytes()


def test_file_errors(tmp_path: Path) -> None:
    with pytest.raises(ConversionError, match="not found"):
        load_image(tmp_path / "missing.png")
    with pytest.raises(ConversionError, match="not found"):
        convert_png_to_degas(tmp_path / "missing.png")

    png = tmp_path / "sample.png"
    _rgb_sample().save(png)
    with pytest.raises(ConversionError, match="not a Degas picture"):
        convert_degas_to_png(png)

    broken = tmp_path / "broken.png"
    broken.write_bytes(png.read_bytes()[:60])
    with pytest.raises(ConversionError):
        load_image(broken)


def test_guess_compression() -> None:
    assert guess_compression("out.pc1") is True
    assert guess_compression("OUT.PC3") is True
    assert guess_compression("out.pi2") is False
    assert guess_compression("out.pc9") is False
    assert guess_compression("out.degas") is None
    assert guess_compression("out") is None


def test_output_name() -> None:
    picture = PlanarImage(resolution=LOW)
    assert output_name("dir/pic.png", picture) == Path("pic.pi1")
    assert output_name("dir/pic.png", picture, compressed=True) == Path("pic.pc1")
    assert output_name("dir/pic.png", picture, same_dir=True) == Path("dir/pic.pi1")
    assert output_name("dir/pic.pc1", None) == Path("pic.png")
    assert output_name("dir/pic.pc1", None, same_dir=True) == Path("dir/pic.png")


def _huge_png_header() -> bytes:
    def chunk(chunk_type: bytes, data: bytes) -> bytes:
        crc = binascii.crc32(chunk_type + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + chunk_type + data + struct.pack(">I", crc)

    ihdr = struct.pack(">IIBBBBB", 60000, 60000, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", ihdr)
        + chunk(b"IDAT", zlib.compress(b""))
        + chunk(b"IEND", b"")
    )


def test_oversized_png_is_a_conversion_error(tmp_path: Path) -> None:
    with pytest.raises(ConversionError, match="unsupported image size"):
        load_image_bytes(_huge_png_header())

    path = tmp_path / "huge.png"
    path.write_bytes(_huge_png_header())
    with pytest.raises(ConversionError, match="unsupported image size"):
        load_image(path)
    with pytest.raises(ConversionError, match="unsupported image size"):
        convert_png_to_degas(path)
