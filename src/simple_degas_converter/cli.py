"""Command line interface for the simple Degas converter."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import __version__
from .converter import (
    ConvertOptions,
    ForeignImage,
    LoadedImage,
    convert_degas_to_image,
    guess_compression,
    load_image,
    output_name,
    quantize_image,
)
from .degas import PlanarImage, describe
from .errors import ConversionError
from .quantize import hardware_to_rgb

PROGRAM_NAME = "degas-convert"


class Messages:
    """Verbosity-gated console output."""

    def __init__(self, level: int = 0):
        self.level = level

    def info(self, text: str) -> None:
        if self.level >= 0:
            print(text)

    def detail(self, text: str) -> None:
        if self.level >= 1:
            print(text)

    def error(self, text: str) -> None:
        if self.level >= -1:
            print(f"{PROGRAM_NAME}: {text}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROGRAM_NAME,
        description=(
            "Convert PNG images into Atari ST Degas pictures (PI1/PI2/PI3, or\n"
            "compressed PC1/PC2/PC3) and Degas pictures back into PNG.\n"
            "The picture resolution follows the PNG size: 320x200 (16 colors),\n"
            "640x200 (4 colors) or 640x400 (2 colors). Colors are reduced to the\n"
            "ST palette exactly; images with too many colors are rejected.\n"
            "If output is omitted the file path is created automatically."
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )

    parser.add_argument("input", help="PNG or Degas image to convert")
    parser.add_argument("output", nargs="?", help="Destination file")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-q", "--quiet", action="count", default=0, help="Print less messages"
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="Print more messages"
    )
    parser.add_argument(
        "-e",
        "--ste",
        action="store_true",
        help="Use STE color quantization (4 bits per component)",
    )
    parser.add_argument(
        "--expand",
        choices=["zero", "replicate", "full"],
        default="zero",
        help=(
            "How hardware colors map to 8-bit values: pad with zero bits, "
            "replicate the top bits, or spread over the full 0-255 range"
        ),
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-z",
        "--compress",
        dest="compress",
        action="store_const",
        const=True,
        help="Force image compression (pc1, pc2 or pc3)",
    )
    group.add_argument(
        "-r",
        "--raw",
        dest="compress",
        action="store_const",
        const=False,
        help="Force raw image (pi1, pi2 or pi3)",
    )
    parser.add_argument(
        "-d",
        "--same-dir",
        action="store_true",
        help="Automatic output path includes the source directory",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite existing files without prompting",
    )
    return parser


def build_options(args: argparse.Namespace) -> ConvertOptions:
    options = ConvertOptions()
    options.component_width = "STE" if args.ste else "ST"
    options.expansion = args.expand
    options.compress = args.compress
    return options


def check_target(target: Path, force: bool) -> None:
    if target.exists() and not force:
        raise ConversionError(f"Output file already exists (use --force to overwrite): {target}")


def describe_input(source: Path, loaded: LoadedImage) -> str:
    if isinstance(loaded, ForeignImage):
        image = loaded.image
        width, height = image.size
        return f'input: "{source.name}" {width}x{height} type:PNG-{image.mode}'
    return f'input: "{source.name}" {describe(loaded)}'


def png_to_degas(
    loaded: ForeignImage,
    args: argparse.Namespace,
    options: ConvertOptions,
    messages: Messages,
) -> None:
    table = options.channel_table()
    conversion = quantize_image(loaded.image, options)
    picture = conversion.picture
    palette = conversion.palette

    for index, color in enumerate(palette.colors[: palette.used]):
        r, g, b = hardware_to_rgb(color, table)
        messages.detail(f"color #{index:02d} ${color:03X} #{r:02X}{g:02X}{b:02X}")

    compressed = options.compress
    if compressed is None and args.output:
        compressed = guess_compression(args.output)
    compressed = bool(compressed)

    if args.output:
        target = Path(args.output)
    else:
        target = output_name(args.input, picture, compressed, args.same_dir)
    check_target(target, args.force)

    data = picture.to_bytes(compressed=compressed)
    write_bytes(target, data)
    messages.info(f'output: "{target}" {describe(picture, compressed)} size:{len(data)}')


def degas_to_png(
    picture: PlanarImage,
    args: argparse.Namespace,
    options: ConvertOptions,
    messages: Messages,
) -> None:
    if args.output:
        target = Path(args.output)
    else:
        target = output_name(args.input, None, same_dir=args.same_dir)
    check_target(target, args.force)

    image = convert_degas_to_image(picture, options)
    try:
        image.save(target, "PNG")
    except OSError as exc:
        raise ConversionError(f"Failed to write PNG: {target}") from exc
    messages.info(f'output: "{target}" {describe(picture)} size:{target.stat().st_size}')


def write_bytes(target: Path, data: bytes) -> None:
    try:
        target.write_bytes(data)
    except OSError as exc:
        raise ConversionError(f"Failed to write output: {target}") from exc


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    messages = Messages(args.verbose - args.quiet)

    try:
        options = build_options(args)
        source = Path(args.input)
        loaded = load_image(source)
        messages.info(describe_input(source, loaded))

        if isinstance(loaded, ForeignImage):
            png_to_degas(loaded, args, options, messages)
        else:
            degas_to_png(loaded, args, options, messages)
        return 0
    except ConversionError as exc:
        messages.error(str(exc))
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
