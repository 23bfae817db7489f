from __future__ import annotations

from io import BytesIO
from pathlib import Path
import logging
from typing import BinaryIO, Callable, Mapping, Union

from PIL import Image

from .errors import CompressionError
from .models import CompressOptions, split_extension

logger = logging.getLogger(__name__)

ImageTarget = Union[Path, BinaryIO]
Engine = Callable[[ImageTarget, ImageTarget, CompressOptions], None]

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"


def compress_jpeg(source: ImageTarget, output: ImageTarget, options: CompressOptions) -> None:
    with Image.open(source) as image:
        if image.mode not in {"RGB", "L", "CMYK"}:
            image = flatten_to_rgb(image)
        image.save(
            output,
            format="JPEG",
            quality=clamp(options.quality, 1, 100),
            optimize=True,
            progressive=True,
        )


def compress_png(source: ImageTarget, output: ImageTarget, options: CompressOptions) -> None:
    with Image.open(source) as image:
        quantized = quantize_image(image, clamp(options.palette_size, 2, 256))
        quantized.save(output, format="PNG", optimize=True, compress_level=9)


def compress_webp(source: ImageTarget, output: ImageTarget, options: CompressOptions) -> None:
    with Image.open(source) as image:
        if image.mode not in {"RGB", "RGBA"}:
            image = image.convert("RGBA" if has_alpha(image) else "RGB")
        image.save(
            output,
            format="WEBP",
            lossless=False,
            quality=clamp(options.quality, 0, 100),
            method=6,
        )


def quantize_image(image: Image.Image, colors: int) -> Image.Image:
    fast_octree = 2
    median_cut = 0
    if has_alpha(image):
        return image.convert("RGBA").quantize(colors=colors, method=fast_octree)
    return image.convert("RGB").quantize(colors=colors, method=median_cut)


def flatten_to_rgb(image: Image.Image) -> Image.Image:
    if not has_alpha(image):
        return image.convert("RGB")
    rgba = image.convert("RGBA")
    background = Image.new("RGB", rgba.size, (255, 255, 255))
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background


def has_alpha(image: Image.Image) -> bool:
    return image.mode in {"RGBA", "LA", "PA"} or (image.mode == "P" and "transparency" in image.info)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def detect_image_format(data: bytes) -> str:
    if data[:3] == JPEG_SIGNATURE:
        return "jpeg"
    if data[:8] == PNG_SIGNATURE:
        return "png"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    raise CompressionError("unknown", "unsupported or unrecognised image data")


def build_engine_registry() -> dict[str, Engine]:
    return {
        "jpg": compress_jpeg,
        "jpeg": compress_jpeg,
        "png": compress_png,
        "webp": compress_webp,
    }


class Compressor:
    """Compression backend dispatching to an engine by file format.

    Instances are callable as ``compressor(source, output, options)`` and
    always either leave a complete file at ``output`` or raise
    :class:`CompressionError` without touching ``output``.
    """

    def __init__(self, registry: Mapping[str, Engine] | None = None) -> None:
        self.registry = dict(registry) if registry is not None else build_engine_registry()

    def supported_formats(self) -> list[str]:
        return sorted(self.registry)

    def get_engine(self, image_format: str) -> Engine:
        engine = self.registry.get(image_format.lower().lstrip("."))
        if engine is None:
            raise CompressionError(image_format or "unknown", "unsupported image format")
        return engine

    def __call__(self, source: Path, output: Path, options: CompressOptions) -> None:
        source = Path(source)
        output = Path(output)
        image_format = split_extension(source.name)[1].lower().lstrip(".")
        if not image_format:
            raise CompressionError("unknown", f"cannot determine image format of {source.name}")
        engine = self.get_engine(image_format)
        stem, extension = split_extension(output.name)
        temp = output.with_name(f"{stem}.__tmp{extension}")
        try:
            engine(source, temp, options)
            temp.replace(output)
        except CompressionError:
            _discard(temp)
            raise
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            _discard(temp)
            raise CompressionError(image_format, str(source), cause=exc) from exc
        logger.debug("%s engine wrote %s", image_format, output)

    def compress_bytes(self, data: bytes, options: CompressOptions) -> bytes:
        image_format = detect_image_format(data)
        engine = self.get_engine(image_format)
        buffer = BytesIO()
        try:
            engine(BytesIO(data), buffer, options)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise CompressionError(image_format, "invalid image data", cause=exc) from exc
        return buffer.getvalue()


def _discard(path: Path) -> None:
    if path.exists():
        path.unlink()
