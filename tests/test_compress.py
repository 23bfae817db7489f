from io import BytesIO

import pytest
from PIL import Image

from imgbatch.compress import Compressor, build_engine_registry, detect_image_format
from imgbatch.errors import CompressionError, ErrorKind
from imgbatch.models import CompressOptions


@pytest.mark.parametrize(
    "name, image_format",
    [("photo.jpg", "JPEG"), ("photo.jpeg", "JPEG"), ("photo.png", "PNG"), ("photo.webp", "WEBP")],
)
def test_compressor_writes_same_format(make_image, tmp_path, name, image_format):
    source = make_image(name, image_format)
    output = tmp_path / "out" / name
    output.parent.mkdir()
    Compressor()(source, output, CompressOptions(quality=50, palette_size=16))
    with Image.open(output) as image:
        assert image.format == image_format
        assert image.size == (64, 48)
    assert list(output.parent.iterdir()) == [output]


def test_compressor_leading_dot_name(make_image, tmp_path):
    source = make_image(".jpg", "JPEG")
    output = tmp_path / "_compressed.jpg"
    Compressor()(source, output, CompressOptions(quality=50))
    with Image.open(output) as image:
        assert image.format == "JPEG"
    assert sorted(path.name for path in tmp_path.iterdir()) == [".jpg", "_compressed.jpg"]


def test_png_is_quantized_to_palette(make_image, tmp_path):
    source = make_image("photo.png", "PNG")
    output = tmp_path / "small.png"
    Compressor()(source, output, CompressOptions(palette_size=8))
    with Image.open(output) as image:
        assert image.mode == "P"
        assert len(image.getcolors()) <= 8


def test_jpeg_flattens_alpha(make_image, tmp_path):
    source = make_image("alpha.png", "PNG", mode="RGBA")
    output = tmp_path / "alpha.jpg"
    registry = build_engine_registry()
    registry["jpeg"](source, output, CompressOptions(quality=0))
    with Image.open(output) as image:
        assert image.mode == "RGB"


def test_unsupported_extension(write_file, tmp_path):
    source = write_file(tmp_path / "image.gif", 10)
    with pytest.raises(CompressionError) as excinfo:
        Compressor()(source, tmp_path / "out.gif", CompressOptions())
    assert excinfo.value.kind is ErrorKind.COMPRESSION
    assert excinfo.value.image_format == "gif"


def test_missing_extension(write_file, tmp_path):
    source = write_file(tmp_path / "image", 10)
    with pytest.raises(CompressionError):
        Compressor()(source, tmp_path / "out", CompressOptions())


def test_invalid_image_leaves_no_output(write_file, tmp_path):
    source = write_file(tmp_path / "broken.jpg", 100)
    output = tmp_path / "broken_compressed.jpg"
    with pytest.raises(CompressionError) as excinfo:
        Compressor()(source, output, CompressOptions())
    assert excinfo.value.cause is not None
    assert not output.exists()
    assert sorted(path.name for path in tmp_path.iterdir()) == ["broken.jpg"]


def test_custom_registry(write_file, tmp_path):
    calls = []

    def engine(source, output, options):
        calls.append(options.quality)
        output.write_bytes(b"done")

    compressor = Compressor({"raw": engine})
    source = write_file(tmp_path / "a.RAW", 10)
    compressor(source, tmp_path / "b.raw", CompressOptions(quality=33))
    assert calls == [33]
    assert (tmp_path / "b.raw").read_bytes() == b"done"
    assert compressor.supported_formats() == ["raw"]


def test_registries_are_independent():
    first = Compressor()
    first.registry.pop("png")
    assert "png" in Compressor().registry
    assert Compressor().supported_formats() == ["jpeg", "jpg", "png", "webp"]


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"\xff\xd8\xff\xe0rest", "jpeg"),
        (b"\x89PNG\r\n\x1a\nrest", "png"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "webp"),
    ],
)
def test_detect_image_format(data, expected):
    assert detect_image_format(data) == expected


@pytest.mark.parametrize("data", [b"", b"GIF89a", b"RIFF\x00\x00\x00\x00WAVE"])
def test_detect_image_format_rejects_unknown(data):
    with pytest.raises(CompressionError):
        detect_image_format(data)


def test_compress_bytes(make_image):
    data = make_image("photo.png", "PNG").read_bytes()
    compressed = Compressor().compress_bytes(data, CompressOptions(palette_size=16))
    assert detect_image_format(compressed) == "png"
    with Image.open(BytesIO(compressed)) as image:
        assert image.size == (64, 48)


def test_compress_bytes_invalid_payload():
    with pytest.raises(CompressionError):
        Compressor().compress_bytes(b"\xff\xd8\xff" + b"\x00" * 20, CompressOptions())
