import logging

import pytest
from PIL import Image

from imgbatch import cli
from imgbatch.cli import build_parser, format_file_size, main


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("imgbatch")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 B"), (1023, "1023 B"), (1024, "1.0 KB"), (1536, "1.5 KB"), (1024 * 1024 * 3, "3.0 MB")],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


def test_parser_defaults():
    args = build_parser().parse_args(["batch", "-i", "photos"])
    assert args.quality == 80
    assert args.palette_size == 256
    assert args.recursive is False
    assert args.include == "*.jpg,*.jpeg,*.png,*.webp"
    assert args.exclude == ""


def test_parser_rejects_unknown_palette_size():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["batch", "-i", "photos", "--palette-size", "100"])


def test_version(capsys):
    assert main(["version"]) == 0
    assert "imgbatch version" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_batch_missing_directory(tmp_path, capsys):
    assert main(["batch", "-i", str(tmp_path / "missing"), "--no-progress"]) == 1
    assert "does not exist" in capsys.readouterr().err


def test_batch_no_matches(write_file, tmp_path, capsys):
    write_file(tmp_path / "notes.txt", 5)
    assert main(["batch", "-i", str(tmp_path), "--no-progress"]) == 0
    assert "No matching files" in capsys.readouterr().out


def test_batch_compresses_tree(make_image, tmp_path, capsys):
    make_image("in/a.jpg", "JPEG")
    make_image("in/b.png", "PNG")
    make_image("in/sub/c.png", "PNG")
    make_image("in/a_thumb.jpg", "JPEG")
    out = tmp_path / "out"
    code = main([
        "batch", "-i", str(tmp_path / "in"), "-o", str(out), "-r", "-w", "2",
        "--exclude", "*_thumb*", "--stats", "--no-progress",
    ])
    assert code == 0
    assert sorted(path.relative_to(out).as_posix() for path in out.rglob("*") if path.is_file()) == [
        "a.jpg", "b.png", "sub/c.png",
    ]
    output = capsys.readouterr().out
    assert "Files processed: 3" in output
    assert "Success: 3, Failed: 0" in output


def test_batch_reports_failures(write_file, make_image, tmp_path, capsys):
    make_image("in/good.jpg", "JPEG")
    write_file(tmp_path / "in" / "bad.jpg", 50)
    code = main(["batch", "-i", str(tmp_path / "in"), "--verbose", "--no-progress"])
    captured = capsys.readouterr()
    assert code == 1
    assert "FAIL" in captured.out
    assert "1 file(s) failed" in captured.err
    assert (tmp_path / "in" / "good_compressed.jpg").exists()
    assert not (tmp_path / "in" / "bad_compressed.jpg").exists()


def test_compress_single_file(make_image, tmp_path, capsys):
    source = make_image("photo.webp", "WEBP")
    assert main(["compress", "-i", str(source), "-q", "40"]) == 0
    output = tmp_path / "photo_compressed.webp"
    with Image.open(output) as image:
        assert image.format == "WEBP"
    assert "photo_compressed.webp" in capsys.readouterr().out


def test_compress_missing_file(tmp_path, capsys):
    assert main(["compress", "-i", str(tmp_path / "nope.jpg")]) == 1
    assert "does not exist" in capsys.readouterr().err


def test_compress_invalid_image(write_file, tmp_path, capsys):
    source = write_file(tmp_path / "bad.png", 20)
    assert main(["compress", "-i", str(source), "-o", str(tmp_path / "x.png")]) == 1
    assert "Compression error" in capsys.readouterr().err


def test_verbose_enables_debug_logging(write_file, tmp_path):
    write_file(tmp_path / "notes.txt", 5)
    main(["batch", "-i", str(tmp_path), "--verbose", "--no-progress"])
    assert logging.getLogger("imgbatch").level == logging.DEBUG
    assert cli.LOG_FORMAT.startswith("%(asctime)s")
