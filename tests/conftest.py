from pathlib import Path

import pytest
from PIL import Image

from imgbatch.models import CompressOptions


def write_bytes(path: Path, size: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


def halving_backend(source: Path, output: Path, options: CompressOptions) -> None:
    data = source.read_bytes()
    output.write_bytes(data[: len(data) // 2])


class FailingBackend:
    def __init__(self, *names: str) -> None:
        self.names = set(names)

    def __call__(self, source: Path, output: Path, options: CompressOptions) -> None:
        if source.name in self.names:
            raise RuntimeError(f"cannot compress {source.name}")
        halving_backend(source, output, options)


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    root = tmp_path / "in"
    write_bytes(root / "a.jpg", 1000)
    write_bytes(root / "b.png", 2000)
    write_bytes(root / "c.txt", 10)
    write_bytes(root / "sub" / "d.jpg", 500)
    write_bytes(root / "sub" / "deeper" / "e.webp", 300)
    return root


@pytest.fixture
def make_image(tmp_path: Path):
    def make(name: str, image_format: str, mode: str = "RGB", size: tuple[int, int] = (64, 48)) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        image = Image.new(mode, size)
        for x in range(size[0]):
            for y in range(size[1]):
                value = (x * 4, y * 5, (x + y) * 2)
                if mode == "RGBA":
                    value = value + (255 if x % 2 else 128,)
                image.putpixel((x, y), value)
        image.save(path, format=image_format)
        return path

    return make


@pytest.fixture
def write_file():
    return write_bytes


@pytest.fixture
def backend():
    return halving_backend


@pytest.fixture
def failing_backend():
    return FailingBackend
