"""Image resizing, caching and request deduplication"""

import asyncio
import threading
import time

import pytest
from PIL import Image

from jellofin.services.image_resizer import ImageResizer, content_type_for, target_size

from .conftest import make_image


class CountingResizer(ImageResizer):
    """Resizer that records how often an image is actually decoded"""

    def __init__(self, cache_dir):
        super().__init__(cache_dir)
        self.renders = 0
        self._count_lock = threading.Lock()

    def _render(self, path, w, h, q, resize):
        with self._count_lock:
            self.renders += 1
        time.sleep(0.05)
        return ImageResizer._render(path, w, h, q, resize)


@pytest.mark.parametrize(
    "args, expected",
    [
        ((600, 900, 300, 0, 0, 0), (300, 450)),
        ((800, 400, 0, 200, 0, 0), (400, 200)),
        ((600, 900, 0, 0, 0, 0), (600, 900)),
        ((600, 900, 0, 0, 300, 0), (300, 450)),
        ((600, 900, 0, 0, 0, 300), (200, 300)),
        ((600, 900, 0, 0, 1000, 1000), (600, 900)),
        ((600, 900, 100, 100, 0, 0), (100, 100)),
    ],
)
def test_target_size(args, expected):
    assert target_size(*args) == expected


def test_content_type():
    assert content_type_for("poster.JPG") == "image/jpeg"
    assert content_type_for("folder.tbn") == "image/jpeg"
    assert content_type_for("banner.png") == "image/png"
    assert content_type_for("movie.mp4") is None


async def test_no_arguments_passes_through(tmp_path):
    source = make_image(tmp_path / "poster.jpg")
    resizer = CountingResizer(tmp_path / "cache")
    result = await resizer.open_file(source)
    assert result.path == source
    assert resizer.renders == 0


async def test_resize_writes_variant_and_dims(tmp_path):
    source = make_image(tmp_path / "poster.jpg")
    cache = tmp_path / "cache"
    resizer = CountingResizer(cache)

    result = await resizer.open_file(source, w=300)
    assert result.content_type == "image/jpeg"
    assert result.path.parent == cache
    assert result.path.name.endswith(":300x450q=0")
    with Image.open(result.path) as img:
        assert img.size == (300, 450)

    key = ImageResizer.cache_key(source.stat())
    assert (cache / key).read_text().strip() == "600x900"

    # served from the cache the second time
    again = await resizer.open_file(source, w=300)
    assert again.path == result.path
    assert resizer.renders == 1


async def test_concurrent_requests_render_once(tmp_path):
    source = make_image(tmp_path / "poster.jpg")
    resizer = CountingResizer(tmp_path / "cache")

    results = await asyncio.gather(
        *[resizer.open_file(source, w=200, q=80) for _ in range(8)]
    )
    assert resizer.renders == 1
    assert len({r.path for r in results}) == 1
    assert {r.path.stat().st_size for r in results} == {results[0].path.stat().st_size}


async def test_without_cache_returns_bytes(tmp_path):
    source = make_image(tmp_path / "poster.png")
    resizer = ImageResizer(None)
    result = await resizer.open_file(source, h=90)
    assert result.path is None
    assert result.content_type == "image/png"
    assert result.data.startswith(b"\x89PNG")


async def test_undecodable_image_is_served_as_is(tmp_path):
    source = tmp_path / "broken.jpg"
    source.write_bytes(b"not an image")
    resizer = ImageResizer(tmp_path / "cache")
    result = await resizer.open_file(source, w=100)
    assert result.path == source
