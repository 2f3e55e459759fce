"""On-demand image resizing with an on-disk cache"""

import asyncio
import io
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from PIL import Image

from .log_service import log_service

logger = log_service.get_logger("image")

_image_ext = re.compile(r"\.(png|jpg|jpeg|tbn)$", re.IGNORECASE)

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "tbn": "image/jpeg",
    "png": "image/png",
}


def content_type_for(path: Union[str, Path]) -> Optional[str]:
    match = _image_ext.search(str(path))
    if not match:
        return None
    return CONTENT_TYPES[match.group(1).lower()]


@dataclass
class ResizedImage:
    """What to send: a file on disk, or encoded bytes when there is no cache"""

    content_type: Optional[str]
    path: Optional[Path] = None
    data: Optional[bytes] = None


def target_size(
    ow: float, oh: float, w: float, h: float, mw: float, mh: float
) -> Tuple[int, int]:
    """Resolve the output box from the requested width/height and maximums"""
    if w == 0 or h == 0:
        ar = ow / oh
        if w == 0 and h > 0:
            w = h * ar
        if h == 0 and w > 0:
            h = w / ar
        if w == 0 and h == 0:
            w, h = ow, oh

        if mw or mh:
            if mh == 0 or (mw > 0 and mh * ar > mw):
                mh = mw / ar
            if mw == 0 or (mh > 0 and mw / ar > mh):
                mw = mh * ar

        if (mh > 0 and h > mh) or (mw > 0 and w > mw):
            w, h = mw, mh
    return int(w), int(h)


class ImageResizer:
    """
    Resizes images at most once per (source, width, height, quality).

    A source file is identified by device and inode. The cache directory
    holds a dims file "<key>" with the original "<W>x<H>" and one file
    "<key>:<w>x<h>q=<q>" per rendered variant.
    """

    def __init__(self, cache_dir: Union[str, Path, None]):
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.tmp_ext = f".{os.getpid()}"
        self._locks: Dict[str, asyncio.Lock] = {}
        self._locks_lock = asyncio.Lock()
        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def cache_key(st: os.stat_result) -> str:
        return "%08x.%016x" % (st.st_dev, st.st_ino)

    def _variant_path(self, key: str, w: int, h: int, q: int) -> Optional[Path]:
        if self.cache_dir is None:
            return None
        return self.cache_dir / f"{key}:{w}x{h}q={q}"

    def _read_dims(self, key: str) -> Tuple[int, int]:
        if self.cache_dir is None:
            return 0, 0
        try:
            text = (self.cache_dir / key).read_text().strip()
            w, h = text.split("x", 1)
            return int(w), int(h)
        except (OSError, ValueError):
            return 0, 0

    def _write_atomic(self, target: Path, data: bytes) -> bool:
        tmp = target.with_name(target.name + self.tmp_ext)
        try:
            with open(tmp, "wb") as f:
                f.write(data)
            os.replace(tmp, target)
            return True
        except OSError as e:
            logger.error(f"Cannot write cache file {target}: {e}")
            try:
                tmp.unlink()
            except OSError:
                pass
            return False

    def _write_dims(self, key: str, w: int, h: int):
        if self.cache_dir is None:
            return
        self._write_atomic(self.cache_dir / key, f"{w}x{h}\n".encode())

    @staticmethod
    def _probe(path: Path) -> Tuple[int, int]:
        with Image.open(path) as img:
            return img.size

    @staticmethod
    def _render(path: Path, w: int, h: int, q: int, resize: bool) -> bytes:
        """Decode, resize with Lanczos and re-encode"""
        with Image.open(path) as img:
            fmt = "PNG" if img.format == "PNG" else "JPEG"
            if resize:
                img = img.resize((w, h), Image.Resampling.LANCZOS)
            out = io.BytesIO()
            if fmt == "JPEG":
                if img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")
                if q > 0:
                    img.save(out, "JPEG", quality=q)
                else:
                    img.save(out, "JPEG")
            else:
                img.save(out, "PNG")
            return out.getvalue()

    async def _lock_for(self, key: str) -> asyncio.Lock:
        async with self._locks_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
            return lock

    async def open_file(
        self,
        path: Union[str, Path],
        w: int = 0,
        h: int = 0,
        mw: int = 0,
        mh: int = 0,
        q: int = 0,
    ) -> ResizedImage:
        """Return the source or a resized variant of an image file"""
        path = Path(path)
        st = await asyncio.to_thread(os.stat, path)
        ctype = content_type_for(path)
        if ctype is None or not path.is_file():
            return ResizedImage(content_type=ctype, path=path)

        if w + h + mw + mh + q == 0:
            return ResizedImage(content_type=ctype, path=path)

        key = self.cache_key(st)

        # try the cache before knowing the original size
        cw = mw if w == 0 or (mw > 0 and w > mw) else w
        ch = mh if h == 0 or (mh > 0 and h > mh) else h
        if cw and ch:
            cached = self._variant_path(key, cw, ch, q)
            if cached is not None and cached.exists():
                return ResizedImage(content_type=ctype, path=cached)

        ow, oh = self._read_dims(key)
        if ow == 0 or oh == 0:
            try:
                ow, oh = await asyncio.to_thread(self._probe, path)
            except (OSError, Image.UnidentifiedImageError) as e:
                logger.error(f"Cannot decode image {path}: {e}")
                return ResizedImage(content_type=ctype, path=path)
            if ow == 0 or oh == 0:
                return ResizedImage(content_type=ctype, path=path)
            self._write_dims(key, ow, oh)

        tw, th = target_size(ow, oh, w, h, mw, mh)
        resize = (tw, th) != (ow, oh)
        if not resize and q == 0:
            return ResizedImage(content_type=ctype, path=path)

        variant = self._variant_path(key, tw, th, q)
        if variant is not None and variant.exists():
            return ResizedImage(content_type=ctype, path=variant)

        lock = await self._lock_for(key)
        async with lock:
            # another request may have rendered it while we waited
            if variant is not None and variant.exists():
                return ResizedImage(content_type=ctype, path=variant)

            try:
                blob = await asyncio.to_thread(self._render, path, tw, th, q, resize)
            except (OSError, Image.UnidentifiedImageError) as e:
                logger.error(f"Cannot resize image {path}: {e}")
                return ResizedImage(content_type=ctype, path=path)

            if variant is not None and self._write_atomic(variant, blob):
                return ResizedImage(content_type=ctype, path=variant)
            return ResizedImage(content_type=ctype, data=blob)
