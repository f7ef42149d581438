from __future__ import annotations

import hashlib
import io
import logging
from pathlib import Path
from typing import Optional, Tuple

import requests
from PIL import Image, ImageTk, UnidentifiedImageError

from config import Config

logger = logging.getLogger(__name__)

# Open Library answers unknown ISBNs with a 1x1 placeholder image.
MIN_COVER_EDGE = 2


def _safe_name(identifier: str) -> str:
    return hashlib.sha1(identifier.encode("utf-8")).hexdigest()


def cached_cover_path(identifier: str, covers_dir: Optional[Path] = None) -> Path:
    return Path(covers_dir or Config.COVERS_DIR) / f"{_safe_name(identifier)}.jpg"


def fetch_and_cache_cover(
    cover_url: Optional[str],
    identifier: str,
    *,
    covers_dir: Optional[Path] = None,
    max_edge: Optional[int] = 200,
) -> Optional[Path]:
    """Download a cover image (if any) and save it to the cache directory.

    Returns None whenever there is no usable image; callers show a placeholder.
    """
    if not cover_url:
        return None

    target_path = cached_cover_path(identifier, covers_dir)
    if target_path.exists():
        return target_path

    try:
        response = requests.get(cover_url, timeout=Config.COVER_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as error:
        logger.debug("No cover for %s: %s", identifier, error)
        return None

    try:
        image = Image.open(io.BytesIO(response.content))
        if min(image.size) < MIN_COVER_EDGE:
            logger.debug("Cover for %s is a placeholder image.", identifier)
            return None
        if max_edge:
            image.thumbnail((max_edge, max_edge), Image.LANCZOS)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        image.convert("RGB").save(target_path, "JPEG")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as error:
        logger.debug("Could not store cover for %s: %s", identifier, error)
        return None

    return target_path


def load_thumbnail(path: Path, size: Tuple[int, int]) -> Optional[ImageTk.PhotoImage]:
    """Return a resized PhotoImage for Tkinter."""
    image = open_thumbnail(path, size)
    if image is None:
        return None
    return ImageTk.PhotoImage(image)


def open_thumbnail(path: Path, size: Tuple[int, int]) -> Optional[Image.Image]:
    if not path.exists():
        return None
    try:
        image = Image.open(path)
        image.thumbnail(size, Image.LANCZOS)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return None
    return image
