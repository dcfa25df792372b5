from __future__ import annotations

import fnmatch
import logging
import os
import struct
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from PIL import Image

from icongate.core.requirements import layout_for
from icongate.models import IconAsset, IconRequirement, PlatformTarget

logger = logging.getLogger(__name__)

IMAGE_EXTS = {"png", "jpg", "jpeg", "webp"}


def read_image_info(path: str) -> Tuple[Optional[int], Optional[int], bool]:
    """
    Return (width, height, has_alpha) for an image file.
    Corrupt or non-image files yield (None, None, False) instead of raising.
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
            has_alpha = img.mode in ("RGBA", "LA", "PA", "RGBa", "La") or "transparency" in img.info
            # full decode check; catches truncated data behind a valid header
            img.verify()
    except (OSError, SyntaxError, ValueError, struct.error, Image.DecompressionBombError) as e:
        logger.debug("Unreadable image %s: %s", path, e)
        return None, None, False
    return int(width), int(height), bool(has_alpha)


def inspect_file(role: str, path: Path) -> IconAsset:
    if not path.is_file():
        return IconAsset(role=role, path=str(path), present=False, width=None, height=None, byte_length=0)

    try:
        size = int(path.stat().st_size)
    except OSError:
        # unreadable file; still record it as size 0
        size = 0

    width = height = None
    has_alpha = False
    if size > 0:
        width, height, has_alpha = read_image_info(str(path))

    return IconAsset(
        role=role,
        path=str(path),
        present=True,
        width=width,
        height=height,
        byte_length=size,
        has_alpha=has_alpha,
    )


def take_inventory(
    platform: PlatformTarget,
    root: str,
    requirements: Iterable[IconRequirement],
) -> List[IconAsset]:
    """One IconAsset per requirement, located by the platform's path convention."""
    icon_dir = layout_for(platform).icon_dir_path(root)
    assets = [inspect_file(req.role, icon_dir / req.relpath) for req in requirements]

    present = sum(1 for a in assets if a.present)
    logger.info("%s inventory: %d/%d required icon(s) present", platform.label, present, len(assets))
    return assets


def list_existing_images(icon_dir: str, ignore_hidden: bool = True, subdirs: Optional[str] = None) -> List[IconAsset]:
    """
    Every readable, non-empty image under icon_dir (candidate repair sources).
    With subdirs, only top-level folders matching that glob are searched
    (Android keeps splash art in drawable-*, icons in mipmap-*).
    """
    root_path = Path(icon_dir)
    if not root_path.is_dir():
        return []

    found: List[IconAsset] = []
    for dirpath, dirnames, filenames in os.walk(root_path):
        if ignore_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        if subdirs and Path(dirpath) == root_path:
            dirnames[:] = [d for d in dirnames if fnmatch.fnmatch(d, subdirs)]
            continue
        for fn in sorted(filenames):
            if ignore_hidden and fn.startswith("."):
                continue
            full = Path(dirpath) / fn
            if full.suffix.lower().lstrip(".") not in IMAGE_EXTS:
                continue
            asset = inspect_file(str(full.relative_to(root_path)).replace("\\", "/"), full)
            if asset.byte_length > 0 and asset.readable:
                found.append(asset)
    return found
