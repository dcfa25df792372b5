from __future__ import annotations

import io
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw

from icongate.config import PipelineConfig
from icongate.core.fsutil import atomic_write_bytes, atomic_write_text
from icongate.core.inventory import inspect_file, list_existing_images
from icongate.core.manifest import (
    BACKGROUND_VALUES_RELPATH,
    find_stray_manifests,
    render_background_values,
    write_app_icon_key,
    write_asset_manifest,
)
from icongate.core.requirements import largest_required_size, layout_for, unique_files
from icongate.errors import ManifestError, ManifestRepairError, RepairIOError
from icongate.logs import log_success
from icongate.models import IconRequirement, Issue, PlatformTarget, ValidationResult

logger = logging.getLogger(__name__)

ASSET_MANIFEST_CODES = {
    "MANIFEST_MISSING",
    "MANIFEST_INVALID",
    "STORE_ICON_UNDECLARED",
    "MANIFEST_ENTRY_MISSING",
    "ADAPTIVE_LAYER_MISMATCH",
    "BACKGROUND_COLOR_MISSING",
    "DUPLICATE_MANIFEST",
}
ICON_KEY_CODES = {"ICON_KEY_MISSING", "ICON_KEY_MISMATCH"}
UNREPAIRABLE_APP_CODES = {"APP_MANIFEST_MISSING", "APP_MANIFEST_INVALID"}

PLACEHOLDER_LABEL = "<placeholder>"
ACCENT_COLOR = (0, 122, 255)


@dataclass(frozen=True)
class SourceImage:
    label: str          # "configured logo", "existing icon", ...
    path: str
    width: int
    height: int
    degraded: bool      # smaller than the largest required output

    @property
    def side(self) -> int:
        return min(self.width, self.height)


@dataclass(frozen=True)
class RepairSummary:
    source: Optional[SourceImage]
    regenerated: Tuple[str, ...]        # icon relpaths written
    manifest_written: bool
    app_manifest_written: bool
    removed: Tuple[str, ...]            # stray manifest names deleted

    @property
    def wrote_anything(self) -> bool:
        return bool(self.regenerated or self.manifest_written or self.app_manifest_written or self.removed)


def _candidates(platform: PlatformTarget, root: str, config: PipelineConfig) -> List[SourceImage]:
    """Readable source images in priority order: logo, existing icons (largest first), fallback."""
    out: List[SourceImage] = []

    def _add(label: str, path: Path) -> None:
        asset = inspect_file(label, path)
        if asset.present and asset.byte_length > 0 and asset.readable:
            out.append(SourceImage(label, str(path), asset.width, asset.height, degraded=False))
        elif asset.present:
            logger.warning("Ignoring unreadable %s: %s", label, path)

    logo = config.resolve_logo(root)
    if logo.is_file():
        _add("configured logo", logo)
    else:
        logger.debug("No logo at %s", logo)

    layout = layout_for(platform)
    existing = list_existing_images(str(layout.icon_dir_path(root)), subdirs=layout.icon_source_dirs)
    existing.sort(key=lambda a: (-min(a.width, a.height), a.role))
    for asset in existing:
        out.append(SourceImage("existing icon", asset.path, asset.width, asset.height, degraded=False))

    if config.fallback_path:
        _add("fallback asset", Path(config.fallback_path))

    return out


def rank_sources(
    platform: PlatformTarget,
    root: str,
    requirements: Sequence[IconRequirement],
    config: PipelineConfig,
) -> List[SourceImage]:
    """
    Source images in the order repair should try them.

    Candidates at least as large as the largest required output come first, in
    priority order. Undersized candidates follow, largest first and flagged
    degraded. The placeholder (when enabled) is always last.
    """
    needed = largest_required_size(requirements)
    candidates = _candidates(platform, root, config)

    adequate = [c for c in candidates if c.side >= needed]
    undersized = sorted((c for c in candidates if c.side < needed), key=lambda c: -c.side)
    ranked = adequate + [replace(c, degraded=True) for c in undersized]
    if config.synthesize_placeholder:
        ranked.append(SourceImage("placeholder", PLACEHOLDER_LABEL, needed, needed, degraded=False))
    return ranked


def _announce(platform: PlatformTarget, source: SourceImage, needed: int) -> None:
    if source.path == PLACEHOLDER_LABEL:
        logger.warning("%s has no usable source image; generating a placeholder icon", platform.label)
    elif source.degraded:
        logger.warning(
            "%s repair source %s is %dx%d, smaller than the largest required %dx%d; icon quality will be degraded",
            platform.label, source.path, source.width, source.height, needed, needed,
        )
    else:
        logger.info("%s repair source: %s %s (%dx%d)", platform.label, source.label, source.path, source.width, source.height)


def open_first_source(
    platform: PlatformTarget,
    root: str,
    requirements: Sequence[IconRequirement],
    config: PipelineConfig,
) -> Tuple[SourceImage, Image.Image]:
    """Load ranked sources in turn; a file that passes the header check but fails to decode is skipped."""
    needed = largest_required_size(requirements)
    for source in rank_sources(platform, root, requirements, config):
        try:
            image = load_source(source, config.background_color)
        except RepairIOError as e:
            logger.warning("Skipping %s: %s", source.label, e)
            continue
        _announce(platform, source, needed)
        return source, image
    raise RepairIOError(f"No usable source image for {platform.label} icon repair")


def make_placeholder(size: int, background: Tuple[int, int, int]) -> Image.Image:
    image = Image.new("RGBA", (size, size), background + (255,))
    draw = ImageDraw.Draw(image)
    padding = max(4, size // 8)
    draw.rounded_rectangle(
        (padding, padding, size - padding, size - padding),
        radius=max(6, size // 6),
        fill=ACCENT_COLOR + (255,),
    )
    return image


def load_source(source: SourceImage, background: Tuple[int, int, int]) -> Image.Image:
    if source.path == PLACEHOLDER_LABEL:
        return make_placeholder(source.width, background)
    try:
        with Image.open(source.path) as img:
            img.load()
            return img.convert("RGBA")
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise RepairIOError(f"Cannot read source image {source.path}: {e}") from e


def center_crop_square(img: Image.Image) -> Image.Image:
    w, h = img.size
    if w == h:
        return img
    side = min(w, h)
    left = (w - side) // 2
    top = (h - side) // 2
    return img.crop((left, top, left + side, top + side))


def render_icon(source: Image.Image, req: IconRequirement, background: Tuple[int, int, int]) -> bytes:
    """PNG bytes at exactly req.width x req.height."""
    img = center_crop_square(source.convert("RGBA"))
    if img.width < max(req.width, req.height):
        logger.warning(
            "Upscaling %dx%d source to %s for %s; quality degraded",
            img.width, img.height, req.size_label, req.role,
        )
    if img.size != (req.width, req.height):
        img = img.resize((req.width, req.height), Image.Resampling.LANCZOS)

    if req.opaque:
        # App Store rejects icons with an alpha channel
        flat = Image.new("RGB", img.size, background)
        flat.paste(img, mask=img.getchannel("A"))
        img = flat

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def repair_platform(
    platform: PlatformTarget,
    root: str,
    requirements: Sequence[IconRequirement],
    results: Sequence[ValidationResult],
    issues: Sequence[Issue],
    config: PipelineConfig,
    full_requirements: Optional[Sequence[IconRequirement]] = None,
) -> RepairSummary:
    """
    Bring every non-PASS requirement to PASS and rewrite broken manifests.

    Only failing requirements are regenerated. The asset manifest is always
    rebuilt from full_requirements (the complete table) so a reduced
    emergency pass never drops entries.

    Raises RepairIOError on filesystem failures and ManifestRepairError when
    the application manifest cannot be parsed.
    """
    layout = layout_for(platform)
    icon_dir = layout.icon_dir_path(root)
    failing = [r for r in results if not r.passed]
    error_codes = {i.code for i in issues if i.level.upper() == "ERROR"}

    source: Optional[SourceImage] = None
    regenerated: List[str] = []
    if failing:
        source, image = open_first_source(platform, root, requirements, config)

        for req in unique_files(r.requirement for r in failing):
            data = render_icon(image, req, config.background_color)
            target = icon_dir / req.relpath
            try:
                atomic_write_bytes(target, data)
            except OSError as e:
                raise RepairIOError(f"Failed writing {target}: {e}") from e
            regenerated.append(req.relpath)
            logger.info("Regenerated %s (%s)", req.relpath, req.size_label)

    manifest_written = False
    removed: List[str] = []
    if regenerated or (error_codes & ASSET_MANIFEST_CODES):
        try:
            manifest_written = write_asset_manifest(layout, root, full_requirements or requirements)
            if platform is PlatformTarget.ANDROID:
                values = icon_dir / BACKGROUND_VALUES_RELPATH
                if not values.is_file():
                    atomic_write_text(values, render_background_values(config.background_color))
                    manifest_written = True
            for stray in find_stray_manifests(layout.asset_manifest_path(root)):
                stray.unlink()
                removed.append(stray.name)
                logger.info("Removed stray asset manifest %s", stray.name)
        except OSError as e:
            raise RepairIOError(f"Failed writing asset manifest {layout.asset_manifest}: {e}") from e
        if manifest_written:
            log_success(logger, "Rewrote asset manifest %s", layout.asset_manifest)

    app_manifest_written = False
    if error_codes & UNREPAIRABLE_APP_CODES:
        raise ManifestRepairError(
            f"{layout.app_manifest} is missing or malformed; it cannot be rebuilt automatically"
        )
    if error_codes & ICON_KEY_CODES:
        try:
            app_manifest_written = write_app_icon_key(layout, root)
        except ManifestError as e:
            raise ManifestRepairError(str(e)) from e
        except OSError as e:
            raise RepairIOError(f"Failed writing {layout.app_manifest}: {e}") from e
        if app_manifest_written:
            log_success(logger, "Set %s to %s in %s", layout.icon_key, layout.icon_set_name, layout.app_manifest)

    return RepairSummary(
        source=source,
        regenerated=tuple(regenerated),
        manifest_written=manifest_written,
        app_manifest_written=app_manifest_written,
        removed=tuple(removed),
    )
