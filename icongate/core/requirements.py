from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from icongate.models import IconRequirement, PlatformTarget


@dataclass(frozen=True)
class PlatformLayout:
    platform: PlatformTarget
    platform_dir: str     # all paths relative to project root
    icon_dir: str
    asset_manifest: str
    app_manifest: str
    icon_key: str         # application manifest key referencing the icon set
    icon_set_name: str    # canonical value for icon_key
    icon_source_dirs: Optional[str] = None  # glob for icon_dir subfolders holding reusable icons; None = all

    def icon_dir_path(self, root: str) -> Path:
        return Path(root) / self.icon_dir

    def asset_manifest_path(self, root: str) -> Path:
        return Path(root) / self.asset_manifest

    def app_manifest_path(self, root: str) -> Path:
        return Path(root) / self.app_manifest


LAYOUTS: Dict[PlatformTarget, PlatformLayout] = {
    PlatformTarget.IOS: PlatformLayout(
        platform=PlatformTarget.IOS,
        platform_dir="ios",
        icon_dir="ios/Runner/Assets.xcassets/AppIcon.appiconset",
        asset_manifest="ios/Runner/Assets.xcassets/AppIcon.appiconset/Contents.json",
        app_manifest="ios/Runner/Info.plist",
        icon_key="CFBundleIconName",
        icon_set_name="AppIcon",
    ),
    PlatformTarget.ANDROID: PlatformLayout(
        platform=PlatformTarget.ANDROID,
        platform_dir="android",
        icon_dir="android/app/src/main/res",
        asset_manifest="android/app/src/main/res/mipmap-anydpi-v26/ic_launcher.xml",
        app_manifest="android/app/src/main/AndroidManifest.xml",
        icon_key="android:icon",
        icon_set_name="@mipmap/ic_launcher",
        icon_source_dirs="mipmap-*",
    ),
}

# (idiom, point size, scale) in asset-catalog order
_IOS_SLOTS: List[Tuple[str, str, int]] = [
    ("iphone", "20", 1), ("iphone", "20", 2), ("iphone", "20", 3),
    ("iphone", "29", 1), ("iphone", "29", 2), ("iphone", "29", 3),
    ("iphone", "40", 1), ("iphone", "40", 2), ("iphone", "40", 3),
    ("iphone", "60", 2), ("iphone", "60", 3),
    ("ipad", "20", 1), ("ipad", "20", 2),
    ("ipad", "29", 1), ("ipad", "29", 2),
    ("ipad", "40", 1), ("ipad", "40", 2),
    ("ipad", "76", 1), ("ipad", "76", 2),
    ("ipad", "83.5", 2),
    ("ios-marketing", "1024", 1),
]

ANDROID_DENSITIES: List[Tuple[str, int, int]] = [
    # density, launcher px, adaptive foreground px
    ("mdpi", 48, 108),
    ("hdpi", 72, 162),
    ("xhdpi", 96, 216),
    ("xxhdpi", 144, 324),
    ("xxxhdpi", 192, 432),
]

STORE_ICON_SIZE = 1024


def layout_for(platform: PlatformTarget) -> PlatformLayout:
    return LAYOUTS[platform]


def _ios_requirements() -> Tuple[IconRequirement, ...]:
    reqs = []
    for idiom, pt, scale in _IOS_SLOTS:
        px = int(round(float(pt) * scale))
        reqs.append(
            IconRequirement(
                platform=PlatformTarget.IOS,
                role=f"{idiom}-{pt}@{scale}x",
                width=px,
                height=px,
                relpath=f"Icon-App-{pt}x{pt}@{scale}x.png",
                idiom=idiom,
                point_size=f"{pt}x{pt}",
                scale=f"{scale}x",
                opaque=True,
            )
        )
    return tuple(reqs)


def _android_requirements() -> Tuple[IconRequirement, ...]:
    reqs = []
    for density, launcher_px, _ in ANDROID_DENSITIES:
        reqs.append(
            IconRequirement(
                platform=PlatformTarget.ANDROID,
                role=f"launcher-{density}",
                width=launcher_px,
                height=launcher_px,
                relpath=f"mipmap-{density}/ic_launcher.png",
                idiom="launcher",
            )
        )
    for density, _, fg_px in ANDROID_DENSITIES:
        reqs.append(
            IconRequirement(
                platform=PlatformTarget.ANDROID,
                role=f"foreground-{density}",
                width=fg_px,
                height=fg_px,
                relpath=f"mipmap-{density}/ic_launcher_foreground.png",
                idiom="foreground",
            )
        )
    return tuple(reqs)


@lru_cache(maxsize=None)
def requirements_for(platform: PlatformTarget) -> Tuple[IconRequirement, ...]:
    if platform is PlatformTarget.IOS:
        return _ios_requirements()
    return _android_requirements()


def largest_required_size(requirements: Iterable[IconRequirement]) -> int:
    return max((max(r.width, r.height) for r in requirements), default=0)


def critical_requirements(platform: PlatformTarget, sizes: Iterable[int]) -> Tuple[IconRequirement, ...]:
    wanted = set(int(s) for s in sizes)
    return tuple(r for r in requirements_for(platform) if r.width in wanted)


def unique_files(requirements: Iterable[IconRequirement]) -> List[IconRequirement]:
    """First requirement per relpath (iPhone and iPad slots may share a file)."""
    seen = set()
    out = []
    for r in requirements:
        if r.relpath in seen:
            continue
        seen.add(r.relpath)
        out.append(r)
    return out
