from __future__ import annotations

import io
import json
import plistlib
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
from xml.parsers.expat import ExpatError

from icongate.core.fsutil import atomic_write_bytes, atomic_write_text
from icongate.core.requirements import PlatformLayout
from icongate.errors import ManifestError
from icongate.models import IconRequirement

ANDROID_NS = "http://schemas.android.com/apk/res/android"
TOOLS_NS = "http://schemas.android.com/tools"
ET.register_namespace("android", ANDROID_NS)
ET.register_namespace("tools", TOOLS_NS)

FOREGROUND_DRAWABLE = "@mipmap/ic_launcher_foreground"
BACKGROUND_DRAWABLE = "@color/ic_launcher_background"
BACKGROUND_VALUES_RELPATH = "values/ic_launcher_background.xml"

ADAPTIVE_ICON_XML = """<?xml version="1.0" encoding="utf-8"?>
<adaptive-icon xmlns:android="http://schemas.android.com/apk/res/android">
    <background android:drawable="@color/ic_launcher_background"/>
    <foreground android:drawable="@mipmap/ic_launcher_foreground"/>
</adaptive-icon>
"""

BACKGROUND_VALUES_XML = """<?xml version="1.0" encoding="utf-8"?>
<resources>
    <color name="ic_launcher_background">{color}</color>
</resources>
"""


def _android_attr(name: str) -> str:
    return f"{{{ANDROID_NS}}}{name}"


# -------------------------
# Asset-manifest: iOS Contents.json
# -------------------------
def build_contents_json(requirements: Iterable[IconRequirement]) -> Dict[str, Any]:
    images = [
        {
            "filename": r.relpath,
            "idiom": r.idiom,
            "scale": r.scale,
            "size": r.point_size,
        }
        for r in requirements
    ]
    return {"images": images, "info": {"author": "xcode", "version": 1}}


def render_contents_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def read_contents_json(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestError(f"{path.name}: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("images"), list):
        raise ManifestError(f"{path.name}: expected an object with an 'images' list")
    return data


def declared_store_icon(data: Dict[str, Any]) -> Optional[str]:
    """Filename of the 1024x1024 marketing / universal 'any appearance' slot, if declared."""
    for entry in data.get("images", []):
        if not isinstance(entry, dict):
            continue
        if entry.get("size") != "1024x1024" or not entry.get("filename"):
            continue
        idiom = entry.get("idiom")
        # single-size catalogs: universal idiom with no appearance variant
        if idiom == "ios-marketing" or (idiom == "universal" and not entry.get("appearances")):
            return str(entry["filename"])
    return None


def declared_filenames(data: Dict[str, Any]) -> List[str]:
    return [
        str(e["filename"])
        for e in data.get("images", [])
        if isinstance(e, dict) and e.get("filename")
    ]


# -------------------------
# Asset-manifest: Android adaptive icon
# -------------------------
def parse_xml(path: Path) -> ET.ElementTree:
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    try:
        return ET.parse(str(path), parser=parser)
    except (OSError, ET.ParseError) as e:
        raise ManifestError(f"{path.name}: {e}") from e


def read_adaptive_icon(path: Path) -> Tuple[Optional[str], Optional[str]]:
    """(background drawable, foreground drawable) declared by an adaptive-icon file."""
    root = parse_xml(path).getroot()
    if root.tag != "adaptive-icon":
        raise ManifestError(f"{path.name}: root element is <{root.tag}>, expected <adaptive-icon>")

    def _drawable(tag: str) -> Optional[str]:
        el = root.find(tag)
        return el.get(_android_attr("drawable")) if el is not None else None

    return _drawable("background"), _drawable("foreground")


def render_background_values(color: Tuple[int, int, int]) -> str:
    return BACKGROUND_VALUES_XML.format(color="#%02X%02X%02X" % color)


# -------------------------
# Stray copies
# -------------------------
def is_stray_manifest(name: str, manifest_name: str) -> bool:
    """'Contents.json.backup', 'Contents 2.json', 'ic_launcher.xml.bak' and the like."""
    if name == manifest_name:
        return False
    stem, dot, suffix = manifest_name.rpartition(".")
    if name.startswith(manifest_name + "."):
        return True
    return bool(dot) and name.startswith(stem + " ") and name.endswith("." + suffix)


def find_stray_manifests(manifest_path: Path) -> List[Path]:
    folder = manifest_path.parent
    if not folder.is_dir():
        return []
    return sorted(
        p for p in folder.iterdir()
        if p.is_file() and is_stray_manifest(p.name, manifest_path.name)
    )


# -------------------------
# Application manifests
# -------------------------
def read_info_plist(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as f:
            data = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError, ExpatError) as e:
        raise ManifestError(f"{path.name}: {e}") from e
    except Exception as e:
        # plistlib surfaces bad <date> values and binary offsets as AttributeError, IndexError, struct.error
        raise ManifestError(f"{path.name}: malformed value ({type(e).__name__}: {e})") from e
    if not isinstance(data, dict):
        raise ManifestError(f"{path.name}: top-level object is not a dictionary")
    return data


def read_app_icon_key(layout: PlatformLayout, root: str) -> Optional[str]:
    """Current value of the icon-name key. Raises ManifestError when unparseable."""
    path = layout.app_manifest_path(root)
    if path.suffix == ".plist":
        value = read_info_plist(path).get(layout.icon_key)
        return None if value is None else str(value)

    app = parse_xml(path).getroot().find("application")
    if app is None:
        raise ManifestError(f"{path.name}: no <application> element")
    return app.get(_android_attr(layout.icon_key.split(":", 1)[1]))


def write_app_icon_key(layout: PlatformLayout, root: str) -> bool:
    """Set the icon-name key to the canonical icon set. Returns True when the file changed."""
    path = layout.app_manifest_path(root)
    if path.suffix == ".plist":
        data = read_info_plist(path)
        data[layout.icon_key] = layout.icon_set_name
        return atomic_write_bytes(path, plistlib.dumps(data, sort_keys=False))

    tree = parse_xml(path)
    app = tree.getroot().find("application")
    if app is None:
        raise ManifestError(f"{path.name}: no <application> element")
    app.set(_android_attr(layout.icon_key.split(":", 1)[1]), layout.icon_set_name)

    buf = io.BytesIO()
    tree.write(buf, encoding="utf-8", xml_declaration=True)
    return atomic_write_bytes(path, buf.getvalue())


def write_asset_manifest(layout: PlatformLayout, root: str, requirements: Iterable[IconRequirement]) -> bool:
    path = layout.asset_manifest_path(root)
    if path.suffix == ".json":
        return atomic_write_text(path, render_contents_json(build_contents_json(requirements)))
    return atomic_write_text(path, ADAPTIVE_ICON_XML)
