from __future__ import annotations

import sys
from pathlib import Path

from PIL import Image, ImageDraw

INFO_PLIST = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
	<key>CFBundleName</key>
	<string>Demo</string>
</dict>
</plist>
"""

ANDROID_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android" package="com.example.demo">
    <application android:label="Demo" android:icon="@mipmap/ic_launcher">
    </application>
</manifest>
"""


def main():
    root = Path(sys.argv[1] if len(sys.argv) > 1 else "demo_project")

    # iOS: no icons, broken Contents.json, Info.plist without CFBundleIconName
    iconset = root / "ios" / "Runner" / "Assets.xcassets" / "AppIcon.appiconset"
    iconset.mkdir(parents=True, exist_ok=True)
    (iconset / "Contents.json").write_text('{"images": [', encoding="utf-8")
    (root / "ios" / "Runner" / "Info.plist").write_text(INFO_PLIST, encoding="utf-8")

    # Android: one undersized launcher icon and a zero-byte one
    res = root / "android" / "app" / "src" / "main" / "res"
    (res / "mipmap-mdpi").mkdir(parents=True, exist_ok=True)
    (res / "mipmap-hdpi").mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (32, 32), (200, 30, 30)).save(res / "mipmap-mdpi" / "ic_launcher.png")
    (res / "mipmap-hdpi" / "ic_launcher.png").write_bytes(b"")
    (root / "android" / "app" / "src" / "main" / "AndroidManifest.xml").write_text(ANDROID_MANIFEST, encoding="utf-8")

    # Brand logo the pipeline prefers as its repair source
    logo = Image.new("RGBA", (1024, 1024), (0, 0, 0, 0))
    draw = ImageDraw.Draw(logo)
    draw.ellipse((64, 64, 960, 960), fill=(46, 125, 246, 255))
    (root / "assets" / "images").mkdir(parents=True, exist_ok=True)
    logo.save(root / "assets" / "images" / "logo.png")

    print(f"Created demo project at: {root.resolve()}")
    print(f"Try: icongate run --root {root}")

if __name__ == "__main__":
    main()
