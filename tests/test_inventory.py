import tempfile
import unittest
from pathlib import Path

from icon_fixtures import make_android_tree, write_png

from icongate.core.inventory import inspect_file, list_existing_images, read_image_info, take_inventory
from icongate.core.requirements import requirements_for
from icongate.models import PlatformTarget


class TestInventory(unittest.TestCase):
    def test_read_image_info(self):
        with tempfile.TemporaryDirectory() as td:
            rgb = write_png(Path(td) / "rgb.png", 40, 20)
            rgba = write_png(Path(td) / "rgba.png", 16, mode="RGBA")
            junk = Path(td) / "junk.png"
            junk.write_bytes(b"this is not an image")

            self.assertEqual(read_image_info(str(rgb)), (40, 20, False))
            self.assertEqual(read_image_info(str(rgba)), (16, 16, True))
            self.assertEqual(read_image_info(str(junk)), (None, None, False))

    def test_inspect_file_states(self):
        with tempfile.TemporaryDirectory() as td:
            empty = Path(td) / "empty.png"
            empty.write_bytes(b"")

            missing = inspect_file("a", Path(td) / "nope.png")
            self.assertFalse(missing.present)
            self.assertEqual(missing.byte_length, 0)

            zero = inspect_file("b", empty)
            self.assertTrue(zero.present)
            self.assertEqual(zero.byte_length, 0)
            self.assertFalse(zero.readable)

            ok = inspect_file("c", write_png(Path(td) / "ok.png", 48))
            self.assertTrue(ok.readable)
            self.assertEqual((ok.width, ok.height), (48, 48))
            self.assertGreater(ok.byte_length, 0)

    def test_take_inventory_one_asset_per_requirement(self):
        with tempfile.TemporaryDirectory() as td:
            res = make_android_tree(td)
            (res / "mipmap-hdpi" / "ic_launcher.png").unlink()

            reqs = requirements_for(PlatformTarget.ANDROID)
            assets = take_inventory(PlatformTarget.ANDROID, td, reqs)

            self.assertEqual([a.role for a in assets], [r.role for r in reqs])
            by_role = {a.role: a for a in assets}
            self.assertFalse(by_role["launcher-hdpi"].present)
            self.assertEqual(by_role["launcher-xhdpi"].width, 96)

    def test_list_existing_images_skips_unusable(self):
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            write_png(root / "mipmap-mdpi" / "ic_launcher.png", 48)
            write_png(root / ".hidden" / "big.png", 512)
            (root / "mipmap-hdpi").mkdir()
            (root / "mipmap-hdpi" / "ic_launcher.png").write_bytes(b"")
            (root / "mipmap-hdpi" / "broken.png").write_bytes(b"\x89PNG garbage")
            (root / "notes.txt").write_text("x", encoding="utf-8")

            found = list_existing_images(td)
            self.assertEqual([a.role for a in found], ["mipmap-mdpi/ic_launcher.png"])
            self.assertEqual(list_existing_images(str(root / "missing")), [])

    def test_list_existing_images_restricted_to_subdirs(self):
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            write_png(root / "mipmap-xxxhdpi" / "ic_launcher.png", 192)
            write_png(root / "drawable" / "launch_background.png", 1600, 900)
            write_png(root / "drawable-v21" / "splash.png", 1200)
            write_png(root / "stray.png", 2048)

            found = list_existing_images(td, subdirs="mipmap-*")
            self.assertEqual([a.role for a in found], ["mipmap-xxxhdpi/ic_launcher.png"])
            self.assertEqual(len(list_existing_images(td)), 4)


if __name__ == "__main__":
    unittest.main()
