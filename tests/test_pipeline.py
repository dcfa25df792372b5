import tempfile
import unittest
from pathlib import Path
from unittest import mock

from icon_fixtures import fixed_clock, image_size, make_android_tree, make_ios_tree, snapshot_tree, write_logo, write_png

from icongate.config import PipelineConfig
from icongate.core.fsutil import atomic_write_bytes as real_atomic_write_bytes
from icongate.core.inventory import take_inventory as real_take_inventory
from icongate.core.pipeline import CompliancePipeline
from icongate.errors import NoPlatformDetected
from icongate.models import PlatformState, PlatformTarget, Verdict

IOS = PlatformTarget.IOS
ANDROID = PlatformTarget.ANDROID

REPORT_FILES = ("icon_compliance_report.txt", "icon_compliance_report.json")

# well-formed XML, but plistlib cannot decode the <date> value
BAD_DATE_PLIST = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>CFBundleIconName</key>
    <string>AppIcon</string>
    <key>BuildDate</key>
    <date>not-a-date</date>
</dict>
</plist>
"""


def _broken_project(root):
    """Both platforms present, icons missing or wrong, a usable logo."""
    make_ios_tree(root, icons=False, contents=False)
    res = make_android_tree(root, icons=False, values=False)
    write_png(res / "mipmap-mdpi" / "ic_launcher.png", 32)
    (res / "mipmap-hdpi").mkdir(parents=True, exist_ok=True)
    (res / "mipmap-hdpi" / "ic_launcher.png").write_bytes(b"")
    write_logo(root, 1024)


class TestPipeline(unittest.TestCase):
    def test_repairs_both_platforms(self):
        with tempfile.TemporaryDirectory() as td:
            _broken_project(td)
            run = CompliancePipeline(clock=fixed_clock).run(td)

            self.assertTrue(run.gate_passed)
            for p in (IOS, ANDROID):
                res = run.results[p]
                self.assertTrue(res.ready)
                self.assertIsNone(res.repair_error)
                self.assertEqual(
                    res.states,
                    [
                        PlatformState.DETECTED,
                        PlatformState.INVENTORIED,
                        PlatformState.VALIDATED_FAIL,
                        PlatformState.REPAIRED,
                        PlatformState.REVALIDATED_PASS,
                    ],
                )
                self.assertFalse(res.first_pass.ready)
                self.assertEqual(res.report.final_state, PlatformState.REVALIDATED_PASS)

            text = (Path(td) / "icon_compliance_report.txt").read_text(encoding="utf-8")
            self.assertIn("App Store Compliance: READY", text)
            self.assertIn("Play Store Compliance: READY", text)
            self.assertIn("Overall Gate: PASS", text)
            self.assertTrue((Path(td) / "icon_compliance_report.json").is_file())

    def test_second_run_writes_nothing(self):
        with tempfile.TemporaryDirectory() as td:
            _broken_project(td)
            pipeline = CompliancePipeline(clock=fixed_clock)
            pipeline.run(td)

            before = snapshot_tree(td, skip=REPORT_FILES)
            run = pipeline.run(td)
            after = snapshot_tree(td, skip=REPORT_FILES)

            self.assertEqual(before, after)
            for p in (IOS, ANDROID):
                self.assertEqual(
                    run.results[p].states,
                    [PlatformState.DETECTED, PlatformState.INVENTORIED, PlatformState.VALIDATED_PASS],
                )

            # a steady-state run reproduces the same report byte for byte
            report = Path(run.report_path).read_bytes()
            pipeline.run(td)
            self.assertEqual(Path(run.report_path).read_bytes(), report)

    def test_compliant_project_untouched(self):
        with tempfile.TemporaryDirectory() as td:
            make_ios_tree(td)
            make_android_tree(td)
            before = snapshot_tree(td)

            run = CompliancePipeline(clock=fixed_clock).run(td)
            self.assertTrue(run.gate_passed)
            self.assertEqual(snapshot_tree(td, skip=REPORT_FILES), before)

    def test_empty_and_wrong_size_icons(self):
        with tempfile.TemporaryDirectory() as td:
            icon_dir = make_ios_tree(td)
            write_png(icon_dir / "Icon-App-1024x1024@1x.png", 500)
            (icon_dir / "Icon-App-20x20@1x.png").write_bytes(b"")

            # no logo and the largest existing icon is 500px: degraded but not fatal
            with self.assertLogs("icongate.core.repairer", level="WARNING") as cm:
                run = CompliancePipeline(clock=fixed_clock).run(td)
            self.assertTrue(any("degraded" in m for m in cm.output))

            first = {r.requirement.role: r.verdict for r in run.results[IOS].first_pass.results}
            self.assertEqual(first["ios-marketing-1024@1x"], Verdict.WRONG_SIZE)
            self.assertEqual(first["iphone-20@1x"], Verdict.EMPTY)
            self.assertEqual(first["ipad-20@1x"], Verdict.EMPTY)

            self.assertTrue(run.results[IOS].ready)
            self.assertEqual(image_size(icon_dir / "Icon-App-1024x1024@1x.png")[0], (1024, 1024))
            self.assertEqual(image_size(icon_dir / "Icon-App-20x20@1x.png")[0], (20, 20))

    def test_ios_only(self):
        with tempfile.TemporaryDirectory() as td:
            make_ios_tree(td)
            run = CompliancePipeline(clock=fixed_clock).run(td)

            self.assertEqual(run.platforms, [IOS])
            self.assertNotIn(ANDROID, run.results)
            self.assertTrue(run.gate_passed)
            text = Path(run.report_path).read_text(encoding="utf-8")
            self.assertIn("App Store Compliance: READY", text)
            self.assertIn("Play Store Compliance: NOT AVAILABLE", text)
            self.assertIn("Overall Gate: PASS", text)

    def test_one_platform_unrepairable(self):
        with tempfile.TemporaryDirectory() as td:
            make_ios_tree(td, icons=False)
            make_android_tree(td, manifest=False)
            write_logo(td, 1024)

            run = CompliancePipeline(clock=fixed_clock).run(td)
            self.assertTrue(run.results[IOS].ready)
            self.assertFalse(run.results[ANDROID].ready)
            self.assertIn("cannot be rebuilt", run.results[ANDROID].repair_error)
            self.assertEqual(run.results[ANDROID].state, PlatformState.REVALIDATED_FAIL)
            self.assertTrue(run.gate_passed)

            text = Path(run.report_path).read_text(encoding="utf-8")
            self.assertIn("App Store Compliance: READY", text)
            self.assertIn("Play Store Compliance: NOT READY", text)
            self.assertIn("Overall Gate: PASS", text)

    def test_both_unrepairable(self):
        with tempfile.TemporaryDirectory() as td:
            make_ios_tree(td, icons=False)
            make_android_tree(td, icons=False)

            run = CompliancePipeline(PipelineConfig(synthesize_placeholder=False), clock=fixed_clock).run(td)
            self.assertFalse(run.gate_passed)
            self.assertTrue(all(r.repair_error for r in run.results.values()))
            text = Path(run.report_path).read_text(encoding="utf-8")
            self.assertIn("App Store Compliance: NOT READY", text)
            self.assertIn("Play Store Compliance: NOT READY", text)
            self.assertIn("Overall Gate: FAIL", text)

    def test_unwritable_platform_isolated(self):
        with tempfile.TemporaryDirectory() as td:
            _broken_project(td)

            def deny_ios(path, data):
                if "ios" in Path(path).parts:
                    raise PermissionError(f"read-only: {path}")
                return real_atomic_write_bytes(path, data)

            with mock.patch("icongate.core.repairer.atomic_write_bytes", side_effect=deny_ios):
                run = CompliancePipeline(clock=fixed_clock).run(td)

            self.assertFalse(run.results[IOS].ready)
            self.assertIn("read-only", run.results[IOS].repair_error)
            self.assertTrue(run.results[ANDROID].ready)
            self.assertTrue(run.gate_passed)

    def test_malformed_plist_value_isolated(self):
        with tempfile.TemporaryDirectory() as td:
            make_ios_tree(td)
            make_android_tree(td)
            plist = Path(td) / "ios" / "Runner" / "Info.plist"
            plist.write_text(BAD_DATE_PLIST, encoding="utf-8")

            run = CompliancePipeline(clock=fixed_clock).run(td)

            ios = run.results[IOS]
            self.assertFalse(ios.ready)
            self.assertIn("APP_MANIFEST_INVALID", {i.code for i in ios.first_pass.issues})
            self.assertIn("cannot be rebuilt", ios.repair_error)
            self.assertTrue(run.results[ANDROID].ready)
            self.assertTrue(run.gate_passed)

            text = Path(run.report_path).read_text(encoding="utf-8")
            self.assertIn("App Store Compliance: NOT READY", text)
            self.assertIn("Play Store Compliance: READY", text)
            self.assertIn("Overall Gate: PASS", text)

    def test_unexpected_error_isolated(self):
        with tempfile.TemporaryDirectory() as td:
            make_ios_tree(td)
            make_android_tree(td)

            def explode_ios(platform, root, requirements):
                if platform is IOS:
                    raise RuntimeError("decoder blew up")
                return real_take_inventory(platform, root, requirements)

            with mock.patch("icongate.core.pipeline.take_inventory", side_effect=explode_ios):
                with self.assertLogs("icongate.core.pipeline", level="ERROR"):
                    run = CompliancePipeline(clock=fixed_clock).run(td)

            ios = run.results[IOS]
            self.assertFalse(ios.ready)
            self.assertEqual(ios.state, PlatformState.VALIDATED_FAIL)
            self.assertEqual([i.code for i in ios.report.issues], ["PLATFORM_ERROR"])
            self.assertIn("RuntimeError", ios.repair_error)
            self.assertTrue(run.results[ANDROID].ready)
            self.assertTrue(run.gate_passed)
            self.assertIn("App Store Compliance: NOT READY", Path(run.report_path).read_text(encoding="utf-8"))

    def test_manifest_only_repair(self):
        with tempfile.TemporaryDirectory() as td:
            icon_dir = make_ios_tree(td)
            (icon_dir / "Contents.json").write_text("{broken", encoding="utf-8")
            (icon_dir / "Contents 2.json").write_text("{}", encoding="utf-8")
            icons_before = snapshot_tree(icon_dir, skip=("Contents.json", "Contents 2.json"))

            run = CompliancePipeline(clock=fixed_clock).run(td)

            ios = run.results[IOS]
            self.assertFalse(ios.first_pass.ready)
            self.assertTrue(all(r.passed for r in ios.first_pass.results))
            self.assertEqual(ios.state, PlatformState.REVALIDATED_PASS)
            self.assertIsNone(ios.repair_error)
            self.assertEqual(sorted(p.name for p in icon_dir.glob("Contents*.json")), ["Contents.json"])
            self.assertEqual(snapshot_tree(icon_dir, skip=("Contents.json",)), icons_before)

    def test_check_does_not_repair(self):
        with tempfile.TemporaryDirectory() as td:
            _broken_project(td)
            before = snapshot_tree(td)

            run = CompliancePipeline(clock=fixed_clock).check(td)
            self.assertFalse(run.gate_passed)
            self.assertEqual(snapshot_tree(td, skip=REPORT_FILES), before)
            self.assertEqual(run.results[IOS].state, PlatformState.VALIDATED_FAIL)

    def test_emergency_fix_critical_sizes_only(self):
        with tempfile.TemporaryDirectory() as td:
            _broken_project(td)
            run = CompliancePipeline(clock=fixed_clock).emergency_fix(td)

            self.assertTrue(run.emergency)
            self.assertTrue(run.gate_passed)
            self.assertEqual(Path(run.report_path).name, "icon_prebuild_report.txt")
            self.assertFalse((Path(td) / "icon_compliance_report.txt").exists())

            icon_dir = Path(td) / "ios" / "Runner" / "Assets.xcassets" / "AppIcon.appiconset"
            self.assertTrue((icon_dir / "Icon-App-60x60@2x.png").is_file())
            self.assertTrue((icon_dir / "Icon-App-83.5x83.5@2x.png").is_file())
            self.assertFalse((icon_dir / "Icon-App-20x20@1x.png").exists())
            self.assertEqual(len(run.report_for(IOS).results), 4)

            text = Path(run.report_path).read_text(encoding="utf-8")
            self.assertIn("Mode: pre-build emergency pass", text)

    def test_emergency_custom_sizes(self):
        with tempfile.TemporaryDirectory() as td:
            make_android_tree(td, icons=False)
            cfg = PipelineConfig(critical_sizes={IOS: (120,), ANDROID: (192,)})
            run = CompliancePipeline(cfg, clock=fixed_clock).emergency_fix(td)

            self.assertEqual([r.requirement.role for r in run.report_for(ANDROID).results], ["launcher-xxxhdpi"])
            self.assertTrue(run.results[ANDROID].ready)

    def test_parallel_matches_sequential(self):
        with tempfile.TemporaryDirectory() as td:
            _broken_project(td)
            run = CompliancePipeline(PipelineConfig(parallel=True), clock=fixed_clock).run(td)
            self.assertTrue(run.results[IOS].ready)
            self.assertTrue(run.results[ANDROID].ready)
            self.assertEqual(list(run.results), [IOS, ANDROID])

    def test_no_platform(self):
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(NoPlatformDetected):
                CompliancePipeline().run(td)
            self.assertFalse((Path(td) / "icon_compliance_report.txt").exists())


if __name__ == "__main__":
    unittest.main()
