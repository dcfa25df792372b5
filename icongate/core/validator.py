from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from icongate.core.manifest import (
    BACKGROUND_DRAWABLE,
    BACKGROUND_VALUES_RELPATH,
    FOREGROUND_DRAWABLE,
    declared_filenames,
    declared_store_icon,
    find_stray_manifests,
    read_adaptive_icon,
    read_app_icon_key,
    read_contents_json,
)
from icongate.core.requirements import PlatformLayout, layout_for
from icongate.errors import ManifestError
from icongate.models import (
    NOT_READY,
    READY,
    ComplianceReport,
    IconAsset,
    IconRequirement,
    Issue,
    PlatformState,
    PlatformTarget,
    ValidationResult,
    Verdict,
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def validate_asset(req: IconRequirement, asset: IconAsset) -> ValidationResult:
    if not asset.present:
        return ValidationResult(req, found=False, dimension_match=False, non_empty=False,
                                verdict=Verdict.MISSING, asset=asset)

    if asset.byte_length <= 0:
        return ValidationResult(req, found=True, dimension_match=False, non_empty=False,
                                verdict=Verdict.EMPTY, asset=asset)

    # exact match only; unreadable images count as the wrong size
    match = asset.readable and asset.width == req.width and asset.height == req.height
    if not match:
        return ValidationResult(req, found=True, dimension_match=False, non_empty=True,
                                verdict=Verdict.WRONG_SIZE, asset=asset)

    if req.opaque and asset.has_alpha:
        return ValidationResult(req, found=True, dimension_match=True, non_empty=True,
                                verdict=Verdict.TRANSPARENT, asset=asset)

    return ValidationResult(req, found=True, dimension_match=True, non_empty=True,
                            verdict=Verdict.PASS, asset=asset)


def validate_assets(
    requirements: Sequence[IconRequirement],
    assets: Sequence[IconAsset],
) -> List[ValidationResult]:
    by_role = {a.role: a for a in assets}
    results: List[ValidationResult] = []
    for req in requirements:
        asset = by_role.get(req.role)
        if asset is None:
            asset = IconAsset(role=req.role, path=req.relpath, present=False, width=None, height=None, byte_length=0)
        results.append(validate_asset(req, asset))
    return results


def _check_ios_asset_manifest(layout: PlatformLayout, root: str, requirements: Iterable[IconRequirement]) -> List[Issue]:
    results: List[Issue] = []
    path = layout.asset_manifest_path(root)
    try:
        data = read_contents_json(path)
    except ManifestError as e:
        results.append(Issue("ERROR", "MANIFEST_INVALID", f"Asset manifest is malformed: {e}", layout.asset_manifest))
        return results

    if declared_store_icon(data) is None:
        results.append(
            Issue(
                "ERROR",
                "STORE_ICON_UNDECLARED",
                "Asset manifest does not declare the 1024x1024 store icon for the universal slot.",
                layout.asset_manifest,
            )
        )

    declared = set(declared_filenames(data))
    for relpath in sorted({r.relpath for r in requirements}):
        if relpath not in declared:
            results.append(
                Issue(
                    "ERROR",
                    "MANIFEST_ENTRY_MISSING",
                    f"Asset manifest has no entry for '{relpath}'.",
                    f"{layout.icon_dir}/{relpath}",
                )
            )
    return results


def _check_android_asset_manifest(layout: PlatformLayout, root: str) -> List[Issue]:
    results: List[Issue] = []
    path = layout.asset_manifest_path(root)
    try:
        background, foreground = read_adaptive_icon(path)
    except ManifestError as e:
        results.append(Issue("ERROR", "MANIFEST_INVALID", f"Adaptive icon is malformed: {e}", layout.asset_manifest))
        return results

    if foreground != FOREGROUND_DRAWABLE:
        results.append(
            Issue(
                "ERROR",
                "ADAPTIVE_LAYER_MISMATCH",
                f"Adaptive icon foreground is {foreground!r}, expected {FOREGROUND_DRAWABLE!r}.",
                layout.asset_manifest,
            )
        )
    if background is None:
        results.append(Issue("ERROR", "ADAPTIVE_LAYER_MISMATCH", "Adaptive icon declares no background layer.", layout.asset_manifest))
    elif background == BACKGROUND_DRAWABLE:
        values = layout.icon_dir_path(root) / BACKGROUND_VALUES_RELPATH
        if not values.is_file():
            results.append(
                Issue(
                    "ERROR",
                    "BACKGROUND_COLOR_MISSING",
                    "Adaptive icon background colour resource is missing.",
                    f"{layout.icon_dir}/{BACKGROUND_VALUES_RELPATH}",
                )
            )
    return results


def validate_manifests(
    platform: PlatformTarget,
    root: str,
    requirements: Sequence[IconRequirement],
) -> List[Issue]:
    layout = layout_for(platform)
    results: List[Issue] = []

    # -------------------------
    # Rule: Asset-manifest present and well-formed
    # -------------------------
    if not layout.asset_manifest_path(root).is_file():
        results.append(Issue("ERROR", "MANIFEST_MISSING", "Asset manifest not found.", layout.asset_manifest))
    elif platform is PlatformTarget.IOS:
        results.extend(_check_ios_asset_manifest(layout, root, requirements))
    else:
        results.extend(_check_android_asset_manifest(layout, root))

    # -------------------------
    # Rule: Exactly one asset-manifest per icon set
    # -------------------------
    root_path = Path(root)
    for stray in find_stray_manifests(layout.asset_manifest_path(root)):
        results.append(
            Issue(
                "ERROR",
                "DUPLICATE_MANIFEST",
                f"Stray asset manifest copy: '{stray.name}'",
                str(stray.relative_to(root_path)).replace("\\", "/"),
            )
        )

    # -------------------------
    # Rule: Application manifest references the icon set
    # -------------------------
    if not layout.app_manifest_path(root).is_file():
        results.append(Issue("ERROR", "APP_MANIFEST_MISSING", "Application manifest not found.", layout.app_manifest))
    else:
        try:
            value = read_app_icon_key(layout, root)
        except ManifestError as e:
            results.append(Issue("ERROR", "APP_MANIFEST_INVALID", f"Application manifest is malformed: {e}", layout.app_manifest))
        else:
            if value is None:
                results.append(Issue("ERROR", "ICON_KEY_MISSING", f"{layout.icon_key} is missing.", layout.app_manifest))
            elif value != layout.icon_set_name:
                results.append(
                    Issue(
                        "ERROR",
                        "ICON_KEY_MISMATCH",
                        f"{layout.icon_key} is '{value}', expected '{layout.icon_set_name}'.",
                        layout.app_manifest,
                    )
                )

    results.append(
        Issue(
            level="INFO",
            code="REQUIREMENTS_CHECKED",
            message=f"{len(requirements)} icon requirement(s) checked for {platform.label}.",
            relpath=None,
        )
    )
    return results


def has_errors(issues: Iterable[Issue]) -> bool:
    return any(i.level.upper() == "ERROR" for i in issues)


def compliance_report(
    platform: PlatformTarget,
    results: Sequence[ValidationResult],
    issues: Sequence[Issue],
    timestamp: Optional[str] = None,
    repaired: bool = False,
    final_state: Optional[PlatformState] = None,
) -> ComplianceReport:
    """Fold icon verdicts and manifest issues into one platform verdict."""
    ready = all(r.passed for r in results) and not has_errors(issues)
    if final_state is None:
        final_state = PlatformState.VALIDATED_PASS if ready else PlatformState.VALIDATED_FAIL
    return ComplianceReport(
        platform=platform,
        timestamp=timestamp or utc_now_iso(),
        results=tuple(results),
        overall_verdict=READY if ready else NOT_READY,
        issues=tuple(issues),
        repaired=repaired,
        final_state=final_state,
    )
