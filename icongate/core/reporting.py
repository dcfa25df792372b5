# -*- coding: utf-8 -*-
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from icongate.config import APP_NAME, APP_VERSION
from icongate.core.validator import utc_now_iso
from icongate.models import (
    ComplianceReport,
    Issue,
    PipelineRun,
    PlatformResult,
    PlatformTarget,
    ValidationResult,
)

MARKER_READY = "READY"
MARKER_NOT_READY = "NOT READY"
MARKER_NOT_AVAILABLE = "NOT AVAILABLE"


def compliance_marker(platform: PlatformTarget, status: str) -> str:
    """e.g. 'Play Store Compliance: READY'. Build drivers grep for these literally."""
    return f"{platform.store_name} Compliance: {status}"


def _group_issues(issues: List[Issue]) -> Dict[str, List[Issue]]:
    groups: Dict[str, List[Issue]] = {"ERROR": [], "WARNING": [], "INFO": []}
    for i in issues:
        lvl = (i.level or "INFO").upper()
        if lvl not in groups:
            groups[lvl] = []
        groups[lvl].append(i)
    return groups


def _fix_status(res: Optional[PlatformResult]) -> str:
    if res is None:
        return "Skipped"
    if res.repair_error:
        return f"Repair failed ({res.repair_error})"
    if res.report is not None and res.report.repaired:
        return "Repaired"
    return "No repair needed"


def _validation_status(report: Optional[ComplianceReport]) -> str:
    if report is None:
        return "SKIPPED"
    passed = sum(1 for r in report.results if r.passed)
    errors = len(_group_issues(list(report.issues))["ERROR"])
    word = "PASSED" if report.ready else "FAILED"
    return f"{word} ({passed}/{len(report.results)} icons, {errors} manifest error(s))"


def _result_line(r: ValidationResult) -> str:
    req = r.requirement
    line = f"  - {r.verdict.value:<11} {req.role:<22} {req.size_label:<10} {req.relpath}"
    a = r.asset
    if a is not None and a.present and a.readable and not r.dimension_match:
        line += f" (found {a.width}x{a.height})"
    elif a is not None and a.present and a.byte_length > 0 and not a.readable:
        line += " (unreadable image)"
    return line


def build_report_text(run: PipelineRun, now: Optional[str] = None) -> str:
    generated = now or utc_now_iso()
    mode = "pre-build emergency pass" if run.emergency else "main pass"

    lines: List[str] = [
        "Icon Compliance Report",
        f"Generated: {generated}",
        f"Tool: {APP_NAME} {APP_VERSION}",
        f"Mode: {mode}",
        "",
        "Platform Status:",
    ]
    for p in PlatformTarget:
        lines.append(f"  - {p.label}: {'Available' if run.available.get(p) else 'Not Available'}")

    lines += ["", "Icon Fix Status:"]
    for p in PlatformTarget:
        lines.append(f"  - {p.label}: {_fix_status(run.results.get(p))}")

    lines += ["", "Validation Status:"]
    for p in PlatformTarget:
        lines.append(f"  - {p.label}: {_validation_status(run.report_for(p))}")

    for p in run.platforms:
        report = run.report_for(p)
        if report is None:
            continue
        lines += ["", f"{p.label} Icons:"]
        lines += [_result_line(r) for r in report.results]

        groups = _group_issues(list(report.issues))
        lines += ["", f"{p.label} Manifest Checks:"]
        for level in ("ERROR", "WARNING", "INFO"):
            for i in groups.get(level, []):
                where = f" [{i.relpath}]" if i.relpath else ""
                lines.append(f"  - {level} {i.code}: {i.message}{where}")

    lines += ["", "Store Compliance:"]
    for p in PlatformTarget:
        report = run.report_for(p)
        if not run.available.get(p) or report is None:
            status = MARKER_NOT_AVAILABLE
        else:
            status = MARKER_READY if report.ready else MARKER_NOT_READY
        lines.append(f"  - {p.label} {compliance_marker(p, status)}")

    lines += ["", f"Overall Gate: {'PASS' if run.gate_passed else 'FAIL'}", ""]
    return "\n".join(lines)


def write_report(text: str, report_path: str) -> str:
    p = Path(report_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    # overwrite wholesale; never append
    p.write_text(text, encoding="utf-8")
    return str(p)


def build_report_dict(run: PipelineRun, now: Optional[str] = None) -> Dict[str, Any]:
    platforms_out: Dict[str, Any] = {}
    for p in PlatformTarget:
        res = run.results.get(p)
        report = res.report if res else None
        entry: Dict[str, Any] = {
            "available": bool(run.available.get(p)),
            "processed": p in run.platforms,
            "states": [s.value for s in res.states] if res else [],
            "repair_error": res.repair_error if res else None,
        }
        if report is not None:
            entry.update(
                {
                    "timestamp": report.timestamp,
                    "overall_verdict": report.overall_verdict,
                    "repaired": report.repaired,
                    "results": [
                        {
                            "role": r.requirement.role,
                            "relpath": r.requirement.relpath,
                            "required": r.requirement.size_label,
                            "found": r.found,
                            "dimension_match": r.dimension_match,
                            "non_empty": r.non_empty,
                            "verdict": r.verdict.value,
                        }
                        for r in report.results
                    ],
                    "issues": [
                        {"level": i.level, "code": i.code, "message": i.message, "relpath": i.relpath}
                        for i in report.issues
                    ],
                }
            )
        platforms_out[p.value] = entry

    return {
        "tool": APP_NAME,
        "version": APP_VERSION,
        "timestamp_utc": now or utc_now_iso(),
        "emergency": run.emergency,
        "gate_passed": run.gate_passed,
        "platforms": platforms_out,
    }


def write_report_json(data: Dict[str, Any], report_path: str) -> str:
    path = Path(report_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

    return str(path)
