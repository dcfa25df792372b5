from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from icongate.config import PipelineConfig
from icongate.core.detector import detect_platforms, platform_availability
from icongate.core.inventory import take_inventory
from icongate.core.reporting import build_report_dict, build_report_text, write_report, write_report_json
from icongate.core.repairer import repair_platform
from icongate.core.requirements import critical_requirements, requirements_for
from icongate.core.validator import compliance_report, utc_now_iso, validate_assets, validate_manifests
from icongate.errors import RepairError
from icongate.logs import log_success
from icongate.models import (
    ComplianceReport,
    IconRequirement,
    Issue,
    PipelineRun,
    PlatformResult,
    PlatformState,
    PlatformTarget,
    ValidationResult,
)

logger = logging.getLogger(__name__)


class CompliancePipeline:
    """
    Detect -> inventory -> validate -> (repair -> revalidate) per platform, then
    report and decide the build gate.

    One repair attempt per platform per run. Failures inside a platform are
    recorded on its result; only NoPlatformDetected escapes run().
    """

    def __init__(self, config: Optional[PipelineConfig] = None, clock: Optional[Callable[[], str]] = None):
        self.config = config or PipelineConfig()
        self.clock = clock or utc_now_iso

    # -------------------------
    # Entry points
    # -------------------------
    def run(self, root: str) -> PipelineRun:
        return self._execute(root, emergency=False, repair=True)

    def emergency_fix(self, root: str) -> PipelineRun:
        """Pre-build pass over the critical size subset, same rules as run()."""
        return self._execute(root, emergency=True, repair=True)

    def check(self, root: str) -> PipelineRun:
        """Validation only. Writes the report and nothing else."""
        return self._execute(root, emergency=False, repair=False)

    # -------------------------
    # Per platform
    # -------------------------
    def requirements(self, platform: PlatformTarget, emergency: bool = False) -> Tuple[IconRequirement, ...]:
        if emergency:
            return critical_requirements(platform, self.config.critical_sizes.get(platform, ()))
        return requirements_for(platform)

    def _validate(
        self,
        platform: PlatformTarget,
        root: str,
        requirements: Sequence[IconRequirement],
    ) -> Tuple[List[ValidationResult], List[Issue]]:
        assets = take_inventory(platform, root, requirements)
        results = validate_assets(requirements, assets)
        issues = validate_manifests(platform, root, requirements)
        return results, issues

    def process_platform(
        self,
        platform: PlatformTarget,
        root: str,
        requirements: Sequence[IconRequirement],
        repair: bool = True,
    ) -> PlatformResult:
        result = PlatformResult(platform)
        result.advance(PlatformState.DETECTED)

        results, issues = self._validate(platform, root, requirements)
        result.advance(PlatformState.INVENTORIED)

        first = compliance_report(platform, results, issues, timestamp=self.clock())
        result.first_pass = first
        if first.ready:
            result.advance(PlatformState.VALIDATED_PASS)
            result.report = first
            log_success(logger, "%s icons valid (%d requirement(s))", platform.label, len(results))
            return result

        result.advance(PlatformState.VALIDATED_FAIL)
        self._log_failures(first)
        if not repair:
            result.report = first
            return result

        logger.info("Repairing %s icons...", platform.label)
        try:
            summary = repair_platform(
                platform,
                root,
                requirements,
                results,
                issues,
                self.config,
                full_requirements=requirements_for(platform),
            )
            logger.info(
                "%s repair wrote %d icon(s); manifest rewritten: %s",
                platform.label, len(summary.regenerated), "yes" if summary.manifest_written else "no",
            )
        except (RepairError, OSError) as e:
            result.repair_error = str(e)
            logger.error("%s repair failed: %s", platform.label, e)
        result.advance(PlatformState.REPAIRED)

        results, issues = self._validate(platform, root, requirements)
        report = compliance_report(platform, results, issues, timestamp=self.clock(), repaired=result.repair_error is None)
        state = PlatformState.REVALIDATED_PASS if report.ready else PlatformState.REVALIDATED_FAIL
        result.report = replace(report, final_state=state)
        result.advance(state)

        if result.report.ready:
            log_success(logger, "%s icons valid after repair", platform.label)
        else:
            self._log_failures(result.report)
        return result

    def _safe_process(
        self,
        platform: PlatformTarget,
        root: str,
        requirements: Sequence[IconRequirement],
        repair: bool,
    ) -> PlatformResult:
        try:
            return self.process_platform(platform, root, requirements, repair=repair)
        except OSError as e:
            # unreadable platform tree; isolate it from the other platform
            logger.error("%s processing failed: %s", platform.label, e)
            return self._failed_result(platform, str(e))
        except Exception as e:
            logger.exception("%s processing failed unexpectedly", platform.label)
            return self._failed_result(platform, f"{type(e).__name__}: {e}")

    def _failed_result(self, platform: PlatformTarget, message: str) -> PlatformResult:
        result = PlatformResult(platform, states=[PlatformState.DETECTED, PlatformState.VALIDATED_FAIL])
        result.repair_error = message
        result.report = compliance_report(
            platform,
            [],
            [Issue("ERROR", "PLATFORM_ERROR", message, None)],
            timestamp=self.clock(),
        )
        return result

    @staticmethod
    def _log_failures(report: ComplianceReport) -> None:
        for r in report.failing():
            logger.warning("%s %s: %s (%s)", report.platform.label, r.verdict.value, r.requirement.relpath, r.requirement.size_label)
        for i in report.issues:
            if i.level == "ERROR":
                logger.warning("%s %s: %s", report.platform.label, i.code, i.message)

    # -------------------------
    # Whole run
    # -------------------------
    def _execute(self, root: str, emergency: bool, repair: bool) -> PipelineRun:
        label = "pre-build emergency icon check" if emergency else "icon compliance pipeline"
        logger.info("Starting %s in %s", label, root)

        platforms = detect_platforms(root)
        available = platform_availability(root)
        plan = {p: self.requirements(p, emergency) for p in platforms}

        results: Dict[PlatformTarget, PlatformResult] = {}
        if self.config.parallel and len(platforms) > 1:
            with ThreadPoolExecutor(max_workers=len(platforms)) as executor:
                futures = {p: executor.submit(self._safe_process, p, root, plan[p], repair) for p in platforms}
                for p in platforms:
                    results[p] = futures[p].result()
        else:
            for p in platforms:
                results[p] = self._safe_process(p, root, plan[p], repair)

        run = PipelineRun(platforms=list(platforms), results=results, available=available, emergency=emergency)
        self._write_reports(run, root)
        self._log_summary(run)
        return run

    def _write_reports(self, run: PipelineRun, root: str) -> None:
        name = self.config.prebuild_report_name if run.emergency else self.config.report_name
        report_path = Path(root) / name
        now = self.clock()
        try:
            run.report_path = write_report(build_report_text(run, now=now), str(report_path))
            if self.config.write_json:
                write_report_json(build_report_dict(run, now=now), str(report_path.with_suffix(".json")))
        except OSError as e:
            logger.error("Could not write compliance report %s: %s", report_path, e)
            return
        logger.info("Compliance report written: %s", run.report_path)

    @staticmethod
    def _log_summary(run: PipelineRun) -> None:
        for p in PlatformTarget:
            res = run.results.get(p)
            if res is None:
                logger.info("%s: platform not available", p.label)
            elif res.ready:
                log_success(logger, "%s: READY FOR %s UPLOAD", p.label, p.store_name.upper())
            else:
                logger.error("%s: NOT READY (see report)", p.label)

        if run.gate_passed:
            log_success(logger, "Icon gate passed: at least one platform is ready for store upload")
        else:
            logger.error("Icon gate failed: no platform passed icon validation")
