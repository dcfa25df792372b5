from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class PlatformTarget(str, Enum):
    IOS = "ios"
    ANDROID = "android"

    @property
    def label(self) -> str:
        return "iOS" if self is PlatformTarget.IOS else "Android"

    @property
    def store_name(self) -> str:
        return "App Store" if self is PlatformTarget.IOS else "Play Store"


class Verdict(str, Enum):
    PASS = "PASS"
    MISSING = "MISSING"
    WRONG_SIZE = "WRONG_SIZE"
    EMPTY = "EMPTY"
    TRANSPARENT = "TRANSPARENT"


class PlatformState(str, Enum):
    NOT_DETECTED = "NOT_DETECTED"
    DETECTED = "DETECTED"
    INVENTORIED = "INVENTORIED"
    VALIDATED_PASS = "VALIDATED_PASS"
    VALIDATED_FAIL = "VALIDATED_FAIL"
    REPAIRED = "REPAIRED"
    REVALIDATED_PASS = "REVALIDATED_PASS"
    REVALIDATED_FAIL = "REVALIDATED_FAIL"


READY = "Ready"
NOT_READY = "NotReady"


@dataclass(frozen=True)
class IconRequirement:
    platform: PlatformTarget
    role: str           # unique per platform, e.g. "iphone-60@2x" or "launcher-hdpi"
    width: int
    height: int
    relpath: str        # relative to the platform icon directory
    idiom: str = ""     # asset-manifest idiom (iOS) or layer kind (Android)
    point_size: str = ""
    scale: str = ""
    opaque: bool = False

    @property
    def size_label(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class IconAsset:
    role: str
    path: str
    present: bool
    width: Optional[int]         # None when missing or unreadable
    height: Optional[int]
    byte_length: int
    has_alpha: bool = False

    @property
    def readable(self) -> bool:
        return self.width is not None and self.height is not None


@dataclass(frozen=True)
class ValidationResult:
    requirement: IconRequirement
    found: bool
    dimension_match: bool
    non_empty: bool
    verdict: Verdict
    asset: Optional[IconAsset] = None

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASS


@dataclass(frozen=True)
class Issue:
    level: str  # INFO | WARNING | ERROR
    code: str   # stable short identifier (e.g. MANIFEST_INVALID)
    message: str
    relpath: Optional[str] = None  # relative to project root when applicable


@dataclass(frozen=True)
class ComplianceReport:
    platform: PlatformTarget
    timestamp: str
    results: Tuple[ValidationResult, ...]
    overall_verdict: str  # READY | NOT_READY
    issues: Tuple[Issue, ...] = ()
    repaired: bool = False
    final_state: PlatformState = PlatformState.VALIDATED_PASS

    @property
    def ready(self) -> bool:
        return self.overall_verdict == READY

    def failing(self) -> List[ValidationResult]:
        return [r for r in self.results if not r.passed]


@dataclass
class PlatformResult:
    platform: PlatformTarget
    states: List[PlatformState] = field(default_factory=list)
    first_pass: Optional[ComplianceReport] = None
    report: Optional[ComplianceReport] = None
    repair_error: Optional[str] = None

    @property
    def state(self) -> PlatformState:
        return self.states[-1] if self.states else PlatformState.NOT_DETECTED

    @property
    def ready(self) -> bool:
        return self.report is not None and self.report.ready

    def advance(self, state: PlatformState) -> None:
        self.states.append(state)


@dataclass
class PipelineRun:
    platforms: List[PlatformTarget]
    results: Dict[PlatformTarget, PlatformResult]
    available: Dict[PlatformTarget, bool]
    emergency: bool = False
    report_path: Optional[str] = None

    @property
    def gate_passed(self) -> bool:
        return any(r.ready for r in self.results.values())

    def report_for(self, platform: PlatformTarget) -> Optional[ComplianceReport]:
        res = self.results.get(platform)
        return res.report if res else None
