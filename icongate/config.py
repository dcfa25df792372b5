from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from icongate.models import PlatformTarget

APP_NAME = "Icon Gate"
APP_VERSION = "1.2.0"

REPORT_FILENAME = "icon_compliance_report.txt"
PREBUILD_REPORT_FILENAME = "icon_prebuild_report.txt"
DEFAULT_LOGO_RELPATH = "assets/images/logo.png"

# Sizes App Store Connect / Play Console reject builds for; used by the emergency pass.
DEFAULT_CRITICAL_SIZES: Dict[PlatformTarget, Tuple[int, ...]] = {
    PlatformTarget.IOS: (120, 152, 167),
    PlatformTarget.ANDROID: (48, 72, 96, 144, 192),
}


def _default_critical() -> Dict[PlatformTarget, Tuple[int, ...]]:
    return dict(DEFAULT_CRITICAL_SIZES)


@dataclass(frozen=True)
class PipelineConfig:
    logo_path: Optional[str] = None        # None -> <root>/assets/images/logo.png
    fallback_path: Optional[str] = None    # shipped fallback image
    synthesize_placeholder: bool = True
    background_color: Tuple[int, int, int] = (255, 255, 255)
    critical_sizes: Dict[PlatformTarget, Tuple[int, ...]] = field(default_factory=_default_critical)
    report_name: str = REPORT_FILENAME
    prebuild_report_name: str = PREBUILD_REPORT_FILENAME
    write_json: bool = True
    parallel: bool = False

    def resolve_logo(self, root: str) -> Path:
        if self.logo_path:
            p = Path(self.logo_path)
            return p if p.is_absolute() else Path(root) / p
        return Path(root) / DEFAULT_LOGO_RELPATH


def parse_color(value: str) -> Tuple[int, int, int]:
    """Accepts '#RRGGBB', 'RRGGBB' or 'r,g,b'."""
    s = value.strip()
    if "," in s:
        parts = [int(x) for x in s.split(",")]
        if len(parts) != 3 or any(p < 0 or p > 255 for p in parts):
            raise ValueError(f"Invalid colour: {value!r}")
        return parts[0], parts[1], parts[2]

    s = s.lstrip("#")
    if len(s) != 6:
        raise ValueError(f"Invalid colour: {value!r}")
    return int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16)


def parse_sizes(value: str) -> Tuple[int, ...]:
    sizes = []
    for token in value.replace(";", ",").split(","):
        token = token.strip().lower()
        if not token:
            continue
        # "120x120" and "120" both accepted
        sizes.append(int(token.split("x")[0]))
    return tuple(sorted(set(sizes)))


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def config_from_env(environ: Optional[Mapping[str, str]] = None, base: Optional[PipelineConfig] = None) -> PipelineConfig:
    env = os.environ if environ is None else environ
    cfg = base or PipelineConfig()

    changes: Dict[str, Any] = {}
    if env.get("LOGO_PATH"):
        changes["logo_path"] = env["LOGO_PATH"]
    if env.get("ICON_FALLBACK_PATH"):
        changes["fallback_path"] = env["ICON_FALLBACK_PATH"]
    if env.get("ICON_BACKGROUND_COLOR"):
        changes["background_color"] = parse_color(env["ICON_BACKGROUND_COLOR"])
    if env.get("ICON_PARALLEL"):
        changes["parallel"] = _truthy(env["ICON_PARALLEL"])

    critical = dict(cfg.critical_sizes)
    for platform in PlatformTarget:
        raw = env.get(f"ICON_CRITICAL_SIZES_{platform.name}")
        if raw:
            critical[platform] = parse_sizes(raw)
    if critical != cfg.critical_sizes:
        changes["critical_sizes"] = critical

    return replace(cfg, **changes) if changes else cfg


def to_json_dict(cfg: PipelineConfig) -> Dict[str, Any]:
    d = asdict(cfg)
    d["background_color"] = "#%02X%02X%02X" % cfg.background_color
    d["critical_sizes"] = {p.value: list(sizes) for p, sizes in cfg.critical_sizes.items()}
    return d


def from_json_dict(d: Dict[str, Any]) -> PipelineConfig:
    defaults = PipelineConfig()

    critical = _default_critical()
    for key, sizes in (d.get("critical_sizes") or {}).items():
        critical[PlatformTarget(str(key).lower())] = tuple(sorted({int(s) for s in sizes}))

    color = d.get("background_color")
    if isinstance(color, (list, tuple)):
        background = parse_color(",".join(str(c) for c in color))
    elif color:
        background = parse_color(str(color))
    else:
        background = defaults.background_color

    return PipelineConfig(
        logo_path=d.get("logo_path") or None,
        fallback_path=d.get("fallback_path") or None,
        synthesize_placeholder=bool(d.get("synthesize_placeholder", True)),
        background_color=background,
        critical_sizes=critical,
        report_name=str(d.get("report_name") or defaults.report_name),
        prebuild_report_name=str(d.get("prebuild_report_name") or defaults.prebuild_report_name),
        write_json=bool(d.get("write_json", True)),
        parallel=bool(d.get("parallel", False)),
    )


def load_config(path: str) -> PipelineConfig:
    d = json.loads(Path(path).read_text(encoding="utf-8"))
    return from_json_dict(d)


def save_config(cfg: PipelineConfig, path: str) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(to_json_dict(cfg), indent=2), encoding="utf-8")
    return p
