from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from icongate.core.requirements import layout_for
from icongate.errors import NoPlatformDetected
from icongate.logs import log_success
from icongate.models import PlatformTarget

logger = logging.getLogger(__name__)


def platform_availability(root: str) -> Dict[PlatformTarget, bool]:
    root_path = Path(root)
    return {p: (root_path / layout_for(p).platform_dir).is_dir() for p in PlatformTarget}


def detect_platforms(root: str) -> List[PlatformTarget]:
    """
    Return the platforms whose directory exists under root, in table order.
    Raises NoPlatformDetected when there is nothing to validate.
    """
    if not Path(root).is_dir():
        raise NoPlatformDetected(f"Project root is not a directory: {root}")

    found: List[PlatformTarget] = []
    for platform, present in platform_availability(root).items():
        if present:
            log_success(logger, "%s platform detected", platform.label)
            found.append(platform)
        else:
            logger.warning("%s platform not detected", platform.label)

    if not found:
        raise NoPlatformDetected(
            f"No platforms detected under {root}; expected an ios/ or android/ directory."
        )
    return found
