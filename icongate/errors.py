from __future__ import annotations


class IconGateError(Exception):
    """Base class for pipeline errors."""


class NoPlatformDetected(IconGateError):
    """Neither platform directory exists under the project root. Fatal."""


class RepairError(IconGateError):
    pass


class RepairIOError(RepairError):
    """Filesystem not writable, or no usable source image."""


class ManifestRepairError(RepairError):
    """A manifest could not be brought to a well-formed state."""


class ManifestError(IconGateError, ValueError):
    """A manifest file exists but cannot be parsed."""
