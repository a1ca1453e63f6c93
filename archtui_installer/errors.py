from __future__ import annotations


class InstallerError(Exception):
    """Base class for every failure the installer reports to the operator."""


class ConfigError(InstallerError, ValueError):
    """Invalid ARCHTUI_* environment override."""


class SelectionError(InstallerError):
    """Invalid or ambiguous device choice."""


class CatalogError(SelectionError):
    """Unknown package name or desktop tag."""


class PlanningError(InstallerError):
    """Partition layout could not be created."""


class UserAborted(InstallerError):
    """A confirmation gate was declined or a prompt was cancelled."""


class FormatError(InstallerError):
    pass


class MountError(InstallerError):
    pass


class BootstrapError(InstallerError):
    pass


class ConfigurationError(InstallerError):
    pass


class BootloaderError(InstallerError):
    pass


class DeviceTimeout(InstallerError):
    """A freshly created device node did not appear in time."""

    def __init__(self, path: str, attempts: int, delay: float) -> None:
        super().__init__(
            f"Device {path} did not appear after {attempts} checks ({delay:g}s apart)"
        )
        self.path = path
        self.attempts = attempts
        self.delay = delay
