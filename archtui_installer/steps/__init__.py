from .step_10_partition import PartitionStep
from .step_20_format import FormatStep
from .step_30_mount import MountStep
from .step_40_bootstrap import BootstrapStep
from .step_50_install_desktop import InstallDesktopStep
from .step_55_install_optional import InstallOptionalStep
from .step_60_configure import ConfigureStep
from .step_70_install_nvidia import InstallNvidiaStep
from .step_75_install_vm_tools import InstallVmToolsStep
from .step_90_install_bootloader import InstallBootloaderStep
from .step_95_enable_display_manager import EnableDisplayManagerStep

__all__ = [
    "PartitionStep",
    "FormatStep",
    "MountStep",
    "BootstrapStep",
    "InstallDesktopStep",
    "InstallOptionalStep",
    "ConfigureStep",
    "InstallNvidiaStep",
    "InstallVmToolsStep",
    "InstallBootloaderStep",
    "EnableDisplayManagerStep",
]
