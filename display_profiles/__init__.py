"""
Display Profiles - Switch an Android device between display setups
==================================================================

Apply named bundles of device settings (resolution, density, overscan,
rotation, screen timeout, UI toggles) and undo them again with:
- Minimal, ordered command plans (disruptive steps only when needed)
- A persisted record of the device's original values
- A safety table of resolution/density pairs known to break the display
"""

__version__ = "1.0.0"
__author__ = "Display Profiles"

from .config import Config, Profile, ProfileStore, ProfileNotFound
from .state import CurrentStateSnapshot, CurrentStateStore
from .engine import ReconciliationEngine
from .executor import PlanExecutor
from .system import AdbSystem, AdbError, SettingWriteDenied
from .shell import RootShell, DebugShell, CapabilityUnavailable

__all__ = [
    "Config",
    "Profile",
    "ProfileStore",
    "ProfileNotFound",
    "CurrentStateSnapshot",
    "CurrentStateStore",
    "ReconciliationEngine",
    "PlanExecutor",
    "AdbSystem",
    "AdbError",
    "SettingWriteDenied",
    "RootShell",
    "DebugShell",
    "CapabilityUnavailable",
]
