"""
Current State - What is applied now and what the device had before
==================================================================

The snapshot is the only record of what has to be undone on turn-off, so
it is written to disk after every pass.
"""

import os
import logging
import tempfile
import dataclasses
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass

import yaml

from .config import DO_NOTHING, Profile

logger = logging.getLogger(__name__)

# Sentinel for captured hardware values that are not currently overridden
NOT_CAPTURED = -1


@dataclass
class CurrentStateSnapshot:
    """
    Last-applied profile values plus pre-profile originals.

    Fields ending in `_system` (and `user_rotation`, `rotation_setting`,
    `auto_brightness`) hold the device's values from before the first
    profile touched them. They are captured when a pass starts from the
    baseline and are only meaningful while a profile is active.
    """
    not_active: bool = True
    filename: Optional[str] = None
    filename_backup: Optional[str] = None

    # Last applied profile values
    profile_name: Optional[str] = None
    size: str = "reset"
    density: str = "reset"
    overscan: bool = False
    overscan_left: int = 20
    overscan_right: int = 20
    overscan_top: int = 20
    overscan_bottom: int = 20
    rotation_lock_mode: str = DO_NOTHING
    screen_timeout_mode: str = DO_NOTHING
    chrome_desktop: bool = False
    daydreams_on: bool = False
    vibration_off: bool = False
    backlight_off: bool = False
    show_touches: bool = False
    navbar_forced: bool = False
    immersive_mode: str = DO_NOTHING
    ui_refresh_strategy: str = DO_NOTHING
    wifi_on: bool = False
    bluetooth_on: bool = False

    # Pre-profile originals
    size_on_system: Optional[str] = None
    density_on_system: Optional[str] = None
    wifi_on_system: Optional[bool] = None
    bluetooth_on_system: Optional[bool] = None
    user_rotation: Optional[int] = None
    rotation_setting: Optional[int] = None
    screen_timeout_system: Optional[int] = None
    stay_on_system: Optional[int] = None
    daydreams_on_system: Optional[bool] = None
    daydreams_charging_system: Optional[bool] = None
    show_touches_system: Optional[bool] = None
    navbar_system: Optional[bool] = None
    auto_brightness: Optional[int] = None
    vibration_value: int = NOT_CAPTURED
    backlight_value: int = NOT_CAPTURED

    # Virtual dock state: the original one and the one last broadcast
    dock_mode: int = 0
    dock_mode_current: int = 0

    # One-shot flags set from outside, consumed by the next load
    force_safe_mode: bool = False
    force_ui_refresh: bool = False

    @classmethod
    def default(cls) -> 'CurrentStateSnapshot':
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CurrentStateSnapshot':
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.debug(f"Ignoring unknown state keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    def copy(self) -> 'CurrentStateSnapshot':
        return dataclasses.replace(self)

    def applied_profile(self, default_name: str = "Untitled") -> Profile:
        """Profile carrying the values this snapshot records as applied."""
        values = {f.name: getattr(self, f.name) for f in dataclasses.fields(Profile)
                  if hasattr(self, f.name)}
        values['profile_name'] = self.profile_name or default_name
        return Profile(**values)


class CurrentStateStore:
    """
    Persists the snapshot and any deferred privileged commands to one YAML file.
    """

    def __init__(self, state_file: Path):
        self.state_file = Path(state_file)
        self._pending: List[str] = []
        self._snapshot: Optional[CurrentStateSnapshot] = None

    def _read(self) -> Dict[str, Any]:
        if not self.state_file.exists():
            return {}
        try:
            with open(self.state_file, 'r') as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to read state file {self.state_file}: {e}")
            return {}

    def _write(self, snapshot: CurrentStateSnapshot, pending: List[str]):
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        data = {'current': snapshot.to_dict(), 'pending_commands': list(pending)}
        fd, tmp_path = tempfile.mkstemp(dir=self.state_file.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, self.state_file)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def load(self) -> CurrentStateSnapshot:
        """Load the snapshot, or a baseline snapshot if none is stored."""
        data = self._read()
        self._pending = list(data.get('pending_commands') or [])
        try:
            self._snapshot = CurrentStateSnapshot.from_dict(data.get('current') or {})
        except (TypeError, AttributeError) as e:
            logger.error(f"Corrupt state record, starting from baseline: {e}")
            self._snapshot = CurrentStateSnapshot.default()
        return self._snapshot.copy()

    def save(self, snapshot: CurrentStateSnapshot):
        if self._snapshot is None:
            self.load()
        self._snapshot = snapshot.copy()
        self._write(self._snapshot, self._pending)
        logger.debug(f"Saved state to {self.state_file}")

    def clear(self):
        """Reset to the baseline, keeping nothing."""
        self.save(CurrentStateSnapshot.default())

    def load_pending(self) -> List[str]:
        if self._snapshot is None:
            self.load()
        return list(self._pending)

    def save_pending(self, commands: List[str]):
        if self._snapshot is None:
            self.load()
        self._pending = list(commands)
        self._write(self._snapshot, self._pending)

    def take_pending(self) -> List[str]:
        """Return the deferred commands and forget them."""
        commands = self.load_pending()
        if commands:
            self.save_pending([])
        return commands
