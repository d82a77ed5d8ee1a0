"""
Configuration Management
========================

Application preferences, the profile model, and the on-disk profile store.
"""

import os
import logging
import dataclasses
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

DO_NOTHING = "do-nothing"

ROTATION_LOCK_MODES = (DO_NOTHING, "auto-rotate", "landscape")
SCREEN_TIMEOUT_MODES = (DO_NOTHING, "always-on", "always-on-charging")
IMMERSIVE_MODES = (DO_NOTHING, "status-only", "immersive-mode")
UI_REFRESH_STRATEGIES = (DO_NOTHING, "restart-compositor", "restart-window-manager")

RESTART_COMPOSITOR = "restart-compositor"
RESTART_WINDOW_MANAGER = "restart-window-manager"

# Reserved profile name for the ephemeral quick-actions profile
QUICK_ACTIONS = "quick_actions"


class ProfileNotFound(Exception):
    """Raised when a profile name has no stored profile."""
    pass


class ToggleCurrent:
    """Requested value meaning "the opposite of what is applied right now"."""

    def __repr__(self):
        return "TOGGLE"

    def __eq__(self, other):
        return isinstance(other, ToggleCurrent)

    def __hash__(self):
        return hash(ToggleCurrent)


TOGGLE = ToggleCurrent()

# Fields a quick action may toggle
TOGGLEABLE = (
    "overscan",
    "chrome_desktop",
    "vibration_off",
    "backlight_off",
    "immersive_mode",
    "show_touches",
    "daydreams_on",
    "wifi_on",
    "bluetooth_on",
    "navbar_forced",
)

BoolOrToggle = Union[bool, ToggleCurrent]


@dataclass(frozen=True)
class Profile:
    """Desired device settings for one named profile."""
    profile_name: str = "Untitled"
    size: str = "reset"
    density: str = "reset"
    overscan: BoolOrToggle = False
    overscan_left: int = 20
    overscan_right: int = 20
    overscan_top: int = 20
    overscan_bottom: int = 20
    rotation_lock_mode: str = DO_NOTHING
    screen_timeout_mode: str = DO_NOTHING
    chrome_desktop: BoolOrToggle = False
    daydreams_on: BoolOrToggle = False
    vibration_off: BoolOrToggle = False
    backlight_off: BoolOrToggle = False
    show_touches: BoolOrToggle = False
    navbar_forced: BoolOrToggle = False
    immersive_mode: Union[str, ToggleCurrent] = DO_NOTHING
    ui_refresh_strategy: str = DO_NOTHING
    wifi_on: BoolOrToggle = False
    bluetooth_on: BoolOrToggle = False
    quick_action_toggle: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Profile':
        """
        Create a Profile from a stored dictionary.

        Unknown keys are ignored; legacy `rotation_lock` and `immersive`
        booleans are mapped onto their newer enum fields.
        """
        data = dict(data or {})

        if 'rotation_lock_mode' not in data and data.get('rotation_lock'):
            data['rotation_lock_mode'] = 'landscape'
        if 'immersive_mode' not in data and data.get('immersive'):
            data['immersive_mode'] = 'immersive-mode'

        known = {f.name for f in dataclasses.fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                continue
            if key in TOGGLEABLE and isinstance(value, str) and value.lower() == "toggle":
                value = TOGGLE
            values[key] = value

        for key in ('size', 'density'):
            if key in values:
                values[key] = str(values[key])

        toggle_key = values.get('quick_action_toggle')
        if toggle_key is not None:
            if toggle_key not in TOGGLEABLE:
                raise ValueError(f"Cannot toggle '{toggle_key}'")
            values[toggle_key] = TOGGLE

        profile = cls(**values)
        profile.validate()
        return profile

    def validate(self):
        """Raise ValueError if an enum field holds an unknown value."""
        checks = (
            ('rotation_lock_mode', ROTATION_LOCK_MODES),
            ('screen_timeout_mode', SCREEN_TIMEOUT_MODES),
            ('ui_refresh_strategy', UI_REFRESH_STRATEGIES),
        )
        for name, allowed in checks:
            if getattr(self, name) not in allowed:
                raise ValueError(f"Invalid {name}: {getattr(self, name)!r}")
        if self.immersive_mode != TOGGLE and self.immersive_mode not in IMMERSIVE_MODES:
            raise ValueError(f"Invalid immersive_mode: {self.immersive_mode!r}")
        if self.size != "reset" and not _is_resolution(self.size):
            raise ValueError(f"Invalid size: {self.size!r}")
        if self.density != "reset" and not self.density.isdigit():
            raise ValueError(f"Invalid density: {self.density!r}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary suitable for YAML."""
        result = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            result[f.name] = "toggle" if value == TOGGLE else value
        return result

    def toggled_fields(self) -> List[str]:
        """Names of fields whose requested value is a toggle."""
        return [name for name in TOGGLEABLE if getattr(self, name) == TOGGLE]

    def replace(self, **changes) -> 'Profile':
        return dataclasses.replace(self, **changes)


def _is_resolution(value: str) -> bool:
    width, sep, height = value.partition("x")
    return bool(sep) and width.isdigit() and height.isdigit()


class Config:
    """
    Configuration manager for display profiles.

    Handles loading, saving, and accessing application preferences.
    """

    DEFAULT_CONFIG_PATH = Path.home() / ".config" / "display-profiles" / "config.yaml"

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to configuration file, or None for default
        """
        self.config_path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        self._data: Dict[str, Any] = {}

        # Device
        self.transport: str = "adb"
        self.serial: Optional[str] = None
        self.sdk_int: Optional[int] = None
        self.landscape: bool = False
        self.native_width: int = 0
        self.native_height: int = 0
        self.native_density: int = 0

        # Application behaviour
        self.safe_mode: bool = False
        self.debug_mode: bool = False

        # adb runner
        self.adb_retry_count: int = 2
        self.adb_timeout: float = 15.0

        # Paths
        config_dir = self.config_path.parent
        self.profiles_dir: Path = config_dir / "profiles"
        self.state_file: Path = config_dir / "current.yaml"

        # Automation hook run after each pass
        self.on_change_command: Optional[str] = None

    def load(self) -> bool:
        """
        Load configuration from file.

        Returns:
            True if configuration was loaded successfully
        """
        if not self.config_path.exists():
            logger.warning(f"Configuration file not found: {self.config_path}")
            return False

        try:
            with open(self.config_path, 'r') as f:
                self._data = yaml.safe_load(f) or {}

            self._parse_config()
            logger.info(f"Loaded configuration from {self.config_path}")
            return True

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse configuration: {e}")
            return False
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to load configuration: {e}")
            return False

    def _parse_config(self):
        """Parse loaded configuration data into typed attributes."""
        device = self._data.get('device', {})
        self.transport = device.get('transport', 'adb')
        self.serial = device.get('serial')
        self.sdk_int = device.get('sdk_int')
        self.landscape = bool(device.get('landscape', False))
        self.native_width = int(device.get('native_width', 0))
        self.native_height = int(device.get('native_height', 0))
        self.native_density = int(device.get('native_density', 0))

        app = self._data.get('app', {})
        self.safe_mode = bool(app.get('safe_mode', False))
        self.debug_mode = bool(app.get('debug_mode', False))

        adb = self._data.get('adb', {})
        self.adb_retry_count = adb.get('retry_count', 2)
        self.adb_timeout = adb.get('timeout', 15.0)

        paths = self._data.get('paths', {})
        if paths.get('profiles_dir'):
            self.profiles_dir = Path(os.path.expanduser(paths['profiles_dir']))
        if paths.get('state_file'):
            self.state_file = Path(os.path.expanduser(paths['state_file']))

        hooks = self._data.get('hooks', {})
        self.on_change_command = hooks.get('on_change')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'device': {
                'transport': self.transport,
                'serial': self.serial,
                'sdk_int': self.sdk_int,
                'landscape': self.landscape,
                'native_width': self.native_width,
                'native_height': self.native_height,
                'native_density': self.native_density,
            },
            'app': {
                'safe_mode': self.safe_mode,
                'debug_mode': self.debug_mode,
            },
            'adb': {
                'retry_count': self.adb_retry_count,
                'timeout': self.adb_timeout,
            },
            'paths': {
                'profiles_dir': str(self.profiles_dir),
                'state_file': str(self.state_file),
            },
            'hooks': {
                'on_change': self.on_change_command,
            },
        }

    def save(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            True if configuration was saved successfully
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            self._data = self.to_dict()
            with open(self.config_path, 'w') as f:
                yaml.safe_dump(self._data, f, default_flow_style=False, sort_keys=False)
            logger.info(f"Saved configuration to {self.config_path}")
            return True
        except OSError as e:
            logger.error(f"Failed to save configuration: {e}")
            return False

    def native_resolution(self) -> str:
        """Native resolution as "WxH", in the device's native orientation."""
        if self.landscape:
            return f"{self.native_height}x{self.native_width}"
        return f"{self.native_width}x{self.native_height}"


class ProfileStore:
    """
    Named profiles, one YAML file per profile.

    The file stem is the profile's identity ("filename"); the display title
    lives inside the file as `profile_name`.
    """

    def __init__(self, profiles_dir: Path):
        self.profiles_dir = Path(profiles_dir)

    def _path(self, name: str) -> Path:
        if not name or "/" in name or name.startswith("."):
            raise ValueError(f"Invalid profile name: {name!r}")
        return self.profiles_dir / f"{name}.yaml"

    def exists(self, name: str) -> bool:
        return self._path(name).exists()

    def get(self, name: str) -> Profile:
        """
        Load a profile by name.

        Raises:
            ProfileNotFound: If no such profile is stored
        """
        path = self._path(name)
        if not path.exists():
            raise ProfileNotFound(f"Profile not found: {name}")
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        return Profile.from_dict(data)

    def save(self, name: str, profile: Profile):
        self.profiles_dir.mkdir(parents=True, exist_ok=True)
        with open(self._path(name), 'w') as f:
            yaml.safe_dump(profile.to_dict(), f, default_flow_style=False, sort_keys=False)
        logger.debug(f"Saved profile '{name}'")

    def delete(self, name: str) -> bool:
        path = self._path(name)
        if path.exists():
            path.unlink()
            return True
        return False

    def clear_quick_actions(self):
        """Discard the ephemeral quick-actions profile."""
        if self.delete(QUICK_ACTIONS):
            logger.debug("Cleared quick actions profile")

    def list_profiles(self) -> List[Tuple[str, str]]:
        """
        List stored profiles.

        Returns:
            (name, title) pairs sorted by title; the quick-actions profile is excluded
        """
        if not self.profiles_dir.exists():
            return []

        entries = []
        for path in self.profiles_dir.glob("*.yaml"):
            if path.stem == QUICK_ACTIONS:
                continue
            try:
                entries.append((path.stem, self.get(path.stem).profile_name))
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.warning(f"Skipping unreadable profile {path.name}: {e}")
        entries.sort(key=lambda entry: (entry[1].lower(), entry[0]))
        return entries
