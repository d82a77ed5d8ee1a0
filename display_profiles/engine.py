"""
Reconciliation Engine - Move the device between profiles
========================================================

One pass compares the requested profile with the snapshot of what is
applied now and produces:

- direct actions, made through the unprivileged settings surface
- a command plan, run by the privileged shell
- the updated snapshot

Disruptive actions (resolution changes, compositor restarts) are only
planned when something actually changed, so loading the same profile
twice is a no-op.
"""

import logging
from typing import List, Optional, Tuple

from . import commands
from .blacklist import is_blacklisted
from .commands import DOCK_CAR, DOCK_DESK, DOCK_UNDOCKED, RestartMethod
from .config import (
    Config, Profile, DO_NOTHING, RESTART_COMPOSITOR, RESTART_WINDOW_MANAGER,
)
from .plan import CommandPlan, DirectAction, ReconciliationResult, Slot, RADIO
from .state import CurrentStateSnapshot, NOT_CAPTURED
from .system import SystemSurface, SYSTEM, SECURE, GLOBAL, WIFI, BLUETOOTH, NAVBAR_FEATURE

logger = logging.getLogger(__name__)

# Used when the platform level cannot be read or configured
DEFAULT_SDK_INT = 23

# Fallbacks for settings that cannot be read
DEFAULT_SCREEN_TIMEOUT = 60000
DEFAULT_STAY_ON = 0
DEFAULT_USER_ROTATION = 0
DEFAULT_ROTATION_SETTING = 1
BRIGHTNESS_MODE_MANUAL = 0

# Captured brightness at or below this is rewritten to sysfs on restore
BACKLIGHT_SYSFS_RESTORE_MAX = 10

IMMERSIVE = "immersive-mode"
ALWAYS_ON = "always-on"
ALWAYS_ON_CHARGING = "always-on-charging"

_UI_MODE_DOCK = {"desk": DOCK_DESK, "car": DOCK_CAR}

# Snapshot fields copied from the profile at the end of a load
_APPLIED_FIELDS = (
    "profile_name", "size", "density", "overscan",
    "overscan_left", "overscan_right", "overscan_top", "overscan_bottom",
    "rotation_lock_mode", "screen_timeout_mode", "chrome_desktop",
    "daydreams_on", "vibration_off", "backlight_off", "show_touches",
    "navbar_forced", "immersive_mode", "ui_refresh_strategy",
    "wifi_on", "bluetooth_on",
)


class ReconciliationEngine:
    """
    Computes load and turn-off passes.

    The engine reads the device through a SystemSurface but never writes
    to it; every change is returned to the caller as a direct action or a
    plan command.
    """

    def __init__(self, config: Config, system: SystemSurface):
        self.config = config
        self.system = system

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def sdk_int(self) -> int:
        if self.config.sdk_int:
            return int(self.config.sdk_int)
        sdk = self.system.sdk_int()
        if sdk is None:
            logger.debug(f"Platform level unknown, assuming {DEFAULT_SDK_INT}")
            return DEFAULT_SDK_INT
        return sdk

    def native_density(self) -> str:
        density = self.system.native_density()
        if density is None:
            density = self.config.native_density
        return str(density)

    def current_dimensions(self) -> Optional[Tuple[int, int, int]]:
        """
        Live (width, height, density), with width and height in the
        device's native orientation.
        """
        metrics = self.system.display_metrics()
        if metrics is None:
            logger.debug("Display metrics unavailable, using recorded values")
            return None
        if metrics.is_landscape == self.config.landscape:
            return metrics.width, metrics.height, metrics.density
        return metrics.height, metrics.width, metrics.density

    def recorded_resolution(self, snapshot: CurrentStateSnapshot) -> str:
        """Resolution the snapshot says is applied, with "reset" resolved to native."""
        if snapshot.size == "reset":
            return self.config.native_resolution()
        return snapshot.size

    def recorded_density(self, snapshot: CurrentStateSnapshot) -> str:
        if snapshot.density == "reset":
            return self.native_density()
        return snapshot.density

    def current_resolution(self, snapshot: CurrentStateSnapshot) -> str:
        """
        Live resolution, or the recorded one in debug mode or when the
        display metrics cannot be read.
        """
        dims = None if self.config.debug_mode else self.current_dimensions()
        if dims is None:
            return self.recorded_resolution(snapshot)
        return f"{dims[0]}x{dims[1]}"

    def current_density(self, snapshot: CurrentStateSnapshot) -> str:
        dims = None if self.config.debug_mode else self.current_dimensions()
        if dims is None:
            return self.recorded_density(snapshot)
        return str(dims[2])

    def size_differs(self, requested: str, snapshot: CurrentStateSnapshot) -> bool:
        """Whether applying `requested` would change the live resolution."""
        if requested == "reset":
            requested = self.config.native_resolution()
        return requested != self.current_resolution(snapshot)

    def density_differs(self, requested: str, snapshot: CurrentStateSnapshot) -> bool:
        if requested == "reset":
            requested = self.native_density()
        return requested != self.current_density(snapshot)

    def _flag(self, namespace: str, key: str) -> bool:
        return self.system.get_int(namespace, key) == 1

    def _get(self, namespace: str, key: str, default: int) -> int:
        value = self.system.get_int(namespace, key)
        return default if value is None else value

    def _screensaver_on_dock(self) -> bool:
        return self._flag(SECURE, "screensaver_enabled") and self._flag(SECURE, "screensaver_activate_on_dock")

    def _refresh_command(self, restart_window_manager: bool) -> str:
        """Primary refresh command; empty if the process to kill cannot be found."""
        sdk = self.sdk_int()
        pid = None
        if commands.restart_method(sdk, restart_window_manager) == RestartMethod.KILL_PID:
            process = commands.WINDOW_MANAGER_PROCESS if restart_window_manager else commands.COMPOSITOR_PROCESS
            pid = self.system.process_pid(process)
            if pid is None:
                logger.warning(f"Could not find pid of {process}, skipping UI refresh")
                return ""
        return commands.ui_refresh_command(sdk, restart_window_manager, pid)

    def _fill_refresh(self, plan: CommandPlan, strategy: str):
        if strategy == RESTART_COMPOSITOR:
            plan.set(Slot.REFRESH_PRIMARY, self._refresh_command(False))
            launcher = self.system.launcher_package()
            if launcher:
                plan.set(Slot.REFRESH_SECONDARY, commands.ui_refresh_command2(launcher))
        elif strategy == RESTART_WINDOW_MANAGER:
            command = self._refresh_command(True)
            if command:
                plan.set(Slot.REFRESH_PRIMARY, command)
                plan.window_manager_restart = True

    def _fill_rotation(self, plan: CommandPlan, dock_mode: int):
        plan.set(Slot.ROTATION, commands.rotation_command(dock_mode))
        # Keep the screensaver from starting when the desk dock is entered
        if dock_mode == DOCK_DESK and self._screensaver_on_dock():
            pre, post = commands.rotation_pre_post_commands()
            plan.set(Slot.ROTATION_PRE, pre)
            plan.set(Slot.ROTATION_POST, post)

    def _chrome_commands(self, plan: CommandPlan, enabled: bool):
        channel, version = commands.detect_browser_channel(self.system.package_version)
        if enabled:
            plan.set(Slot.CHROME_SET, commands.chrome_command(version))
        else:
            plan.set(Slot.CHROME_SET, commands.CHROME_FLAG_REMOVE)
        plan.set(Slot.CHROME_RESTART, commands.chrome_force_stop_command(channel))

    def _restore_backlight(self, snapshot: CurrentStateSnapshot, plan: CommandPlan,
                           actions: List[DirectAction]):
        value = snapshot.backlight_value
        if value <= BACKLIGHT_SYSFS_RESTORE_MAX:
            path = commands.first_existing(commands.BACKLIGHT_FILES, self.system.path_exists)
            if path:
                plan.set(Slot.BACKLIGHT, commands.sysfs_write_command(path, value))
        actions.append(DirectAction(SYSTEM, "screen_brightness", value))
        mode = snapshot.auto_brightness if snapshot.auto_brightness is not None else BRIGHTNESS_MODE_MANUAL
        actions.append(DirectAction(SYSTEM, "screen_brightness_mode", mode))

    @staticmethod
    def _daydream_actions(enabled: bool, charging: bool) -> List[DirectAction]:
        return [
            DirectAction(SECURE, "screensaver_enabled", int(enabled),
                         Slot.DAYDREAM, commands.daydreams_command(enabled)),
            DirectAction(SECURE, "screensaver_activate_on_sleep", int(charging),
                         Slot.DAYDREAM_CHARGING, commands.daydreams_charging_command(charging)),
        ]

    @staticmethod
    def _navbar_action(enabled: bool) -> DirectAction:
        return DirectAction(SYSTEM, "dev_force_show_navbar", int(enabled),
                            Slot.NAVBAR, commands.navbar_command(enabled))

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def resolve_toggles(self, profile: Profile, snapshot: CurrentStateSnapshot) -> Profile:
        """Replace toggle requests with concrete values based on the snapshot."""
        changes = {}
        for name in profile.toggled_fields():
            if name == "immersive_mode":
                changes[name] = DO_NOTHING if snapshot.immersive_mode == IMMERSIVE else IMMERSIVE
            else:
                changes[name] = not getattr(snapshot, name)
            logger.debug(f"Toggle {name} -> {changes[name]}")
        if not changes and profile.quick_action_toggle is None:
            return profile
        changes["quick_action_toggle"] = None
        return profile.replace(**changes)

    def reconcile_load(self, profile: Profile, snapshot: CurrentStateSnapshot) -> ReconciliationResult:
        """
        Compute the pass that applies `profile`.

        Args:
            profile: Requested profile, possibly containing toggles
            snapshot: What is applied now; not modified

        Returns:
            ReconciliationResult with the plan, direct actions and new snapshot
        """
        cur = snapshot
        new = snapshot.copy()
        plan = CommandPlan()
        actions: List[DirectAction] = []
        baseline = cur.not_active

        p = self.resolve_toggles(profile, cur)
        resolved = p if p is not profile else None
        sdk = self.sdk_int()
        wm_restart = p.ui_refresh_strategy == RESTART_WINDOW_MANAGER

        logger.info(f"Reconciling load of '{p.profile_name}' "
                    f"({'from baseline' if baseline else 'over ' + repr(cur.profile_name)})")

        self._check_blacklist(p)

        # Radios
        for radio in (BLUETOOTH, WIFI):
            field = f"{radio}_on"
            live = self.system.radio_enabled(radio)
            if live is None:
                logger.debug(f"No {radio} radio, skipping")
                continue
            if baseline:
                setattr(new, f"{field}_system", live)
            if getattr(p, field):
                if baseline or not getattr(cur, field):
                    actions.append(DirectAction(RADIO, radio, 1))
            elif not baseline and getattr(cur, field):
                actions.append(DirectAction(RADIO, radio, int(bool(getattr(cur, f"{field}_system")))))

        # Resolution and density
        if baseline:
            new.size_on_system = self.current_resolution(cur)
            new.density_on_system = self.current_density(cur)
        run_size = self.size_differs(p.size, cur)
        run_density = self.density_differs(p.density, cur)
        if run_size:
            if wm_restart:
                plan.set(Slot.SIZE, commands.safe_mode_size_command(p.size))
            else:
                plan.set(Slot.SIZE, commands.size_command(p.size, sdk))
        if run_density:
            if wm_restart:
                plan.set(Slot.DENSITY, commands.safe_mode_density_command(p.density))
            else:
                command = commands.density_command(p.density, sdk)
                plan.set(Slot.DENSITY, command)
                plan.set(Slot.DENSITY_REPEAT, command)

        # Overscan
        if sdk > commands.SDK_JELLY_BEAN_MR1:
            insets = (p.overscan_bottom, p.overscan_left, p.overscan_top, p.overscan_right)
            if p.overscan:
                current = (cur.overscan_bottom, cur.overscan_left, cur.overscan_top, cur.overscan_right)
                if baseline or not cur.overscan or insets != current:
                    plan.set(Slot.OVERSCAN, commands.overscan_command(*insets))
            elif not baseline and cur.overscan:
                plan.set(Slot.OVERSCAN, commands.overscan_reset_command())

        self._load_rotation(p, cur, new, plan, actions)
        self._load_screen_timeout(p, cur, new, plan, actions)

        # Browser desktop mode
        if p.chrome_desktop:
            if baseline or not cur.chrome_desktop:
                self._chrome_commands(plan, True)
        elif not baseline and cur.chrome_desktop:
            self._chrome_commands(plan, False)

        # Daydreams
        if baseline:
            new.daydreams_on_system = self._flag(SECURE, "screensaver_enabled")
            new.daydreams_charging_system = self._flag(SECURE, "screensaver_activate_on_sleep")
        if p.daydreams_on:
            if baseline or not cur.daydreams_on:
                actions.extend(self._daydream_actions(True, True))
        elif not baseline and cur.daydreams_on:
            actions.extend(self._daydream_actions(bool(cur.daydreams_on_system),
                                                  bool(cur.daydreams_charging_system)))

        self._load_vibration(p, cur, new, plan)

        gated = run_size or run_density or baseline or cur.force_ui_refresh
        self._load_backlight(p, cur, new, plan, actions, gated)

        # Show touches
        if baseline:
            new.show_touches_system = self._flag(SYSTEM, "show_touches")
        if p.show_touches:
            if baseline or not cur.show_touches:
                plan.set(Slot.SHOW_TOUCHES, commands.show_touches_command(True))
        elif not baseline and cur.show_touches:
            plan.set(Slot.SHOW_TOUCHES, commands.show_touches_command(bool(cur.show_touches_system)))

        # Navigation bar
        if self.system.has_feature(NAVBAR_FEATURE):
            if baseline:
                new.navbar_system = self._flag(SYSTEM, "dev_force_show_navbar")
            if p.navbar_forced:
                if baseline or not cur.navbar_forced:
                    actions.append(self._navbar_action(True))
            elif not baseline and cur.navbar_forced:
                actions.append(self._navbar_action(bool(cur.navbar_system)))

        # Immersive mode
        previous_immersive = DO_NOTHING if baseline else cur.immersive_mode
        if p.immersive_mode != previous_immersive:
            plan.set(Slot.IMMERSIVE, commands.immersive_command(p.immersive_mode))

        # UI refresh; a strategy in use carries over to a profile without one
        strategy = p.ui_refresh_strategy
        if not baseline and strategy == DO_NOTHING and cur.ui_refresh_strategy != DO_NOTHING:
            strategy = cur.ui_refresh_strategy
            logger.debug(f"Reusing previous refresh strategy {strategy}")
        if gated:
            if strategy != RESTART_WINDOW_MANAGER and self.config.safe_mode:
                if run_size:
                    plan.set(Slot.SAFE_MODE_SIZE, commands.safe_mode_size_command(None))
                if run_density:
                    plan.set(Slot.SAFE_MODE_DENSITY, commands.safe_mode_density_command(None))
            self._fill_refresh(plan, strategy)
        else:
            logger.debug("Nothing visual changed, skipping UI refresh")

        # Without a refresh to wait for, give the display time to settle
        if (p.backlight_off and not wm_restart
                and not plan.get(Slot.REFRESH_PRIMARY) and plan.get(Slot.BACKLIGHT)):
            plan.set(Slot.BACKLIGHT, "sleep 2 && " + plan.get(Slot.BACKLIGHT))

        # One-shot flags
        if cur.force_safe_mode:
            new.force_safe_mode = False
            if not wm_restart:
                plan.set(Slot.SAFE_MODE_SIZE, commands.safe_mode_size_command(None))
                plan.set(Slot.SAFE_MODE_DENSITY, commands.safe_mode_density_command(None))
        new.force_ui_refresh = False

        for name in _APPLIED_FIELDS:
            setattr(new, name, getattr(p, name))
        new.not_active = False

        logger.debug(f"Load plan: {plan}; actions: {[str(a) for a in actions]}")
        return ReconciliationResult(plan=plan, actions=actions, snapshot=new, resolved_profile=resolved)

    def _check_blacklist(self, profile: Profile):
        dims = self.current_dimensions()
        if dims is None:
            return
        width, height, density = dims
        if is_blacklisted(profile.size, profile.density, height, width, density, self.config.landscape):
            logger.warning(f"Profile '{profile.profile_name}' uses a resolution/density combination "
                           f"known to break the display ({profile.size} @ {profile.density})")

    def _load_rotation(self, p: Profile, cur: CurrentStateSnapshot, new: CurrentStateSnapshot,
                       plan: CommandPlan, actions: List[DirectAction]):
        baseline = cur.not_active
        if baseline:
            new.user_rotation = self.system.get_int(SYSTEM, "user_rotation")
            new.rotation_setting = self.system.get_int(SYSTEM, "accelerometer_rotation")
            dock = _UI_MODE_DOCK.get(self.system.ui_mode(), DOCK_UNDOCKED)
            new.dock_mode = dock
            new.dock_mode_current = dock
        current_dock = new.dock_mode_current

        mode = p.rotation_lock_mode
        if mode == "auto-rotate":
            dock = DOCK_DESK
            writes = [("accelerometer_rotation", 1)]
        elif mode == "landscape":
            dock = DOCK_UNDOCKED
            writes = [("user_rotation", 0 if self.config.landscape else 1),
                      ("accelerometer_rotation", 0)]
        else:
            dock = new.dock_mode
            user_rotation = new.user_rotation if new.user_rotation is not None else DEFAULT_USER_ROTATION
            setting = new.rotation_setting if new.rotation_setting is not None else DEFAULT_ROTATION_SETTING
            writes = [("user_rotation", user_rotation), ("accelerometer_rotation", setting)]

        if baseline:
            changed = mode != DO_NOTHING
        else:
            changed = mode != cur.rotation_lock_mode
        if changed:
            actions.extend(DirectAction(SYSTEM, key, value) for key, value in writes)

        if dock != current_dock:
            new.dock_mode_current = dock
            self._fill_rotation(plan, dock)
        else:
            logger.debug(f"Dock mode already {dock}, no rotation broadcast")

    def _load_screen_timeout(self, p: Profile, cur: CurrentStateSnapshot, new: CurrentStateSnapshot,
                             plan: CommandPlan, actions: List[DirectAction]):
        if cur.not_active:
            new.screen_timeout_system = self._get(SYSTEM, "screen_off_timeout", DEFAULT_SCREEN_TIMEOUT)
            new.stay_on_system = self._get(GLOBAL, "stay_on_while_plugged_in", DEFAULT_STAY_ON)
            previous = None
        else:
            previous = cur.screen_timeout_mode

        mode = p.screen_timeout_mode
        if mode == previous:
            return
        timeout = new.screen_timeout_system if new.screen_timeout_system is not None else DEFAULT_SCREEN_TIMEOUT
        stay_on = new.stay_on_system if new.stay_on_system is not None else DEFAULT_STAY_ON

        if previous == ALWAYS_ON:
            actions.append(DirectAction(SYSTEM, "screen_off_timeout", timeout))
        elif previous == ALWAYS_ON_CHARGING:
            plan.set(Slot.STAY_ON, commands.stay_on_command(stay_on))

        if mode == ALWAYS_ON:
            actions.append(DirectAction(SYSTEM, "screen_off_timeout", commands.ALWAYS_ON_TIMEOUT))
        elif mode == ALWAYS_ON_CHARGING:
            plan.set(Slot.STAY_ON, commands.stay_on_command(1))

    def _load_vibration(self, p: Profile, cur: CurrentStateSnapshot, new: CurrentStateSnapshot,
                        plan: CommandPlan):
        path = commands.last_existing(commands.VIBRATION_FILES, self.system.path_exists)
        if p.vibration_off:
            if path is None:
                logger.debug("No vibration control on this device")
                return
            if cur.not_active or not cur.vibration_off:
                value = _parse_int(self.system.read_line(path))
                # 0 means vibration is already off; nothing worth restoring
                if value:
                    new.vibration_value = value
                plan.set(Slot.VIBRATION, commands.sysfs_write_command(path, 0))
        elif cur.vibration_value != NOT_CAPTURED:
            if path:
                plan.set(Slot.VIBRATION, commands.sysfs_write_command(path, cur.vibration_value))
            new.vibration_value = NOT_CAPTURED

    def _load_backlight(self, p: Profile, cur: CurrentStateSnapshot, new: CurrentStateSnapshot,
                        plan: CommandPlan, actions: List[DirectAction], gated: bool):
        if not p.backlight_off:
            if cur.backlight_value != NOT_CAPTURED:
                self._restore_backlight(cur, plan, actions)
                new.backlight_value = NOT_CAPTURED
            return

        newly = cur.not_active or not cur.backlight_off
        if newly:
            new.auto_brightness = self.system.get_int(SYSTEM, "screen_brightness_mode")
            brightness = self.system.get_int(SYSTEM, "screen_brightness")
            if brightness is not None:
                new.backlight_value = brightness

        if p.ui_refresh_strategy == RESTART_WINDOW_MANAGER:
            return
        if not self.system.external_display_connected():
            logger.debug("No external display, leaving the backlight on")
            return

        if (self.system.cast_screen_active()
                and p.ui_refresh_strategy == RESTART_COMPOSITOR and gated):
            # The compositor restart would black out a cast screen; undim for now
            if cur.backlight_off and cur.backlight_value != NOT_CAPTURED:
                self._restore_backlight(cur, plan, actions)
        elif newly:
            actions.append(DirectAction(SYSTEM, "screen_brightness_mode", BRIGHTNESS_MODE_MANUAL))
            actions.append(DirectAction(SYSTEM, "screen_brightness", 0))
            path = commands.first_existing(commands.BACKLIGHT_FILES, self.system.path_exists)
            if path:
                plan.set(Slot.BACKLIGHT, commands.sysfs_write_command(path, 0))

    # ------------------------------------------------------------------
    # Turn off
    # ------------------------------------------------------------------

    def turn_off_size(self, snapshot: CurrentStateSnapshot) -> str:
        """Resolution to restore: the captured one if it was not the native one."""
        captured = snapshot.size_on_system
        if captured and captured != self.config.native_resolution():
            return captured
        return "reset"

    def turn_off_density(self, snapshot: CurrentStateSnapshot) -> str:
        captured = snapshot.density_on_system
        if captured and captured != self.native_density():
            return captured
        return "reset"

    def reconcile_off(self, snapshot: CurrentStateSnapshot) -> ReconciliationResult:
        """
        Compute the pass that undoes whatever is applied.

        Args:
            snapshot: What is applied now; not modified

        Returns:
            ReconciliationResult whose snapshot is the baseline snapshot
        """
        cur = snapshot
        plan = CommandPlan()
        actions: List[DirectAction] = []

        if cur.not_active:
            logger.info("No profile is active, nothing to turn off")
            return ReconciliationResult(plan=plan, actions=actions, snapshot=CurrentStateSnapshot.default())

        logger.info(f"Reconciling turn-off of '{cur.profile_name}'")
        sdk = self.sdk_int()
        wm_restart = cur.ui_refresh_strategy == RESTART_WINDOW_MANAGER

        # Radios
        for radio in (BLUETOOTH, WIFI):
            original = getattr(cur, f"{radio}_on_system")
            if getattr(cur, f"{radio}_on") and original is not None:
                actions.append(DirectAction(RADIO, radio, int(original)))

        # Resolution and density
        size = self.turn_off_size(cur)
        density = self.turn_off_density(cur)
        if self.size_differs(size, cur):
            if wm_restart:
                plan.set(Slot.SIZE, commands.safe_mode_size_command(size))
            else:
                plan.set(Slot.SIZE, commands.size_command(size, sdk))
        if self.density_differs(density, cur):
            if wm_restart:
                plan.set(Slot.DENSITY, commands.safe_mode_density_command(density))
            else:
                command = commands.density_command(density, sdk)
                plan.set(Slot.DENSITY, command)
                plan.set(Slot.DENSITY_REPEAT, command)

        if sdk > commands.SDK_JELLY_BEAN_MR1 and cur.overscan:
            plan.set(Slot.OVERSCAN, commands.overscan_reset_command())

        # Rotation
        if cur.rotation_lock_mode != DO_NOTHING:
            user_rotation = cur.user_rotation if cur.user_rotation is not None else DEFAULT_USER_ROTATION
            setting = cur.rotation_setting if cur.rotation_setting is not None else DEFAULT_ROTATION_SETTING
            actions.append(DirectAction(SYSTEM, "user_rotation", user_rotation))
            actions.append(DirectAction(SYSTEM, "accelerometer_rotation", setting))
        if cur.dock_mode != cur.dock_mode_current:
            self._fill_rotation(plan, cur.dock_mode)

        # Screen timeout
        if cur.screen_timeout_mode == ALWAYS_ON:
            timeout = cur.screen_timeout_system if cur.screen_timeout_system is not None else DEFAULT_SCREEN_TIMEOUT
            actions.append(DirectAction(SYSTEM, "screen_off_timeout", timeout))
        elif cur.screen_timeout_mode == ALWAYS_ON_CHARGING:
            stay_on = cur.stay_on_system if cur.stay_on_system is not None else DEFAULT_STAY_ON
            plan.set(Slot.STAY_ON, commands.stay_on_command(stay_on))

        if cur.chrome_desktop:
            self._chrome_commands(plan, False)

        if cur.daydreams_on:
            actions.extend(self._daydream_actions(bool(cur.daydreams_on_system),
                                                  bool(cur.daydreams_charging_system)))

        if cur.vibration_off and cur.vibration_value != NOT_CAPTURED:
            path = commands.last_existing(commands.VIBRATION_FILES, self.system.path_exists)
            if path:
                plan.set(Slot.VIBRATION, commands.sysfs_write_command(path, cur.vibration_value))

        if cur.backlight_off and cur.backlight_value != NOT_CAPTURED:
            self._restore_backlight(cur, plan, actions)

        if cur.show_touches:
            plan.set(Slot.SHOW_TOUCHES, commands.show_touches_command(bool(cur.show_touches_system)))

        if cur.navbar_forced and self.system.has_feature(NAVBAR_FEATURE):
            actions.append(self._navbar_action(bool(cur.navbar_system)))

        if cur.immersive_mode != DO_NOTHING:
            plan.set(Slot.IMMERSIVE, commands.immersive_command(DO_NOTHING))

        self._fill_refresh(plan, cur.ui_refresh_strategy)

        logger.debug(f"Turn-off plan: {plan}; actions: {[str(a) for a in actions]}")
        return ReconciliationResult(plan=plan, actions=actions, snapshot=CurrentStateSnapshot.default())


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None
