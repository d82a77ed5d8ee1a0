"""
Setting Command Catalog - Privileged command strings for each setting
=====================================================================

Pure formatting helpers. Nothing here touches the device; callers pass in
whatever platform facts (SDK level, process ids, package names) a command
depends on.
"""

from enum import Enum
from typing import Optional, Sequence, Tuple

# Platform levels that switch between two spellings of the same command
SDK_JELLY_BEAN_MR1 = 17
SDK_KITKAT = 19
SDK_LOLLIPOP_MR1 = 22

# Dock states broadcast to drive rotation
DOCK_UNDOCKED = 0
DOCK_DESK = 1
DOCK_CAR = 2

# Sysfs controls that turn the backlight or vibration motor off.
# Append new paths to add support for another device.
BACKLIGHT_FILES: Tuple[str, ...] = (
    "/sys/class/leds/lcd-backlight/brightness",
    "/sys/class/backlight/pwm-backlight/brightness",
    "/sys/class/backlight/intel_backlight/brightness",
    "/sys/class/backlight/tegra-dsi-backlight.0/brightness",
    "/sys/devices/platform/i2c-gpio.24/i2c-24/24-002c/backlight/panel/brightness",
)

VIBRATION_FILES: Tuple[str, ...] = (
    "/sys/class/timed_output/vibrator/amp",
    "/sys/drv2605/rtp_strength",
)

# Browser release channels, most featureful first: (channel, package)
BROWSER_CHANNELS: Tuple[Tuple[int, str], ...] = (
    (2, "com.chrome.dev"),
    (1, "com.chrome.beta"),
    (0, "com.android.chrome"),
)

CHROME_FLAG_FILE = "/data/local/chrome-command-line"
CHROME_FLAG_REMOVE = f"rm {CHROME_FLAG_FILE}"

ROTATION_COMMAND = "am broadcast -a android.intent.action.DOCK_EVENT --ei android.intent.extra.DOCK_STATE "
ROTATION_PRE_POST_COMMAND = "settings put secure screensaver_activate_on_dock "
SAFE_MODE_SIZE_COMMAND = "settings put global display_size_forced "
SAFE_MODE_DENSITY_COMMAND = "settings put global display_density_forced "
OVERSCAN_COMMAND = "wm overscan "
STAY_ON_COMMAND = "settings put global stay_on_while_plugged_in "

# Screen-off timeout used for "always on", in milliseconds
ALWAYS_ON_TIMEOUT = 2147482000

COMPOSITOR_PROCESS = "com.android.systemui"
WINDOW_MANAGER_PROCESS = "/system/bin/surfaceflinger"


class RestartMethod(Enum):
    """How the compositor or window manager gets restarted on this platform."""
    KILL_PID = "kill-pid"          # look up the pid, then `kill`
    PKILL = "pkill"                # `pkill` by process name
    AM_RESTART = "am-restart"      # structured `am restart` call


def _switch(command: str, enabled: bool) -> str:
    return command + ("1" if enabled else "0")


def navbar_command(enabled: bool) -> str:
    """Force the on-screen navigation bar on or off."""
    return _switch("settings put secure dev_force_show_navbar ", enabled)


def show_touches_command(enabled: bool) -> str:
    return _switch("settings put system show_touches ", enabled)


def daydreams_command(enabled: bool) -> str:
    return _switch("settings put secure screensaver_enabled ", enabled)


def daydreams_charging_command(enabled: bool) -> str:
    return _switch("settings put secure screensaver_activate_on_sleep ", enabled)


def size_command(size: str, sdk_int: int) -> str:
    """
    Resolution override command.

    Args:
        size: "WxH" or "reset"
        sdk_int: Platform API level of the device
    """
    if sdk_int > SDK_JELLY_BEAN_MR1:
        return f"wm size {size}"
    return f"am display-size {size}"


def density_command(density: str, sdk_int: int) -> str:
    """Density override command; `density` is a dpi string or "reset"."""
    if sdk_int > SDK_JELLY_BEAN_MR1:
        return f"wm density {density}"
    return f"am display-density {density}"


def safe_mode_size_command(size: Optional[str]) -> str:
    """Forced-size global setting; None or "reset" clears it."""
    if size is None or size == "reset":
        return SAFE_MODE_SIZE_COMMAND + "null"
    return SAFE_MODE_SIZE_COMMAND + size.replace("x", ",")


def safe_mode_density_command(density: Optional[str]) -> str:
    if density is None or density == "reset":
        return SAFE_MODE_DENSITY_COMMAND + "null"
    return SAFE_MODE_DENSITY_COMMAND + density


def overscan_command(bottom: int, left: int, top: int, right: int) -> str:
    return f"{OVERSCAN_COMMAND}{bottom},{left},{top},{right}"


def overscan_reset_command() -> str:
    return OVERSCAN_COMMAND + "reset"


def rotation_command(dock_mode: int) -> str:
    return f"{ROTATION_COMMAND}{dock_mode}"


def rotation_pre_post_commands() -> Tuple[str, str]:
    """Commands that silence, then re-arm, the screensaver-on-dock trigger."""
    return ROTATION_PRE_POST_COMMAND + "0", ROTATION_PRE_POST_COMMAND + "1"


def stay_on_command(value: int) -> str:
    return f"{STAY_ON_COMMAND}{value}"


def immersive_command(mode: str) -> str:
    """
    Immersive mode policy command.

    Args:
        mode: "status-only", "immersive-mode" or "do-nothing"
    """
    policies = {
        "status-only": "immersive.navigation=*",
        "immersive-mode": "immersive.full=*",
        "do-nothing": "null",
    }
    if mode not in policies:
        raise ValueError(f"Unknown immersive mode: {mode}")
    return f"settings put global policy_control {policies[mode]}"


def user_agent(browser_version: str) -> str:
    """Desktop user agent string advertised by the browser flag file."""
    return ("Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
            f"Chrome/{browser_version} Safari/537.36")


def chrome_flag_content(browser_version: str) -> str:
    """Content of the browser command-line flag file."""
    return f'chrome --user-agent="{user_agent(browser_version)}"'


def chrome_command(browser_version: str) -> str:
    """Write the desktop user-agent flag file."""
    return (f"echo '{chrome_flag_content(browser_version)}' > {CHROME_FLAG_FILE}"
            f" && chmod 644 {CHROME_FLAG_FILE}")


def chrome_force_stop_command(channel: int) -> str:
    """Force-stop the browser release channel so it rereads its flags."""
    for known_channel, package in BROWSER_CHANNELS:
        if known_channel == channel:
            return f"am force-stop {package}"
    return f"am force-stop {BROWSER_CHANNELS[-1][1]}"


def detect_browser_channel(package_version) -> Tuple[int, str]:
    """
    Find the installed browser release channel.

    If several channels are installed, the most featureful one wins.

    Args:
        package_version: Callable(package) -> Optional[str] version name

    Returns:
        Tuple of (channel, version). (0, "") if nothing is installed.
    """
    for channel, package in BROWSER_CHANNELS:
        version = package_version(package)
        if version is not None:
            return channel, version
    return 0, ""


def restart_method(sdk_int: int, restart_window_manager: bool) -> RestartMethod:
    """Pick the restart strategy for the compositor or the window manager."""
    if restart_window_manager:
        if sdk_int < SDK_KITKAT:
            return RestartMethod.KILL_PID
        return RestartMethod.AM_RESTART
    if sdk_int > SDK_LOLLIPOP_MR1:
        return RestartMethod.PKILL
    return RestartMethod.KILL_PID


def ui_refresh_command(sdk_int: int, restart_window_manager: bool,
                       pid: Optional[int] = None) -> str:
    """
    Primary UI refresh command.

    Args:
        sdk_int: Platform API level
        restart_window_manager: Restart the window manager instead of the compositor
        pid: Process id of the target, needed by the kill-pid strategy

    Returns:
        Command string, including its settle delay. Empty when the
        kill-pid strategy applies and no pid is known.
    """
    method = restart_method(sdk_int, restart_window_manager)
    delay = "sleep 1" if restart_window_manager else "sleep 2"
    if method == RestartMethod.AM_RESTART:
        return f"{delay} && am restart"
    if method == RestartMethod.PKILL:
        return f"{delay} && pkill {COMPOSITOR_PROCESS}"
    if pid is None:
        return ""
    return f"{delay} && kill {pid}"


def ui_refresh_command2(launcher_package: str) -> str:
    """Secondary refresh: restart the launcher so it picks up the new metrics."""
    return f"sleep 1 && am force-stop {launcher_package}"


def sysfs_write_command(path: str, value: int) -> str:
    return f"echo {value} > {path}"


def first_existing(paths: Sequence[str], exists) -> Optional[str]:
    """Return the first path for which `exists(path)` is true."""
    for path in paths:
        if exists(path):
            return path
    return None


def last_existing(paths: Sequence[str], exists) -> Optional[str]:
    """Return the last path for which `exists(path)` is true."""
    return first_existing(tuple(reversed(paths)), exists)
