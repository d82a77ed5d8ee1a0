"""
System Surface - Read and write device settings without elevated access
=======================================================================

`SystemSurface` is everything the reconciliation engine needs to know about
the live device, plus the unprivileged writes the plan executor performs.
`AdbSystem` implements it on top of `adb shell` (or a local shell when the
tool runs on the device itself).
"""

import re
import shlex
import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

SYSTEM = "system"
SECURE = "secure"
GLOBAL = "global"

WIFI = "wifi"
BLUETOOTH = "bluetooth"

# Platform feature that exposes the force-navbar setting
NAVBAR_FEATURE = "com.cyanogenmod.android"

# Service that only runs while the screen is being cast
CAST_SCREEN_SERVICE = "com.google.android.gms.cast.service.CastSocketMultiplexerLifeCycleService"


class AdbError(Exception):
    """Exception raised when a device command cannot be run."""
    pass


class SettingWriteDenied(Exception):
    """The platform refused an unprivileged settings write."""
    pass


@dataclass
class DisplayMetrics:
    """Current real metrics of the default display, as currently rotated."""
    width: int
    height: int
    density: int

    @property
    def is_landscape(self) -> bool:
        return self.width > self.height


class SystemSurface:
    """
    Interface to the live device.

    Every read returns None (or False) when the value cannot be read, so
    callers substitute their own documented default.
    """

    def sdk_int(self) -> Optional[int]:
        raise NotImplementedError

    def get_int(self, namespace: str, key: str) -> Optional[int]:
        raise NotImplementedError

    def put_int(self, namespace: str, key: str, value: int):
        """
        Write a setting.

        Raises:
            SettingWriteDenied: If the platform refuses the write
        """
        raise NotImplementedError

    def radio_enabled(self, radio: str) -> Optional[bool]:
        """None if the device has no such radio."""
        raise NotImplementedError

    def set_radio(self, radio: str, enabled: bool):
        raise NotImplementedError

    def has_feature(self, feature: str) -> bool:
        raise NotImplementedError

    def display_metrics(self) -> Optional[DisplayMetrics]:
        raise NotImplementedError

    def native_density(self) -> Optional[int]:
        raise NotImplementedError

    def ui_mode(self) -> str:
        """"normal", "desk" or "car"."""
        raise NotImplementedError

    def package_version(self, package: str) -> Optional[str]:
        raise NotImplementedError

    def path_exists(self, path: str) -> bool:
        raise NotImplementedError

    def read_line(self, path: str) -> Optional[str]:
        raise NotImplementedError

    def process_pid(self, name: str) -> Optional[int]:
        raise NotImplementedError

    def launcher_package(self) -> Optional[str]:
        raise NotImplementedError

    def external_display_connected(self) -> bool:
        raise NotImplementedError

    def cast_screen_active(self) -> bool:
        raise NotImplementedError


class AdbSystem(SystemSurface):
    """
    SystemSurface backed by shell commands on the device.

    With transport "adb" every command is wrapped in `adb [-s SERIAL] shell`;
    with transport "local" commands run directly.
    """

    def __init__(
        self,
        transport: str = "adb",
        serial: Optional[str] = None,
        retry_count: int = 2,
        timeout: float = 15.0,
    ):
        """
        Initialize the device surface.

        Args:
            transport: "adb" or "local"
            serial: adb serial of the device, None for the only attached device
            retry_count: Number of attempts for failed commands
            timeout: Per-command timeout in seconds
        """
        if transport not in ("adb", "local"):
            raise ValueError(f"Unknown transport: {transport}")
        self.transport = transport
        self.serial = serial
        self.retry_count = max(1, retry_count)
        self.timeout = timeout
        self._lock = threading.Lock()
        self._features: Optional[Set[str]] = None
        self._sdk_int: Optional[int] = None

    def shell_prefix(self) -> List[str]:
        """Arguments that reach a shell on the device."""
        if self.transport == "local":
            return []
        args = ["adb"]
        if self.serial:
            args.extend(["-s", self.serial])
        args.append("shell")
        return args

    def _run(self, command: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """
        Run a device command with retry logic.

        Args:
            command: Command arguments, run in the device shell
            check: Whether a non-zero exit code counts as a failure

        Returns:
            CompletedProcess result

        Raises:
            AdbError: If the command fails after retries
        """
        if self.transport == "adb":
            # adb shell joins its arguments into one device command line
            full_command = self.shell_prefix() + [" ".join(shlex.quote(c) for c in command)]
        else:
            full_command = command

        with self._lock:
            last_error = None
            for attempt in range(self.retry_count):
                start = time.time()
                logger.debug(f"Running (attempt {attempt + 1}): {' '.join(full_command)}")
                try:
                    result = subprocess.run(
                        full_command,
                        capture_output=True,
                        text=True,
                        timeout=self.timeout,
                        check=check,
                    )
                    logger.debug(f"Command completed in {time.time() - start:.2f}s")
                    return result
                except subprocess.CalledProcessError as e:
                    last_error = e
                    stderr_msg = e.stderr.strip() if e.stderr else "(no stderr)"
                    logger.warning(
                        f"Command failed (attempt {attempt + 1}/{self.retry_count}): "
                        f"{' '.join(command)} → {stderr_msg}"
                    )
                    if attempt < self.retry_count - 1:
                        time.sleep(0.3 * (attempt + 1))
                except subprocess.TimeoutExpired as e:
                    last_error = e
                    logger.warning(
                        f"Command timed out after {time.time() - start:.1f}s "
                        f"(attempt {attempt + 1}/{self.retry_count}): {' '.join(command)}"
                    )
                except FileNotFoundError as e:
                    raise AdbError(f"Cannot run '{full_command[0]}': {e}") from e

        raise AdbError(f"Command '{' '.join(command)}' failed after {self.retry_count} attempts: {last_error}")

    def _output(self, command: List[str]) -> Optional[str]:
        """Stdout of a command, or None if it could not be run."""
        try:
            return self._run(command).stdout.strip()
        except AdbError as e:
            logger.debug(f"Device read unavailable: {e}")
            return None

    def sdk_int(self) -> Optional[int]:
        if self._sdk_int is None:
            self._sdk_int = _parse_int(self._output(["getprop", "ro.build.version.sdk"]))
        return self._sdk_int

    def get_int(self, namespace: str, key: str) -> Optional[int]:
        return _parse_int(self._output(["settings", "get", namespace, key]))

    def put_int(self, namespace: str, key: str, value: int):
        result = self._run(["settings", "put", namespace, key, str(value)], check=False)
        output = f"{result.stdout}\n{result.stderr}"
        if result.returncode != 0 or "SecurityException" in output or "Permission denial" in output:
            raise SettingWriteDenied(f"Write to {namespace}/{key} denied: {output.strip()}")
        logger.debug(f"Set {namespace}/{key} to {value}")

    def radio_enabled(self, radio: str) -> Optional[bool]:
        if not self.has_feature(f"android.hardware.{radio}"):
            return None
        value = self.get_int(GLOBAL, f"{radio}_on")
        if value is None:
            return None
        return value != 0

    def set_radio(self, radio: str, enabled: bool):
        self._run(["svc", radio, "enable" if enabled else "disable"])
        logger.info(f"{radio} {'enabled' if enabled else 'disabled'}")

    def has_feature(self, feature: str) -> bool:
        if self._features is None:
            output = self._output(["pm", "list", "features"]) or ""
            self._features = {line.partition(":")[2].split("=")[0].strip()
                              for line in output.splitlines() if line.startswith("feature:")}
        return feature in self._features

    def display_metrics(self) -> Optional[DisplayMetrics]:
        size = _override_or_physical(self._output(["wm", "size"]), r'(\d+)x(\d+)')
        density = _override_or_physical(self._output(["wm", "density"]), r'(\d+)')
        if size is None or density is None:
            return None

        width, height = int(size[0]), int(size[1])
        # wm reports the unrotated size; real metrics follow the current rotation
        rotation = _parse_int(_search(self._output(["dumpsys", "input"]), r'SurfaceOrientation:\s*(\d)'))
        if rotation in (1, 3):
            width, height = height, width
        return DisplayMetrics(width=width, height=height, density=int(density[0]))

    def native_density(self) -> Optional[int]:
        return _parse_int(self._output(["getprop", "ro.sf.lcd_density"]))

    def ui_mode(self) -> str:
        mode = _search(self._output(["dumpsys", "uimode"]), r'mCurUiMode=0x([0-9a-fA-F]+)')
        if mode is None:
            return "normal"
        mode_type = int(mode, 16) & 0x0F
        return {2: "desk", 3: "car"}.get(mode_type, "normal")

    def package_version(self, package: str) -> Optional[str]:
        return _search(self._output(["dumpsys", "package", package]), r'versionName=(\S+)')

    def path_exists(self, path: str) -> bool:
        try:
            return self._run(["test", "-e", path], check=False).returncode == 0
        except AdbError:
            return False

    def read_line(self, path: str) -> Optional[str]:
        output = self._output(["cat", path])
        if not output:
            return None
        return output.splitlines()[0].strip()

    def process_pid(self, name: str) -> Optional[int]:
        output = self._output(["pidof", name])
        if not output:
            return None
        return _parse_int(output.split()[0])

    def launcher_package(self) -> Optional[str]:
        output = self._output([
            "cmd", "package", "resolve-activity", "--brief",
            "-a", "android.intent.action.MAIN", "-c", "android.intent.category.HOME",
        ])
        if not output:
            return None
        last = output.splitlines()[-1].strip()
        return last.split("/")[0] if "/" in last else None

    def external_display_connected(self) -> bool:
        output = self._output(["dumpsys", "display"]) or ""
        ids = {int(i) for i in re.findall(r'mDisplayId=(\d+)', output)}
        return any(i != 0 for i in ids)

    def cast_screen_active(self) -> bool:
        output = self._output(["dumpsys", "activity", "services", CAST_SCREEN_SERVICE]) or ""
        return "ServiceRecord" in output


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _search(text: Optional[str], pattern: str) -> Optional[str]:
    if not text:
        return None
    match = re.search(pattern, text)
    return match.group(1) if match else None


def _override_or_physical(text: Optional[str], pattern: str) -> Optional[Tuple[str, ...]]:
    """Parse `wm size`/`wm density` output, preferring the override value."""
    if not text:
        return None
    values: Dict[str, Tuple[str, ...]] = {}
    for line in text.splitlines():
        key, _, value = line.partition(":")
        match = re.search(pattern, value)
        if match:
            values[key.strip().lower()] = match.groups()
    return values.get("override size") or values.get("override density") \
        or values.get("physical size") or values.get("physical density")


def check_adb_available() -> Tuple[bool, str]:
    """
    Check if adb is installed and a device is attached.

    Returns:
        Tuple of (is_available, message)
    """
    try:
        result = subprocess.run(
            ["adb", "devices"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except FileNotFoundError:
        return False, "adb not found. Install the Android platform tools"
    except subprocess.TimeoutExpired:
        return False, "adb timed out"

    if result.returncode != 0:
        return False, f"adb error: {result.stderr.strip()}"
    devices = [line for line in result.stdout.splitlines()[1:] if line.strip().endswith("device")]
    if not devices:
        return False, "No device attached. Enable USB debugging and authorize this computer"
    return True, f"{len(devices)} device(s) attached"
